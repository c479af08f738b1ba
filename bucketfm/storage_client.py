"""Cloud storage client construction."""

from __future__ import annotations

import logging

from google.cloud import storage

from .models import StorageConfig

logger = logging.getLogger(__name__)


def create_storage_client(storage_config: StorageConfig) -> storage.Client:
    """
    Build a google-cloud-storage client from configuration

    An anonymous client is meant for local emulators (``STORAGE_EMULATOR_HOST``),
    a credentials file for service accounts; otherwise application default
    credentials are used.
    """
    project = storage_config.project or None

    if storage_config.anonymous:
        logger.info("Using anonymous storage client")
        return storage.Client.create_anonymous_client()

    if storage_config.credentialsFile:
        logger.info(f"Using service account credentials from {storage_config.credentialsFile}")
        return storage.Client.from_service_account_json(
            storage_config.credentialsFile, project=project
        )

    logger.info("Using application default credentials")
    return storage.Client(project=project)


__all__ = ["create_storage_client"]
