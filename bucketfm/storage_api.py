"""File-manager API facade over a cloud storage bucket."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional

from google.cloud.storage import Bucket, Client

from . import commands
from .errors import BucketError, BucketNotFoundError, MissingFieldError, OperationError

logger = logging.getLogger(__name__)

Body = Mapping[str, Any]
Claims = Optional[Dict[str, Any]]
Response = Dict[str, Any]


def check_has_body_prop(body: Body, field_name: str) -> None:
    """
    Ensure a request field is present

    Falsy values ("", 0, None, [], False) count as missing, so an operation
    can never be asked to work on an empty path or an empty item list.

    Raises:
        MissingFieldError: If the field is absent or falsy
    """
    if not body.get(field_name):
        raise MissingFieldError(field_name)


class FileManagerApi:
    """
    One coroutine per file-manager operation

    Every handler validates its fields, resolves the bucket named in the
    body, makes a single command call with the caller's claims and wraps the
    result as ``{"result": ...}``. Failures are re-raised as
    ``OperationError`` chained from the original error. Handlers keep no
    state between calls.
    """

    def __init__(self, storage: Client):
        self.storage = storage

    async def get_bucket(self, bucketname: Optional[str]) -> Bucket:
        """Resolve a bucket by name, checking that it exists"""
        if not bucketname:
            raise MissingFieldError("bucketname")

        try:
            bucket = self.storage.bucket(bucketname)
            exists = await asyncio.to_thread(bucket.exists)
            if isinstance(exists, (list, tuple)):
                exists = exists[0] if exists else False
            if not exists:
                raise BucketNotFoundError(bucketname)
            return bucket
        except Exception as e:
            raise BucketError(f"Error retrieving bucket: {e}", bucketname=bucketname) from e

    def _fail(self, operation: str, error: Exception) -> OperationError:
        logger.warning(f"File manager operation failed: {operation}: {error}")
        return OperationError(operation, str(error))

    async def handle_list(self, body: Body, claims: Claims) -> Response:
        try:
            check_has_body_prop(body, 'path')
            bucket = await self.get_bucket(body.get('bucketname'))
            files = await commands.get_list(bucket, body['path'], claims)
            return {"result": files}
        except Exception as e:
            raise self._fail("list", e) from e

    async def handle_rename(self, body: Body, claims: Claims) -> Response:
        try:
            check_has_body_prop(body, 'item')
            check_has_body_prop(body, 'newItemPath')
            bucket = await self.get_bucket(body.get('bucketname'))
            result = await commands.rename_file(
                bucket, body['item'], body['newItemPath'], claims
            )
            return {"result": result}
        except Exception as e:
            raise self._fail("rename", e) from e

    async def handle_move(self, body: Body, claims: Claims) -> Response:
        try:
            # Move resolves the bucket before checking its own fields
            bucket = await self.get_bucket(body.get('bucketname'))
            check_has_body_prop(body, 'items')
            check_has_body_prop(body, 'newPath')
            result = await commands.move_files(
                bucket, body['items'], body['newPath'], claims
            )
            return {"result": result}
        except Exception as e:
            raise self._fail("move", e) from e

    async def handle_copy(self, body: Body, claims: Claims) -> Response:
        try:
            check_has_body_prop(body, 'newPath')
            bucket = await self.get_bucket(body.get('bucketname'))
            if body.get('items'):
                files_to_copy = body['items']
            elif body.get('singleFileName'):
                files_to_copy = [body['singleFileName']]
            else:
                raise MissingFieldError(
                    'items',
                    "Request does not contain either body.items or body.singleFileName",
                )
            result = await commands.copy_files(
                bucket, files_to_copy, body['newPath'], claims
            )
            return {"result": result}
        except Exception as e:
            raise self._fail("copy", e) from e

    async def handle_remove(self, body: Body, claims: Claims) -> Response:
        try:
            check_has_body_prop(body, 'items')
            bucket = await self.get_bucket(body.get('bucketname'))
            result = await commands.remove_files(bucket, body['items'], claims)
            return {"result": result}
        except Exception as e:
            raise self._fail("remove", e) from e

    async def handle_edit(self, body: Body, claims: Claims) -> Response:
        try:
            check_has_body_prop(body, 'item')
            check_has_body_prop(body, 'content')
            bucket = await self.get_bucket(body.get('bucketname'))
            result = await commands.edit_file(
                bucket, body['item'], body['content'], claims
            )
            return {"result": result}
        except Exception as e:
            raise self._fail("edit", e) from e

    async def handle_get_content(self, body: Body, claims: Claims) -> Response:
        try:
            check_has_body_prop(body, 'item')
            bucket = await self.get_bucket(body.get('bucketname'))
            result = await commands.get_file_content(bucket, body['item'], claims)
            return {"result": result}
        except Exception as e:
            raise self._fail("getContent", e) from e

    async def handle_get_meta(self, body: Body, claims: Claims) -> Response:
        try:
            check_has_body_prop(body, 'item')
            bucket = await self.get_bucket(body.get('bucketname'))
            download_url = await commands.get_file_meta(bucket, body['item'], claims)
            return {"result": {"success": True, "url": download_url}}
        except Exception as e:
            raise self._fail("getMeta", e) from e

    async def handle_create_folder(self, body: Body, claims: Claims) -> Response:
        try:
            check_has_body_prop(body, 'newPath')
            bucket = await self.get_bucket(body.get('bucketname'))
            result = await commands.create_folder(bucket, body['newPath'], claims)
            return {"result": result}
        except Exception as e:
            raise self._fail("createFolder", e) from e

    async def handle_set_permissions(self, body: Body, claims: Claims) -> Response:
        try:
            check_has_body_prop(body, 'items')
            check_has_body_prop(body, 'role')
            check_has_body_prop(body, 'entity')
            bucket = await self.get_bucket(body.get('bucketname'))
            result = await commands.change_permissions(
                bucket,
                body['items'],
                body['role'],
                body['entity'],
                body.get('recursive'),
                claims,
            )
            return {"result": result}
        except Exception as e:
            raise self._fail("changePermissions", e) from e

    async def handle_save_file(
        self,
        bucketname: str,
        directory_path: str,
        originalname: str,
        mimetype: str,
        buffer: Optional[bytes],
        claims: Claims,
    ) -> Response:
        """Upload handler; takes its fields as parameters instead of a body"""
        try:
            check_has_body_prop({'originalname': originalname}, 'originalname')
            check_has_body_prop({'mimetype': mimetype}, 'mimetype')
            if buffer is None:
                raise MissingFieldError('buffer')
            bucket = await self.get_bucket(bucketname)
            await commands.upload_file(
                bucket, directory_path, originalname, mimetype, buffer, claims
            )
            return {"result": {"success": True}}
        except Exception as e:
            raise self._fail("upload", e) from e


__all__ = ["FileManagerApi", "check_has_body_prop"]
