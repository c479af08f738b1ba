"""
Main application factory for bucketfm
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from google.cloud import storage

from . import __version__
from .config import DEFAULT_CONFIG_PATH, load_config, get_config_manager
from .models import Config
from .middleware import setup_middleware
from .api import setup_api_routes
from .metrics import metrics_manager
from .storage_api import FileManagerApi
from .storage_client import create_storage_client


logger = logging.getLogger(__name__)


def setup_logging(config: Config):
    """Setup logging configuration"""
    log_config = config.logging

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_config.level.upper(), logging.INFO))

    # Clear existing handlers
    root_logger.handlers.clear()

    # Create formatter
    if log_config.json:
        formatter = logging.Formatter(
            '{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","msg":"%(message)s"}'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler if configured
    if log_config.file:
        log_file = Path(log_config.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=log_config.max_size_mb * 1024 * 1024,
            backupCount=log_config.backup_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def create_app(config_path: str = None, storage_client: Optional[storage.Client] = None) -> FastAPI:
    """
    Create FastAPI application

    Args:
        config_path: YAML configuration path, defaults to $BUCKETFM_CONFIG
        storage_client: Prebuilt storage client; built from config when omitted
    """

    # If not provided explicitly, fall back to env or default
    if not config_path:
        config_path = os.getenv("BUCKETFM_CONFIG", DEFAULT_CONFIG_PATH)
    config = load_config(config_path)
    config_manager = get_config_manager()

    setup_logging(config)

    if storage_client is None:
        storage_client = create_storage_client(config.storage)

    app = FastAPI(
        title="bucketfm",
        description="File-manager API over cloud storage buckets",
        version=__version__,
        docs_url="/docs" if os.getenv("BUCKETFM_DEBUG") else None,
        redoc_url="/redoc" if os.getenv("BUCKETFM_DEBUG") else None,
    )

    app.state.config = config
    app.state.config_manager = config_manager
    app.state.metrics = metrics_manager
    app.state.file_manager = FileManagerApi(storage_client)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_middleware(app)
    setup_api_routes(app)

    config_manager.start_watching()

    @app.get("/healthz")
    async def health_check():
        return {"ok": True, "version": __version__}

    @app.get("/metrics")
    async def get_metrics():
        return metrics_manager.get_metrics()

    @app.on_event("startup")
    async def startup_event():
        logger.info(f"bucketfm starting on {config.server.addr}:{config.server.port}")
        logger.info(f"Users: {[u.name for u in config.users]}")
        logger.info(f"TLS: {'enabled' if config.server.tls.enabled else 'disabled'}")

    @app.on_event("shutdown")
    async def shutdown_event():
        config_manager.stop_watching()
        logger.info("bucketfm shutdown complete")

    return app


def main():
    """Main entry point for running the server"""
    import argparse

    parser = argparse.ArgumentParser(description="bucketfm file-manager API server")
    parser.add_argument("--config", "-c", default=DEFAULT_CONFIG_PATH, help="Configuration file path")
    parser.add_argument("--host", default=None, help="Host to bind to")
    parser.add_argument("--port", type=int, default=None, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    args = parser.parse_args()

    if args.debug:
        os.environ["BUCKETFM_DEBUG"] = "1"

    # The factory reads the config path from the environment
    os.environ["BUCKETFM_CONFIG"] = args.config
    config = load_config(args.config)

    # Override with command line args
    host = args.host or config.server.addr
    port = args.port or config.server.port

    ssl_keyfile = None
    ssl_certfile = None
    if config.server.tls.enabled:
        ssl_keyfile = config.server.tls.keyfile
        ssl_certfile = config.server.tls.certfile

    uvicorn.run(
        "bucketfm.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=args.reload,
        ssl_keyfile=ssl_keyfile,
        ssl_certfile=ssl_certfile,
        access_log=False,  # We handle access logging ourselves
        server_header=False,
        date_header=False,
    )


if __name__ == "__main__":
    main()
