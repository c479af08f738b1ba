"""
Configuration loading and management for bucketfm
"""

import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional
from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler
import asyncio
import time

from .models import (
    Config, ServerConfig, StorageConfig, UserInfo, TlsConfig,
    UploadConfig, LoggingConfig, HotReloadConfig
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "bucketfm.yaml"


class ConfigFileHandler(FileSystemEventHandler):
    """File system event handler for config file changes"""

    def __init__(self, config_path: Path, callback, debounce_ms: int = 1000):
        self.config_path = config_path.resolve()
        self.callback = callback
        self.last_modified = 0
        self.debounce_ms = debounce_ms

    def on_modified(self, event):
        if event.is_directory:
            return

        file_path = Path(event.src_path).resolve()
        if file_path != self.config_path:
            return

        # Debounce multiple events
        now = time.time() * 1000
        if now - self.last_modified < self.debounce_ms:
            return
        self.last_modified = now

        logger.info(f"Configuration file changed: {file_path}")
        try:
            self.callback()
        except Exception as e:
            logger.error(f"Failed to reload configuration: {e}")


class ConfigManager:
    """Configuration manager with hot reload support"""

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH):
        self.config_path = Path(config_path).resolve()
        self.config: Optional[Config] = None
        self.observer: Optional[Observer] = None
        self.reload_callbacks = []

    def load_config(self) -> Config:
        """Load configuration from YAML file"""
        try:
            if not self.config_path.exists():
                logger.warning(f"Configuration file not found: {self.config_path}")
                self.config = Config()
                return self.config

            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}

            config = self._parse_config(data)
            self.config = config
            logger.info(f"Configuration loaded from {self.config_path}")
            return config

        except (OSError, yaml.YAMLError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Failed to load configuration: {e}")
            return self.config or Config()

    def _parse_config(self, data: Dict[str, Any]) -> Config:
        """Parse configuration data into Config object"""

        # Server configuration
        server_data = data.get('server') or {}
        tls_data = server_data.get('tls') or {}
        server = ServerConfig(
            addr=server_data.get('addr', '0.0.0.0'),
            port=server_data.get('port', 8080),
            tls=TlsConfig(
                enabled=tls_data.get('enabled', False),
                certfile=tls_data.get('certfile', ''),
                keyfile=tls_data.get('keyfile', '')
            )
        )

        # Cloud storage client
        storage_data = data.get('storage') or {}
        storage = StorageConfig(
            project=storage_data.get('project', ''),
            credentialsFile=storage_data.get('credentialsFile', ''),
            anonymous=storage_data.get('anonymous', False),
            signedUrls=storage_data.get('signedUrls', True),
            signedUrlExpiryMinutes=storage_data.get('signedUrlExpiryMinutes', 60)
        )

        # Users and the claims forwarded on their behalf
        users = []
        for user_data in data.get('users') or []:
            user = UserInfo(
                name=user_data['name'],
                pass_hash=user_data['pass'],
                is_bcrypt=user_data.get('pass_bcrypt', False),
                claims=dict(user_data.get('claims') or {})
            )
            users.append(user)

        # Uploads
        upload_data = data.get('upload') or {}
        upload = UploadConfig(
            maxSize=upload_data.get('maxSize', 104857600)
        )

        # Logging
        logging_data = data.get('logging') or {}
        logging_config = LoggingConfig(
            json=logging_data.get('json', True),
            file=logging_data.get('file', ''),
            level=logging_data.get('level', 'INFO'),
            max_size_mb=logging_data.get('max_size_mb', 100),
            backup_count=logging_data.get('backup_count', 5)
        )

        # Hot reload
        reload_data = data.get('hotReload') or {}
        hot_reload = HotReloadConfig(
            enabled=reload_data.get('enabled', True),
            watchConfig=reload_data.get('watchConfig', True),
            debounceMs=reload_data.get('debounceMs', 1000)
        )

        return Config(
            server=server,
            storage=storage,
            users=users,
            upload=upload,
            logging=logging_config,
            hotReload=hot_reload
        )

    def start_watching(self):
        """Start watching configuration file for changes"""
        if not self.config or not self.config.hotReload.enabled or not self.config.hotReload.watchConfig:
            return

        if self.observer:
            return  # Already watching

        try:
            self.observer = Observer()
            handler = ConfigFileHandler(
                self.config_path,
                self._on_config_changed,
                debounce_ms=self.config.hotReload.debounceMs
            )

            watch_dir = self.config_path.parent
            self.observer.schedule(handler, str(watch_dir), recursive=False)
            self.observer.start()

            logger.info(f"Started watching configuration file: {self.config_path}")

        except OSError as e:
            self.observer = None
            logger.error(f"Failed to start configuration file watcher: {e}")

    def stop_watching(self):
        """Stop watching configuration file"""
        if self.observer:
            self.observer.stop()
            self.observer.join()
            self.observer = None
            logger.info("Stopped watching configuration file")

    def _on_config_changed(self):
        """Handle configuration file changes"""
        old_config = self.config
        new_config = self.load_config()

        # Notify callbacks
        for callback in self.reload_callbacks:
            try:
                if asyncio.iscoroutinefunction(callback):
                    # Schedule async callback
                    loop = asyncio.get_event_loop()
                    loop.create_task(callback(old_config, new_config))
                else:
                    callback(old_config, new_config)
            except Exception as e:
                logger.error(f"Configuration reload callback failed: {e}")

        logger.info("Configuration reloaded successfully")

    def add_reload_callback(self, callback):
        """Add callback to be called when configuration is reloaded"""
        self.reload_callbacks.append(callback)

    def get_config(self) -> Config:
        """Get current configuration"""
        if self.config is None:
            self.config = self.load_config()
        return self.config

    def get_user_by_name(self, name: str) -> Optional[UserInfo]:
        """Get user by name"""
        config = self.get_config()
        for user in config.users:
            if user.name == name:
                return user
        return None


# Global configuration manager instance
config_manager = ConfigManager()


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Config:
    """Load configuration from file"""
    global config_manager
    config_manager = ConfigManager(config_path)
    return config_manager.load_config()


def get_config_manager() -> ConfigManager:
    """Get the active configuration manager"""
    return config_manager


def get_config() -> Config:
    """Get current configuration"""
    return config_manager.get_config()


def get_user_by_name(name: str) -> Optional[UserInfo]:
    """Get user by name"""
    return config_manager.get_user_by_name(name)
