"""
Data models and constants for bucketfm
"""

from enum import Enum
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field


class ResponseCode(Enum):
    """Standard response codes"""
    SUCCESS = 0
    ERROR = 1
    UNAUTHORIZED = 401
    NOT_FOUND = 404
    PAYLOAD_TOO_LARGE = 413
    INTERNAL_ERROR = 500


class AclRole(Enum):
    """Object ACL roles accepted by change_permissions"""
    READER = "READER"
    WRITER = "WRITER"
    OWNER = "OWNER"


class FileAction(Enum):
    """Actions accepted in the file-manager request body"""
    LIST = "list"
    RENAME = "rename"
    MOVE = "move"
    COPY = "copy"
    REMOVE = "remove"
    EDIT = "edit"
    GET_CONTENT = "getContent"
    GET_META = "getMeta"
    CREATE_FOLDER = "createFolder"
    CHANGE_PERMISSIONS = "changePermissions"


@dataclass
class ApiResponse:
    """Standard API error/status response format"""
    code: int = ResponseCode.SUCCESS.value
    msg: str = "success"
    data: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "msg": self.msg,
            "data": self.data
        }


DIR_RIGHTS = "drwxr-xr-x"
FILE_RIGHTS = "-rw-r--r--"


@dataclass
class FileEntry:
    """Single entry of a directory listing"""
    name: str
    full_path: str
    is_dir: bool
    size: int = 0
    date: str = ""
    mime_type: str = ""
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def rights(self) -> str:
        return DIR_RIGHTS if self.is_dir else FILE_RIGHTS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "fullPath": self.full_path,
            "type": "dir" if self.is_dir else "file",
            "size": self.size,
            "date": self.date,
            "mimeType": self.mime_type,
            "rights": self.rights,
            "metadata": dict(self.metadata),
        }


@dataclass
class UserInfo:
    """User information"""
    name: str
    pass_hash: str
    is_bcrypt: bool = False
    claims: Dict[str, Any] = field(default_factory=dict)

    def to_claims(self) -> Dict[str, Any]:
        """Build the opaque claims mapping forwarded to commands"""
        claims = dict(self.claims)
        claims.setdefault("name", self.name)
        return claims


@dataclass
class TlsConfig:
    """TLS configuration"""
    enabled: bool = False
    certfile: str = ""
    keyfile: str = ""


@dataclass
class ServerConfig:
    """Server configuration"""
    addr: str = "0.0.0.0"
    port: int = 8080
    tls: TlsConfig = field(default_factory=TlsConfig)


@dataclass
class StorageConfig:
    """Cloud storage client configuration"""
    project: str = ""
    credentialsFile: str = ""
    anonymous: bool = False
    signedUrls: bool = True
    signedUrlExpiryMinutes: int = 60


@dataclass
class UploadConfig:
    """Upload limits"""
    maxSize: Optional[int] = 104857600

    def __post_init__(self):
        if self.maxSize is not None and self.maxSize <= 0:
            # Non-positive means unlimited
            self.maxSize = None


@dataclass
class LoggingConfig:
    """Logging configuration"""
    json: bool = True
    file: str = ""
    level: str = "INFO"
    max_size_mb: int = 100
    backup_count: int = 5


@dataclass
class HotReloadConfig:
    """Hot reload configuration"""
    enabled: bool = True
    watchConfig: bool = True
    debounceMs: int = 1000


@dataclass
class Config:
    """Main configuration container"""
    server: ServerConfig = field(default_factory=ServerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    users: List[UserInfo] = field(default_factory=list)
    upload: UploadConfig = field(default_factory=UploadConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    hotReload: HotReloadConfig = field(default_factory=HotReloadConfig)


# Common MIME types
MIME_TYPES = {
    '.txt': 'text/plain',
    '.md': 'text/markdown',
    '.html': 'text/html',
    '.css': 'text/css',
    '.js': 'application/javascript',
    '.json': 'application/json',
    '.xml': 'application/xml',
    '.pdf': 'application/pdf',
    '.zip': 'application/zip',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.gif': 'image/gif',
    '.svg': 'image/svg+xml',
    '.mp3': 'audio/mpeg',
    '.mp4': 'video/mp4',
}

# Default MIME type for unknown files
DEFAULT_MIME_TYPE = 'application/octet-stream'

# Content type used for folder placeholder objects
FOLDER_MIME_TYPE = 'application/x-directory'
