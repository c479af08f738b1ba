"""
Utility functions for bucketfm
"""

import mimetypes
import re
from datetime import datetime
from pathlib import PurePosixPath
from typing import Optional

from .models import MIME_TYPES, DEFAULT_MIME_TYPE


class PathTraversalError(ValueError):
    """Raised when an object path tries to climb out of the bucket root"""
    pass


def get_mime_type(name: str) -> str:
    """Get MIME type for an object name"""
    suffix = PurePosixPath(name).suffix.lower()

    # Check our custom MIME types first
    if suffix in MIME_TYPES:
        return MIME_TYPES[suffix]

    # Fall back to system mimetypes
    mime_type, _ = mimetypes.guess_type(name)
    return mime_type or DEFAULT_MIME_TYPE


def format_file_size(size_bytes: int) -> str:
    """Format file size in human readable format"""
    if size_bytes == 0:
        return "0 B"

    size_names = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    size = float(size_bytes)

    while size >= 1024.0 and i < len(size_names) - 1:
        size /= 1024.0
        i += 1

    if i == 0:
        return f"{int(size)} {size_names[i]}"
    else:
        return f"{size:.1f} {size_names[i]}"


def format_timestamp(value: Optional[datetime]) -> str:
    """Format an object timestamp as ISO-8601, empty when unknown"""
    if value is None:
        return ""
    return value.isoformat()


def normalize_path(path: str) -> str:
    """Normalize path separators for cross-platform compatibility"""
    return path.replace('\\', '/')


def normalize_object_path(path: str) -> str:
    """
    Turn a client supplied path into a bucket object path

    Backslashes become slashes, empty and ``.`` segments are dropped and the
    result never starts with a slash. A trailing slash is kept, since it
    marks a folder object.

    Raises:
        PathTraversalError: If the path contains a ``..`` segment
    """
    path = normalize_path((path or "").strip())
    is_folder = path.endswith('/')

    parts = []
    for part in path.split('/'):
        if not part or part == '.':
            continue
        if part == '..':
            raise PathTraversalError(f"Path traversal detected: {path}")
        parts.append(part)

    if not parts:
        return ""

    joined = '/'.join(parts)
    return joined + '/' if is_folder else joined


def folder_prefix(path: str) -> str:
    """Object prefix for the contents of a folder ("" for the bucket root)"""
    path = normalize_object_path(path)
    if path and not path.endswith('/'):
        path += '/'
    return path


def join_object_path(*parts: str) -> str:
    """Join path parts into a single object path"""
    joined = '/'.join(normalize_path(str(part)).strip('/') for part in parts if part)
    return normalize_object_path(joined)


def object_basename(path: str) -> str:
    """Last segment of an object path, ignoring a trailing slash"""
    return normalize_path(path).rstrip('/').rsplit('/', 1)[-1]


def sanitize_filename(filename: str) -> str:
    """Sanitize filename for safe object naming"""
    # Remove or replace dangerous characters
    filename = re.sub(r'[<>:"/\\|?*]', '_', filename)

    # Remove control characters
    filename = re.sub(r'[\x00-\x1f\x7f]', '', filename)

    # Trim whitespace and dots
    filename = filename.strip(' .')

    # Ensure not empty
    if not filename:
        filename = "unnamed"

    # Limit length
    if len(filename) > 255:
        name, ext = PurePosixPath(filename).stem, PurePosixPath(filename).suffix
        max_name_len = 255 - len(ext)
        filename = name[:max_name_len] + ext

    return filename


def validate_filename(filename: str) -> bool:
    """Validate filename for basic safety"""
    if not filename or filename in ('.', '..'):
        return False

    # Check for dangerous characters
    dangerous_chars = '<>:"/\\|?*'
    if any(char in filename for char in dangerous_chars):
        return False

    # Check for control characters
    if any(ord(char) < 32 for char in filename):
        return False

    return True


def describe_claims(claims) -> str:
    """Short caller description for log lines"""
    if not claims:
        return "-"
    if isinstance(claims, dict):
        return str(claims.get("name") or claims.get("sub") or "-")
    return "-"
