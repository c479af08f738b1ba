"""
Storage commands executed against a cloud storage bucket

Each command takes a resolved ``google.cloud.storage.Bucket``, the
operation arguments and the caller's claims. Blocking SDK calls run in a
worker thread so the event loop is never held by network I/O.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from google.api_core.exceptions import GoogleAPICallError
from google.cloud.storage import Blob, Bucket

from .config import get_config
from .errors import CommandError
from .models import AclRole, FileEntry, FOLDER_MIME_TYPE
from .utils import (
    describe_claims,
    folder_prefix,
    format_file_size,
    format_timestamp,
    get_mime_type,
    join_object_path,
    normalize_object_path,
    object_basename,
    sanitize_filename,
    validate_filename,
)

logger = logging.getLogger(__name__)

Claims = Optional[Dict[str, Any]]

SUCCESS: Dict[str, Any] = {"success": True}


async def _run(description: str, func: Callable, *args):
    """Run a blocking storage call in a thread and translate its errors"""
    try:
        return await asyncio.to_thread(func, *args)
    except CommandError:
        raise
    except GoogleAPICallError as e:
        raise CommandError(f"{description}: {e}") from e
    except ValueError as e:
        raise CommandError(f"{description}: {e}") from e


def _as_list(items: Union[str, Iterable[str]]) -> List[str]:
    if isinstance(items, str):
        return [items]
    return list(items)


def _is_folder(bucket: Bucket, path: str) -> bool:
    """A path is a folder when it ends with '/' or only exists as a prefix"""
    if path.endswith('/'):
        return True
    if bucket.get_blob(path) is not None:
        return False
    return any(True for _ in bucket.list_blobs(prefix=path + '/', max_results=1))


def _plan_transfer(bucket: Bucket, source: str, destination: str) -> List[Tuple[Blob, str]]:
    """Pair every source object with its destination name"""
    source = normalize_object_path(source)
    destination = normalize_object_path(destination)
    if not source:
        raise CommandError("Cannot transfer the bucket root")
    if not destination:
        raise CommandError("Destination path is empty")

    if _is_folder(bucket, source):
        src_prefix = folder_prefix(source)
        dst_prefix = folder_prefix(destination)
        if dst_prefix.startswith(src_prefix):
            raise CommandError(f"Cannot place a folder inside itself: {source}")

        blobs = list(bucket.list_blobs(prefix=src_prefix))
        if not blobs:
            raise CommandError(f"Source path not found: {source}")
        if any(True for _ in bucket.list_blobs(prefix=dst_prefix, max_results=1)):
            raise CommandError(f"Destination already exists: {dst_prefix}")

        return [(blob, dst_prefix + blob.name[len(src_prefix):]) for blob in blobs]

    blob = bucket.get_blob(source)
    if blob is None:
        raise CommandError(f"Source path not found: {source}")
    destination = destination.rstrip('/')
    if bucket.get_blob(destination) is not None:
        raise CommandError(f"Destination already exists: {destination}")
    return [(blob, destination)]


def _plan_items(bucket: Bucket, items: Iterable[str], new_path: str) -> List[Tuple[Blob, str]]:
    """Plan every item before any object is touched"""
    plan = []
    for item in _as_list(items):
        destination = join_object_path(new_path, object_basename(item))
        plan.extend(_plan_transfer(bucket, item, destination))
    return plan


def _transfer(bucket: Bucket, plan: List[Tuple[Blob, str]], delete_source: bool) -> None:
    for blob, new_name in plan:
        bucket.copy_blob(blob, bucket, new_name)
        if delete_source:
            blob.delete()


def _entry_from_blob(blob: Blob) -> FileEntry:
    return FileEntry(
        name=object_basename(blob.name),
        full_path=blob.name,
        is_dir=False,
        size=blob.size or 0,
        date=format_timestamp(blob.updated),
        mime_type=blob.content_type or get_mime_type(blob.name),
        metadata=dict(blob.metadata or {}),
    )


async def get_list(bucket: Bucket, path: str, claims: Claims) -> List[Dict[str, Any]]:
    """
    List the immediate children of a folder

    Args:
        bucket: Resolved bucket
        path: Folder path ("/" for the bucket root)
        claims: Caller claims

    Returns:
        List of file entry dicts, folders first

    Raises:
        CommandError: If the folder does not exist or listing fails
    """

    def _list() -> List[FileEntry]:
        prefix = folder_prefix(path)
        iterator = bucket.list_blobs(prefix=prefix or None, delimiter='/')
        blobs = list(iterator)
        prefixes = sorted(iterator.prefixes)

        if prefix and not blobs and not prefixes:
            raise CommandError(f"Directory not found: {path}")

        entries = [
            FileEntry(name=object_basename(p), full_path=p, is_dir=True)
            for p in prefixes
        ]
        for blob in blobs:
            # The folder placeholder object itself
            if blob.name == prefix:
                continue
            entries.append(_entry_from_blob(blob))

        entries.sort(key=lambda x: (not x.is_dir, x.name.lower()))
        return entries

    logger.debug(f"Listing {bucket.name}/{path} for {describe_claims(claims)}")
    entries = await _run(f"Failed to list directory '{path}'", _list)
    return [entry.to_dict() for entry in entries]


async def rename_file(bucket: Bucket, item: str, new_item_path: str, claims: Claims) -> Dict[str, Any]:
    """Rename a file or folder to a new full path"""

    def _rename() -> int:
        plan = _plan_transfer(bucket, item, new_item_path)
        _transfer(bucket, plan, delete_source=True)
        return len(plan)

    count = await _run(f"Failed to rename '{item}'", _rename)
    logger.info(f"Renamed: {bucket.name}/{item} -> {new_item_path} ({count} objects)")
    return dict(SUCCESS)


async def move_files(bucket: Bucket, items: Iterable[str], new_path: str, claims: Claims) -> Dict[str, Any]:
    """Move files or folders into a destination folder"""

    def _move() -> int:
        plan = _plan_items(bucket, items, new_path)
        _transfer(bucket, plan, delete_source=True)
        return len(plan)

    count = await _run(f"Failed to move into '{new_path}'", _move)
    logger.info(f"Moved {count} objects into {bucket.name}/{new_path}")
    return dict(SUCCESS)


async def copy_files(bucket: Bucket, items: Iterable[str], new_path: str, claims: Claims) -> Dict[str, Any]:
    """Copy files or folders into a destination folder"""

    def _copy() -> int:
        plan = _plan_items(bucket, items, new_path)
        _transfer(bucket, plan, delete_source=False)
        return len(plan)

    count = await _run(f"Failed to copy into '{new_path}'", _copy)
    logger.info(f"Copied {count} objects into {bucket.name}/{new_path}")
    return dict(SUCCESS)


async def remove_files(bucket: Bucket, items: Iterable[str], claims: Claims) -> Dict[str, Any]:
    """Delete files, and folders with everything beneath them"""

    def _remove() -> int:
        doomed: Dict[str, Blob] = {}
        for item in _as_list(items):
            path = normalize_object_path(item)
            if not path:
                raise CommandError("Refusing to remove the bucket root")

            if _is_folder(bucket, path):
                blobs = list(bucket.list_blobs(prefix=folder_prefix(path)))
            else:
                blob = bucket.get_blob(path)
                blobs = [blob] if blob is not None else []
            if not blobs:
                raise CommandError(f"Path not found: {item}")
            doomed.update((blob.name, blob) for blob in blobs)

        for blob in doomed.values():
            blob.delete()
        return len(doomed)

    count = await _run("Failed to delete", _remove)
    logger.info(f"Deleted {count} objects from {bucket.name}")
    return dict(SUCCESS)


async def edit_file(bucket: Bucket, item: str, content: str, claims: Claims) -> Dict[str, Any]:
    """Replace the content of a text file"""

    def _edit() -> int:
        path = normalize_object_path(item)
        if not path or path.endswith('/'):
            raise CommandError(f"Not a file: {item}")

        if not isinstance(content, str):
            raise CommandError("content must be text")

        existing = bucket.get_blob(path)
        content_type = existing.content_type if existing is not None else None
        data = content.encode('utf-8')
        bucket.blob(path).upload_from_string(
            data, content_type=content_type or get_mime_type(path)
        )
        return len(data)

    size = await _run(f"Failed to write file '{item}'", _edit)
    logger.info(f"Wrote text file: {bucket.name}/{item} ({size} bytes)")
    return dict(SUCCESS)


async def get_file_content(bucket: Bucket, item: str, claims: Claims) -> str:
    """Read a file as UTF-8 text"""

    def _read() -> bytes:
        path = normalize_object_path(item)
        blob = bucket.get_blob(path) if path else None
        if blob is None:
            raise CommandError(f"File not found: {item}")
        return blob.download_as_bytes()

    data = await _run(f"Failed to read file '{item}'", _read)
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError as e:
        raise CommandError(f"File is not valid UTF-8 text: {e}") from e


async def get_file_meta(bucket: Bucket, item: str, claims: Claims) -> str:
    """Return a download URL for a file"""
    storage_config = get_config().storage

    def _url() -> str:
        path = normalize_object_path(item)
        blob = bucket.get_blob(path) if path else None
        if blob is None:
            raise CommandError(f"File not found: {item}")
        if not storage_config.signedUrls:
            return blob.public_url
        return blob.generate_signed_url(
            version="v4",
            expiration=timedelta(minutes=storage_config.signedUrlExpiryMinutes),
            method="GET",
        )

    return await _run(f"Failed to get download url for '{item}'", _url)


async def create_folder(bucket: Bucket, new_path: str, claims: Claims) -> Dict[str, Any]:
    """Create an empty folder placeholder object"""

    def _mkdir() -> str:
        prefix = folder_prefix(new_path)
        if not prefix:
            raise CommandError("Folder path is empty")
        if bucket.get_blob(prefix) is not None:
            raise CommandError(f"Directory already exists: {new_path}")
        bucket.blob(prefix).upload_from_string(b"", content_type=FOLDER_MIME_TYPE)
        return prefix

    prefix = await _run(f"Failed to create directory '{new_path}'", _mkdir)
    logger.info(f"Created directory: {bucket.name}/{prefix}")
    return dict(SUCCESS)


async def change_permissions(
    bucket: Bucket,
    items: Iterable[str],
    role: str,
    entity: str,
    recursive: Optional[bool],
    claims: Claims,
) -> Dict[str, Any]:
    """
    Grant an ACL role to an entity on files and folders

    Args:
        bucket: Resolved bucket
        items: Object paths
        role: READER, WRITER or OWNER
        entity: ACL entity, e.g. ``allUsers`` or ``user-someone@example.com``
        recursive: Apply to everything beneath folder items
        claims: Caller claims

    Raises:
        CommandError: On an unknown role or when the ACL update fails
    """
    try:
        acl_role = AclRole(str(role).upper())
    except ValueError as e:
        raise CommandError(f"Unknown permission role: {role}") from e

    def _targets(path: str) -> List[Blob]:
        if _is_folder(bucket, path):
            prefix = folder_prefix(path)
            if recursive:
                return list(bucket.list_blobs(prefix=prefix))
            placeholder = bucket.get_blob(prefix)
            return [placeholder] if placeholder is not None else []
        blob = bucket.get_blob(path)
        return [blob] if blob is not None else []

    def _grant() -> int:
        targets: List[Blob] = []
        for item in _as_list(items):
            path = normalize_object_path(item)
            found = _targets(path) if path else []
            if not found:
                raise CommandError(f"Path not found: {item}")
            targets.extend(found)

        for blob in targets:
            blob.acl.entity_from_dict({"entity": entity, "role": acl_role.value})
            blob.acl.save()
        return len(targets)

    count = await _run("Failed to change permissions", _grant)
    logger.info(f"Granted {acl_role.value} to {entity} on {count} objects in {bucket.name}")
    return dict(SUCCESS)


async def upload_file(
    bucket: Bucket,
    directory_path: str,
    originalname: str,
    mimetype: str,
    buffer: bytes,
    claims: Claims,
) -> Dict[str, Any]:
    """Store an uploaded file in a folder"""

    if not validate_filename(originalname):
        raise CommandError(f"Invalid filename: {originalname}")
    filename = sanitize_filename(originalname)

    max_size = get_config().upload.maxSize
    if max_size is not None and len(buffer) > max_size:
        raise CommandError(f"File too large (max: {format_file_size(max_size)})")

    def _upload() -> str:
        name = join_object_path(directory_path or "", filename)
        if bucket.get_blob(name) is not None:
            raise CommandError(f"File already exists: {name}")
        bucket.blob(name).upload_from_string(
            bytes(buffer), content_type=mimetype or get_mime_type(filename)
        )
        return name

    name = await _run(f"Failed to save file '{originalname}'", _upload)
    logger.info(
        f"Uploaded file: {bucket.name}/{name} ({len(buffer)} bytes) by {describe_claims(claims)}"
    )
    return dict(SUCCESS)
