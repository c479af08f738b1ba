"""
Shared fixtures: an in-memory stand-in for the storage client surface used by
the facade and the commands.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from bucketfm.storage_api import FileManagerApi


class FakeAcl:
    def __init__(self):
        self.grants: List[Dict[str, str]] = []
        self.saved = 0

    def entity_from_dict(self, entity_dict):
        if not entity_dict.get("entity"):
            raise ValueError("Invalid entity")
        self.grants.append(dict(entity_dict))

    def save(self):
        self.saved += 1


class FakeBlob:
    def __init__(self, bucket: "FakeBucket", name: str):
        self.bucket = bucket
        self.name = name
        self.data = b""
        self.content_type: Optional[str] = None
        self.metadata: Optional[Dict[str, str]] = None
        self.updated: Optional[datetime] = None
        self.acl = FakeAcl()

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def public_url(self) -> str:
        return f"https://storage.googleapis.com/{self.bucket.name}/{self.name}"

    def upload_from_string(self, data, content_type=None):
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.data = bytes(data)
        self.content_type = content_type
        self.updated = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        self.bucket.objects[self.name] = self

    def download_as_bytes(self) -> bytes:
        return self.data

    def delete(self):
        self.bucket.objects.pop(self.name, None)

    def generate_signed_url(self, version=None, expiration=None, method="GET"):
        minutes = int(expiration.total_seconds() // 60)
        return f"https://signed.example/{self.bucket.name}/{self.name}?expires={minutes}"


class FakeBlobIterator:
    def __init__(self, blobs: List[FakeBlob], prefixes):
        self._blobs = blobs
        self.prefixes = set(prefixes)

    def __iter__(self):
        return iter(self._blobs)


class FakeBucket:
    def __init__(self, name: str, objects: Dict[str, FakeBlob], exists=True):
        self.name = name
        self.objects = objects
        self._exists = exists
        self.exists_calls = 0

    def exists(self):
        self.exists_calls += 1
        if isinstance(self._exists, Exception):
            raise self._exists
        return self._exists

    def blob(self, name: str) -> FakeBlob:
        return FakeBlob(self, name)

    def get_blob(self, name: str) -> Optional[FakeBlob]:
        return self.objects.get(name)

    def list_blobs(self, prefix=None, delimiter=None, max_results=None):
        prefix = prefix or ""
        blobs = []
        prefixes = set()
        for name in sorted(self.objects):
            if not name.startswith(prefix):
                continue
            rest = name[len(prefix):]
            if delimiter and delimiter in rest:
                prefixes.add(prefix + rest.split(delimiter, 1)[0] + delimiter)
                continue
            blobs.append(self.objects[name])
        if max_results is not None:
            blobs = blobs[:max_results]
        return FakeBlobIterator(blobs, prefixes)

    def copy_blob(self, blob, destination_bucket, new_name):
        copied = FakeBlob(destination_bucket, new_name)
        copied.upload_from_string(blob.data, content_type=blob.content_type)
        copied.metadata = dict(blob.metadata or {})
        return copied

    def put(self, name: str, data: bytes = b"", content_type: Optional[str] = None) -> FakeBlob:
        blob = FakeBlob(self, name)
        blob.upload_from_string(data, content_type=content_type)
        return blob


class FakeStorageClient:
    """Hands out a fresh bucket handle per call, like the real client"""

    def __init__(self):
        self.stores: Dict[str, Dict[str, FakeBlob]] = {}
        self.exists_override: Dict[str, object] = {}
        self.handles: List[FakeBucket] = []

    def add_bucket(self, name: str) -> FakeBucket:
        return FakeBucket(name, self.stores.setdefault(name, {}))

    def bucket(self, name: str) -> FakeBucket:
        if name in self.exists_override:
            exists = self.exists_override[name]
        else:
            exists = name in self.stores
        handle = FakeBucket(name, self.stores.setdefault(name, {}) if exists is True else {}, exists)
        self.handles.append(handle)
        return handle


@pytest.fixture()
def storage_client():
    client = FakeStorageClient()
    bucket = client.add_bucket("photos")
    bucket.put("docs/", b"", content_type="application/x-directory")
    bucket.put("docs/readme.txt", b"hello", content_type="text/plain")
    bucket.put("docs/notes/todo.md", b"- item", content_type="text/markdown")
    bucket.put("Beach.jpg", b"\xff\xd8\xff", content_type="image/jpeg")
    bucket.put("albums/2024/cover.png", b"\x89PNG", content_type="image/png")
    return client


@pytest.fixture()
def bucket(storage_client):
    return storage_client.add_bucket("photos")


@pytest.fixture()
def file_manager(storage_client):
    return FileManagerApi(storage_client)
