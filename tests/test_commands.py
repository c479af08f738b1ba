"""
Tests for storage commands against the in-memory bucket
"""

import asyncio

import pytest

from bucketfm import commands
from bucketfm.errors import CommandError
from bucketfm.models import Config, StorageConfig, UploadConfig


CLAIMS = {"name": "alice"}


def run(coro):
    return asyncio.run(coro)


@pytest.fixture()
def config(monkeypatch):
    config = Config()
    monkeypatch.setattr(commands, "get_config", lambda: config)
    return config


class TestGetList:
    """Test folder listings"""

    def test_root_listing(self, bucket):
        entries = run(commands.get_list(bucket, "/", CLAIMS))

        assert [(e["name"], e["type"]) for e in entries] == [
            ("albums", "dir"),
            ("docs", "dir"),
            ("Beach.jpg", "file"),
        ]
        beach = entries[2]
        assert beach["fullPath"] == "Beach.jpg"
        assert beach["size"] == 3
        assert beach["mimeType"] == "image/jpeg"
        assert beach["rights"] == "-rw-r--r--"
        assert beach["date"].startswith("2024-01-02T03:04:05")
        assert entries[0]["rights"] == "drwxr-xr-x"
        assert entries[0]["fullPath"] == "albums/"

    def test_folder_listing_skips_placeholder(self, bucket):
        entries = run(commands.get_list(bucket, "docs", CLAIMS))

        assert [e["name"] for e in entries] == ["notes", "readme.txt"]
        assert entries[1]["fullPath"] == "docs/readme.txt"

    def test_folder_without_placeholder(self, bucket):
        entries = run(commands.get_list(bucket, "/albums/", CLAIMS))
        assert [e["fullPath"] for e in entries] == ["albums/2024/"]

    def test_empty_folder(self, bucket):
        bucket.put("empty/", b"")
        assert run(commands.get_list(bucket, "empty", CLAIMS)) == []

    def test_missing_folder(self, bucket):
        with pytest.raises(CommandError, match="Directory not found"):
            run(commands.get_list(bucket, "nowhere", CLAIMS))

    def test_path_traversal_rejected(self, bucket):
        with pytest.raises(CommandError, match="Path traversal"):
            run(commands.get_list(bucket, "docs/../../etc", CLAIMS))


class TestRenameMoveCopy:
    """Test object transfers"""

    def test_rename_file(self, bucket):
        result = run(commands.rename_file(bucket, "Beach.jpg", "Sea.jpg", CLAIMS))

        assert result == {"success": True}
        assert "Beach.jpg" not in bucket.objects
        assert bucket.objects["Sea.jpg"].data == b"\xff\xd8\xff"
        assert bucket.objects["Sea.jpg"].content_type == "image/jpeg"

    def test_rename_folder_moves_everything_beneath(self, bucket):
        run(commands.rename_file(bucket, "docs/", "papers", CLAIMS))

        assert sorted(n for n in bucket.objects if n.startswith("papers/")) == [
            "papers/",
            "papers/notes/todo.md",
            "papers/readme.txt",
        ]
        assert not any(n.startswith("docs/") for n in bucket.objects)

    def test_rename_folder_detected_without_trailing_slash(self, bucket):
        run(commands.rename_file(bucket, "albums", "gallery", CLAIMS))
        assert "gallery/2024/cover.png" in bucket.objects

    def test_rename_missing_source(self, bucket):
        with pytest.raises(CommandError, match="Source path not found"):
            run(commands.rename_file(bucket, "ghost.txt", "x.txt", CLAIMS))

    def test_rename_onto_existing(self, bucket):
        with pytest.raises(CommandError, match="Destination already exists"):
            run(commands.rename_file(bucket, "Beach.jpg", "docs/readme.txt", CLAIMS))
        assert "Beach.jpg" in bucket.objects

    def test_move_files_into_folder(self, bucket):
        run(commands.move_files(bucket, ["Beach.jpg", "docs/notes/"], "albums", CLAIMS))

        assert "albums/Beach.jpg" in bucket.objects
        assert "albums/notes/todo.md" in bucket.objects
        assert "Beach.jpg" not in bucket.objects
        assert "docs/notes/todo.md" not in bucket.objects

    def test_move_folder_into_itself(self, bucket):
        with pytest.raises(CommandError, match="inside itself"):
            run(commands.move_files(bucket, ["docs/"], "docs/archive", CLAIMS))

    def test_copy_keeps_sources(self, bucket):
        run(commands.copy_files(bucket, ["docs/readme.txt"], "albums/2024", CLAIMS))

        assert bucket.objects["albums/2024/readme.txt"].data == b"hello"
        assert "docs/readme.txt" in bucket.objects

    def test_copy_accepts_single_string(self, bucket):
        run(commands.copy_files(bucket, "Beach.jpg", "docs", CLAIMS))
        assert "docs/Beach.jpg" in bucket.objects

    def test_move_with_missing_item_changes_nothing(self, bucket):
        before = sorted(bucket.objects)

        with pytest.raises(CommandError, match="Source path not found: ghost.txt"):
            run(commands.move_files(bucket, ["Beach.jpg", "ghost.txt"], "albums", CLAIMS))

        assert sorted(bucket.objects) == before
        assert "albums/Beach.jpg" not in bucket.objects

    def test_copy_with_conflicting_item_changes_nothing(self, bucket):
        bucket.put("albums/readme.txt", b"taken")
        before = sorted(bucket.objects)

        with pytest.raises(CommandError, match="Destination already exists"):
            run(commands.copy_files(bucket, ["Beach.jpg", "docs/readme.txt"], "albums", CLAIMS))

        assert sorted(bucket.objects) == before


class TestRemove:
    """Test deletion"""

    def test_remove_file_and_folder(self, bucket):
        run(commands.remove_files(bucket, ["Beach.jpg", "docs"], CLAIMS))

        assert sorted(bucket.objects) == ["albums/2024/cover.png"]

    def test_remove_missing(self, bucket):
        with pytest.raises(CommandError, match="Path not found"):
            run(commands.remove_files(bucket, ["ghost.txt"], CLAIMS))

    def test_remove_root_refused(self, bucket):
        with pytest.raises(CommandError, match="bucket root"):
            run(commands.remove_files(bucket, ["/"], CLAIMS))
        assert "Beach.jpg" in bucket.objects

    def test_remove_with_missing_item_changes_nothing(self, bucket):
        before = sorted(bucket.objects)

        with pytest.raises(CommandError, match="Path not found: ghost.txt"):
            run(commands.remove_files(bucket, ["Beach.jpg", "docs", "ghost.txt"], CLAIMS))

        assert sorted(bucket.objects) == before

    def test_remove_folder_and_file_inside_it(self, bucket):
        run(commands.remove_files(bucket, ["docs", "docs/readme.txt"], CLAIMS))

        assert not any(name.startswith("docs/") for name in bucket.objects)


class TestContent:
    """Test editing and reading text content"""

    def test_edit_keeps_content_type(self, bucket):
        run(commands.edit_file(bucket, "docs/readme.txt", "héllo wörld", CLAIMS))

        blob = bucket.objects["docs/readme.txt"]
        assert blob.data == "héllo wörld".encode("utf-8")
        assert blob.content_type == "text/plain"

    def test_edit_new_file_guesses_type(self, bucket):
        run(commands.edit_file(bucket, "docs/data.json", "{}", CLAIMS))
        assert bucket.objects["docs/data.json"].content_type == "application/json"

    def test_edit_folder_rejected(self, bucket):
        with pytest.raises(CommandError, match="Not a file"):
            run(commands.edit_file(bucket, "docs/", "x", CLAIMS))

    @pytest.mark.parametrize("content", [42, ["a"], {"text": "x"}])
    def test_edit_rejects_non_text_content(self, bucket, content):
        with pytest.raises(CommandError, match="content must be text"):
            run(commands.edit_file(bucket, "docs/readme.txt", content, CLAIMS))
        assert bucket.objects["docs/readme.txt"].data == b"hello"

    def test_get_file_content(self, bucket):
        assert run(commands.get_file_content(bucket, "/docs/readme.txt", CLAIMS)) == "hello"

    def test_get_binary_content(self, bucket):
        with pytest.raises(CommandError, match="not valid UTF-8"):
            run(commands.get_file_content(bucket, "Beach.jpg", CLAIMS))

    def test_get_missing_content(self, bucket):
        with pytest.raises(CommandError, match="File not found"):
            run(commands.get_file_content(bucket, "ghost.txt", CLAIMS))


class TestFileMeta:
    """Test download URL generation"""

    def test_signed_url(self, bucket, config):
        config.storage = StorageConfig(signedUrlExpiryMinutes=15)

        url = run(commands.get_file_meta(bucket, "Beach.jpg", CLAIMS))
        assert url == "https://signed.example/photos/Beach.jpg?expires=15"

    def test_public_url(self, bucket, config):
        config.storage = StorageConfig(signedUrls=False)

        url = run(commands.get_file_meta(bucket, "Beach.jpg", CLAIMS))
        assert url == "https://storage.googleapis.com/photos/Beach.jpg"

    def test_missing_file(self, bucket, config):
        with pytest.raises(CommandError, match="File not found"):
            run(commands.get_file_meta(bucket, "ghost.jpg", CLAIMS))


class TestCreateFolder:
    """Test folder creation"""

    def test_create_folder(self, bucket):
        run(commands.create_folder(bucket, "albums/2025", CLAIMS))

        placeholder = bucket.objects["albums/2025/"]
        assert placeholder.data == b""
        assert placeholder.content_type == "application/x-directory"

    def test_existing_folder(self, bucket):
        with pytest.raises(CommandError, match="already exists"):
            run(commands.create_folder(bucket, "docs", CLAIMS))


class TestChangePermissions:
    """Test ACL grants"""

    def test_grant_on_file(self, bucket):
        run(commands.change_permissions(bucket, ["Beach.jpg"], "reader", "allUsers", None, CLAIMS))

        acl = bucket.objects["Beach.jpg"].acl
        assert acl.grants == [{"entity": "allUsers", "role": "READER"}]
        assert acl.saved == 1

    def test_recursive_folder_grant(self, bucket):
        run(commands.change_permissions(
            bucket, ["docs/"], "WRITER", "user-bob@example.com", True, CLAIMS
        ))

        for name in ["docs/", "docs/readme.txt", "docs/notes/todo.md"]:
            assert bucket.objects[name].acl.grants == [
                {"entity": "user-bob@example.com", "role": "WRITER"}
            ]

    def test_non_recursive_folder_grant(self, bucket):
        run(commands.change_permissions(bucket, ["docs/"], "READER", "allUsers", False, CLAIMS))

        assert bucket.objects["docs/"].acl.saved == 1
        assert bucket.objects["docs/readme.txt"].acl.saved == 0

    def test_grant_with_missing_item_changes_nothing(self, bucket):
        with pytest.raises(CommandError, match="Path not found: ghost.txt"):
            run(commands.change_permissions(
                bucket, ["Beach.jpg", "ghost.txt"], "READER", "allUsers", None, CLAIMS
            ))

        assert bucket.objects["Beach.jpg"].acl.grants == []
        assert bucket.objects["Beach.jpg"].acl.saved == 0

    def test_unknown_role(self, bucket):
        with pytest.raises(CommandError, match="Unknown permission role"):
            run(commands.change_permissions(bucket, ["Beach.jpg"], "ADMIN", "allUsers", None, CLAIMS))

    def test_invalid_entity(self, bucket):
        with pytest.raises(CommandError, match="Invalid entity"):
            run(commands.change_permissions(bucket, ["Beach.jpg"], "READER", "", None, CLAIMS))


class TestUpload:
    """Test uploads"""

    def test_upload(self, bucket, config):
        result = run(commands.upload_file(
            bucket, "/albums/2024/", "cat.png", "image/png", b"\x89PNG", CLAIMS
        ))

        assert result == {"success": True}
        blob = bucket.objects["albums/2024/cat.png"]
        assert blob.data == b"\x89PNG"
        assert blob.content_type == "image/png"

    def test_upload_to_root(self, bucket, config):
        run(commands.upload_file(bucket, "", "notes.txt", "text/plain", b"x", CLAIMS))
        assert "notes.txt" in bucket.objects

    def test_upload_existing(self, bucket, config):
        with pytest.raises(CommandError, match="File already exists"):
            run(commands.upload_file(bucket, "docs", "readme.txt", "text/plain", b"x", CLAIMS))

    def test_upload_invalid_name(self, bucket, config):
        with pytest.raises(CommandError, match="Invalid filename"):
            run(commands.upload_file(bucket, "docs", "../evil.sh", "text/plain", b"x", CLAIMS))

    def test_upload_too_large(self, bucket, config):
        config.upload = UploadConfig(maxSize=4)

        with pytest.raises(CommandError, match="File too large"):
            run(commands.upload_file(bucket, "docs", "big.bin", "application/octet-stream", b"12345", CLAIMS))
        assert "docs/big.bin" not in bucket.objects
