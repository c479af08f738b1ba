"""
Tests for YAML configuration loading
"""

import textwrap

from bucketfm.config import ConfigManager


class TestConfigManager:
    """Test configuration parsing"""

    def test_missing_file_gives_defaults(self, tmp_path):
        manager = ConfigManager(str(tmp_path / "absent.yaml"))
        config = manager.load_config()

        assert config.server.port == 8080
        assert config.storage.signedUrls is True
        assert config.upload.maxSize == 104857600
        assert config.users == []

    def test_full_file(self, tmp_path):
        path = tmp_path / "bucketfm.yaml"
        path.write_text(textwrap.dedent(
            """
            server:
              addr: "127.0.0.1"
              port: 9000
            storage:
              project: "demo-project"
              anonymous: true
              signedUrls: false
              signedUrlExpiryMinutes: 5
            users:
              - name: "alice"
                pass: "secret"
                claims:
                  groups: ["editors"]
            upload:
              maxSize: 0
            logging:
              json: false
              level: "DEBUG"
            """
        ), encoding="utf-8")

        config = ConfigManager(str(path)).load_config()

        assert config.server.addr == "127.0.0.1"
        assert config.server.port == 9000
        assert config.storage.project == "demo-project"
        assert config.storage.anonymous is True
        assert config.storage.signedUrls is False
        assert config.storage.signedUrlExpiryMinutes == 5
        assert config.upload.maxSize is None
        assert config.logging.level == "DEBUG"

        alice = config.users[0]
        assert alice.is_bcrypt is False
        assert alice.to_claims() == {"groups": ["editors"], "name": "alice"}

    def test_get_user_by_name(self, tmp_path):
        path = tmp_path / "bucketfm.yaml"
        path.write_text("users:\n  - name: bob\n    pass: pw\n", encoding="utf-8")
        manager = ConfigManager(str(path))

        assert manager.get_user_by_name("bob").pass_hash == "pw"
        assert manager.get_user_by_name("carol") is None

    def test_invalid_yaml_keeps_previous_config(self, tmp_path):
        path = tmp_path / "bucketfm.yaml"
        path.write_text("server:\n  port: 9100\n", encoding="utf-8")
        manager = ConfigManager(str(path))
        manager.load_config()

        path.write_text("server: [unclosed\n", encoding="utf-8")
        config = manager.load_config()

        assert config.server.port == 9100

    def test_reload_callbacks(self, tmp_path):
        path = tmp_path / "bucketfm.yaml"
        path.write_text("server:\n  port: 9100\n", encoding="utf-8")
        manager = ConfigManager(str(path))
        manager.load_config()

        seen = []
        manager.add_reload_callback(lambda old, new: seen.append((old.server.port, new.server.port)))
        path.write_text("server:\n  port: 9200\n", encoding="utf-8")
        manager._on_config_changed()

        assert seen == [(9100, 9200)]
