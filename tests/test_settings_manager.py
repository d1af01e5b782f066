"""Tests for settings precedence and token storage"""

import json

import pytest

from managers.settings_manager import TOKEN_ENV, SettingsManager


@pytest.fixture
def manager(tmp_path):
    return SettingsManager(
        config_file=tmp_path / "config.json",
        credentials_file=tmp_path / "credentials.json",
    )


class TestDefaults:
    def test_hardcoded(self, manager):
        assert manager.base_url == "http://localhost:5021"
        assert manager.load_timeout == 10.0
        assert manager.history_limit == 10
        assert manager.get_default("qr", "size") == 300

    def test_env_over_hardcoded(self, manager, monkeypatch):
        monkeypatch.setenv("DIGITAL_ASSETS_BASE_URL", "https://api.example.test/")
        monkeypatch.setenv("DIGITAL_ASSETS_QR_SIZE", "450")
        assert manager.base_url == "https://api.example.test"
        assert manager.get_default("qr", "size") == 450

    def test_invalid_env_value_ignored(self, manager, monkeypatch):
        monkeypatch.setenv("DIGITAL_ASSETS_QR_SIZE", "big")
        assert manager.get_default("qr", "size") == 300

    def test_config_over_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DIGITAL_ASSETS_QR_SIZE", "450")
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"defaults": {"qr": {"size": 600}}}))
        manager = SettingsManager(config_file=config, credentials_file=tmp_path / "credentials.json")
        assert manager.get_default("qr", "size") == 600

    def test_runtime_and_provided(self, manager):
        assert manager.set_defaults("barcode", {"format": "code39"}) == {"success": True, "updated": {"format": "code39"}}
        assert manager.get_default("barcode", "format") == "code39"
        assert manager.get_default("barcode", "format", "ean13") == "ean13"

    def test_set_defaults_validates(self, manager):
        result = manager.set_defaults("qr", {"size": 5000})
        assert "errors" in result
        assert manager.get_default("qr", "size") == 300
        assert "error" in manager.set_defaults("video", {})

    def test_persist_defaults(self, manager):
        manager.persist_defaults("client", {"base_url": "https://persisted.example.test"})
        reloaded = SettingsManager(config_file=manager.config_file, credentials_file=manager.credentials_file)
        assert reloaded.base_url == "https://persisted.example.test"

    def test_corrupt_config_ignored(self, tmp_path):
        config = tmp_path / "config.json"
        config.write_text("{broken")
        manager = SettingsManager(config_file=config, credentials_file=tmp_path / "credentials.json")
        assert manager.get_default("qr", "size") == 300

    def test_get_all_defaults(self, manager):
        manager.set_defaults("qr", {"include_url": False})
        defaults = manager.get_all_defaults()
        assert defaults["qr"] == {"size": 300, "include_url": False}
        assert defaults["barcode"]["scale"] == 3


class TestValidation:
    @pytest.mark.parametrize("namespace, values", [
        ("qr", {"size": 99}),
        ("qr", {"size": 1001}),
        ("barcode", {"format": "pdf417"}),
        ("barcode", {"height": 0}),
        ("barcode", {"scale": 11}),
        ("client", {"base_url": "ftp://host"}),
    ])
    def test_rejects(self, manager, namespace, values):
        assert manager.validate(namespace, values)

    def test_accepts_bounds(self, manager):
        assert manager.validate("qr", {"size": 100}) == []
        assert manager.validate("barcode", {"format": "upce", "height": 100, "scale": 1}) == []


class TestAuthToken:
    def test_round_trip_uses_auth_token_key(self, manager):
        manager.set_auth_token("abc")
        assert json.loads(manager.credentials_file.read_text()) == {"authToken": "abc"}
        assert manager.get_auth_token() == "abc"

    def test_env_wins(self, manager, monkeypatch):
        manager.set_auth_token("stored")
        monkeypatch.setenv(TOKEN_ENV, "from-env")
        assert manager.get_auth_token() == "from-env"

    def test_clear(self, manager):
        manager.set_auth_token("abc")
        manager.clear_auth_token()
        assert manager.get_auth_token() is None
        manager.clear_auth_token()

    def test_rejected_token_skipped(self, manager, monkeypatch):
        monkeypatch.setenv(TOKEN_ENV, "from-env")
        manager.set_auth_token("stored")
        manager.reject_auth_token()
        assert manager.env_token_rejected is True
        assert manager.get_auth_token() is None

    def test_resetting_rejected_token_allows_retry(self, manager):
        manager.set_auth_token("abc")
        manager.reject_auth_token()
        assert manager.get_auth_token() is None
        manager.set_auth_token("abc")
        assert manager.get_auth_token() == "abc"
        assert manager.env_token_rejected is False

    def test_missing_file(self, manager):
        assert manager.get_auth_token() is None
