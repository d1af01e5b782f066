"""Shared fixtures for the test suite"""

import json
from io import BytesIO
from unittest.mock import MagicMock

import pytest
from PIL import Image

from managers.settings_manager import ENV_VARS, TOKEN_ENV, SettingsManager

BASE_URL = "https://assets.example.test"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's environment out of the tests"""
    monkeypatch.delenv(TOKEN_ENV, raising=False)
    for env_name, _ in ENV_VARS.values():
        monkeypatch.delenv(env_name, raising=False)


@pytest.fixture
def settings(tmp_path):
    manager = SettingsManager(
        config_file=tmp_path / "config.json",
        credentials_file=tmp_path / "credentials.json",
    )
    manager.set_defaults("client", {"base_url": BASE_URL})
    manager.set_auth_token("test-token")
    return manager


@pytest.fixture
def png_bytes():
    buf = BytesIO()
    Image.new("RGB", (300, 300), (255, 255, 255)).save(buf, format="PNG")
    return buf.getvalue()


def make_response(status=200, payload=None, content=None, text=""):
    """Build a stand-in for requests.Response"""
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 300
    if payload is not None:
        response.json.return_value = payload
        response.content = json.dumps(payload).encode("utf-8")
        response.text = json.dumps(payload)
    else:
        response.json.side_effect = ValueError("No JSON")
        response.content = content if content is not None else b""
        response.text = text
    return response
