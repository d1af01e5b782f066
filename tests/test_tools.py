"""Tests for the MCP tool layer, with the client mocked out"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from errors import AuthMissingError, HttpError, ValidationError
from managers.artifact_registry import ArtifactRegistry
from managers.blob_store import BlobStore
from models.artifact import (
    ArtifactResult,
    ArtifactStatus,
    ArtifactType,
    BulkGenerationResult,
    DigitalArtifact,
    join_url,
)
from tools.artifact import register_artifact_tools
from tools.configuration import register_configuration_tools
from tools.generation import register_generation_tools
from tools.helpers import error_response
from tools.scan import register_scan_tools

BASE_URL = "https://assets.example.test"
OBJECT_ID = "64f1c2a9b3e4d5f6a7b8c9d0"


class FakeMCP:
    """Collects functions registered with @mcp.tool()"""

    def __init__(self):
        self.tools = {}

    def tool(self):
        def decorator(fn):
            self.tools[fn.__name__] = fn
            return fn
        return decorator


@pytest.fixture
def client(png_bytes):
    fake = MagicMock()
    fake.base_url = BASE_URL
    fake.absolute_url.side_effect = lambda url: join_url(BASE_URL, url)
    fake.resolve_asset_id.return_value = OBJECT_ID
    fake.fetch_artifact.return_value = png_bytes
    return fake


@pytest.fixture
def registry():
    return ArtifactRegistry()


class TestErrorResponse:
    def test_known_error(self):
        assert error_response(ValidationError("bad")) == {"error": "bad", "code": "validation", "retryable": False}

    def test_unauthorized_clears_token(self, settings):
        response = error_response(HttpError(401, "Authentication failed."), settings)
        assert response["reauthenticate"] is True
        assert settings.get_auth_token() is None

    def test_rejected_env_token_not_resent(self, settings, monkeypatch):
        monkeypatch.setenv("DIGITAL_ASSETS_AUTH_TOKEN", "env-token")
        response = error_response(HttpError(401, "Authentication failed."), settings)
        assert "DIGITAL_ASSETS_AUTH_TOKEN" in response["hint"]
        assert settings.get_auth_token() is None

        settings.set_auth_token("fresh-token")
        assert settings.get_auth_token() == "fresh-token"

    def test_forbidden_keeps_token(self, settings):
        error_response(HttpError(403, "Access denied."), settings)
        assert settings.get_auth_token() == "test-token"

    def test_unexpected_error(self):
        assert error_response(RuntimeError("boom")) == {"error": "boom"}


class TestGenerationTools:
    @pytest.fixture
    def tools(self, client, settings, registry):
        mcp = FakeMCP()
        register_generation_tools(mcp, client, settings, registry)
        return mcp.tools

    def test_tag_resolved_before_generation(self, tools, client, registry):
        client.generate_qr_code.return_value = DigitalArtifact(ArtifactType.QR, "/uploads/qr_ASSET555_1.png", {})
        response = tools["generate_qr_code"]("ASSET555", size=400)

        client.resolve_asset_id.assert_called_once_with("ASSET555")
        client.generate_qr_code.assert_called_once_with(OBJECT_ID, size=400, include_url=None)
        assert response["absolute_url"] == f"{BASE_URL}/uploads/qr_ASSET555_1.png"
        assert registry.get(response["artifact_id"]).metadata == {"tag_id": "ASSET555"}

    def test_error_is_returned_not_raised(self, tools, client, registry):
        client.resolve_asset_id.side_effect = AuthMissingError()
        response = tools["generate_barcode"]("ASSET555")
        assert response["code"] == "auth_missing"
        assert registry.list() == []

    def test_bulk_registers_successes_only(self, tools, client, registry):
        qr = DigitalArtifact(ArtifactType.QR, "/q.png", {})
        barcode = DigitalArtifact(ArtifactType.BARCODE, "/b.png", "ASSET555")
        client.generate_all.return_value = BulkGenerationResult(
            asset_id=OBJECT_ID,
            results={
                ArtifactType.QR: ArtifactResult(ArtifactType.QR, ArtifactStatus.SUCCEEDED, artifact=qr),
                ArtifactType.BARCODE: ArtifactResult(ArtifactType.BARCODE, ArtifactStatus.SUCCEEDED, artifact=barcode),
                ArtifactType.NFC: ArtifactResult(ArtifactType.NFC, ArtifactStatus.MISSING),
            },
        )
        response = tools["generate_all_digital_assets"]("ASSET555")
        assert response["succeeded"] == 2
        assert response["failed"] == 0
        assert response["message"] == "Successfully generated 2 digital asset(s)!"
        assert len(registry.list(OBJECT_ID)) == 2
        assert "artifact_id" not in response["results"][2]


class TestArtifactTools:
    @pytest.fixture
    def tools(self, client, settings, registry):
        mcp = FakeMCP()
        register_artifact_tools(mcp, client, settings, registry, BlobStore())
        return mcp.tools

    def test_unknown_artifact(self, tools):
        assert "not found" in tools["load_artifact"]("missing")["error"]

    def test_nfc_routed_to_nfc_loader(self, tools, client, registry):
        record = registry.register(OBJECT_ID, DigitalArtifact(ArtifactType.NFC, "/n.json", {}))
        assert "load_nfc_data" in tools["load_artifact"](record.artifact_id)["error"]

        client.fetch_artifact.return_value = b'{"data": {"id": "ASSET555"}}'
        snapshot = tools["load_nfc_data"](record.artifact_id)
        assert snapshot["state"] == "loaded"
        assert snapshot["document"] == {"id": "ASSET555"}

    def test_export_without_artifacts(self, tools):
        assert "No artifacts" in tools["export_digital_assets"](OBJECT_ID, "/tmp/unused.zip")["error"]

    def test_export_bundle(self, tools, client, registry, tmp_path, png_bytes):
        registry.register(OBJECT_ID, DigitalArtifact(ArtifactType.QR, "/q.png", {}))
        client.collect_bundle.return_value = {"qr_ASSET555.png": png_bytes}
        response = tools["export_digital_assets"](OBJECT_ID, str(tmp_path / "a.zip"), tag_id="ASSET555")
        assert response["files"] == ["qr_ASSET555.png"]
        assert client.collect_bundle.call_args.args[1] == "ASSET555"

    def test_close_artifact(self, tools):
        assert tools["close_artifact"]("never-loaded") == {"closed": False}

    def test_regeneration_releases_object_url(self, client, settings, registry):
        blob_store = BlobStore()
        mcp = FakeMCP()
        register_artifact_tools(mcp, client, settings, registry, blob_store)

        with patch("artifact_processor.requests.get", side_effect=requests.ConnectionError("blocked")):
            first = registry.register(OBJECT_ID, DigitalArtifact(ArtifactType.QR, "/uploads/qr_ASSET555_1.png", {}))
            assert mcp.tools["load_artifact"](first.artifact_id)["display_url"].startswith("blob:")
            assert len(blob_store) == 1

            second = registry.register(OBJECT_ID, DigitalArtifact(ArtifactType.QR, "/uploads/qr_ASSET555_2.png", {}))
            assert len(blob_store) == 0
            mcp.tools["load_artifact"](second.artifact_id)

        assert len(blob_store) == 1
        assert mcp.tools["close_artifact"](first.artifact_id) == {"closed": False}
        assert mcp.tools["list_session_artifacts"]()["count"] == 1


class TestScanAndConfigurationTools:
    def test_scan_asset_error(self, client, settings):
        mcp = FakeMCP()
        scan_service = MagicMock()
        scan_service.process_scanned_code.side_effect = ValidationError("Scanned code is empty")
        register_scan_tools(mcp, client, scan_service, settings)
        assert mcp.tools["scan_asset"]("")["code"] == "validation"

    def test_resolve_reference_offline(self, client, settings):
        mcp = FakeMCP()
        register_scan_tools(mcp, client, MagicMock(), settings)
        assert mcp.tools["resolve_reference"]("qr_ASSET555_1.png")["tag_id"] == "ASSET555"
        client.get_asset.assert_not_called()

    def test_set_defaults_reports_errors(self, settings):
        mcp = FakeMCP()
        register_configuration_tools(mcp, settings)
        response = mcp.tools["set_defaults"](qr={"size": 20})
        assert response["success"] is False
        assert mcp.tools["get_defaults"]()["auth_token_set"] is True

    def test_blank_token_rejected(self, settings):
        mcp = FakeMCP()
        register_configuration_tools(mcp, settings)
        assert mcp.tools["set_auth_token"]("  ")["success"] is False
        assert settings.get_auth_token() == "test-token"

    def test_inline_nfc_payload(self, client, settings, registry):
        mcp = FakeMCP()
        register_artifact_tools(mcp, client, settings, registry, BlobStore())
        record = registry.register(OBJECT_ID, DigitalArtifact(ArtifactType.NFC, "", {"id": "ASSET555"}))
        snapshot = mcp.tools["load_nfc_data"](record.artifact_id)
        assert snapshot["document"] == {"id": "ASSET555"}
        client.fetch_artifact.assert_not_called()
