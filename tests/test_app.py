"""
Tests for application wiring: settings, CORS, static uploads, diagnostics.
"""

import mongomock
from fastapi.testclient import TestClient

from config import load_settings, Settings
from main import create_app
from tests.conftest import PNG, create_registration

ORIGIN = "http://a.test"


def build_client(upload_dir, **overrides):
    settings = Settings(database_name="test_app", upload_dir=str(upload_dir), log_level="WARNING", **overrides)
    return TestClient(create_app(settings, mongo_client=mongomock.MongoClient()))


class TestCors:
    """CORS headers for wildcard and explicit origin lists."""

    def test_wildcard_origin_without_credentials(self, client) -> None:
        resp = client.get("/", headers={"Origin": ORIGIN})
        assert resp.headers["access-control-allow-origin"] == "*"
        assert "access-control-allow-credentials" not in resp.headers

    def test_explicit_origins_allow_credentials(self, upload_dir) -> None:
        with build_client(upload_dir, cors_origins=[ORIGIN]) as c:
            resp = c.get("/", headers={"Origin": ORIGIN})
        assert resp.headers["access-control-allow-origin"] == ORIGIN
        assert resp.headers["access-control-allow-credentials"] == "true"

    def test_unlisted_origin_gets_no_header(self, upload_dir) -> None:
        with build_client(upload_dir, cors_origins=[ORIGIN]) as c:
            resp = c.get("/", headers={"Origin": "http://other.test"})
        assert "access-control-allow-origin" not in resp.headers


class TestStaticUploads:
    """Tests for the /uploads mount."""

    def test_stored_file_is_served(self, client) -> None:
        record_id = create_registration(client)
        stored = client.get(f"/api/trading-registration/{record_id}").json()["data"]
        resp = client.get(f"/uploads/aadhar/{stored['aadharFile']['filename']}")
        assert resp.status_code == 200
        assert resp.content == PNG

    def test_unknown_file(self, client) -> None:
        assert client.get("/uploads/aadhar/missing.png").status_code == 404


class TestLoadSettings:
    """Tests for settings read from the environment."""

    def test_reads_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("CORS_ORIGINS", " http://a.test , http://b.test,")
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("DATABASE_NAME", "kyc")
        monkeypatch.setenv("MONGO_TIMEOUT_MS", "1500")
        settings = load_settings()
        assert settings.cors_origins == ["http://a.test", "http://b.test"]
        assert settings.port == 8080
        assert settings.database_name == "kyc"
        assert settings.mongo_timeout_ms == 1500

    def test_blank_origins_fall_back_to_wildcard(self, monkeypatch) -> None:
        monkeypatch.setenv("CORS_ORIGINS", " , ")
        assert load_settings().cors_origins == ["*"]


def test_database_status_uses_settings(client) -> None:
    body = client.get("/test").json()
    assert body["database_name"] == "test_registrations"
    assert body["database_url"] == "✅ Set"
    assert body["connection_status"] == "Connected"
