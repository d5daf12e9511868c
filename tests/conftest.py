import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 256
PDF = b"%PDF-1.4\n" + b"\x00" * 256


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def app(upload_dir):
    settings = Settings(database_name="test_registrations", upload_dir=str(upload_dir), log_level="WARNING")
    return create_app(settings, mongo_client=mongomock.MongoClient())


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app):
    return app.state.db


def person(**overrides):
    fields = {
        "firstName": "Asha",
        "lastName": "Verma",
        "email": "asha.verma@example.com",
        "phone": "9876543210",
        "dateOfBirth": "1990-05-14",
        "address": "12 MG Road",
        "city": "Pune",
        "state": "Maharashtra",
        "pincode": "411001",
        "aadharNumber": "123456789012",
        "agreeTerms": "true",
        "agreeMarketing": "false",
    }
    fields.update(overrides)
    return {k: v for k, v in fields.items() if v is not None}


def attachments(aadhar=("aadhar.png", PNG, "image/png"), signature=("sign.png", PNG, "image/png"), pan=None):
    files = {}
    if aadhar:
        files["aadharFile"] = aadhar
    if signature:
        files["signatureFile"] = signature
    if pan:
        files["panFile"] = pan
    return files


def files_on_disk(upload_dir):
    return sorted(p for p in upload_dir.rglob("*") if p.is_file())


def create_registration(client, **overrides):
    resp = client.post("/api/trading-registration", data=person(**overrides), files=attachments())
    assert resp.status_code == 201, resp.json()
    return resp.json()["data"]["id"]
