"""
Tests for the generic registration form endpoints.
"""

from datetime import datetime
from pathlib import Path

from tests.conftest import attachments, files_on_disk, person

BASE = "/api/registration"


class TestSubmitForm:
    """Tests for POST /api/registration/submit."""

    def test_valid_submission(self, client, upload_dir) -> None:
        resp = client.post(f"{BASE}/submit", data=person(agreeMarketing="true"), files=attachments())
        assert resp.status_code == 201
        body = resp.json()
        assert body["message"] == "Form submitted successfully!"
        assert body["data"]["email"] == "asha.verma@example.com"

        stored = client.get(f"{BASE}/all").json()["registrations"][0]
        assert stored["id"] == body["data"]["id"]
        assert stored["agreeTerms"] is True
        assert stored["agreeMarketing"] is True
        assert Path(stored["aadharFile"]).exists()
        assert Path(stored["signatureFile"]).parent == upload_dir / "signatures"

    def test_blank_city_and_state_rejected(self, client, upload_dir, db) -> None:
        """Empty or whitespace-only inputs count as missing."""
        resp = client.post(f"{BASE}/submit", data=person(city="", state="   "), files=attachments())
        assert resp.status_code == 400
        errors = resp.json()["errors"]
        assert errors["city"] == "City is required"
        assert errors["state"] == "State is required"
        assert files_on_disk(upload_dir) == []
        assert db["userform"].count_documents({}) == 0

    def test_missing_files_named(self, client, upload_dir) -> None:
        resp = client.post(f"{BASE}/submit", data=person(), files=attachments(signature=None))
        assert resp.status_code == 400
        assert resp.json()["errors"]["signatureFile"] == "Signature file is required"
        assert files_on_disk(upload_dir) == []

    def test_terms_must_be_accepted(self, client, upload_dir) -> None:
        resp = client.post(f"{BASE}/submit", data=person(agreeTerms="false"), files=attachments())
        assert resp.status_code == 400
        assert resp.json()["errors"]["agreeTerms"] == "You must accept the terms and conditions"
        assert files_on_disk(upload_dir) == []

    def test_birth_date_in_future_rejected(self, client) -> None:
        resp = client.post(f"{BASE}/submit", data=person(dateOfBirth="2999-01-01"), files=attachments())
        assert resp.status_code == 400
        assert resp.json()["errors"]["dateOfBirth"] == "Date of birth must be in the past"

    def test_short_name_rejected(self, client) -> None:
        resp = client.post(f"{BASE}/submit", data=person(lastName="V"), files=attachments())
        assert resp.json()["errors"]["lastName"] == "Last name must be at least 2 characters"

    def test_bad_email_rejected(self, client) -> None:
        resp = client.post(f"{BASE}/submit", data=person(email="asha-at-example"), files=attachments())
        assert resp.json()["errors"]["email"] == "Please enter a valid email address"


class TestListAll:
    """Tests for GET /api/registration/all."""

    def test_newest_first(self, client, db) -> None:
        db["userform"].insert_many([
            {"firstName": "Asha", "createdAt": datetime(2024, 1, 1)},
            {"firstName": "Bina", "createdAt": datetime(2024, 2, 1)},
        ])
        body = client.get(f"{BASE}/all").json()
        assert body["success"] is True
        assert [r["firstName"] for r in body["registrations"]] == ["Bina", "Asha"]

    def test_empty(self, client) -> None:
        assert client.get(f"{BASE}/all").json() == {"success": True, "registrations": []}
