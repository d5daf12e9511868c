"""
Tests for the file store used by the registration endpoints.
"""

import io
import re

import pytest
from starlette.datastructures import Headers, UploadFile

from errors import FileRejected
from uploads import MAX_FILE_SIZE, FileStore, allowed_type, generate_filename
from tests.conftest import PNG


def upload(name, data=PNG, content_type="image/png"):
    return UploadFile(file=io.BytesIO(data), filename=name, headers=Headers({"content-type": content_type}))


@pytest.fixture
def store(tmp_path):
    files = FileStore(tmp_path / "uploads")
    files.ensure_directories()
    return files


class TestAllowedType:
    def test_identity_document_accepts_pdf(self) -> None:
        assert allowed_type("aadharFile", "scan.PDF", "application/pdf")

    def test_signature_rejects_pdf(self) -> None:
        assert not allowed_type("signatureFile", "sign.pdf", "application/pdf")

    def test_extension_and_content_type_must_both_match(self) -> None:
        assert not allowed_type("aadharFile", "scan.png", "text/plain")
        assert not allowed_type("aadharFile", "scan.txt", "image/png")

    def test_unknown_field_uses_default_list(self) -> None:
        assert allowed_type("photo", "me.jpg", "image/jpeg")


def test_generated_name_keeps_extension() -> None:
    assert re.fullmatch(r"signatureFile-\d{13}-\d+\.jpeg", generate_filename("signatureFile", "my sign.jpeg"))


class TestFileStore:
    def test_directories_created(self, store) -> None:
        for name in ("aadhar", "pan", "signatures", "misc"):
            assert (store.root / name).is_dir()

    def test_save_writes_file(self, store) -> None:
        stored = store.save("aadharFile", upload("card.png"))
        assert stored.original_name == "card.png"
        assert stored.mimetype == "image/png"
        assert stored.size == len(PNG)
        with open(stored.path, "rb") as fh:
            assert fh.read() == PNG

    def test_rejected_type_writes_nothing(self, store) -> None:
        with pytest.raises(FileRejected) as exc_info:
            store.save("aadharFile", upload("notes.txt", b"hi", "text/plain"))
        assert exc_info.value.errors == {
            "file": "Invalid file type for aadharFile. Only jpeg|jpg|png|pdf files are allowed."
        }
        assert not any(p.is_file() for p in store.root.rglob("*"))

    def test_oversize_removed(self, store) -> None:
        with pytest.raises(FileRejected):
            store.save("signatureFile", upload("big.png", b"\x00" * (MAX_FILE_SIZE + 1)))
        assert not any(p.is_file() for p in store.root.rglob("*"))

    def test_save_all_cleans_up_on_rejection(self, store) -> None:
        uploads = {"aadharFile": upload("card.png"), "signatureFile": upload("sign.txt", b"x", "text/plain")}
        with pytest.raises(FileRejected):
            store.save_all(uploads)
        assert not any(p.is_file() for p in store.root.rglob("*"))

    def test_staged_discards_on_failure(self, store) -> None:
        with pytest.raises(RuntimeError):
            with store.staged({"aadharFile": upload("card.png")}):
                raise RuntimeError("write failed")
        assert not any(p.is_file() for p in store.root.rglob("*"))

    def test_staged_keeps_on_success(self, store) -> None:
        with store.staged({"aadharFile": upload("card.png")}) as stored:
            pass
        assert (store.root / "aadhar" / stored["aadharFile"].filename).exists()

    def test_discard_missing_file_is_fine(self, store) -> None:
        store.discard(store.root / "aadhar" / "gone.png")
        store.discard(None)
