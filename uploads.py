"""
File intake for multipart uploads.

Each upload field has its own directory and allow-list. Files are written
under a generated, collision-resistant name and described to the caller as
a ``StoredFile`` for embedding in a record.
"""

from contextlib import contextmanager
import logging
from pathlib import Path
import random
import time
from typing import Dict, Iterable, Iterator, Mapping, NamedTuple, Union

from fastapi import Request
from starlette.datastructures import UploadFile

from errors import FileRejected
from schemas import StoredFile

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 5 * 1024 * 1024  # 5 MiB
CHUNK_SIZE = 64 * 1024

UPLOAD_FIELDS = ("aadharFile", "panFile", "signatureFile")

FIELD_DIRECTORIES = {
    "aadharFile": "aadhar",
    "panFile": "pan",
    "signatureFile": "signatures",
}
DEFAULT_DIRECTORY = "misc"

IMAGE_OR_PDF = ("jpeg", "jpg", "png", "pdf")
ALLOWED_TYPES = {
    "aadharFile": IMAGE_OR_PDF,
    "panFile": IMAGE_OR_PDF,
    "signatureFile": ("jpeg", "jpg", "png"),
}


class SubmittedForm(NamedTuple):
    fields: Dict[str, str]
    files: Dict[str, UploadFile]


async def read_form(request: Request) -> SubmittedForm:
    """Split a multipart body into plain fields and known upload fields.

    Empty file inputs (no filename) count as absent; only the first file
    of each field is kept.
    """
    form = await request.form()
    fields: Dict[str, str] = {}
    files: Dict[str, UploadFile] = {}
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            if key not in UPLOAD_FIELDS:
                logger.warning("Ignoring unexpected file field %s", key)
            elif value.filename:
                files.setdefault(key, value)
        else:
            fields[key] = value
    return SubmittedForm(fields, files)


def allowed_type(field: str, filename: str, content_type: str) -> bool:
    """Both the extension and the declared content type must be allowed."""
    allowed = ALLOWED_TYPES.get(field, IMAGE_OR_PDF)
    extension = Path(filename).suffix.lower().lstrip(".")
    subtype = (content_type or "").split(";")[0].strip().lower().rsplit("/", 1)[-1]
    return extension in allowed and subtype in allowed


def generate_filename(field: str, original_name: str) -> str:
    stamp = int(time.time() * 1000)
    return f"{field}-{stamp}-{random.randint(0, 10**9)}{Path(original_name).suffix}"


class FileStore:
    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def ensure_directories(self) -> None:
        for name in (*FIELD_DIRECTORIES.values(), DEFAULT_DIRECTORY):
            (self.root / name).mkdir(parents=True, exist_ok=True)

    def directory_for(self, field: str) -> Path:
        return self.root / FIELD_DIRECTORIES.get(field, DEFAULT_DIRECTORY)

    def save(self, field: str, upload: UploadFile) -> StoredFile:
        """Validate and write one upload, returning its metadata.

        Raises:
            FileRejected: wrong extension/content type, or larger than 5 MiB.
        """
        original_name = upload.filename or ""
        if not allowed_type(field, original_name, upload.content_type):
            allowed = "|".join(ALLOWED_TYPES.get(field, IMAGE_OR_PDF))
            raise FileRejected(field, f"Invalid file type for {field}. Only {allowed} files are allowed.")
        if upload.size is not None and upload.size > MAX_FILE_SIZE:
            raise FileRejected(field, f"File too large for {field}. Maximum size is 5 MB.")

        directory = self.directory_for(field)
        directory.mkdir(parents=True, exist_ok=True)
        destination = directory / generate_filename(field, original_name)

        size = 0
        upload.file.seek(0)
        with destination.open("wb") as out:
            while True:
                chunk = upload.file.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > MAX_FILE_SIZE:
                    break
                out.write(chunk)
        if size > MAX_FILE_SIZE:
            self.discard(destination)
            raise FileRejected(field, f"File too large for {field}. Maximum size is 5 MB.")

        logger.info("Stored %s upload as %s (%d bytes)", field, destination.name, size)
        return StoredFile(
            filename=destination.name,
            original_name=original_name,
            mimetype=upload.content_type or "application/octet-stream",
            size=size,
            path=str(destination),
        )

    def save_all(self, uploads: Mapping[str, UploadFile]) -> Dict[str, StoredFile]:
        """Save every upload of a request; on rejection nothing stays on disk."""
        stored: Dict[str, StoredFile] = {}
        try:
            for field, upload in uploads.items():
                stored[field] = self.save(field, upload)
        except Exception:
            self.discard_all(stored.values())
            raise
        return stored

    @contextmanager
    def staged(self, uploads: Mapping[str, UploadFile]) -> Iterator[Dict[str, StoredFile]]:
        """Save uploads for a record write, removing them if the write fails."""
        stored = self.save_all(uploads)
        try:
            yield stored
        except BaseException:
            self.discard_all(stored.values())
            raise

    def discard(self, path: Union[str, Path, None]) -> None:
        """Remove a file; already-missing files are fine."""
        if not path:
            return
        try:
            Path(path).unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove file %s", path, exc_info=True)

    def discard_all(self, files: Iterable[Union[StoredFile, str, None]]) -> None:
        for item in files:
            self.discard(item.path if isinstance(item, StoredFile) else item)


def get_file_store(request: Request) -> FileStore:
    return request.app.state.files
