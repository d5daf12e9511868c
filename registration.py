"""
Generic registration form: submit with attachments, list all submissions.
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import ValidationError
from pymongo.database import Database

from database import USERFORM, create_document, get_db, get_documents, serialize
from errors import RecordInvalid, operation, record_errors
from schemas import UserForm
from uploads import FileStore, SubmittedForm, get_file_store, read_form

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/registration", tags=["registration"])

FORM_FILES = ("aadharFile", "signatureFile")


@router.post("/submit", status_code=201)
def submit_form(form: SubmittedForm = Depends(read_form),
                db: Database = Depends(get_db),
                files: FileStore = Depends(get_file_store)):
    uploads = {k: v for k, v in form.files.items() if k in FORM_FILES}
    with operation("Something went wrong. Please try again."), files.staged(uploads) as stored:
        try:
            record = UserForm.model_validate({
                **form.fields,
                **{field: item.path for field, item in stored.items()},
            })
        except ValidationError as exc:
            raise RecordInvalid("Form submission failed", record_errors(exc)) from exc
        record_id = create_document(db, USERFORM, record)

    logger.info("Form submission %s stored", record_id)
    return {
        "success": True,
        "message": "Form submitted successfully!",
        "data": {
            "id": record_id,
            "firstName": record.first_name,
            "lastName": record.last_name,
            "email": record.email,
        },
    }


@router.get("/all")
def get_all_registrations(db: Database = Depends(get_db)):
    with operation("Error fetching registrations"):
        docs = get_documents(db, USERFORM, sort=[("createdAt", -1)])
    return {"success": True, "registrations": [serialize(d) for d in docs]}
