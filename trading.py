"""
Trading registration endpoints.

Create, list, stats, get, update, status change, verification toggle and
delete. Attachments are stored through the ``FileStore``; a superseded
file is only removed once the record pointing at its replacement has been
written.
"""

from datetime import datetime, timezone
import logging
import math
import re
from typing import Dict, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import ValidationError
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import (
    TRADING_REGISTRATION,
    UNIQUE_FIELDS,
    count_documents,
    create_document,
    delete_document,
    get_db,
    get_document,
    get_documents,
    serialize,
    update_document,
)
from errors import RecordInvalid, operation, record_errors
from schemas import (
    ADMIN_FIELDS,
    TRACKED_FLAGS,
    VERIFICATION_FLAGS,
    RegistrationStatus,
    StatusUpdate,
    StoredFile,
    TradingRegistration,
    VerificationStatus,
    VerificationUpdate,
)
from uploads import UPLOAD_FIELDS, FileStore, SubmittedForm, get_file_store, read_form

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/trading-registration", tags=["trading-registration"])

NOT_FOUND = "Registration not found"

SEARCH_FIELDS = ("firstName", "lastName", "email", "phone")
LIST_PROJECTION = {field: 0 for field in UPLOAD_FIELDS}
SortField = Literal["submissionDate", "createdAt", "firstName", "lastName", "email", "registrationStatus"]


def _client_fields(fields: Dict[str, str]) -> Dict[str, str]:
    return {k: v for k, v in fields.items() if k not in ADMIN_FIELDS}


def _attachments(stored: Dict[str, StoredFile]) -> Dict[str, dict]:
    return {field: item.to_document() for field, item in stored.items()}


def _local_midnight_utc() -> datetime:
    midnight = datetime.now().astimezone().replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc).replace(tzinfo=None)


@router.post("", status_code=201)
def create_registration(form: SubmittedForm = Depends(read_form),
                        db: Database = Depends(get_db),
                        files: FileStore = Depends(get_file_store)):
    unique_fields = UNIQUE_FIELDS[TRADING_REGISTRATION]
    with operation("Registration failed"), files.staged(form.files) as stored:
        try:
            record = TradingRegistration.model_validate({
                **_client_fields(form.fields),
                **_attachments(stored),
            })
            record_id = create_document(db, TRADING_REGISTRATION, record)
        except (ValidationError, DuplicateKeyError) as exc:
            raise RecordInvalid("Registration failed", record_errors(exc, unique_fields)) from exc

    logger.info("Registration %s created", record_id)
    return {
        "success": True,
        "message": "Registration submitted successfully!",
        "data": {
            "id": record_id,
            "fullName": record.full_name,
            "email": record.email,
            "registrationStatus": record.registration_status,
            "submissionDate": record.submission_date.isoformat(),
        },
    }


@router.get("")
def list_registrations(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[RegistrationStatus] = None,
    search: Optional[str] = None,
    sort_by: SortField = Query("submissionDate", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    db: Database = Depends(get_db),
):
    query: dict = {}
    if status:
        query["registrationStatus"] = status.value
    if search:
        pattern = re.escape(search)
        query["$or"] = [{field: {"$regex": pattern, "$options": "i"}} for field in SEARCH_FIELDS]

    with operation("Failed to fetch registrations"):
        docs = get_documents(
            db, TRADING_REGISTRATION, query,
            limit=limit,
            skip=(page - 1) * limit,
            sort=[(sort_by, -1 if sort_order == "desc" else 1)],
            projection=LIST_PROJECTION,
        )
        total = count_documents(db, TRADING_REGISTRATION, query)

    return {
        "success": True,
        "data": [serialize(d) for d in docs],
        "pagination": {
            "current": page,
            "pages": math.ceil(total / limit),
            "total": total,
            "limit": limit,
        },
    }


@router.get("/stats")
def registration_stats(db: Database = Depends(get_db)):
    with operation("Failed to fetch statistics"):
        breakdown = db[TRADING_REGISTRATION].aggregate([
            {"$group": {"_id": "$registrationStatus", "count": {"$sum": 1}}},
            {"$sort": {"_id": 1}},
        ])
        status_breakdown = [{"status": row["_id"], "count": row["count"]} for row in breakdown]
        total = count_documents(db, TRADING_REGISTRATION)
        today = count_documents(db, TRADING_REGISTRATION, {"submissionDate": {"$gte": _local_midnight_utc()}})
        fully_verified = count_documents(
            db, TRADING_REGISTRATION,
            {f"verificationStatus.{flag}": True for flag in TRACKED_FLAGS},
        )

    return {
        "success": True,
        "data": {
            "statusBreakdown": status_breakdown,
            "totalRegistrations": total,
            "todayRegistrations": today,
            "verificationStats": [
                {"fullyVerified": True, "count": fully_verified},
                {"fullyVerified": False, "count": total - fully_verified},
            ],
        },
    }


@router.get("/{registration_id}")
def get_registration(registration_id: str, db: Database = Depends(get_db)):
    with operation("Failed to fetch registration"):
        doc = get_document(db, TRADING_REGISTRATION, registration_id, NOT_FOUND)
    return {"success": True, "data": serialize(doc)}


@router.put("/{registration_id}")
def update_registration(registration_id: str,
                        form: SubmittedForm = Depends(read_form),
                        db: Database = Depends(get_db),
                        files: FileStore = Depends(get_file_store)):
    unique_fields = UNIQUE_FIELDS[TRADING_REGISTRATION]
    with operation("Failed to update registration"):
        existing = get_document(db, TRADING_REGISTRATION, registration_id, NOT_FOUND)
        with files.staged(form.files) as stored:
            try:
                record = TradingRegistration.model_validate({
                    **existing,
                    **_client_fields(form.fields),
                    **_attachments(stored),
                })
                changes = {k: v for k, v in record.to_document().items() if k not in ADMIN_FIELDS}
                updated = update_document(db, TRADING_REGISTRATION, registration_id, changes, NOT_FOUND)
            except (ValidationError, DuplicateKeyError) as exc:
                raise RecordInvalid("Failed to update registration", record_errors(exc, unique_fields)) from exc

        # the record now references the new uploads
        for field in stored:
            previous = existing.get(field) or {}
            files.discard(previous.get("path"))

    logger.info("Registration %s updated", registration_id)
    return {"success": True, "message": "Registration updated successfully", "data": serialize(updated)}


@router.put("/{registration_id}/status")
def update_status(registration_id: str, req: StatusUpdate, db: Database = Depends(get_db)):
    changes = {"registrationStatus": req.status}
    if req.admin_notes:
        changes["adminNotes"] = req.admin_notes
    with operation("Failed to update registration status"):
        doc = update_document(db, TRADING_REGISTRATION, registration_id, changes, NOT_FOUND)

    logger.info("Registration %s status updated to %s", registration_id, req.status)
    return {
        "success": True,
        "message": "Registration status updated successfully",
        "data": {
            "id": str(doc["_id"]),
            "status": doc["registrationStatus"],
            "adminNotes": doc.get("adminNotes"),
        },
    }


@router.put("/{registration_id}/verify")
def update_verification(registration_id: str, req: VerificationUpdate, db: Database = Depends(get_db)):
    flag = VERIFICATION_FLAGS[req.verification_type]
    with operation("Failed to update verification status"):
        doc = update_document(db, TRADING_REGISTRATION, registration_id, {flag: req.is_verified}, NOT_FOUND)

    verification = VerificationStatus.model_validate(doc.get("verificationStatus") or {})
    logger.info("%s set to %s for registration %s", req.verification_type.value, req.is_verified, registration_id)
    return {
        "success": True,
        "message": "Verification status updated successfully",
        "data": {
            "id": str(doc["_id"]),
            "verificationStatus": verification.to_document(),
            "isFullyVerified": verification.is_fully_verified(),
        },
    }


@router.delete("/{registration_id}")
def delete_registration(registration_id: str,
                        db: Database = Depends(get_db),
                        files: FileStore = Depends(get_file_store)):
    with operation("Failed to delete registration"):
        existing = get_document(db, TRADING_REGISTRATION, registration_id, NOT_FOUND)
        files.discard_all((existing.get(field) or {}).get("path") for field in UPLOAD_FIELDS)
        delete_document(db, TRADING_REGISTRATION, registration_id, NOT_FOUND)

    logger.info("Registration %s deleted", registration_id)
    return {"success": True, "message": "Registration deleted successfully"}
