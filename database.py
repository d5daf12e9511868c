"""
Database Helper Functions

MongoDB helper functions used by the resource routers.
The database handle is created once by ``connect()`` at application start
and handed to the endpoints through the ``get_db`` dependency.
"""

from datetime import datetime, timezone
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from bson import ObjectId
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel
from pymongo import MongoClient, ReturnDocument
from pymongo.database import Database

from errors import RecordNotFound

logger = logging.getLogger(__name__)

# Collection names
USERFORM = "userform"
TRADING_REGISTRATION = "tradingregistration"
PAYMENT = "payment"

UNIQUE_FIELDS: Dict[str, Tuple[str, ...]] = {
    TRADING_REGISTRATION: ("email",),
}


def utcnow() -> datetime:
    """Current time as naive UTC, the form MongoDB hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def connect(database_url: str, database_name: str, client: Optional[MongoClient] = None,
            timeout_ms: int = 5000) -> Database:
    """Open the client (lazily, no I/O yet) and return the database handle."""
    if client is None:
        client = MongoClient(database_url, serverSelectionTimeoutMS=timeout_ms)
    return client[database_name]


def ensure_indexes(db: Database) -> None:
    for collection_name, fields in UNIQUE_FIELDS.items():
        for field in fields:
            db[collection_name].create_index(field, unique=True)


def get_db(request: Request) -> Database:
    return request.app.state.db


def object_id(record_id: str, not_found: str = "Record not found") -> ObjectId:
    # Malformed ids are reported exactly like unknown ones
    if not ObjectId.is_valid(record_id):
        raise RecordNotFound(not_found)
    return ObjectId(record_id)


def serialize(document: Optional[dict]) -> Optional[dict]:
    """Make a stored document JSON-safe, exposing ``_id`` as ``id``."""
    if document is None:
        return None
    data = jsonable_encoder(document, custom_encoder={ObjectId: str})
    if "_id" in data:
        data = {"id": data.pop("_id"), **data}
    return data


def create_document(db: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a single document with timestamps"""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(by_alias=True)
    else:
        data_dict = data.copy()

    now = utcnow()
    data_dict["createdAt"] = now
    data_dict["updatedAt"] = now

    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(db: Database, collection_name: str, filter_dict: Optional[dict] = None,
                  limit: Optional[int] = None, skip: int = 0,
                  sort: Optional[Sequence[Tuple[str, int]]] = None,
                  projection: Optional[Dict[str, Any]] = None) -> List[dict]:
    """Get documents from collection"""
    cursor = db[collection_name].find(filter_dict or {}, projection)
    if sort:
        cursor = cursor.sort(list(sort))
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def count_documents(db: Database, collection_name: str, filter_dict: Optional[dict] = None) -> int:
    return db[collection_name].count_documents(filter_dict or {})


def get_document(db: Database, collection_name: str, record_id: str,
                 not_found: str = "Record not found") -> dict:
    document = db[collection_name].find_one({"_id": object_id(record_id, not_found)})
    if document is None:
        raise RecordNotFound(not_found)
    return document


def update_document(db: Database, collection_name: str, record_id: str, changes: dict,
                    not_found: str = "Record not found") -> dict:
    """Apply ``$set`` changes and return the updated document."""
    changes = {**changes, "updatedAt": utcnow()}
    document = db[collection_name].find_one_and_update(
        {"_id": object_id(record_id, not_found)},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if document is None:
        raise RecordNotFound(not_found)
    return document


def delete_document(db: Database, collection_name: str, record_id: str,
                    not_found: str = "Record not found") -> None:
    result = db[collection_name].delete_one({"_id": object_id(record_id, not_found)})
    if result.deleted_count == 0:
        raise RecordNotFound(not_found)
