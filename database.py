"""
MongoDB access for the manufacturer API.

A single Store is built at startup and shared by every request; handlers get
it through FastAPI dependency injection instead of a module-level client.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson.errors import InvalidId
from bson.objectid import ObjectId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.results import DeleteResult, UpdateResult

from config import Settings

logger = logging.getLogger(__name__)

PRODUCTS = "items"
REVIEWS = "reviews"
USERS = "users"
ORDERS = "orders"


class Store:
    def __init__(self, db, client: Optional[MongoClient] = None):
        self.db = db
        self.client = client
        self.products = db[PRODUCTS]
        self.reviews = db[REVIEWS]
        self.users = db[USERS]
        self.orders = db[ORDERS]

    @classmethod
    def connect(cls, settings: Settings) -> "Store":
        client = MongoClient(settings.database_url)
        logger.info("Using database %s", settings.database_name)
        return cls(client[settings.database_name], client)

    def close(self):
        if self.client is not None:
            self.client.close()


def create_document(collection, data: Union[BaseModel, dict]) -> str:
    """Insert a document with timestamps and return its id as a string."""
    if isinstance(data, BaseModel):
        data = data.model_dump()
    now = datetime.now(timezone.utc)
    doc = {**data, "created_at": now, "updated_at": now}
    result = collection.insert_one(doc)
    return str(result.inserted_id)


def get_documents(collection, filter_dict: Optional[dict] = None, newest_first: bool = False) -> List[dict]:
    cursor = collection.find(filter_dict or {})
    if newest_first:
        cursor = cursor.sort("_id", -1)
    return [serialize_doc(d) for d in cursor]


def serialize_doc(doc):
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.get("_id")
    if isinstance(_id, ObjectId):
        doc["id"] = str(_id)
        del doc["_id"]
    for k, v in list(doc.items()):
        if isinstance(v, datetime):
            doc[k] = v.isoformat()
        elif isinstance(v, ObjectId):
            doc[k] = str(v)
    return doc


def object_id(value: str) -> ObjectId:
    if not isinstance(value, str):
        raise HTTPException(status_code=400, detail=f"Malformed id: {value}")
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail=f"Malformed id: {value}")


def update_ack(result: UpdateResult) -> Dict[str, Any]:
    upserted = result.upserted_id
    return {
        "matchedCount": result.matched_count,
        "modifiedCount": result.modified_count,
        "upsertedId": str(upserted) if upserted is not None else None,
    }


def delete_ack(result: DeleteResult) -> Dict[str, Any]:
    return {"deletedCount": result.deleted_count}
