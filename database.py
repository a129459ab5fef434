"""
Database helpers

MongoDB access through pymongo. The client is opened by the application
lifespan and handed to the services, so nothing here holds a module-level
connection.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, Union

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

logger = logging.getLogger(__name__)

SortSpec = Sequence[Tuple[str, int]]


def utcnow() -> datetime:
    # naive UTC, matching what pymongo returns by default
    return datetime.now(timezone.utc).replace(tzinfo=None)


def connect(url: str, name: str) -> Tuple[MongoClient, Database]:
    client = MongoClient(url)
    logger.info(f"MongoDB client created for database '{name}'")
    return client, client[name]


def collection_name(model: Type[BaseModel]) -> str:
    """Collection name is the lowercase class name."""
    return model.__name__.lower()


def ensure_indexes(db: Database) -> None:
    db["aari"].create_index("order_id", unique=True)
    db["aari"].create_index([("status", ASCENDING), ("delivery_date", ASCENDING)])
    db["aari"].create_index([("status", ASCENDING), ("completed_date", DESCENDING)])
    db["aari"].create_index([("phone_number", ASCENDING), ("created_at", DESCENDING)])
    db["customer"].create_index("customer_id", unique=True)
    db["customer"].create_index("phone_number", unique=True)


def create_document(db: Database, collection: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert one document, stamping created_at/updated_at. Returns the inserted _id."""
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    now = utcnow()
    doc["created_at"] = now
    doc["updated_at"] = now
    result = db[collection].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    db: Database,
    collection: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    projection: Optional[Dict[str, Any]] = None,
    sort: Optional[SortSpec] = None,
    skip: int = 0,
    limit: int = 0,
) -> List[Dict[str, Any]]:
    cursor = db[collection].find(filter_dict or {}, projection)
    if sort:
        cursor = cursor.sort(list(sort))
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
