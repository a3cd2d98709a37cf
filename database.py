"""
MongoDB access for the SoulScribe Wellness API.

`db` is the module-level database handle configured from DATABASE_URL and
DATABASE_NAME (None when either is missing). Routes never touch it
directly; they go through a RecordStore, which keeps every query scoped to
one user and turns pymongo failures into QueryFailure.
"""
import logging
import math
import os
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from errors import QueryFailure
from periods import utc_now

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

MOODS = "moodentry"
JOURNALS = "journalentry"
CHATS = "chatsession"

db = None
if DATABASE_URL and DATABASE_NAME:
    client = MongoClient(DATABASE_URL)
    db = client[DATABASE_NAME]


def count_words(content: str) -> int:
    return len(content.split())


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Make a stored document JSON friendly: ObjectId _id becomes a string id."""
    if doc is None:
        return None
    data = dict(doc)
    if "_id" in data:
        data["id"] = str(data.pop("_id"))
    return data


def _object_id(record_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(record_id)
    except (InvalidId, TypeError):
        return None


@contextmanager
def _query(action: str):
    try:
        yield
    except PyMongoError as e:
        logger.error("Record store failure while %s: %s", action, e)
        raise QueryFailure(f"Record store failure while {action}") from e


class RecordStore:
    """User-scoped reads and writes over the mood, journal and chat collections."""

    def __init__(self, database):
        self.database = database

    def ensure_indexes(self):
        with _query("creating indexes"):
            for name in (MOODS, JOURNALS, CHATS):
                self.database[name].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
            self.database[CHATS].create_index([("user_id", ASCENDING), ("session_id", ASCENDING)])

    # ---------- Generic documents ----------
    def create_document(self, collection_name: str, data: Union[BaseModel, dict]) -> str:
        if isinstance(data, BaseModel):
            data = data.model_dump()
        data_dict = dict(data)
        now = utc_now()
        data_dict.setdefault("created_at", now)
        data_dict.setdefault("updated_at", now)
        with _query(f"inserting into {collection_name}"):
            result = self.database[collection_name].insert_one(data_dict)
        return str(result.inserted_id)

    def get_documents(self, collection_name: str, filter_dict: Optional[dict] = None,
                      sort_field: str = "created_at", limit: int = 0, skip: int = 0,
                      projection: Optional[dict] = None) -> List[dict]:
        with _query(f"reading {collection_name}"):
            cursor = self.database[collection_name].find(filter_dict or {}, projection)
            cursor = cursor.sort(sort_field, DESCENDING)
            if skip:
                cursor = cursor.skip(skip)
            if limit:
                cursor = cursor.limit(limit)
            return list(cursor)

    def count_documents(self, collection_name: str, filter_dict: dict) -> int:
        with _query(f"counting {collection_name}"):
            return self.database[collection_name].count_documents(filter_dict)

    def page(self, collection_name: str, filter_dict: dict, page: int, limit: int,
             sort_field: str = "created_at", projection: Optional[dict] = None) -> Dict[str, Any]:
        items = self.get_documents(collection_name, filter_dict, sort_field=sort_field, limit=limit,
                                   skip=(page - 1) * limit, projection=projection)
        total = self.count_documents(collection_name, filter_dict)
        return {
            "items": [serialize(doc) for doc in items],
            "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
        }

    # ---------- Owned records ----------
    def find_owned(self, collection_name: str, user_id: str, record_id: str) -> Optional[dict]:
        oid = _object_id(record_id)
        if oid is None:
            return None
        with _query(f"reading {collection_name}"):
            return self.database[collection_name].find_one({"_id": oid, "user_id": user_id})

    def update_owned(self, collection_name: str, user_id: str, record_id: str, changes: dict) -> Optional[dict]:
        oid = _object_id(record_id)
        if oid is None:
            return None
        changes = dict(changes, updated_at=utc_now())
        with _query(f"updating {collection_name}"):
            return self.database[collection_name].find_one_and_update(
                {"_id": oid, "user_id": user_id},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )

    def delete_owned(self, collection_name: str, user_id: str, record_id: str) -> bool:
        oid = _object_id(record_id)
        if oid is None:
            return False
        with _query(f"deleting from {collection_name}"):
            result = self.database[collection_name].delete_one({"_id": oid, "user_id": user_id})
        return result.deleted_count == 1

    # ---------- Chat sessions ----------
    def find_session(self, user_id: str, session_id: str) -> Optional[dict]:
        with _query("reading a chat session"):
            return self.database[CHATS].find_one({"session_id": session_id, "user_id": user_id})

    def update_session(self, user_id: str, session_id: str, changes: dict) -> Optional[dict]:
        changes = dict(changes, updated_at=utc_now())
        with _query("updating a chat session"):
            return self.database[CHATS].find_one_and_update(
                {"session_id": session_id, "user_id": user_id},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )

    def delete_session(self, user_id: str, session_id: str) -> bool:
        with _query("deleting a chat session"):
            result = self.database[CHATS].delete_one({"session_id": session_id, "user_id": user_id})
        return result.deleted_count == 1

    def append_message(self, user_id: str, session_id: str, message: dict) -> Optional[dict]:
        """Push onto the end of an active session's messages; None if there is no such session."""
        with _query("appending a chat message"):
            return self.database[CHATS].find_one_and_update(
                {"session_id": session_id, "user_id": user_id, "is_active": True},
                {"$push": {"messages": message}, "$set": {"updated_at": utc_now()}},
                return_document=ReturnDocument.AFTER,
            )

    def set_feedback(self, user_id: str, session_id: str, feedback: dict) -> Optional[dict]:
        with _query("saving chat feedback"):
            return self.database[CHATS].find_one_and_update(
                {"session_id": session_id, "user_id": user_id},
                {"$set": {"feedback": feedback, "updated_at": utc_now()}},
                return_document=ReturnDocument.AFTER,
            )

    # ---------- Analytics windows ----------
    def fetch_window(self, collection_name: str, user_id: str, since: Optional[datetime],
                     sort_field: str = "created_at", limit: int = 0,
                     projection: Optional[dict] = None) -> List[dict]:
        """Records created at or after ``since`` (all of them when None), newest first.

        Archived journals are left out.
        """
        query = {"user_id": user_id}
        if since is not None:
            query["created_at"] = {"$gte": since}
        if collection_name == JOURNALS:
            query["is_archived"] = {"$ne": True}
        records = self.get_documents(collection_name, query, sort_field=sort_field, limit=limit,
                                     projection=projection)
        logger.debug("Fetched %d %s records for %s since %s", len(records), collection_name, user_id, since)
        return records
