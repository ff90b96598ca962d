"""
MongoDB access for Civic Connect.

`create_document` / `get_documents` are the generic helpers; `UserStore`
(credentials and profiles) and `IssueStore` (issue reports and upvotes)
own their collections. Uniqueness and the upvote toggle are enforced by
the database itself: unique indexes and conditional single-document
updates.
"""

import logging
import re
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.database import Database

from config import Settings

logger = logging.getLogger(__name__)

USERS = "users"
ISSUES = "issues"

NEWEST_FIRST = [("createdAt", DESCENDING), ("_id", DESCENDING)]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value) -> Optional[ObjectId]:
    """Return `value` as an ObjectId, or None when it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def get_database(settings: Settings) -> Database:
    client = MongoClient(settings.mongo_url, tz_aware=True, serverSelectionTimeoutMS=5000)
    return client[settings.database_name]


def ensure_indexes(db: Database):
    db[USERS].create_index([("email", ASCENDING)], unique=True, name="email_unique")
    db[USERS].create_index([("username", ASCENDING)], unique=True, name="username_unique")
    db[ISSUES].create_index(NEWEST_FIRST, name="newest_first")
    db[ISSUES].create_index([("reportedBy", ASCENDING), ("createdAt", DESCENDING)], name="by_reporter")
    db[ISSUES].create_index([("category", ASCENDING), ("status", ASCENDING)], name="by_category_status")
    logger.info("MongoDB indexes ensured")


def create_document(db: Database, collection: str, data: dict) -> str:
    """Insert `data` stamped with createdAt/updatedAt; returns the new id."""
    now = utcnow()
    data.setdefault("createdAt", now)
    data.setdefault("updatedAt", now)
    result = db[collection].insert_one(data)
    return str(result.inserted_id)


def get_documents(db: Database, collection: str, filter_dict: dict = None, limit: int = None) -> List[dict]:
    cursor = db[collection].find(filter_dict or {}).sort(NEWEST_FIRST)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


class UserStore:
    """Credential store: one document per registered user."""

    def __init__(self, db: Database):
        self.collection = db[USERS]
        self._db = db

    def insert(self, doc: dict) -> dict:
        # DuplicateKeyError propagates to the caller
        create_document(self._db, USERS, doc)
        return doc

    def find_by_email(self, email: str) -> Optional[dict]:
        return self.collection.find_one({"email": email.strip().lower()})

    def find_by_id(self, user_id) -> Optional[dict]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        return self.collection.find_one({"_id": oid})

    def highest_username_suffix(self, base: str) -> int:
        """Largest N among usernames `base<N>`; 1 when only `base` itself exists."""
        prefix = len(base)
        highest = 1
        query = {"username": {"$regex": f"^{re.escape(base)}[0-9]+$"}}
        for doc in self.collection.find(query, {"username": 1}):
            highest = max(highest, int(doc["username"][prefix:]))
        return highest

    def update_profile(self, user_id, fields: dict) -> Optional[dict]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        return self.collection.find_one_and_update(
            {"_id": oid},
            {"$set": {**fields, "updatedAt": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )


class IssueStore:
    """Issue store: one document per report, upvoters kept in `upvotedBy`."""

    def __init__(self, db: Database):
        self.collection = db[ISSUES]
        self._db = db

    def insert(self, doc: dict) -> dict:
        create_document(self._db, ISSUES, doc)
        return doc

    def find_page(self, query: dict, skip: int, limit: int) -> Tuple[List[dict], int]:
        total = self.collection.count_documents(query)
        docs = list(self.collection.find(query).sort(NEWEST_FIRST).skip(skip).limit(limit))
        return docs, total

    def find_by_reporter(self, user_id) -> List[dict]:
        return get_documents(self._db, ISSUES, {"reportedBy": to_object_id(user_id)})

    def add_upvote(self, issue_id: ObjectId, user_id: ObjectId) -> Optional[dict]:
        """Add the user's upvote if absent; None when nothing matched."""
        return self.collection.find_one_and_update(
            {"_id": issue_id, "upvotedBy": {"$ne": user_id}},
            {
                "$addToSet": {"upvotedBy": user_id},
                "$inc": {"upvotes": 1},
                "$set": {"updatedAt": utcnow()},
            },
            return_document=ReturnDocument.AFTER,
        )

    def remove_upvote(self, issue_id: ObjectId, user_id: ObjectId) -> Optional[dict]:
        """Remove the user's upvote if present; None when nothing matched."""
        return self.collection.find_one_and_update(
            {"_id": issue_id, "upvotedBy": user_id, "upvotes": {"$gt": 0}},
            {
                "$pull": {"upvotedBy": user_id},
                "$inc": {"upvotes": -1},
                "$set": {"updatedAt": utcnow()},
            },
            return_document=ReturnDocument.AFTER,
        )

    def exists(self, issue_id: ObjectId) -> bool:
        return self.collection.find_one({"_id": issue_id}, {"_id": 1}) is not None
