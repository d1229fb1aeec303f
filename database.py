"""
MongoDB access for SAT Quest.

`db` is None when DATABASE_URL / DATABASE_NAME are not configured; callers
check for that and answer "Database not configured".
"""

import os
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel
from pymongo import MongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from schemas import Profile, RewardLog

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

client = None
db = None

if DATABASE_URL and DATABASE_NAME:
    client = MongoClient(DATABASE_URL)
    db = client[DATABASE_NAME]


class ProfileNotFound(Exception):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Profile {user_id} not found")


class PersistenceFailure(Exception):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class StaleProfile(PersistenceFailure):
    """The profile changed between read and write."""


def _now():
    return datetime.now(timezone.utc)


def create_document(collection_name: str, data: Union[BaseModel, dict], database=None) -> str:
    """Insert a single document with timestamps and return its id."""
    database = db if database is None else database
    if database is None:
        raise PersistenceFailure("Database not configured")
    data_dict = data.model_dump(mode="json") if isinstance(data, BaseModel) else dict(data)
    data_dict["created_at"] = _now()
    data_dict["updated_at"] = _now()
    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: dict = None, limit: int = None, database=None) -> List[dict]:
    database = db if database is None else database
    if database is None:
        raise PersistenceFailure("Database not configured")
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def _to_profile(doc: dict) -> Profile:
    doc = {k: v for k, v in doc.items() if k not in ("_id", "created_at", "updated_at")}
    return Profile.model_validate(doc)


class MongoProfileStore:
    """Profile store backed by the "profile" collection, one document per user."""

    def __init__(self, database):
        self.db = database
        self.collection = database["profile"]

    def ensure_indexes(self):
        self.collection.create_index("user_id", unique=True)
        self.db["reward"].create_index("user_id")

    def get_profile(self, user_id: str) -> Profile:
        try:
            doc = self.collection.find_one({"user_id": user_id})
        except PyMongoError as e:
            raise PersistenceFailure(str(e)) from e
        if doc is None:
            raise ProfileNotFound(user_id)
        return _to_profile(doc)

    def create_profile(self, profile: Profile) -> Profile:
        """Insert the profile unless the user already has one; return what is stored."""
        doc = profile.model_dump(mode="json")
        doc["created_at"] = _now()
        doc["updated_at"] = _now()
        try:
            self.collection.update_one(
                {"user_id": profile.user_id},
                {"$setOnInsert": doc},
                upsert=True,
            )
        except PyMongoError as e:
            raise PersistenceFailure(str(e)) from e
        return self.get_profile(profile.user_id)

    def save_profile(self, user_id: str, fields: Dict[str, Any], expected_version: int) -> Profile:
        """Write all fields in one guarded update. Either every field lands or none does."""
        try:
            doc = self.collection.find_one_and_update(
                {"user_id": user_id, "version": expected_version},
                {"$set": {**fields, "updated_at": _now()}, "$inc": {"version": 1}},
                return_document=ReturnDocument.AFTER,
            )
            if doc is None:
                if self.collection.count_documents({"user_id": user_id}, limit=1) == 0:
                    raise ProfileNotFound(user_id)
                raise StaleProfile(f"Profile {user_id} changed since version {expected_version}")
        except PyMongoError as e:
            raise PersistenceFailure(str(e)) from e
        return _to_profile(doc)

    def log_reward(self, entry: RewardLog) -> str:
        try:
            return create_document("reward", entry, database=self.db)
        except PyMongoError as e:
            raise PersistenceFailure(str(e)) from e

    def reward_history(self, user_id: str, limit: Optional[int] = 50) -> List[RewardLog]:
        try:
            docs = get_documents("reward", {"user_id": user_id}, limit, database=self.db)
        except PyMongoError as e:
            raise PersistenceFailure(str(e)) from e
        return [RewardLog.model_validate({k: v for k, v in d.items() if k != "_id"}) for d in docs]


def changed_fields(before: Profile, after: Profile) -> Dict[str, Any]:
    old = before.model_dump(mode="json")
    new = after.model_dump(mode="json")
    return {
        key: value for key, value in new.items()
        if key not in ("user_id", "version") and old.get(key) != value
    }


def commit_transition(store, before: Profile, after: Profile) -> Profile:
    """
    Persist the engine's predicted ``after`` snapshot.

    Only changed fields are written, guarded by ``before.version``. The
    store's committed document replaces the prediction; on failure the caller
    keeps ``before`` untouched.
    """
    fields = changed_fields(before, after)
    if not fields:
        return before
    committed = store.save_profile(before.user_id, fields, before.version)
    if changed_fields(after, committed):
        logger.warning("Profile %s committed state differs from prediction", before.user_id)
    return committed
