# backend/app/services/user_service.py
# Profile management and admin user listing

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import pymongo
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from app.exceptions import DuplicateEmailError, NotFoundError
from app.models.user import ProfileUpdate
from app.utils.constants import BUSINESSES, USERS, VEHICLES
from app.utils.pagination import build_pagination, contains_pattern, page_offset
from app.utils.validators import validate_object_id

logger = logging.getLogger(__name__)

# Never returned by any user listing
PRIVATE_FIELDS = {
    "password": 0,
    "email_verification_code": 0,
    "email_verification_expire": 0,
    "email_verification_attempts": 0,
    "password_reset_code": 0,
    "password_reset_expire": 0,
    "password_reset_attempts": 0,
}


def update_profile(db: Database, user_id: ObjectId, changes: ProfileUpdate) -> dict:
    """Apply profile edits. A new email must be unused and has to be verified again."""
    updates = changes.model_dump(exclude_none=True)
    current = db[USERS].find_one({"_id": user_id}, {"email": 1})
    if current is None:
        raise NotFoundError("User not found")

    new_email = updates.get("email")
    if new_email and new_email != current["email"]:
        if db[USERS].count_documents({"email": new_email, "_id": {"$ne": user_id}}, limit=1):
            raise DuplicateEmailError()
        updates["is_email_verified"] = False
    else:
        updates.pop("email", None)

    updates["updated_at"] = datetime.utcnow()
    try:
        return db[USERS].find_one_and_update(
            {"_id": user_id}, {"$set": updates}, return_document=ReturnDocument.AFTER
        )
    except DuplicateKeyError:
        logger.warning(f"Email change for user {user_id} lost a race to {new_email}")
        raise DuplicateEmailError()


def set_profile_image(db: Database, user_id: ObjectId, url: str) -> dict:
    return db[USERS].find_one_and_update(
        {"_id": user_id},
        {"$set": {"profile_image": url, "updated_at": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )


def skip_corporate_info(db: Database, user_id: ObjectId) -> dict:
    return db[USERS].find_one_and_update(
        {"_id": user_id},
        {"$set": {"skipped_corporate_info": True, "updated_at": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )


def delete_account(db: Database, user_id: ObjectId):
    """Remove the user together with their business and fleet records."""
    db[BUSINESSES].delete_many({"user": user_id})
    db[VEHICLES].delete_many({"user": user_id})
    result = db[USERS].delete_one({"_id": user_id})
    if result.deleted_count == 0:
        raise NotFoundError("User not found")
    logger.info(f"Deleted account {user_id}")


def list_users(
    db: Database,
    page: int,
    limit: int,
    search: Optional[str] = None,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> Tuple[List[dict], Dict[str, Any]]:
    query: Dict[str, Any] = {}
    if search and search.strip():
        pattern = contains_pattern(search.strip())
        query["$or"] = [{"full_name": pattern}, {"email": pattern}]
    if role:
        query["role"] = role
    if is_active is not None:
        query["is_active"] = is_active

    users = list(
        db[USERS]
        .find(query, PRIVATE_FIELDS)
        .sort("created_at", pymongo.DESCENDING)
        .skip(page_offset(page, limit))
        .limit(limit)
    )
    total = db[USERS].count_documents(query)
    return users, build_pagination(page, limit, total, len(users), "totalUsers")


def get_user(db: Database, user_id: str) -> dict:
    if not validate_object_id(user_id):
        raise NotFoundError("User not found")
    user = db[USERS].find_one({"_id": ObjectId(user_id)}, PRIVATE_FIELDS)
    if not user:
        raise NotFoundError("User not found")
    return user


def set_active(db: Database, user_id: str, is_active: bool) -> dict:
    if not validate_object_id(user_id):
        raise NotFoundError("User not found")
    user = db[USERS].find_one_and_update(
        {"_id": ObjectId(user_id)},
        {"$set": {"is_active": is_active, "updated_at": datetime.utcnow()}},
        projection=PRIVATE_FIELDS,
        return_document=ReturnDocument.AFTER,
    )
    if not user:
        raise NotFoundError("User not found")
    logger.info(f"User {user_id} {'activated' if is_active else 'deactivated'}")
    return user
