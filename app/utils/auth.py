# backend/app/utils/auth.py
# Authentication utilities for JWT handling, password hashing and OTP codes

import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

from bson import ObjectId
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from app.config import get_settings
from app.exceptions import DuplicateEmailError, ForbiddenError, UnauthorizedError
from app.models.user import TokenData, UserResponse
from app.services.email_service import generate_otp
from app.utils.constants import USERS, UserRole
from app.utils.db_setup import get_db
from app.utils.validators import validate_object_id

logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)

# HTTP Bearer for token extraction; missing credentials are reported as 401 below
security = HTTPBearer(auto_error=False)

TOKEN_COOKIE = "token"

# Each purpose owns its own (code hash, expiry, failed attempts) fields so a reset never clobbers a pending verification
EMAIL_VERIFICATION = "email_verification"
PASSWORD_RESET = "password_reset"
OTP_FIELDS: Dict[str, Tuple[str, str, str]] = {
    EMAIL_VERIFICATION: ("email_verification_code", "email_verification_expire", "email_verification_attempts"),
    PASSWORD_RESET: ("password_reset_code", "password_reset_expire", "password_reset_attempts"),
}


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its hash. OAuth-only accounts have no hash."""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def hash_code(code: str) -> str:
    """OTP codes are stored as SHA-256 digests, never in clear text."""
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token whose subject is the user id."""
    settings = get_settings()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {"sub": str(user_id), "exp": datetime.utcnow() + expires_delta}
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> TokenData:
    """Verify and decode a JWT token."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise UnauthorizedError()

    user_id = payload.get("sub")
    if not validate_object_id(user_id):
        raise UnauthorizedError()
    return TokenData(user_id=user_id)


def get_user_by_email(db: Database, email: str) -> Optional[dict]:
    """Get user from database by email."""
    return db[USERS].find_one({"email": email.lower()})


def get_user_by_id(db: Database, user_id) -> Optional[dict]:
    """Get user from database by id. Malformed ids simply match nothing."""
    if isinstance(user_id, str):
        if not validate_object_id(user_id):
            return None
        user_id = ObjectId(user_id)
    return db[USERS].find_one({"_id": user_id})


def create_user_in_db(db: Database, user_data: dict) -> dict:
    """Create a new user in the database and return the stored document."""
    now = datetime.utcnow()
    document = {
        "role": UserRole.USER.value,
        "profile_image": None,
        "about": None,
        "is_email_verified": False,
        "is_active": True,
        "has_completed_onboarding": False,
        "skipped_corporate_info": False,
        "has_completed_kyc": False,
        "has_completed_vehicle_registration": False,
        "last_login": None,
        **user_data,
        "email": user_data["email"].lower(),
        "created_at": now,
        "updated_at": now,
    }
    if not document.get("password") and not document.get("google_id"):
        raise ValueError("A password is required unless the account is linked to Google")

    try:
        result = db[USERS].insert_one(document)
    except DuplicateKeyError:
        logger.warning(f"Attempted to create duplicate user with email: {document['email']}")
        raise DuplicateEmailError()

    document["_id"] = result.inserted_id
    logger.info(f"Created new user with ID: {result.inserted_id}")
    return document


def issue_code(db: Database, user_id: ObjectId, purpose: str) -> str:
    """Generate a fresh OTP for the given purpose, store its hash and return the clear code."""
    code_field, expire_field, attempts_field = OTP_FIELDS[purpose]
    code = generate_otp()
    expires_at = datetime.utcnow() + timedelta(minutes=get_settings().OTP_EXPIRE_MINUTES)
    db[USERS].update_one(
        {"_id": user_id},
        {
            "$set": {
                code_field: hash_code(code),
                expire_field: expires_at,
                attempts_field: 0,
                "updated_at": datetime.utcnow(),
            }
        },
    )
    logger.info(f"Issued {purpose} code for user {user_id}")
    return code


def find_user_by_code(db: Database, email: str, code: str, purpose: str) -> Optional[dict]:
    """
    Return the user whose unexpired code for this purpose matches, else None.
    Every check spends one of OTP_MAX_ATTEMPTS before the comparison; a correct
    code gives its attempt back, and the wrong guess that uses up the last one
    withdraws the code.
    """
    code_field, expire_field, attempts_field = OTP_FIELDS[purpose]
    max_attempts = get_settings().OTP_MAX_ATTEMPTS
    user = db[USERS].find_one_and_update(
        {
            "email": email.lower(),
            code_field: {"$exists": True},
            expire_field: {"$gt": datetime.utcnow()},
            attempts_field: {"$not": {"$gte": max_attempts}},
        },
        {"$inc": {attempts_field: 1}},
        return_document=ReturnDocument.AFTER,
    )
    if not user:
        return None

    if secrets.compare_digest(user[code_field], hash_code(code)):
        db[USERS].update_one({"_id": user["_id"]}, {"$inc": {attempts_field: -1}})
        return user

    if user.get(attempts_field, 0) >= max_attempts:
        logger.warning(f"Too many wrong {purpose} codes for user {user['_id']}, code withdrawn")
        clear_code(db, user["_id"], purpose)
    return None


def clear_code(db: Database, user_id: ObjectId, purpose: str, extra: Optional[dict] = None):
    """Remove the code for one purpose, optionally applying other updates in the same write."""
    code_field, expire_field, attempts_field = OTP_FIELDS[purpose]
    update = {
        "$unset": {code_field: "", expire_field: "", attempts_field: ""},
        "$set": {"updated_at": datetime.utcnow()},
    }
    if extra:
        update["$set"].update(extra)
    db[USERS].update_one({"_id": user_id}, update)


def update_last_login(db: Database, user: dict) -> dict:
    now = datetime.utcnow()
    db[USERS].update_one({"_id": user["_id"]}, {"$set": {"last_login": now}})
    user["last_login"] = now
    return user


def authenticate_user(db: Database, email: str, password: str) -> Optional[dict]:
    """Authenticate user with email and password."""
    user = get_user_by_email(db, email)
    if not user:
        return None
    if not verify_password(password, user.get("password")):
        return None
    return user


def find_or_create_oauth_user(db: Database, profile: dict) -> dict:
    """
    Link a Google profile to an account.
    Lookup order: existing google_id, then matching email (which gets linked and
    marked verified), else a new verified account without a password.
    """
    user = db[USERS].find_one({"google_id": profile["sub"]})
    if user:
        return user

    email = profile["email"].lower()
    user = get_user_by_email(db, email)
    if user:
        updates = {"google_id": profile["sub"], "is_email_verified": True, "updated_at": datetime.utcnow()}
        if not user.get("profile_image") and profile.get("picture"):
            updates["profile_image"] = profile["picture"]
        db[USERS].update_one({"_id": user["_id"]}, {"$set": updates})
        user.update(updates)
        logger.info(f"Linked Google account to existing user {user['_id']}")
        return user

    return create_user_in_db(
        db,
        {
            "google_id": profile["sub"],
            "full_name": profile.get("name") or email.split("@")[0],
            "email": email,
            "profile_image": profile.get("picture"),
            "is_email_verified": True,
        },
    )


def to_user_response(user: dict) -> UserResponse:
    return UserResponse.model_validate(user)


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Database = Depends(get_db),
) -> UserResponse:
    """Resolve the bearer token (or token cookie) to an active user."""
    token = credentials.credentials if credentials else request.cookies.get(TOKEN_COOKIE)
    if not token:
        raise UnauthorizedError()

    token_data = verify_token(token)
    user = get_user_by_id(db, token_data.user_id)
    if user is None:
        raise UnauthorizedError("No user found with this token")
    if not user.get("is_active", True):
        raise UnauthorizedError("User account is deactivated")

    return to_user_response(user)


def require_roles(*roles: UserRole):
    """Dependency factory gating a route to the given roles."""
    allowed = {r.value if isinstance(r, UserRole) else r for r in roles}

    def checker(current_user: UserResponse = Depends(get_current_user)) -> UserResponse:
        if current_user.role.value not in allowed:
            logger.warning(f"User {current_user.id} with role {current_user.role.value} denied access")
            raise ForbiddenError(current_user.role.value)
        return current_user

    return checker
