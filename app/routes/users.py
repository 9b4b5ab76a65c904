# backend/app/routes/users.py
# Profile routes for the signed-in user and admin user management

import logging
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile
from pymongo.database import Database

from app.config import get_settings
from app.exceptions import ServerError
from app.models.user import ProfileUpdate, UserResponse, UserStatusUpdate
from app.services import user_service
from app.services.email_service import send_verification_code_email
from app.utils.auth import (
    EMAIL_VERIFICATION,
    TOKEN_COOKIE,
    get_current_user,
    issue_code,
    require_roles,
    to_user_response,
)
from app.utils.constants import PROFILE_IMAGE_FOLDER, UserRole
from app.utils.db_setup import get_db
from app.utils.file_handler import store_upload
from app.utils.validators import validate_image_type

logger = logging.getLogger(__name__)

router = APIRouter()

admin_only = require_roles(UserRole.ADMIN)


def _user_json(user: dict) -> dict:
    return to_user_response(user).model_dump(by_alias=True, mode="json")


@router.get("/profile")
def get_profile(current_user: UserResponse = Depends(get_current_user)):
    return {"success": True, "user": current_user.model_dump(by_alias=True, mode="json")}


@router.put("/profile")
def update_profile(
    changes: ProfileUpdate,
    current_user: UserResponse = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    logger.info(f"Profile update for user {current_user.id}")
    try:
        user = user_service.update_profile(db, ObjectId(current_user.id), changes)
        body = {"success": True, "message": "Profile updated successfully", "user": _user_json(user)}

        if user["email"] != current_user.email:
            code = issue_code(db, user["_id"], EMAIL_VERIFICATION)
            body["emailSent"] = send_verification_code_email(user["email"], code, welcome=False)
            if not body["emailSent"]:
                logger.warning(f"Verification email could not be sent to {user['email']}")
        return body
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating profile: {str(e)}")
        raise ServerError("Failed to update profile")


@router.put("/profile-image")
def upload_profile_image(
    profile_image: UploadFile = File(..., alias="profileImage"),
    current_user: UserResponse = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """Upload a new profile picture (images only)."""
    try:
        url = store_upload(
            "profileImage",
            profile_image.file.read(),
            profile_image.content_type,
            PROFILE_IMAGE_FOLDER,
            get_settings().MAX_FILE_SIZE,
            validate_image_type,
            "Profile image must be an image file",
        )
        user = user_service.set_profile_image(db, ObjectId(current_user.id), url)
        return {"success": True, "message": "Profile image updated successfully", "user": _user_json(user)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error uploading profile image: {str(e)}")
        raise ServerError("Failed to upload profile image")


@router.put("/skip-corporate-info")
def skip_corporate_info(current_user: UserResponse = Depends(get_current_user), db: Database = Depends(get_db)):
    try:
        user = user_service.skip_corporate_info(db, ObjectId(current_user.id))
        return {"success": True, "user": _user_json(user)}
    except Exception as e:
        logger.error(f"Error skipping corporate info: {str(e)}")
        raise ServerError()


@router.delete("/account")
def delete_account(
    response: Response,
    current_user: UserResponse = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """Delete the signed-in account along with its business and vehicles."""
    logger.info(f"Account deletion requested by {current_user.id}")
    try:
        user_service.delete_account(db, ObjectId(current_user.id))
        response.delete_cookie(TOKEN_COOKIE)
        return {"success": True, "message": "Account deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting account: {str(e)}")
        raise ServerError("Failed to delete account")


@router.get("")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
    status: Optional[str] = Query(None, pattern="^(active|inactive)$"),
    admin: UserResponse = Depends(admin_only),
    db: Database = Depends(get_db),
):
    logger.info(f"Admin {admin.id} listing users")
    try:
        is_active = None if status is None else status == "active"
        users, pagination = user_service.list_users(
            db, page, limit, search, role.value if role else None, is_active
        )
        return {"success": True, "users": [_user_json(u) for u in users], "pagination": pagination}
    except Exception as e:
        logger.error(f"Error listing users: {str(e)}")
        raise ServerError()


@router.get("/{user_id}")
def get_user(user_id: str, admin: UserResponse = Depends(admin_only), db: Database = Depends(get_db)):
    try:
        return {"success": True, "user": _user_json(user_service.get_user(db, user_id))}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching user {user_id}: {str(e)}")
        raise ServerError()


@router.put("/{user_id}/status")
def update_user_status(
    user_id: str,
    change: UserStatusUpdate,
    admin: UserResponse = Depends(admin_only),
    db: Database = Depends(get_db),
):
    logger.info(f"Admin {admin.id} setting user {user_id} active={change.is_active}")
    try:
        user = user_service.set_active(db, user_id, change.is_active)
        state = "activated" if change.is_active else "deactivated"
        return {"success": True, "message": f"User {state} successfully", "user": _user_json(user)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating user status: {str(e)}")
        raise ServerError()
