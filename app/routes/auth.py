# backend/app/routes/auth.py
# Authentication routes for registration, email verification, login and password reset

import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response, status
from fastapi.responses import RedirectResponse
from pymongo.database import Database

from app.config import get_settings
from app.exceptions import BadRequestError, NotFoundError, ServerError, UnauthorizedError
from app.models.user import (
    CodeVerification,
    EmailRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UpdatePasswordRequest,
    UserResponse,
)
from app.services.email_service import send_password_reset_email, send_verification_code_email
from app.services.oauth_service import OAuthError, fetch_google_profile, get_authorization_url
from app.utils.auth import (
    EMAIL_VERIFICATION,
    PASSWORD_RESET,
    TOKEN_COOKIE,
    authenticate_user,
    clear_code,
    create_access_token,
    create_user_in_db,
    find_or_create_oauth_user,
    find_user_by_code,
    get_current_user,
    get_password_hash,
    get_user_by_email,
    get_user_by_id,
    issue_code,
    to_user_response,
    update_last_login,
    verify_password,
)
from app.utils.constants import USERS
from app.utils.db_setup import get_db

logger = logging.getLogger(__name__)

router = APIRouter()

OAUTH_STATE_COOKIE = "oauth_state"
OAUTH_STATE_MAX_AGE = 10 * 60


def user_json(user: dict) -> dict:
    return to_user_response(user).model_dump(by_alias=True, mode="json")


def token_response(response: Response, user: dict, message: str) -> dict:
    """Issue a token for the user, mirror it into an httpOnly cookie and build the body."""
    settings = get_settings()
    token = create_access_token(str(user["_id"]))
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="lax",
    )
    return {"success": True, "message": message, "token": token, "user": user_json(user)}


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest, db: Database = Depends(get_db)):
    """Create an account and email a verification code."""
    logger.info(f"Registration attempt for email: {request.email}")
    try:
        if get_user_by_email(db, request.email):
            raise BadRequestError("User already exists with this email address")

        user = create_user_in_db(
            db,
            {
                "full_name": request.full_name,
                "email": request.email,
                "password": get_password_hash(request.password),
            },
        )
        code = issue_code(db, user["_id"], EMAIL_VERIFICATION)
        email_sent = send_verification_code_email(user["email"], code)
        if not email_sent:
            logger.warning(f"Verification email could not be sent to {user['email']}")

        message = (
            "Registration successful. Please check your email for the verification code."
            if email_sent
            else "Registration successful, but the verification email could not be sent. Please request a new code."
        )
        return {"success": True, "message": message, "user": user_json(user), "emailSent": email_sent}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error during registration: {str(e)}")
        raise ServerError("Registration failed")


@router.post("/verify-email")
def verify_email(request: CodeVerification, response: Response, db: Database = Depends(get_db)):
    logger.info(f"Email verification attempt for: {request.email}")
    try:
        user = find_user_by_code(db, request.email, request.code, EMAIL_VERIFICATION)
        if not user:
            raise BadRequestError("Invalid or expired verification code")

        clear_code(db, user["_id"], EMAIL_VERIFICATION, {"is_email_verified": True})
        user["is_email_verified"] = True
        update_last_login(db, user)

        logger.info(f"Email verified for user {user['_id']}")
        return token_response(response, user, "Email verified successfully")

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error during email verification: {str(e)}")
        raise ServerError("Email verification failed")


@router.post("/resend-verification")
def resend_verification(request: EmailRequest, db: Database = Depends(get_db)):
    logger.info(f"Resend verification request for: {request.email}")
    try:
        user = get_user_by_email(db, request.email)
        if not user:
            raise NotFoundError("No user found with this email address")
        if user.get("is_email_verified"):
            raise BadRequestError("Email is already verified")

        code = issue_code(db, user["_id"], EMAIL_VERIFICATION)
        if not send_verification_code_email(user["email"], code, welcome=False):
            raise ServerError("Verification email could not be sent")

        return {"success": True, "message": "Verification code sent"}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error resending verification code: {str(e)}")
        raise ServerError("Failed to resend verification code")


@router.post("/login")
def login(request: LoginRequest, response: Response, db: Database = Depends(get_db)):
    """Authenticate with email and password."""
    logger.info(f"Login attempt for email: {request.email}")
    try:
        user = authenticate_user(db, request.email, request.password)
        if not user:
            raise UnauthorizedError("Invalid credentials")
        if not user.get("is_active", True):
            raise UnauthorizedError("User account is deactivated")
        if not user.get("is_email_verified"):
            raise UnauthorizedError(
                "Please verify your email address before logging in",
                requiresEmailVerification=True,
            )

        update_last_login(db, user)
        logger.info(f"User logged in successfully: {request.email}")
        return token_response(response, user, "Login successful")

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error during login: {str(e)}")
        raise ServerError("Login failed")


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(TOKEN_COOKIE)
    return {"success": True, "message": "Logged out successfully"}


@router.post("/forgot-password")
def forgot_password(request: EmailRequest, db: Database = Depends(get_db)):
    """Issue a password reset code. The code is withdrawn again if it cannot be emailed."""
    logger.info(f"Password reset requested for: {request.email}")
    try:
        user = get_user_by_email(db, request.email)
        if not user:
            raise NotFoundError("No user found with this email address")

        code = issue_code(db, user["_id"], PASSWORD_RESET)
        if not send_password_reset_email(user["email"], code):
            clear_code(db, user["_id"], PASSWORD_RESET)
            raise ServerError("Email could not be sent")

        return {"success": True, "message": "Password reset code sent to your email"}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error during forgot password: {str(e)}")
        raise ServerError("Failed to process password reset request")


@router.post("/verify-reset-code")
def verify_reset_code(request: CodeVerification, db: Database = Depends(get_db)):
    try:
        if not find_user_by_code(db, request.email, request.code, PASSWORD_RESET):
            raise BadRequestError("Invalid or expired reset code")
        return {"success": True, "message": "Reset code verified"}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error verifying reset code: {str(e)}")
        raise ServerError("Failed to verify reset code")


@router.post("/reset-password")
def reset_password(request: ResetPasswordRequest, response: Response, db: Database = Depends(get_db)):
    logger.info(f"Password reset attempt for: {request.email}")
    try:
        user = find_user_by_code(db, request.email, request.code, PASSWORD_RESET)
        if not user:
            raise BadRequestError("Invalid or expired reset code")

        clear_code(db, user["_id"], PASSWORD_RESET, {"password": get_password_hash(request.password)})
        update_last_login(db, user)

        logger.info(f"Password reset for user {user['_id']}")
        return token_response(response, user, "Password reset successful")

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error during password reset: {str(e)}")
        raise ServerError("Password reset failed")


def _oauth_redirect(url: str) -> RedirectResponse:
    """Redirect back to the frontend; the one-time state cookie is spent either way."""
    response = RedirectResponse(url)
    response.delete_cookie(OAUTH_STATE_COOKIE)
    return response


@router.get("/google")
def google_login():
    """Redirect to the Google consent screen, pinning the state to this browser."""
    state = secrets.token_urlsafe(16)
    try:
        response = RedirectResponse(get_authorization_url(state=state))
    except OAuthError as e:
        logger.error(f"Google OAuth unavailable: {str(e)}")
        return RedirectResponse(f"{get_settings().FRONTEND_URL}/auth/error")

    response.set_cookie(
        OAUTH_STATE_COOKIE,
        state,
        max_age=OAUTH_STATE_MAX_AGE,
        httponly=True,
        secure=get_settings().ENVIRONMENT == "production",
        samesite="lax",
    )
    return response


@router.get("/google/callback")
def google_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    oauth_state: Optional[str] = Cookie(None),
    db: Database = Depends(get_db),
):
    frontend_url = get_settings().FRONTEND_URL
    if not code:
        return _oauth_redirect(f"{frontend_url}/auth/error")
    if not state or not oauth_state or not secrets.compare_digest(state.encode(), oauth_state.encode()):
        logger.warning("Google callback rejected: state does not match the issued one")
        return _oauth_redirect(f"{frontend_url}/auth/error")

    try:
        profile = fetch_google_profile(code)
        user = find_or_create_oauth_user(db, profile)
        if not user.get("is_active", True):
            logger.warning(f"Deactivated user {user['_id']} attempted Google login")
            return _oauth_redirect(f"{frontend_url}/auth/error")

        update_last_login(db, user)
        token = create_access_token(str(user["_id"]))
        logger.info(f"Google login for user {user['_id']}")
        return _oauth_redirect(f"{frontend_url}/auth/success?token={token}")

    except OAuthError as e:
        logger.warning(f"Google OAuth callback rejected: {str(e)}")
        return _oauth_redirect(f"{frontend_url}/auth/error")
    except Exception as e:
        logger.error(f"Error during Google callback: {str(e)}")
        return _oauth_redirect(f"{frontend_url}/auth/error")


@router.get("/me")
def get_me(current_user: UserResponse = Depends(get_current_user)):
    """Get current user information."""
    logger.info(f"User profile requested: {current_user.email}")
    return {"success": True, "user": current_user.model_dump(by_alias=True, mode="json")}


@router.put("/update-password")
def update_password(
    request: UpdatePasswordRequest,
    response: Response,
    current_user: UserResponse = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    try:
        user = get_user_by_id(db, current_user.id)
        if not verify_password(request.current_password, user.get("password")):
            raise UnauthorizedError("Password is incorrect")

        db[USERS].update_one(
            {"_id": user["_id"]}, {"$set": {"password": get_password_hash(request.new_password)}}
        )
        logger.info(f"Password updated for user {user['_id']}")
        return token_response(response, user, "Password updated successfully")

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating password: {str(e)}")
        raise ServerError("Failed to update password")
