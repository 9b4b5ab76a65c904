# backend/tests/test_auth.py
# Tests for token handling, verification codes, account linking and the auth routes

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import DuplicateKeyError

from app.config import get_settings
from app.exceptions import DuplicateEmailError, ForbiddenError, UnauthorizedError
from app.models.user import UserResponse
from app.utils.auth import (
    EMAIL_VERIFICATION,
    PASSWORD_RESET,
    create_access_token,
    create_user_in_db,
    find_or_create_oauth_user,
    find_user_by_code,
    get_password_hash,
    hash_code,
    issue_code,
    require_roles,
    verify_password,
    verify_token,
)
from app.utils.db_setup import get_db
from main import app


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_password_hashing():
    hashed = get_password_hash("Secret1")
    assert hashed != "Secret1"
    assert verify_password("Secret1", hashed)
    assert not verify_password("secret1", hashed)
    assert not verify_password("Secret1", None)


def test_token_round_trip():
    user_id = str(ObjectId())
    assert verify_token(create_access_token(user_id)).user_id == user_id


def test_expired_token_is_rejected():
    token = create_access_token(str(ObjectId()), expires_delta=timedelta(minutes=-1))
    with pytest.raises(UnauthorizedError):
        verify_token(token)


def test_garbage_token_is_rejected():
    with pytest.raises(UnauthorizedError):
        verify_token("not-a-jwt")


def test_issue_code_stores_only_the_hash(db, collections, user_id):
    code = issue_code(db, user_id, PASSWORD_RESET)

    assert len(code) == 6 and code.isdigit()
    update = collections["users"].update_one.call_args[0][1]["$set"]
    assert update["password_reset_code"] == hash_code(code)
    assert update["password_reset_expire"] > datetime.utcnow()
    assert "email_verification_code" not in update


def test_create_user_requires_password_or_google_id(db):
    with pytest.raises(ValueError):
        create_user_in_db(db, {"full_name": "No Password", "email": "np@example.com"})


def test_create_user_duplicate_email(db, collections):
    collections["users"].insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")
    with pytest.raises(DuplicateEmailError):
        create_user_in_db(db, {"full_name": "Ada", "email": "ADA@example.com", "password": "x"})


def test_oauth_links_existing_email(db, collections, user_doc):
    collections["users"].find_one.side_effect = [None, dict(user_doc)]

    user = find_or_create_oauth_user(db, {"sub": "google-123", "email": "Ada@Example.com", "name": "Ada"})

    assert user["google_id"] == "google-123"
    assert user["is_email_verified"] is True
    collections["users"].insert_one.assert_not_called()


def test_oauth_creates_verified_user(db, collections):
    collections["users"].find_one.return_value = None
    collections["users"].insert_one.return_value.inserted_id = ObjectId()

    user = find_or_create_oauth_user(db, {"sub": "google-456", "email": "new@example.com", "name": "New User"})

    assert user["is_email_verified"] is True
    assert user["google_id"] == "google-456"
    assert "password" not in user


def test_require_roles_rejects_other_roles(user_doc):
    checker = require_roles("admin")
    with pytest.raises(ForbiddenError) as excinfo:
        checker(UserResponse.model_validate(user_doc))
    assert excinfo.value.detail == "User role user is not authorized to access this route"


def test_register_succeeds_when_email_fails(client, collections, monkeypatch):
    collections["users"].find_one.return_value = None
    collections["users"].insert_one.return_value.inserted_id = ObjectId()
    monkeypatch.setattr("app.routes.auth.send_verification_code_email", lambda *args, **kwargs: False)

    response = client.post(
        "/api/auth/register",
        json={
            "fullName": "Ada Dispatcher",
            "email": "ada@example.com",
            "password": "Secret1",
            "confirmPassword": "Secret1",
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert body["emailSent"] is False
    assert body["user"]["isEmailVerified"] is False


def test_register_rejects_mismatched_passwords(client):
    response = client.post(
        "/api/auth/register",
        json={"fullName": "Ada", "email": "ada@example.com", "password": "Secret1", "confirmPassword": "Secret2"},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Validation failed"


def test_login_requires_verified_email(client, collections, user_doc):
    collections["users"].find_one.return_value = {
        **user_doc,
        "password": get_password_hash("Secret1"),
        "is_email_verified": False,
    }

    response = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "Secret1"})

    assert response.status_code == 401
    assert response.json()["requiresEmailVerification"] is True


def test_login_sets_token_cookie(client, collections, user_doc):
    collections["users"].find_one.return_value = {**user_doc, "password": get_password_hash("Secret1")}

    response = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "Secret1"})

    assert response.status_code == 200
    assert response.json()["token"]
    assert "token" in response.cookies


def test_login_with_wrong_password(client, collections, user_doc):
    collections["users"].find_one.return_value = {**user_doc, "password": get_password_hash("Secret1")}

    response = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "Wrong1"})

    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Invalid credentials"}


def test_forgot_password_withdraws_code_when_email_fails(client, collections, user_doc, monkeypatch):
    collections["users"].find_one.return_value = user_doc
    monkeypatch.setattr("app.routes.auth.send_password_reset_email", lambda *args, **kwargs: False)

    response = client.post("/api/auth/forgot-password", json={"email": "ada@example.com"})

    assert response.status_code == 500
    assert response.json()["message"] == "Email could not be sent"
    last_update = collections["users"].update_one.call_args[0][1]
    assert set(last_update["$unset"]) == {"password_reset_code", "password_reset_expire", "password_reset_attempts"}


def test_forgot_password_unknown_email(client, collections):
    collections["users"].find_one.return_value = None
    response = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
    assert response.status_code == 404


class OTPUserStore:
    """One user document behind the subset of collection calls the OTP helpers make."""

    def __init__(self, document):
        self.document = document

    def update_one(self, query, update):
        self.document.update(update.get("$set", {}))
        for field in update.get("$unset", {}):
            self.document.pop(field, None)
        for field, step in update.get("$inc", {}).items():
            self.document[field] = self.document.get(field, 0) + step

    def find_one_and_update(self, query, update, **kwargs):
        for field, condition in query.items():
            value = self.document.get(field)
            if field == "email" and value != condition:
                return None
            if condition == {"$exists": True} and field not in self.document:
                return None
            if isinstance(condition, dict) and "$gt" in condition and (value is None or value <= condition["$gt"]):
                return None
            if isinstance(condition, dict) and "$not" in condition and (value or 0) >= condition["$not"]["$gte"]:
                return None
        self.update_one(query, update)
        return dict(self.document)


@pytest.fixture
def otp_user(collections, user_doc):
    store = OTPUserStore(dict(user_doc))
    collections["users"] = store
    return store


def test_reset_code_does_not_disturb_pending_verification(db, otp_user, user_id):
    verification_code = issue_code(db, user_id, EMAIL_VERIFICATION)
    reset_code = issue_code(db, user_id, PASSWORD_RESET)

    assert find_user_by_code(db, "ada@example.com", verification_code, EMAIL_VERIFICATION) is not None
    assert find_user_by_code(db, "ada@example.com", reset_code, PASSWORD_RESET) is not None
    assert otp_user.document["email_verification_code"] == hash_code(verification_code)


def test_wrong_guesses_exhaust_the_code(db, otp_user, user_id, settings):
    code = issue_code(db, user_id, PASSWORD_RESET)
    wrong = "000000" if code != "000000" else "111111"

    for _ in range(settings.OTP_MAX_ATTEMPTS):
        assert find_user_by_code(db, "ada@example.com", wrong, PASSWORD_RESET) is None

    assert find_user_by_code(db, "ada@example.com", code, PASSWORD_RESET) is None
    assert "password_reset_code" not in otp_user.document
    assert "password_reset_attempts" not in otp_user.document


def test_correct_code_gives_its_attempt_back(db, otp_user, user_id):
    code = issue_code(db, user_id, PASSWORD_RESET)
    wrong = "000000" if code != "000000" else "111111"
    find_user_by_code(db, "ada@example.com", wrong, PASSWORD_RESET)

    assert find_user_by_code(db, "ada@example.com", code, PASSWORD_RESET) is not None
    assert otp_user.document["password_reset_attempts"] == 1


def test_reset_password_refused_after_too_many_guesses(client, db, otp_user, user_id, settings):
    code = issue_code(db, user_id, PASSWORD_RESET)
    wrong = "000000" if code != "000000" else "111111"

    for _ in range(settings.OTP_MAX_ATTEMPTS):
        response = client.post("/api/auth/verify-reset-code", json={"email": "ada@example.com", "code": wrong})
        assert response.status_code == 400

    response = client.post(
        "/api/auth/reset-password",
        json={"email": "ada@example.com", "code": code, "password": "Secret2", "confirmPassword": "Secret2"},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired reset code"


def test_google_login_pins_state_in_cookie(client, monkeypatch):
    monkeypatch.setattr(
        "app.routes.auth.get_authorization_url", lambda state: f"https://accounts.google.test/auth?state={state}"
    )

    response = client.get("/api/auth/google", follow_redirects=False)

    assert response.status_code == 307
    state = response.cookies["oauth_state"]
    assert response.headers["location"].endswith(f"state={state}")


@pytest.mark.parametrize("cookie_state", [None, "issued-state"])
def test_google_callback_rejects_unissued_state(client, monkeypatch, cookie_state):
    fetch_profile = MagicMock()
    monkeypatch.setattr("app.routes.auth.fetch_google_profile", fetch_profile)
    if cookie_state:
        client.cookies.set("oauth_state", cookie_state)

    response = client.get(
        "/api/auth/google/callback", params={"code": "attacker-code", "state": "forged"}, follow_redirects=False
    )

    assert response.headers["location"] == f"{get_settings().FRONTEND_URL}/auth/error"
    fetch_profile.assert_not_called()


def test_google_callback_with_matching_state(client, collections, user_doc, monkeypatch):
    monkeypatch.setattr(
        "app.routes.auth.fetch_google_profile",
        lambda code: {"sub": "google-123", "email": "ada@example.com", "name": "Ada"},
    )
    collections["users"].find_one.return_value = {**user_doc, "google_id": "google-123"}
    client.cookies.set("oauth_state", "issued-state")

    response = client.get(
        "/api/auth/google/callback", params={"code": "good-code", "state": "issued-state"}, follow_redirects=False
    )

    assert response.headers["location"].startswith(f"{get_settings().FRONTEND_URL}/auth/success?token=")
