# backend/app/services/oauth_service.py
# Google OAuth client: builds the consent URL and turns a callback into a profile

import logging
from typing import Optional

import requests
from oauthlib.oauth2 import OAuth2Error, WebApplicationClient

from app.config import get_settings

logger = logging.getLogger(__name__)

GOOGLE_DISCOVERY_URL = "https://accounts.google.com/.well-known/openid-configuration"
REQUEST_TIMEOUT = 10


class OAuthError(Exception):
    """Raised when the provider handshake cannot be completed."""


def _client() -> WebApplicationClient:
    settings = get_settings()
    if not settings.GOOGLE_CLIENT_ID or not settings.GOOGLE_CLIENT_SECRET:
        raise OAuthError("Google OAuth is not configured")
    return WebApplicationClient(settings.GOOGLE_CLIENT_ID)


def _provider_config() -> dict:
    try:
        response = requests.get(GOOGLE_DISCOVERY_URL, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        raise OAuthError(f"Could not load Google discovery document: {e}")


def get_authorization_url(state: Optional[str] = None) -> str:
    """URL of the Google consent screen for the profile and email scopes."""
    client = _client()
    endpoint = _provider_config()["authorization_endpoint"]
    return client.prepare_request_uri(
        endpoint,
        redirect_uri=get_settings().GOOGLE_REDIRECT_URI,
        scope=["openid", "email", "profile"],
        state=state,
    )


def fetch_google_profile(code: str) -> dict:
    """
    Exchange an authorization code for the user's Google profile.
    The returned dict carries at least "sub" and "email".
    """
    settings = get_settings()
    client = _client()
    config = _provider_config()

    try:
        token_url, headers, body = client.prepare_token_request(
            config["token_endpoint"],
            redirect_url=settings.GOOGLE_REDIRECT_URI,
            code=code,
        )
        token_response = requests.post(
            token_url,
            headers=headers,
            data=body,
            auth=(settings.GOOGLE_CLIENT_ID, settings.GOOGLE_CLIENT_SECRET),
            timeout=REQUEST_TIMEOUT,
        )
        token_response.raise_for_status()
        client.parse_request_body_response(token_response.text)

        uri, headers, body = client.add_token(config["userinfo_endpoint"])
        userinfo_response = requests.get(uri, headers=headers, data=body, timeout=REQUEST_TIMEOUT)
        userinfo_response.raise_for_status()
        profile = userinfo_response.json()
    except (requests.exceptions.RequestException, OAuth2Error) as e:
        raise OAuthError(f"Google token exchange failed: {e}")

    if not profile.get("email_verified"):
        raise OAuthError("Google account email is not verified")
    if not profile.get("sub") or not profile.get("email"):
        raise OAuthError("Google profile is missing an id or email")

    logger.info(f"Fetched Google profile for {profile['email']}")
    return profile
