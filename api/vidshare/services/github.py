"""GitHub OAuth: authorize URL, code exchange and profile lookup."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx

from .. import settings
from ..errors import UpstreamFailure, ValidationError

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
TOKEN_URL = "https://github.com/login/oauth/access_token"
API_URL = "https://api.github.com"


@dataclass
class GitHubProfile:
    github_id: str
    login: str
    email: str
    avatar_url: str | None = None
    name: str | None = None


def is_configured() -> bool:
    return bool(settings.GITHUB_CLIENT_ID and settings.GITHUB_CLIENT_SECRET)


def authorize_url(state: str) -> str:
    params = {
        "client_id": settings.GITHUB_CLIENT_ID,
        "redirect_uri": settings.GITHUB_REDIRECT_URI,
        "scope": "user:email",
        "state": state,
    }
    return f"{AUTHORIZE_URL}?{urlencode(params)}"


def pick_email(emails: list[dict]) -> str | None:
    """Primary verified email, else first verified, else None."""
    for entry in emails:
        if entry.get("primary") and entry.get("verified"):
            return entry.get("email")
    for entry in emails:
        if entry.get("verified"):
            return entry.get("email")
    return None


def fetch_profile(code: str) -> GitHubProfile:
    """Exchange an authorization code and fetch the account behind it."""
    if not is_configured():
        raise UpstreamFailure("GitHub OAuth not configured")

    try:
        with httpx.Client(timeout=15.0) as client:
            response = client.post(
                TOKEN_URL,
                data={
                    "client_id": settings.GITHUB_CLIENT_ID,
                    "client_secret": settings.GITHUB_CLIENT_SECRET,
                    "code": code,
                    "redirect_uri": settings.GITHUB_REDIRECT_URI,
                },
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            token_response = response.json()

            if "error" in token_response:
                logger.error(
                    f"GitHub OAuth error: {token_response.get('error_description', token_response['error'])}"
                )
                raise ValidationError("GitHub rejected the authorization code")

            headers = {
                "Authorization": f"Bearer {token_response['access_token']}",
                "Accept": "application/vnd.github.v3+json",
            }
            user_response = client.get(f"{API_URL}/user", headers=headers)
            user_response.raise_for_status()
            github_user = user_response.json()

            email = None
            try:
                emails_response = client.get(f"{API_URL}/user/emails", headers=headers)
                emails_response.raise_for_status()
                email = pick_email(emails_response.json())
            except httpx.HTTPError as e:
                logger.warning(f"Failed to fetch GitHub emails: {e}, continuing without email")
    except httpx.HTTPError as e:
        logger.error(f"HTTP error during GitHub OAuth flow: {e}", exc_info=True)
        raise UpstreamFailure("Failed to authenticate with GitHub")

    github_id = str(github_user["id"])
    login = github_user["login"]
    if not email:
        # Accounts need an address; GitHub's noreply alias is stable per account
        email = github_user.get("email") or f"{github_id}+{login}@users.noreply.github.com"

    logger.info(f"Fetched GitHub profile for {login}")
    return GitHubProfile(
        github_id=github_id,
        login=login,
        email=email.lower(),
        avatar_url=github_user.get("avatar_url"),
        name=github_user.get("name"),
    )
