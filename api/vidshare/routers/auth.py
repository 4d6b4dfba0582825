"""Authentication endpoints: local credentials and GitHub login."""

from __future__ import annotations

import logging
import secrets

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from .. import models, schemas, settings
from ..auth import get_current_user_optional
from ..deps import get_db
from ..errors import UpstreamFailure, ValidationError
from ..services import accounts, github
from ..services.rate_limit import enforce_ip_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

OAUTH_STATE_KEY = "github_oauth_state"


@router.post("/register", response_model=schemas.TokenResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: schemas.RegisterRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> schemas.TokenResponse:
    """
    Create a local account and return a token for it.

    The first accounts ever registered become administrators.
    """
    enforce_ip_rate_limit(request, "register", settings.REGISTER_RATE_LIMIT_PER_MINUTE)
    user = accounts.register(db, payload)
    return accounts.token_response(user)


@router.post("/login", response_model=schemas.TokenResponse)
def login(
    payload: schemas.LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> schemas.TokenResponse:
    enforce_ip_rate_limit(request, "login", settings.LOGIN_RATE_LIMIT_PER_MINUTE)
    user = accounts.authenticate(db, payload.email, payload.password)
    logger.info(f"User {user.id} logged in")
    return accounts.token_response(user)


@router.get("/status", response_model=schemas.AuthStatus)
def auth_status(
    current_user: models.User | None = Depends(get_current_user_optional),
) -> schemas.AuthStatus:
    """Whether the caller is signed in. Never fails."""
    if current_user is None:
        return schemas.AuthStatus(is_authenticated=False)
    return schemas.AuthStatus(is_authenticated=True, user=accounts.serialize_private(current_user))


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(request: Request) -> None:
    """Clear the login session. Bearer tokens simply expire."""
    request.session.clear()


@router.get("/github")
def github_login(request: Request) -> RedirectResponse:
    """Redirect to GitHub OAuth authorization."""
    if not github.is_configured():
        raise UpstreamFailure("GitHub OAuth not configured")

    state = secrets.token_urlsafe(24)
    request.session[OAUTH_STATE_KEY] = state
    return RedirectResponse(url=github.authorize_url(state))


@router.get("/github/callback")
def github_callback(
    request: Request,
    code: str = Query(...),
    state: str = Query(...),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    """
    Finish the GitHub login: verify state, exchange the code, link the account
    and start a session.
    """
    expected = request.session.pop(OAUTH_STATE_KEY, None)
    if not expected or not secrets.compare_digest(expected, state):
        logger.warning("GitHub callback with missing or mismatched state")
        raise ValidationError("Invalid OAuth state")

    profile = github.fetch_profile(code)
    user = accounts.link_github_account(db, profile)

    request.session["user_id"] = user.id
    logger.info(f"User {user.id} signed in with GitHub")
    return RedirectResponse(url=settings.FRONTEND_URL, status_code=status.HTTP_303_SEE_OTHER)
