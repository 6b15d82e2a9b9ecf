"""Authentication endpoints."""

from __future__ import annotations

import logging
import os
import secrets
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Cookie, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import (
    access_token_expires_at,
    create_access_token,
    create_refresh_token,
    get_current_user,
    get_current_user_optional,
    revoke_refresh_token,
    verify_refresh_token,
)
from ..deps import get_db
from ..errors import Conflict, InternalError, Unauthenticated, ValidationError
from ..services.auth_identities import (
    GOOGLE_PROVIDER,
    PASSWORD_PROVIDER,
    create_oauth_identity,
    create_password_identity,
    find_identity_by_oauth,
    find_identity_by_password,
)
from ..services.email_verification import mark_email_verified, send_verification_email_for_user
from ..services.password_reset import reset_password as apply_password_reset
from ..services.password_reset import send_reset_email_for_user
from ..settings import BASE_URL
from ..validation import require_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

# Google OAuth Configuration
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_OAUTH_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_OAUTH_CLIENT_SECRET")
GOOGLE_REDIRECT_URI = os.getenv("GOOGLE_REDIRECT_URI", "http://localhost/api/auth/google/callback")
GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

OAUTH_STATE_COOKIE = "bold_oauth_state"


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _has_password_identity(db: Session, user: models.User) -> bool:
    return (
        db.query(models.AuthIdentity)
        .filter(
            models.AuthIdentity.user_id == user.id,
            models.AuthIdentity.provider == PASSWORD_PROVIDER,
        )
        .first()
        is not None
    )


def _issue_tokens(user: models.User, db: Session) -> schemas.OAuthTokens:
    return schemas.OAuthTokens(
        token=create_access_token(user),
        refresh_token=create_refresh_token(user, db),
        user_id=user.id,
        role=user.role,
        expires_at=access_token_expires_at(),
    )


@router.post(
    "/register",
    response_model=schemas.RegisterResponse,
    status_code=status.HTTP_201_CREATED,
)
def register(
    payload: schemas.RegisterRequest,
    db: Session = Depends(get_db),
) -> schemas.RegisterResponse:
    """
    Register a new member with name, email and password.

    - New accounts start with the member role
    - A verification email is sent; password login requires a verified email
    """
    email = _normalize_email(payload.email)
    if "@" not in email:
        raise ValidationError("Invalid email address")
    name = require_text(payload.name, "Name")

    existing_user = db.query(models.User).filter(models.User.email == email).first()
    if existing_user:
        raise Conflict("An account with this email already exists")

    user = models.User(
        name=name,
        email=email,
        email_verified=False,
        role=models.ROLE_MEMBER,
    )
    db.add(user)
    try:
        db.flush()
        create_password_identity(db=db, user_id=user.id, email=email, password=payload.password)
        db.commit()
        db.refresh(user)
    except IntegrityError as e:
        db.rollback()
        logger.info(f"Registration conflict for {email}: {e.orig}")
        raise Conflict("An account with this email already exists") from None

    logger.info(f"Registered user {user.id} ({email})")

    email_sent = send_verification_email_for_user(db, user)
    if not email_sent:
        logger.warning(f"Failed to send verification email to user {user.id}")

    return schemas.RegisterResponse(
        message="Please check your email to verify your account",
        user_id=user.id,
        email=email,
    )


@router.post(
    "/login",
    response_model=schemas.OAuthTokens,
)
def login(
    payload: schemas.LoginRequest,
    db: Session = Depends(get_db),
) -> schemas.OAuthTokens:
    """
    Login with email and password.

    Requires email verification for password-based login.
    """
    identity = find_identity_by_password(db, _normalize_email(payload.email), payload.password)
    if not identity:
        raise Unauthenticated("Invalid email or password")

    user = identity.user
    if not user.email_verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Email not verified. Please check your email for verification link.",
        )

    logger.info(f"User {user.id} logged in")
    return _issue_tokens(user, db)


@router.post("/refresh", response_model=schemas.OAuthTokens)
def refresh_token(payload: schemas.RefreshTokenRequest, db: Session = Depends(get_db)) -> schemas.OAuthTokens:
    """
    Refresh access token using refresh token.

    The access token carries the role as it is now, not as it was when the
    refresh token was issued.
    """
    user = verify_refresh_token(payload.refresh_token, db)
    if not user:
        raise Unauthenticated("Invalid or expired refresh token")

    return schemas.OAuthTokens(
        token=create_access_token(user),
        refresh_token=payload.refresh_token,
        user_id=user.id,
        role=user.role,
        expires_at=access_token_expires_at(),
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    payload: schemas.RefreshTokenRequest,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> None:
    """
    Revoke a refresh token.

    Works without a valid access token so an expired session can still log out.
    """
    revoke_refresh_token(payload.refresh_token, db)
    if current_user:
        logger.info(f"User {current_user.id} logged out")
    else:
        logger.info("Refresh token revoked without an access token")


@router.get("/me", response_model=schemas.MeResponse)
def get_me(current_user: models.User = Depends(get_current_user)) -> schemas.MeResponse:
    """Get current user profile, including the role as stored right now."""
    return schemas.MeResponse(user=schemas.UserFull.model_validate(current_user))


@router.get(
    "/verify-email",
    response_model=schemas.VerifyEmailResponse,
)
def verify_email(
    token: str = Query(..., description="Email verification token"),
    db: Session = Depends(get_db),
) -> schemas.VerifyEmailResponse:
    """Verify email address using the token sent via email."""
    user = mark_email_verified(db, token)
    if not user:
        raise ValidationError("Invalid or expired verification token")

    return schemas.VerifyEmailResponse(
        message="Email verified successfully. You can now log in.",
        verified=True,
    )


@router.post(
    "/resend-verification",
    response_model=schemas.MessageResponse,
)
def resend_verification(
    payload: schemas.ResendVerificationRequest,
    db: Session = Depends(get_db),
) -> schemas.MessageResponse:
    """
    Request a new verification email for an unverified account.

    For security, always returns success to prevent email enumeration attacks.
    """
    email = _normalize_email(payload.email)
    user = db.query(models.User).filter(models.User.email == email).first()

    if user and not user.email_verified and _has_password_identity(db, user):
        send_verification_email_for_user(db, user)
    else:
        logger.info(f"Verification requested for non-existent or already verified email: {email}")

    return schemas.MessageResponse(
        message="If an unverified account exists with this email, a verification link has been sent."
    )


@router.post(
    "/forgot-password",
    response_model=schemas.MessageResponse,
)
def forgot_password(
    payload: schemas.ForgotPasswordRequest,
    db: Session = Depends(get_db),
) -> schemas.MessageResponse:
    """
    Request a password reset email.

    For security, always returns success even if email doesn't exist.
    This prevents email enumeration attacks.
    """
    email = _normalize_email(payload.email)
    user = db.query(models.User).filter(models.User.email == email).first()

    if user and _has_password_identity(db, user):
        try:
            send_reset_email_for_user(db, user)
        except ValueError as e:
            # Rate limit exceeded - still return success for security
            logger.warning(f"Password reset rate limit for {email}: {e}")
    elif user:
        logger.info(f"Password reset requested for OAuth-only user {user.id}")
    else:
        logger.info(f"Password reset requested for non-existent email: {email}")

    return schemas.MessageResponse(
        message="If an account exists with this email, a password reset link has been sent."
    )


@router.post(
    "/reset-password",
    response_model=schemas.MessageResponse,
)
def reset_password(
    payload: schemas.ResetPasswordRequest,
    db: Session = Depends(get_db),
) -> schemas.MessageResponse:
    """Reset password using a token from email."""
    user = apply_password_reset(db, payload.token, payload.new_password)
    if not user:
        raise ValidationError(
            "Invalid or expired password reset token. Please request a new password reset."
        )

    return schemas.MessageResponse(
        message="Password reset successfully. You can now log in with your new password."
    )


@router.get("/google/login")
def google_login() -> RedirectResponse:
    """Redirect to Google OAuth authorization with a CSRF state cookie."""
    if not GOOGLE_CLIENT_ID:
        raise InternalError("Google OAuth not configured")

    state = secrets.token_urlsafe(24)
    params = {
        "client_id": GOOGLE_CLIENT_ID,
        "redirect_uri": GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": "openid email profile",
        "state": state,
        "prompt": "select_account",
    }

    response = RedirectResponse(url=f"{GOOGLE_AUTHORIZE_URL}?{urlencode(params)}")
    response.set_cookie(
        OAUTH_STATE_COOKIE,
        state,
        max_age=600,
        httponly=True,
        samesite="lax",
        secure=GOOGLE_REDIRECT_URI.startswith("https://"),
    )
    return response


def _fetch_google_profile(code: str) -> dict:
    """Exchange an authorization code and fetch the OpenID profile."""
    with httpx.Client(timeout=10.0) as client:
        response = client.post(
            GOOGLE_TOKEN_URL,
            data={
                "client_id": GOOGLE_CLIENT_ID,
                "client_secret": GOOGLE_CLIENT_SECRET,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": GOOGLE_REDIRECT_URI,
            },
            headers={"Accept": "application/json"},
        )
        response.raise_for_status()
        token_response = response.json()
        if "error" in token_response:
            raise ValidationError(
                f"Google OAuth error: {token_response.get('error_description', token_response['error'])}"
            )

        profile_response = client.get(
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {token_response['access_token']}"},
        )
        profile_response.raise_for_status()
        return profile_response.json()


def _user_for_google_profile(db: Session, profile: dict) -> models.User:
    """Find the member behind a Google profile, linking or creating as needed."""
    google_user_id = str(profile["sub"])
    metadata = {"name": profile.get("name"), "picture": profile.get("picture")}

    identity = find_identity_by_oauth(db, GOOGLE_PROVIDER, google_user_id)
    if identity:
        identity.provider_metadata = metadata
        db.commit()
        return identity.user

    email = profile.get("email")
    if not email:
        raise ValidationError("Google account has no email address")
    email = _normalize_email(email)

    user = db.query(models.User).filter(models.User.email == email).first()
    if user is None:
        user = models.User(
            name=profile.get("name") or email.split("@", 1)[0],
            email=email,
            avatar_url=profile.get("picture"),
            email_verified=bool(profile.get("email_verified")),
            role=models.ROLE_MEMBER,
        )
        db.add(user)
        db.flush()
        logger.info(f"Creating user {user.id} from Google sign-in")
    elif profile.get("email_verified"):
        user.email_verified = True

    create_oauth_identity(
        db=db,
        user_id=user.id,
        provider=GOOGLE_PROVIDER,
        provider_user_id=google_user_id,
        email=email,
        provider_metadata=metadata,
    )
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Failed to link Google identity for {email}: {e}", exc_info=True)
        raise Conflict("This Google account is already linked") from None

    db.refresh(user)
    return user


@router.get("/google/callback")
def google_callback(
    request: Request,
    code: str = Query(...),
    state: str = Query(...),
    state_cookie: str | None = Cookie(None, alias=OAUTH_STATE_COOKIE),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    """
    Handle the Google OAuth callback.

    On success redirects to the frontend with the tokens in the URL fragment,
    which never reaches any server log.
    """
    if not GOOGLE_CLIENT_ID or not GOOGLE_CLIENT_SECRET:
        logger.error("Google OAuth callback failed: OAuth credentials not configured")
        raise InternalError("Google OAuth not configured")

    if not state_cookie or not secrets.compare_digest(state, state_cookie):
        logger.warning(f"Google OAuth state mismatch from {request.client.host if request.client else 'unknown'}")
        raise ValidationError("Invalid OAuth state")

    try:
        profile = _fetch_google_profile(code)
    except httpx.HTTPError as e:
        logger.error(f"HTTP error during Google OAuth flow: {e}", exc_info=True)
        raise ValidationError("Failed to authenticate with Google") from None

    user = _user_for_google_profile(db, profile)
    tokens = _issue_tokens(user, db)
    logger.info(f"User {user.id} signed in with Google")

    fragment = urlencode(
        {
            "token": tokens.token,
            "refresh_token": tokens.refresh_token,
            "user_id": tokens.user_id,
        }
    )
    response = RedirectResponse(url=f"{BASE_URL}/auth/callback#{fragment}")
    response.delete_cookie(OAUTH_STATE_COOKIE)
    return response
