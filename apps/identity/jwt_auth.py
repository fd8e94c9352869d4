"""
JWT Authentication utilities for HMS.

Provides token generation, validation, and cookie management
for stateless authentication of API clients.
"""
import os
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from uuid import UUID
from django.conf import settings


JWT_SECRET = os.getenv('JWT_SECRET', settings.SECRET_KEY)
JWT_ALGORITHM = 'HS256'
ACCESS_TOKEN_EXPIRE_MINUTES = 15
REFRESH_TOKEN_EXPIRE_DAYS = 7

ACCESS_COOKIE = 'access_token'
REFRESH_COOKIE = 'refresh_token'


def _encode(user_id: UUID, token_type: str, lifetime: timedelta, **claims) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        'sub': str(user_id),
        'iat': now,
        'exp': now + lifetime,
        'type': token_type,
        **claims,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def create_access_token(user_id: UUID, role: Optional[str] = None) -> str:
    """
    Create a short-lived access token (15 minutes).

    The role claim is informational only; permissions are always
    resolved from the database on each request.
    """
    return _encode(
        user_id,
        'access',
        timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
        role=role,
    )


def create_refresh_token(user_id: UUID) -> str:
    """Create a long-lived refresh token (7 days)."""
    return _encode(user_id, 'refresh', timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS))


def create_token_pair(user_id: UUID, role: Optional[str] = None) -> Tuple[str, str]:
    """
    Returns:
        (access_token, refresh_token)
    """
    return create_access_token(user_id, role), create_refresh_token(user_id)


def decode_token(token: str, expected_type: Optional[str] = None) -> Optional[dict]:
    """
    Decode and validate a JWT token.

    Returns the payload, or None when the token is invalid, expired or
    of the wrong type.
    """
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None

    if expected_type and payload.get('type') != expected_type:
        return None
    return payload


def get_user_id_from_token(token: str, expected_type: str = 'access') -> Optional[UUID]:
    payload = decode_token(token, expected_type)
    if not payload or 'sub' not in payload:
        return None
    try:
        return UUID(payload['sub'])
    except ValueError:
        return None


def get_cookie_settings(is_production: bool = False, max_age: Optional[int] = None) -> dict:
    """
    Cookie settings: httpOnly, SameSite=Lax, Secure outside development.
    """
    cookie = {
        'httponly': True,
        'secure': is_production,
        'samesite': 'Lax',
        'path': '/',
    }
    if max_age is not None:
        cookie['max_age'] = max_age
    return cookie


def get_access_token_cookie_settings(is_production: bool = False) -> dict:
    return get_cookie_settings(is_production, ACCESS_TOKEN_EXPIRE_MINUTES * 60)


def get_refresh_token_cookie_settings(is_production: bool = False) -> dict:
    return get_cookie_settings(is_production, REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60)
