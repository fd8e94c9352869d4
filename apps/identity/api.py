"""
Identity API endpoints with JWT authentication.

Provides login, logout, token refresh, and user management endpoints.
Uses JWT tokens in httpOnly cookies for stateless authentication.
"""
import os
from typing import List, Optional
from uuid import UUID
from ninja import Router, Schema
from ninja.errors import HttpError
from django.conf import settings
from django.contrib.auth import authenticate, logout as session_logout, update_session_auth_hash
from django.contrib.auth.signals import user_logged_in, user_logged_out
from django.http import HttpRequest, HttpResponse

from .decorators import get_actor, get_current_user, has_permission, require_auth
from .dtos import ProfileUpdate, RoleOut, UserCreate, UserOut, UserUpdate
from .jwt_auth import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    create_access_token,
    create_token_pair,
    decode_token,
    get_access_token_cookie_settings,
    get_refresh_token_cookie_settings,
)
from .models import User
from .permissions import Permissions
from . import services

router = Router(tags=["Identity"])


# =============================================================================
# Schemas
# =============================================================================

class LoginSchema(Schema):
    username: str
    password: str


class TokenResponse(Schema):
    success: bool
    user: Optional[UserOut] = None
    message: Optional[str] = None


def is_production() -> bool:
    """Check if running in production (Lambda or DEBUG=False)."""
    return bool(os.getenv('AWS_LAMBDA_FUNCTION_NAME')) or not settings.DEBUG


def _json_response(payload: TokenResponse, status: int = 200) -> HttpResponse:
    return HttpResponse(payload.model_dump_json(), content_type='application/json', status=status)


# =============================================================================
# Auth Endpoints
# =============================================================================

@router.post("/auth/login", response=TokenResponse, auth=None)
def login_user(request: HttpRequest, payload: LoginSchema):
    """
    Authenticate user and set JWT tokens in httpOnly cookies.
    """
    user = authenticate(request, username=payload.username, password=payload.password)

    # ModelBackend already refuses inactive users
    if user is None:
        raise HttpError(401, "Invalid username or password")

    access_token, refresh_token = create_token_pair(user.id, user.role_name)

    # Stamps last_login and writes the login audit entry
    user_logged_in.send(sender=user.__class__, request=request, user=user)

    response = _json_response(TokenResponse(success=True, user=services.get_user_dto(user.id)))
    prod = is_production()
    response.set_cookie(ACCESS_COOKIE, access_token, **get_access_token_cookie_settings(prod))
    response.set_cookie(REFRESH_COOKIE, refresh_token, **get_refresh_token_cookie_settings(prod))
    return response


@router.post("/auth/logout", response=TokenResponse, auth=None)
def logout_user(request: HttpRequest):
    """Clear authentication cookies and end any Django session."""
    if request.user.is_authenticated:
        session_logout(request)
    else:
        user = get_current_user(request)
        if user:
            user_logged_out.send(sender=user.__class__, request=request, user=user)

    response = _json_response(TokenResponse(success=True, message="Logged out"))
    response.delete_cookie(ACCESS_COOKIE, path='/')
    response.delete_cookie(REFRESH_COOKIE, path='/')
    return response


@router.post("/auth/refresh", response=TokenResponse, auth=None)
def refresh_token(request: HttpRequest):
    """Issue a new access token from a valid refresh token."""
    refresh_token_value = request.COOKIES.get(REFRESH_COOKIE)
    if not refresh_token_value:
        raise HttpError(401, "No refresh token")

    payload = decode_token(refresh_token_value, expected_type='refresh')
    if not payload:
        raise HttpError(401, "Invalid refresh token")

    try:
        user = User.objects.select_related('role').get(id=UUID(payload['sub']), is_active=True)
    except (KeyError, ValueError, User.DoesNotExist):
        raise HttpError(401, "Invalid refresh token")

    response = _json_response(TokenResponse(success=True, user=services.get_user_dto(user.id)))
    response.set_cookie(
        ACCESS_COOKIE,
        create_access_token(user.id, user.role_name),
        **get_access_token_cookie_settings(is_production()),
    )
    return response


@router.get("/auth/me", response=UserOut, auth=None)
def get_me(request: HttpRequest):
    """Get current authenticated user's profile."""
    user = require_auth(request)
    return services.get_user_dto(user.id)


@router.put("/auth/me", response=UserOut, auth=None)
def update_me(request: HttpRequest, payload: ProfileUpdate):
    """Edit your own profile. Needs no user management permission."""
    profile = services.update_profile(payload, actor=get_actor(request))
    if payload.password and request.user.is_authenticated:
        # Keep the current session valid after a password change
        request.user.refresh_from_db()
        update_session_auth_hash(request, request.user)
    return profile


# =============================================================================
# User Management Endpoints
# =============================================================================

@router.get("/users", response=List[UserOut], auth=None)
@has_permission(Permissions.USERS_VIEW)
def list_users(
    request: HttpRequest,
    search: Optional[str] = None,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
):
    return services.list_users(search=search, role=role, is_active=is_active)


@router.get("/users/{user_id}", response=UserOut, auth=None)
@has_permission(Permissions.USERS_VIEW)
def get_user(request: HttpRequest, user_id: UUID):
    user = services.get_user_dto(user_id)
    if not user:
        raise HttpError(404, "User not found")
    return user


@router.post("/users", response={201: UserOut}, auth=None)
@has_permission(Permissions.USERS_CREATE)
def create_user(request: HttpRequest, payload: UserCreate):
    return 201, services.create_user(payload, actor=get_actor(request))


@router.put("/users/{user_id}", response=UserOut, auth=None)
@has_permission(Permissions.USERS_EDIT)
def update_user(request: HttpRequest, user_id: UUID, payload: UserUpdate):
    return services.update_user(user_id, payload, actor=get_actor(request))


@router.delete("/users/{user_id}", response={204: None}, auth=None)
@has_permission(Permissions.USERS_DELETE)
def delete_user(request: HttpRequest, user_id: UUID):
    """Soft delete (deactivate) a user."""
    services.deactivate_user(user_id, actor=get_actor(request))
    return 204, None


@router.get("/roles", response=List[RoleOut], auth=None)
@has_permission(Permissions.USERS_VIEW)
def list_roles(request: HttpRequest):
    return [
        RoleOut(
            id=role.id,
            name=role.name,
            description=role.description,
            permissions=sorted(p.name for p in role.permissions.all()),
        )
        for role in services.list_roles()
    ]
