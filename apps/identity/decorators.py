from functools import wraps
from typing import Callable, Optional
from ninja.errors import HttpError
from django.http import HttpRequest

from .context import Actor
from .jwt_auth import ACCESS_COOKIE, get_user_id_from_token
from .models import User


def get_current_user(request: HttpRequest) -> Optional[User]:
    """
    Resolve the authenticated user for a request.

    Django session login (admin, tests) wins; otherwise the JWT access
    token cookie is used. Deactivated users are never returned.
    """
    session_user = getattr(request, 'user', None)
    if session_user is not None and session_user.is_authenticated:
        return session_user if session_user.is_active else None

    access_token = request.COOKIES.get(ACCESS_COOKIE)
    if not access_token:
        return None

    user_id = get_user_id_from_token(access_token)
    if not user_id:
        return None

    try:
        return User.objects.select_related('role').get(id=user_id, is_active=True)
    except User.DoesNotExist:
        return None


def require_auth(request: HttpRequest) -> User:
    """Require authentication. Raises 401 if not authenticated."""
    user = get_current_user(request)
    if not user:
        raise HttpError(401, "Authentication required")
    return user


def get_actor(request: HttpRequest) -> Actor:
    """Actor for the current request, built once and cached on it."""
    actor = getattr(request, 'actor', None)
    if actor is None:
        actor = Actor.from_user(require_auth(request), request)
        request.actor = actor
    return actor


def has_permission(required_perm: str):
    """
    Decorator to enforce a specific permission on a Django Ninja endpoint.

    Usage:
        @router.get("/some-path", auth=None)
        @has_permission(Permissions.SOME_PERM)
        def my_view(request):
            actor = get_actor(request)
            ...
    """
    def decorator(view_func: Callable):
        @wraps(view_func)
        def wrapper(request: HttpRequest, *args, **kwargs):
            actor = get_actor(request)
            if not actor.has_permission(required_perm):
                raise HttpError(403, f"Permission denied: {required_perm}")
            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator
