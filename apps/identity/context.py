"""
Explicit actor context passed into domain operations.

Services never look up the current user from ambient state; the API layer
builds an Actor from the request and hands it down. Tests build one
directly from a User.
"""
from dataclasses import dataclass, field
from typing import FrozenSet, Optional
from uuid import UUID

from apps.core.exceptions import AuthorizationError
from .permissions import Permissions, get_user_permissions


@dataclass(frozen=True)
class Actor:
    user_id: Optional[UUID]
    username: str
    role: Optional[str] = None
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    ip_address: Optional[str] = None
    user_agent: str = ""

    @classmethod
    def from_user(cls, user, request=None) -> "Actor":
        ip_address = None
        user_agent = ""
        if request is not None:
            ip_address = client_ip(request)
            user_agent = request.META.get('HTTP_USER_AGENT', '')

        return cls(
            user_id=user.id,
            username=user.username,
            role=user.role_name,
            permissions=get_user_permissions(user),
            ip_address=ip_address,
            user_agent=user_agent,
        )

    @classmethod
    def system(cls) -> "Actor":
        """Actor for management commands and maintenance jobs."""
        return cls(
            user_id=None,
            username="system",
            role=None,
            permissions=frozenset(Permissions.all()),
        )

    @property
    def is_system(self) -> bool:
        return self.user_id is None

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions

    def require(self, permission: str) -> None:
        """Fail fast before any data is touched."""
        if not self.has_permission(permission):
            raise AuthorizationError(f"Missing permission: {permission}")


def client_ip(request) -> Optional[str]:
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')
