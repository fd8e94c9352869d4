"""Helpers shared by the test suites of every app."""
from .context import Actor
from .models import Role, User
from .permissions import sync_default_roles


def make_user(username: str, role: str = "admin", password: str = "password123", **extra) -> User:
    """Create a user holding one of the default roles (seeding them on first use)."""
    if not Role.objects.filter(name=role).exists():
        sync_default_roles()
    return User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password=password,
        role=Role.objects.get(name=role),
        **extra,
    )


def make_actor(username: str, role: str = "admin") -> Actor:
    return Actor.from_user(make_user(username, role))
