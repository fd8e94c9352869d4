"""Services for Identity app."""
import logging
from typing import List, Optional
from uuid import UUID

from django.db import IntegrityError, transaction
from django.db.models import Q

from apps.core.exceptions import ConflictError, NotFoundError, ValidationError
from apps.governance.audit_service import AuditAction, queue_action, snapshot
from .dtos import ProfileUpdate, UserDTO, UserCreate, UserUpdate
from .models import Role, User
from .permissions import get_user_permissions

logger = logging.getLogger(__name__)


def _to_dto(user: User) -> UserDTO:
    return UserDTO(
        id=user.id,
        username=user.username,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role_name,
        is_active=user.is_active,
        last_login=user.last_login,
        permissions=sorted(get_user_permissions(user)),
    )


def _get_role(name: str) -> Role:
    try:
        return Role.objects.get(name=name)
    except Role.DoesNotExist:
        raise ValidationError.for_field("role", f"Unknown role: {name}")


def get_user_dto(user_id) -> Optional[UserDTO]:
    try:
        return _to_dto(User.objects.select_related('role').get(id=user_id))
    except User.DoesNotExist:
        return None


def list_users(search: Optional[str] = None, role: Optional[str] = None,
               is_active: Optional[bool] = None) -> List[UserDTO]:
    users = User.objects.select_related('role')
    if search:
        users = users.filter(Q(username__icontains=search) | Q(email__icontains=search))
    if role:
        users = users.filter(role__name=role)
    if is_active is not None:
        users = users.filter(is_active=is_active)
    return [_to_dto(u) for u in users.order_by('username')]


def create_user(payload: UserCreate, actor=None) -> UserDTO:
    role = _get_role(payload.role)

    if User.objects.filter(username=payload.username).exists():
        raise ConflictError(f"Username '{payload.username}' is already taken")

    try:
        with transaction.atomic():
            user = User.objects.create_user(
                username=payload.username,
                email=payload.email,
                password=payload.password,
                first_name=payload.first_name,
                last_name=payload.last_name,
                role=role,
                phone=payload.phone or "",
                is_active=True,
            )
            queue_action(
                actor=actor,
                action=AuditAction.CREATE,
                subject_type="User",
                subject_id=user.id,
                description=f"Created user {user.username} ({role.name})",
                after=snapshot(user),
            )
    except IntegrityError:
        raise ConflictError(f"Username '{payload.username}' is already taken")

    logger.info(f"Created user {user.username} with role {role.name}")
    return _to_dto(user)


def update_user(user_id: UUID, payload: UserUpdate, actor=None) -> UserDTO:
    data = payload.dict(exclude_unset=True)

    with transaction.atomic():
        try:
            user = User.objects.select_for_update().get(id=user_id)
        except User.DoesNotExist:
            raise NotFoundError("User not found")

        before = snapshot(user)

        if data.get('is_active') is False and actor is not None and actor.user_id == user.id:
            raise ConflictError("You cannot deactivate your own account")

        password = data.pop('password', None)
        role_name = data.pop('role', None)
        if role_name:
            user.role = _get_role(role_name)
        for key, value in data.items():
            if value is not None:
                setattr(user, key, value)
        if password:
            user.set_password(password)

        user.save()
        queue_action(
            actor=actor,
            action=AuditAction.UPDATE,
            subject_type="User",
            subject_id=user.id,
            description=f"Updated user {user.username}",
            before=before,
            after=snapshot(user),
        )

    return _to_dto(user)


def update_profile(payload: ProfileUpdate, *, actor) -> UserDTO:
    """
    Let the acting user edit their own name, contact details and password.
    Role and active flag stay with user management.
    """
    data = payload.dict(exclude_unset=True)
    password = data.pop('password', None)
    current_password = data.pop('current_password', None)

    with transaction.atomic():
        try:
            user = User.objects.select_for_update().get(id=actor.user_id, is_active=True)
        except User.DoesNotExist:
            raise NotFoundError("User not found")

        if password and not user.check_password(current_password or ""):
            raise ValidationError.for_field("current_password", "Current password is incorrect")

        before = snapshot(user)
        for key, value in data.items():
            if value is not None:
                setattr(user, key, value)
        if password:
            user.set_password(password)

        user.save()
        queue_action(
            actor=actor,
            action=AuditAction.UPDATE,
            subject_type="User",
            subject_id=user.id,
            description=f"Updated own profile ({user.username})",
            before=before,
            after=snapshot(user),
        )

    return _to_dto(user)


def deactivate_user(user_id: UUID, actor=None) -> None:
    """
    Soft delete: disables login. Existing sessions and tokens stop
    working because authentication only ever resolves active users.
    """
    if actor is not None and actor.user_id == user_id:
        raise ConflictError("You cannot delete your own account")

    with transaction.atomic():
        try:
            user = User.objects.select_for_update().get(id=user_id)
        except User.DoesNotExist:
            raise NotFoundError("User not found")

        before = snapshot(user)
        user.is_active = False
        user.save(update_fields=['is_active'])
        queue_action(
            actor=actor,
            action=AuditAction.DELETE,
            subject_type="User",
            subject_id=user.id,
            description=f"Deactivated user {user.username}",
            before=before,
            after=snapshot(user),
        )

    logger.info(f"Deactivated user {user.username}")


def list_roles() -> List[Role]:
    return list(Role.objects.prefetch_related('permissions'))
