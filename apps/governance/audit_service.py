"""
Centralized audit logging service.

Use log_action() to record any mutation. It is fire-and-forget: it never
raises, so an audit failure never breaks the calling request.

Usage:
    from apps.governance.audit_service import log_action, AuditAction, snapshot

    log_action(
        actor=actor,
        action=AuditAction.UPDATE,
        subject_type="HousingUnit",
        subject_id=unit.id,
        description=f"Updated housing unit {unit.unit_number}",
        before=before,
        after=snapshot(unit),
    )

Inside a transaction use queue_action() instead, which defers the write
until the surrounding transaction commits.
"""
import ipaddress
import logging
from functools import partial
from typing import Optional
from uuid import UUID

from django.db import transaction
from django.forms.models import model_to_dict

from .models import AuditAction, AuditLog

logger = logging.getLogger(__name__)

__all__ = ['AuditAction', 'log_action', 'queue_action', 'snapshot']

SNAPSHOT_EXCLUDE = ('password',)


def snapshot(instance) -> dict:
    """Serializable dict of a model instance's concrete fields."""
    data = model_to_dict(instance, exclude=SNAPSHOT_EXCLUDE)
    data['id'] = instance.pk
    # Many-to-many values come back as model instances
    for key, value in list(data.items()):
        if isinstance(value, list):
            data[key] = [getattr(v, 'pk', v) for v in value]
    return data


def _valid_ip(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        return str(ipaddress.ip_address(value))
    except ValueError:
        return None


def log_action(
    *,
    action: str,
    subject_type: str,
    subject_id: Optional[UUID] = None,
    actor=None,
    description: str = "",
    before: Optional[dict] = None,
    after: Optional[dict] = None,
) -> Optional[AuditLog]:
    """
    Create an AuditLog entry.

    Args:
        action:        AuditAction value (create, update, delete, ...).
        subject_type:  Type of the object acted on (e.g. "Occupier").
        subject_id:    Primary key of the object, None for collection events.
        actor:         apps.identity.context.Actor, or None for system actions.
        description:   Human-readable summary.
        before/after:  Optional value snapshots.

    Returns:
        The created AuditLog instance, or None if creation failed.
    """
    try:
        # Savepoint keeps a failed insert from poisoning an outer transaction
        with transaction.atomic():
            return AuditLog.objects.create(
                user_id=getattr(actor, 'user_id', None),
                action=action,
                subject_type=subject_type,
                subject_id=subject_id,
                description=description[:500],
                before=before,
                after=after,
                ip_address=_valid_ip(getattr(actor, 'ip_address', None)),
                user_agent=getattr(actor, 'user_agent', '') or '',
            )
    except Exception:
        logger.exception(f"Failed to record audit event {action} on {subject_type} {subject_id}")
        return None


def queue_action(**kwargs) -> None:
    """
    Record an audit event once the current transaction commits.

    Rolled-back work leaves no audit trail, and an audit failure cannot
    roll back the work. Outside a transaction the event is written at once.
    """
    transaction.on_commit(partial(log_action, **kwargs))
