from typing import List, Optional
from uuid import UUID
from datetime import date
from django.http import HttpRequest
from django.shortcuts import get_object_or_404
from ninja import Router

from apps.identity.decorators import has_permission
from apps.identity.permissions import Permissions
from .models import AuditLog
from .dtos import AuditLogOut

router = Router(tags=["Audit"])


def _serialize_log(log: AuditLog) -> AuditLogOut:
    """Convert an AuditLog model instance to its output schema."""
    return AuditLogOut(
        id=log.id,
        user_id=log.user_id,
        username=log.user.username if log.user_id else None,
        action=log.action,
        action_label=log.get_action_display(),
        subject_type=log.subject_type,
        subject_id=log.subject_id,
        description=log.description,
        before=log.before,
        after=log.after,
        changes=log.changes,
        ip_address=log.ip_address,
        user_agent=log.user_agent,
        created_at=log.created_at,
    )


@router.get("", response=List[AuditLogOut], auth=None)
@has_permission(Permissions.AUDIT_LOGS_VIEW)
def list_audit_logs(
    request: HttpRequest,
    action: Optional[str] = None,
    subject_type: Optional[str] = None,
    subject_id: Optional[UUID] = None,
    user_id: Optional[UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = 100,
):
    """
    List audit log entries, newest first.
    Supports filtering by action, subject, user and date range.
    """
    qs = AuditLog.objects.select_related("user")

    if action:
        qs = qs.filter(action=action)
    if subject_type:
        qs = qs.filter(subject_type=subject_type)
    if subject_id:
        qs = qs.filter(subject_id=subject_id)
    if user_id:
        qs = qs.filter(user_id=user_id)
    if start_date:
        qs = qs.filter(created_at__date__gte=start_date)
    if end_date:
        qs = qs.filter(created_at__date__lte=end_date)

    qs = qs[:max(1, min(limit, 500))]  # cap at 500

    return [_serialize_log(log) for log in qs]


@router.get("/{log_id}", response=AuditLogOut, auth=None)
@has_permission(Permissions.AUDIT_LOGS_VIEW)
def get_audit_log(request: HttpRequest, log_id: UUID):
    """Retrieve a single audit log entry by ID."""
    log = get_object_or_404(AuditLog.objects.select_related("user"), id=log_id)
    return _serialize_log(log)
