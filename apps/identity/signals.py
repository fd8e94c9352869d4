from django.contrib.auth.signals import user_logged_in, user_logged_out
from django.dispatch import receiver

from apps.governance.audit_service import AuditAction, log_action
from .context import Actor


@receiver(user_logged_in)
def log_user_login(sender, user, request, **kwargs):
    """Record logins in the audit log."""
    if not user:
        return
    log_action(
        actor=Actor.from_user(user, request),
        action=AuditAction.LOGIN,
        subject_type="User",
        subject_id=user.id,
        description="User logged in",
    )


@receiver(user_logged_out)
def log_user_logout(sender, user, request, **kwargs):
    """Record logouts in the audit log."""
    if not user:
        return
    log_action(
        actor=Actor.from_user(user, request),
        action=AuditAction.LOGOUT,
        subject_type="User",
        subject_id=user.id,
        description="User logged out",
    )
