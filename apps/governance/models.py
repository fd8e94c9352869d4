import uuid
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models


class AuditAction(models.TextChoices):
    CREATE = 'create', 'Created'
    UPDATE = 'update', 'Updated'
    DELETE = 'delete', 'Deleted'
    LOGIN = 'login', 'Logged In'
    LOGOUT = 'logout', 'Logged Out'
    VIEW = 'view', 'Viewed'
    EXPORT = 'export', 'Exported'


class AuditLogQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise TypeError("Audit log entries are append-only")

    def delete(self):
        raise TypeError("Audit log entries are append-only")


class AuditLog(models.Model):
    """
    Append-only record of every mutation (and notable reads) for compliance
    review. The application never updates or deletes rows.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        'identity.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs',
        help_text="Actor; null for system actions",
    )
    action = models.CharField(max_length=20, choices=AuditAction.choices, db_index=True)
    subject_type = models.CharField(max_length=50, db_index=True, help_text="e.g. HousingUnit, Occupier")
    subject_id = models.UUIDField(null=True, blank=True, help_text="Null for collection-level events")
    description = models.CharField(max_length=500, blank=True)

    before = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    after = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    objects = AuditLogQuerySet.as_manager()

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        verbose_name = "Audit Log"
        verbose_name_plural = "Audit Logs"
        indexes = [
            models.Index(fields=['subject_type', 'subject_id'], name='audit_log_subject_idx'),
        ]

    def __str__(self):
        return f"{self.action} on {self.subject_type} by {self.user_id or 'system'}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise TypeError("Audit log entries are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise TypeError("Audit log entries are append-only")

    @property
    def changes(self):
        """Fields whose value differs between the before and after snapshots."""
        if not self.before or not self.after:
            return []
        return [
            {'field': key, 'old': self.before.get(key), 'new': value}
            for key, value in self.after.items()
            if key in self.before and self.before[key] != value
        ]
