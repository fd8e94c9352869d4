import uuid
from django.conf import settings
from django.db import models


class NoteCategory(models.TextChoices):
    GENERAL = 'general', 'General'
    MAINTENANCE = 'maintenance', 'Maintenance'
    COMPLAINT = 'complaint', 'Complaint'
    INQUIRY = 'inquiry', 'Inquiry'
    LEASE = 'lease', 'Lease'
    PAYMENT = 'payment', 'Payment'
    INSPECTION = 'inspection', 'Inspection'
    OTHER = 'other', 'Other'


class NotePriority(models.TextChoices):
    LOW = 'low', 'Low'
    MEDIUM = 'medium', 'Medium'
    HIGH = 'high', 'High'
    URGENT = 'urgent', 'Urgent'


class Note(models.Model):
    """
    Free-form note attached to a housing unit, an occupier, both, or
    neither (a general note).
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='notes',
        db_column='user_id',
    )
    housing_unit = models.ForeignKey(
        'registry.HousingUnit',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='notes',
    )
    occupier = models.ForeignKey(
        'tenancy.Occupier',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='notes',
    )

    title = models.CharField(max_length=255)
    body = models.TextField()
    category = models.CharField(
        max_length=20,
        choices=NoteCategory.choices,
        default=NoteCategory.GENERAL,
        db_index=True,
    )
    priority = models.CharField(
        max_length=10,
        choices=NotePriority.choices,
        default=NotePriority.MEDIUM,
        db_index=True,
    )
    is_private = models.BooleanField(default=False)

    # Attachment metadata only; file storage is handled outside the app
    attachment_path = models.CharField(max_length=500, blank=True)
    attachment_name = models.CharField(max_length=255, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'notes'
        ordering = ['-created_at']

    def __str__(self):
        return self.title

    @property
    def scope(self) -> str:
        if self.housing_unit_id and self.occupier_id:
            return "unit_occupier"
        if self.housing_unit_id:
            return "unit"
        if self.occupier_id:
            return "occupier"
        return "general"
