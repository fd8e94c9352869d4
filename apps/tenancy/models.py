import uuid
from datetime import date, timedelta
from typing import Optional

from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

from apps.core.policies import lease_expiry_warning_days
from apps.registry.models import HousingUnit


class LeaseStatus(models.TextChoices):
    ACTIVE = 'active', 'Active'
    EXPIRING_SOON = 'expiring_soon', 'Expiring Soon'
    EXPIRED = 'expired', 'Expired'


# Shared by the queryset and the partial unique constraint below
CURRENT_OCCUPIER_Q = Q(move_out_date__isnull=True, deleted_at__isnull=True)


class OccupierQuerySet(models.QuerySet):
    def live(self):
        """Occupiers that have not been removed."""
        return self.filter(deleted_at__isnull=True)

    def current(self):
        """Occupiers currently residing in their unit."""
        return self.filter(CURRENT_OCCUPIER_Q, is_active=True)

    def former(self):
        return self.live().filter(Q(is_active=False) | Q(move_out_date__isnull=False))

    def expiring_within(self, days: int, today: Optional[date] = None):
        today = today or timezone.localdate()
        return self.current().filter(
            lease_end_date__gte=today,
            lease_end_date__lte=today + timedelta(days=days),
        )


class Occupier(models.Model):
    """
    A tenant of one housing unit.

    `housing_unit`, `move_out_date` and removal are written only by the
    occupancy ledger (apps.tenancy.ledger).
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    housing_unit = models.ForeignKey(
        HousingUnit,
        on_delete=models.PROTECT,
        related_name='occupiers',
    )

    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    emergency_contact_name = models.CharField(max_length=255, blank=True)
    emergency_contact_phone = models.CharField(max_length=30, blank=True)

    move_in_date = models.DateField()
    move_out_date = models.DateField(null=True, blank=True)
    lease_start_date = models.DateField()
    lease_end_date = models.DateField(null=True, blank=True)
    lease_terms = models.TextField(blank=True)

    rental_amount = models.DecimalField(
        max_digits=10, decimal_places=2, default=0,
        validators=[MinValueValidator(0)],
    )
    deposit_amount = models.DecimalField(
        max_digits=10, decimal_places=2, default=0,
        validators=[MinValueValidator(0)],
    )

    is_active = models.BooleanField(default=True)
    deleted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = OccupierQuerySet.as_manager()

    class Meta:
        db_table = 'occupiers'
        ordering = ['-move_in_date', 'name']
        constraints = [
            # At most one current occupier per unit, enforced by the database
            models.UniqueConstraint(
                fields=['housing_unit'],
                condition=CURRENT_OCCUPIER_Q,
                name='unique_current_occupier_per_unit',
            ),
        ]
        indexes = [
            models.Index(fields=['move_in_date'], name='occupier_move_in_idx'),
            models.Index(fields=['lease_end_date'], name='occupier_lease_end_idx'),
        ]

    def __str__(self):
        return self.name

    @property
    def is_current(self) -> bool:
        return self.move_out_date is None and self.is_active and self.deleted_at is None

    @property
    def status(self) -> str:
        return "Current" if self.is_current else "Former"

    def days_until_lease_expiry(self, today: Optional[date] = None) -> Optional[int]:
        if not self.lease_end_date:
            return None
        today = today or timezone.localdate()
        return (self.lease_end_date - today).days

    def lease_status(self, today: Optional[date] = None) -> str:
        days = self.days_until_lease_expiry(today)
        if days is None:
            return LeaseStatus.ACTIVE
        if days < 0:
            return LeaseStatus.EXPIRED
        if days <= lease_expiry_warning_days():
            return LeaseStatus.EXPIRING_SOON
        return LeaseStatus.ACTIVE

    def occupancy_duration(self, today: Optional[date] = None) -> int:
        """Days resided, up to the move-out date or today."""
        end = self.move_out_date or today or timezone.localdate()
        return (end - self.move_in_date).days
