import uuid
from django.core.validators import MinValueValidator
from django.db import models


class ConditionGrade(models.TextChoices):
    A = 'A', 'Excellent'
    B = 'B', 'Good'
    C = 'C', 'Fair'
    D = 'D', 'Poor'
    F = 'F', 'Needs Major Repairs'


class HousingType(models.Model):
    """Apartment, House, Townhouse, Studio..."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'housing_types'
        ordering = ['name']

    def __str__(self):
        return self.name


class HousingUnitQuerySet(models.QuerySet):
    def live(self):
        """Units that have not been soft-deleted."""
        return self.filter(deleted_at__isnull=True)


class HousingUnit(models.Model):
    """
    A rentable unit at a property address.

    `occupied` is owned by the occupancy ledger (apps.tenancy.ledger) and is
    never written by the CRUD services. A unit is occupied exactly when it
    has a current occupier.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    unit_number = models.CharField(max_length=50)
    housing_type = models.ForeignKey(
        HousingType,
        on_delete=models.PROTECT,
        related_name='units',
    )

    bedrooms = models.PositiveIntegerField(default=0)
    bathrooms = models.PositiveIntegerField(default=0)
    square_footage = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True,
        validators=[MinValueValidator(0)],
    )
    parking_spaces = models.PositiveIntegerField(default=0)
    rental_rate = models.DecimalField(
        max_digits=10, decimal_places=2, default=0,
        validators=[MinValueValidator(0)],
    )
    condition_grade = models.CharField(
        max_length=1,
        choices=ConditionGrade.choices,
        default=ConditionGrade.B,
    )
    property_address = models.CharField(max_length=255)
    description = models.TextField(blank=True)

    is_active = models.BooleanField(default=True)
    occupied = models.BooleanField(default=False, db_index=True)
    deleted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = HousingUnitQuerySet.as_manager()

    class Meta:
        db_table = 'housing_units'
        ordering = ['property_address', 'unit_number']
        constraints = [
            models.UniqueConstraint(
                fields=['property_address', 'unit_number'],
                condition=models.Q(deleted_at__isnull=True),
                name='unique_live_unit_number_per_address',
            ),
        ]
        indexes = [
            models.Index(fields=['condition_grade'], name='housing_unit_condition_idx'),
            models.Index(fields=['is_active'], name='housing_unit_active_idx'),
        ]

    def __str__(self):
        return f"{self.unit_number} - {self.property_address}"

    @property
    def full_label(self):
        return f"Unit {self.unit_number}, {self.property_address}"

    @property
    def is_deleted(self):
        return self.deleted_at is not None
