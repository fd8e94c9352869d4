"""
Housing type and housing unit CRUD.

Deletion of units is not here: it has to consult occupancy and lives in
apps.tenancy.ledger.delete_unit.
"""
import logging
from typing import List, Optional
from uuid import UUID

from django.db import IntegrityError, transaction
from django.db.models import Q

from apps.core.exceptions import ConflictError, NotFoundError, ValidationError
from apps.governance.audit_service import AuditAction, queue_action, snapshot
from apps.identity.permissions import Permissions
from .dtos import HousingTypeIn, HousingUnitIn, HousingUnitUpdate
from .models import HousingType, HousingUnit

logger = logging.getLogger(__name__)

# Field -> value stored when the update sends null
CLEARABLE_FIELDS = {
    'square_footage': None,
    'description': "",
}


# =============================================================================
# Housing types
# =============================================================================

def list_housing_types(include_inactive: bool = False) -> List[HousingType]:
    queryset = HousingType.objects.all()
    if not include_inactive:
        queryset = queryset.filter(is_active=True)
    return list(queryset)


def create_housing_type(payload: HousingTypeIn, *, actor) -> HousingType:
    actor.require(Permissions.HOUSING_UNITS_CREATE)

    if HousingType.objects.filter(name__iexact=payload.name).exists():
        raise ConflictError(f"Housing type '{payload.name}' already exists")

    with transaction.atomic():
        housing_type = HousingType.objects.create(**payload.dict())
        queue_action(
            actor=actor,
            action=AuditAction.CREATE,
            subject_type="HousingType",
            subject_id=housing_type.id,
            description=f"Created housing type {housing_type.name}",
            after=snapshot(housing_type),
        )
    return housing_type


def _get_housing_type(housing_type_id: UUID) -> HousingType:
    try:
        return HousingType.objects.get(id=housing_type_id)
    except HousingType.DoesNotExist:
        raise ValidationError.for_field("housing_type_id", "Unknown housing type")


# =============================================================================
# Housing units
# =============================================================================

def list_units(
    search: Optional[str] = None,
    housing_type_id: Optional[UUID] = None,
    occupied: Optional[bool] = None,
    condition_grade: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> List[HousingUnit]:
    """
    List live (not deleted) units with optional search and filtering.
    """
    queryset = HousingUnit.objects.live().select_related('housing_type')

    if search:
        queryset = queryset.filter(
            Q(unit_number__icontains=search) |
            Q(property_address__icontains=search) |
            Q(description__icontains=search)
        )
    if housing_type_id:
        queryset = queryset.filter(housing_type_id=housing_type_id)
    if occupied is not None:
        queryset = queryset.filter(occupied=occupied)
    if condition_grade:
        queryset = queryset.filter(condition_grade=condition_grade)
    if is_active is not None:
        queryset = queryset.filter(is_active=is_active)

    return list(queryset)


def get_unit(unit_id: UUID) -> HousingUnit:
    try:
        return HousingUnit.objects.live().select_related('housing_type').get(id=unit_id)
    except HousingUnit.DoesNotExist:
        raise NotFoundError("Housing unit not found")


def _ensure_unique_number(property_address: str, unit_number: str, exclude_id: Optional[UUID] = None):
    clash = HousingUnit.objects.live().filter(
        property_address=property_address,
        unit_number=unit_number,
    )
    if exclude_id:
        clash = clash.exclude(id=exclude_id)
    if clash.exists():
        raise ConflictError(f"Unit {unit_number} already exists at {property_address}")


def create_unit(payload: HousingUnitIn, *, actor) -> HousingUnit:
    actor.require(Permissions.HOUSING_UNITS_CREATE)

    data = payload.dict()
    housing_type = _get_housing_type(data.pop('housing_type_id'))
    _ensure_unique_number(data['property_address'], data['unit_number'])

    try:
        with transaction.atomic():
            unit = HousingUnit.objects.create(housing_type=housing_type, occupied=False, **data)
            queue_action(
                actor=actor,
                action=AuditAction.CREATE,
                subject_type="HousingUnit",
                subject_id=unit.id,
                description=f"Created housing unit {unit.unit_number}",
                after=snapshot(unit),
            )
    except IntegrityError:
        raise ConflictError(f"Unit {data['unit_number']} already exists at {data['property_address']}")

    logger.info(f"Created housing unit {unit.full_label}")
    return unit


def update_unit(unit_id: UUID, payload: HousingUnitUpdate, *, actor) -> HousingUnit:
    actor.require(Permissions.HOUSING_UNITS_EDIT)

    data = payload.dict(exclude_unset=True)
    data.pop('occupied', None)

    try:
        with transaction.atomic():
            try:
                unit = HousingUnit.objects.live().select_for_update().get(id=unit_id)
            except HousingUnit.DoesNotExist:
                raise NotFoundError("Housing unit not found")

            before = snapshot(unit)
            housing_type_id = data.pop('housing_type_id', None)
            if housing_type_id:
                unit.housing_type = _get_housing_type(housing_type_id)
            for attr, value in data.items():
                if value is None:
                    if attr not in CLEARABLE_FIELDS:
                        continue
                    value = CLEARABLE_FIELDS[attr]
                setattr(unit, attr, value)

            _ensure_unique_number(unit.property_address, unit.unit_number, exclude_id=unit.id)
            unit.save()
            queue_action(
                actor=actor,
                action=AuditAction.UPDATE,
                subject_type="HousingUnit",
                subject_id=unit.id,
                description=f"Updated housing unit {unit.unit_number}",
                before=before,
                after=snapshot(unit),
            )
    except IntegrityError:
        raise ConflictError(f"Unit {unit.unit_number} already exists at {unit.property_address}")

    return unit
