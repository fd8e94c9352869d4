"""
Occupancy ledger.

The only code allowed to change whether a housing unit is occupied. Every
operation keeps one rule true: a unit's `occupied` flag is set exactly
when the unit has a current occupier (not moved out, active, not removed).

Each operation runs in one transaction. Unit rows are locked with
SELECT ... FOR UPDATE before occupancy is re-read, and the partial unique
constraint on current occupiers backs this up at the database level, so
two concurrent placements on the same vacant unit cannot both succeed.

Audit events are queued with transaction.on_commit: rolled-back work is
never audited, and an audit failure never undoes committed work.
"""
import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Mapping, Optional
from uuid import UUID

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Exists, OuterRef, Q
from django.utils import timezone

from apps.core import policies
from apps.core.exceptions import (
    ConflictError,
    DomainError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from apps.governance.audit_service import AuditAction, queue_action, snapshot
from apps.identity.permissions import Permissions
from apps.registry.models import HousingUnit
from .models import Occupier
from .validation import coerce_date, clean_occupier_attributes

logger = logging.getLogger(__name__)


@contextmanager
def _unit_of_work(operation: str):
    """
    Atomic block for one ledger operation.

    Domain errors pass through unchanged after rollback. A unique constraint
    violation means another transaction won the race for the unit; any
    other store failure is reported as a PersistenceError.
    """
    try:
        with transaction.atomic():
            yield
    except DomainError as exc:
        logger.warning(f"Ledger {operation} rejected: {exc.message}")
        raise
    except IntegrityError as exc:
        logger.warning(f"Ledger {operation} hit the current occupier constraint: {exc}")
        raise ConflictError("Housing unit is already occupied") from exc
    except DatabaseError as exc:
        logger.exception(f"Ledger {operation} failed in the database")
        raise PersistenceError("The change could not be saved; nothing was committed") from exc


def _as_uuid(value) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise NotFoundError("Housing unit not found")


def _lock_units(*unit_ids) -> Dict[UUID, HousingUnit]:
    """Lock unit rows in primary key order so concurrent transfers cannot deadlock."""
    wanted = {_as_uuid(unit_id) for unit_id in unit_ids}
    units = {
        unit.id: unit
        for unit in HousingUnit.objects.select_for_update().filter(id__in=wanted).order_by('pk')
    }
    if len(units) != len(wanted):
        raise NotFoundError("Housing unit not found")
    return units


def _lock_unit(unit_id) -> HousingUnit:
    return _lock_units(unit_id)[_as_uuid(unit_id)]


def _lock_occupier(occupier_id: UUID) -> Occupier:
    try:
        return Occupier.objects.live().select_for_update().get(id=occupier_id)
    except Occupier.DoesNotExist:
        raise NotFoundError("Occupier not found")


def _has_current_occupier(unit: HousingUnit) -> bool:
    return Occupier.objects.current().filter(housing_unit_id=unit.id).exists()


def _set_occupied(unit: HousingUnit, occupied: bool) -> None:
    if unit.occupied != occupied:
        unit.occupied = occupied
        unit.save(update_fields=['occupied', 'updated_at'])


def _refresh_occupied(unit: HousingUnit) -> None:
    _set_occupied(unit, _has_current_occupier(unit))


def _ensure_placeable(unit: HousingUnit) -> None:
    if unit.is_deleted:
        raise NotFoundError("Housing unit not found")
    if not unit.is_active:
        raise ConflictError(f"Unit {unit.unit_number} is inactive")
    if unit.occupied or _has_current_occupier(unit):
        raise ConflictError(f"Unit {unit.unit_number} is already occupied")


# =============================================================================
# Operations
# =============================================================================

def place_occupier(unit_id: UUID, attributes: Mapping[str, Any], *, actor) -> Occupier:
    """
    Move a new occupier into a vacant, active unit.

    Raises ConflictError when the unit is occupied (including when a
    concurrent placement committed first) or inactive.
    """
    actor.require(Permissions.OCCUPIERS_CREATE)
    data = clean_occupier_attributes(attributes)

    with _unit_of_work("place"):
        unit = _lock_unit(unit_id)
        _ensure_placeable(unit)

        occupier = Occupier.objects.create(
            housing_unit=unit,
            move_out_date=None,
            is_active=True,
            **data,
        )
        _set_occupied(unit, True)

        queue_action(
            actor=actor,
            action=AuditAction.CREATE,
            subject_type="Occupier",
            subject_id=occupier.id,
            description=f"Placed {occupier.name} in {unit.full_label}",
            after=snapshot(occupier),
        )

    logger.info(f"Placed occupier {occupier.id} in unit {unit.id}")
    return occupier


def transfer_occupier(occupier_id: UUID, new_unit_id: UUID, *, actor) -> Occupier:
    """
    Move a current occupier to another vacant unit.

    The old unit is vacated and the new one occupied in the same
    transaction. Transferring to the occupier's own unit changes nothing.
    """
    actor.require(Permissions.OCCUPIERS_EDIT)
    new_unit_id = _as_uuid(new_unit_id)

    with _unit_of_work("transfer"):
        occupier = _lock_occupier(occupier_id)
        if not occupier.is_current:
            raise ConflictError(f"{occupier.name} has moved out and cannot be transferred")
        if occupier.housing_unit_id == new_unit_id:
            return occupier

        old_unit_id = occupier.housing_unit_id
        units = _lock_units(old_unit_id, new_unit_id)
        old_unit, new_unit = units[old_unit_id], units[new_unit_id]
        _ensure_placeable(new_unit)

        before = snapshot(occupier)
        occupier.housing_unit = new_unit
        occupier.save(update_fields=['housing_unit', 'updated_at'])
        _refresh_occupied(old_unit)
        _set_occupied(new_unit, True)

        queue_action(
            actor=actor,
            action=AuditAction.UPDATE,
            subject_type="Occupier",
            subject_id=occupier.id,
            description=(
                f"Moved {occupier.name} from {old_unit.full_label} to {new_unit.full_label}"
            ),
            before=before,
            after=snapshot(occupier),
        )

    logger.info(f"Transferred occupier {occupier.id} from unit {old_unit_id} to unit {new_unit_id}")
    return occupier


def record_move_out(occupier_id: UUID, move_out_date, *, actor) -> Occupier:
    """
    End a current occupier's residency and vacate the unit.

    The move-out date may not precede the move-in date.
    """
    actor.require(Permissions.OCCUPIERS_EDIT)
    try:
        move_out_date = coerce_date(move_out_date)
    except ValueError as exc:
        raise ValidationError.for_field("move_out_date", str(exc))
    if move_out_date is None:
        raise ValidationError.for_field("move_out_date", "Move-out date is required")

    with _unit_of_work("move-out"):
        occupier = _lock_occupier(occupier_id)
        if not occupier.is_current:
            raise ConflictError(f"{occupier.name} has already moved out")
        if move_out_date < occupier.move_in_date:
            raise ValidationError.for_field(
                "move_out_date", "Move-out date cannot be before the move-in date",
            )

        unit = _lock_unit(occupier.housing_unit_id)
        before = snapshot(occupier)
        occupier.move_out_date = move_out_date
        occupier.is_active = False
        occupier.save(update_fields=['move_out_date', 'is_active', 'updated_at'])
        _refresh_occupied(unit)

        queue_action(
            actor=actor,
            action=AuditAction.UPDATE,
            subject_type="Occupier",
            subject_id=occupier.id,
            description=f"{occupier.name} moved out of {unit.full_label} on {move_out_date}",
            before=before,
            after=snapshot(occupier),
        )

    logger.info(f"Recorded move-out of occupier {occupier.id} from unit {unit.id}")
    return occupier


def remove_occupier(occupier_id: UUID, *, actor) -> None:
    """
    Soft delete an occupier record. If it was the unit's current occupier
    the unit becomes vacant.
    """
    actor.require(Permissions.OCCUPIERS_DELETE)

    with _unit_of_work("remove"):
        occupier = _lock_occupier(occupier_id)
        unit = _lock_unit(occupier.housing_unit_id)

        before = snapshot(occupier)
        occupier.deleted_at = timezone.now()
        occupier.is_active = False
        occupier.save(update_fields=['deleted_at', 'is_active', 'updated_at'])
        _refresh_occupied(unit)

        queue_action(
            actor=actor,
            action=AuditAction.DELETE,
            subject_type="Occupier",
            subject_id=occupier.id,
            description=f"Removed occupier {occupier.name} from {unit.full_label}",
            before=before,
        )

    logger.info(f"Removed occupier {occupier_id}; unit {unit.id} occupied={unit.occupied}")


def delete_unit(unit_id: UUID, *, actor) -> None:
    """
    Soft delete a housing unit. Refused while the unit is occupied, and
    while it has notes when UNIT_DELETE_BLOCKED_BY_NOTES is on.
    """
    actor.require(Permissions.HOUSING_UNITS_DELETE)

    with _unit_of_work("delete-unit"):
        unit = _lock_unit(unit_id)
        if unit.is_deleted:
            raise NotFoundError("Housing unit not found")
        if unit.occupied or _has_current_occupier(unit):
            raise ConflictError(f"Cannot delete occupied unit {unit.unit_number}")
        if policies.unit_delete_blocked_by_notes() and unit.notes.exists():
            raise ConflictError(f"Cannot delete unit {unit.unit_number} while it has notes")

        before = snapshot(unit)
        unit.deleted_at = timezone.now()
        unit.is_active = False
        unit.save(update_fields=['deleted_at', 'is_active', 'updated_at'])

        queue_action(
            actor=actor,
            action=AuditAction.DELETE,
            subject_type="HousingUnit",
            subject_id=unit.id,
            description=f"Deleted housing unit {unit.full_label}",
            before=before,
        )

    logger.info(f"Deleted housing unit {unit_id}")


# =============================================================================
# Invariant checks
# =============================================================================

def current_occupier(unit: HousingUnit) -> Optional[Occupier]:
    return Occupier.objects.current().filter(housing_unit_id=unit.id).first()


def is_consistent(unit: HousingUnit) -> bool:
    """True when the unit's flag matches its occupier records."""
    return unit.occupied == _has_current_occupier(unit)


def find_inconsistent_units() -> List[HousingUnit]:
    """Units whose occupied flag disagrees with their occupier records."""
    has_current = Exists(Occupier.objects.current().filter(housing_unit_id=OuterRef('pk')))
    return list(
        HousingUnit.objects
        .annotate(has_current=has_current)
        .filter(Q(occupied=True, has_current=False) | Q(occupied=False, has_current=True))
        .order_by('property_address', 'unit_number')
    )


def resync_unit(unit_id: UUID, *, actor) -> HousingUnit:
    """Re-derive one unit's occupied flag from its occupier records."""
    actor.require(Permissions.HOUSING_UNITS_EDIT)

    with _unit_of_work("resync"):
        unit = _lock_unit(unit_id)
        before = snapshot(unit)
        expected = _has_current_occupier(unit)
        if unit.occupied != expected:
            _set_occupied(unit, expected)
            logger.warning(f"Resynced unit {unit.id}: occupied set to {expected}")
            queue_action(
                actor=actor,
                action=AuditAction.UPDATE,
                subject_type="HousingUnit",
                subject_id=unit.id,
                description=f"Resynced occupancy of {unit.full_label}",
                before=before,
                after=snapshot(unit),
            )
    return unit

