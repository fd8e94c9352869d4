"""
Occupier queries and contact/lease edits.

Anything that changes which unit an occupier lives in, or whether they
still live there, is delegated to the ledger.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from django.db import transaction
from django.db.models import Q, Sum

from apps.core.exceptions import NotFoundError
from apps.core.policies import lease_expiry_warning_days
from apps.governance.audit_service import AuditAction, queue_action, snapshot
from apps.identity.permissions import Permissions
from . import ledger
from .dtos import OccupierUpdate
from .models import Occupier
from .validation import clean_occupier_attributes

logger = logging.getLogger(__name__)


def list_occupiers(
    search: Optional[str] = None,
    housing_unit_id: Optional[UUID] = None,
    status: Optional[str] = None,
    expiring: bool = False,
    today: Optional[date] = None,
) -> List[Occupier]:
    """
    List occupiers (removed ones excluded) with optional filters.

    status: "active" for current occupiers, "inactive" for former ones.
    expiring: current occupiers whose lease ends within the warning window.
    """
    queryset = Occupier.objects.live().select_related('housing_unit')

    if search:
        queryset = queryset.filter(
            Q(name__icontains=search) |
            Q(email__icontains=search) |
            Q(phone__icontains=search)
        )
    if housing_unit_id:
        queryset = queryset.filter(housing_unit_id=housing_unit_id)
    if status == "active":
        queryset = queryset.current()
    elif status == "inactive":
        queryset = queryset.former()
    if expiring:
        queryset = queryset.expiring_within(lease_expiry_warning_days(), today=today)

    return list(queryset)


def get_occupier(occupier_id: UUID) -> Occupier:
    try:
        return Occupier.objects.live().select_related('housing_unit').get(id=occupier_id)
    except Occupier.DoesNotExist:
        raise NotFoundError("Occupier not found")


def update_occupier(occupier_id: UUID, payload: OccupierUpdate, *, actor) -> Occupier:
    """
    Edit contact, lease and amount fields. A new housing_unit_id moves the
    occupier through the ledger inside the same transaction.
    """
    actor.require(Permissions.OCCUPIERS_EDIT)

    data = payload.dict(exclude_unset=True)
    new_unit_id = data.pop('housing_unit_id', None)

    with transaction.atomic():
        try:
            occupier = Occupier.objects.live().select_for_update().get(id=occupier_id)
        except Occupier.DoesNotExist:
            raise NotFoundError("Occupier not found")

        # Resubmitting the current unit is not a move
        if new_unit_id and new_unit_id != occupier.housing_unit_id:
            ledger.transfer_occupier(occupier_id, new_unit_id, actor=actor)
            occupier.refresh_from_db()

        if not data:
            return occupier

        existing = {
            'lease_start_date': occupier.lease_start_date,
            'lease_end_date': occupier.lease_end_date,
            'move_in_date': occupier.move_in_date,
            'move_out_date': occupier.move_out_date,
        }
        cleaned = clean_occupier_attributes(data, partial=True, existing=existing)

        before = snapshot(occupier)
        for attr, value in cleaned.items():
            setattr(occupier, attr, value)
        occupier.save()

        queue_action(
            actor=actor,
            action=AuditAction.UPDATE,
            subject_type="Occupier",
            subject_id=occupier.id,
            description=f"Updated occupier {occupier.name}",
            before=before,
            after=snapshot(occupier),
        )

    logger.info(f"Updated occupier {occupier.id}")
    return occupier


def occupier_statistics(today: Optional[date] = None) -> dict:
    live = Occupier.objects.live()
    current = live.current()
    return {
        "total": live.count(),
        "active": current.count(),
        "inactive": live.former().count(),
        "expiring_soon": live.expiring_within(lease_expiry_warning_days(), today=today).count(),
        "total_monthly_rent": current.aggregate(total=Sum('rental_amount'))['total'] or Decimal('0'),
    }
