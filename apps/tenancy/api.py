"""
Occupier API endpoints.

Creation, transfer, move-out and removal go through the occupancy ledger
so the unit's occupied flag always follows the occupier records.
"""
from typing import List, Optional
from uuid import UUID
from django.http import HttpRequest
from ninja import Router

from apps.identity.decorators import get_actor, has_permission
from apps.identity.permissions import Permissions
from .dtos import MoveIn, MoveOutIn, OccupierIn, OccupierOut, OccupierStatistics, OccupierUpdate
from .models import Occupier
from . import ledger, services

router = Router(tags=["Occupiers"])


def _serialize_occupier(occupier: Occupier) -> OccupierOut:
    return OccupierOut(
        id=occupier.id,
        housing_unit_id=occupier.housing_unit_id,
        unit_label=occupier.housing_unit.full_label,
        name=occupier.name,
        email=occupier.email,
        phone=occupier.phone,
        emergency_contact_name=occupier.emergency_contact_name,
        emergency_contact_phone=occupier.emergency_contact_phone,
        move_in_date=occupier.move_in_date,
        move_out_date=occupier.move_out_date,
        lease_start_date=occupier.lease_start_date,
        lease_end_date=occupier.lease_end_date,
        lease_terms=occupier.lease_terms,
        rental_amount=occupier.rental_amount,
        deposit_amount=occupier.deposit_amount,
        is_active=occupier.is_active,
        is_current=occupier.is_current,
        status=occupier.status,
        lease_status=occupier.lease_status(),
        days_until_lease_expiry=occupier.days_until_lease_expiry(),
        occupancy_duration=occupier.occupancy_duration(),
        created_at=occupier.created_at,
        updated_at=occupier.updated_at,
    )


@router.get("", response=List[OccupierOut], auth=None)
@has_permission(Permissions.OCCUPIERS_VIEW)
def list_occupiers(
    request: HttpRequest,
    search: Optional[str] = None,
    unit: Optional[UUID] = None,
    status: Optional[str] = None,
    expiring: bool = False,
):
    """
    List occupiers.

    Query Parameters:
    - search: Search in name, email, phone
    - unit: Filter by housing unit
    - status: active (currently residing) or inactive (moved out)
    - expiring: true for leases ending within the warning window
    """
    occupiers = services.list_occupiers(
        search=search,
        housing_unit_id=unit,
        status=status,
        expiring=expiring,
    )
    return [_serialize_occupier(o) for o in occupiers]


@router.get("/statistics", response=OccupierStatistics, auth=None)
@has_permission(Permissions.OCCUPIERS_VIEW)
def occupier_statistics(request: HttpRequest):
    return services.occupier_statistics()


@router.get("/{occupier_id}", response=OccupierOut, auth=None)
@has_permission(Permissions.OCCUPIERS_VIEW)
def get_occupier(request: HttpRequest, occupier_id: UUID):
    return _serialize_occupier(services.get_occupier(occupier_id))


@router.post("", response={201: OccupierOut}, auth=None)
@has_permission(Permissions.OCCUPIERS_CREATE)
def create_occupier(request: HttpRequest, payload: OccupierIn):
    """Place a new occupier in a vacant unit. 400 if the unit is occupied."""
    attributes = payload.dict(exclude={'housing_unit_id'}, exclude_none=True)
    occupier = ledger.place_occupier(payload.housing_unit_id, attributes, actor=get_actor(request))
    return 201, _serialize_occupier(occupier)


@router.put("/{occupier_id}", response=OccupierOut, auth=None)
@has_permission(Permissions.OCCUPIERS_EDIT)
def update_occupier(request: HttpRequest, occupier_id: UUID, payload: OccupierUpdate):
    services.update_occupier(occupier_id, payload, actor=get_actor(request))
    return _serialize_occupier(services.get_occupier(occupier_id))


@router.post("/{occupier_id}/move", response=OccupierOut, auth=None)
@has_permission(Permissions.OCCUPIERS_EDIT)
def move_occupier(request: HttpRequest, occupier_id: UUID, payload: MoveIn):
    """Transfer a current occupier to another vacant unit."""
    ledger.transfer_occupier(occupier_id, payload.housing_unit_id, actor=get_actor(request))
    return _serialize_occupier(services.get_occupier(occupier_id))


@router.post("/{occupier_id}/move-out", response=OccupierOut, auth=None)
@has_permission(Permissions.OCCUPIERS_EDIT)
def move_out_occupier(request: HttpRequest, occupier_id: UUID, payload: MoveOutIn):
    ledger.record_move_out(occupier_id, payload.move_out_date, actor=get_actor(request))
    return _serialize_occupier(services.get_occupier(occupier_id))


@router.delete("/{occupier_id}", response={204: None}, auth=None)
@has_permission(Permissions.OCCUPIERS_DELETE)
def delete_occupier(request: HttpRequest, occupier_id: UUID):
    """Remove the occupier record; their unit becomes vacant."""
    ledger.remove_occupier(occupier_id, actor=get_actor(request))
    return 204, None
