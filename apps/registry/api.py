"""
Registry API endpoints.

CRUD for housing types and housing units. Deleting a unit goes through
the occupancy ledger, which refuses while the unit is occupied.
"""
from typing import List, Optional
from uuid import UUID
from django.http import HttpRequest
from ninja import Router

from apps.identity.decorators import get_actor, has_permission
from apps.identity.permissions import Permissions
from apps.tenancy import ledger
from .dtos import (
    CurrentOccupierOut,
    HousingTypeIn,
    HousingTypeOut,
    HousingUnitIn,
    HousingUnitOut,
    HousingUnitUpdate,
)
from .models import HousingUnit
from . import services

router = Router(tags=["Housing Units"])
types_router = Router(tags=["Housing Types"])


def _serialize_unit(unit: HousingUnit, with_occupier: bool = False) -> HousingUnitOut:
    occupier = ledger.current_occupier(unit) if with_occupier and unit.occupied else None
    return HousingUnitOut(
        id=unit.id,
        unit_number=unit.unit_number,
        housing_type_id=unit.housing_type_id,
        housing_type_name=unit.housing_type.name,
        bedrooms=unit.bedrooms,
        bathrooms=unit.bathrooms,
        square_footage=unit.square_footage,
        parking_spaces=unit.parking_spaces,
        rental_rate=unit.rental_rate,
        condition_grade=unit.condition_grade,
        condition_label=unit.get_condition_grade_display(),
        property_address=unit.property_address,
        description=unit.description,
        is_active=unit.is_active,
        occupied=unit.occupied,
        created_at=unit.created_at,
        updated_at=unit.updated_at,
        current_occupier=CurrentOccupierOut(
            id=occupier.id,
            name=occupier.name,
            move_in_date=occupier.move_in_date,
            lease_end_date=occupier.lease_end_date,
        ) if occupier else None,
    )


# =============================================================================
# Housing types
# =============================================================================

@types_router.get("", response=List[HousingTypeOut], auth=None)
@has_permission(Permissions.HOUSING_UNITS_VIEW)
def list_housing_types(request: HttpRequest, include_inactive: bool = False):
    return services.list_housing_types(include_inactive=include_inactive)


@types_router.post("", response={201: HousingTypeOut}, auth=None)
@has_permission(Permissions.HOUSING_UNITS_CREATE)
def create_housing_type(request: HttpRequest, payload: HousingTypeIn):
    return 201, services.create_housing_type(payload, actor=get_actor(request))


# =============================================================================
# Housing units
# =============================================================================

@router.get("", response=List[HousingUnitOut], auth=None)
@has_permission(Permissions.HOUSING_UNITS_VIEW)
def list_units(
    request: HttpRequest,
    search: Optional[str] = None,
    housing_type_id: Optional[UUID] = None,
    occupied: Optional[bool] = None,
    condition_grade: Optional[str] = None,
    is_active: Optional[bool] = None,
):
    """
    List housing units with optional search and filtering.

    Query Parameters:
    - search: Search in unit_number, property_address, description
    - housing_type_id: Filter by housing type
    - occupied: true for occupied units, false for vacant ones
    - condition_grade: A, B, C, D or F
    """
    units = services.list_units(
        search=search,
        housing_type_id=housing_type_id,
        occupied=occupied,
        condition_grade=condition_grade,
        is_active=is_active,
    )
    return [_serialize_unit(unit) for unit in units]


@router.get("/{unit_id}", response=HousingUnitOut, auth=None)
@has_permission(Permissions.HOUSING_UNITS_VIEW)
def get_unit(request: HttpRequest, unit_id: UUID):
    """Unit details including its current occupier, if any."""
    return _serialize_unit(services.get_unit(unit_id), with_occupier=True)


@router.post("", response={201: HousingUnitOut}, auth=None)
@has_permission(Permissions.HOUSING_UNITS_CREATE)
def create_unit(request: HttpRequest, payload: HousingUnitIn):
    """New units always start vacant."""
    unit = services.create_unit(payload, actor=get_actor(request))
    return 201, _serialize_unit(unit)


@router.put("/{unit_id}", response=HousingUnitOut, auth=None)
@has_permission(Permissions.HOUSING_UNITS_EDIT)
def update_unit(request: HttpRequest, unit_id: UUID, payload: HousingUnitUpdate):
    unit = services.update_unit(unit_id, payload, actor=get_actor(request))
    return _serialize_unit(unit, with_occupier=True)


@router.delete("/{unit_id}", response={204: None}, auth=None)
@has_permission(Permissions.HOUSING_UNITS_DELETE)
def delete_unit(request: HttpRequest, unit_id: UUID):
    """Soft delete a vacant unit."""
    ledger.delete_unit(unit_id, actor=get_actor(request))
    return 204, None
