from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from ninja import Schema
from pydantic import Field


class OccupierOut(Schema):
    id: UUID
    housing_unit_id: UUID
    unit_label: str
    name: str
    email: str
    phone: str
    emergency_contact_name: str
    emergency_contact_phone: str
    move_in_date: date
    move_out_date: Optional[date] = None
    lease_start_date: date
    lease_end_date: Optional[date] = None
    lease_terms: str
    rental_amount: Decimal
    deposit_amount: Decimal
    is_active: bool
    is_current: bool
    status: str
    lease_status: str
    days_until_lease_expiry: Optional[int] = None
    occupancy_duration: int
    created_at: datetime
    updated_at: datetime


class OccupierIn(Schema):
    housing_unit_id: UUID
    name: str = Field(min_length=1, max_length=255)
    email: Optional[str] = None
    phone: Optional[str] = Field(default=None, max_length=30)
    emergency_contact_name: Optional[str] = Field(default=None, max_length=255)
    emergency_contact_phone: Optional[str] = Field(default=None, max_length=30)
    move_in_date: date
    lease_start_date: Optional[date] = None
    lease_end_date: Optional[date] = None
    lease_terms: Optional[str] = None
    rental_amount: Decimal = Field(default=Decimal("0"), ge=0)
    deposit_amount: Decimal = Field(default=Decimal("0"), ge=0)


class OccupierUpdate(Schema):
    # Setting a different housing_unit_id transfers the occupier
    housing_unit_id: Optional[UUID] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = None
    phone: Optional[str] = Field(default=None, max_length=30)
    emergency_contact_name: Optional[str] = Field(default=None, max_length=255)
    emergency_contact_phone: Optional[str] = Field(default=None, max_length=30)
    move_in_date: Optional[date] = None
    lease_start_date: Optional[date] = None
    lease_end_date: Optional[date] = None
    lease_terms: Optional[str] = None
    rental_amount: Optional[Decimal] = Field(default=None, ge=0)
    deposit_amount: Optional[Decimal] = Field(default=None, ge=0)


class MoveIn(Schema):
    housing_unit_id: UUID


class MoveOutIn(Schema):
    move_out_date: date


class OccupierStatistics(Schema):
    total: int
    active: int
    inactive: int
    expiring_soon: int
    total_monthly_rent: Decimal
