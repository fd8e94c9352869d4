from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from ninja import Schema
from ninja.orm import create_schema
from pydantic import Field

from .models import ConditionGrade, HousingType

HousingTypeOut = create_schema(HousingType, exclude=['created_at', 'updated_at'])


class HousingTypeIn(Schema):
    name: str = Field(min_length=1, max_length=100)
    description: str = ""
    is_active: bool = True


class CurrentOccupierOut(Schema):
    id: UUID
    name: str
    move_in_date: date
    lease_end_date: Optional[date] = None


class HousingUnitOut(Schema):
    id: UUID
    unit_number: str
    housing_type_id: UUID
    housing_type_name: str
    bedrooms: int
    bathrooms: int
    square_footage: Optional[Decimal] = None
    parking_spaces: int
    rental_rate: Decimal
    condition_grade: str
    condition_label: str
    property_address: str
    description: str
    is_active: bool
    occupied: bool
    created_at: datetime
    updated_at: datetime
    current_occupier: Optional[CurrentOccupierOut] = None


class HousingUnitIn(Schema):
    unit_number: str = Field(min_length=1, max_length=50)
    housing_type_id: UUID
    bedrooms: int = Field(default=0, ge=0)
    bathrooms: int = Field(default=0, ge=0)
    square_footage: Optional[Decimal] = Field(default=None, ge=0)
    parking_spaces: int = Field(default=0, ge=0)
    rental_rate: Decimal = Field(default=Decimal("0"), ge=0)
    condition_grade: ConditionGrade = ConditionGrade.B
    property_address: str = Field(min_length=1, max_length=255)
    description: str = ""
    is_active: bool = True


class HousingUnitUpdate(Schema):
    # No `occupied` here: only the occupancy ledger writes it
    unit_number: Optional[str] = Field(default=None, min_length=1, max_length=50)
    housing_type_id: Optional[UUID] = None
    bedrooms: Optional[int] = Field(default=None, ge=0)
    bathrooms: Optional[int] = Field(default=None, ge=0)
    square_footage: Optional[Decimal] = Field(default=None, ge=0)
    parking_spaces: Optional[int] = Field(default=None, ge=0)
    rental_rate: Optional[Decimal] = Field(default=None, ge=0)
    condition_grade: Optional[ConditionGrade] = None
    property_address: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    is_active: Optional[bool] = None
