from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from ninja import Schema


class HousingStats(Schema):
    total_units: int
    occupied_units: int
    vacant_units: int
    occupancy_rate: float
    poor_condition_units: int


class FinancialStats(Schema):
    monthly_revenue: Decimal
    yearly_revenue: Decimal
    potential_revenue: Decimal
    revenue_efficiency: float


class OccupierStats(Schema):
    total_occupiers: int
    expiring_leases: int


class NoteStats(Schema):
    total_notes: int
    high_priority_notes: int


class DashboardOut(Schema):
    housing: HousingStats
    financial: FinancialStats
    occupiers: OccupierStats
    notes: NoteStats


class ReportUnit(Schema):
    id: UUID
    unit_number: str
    property_address: str
    housing_type: str
    condition_grade: str
    rental_rate: Decimal
    occupied: bool
    occupier_name: Optional[str] = None


class OccupancyStats(Schema):
    total_units: int
    occupied_units: int
    vacant_units: int
    occupancy_rate: float
    monthly_revenue: Decimal
    potential_revenue: Decimal


class HousingTypeOccupancy(Schema):
    id: UUID
    name: str
    total_units: int
    occupied_units: int
    vacant_units: int
    occupancy_rate: float
    monthly_revenue: Decimal


class OccupancyReportOut(Schema):
    statistics: OccupancyStats
    housing_type_breakdown: List[HousingTypeOccupancy]
    units: List[ReportUnit]


class VacancyStats(Schema):
    total_vacant: int
    lost_revenue: Decimal
    average_rent: Decimal
    total_units: int
    vacancy_rate: float


class HousingTypeVacancy(Schema):
    type_name: str
    count: int
    lost_revenue: Decimal
    average_rent: Decimal


class VacancyReportOut(Schema):
    statistics: VacancyStats
    vacant_by_type: List[HousingTypeVacancy]
    vacant_units: List[ReportUnit]


class FinancialReportStats(Schema):
    occupied_units: int
    vacant_units: int
    monthly_revenue: Decimal
    yearly_revenue: Decimal
    potential_revenue: Decimal
    lost_revenue: Decimal
    revenue_efficiency: float
    contracted_rent: Decimal
    deposits_held: Decimal


class HousingTypeRevenue(Schema):
    type_name: str
    monthly_revenue: Decimal
    potential_revenue: Decimal


class FinancialReportOut(Schema):
    statistics: FinancialReportStats
    revenue_by_type: List[HousingTypeRevenue]
    occupied_units: List[ReportUnit]
    vacant_units: List[ReportUnit]


class ActivityEntry(Schema):
    id: UUID
    username: Optional[str] = None
    action: str
    subject_type: str
    subject_id: Optional[UUID] = None
    description: str
    created_at: datetime


class ActivityStats(Schema):
    total_activities: int
    unique_users: int
    by_action: Dict[str, int]


class ActivityReportOut(Schema):
    date_from: date
    date_to: date
    statistics: ActivityStats
    activities: List[ActivityEntry]
