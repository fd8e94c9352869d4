"""
Reporting services.

Aggregations over housing units, occupiers, notes and the audit log, plus
PDF rendering of the occupancy, vacancy and activity reports.
"""
import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from io import BytesIO
from typing import Optional
from uuid import UUID

from django.db.models import Avg, Count, Prefetch, Q, Sum
from django.template.loader import render_to_string
from django.utils import timezone

from apps.core.exceptions import NotFoundError, ValidationError
from apps.core.policies import lease_expiry_warning_days
from apps.governance.models import AuditLog
from apps.notes.models import Note, NotePriority
from apps.registry.models import ConditionGrade, HousingType, HousingUnit
from apps.tenancy.models import Occupier

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')
REPORT_KINDS = ('occupancy', 'vacancy', 'financial', 'activity')
ACTIVITY_DEFAULT_DAYS = 30
ACTIVITY_MAX_ROWS = 1000


def _get_weasyprint():
    """Lazy import WeasyPrint so the API starts without its system libraries."""
    try:
        from weasyprint import HTML
        return HTML
    except ImportError:
        logger.error("WeasyPrint is not installed. Install with: pip install weasyprint")
        raise ImportError(
            "WeasyPrint is required for PDF generation. "
            "Install it with: pip install weasyprint"
        )


def _rate(part, whole) -> float:
    return round(float(part) / float(whole) * 100, 1) if whole else 0.0


def _money(value) -> Decimal:
    return (value or ZERO).quantize(Decimal('0.01'))


def _active_units():
    return HousingUnit.objects.live().filter(is_active=True)


def _unit_row(unit: HousingUnit) -> dict:
    current = getattr(unit, 'current_occupiers', None) or []
    return {
        "id": unit.id,
        "unit_number": unit.unit_number,
        "property_address": unit.property_address,
        "housing_type": unit.housing_type.name,
        "condition_grade": unit.condition_grade,
        "rental_rate": unit.rental_rate,
        "occupied": unit.occupied,
        "occupier_name": current[0].name if current else None,
    }


def dashboard(today: Optional[date] = None) -> dict:
    units = _active_units()
    total_units = units.count()
    occupied_units = units.filter(occupied=True).count()
    monthly_revenue = _money(units.filter(occupied=True).aggregate(total=Sum('rental_rate'))['total'])
    potential_revenue = _money(units.aggregate(total=Sum('rental_rate'))['total'])
    high_priority = Note.objects.filter(priority__in=[NotePriority.HIGH, NotePriority.URGENT]).count()

    return {
        "housing": {
            "total_units": total_units,
            "occupied_units": occupied_units,
            "vacant_units": total_units - occupied_units,
            "occupancy_rate": _rate(occupied_units, total_units),
            "poor_condition_units": units.filter(
                condition_grade__in=[ConditionGrade.D, ConditionGrade.F]
            ).count(),
        },
        "financial": {
            "monthly_revenue": monthly_revenue,
            "yearly_revenue": monthly_revenue * 12,
            "potential_revenue": potential_revenue,
            "revenue_efficiency": _rate(monthly_revenue, potential_revenue),
        },
        "occupiers": {
            "total_occupiers": Occupier.objects.current().count(),
            "expiring_leases": Occupier.objects.expiring_within(
                lease_expiry_warning_days(), today=today
            ).count(),
        },
        "notes": {
            "total_notes": Note.objects.count(),
            "high_priority_notes": high_priority,
        },
    }


def occupancy_report(
    housing_type_id: Optional[UUID] = None,
    occupancy_status: Optional[str] = None,
) -> dict:
    """
    Occupancy of active units, optionally narrowed to one housing type or
    to "occupied" / "vacant" units, with a per housing type breakdown.
    """
    units = _active_units().select_related('housing_type').prefetch_related(
        Prefetch('occupiers', queryset=Occupier.objects.current(), to_attr='current_occupiers')
    )
    if housing_type_id:
        units = units.filter(housing_type_id=housing_type_id)
    if occupancy_status:
        if occupancy_status not in ('occupied', 'vacant'):
            raise ValidationError.for_field("occupancy_status", "Use 'occupied' or 'vacant'")
        units = units.filter(occupied=occupancy_status == 'occupied')

    units = list(units)
    occupied = [u for u in units if u.occupied]
    statistics = {
        "total_units": len(units),
        "occupied_units": len(occupied),
        "vacant_units": len(units) - len(occupied),
        "occupancy_rate": _rate(len(occupied), len(units)),
        "monthly_revenue": _money(sum((u.rental_rate for u in occupied), ZERO)),
        "potential_revenue": _money(sum((u.rental_rate for u in units), ZERO)),
    }

    live_units = Q(units__deleted_at__isnull=True, units__is_active=True)
    breakdown = []
    for housing_type in HousingType.objects.annotate(
        total_units=Count('units', filter=live_units),
        occupied_units=Count('units', filter=live_units & Q(units__occupied=True)),
        monthly_revenue=Sum('units__rental_rate', filter=live_units & Q(units__occupied=True)),
    ):
        breakdown.append({
            "id": housing_type.id,
            "name": housing_type.name,
            "total_units": housing_type.total_units,
            "occupied_units": housing_type.occupied_units,
            "vacant_units": housing_type.total_units - housing_type.occupied_units,
            "occupancy_rate": _rate(housing_type.occupied_units, housing_type.total_units),
            "monthly_revenue": _money(housing_type.monthly_revenue),
        })

    return {
        "statistics": statistics,
        "housing_type_breakdown": breakdown,
        "units": [_unit_row(u) for u in units],
    }


def vacancy_report(
    housing_type_id: Optional[UUID] = None,
    condition: Optional[str] = None,
) -> dict:
    """Vacant active units and the rent they are not earning."""
    vacant = _active_units().filter(occupied=False).select_related('housing_type')
    if housing_type_id:
        vacant = vacant.filter(housing_type_id=housing_type_id)
    if condition:
        vacant = vacant.filter(condition_grade=condition)

    totals = vacant.aggregate(count=Count('id'), lost=Sum('rental_rate'), average=Avg('rental_rate'))
    total_units = _active_units().count()

    by_type = (
        vacant.values('housing_type__name')
        .annotate(count=Count('id'), lost_revenue=Sum('rental_rate'), average_rent=Avg('rental_rate'))
        .order_by('housing_type__name')
    )

    return {
        "statistics": {
            "total_vacant": totals['count'],
            "lost_revenue": _money(totals['lost']),
            "average_rent": _money(totals['average']),
            "total_units": total_units,
            "vacancy_rate": _rate(totals['count'], total_units),
        },
        "vacant_by_type": [
            {
                "type_name": row['housing_type__name'],
                "count": row['count'],
                "lost_revenue": _money(row['lost_revenue']),
                "average_rent": _money(row['average_rent']),
            }
            for row in by_type
        ],
        "vacant_units": [_unit_row(u) for u in vacant],
    }


def financial_report(housing_type_id: Optional[UUID] = None) -> dict:
    """
    Rent earned by occupied units against what vacant units could earn,
    with the contracted rent and deposits of current occupiers.
    """
    units = _active_units().select_related('housing_type').prefetch_related(
        Prefetch('occupiers', queryset=Occupier.objects.current(), to_attr='current_occupiers')
    )
    occupiers = Occupier.objects.current().filter(
        housing_unit__deleted_at__isnull=True, housing_unit__is_active=True,
    )
    if housing_type_id:
        units = units.filter(housing_type_id=housing_type_id)
        occupiers = occupiers.filter(housing_unit__housing_type_id=housing_type_id)

    units = list(units)
    occupied = [u for u in units if u.occupied]
    vacant = [u for u in units if not u.occupied]
    monthly_revenue = _money(sum((u.rental_rate for u in occupied), ZERO))
    potential_revenue = _money(sum((u.rental_rate for u in units), ZERO))
    held = occupiers.aggregate(rent=Sum('rental_amount'), deposits=Sum('deposit_amount'))

    by_type = {}
    for unit in units:
        row = by_type.setdefault(unit.housing_type.name, {
            "type_name": unit.housing_type.name,
            "monthly_revenue": ZERO,
            "potential_revenue": ZERO,
        })
        row["potential_revenue"] += unit.rental_rate
        if unit.occupied:
            row["monthly_revenue"] += unit.rental_rate

    return {
        "statistics": {
            "occupied_units": len(occupied),
            "vacant_units": len(vacant),
            "monthly_revenue": monthly_revenue,
            "yearly_revenue": monthly_revenue * 12,
            "potential_revenue": potential_revenue,
            "lost_revenue": potential_revenue - monthly_revenue,
            "revenue_efficiency": _rate(monthly_revenue, potential_revenue),
            "contracted_rent": _money(held['rent']),
            "deposits_held": _money(held['deposits']),
        },
        "revenue_by_type": [
            {
                **row,
                "monthly_revenue": _money(row["monthly_revenue"]),
                "potential_revenue": _money(row["potential_revenue"]),
            }
            for _, row in sorted(by_type.items())
        ],
        "occupied_units": [_unit_row(u) for u in occupied],
        "vacant_units": [_unit_row(u) for u in vacant],
    }


def activity_report(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    user_id: Optional[UUID] = None,
    action: Optional[str] = None,
    subject_type: Optional[str] = None,
) -> dict:
    """Audit log activity in a date range (last 30 days by default)."""
    date_to = date_to or timezone.localdate()
    date_from = date_from or date_to - timedelta(days=ACTIVITY_DEFAULT_DAYS)
    if date_from > date_to:
        raise ValidationError.for_field("date_from", "date_from must be on or before date_to")

    tz = timezone.get_current_timezone()
    logs = AuditLog.objects.select_related('user').filter(
        created_at__gte=timezone.make_aware(datetime.combine(date_from, time.min), tz),
        created_at__lt=timezone.make_aware(datetime.combine(date_to + timedelta(days=1), time.min), tz),
    )
    if user_id:
        logs = logs.filter(user_id=user_id)
    if action:
        logs = logs.filter(action=action)
    if subject_type:
        logs = logs.filter(subject_type__icontains=subject_type)

    by_action = {
        row['action']: row['count']
        for row in logs.values('action').annotate(count=Count('id')).order_by('action')
    }

    return {
        "date_from": date_from,
        "date_to": date_to,
        "statistics": {
            "total_activities": logs.count(),
            "unique_users": logs.exclude(user_id=None).values('user_id').order_by().distinct().count(),
            "by_action": by_action,
        },
        "activities": [
            {
                "id": log.id,
                "username": log.user.username if log.user_id else None,
                "action": log.action,
                "subject_type": log.subject_type,
                "subject_id": log.subject_id,
                "description": log.description,
                "created_at": log.created_at,
            }
            for log in logs[:ACTIVITY_MAX_ROWS]
        ],
    }


REPORT_TITLES = {
    'occupancy': 'Occupancy Report',
    'vacancy': 'Vacancy Report',
    'financial': 'Financial Report',
    'activity': 'Activity Report',
}


def build_report(kind: str, **filters) -> dict:
    if kind == 'occupancy':
        return occupancy_report(**filters)
    if kind == 'vacancy':
        return vacancy_report(**filters)
    if kind == 'financial':
        return financial_report(**filters)
    if kind == 'activity':
        return activity_report(**filters)
    raise NotFoundError(f"Unknown report: {kind}")


def render_pdf(kind: str, data: dict) -> bytes:
    """
    Render a report to PDF.

    Returns:
        PDF file as bytes
    """
    HTML = _get_weasyprint()

    context = {
        'kind': kind,
        'title': REPORT_TITLES[kind],
        'generated_at': timezone.now().strftime('%B %d, %Y at %I:%M %p'),
        'report': data,
    }
    html_content = render_to_string('reports/report.html', context)

    pdf_file = BytesIO()
    HTML(string=html_content).write_pdf(pdf_file)
    pdf_file.seek(0)
    return pdf_file.read()
