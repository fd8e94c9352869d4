"""
Reports API endpoints.

Read-only aggregations. Viewing a report is recorded in the audit log as
a view, downloading its PDF as an export.
"""
from datetime import date
from typing import Optional
from uuid import UUID
from django.http import HttpRequest, HttpResponse
from django.utils import timezone
from ninja import Router
from ninja.errors import HttpError

from apps.governance.audit_service import AuditAction, log_action
from apps.identity.decorators import get_actor, has_permission
from apps.identity.permissions import Permissions
from .dtos import ActivityReportOut, DashboardOut, FinancialReportOut, OccupancyReportOut, VacancyReportOut
from . import services

router = Router(tags=["Reports"])


def _audit_view(request: HttpRequest, report: str):
    log_action(
        actor=get_actor(request),
        action=AuditAction.VIEW,
        subject_type="Report",
        description=f"Viewed {report} report",
    )


@router.get("/dashboard", response=DashboardOut, auth=None)
@has_permission(Permissions.REPORTS_VIEW)
def dashboard(request: HttpRequest):
    data = services.dashboard()
    _audit_view(request, "dashboard")
    return data


@router.get("/occupancy", response=OccupancyReportOut, auth=None)
@has_permission(Permissions.REPORTS_VIEW)
def occupancy(
    request: HttpRequest,
    housing_type: Optional[UUID] = None,
    occupancy_status: Optional[str] = None,
):
    data = services.occupancy_report(housing_type_id=housing_type, occupancy_status=occupancy_status)
    _audit_view(request, "occupancy")
    return data


@router.get("/vacancy", response=VacancyReportOut, auth=None)
@has_permission(Permissions.REPORTS_VIEW)
def vacancy(
    request: HttpRequest,
    housing_type: Optional[UUID] = None,
    condition: Optional[str] = None,
):
    data = services.vacancy_report(housing_type_id=housing_type, condition=condition)
    _audit_view(request, "vacancy")
    return data


@router.get("/financial", response=FinancialReportOut, auth=None)
@has_permission(Permissions.REPORTS_VIEW)
def financial(request: HttpRequest, housing_type: Optional[UUID] = None):
    data = services.financial_report(housing_type_id=housing_type)
    _audit_view(request, "financial")
    return data


@router.get("/activity", response=ActivityReportOut, auth=None)
@has_permission(Permissions.REPORTS_VIEW)
def activity(
    request: HttpRequest,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    user: Optional[UUID] = None,
    action: Optional[str] = None,
    subject_type: Optional[str] = None,
):
    data = services.activity_report(
        date_from=date_from,
        date_to=date_to,
        user_id=user,
        action=action,
        subject_type=subject_type,
    )
    _audit_view(request, "activity")
    return data


@router.get("/{kind}/export", auth=None)
@has_permission(Permissions.REPORTS_EXPORT)
def export_report(request: HttpRequest, kind: str):
    """
    Download the occupancy, vacancy, financial or activity report as a PDF.
    Accepts no filters; the full report is exported.
    """
    if kind not in services.REPORT_KINDS:
        raise HttpError(404, f"Unknown report: {kind}")

    try:
        pdf_content = services.render_pdf(kind, services.build_report(kind))
    except ImportError as e:
        raise HttpError(500, str(e))

    log_action(
        actor=get_actor(request),
        action=AuditAction.EXPORT,
        subject_type="Report",
        description=f"Exported {kind} report as PDF",
    )

    filename = f"{kind}_report_{timezone.localdate().strftime('%Y%m%d')}.pdf"
    response = HttpResponse(pdf_content, content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response
