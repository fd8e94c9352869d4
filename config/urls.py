"""
URL configuration for the HMS project.
"""
import logging

from django.contrib import admin
from django.urls import path
from ninja import NinjaAPI

from apps.core.exceptions import DomainError, PersistenceError

logger = logging.getLogger('apps.api')

api = NinjaAPI(
    title="HMS API",
    version="1.0.0",
    description="Housing Management System API",
    docs_url="/docs",
)


@api.exception_handler(DomainError)
def domain_error(request, exc: DomainError):
    """Validation 422, conflict 400, not found 404, forbidden 403, store failure 500."""
    if isinstance(exc, PersistenceError):
        logger.error(f"{request.method} {request.path} failed: {exc.message}")
    return api.create_response(request, exc.to_dict(), status=exc.status_code)


from apps.identity.api import router as identity_router
from apps.registry.api import router as housing_units_router, types_router as housing_types_router
from apps.tenancy.api import router as occupiers_router
from apps.notes.api import router as notes_router
from apps.reports.api import router as reports_router
from apps.governance.api import router as audit_router

api.add_router("/", identity_router)
api.add_router("/housing-types", housing_types_router)
api.add_router("/housing-units", housing_units_router)
api.add_router("/occupiers", occupiers_router)
api.add_router("/notes", notes_router)
api.add_router("/reports", reports_router)
api.add_router("/audit-logs", audit_router)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', api.urls),
]
