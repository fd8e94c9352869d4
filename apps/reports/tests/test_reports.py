from datetime import date, timedelta
from decimal import Decimal
from unittest import mock
from django.test import TestCase
from django.utils import timezone

from apps.core.exceptions import ValidationError
from apps.governance.audit_service import log_action
from apps.governance.models import AuditAction, AuditLog
from apps.identity.context import Actor
from apps.identity.testing import make_user
from apps.notes.models import Note
from apps.registry.models import HousingType
from apps.reports import services
from apps.tenancy import ledger
from apps.tenancy.tests.test_ledger import make_unit


class ReportFixtureMixin:
    def build_fixture(self):
        self.manager = make_user("manager", "manager")
        self.actor = Actor.from_user(self.manager)
        self.house, _ = HousingType.objects.get_or_create(name="House")

        self.u1 = make_unit("101", rental_rate=Decimal("1000.00"))
        self.u2 = make_unit("102", rental_rate=Decimal("1500.00"), condition_grade="D")
        self.u3 = make_unit("1", address="9 Elm St", housing_type=self.house, rental_rate=Decimal("2000.00"))
        make_unit("103", is_active=False, rental_rate=Decimal("999.00"))

        today = timezone.localdate()
        ledger.place_occupier(
            self.u1.id,
            {
                "name": "Alice",
                "move_in_date": today - timedelta(days=100),
                "lease_end_date": today + timedelta(days=5),
                "rental_amount": "1000.00",
                "deposit_amount": "500.00",
            },
            actor=self.actor,
        )
        ledger.place_occupier(
            self.u3.id,
            {"name": "Carol", "move_in_date": today - timedelta(days=400), "lease_end_date": today + timedelta(days=200)},
            actor=self.actor,
        )
        Note.objects.create(author=self.manager, title="Roof", body="Leaks", priority="urgent")
        Note.objects.create(author=self.manager, title="Paint", body="Fresh coat", priority="low")


class ReportServiceTest(ReportFixtureMixin, TestCase):
    def setUp(self):
        self.build_fixture()

    def test_dashboard(self):
        data = services.dashboard()
        self.assertEqual(data["housing"]["total_units"], 3)
        self.assertEqual(data["housing"]["occupied_units"], 2)
        self.assertEqual(data["housing"]["vacant_units"], 1)
        self.assertEqual(data["housing"]["occupancy_rate"], 66.7)
        self.assertEqual(data["housing"]["poor_condition_units"], 1)
        self.assertEqual(data["financial"]["monthly_revenue"], Decimal("3000.00"))
        self.assertEqual(data["financial"]["yearly_revenue"], Decimal("36000.00"))
        self.assertEqual(data["financial"]["potential_revenue"], Decimal("4500.00"))
        self.assertEqual(data["occupiers"]["total_occupiers"], 2)
        self.assertEqual(data["occupiers"]["expiring_leases"], 1)
        self.assertEqual(data["notes"]["high_priority_notes"], 1)

    def test_occupancy_report(self):
        data = services.occupancy_report()
        self.assertEqual(data["statistics"]["total_units"], 3)
        self.assertEqual(data["statistics"]["monthly_revenue"], Decimal("3000.00"))
        occupiers = {row["unit_number"]: row["occupier_name"] for row in data["units"]}
        self.assertEqual(occupiers, {"101": "Alice", "102": None, "1": "Carol"})

        breakdown = {row["name"]: row for row in data["housing_type_breakdown"]}
        self.assertEqual(breakdown["Apartment"]["total_units"], 2)
        self.assertEqual(breakdown["Apartment"]["occupied_units"], 1)
        self.assertEqual(breakdown["House"]["occupancy_rate"], 100.0)

    def test_occupancy_report_filters(self):
        data = services.occupancy_report(occupancy_status="vacant")
        self.assertEqual([row["unit_number"] for row in data["units"]], ["102"])
        data = services.occupancy_report(housing_type_id=self.house.id)
        self.assertEqual([row["unit_number"] for row in data["units"]], ["1"])
        with self.assertRaises(ValidationError):
            services.occupancy_report(occupancy_status="haunted")

    def test_vacancy_report(self):
        data = services.vacancy_report()
        self.assertEqual(data["statistics"]["total_vacant"], 1)
        self.assertEqual(data["statistics"]["lost_revenue"], Decimal("1500.00"))
        self.assertEqual(data["statistics"]["average_rent"], Decimal("1500.00"))
        self.assertEqual(data["statistics"]["vacancy_rate"], 33.3)
        self.assertEqual(data["vacant_by_type"][0]["type_name"], "Apartment")

    def test_financial_report(self):
        data = services.financial_report()
        stats = data["statistics"]
        self.assertEqual(stats["occupied_units"], 2)
        self.assertEqual(stats["vacant_units"], 1)
        self.assertEqual(stats["monthly_revenue"], Decimal("3000.00"))
        self.assertEqual(stats["potential_revenue"], Decimal("4500.00"))
        self.assertEqual(stats["lost_revenue"], Decimal("1500.00"))
        self.assertEqual(stats["revenue_efficiency"], 66.7)
        self.assertEqual(stats["contracted_rent"], Decimal("1000.00"))
        self.assertEqual(stats["deposits_held"], Decimal("500.00"))
        self.assertEqual(
            [(row["type_name"], row["monthly_revenue"], row["potential_revenue"]) for row in data["revenue_by_type"]],
            [("Apartment", Decimal("1000.00"), Decimal("2500.00")), ("House", Decimal("2000.00"), Decimal("2000.00"))],
        )
        self.assertEqual([row["unit_number"] for row in data["vacant_units"]], ["102"])

        data = services.financial_report(housing_type_id=self.house.id)
        self.assertEqual(data["statistics"]["monthly_revenue"], Decimal("2000.00"))
        self.assertEqual(data["statistics"]["contracted_rent"], Decimal("0.00"))

    def test_activity_report(self):
        log_action(actor=self.actor, action=AuditAction.VIEW, subject_type="Report", description="Viewed")
        log_action(actor=self.actor, action=AuditAction.EXPORT, subject_type="Report", description="Exported")
        log_action(action=AuditAction.UPDATE, subject_type="HousingUnit", description="System fix")

        data = services.activity_report()
        self.assertEqual(data["statistics"]["total_activities"], 3)
        self.assertEqual(data["statistics"]["unique_users"], 1)
        self.assertEqual(data["statistics"]["by_action"], {"export": 1, "update": 1, "view": 1})

        data = services.activity_report(subject_type="report")
        self.assertEqual(data["statistics"]["total_activities"], 2)

    def test_activity_report_rejects_inverted_range(self):
        with self.assertRaises(ValidationError):
            services.activity_report(date_from=date(2024, 2, 1), date_to=date(2024, 1, 1))


class ReportAPITest(ReportFixtureMixin, TestCase):
    def setUp(self):
        self.build_fixture()
        self.client.force_login(self.manager)

    def test_view_is_audited(self):
        response = self.client.get("/api/reports/occupancy")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["statistics"]["occupied_units"], 2)
        self.assertTrue(
            AuditLog.objects.filter(action=AuditAction.VIEW, description="Viewed occupancy report").exists()
        )

    def test_dashboard_endpoint(self):
        response = self.client.get("/api/reports/dashboard")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["housing"]["total_units"], 3)

    def test_export_pdf(self):
        fake_html = mock.MagicMock()
        fake_html.return_value.write_pdf.side_effect = lambda target: target.write(b"%PDF-1.7 test")

        with mock.patch.object(services, "_get_weasyprint", return_value=fake_html):
            response = self.client.get("/api/reports/vacancy/export")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "application/pdf")
        self.assertTrue(response.content.startswith(b"%PDF"))
        self.assertIn("Vacancy Report", fake_html.call_args.kwargs["string"])
        self.assertTrue(AuditLog.objects.filter(action=AuditAction.EXPORT).exists())

    def test_financial_endpoint(self):
        response = self.client.get("/api/reports/financial")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["statistics"]["occupied_units"], 2)
        self.assertTrue(
            AuditLog.objects.filter(action=AuditAction.VIEW, description="Viewed financial report").exists()
        )

    def test_unknown_export(self):
        response = self.client.get("/api/reports/salaries/export")
        self.assertEqual(response.status_code, 404)

    def test_viewer_cannot_export(self):
        self.client.force_login(make_user("viewer", "viewer"))
        self.assertEqual(self.client.get("/api/reports/occupancy").status_code, 200)
        self.assertEqual(self.client.get("/api/reports/occupancy/export").status_code, 403)
