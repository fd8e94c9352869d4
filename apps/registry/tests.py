import json
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

from django.core.management import call_command
from django.test import TestCase

from apps.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from apps.governance.models import AuditAction, AuditLog
from apps.identity.context import Actor
from apps.identity.testing import make_user
from apps.tenancy import ledger
from .dtos import HousingTypeIn, HousingUnitIn, HousingUnitUpdate
from .models import HousingType, HousingUnit
from .services import create_housing_type, create_unit, get_unit, list_units, update_unit


class RegistryTest(TestCase):
    def setUp(self):
        self.manager = Actor.from_user(make_user("manager", "manager"))
        self.viewer = Actor.from_user(make_user("viewer", "viewer"))
        self.apartment = HousingType.objects.create(name="Apartment")

    def unit_payload(self, number="101", **overrides):
        data = {
            "unit_number": number,
            "housing_type_id": self.apartment.id,
            "bedrooms": 2,
            "bathrooms": 1,
            "rental_rate": Decimal("1200.00"),
            "property_address": "1 Main St",
        }
        data.update(overrides)
        return HousingUnitIn(**data)

    def test_create_unit_starts_vacant(self):
        with self.captureOnCommitCallbacks(execute=True):
            unit = create_unit(self.unit_payload(), actor=self.manager)
        self.assertFalse(unit.occupied)
        self.assertEqual(unit.full_label, "Unit 101, 1 Main St")
        log = AuditLog.objects.get(subject_id=unit.id)
        self.assertEqual(log.action, AuditAction.CREATE)
        self.assertEqual(log.user_id, self.manager.user_id)

    def test_duplicate_unit_number_at_address(self):
        create_unit(self.unit_payload(), actor=self.manager)
        with self.assertRaises(ConflictError):
            create_unit(self.unit_payload(), actor=self.manager)
        # Same number at another address is fine
        create_unit(self.unit_payload(property_address="2 Main St"), actor=self.manager)

    def test_deleted_unit_frees_its_number(self):
        unit = create_unit(self.unit_payload(), actor=self.manager)
        ledger.delete_unit(unit.id, actor=self.manager)
        create_unit(self.unit_payload(), actor=self.manager)
        self.assertEqual(HousingUnit.objects.filter(unit_number="101").count(), 2)

    def test_unknown_housing_type(self):
        with self.assertRaises(ValidationError) as ctx:
            create_unit(self.unit_payload(housing_type_id=uuid4()), actor=self.manager)
        self.assertIn("housing_type_id", ctx.exception.errors)

    def test_viewer_cannot_create(self):
        with self.assertRaises(AuthorizationError):
            create_unit(self.unit_payload(), actor=self.viewer)

    def test_update_ignores_occupied(self):
        unit = create_unit(self.unit_payload(), actor=self.manager)
        # Extra keys never reach the model
        payload = HousingUnitUpdate(rental_rate=Decimal("1300.00"), occupied=True)
        updated = update_unit(unit.id, payload, actor=self.manager)
        self.assertEqual(updated.rental_rate, Decimal("1300.00"))
        unit.refresh_from_db()
        self.assertFalse(unit.occupied)

    def test_update_clears_nullable_fields(self):
        unit = create_unit(
            self.unit_payload(square_footage=Decimal("650.00"), description="Corner unit"),
            actor=self.manager,
        )
        payload = HousingUnitUpdate(square_footage=None, description=None)
        update_unit(unit.id, payload, actor=self.manager)
        unit.refresh_from_db()
        self.assertIsNone(unit.square_footage)
        self.assertEqual(unit.description, "")
        self.assertEqual(unit.rental_rate, Decimal("1200.00"))

        # Omitted or null required fields are left alone
        update_unit(unit.id, HousingUnitUpdate(rental_rate=None), actor=self.manager)
        unit.refresh_from_db()
        self.assertEqual(unit.rental_rate, Decimal("1200.00"))

    def test_update_into_existing_number_conflicts(self):
        create_unit(self.unit_payload("101"), actor=self.manager)
        second = create_unit(self.unit_payload("102"), actor=self.manager)
        with self.assertRaises(ConflictError):
            update_unit(second.id, HousingUnitUpdate(unit_number="101"), actor=self.manager)

    def test_list_filters(self):
        house = HousingType.objects.create(name="House")
        first = create_unit(self.unit_payload("101", condition_grade="A"), actor=self.manager)
        create_unit(self.unit_payload("7", housing_type_id=house.id, property_address="9 Elm St"),
                    actor=self.manager)
        ledger.place_occupier(first.id, {"name": "Alice", "move_in_date": date(2024, 1, 1)},
                              actor=self.manager)

        self.assertEqual([u.unit_number for u in list_units(occupied=True)], ["101"])
        self.assertEqual([u.unit_number for u in list_units(housing_type_id=house.id)], ["7"])
        self.assertEqual([u.unit_number for u in list_units(search="elm")], ["7"])
        self.assertEqual([u.unit_number for u in list_units(condition_grade="A")], ["101"])

    def test_get_deleted_unit(self):
        unit = create_unit(self.unit_payload(), actor=self.manager)
        ledger.delete_unit(unit.id, actor=self.manager)
        with self.assertRaises(NotFoundError):
            get_unit(unit.id)

    def test_housing_type_names_are_unique(self):
        create_housing_type(HousingTypeIn(name="Studio"), actor=self.manager)
        with self.assertRaises(ConflictError):
            create_housing_type(HousingTypeIn(name="studio"), actor=self.manager)


class RegistryAPITest(TestCase):
    def setUp(self):
        self.manager = make_user("manager", "manager")
        self.apartment = HousingType.objects.create(name="Apartment")
        self.client.force_login(self.manager)

    def post_unit(self, number="101"):
        return self.client.post(
            "/api/housing-units",
            data=json.dumps({
                "unit_number": number,
                "housing_type_id": str(self.apartment.id),
                "rental_rate": "950.00",
                "property_address": "1 Main St",
            }),
            content_type="application/json",
        )

    def test_create_and_get(self):
        response = self.post_unit()
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertFalse(body["occupied"])
        self.assertEqual(body["housing_type_name"], "Apartment")
        self.assertEqual(body["condition_label"], "Good")

        detail = self.client.get(f"/api/housing-units/{body['id']}")
        self.assertEqual(detail.status_code, 200)
        self.assertIsNone(detail.json()["current_occupier"])

    def test_duplicate_returns_400(self):
        self.post_unit()
        response = self.post_unit()
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "conflict")

    def test_negative_rent_rejected(self):
        response = self.client.post(
            "/api/housing-units",
            data=json.dumps({
                "unit_number": "1",
                "housing_type_id": str(self.apartment.id),
                "rental_rate": "-1",
                "property_address": "1 Main St",
            }),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 422)

    def test_delete_occupied_unit_refused(self):
        unit_id = self.post_unit().json()["id"]
        ledger.place_occupier(unit_id, {"name": "Alice", "move_in_date": "2024-01-01"},
                              actor=Actor.from_user(self.manager))

        response = self.client.delete(f"/api/housing-units/{unit_id}")
        self.assertEqual(response.status_code, 400)
        self.assertFalse(HousingUnit.objects.get(id=unit_id).is_deleted)

        detail = self.client.get(f"/api/housing-units/{unit_id}").json()
        self.assertTrue(detail["occupied"])
        self.assertEqual(detail["current_occupier"]["name"], "Alice")

    def test_delete_vacant_unit(self):
        unit_id = self.post_unit().json()["id"]
        response = self.client.delete(f"/api/housing-units/{unit_id}")
        self.assertEqual(response.status_code, 204)
        self.assertEqual(self.client.get(f"/api/housing-units/{unit_id}").status_code, 404)
        self.assertEqual(self.client.get("/api/housing-units").json(), [])

    def test_viewer_is_read_only(self):
        self.client.force_login(make_user("viewer", "viewer"))
        self.assertEqual(self.client.get("/api/housing-units").status_code, 200)
        self.assertEqual(self.post_unit().status_code, 403)

    def test_housing_types(self):
        response = self.client.post(
            "/api/housing-types",
            data=json.dumps({"name": "Townhouse"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        names = [t["name"] for t in self.client.get("/api/housing-types").json()]
        self.assertEqual(names, ["Apartment", "Townhouse"])


class SeedHousingTest(TestCase):
    def test_seed_types_only(self):
        call_command("seed_housing", stdout=StringIO())
        self.assertEqual(HousingType.objects.count(), 7)
        self.assertFalse(HousingUnit.objects.exists())

    def test_seed_with_occupiers_is_consistent(self):
        call_command("seed_housing", "--with-occupiers", stdout=StringIO())
        call_command("seed_housing", "--with-occupiers", stdout=StringIO())
        self.assertEqual(HousingUnit.objects.count(), 8)
        self.assertEqual(HousingUnit.objects.filter(occupied=True).count(), 4)
        self.assertEqual(ledger.find_inconsistent_units(), [])
