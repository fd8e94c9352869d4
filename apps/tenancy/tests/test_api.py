import json
from datetime import date, timedelta
from django.test import TestCase
from django.utils import timezone

from apps.identity.testing import make_user
from apps.registry.models import HousingUnit
from apps.tenancy.models import Occupier
from .test_ledger import make_unit


class OccupierAPITest(TestCase):
    def setUp(self):
        self.manager = make_user("manager", "manager")
        self.viewer = make_user("viewer", "viewer")
        self.u1 = make_unit("101")
        self.u2 = make_unit("102")
        self.client.force_login(self.manager)

    def post(self, path, payload):
        return self.client.post(path, data=json.dumps(payload), content_type="application/json")

    def create_alice(self, unit=None):
        return self.post("/api/occupiers", {
            "housing_unit_id": str((unit or self.u1).id),
            "name": "Alice",
            "move_in_date": "2024-01-01",
            "lease_end_date": "2025-01-01",
            "rental_amount": "1200.00",
        })

    def test_create_returns_201_and_occupies_unit(self):
        response = self.create_alice()
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["name"], "Alice")
        self.assertIsNone(body["move_out_date"])
        self.assertTrue(body["is_current"])
        self.assertTrue(HousingUnit.objects.get(id=self.u1.id).occupied)

    def test_create_in_occupied_unit_is_400(self):
        self.create_alice()
        response = self.create_alice()
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "conflict")

    def test_invalid_lease_is_422(self):
        response = self.post("/api/occupiers", {
            "housing_unit_id": str(self.u1.id),
            "name": "Alice",
            "move_in_date": "2024-01-01",
            "lease_start_date": "2024-01-01",
            "lease_end_date": "2023-12-31",
        })
        self.assertEqual(response.status_code, 422)
        self.assertIn("lease_end_date", response.json()["errors"])

    def test_move_and_move_out(self):
        alice_id = self.create_alice().json()["id"]

        response = self.post(f"/api/occupiers/{alice_id}/move", {"housing_unit_id": str(self.u2.id)})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["housing_unit_id"], str(self.u2.id))
        self.assertFalse(HousingUnit.objects.get(id=self.u1.id).occupied)
        self.assertTrue(HousingUnit.objects.get(id=self.u2.id).occupied)

        response = self.post(f"/api/occupiers/{alice_id}/move-out", {"move_out_date": "2023-12-01"})
        self.assertEqual(response.status_code, 422)

        response = self.post(f"/api/occupiers/{alice_id}/move-out", {"move_out_date": "2024-06-01"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "Former")
        self.assertFalse(HousingUnit.objects.get(id=self.u2.id).occupied)

    def test_update_with_new_unit_transfers(self):
        alice_id = self.create_alice().json()["id"]
        response = self.client.put(
            f"/api/occupiers/{alice_id}",
            data=json.dumps({"housing_unit_id": str(self.u2.id), "phone": "555-0101"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["phone"], "555-0101")
        self.assertEqual(body["housing_unit_id"], str(self.u2.id))
        self.assertFalse(HousingUnit.objects.get(id=self.u1.id).occupied)

    def test_update_into_occupied_unit_changes_nothing(self):
        alice_id = self.create_alice().json()["id"]
        self.create_alice(unit=self.u2)
        response = self.client.put(
            f"/api/occupiers/{alice_id}",
            data=json.dumps({"housing_unit_id": str(self.u2.id), "phone": "555-0101"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)
        alice = Occupier.objects.get(id=alice_id)
        self.assertEqual(alice.housing_unit_id, self.u1.id)
        self.assertEqual(alice.phone, "")

    def test_former_occupier_edit_keeps_unit(self):
        alice_id = self.create_alice().json()["id"]
        self.post(f"/api/occupiers/{alice_id}/move-out", {"move_out_date": "2024-06-01"})
        response = self.client.put(
            f"/api/occupiers/{alice_id}",
            data=json.dumps({"housing_unit_id": str(self.u1.id), "phone": "555-0199"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["phone"], "555-0199")
        self.assertFalse(HousingUnit.objects.get(id=self.u1.id).occupied)

    def test_delete_vacates_unit(self):
        alice_id = self.create_alice().json()["id"]
        response = self.client.delete(f"/api/occupiers/{alice_id}")
        self.assertEqual(response.status_code, 204)
        self.assertFalse(HousingUnit.objects.get(id=self.u1.id).occupied)
        self.assertEqual(self.client.get(f"/api/occupiers/{alice_id}").status_code, 404)

    def test_list_filters(self):
        alice_id = self.create_alice().json()["id"]
        today = timezone.localdate()
        self.post("/api/occupiers", {
            "housing_unit_id": str(self.u2.id),
            "name": "Bob",
            "move_in_date": str(today - timedelta(days=300)),
            "lease_end_date": str(today + timedelta(days=10)),
        })
        self.post(f"/api/occupiers/{alice_id}/move-out", {"move_out_date": "2024-06-01"})

        names = lambda r: sorted(o["name"] for o in r.json())
        self.assertEqual(names(self.client.get("/api/occupiers")), ["Alice", "Bob"])
        self.assertEqual(names(self.client.get("/api/occupiers?status=active")), ["Bob"])
        self.assertEqual(names(self.client.get("/api/occupiers?status=inactive")), ["Alice"])
        self.assertEqual(names(self.client.get("/api/occupiers?expiring=true")), ["Bob"])
        self.assertEqual(names(self.client.get("/api/occupiers?search=bo")), ["Bob"])

        bob = self.client.get("/api/occupiers?status=active").json()[0]
        self.assertEqual(bob["lease_status"], "expiring_soon")
        self.assertEqual(bob["days_until_lease_expiry"], 10)
        self.assertEqual(bob["occupancy_duration"], 300)

        stats = self.client.get("/api/occupiers/statistics").json()
        self.assertEqual(stats["total"], 2)
        self.assertEqual(stats["active"], 1)
        self.assertEqual(stats["expiring_soon"], 1)

    def test_viewer_cannot_create(self):
        self.client.force_login(self.viewer)
        response = self.create_alice()
        self.assertEqual(response.status_code, 403)
        self.assertFalse(Occupier.objects.exists())
        self.assertFalse(HousingUnit.objects.get(id=self.u1.id).occupied)

    def test_viewer_can_list(self):
        self.create_alice()
        self.client.force_login(self.viewer)
        response = self.client.get("/api/occupiers")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()), 1)

    def test_lease_status_expired(self):
        occupier = Occupier(
            housing_unit=self.u1, name="Old", move_in_date=date(2020, 1, 1),
            lease_start_date=date(2020, 1, 1), lease_end_date=date(2021, 1, 1),
        )
        self.assertEqual(occupier.lease_status(today=date(2022, 1, 1)), "expired")
        self.assertEqual(occupier.lease_status(today=date(2020, 12, 15)), "expiring_soon")
        self.assertEqual(occupier.lease_status(today=date(2020, 6, 1)), "active")
