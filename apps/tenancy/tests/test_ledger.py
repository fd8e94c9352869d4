"""
Tests for the occupancy ledger.
Every test checks that a unit's occupied flag matches its occupier records
after the operation, whether it succeeded or was rejected.
"""
from datetime import date
from decimal import Decimal
from io import StringIO
from unittest import mock
from uuid import uuid4

from django.core.management import call_command
from django.db import DatabaseError
from django.test import TestCase, override_settings

from apps.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from apps.governance.models import AuditAction, AuditLog
from apps.identity.context import Actor
from apps.identity.testing import make_user
from apps.registry.models import HousingType, HousingUnit
from apps.tenancy import ledger
from apps.tenancy.models import Occupier


def make_unit(number: str, address: str = "1 Main St", **extra) -> HousingUnit:
    if "housing_type" not in extra:
        extra["housing_type"], _ = HousingType.objects.get_or_create(name="Apartment")
    extra.setdefault("rental_rate", Decimal("1200.00"))
    return HousingUnit.objects.create(unit_number=number, property_address=address, **extra)


class LedgerTestCase(TestCase):
    def setUp(self):
        self.actor = Actor.from_user(make_user("manager", "manager"))
        self.u1 = make_unit("101")
        self.u2 = make_unit("102")

    def place(self, unit, name="Alice", **attrs):
        attributes = {"name": name, "move_in_date": date(2024, 1, 1), "lease_end_date": date(2025, 1, 1)}
        attributes.update(attrs)
        return ledger.place_occupier(unit.id, attributes, actor=self.actor)

    def assertConsistent(self, *units):
        for unit in units:
            unit.refresh_from_db()
            self.assertTrue(ledger.is_consistent(unit), f"unit {unit.unit_number} drifted")


class PlaceOccupierTest(LedgerTestCase):

    def test_place_marks_unit_occupied(self):
        """Placing Alice in a vacant unit occupies it."""
        alice = self.place(self.u1)
        self.assertIsNone(alice.move_out_date)
        self.assertTrue(alice.is_active)
        self.assertEqual(alice.lease_start_date, date(2024, 1, 1))
        self.u1.refresh_from_db()
        self.assertTrue(self.u1.occupied)
        self.assertEqual(ledger.current_occupier(self.u1), alice)

    def test_second_placement_conflicts(self):
        """A second occupier is refused and the unit keeps exactly one current occupier."""
        alice = self.place(self.u1)
        with self.assertRaises(ConflictError):
            self.place(self.u1, name="Bob")
        self.assertEqual(list(Occupier.objects.current().filter(housing_unit=self.u1)), [alice])
        self.assertConsistent(self.u1)

    def test_drifted_flag_still_blocks_placement(self):
        """Occupancy is re-read from occupier rows, not only from the flag."""
        self.place(self.u1)
        HousingUnit.objects.filter(id=self.u1.id).update(occupied=False)
        with self.assertRaises(ConflictError):
            self.place(self.u1, name="Bob")

    def test_unique_constraint_backstop(self):
        """If the pre-check is bypassed the database still refuses a second current occupier."""
        self.place(self.u1)
        with mock.patch.object(ledger, "_ensure_placeable"):
            with self.assertRaises(ConflictError):
                self.place(self.u1, name="Bob")
        self.assertEqual(Occupier.objects.current().filter(housing_unit=self.u1).count(), 1)
        self.assertConsistent(self.u1)

    def test_inactive_unit_conflicts(self):
        unit = make_unit("103", is_active=False)
        with self.assertRaises(ConflictError):
            self.place(unit)
        self.assertFalse(Occupier.objects.exists())

    def test_missing_unit(self):
        with self.assertRaises(NotFoundError):
            ledger.place_occupier(uuid4(), {"name": "Alice", "move_in_date": date(2024, 1, 1)}, actor=self.actor)

    def test_validation_errors_are_reported_per_field(self):
        with self.assertRaises(ValidationError) as ctx:
            ledger.place_occupier(
                self.u1.id,
                {
                    "name": "",
                    "move_in_date": date(2024, 1, 1),
                    "lease_start_date": date(2024, 1, 1),
                    "lease_end_date": date(2024, 1, 1),
                    "rental_amount": "-5",
                },
                actor=self.actor,
            )
        errors = ctx.exception.errors
        self.assertIn("name", errors)
        self.assertIn("lease_end_date", errors)
        self.assertIn("rental_amount", errors)
        self.u1.refresh_from_db()
        self.assertFalse(self.u1.occupied)

    def test_ledger_fields_cannot_be_set_directly(self):
        with self.assertRaises(ValidationError) as ctx:
            self.place(self.u1, move_out_date=date(2024, 2, 1))
        self.assertIn("move_out_date", ctx.exception.errors)

    def test_string_dates_are_accepted(self):
        alice = self.place(self.u1, move_in_date="2024-03-01", lease_end_date="2025-03-01")
        self.assertEqual(alice.move_in_date, date(2024, 3, 1))

    def test_permission_checked_before_any_write(self):
        viewer = Actor.from_user(make_user("viewer", "viewer"))
        with self.assertRaises(AuthorizationError):
            ledger.place_occupier(self.u1.id, {"name": "Alice", "move_in_date": date(2024, 1, 1)}, actor=viewer)
        self.assertFalse(Occupier.objects.exists())

    def test_audit_emitted_on_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            alice = self.place(self.u1)
        log = AuditLog.objects.get(subject_type="Occupier", subject_id=alice.id)
        self.assertEqual(log.action, AuditAction.CREATE)
        self.assertEqual(log.user_id, self.actor.user_id)

    def test_rejected_operation_is_not_audited(self):
        self.place(self.u1)
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with self.assertRaises(ConflictError):
                self.place(self.u1, name="Bob")
        self.assertEqual(callbacks, [])

    def test_audit_failure_does_not_undo_placement(self):
        with mock.patch("apps.governance.audit_service.AuditLog.objects.create", side_effect=DatabaseError("boom")):
            with self.captureOnCommitCallbacks(execute=True):
                alice = self.place(self.u1)
        self.assertTrue(Occupier.objects.filter(id=alice.id).exists())
        self.assertConsistent(self.u1)


class TransferOccupierTest(LedgerTestCase):

    def test_transfer_moves_occupancy(self):
        alice = self.place(self.u1)
        ledger.transfer_occupier(alice.id, self.u2.id, actor=self.actor)
        alice.refresh_from_db()
        self.u1.refresh_from_db()
        self.u2.refresh_from_db()
        self.assertEqual(alice.housing_unit_id, self.u2.id)
        self.assertFalse(self.u1.occupied)
        self.assertTrue(self.u2.occupied)

    def test_transfer_into_occupied_unit_changes_nothing(self):
        alice = self.place(self.u1)
        bob = self.place(self.u2, name="Bob")
        with self.assertRaises(ConflictError):
            ledger.transfer_occupier(alice.id, self.u2.id, actor=self.actor)
        alice.refresh_from_db()
        self.assertEqual(alice.housing_unit_id, self.u1.id)
        self.assertEqual(ledger.current_occupier(self.u2), bob)
        self.assertConsistent(self.u1, self.u2)

    def test_same_unit_transfer_short_circuits(self):
        alice = self.place(self.u1)
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            result = ledger.transfer_occupier(alice.id, self.u1.id, actor=self.actor)
        self.assertEqual(result.housing_unit_id, self.u1.id)
        self.assertEqual(callbacks, [])

    def test_moved_out_occupier_cannot_transfer(self):
        alice = self.place(self.u1)
        ledger.record_move_out(alice.id, date(2024, 6, 1), actor=self.actor)
        with self.assertRaises(ConflictError):
            ledger.transfer_occupier(alice.id, self.u2.id, actor=self.actor)
        self.assertConsistent(self.u1, self.u2)

    def test_moved_out_occupier_cannot_transfer_to_own_unit(self):
        alice = self.place(self.u1)
        ledger.record_move_out(alice.id, date(2024, 6, 1), actor=self.actor)
        with self.assertRaises(ConflictError):
            ledger.transfer_occupier(alice.id, self.u1.id, actor=self.actor)
        alice.refresh_from_db()
        self.assertEqual(alice.move_out_date, date(2024, 6, 1))
        self.assertConsistent(self.u1)

    def test_transfer_to_deleted_unit(self):
        alice = self.place(self.u1)
        ledger.delete_unit(self.u2.id, actor=Actor.system())
        with self.assertRaises(NotFoundError):
            ledger.transfer_occupier(alice.id, self.u2.id, actor=self.actor)

    def test_failed_write_rolls_back_both_units(self):
        alice = self.place(self.u1)
        original_set = ledger._set_occupied

        def fail_on_new_unit(unit, occupied):
            if unit.id == self.u2.id:
                raise DatabaseError("connection lost")
            original_set(unit, occupied)

        with mock.patch.object(ledger, "_set_occupied", side_effect=fail_on_new_unit):
            with self.assertRaises(PersistenceError):
                ledger.transfer_occupier(alice.id, self.u2.id, actor=self.actor)

        alice.refresh_from_db()
        self.u1.refresh_from_db()
        self.u2.refresh_from_db()
        self.assertEqual(alice.housing_unit_id, self.u1.id)
        self.assertTrue(self.u1.occupied)
        self.assertFalse(self.u2.occupied)


class MoveOutTest(LedgerTestCase):

    def test_move_out_vacates_unit(self):
        alice = self.place(self.u1)
        ledger.record_move_out(alice.id, date(2024, 6, 1), actor=self.actor)
        alice.refresh_from_db()
        self.u1.refresh_from_db()
        self.assertEqual(alice.move_out_date, date(2024, 6, 1))
        self.assertFalse(alice.is_active)
        self.assertFalse(self.u1.occupied)

    def test_move_out_on_move_in_day_is_allowed(self):
        alice = self.place(self.u1)
        ledger.record_move_out(alice.id, date(2024, 1, 1), actor=self.actor)
        self.assertConsistent(self.u1)

    def test_move_out_before_move_in_is_rejected(self):
        bob = self.place(self.u1, name="Bob", move_in_date=date(2024, 3, 1), lease_end_date=date(2025, 3, 1))
        with self.assertRaises(ValidationError) as ctx:
            ledger.record_move_out(bob.id, date(2024, 2, 1), actor=self.actor)
        self.assertIn("move_out_date", ctx.exception.errors)
        bob.refresh_from_db()
        self.assertIsNone(bob.move_out_date)
        self.assertTrue(bob.is_active)
        self.assertConsistent(self.u1)

    def test_double_move_out_conflicts(self):
        alice = self.place(self.u1)
        ledger.record_move_out(alice.id, date(2024, 6, 1), actor=self.actor)
        with self.assertRaises(ConflictError):
            ledger.record_move_out(alice.id, date(2024, 7, 1), actor=self.actor)

    def test_unit_can_be_placed_again_after_move_out(self):
        alice = self.place(self.u1)
        ledger.record_move_out(alice.id, date(2024, 6, 1), actor=self.actor)
        bob = self.place(self.u1, name="Bob", move_in_date=date(2024, 6, 2), lease_end_date=date(2025, 6, 2))
        self.assertEqual(ledger.current_occupier(self.u1), bob)
        self.assertConsistent(self.u1)


class RemoveOccupierTest(LedgerTestCase):

    def test_remove_current_occupier_vacates(self):
        alice = self.place(self.u1)
        ledger.remove_occupier(alice.id, actor=self.actor)
        alice.refresh_from_db()
        self.assertIsNotNone(alice.deleted_at)
        self.assertFalse(alice.is_active)
        self.u1.refresh_from_db()
        self.assertFalse(self.u1.occupied)

    def test_remove_former_occupier_keeps_current_one(self):
        alice = self.place(self.u1)
        ledger.record_move_out(alice.id, date(2024, 6, 1), actor=self.actor)
        self.place(self.u1, name="Bob", move_in_date=date(2024, 6, 2), lease_end_date=date(2025, 6, 2))
        ledger.remove_occupier(alice.id, actor=self.actor)
        self.u1.refresh_from_db()
        self.assertTrue(self.u1.occupied)
        self.assertConsistent(self.u1)

    def test_removed_occupier_is_gone(self):
        alice = self.place(self.u1)
        ledger.remove_occupier(alice.id, actor=self.actor)
        with self.assertRaises(NotFoundError):
            ledger.remove_occupier(alice.id, actor=self.actor)

    def test_remove_requires_delete_permission(self):
        alice = self.place(self.u1)
        viewer = Actor.from_user(make_user("viewer", "viewer"))
        with self.assertRaises(AuthorizationError):
            ledger.remove_occupier(alice.id, actor=viewer)
        self.assertConsistent(self.u1)


class DeleteUnitTest(LedgerTestCase):

    def test_delete_occupied_unit_conflicts(self):
        self.place(self.u2)
        with self.assertRaises(ConflictError):
            ledger.delete_unit(self.u2.id, actor=self.actor)
        self.u2.refresh_from_db()
        self.assertIsNone(self.u2.deleted_at)
        self.assertTrue(self.u2.is_active)

    def test_delete_after_move_out(self):
        alice = self.place(self.u2)
        with self.assertRaises(ConflictError):
            ledger.delete_unit(self.u2.id, actor=self.actor)
        ledger.record_move_out(alice.id, date(2024, 6, 1), actor=self.actor)
        ledger.delete_unit(self.u2.id, actor=self.actor)
        self.u2.refresh_from_db()
        self.assertIsNotNone(self.u2.deleted_at)
        self.assertFalse(HousingUnit.objects.live().filter(id=self.u2.id).exists())

    def test_delete_twice_is_not_found(self):
        ledger.delete_unit(self.u1.id, actor=self.actor)
        with self.assertRaises(NotFoundError):
            ledger.delete_unit(self.u1.id, actor=self.actor)

    @override_settings(UNIT_DELETE_BLOCKED_BY_NOTES=True)
    def test_notes_block_deletion_when_policy_enabled(self):
        from apps.notes.models import Note
        Note.objects.create(author=make_user("author"), housing_unit=self.u1, title="Leak", body="Kitchen sink")
        with self.assertRaises(ConflictError):
            ledger.delete_unit(self.u1.id, actor=self.actor)

    @override_settings(UNIT_DELETE_BLOCKED_BY_NOTES=False)
    def test_notes_do_not_block_deletion_by_default(self):
        from apps.notes.models import Note
        Note.objects.create(author=make_user("author"), housing_unit=self.u1, title="Leak", body="Kitchen sink")
        ledger.delete_unit(self.u1.id, actor=self.actor)
        self.u1.refresh_from_db()
        self.assertIsNotNone(self.u1.deleted_at)


class ScenarioTest(LedgerTestCase):
    """The full lifecycle of one occupier across two units."""

    def test_lifecycle(self):
        alice = self.place(self.u1)
        self.assertTrue(HousingUnit.objects.get(id=self.u1.id).occupied)

        with self.assertRaises(ConflictError):
            self.place(self.u1, name="Bob")

        ledger.transfer_occupier(alice.id, self.u2.id, actor=self.actor)
        self.assertFalse(HousingUnit.objects.get(id=self.u1.id).occupied)
        self.assertTrue(HousingUnit.objects.get(id=self.u2.id).occupied)

        with self.assertRaises(ConflictError):
            ledger.delete_unit(self.u2.id, actor=self.actor)

        ledger.record_move_out(alice.id, date(2024, 6, 1), actor=self.actor)
        alice.refresh_from_db()
        self.assertEqual(alice.move_out_date, date(2024, 6, 1))
        self.assertFalse(alice.is_active)
        self.assertFalse(HousingUnit.objects.get(id=self.u2.id).occupied)

        ledger.delete_unit(self.u2.id, actor=self.actor)
        self.assertEqual(ledger.find_inconsistent_units(), [])


class InvariantHelpersTest(LedgerTestCase):

    def test_find_and_resync_drift(self):
        alice = self.place(self.u1)
        HousingUnit.objects.filter(id=self.u1.id).update(occupied=False)
        HousingUnit.objects.filter(id=self.u2.id).update(occupied=True)

        drifted = {unit.id for unit in ledger.find_inconsistent_units()}
        self.assertEqual(drifted, {self.u1.id, self.u2.id})

        with self.captureOnCommitCallbacks(execute=True):
            ledger.resync_unit(self.u1.id, actor=Actor.system())
            ledger.resync_unit(self.u2.id, actor=Actor.system())

        self.assertEqual(ledger.find_inconsistent_units(), [])
        self.assertEqual(ledger.current_occupier(self.u1), alice)
        self.assertEqual(
            AuditLog.objects.filter(subject_type="HousingUnit", action=AuditAction.UPDATE).count(), 2,
        )

    def test_resync_of_consistent_unit_is_silent(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            ledger.resync_unit(self.u1.id, actor=Actor.system())
        self.assertEqual(callbacks, [])

    def test_check_occupancy_command(self):
        self.place(self.u1)
        HousingUnit.objects.filter(id=self.u1.id).update(occupied=False)

        out = StringIO()
        call_command("check_occupancy", stdout=out)
        self.assertIn("1 inconsistent unit(s)", out.getvalue())
        self.assertFalse(HousingUnit.objects.get(id=self.u1.id).occupied)

        call_command("check_occupancy", "--fix", stdout=StringIO())
        self.assertTrue(HousingUnit.objects.get(id=self.u1.id).occupied)
