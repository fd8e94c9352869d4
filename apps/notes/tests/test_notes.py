import json
from uuid import uuid4
from django.test import TestCase, override_settings

from apps.core.exceptions import AuthorizationError, ValidationError
from apps.governance.models import AuditAction, AuditLog
from apps.identity.context import Actor
from apps.identity.testing import make_user
from apps.notes import services
from apps.notes.dtos import NoteIn, NoteUpdate
from apps.notes.models import Note
from apps.tenancy.tests.test_ledger import make_unit


class NoteServiceTest(TestCase):
    def setUp(self):
        self.alice = make_user("alice", "manager")
        self.bob = make_user("bob", "manager")
        self.admin = make_user("root", "admin")
        self.alice_actor = Actor.from_user(self.alice)
        self.bob_actor = Actor.from_user(self.bob)
        self.admin_actor = Actor.from_user(self.admin)
        self.unit = make_unit("101")

    def create(self, actor=None, **fields):
        data = {"title": "Leaking tap", "body": "Kitchen tap drips", "housing_unit_id": self.unit.id}
        data.update(fields)
        return services.create_note(NoteIn(**data), actor=actor or self.alice_actor)

    def test_create_sets_author_and_scope(self):
        with self.captureOnCommitCallbacks(execute=True):
            note = self.create(category="maintenance", priority="high")
        self.assertEqual(note.author_id, self.alice.id)
        self.assertEqual(note.scope, "unit")
        self.assertEqual(note.category, "maintenance")
        self.assertTrue(AuditLog.objects.filter(subject_id=note.id, action=AuditAction.CREATE).exists())

    def test_general_note(self):
        note = self.create(housing_unit_id=None)
        self.assertEqual(note.scope, "general")

    def test_missing_reference_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self.create(occupier_id=uuid4())
        self.assertIn("occupier_id", ctx.exception.errors)

    def test_private_notes_hidden_from_others(self):
        private = self.create(is_private=True)
        public = self.create(title="Public")

        self.assertEqual(set(services.list_notes(self.bob_actor)), {public})
        self.assertEqual(set(services.list_notes(self.alice_actor)), {private, public})
        self.assertEqual(set(services.list_notes(self.admin_actor)), {private, public})

        with self.assertRaises(AuthorizationError):
            services.get_note(private.id, self.bob_actor)
        self.assertEqual(services.get_note(private.id, self.admin_actor), private)

    @override_settings(NOTE_EDIT_RESTRICTED_TO_AUTHOR=True)
    def test_only_author_or_admin_may_edit(self):
        note = self.create()
        with self.assertRaises(AuthorizationError):
            services.update_note(note.id, NoteUpdate(title="Hijacked"), actor=self.bob_actor)
        with self.assertRaises(AuthorizationError):
            services.delete_note(note.id, actor=self.bob_actor)

        services.update_note(note.id, NoteUpdate(title="Fixed"), actor=self.alice_actor)
        services.update_note(note.id, NoteUpdate(priority="urgent"), actor=self.admin_actor)
        note.refresh_from_db()
        self.assertEqual(note.title, "Fixed")
        self.assertEqual(note.priority, "urgent")

    @override_settings(NOTE_EDIT_RESTRICTED_TO_AUTHOR=False)
    def test_anyone_with_permission_may_edit_when_unrestricted(self):
        note = self.create()
        services.update_note(note.id, NoteUpdate(title="Edited by Bob"), actor=self.bob_actor)
        note.refresh_from_db()
        self.assertEqual(note.title, "Edited by Bob")

    @override_settings(NOTE_ELEVATED_ROLES=["admin", "manager"])
    def test_elevated_roles_are_configurable(self):
        note = self.create()
        services.update_note(note.id, NoteUpdate(title="Manager edit"), actor=self.bob_actor)
        note.refresh_from_db()
        self.assertEqual(note.title, "Manager edit")

    def test_detach_from_unit(self):
        note = self.create()
        services.update_note(note.id, NoteUpdate(housing_unit_id=None), actor=self.alice_actor)
        note.refresh_from_db()
        self.assertIsNone(note.housing_unit_id)
        self.assertEqual(note.scope, "general")

    def test_delete(self):
        note = self.create()
        with self.captureOnCommitCallbacks(execute=True):
            services.delete_note(note.id, actor=self.alice_actor)
        self.assertFalse(Note.objects.filter(id=note.id).exists())
        log = AuditLog.objects.get(subject_id=note.id, action=AuditAction.DELETE)
        self.assertEqual(log.before["title"], "Leaking tap")


class NoteAPITest(TestCase):
    def setUp(self):
        self.manager = make_user("manager", "manager")
        self.viewer = make_user("viewer", "viewer")
        self.unit = make_unit("101")

    def test_create_and_filter(self):
        self.client.force_login(self.manager)
        response = self.client.post(
            "/api/notes",
            data=json.dumps({
                "title": "Inspection due",
                "body": "Annual inspection next week",
                "category": "inspection",
                "priority": "medium",
                "housing_unit_id": str(self.unit.id),
            }),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["author_username"], "manager")

        response = self.client.get(f"/api/notes?housing_unit={self.unit.id}&category=inspection")
        self.assertEqual(len(response.json()), 1)
        response = self.client.get("/api/notes?category=complaint")
        self.assertEqual(response.json(), [])

    def test_invalid_category_is_422(self):
        self.client.force_login(self.manager)
        response = self.client.post(
            "/api/notes",
            data=json.dumps({"title": "x", "body": "y", "category": "gossip"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 422)

    def test_viewer_cannot_create(self):
        self.client.force_login(self.viewer)
        response = self.client.post(
            "/api/notes",
            data=json.dumps({"title": "x", "body": "y"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 403)

    def test_edit_by_non_author_is_403(self):
        note = Note.objects.create(author=self.viewer, title="Mine", body="...")
        self.client.force_login(self.manager)
        response = self.client.put(
            f"/api/notes/{note.id}",
            data=json.dumps({"title": "Theirs"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["code"], "forbidden")
