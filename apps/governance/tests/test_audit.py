"""
Tests for the audit log.

Covers:
1. log_action() and queue_action() record the right fields and never raise
2. Entries are append-only at the model and queryset level
3. GET /api/audit-logs: filters, authentication and the admin-only permission
"""
from uuid import uuid4
from unittest import mock

from django.db import DatabaseError, transaction
from django.test import TestCase

from apps.governance.audit_service import log_action, queue_action, snapshot
from apps.governance.models import AuditAction, AuditLog
from apps.identity.context import Actor
from apps.identity.testing import make_user


class AuditServiceTest(TestCase):
    """Test the log_action() helper directly."""

    def setUp(self):
        self.user = make_user("auditor")
        self.actor = Actor(
            user_id=self.user.id,
            username=self.user.username,
            role="admin",
            permissions=frozenset(),
            ip_address="10.0.0.5",
            user_agent="pytest",
        )
        self.subject_id = uuid4()

    def test_log_action_creates_audit_log(self):
        log = log_action(
            actor=self.actor,
            action=AuditAction.UPDATE,
            subject_type="HousingUnit",
            subject_id=self.subject_id,
            description="Updated unit 101",
            before={"rental_rate": "1000.00", "bedrooms": 2},
            after={"rental_rate": "1100.00", "bedrooms": 2},
        )
        self.assertIsNotNone(log)
        self.assertEqual(log.user, self.user)
        self.assertEqual(log.subject_id, self.subject_id)
        self.assertEqual(log.ip_address, "10.0.0.5")
        self.assertEqual(log.user_agent, "pytest")
        self.assertEqual(log.changes, [{"field": "rental_rate", "old": "1000.00", "new": "1100.00"}])

    def test_system_action_has_no_user(self):
        log = log_action(action=AuditAction.UPDATE, subject_type="HousingUnit", description="Resync")
        self.assertIsNone(log.user_id)
        self.assertIn("system", str(log))

    def test_invalid_ip_is_dropped(self):
        actor = Actor(user_id=self.user.id, username="auditor", role="admin",
                      permissions=frozenset(), ip_address="not-an-ip")
        log = log_action(actor=actor, action=AuditAction.VIEW, subject_type="Report")
        self.assertIsNone(log.ip_address)

    def test_log_action_never_raises(self):
        with mock.patch.object(AuditLog.objects, "create", side_effect=DatabaseError("down")):
            result = log_action(action=AuditAction.CREATE, subject_type="Occupier")
        self.assertIsNone(result)

    def test_queue_action_waits_for_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            with transaction.atomic():
                queue_action(action=AuditAction.CREATE, subject_type="Occupier", subject_id=self.subject_id)
                self.assertFalse(AuditLog.objects.filter(subject_id=self.subject_id).exists())
        self.assertTrue(AuditLog.objects.filter(subject_id=self.subject_id).exists())

    def test_snapshot_excludes_password(self):
        data = snapshot(self.user)
        self.assertNotIn("password", data)
        self.assertEqual(data["id"], self.user.id)
        self.assertEqual(data["username"], "auditor")


class AppendOnlyTest(TestCase):
    def setUp(self):
        self.log = log_action(action=AuditAction.CREATE, subject_type="Note", description="Created note")

    def test_instance_cannot_be_changed(self):
        self.log.description = "Edited"
        with self.assertRaises(TypeError):
            self.log.save()
        with self.assertRaises(TypeError):
            self.log.delete()

    def test_queryset_cannot_be_changed(self):
        with self.assertRaises(TypeError):
            AuditLog.objects.filter(id=self.log.id).update(description="Edited")
        with self.assertRaises(TypeError):
            AuditLog.objects.all().delete()
        self.assertEqual(AuditLog.objects.get(id=self.log.id).description, "Created note")


class AuditLogAPITest(TestCase):
    """Test GET /api/audit-logs endpoints."""

    def setUp(self):
        self.admin = make_user("audit_admin", "admin")
        self.manager = make_user("audit_manager", "manager")
        self.subject_id = uuid4()

        actor = Actor.from_user(self.admin)
        self.log1 = log_action(actor=actor, action=AuditAction.CREATE,
                               subject_type="Occupier", subject_id=self.subject_id)
        self.log2 = log_action(actor=actor, action=AuditAction.DELETE,
                               subject_type="HousingUnit", subject_id=uuid4())

    def test_list_audit_logs_requires_auth(self):
        response = self.client.get("/api/audit-logs")
        self.assertEqual(response.status_code, 401)

    def test_manager_cannot_list_audit_logs(self):
        self.client.force_login(self.manager)
        response = self.client.get("/api/audit-logs")
        self.assertEqual(response.status_code, 403)

    def test_admin_can_list_audit_logs(self):
        self.client.force_login(self.admin)
        response = self.client.get("/api/audit-logs")
        self.assertEqual(response.status_code, 200)
        ids = [d["id"] for d in response.json()]
        self.assertIn(str(self.log1.id), ids)
        self.assertIn(str(self.log2.id), ids)

    def test_filter_by_action(self):
        self.client.force_login(self.admin)
        response = self.client.get(f"/api/audit-logs?action={AuditAction.DELETE}")
        data = response.json()
        self.assertEqual(len(data), 1)
        self.assertEqual(data[0]["action_label"], "Deleted")
        self.assertEqual(data[0]["username"], "audit_admin")

    def test_filter_by_subject(self):
        self.client.force_login(self.admin)
        response = self.client.get(
            f"/api/audit-logs?subject_type=Occupier&subject_id={self.subject_id}"
        )
        data = response.json()
        self.assertEqual([d["id"] for d in data], [str(self.log1.id)])

    def test_get_single_log(self):
        self.client.force_login(self.admin)
        response = self.client.get(f"/api/audit-logs/{self.log1.id}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["subject_type"], "Occupier")
        self.assertEqual(self.client.get(f"/api/audit-logs/{uuid4()}").status_code, 404)
