import json
from django.test import TestCase, override_settings
from apps.core.exceptions import AuthorizationError, ConflictError, ValidationError
from apps.governance.models import AuditAction, AuditLog
from .context import Actor
from .dtos import UserCreate, UserUpdate
from .jwt_auth import ACCESS_COOKIE, REFRESH_COOKIE, create_access_token, get_user_id_from_token
from .models import Role
from .permissions import Permissions, RoleName, get_user_permissions, sync_default_roles
from .testing import make_user
from . import services


class RBACTest(TestCase):
    def setUp(self):
        sync_default_roles()

    def test_admin_permissions(self):
        user = make_user("admin", RoleName.ADMIN)
        perms = get_user_permissions(user)
        self.assertEqual(perms, frozenset(Permissions.all()))

    def test_manager_permissions(self):
        user = make_user("manager", RoleName.MANAGER)
        perms = get_user_permissions(user)
        self.assertIn(Permissions.OCCUPIERS_CREATE, perms)
        self.assertIn(Permissions.REPORTS_EXPORT, perms)
        self.assertNotIn(Permissions.USERS_CREATE, perms)
        self.assertNotIn(Permissions.AUDIT_LOGS_VIEW, perms)

    def test_viewer_permissions(self):
        user = make_user("viewer", RoleName.VIEWER)
        perms = get_user_permissions(user)
        self.assertIn(Permissions.HOUSING_UNITS_VIEW, perms)
        self.assertNotIn(Permissions.HOUSING_UNITS_CREATE, perms)

    def test_inactive_user_has_no_permissions(self):
        user = make_user("gone", RoleName.ADMIN, is_active=False)
        self.assertEqual(get_user_permissions(user), frozenset())

    def test_user_without_role_has_no_permissions(self):
        user = make_user("norole")
        user.role = None
        user.save()
        self.assertEqual(get_user_permissions(user), frozenset())

    def test_sync_is_idempotent(self):
        sync_default_roles()
        self.assertEqual(Role.objects.count(), 3)
        admin = Role.objects.get(name=RoleName.ADMIN)
        self.assertEqual(admin.permissions.count(), len(Permissions.all()))

    def test_actor_require(self):
        actor = Actor.from_user(make_user("viewer", RoleName.VIEWER))
        actor.require(Permissions.NOTES_VIEW)
        with self.assertRaises(AuthorizationError):
            actor.require(Permissions.NOTES_CREATE)

    def test_system_actor_holds_every_permission(self):
        actor = Actor.system()
        self.assertTrue(actor.is_system)
        for perm in Permissions.all():
            self.assertTrue(actor.has_permission(perm))


class UserServiceTest(TestCase):
    def setUp(self):
        self.admin = make_user("admin")
        self.actor = Actor.from_user(self.admin)

    def test_create_user(self):
        payload = UserCreate(username="jane", email="jane@example.com", password="s3cretpass", role="manager")
        with self.captureOnCommitCallbacks(execute=True):
            user = services.create_user(payload, actor=self.actor)
        self.assertEqual(user.role, "manager")
        self.assertIn(Permissions.OCCUPIERS_CREATE, user.permissions)
        log = AuditLog.objects.get(subject_id=user.id)
        self.assertEqual(log.action, AuditAction.CREATE)
        self.assertNotIn("password", log.after)

    def test_duplicate_username_conflicts(self):
        payload = UserCreate(username="admin", email="x@example.com", password="s3cretpass")
        with self.assertRaises(ConflictError):
            services.create_user(payload, actor=self.actor)

    def test_unknown_role_is_validation_error(self):
        payload = UserCreate(username="bob", email="bob@example.com", password="s3cretpass", role="owner")
        with self.assertRaises(ValidationError) as ctx:
            services.create_user(payload, actor=self.actor)
        self.assertIn("role", ctx.exception.errors)

    def test_update_role_and_password(self):
        user = make_user("bob", RoleName.VIEWER)
        updated = services.update_user(
            user.id, UserUpdate(role="manager", password="newpassword"), actor=self.actor,
        )
        self.assertEqual(updated.role, "manager")
        user.refresh_from_db()
        self.assertTrue(user.check_password("newpassword"))

    def test_cannot_deactivate_self(self):
        with self.assertRaises(ConflictError):
            services.update_user(self.admin.id, UserUpdate(is_active=False), actor=self.actor)
        with self.assertRaises(ConflictError):
            services.deactivate_user(self.admin.id, actor=self.actor)

    def test_deactivate_user(self):
        user = make_user("bob", RoleName.VIEWER)
        services.deactivate_user(user.id, actor=self.actor)
        user.refresh_from_db()
        self.assertFalse(user.is_active)


@override_settings(DEBUG=True)
class AuthAPITest(TestCase):
    def setUp(self):
        self.user = make_user("manager", RoleName.MANAGER, password="password123")

    def _login(self, password="password123"):
        return self.client.post(
            "/api/auth/login",
            data=json.dumps({"username": "manager", "password": password}),
            content_type="application/json",
        )

    def test_login_sets_cookies_and_audits(self):
        response = self._login()
        self.assertEqual(response.status_code, 200)
        self.assertIn(ACCESS_COOKIE, response.cookies)
        self.assertIn(REFRESH_COOKIE, response.cookies)
        self.assertEqual(
            get_user_id_from_token(response.cookies[ACCESS_COOKIE].value), self.user.id,
        )

        self.user.refresh_from_db()
        self.assertIsNotNone(self.user.last_login)
        self.assertTrue(
            AuditLog.objects.filter(user=self.user, action=AuditAction.LOGIN).exists()
        )

    def test_login_with_wrong_password(self):
        response = self._login(password="wrong")
        self.assertEqual(response.status_code, 401)

    def test_me_with_token_cookie(self):
        self._login()
        response = self.client.get("/api/auth/me")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["username"], "manager")
        self.assertEqual(response.json()["role"], "manager")

    def test_deactivated_user_token_is_rejected(self):
        self.client.cookies[ACCESS_COOKIE] = create_access_token(self.user.id)
        self.user.is_active = False
        self.user.save()
        response = self.client.get("/api/auth/me")
        self.assertEqual(response.status_code, 401)

    def test_logout_clears_cookies(self):
        self._login()
        response = self.client.post("/api/auth/logout")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.cookies[ACCESS_COOKIE].value, "")
        self.assertTrue(
            AuditLog.objects.filter(user=self.user, action=AuditAction.LOGOUT).exists()
        )

    def test_refresh(self):
        self._login()
        response = self.client.post("/api/auth/refresh")
        self.assertEqual(response.status_code, 200)
        self.assertIn(ACCESS_COOKIE, response.cookies)


class UserAPITest(TestCase):
    def setUp(self):
        self.admin = make_user("admin")
        self.viewer = make_user("viewer", RoleName.VIEWER)

    def test_create_user_returns_201(self):
        self.client.force_login(self.admin)
        response = self.client.post(
            "/api/users",
            data=json.dumps({
                "username": "newbie",
                "email": "newbie@example.com",
                "password": "password123",
                "role": "viewer",
            }),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["username"], "newbie")

    def test_viewer_cannot_list_users(self):
        self.client.force_login(self.viewer)
        response = self.client.get("/api/users")
        self.assertEqual(response.status_code, 403)

    def test_anonymous_is_401(self):
        response = self.client.get("/api/users")
        self.assertEqual(response.status_code, 401)

    def test_list_roles(self):
        self.client.force_login(self.admin)
        response = self.client.get("/api/roles")
        self.assertEqual(response.status_code, 200)
        self.assertEqual({r["name"] for r in response.json()}, {"admin", "manager", "viewer"})


class ProfileTest(TestCase):
    def setUp(self):
        self.viewer = make_user("viewer", RoleName.VIEWER, password="password123")
        self.client.force_login(self.viewer)

    def put_me(self, payload):
        return self.client.put("/api/auth/me", data=json.dumps(payload), content_type="application/json")

    def test_viewer_edits_own_profile_but_not_role(self):
        with self.captureOnCommitCallbacks(execute=True):
            response = self.put_me({
                "email": "new@example.com",
                "first_name": "Vera",
                "role": "admin",
                "is_active": False,
            })
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["email"], "new@example.com")

        self.viewer.refresh_from_db()
        self.assertEqual(self.viewer.email, "new@example.com")
        self.assertEqual(self.viewer.first_name, "Vera")
        self.assertEqual(self.viewer.role_name, RoleName.VIEWER)
        self.assertTrue(self.viewer.is_active)
        self.assertTrue(
            AuditLog.objects.filter(subject_id=self.viewer.id, action=AuditAction.UPDATE).exists()
        )

    def test_password_change_needs_current_password(self):
        response = self.put_me({"password": "brandnew123", "current_password": "wrong"})
        self.assertEqual(response.status_code, 422)
        self.assertIn("current_password", response.json()["errors"])

        response = self.put_me({"password": "brandnew123", "current_password": "password123"})
        self.assertEqual(response.status_code, 200)
        self.viewer.refresh_from_db()
        self.assertTrue(self.viewer.check_password("brandnew123"))
        # Session survives the password change
        self.assertEqual(self.client.get("/api/auth/me").status_code, 200)

    def test_anonymous_cannot_edit(self):
        self.client.logout()
        self.assertEqual(self.put_me({"email": "x@example.com"}).status_code, 401)
