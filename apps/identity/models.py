import uuid
from django.db import models
from django.contrib.auth.models import AbstractUser


class Permission(models.Model):
    """
    A named capability scoped to a module, e.g. "housing_units.create".
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100, unique=True)
    description = models.CharField(max_length=255, blank=True)
    module = models.CharField(max_length=50, db_index=True)

    class Meta:
        db_table = 'permissions'
        ordering = ['module', 'name']

    def __str__(self):
        return self.name


class Role(models.Model):
    """
    Named bundle of permissions (admin, manager, viewer...).
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=50, unique=True)
    description = models.CharField(max_length=255, blank=True)
    permissions = models.ManyToManyField(
        Permission,
        related_name='roles',
        db_table='role_permissions',
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'roles'
        ordering = ['name']

    def __str__(self):
        return self.name


class User(AbstractUser):
    """
    Back-office operator. Effective capabilities come from the single role.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    role = models.ForeignKey(
        Role,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='users',
    )
    phone = models.CharField(max_length=20, blank=True)

    class Meta:
        db_table = 'users'
        ordering = ['username']

    def __str__(self):
        return self.email or self.username

    @property
    def role_name(self):
        return self.role.name if self.role_id else None
