import os
from django.core.management.base import BaseCommand
from apps.identity.models import Role, User
from apps.identity.permissions import RoleName, sync_default_roles


class Command(BaseCommand):
    help = 'Seeds permissions, the default roles and an initial admin user'

    def add_arguments(self, parser):
        parser.add_argument('--admin-username', default='admin')
        parser.add_argument('--admin-email', default='admin@example.com')
        parser.add_argument(
            '--admin-password',
            default=os.getenv('HMS_ADMIN_PASSWORD', 'admin12345'),
        )
        parser.add_argument('--no-admin', action='store_true', help='Only sync roles and permissions')

    def handle(self, *args, **options):
        for role_name, count in sync_default_roles().items():
            self.stdout.write(self.style.SUCCESS(f'Role {role_name}: {count} permissions'))

        if options['no_admin']:
            return

        admin_role = Role.objects.get(name=RoleName.ADMIN)
        user, created = User.objects.get_or_create(
            username=options['admin_username'],
            defaults={'email': options['admin_email']},
        )
        user.role = admin_role
        user.is_staff = True
        user.is_superuser = True
        user.is_active = True
        if created:
            user.set_password(options['admin_password'])
            user.save()
            self.stdout.write(self.style.SUCCESS(f'Created admin user: {user.username}'))
        else:
            user.save()
            self.stdout.write(self.style.WARNING(f'Updated admin user: {user.username}'))
