from django.core.management.base import BaseCommand
from apps.identity.context import Actor
from apps.tenancy import ledger


class Command(BaseCommand):
    help = 'Reports housing units whose occupied flag disagrees with their occupier records'

    def add_arguments(self, parser):
        parser.add_argument('--fix', action='store_true', help='Re-derive the flag for every drifted unit')

    def handle(self, *args, **options):
        drifted = ledger.find_inconsistent_units()
        if not drifted:
            self.stdout.write(self.style.SUCCESS('All housing units are consistent'))
            return

        for unit in drifted:
            self.stdout.write(self.style.WARNING(
                f'{unit.full_label}: occupied={unit.occupied} but has_current_occupier={unit.has_current}'
            ))

        if not options['fix']:
            self.stdout.write(self.style.ERROR(f'{len(drifted)} inconsistent unit(s); rerun with --fix to repair'))
            return

        actor = Actor.system()
        for unit in drifted:
            ledger.resync_unit(unit.id, actor=actor)
        self.stdout.write(self.style.SUCCESS(f'Repaired {len(drifted)} unit(s)'))
