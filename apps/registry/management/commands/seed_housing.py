from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.utils import timezone

from apps.identity.context import Actor
from apps.registry.models import HousingType, HousingUnit
from apps.tenancy import ledger

HOUSING_TYPES = [
    ('Apartment', 'Multi-unit residential building with shared common areas'),
    ('House', 'Single-family detached residential dwelling'),
    ('Townhouse', 'Multi-story attached residential unit'),
    ('Condo', 'Individually owned residential unit in a building'),
    ('Studio', 'Single-room living space with kitchenette'),
    ('Room', 'Single room in a shared living arrangement'),
    ('Duplex', 'Two-unit residential building'),
]

# (unit number, type, bedrooms, bathrooms, sq ft, parking, rent, grade, address, sample occupier)
SAMPLE_UNITS = [
    ('A101', 'Apartment', 1, 1, '650.00', 1, '850.00', 'B', '123 Maple Street, Springfield', 'John Smith'),
    ('A102', 'Apartment', 2, 1, '850.00', 1, '1100.00', 'A', '123 Maple Street, Springfield', None),
    ('B201', 'Apartment', 2, 2, '950.00', 2, '1350.00', 'B', '123 Maple Street, Springfield', 'Maria Garcia'),
    ('H001', 'House', 3, 2, '1200.00', 2, '1650.00', 'A', '456 Oak Avenue, Springfield', 'David Chen'),
    ('H002', 'House', 4, 3, '1800.00', 2, '2200.00', 'C', '789 Pine Road, Springfield', None),
    ('T01', 'Townhouse', 3, 2, '1400.00', 1, '1500.00', 'B', '12 Birch Lane, Springfield', None),
    ('S01', 'Studio', 0, 1, '400.00', 0, '650.00', 'D', '321 Elm Court, Springfield', 'Sarah Johnson'),
    ('R01', 'Room', 1, 1, '180.00', 0, '450.00', 'C', '55 Cedar Street, Springfield', None),
]


class Command(BaseCommand):
    help = 'Seeds housing types and, optionally, sample units with occupiers'

    def add_arguments(self, parser):
        parser.add_argument('--with-units', action='store_true', help='Also create sample housing units')
        parser.add_argument(
            '--with-occupiers',
            action='store_true',
            help='Place sample occupiers in some of the sample units (implies --with-units)',
        )

    def handle(self, *args, **options):
        types = {}
        for name, description in HOUSING_TYPES:
            housing_type, created = HousingType.objects.get_or_create(
                name=name, defaults={'description': description},
            )
            types[name] = housing_type
            if created:
                self.stdout.write(self.style.SUCCESS(f'Created housing type: {name}'))

        if not (options['with_units'] or options['with_occupiers']):
            return

        actor = Actor.system()
        today = timezone.localdate()
        for (number, type_name, bedrooms, bathrooms, sq_ft, parking,
             rent, grade, address, occupier_name) in SAMPLE_UNITS:
            unit, created = HousingUnit.objects.live().get_or_create(
                unit_number=number,
                property_address=address,
                defaults={
                    'housing_type': types[type_name],
                    'bedrooms': bedrooms,
                    'bathrooms': bathrooms,
                    'square_footage': Decimal(sq_ft),
                    'parking_spaces': parking,
                    'rental_rate': Decimal(rent),
                    'condition_grade': grade,
                },
            )
            if not created:
                self.stdout.write(self.style.WARNING(f'Unit {unit.full_label} already exists'))
                continue
            self.stdout.write(self.style.SUCCESS(f'Created unit: {unit.full_label}'))

            if options['with_occupiers'] and occupier_name:
                ledger.place_occupier(
                    unit.id,
                    {
                        'name': occupier_name,
                        'move_in_date': today - timedelta(days=180),
                        'lease_end_date': today + timedelta(days=185),
                        'rental_amount': unit.rental_rate,
                        'deposit_amount': unit.rental_rate,
                    },
                    actor=actor,
                )
                self.stdout.write(f'  Placed {occupier_name}')
