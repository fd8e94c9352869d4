import uuid

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='HousingType',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=100, unique=True)),
                ('description', models.TextField(blank=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'housing_types',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='HousingUnit',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('unit_number', models.CharField(max_length=50)),
                ('bedrooms', models.PositiveIntegerField(default=0)),
                ('bathrooms', models.PositiveIntegerField(default=0)),
                ('square_footage', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True, validators=[django.core.validators.MinValueValidator(0)])),
                ('parking_spaces', models.PositiveIntegerField(default=0)),
                ('rental_rate', models.DecimalField(decimal_places=2, default=0, max_digits=10, validators=[django.core.validators.MinValueValidator(0)])),
                ('condition_grade', models.CharField(choices=[('A', 'Excellent'), ('B', 'Good'), ('C', 'Fair'), ('D', 'Poor'), ('F', 'Needs Major Repairs')], default='B', max_length=1)),
                ('property_address', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True)),
                ('is_active', models.BooleanField(default=True)),
                ('occupied', models.BooleanField(db_index=True, default=False)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('housing_type', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='units', to='registry.housingtype')),
            ],
            options={
                'db_table': 'housing_units',
                'ordering': ['property_address', 'unit_number'],
                'indexes': [
                    models.Index(fields=['condition_grade'], name='housing_unit_condition_idx'),
                    models.Index(fields=['is_active'], name='housing_unit_active_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(deleted_at__isnull=True), fields=('property_address', 'unit_number'), name='unique_live_unit_number_per_address'),
                ],
            },
        ),
    ]
