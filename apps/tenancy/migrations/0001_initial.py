import uuid

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('registry', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Occupier',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('phone', models.CharField(blank=True, max_length=30)),
                ('emergency_contact_name', models.CharField(blank=True, max_length=255)),
                ('emergency_contact_phone', models.CharField(blank=True, max_length=30)),
                ('move_in_date', models.DateField()),
                ('move_out_date', models.DateField(blank=True, null=True)),
                ('lease_start_date', models.DateField()),
                ('lease_end_date', models.DateField(blank=True, null=True)),
                ('lease_terms', models.TextField(blank=True)),
                ('rental_amount', models.DecimalField(decimal_places=2, default=0, max_digits=10, validators=[django.core.validators.MinValueValidator(0)])),
                ('deposit_amount', models.DecimalField(decimal_places=2, default=0, max_digits=10, validators=[django.core.validators.MinValueValidator(0)])),
                ('is_active', models.BooleanField(default=True)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('housing_unit', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='occupiers', to='registry.housingunit')),
            ],
            options={
                'db_table': 'occupiers',
                'ordering': ['-move_in_date', 'name'],
                'indexes': [
                    models.Index(fields=['move_in_date'], name='occupier_move_in_idx'),
                    models.Index(fields=['lease_end_date'], name='occupier_lease_end_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(deleted_at__isnull=True, move_out_date__isnull=True), fields=('housing_unit',), name='unique_current_occupier_per_unit'),
                ],
            },
        ),
    ]
