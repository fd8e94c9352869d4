from django.contrib import admin
from .models import HousingType, HousingUnit


@admin.register(HousingType)
class HousingTypeAdmin(admin.ModelAdmin):
    list_display = ['name', 'is_active']
    search_fields = ['name']


@admin.register(HousingUnit)
class HousingUnitAdmin(admin.ModelAdmin):
    list_display = ['full_label', 'housing_type', 'condition_grade', 'rental_rate', 'occupied', 'is_active']
    list_filter = ['housing_type', 'condition_grade', 'occupied', 'is_active']
    search_fields = ['unit_number', 'property_address']
    # Occupancy is maintained by the ledger only
    readonly_fields = ['occupied', 'deleted_at']
