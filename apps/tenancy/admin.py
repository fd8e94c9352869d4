from django.contrib import admin
from .models import Occupier


@admin.register(Occupier)
class OccupierAdmin(admin.ModelAdmin):
    list_display = ['name', 'housing_unit', 'move_in_date', 'move_out_date', 'lease_end_date', 'is_active']
    list_filter = ['is_active']
    search_fields = ['name', 'email', 'phone']
    # Changed through the occupancy ledger only
    readonly_fields = ['housing_unit', 'move_out_date', 'is_active', 'deleted_at']

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
