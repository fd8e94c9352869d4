from django.contrib import admin
from .models import Note


@admin.register(Note)
class NoteAdmin(admin.ModelAdmin):
    list_display = ['title', 'category', 'priority', 'author', 'housing_unit', 'occupier', 'is_private', 'created_at']
    list_filter = ['category', 'priority', 'is_private']
    search_fields = ['title', 'body']
