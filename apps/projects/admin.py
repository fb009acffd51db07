from django.contrib import admin
from .models import Project


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ['name', 'owner', 'status', 'priority', 'start_date', 'end_date', 'version']
    list_filter = ['status', 'priority', 'start_date']
    search_fields = ['name', 'description']
    date_hierarchy = 'start_date'
    filter_horizontal = ['members']
    readonly_fields = ['created_at', 'updated_at', 'version']
