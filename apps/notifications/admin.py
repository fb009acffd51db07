from django.contrib import admin
from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['title', 'recipient', 'type', 'read_at', 'created_at']
    list_filter = ['type', 'created_at']
    search_fields = ['title', 'message', 'recipient__email']
    readonly_fields = ['created_at']
