from django.contrib import admin
from .models import Task, TaskComment, TaskAttachment


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ['title', 'project', 'assignee', 'status', 'priority', 'due_date', 'version']
    list_filter = ['status', 'priority', 'due_date']
    search_fields = ['title', 'description']
    date_hierarchy = 'due_date'
    readonly_fields = ['created_at', 'updated_at', 'completed_at', 'version']


@admin.register(TaskComment)
class TaskCommentAdmin(admin.ModelAdmin):
    list_display = ['id', 'task', 'author', 'parent', 'edited', 'created_at']
    search_fields = ['content']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(TaskAttachment)
class TaskAttachmentAdmin(admin.ModelAdmin):
    list_display = ['file_name', 'task', 'file_type', 'file_size', 'uploaded_by', 'created_at']
    search_fields = ['file_name', 'content_hash']
    readonly_fields = ['created_at', 'content_hash']
