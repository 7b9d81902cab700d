from django.contrib import admin
from .models import Notification, NotificationRule


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['id', 'title', 'recipient_email', 'related_recipient_name',
                    'priority_level', 'notification_type', 'is_read', 'emailed_at', 'created_at']
    list_filter = ['priority_level', 'notification_type', 'is_read']
    search_fields = ['title', 'recipient_email', 'related_recipient_name']
    readonly_fields = ['created_at', 'emailed_at', 'read_at']


@admin.register(NotificationRule)
class NotificationRuleAdmin(admin.ModelAdmin):
    list_display = ['rule_name', 'trigger_event', 'priority_level', 'is_active']
    list_filter = ['trigger_event', 'priority_level', 'is_active']
    search_fields = ['rule_name', 'description']
