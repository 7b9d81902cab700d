# notifications/models.py
from django.conf import settings
from django.db import models


class Notification(models.Model):
    TYPE_CHOICES = [
        ('donor_match', 'Donor Match'),
        ('rule_triggered', 'Rule Triggered'),
    ]

    PRIORITY_CHOICES = [
        ('critical', 'Critical'),
        ('high', 'High'),
        ('normal', 'Normal'),
        ('low', 'Low'),
    ]

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications'
    )
    recipient_email = models.EmailField(blank=True)

    title = models.CharField(max_length=200)
    message = models.TextField(blank=True)
    notification_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    priority_level = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='normal')

    related_recipient = models.ForeignKey(
        'waitlist.Recipient',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications'
    )
    related_recipient_name = models.CharField(max_length=200, blank=True)
    action_url = models.CharField(max_length=255, blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    emailed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.title} → {self.recipient_email or self.recipient_id} ({self.priority_level})"

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['recipient', 'is_read']),
        ]


class NotificationRule(models.Model):
    EVENT_CHOICES = [
        ('priority_recalculated', 'Priority Recalculated'),
        ('patient_updated', 'Patient Updated'),
    ]

    rule_name = models.CharField(max_length=150)
    description = models.TextField(blank=True)
    trigger_event = models.CharField(max_length=30, choices=EVENT_CHOICES)
    conditions = models.JSONField(
        default=dict, blank=True,
        help_text='Optional keys: urgency_change, priority_threshold, status_change'
    )
    notification_template = models.JSONField(
        default=dict, blank=True,
        help_text='{"title": ..., "message": ...} with {patient_name}, {urgency}, {priority_score}'
    )
    priority_level = models.CharField(max_length=10, choices=Notification.PRIORITY_CHOICES, default='normal')
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.rule_name} ({self.trigger_event})"

    class Meta:
        ordering = ['rule_name']
