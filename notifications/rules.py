# notifications/rules.py
"""
Notification rules: admin-configured triggers evaluated when a recipient's
priority is recalculated or their record is updated.
"""
import json
import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction

from notifications.models import Notification, NotificationRule
from notifications.tasks import deliver_notification_emails

logger = logging.getLogger(__name__)

URGENCY_LEVELS = {'low': 1, 'medium': 2, 'high': 3, 'critical': 4}


def notify_users():
    """Active users whose role receives engine notifications"""
    User = get_user_model()
    return list(
        User.objects.filter(is_active=True, role__in=settings.ORGANLINK_NOTIFY_ROLES).order_by('id')
    )


def _load_json(value):
    if value is None or isinstance(value, dict):
        return value or {}
    decoded = json.loads(value)
    if not isinstance(decoded, dict):
        raise ValueError(f"expected a JSON object, got {type(decoded).__name__}")
    return decoded


def rule_applies(conditions, recipient, old_data=None):
    """
    Evaluate a rule's conditions against the recipient.

    Args:
        conditions: dict with optional urgency_change, priority_threshold, status_change
        recipient: current Recipient
        old_data: dict of the recipient's values before the event, if known

    Returns:
        Boolean
    """
    should_trigger = True

    if conditions.get('urgency_change') and old_data:
        old_level = URGENCY_LEVELS.get(old_data.get('medical_urgency'), 0)
        new_level = URGENCY_LEVELS.get(recipient.medical_urgency, 0)
        should_trigger = new_level > old_level

    threshold = conditions.get('priority_threshold')
    if threshold is not None:
        should_trigger = should_trigger and (recipient.priority_score or 0) >= threshold

    if conditions.get('status_change') and old_data:
        should_trigger = should_trigger and recipient.waitlist_status != old_data.get('waitlist_status')

    return should_trigger


def render_template(text, recipient):
    return (
        text
        .replace('{patient_name}', recipient.full_name)
        .replace('{urgency}', recipient.medical_urgency or '')
        .replace('{priority_score}', f"{recipient.priority_score:.1f}" if recipient.priority_score is not None else 'N/A')
    )


def check_notification_rules(recipient, event_type, old_data=None):
    """
    Create rule_triggered notifications for every active rule listening to
    event_type whose conditions hold.

    Returns:
        List of created Notification objects
    """
    rules = NotificationRule.objects.filter(is_active=True, trigger_event=event_type)
    created = []
    users = None

    for rule in rules:
        try:
            conditions = _load_json(rule.conditions)
        except (TypeError, ValueError) as exc:
            logger.warning(f"Notification rule {rule.id} skipped: unreadable conditions ({exc})")
            continue

        if not rule_applies(conditions, recipient, old_data):
            continue

        try:
            template = _load_json(rule.notification_template)
        except (TypeError, ValueError):
            template = {}
        title = render_template(template.get('title') or rule.rule_name, recipient)
        message = render_template(template.get('message') or rule.description, recipient)

        if users is None:
            users = notify_users()
        for user in users:
            created.append(Notification.objects.create(
                recipient=user,
                recipient_email=user.email,
                title=title,
                message=message,
                notification_type='rule_triggered',
                priority_level=rule.priority_level,
                related_recipient_id=recipient.pk,
                related_recipient_name=recipient.full_name,
                action_url=f"/recipients/{recipient.pk}/",
                metadata={'rule_id': rule.id, 'event': event_type},
            ))

    if created:
        logger.info(f"{len(created)} rule notifications created for recipient {recipient.pk} on {event_type}")
        ids = [n.id for n in created]
        transaction.on_commit(lambda: deliver_notification_emails.delay(ids))

    return created
