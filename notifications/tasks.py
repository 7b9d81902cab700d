# notifications/tasks.py
"""
Celery tasks for e-mailing engine notifications
"""
import logging

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from notifications.models import Notification

logger = logging.getLogger(__name__)


def send_notification_email(notification):
    """Send one notification by e-mail. Returns True if a message went out."""
    if not notification.recipient_email:
        return False

    message = f"""
{notification.title.upper()}

{notification.message}

Priority: {notification.get_priority_level_display()}
View: {settings.SITE_URL}{notification.action_url}

OrganLink Waitlist
    """.strip()

    send_mail(
        subject=f"[{notification.priority_level.upper()}] {notification.title}",
        message=message,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[notification.recipient_email],
        fail_silently=False,
    )
    return True


@shared_task
def deliver_notification_emails(notification_ids):
    """
    E-mail each notification that hasn't been sent yet and stamp emailed_at
    """
    sent = 0
    notifications = Notification.objects.filter(id__in=notification_ids, emailed_at__isnull=True)

    for notification in notifications:
        try:
            if send_notification_email(notification):
                notification.emailed_at = timezone.now()
                notification.save(update_fields=['emailed_at'])
                sent += 1
        except Exception:
            logger.exception(f"E-mail failed for notification {notification.id}")

    logger.info(f"Delivered {sent} of {len(notification_ids)} notification e-mails")
    return sent
