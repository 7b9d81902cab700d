# waitlist/tasks.py
"""
Celery tasks for priority recomputation
"""
from celery import shared_task

from waitlist.exceptions import RecipientNotFound
from waitlist.services import recompute_priority, recompute_waitlist


@shared_task
def recompute_waitlist_priorities(organ_type=None):
    """
    Nightly rescore of the active waitlist. Waitlist time and evaluation
    recency move with the calendar, so stored scores go stale without it.
    """
    count = recompute_waitlist(organ_type=organ_type)
    return f"Recomputed {count} recipients"


@shared_task
def recompute_recipient_priority(recipient_id):
    try:
        result = recompute_priority(recipient_id)
    except RecipientNotFound:
        return f"Recipient {recipient_id} not found"
    return f"Recipient {recipient_id}: {result.priority_score:.1f}"
