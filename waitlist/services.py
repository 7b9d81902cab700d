# waitlist/services.py
"""
Scoring and matching operations invoked by the API, admin actions and
Celery tasks.

  recompute_priority  - rescore one recipient and store the breakdown
  run_matching        - rank the live pool for a donor organ (or a
                        hypothetical donor) and, when live, record the result
"""
import logging
from dataclasses import dataclass, field
from typing import List

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from algorithms.compatibility import DataError
from algorithms.matching import plan_match_effects, rank_candidates, PHYSICAL_CROSSMATCH_NOT_PERFORMED
from algorithms.priority import calculate_priority_score, rank_recipients_by_priority
from algorithms.records import DEFAULT_WEIGHTS
from notifications.models import Notification
from notifications.rules import check_notification_rules, notify_users
from notifications.tasks import deliver_notification_emails
from waitlist.exceptions import DonorOrganNotFound, InvalidDonor, PersistenceFailure, RecipientNotFound
from waitlist.models import DonorOrgan, Match, Recipient, WeightConfiguration

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger('organlink.audit')


def _actor(user):
    if user is None:
        return 'system', 'system'
    return getattr(user, 'audit_label', str(user)), getattr(user, 'role', '')


@dataclass
class PriorityResult:
    recipient_id: int
    priority_score: float
    breakdown: dict


@dataclass
class MatchingOutcome:
    donor: object
    simulation_mode: bool
    ranked: list
    total_matches: int
    matches_created: int = 0
    notifications_created: int = 0
    match_ids: List[int] = field(default_factory=list)


# ============================================
# WEIGHTS
# ============================================
def get_active_weight_config():
    """Snapshot of the active weight configuration, or the built-in defaults"""
    config = WeightConfiguration.objects.filter(is_active=True).first()
    if config is None:
        logger.info("No active weight configuration, using defaults")
        return DEFAULT_WEIGHTS
    return config.snapshot()


# ============================================
# PRIORITY
# ============================================
def recompute_priority(recipient_id, acting_user=None, now=None):
    """
    Rescore one recipient and persist the score with its breakdown.

    The row is locked for the whole read-score-write so two recomputes of
    the same recipient can't interleave.

    Raises:
        RecipientNotFound
    """
    now = now or timezone.now()
    weights = get_active_weight_config()

    with transaction.atomic():
        try:
            recipient = Recipient.objects.select_for_update().get(pk=recipient_id)
        except Recipient.DoesNotExist:
            raise RecipientNotFound(recipient_id)

        old_data = {
            'priority_score': recipient.priority_score,
            'medical_urgency': recipient.medical_urgency,
            'waitlist_status': recipient.waitlist_status,
        }
        total, breakdown = calculate_priority_score(recipient.snapshot(), weights, now)

        actor, role = _actor(acting_user)
        recipient.priority_score = total
        recipient.priority_score_breakdown = breakdown
        recipient.priority_calculated_at = now
        recipient.updated_by = actor
        recipient.save(update_fields=[
            'priority_score', 'priority_score_breakdown', 'priority_calculated_at',
            'updated_by', 'updated_at',
        ])

        check_notification_rules(recipient, 'priority_recalculated', old_data)

    audit_logger.info(
        f"update Recipient {recipient.pk} ({recipient.full_name}): "
        f"priority score calculated {total:.1f} by {actor} [{role}]"
    )
    return PriorityResult(recipient_id=recipient.pk, priority_score=total, breakdown=breakdown)


def recompute_waitlist(organ_type=None, acting_user=None, now=None):
    """Rescore every active recipient, one locked transaction each. Returns the count."""
    now = now or timezone.now()
    recipients = Recipient.objects.filter(waitlist_status='active')
    if organ_type:
        recipients = recipients.filter(organ_needed=organ_type)

    count = 0
    for recipient_id in recipients.order_by('id').values_list('id', flat=True):
        try:
            recompute_priority(recipient_id, acting_user=acting_user, now=now)
        except RecipientNotFound:
            # Removed between listing and scoring
            continue
        count += 1

    logger.info(f"Recomputed priority for {count} recipients")
    return count


def waitlist_export(organ_type=None, status='active'):
    """
    Recipients in waitlist order (stored priority score, then listing date)
    as plain rows ready for JSON or CSV output.
    """
    queryset = Recipient.objects.filter(waitlist_status=status)
    if organ_type:
        queryset = queryset.filter(organ_needed=organ_type)

    ranked = rank_recipients_by_priority([r.snapshot() for r in queryset])
    rows = []
    for position, record in enumerate(ranked, start=1):
        rows.append({
            'waitlist_rank': position,
            'recipient_id': record.id,
            'patient_id': record.patient_id,
            'name': record.full_name,
            'blood_type': record.blood_type,
            'organ_needed': record.organ_needed,
            'medical_urgency': record.medical_urgency,
            'priority_score': round(record.priority_score or 0, 2),
            'date_added_to_waitlist': record.date_added_to_waitlist.isoformat() if record.date_added_to_waitlist else None,
            'waitlist_status': record.waitlist_status,
        })
    return rows


# ============================================
# MATCHING
# ============================================
def load_candidate_pool(organ_type):
    """Active recipients needing organ_type, in primary-key order"""
    queryset = Recipient.objects.filter(waitlist_status='active', organ_needed=organ_type).order_by('id')
    return [recipient.snapshot() for recipient in queryset]


def _match_from_plan(record_plan, created_by):
    bundle = record_plan.bundle
    return Match(
        donor_organ_id=record_plan.donor_organ_id,
        recipient_id=record_plan.recipient_id,
        recipient_name=record_plan.recipient_name,
        compatibility_score=bundle.compatibility_score,
        blood_type_compatible=bundle.blood_type_compatible,
        abo_compatible=bundle.abo_compatible,
        hla_match_score=bundle.hla_match_score,
        hla_a_match=bundle.hla_matches['A'],
        hla_b_match=bundle.hla_matches['B'],
        hla_dr_match=bundle.hla_matches['DR'],
        hla_dq_match=bundle.hla_matches['DQ'],
        size_compatible=bundle.size_compatible,
        match_status='potential',
        priority_rank=record_plan.rank,
        virtual_crossmatch_result=bundle.virtual_crossmatch,
        physical_crossmatch_result=PHYSICAL_CROSSMATCH_NOT_PERFORMED,
        predicted_graft_survival=bundle.predicted_graft_survival,
        created_by=created_by,
    )


def _notification_from_plan(notification_plan):
    user = notification_plan.user
    return Notification(
        recipient=user,
        recipient_email=user.email,
        title=notification_plan.title,
        message=notification_plan.message,
        notification_type='donor_match',
        priority_level=notification_plan.priority_level,
        related_recipient_id=notification_plan.recipient_id,
        related_recipient_name=notification_plan.recipient_name,
        action_url=notification_plan.action_url,
        metadata=notification_plan.metadata,
    )


def apply_match_plan(plan, acting_user=None):
    """
    Write every Match and Notification in the plan, or none of them.

    Returns:
        Tuple of (created matches, created notifications)

    Raises:
        PersistenceFailure: the write failed and was rolled back
    """
    actor, _ = _actor(acting_user)
    try:
        with transaction.atomic():
            matches = [_match_from_plan(p, actor) for p in plan.matches]
            for match in matches:
                match.save()
            notifications = [_notification_from_plan(p) for p in plan.notifications]
            for notification in notifications:
                notification.save()

            notification_ids = [n.id for n in notifications]
            if notification_ids:
                transaction.on_commit(lambda: deliver_notification_emails.delay(notification_ids))
    except DatabaseError as exc:
        logger.exception("Matching pass could not be persisted, rolled back")
        raise PersistenceFailure(f"Could not save match results: {exc}") from exc

    return matches, notifications


def run_matching(donor_organ_id=None, hypothetical_donor=None, simulate=False, acting_user=None, now=None):
    """
    Rank the live candidate pool for a donor organ.

    Args:
        donor_organ_id: persisted DonorOrgan to match
        hypothetical_donor: DonorRecord used instead when simulating
        simulate: rank only; write nothing and notify nobody
        acting_user: user the writes are attributed to
        now: reference time for waitlist/age inputs

    Returns:
        MatchingOutcome with the full ranked list

    Raises:
        DonorOrganNotFound, InvalidDonor, PersistenceFailure
    """
    now = now or timezone.now()

    if simulate and hypothetical_donor is not None:
        donor = hypothetical_donor
    else:
        try:
            donor = DonorOrgan.objects.get(pk=donor_organ_id).snapshot()
        except (DonorOrgan.DoesNotExist, ValueError, TypeError):
            raise DonorOrganNotFound(donor_organ_id)

    pool = load_candidate_pool(donor.organ_type)
    try:
        result = rank_candidates(donor, pool, now)
    except DataError as exc:
        logger.error(f"Donor {donor.id} rejected before matching: {exc}")
        raise InvalidDonor(donor.id, exc) from exc

    outcome = MatchingOutcome(
        donor=donor,
        simulation_mode=simulate,
        ranked=result.ranked,
        total_matches=result.total_matches,
    )
    if simulate:
        return outcome

    plan = plan_match_effects(
        result,
        notify_users(),
        persist_limit=settings.ORGANLINK_MATCH_PERSIST_LIMIT,
        notify_top=settings.ORGANLINK_NOTIFY_TOP,
    )
    matches, notifications = apply_match_plan(plan, acting_user)
    outcome.matches_created = len(matches)
    outcome.notifications_created = len(notifications)
    outcome.match_ids = [m.id for m in matches]

    actor, role = _actor(acting_user)
    audit_logger.info(
        f"create DonorOrgan {donor.id}: advanced matching, {result.total_matches} compatible "
        f"recipients found, {len(matches)} matches recorded by {actor} [{role}]"
    )
    return outcome
