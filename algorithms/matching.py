"""
Matching orchestrator.

Ranks a candidate pool for one donor organ. Ranking is pure: the result
carries the ranked list and, separately, the writes a live pass would make
(see plan_match_effects). Nothing here touches the database.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Tuple

from algorithms.compatibility import Candidate, DataError, Rejected, REJECT_DATA_ERROR, evaluate, validate_donor
from algorithms.organs import to_organ_type

MATCH_PERSIST_LIMIT = 10
NOTIFY_TOP = 3

ACTIVE_STATUS = 'active'
PHYSICAL_CROSSMATCH_NOT_PERFORMED = 'not_performed'

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankedCandidate:
    rank: int
    recipient: object
    bundle: object


@dataclass
class RankedResult:
    donor: object
    ranked: List[RankedCandidate] = field(default_factory=list)
    rejections: List[Tuple[object, str]] = field(default_factory=list)
    pool_size: int = 0

    @property
    def total_matches(self):
        return len(self.ranked)


@dataclass(frozen=True)
class MatchRecordPlan:
    donor_organ_id: object
    recipient_id: object
    recipient_name: str
    rank: int
    bundle: object


@dataclass(frozen=True)
class NotificationPlan:
    user: object
    recipient_id: object
    recipient_name: str
    title: str
    message: str
    priority_level: str
    action_url: str
    metadata: dict


@dataclass
class MatchPlan:
    matches: List[MatchRecordPlan] = field(default_factory=list)
    notifications: List[NotificationPlan] = field(default_factory=list)


def _same_organ(donor, recipient):
    donor_organ = to_organ_type(donor.organ_type)
    return donor_organ is not None and donor_organ == to_organ_type(recipient.organ_needed)


def rank_candidates(donor, pool, now):
    """
    Filter, evaluate and rank a candidate pool.

    The pool is re-filtered to active recipients needing the donor's organ,
    whatever the caller already did. The sort is stable, so recipients with
    equal compatibility scores keep the order they had in the pool.

    Returns:
        RankedResult with ranks 1..N over every surviving candidate

    Raises:
        DataError: the donor's own fields can't be evaluated
    """
    validate_donor(donor)
    result = RankedResult(donor=donor)
    survivors = []

    for recipient in pool:
        if recipient.waitlist_status != ACTIVE_STATUS or not _same_organ(donor, recipient):
            continue
        result.pool_size += 1

        try:
            verdict = evaluate(donor, recipient, now)
        except DataError as exc:
            logger.warning(f"Recipient {recipient.id} excluded from donor {donor.id} matching: {exc}")
            result.rejections.append((recipient.id, REJECT_DATA_ERROR))
            continue

        if isinstance(verdict, Rejected):
            result.rejections.append((recipient.id, verdict.reason))
            continue
        if isinstance(verdict, Candidate):
            survivors.append((recipient, verdict.bundle))

    survivors.sort(key=lambda item: item[1].compatibility_score, reverse=True)

    result.ranked = [
        RankedCandidate(rank=position, recipient=recipient, bundle=bundle)
        for position, (recipient, bundle) in enumerate(survivors, start=1)
    ]

    logger.info(
        f"Donor {donor.id} ({donor.organ_type}, {donor.blood_type}): "
        f"{result.total_matches} compatible of {result.pool_size} candidates"
    )
    return result


def match_notification_message(candidate, donor):
    bundle = candidate.bundle
    return (
        f"Excellent match: {candidate.recipient.full_name} "
        f"({bundle.compatibility_score:.0f}% compatible, "
        f"{bundle.total_hla_matches}/6 HLA matches) for {donor.organ_type}"
    )


def plan_match_effects(result, notify_users, persist_limit=MATCH_PERSIST_LIMIT, notify_top=NOTIFY_TOP):
    """
    Turn a ranked result into the records a live pass writes.

    Args:
        result: RankedResult from rank_candidates
        notify_users: users who receive top-match notifications
        persist_limit: how many ranked candidates become Match records
        notify_top: how many ranked candidates trigger notifications

    Returns:
        MatchPlan
    """
    donor = result.donor
    plan = MatchPlan()

    for candidate in result.ranked[:persist_limit]:
        plan.matches.append(MatchRecordPlan(
            donor_organ_id=donor.id,
            recipient_id=candidate.recipient.id,
            recipient_name=candidate.recipient.full_name,
            rank=candidate.rank,
            bundle=candidate.bundle,
        ))

    for candidate in result.ranked[:notify_top]:
        priority_level = 'critical' if candidate.rank == 1 else 'high'
        message = match_notification_message(candidate, donor)
        for user in notify_users:
            plan.notifications.append(NotificationPlan(
                user=user,
                recipient_id=candidate.recipient.id,
                recipient_name=candidate.recipient.full_name,
                title='High-Compatibility Donor Match',
                message=message,
                priority_level=priority_level,
                action_url=f"/donor-matching/?donor_id={donor.id}",
                metadata={'donor_id': str(donor.id), 'patient_id': str(candidate.recipient.id)},
            ))

    return plan
