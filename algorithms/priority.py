# algorithms/priority.py
"""
Priority Algorithm: scores a waitlisted recipient from medical urgency, time on
the waitlist, an organ-specific severity index, evaluation recency and blood
type rarity, then applies comorbidity/transplant/compliance adjustments.

Every function here is pure. The reference time is passed in as ``now`` so a
score can be reproduced exactly from the recorded breakdown.
"""
import math
from datetime import date, datetime

from algorithms.blood_compatibility import blood_type_rarity_score
from algorithms.organs import OrganType, to_organ_type
from algorithms.records import DEFAULT_WEIGHTS

URGENCY_SCORES = {
    'critical': 100,
    'high': 75,
    'medium': 50,
    'low': 25,
}
DEFAULT_URGENCY_SCORE = 50

FUNCTIONAL_STATUS_MULTIPLIERS = {
    'critical': 1.2,
    'fully_dependent': 1.1,
    'partially_dependent': 1.0,
    'independent': 0.95,
}

PROGNOSIS_MULTIPLIERS = {
    'critical': 1.3,
    'poor': 1.15,
    'fair': 1.0,
    'good': 0.95,
    'excellent': 0.9,
}

FULL_WAIT_DAYS = 730
LONG_WAIT_DAYS = 1095
LONG_WAIT_BONUS = 10

EVALUATION_WINDOW_DAYS = 90

MELD_MIN = 6
MELD_MAX = 40
ORGAN_FALLBACK_FACTOR = 0.6

COMPONENTS = (
    'medical_urgency',
    'time_on_waitlist',
    'organ_specific',
    'evaluation_recency',
    'blood_type_rarity',
)


def days_since(value, now):
    """
    Whole days elapsed between value and now, or None when value is missing.
    Accepts dates or datetimes on either side.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        reference = now if isinstance(now, datetime) else datetime.combine(now, datetime.min.time())
        if (value.tzinfo is None) != (reference.tzinfo is None):
            value = value.replace(tzinfo=reference.tzinfo)
        return math.floor((reference - value).total_seconds() / 86400)
    reference_date = now.date() if isinstance(now, datetime) else now
    return (reference_date - value).days


def calculate_urgency_score(medical_urgency, functional_status=None, prognosis_rating=None):
    """
    Urgency level scaled by functional status and prognosis.

    The result is deliberately not capped: a critical recipient in critical
    condition scores above 100 and only the final total is clamped.
    """
    base = URGENCY_SCORES.get(medical_urgency, DEFAULT_URGENCY_SCORE)
    functional_adjustment = FUNCTIONAL_STATUS_MULTIPLIERS.get(functional_status, 1.0)
    prognosis_adjustment = PROGNOSIS_MULTIPLIERS.get(prognosis_rating, 1.0)
    score = base * functional_adjustment * prognosis_adjustment

    return score, {
        'level': medical_urgency,
        'base': base,
        'functional_status': functional_status,
        'functional_adjustment': functional_adjustment,
        'prognosis_rating': prognosis_rating,
        'prognosis_adjustment': prognosis_adjustment,
        'final': score,
    }


def calculate_time_score(date_added_to_waitlist, now):
    """
    0 at listing, 100 after two years, with a flat bonus past three years
    (still capped at 100).
    """
    days = days_since(date_added_to_waitlist, now)
    if days is None:
        return 0, {'days': None, 'base_score': 0, 'long_wait_bonus': 0}
    # A listing date after now counts as listed today
    days = max(0, days)

    score = min(100, (days / FULL_WAIT_DAYS) * 100)
    bonus = LONG_WAIT_BONUS if days > LONG_WAIT_DAYS else 0
    if bonus:
        score = min(100, score + bonus)

    return score, {'days': days, 'base_score': score, 'long_wait_bonus': bonus}


def calculate_organ_score(recipient, urgency_base):
    """
    Organ-specific severity on a 0-100 scale.

    Liver uses MELD (6-40), lung uses LAS as-is, kidney uses PRA/CPRA
    sensitization. Anything else, or a liver/lung recipient without an index,
    falls back to a share of the urgency base score.
    """
    organ = to_organ_type(recipient.organ_needed)

    if organ is OrganType.LIVER and recipient.meld_score is not None:
        normalized = (recipient.meld_score - MELD_MIN) / (MELD_MAX - MELD_MIN) * 100
        normalized = min(100, max(0, normalized))
        return normalized, {'type': 'MELD', 'score': recipient.meld_score, 'normalized': normalized}

    if organ is OrganType.LUNG and recipient.las_score is not None:
        normalized = min(100, max(0, recipient.las_score))
        return normalized, {'type': 'LAS', 'score': recipient.las_score, 'normalized': normalized}

    if organ is OrganType.KIDNEY:
        kidney_score = 50
        if recipient.pra_percentage:
            kidney_score += (recipient.pra_percentage / 100) * 30
        if recipient.cpra_percentage:
            kidney_score += (recipient.cpra_percentage / 100) * 20
        normalized = min(100, kidney_score)
        return normalized, {
            'type': 'Kidney (PRA/CPRA)',
            'pra': recipient.pra_percentage,
            'cpra': recipient.cpra_percentage,
            'normalized': normalized,
        }

    normalized = urgency_base * ORGAN_FALLBACK_FACTOR
    return normalized, {'type': 'Default (based on urgency)', 'normalized': normalized}


def calculate_evaluation_score(last_evaluation_date, now, decay_rate):
    """
    Full marks inside the 90-day window, then geometric decay per elapsed
    90-day period: 100 * (1 - decay_rate) ** periods.
    """
    days = days_since(last_evaluation_date, now)
    if days is None:
        return 0, {'status': 'No evaluation on record', 'score': 0}

    periods = days // EVALUATION_WINDOW_DAYS
    if days <= EVALUATION_WINDOW_DAYS:
        score = 100
    else:
        score = 100 * (1 - decay_rate) ** periods

    return score, {
        'days_since_eval': days,
        'decay_periods': periods,
        'decay_rate': decay_rate,
        'score': score,
    }


def calculate_adjustments(recipient):
    """Unweighted post-weighting adjustments: comorbidity, prior transplants, compliance"""
    comorbidity_penalty = 0
    if recipient.comorbidity_score:
        comorbidity_penalty = (recipient.comorbidity_score / 10) * 10

    previous_transplant_adjustment = 0
    if recipient.previous_transplants and recipient.previous_transplants > 0:
        previous_transplant_adjustment = -5 * recipient.previous_transplants

    compliance_bonus = 0
    if recipient.compliance_score:
        compliance_bonus = (recipient.compliance_score / 10) * 5

    return {
        'comorbidity_penalty': -comorbidity_penalty,
        'previous_transplant_adjustment': previous_transplant_adjustment,
        'compliance_bonus': compliance_bonus,
    }


def calculate_priority_score(recipient, weights=None, now=None):
    """
    Score one recipient.

    Args:
        recipient: RecipientRecord (or anything exposing the same attributes)
        weights: WeightConfig; DEFAULT_WEIGHTS when None
        now: reference datetime for every elapsed-time input

    Returns:
        Tuple of (total clamped to 0-100, breakdown dict)
    """
    if now is None:
        raise ValueError("now is required to score a recipient")
    weights = weights or DEFAULT_WEIGHTS
    decay_rate = weights.evaluation_decay_rate
    if decay_rate is None:
        decay_rate = DEFAULT_WEIGHTS.evaluation_decay_rate

    urgency_score, urgency_detail = calculate_urgency_score(
        recipient.medical_urgency,
        recipient.functional_status,
        recipient.prognosis_rating,
    )
    time_score, time_detail = calculate_time_score(recipient.date_added_to_waitlist, now)
    organ_score, organ_detail = calculate_organ_score(recipient, urgency_detail['base'])
    evaluation_score, evaluation_detail = calculate_evaluation_score(
        recipient.last_evaluation_date, now, decay_rate
    )
    rarity_score = blood_type_rarity_score(recipient.blood_type)

    raw_scores = {
        'medical_urgency': urgency_score,
        'time_on_waitlist': time_score,
        'organ_specific': organ_score,
        'evaluation_recency': evaluation_score,
        'blood_type_rarity': rarity_score,
    }
    weight_fractions = {
        'medical_urgency': weights.medical_urgency,
        'time_on_waitlist': weights.time_on_waitlist,
        'organ_specific': weights.organ_specific,
        'evaluation_recency': weights.evaluation_recency,
        'blood_type_rarity': weights.blood_type_rarity,
    }
    weighted_scores = {name: raw_scores[name] * weight_fractions[name] for name in COMPONENTS}

    weighted_sum = 0
    for name in COMPONENTS:
        weighted_sum += weighted_scores[name]

    adjustments = calculate_adjustments(recipient)
    unclamped = (
        weighted_sum
        + adjustments['comorbidity_penalty']
        + adjustments['previous_transplant_adjustment']
        + adjustments['compliance_bonus']
    )
    total = min(100, max(0, unclamped))

    breakdown = {
        'as_of': now.isoformat(),
        'components': {
            'medical_urgency': urgency_detail,
            'time_on_waitlist': time_detail,
            'organ_specific': organ_detail,
            'evaluation_recency': evaluation_detail,
            'blood_type_rarity': {'blood_type': recipient.blood_type, 'rarity_score': rarity_score},
        },
        'raw_scores': raw_scores,
        'weighted_scores': weighted_scores,
        'weighted_sum': weighted_sum,
        'adjustments': adjustments,
        'unclamped_total': unclamped,
        'total': total,
        'weights_used': weights.as_dict(),
    }
    return total, breakdown


def rank_recipients_by_priority(recipients):
    """
    Order recipients by stored priority score, highest first.
    Ties fall back to the earliest listing date, then id.
    """
    def sort_key(recipient):
        listed = recipient.date_added_to_waitlist or date.max
        return (-(recipient.priority_score or 0), listed, str(recipient.id))

    return sorted(recipients, key=sort_key)
