"""
Donor/recipient compatibility evaluation.

Each step is a short-circuiting filter: ABO, HLA overlap, virtual crossmatch.
Recipients that get through are scored for compatibility and predicted graft
survival.
"""
import math
from dataclasses import dataclass, field
from typing import Dict, List

from algorithms.blood_compatibility import is_compatible, is_exact_match
from algorithms.hla import parse_hla_report, count_locus_matches
from algorithms.priority import days_since

MAX_HLA_MATCHES = 6
DQ_BONUS_PER_MATCH = 5
HIGH_SENSITIZATION = 80

SIZE_RATIO_MIN = 0.7
SIZE_RATIO_MAX = 1.5

SURVIVAL_BASE = 85
SURVIVAL_MIN = 60
SURVIVAL_MAX = 98

REJECT_BLOOD_TYPE = 'blood_type'
REJECT_CROSSMATCH = 'crossmatch'
REJECT_DATA_ERROR = 'data_error'

CROSSMATCH_POSITIVE = 'positive'
CROSSMATCH_PENDING = 'pending'
CROSSMATCH_NEGATIVE = 'negative'


class DataError(ValueError):
    """A candidate's fields can't be evaluated (unparsable or out of range)"""


@dataclass(frozen=True)
class Rejected:
    reason: str
    detail: str = ''


@dataclass(frozen=True)
class ScoreBundle:
    compatibility_score: float
    blood_type_compatible: bool
    abo_compatible: bool
    exact_blood_type_match: bool
    hla_match_score: float
    hla_matches: Dict[str, int]
    total_hla_matches: int
    size_compatible: bool
    virtual_crossmatch: str
    predicted_graft_survival: float
    days_on_waitlist: int = 0
    unparsed_hla_tokens: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Candidate:
    bundle: ScoreBundle


def _check_percentage(value, name):
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        raise DataError(f"{name} is not a number: {value!r}")
    if value < 0 or value > 100:
        raise DataError(f"{name} out of range: {value}")
    return value


def _check_weight(value, name):
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        raise DataError(f"{name} is not a number: {value!r}")
    if value <= 0:
        raise DataError(f"{name} must be positive: {value}")
    return value


def _parse_typing(hla_string, whose):
    try:
        return parse_hla_report(hla_string)
    except TypeError as exc:
        raise DataError(f"{whose} HLA typing unreadable: {exc}") from exc


def virtual_crossmatch(recipient, total_matches):
    """
    Heuristic crossmatch. Highly sensitized recipients need at least 4 of 6
    matches to avoid a positive result; everyone else is negative at 5+.
    """
    pra = recipient.pra_percentage or 0
    cpra = recipient.cpra_percentage or 0
    if pra > HIGH_SENSITIZATION or cpra > HIGH_SENSITIZATION:
        return CROSSMATCH_POSITIVE if total_matches < 4 else CROSSMATCH_PENDING
    if total_matches >= 5:
        return CROSSMATCH_NEGATIVE
    return CROSSMATCH_PENDING


def size_compatible(donor_weight_kg, recipient_weight_kg):
    """Donor/recipient weight ratio within [0.7, 1.5]; unknown weights pass"""
    if donor_weight_kg is None or recipient_weight_kg is None:
        return True
    ratio = donor_weight_kg / recipient_weight_kg
    return SIZE_RATIO_MIN <= ratio <= SIZE_RATIO_MAX


def age_in_years(date_of_birth, now):
    days = days_since(date_of_birth, now)
    if days is None:
        return None
    return math.floor(days / 365.25)


def age_bonus(donor_age, recipient_age):
    if donor_age is None or recipient_age is None:
        return 0
    difference = abs(donor_age - recipient_age)
    if difference <= 10:
        return 5
    if difference <= 20:
        return 3
    return 0


def predicted_graft_survival(total_matches, exact_blood_match, recipient):
    survival = SURVIVAL_BASE
    survival += (total_matches / MAX_HLA_MATCHES) * 10
    if exact_blood_match:
        survival += 3
    if recipient.previous_transplants and recipient.previous_transplants > 0:
        survival -= recipient.previous_transplants * 5
    if recipient.comorbidity_score:
        survival -= recipient.comorbidity_score * 2
    return min(SURVIVAL_MAX, max(SURVIVAL_MIN, survival))


def validate_donor(donor):
    """
    Check the donor fields every evaluation depends on.

    Raises:
        DataError: the donor itself can't be evaluated
    """
    _check_weight(donor.donor_weight_kg, 'donor_weight_kg')
    _parse_typing(donor.hla_typing, 'donor')


def evaluate(donor, recipient, now):
    """
    Evaluate one recipient against one donor organ.

    Args:
        donor: DonorRecord
        recipient: RecipientRecord
        now: reference datetime for waitlist time and age

    Returns:
        Rejected(reason) or Candidate(bundle)

    Raises:
        DataError: candidate data can't be evaluated
    """
    # 1. ABO
    if not is_compatible(donor.blood_type, recipient.blood_type):
        return Rejected(REJECT_BLOOD_TYPE)

    _check_percentage(recipient.pra_percentage, 'pra_percentage')
    _check_percentage(recipient.cpra_percentage, 'cpra_percentage')
    _check_weight(recipient.weight_kg, 'weight_kg')
    _check_weight(donor.donor_weight_kg, 'donor_weight_kg')

    # 2. HLA overlap. DQ is only a bonus, never part of the denominator.
    donor_typing, _ = _parse_typing(donor.hla_typing, 'donor')
    recipient_typing, unparsed = _parse_typing(recipient.hla_typing, 'recipient')
    hla_matches = count_locus_matches(donor_typing, recipient_typing)
    total_matches = hla_matches['A'] + hla_matches['B'] + hla_matches['DR']
    hla_score = (total_matches / MAX_HLA_MATCHES) * 100
    if hla_matches['DQ'] > 0:
        hla_score = min(100, hla_score + hla_matches['DQ'] * DQ_BONUS_PER_MATCH)
    hla_score = min(100, hla_score)

    # 3. Virtual crossmatch
    crossmatch = virtual_crossmatch(recipient, total_matches)
    if crossmatch == CROSSMATCH_POSITIVE:
        return Rejected(REJECT_CROSSMATCH, f"{total_matches}/6 HLA matches")

    # 4. Size
    size_ok = size_compatible(donor.donor_weight_kg, recipient.weight_kg)

    # 5. Composite score
    exact = is_exact_match(donor.blood_type, recipient.blood_type)
    try:
        priority_score = float(recipient.priority_score or 0)
    except (TypeError, ValueError) as exc:
        raise DataError(f"priority_score unreadable: {recipient.priority_score!r}") from exc

    score = priority_score * 0.35 + hla_score * 0.30
    score += 10 if exact else 5
    score += 10 if size_ok else 3

    days_on_list = days_since(recipient.date_added_to_waitlist, now)
    if days_on_list is not None:
        days_on_list = max(0, days_on_list)
        score += min(10, (days_on_list / 365) * 10)

    score += age_bonus(donor.donor_age, age_in_years(recipient.date_of_birth, now))
    score = min(100, score)

    # 6. Graft survival
    survival = predicted_graft_survival(total_matches, exact, recipient)

    return Candidate(ScoreBundle(
        compatibility_score=score,
        blood_type_compatible=True,
        abo_compatible=True,
        exact_blood_type_match=exact,
        hla_match_score=hla_score,
        hla_matches=hla_matches,
        total_hla_matches=total_matches,
        size_compatible=size_ok,
        virtual_crossmatch=crossmatch,
        predicted_graft_survival=survival,
        days_on_waitlist=days_on_list or 0,
        unparsed_hla_tokens=unparsed,
    ))
