"""
Read-only snapshots handed to the scoring and matching engine.

The engine never sees ORM instances. Views and services build these records
from the database (or from a request body for a hypothetical donor), so a
computation always works on a copy and can't write back by accident.
"""
from dataclasses import dataclass, asdict
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class WeightConfig:
    """
    Weight fractions applied to component scores that are already on a
    0-100 scale. They are not required to sum to 1.
    """
    medical_urgency: float = 0.30
    time_on_waitlist: float = 0.25
    organ_specific: float = 0.25
    evaluation_recency: float = 0.10
    blood_type_rarity: float = 0.10
    evaluation_decay_rate: float = 0.5
    name: str = 'default'

    def as_dict(self):
        return asdict(self)


DEFAULT_WEIGHTS = WeightConfig()


@dataclass(frozen=True)
class RecipientRecord:
    id: object
    blood_type: Optional[str] = None
    organ_needed: Optional[str] = None
    hla_typing: Optional[str] = None
    first_name: str = ''
    last_name: str = ''
    patient_id: str = ''
    date_of_birth: Optional[date] = None

    medical_urgency: Optional[str] = None
    functional_status: Optional[str] = None
    prognosis_rating: Optional[str] = None
    date_added_to_waitlist: Optional[date] = None
    last_evaluation_date: Optional[date] = None

    meld_score: Optional[float] = None
    las_score: Optional[float] = None
    pra_percentage: Optional[float] = None
    cpra_percentage: Optional[float] = None

    weight_kg: Optional[float] = None
    height_cm: Optional[float] = None
    comorbidity_score: Optional[float] = None
    previous_transplants: int = 0
    compliance_score: Optional[float] = None

    priority_score: float = 0.0
    waitlist_status: str = 'active'

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class DonorRecord:
    id: object
    organ_type: Optional[str] = None
    blood_type: Optional[str] = None
    hla_typing: Optional[str] = None
    donor_age: Optional[int] = None
    donor_weight_kg: Optional[float] = None
    donor_height_cm: Optional[float] = None
    is_hypothetical: bool = False


SIMULATION_DONOR_ID = 'simulation'


def hypothetical_donor(**fields):
    """Build the transient donor used by simulation runs"""
    return DonorRecord(id=SIMULATION_DONOR_ID, is_hypothetical=True, **fields)
