"""
Errors raised by the scoring and matching services
"""


class EngineError(Exception):
    """Base class for waitlist engine failures surfaced to callers"""


class NotFoundError(EngineError):
    pass


class RecipientNotFound(NotFoundError):
    def __init__(self, recipient_id):
        self.recipient_id = recipient_id
        super().__init__(f"Recipient {recipient_id} not found")


class DonorOrganNotFound(NotFoundError):
    def __init__(self, donor_organ_id):
        self.donor_organ_id = donor_organ_id
        super().__init__(f"Donor organ {donor_organ_id} not found")


class PersistenceFailure(EngineError):
    """A matching pass could not be written; nothing from it was kept"""


class InvalidDonor(EngineError):
    """The donor organ's own data can't be matched against anyone"""
    def __init__(self, donor_id, reason):
        self.donor_id = donor_id
        super().__init__(f"Donor organ {donor_id} can't be matched: {reason}")
