"""
ABO/Rh Compatibility Helper
Determines which donor blood types can supply which recipient blood types
"""

BLOOD_TYPES = ('O-', 'O+', 'A-', 'A+', 'B-', 'B+', 'AB-', 'AB+')

# Donor -> recipients it can supply. Direction matters: the table is not symmetric.
COMPATIBILITY = {
    'O-': frozenset(['O-', 'O+', 'A-', 'A+', 'B-', 'B+', 'AB-', 'AB+']),  # Universal donor
    'O+': frozenset(['O+', 'A+', 'B+', 'AB+']),
    'A-': frozenset(['A-', 'A+', 'AB-', 'AB+']),
    'A+': frozenset(['A+', 'AB+']),
    'B-': frozenset(['B-', 'B+', 'AB-', 'AB+']),
    'B+': frozenset(['B+', 'AB+']),
    'AB-': frozenset(['AB-', 'AB+']),
    'AB+': frozenset(['AB+']),  # Universal recipient
}

# Waitlist rarity score (0-100), rarer recipient types score higher
RARITY = {
    'AB-': 100,  # Rarest
    'B-': 85,
    'A-': 70,
    'O-': 60,
    'AB+': 50,
    'B+': 40,
    'A+': 30,
    'O+': 20,   # Most common
}
DEFAULT_RARITY = 40


def is_compatible(donor_blood_type, recipient_blood_type):
    """
    Check if a donor organ's blood type can go to the recipient.

    Unknown or missing types on either side are incompatible.
    """
    if donor_blood_type not in COMPATIBILITY:
        return False

    return recipient_blood_type in COMPATIBILITY[donor_blood_type]


def is_exact_match(donor_blood_type, recipient_blood_type):
    return donor_blood_type is not None and donor_blood_type == recipient_blood_type


def get_compatible_donors(recipient_blood_type):
    """Blood types that can donate to recipient_blood_type, in table order"""
    return [donor_type for donor_type, recipients in COMPATIBILITY.items()
            if recipient_blood_type in recipients]


def get_compatible_recipients(donor_blood_type):
    return COMPATIBILITY.get(donor_blood_type, frozenset())


def blood_type_rarity_score(blood_type):
    return RARITY.get(blood_type, DEFAULT_RARITY)
