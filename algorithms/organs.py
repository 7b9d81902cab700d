"""
Organ types handled by the waitlist
"""
from django.db import models


class OrganType(models.TextChoices):
    KIDNEY = 'kidney', 'Kidney'
    LIVER = 'liver', 'Liver'
    LUNG = 'lung', 'Lung'
    HEART = 'heart', 'Heart'
    PANCREAS = 'pancreas', 'Pancreas'
    INTESTINE = 'intestine', 'Intestine'


def to_organ_type(value):
    """Return the OrganType member for value, or None if it is not a known organ"""
    if isinstance(value, OrganType):
        return value
    try:
        return OrganType(value)
    except ValueError:
        return None
