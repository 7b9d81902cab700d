from datetime import date, datetime, timezone as dt_timezone

import pytest
from rest_framework.test import APIClient

from algorithms.records import DonorRecord, RecipientRecord

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=dt_timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_recipient():
    """RecipientRecord builder with sensible kidney-waitlist defaults"""
    counter = {'id': 0}

    def build(**overrides):
        counter['id'] += 1
        fields = {
            'id': counter['id'],
            'first_name': 'Test',
            'last_name': f"Recipient{counter['id']}",
            'blood_type': 'A+',
            'organ_needed': 'kidney',
            'medical_urgency': 'medium',
            'waitlist_status': 'active',
            'date_added_to_waitlist': date(2024, 6, 1),
        }
        fields.update(overrides)
        return RecipientRecord(**fields)

    return build


@pytest.fixture
def make_donor():
    def build(**overrides):
        fields = {
            'id': 500,
            'organ_type': 'kidney',
            'blood_type': 'O-',
            'hla_typing': 'A2 A24 B7 B44 DR4 DR15 DQ6',
            'donor_age': 45,
            'donor_weight_kg': 75,
        }
        fields.update(overrides)
        return DonorRecord(**fields)

    return build


@pytest.fixture
def admin_user(django_user_model):
    return django_user_model.objects.create_user(
        username='coord_admin', email='admin@organlink.test', password='pass12345', role='admin'
    )


@pytest.fixture
def viewer_user(django_user_model):
    return django_user_model.objects.create_user(
        username='viewer', email='viewer@organlink.test', password='pass12345', role='viewer'
    )


@pytest.fixture
def api_client(admin_user):
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


@pytest.fixture
def create_recipient(db):
    from waitlist.models import Recipient

    counter = {'n': 0}

    def create(**overrides):
        counter['n'] += 1
        fields = {
            'patient_id': f"MRN-{counter['n']:04d}",
            'first_name': 'Pat',
            'last_name': f"Number{counter['n']}",
            'blood_type': 'A+',
            'organ_needed': 'kidney',
            'medical_urgency': 'medium',
            'waitlist_status': 'active',
            'date_added_to_waitlist': date(2024, 6, 1),
            'hla_typing': 'A2 B7 DR4',
        }
        fields.update(overrides)
        return Recipient.objects.create(**fields)

    return create


@pytest.fixture
def create_donor_organ(db):
    from waitlist.models import DonorOrgan

    counter = {'n': 0}

    def create(**overrides):
        counter['n'] += 1
        fields = {
            'donor_id': f"DON-{counter['n']:04d}",
            'organ_type': 'kidney',
            'blood_type': 'O-',
            'hla_typing': 'A2 A24 B7 B44 DR4 DR15 DQ6',
            'donor_age': 45,
            'donor_weight_kg': 75,
        }
        fields.update(overrides)
        return DonorOrgan.objects.create(**fields)

    return create
