from datetime import date
from unittest.mock import patch

import pytest
from django.db import DatabaseError

from algorithms.records import hypothetical_donor
from notifications.models import Notification
from notifications.tasks import deliver_notification_emails
from waitlist.exceptions import DonorOrganNotFound, InvalidDonor, PersistenceFailure, RecipientNotFound
from waitlist.models import Match, Recipient, WeightConfiguration
from waitlist.services import (
    get_active_weight_config,
    recompute_priority,
    recompute_waitlist,
    run_matching,
    waitlist_export,
)
from waitlist.tasks import recompute_recipient_priority, recompute_waitlist_priorities

pytestmark = pytest.mark.django_db


class TestRecomputePriority:

    def test_persists_score_and_breakdown(self, create_recipient, admin_user, now):
        recipient = create_recipient(medical_urgency='high', pra_percentage=50)

        result = recompute_priority(recipient.pk, acting_user=admin_user, now=now)

        recipient.refresh_from_db()
        assert recipient.priority_score == pytest.approx(result.priority_score)
        assert 0 < recipient.priority_score <= 100
        assert recipient.priority_score_breakdown['total'] == pytest.approx(result.priority_score)
        assert recipient.priority_score_breakdown['weights_used']['name'] == 'default'
        assert recipient.priority_calculated_at == now
        assert recipient.updated_by == 'admin@organlink.test'

    def test_system_recompute_is_attributed_to_system(self, create_recipient, now):
        recipient = create_recipient()
        recompute_priority(recipient.pk, now=now)
        recipient.refresh_from_db()
        assert recipient.updated_by == 'system'

    def test_unknown_recipient(self):
        with pytest.raises(RecipientNotFound):
            recompute_priority(987654)

    def test_repeat_recompute_is_stable(self, create_recipient, now):
        recipient = create_recipient(last_evaluation_date=date(2025, 1, 15))
        first = recompute_priority(recipient.pk, now=now)
        second = recompute_priority(recipient.pk, now=now)
        assert first.priority_score == second.priority_score
        assert first.breakdown == second.breakdown

    def test_active_weight_configuration_is_used(self, create_recipient, now):
        WeightConfiguration.objects.create(
            name='urgency only',
            medical_urgency_weight=1.0,
            time_on_waitlist_weight=0,
            organ_specific_score_weight=0,
            evaluation_recency_weight=0,
            blood_type_rarity_weight=0,
            is_active=True,
        )
        recipient = create_recipient(medical_urgency='medium')

        result = recompute_priority(recipient.pk, now=now)

        assert result.priority_score == pytest.approx(50)
        assert result.breakdown['weights_used']['name'] == 'urgency only'


def test_defaults_apply_without_active_configuration():
    WeightConfiguration.objects.create(name='draft', is_active=False)
    assert get_active_weight_config().name == 'default'


def test_activating_a_configuration_deactivates_the_previous_one():
    first = WeightConfiguration.objects.create(name='first', is_active=True)
    WeightConfiguration.objects.create(name='second', is_active=True)

    first.refresh_from_db()
    assert first.is_active is False
    assert get_active_weight_config().name == 'second'


def test_recompute_waitlist_only_scores_active_recipients(create_recipient, now):
    active_kidney = create_recipient()
    active_liver = create_recipient(organ_needed='liver', meld_score=30)
    removed = create_recipient(waitlist_status='removed')

    assert recompute_waitlist(now=now) == 2
    removed.refresh_from_db()
    assert removed.priority_calculated_at is None

    assert recompute_waitlist(organ_type='liver', now=now) == 1
    active_kidney.refresh_from_db()
    active_liver.refresh_from_db()
    assert active_liver.priority_score > 0


def test_recompute_tasks(create_recipient):
    recipient = create_recipient()
    assert recompute_waitlist_priorities() == 'Recomputed 1 recipients'
    assert recompute_recipient_priority(recipient.pk).startswith(f"Recipient {recipient.pk}:")
    assert recompute_recipient_priority(987654) == 'Recipient 987654 not found'


def test_waitlist_export_orders_by_priority_then_listing(create_recipient):
    later = create_recipient(priority_score=60, date_added_to_waitlist=date(2024, 9, 1))
    earlier = create_recipient(priority_score=60, date_added_to_waitlist=date(2023, 9, 1))
    top = create_recipient(priority_score=85, organ_needed='liver')
    create_recipient(priority_score=99, waitlist_status='inactive')

    rows = waitlist_export()
    assert [row['recipient_id'] for row in rows] == [top.pk, earlier.pk, later.pk]
    assert [row['waitlist_rank'] for row in rows] == [1, 2, 3]

    kidney_rows = waitlist_export(organ_type='kidney')
    assert [row['recipient_id'] for row in kidney_rows] == [earlier.pk, later.pk]


class TestRunMatching:

    @pytest.fixture
    def waitlist(self, create_recipient):
        return [create_recipient() for _ in range(12)]

    def test_live_pass_records_matches_and_notifies(
        self, waitlist, create_donor_organ, admin_user, viewer_user, now, django_capture_on_commit_callbacks
    ):
        donor = create_donor_organ()

        with patch('waitlist.services.deliver_notification_emails') as deliver:
            with django_capture_on_commit_callbacks(execute=True):
                outcome = run_matching(donor_organ_id=donor.pk, acting_user=admin_user, now=now)

        assert outcome.simulation_mode is False
        assert outcome.total_matches == 12
        assert len(outcome.ranked) == 12
        assert outcome.matches_created == 10

        matches = list(Match.objects.filter(donor_organ=donor).order_by('priority_rank'))
        assert [m.priority_rank for m in matches] == list(range(1, 11))
        # Equal scores keep primary-key order
        assert [m.recipient_id for m in matches] == [r.pk for r in waitlist[:10]]
        assert all(m.created_by == 'admin@organlink.test' for m in matches)
        assert all(m.physical_crossmatch_result == 'not_performed' for m in matches)

        notifications = Notification.objects.filter(notification_type='donor_match')
        assert notifications.count() == 3
        assert set(notifications.values_list('recipient', flat=True)) == {admin_user.pk}
        assert notifications.filter(priority_level='critical').count() == 1
        assert not Notification.objects.filter(recipient=viewer_user).exists()

        deliver.delay.assert_called_once()
        assert sorted(deliver.delay.call_args.args[0]) == sorted(notifications.values_list('id', flat=True))

    def test_incompatible_donor_records_nothing(self, waitlist, create_donor_organ, admin_user, now):
        donor = create_donor_organ(blood_type='B+')

        outcome = run_matching(donor_organ_id=donor.pk, acting_user=admin_user, now=now)

        assert outcome.total_matches == 0
        assert Match.objects.count() == 0
        assert Notification.objects.count() == 0

    def test_simulation_writes_nothing(self, waitlist, admin_user, now):
        donor = hypothetical_donor(organ_type='kidney', blood_type='O-', hla_typing='A2 B7 DR4')

        outcome = run_matching(hypothetical_donor=donor, simulate=True, acting_user=admin_user, now=now)

        assert outcome.simulation_mode is True
        assert outcome.total_matches == 12
        assert outcome.ranked[0].bundle.total_hla_matches == 3
        assert Match.objects.count() == 0
        assert Notification.objects.count() == 0

    def test_simulating_a_stored_donor_writes_nothing(self, waitlist, create_donor_organ, admin_user, now):
        donor = create_donor_organ()
        outcome = run_matching(donor_organ_id=donor.pk, simulate=True, acting_user=admin_user, now=now)
        assert outcome.total_matches == 12
        assert Match.objects.count() == 0

    def test_simulation_does_not_change_stored_scores(self, waitlist, now):
        before = list(Recipient.objects.order_by('id').values_list('priority_score', 'updated_at'))
        run_matching(hypothetical_donor=hypothetical_donor(organ_type='kidney', blood_type='O-'), simulate=True, now=now)
        after = list(Recipient.objects.order_by('id').values_list('priority_score', 'updated_at'))
        assert before == after

    def test_unknown_donor_organ(self, waitlist, admin_user):
        with pytest.raises(DonorOrganNotFound):
            run_matching(donor_organ_id=987654, acting_user=admin_user)
        assert Match.objects.count() == 0

    def test_donor_with_unusable_data_is_refused(self, waitlist, create_donor_organ, admin_user, now):
        donor = create_donor_organ(donor_weight_kg=0)

        with pytest.raises(InvalidDonor):
            run_matching(donor_organ_id=donor.pk, acting_user=admin_user, now=now)

        assert Match.objects.count() == 0
        assert Notification.objects.count() == 0

    def test_failed_write_rolls_back_everything(self, waitlist, create_donor_organ, admin_user, now):
        donor = create_donor_organ()

        with patch.object(Notification, 'save', side_effect=DatabaseError('disk full')):
            with pytest.raises(PersistenceFailure):
                run_matching(donor_organ_id=donor.pk, acting_user=admin_user, now=now)

        assert Match.objects.count() == 0
        assert Notification.objects.count() == 0


def test_deliver_notification_emails_sends_once(admin_user, mailoutbox):
    notification = Notification.objects.create(
        recipient=admin_user,
        recipient_email=admin_user.email,
        title='High-Compatibility Donor Match',
        message='Excellent match',
        notification_type='donor_match',
        priority_level='critical',
        action_url='/donor-matching/?donor_id=1',
    )

    assert deliver_notification_emails([notification.id]) == 1
    assert deliver_notification_emails([notification.id]) == 0

    notification.refresh_from_db()
    assert notification.emailed_at is not None
    assert len(mailoutbox) == 1
    assert mailoutbox[0].to == ['admin@organlink.test']
    assert mailoutbox[0].subject.startswith('[CRITICAL]')
