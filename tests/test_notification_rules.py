from types import SimpleNamespace
from unittest.mock import patch

import pytest

from notifications.models import Notification, NotificationRule
from notifications.rules import check_notification_rules, render_template, rule_applies
from waitlist.services import recompute_priority


def recipient_state(**fields):
    values = {'medical_urgency': 'medium', 'priority_score': 50, 'waitlist_status': 'active'}
    values.update(fields)
    return SimpleNamespace(**values)


class TestRuleApplies:

    def test_no_conditions_always_applies(self):
        assert rule_applies({}, recipient_state()) is True

    def test_priority_threshold(self):
        assert rule_applies({'priority_threshold': 80}, recipient_state(priority_score=85)) is True
        assert rule_applies({'priority_threshold': 80}, recipient_state(priority_score=79.9)) is False

    def test_urgency_must_increase(self):
        conditions = {'urgency_change': True}
        assert rule_applies(conditions, recipient_state(medical_urgency='critical'), {'medical_urgency': 'high'})
        assert not rule_applies(conditions, recipient_state(medical_urgency='low'), {'medical_urgency': 'high'})

    def test_status_change(self):
        conditions = {'status_change': True}
        assert not rule_applies(conditions, recipient_state(), {'waitlist_status': 'active'})
        assert rule_applies(conditions, recipient_state(waitlist_status='inactive'), {'waitlist_status': 'active'})

    def test_conditions_combine(self):
        conditions = {'urgency_change': True, 'priority_threshold': 90}
        escalated = recipient_state(medical_urgency='critical', priority_score=60)
        assert not rule_applies(conditions, escalated, {'medical_urgency': 'medium'})


def test_render_template_fills_placeholders():
    recipient = SimpleNamespace(full_name='Ram Thapa', medical_urgency='critical', priority_score=91.26)
    text = render_template('{patient_name} is {urgency} at {priority_score}', recipient)
    assert text == 'Ram Thapa is critical at 91.3'


@pytest.mark.django_db
class TestCheckNotificationRules:

    def test_matching_rule_notifies_admins(self, create_recipient, admin_user, viewer_user):
        NotificationRule.objects.create(
            rule_name='High priority',
            trigger_event='priority_recalculated',
            conditions={'priority_threshold': 40},
            notification_template={'title': 'Priority alert', 'message': '{patient_name}: {priority_score}'},
            priority_level='high',
        )
        recipient = create_recipient(priority_score=55)

        with patch('notifications.rules.deliver_notification_emails'):
            created = check_notification_rules(recipient, 'priority_recalculated')

        assert len(created) == 1
        notification = created[0]
        assert notification.recipient == admin_user
        assert notification.notification_type == 'rule_triggered'
        assert notification.title == 'Priority alert'
        assert notification.message == f"{recipient.full_name}: 55.0"
        assert notification.related_recipient == recipient

    def test_rules_for_other_events_or_inactive_are_ignored(self, create_recipient, admin_user):
        NotificationRule.objects.create(rule_name='On update', trigger_event='patient_updated')
        NotificationRule.objects.create(rule_name='Disabled', trigger_event='priority_recalculated', is_active=False)

        assert check_notification_rules(create_recipient(), 'priority_recalculated') == []

    def test_unreadable_conditions_skip_the_rule(self, create_recipient, admin_user):
        NotificationRule.objects.create(
            rule_name='Broken', trigger_event='priority_recalculated', conditions='{not json',
        )
        assert check_notification_rules(create_recipient(), 'priority_recalculated') == []

    @pytest.mark.parametrize('conditions', ['[1]', '"text"', [1, 2]])
    def test_conditions_that_are_not_an_object_skip_the_rule(self, create_recipient, admin_user, now, conditions):
        NotificationRule.objects.create(
            rule_name='Wrong shape', trigger_event='priority_recalculated', conditions=conditions,
        )
        recipient = create_recipient()

        assert check_notification_rules(recipient, 'priority_recalculated') == []
        assert recompute_priority(recipient.pk, now=now).recipient_id == recipient.pk

    def test_recompute_triggers_rules_and_queues_email(
        self, create_recipient, admin_user, now, django_capture_on_commit_callbacks
    ):
        NotificationRule.objects.create(
            rule_name='Any recompute',
            description='{patient_name} rescored',
            trigger_event='priority_recalculated',
        )
        recipient = create_recipient()

        with patch('notifications.rules.deliver_notification_emails') as deliver:
            with django_capture_on_commit_callbacks(execute=True):
                recompute_priority(recipient.pk, now=now)

        notification = Notification.objects.get(notification_type='rule_triggered')
        assert notification.message == f"{recipient.full_name} rescored"
        deliver.delay.assert_called_once_with([notification.id])
