import pytest

from algorithms.compatibility import DataError
from algorithms.matching import plan_match_effects, rank_candidates


def test_candidates_ranked_by_compatibility(make_donor, make_recipient, now):
    low = make_recipient(priority_score=10)
    high = make_recipient(priority_score=90)
    middle = make_recipient(priority_score=50)

    result = rank_candidates(make_donor(), [low, high, middle], now)

    assert [c.recipient for c in result.ranked] == [high, middle, low]
    assert [c.rank for c in result.ranked] == [1, 2, 3]
    assert result.total_matches == 3
    assert result.pool_size == 3


def test_ties_keep_pool_order_with_sequential_ranks(make_donor, make_recipient, now):
    first = make_recipient(priority_score=40)
    second = make_recipient(priority_score=40)
    third = make_recipient(priority_score=40)

    result = rank_candidates(make_donor(), [first, second, third], now)

    assert [c.recipient.id for c in result.ranked] == [first.id, second.id, third.id]
    assert [c.rank for c in result.ranked] == [1, 2, 3]


def test_rejections_are_recorded_not_ranked(make_donor, make_recipient, now):
    ok = make_recipient()
    wrong_blood = make_recipient(blood_type='B+')
    positive_crossmatch = make_recipient(pra_percentage=95, hla_typing='B8')
    bad_data = make_recipient(pra_percentage=400)

    result = rank_candidates(
        make_donor(blood_type='A+'), [ok, wrong_blood, positive_crossmatch, bad_data], now
    )

    assert [c.recipient for c in result.ranked] == [ok]
    assert result.rejections == [
        (wrong_blood.id, 'blood_type'),
        (positive_crossmatch.id, 'crossmatch'),
        (bad_data.id, 'data_error'),
    ]
    assert result.pool_size == 4


def test_pool_is_refiltered_by_status_and_organ(make_donor, make_recipient, now):
    eligible = make_recipient()
    inactive = make_recipient(waitlist_status='inactive')
    needs_liver = make_recipient(organ_needed='liver')

    result = rank_candidates(make_donor(organ_type='kidney'), [inactive, needs_liver, eligible], now)

    assert [c.recipient for c in result.ranked] == [eligible]
    assert result.pool_size == 1
    assert result.rejections == []


def test_unknown_donor_organ_matches_nobody(make_donor, make_recipient, now):
    result = rank_candidates(make_donor(organ_type='cornea'), [make_recipient()], now)
    assert result.ranked == []


def test_empty_pool(make_donor, now):
    result = rank_candidates(make_donor(), [], now)
    assert result.total_matches == 0
    assert plan_match_effects(result, ['coordinator']).matches == []


class TestPlanMatchEffects:

    @pytest.fixture
    def result(self, make_donor, make_recipient, now):
        pool = [make_recipient(priority_score=100 - i * 5) for i in range(12)]
        return rank_candidates(make_donor(), pool, now)

    def test_persists_top_ten(self, result):
        plan = plan_match_effects(result, [])
        assert len(plan.matches) == 10
        assert [m.rank for m in plan.matches] == list(range(1, 11))
        assert plan.notifications == []

    def test_notifies_every_user_about_top_three(self, result):
        users = ['admin-1', 'admin-2']
        plan = plan_match_effects(result, users)

        assert len(plan.notifications) == 6
        levels = [(n.user, n.priority_level) for n in plan.notifications]
        assert levels[:2] == [('admin-1', 'critical'), ('admin-2', 'critical')]
        assert all(level == 'high' for _, level in levels[2:])

        top = result.ranked[0]
        notification = plan.notifications[0]
        assert notification.recipient_id == top.recipient.id
        assert notification.action_url == f"/donor-matching/?donor_id={result.donor.id}"
        assert notification.metadata == {'donor_id': '500', 'patient_id': str(top.recipient.id)}
        assert top.recipient.full_name in notification.message

    def test_limits_are_configurable(self, result):
        plan = plan_match_effects(result, ['admin'], persist_limit=2, notify_top=1)
        assert len(plan.matches) == 2
        assert len(plan.notifications) == 1

    def test_match_plan_carries_bundle(self, result):
        plan = plan_match_effects(result, [])
        assert plan.matches[0].bundle is result.ranked[0].bundle
        assert plan.matches[0].donor_organ_id == 500


@pytest.mark.parametrize('overrides', [{'donor_weight_kg': 0}, {'hla_typing': 42}])
def test_unusable_donor_fails_the_whole_pass(make_donor, make_recipient, now, overrides):
    with pytest.raises(DataError):
        rank_candidates(make_donor(**overrides), [make_recipient(), make_recipient()], now)
