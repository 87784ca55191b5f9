from datetime import timedelta

import pytest

from retention.services import engagement


def test_fully_engaged_trainee_scores_100(make_progress, now):
    snapshot = make_progress(
        last_activity=now,
        attendance_rate=100,
        completion_percentage=100,
        login_count=10,
        started_at=now - timedelta(days=10),
    )
    breakdown = engagement.calculate_engagement(snapshot, now)
    assert breakdown.score == 100
    assert (breakdown.recency, breakdown.attendance, breakdown.completion, breakdown.login_frequency) == (
        30, 25, 25, 20,
    )


def test_disengaged_trainee_components(make_progress, now):
    snapshot = make_progress(
        last_activity=now - timedelta(days=20),
        attendance_rate=40,
        completion_percentage=10,
        login_count=1,
        started_at=now - timedelta(days=60),
    )
    breakdown = engagement.calculate_engagement(snapshot, now)
    assert breakdown.recency == 0
    assert breakdown.attendance == 10
    assert breakdown.completion == 2
    assert breakdown.login_frequency == 0
    assert breakdown.score == 12


@pytest.mark.parametrize(
    "days,points",
    [(0, 30), (1, 25), (2, 25), (3, 15), (7, 15), (8, 5), (14, 5), (15, 0), (90, 0)],
)
def test_recency_buckets(make_progress, now, days, points):
    snapshot = make_progress(last_activity=now - timedelta(days=days))
    assert engagement.recency_points(snapshot, now) == points


@pytest.mark.parametrize(
    "logins,points",
    [(10, 20), (5, 15), (2, 10), (1, 0), (0, 0)],
)
def test_login_frequency_buckets(make_progress, now, logins, points):
    snapshot = make_progress(login_count=logins, started_at=now - timedelta(days=10))
    assert engagement.login_frequency_points(snapshot, now) == points


def test_started_today_counts_as_one_day(make_progress, now):
    snapshot = make_progress(login_count=1, started_at=now)
    assert engagement.login_frequency_points(snapshot, now) == 20


def test_future_activity_counts_as_today(make_progress, now):
    snapshot = make_progress(last_activity=now + timedelta(days=2))
    assert engagement.recency_points(snapshot, now) == 30


def test_naive_timestamps_are_read_as_utc(make_progress, now):
    snapshot = make_progress(last_activity=(now - timedelta(days=5)).replace(tzinfo=None))
    assert engagement.recency_points(snapshot, now) == 15


def test_apply_engagement_is_idempotent(make_progress, now):
    snapshot = make_progress(attendance_rate=80, completion_percentage=50, login_count=4)
    first = engagement.apply_engagement(snapshot, now)
    second = engagement.apply_engagement(snapshot, now)
    assert first == second
    assert snapshot.engagement_score == first.score == 30 + 20 + 12 + 10


def test_engagement_bands():
    assert engagement.engagement_band(80) == "high"
    assert engagement.engagement_band(79) == "medium"
    assert engagement.engagement_band(60) == "medium"
    assert engagement.engagement_band(59) == "low"


def test_top_buckets_match_component_caps(make_progress, now):
    snapshot = make_progress(login_count=50, started_at=now - timedelta(days=10))
    assert engagement.recency_points(snapshot, now) == engagement.RECENCY_MAX
    assert engagement.login_frequency_points(snapshot, now) == engagement.LOGIN_FREQUENCY_MAX
    assert (
        engagement.RECENCY_MAX + engagement.ATTENDANCE_MAX
        + engagement.COMPLETION_MAX + engagement.LOGIN_FREQUENCY_MAX
    ) == 100
