from datetime import timedelta

from retention.schemas.progress import ItemProgress
from retention.services import progress as tracker


def test_completion_without_entries_is_zero(make_progress, now):
    snapshot = make_progress(completion_percentage=40)
    assert tracker.recompute_completion(snapshot, now) == 0.0
    assert snapshot.completed_at is None


def test_completion_counts_completed_entries(make_progress, now):
    snapshot = make_progress()
    tracker.update_module_progress(snapshot, 1, 100, now)
    tracker.update_module_progress(snapshot, 2, 60, now)
    percentage = tracker.update_chapter_progress(snapshot, "intro", 10, now)
    assert percentage == 33.33
    assert snapshot.completion_percentage == 33.33
    assert snapshot.module_progress["1"].completed is True
    assert snapshot.module_progress["2"].completed is False
    assert snapshot.chapter_progress["intro"].percentage == 10


def test_item_percentage_is_clamped(make_progress, now):
    snapshot = make_progress()
    tracker.update_module_progress(snapshot, 1, 150, now)
    tracker.update_chapter_progress(snapshot, 1, -10, now)
    assert snapshot.module_progress["1"].percentage == 100
    assert snapshot.module_progress["1"].completed is True
    assert snapshot.chapter_progress["1"].percentage == 0


def test_completed_at_is_stamped_once(make_progress, now):
    snapshot = make_progress()
    tracker.complete_module(snapshot, 1, now)
    assert snapshot.completion_percentage == 100.0
    assert snapshot.completed_at == now

    later = now + timedelta(days=3)
    tracker.complete_chapter(snapshot, 1, later)
    assert snapshot.completed_at == now


def test_completed_at_survives_regression(make_progress, now):
    snapshot = make_progress()
    tracker.complete_module(snapshot, 1, now)
    tracker.update_module_progress(snapshot, 2, 20, now + timedelta(days=1))
    assert snapshot.completion_percentage == 50.0
    assert snapshot.completed_at == now
    assert tracker.completion_label(snapshot) == "completed"


def test_item_keeps_first_completion_time(make_progress, now):
    snapshot = make_progress()
    tracker.complete_module(snapshot, 1, now)
    tracker.complete_module(snapshot, 1, now + timedelta(hours=2))
    entry = snapshot.module_progress["1"]
    assert entry.completed_at == now
    assert entry.last_updated == now + timedelta(hours=2)


def test_record_activity_and_time_spent(make_progress, now):
    snapshot = make_progress(last_activity=now - timedelta(days=4))
    tracker.record_activity(snapshot, now)
    tracker.add_time_spent(snapshot, 45)
    tracker.record_activity(snapshot, now)
    tracker.add_time_spent(snapshot, 15)
    assert snapshot.last_activity == now
    assert snapshot.login_count == 2
    assert snapshot.total_time_spent == 60
    assert snapshot.average_session_duration == 30.0


def test_negative_time_is_ignored(make_progress):
    snapshot = make_progress(total_time_spent=10)
    tracker.add_time_spent(snapshot, -5)
    assert snapshot.total_time_spent == 10
    assert snapshot.average_session_duration is None


def test_completion_labels(make_progress):
    cases = [
        (0, "not_started"),
        (10, "beginner"),
        (30, "in_progress"),
        (60, "advanced"),
        (90, "almost_done"),
    ]
    for percentage, label in cases:
        assert tracker.completion_label(make_progress(completion_percentage=percentage)) == label


def test_snapshot_clamps_scores(make_progress):
    snapshot = make_progress(
        completion_percentage=130,
        attendance_rate=-4,
        engagement_score=250,
        risk_score=120,
        login_count=-2,
    )
    assert snapshot.completion_percentage == 100
    assert snapshot.attendance_rate == 0
    assert snapshot.engagement_score == 100
    assert snapshot.risk_score == 100
    assert snapshot.login_count == 0

    snapshot.attendance_rate = 180
    assert snapshot.attendance_rate == 100


def test_item_progress_clamps_on_construction():
    assert ItemProgress(percentage=140).percentage == 100
