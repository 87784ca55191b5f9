from retention.schemas.attendance import AttendanceStatus
from retention.schemas.progress import ItemProgress, AlternanceStatus, DifficultySignal
from retention.services.scoring import recompute


def test_pipeline_rebuilds_attendance_and_scores(make_progress, make_fact, now):
    snapshot = make_progress(
        module_progress={
            "1": ItemProgress(completed=True, percentage=100),
            "2": ItemProgress(percentage=40),
        },
    )
    facts = [make_fact()] + [make_fact(status=AttendanceStatus.ABSENT) for _ in range(3)]

    result = recompute(snapshot, now, facts)

    assert snapshot.attendance_rate == 25.0
    assert snapshot.missed_sessions == 3
    assert snapshot.completion_percentage == 50.0
    assert result.engagement.score == 30 + 6 + 12 + 0
    assert snapshot.engagement_score == 48
    assert result.risk.signals == [DifficultySignal.POOR_ATTENDANCE, DifficultySignal.FREQUENT_ABSENCES]
    assert snapshot.at_risk_of_dropout is True
    assert result.risk_level == "high"
    assert result.engagement_band == "low"
    assert result.completion_label == "advanced"
    assert len(result.recommendations) == 4
    assert result.intervention_priority == 14
    assert result.alternance is None
    assert snapshot.alternance_status is None


def test_pipeline_trusts_stored_attendance_without_facts(make_progress, now):
    snapshot = make_progress(attendance_rate=55, missed_sessions=1)
    recompute(snapshot, now)
    assert snapshot.attendance_rate == 55
    assert snapshot.missed_sessions == 1
    assert DifficultySignal.POOR_ATTENDANCE in snapshot.difficulty_signals


def test_recompute_is_idempotent(make_progress, make_fact, now):
    snapshot = make_progress(
        login_count=3,
        chapter_progress={"a": ItemProgress(completed=True, percentage=100), "b": ItemProgress()},
    )
    facts = [make_fact(), make_fact(status=AttendanceStatus.LATE)]
    first = recompute(snapshot, now, facts)
    state = snapshot.model_dump()
    second = recompute(snapshot, now, facts)
    assert snapshot.model_dump() == state
    assert second.engagement == first.engagement
    assert second.risk == first.risk


def test_work_study_trainee_gets_alternance_view(make_progress, now):
    snapshot = make_progress(
        alternance_contract_id=3,
        login_count=10,
        module_progress={"1": ItemProgress(completed=True, percentage=100)},
    )
    result = recompute(snapshot, now)
    assert snapshot.completed_at == now
    assert result.risk.risk_score == 0
    assert result.alternance is not None
    assert snapshot.center_completion_rate == 100
    assert snapshot.company_completion_rate == 0
    assert snapshot.alternance_risk_score == 40
    assert snapshot.alternance_status == AlternanceStatus.ACTIVE
    assert result.completion_label == "completed"
