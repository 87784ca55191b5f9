from datetime import datetime
from typing import Iterable, Optional

from retention.core.policy import ScoringPolicy, DEFAULT_POLICY
from retention.schemas.attendance import AttendanceFact
from retention.schemas.progress import ProgressSnapshot, ScoringResult
from retention.services.attendance import calculate_attendance_rate, count_missed_sessions
from retention.services.progress import recompute_completion, completion_label
from retention.services.engagement import apply_engagement, engagement_band
from retention.services.risk import (
    detect_risk_signals,
    apply_risk_assessment,
    risk_level,
    recommend_interventions,
    intervention_priority,
)
from retention.services.alternance import assess_alternance, apply_alternance


def recompute(
    progress: ProgressSnapshot,
    now: datetime,
    facts: Optional[Iterable[AttendanceFact]] = None,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> ScoringResult:
    """
    Run the whole engine over one snapshot, updating it in place.

    Attendance figures are only rebuilt when `facts` is given; otherwise
    the stored rate and missed-session count are trusted.
    """
    if facts is not None:
        facts = list(facts)
        progress.attendance_rate = calculate_attendance_rate(facts, policy)
        progress.missed_sessions = count_missed_sessions(facts)

    recompute_completion(progress, now)
    engagement = apply_engagement(progress, now)
    risk = detect_risk_signals(progress, now, policy)
    apply_risk_assessment(progress, risk)

    alternance = None
    if progress.in_alternance:
        alternance = assess_alternance(progress, risk.risk_score, policy)
        apply_alternance(progress, alternance)

    return ScoringResult(
        progress=progress,
        engagement=engagement,
        risk=risk,
        alternance=alternance,
        risk_level=risk_level(risk.risk_score),
        engagement_band=engagement_band(engagement.score),
        completion_label=completion_label(progress),
        recommendations=recommend_interventions(risk.signals),
        intervention_priority=intervention_priority(risk.signals),
    )
