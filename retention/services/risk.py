import logging
from datetime import datetime
from typing import List, Sequence

from retention.core.policy import ScoringPolicy, DEFAULT_POLICY
from retention.schemas.progress import ProgressSnapshot, DifficultySignal, RiskAssessment
from retention.utils.helpers import days_between

logger = logging.getLogger(__name__)

INTERVENTIONS = {
    DifficultySignal.LOW_ENGAGEMENT: [
        "One-to-one motivation interview",
        "Review learning objectives",
    ],
    DifficultySignal.PROLONGED_INACTIVITY: [
        "Immediate phone follow-up",
        "Offer a catch-up session",
    ],
    DifficultySignal.POOR_ATTENDANCE: [
        "Review personal constraints",
        "Adapt the schedule where possible",
    ],
    DifficultySignal.SLOW_PROGRESS: [
        "Personalised tutoring",
        "Additional learning resources",
    ],
    DifficultySignal.FREQUENT_ABSENCES: [
        "Interview about difficulties encountered",
        "Personalised catch-up plan",
    ],
}

INTERVENTION_PRIORITY = {
    DifficultySignal.PROLONGED_INACTIVITY: 10,
    DifficultySignal.FREQUENT_ABSENCES: 8,
    DifficultySignal.POOR_ATTENDANCE: 6,
    DifficultySignal.LOW_ENGAGEMENT: 4,
    DifficultySignal.SLOW_PROGRESS: 2,
}


def expected_progress(days_since_start: int, policy: ScoringPolicy = DEFAULT_POLICY) -> float:
    """Linear estimate of where a trainee should be by now, capped at 100."""
    return min(100.0, days_since_start / policy.EXPECTED_PROGRESS_WINDOW_DAYS * policy.EXPECTED_PROGRESS_RATE)


def detect_risk_signals(
    progress: ProgressSnapshot, now: datetime, policy: ScoringPolicy = DEFAULT_POLICY
) -> RiskAssessment:
    """
    Evaluate the dropout predicates against one snapshot.

    Signals come back in a fixed order. Each signal adds
    RISK_POINTS_PER_SIGNAL to the score (capped at 100) and two or more
    signals flag the trainee as at risk.
    """
    signals: List[DifficultySignal] = []

    if progress.engagement_score < policy.LOW_ENGAGEMENT_THRESHOLD:
        signals.append(DifficultySignal.LOW_ENGAGEMENT)

    inactive_days = days_between(now, progress.last_activity)
    if inactive_days is not None and inactive_days > policy.INACTIVITY_DAYS:
        signals.append(DifficultySignal.PROLONGED_INACTIVITY)

    if progress.attendance_rate < policy.ATTENDANCE_FLOOR:
        signals.append(DifficultySignal.POOR_ATTENDANCE)

    days_since_start = days_between(now, progress.started_at)
    if days_since_start is not None:
        expected = expected_progress(days_since_start, policy)
        if progress.completion_percentage < expected * policy.SLOW_PROGRESS_RATIO:
            signals.append(DifficultySignal.SLOW_PROGRESS)

    if progress.missed_sessions >= policy.FREQUENT_ABSENCES:
        signals.append(DifficultySignal.FREQUENT_ABSENCES)

    return RiskAssessment(
        signals=signals,
        at_risk_of_dropout=len(signals) >= policy.AT_RISK_SIGNAL_COUNT,
        risk_score=float(min(100, len(signals) * policy.RISK_POINTS_PER_SIGNAL)),
        assessed_at=now,
    )


def apply_risk_assessment(progress: ProgressSnapshot, assessment: RiskAssessment) -> None:
    progress.difficulty_signals = list(assessment.signals)
    progress.at_risk_of_dropout = assessment.at_risk_of_dropout
    progress.risk_score = assessment.risk_score
    progress.last_risk_assessment = assessment.assessed_at

    if assessment.at_risk_of_dropout:
        logger.warning(
            "Trainee flagged at risk of dropout",
            extra={
                "trainee_id": progress.trainee_id,
                "program_id": progress.program_id,
                "risk_score": assessment.risk_score,
                "signals": [s.value for s in assessment.signals],
            },
        )


def risk_level(score: float) -> str:
    if score < 20:
        return "low"
    elif score < 40:
        return "moderate"
    elif score < 60:
        return "high"
    return "critical"


def recommend_interventions(signals: Sequence[DifficultySignal]) -> List[str]:
    recommendations: List[str] = []
    for signal in signals:
        for action in INTERVENTIONS.get(signal, []):
            if action not in recommendations:
                recommendations.append(action)
    return recommendations


def intervention_priority(signals: Sequence[DifficultySignal]) -> int:
    return sum(INTERVENTION_PRIORITY.get(signal, 0) for signal in set(signals))
