from datetime import datetime

from retention.schemas.progress import ProgressSnapshot, EngagementBreakdown
from retention.utils.helpers import clamp, days_between

RECENCY_MAX = 30
ATTENDANCE_MAX = 25
COMPLETION_MAX = 25
LOGIN_FREQUENCY_MAX = 20

# (max days since last activity, points), checked in order
RECENCY_BUCKETS = ((0, RECENCY_MAX), (2, 25), (7, 15), (14, 5))
# (min logins per day, points), checked in order
LOGIN_RATE_BUCKETS = ((1.0, LOGIN_FREQUENCY_MAX), (0.5, 15), (0.2, 10))


def recency_points(progress: ProgressSnapshot, now: datetime) -> int:
    days = days_between(now, progress.last_activity)
    if days is None:
        return 0
    for max_days, points in RECENCY_BUCKETS:
        if days <= max_days:
            return points
    return 0


def attendance_points(progress: ProgressSnapshot) -> int:
    return min(ATTENDANCE_MAX, int(progress.attendance_rate * 0.25))


def completion_points(progress: ProgressSnapshot) -> int:
    return min(COMPLETION_MAX, int(progress.completion_percentage * 0.25))


def login_frequency_points(progress: ProgressSnapshot, now: datetime) -> int:
    days_since_start = days_between(now, progress.started_at)
    if days_since_start is None:
        return 0
    logins_per_day = progress.login_count / max(1, days_since_start)
    for min_rate, points in LOGIN_RATE_BUCKETS:
        if logins_per_day >= min_rate:
            return points
    return 0


def calculate_engagement(progress: ProgressSnapshot, now: datetime) -> EngagementBreakdown:
    """Engagement score (0–100) with its four components. Reads nothing but its arguments."""
    recency = recency_points(progress, now)
    attendance = attendance_points(progress)
    completion = completion_points(progress)
    login_frequency = login_frequency_points(progress, now)
    score = int(clamp(recency + attendance + completion + login_frequency))
    return EngagementBreakdown(
        recency=recency,
        attendance=attendance,
        completion=completion,
        login_frequency=login_frequency,
        score=score,
    )


def apply_engagement(progress: ProgressSnapshot, now: datetime) -> EngagementBreakdown:
    breakdown = calculate_engagement(progress, now)
    progress.engagement_score = breakdown.score
    return breakdown


def engagement_band(score: int) -> str:
    if score >= 80:
        return "high"
    elif score >= 60:
        return "medium"
    return "low"
