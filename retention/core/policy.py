from pydantic import BaseModel, Field


class ScoringPolicy(BaseModel):
    """Thresholds and weights used by the scoring engine."""

    # Attendance
    LATENESS_GRACE_MINUTES: int = Field(5, ge=0)
    EARLY_DEPARTURE_GRACE_MINUTES: int = Field(15, ge=0)
    WEIGHT_PRESENT: float = 1.0
    WEIGHT_LATE: float = 0.8
    WEIGHT_PARTIAL: float = 0.6
    WEIGHT_ABSENT_EXCUSED: float = 0.3
    WEIGHT_ABSENT_UNEXCUSED: float = 0.0

    # Risk predicates
    LOW_ENGAGEMENT_THRESHOLD: int = 30
    INACTIVITY_DAYS: int = 7
    ATTENDANCE_FLOOR: float = 70.0
    FREQUENT_ABSENCES: int = 3
    # expected progress = min(100, days_since_start / WINDOW * RATE)
    EXPECTED_PROGRESS_WINDOW_DAYS: int = Field(30, gt=0)
    EXPECTED_PROGRESS_RATE: float = 50.0
    SLOW_PROGRESS_RATIO: float = 0.5
    RISK_POINTS_PER_SIGNAL: int = 20
    AT_RISK_SIGNAL_COUNT: int = 2

    # Work-study
    CENTER_RATE_FLOOR: float = 50.0
    COMPANY_RATE_FLOOR: float = 50.0
    IMBALANCE_POINTS: float = 30.0
    MIN_SKILLS: int = 5
    SKILL_MASTERY_LEVEL: float = 16.0
    SEVERITY_HIGH: int = 20
    SEVERITY_MEDIUM: int = 10
    SEVERITY_LOW: int = 5
    COMPLETED_RATE: float = 95.0
    AT_RISK_SCORE: int = 70
    NEEDS_SUPPORT_SCORE: int = 50
    PAUSED_RATE: float = 10.0

    model_config = {"frozen": True}


DEFAULT_POLICY = ScoringPolicy()
