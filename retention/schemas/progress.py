from enum import Enum
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List, Dict

from retention.utils.helpers import clamp


class DifficultySignal(str, Enum):
    LOW_ENGAGEMENT = "low_engagement"
    PROLONGED_INACTIVITY = "prolonged_inactivity"
    POOR_ATTENDANCE = "poor_attendance"
    SLOW_PROGRESS = "slow_progress"
    FREQUENT_ABSENCES = "frequent_absences"


class AlternanceStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    TERMINATED = "terminated"
    AT_RISK = "at_risk"
    NEEDS_SUPPORT = "needs_support"


class RiskSeverity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ItemProgress(BaseModel):
    """Progress on one module or chapter."""

    completed: bool = False
    percentage: float = 0.0
    completed_at: Optional[datetime] = None
    last_updated: Optional[datetime] = None

    @field_validator("percentage")
    @classmethod
    def clamp_percentage(cls, v: float) -> float:
        return clamp(v)


class MissionProgress(BaseModel):
    title: str
    completion_rate: float = 0.0
    status: str = "in_progress"
    last_updated: Optional[datetime] = None

    @field_validator("completion_rate")
    @classmethod
    def clamp_rate(cls, v: float) -> float:
        return clamp(v)


class SkillRecord(BaseModel):
    name: str
    level: float = 0.0  # 0–20
    context: str = "general"
    acquired_at: Optional[datetime] = None

    @field_validator("level")
    @classmethod
    def clamp_level(cls, v: float) -> float:
        return clamp(v, 0, 20)


class ProgressSnapshot(BaseModel):
    """
    Everything the engine knows about one trainee in one program.
    Percentages and scores are clamped on construction and on assignment.
    """

    id: Optional[int] = None
    trainee_id: Optional[int] = None
    program_id: Optional[int] = None

    completion_percentage: float = 0.0
    module_progress: Dict[str, ItemProgress] = Field(default_factory=dict)
    chapter_progress: Dict[str, ItemProgress] = Field(default_factory=dict)
    last_activity: datetime

    engagement_score: int = 0
    difficulty_signals: List[DifficultySignal] = Field(default_factory=list)
    at_risk_of_dropout: bool = False
    risk_score: float = 0.0
    last_risk_assessment: Optional[datetime] = None

    total_time_spent: int = 0
    login_count: int = 0
    average_session_duration: Optional[float] = None
    attendance_rate: float = 100.0
    missed_sessions: int = 0

    started_at: datetime
    completed_at: Optional[datetime] = None

    alternance_contract_id: Optional[int] = None
    center_completion_rate: Optional[float] = None
    company_completion_rate: Optional[float] = None
    mission_progress: Dict[str, MissionProgress] = Field(default_factory=dict)
    skills_acquired: Dict[str, SkillRecord] = Field(default_factory=dict)
    alternance_status: Optional[AlternanceStatus] = None
    alternance_risk_score: Optional[int] = None

    model_config = {"from_attributes": True, "validate_assignment": True}

    @field_validator("completion_percentage", "attendance_rate", "risk_score")
    @classmethod
    def clamp_percent(cls, v: float) -> float:
        return clamp(v)

    @field_validator("center_completion_rate", "company_completion_rate")
    @classmethod
    def clamp_optional_percent(cls, v: Optional[float]) -> Optional[float]:
        return None if v is None else clamp(v)

    @field_validator("engagement_score")
    @classmethod
    def clamp_engagement(cls, v: int) -> int:
        return int(clamp(v))

    @field_validator("alternance_risk_score")
    @classmethod
    def clamp_alternance_risk(cls, v: Optional[int]) -> Optional[int]:
        return None if v is None else int(clamp(v))

    @field_validator("total_time_spent", "login_count", "missed_sessions")
    @classmethod
    def non_negative(cls, v: int) -> int:
        return max(0, v)

    @property
    def in_alternance(self) -> bool:
        return self.alternance_contract_id is not None


class EngagementBreakdown(BaseModel):
    recency: int
    attendance: int
    completion: int
    login_frequency: int
    score: int


class RiskAssessment(BaseModel):
    signals: List[DifficultySignal]
    at_risk_of_dropout: bool
    risk_score: float
    assessed_at: datetime


class RiskFactor(BaseModel):
    factor: str
    severity: RiskSeverity
    description: str


class AlternanceAssessment(BaseModel):
    center_completion_rate: float
    company_completion_rate: float
    overall_rate: float
    risk_factors: List[RiskFactor]
    alternance_risk_score: int
    alternance_status: AlternanceStatus
    skills_acquisition_rate: float
    alternance_engagement: int


class ScoringResult(BaseModel):
    progress: ProgressSnapshot
    engagement: EngagementBreakdown
    risk: RiskAssessment
    alternance: Optional[AlternanceAssessment] = None
    risk_level: str
    engagement_band: str
    completion_label: str
    recommendations: List[str]
    intervention_priority: int


class ItemProgressUpdate(BaseModel):
    percentage: float


class ActivityCreate(BaseModel):
    minutes_spent: int = Field(0, ge=0)


class ContractLink(BaseModel):
    contract_id: int


class MissionUpdate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    completion_rate: float
    status: Optional[str] = None


class SkillUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    level: float
    context: Optional[str] = None


class AtRiskItem(BaseModel):
    trainee_id: int
    program_id: int
    risk_score: float
    engagement_score: int
    difficulty_signals: List[DifficultySignal]
    last_activity: datetime

    model_config = {"from_attributes": True}


class RetentionReport(BaseModel):
    total_enrollments: int
    completion_rate: float
    at_risk_rate: float
    average_engagement: float
    average_attendance: float


class BatchReport(BaseModel):
    processed: int = 0
    updated: int = 0
    failed_trainees: List[int] = Field(default_factory=list)
    failed_batches: List[int] = Field(default_factory=list)
    at_risk: List[int] = Field(default_factory=list)
