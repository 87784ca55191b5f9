from pydantic_settings import BaseSettings
from typing import Optional
from pydantic import Field

from retention.core.policy import ScoringPolicy


class Settings(BaseSettings):
    DATABASE_URL: Optional[str] = None
    SQLALCHEMY_DATABASE_URL: Optional[str] = None
    SQL_ECHO: bool = Field(False)
    LOG_LEVEL: str = Field("INFO")

    # Trainees committed per transaction during bulk recompute
    BATCH_SIZE: int = Field(50, gt=0)

    LATENESS_GRACE_MINUTES: int = Field(5)
    EARLY_DEPARTURE_GRACE_MINUTES: int = Field(15)
    LOW_ENGAGEMENT_THRESHOLD: int = Field(30)
    INACTIVITY_DAYS: int = Field(7)
    ATTENDANCE_FLOOR: float = Field(70.0)
    FREQUENT_ABSENCES: int = Field(3)
    EXPECTED_PROGRESS_WINDOW_DAYS: int = Field(30)
    EXPECTED_PROGRESS_RATE: float = Field(50.0)
    SLOW_PROGRESS_RATIO: float = Field(0.5)
    IMBALANCE_POINTS: float = Field(30.0)
    MIN_SKILLS: int = Field(5)
    SKILL_MASTERY_LEVEL: float = Field(16.0)

    model_config = {
        "env_file": ".env",
        "extra": "allow",
    }

    @property
    def effective_database_url(self) -> str:
        return self.SQLALCHEMY_DATABASE_URL or self.DATABASE_URL or "sqlite+aiosqlite:///./retention.db"

    @property
    def scoring_policy(self) -> ScoringPolicy:
        """
        Policy built from the threshold fields above; weights and
        status cut-offs that are not overridable keep their defaults.
        """
        overrides = {
            name: getattr(self, name)
            for name in ScoringPolicy.model_fields
            if name in type(self).model_fields
        }
        return ScoringPolicy(**overrides)


settings = Settings()
