from enum import Enum
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, Dict

from retention.utils.helpers import clamp


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    LATE = "late"
    PARTIAL = "partial"
    ABSENT = "absent"


class AttendanceLocation(str, Enum):
    CENTER = "center"
    COMPANY = "company"


class AttendanceFact(BaseModel):
    id: Optional[int] = None
    trainee_id: Optional[int] = None
    session_id: Optional[int] = None
    status: AttendanceStatus = AttendanceStatus.PRESENT
    participation_score: int = 5  # 0–10
    excused: bool = False
    absence_reason: Optional[str] = None
    arrival_time: Optional[datetime] = None
    departure_time: Optional[datetime] = None
    # None means "not computed", 0 means "on time"
    minutes_late: Optional[int] = None
    minutes_early_departure: Optional[int] = None

    # Work-study only
    location: Optional[AttendanceLocation] = None
    supervisor: Optional[str] = None
    company_rating: Optional[int] = None  # 0–10

    model_config = {"from_attributes": True, "validate_assignment": True}

    @field_validator("participation_score")
    @classmethod
    def clamp_participation(cls, v: int) -> int:
        return int(clamp(v, 0, 10))

    @field_validator("company_rating")
    @classmethod
    def clamp_company_rating(cls, v: Optional[int]) -> Optional[int]:
        return None if v is None else int(clamp(v, 0, 10))


class AttendanceResponse(AttendanceFact):
    id: int
    trainee_id: int
    session_id: int
    weight: float
    participation_percentage: float


class MarkAbsentRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)
    excused: bool = False


class ArrivalRequest(BaseModel):
    arrival_time: datetime


class DepartureRequest(BaseModel):
    departure_time: datetime


class LocationAttendanceRates(BaseModel):
    center: Optional[float] = None
    company: Optional[float] = None


class AttendanceStatistics(BaseModel):
    total_records: int
    by_status: Dict[str, int]
    attendance_rate: float
    missed_sessions: int
    average_participation: Optional[float] = None
    by_location: LocationAttendanceRates
