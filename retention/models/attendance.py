from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, UniqueConstraint, func
from retention.database import Base

class AttendanceRecord(Base):
    __tablename__ = "attendance_records"

    id = Column(Integer, primary_key=True, index=True)
    trainee_id = Column(Integer, ForeignKey("trainees.id"), nullable=False)
    session_id = Column(Integer, ForeignKey("training_sessions.id"), nullable=False)
    status = Column(String(20), nullable=False, default="present")  # present, late, partial, absent
    participation_score = Column(Integer, nullable=False, default=5)  # 0–10
    excused = Column(Boolean, nullable=False, default=False)
    absence_reason = Column(Text, nullable=True)
    arrival_time = Column(DateTime(timezone=True), nullable=True)
    departure_time = Column(DateTime(timezone=True), nullable=True)
    minutes_late = Column(Integer, nullable=True)
    minutes_early_departure = Column(Integer, nullable=True)

    # Work-study only
    location = Column(String(20), nullable=True)  # center, company
    supervisor = Column(String, nullable=True)
    company_rating = Column(Integer, nullable=True)  # 0–10

    recorded_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("trainee_id", "session_id", name="uq_trainee_session"),
    )
