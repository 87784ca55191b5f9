from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from retention.database import Base

class TrainingSession(Base):
    __tablename__ = "training_sessions"

    id = Column(Integer, primary_key=True, index=True)
    program_id = Column(Integer, ForeignKey("programs.id"), nullable=False)
    title = Column(String, nullable=False)
    # Either bound may be unknown; lateness is then left uncomputed
    starts_at = Column(DateTime(timezone=True), nullable=True)
    ends_at = Column(DateTime(timezone=True), nullable=True)
