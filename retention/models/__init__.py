from retention.models.trainee import Trainee, Program
from retention.models.session import TrainingSession
from retention.models.attendance import AttendanceRecord
from retention.models.progress import TraineeProgress

__all__ = ["Trainee", "Program", "TrainingSession", "AttendanceRecord", "TraineeProgress"]
