# Models
from models.errors import AppError, InvalidInput, NotFound, ServiceUnavailable
from models.records import (
    Decision,
    Project,
    Recording,
    RecordingStatus,
    Task,
    TaskPriority,
    TaskStatus,
)

__all__ = [
    "AppError",
    "InvalidInput",
    "NotFound",
    "ServiceUnavailable",
    "Decision",
    "Project",
    "Recording",
    "RecordingStatus",
    "Task",
    "TaskPriority",
    "TaskStatus",
]
