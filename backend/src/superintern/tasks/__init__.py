"""Task marketplace."""

from superintern.tasks.models import ApplicationStatus, Task, TaskApplication, TaskComment, TaskStatus
from superintern.tasks.service import TaskError, TaskService

__all__ = [
    "Task",
    "TaskApplication",
    "TaskComment",
    "TaskStatus",
    "ApplicationStatus",
    "TaskService",
    "TaskError",
]
