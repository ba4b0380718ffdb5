"""Task marketplace database models."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from superintern.auth.models import Profile
from superintern.storage.models import Base


class TaskStatus(str, Enum):
    """Task lifecycle: open -> assigned -> in_progress -> completed -> approved."""
    OPEN = "open"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    APPROVED = "approved"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"


class ApplicationStatus(str, Enum):
    """Task application review state."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Task(Base):
    """A unit of work interns can apply for and earn points with."""
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Rewards
    points = Column(Integer, default=0, nullable=False)
    is_paid = Column(Boolean, default=False, nullable=False)
    payment_amount = Column(Float, default=0.0, nullable=False)

    status = Column(String(20), default=TaskStatus.OPEN.value, nullable=False, index=True)

    created_by = Column(String(64), ForeignKey("profiles.user_id"), nullable=False)
    assigned_to = Column(String(64), ForeignKey("profiles.user_id"), nullable=True, index=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)

    # Relationships
    assignee = relationship(Profile, foreign_keys=[assigned_to])
    comments = relationship("TaskComment", back_populates="task", order_by="TaskComment.created_at")
    applications = relationship("TaskApplication", back_populates="task")

    def __repr__(self):
        return f"<Task(id={self.id}, title={self.title}, status={self.status})>"


class TaskApplication(Base):
    """An intern's request to take on an open task."""
    __tablename__ = "task_applications"

    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    applicant_id = Column(String(64), ForeignKey("profiles.user_id"), nullable=False, index=True)

    status = Column(String(20), default=ApplicationStatus.PENDING.value, nullable=False)
    reason = Column(Text, nullable=True)  # Why the applicant wants the task
    notes = Column(Text, nullable=True)  # Reviewer notes (rejection reason)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    reviewed_at = Column(DateTime, nullable=True)

    # Relationships
    task = relationship("Task", back_populates="applications")
    applicant = relationship(Profile, foreign_keys=[applicant_id])

    def __repr__(self):
        return f"<TaskApplication(task={self.task_id}, applicant={self.applicant_id}, status={self.status})>"


class TaskComment(Base):
    """Comment on a task; replies point at their parent comment."""
    __tablename__ = "task_comments"

    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    created_by = Column(String(64), ForeignKey("profiles.user_id"), nullable=False)
    parent_id = Column(Integer, ForeignKey("task_comments.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    task = relationship("Task", back_populates="comments")
    author = relationship(Profile, foreign_keys=[created_by])

    def __repr__(self):
        return f"<TaskComment(task={self.task_id}, parent={self.parent_id})>"
