"""Task marketplace API v1 endpoints for interns."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from superintern.auth.middleware import require_active
from superintern.auth.models import Profile
from superintern.logging_config import get_logger
from superintern.services import Services, get_services
from superintern.tasks.service import (
    InsufficientPointsError,
    TaskConflictError,
    TaskError,
    TaskNotFoundError,
    TaskPermissionError,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


# ─── Request/Response Models ─────────────────────────────────────────────────

class TaskResponse(BaseModel):
    """Task summary."""
    id: int
    title: str
    description: str | None = None
    points: int
    is_paid: bool
    payment_amount: float | None = None
    status: str
    created_by: str | None = None
    assigned_to: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None


class OpenTaskResponse(TaskResponse):
    """Open task with the caller's latest application status."""
    application_status: str | None = None


class ApplyRequest(BaseModel):
    """Request to apply for a task."""
    reason: str | None = Field(default=None, max_length=2000)


class ApplicationResponse(BaseModel):
    """A task application."""
    id: int
    task_id: int
    applicant_id: str
    status: str
    reason: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    reviewed_at: datetime | None = None


class StatusUpdateRequest(BaseModel):
    """Request to change a task's status."""
    status: str


class CommentRequest(BaseModel):
    """Comment or reply on a task."""
    content: str = Field(..., min_length=1, max_length=5000)
    parent_id: int | None = None


class CommentResponse(BaseModel):
    """A stored comment."""
    id: int
    task_id: int
    content: str
    created_by: str | None = None
    parent_id: int | None = None
    created_at: datetime | None = None


# ─── Helpers ─────────────────────────────────────────────────────────────────

def raise_task_error(e: TaskError) -> None:
    """Translate a task service error into an HTTP error."""
    if isinstance(e, TaskNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, TaskPermissionError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(e, TaskConflictError):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    raise HTTPException(status_code=code, detail=str(e))


def task_response(task) -> TaskResponse:
    return TaskResponse(
        id=task.id,
        title=task.title,
        description=task.description,
        points=task.points,
        is_paid=task.is_paid,
        payment_amount=task.payment_amount,
        status=task.status,
        created_by=task.created_by,
        assigned_to=task.assigned_to,
        created_at=task.created_at,
        updated_at=task.updated_at,
        completed_at=task.completed_at,
    )


def application_response(application) -> ApplicationResponse:
    return ApplicationResponse(
        id=application.id,
        task_id=application.task_id,
        applicant_id=application.applicant_id,
        status=application.status,
        reason=application.reason,
        notes=application.notes,
        created_at=application.created_at,
        reviewed_at=application.reviewed_at,
    )


# ─── Endpoints ───────────────────────────────────────────────────────────────

@router.get("/open", response_model=list[OpenTaskResponse])
def list_open_tasks(
    profile: Profile = Depends(require_active),
    services: Services = Depends(get_services),
):
    """Open tasks, newest first."""
    return services.tasks.list_open_tasks(profile.user_id)


@router.get("/mine", response_model=list[TaskResponse])
def list_my_tasks(
    profile: Profile = Depends(require_active),
    services: Services = Depends(get_services),
):
    """Tasks assigned to the caller."""
    return [task_response(task) for task in services.tasks.list_assigned_tasks(profile.user_id)]


@router.get("/{task_id}")
def get_task(
    task_id: int,
    profile: Profile = Depends(require_active),
    services: Services = Depends(get_services),
):
    """Task detail with assignee and threaded comments."""
    try:
        return services.tasks.get_task(task_id, profile)
    except TaskError as e:
        raise_task_error(e)


@router.post("/{task_id}/applications", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
def apply_for_task(
    task_id: int,
    body: ApplyRequest,
    profile: Profile = Depends(require_active),
    services: Services = Depends(get_services),
):
    """Apply for an open task.

    Paid tasks require a minimum point balance.
    """
    try:
        application = services.tasks.apply(task_id, profile.user_id, body.reason)
    except InsufficientPointsError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except TaskError as e:
        raise_task_error(e)

    return application_response(application)


@router.patch("/{task_id}/status", response_model=TaskResponse)
def update_task_status(
    task_id: int,
    body: StatusUpdateRequest,
    profile: Profile = Depends(require_active),
    services: Services = Depends(get_services),
):
    """Move a task to a new status.

    Interns may move their own tasks to ``in_progress`` or ``completed``.
    """
    try:
        task = services.tasks.update_status(task_id, profile, body.status)
    except TaskError as e:
        raise_task_error(e)

    return task_response(task)


@router.post("/{task_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
def add_comment(
    task_id: int,
    body: CommentRequest,
    profile: Profile = Depends(require_active),
    services: Services = Depends(get_services),
):
    """Comment on a task or reply to a comment."""
    try:
        comment = services.tasks.add_comment(task_id, profile, body.content, body.parent_id)
    except TaskError as e:
        raise_task_error(e)

    return CommentResponse(
        id=comment.id,
        task_id=comment.task_id,
        content=comment.content,
        created_by=comment.created_by,
        parent_id=comment.parent_id,
        created_at=comment.created_at,
    )
