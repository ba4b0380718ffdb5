"""Admin console API v1 endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from superintern.api.v1.company_requests import CompanyRequestResponse, company_request_response
from superintern.api.v1.profile import ProfileResponse, profile_response
from superintern.api.v1.tasks import (
    ApplicationResponse,
    TaskResponse,
    application_response,
    raise_task_error,
    task_response,
)
from superintern.auth.middleware import require_admin
from superintern.auth.models import Profile
from superintern.auth.profiles import ProfileNotFoundError
from superintern.logging_config import get_logger
from superintern.services import Services, get_services
from superintern.tasks.models import ApplicationStatus
from superintern.tasks.service import TaskError

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# ==================== MODELS ====================


class SetActiveRequest(BaseModel):
    """Suspend or reactivate an intern."""
    model_config = ConfigDict(populate_by_name=True)

    is_active: bool = Field(..., alias="isActive")


class CreateTaskRequest(BaseModel):
    """Request to create a task."""
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=10000)
    points: int = Field(default=0, ge=0)
    is_paid: bool = Field(default=False, alias="isPaid")
    payment_amount: float | None = Field(default=None, alias="paymentAmount", ge=0)
    assigned_to: str | None = Field(default=None, alias="assignedTo")


class Person(BaseModel):
    """Short profile summary."""
    user_id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None


class AdminTaskResponse(TaskResponse):
    """Task with assignee summary."""
    assignee: Person | None = None


class ApplicationTask(BaseModel):
    """Task summary shown with an application."""
    title: str
    points: int
    is_paid: bool
    payment_amount: float | None = None


class AdminApplicationResponse(BaseModel):
    """Application with task and applicant summaries."""
    id: int
    task_id: int
    applicant_id: str
    status: str
    reason: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    reviewed_at: datetime | None = None
    task: ApplicationTask
    applicant: Person | None = None


class ReviewRequest(BaseModel):
    """Approve or reject an application; rejections need notes."""
    approve: bool
    notes: str | None = Field(default=None, max_length=2000)


# ==================== INTERNS ====================


@router.get("/interns", response_model=list[ProfileResponse])
def list_interns(
    admin: Profile = Depends(require_admin),
    services: Services = Depends(get_services),
):
    """All non-admin profiles, newest first."""
    return [profile_response(profile) for profile in services.profiles.list_profiles()]


@router.patch("/interns/{user_id}/active", response_model=ProfileResponse)
def set_intern_active(
    user_id: str,
    body: SetActiveRequest,
    admin: Profile = Depends(require_admin),
    services: Services = Depends(get_services),
):
    """Suspend or reactivate an intern."""
    if user_id == admin.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot change your own account status",
        )

    try:
        profile = services.profiles.set_active(user_id, body.is_active)
    except ProfileNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    logger.info("admin_set_active", admin_id=admin.user_id, user_id=user_id, is_active=body.is_active)
    return profile_response(profile)


# ==================== TASKS ====================


@router.get("/tasks", response_model=list[AdminTaskResponse])
def list_all_tasks(
    admin: Profile = Depends(require_admin),
    services: Services = Depends(get_services),
):
    """All tasks, newest first."""
    return services.tasks.list_tasks()


@router.post("/tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    body: CreateTaskRequest,
    admin: Profile = Depends(require_admin),
    services: Services = Depends(get_services),
):
    """Create a task, optionally assigned to an intern."""
    try:
        task = services.tasks.create_task(
            created_by=admin.user_id,
            title=body.title,
            description=body.description,
            points=body.points,
            is_paid=body.is_paid,
            payment_amount=body.payment_amount,
            assigned_to=body.assigned_to,
        )
    except TaskError as e:
        raise_task_error(e)

    return task_response(task)


@router.post("/tasks/{task_id}/approve", response_model=TaskResponse)
def approve_task(
    task_id: int,
    admin: Profile = Depends(require_admin),
    services: Services = Depends(get_services),
):
    """Approve a completed task and award its points to the assignee."""
    try:
        task = services.tasks.approve_task(task_id, admin.user_id)
    except TaskError as e:
        raise_task_error(e)

    return task_response(task)


# ==================== APPLICATIONS ====================


@router.get("/applications", response_model=list[AdminApplicationResponse])
def list_applications(
    status_filter: ApplicationStatus | None = Query(default=None, alias="status"),
    admin: Profile = Depends(require_admin),
    services: Services = Depends(get_services),
):
    """Task applications, optionally filtered by status."""
    return services.tasks.list_applications(status_filter.value if status_filter else None)


@router.post("/applications/{application_id}/review", response_model=ApplicationResponse)
def review_application(
    application_id: int,
    body: ReviewRequest,
    admin: Profile = Depends(require_admin),
    services: Services = Depends(get_services),
):
    """Approve (assigning the task) or reject an application."""
    try:
        application = services.tasks.review_application(application_id, body.approve, body.notes)
    except TaskError as e:
        raise_task_error(e)

    logger.info(
        "admin_application_reviewed",
        admin_id=admin.user_id,
        application_id=application_id,
        approved=body.approve,
    )
    return application_response(application)


# ==================== COMPANY REQUESTS ====================


@router.get("/company-requests", response_model=list[CompanyRequestResponse])
def list_company_requests(
    admin: Profile = Depends(require_admin),
    services: Services = Depends(get_services),
):
    """Internship requests from companies, newest first."""
    return [company_request_response(row) for row in services.company_requests.list_requests()]
