"""Task marketplace service: creation, applications, status changes and approval."""

from datetime import datetime
from typing import Any

from sqlalchemy import case
from sqlalchemy.exc import SQLAlchemyError

from superintern.auth.models import Profile
from superintern.auth.points import PointService
from superintern.logging_config import get_logger
from superintern.referral.service import ReferralService
from superintern.settings import settings
from superintern.storage.db import Database
from superintern.storage.retry import store_retry
from superintern.tasks.models import ApplicationStatus, Task, TaskApplication, TaskComment, TaskStatus

logger = get_logger(__name__)

# Statuses an assignee may move their own task into
INTERN_STATUSES = {TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED}

# Display order for an intern's task list
STATUS_ORDER = {status.value: index for index, status in enumerate(TaskStatus)}


class TaskError(Exception):
    """Task operation error."""
    pass


class TaskNotFoundError(TaskError):
    """Task or application does not exist."""
    pass


class TaskPermissionError(TaskError):
    """Caller may not perform the operation."""
    pass


class TaskConflictError(TaskError):
    """Operation conflicts with the current state."""
    pass


class InsufficientPointsError(TaskError):
    """Raised when an intern lacks the points to apply for a paid task."""

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"You need at least {required} points to apply for paid tasks. Current points: {available}"
        )


def _person(profile: Profile | None) -> dict[str, Any] | None:
    if profile is None:
        return None
    return {
        "user_id": profile.user_id,
        "email": profile.email,
        "first_name": profile.first_name,
        "last_name": profile.last_name,
    }


def _comment_dict(comment: TaskComment) -> dict[str, Any]:
    return {
        "id": comment.id,
        "task_id": comment.task_id,
        "content": comment.content,
        "created_by": comment.created_by,
        "author": _person(comment.author),
        "parent_id": comment.parent_id,
        "created_at": comment.created_at,
        "replies": [],
    }


def build_comment_tree(comments: list[TaskComment]) -> list[dict[str, Any]]:
    """Group replies under their top-level comment (one level of nesting).

    Replies whose parent is missing are shown as top-level comments.
    """
    top_level: dict[int, dict[str, Any]] = {}
    ordered: list[dict[str, Any]] = []
    for comment in comments:
        if comment.parent_id is None:
            item = _comment_dict(comment)
            top_level[comment.id] = item
            ordered.append(item)

    for comment in comments:
        if comment.parent_id is None:
            continue
        parent = top_level.get(comment.parent_id)
        if parent is None:
            ordered.append(_comment_dict(comment))
        else:
            parent["replies"].append(_comment_dict(comment))

    return ordered


class TaskService:
    """Service for the task marketplace."""

    def __init__(
        self,
        db: Database,
        point_service: PointService,
        referral_service: ReferralService,
        paid_task_min_points: int | None = None,
    ):
        self.db = db
        self.points = point_service
        self.referrals = referral_service
        self.paid_task_min_points = (
            settings.paid_task_min_points if paid_task_min_points is None else paid_task_min_points
        )
        self.logger = get_logger(__name__)

    # ==================== CREATION & VIEWS ====================

    @store_retry("task_create")
    def create_task(
        self,
        created_by: str,
        title: str,
        description: str | None = None,
        points: int = 0,
        is_paid: bool = False,
        payment_amount: float | None = None,
        assigned_to: str | None = None,
    ) -> Task:
        """Create a new task.

        Args:
            created_by: Identity ID of the creating admin
            title: Task title
            description: Optional description
            points: Points awarded on approval
            is_paid: Whether the task is paid
            payment_amount: Payment for paid tasks (ignored otherwise)
            assigned_to: Optional assignee; the task then starts as ``assigned``

        Returns:
            Created task
        """
        if not title or not title.strip():
            raise TaskError("Title is required")
        if points < 0:
            raise TaskError("Points cannot be negative")

        with self.db.session() as session:
            if assigned_to:
                assignee = session.query(Profile).filter(Profile.user_id == assigned_to).first()
                if not assignee:
                    raise TaskNotFoundError(f"Assignee {assigned_to} not found")

            task = Task(
                title=title.strip(),
                description=description,
                points=points,
                is_paid=is_paid,
                payment_amount=(payment_amount or 0.0) if is_paid else 0.0,
                status=(TaskStatus.ASSIGNED if assigned_to else TaskStatus.OPEN).value,
                created_by=created_by,
                assigned_to=assigned_to,
            )
            session.add(task)
            session.commit()
            session.refresh(task)

        self.logger.info("task_created", task_id=task.id, created_by=created_by, points=points)
        return task

    def _task_dict(self, task: Task) -> dict[str, Any]:
        return {
            "id": task.id,
            "title": task.title,
            "description": task.description,
            "points": task.points,
            "is_paid": task.is_paid,
            "payment_amount": task.payment_amount,
            "status": task.status,
            "created_by": task.created_by,
            "assigned_to": task.assigned_to,
            "created_at": task.created_at,
            "updated_at": task.updated_at,
            "completed_at": task.completed_at,
        }

    def get_task(self, task_id: int, viewer: Profile) -> dict[str, Any]:
        """Task detail with assignee and comment tree.

        Admins see every task, interns see open tasks and tasks assigned to them.
        """
        with self.db.session() as session:
            task = session.query(Task).filter(Task.id == task_id).first()
            if not task:
                raise TaskNotFoundError(f"Task {task_id} not found")

            self._check_can_view(task, viewer)

            detail = self._task_dict(task)
            detail["assignee"] = _person(task.assignee)
            detail["comments"] = build_comment_tree(
                session.query(TaskComment).filter(
                    TaskComment.task_id == task_id
                ).order_by(TaskComment.created_at.asc(), TaskComment.id.asc()).all()
            )
            return detail

    def _check_can_view(self, task: Task, viewer: Profile) -> None:
        if viewer.is_admin or task.assigned_to == viewer.user_id or task.status == TaskStatus.OPEN.value:
            return
        raise TaskPermissionError("You do not have access to this task")

    def list_tasks(self) -> list[dict[str, Any]]:
        """All tasks with assignee summary, newest first (admin view)."""
        with self.db.session() as session:
            tasks = session.query(Task).order_by(Task.created_at.desc(), Task.id.desc()).all()
            result = []
            for task in tasks:
                item = self._task_dict(task)
                item["assignee"] = _person(task.assignee)
                result.append(item)
            return result

    def list_open_tasks(self, user_id: str) -> list[dict[str, Any]]:
        """Open tasks, each with the caller's latest application status."""
        with self.db.session() as session:
            tasks = session.query(Task).filter(
                Task.status == TaskStatus.OPEN.value
            ).order_by(Task.created_at.desc(), Task.id.desc()).all()

            applications = session.query(TaskApplication).filter(
                TaskApplication.applicant_id == user_id
            ).order_by(TaskApplication.created_at.asc(), TaskApplication.id.asc()).all()
            latest = {application.task_id: application.status for application in applications}

            result = []
            for task in tasks:
                item = self._task_dict(task)
                item["application_status"] = latest.get(task.id)
                result.append(item)
            return result

    def list_assigned_tasks(self, user_id: str) -> list[Task]:
        """Tasks assigned to a user, in lifecycle order."""
        with self.db.session() as session:
            return session.query(Task).filter(
                Task.assigned_to == user_id
            ).order_by(
                case(STATUS_ORDER, value=Task.status, else_=len(STATUS_ORDER)),
                Task.created_at.asc(),
            ).all()

    # ==================== APPLICATIONS ====================

    @store_retry("task_apply")
    def apply(self, task_id: int, applicant_id: str, reason: str | None = None) -> TaskApplication:
        """Apply for an open task.

        Raises:
            TaskNotFoundError: Unknown task
            TaskConflictError: Task not open, or a pending application exists
            InsufficientPointsError: Paid task and too few points
        """
        with self.db.session() as session:
            task = session.query(Task).filter(Task.id == task_id).first()
            if not task:
                raise TaskNotFoundError(f"Task {task_id} not found")

            if task.status != TaskStatus.OPEN.value:
                raise TaskConflictError("Task is not open for applications")

            if task.is_paid:
                balance = session.query(Profile.points).filter(
                    Profile.user_id == applicant_id
                ).scalar() or 0
                if balance < self.paid_task_min_points:
                    raise InsufficientPointsError(self.paid_task_min_points, balance)

            pending = session.query(TaskApplication).filter(
                TaskApplication.task_id == task_id,
                TaskApplication.applicant_id == applicant_id,
                TaskApplication.status == ApplicationStatus.PENDING.value,
            ).first()
            if pending:
                raise TaskConflictError("You already have a pending application for this task")

            application = TaskApplication(
                task_id=task_id,
                applicant_id=applicant_id,
                status=ApplicationStatus.PENDING.value,
                reason=reason,
            )
            session.add(application)
            session.commit()
            session.refresh(application)

        self.logger.info("task_application_created", task_id=task_id, applicant_id=applicant_id)
        return application

    def list_applications(self, status: str | None = None) -> list[dict[str, Any]]:
        """Applications with task and applicant summaries, newest first."""
        with self.db.session() as session:
            query = session.query(TaskApplication)
            if status:
                query = query.filter(TaskApplication.status == status)
            applications = query.order_by(
                TaskApplication.created_at.desc(), TaskApplication.id.desc()
            ).all()

            return [
                {
                    "id": application.id,
                    "task_id": application.task_id,
                    "applicant_id": application.applicant_id,
                    "status": application.status,
                    "reason": application.reason,
                    "notes": application.notes,
                    "created_at": application.created_at,
                    "reviewed_at": application.reviewed_at,
                    "task": {
                        "title": application.task.title,
                        "points": application.task.points,
                        "is_paid": application.task.is_paid,
                        "payment_amount": application.task.payment_amount,
                    },
                    "applicant": _person(application.applicant),
                }
                for application in applications
            ]

    @store_retry("task_application_review")
    def review_application(
        self,
        application_id: int,
        approve: bool,
        notes: str | None = None,
    ) -> TaskApplication:
        """Approve or reject a pending application.

        Approval assigns the task to the applicant. Rejection needs a reason,
        which is stored as the reviewer notes, and re-opens an unassigned task.
        """
        if not approve and not (notes and notes.strip()):
            raise TaskError("Please provide a reason for rejection")

        with self.db.session() as session:
            application = session.query(TaskApplication).filter(
                TaskApplication.id == application_id
            ).with_for_update().first()
            if not application:
                raise TaskNotFoundError(f"Application {application_id} not found")

            if application.status != ApplicationStatus.PENDING.value:
                raise TaskConflictError("Application has already been reviewed")

            task = session.query(Task).filter(Task.id == application.task_id).with_for_update().first()

            if approve:
                if task.assigned_to and task.assigned_to != application.applicant_id:
                    raise TaskConflictError("Task is already assigned to another intern")
                application.status = ApplicationStatus.APPROVED.value
                task.assigned_to = application.applicant_id
                task.status = TaskStatus.ASSIGNED.value
                task.updated_at = datetime.utcnow()
            else:
                application.status = ApplicationStatus.REJECTED.value
                if task.assigned_to is None and task.status != TaskStatus.OPEN.value:
                    task.status = TaskStatus.OPEN.value
                    task.updated_at = datetime.utcnow()

            application.notes = notes.strip() if notes else None
            application.reviewed_at = datetime.utcnow()
            session.commit()
            session.refresh(application)

        self.logger.info(
            "task_application_reviewed",
            application_id=application_id,
            task_id=application.task_id,
            status=application.status,
        )
        return application

    # ==================== STATUS & APPROVAL ====================

    @store_retry("task_status_update")
    def _set_status(self, task_id: int, actor: Profile, new_status: TaskStatus) -> tuple[Task, str, bool]:
        with self.db.session() as session:
            task = session.query(Task).filter(Task.id == task_id).with_for_update().first()
            if not task:
                raise TaskNotFoundError(f"Task {task_id} not found")

            if not actor.is_admin:
                if task.assigned_to != actor.user_id:
                    raise TaskPermissionError("You do not have permission to update this task")
                if new_status not in INTERN_STATUSES:
                    raise TaskPermissionError("Invalid status for intern")

            if task.status == TaskStatus.APPROVED.value:
                raise TaskConflictError("Approved tasks cannot change status")

            previous = task.status
            first_completion = new_status == TaskStatus.COMPLETED and task.completed_at is None

            if previous != new_status.value:
                task.status = new_status.value
                task.updated_at = datetime.utcnow()
                if new_status == TaskStatus.COMPLETED and task.completed_at is None:
                    task.completed_at = datetime.utcnow()
                session.commit()
                session.refresh(task)

        return task, previous, first_completion

    def update_status(self, task_id: int, actor: Profile, new_status: str) -> Task:
        """Move a task to a new status.

        Interns may only move tasks assigned to them into ``in_progress`` or
        ``completed``. The first completion by the assignee counts towards
        their referral; that bookkeeping never undoes the status change.

        Raises:
            TaskError: Unknown status, or ``approved`` (use approve_task)
            TaskNotFoundError: Unknown task
            TaskPermissionError: Caller may not make this change
            TaskConflictError: Task already approved
        """
        try:
            status = TaskStatus(new_status)
        except ValueError:
            raise TaskError(f"Invalid task status: {new_status}") from None

        if status == TaskStatus.APPROVED:
            raise TaskError("Use task approval to approve a task")

        task, previous, first_completion = self._set_status(task_id, actor, status)
        if previous == status.value:
            return task

        self.logger.info(
            "task_status_changed",
            task_id=task_id,
            previous=previous,
            status=status.value,
            actor=actor.user_id,
        )

        if status == TaskStatus.COMPLETED:
            self._add_system_comment(task_id, actor.user_id, "Task marked as completed")
            if first_completion and task.assigned_to == actor.user_id:
                self._attribute_completion(actor.user_id, task_id)

        return task

    def _attribute_completion(self, user_id: str, task_id: int) -> None:
        try:
            self.referrals.attribute_task_completion(user_id)
        except (SQLAlchemyError, ValueError) as e:
            self.logger.error(
                "referral_attribution_failed",
                user_id=user_id,
                task_id=task_id,
                error=str(e) or e.__class__.__name__,
            )

    @store_retry("task_approve")
    def approve_task(self, task_id: int, admin_id: str) -> Task:
        """Approve a completed task and credit its points to the assignee.

        The status change is a conditional update (``WHERE status =
        'completed'``) and the credit commits in the same transaction, so a
        task can only ever pay out once.

        Raises:
            TaskNotFoundError: Unknown task
            TaskConflictError: Task is not in ``completed`` status
        """
        with self.db.session() as session:
            task = session.query(Task).filter(Task.id == task_id).first()
            if not task:
                raise TaskNotFoundError(f"Task {task_id} not found")

            updated = session.query(Task).filter(
                Task.id == task_id,
                Task.status == TaskStatus.COMPLETED.value,
            ).update(
                {Task.status: TaskStatus.APPROVED.value, Task.updated_at: datetime.utcnow()},
                synchronize_session=False,
            )
            if not updated:
                raise TaskConflictError(
                    f"Only completed tasks can be approved (current status: {task.status})"
                )

            if task.assigned_to and task.points > 0:
                try:
                    self.points.credit_in_session(
                        session,
                        task.assigned_to,
                        task.points,
                        reason="task_approved",
                        reference=f"task:{task_id}",
                    )
                except ValueError as e:
                    raise TaskError(str(e))

            session.commit()
            session.refresh(task)

        self.logger.info(
            "task_approved",
            task_id=task_id,
            assignee=task.assigned_to,
            points=task.points,
            approved_by=admin_id,
        )

        if task.assigned_to:
            self._add_system_comment(task_id, admin_id, f"Task approved and {task.points} points awarded")
        return task

    # ==================== COMMENTS ====================

    @store_retry("task_comment")
    def add_comment(
        self,
        task_id: int,
        author: Profile,
        content: str,
        parent_id: int | None = None,
    ) -> TaskComment:
        """Comment on a task, or reply to a comment.

        Replies to replies are attached to the top-level comment.
        """
        if not content or not content.strip():
            raise TaskError("Comment cannot be empty")

        with self.db.session() as session:
            task = session.query(Task).filter(Task.id == task_id).first()
            if not task:
                raise TaskNotFoundError(f"Task {task_id} not found")

            self._check_can_view(task, author)

            if parent_id is not None:
                parent = session.query(TaskComment).filter(
                    TaskComment.id == parent_id,
                    TaskComment.task_id == task_id,
                ).first()
                if not parent:
                    raise TaskNotFoundError(f"Comment {parent_id} not found on task {task_id}")
                parent_id = parent.parent_id or parent.id

            comment = TaskComment(
                task_id=task_id,
                content=content.strip(),
                created_by=author.user_id,
                parent_id=parent_id,
            )
            session.add(comment)
            session.commit()
            session.refresh(comment)

        self.logger.info("task_comment_added", task_id=task_id, comment_id=comment.id, parent_id=parent_id)
        return comment

    def _add_system_comment(self, task_id: int, user_id: str, content: str) -> None:
        """Best-effort bookkeeping comment; failures are only logged."""
        try:
            with self.db.session() as session:
                session.add(TaskComment(task_id=task_id, content=content, created_by=user_id))
                session.commit()
        except SQLAlchemyError as e:
            self.logger.warning("task_system_comment_failed", task_id=task_id, error=str(e))
