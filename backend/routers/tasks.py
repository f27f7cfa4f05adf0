"""
Task endpoints.

Visibility: ADMIN and MANAGER see every task. A MEMBER sees the tasks they
created or are assigned to; any other task answers 404 so its existence is
not revealed.

Status changes go through the lifecycle workflow. Updates accept the
``version`` the client last read and answer 409 when it is stale.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

import lifecycle
from auth.dependencies import get_current_principal
from auth.permissions import ADMIN_ONLY, STAFF, can_mutate, can_mutate_task, can_view_task
from auth.policies import RequiredRoles, RouteId
from auth.principal import Principal
from database import get_db
from errors import Conflict, Forbidden, NotFound, ValidationFailed
from models import NotificationType, Role, Task, TaskPriority, TaskStatus, User
from notifications import create_notification, notify_task_participants
from repository import Repository
from schemas import TaskAssign, TaskCreate, TaskResponse, TaskStatusUpdate, TaskUpdate

logger = logging.getLogger(__name__)

GROUP = "tasks"

router = APIRouter(prefix="/api/tasks", tags=[GROUP])

ROUTE_POLICIES = [
    (RouteId(GROUP, "assign_task"), RequiredRoles.of(Role.ADMIN, Role.MANAGER)),
]


def get_visible_task(db: Session, task_id: int, principal: Principal) -> Task:
    """Load a task the caller may see, or raise NotFound."""
    task = Repository(db, Task).get_or_404(task_id)
    if not can_view_task(principal, task):
        logger.info(f"User {principal.id} cannot see task {task_id}")
        raise NotFound("Task not found")
    return task


def check_version(task: Task, expected: Optional[int]) -> None:
    """Reject an update computed from an older read of the task."""
    if expected is not None and expected != task.version:
        logger.info(f"Stale write on task {task.id}: client version {expected}, current {task.version}")
        raise Conflict("Task was modified by another request. Reload and try again.")


def get_assignable_user(db: Session, user_id: int) -> User:
    user = Repository(db, User).get(user_id)
    if user is None:
        raise ValidationFailed([f"assignee_id: user {user_id} does not exist"])
    if not user.is_active:
        raise ValidationFailed([f"assignee_id: user {user_id} is not active"])
    return user


@router.get("", response_model=List[TaskResponse])
def list_tasks(
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    priority: Optional[TaskPriority] = Query(None),
    assignee_id: Optional[int] = Query(None),
    creator_id: Optional[int] = Query(None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    List tasks visible to the caller.

    Query parameters:
    - status: filter by status
    - priority: filter by priority
    - assignee_id: filter by assignee
    - creator_id: filter by creator
    """
    logger.debug(
        f"User {principal.id} listing tasks (status={status_filter}, priority={priority}, "
        f"assignee_id={assignee_id}, creator_id={creator_id})"
    )

    criteria = []
    if principal.role not in STAFF:
        criteria.append(or_(Task.creator_id == principal.id, Task.assignee_id == principal.id))
    if status_filter is not None:
        criteria.append(Task.status == status_filter)
    if priority is not None:
        criteria.append(Task.priority == priority)
    if assignee_id is not None:
        criteria.append(Task.assignee_id == assignee_id)
    if creator_id is not None:
        criteria.append(Task.creator_id == creator_id)

    return Repository(db, Task).find(*criteria, order_by=Task.id.desc())


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    task_in: TaskCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Create a task. The caller becomes its creator and it starts in TODO.

    Members may only assign a new task to themselves.
    """
    logger.debug(f"User {principal.id} creating task: {task_in.title}")

    if task_in.assignee_id is not None:
        if not can_mutate(principal, task_in.assignee_id, STAFF):
            raise Forbidden("Only admins and managers can assign tasks to other users")
        get_assignable_user(db, task_in.assignee_id)

    task = Task(
        **task_in.model_dump(),
        status=lifecycle.INITIAL_STATUS,
        creator_id=principal.id,
    )
    tasks = Repository(db, Task)
    tasks.add(task)
    db.flush()

    if task.assignee_id is not None and task.assignee_id != principal.id:
        create_notification(
            db,
            task.assignee_id,
            NotificationType.TASK_ASSIGNED,
            f"You have been assigned to task: {task.title}",
            task_id=task.id,
        )

    tasks.save(task)
    logger.info(f"Task created: {task.title} (ID: {task.id}) by user {principal.id}")
    return task


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return get_visible_task(db, task_id, principal)


@router.patch("/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: int,
    task_update: TaskUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Update task details (creator, assignee, or admin/manager).

    Raises:
        NotFound: 404 if the task does not exist or is not visible
        Conflict: 409 if ``version`` is stale
    """
    task = get_visible_task(db, task_id, principal)
    if not can_mutate_task(principal, task):
        raise Forbidden("You cannot modify this task")

    update_data = task_update.model_dump(exclude_unset=True)
    check_version(task, update_data.pop("version", None))

    # Non-nullable columns: an explicit null is a no-op
    for key in ("title", "priority", "tags"):
        if key in update_data and update_data[key] is None:
            update_data.pop(key)

    for key, value in update_data.items():
        setattr(task, key, value)

    Repository(db, Task).save(task)
    logger.info(f"Task {task.id} updated by user {principal.id}: {sorted(update_data)}")
    return task


@router.patch("/{task_id}/status", response_model=TaskResponse)
def change_task_status(
    task_id: int,
    status_update: TaskStatusUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Move a task along the status workflow.

    Raises:
        Forbidden: 403 if the caller is neither creator, assignee nor staff
        InvalidTransition: 400 if the target status is not reachable
        Conflict: 409 if ``version`` is stale
    """
    task = get_visible_task(db, task_id, principal)
    if not can_mutate_task(principal, task):
        raise Forbidden("You cannot change the status of this task")

    check_version(task, status_update.version)

    old_status = TaskStatus(task.status)
    lifecycle.transition(task, status_update.status)

    if task.status == TaskStatus.DONE:
        notification_type = NotificationType.TASK_COMPLETED
        message = f"Task completed: {task.title}"
    else:
        notification_type = NotificationType.TASK_STATUS_CHANGED
        message = f"Task '{task.title}' moved from {old_status.value} to {task.status.value}"
    notify_task_participants(
        db,
        task,
        principal.id,
        notification_type,
        message,
        metadata={"old_status": old_status.value, "new_status": task.status.value},
    )

    Repository(db, Task).save(task)
    logger.info(f"Task {task.id} status {old_status.value} -> {task.status.value} by user {principal.id}")
    return task


@router.patch("/{task_id}/assignee", response_model=TaskResponse)
def assign_task(
    task_id: int,
    assignment: TaskAssign,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Assign or unassign a task (admin/manager).

    Send ``assignee_id: null`` to unassign.
    """
    task = Repository(db, Task).get_or_404(task_id)
    check_version(task, assignment.version)

    previous_assignee_id = task.assignee_id
    new_assignee_id = assignment.assignee_id
    if new_assignee_id is not None:
        get_assignable_user(db, new_assignee_id)

    if new_assignee_id == previous_assignee_id:
        logger.debug(f"Task {task.id} already assigned to {new_assignee_id}")
        return task

    task.assignee_id = new_assignee_id

    if previous_assignee_id is not None and previous_assignee_id != principal.id:
        create_notification(
            db,
            previous_assignee_id,
            NotificationType.TASK_UNASSIGNED,
            f"You have been unassigned from task: {task.title}",
            task_id=task.id,
        )
    if new_assignee_id is not None and new_assignee_id != principal.id:
        create_notification(
            db,
            new_assignee_id,
            NotificationType.TASK_ASSIGNED,
            f"You have been assigned to task: {task.title}",
            task_id=task.id,
        )

    Repository(db, Task).save(task)
    logger.info(f"Task {task.id} reassigned {previous_assignee_id} -> {new_assignee_id} by user {principal.id}")
    return task


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Delete a task (creator or admin). Comments and notifications on the task
    are removed with it.
    """
    task = get_visible_task(db, task_id, principal)
    if not can_mutate(principal, task.creator_id, ADMIN_ONLY):
        raise Forbidden("Only the task creator or an admin can delete this task")

    Repository(db, Task).remove(task)
    logger.info(f"Task {task_id} deleted by user {principal.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
