"""
Task status workflow.

Tasks move through a fixed transition table:

    TODO        -> IN_PROGRESS, CANCELLED
    IN_PROGRESS -> IN_REVIEW, TODO, CANCELLED
    IN_REVIEW   -> DONE, IN_PROGRESS, CANCELLED
    DONE        -> (terminal)
    CANCELLED   -> (terminal)

The workflow knows nothing about roles or ownership. Handlers decide whether
the caller may touch the task before asking for a transition.
"""

import logging
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from errors import InvalidTransition
from models import TERMINAL_TASK_STATUSES, Task, TaskStatus
from time_utils import utc_now

logger = logging.getLogger(__name__)

INITIAL_STATUS = TaskStatus.TODO

STATUS_TRANSITIONS: Dict[TaskStatus, FrozenSet[TaskStatus]] = {
    TaskStatus.TODO: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.IN_REVIEW, TaskStatus.TODO, TaskStatus.CANCELLED}),
    TaskStatus.IN_REVIEW: frozenset({TaskStatus.DONE, TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED}),
    TaskStatus.DONE: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}


def allowed_transitions(status: TaskStatus) -> FrozenSet[TaskStatus]:
    """Outgoing edges of a status. Terminal statuses have none."""
    return STATUS_TRANSITIONS[TaskStatus(status)]


def is_terminal(status: TaskStatus) -> bool:
    return TaskStatus(status) in TERMINAL_TASK_STATUSES


def can_transition(current: TaskStatus, requested: TaskStatus) -> bool:
    """
    Check whether a status change is along an edge of the transition table.

    Requesting the current status is never valid, because no status lists
    itself as a successor.
    """
    return TaskStatus(requested) in allowed_transitions(current)


def transition(task: Task, requested: TaskStatus, now: Optional[datetime] = None) -> Task:
    """
    Move a task to a new status.

    Only ``status`` and ``updated_at`` are modified. The change is applied to
    the entity in memory; persisting it is the caller's job.

    Args:
        task: Task to transition
        requested: Target status
        now: Timestamp to record as updated_at (defaults to utc_now())

    Returns:
        The same task instance

    Raises:
        InvalidTransition: if ``requested`` is not reachable from the
            task's current status
    """
    current = TaskStatus(task.status)
    requested = TaskStatus(requested)

    if not can_transition(current, requested):
        allowed = sorted(s.value for s in allowed_transitions(current))
        logger.info(f"Rejected transition for task {task.id}: {current.value} -> {requested.value}")
        if allowed:
            message = (
                f"Cannot change status from {current.value} to {requested.value}. "
                f"Allowed: {', '.join(allowed)}"
            )
        else:
            message = f"Cannot change status from {current.value}: it is a final status"
        raise InvalidTransition(message)

    task.status = requested
    task.updated_at = now or utc_now()
    logger.debug(f"Task {task.id} transitioned {current.value} -> {requested.value}")
    return task
