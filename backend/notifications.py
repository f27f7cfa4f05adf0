"""
Notification records.

Notifications are staged in the caller's session and committed by the
caller, normally together with the change that caused them. Delivery
beyond the notifications API is not part of this service.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from models import Notification, NotificationType, Task

logger = logging.getLogger(__name__)


def create_notification(
    db: Session,
    user_id: int,
    notification_type: NotificationType,
    message: str,
    task_id: Optional[int] = None,
    metadata: Optional[dict] = None,
) -> Notification:
    """
    Record a notification for a user.

    Args:
        db: Database session
        user_id: Recipient
        notification_type: Kind of event (from NotificationType enum)
        message: Human-readable text
        task_id: Task the notification is about (optional)
        metadata: Additional context (optional)

    Returns:
        Created Notification instance
    """
    logger.debug(f"Creating notification: type={notification_type.value}, user_id={user_id}, task_id={task_id}")

    notification = Notification(
        user_id=user_id,
        type=notification_type.value,
        message=message,
        task_id=task_id,
        action_url=f"/tasks/{task_id}" if task_id is not None else None,
        notification_metadata=metadata,
    )
    db.add(notification)

    return notification


def notify_task_participants(
    db: Session,
    task: Task,
    actor_id: int,
    notification_type: NotificationType,
    message: str,
    metadata: Optional[dict] = None,
) -> List[Notification]:
    """
    Notify the creator and assignee of a task, skipping the actor who
    caused the event and anyone listed twice.
    """
    recipients = []
    for user_id in (task.creator_id, task.assignee_id):
        if user_id is None or user_id == actor_id or user_id in recipients:
            continue
        recipients.append(user_id)

    return [
        create_notification(db, user_id, notification_type, message, task_id=task.id, metadata=metadata)
        for user_id in recipients
    ]
