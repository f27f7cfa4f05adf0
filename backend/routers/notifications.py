"""
Notification endpoints. Every route acts on the caller's own notifications.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from auth.dependencies import get_current_user
from database import get_db
from errors import NotFound
from models import Notification, User
from repository import Repository
from schemas import NotificationResponse, ReadAllResult
from time_utils import utc_now

logger = logging.getLogger(__name__)

GROUP = "notifications"

router = APIRouter(prefix="/api/notifications", tags=[GROUP])

ROUTE_POLICIES = []


def get_own_notification(db: Session, notification_id: int, user: User) -> Notification:
    """Another user's notification answers 404, same as a missing one."""
    notification = Repository(db, Notification).get(notification_id)
    if notification is None or notification.user_id != user.id:
        raise NotFound("Notification not found")
    return notification


@router.get("", response_model=List[NotificationResponse])
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """The caller's notifications, newest first."""
    query = Repository(db, Notification).query(user_id=current_user.id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


@router.get("/unread-count")
def unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    count = Repository(db, Notification).count(Notification.is_read.is_(False), user_id=current_user.id)
    return {"count": count}


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notification = get_own_notification(db, notification_id, current_user)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utc_now()
        Repository(db, Notification).save(notification)
    return notification


@router.patch("/{notification_id}/unread", response_model=NotificationResponse)
def mark_unread(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notification = get_own_notification(db, notification_id, current_user)
    if notification.is_read:
        notification.is_read = False
        notification.read_at = None
        Repository(db, Notification).save(notification)
    return notification


@router.post("/read-all", response_model=ReadAllResult)
def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Mark every unread notification of the caller as read."""
    updated = (
        Repository(db, Notification)
        .query(Notification.is_read.is_(False), user_id=current_user.id)
        .update({"is_read": True, "read_at": utc_now()}, synchronize_session=False)
    )
    db.commit()
    logger.info(f"User {current_user.id} marked {updated} notifications as read")
    return ReadAllResult(updated_count=updated)
