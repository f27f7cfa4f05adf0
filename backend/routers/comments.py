"""
Comment endpoints.

Anyone who can see a task can read and write its comments. Only the author
edits a comment; the author or an admin may delete and restore it.
Deleted comments stay in listings with placeholder text so reply threads
keep their shape.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

import comment_thread
from auth.dependencies import get_current_principal
from auth.permissions import ADMIN_ONLY, can_mutate
from auth.principal import Principal
from database import get_db
from errors import Forbidden
from models import Comment, NotificationType
from notifications import notify_task_participants
from repository import Repository
from routers.tasks import get_visible_task
from schemas import CommentCreate, CommentResponse, CommentUpdate

logger = logging.getLogger(__name__)

GROUP = "comments"

# Routes live under both /api/tasks/{id}/comments and /api/comments/{id}
router = APIRouter(tags=[GROUP])

# Every comment route only needs an authenticated caller
ROUTE_POLICIES = []


def get_visible_comment(db: Session, comment_id: int, principal: Principal) -> Comment:
    """Load a comment whose task the caller can see."""
    comment = Repository(db, Comment).get_or_404(comment_id)
    get_visible_task(db, comment.task_id, principal)
    return comment


@router.get("/api/tasks/{task_id}/comments", response_model=List[CommentResponse])
def list_comments(
    task_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """All comments of a task in creation order, replies included."""
    get_visible_task(db, task_id, principal)
    return comment_thread.list_task_comments(db, task_id)


@router.post(
    "/api/tasks/{task_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_comment(
    task_id: int,
    comment_in: CommentCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Comment on a task, or reply to a comment with ``parent_id``.

    Raises:
        NotFound: 404 if the task does not exist or is not visible
        ParentNotFound: 400 if the parent is missing or on another task
    """
    task = get_visible_task(db, task_id, principal)
    comment = comment_thread.create_comment(
        db, task_id, principal.id, comment_in.content, parent_id=comment_in.parent_id
    )

    notify_task_participants(
        db,
        task,
        principal.id,
        NotificationType.TASK_COMMENTED,
        f"New comment on task: {task.title}",
        metadata={"comment_id": comment.id},
    )
    Repository(db, Comment).save(comment)
    return comment


@router.get("/api/comments/{comment_id}/replies", response_model=List[CommentResponse])
def list_replies(
    comment_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    get_visible_comment(db, comment_id, principal)
    return comment_thread.list_replies(db, comment_id)


@router.patch("/api/comments/{comment_id}", response_model=CommentResponse)
def update_comment(
    comment_id: int,
    comment_update: CommentUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Edit a comment (author only).

    Raises:
        Forbidden: 403 if the caller did not write the comment
        Conflict: 409 if the comment is deleted
    """
    comment = get_visible_comment(db, comment_id, principal)
    comment_thread.edit_comment(comment, comment_update.content, principal)
    Repository(db, Comment).save(comment)
    logger.info(f"Comment {comment.id} edited by user {principal.id}")
    return comment


@router.delete("/api/comments/{comment_id}", response_model=CommentResponse)
def delete_comment(
    comment_id: int,
    clear_content: bool = Query(True, description="Overwrite the text with a placeholder"),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Soft-delete a comment (author or admin).

    With ``clear_content=true`` (the default) the text is overwritten and
    cannot be brought back by a restore.
    """
    comment = get_visible_comment(db, comment_id, principal)
    if not can_mutate(principal, comment.user_id, ADMIN_ONLY):
        raise Forbidden("You can only delete your own comments")

    comment_thread.soft_delete(comment, clear_content=clear_content)
    Repository(db, Comment).save(comment)
    logger.info(f"Comment {comment.id} deleted by user {principal.id} (clear_content={clear_content})")
    return comment


@router.post("/api/comments/{comment_id}/restore", response_model=CommentResponse)
def restore_comment(
    comment_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Undo a soft delete (author or admin). Restoring a live comment is a no-op."""
    comment = get_visible_comment(db, comment_id, principal)
    if not can_mutate(principal, comment.user_id, ADMIN_ONLY):
        raise Forbidden("You can only restore your own comments")

    comment_thread.restore(comment)
    Repository(db, Comment).save(comment)
    logger.info(f"Comment {comment.id} restored by user {principal.id}")
    return comment
