"""
Comment threads on tasks.

Comments form a tree through a nullable ``parent_id`` on a flat table. The
tree is walked with queries (``list_replies``), never through in-memory
parent/child references.

Rules:
- A reply's parent must exist and belong to the same task.
- Only the author may edit a comment. Any edit, even one that leaves the
  text unchanged, marks the comment as edited.
- Soft delete keeps the row (replies keep pointing at it) and hides the
  text. With ``clear_content`` the text is overwritten by a placeholder.
- Restore only clears the deleted flags. Text overwritten by a soft delete
  is gone for good; nothing keeps a backup copy.
"""

import logging
import re
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from auth.principal import Principal
from errors import Conflict, Forbidden, ParentNotFound
from models import DELETED_COMMENT_PLACEHOLDER, Comment
from repository import Repository
from time_utils import utc_now

logger = logging.getLogger(__name__)

MENTION_PATTERN = re.compile(r"@(\w+)")


def extract_mentions(content: str) -> List[str]:
    """
    Pull @mention tokens out of comment text.

    Tokens are returned in first-seen order without duplicates. They are
    stored as-is and not checked against existing users.

    Example:
        >>> extract_mentions("@ana please sync with @bo and @ana")
        ['ana', 'bo']
    """
    seen = []
    for token in MENTION_PATTERN.findall(content or ""):
        if token not in seen:
            seen.append(token)
    return seen


def create_comment(
    db: Session,
    task_id: int,
    user_id: int,
    content: str,
    parent_id: Optional[int] = None,
) -> Comment:
    """
    Stage a comment (or a reply when ``parent_id`` is given) and flush it so
    it has an id. The caller commits.

    Raises:
        ParentNotFound: if the parent does not exist or is on another task
    """
    comments = Repository(db, Comment)

    if parent_id is not None:
        parent = comments.get(parent_id)
        if parent is None or parent.task_id != task_id:
            logger.info(f"Parent comment {parent_id} not found on task {task_id}")
            raise ParentNotFound(f"Parent comment {parent_id} not found on this task")

    comment = Comment(
        task_id=task_id,
        user_id=user_id,
        parent_id=parent_id,
        content=content,
        mentions=extract_mentions(content),
    )
    comments.add(comment)
    db.flush()
    logger.info(f"Comment {comment.id} staged on task {task_id} by user {user_id}")
    return comment


def edit_comment(comment: Comment, new_content: str, actor: Principal, now: Optional[datetime] = None) -> Comment:
    """
    Replace the text of a comment.

    Raises:
        Forbidden: if the actor did not write the comment
        Conflict: if the comment is soft-deleted
    """
    if actor.id != comment.user_id:
        logger.info(f"User {actor.id} tried to edit comment {comment.id} owned by {comment.user_id}")
        raise Forbidden("You can only edit your own comments")

    if comment.is_deleted:
        raise Conflict("Cannot edit a deleted comment. Restore it first.")

    comment.content = new_content
    comment.mentions = extract_mentions(new_content)
    comment.is_edited = True
    comment.updated_at = now or utc_now()
    return comment


def soft_delete(comment: Comment, clear_content: bool = True, now: Optional[datetime] = None) -> Comment:
    """Mark a comment deleted. Replies are left untouched."""
    comment.is_deleted = True
    comment.deleted_at = now or utc_now()
    if clear_content:
        comment.content = DELETED_COMMENT_PLACEHOLDER
    return comment


def restore(comment: Comment) -> Comment:
    """Clear the deleted flags. Does not bring back cleared content."""
    comment.is_deleted = False
    comment.deleted_at = None
    return comment


def list_task_comments(db: Session, task_id: int) -> List[Comment]:
    """All comments of a task, oldest first, deleted ones included."""
    return (
        db.query(Comment)
        .filter(Comment.task_id == task_id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .all()
    )


def list_replies(db: Session, comment_id: int) -> List[Comment]:
    """Direct replies to a comment, oldest first."""
    return (
        db.query(Comment)
        .filter(Comment.parent_id == comment_id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .all()
    )
