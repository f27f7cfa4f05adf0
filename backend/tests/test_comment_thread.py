"""
Tests for comment threads: replies, edits, soft delete and restore.
"""

import logging

import pytest
from sqlalchemy.orm import Session

import comment_thread
import models
from auth.principal import Principal
from errors import Conflict, Forbidden, ParentNotFound
from tests.conftest import make_task

logger = logging.getLogger(__name__)


@pytest.fixture
def task(test_db: Session, member_user: models.User) -> models.Task:
    return make_task(test_db, member_user, title="Discuss")


def author_of(comment: models.Comment, role: models.Role = models.Role.MEMBER) -> Principal:
    return Principal(comment.user_id, role, True)


# ============== Mentions ==============


def test_extract_mentions_dedupes_in_order():
    assert comment_thread.extract_mentions("@ana ping @bo, also @ana") == ["ana", "bo"]
    assert comment_thread.extract_mentions("no mentions here") == []


# ============== Create ==============


def test_create_top_level_comment(test_db: Session, task: models.Task, member_user: models.User):
    comment = comment_thread.create_comment(test_db, task.id, member_user.id, "Looks good @max")

    assert comment.id is not None
    assert comment.is_top_level
    assert comment.mentions == ["max"]
    assert comment.is_edited is False
    assert comment.is_deleted is False


def test_reply_to_existing_comment(test_db: Session, task: models.Task, member_user: models.User):
    parent = comment_thread.create_comment(test_db, task.id, member_user.id, "Question?")
    reply = comment_thread.create_comment(test_db, task.id, member_user.id, "Answer.", parent_id=parent.id)

    assert reply.is_reply
    assert reply.parent_id == parent.id
    assert [c.id for c in comment_thread.list_replies(test_db, parent.id)] == [reply.id]


def test_reply_to_missing_parent_fails(test_db: Session, task: models.Task, member_user: models.User):
    with pytest.raises(ParentNotFound):
        comment_thread.create_comment(test_db, task.id, member_user.id, "Orphan", parent_id=9999)


def test_reply_to_parent_on_other_task_fails(test_db: Session, task: models.Task, member_user: models.User):
    other_task = make_task(test_db, member_user, title="Elsewhere")
    foreign_parent = comment_thread.create_comment(test_db, other_task.id, member_user.id, "Over here")

    with pytest.raises(ParentNotFound):
        comment_thread.create_comment(test_db, task.id, member_user.id, "Cross-thread", parent_id=foreign_parent.id)

    assert comment_thread.list_task_comments(test_db, task.id) == []


# ============== Edit ==============


def test_author_edit_sets_flag_and_mentions(test_db: Session, task: models.Task, member_user: models.User):
    comment = comment_thread.create_comment(test_db, task.id, member_user.id, "First draft")

    comment_thread.edit_comment(comment, "Second draft for @otto", author_of(comment))

    assert comment.content == "Second draft for @otto"
    assert comment.mentions == ["otto"]
    assert comment.is_edited is True


def test_noop_edit_still_marks_edited(test_db: Session, task: models.Task, member_user: models.User):
    comment = comment_thread.create_comment(test_db, task.id, member_user.id, "Same text")

    comment_thread.edit_comment(comment, "Same text", author_of(comment))

    assert comment.is_edited is True


def test_non_author_cannot_edit_even_as_admin(test_db: Session, task: models.Task, member_user: models.User):
    comment = comment_thread.create_comment(test_db, task.id, member_user.id, "Mine")

    with pytest.raises(Forbidden):
        comment_thread.edit_comment(comment, "Hijacked", Principal(999, models.Role.ADMIN, True))

    assert comment.content == "Mine"


def test_deleted_comment_cannot_be_edited(test_db: Session, task: models.Task, member_user: models.User):
    comment = comment_thread.create_comment(test_db, task.id, member_user.id, "Gone soon")
    comment_thread.soft_delete(comment, clear_content=False)

    with pytest.raises(Conflict):
        comment_thread.edit_comment(comment, "Back again", author_of(comment))


# ============== Soft delete / restore ==============


def test_soft_delete_keeps_replies(test_db: Session, task: models.Task, member_user: models.User):
    parent = comment_thread.create_comment(test_db, task.id, member_user.id, "Parent")
    reply = comment_thread.create_comment(test_db, task.id, member_user.id, "Child", parent_id=parent.id)

    comment_thread.soft_delete(parent)
    test_db.commit()

    assert parent.is_deleted is True
    assert parent.deleted_at is not None
    assert parent.display_content == models.DELETED_COMMENT_PLACEHOLDER
    assert [c.id for c in comment_thread.list_replies(test_db, parent.id)] == [reply.id]
    assert reply.is_deleted is False


def test_restore_without_clear_brings_back_text(test_db: Session, task: models.Task, member_user: models.User):
    comment = comment_thread.create_comment(test_db, task.id, member_user.id, "Keep me")

    comment_thread.soft_delete(comment, clear_content=False)
    assert comment.display_content == models.DELETED_COMMENT_PLACEHOLDER

    comment_thread.restore(comment)

    assert comment.is_deleted is False
    assert comment.deleted_at is None
    assert comment.display_content == "Keep me"


def test_restore_after_clear_does_not_recover_text(test_db: Session, task: models.Task, member_user: models.User):
    """Clearing content on delete is permanent: restore only clears the flags."""
    comment = comment_thread.create_comment(test_db, task.id, member_user.id, "Secret plan")

    comment_thread.soft_delete(comment, clear_content=True)
    test_db.commit()
    comment_thread.restore(comment)
    test_db.commit()
    test_db.refresh(comment)

    assert comment.is_deleted is False
    assert comment.content == models.DELETED_COMMENT_PLACEHOLDER
    assert comment.display_content != "Secret plan"
    logger.info("✓ Cleared content stays lost after restore")


def test_restore_of_live_comment_is_noop(test_db: Session, task: models.Task, member_user: models.User):
    comment = comment_thread.create_comment(test_db, task.id, member_user.id, "Alive")

    comment_thread.restore(comment)

    assert comment.is_deleted is False
    assert comment.content == "Alive"


def test_deleting_task_removes_its_comments(test_db: Session, task: models.Task, member_user: models.User):
    comment_thread.create_comment(test_db, task.id, member_user.id, "Will vanish")

    test_db.delete(task)
    test_db.commit()

    assert test_db.query(models.Comment).count() == 0
