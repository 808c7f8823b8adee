# neigh/services/chat_service.py
"""
Task conversations between a task owner and the contractors contacting them.
System notifications (see ``notifications.py``) land in the same threads.
"""
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import or_

from ..errors import (
    NotFoundError,
    UnauthorizedError,
    ValidationError,
    fail,
    first_form_error,
    format_error,
    ok,
)
from ..extensions import db
from ..forms import MessageForm
from ..models.chat import Conversation, ConversationParticipant, Message
from ..models.task import Task
from ..security import require_user
from .notifications import find_task_conversation

log = logging.getLogger(__name__)


def _participant_conversation(conversation_id: int, user_id: int) -> Conversation:
    conv = db.session.get(Conversation, conversation_id)
    if conv is None:
        raise NotFoundError("Conversation not found")
    if user_id not in conv.participant_ids:
        raise UnauthorizedError("You are not part of this conversation")
    return conv


def start_task_conversation(task_id: int) -> dict:
    """Open (or reuse) the thread between the caller and the task owner."""
    try:
        user = require_user()
        task = db.session.get(Task, task_id)
        if task is None or task.is_archived:
            raise NotFoundError("Task not found")
        if task.created_by_id == user.id:
            raise ValidationError("You cannot start a conversation about your own task")

        conv = find_task_conversation(task.id, user.id, task.created_by_id)
        if conv is not None:
            return ok("Conversation found", conv)

        conv = Conversation(task_id=task.id)
        conv.participants = [
            ConversationParticipant(user_id=task.created_by_id),
            ConversationParticipant(user_id=user.id),
        ]
        db.session.add(conv)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return fail(format_error(e))

    log.info("Conversation %s started on task %s by user %s", conv.id, task.id, user.id)
    return ok("Conversation started", conv)


def send_message(conversation_id: int, data: dict) -> dict:
    try:
        user = require_user()
        conv = _participant_conversation(conversation_id, user.id)
        form = MessageForm(data=data or {})
        if not form.validate():
            raise ValidationError(first_form_error(form.errors))

        msg = Message(conversation_id=conv.id, sender_id=user.id, content=form.content.data.strip())
        db.session.add(msg)
        conv.updated_at = datetime.utcnow()
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return fail(format_error(e))
    return ok("Message sent", msg)


def get_user_conversations() -> list[Conversation]:
    user = require_user()
    return (Conversation.query
            .filter(Conversation.participants.any(ConversationParticipant.user_id == user.id))
            .order_by(Conversation.updated_at.desc(), Conversation.id.desc())
            .all())


def get_conversation(conversation_id: int) -> Conversation:
    user = require_user()
    return _participant_conversation(conversation_id, user.id)


def _unread_from_others(user_id: int):
    return or_(Message.sender_id != user_id, Message.sender_id.is_(None))


def mark_conversation_read(conversation_id: int) -> dict:
    try:
        user = require_user()
        conv = _participant_conversation(conversation_id, user.id)
        count = (Message.query
                 .filter(Message.conversation_id == conv.id,
                         Message.is_read.is_(False),
                         _unread_from_others(user.id))
                 .update({Message.is_read: True}, synchronize_session="fetch"))
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return fail(format_error(e))
    return ok("Conversation marked as read", count)


def get_unread_count() -> int:
    user = require_user()
    my_conversations = (db.select(ConversationParticipant.conversation_id)
                        .where(ConversationParticipant.user_id == user.id))
    return (Message.query
            .filter(Message.conversation_id.in_(my_conversations),
                    Message.is_read.is_(False),
                    _unread_from_others(user.id))
            .count())
