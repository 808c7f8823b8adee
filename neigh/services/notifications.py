# neigh/services/notifications.py
"""
System messages posted into the task conversation shared by a client and
a contractor. The conversation must already exist (it is opened by the
task-contact flow); this module never creates one.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ..extensions import db
from ..models.assignment import TaskAssignment
from ..models.chat import Conversation, ConversationParticipant, Message

log = logging.getLogger(__name__)

EVENT_TYPES = ("status-update", "invoice-created", "review-submitted", "task-archived")


def find_task_conversation(task_id: int, *user_ids: int) -> Optional[Conversation]:
    """Conversation about ``task_id`` in which every given user participates."""
    qry = Conversation.query.filter(Conversation.task_id == task_id)
    for uid in user_ids:
        qry = qry.filter(Conversation.participants.any(ConversationParticipant.user_id == uid))
    return qry.order_by(Conversation.id).first()


class ConversationNotifier:
    """Posts system messages for task-assignment events."""

    def notify(self, assignment_id: int, text: str, event_type: str = "status-update",
               sender_id: int | None = None, metadata: dict | None = None) -> Optional[Message]:
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event_type}")

        assignment = db.session.get(TaskAssignment, assignment_id)
        if assignment is None:
            log.error("Task assignment not found: %s", assignment_id)
            return None

        conversation = find_task_conversation(
            assignment.task_id, assignment.client_id, assignment.contractor_id
        )
        if conversation is None:
            log.warning("No conversation found for task assignment: %s", assignment_id)
            return None

        msg = Message(
            conversation_id=conversation.id,
            sender_id=sender_id or assignment.contractor_id,
            content=text,
            is_system_message=True,
            meta={
                "event_type": event_type,
                "task_assignment_id": assignment.id,
                "task_name": assignment.task.name if assignment.task else None,
                **(metadata or {}),
            },
        )
        db.session.add(msg)
        conversation.updated_at = datetime.utcnow()
        db.session.commit()
        log.info("System message %s posted to conversation %s (%s)", msg.id, conversation.id, event_type)
        return msg

    def notify_task_archived(self, task) -> int:
        """Post an archive notice into every conversation about ``task``."""
        conversations = Conversation.query.filter_by(task_id=task.id).all()
        now = datetime.utcnow()
        for conv in conversations:
            db.session.add(Message(
                conversation_id=conv.id,
                sender_id=task.created_by_id,
                content=f'The task "{task.name}" has been archived by its owner and is no longer available.',
                is_system_message=True,
                meta={"event_type": "task-archived", "task_id": task.id, "task_name": task.name},
            ))
            conv.updated_at = now
        db.session.commit()
        return len(conversations)

