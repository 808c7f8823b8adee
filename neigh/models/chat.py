# neigh/models/chat.py
from datetime import datetime
from ..extensions import db


class Conversation(db.Model):
    __tablename__ = "conversation"

    id = db.Column(db.Integer, primary_key=True)
    # None for conversations not tied to a task
    task_id = db.Column(db.Integer, db.ForeignKey("task.id", ondelete="SET NULL"), index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    task = db.relationship("Task")
    participants = db.relationship("ConversationParticipant", backref="conversation",
                                   lazy="selectin", cascade="all, delete-orphan")
    messages = db.relationship("Message", backref="conversation", lazy="dynamic",
                               cascade="all, delete-orphan", order_by="Message.created_at")

    @property
    def participant_ids(self) -> set[int]:
        return {p.user_id for p in self.participants or []}

    def to_dict(self, with_messages: bool = False) -> dict:
        data = {
            "id": self.id,
            "task_id": self.task_id,
            "participants": sorted(self.participant_ids),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if with_messages:
            data["messages"] = [m.to_dict() for m in self.messages]
        return data


class ConversationParticipant(db.Model):
    __tablename__ = "conversation_participant"

    id = db.Column(db.Integer, primary_key=True)
    conversation_id = db.Column(db.Integer, db.ForeignKey("conversation.id", ondelete="CASCADE"),
                                nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    joined_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship("User")

    __table_args__ = (
        db.UniqueConstraint("conversation_id", "user_id", name="uq_conversation_participant"),
    )


class Message(db.Model):
    __tablename__ = "message"

    id = db.Column(db.Integer, primary_key=True)
    conversation_id = db.Column(db.Integer, db.ForeignKey("conversation.id", ondelete="CASCADE"),
                                nullable=False, index=True)
    sender_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="SET NULL"), index=True)
    content = db.Column(db.Text, nullable=False)
    is_system_message = db.Column(db.Boolean, default=False, nullable=False)
    # "metadata" is reserved on declarative models
    meta = db.Column("metadata", db.JSON)
    is_read = db.Column(db.Boolean, default=False, nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    sender = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "sender_id": self.sender_id,
            "content": self.content,
            "is_system_message": bool(self.is_system_message),
            "metadata": dict(self.meta or {}),
            "is_read": bool(self.is_read),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
