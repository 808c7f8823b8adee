# neigh/models/task.py
import enum
from datetime import datetime
from ..extensions import db


class TaskStatus(enum.Enum):
    OPEN = "OPEN"
    ASSIGNED = "ASSIGNED"


class Category(db.Model):
    __tablename__ = "category"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False)
    description = db.Column(db.Text)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "description": self.description}


class Task(db.Model):
    __tablename__ = "task"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    images = db.Column(db.JSON, default=list)

    category_id = db.Column(db.Integer, db.ForeignKey("category.id"), index=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)

    status = db.Column(db.Enum(TaskStatus), nullable=False, default=TaskStatus.OPEN, index=True)
    is_archived = db.Column(db.Boolean, nullable=False, default=False, index=True)
    archived_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = db.relationship("Category", backref=db.backref("tasks", lazy="dynamic"))
    created_by = db.relationship("User", back_populates="tasks")

    # Assignments (normal collection; NOT dynamic) - pairs with TaskAssignment.task
    assignments = db.relationship(
        "TaskAssignment",
        back_populates="task",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": str(self.price) if self.price is not None else None,
            "images": list(self.images or []),
            "category": self.category.name if self.category else None,
            "status": self.status.value if self.status else None,
            "created_by_id": self.created_by_id,
            "is_archived": bool(self.is_archived),
            "archived_at": self.archived_at.isoformat() if self.archived_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
