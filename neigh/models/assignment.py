import enum
from datetime import datetime
from ..extensions import db


class AssignmentStatus(enum.Enum):
    """Forward-only lifecycle of a TaskAssignment."""

    OPEN = 0
    IN_PROGRESS = 1
    COMPLETED = 2
    ACCEPTED = 3

    @classmethod
    def parse(cls, value) -> "AssignmentStatus":
        if isinstance(value, cls):
            return value
        name = str(value or "").strip().upper().replace("-", "_").replace(" ", "_")
        try:
            return cls[name]
        except KeyError:
            raise ValueError(f'Status "{value}" not found') from None

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()

    def follows(self, other: "AssignmentStatus") -> bool:
        return self.value > other.value


class TaskAssignment(db.Model):
    __tablename__ = "task_assignment"

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey("task.id"), nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    contractor_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)

    status = db.Column(
        db.Enum(AssignmentStatus),
        nullable=False,
        default=AssignmentStatus.IN_PROGRESS,
        index=True,
    )
    completed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    task = db.relationship("Task", back_populates="assignments")
    client = db.relationship("User", foreign_keys=[client_id],
                             backref=db.backref("client_assignments", lazy="dynamic"))
    contractor = db.relationship("User", foreign_keys=[contractor_id],
                                 backref=db.backref("contractor_assignments", lazy="dynamic"))

    invoice_items = db.relationship("InvoiceItem", back_populates="assignment", lazy="selectin")
    reviews = db.relationship("Review", back_populates="assignment", lazy="selectin",
                              cascade="all, delete-orphan")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "task": {"name": self.task.name, "price": str(self.task.price)} if self.task else None,
            "client_id": self.client_id,
            "client": self.client.to_summary() if self.client else None,
            "contractor_id": self.contractor_id,
            "contractor": self.contractor.to_summary() if self.contractor else None,
            "status": self.status.name if self.status else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "invoices": sorted({
                item.invoice.invoice_number
                for item in (self.invoice_items or [])
                if item.invoice is not None
            }),
        }

    def __repr__(self):
        return f"<TaskAssignment id={self.id} task_id={self.task_id} status={self.status}>"
