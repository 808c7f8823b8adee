from datetime import datetime
from ..extensions import db


class Invoice(db.Model):
    __tablename__ = "invoice"

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(64), unique=True, nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    contractor_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    total_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    payment_id = db.Column(db.Integer, db.ForeignKey("payment.id"), index=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("cart.id", ondelete="SET NULL"), index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = db.relationship("User", foreign_keys=[client_id])
    contractor = db.relationship("User", foreign_keys=[contractor_id])
    payment = db.relationship("Payment", back_populates="invoices")
    cart = db.relationship("Cart", back_populates="invoices")

    items = db.relationship(
        "InvoiceItem",
        back_populates="invoice",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.id",
    )

    @property
    def is_paid(self) -> bool:
        return bool(self.payment and self.payment.is_paid)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "client": self.client.to_summary() if self.client else None,
            "contractor": self.contractor.to_summary() if self.contractor else None,
            "total_price": str(self.total_price),
            "payment_id": self.payment_id,
            "is_paid": self.is_paid,
            "items": [item.to_dict() for item in self.items or []],
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class InvoiceItem(db.Model):
    __tablename__ = "invoice_item"

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoice.id", ondelete="CASCADE"),
                           nullable=False, index=True)
    task_id = db.Column(db.Integer, db.ForeignKey("task.id"), nullable=False, index=True)
    assignment_id = db.Column(db.Integer, db.ForeignKey("task_assignment.id"), index=True)

    name = db.Column(db.String(255), nullable=False, default="Service")
    quantity = db.Column(db.Integer, nullable=False, default=1)
    price = db.Column(db.Numeric(12, 2), nullable=False)
    hours = db.Column(db.Integer, nullable=False, default=1)

    # legacy column name used by older invoice rows
    qty = db.synonym("quantity")

    invoice = db.relationship("Invoice", back_populates="items")
    task = db.relationship("Task")
    assignment = db.relationship("TaskAssignment", back_populates="invoice_items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "assignment_id": self.assignment_id,
            "name": self.name,
            "quantity": self.quantity,
            "price": str(self.price),
            "hours": self.hours,
        }
