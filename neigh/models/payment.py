from datetime import datetime
from ..extensions import db


def pending_result() -> dict:
    return {"id": "", "status": "PENDING", "email_address": "", "amount": 0}


class Payment(db.Model):
    __tablename__ = "payment"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    # PAYPAL|COD
    payment_method = db.Column(db.String(20), nullable=False)
    # raw gateway blob: id/status/email_address/amount
    payment_result = db.Column(db.JSON, nullable=False, default=pending_result)
    is_paid = db.Column(db.Boolean, nullable=False, default=False, index=True)
    paid_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    user = db.relationship("User", backref=db.backref("payments", lazy="dynamic"))
    invoices = db.relationship("Invoice", back_populates="payment", lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "amount": str(self.amount),
            "payment_method": self.payment_method,
            "payment_result": dict(self.payment_result or {}),
            "is_paid": bool(self.is_paid),
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "invoices": [
                {"id": inv.id, "invoice_number": inv.invoice_number, "total_price": str(inv.total_price)}
                for inv in self.invoices or []
            ],
        }

    def __repr__(self):
        return f"<Payment id={self.id} amount={self.amount} paid={self.is_paid}>"
