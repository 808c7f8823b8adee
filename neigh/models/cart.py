from datetime import datetime
from ..extensions import db


class Cart(db.Model):
    __tablename__ = "cart"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="SET NULL"), index=True)
    session_cart_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    total_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    user = db.relationship("User")
    # deleting the cart releases its invoices (cart_id -> NULL)
    invoices = db.relationship("Invoice", back_populates="cart", lazy="selectin",
                               order_by="Invoice.id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "total_price": str(self.total_price),
            "invoices": [
                {
                    "id": inv.id,
                    "invoice_number": inv.invoice_number,
                    "total_price": str(inv.total_price),
                    "client": inv.client.to_summary() if inv.client else None,
                }
                for inv in self.invoices or []
            ],
        }
