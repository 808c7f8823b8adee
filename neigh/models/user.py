# neigh/models/user.py
from datetime import datetime
from decimal import Decimal
from werkzeug.security import generate_password_hash, check_password_hash
from flask_login import UserMixin
from ..extensions import db


class User(UserMixin, db.Model):
    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, default="NO_NAME")
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    image = db.Column(db.String(512))

    password_hash = db.Column(db.String(255))

    # client|contractor|admin
    role = db.Column(db.String(20), nullable=False, default="client", index=True)

    address = db.Column(db.JSON)
    payment_method = db.Column(db.String(20))

    # Denormalized rating aggregates, recomputed from Review rows
    num_reviews = db.Column(db.Integer, nullable=False, default=0)
    client_rating = db.Column(db.Numeric(3, 2), nullable=False, default=Decimal("0"))
    contractor_rating = db.Column(db.Numeric(3, 2), nullable=False, default=Decimal("0"))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tasks = db.relationship(
        "Task",
        back_populates="created_by",
        lazy="dynamic",
    )

    # --- Auth helpers ---
    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "payment_method": self.payment_method,
            "num_reviews": self.num_reviews or 0,
            "client_rating": str(self.client_rating or Decimal("0")),
            "contractor_rating": str(self.contractor_rating or Decimal("0")),
        }

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email}

    def __repr__(self):
        return f"<User id={self.id} email={self.email} role={self.role}>"
