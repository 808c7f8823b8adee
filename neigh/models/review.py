# neigh/models/review.py
import enum
from datetime import datetime
from ..extensions import db


class ReviewType(enum.Enum):
    # written by the contractor about the client
    CLIENT_REVIEW = "Client Review"
    # written by the client about the contractor's work
    CONTRACTOR_REVIEW = "Contractor Review"


class Review(db.Model):
    __tablename__ = "review"

    id = db.Column(db.Integer, primary_key=True)
    assignment_id = db.Column(db.Integer, db.ForeignKey("task_assignment.id"), nullable=False, index=True)
    reviewer_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    reviewee_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    rating = db.Column(db.Integer, nullable=False)  # 1..5
    description = db.Column(db.Text, nullable=False, default="")
    type = db.Column(db.Enum(ReviewType), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    assignment = db.relationship("TaskAssignment", back_populates="reviews")
    reviewer = db.relationship("User", foreign_keys=[reviewer_id])
    reviewee = db.relationship("User", foreign_keys=[reviewee_id])

    __table_args__ = (
        db.Index("ix_review_assignment_reviewer_type", "assignment_id", "reviewer_id", "type"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "assignment_id": self.assignment_id,
            "reviewer_id": self.reviewer_id,
            "reviewee_id": self.reviewee_id,
            "rating": self.rating,
            "description": self.description,
            "type": self.type.value if self.type else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
