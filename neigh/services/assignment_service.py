# neigh/services/assignment_service.py
"""
Task assignment lifecycle: IN_PROGRESS -> COMPLETED -> ACCEPTED, plus the
two-sided review step and the rating aggregates it maintains.

Every public method returns ``{"success": bool, "message": str, "data"?}``.
System messages go through the notifier handed to the constructor; a failing
notifier is logged and never undoes the state change.
"""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from sqlalchemy.orm import joinedload

from ..errors import (
    ActionError,
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
    fail,
    first_form_error,
    format_error,
    ok,
)
from ..extensions import db
from ..forms import AssignmentForm, ReviewForm
from ..models.assignment import AssignmentStatus, TaskAssignment
from ..models.review import Review, ReviewType
from ..models.task import Task, TaskStatus
from ..models.user import User
from ..security import require_user
from .totals import round2

log = logging.getLogger(__name__)

FEEDBACK_PREVIEW_CHARS = 150


# -----------------
# Pure helpers
# -----------------

def average_rating(ratings: Iterable[int]) -> Decimal:
    """Mean of a full review set, two decimals; 0.00 when there are none."""
    values = [int(r) for r in ratings]
    if not values:
        return Decimal("0.00")
    return round2(Decimal(sum(values)) / Decimal(len(values)))


def render_stars(rating: int) -> str:
    rating = max(0, min(5, int(rating)))
    return "★" * rating + "☆" * (5 - rating)


def truncate_feedback(text: str | None, limit: int = FEEDBACK_PREVIEW_CHARS) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


def refresh_user_rating(user: User, review_type: ReviewType) -> Decimal:
    """Recompute the reviewee's denormalized rating from every review of
    ``review_type`` written about them."""
    ratings = [
        rating for (rating,) in db.session.query(Review.rating)
        .filter(Review.reviewee_id == user.id, Review.type == review_type)
    ]
    avg = average_rating(ratings)
    if review_type is ReviewType.CONTRACTOR_REVIEW:
        user.contractor_rating = avg
    else:
        user.client_rating = avg
    user.num_reviews = Review.query.filter(Review.reviewee_id == user.id).count()
    return avg


def _load(assignment_id) -> TaskAssignment | None:
    return (TaskAssignment.query
            .options(joinedload(TaskAssignment.task),
                     joinedload(TaskAssignment.client),
                     joinedload(TaskAssignment.contractor))
            .filter(TaskAssignment.id == assignment_id)
            .first())


class AssignmentWorkflow:

    def __init__(self, notifier):
        self.notifier = notifier

    def _notify(self, assignment_id: int, text: str, event_type: str, **kwargs):
        try:
            return self.notifier.notify(assignment_id, text, event_type, **kwargs)
        except Exception as e:
            db.session.rollback()
            log.warning("Notification for assignment %s failed: %s", assignment_id, e)
            return None

    # -----------------
    # Create
    # -----------------

    def create_task_assignment(self, data: dict) -> dict:
        try:
            user = require_user()
            form = AssignmentForm(data=data)
            if not form.validate():
                raise ValidationError(first_form_error(form.errors))

            task = db.session.get(Task, form.task_id.data)
            if task is None or task.is_archived:
                raise NotFoundError("Task not found")
            if task.created_by_id != user.id and not user.is_admin:
                raise UnauthorizedError("Only the task owner can assign this task")
            if form.client_id.data and form.client_id.data != task.created_by_id:
                raise ValidationError("Client does not own this task")

            contractor = db.session.get(User, form.contractor_id.data)
            if contractor is None:
                raise NotFoundError("Contractor not found")
            if contractor.id == task.created_by_id:
                raise ValidationError("You cannot assign a task to yourself")

            existing = TaskAssignment.query.filter_by(task_id=task.id, contractor_id=contractor.id).first()
            if existing is not None:
                raise ConflictError("This task is already assigned to that contractor")

            assignment = TaskAssignment(
                task_id=task.id,
                client_id=task.created_by_id,
                contractor_id=contractor.id,
                status=AssignmentStatus.IN_PROGRESS,
            )
            task.status = TaskStatus.ASSIGNED
            db.session.add(assignment)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            return fail(format_error(e))

        log.info("Task %s assigned to contractor %s (assignment %s)", task.id, contractor.id, assignment.id)
        self._notify(
            assignment.id,
            f'Task "{task.name}" has been assigned to {contractor.name}. Work is now in progress.',
            "status-update",
            sender_id=user.id,
        )
        return ok("Task assigned successfully", assignment)

    # -----------------
    # Contractor transitions
    # -----------------

    def update_task_assignment(self, assignment_id: int, status) -> dict:
        try:
            user = require_user()
            try:
                target = AssignmentStatus.parse(status)
            except ValueError as e:
                raise ValidationError(str(e))

            # contractor filter doubles as the ownership check
            assignment = (TaskAssignment.query
                          .filter_by(id=assignment_id, contractor_id=user.id)
                          .first())
            if assignment is None:
                raise NotFoundError("Task assignment not found or you are not the assigned contractor")
            if target is AssignmentStatus.ACCEPTED:
                raise UnauthorizedError("Only the client can accept this task")
            if not target.follows(assignment.status):
                raise ConflictError(
                    f"Cannot move a task from {assignment.status.label} to {target.label}"
                )

            assignment.status = target
            if target is AssignmentStatus.COMPLETED:
                assignment.completed_at = datetime.utcnow()
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            return fail(format_error(e))

        if target is AssignmentStatus.COMPLETED:
            self._notify(
                assignment.id,
                f'{user.name} has marked the task "{assignment.task.name}" as completed. '
                f"Please review the work and accept it.",
                "status-update",
                sender_id=user.id,
            )
        return ok(f"Task status updated to {target.label}", assignment)

    # -----------------
    # Client transitions
    # -----------------

    def accept_task_assignment(self, assignment_id: int) -> dict:
        try:
            user = require_user()
            assignment = _load(assignment_id)
            if assignment is None:
                raise NotFoundError("Task assignment not found")
            if assignment.client_id != user.id:
                raise UnauthorizedError("Only the client can accept this task")
            if assignment.status is not AssignmentStatus.COMPLETED:
                raise ConflictError("Only completed tasks can be accepted")

            assignment.status = AssignmentStatus.ACCEPTED
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            return fail(format_error(e))

        self._notify(
            assignment.id,
            f'{user.name} has accepted the completed work on "{assignment.task.name}".',
            "status-update",
            sender_id=user.id,
        )
        return ok("Task accepted successfully", assignment)

    # -----------------
    # Reviews
    # -----------------

    def mark_task_as_reviewed(self, assignment_id: int, rating, feedback: str = "") -> dict:
        """Client rates the contractor's work."""
        return self._submit_review(assignment_id, rating, feedback, ReviewType.CONTRACTOR_REVIEW)

    def mark_client_as_reviewed(self, assignment_id: int, rating, feedback: str = "") -> dict:
        """Contractor rates the client."""
        return self._submit_review(assignment_id, rating, feedback, ReviewType.CLIENT_REVIEW)

    def _submit_review(self, assignment_id, rating, feedback, review_type: ReviewType) -> dict:
        try:
            user = require_user()
            form = ReviewForm(data={"rating": rating, "feedback": feedback})
            if not form.validate():
                raise ValidationError(first_form_error(form.errors))

            assignment = _load(assignment_id)
            if assignment is None:
                raise NotFoundError("Task assignment not found")

            if review_type is ReviewType.CONTRACTOR_REVIEW:
                if assignment.client_id != user.id:
                    raise UnauthorizedError("Only the client can review this task")
                reviewee = assignment.contractor
            else:
                if assignment.contractor_id != user.id:
                    raise UnauthorizedError("Only the assigned contractor can review this client")
                reviewee = assignment.client

            if assignment.status not in (AssignmentStatus.COMPLETED, AssignmentStatus.ACCEPTED):
                raise ConflictError("Only completed tasks can be reviewed")

            description = (form.feedback.data or "").strip()
            review = (Review.query
                      .filter_by(assignment_id=assignment.id, reviewer_id=user.id, type=review_type)
                      .order_by(Review.id)
                      .first())
            if review is None:
                review = Review(
                    assignment_id=assignment.id,
                    reviewer_id=user.id,
                    reviewee_id=reviewee.id,
                    type=review_type,
                )
                db.session.add(review)
            review.rating = form.rating.data
            review.description = description

            db.session.flush()
            avg = refresh_user_rating(reviewee, review_type)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            return fail(format_error(e))

        log.info("Review %s saved for user %s (%s); new average %s",
                 review.id, reviewee.id, review_type.name, avg)

        preview = truncate_feedback(description)
        text = f'{user.name} left a {render_stars(review.rating)} review for "{assignment.task.name}".'
        if preview:
            text += f' "{preview}"'
        self._notify(
            assignment.id,
            text,
            "review-submitted",
            sender_id=user.id,
            metadata={"review_rating": review.rating, "review_feedback": preview},
        )
        return ok("Review submitted successfully", review)

    # -----------------
    # Reads / admin
    # -----------------

    def get_task_assignment(self, assignment_id: int) -> dict:
        try:
            user = require_user()
            assignment = _load(assignment_id)
            if assignment is None:
                raise NotFoundError("Task assignment not found")
            if user.id not in (assignment.client_id, assignment.contractor_id) and not user.is_admin:
                raise UnauthorizedError("You are not part of this task assignment")
        except ActionError as e:
            return fail(e.message)
        return ok("Task assignment found", assignment)

    def delete_task_assignment(self, assignment_id: int) -> dict:
        try:
            user = require_user()
            assignment = db.session.get(TaskAssignment, assignment_id)
            if assignment is None:
                raise NotFoundError("Task assignment not found")
            if assignment.client_id != user.id and not user.is_admin:
                raise UnauthorizedError("Only the client can remove this assignment")
            if assignment.invoice_items:
                raise ConflictError("Invoiced assignments cannot be deleted")

            task_id = assignment.task_id
            db.session.delete(assignment)
            db.session.flush()
            if TaskAssignment.query.filter_by(task_id=task_id).count() == 0:
                task = db.session.get(Task, task_id)
                if task is not None:
                    task.status = TaskStatus.OPEN
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            return fail(format_error(e))
        return ok("Task assignment deleted successfully")


def list_for_contractor(contractor_id: int) -> list[TaskAssignment]:
    return (TaskAssignment.query
            .options(joinedload(TaskAssignment.task), joinedload(TaskAssignment.client))
            .filter_by(contractor_id=contractor_id)
            .order_by(TaskAssignment.created_at.desc(), TaskAssignment.id.desc())
            .all())


def list_for_client(client_id: int) -> list[TaskAssignment]:
    return (TaskAssignment.query
            .options(joinedload(TaskAssignment.task), joinedload(TaskAssignment.contractor))
            .filter_by(client_id=client_id)
            .order_by(TaskAssignment.created_at.desc(), TaskAssignment.id.desc())
            .all())


def reviews_for_user(user_id: int) -> dict:
    """Reviews written about ``user_id``, split by role, newest first."""
    rows = (Review.query
            .filter(Review.reviewee_id == user_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .all())
    return {
        "as_contractor": [r for r in rows if r.type is ReviewType.CONTRACTOR_REVIEW],
        "as_client": [r for r in rows if r.type is ReviewType.CLIENT_REVIEW],
    }
