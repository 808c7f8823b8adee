# neigh/services/user_service.py
from __future__ import annotations

from ..errors import NotFoundError, ValidationError, fail, first_form_error, format_error, ok
from ..extensions import db
from ..forms import PaymentMethodForm
from ..models.user import User
from ..security import require_user
from .assignment_service import reviews_for_user


def update_user_payment_method(payment_method: str) -> dict:
    try:
        user = require_user()
        form = PaymentMethodForm(data={"payment_method": payment_method})
        if not form.validate():
            raise ValidationError(first_form_error(form.errors))
        user.payment_method = form.payment_method.data
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return fail(format_error(e))
    return ok("User updated successfully", user)


def get_user_ratings(user_id: int) -> dict:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    reviews = reviews_for_user(user.id)
    return {
        "user": user.to_summary(),
        "num_reviews": user.num_reviews or 0,
        "client_rating": str(user.client_rating),
        "contractor_rating": str(user.contractor_rating),
        "as_client": [r.to_dict() for r in reviews["as_client"]],
        "as_contractor": [r.to_dict() for r in reviews["as_contractor"]],
    }
