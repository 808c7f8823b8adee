# neigh/forms.py
"""
Input schemas for the service layer.

These are plain ``wtforms.Form`` classes fed with ``data=`` dicts, so the
same validation runs whether the caller is a JSON route, a form post or a
test. Route-level forms that read the request directly live with their
blueprint (see ``blueprints/auth/forms.py``).
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation

from flask import current_app
from wtforms import Form, DecimalField, FieldList, FormField, IntegerField, StringField
from wtforms.utils import unset_value
from wtforms.validators import (
    DataRequired,
    Length,
    NumberRange,
    Optional as Opt,
    ValidationError,
)


class CurrencyField(DecimalField):
    """Decimal field that also coerces ``data=`` input (numbers or numeric strings)
    to two decimal places."""

    def process_data(self, value):
        if value is None or value == "":
            self.data = None
            return
        try:
            self.data = Decimal(str(value).replace(",", "").strip()).quantize(Decimal("0.01"))
        except (InvalidOperation, ValueError):
            self.data = None
            raise ValueError(self.gettext("Not a valid decimal value."))


class WholeNumberField(IntegerField):
    """Integer field that rejects fractional input (``1.5``, ``"4.7"``) instead
    of truncating it."""

    def process_data(self, value):
        if value is None or value is unset_value or value == "":
            self.data = None
            return
        try:
            number = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            number = None
        if number is None or not number.is_finite() or number != number.to_integral_value():
            self.data = None
            raise ValueError(f"{self.short_name.replace('_', ' ').capitalize()} must be a whole number")
        self.data = int(number)


class GreaterThan:
    """Like ``NumberRange(min=...)`` but exclusive; a missing value fails too."""

    def __init__(self, minimum, message=None):
        self.minimum = minimum
        self.message = message

    def __call__(self, form, field):
        if field.data is None or field.data <= self.minimum:
            raise ValidationError(self.message or f"Must be greater than {self.minimum}")


# ---------------------
# Invoices
# ---------------------

class InvoiceItemForm(Form):
    id = IntegerField()
    task_id = IntegerField()
    description = StringField(validators=[Opt(), Length(max=500)])
    price = CurrencyField(validators=[GreaterThan(0, message="Price must be greater than 0")])
    quantity = WholeNumberField(default=1, validators=[NumberRange(min=1, message="Quantity must be positive")])


class InvoiceForm(Form):
    client_id = IntegerField(validators=[DataRequired(message="Client is required")])
    contractor_id = IntegerField(validators=[DataRequired(message="Contractor is required")])
    items = FieldList(FormField(InvoiceItemForm))


class InvoiceUpdateForm(Form):
    id = IntegerField(validators=[DataRequired(message="Invoice is required")])
    items = FieldList(FormField(InvoiceItemForm))


# ---------------------
# Tasks & assignments
# ---------------------

class TaskForm(Form):
    name = StringField(validators=[DataRequired(message="Name is required"), Length(min=3, max=255)])
    description = StringField(validators=[
        DataRequired(message="Description is required"),
        Length(min=12, message="Description must be at least 12 characters"),
    ])
    price = CurrencyField(validators=[GreaterThan(0, message="Price must be greater than 0")])
    category_id = IntegerField()
    images = FieldList(StringField(validators=[Length(max=512)]))


class AssignmentForm(Form):
    task_id = IntegerField(validators=[DataRequired(message="Task is required")])
    contractor_id = IntegerField(validators=[DataRequired(message="Contractor is required")])
    client_id = IntegerField()


class ReviewForm(Form):
    rating = WholeNumberField(validators=[
        NumberRange(min=1, max=5, message="Rating must be between 1 and 5"),
    ])
    feedback = StringField(validators=[Opt(), Length(max=2000, message="Feedback is too long.")])


# ---------------------
# Payments & messages
# ---------------------

class PaymentMethodForm(Form):
    payment_method = StringField(validators=[DataRequired(message="Payment method is required")])

    def validate_payment_method(self, field):
        allowed = current_app.config.get("PAYMENT_METHODS", ["PAYPAL", "COD"])
        value = (field.data or "").strip().upper()
        if value not in allowed:
            raise ValidationError(f"Payment method must be one of: {', '.join(allowed)}")
        field.data = value


class MessageForm(Form):
    content = StringField(validators=[
        DataRequired(message="Message cannot be empty"),
        Length(max=5000, message="Message is too long."),
    ])
