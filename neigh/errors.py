# neigh/errors.py
"""
Error kinds raised inside the service layer.

Services catch these at their boundary and turn them into
``{"success": False, "message": ...}`` results; a few read paths
(e.g. ``update_payment_to_paid``) let them propagate to the caller.
"""
from __future__ import annotations

import logging
import re

from sqlalchemy.exc import IntegrityError

log = logging.getLogger(__name__)


class ActionError(Exception):
    """Base class for user-facing failures."""

    default_message = "Something went wrong"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ActionError):
    default_message = "Invalid data"


class UnauthorizedError(ActionError):
    default_message = "Unauthorized"


class NotFoundError(ActionError):
    default_message = "Not found"


class ConflictError(ActionError):
    default_message = "Conflict"


# sqlite: "UNIQUE constraint failed: invoice.invoice_number"
# postgres: 'duplicate key value violates unique constraint ... Key (invoice_number)=...'
_UNIQUE_PATTERNS = (
    re.compile(r"UNIQUE constraint failed: [\w]+\.(\w+)"),
    re.compile(r"Key \((\w+)\)="),
    re.compile(r"Duplicate entry .* for key '(?:[\w]+\.)?(\w+)'"),
)


def _unique_field(exc: IntegrityError) -> str | None:
    text = str(getattr(exc, "orig", exc))
    for pattern in _UNIQUE_PATTERNS:
        m = pattern.search(text)
        if m:
            return m.group(1)
    return None


def first_form_error(errors) -> str | None:
    """Walk WTForms ``form.errors`` (nested for FieldList/FormField) and
    return the first message found."""
    if isinstance(errors, str):
        return errors
    if isinstance(errors, dict):
        for value in errors.values():
            msg = first_form_error(value)
            if msg:
                return msg
    elif isinstance(errors, (list, tuple)):
        for value in errors:
            msg = first_form_error(value)
            if msg:
                return msg
    return None


def format_error(error: Exception) -> str:
    if isinstance(error, ActionError):
        return error.message
    if isinstance(error, IntegrityError):
        field = _unique_field(error)
        if field:
            return f"{field.replace('_', ' ').capitalize()} already exists"
        return "Record conflicts with existing data"
    log.exception("Unexpected error: %s", error)
    return "Something went wrong"


def ok(message: str, data=None) -> dict:
    result = {"success": True, "message": message}
    if data is not None:
        result["data"] = data
    return result


def fail(message: str) -> dict:
    return {"success": False, "message": message}
