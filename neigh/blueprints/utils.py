# neigh/blueprints/utils.py
from datetime import date, datetime
from decimal import Decimal

from flask import current_app, jsonify, request

from ..services.assignment_service import AssignmentWorkflow


def serialize(value):
    """Turn service results (models, pages, Decimals) into JSON-safe values."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if hasattr(value, "items") and hasattr(value, "pages") and hasattr(value, "page"):
        return {
            "items": [serialize(v) for v in value.items],
            "page": value.page,
            "pages": value.pages,
            "total": value.total,
        }
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(v) for v in value]
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def respond(result: dict, status: int | None = None):
    body = dict(result)
    if "data" in body:
        body["data"] = serialize(body["data"])
    if status is None:
        if result.get("success"):
            status = 200
        elif result.get("message") == "Unauthorized":
            status = 401
        else:
            status = 400
    return jsonify(body), status


def payload() -> dict:
    return request.get_json(silent=True) or request.form.to_dict()


def page_arg() -> int:
    return max(request.args.get("page", 1, type=int) or 1, 1)


def notifier():
    return current_app.extensions["neigh.notifier"]


def paypal_gateway():
    # None -> services build a PayPalClient from config
    return current_app.extensions.get("neigh.paypal")


def workflow() -> AssignmentWorkflow:
    return AssignmentWorkflow(notifier())
