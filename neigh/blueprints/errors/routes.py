import logging

from flask import jsonify, request
from flask_wtf.csrf import CSRFError
from werkzeug.exceptions import HTTPException

from ...errors import ActionError, NotFoundError, UnauthorizedError
from ...extensions import db
from . import errors_bp

log = logging.getLogger(__name__)


def _error(message: str, code: int):
    return jsonify({"success": False, "message": message}), code


# 401 – Unauthorized
@errors_bp.app_errorhandler(401)
def err_401(e):
    return _error("Unauthorized", 401)


# 403 – Forbidden
@errors_bp.app_errorhandler(403)
def err_403(e):
    return _error("Forbidden", 403)


# 404 – Not Found
@errors_bp.app_errorhandler(404)
def err_404(e):
    return _error(f"Not found: {request.path}", 404)


# CSRF – typically treated as 400 Bad Request
@errors_bp.app_errorhandler(CSRFError)
def err_csrf(e):
    return _error(e.description or "CSRF token missing or invalid", 400)


# Service errors raised by read helpers
@errors_bp.app_errorhandler(ActionError)
def err_action(e: ActionError):
    if isinstance(e, UnauthorizedError):
        return _error(e.message, 401)
    if isinstance(e, NotFoundError):
        return _error(e.message, 404)
    return _error(e.message, 400)


# 500 – Internal Server Error
@errors_bp.app_errorhandler(500)
def err_500(e):
    # if a DB action caused this, rollback so app isn't stuck in bad transaction
    db.session.rollback()
    return _error("Something went wrong", 500)


# Fallback for uncaught HTTPException
@errors_bp.app_errorhandler(HTTPException)
def err_http(e: HTTPException):
    return _error(e.description or e.name, e.code or 500)


# Last-resort: any other Exception
@errors_bp.app_errorhandler(Exception)
def err_unexpected(e):
    db.session.rollback()
    log.exception("Unhandled error on %s: %s", request.path, e)
    # Don't leak internals
    return _error("Something went wrong", 500)
