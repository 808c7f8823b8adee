# neigh/blueprints/auth/routes.py
import logging

from flask import jsonify
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from ...errors import fail, first_form_error, ok
from ...extensions import db
from ...models.user import User
from ...services.cart_service import clear_session_cart
from ...services.user_service import get_user_ratings, update_user_payment_method
from ..utils import payload, respond
from . import auth_bp
from .forms import LoginForm, RegisterForm

log = logging.getLogger(__name__)


@auth_bp.route("/csrf", methods=["GET"])
def csrf_token():
    return jsonify({"csrf_token": generate_csrf()})


# -----------------
# Register
# -----------------

@auth_bp.route("/register", methods=["POST"])
def register():
    form = RegisterForm()
    if not form.validate_on_submit():
        return respond(fail(first_form_error(form.errors) or "Invalid data"))

    user = User(
        name=form.name.data.strip(),
        email=form.email.data.strip().lower(),
        role=form.role.data,
    )
    user.set_password(form.password.data)
    db.session.add(user)
    db.session.commit()
    login_user(user)
    log.info("User %s registered as %s", user.id, user.role)
    return respond(ok("User registered successfully", user), 201)


# -----------------
# Login / Logout
# -----------------

@auth_bp.route("/login", methods=["POST"])
def login():
    form = LoginForm()
    if not form.validate_on_submit():
        return respond(fail(first_form_error(form.errors) or "Invalid data"))

    user = User.query.filter_by(email=form.email.data.strip().lower()).first()
    if user is None or not user.check_password(form.password.data):
        return respond(fail("Invalid email or password"), 401)

    login_user(user, remember=bool(form.remember.data))
    return respond(ok("Signed in successfully", user))


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    clear_session_cart()
    logout_user()
    return respond(ok("Signed out successfully"))


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return respond(ok("Current user", current_user._get_current_object()))


# -----------------
# Profile
# -----------------

@auth_bp.route("/me/payment-method", methods=["PUT", "POST"])
@login_required
def payment_method():
    return respond(update_user_payment_method(payload().get("payment_method")))


@auth_bp.route("/users/<int:user_id>/ratings", methods=["GET"])
def user_ratings(user_id):
    return respond(ok("User ratings", get_user_ratings(user_id)))
