# neigh/blueprints/auth/forms.py
from __future__ import annotations

from flask_wtf import FlaskForm
from wtforms import BooleanField, PasswordField, SelectField, StringField
from wtforms.validators import DataRequired, Email, EqualTo, Length, Regexp, ValidationError

from ...models.user import User

# ---------------------
# Validators / Helpers
# ---------------------

PASSWORD_VALIDATORS = [
    DataRequired(),
    Length(min=8, message="Password must be at least 8 characters."),
    Regexp(r"^(?=.*[A-Za-z])(?=.*\d).+$", message="Use letters and numbers."),
]


def _email_exists(email: str) -> bool:
    return User.query.filter(User.email == email.lower().strip()).first() is not None


# -------------
# Auth Forms
# -------------

class RegisterForm(FlaskForm):
    name = StringField("Full name", validators=[DataRequired(), Length(min=3, max=120)])
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    role = SelectField(
        "Account type",
        choices=[("client", "Client"), ("contractor", "Contractor")],
        validators=[DataRequired()],
        default="client",
    )
    password = PasswordField("Password", validators=PASSWORD_VALIDATORS)
    confirm_password = PasswordField(
        "Confirm password",
        validators=[DataRequired(), EqualTo("password", message="Passwords don't match")],
    )

    def validate_email(self, field):
        if _email_exists(field.data):
            raise ValidationError("This email is already registered.")


class LoginForm(FlaskForm):
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    password = PasswordField("Password", validators=[DataRequired()])
    remember = BooleanField("Keep me signed in")
