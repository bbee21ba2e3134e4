# vault/api/auth.py
from flask import Blueprint, jsonify, current_app
from flask_login import login_required

from ..errors import IdentityError
from ..extensions import get_clients
from ..services import identity
from ..utils.decorators import api_guard
from .forms import (
    LoginForm,
    PasswordResetForm,
    PasswordResetRequestForm,
    SignupForm,
    form_error_response,
    json_formdata,
)

bp = Blueprint("auth", __name__)


@bp.route("/api/auth/login", methods=["POST"])
@api_guard
def login():
    form = LoginForm(formdata=json_formdata())
    if not form.validate():
        return form_error_response(form)
    try:
        user = identity.sign_in(form.password.data, phone=form.phone.data or None, email=form.email.data or None)
    except IdentityError as e:
        return jsonify({"error": str(e) or "Authentication failed"}), 401
    return jsonify({"success": True, "user": user.to_dict()})


@bp.route("/api/auth/signup", methods=["POST"])
@api_guard
def signup():
    # all field checks (password length included) happen before the provider is called
    form = SignupForm(formdata=json_formdata())
    if not form.validate():
        return form_error_response(form)
    try:
        user = identity.sign_up(form.phone.data, form.email.data, form.password.data,
                                user_type=form.userType.data or "individual")
    except IdentityError as e:
        return jsonify({"error": str(e) or "Signup failed"}), 400
    return jsonify({
        "success": True,
        "user": user.to_dict(),
        "message": "Account created successfully. You can now sign in.",
    })


@bp.route("/api/auth/logout", methods=["POST"])
@login_required
@api_guard
def logout():
    identity.sign_out()
    return jsonify({"success": True})


@bp.get("/api/auth/me")
@login_required
@api_guard
def me():
    return jsonify({"user": identity.current_principal().to_dict()})


@bp.route("/api/auth/reset-password", methods=["POST"])
@api_guard
def reset_password_request():
    form = PasswordResetRequestForm(formdata=json_formdata())
    if not form.validate():
        return form_error_response(form)
    try:
        identity.request_password_reset(form.email.data, get_clients().mailer)
    except Exception:
        # same answer either way so addresses cannot be probed
        current_app.logger.exception('Password reset mail failed')
    return jsonify({"success": True})


@bp.route("/api/auth/reset-password/confirm", methods=["POST"])
@api_guard
def reset_password_confirm():
    form = PasswordResetForm(formdata=json_formdata())
    if not form.validate():
        return form_error_response(form)
    try:
        identity.reset_password(form.token.data, form.password.data)
    except IdentityError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"success": True})
