"""Sign-up, sign-in and principal resolution.

Users live in our own ``users`` table; passwords are werkzeug hashes and the
browser session is managed by Flask-Login.
"""
from typing import Optional

from flask import current_app
from flask_login import current_user, login_user, logout_user
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..errors import IdentityError
from ..extensions import db
from ..models.user import User, USER_TYPES, generate_foundarv_id

MIN_PASSWORD_LENGTH = 8
WHATSAPP_EMAIL_DOMAIN = "whatsapp.foundarv.com"


def _unique_foundarv_id(attempts=5):
    for _ in range(attempts):
        fid = generate_foundarv_id()
        if not User.query.filter_by(foundarv_id=fid).first():
            return fid
    raise IdentityError("Could not allocate a Foundarv ID")


def sign_up(phone: str, email: str, password: str, user_type: str = "individual") -> User:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise IdentityError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if user_type not in USER_TYPES:
        raise IdentityError("Invalid user type")

    email = email.strip().lower()
    existing = User.query.filter(or_(User.phone == phone, User.email == email)).first()
    if existing:
        raise IdentityError("User already registered")

    user = User(phone=phone, email=email, user_type=user_type, foundarv_id=_unique_foundarv_id())
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        raise IdentityError("User already registered") from e
    current_app.logger.info('User %s signed up (%s)', user.id, user.foundarv_id)
    return user


def sign_in(password: str, phone: Optional[str] = None, email: Optional[str] = None, remember=False) -> User:
    if phone:
        user = User.query.filter_by(phone=phone).first()
    elif email:
        user = User.query.filter_by(email=email.strip().lower()).first()
    else:
        raise IdentityError("Phone or email is required")

    if not user or not user.check_password(password):
        raise IdentityError("Invalid login credentials")
    login_user(user, remember=remember)
    return user


def sign_out():
    logout_user()


def current_principal() -> Optional[User]:
    if current_user and current_user.is_authenticated:
        return current_user._get_current_object()
    return None


def get_user_by_foundarv_id(foundarv_id: str) -> Optional[User]:
    if not foundarv_id:
        return None
    return User.query.filter_by(foundarv_id=foundarv_id.strip().upper()).first()


def get_or_create_user_for_phone(phone: str) -> User:
    """User bound to a phone number, synthesized with a placeholder email if needed."""
    user = User.query.filter_by(phone=phone).first()
    if user:
        return user
    user = User(
        phone=phone,
        email=f"{phone}@{WHATSAPP_EMAIL_DOMAIN}",
        user_type="individual",
        foundarv_id=_unique_foundarv_id(),
    )
    db.session.add(user)
    db.session.commit()
    current_app.logger.info('Created user %s for WhatsApp number %s', user.id, phone)
    return user


def _reset_serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt='password-reset')


def _password_fingerprint(user):
    # ties a token to the current password so it stops working once used
    return (user.password_hash or "")[-12:]


def make_reset_token(user: User) -> str:
    return _reset_serializer().dumps({"uid": user.id, "pw": _password_fingerprint(user)})


def request_password_reset(email: str, mailer) -> bool:
    """Mail a reset link if the address is known. Returns whether a mail was attempted."""
    user = User.query.filter_by(email=(email or "").strip().lower()).first()
    if not user:
        return False
    token = make_reset_token(user)
    base = current_app.config.get('PUBLIC_BASE_URL', '').rstrip('/')
    link = f"{base}/reset-password?token={token}"
    html = (
        "<p>We received a request to reset your Foundarv Vault password.</p>"
        f'<p><a href="{link}">Choose a new password</a></p>'
        "<p>If you did not ask for this, you can ignore this email.</p>"
    )
    mailer.send(user.email, "Reset your Foundarv Vault password", html)
    return True


def reset_password(token: str, new_password: str) -> User:
    if len(new_password or "") < MIN_PASSWORD_LENGTH:
        raise IdentityError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    max_age = current_app.config.get('PASSWORD_RESET_MAX_AGE', 3600)
    try:
        data = _reset_serializer().loads(token, max_age=max_age)
    except SignatureExpired as e:
        raise IdentityError("Reset link has expired") from e
    except BadSignature as e:
        raise IdentityError("Invalid reset link") from e

    user = db.session.get(User, data.get("uid"))
    if not user or data.get("pw") != _password_fingerprint(user):
        raise IdentityError("Invalid reset link")
    user.set_password(new_password)
    db.session.commit()
    return user
