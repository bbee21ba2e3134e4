import secrets
import string
from ..extensions import db
from flask_login import UserMixin
from .base import TimestampMixin
from werkzeug.security import generate_password_hash, check_password_hash

FOUNDARV_ID_ALPHABET = string.ascii_uppercase + string.digits
USER_TYPES = ("individual", "founder")


def generate_foundarv_id():
    return "FV" + "".join(secrets.choice(FOUNDARV_ID_ALPHABET) for _ in range(8))


class User(db.Model, UserMixin, TimestampMixin):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    phone = db.Column(db.String(40), unique=True, nullable=True, index=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    # users created from a WhatsApp conversation have no password yet
    password_hash = db.Column(db.String(255), nullable=True)
    foundarv_id = db.Column(db.String(16), unique=True, nullable=False, default=generate_foundarv_id)
    user_type = db.Column(db.String(20), nullable=False, default="individual")

    def set_password(self, raw):
        self.password_hash = generate_password_hash(raw)

    def check_password(self, raw):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, raw)

    def to_dict(self):
        return {
            "id": self.id,
            "phone": self.phone,
            "email": self.email,
            "foundarvId": self.foundarv_id,
            "userType": self.user_type,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User id={self.id} foundarv_id={self.foundarv_id}>"
