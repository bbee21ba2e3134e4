import secrets
from ..extensions import db
from .base import TimestampMixin

SHARE_PERMISSIONS = ("view", "upload", "full")


class Share(db.Model, TimestampMixin):
    __tablename__ = "shares"
    id = db.Column(db.Integer, primary_key=True)
    file_id = db.Column(db.Integer, db.ForeignKey("files.id"), nullable=True)
    folder_id = db.Column(db.Integer, db.ForeignKey("folders.id"), nullable=True)
    shared_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    shared_with_foundarv_id = db.Column(db.String(16))
    shared_with_email = db.Column(db.String(255))
    permission = db.Column(db.String(10), nullable=False, default="view")
    expires_at = db.Column(db.DateTime)
    access_token = db.Column(db.String(64), unique=True, nullable=False,
                             default=lambda: secrets.token_urlsafe(32))
