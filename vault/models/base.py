from ..extensions import db

class OwnedMixin:
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

class TimestampMixin:
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, server_default=db.func.now(), onupdate=db.func.now())
