from ..extensions import db
from .base import OwnedMixin, TimestampMixin


class WhatsAppSession(db.Model, OwnedMixin, TimestampMixin):
    __tablename__ = "whatsapp_sessions"
    id = db.Column(db.Integer, primary_key=True)
    phone_number = db.Column(db.String(40), unique=True, nullable=False, index=True)
    # serialized vault.services.whatsapp.SessionData
    session_data = db.Column(db.JSON, nullable=False, default=dict)

    def __repr__(self):
        return f"<WhatsAppSession phone={self.phone_number} user_id={self.user_id}>"
