from ..extensions import db
from .base import OwnedMixin, TimestampMixin

FOLDER_TYPES = ("custom", "founder")


class Folder(db.Model, OwnedMixin, TimestampMixin):
    __tablename__ = "folders"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    # null for root folders
    parent_id = db.Column(db.Integer, db.ForeignKey("folders.id"), nullable=True, index=True)
    folder_type = db.Column(db.String(20), nullable=False, default="custom")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "parent_id": self.parent_id,
            "folder_type": self.folder_type,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
