from ..extensions import db
from .base import OwnedMixin, TimestampMixin

class File(db.Model, OwnedMixin, TimestampMixin):
    __tablename__ = "files"

    id = db.Column(db.Integer, primary_key=True)
    folder_id = db.Column(db.Integer, db.ForeignKey("folders.id"), nullable=True, index=True)

    original_name = db.Column(db.String(255), nullable=False)
    display_name = db.Column(db.String(255), nullable=False, index=True)
    file_type = db.Column(db.String(120))  # "Invoice", "Contract", ...
    file_size = db.Column(db.Integer)
    mime_type = db.Column(db.String(128))
    storage_path = db.Column(db.String(512), nullable=False, unique=True)
    encrypted_key = db.Column(db.String(64))
    ai_generated_name = db.Column(db.Boolean, nullable=False, default=False)
    tags = db.Column(db.JSON)  # ["invoice", "2024"]
    file_metadata = db.Column(db.JSON)  # {"fileHash": "...", "confidence": 0.9, ...}

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "folder_id": self.folder_id,
            "original_name": self.original_name,
            "display_name": self.display_name,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
            "storage_path": self.storage_path,
            "ai_generated_name": self.ai_generated_name,
            "tags": self.tags or [],
            "metadata": self.file_metadata or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<File id={self.id} display_name={self.display_name!r}>"
