"""Owner-scoped folder/file queries and the audit trail."""
import json
from typing import List, Optional

from sqlalchemy import String, cast, or_

from ..errors import ValidationError
from ..extensions import db
from ..models.audit_log import AuditLog
from ..models.file import File
from ..models.folder import Folder, FOLDER_TYPES

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


def _like_escape(s: str) -> str:
    return s.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def list_folders(user_id) -> List[Folder]:
    return Folder.query.filter_by(user_id=user_id).order_by(Folder.created_at.asc(), Folder.id.asc()).all()


def get_folder(user_id, folder_id) -> Optional[Folder]:
    if folder_id is None:
        return None
    return Folder.query.filter_by(user_id=user_id, id=folder_id).first()


def create_folder(user_id, name: str, parent_id=None, folder_type: str = "custom") -> Folder:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Folder name is required")
    if folder_type not in FOLDER_TYPES:
        raise ValidationError("Invalid folder type")
    # a new folder can only hang below an existing folder of the same owner,
    # so the tree can never gain a cycle
    if parent_id is not None and not get_folder(user_id, parent_id):
        raise ValidationError("Parent folder not found")

    folder = Folder(user_id=user_id, name=name, parent_id=parent_id, folder_type=folder_type)
    db.session.add(folder)
    db.session.commit()
    return folder


def _search_filter(query: str):
    like = f"%{_like_escape(query)}%"
    # tags is a JSON array; an exact element shows up as its JSON-encoded string
    tag_like = f"%{_like_escape(json.dumps(query))}%"
    return or_(
        File.display_name.ilike(like, escape="\\"),
        cast(File.tags, String).like(tag_like, escape="\\"),
    )


def list_files(user_id, folder_id=None, search: Optional[str] = None,
               limit: int = DEFAULT_PAGE_SIZE, offset: int = 0) -> List[File]:
    limit = max(1, min(int(limit), MAX_PAGE_SIZE))
    offset = max(0, int(offset))

    q = File.query.filter(File.user_id == user_id)
    if folder_id is not None:
        q = q.filter(File.folder_id == folder_id)
    if search:
        q = q.filter(_search_filter(search))
    return q.order_by(File.created_at.desc(), File.id.desc()).offset(offset).limit(limit).all()


def search_files(user_id, query: str, limit: int = 5) -> List[File]:
    return list_files(user_id, search=query, limit=limit)


def recent_files(user_id, limit: int = 10) -> List[File]:
    return list_files(user_id, limit=limit)


def count_files(user_id) -> int:
    return File.query.filter_by(user_id=user_id).count()


def get_file(user_id, file_id) -> Optional[File]:
    return File.query.filter_by(user_id=user_id, id=file_id).first()


def find_file_by_name(user_id, name: str) -> Optional[File]:
    """Most recent file whose display name contains ``name`` (case-insensitive)."""
    if not name:
        return None
    like = f"%{_like_escape(name)}%"
    return (
        File.query.filter(File.user_id == user_id, File.display_name.ilike(like, escape="\\"))
        .order_by(File.created_at.desc(), File.id.desc())
        .first()
    )


def write_audit(user_id, action, resource_type, resource_id=None, details=None,
                ip_address=None, user_agent=None, commit=True) -> AuditLog:
    entry = AuditLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details or {},
        ip_address=ip_address,
        user_agent=(user_agent or "")[:512] or None,
    )
    db.session.add(entry)
    if commit:
        db.session.commit()
    return entry
