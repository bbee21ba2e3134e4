# vault/api/folders.py
from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user, login_required

from ..errors import ValidationError
from ..extensions import db
from ..services import vault
from ..utils.decorators import api_guard
from .forms import FolderForm, form_error_response, json_formdata

bp = Blueprint("folders", __name__)


@bp.get("/api/folders")
@login_required
@api_guard
def list_folders():
    folders = vault.list_folders(current_user.id)
    return jsonify({"folders": [f.to_dict() for f in folders]})


@bp.route("/api/folders", methods=["POST"])
@login_required
@api_guard
def create_folder():
    form = FolderForm(formdata=json_formdata())
    if not form.validate():
        return form_error_response(form)

    folder_type = form.folderType.data or "custom"
    try:
        folder = vault.create_folder(current_user.id, form.name.data,
                                     parent_id=form.parentId.data, folder_type=folder_type)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        vault.write_audit(
            current_user.id, "folder_created", "folder", resource_id=folder.id,
            details={"folderName": folder.name, "folderType": folder_type},
            ip_address=request.headers.get("X-Forwarded-For", request.remote_addr),
            user_agent=request.headers.get("User-Agent"),
        )
    except Exception:
        # the folder exists already; a lost audit row is logged, not surfaced
        db.session.rollback()
        current_app.logger.exception('Audit log for folder %s failed', folder.id)

    return jsonify({"success": True, "folder": folder.to_dict()})
