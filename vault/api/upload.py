# vault/api/upload.py
import mimetypes
from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from ..errors import MetadataError, StorageError
from ..extensions import get_clients
from ..services import vault
from ..services.ingest import ingest_file
from ..utils.decorators import api_guard
from .forms import UploadForm, form_error_response

bp = Blueprint("upload", __name__)


@bp.route("/api/upload", methods=["POST"])
@login_required
@api_guard
def upload_file():
    form = UploadForm()
    if not form.validate():
        return form_error_response(form)

    folder_id = form.folderId.data
    if folder_id is not None and not vault.get_folder(current_user.id, folder_id):
        return jsonify({"error": "Folder not found"}), 400

    f = form.file.data
    data = f.read()
    mime_type = f.mimetype
    if not mime_type or mime_type == "application/octet-stream":
        mime_type = mimetypes.guess_type(f.filename)[0] or "application/octet-stream"

    clients = get_clients()
    try:
        result = ingest_file(
            data,
            f.filename,
            mime_type,
            current_user.id,
            storage=clients.storage,
            classifier=clients.classifier,
            folder_id=folder_id,
            convert_to_pdf=bool(form.convertToPdf.data),
            ip_address=request.headers.get("X-Forwarded-For", request.remote_addr),
            user_agent=request.headers.get("User-Agent"),
        )
    except StorageError as e:
        return jsonify({"error": "Failed to upload file", "details": str(e)}), 500
    except MetadataError:
        return jsonify({"error": "Failed to save file metadata"}), 500

    return jsonify({"success": True, "file": result.summary()})


@bp.get("/api/upload")
@login_required
@api_guard
def list_files():
    folder_id = request.args.get("folderId", type=int)
    search = (request.args.get("search") or "").strip() or None
    limit = request.args.get("limit", default=vault.DEFAULT_PAGE_SIZE, type=int)
    offset = request.args.get("offset", default=0, type=int)

    files = vault.list_files(current_user.id, folder_id=folder_id, search=search, limit=limit, offset=offset)
    return jsonify({"files": [f.to_dict() for f in files]})
