# vault/api/storage.py
from io import BytesIO
from flask import Blueprint, abort, send_file

from ..errors import StorageError
from ..extensions import get_clients
from ..services.storage import LocalStorage

bp = Blueprint("storage", __name__)


@bp.get("/api/storage/local/<token>")
def serve_local(token):
    """Download an object of the local backend through a link made by LocalStorage.sign."""
    storage = get_clients().storage
    if not isinstance(storage, LocalStorage):
        abort(404)
    try:
        key = storage.resolve_token(token)
        data = storage.download(key)
    except StorageError:
        abort(404)
    return send_file(BytesIO(data), mimetype=storage.content_type(key),
                     download_name=key.rsplit("/", 1)[-1])
