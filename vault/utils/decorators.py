from functools import wraps
from flask import current_app, jsonify
from werkzeug.exceptions import HTTPException

from ..extensions import db


def api_guard(view):
    """Turn any unexpected exception escaping a JSON view into a 500 body."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        try:
            return view(*args, **kwargs)
        except HTTPException:
            raise
        except Exception:
            current_app.logger.exception('Unhandled error in %s', view.__name__)
            db.session.rollback()
            return jsonify({"error": "Internal server error"}), 500
    return wrapped
