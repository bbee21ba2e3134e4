# vault/api/whatsapp.py
from flask import Blueprint, Response, current_app, jsonify, request

from ..extensions import rq
from ..jobs.whatsapp import process_webhook
from ..services.whatsapp import WEBHOOK_OBJECT, verify_webhook
from ..utils.decorators import api_guard

bp = Blueprint("whatsapp", __name__)


@bp.get("/api/whatsapp/webhook")
def verify():
    mode = request.args.get("hub.mode")
    token = request.args.get("hub.verify_token")
    challenge = request.args.get("hub.challenge", "")
    if verify_webhook(mode, token, current_app.config.get("WHATSAPP_VERIFY_TOKEN")):
        return Response(challenge, status=200, mimetype="text/plain")
    return Response("Forbidden", status=403, mimetype="text/plain")


@bp.route("/api/whatsapp/webhook", methods=["POST"])
@api_guard
def receive():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify({"error": "Malformed body"}), 400
    if body.get("object") != WEBHOOK_OBJECT:
        return jsonify({"error": "Invalid webhook object"}), 400

    # answered right away; replies go out from the job (inline without Redis)
    rq.enqueue(process_webhook, body, job_timeout=120)
    current_app.logger.info('WhatsApp webhook accepted (%d entries)', len(body.get("entry") or []))
    return jsonify({"status": "ok"})
