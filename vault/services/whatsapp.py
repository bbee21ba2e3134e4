"""WhatsApp Business (Graph API) client, webhook event parsing and session data.

Inbound webhook payloads are parsed into a small tagged union so the
dispatcher can match on message kind instead of poking at nested dicts.
"""
import hmac
from dataclasses import dataclass, field
from typing import List, Optional, Union

import requests
from flask import current_app

from ..errors import WhatsAppError
from ..extensions import db
from ..models.whatsapp_session import WhatsAppSession
from .identity import get_or_create_user_for_phone

GRAPH_URL = "https://graph.facebook.com"
WEBHOOK_OBJECT = "whatsapp_business_account"


# ---------- inbound events ----------

@dataclass
class TextMessage:
    sender: str
    message_id: str
    body: str


@dataclass
class ImageMessage:
    sender: str
    message_id: str
    media_id: str
    mime_type: Optional[str] = None
    caption: Optional[str] = None


@dataclass
class DocumentMessage:
    sender: str
    message_id: str
    media_id: str
    filename: Optional[str] = None
    mime_type: Optional[str] = None


@dataclass
class UnsupportedMessage:
    sender: str
    message_id: str
    kind: str


@dataclass
class StatusUpdate:
    message_id: str
    status: str
    recipient: Optional[str] = None


InboundMessage = Union[TextMessage, ImageMessage, DocumentMessage, UnsupportedMessage]
WebhookEvent = Union[TextMessage, ImageMessage, DocumentMessage, UnsupportedMessage, StatusUpdate]


def parse_message(raw: dict) -> InboundMessage:
    sender = str(raw.get("from", ""))
    message_id = str(raw.get("id", ""))
    kind = raw.get("type")
    if kind == "text":
        return TextMessage(sender, message_id, (raw.get("text") or {}).get("body", "") or "")
    if kind == "image" and (raw.get("image") or {}).get("id"):
        img = raw["image"]
        return ImageMessage(sender, message_id, img["id"], img.get("mime_type"), img.get("caption"))
    if kind == "document" and (raw.get("document") or {}).get("id"):
        doc = raw["document"]
        return DocumentMessage(sender, message_id, doc["id"], doc.get("filename"), doc.get("mime_type"))
    return UnsupportedMessage(sender, message_id, str(kind))


def parse_webhook(payload: dict) -> List[WebhookEvent]:
    """Flatten entry[].changes[] of a ``messages`` webhook into events, in order."""
    events = []
    for entry in payload.get("entry") or []:
        for change in entry.get("changes") or []:
            if change.get("field") != "messages":
                continue
            value = change.get("value") or {}
            for raw in value.get("messages") or []:
                if isinstance(raw, dict):
                    events.append(parse_message(raw))
            for st in value.get("statuses") or []:
                if isinstance(st, dict):
                    events.append(StatusUpdate(str(st.get("id", "")), str(st.get("status", "")),
                                               st.get("recipient_id")))
    return events


def verify_webhook(mode, token, verify_token) -> bool:
    if not verify_token or mode != "subscribe" or token is None:
        return False
    return hmac.compare_digest(str(token).encode("utf-8"), str(verify_token).encode("utf-8"))


# ---------- session ----------

@dataclass
class SessionData:
    last_query: Optional[str] = None
    last_results: List[int] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data) -> "SessionData":
        data = data or {}
        results = [int(x) for x in data.get("last_results") or [] if str(x).isdigit()]
        return cls(last_query=data.get("last_query"), last_results=results)

    def to_dict(self):
        return {"last_query": self.last_query, "last_results": list(self.last_results)}


def get_session(phone_number) -> Optional[WhatsAppSession]:
    return WhatsAppSession.query.filter_by(phone_number=phone_number).first()


def get_or_create_session(phone_number) -> WhatsAppSession:
    session = get_session(phone_number)
    if session:
        return session
    user = get_or_create_user_for_phone(phone_number)
    session = WhatsAppSession(phone_number=phone_number, user_id=user.id, session_data=SessionData().to_dict())
    db.session.add(session)
    db.session.commit()
    return session


def load_session_data(session: WhatsAppSession) -> SessionData:
    return SessionData.from_dict(session.session_data)


def save_session_data(session: WhatsAppSession, data: SessionData):
    # reassign so the JSON column is flagged dirty
    session.session_data = data.to_dict()
    db.session.commit()


# ---------- outbound ----------

class WhatsAppClient:
    def __init__(self, access_token, phone_number_id, api_version="v18.0", timeout=20, session=None):
        self.access_token = access_token
        self.phone_number_id = phone_number_id
        self.api_version = api_version
        self.timeout = timeout
        self.http = session or requests

    @classmethod
    def from_config(cls, config):
        return cls(
            access_token=config.get('WHATSAPP_ACCESS_TOKEN'),
            phone_number_id=config.get('WHATSAPP_PHONE_NUMBER_ID'),
            api_version=config.get('WHATSAPP_API_VERSION', 'v18.0'),
        )

    def _headers(self):
        return {'Authorization': f'Bearer {self.access_token}'}

    def send_message(self, to: str, kind: str, content: dict) -> Optional[str]:
        """POST one message; returns the WhatsApp message id."""
        url = f"{GRAPH_URL}/{self.api_version}/{self.phone_number_id}/messages"
        body = {"messaging_product": "whatsapp", "to": to, "type": kind, kind: content}
        try:
            r = self.http.post(url, headers=self._headers(), json=body, timeout=self.timeout)
            data = r.json() if r.content else {}
        except (requests.exceptions.RequestException, ValueError) as e:
            current_app.logger.exception('Error sending WhatsApp message to %s', to)
            raise WhatsAppError(str(e)) from e
        if r.status_code >= 400:
            msg = (data.get("error") or {}).get("message") or 'Failed to send WhatsApp message'
            current_app.logger.error('WhatsApp send failed (%s): %s', r.status_code, msg)
            raise WhatsAppError(msg)
        messages = data.get("messages") or [{}]
        return messages[0].get("id")

    def send_text(self, to, body):
        return self.send_message(to, "text", {"body": body})

    def send_image(self, to, link, caption=None):
        content = {"link": link}
        if caption:
            content["caption"] = caption
        return self.send_message(to, "image", content)

    def send_document(self, to, link, filename, caption=None):
        content = {"link": link, "filename": filename}
        if caption:
            content["caption"] = caption
        return self.send_message(to, "document", content)

    def get_media_url(self, media_id) -> str:
        url = f"{GRAPH_URL}/{self.api_version}/{media_id}"
        try:
            r = self.http.get(url, headers=self._headers(), timeout=self.timeout)
            r.raise_for_status()
            media_url = r.json().get("url")
        except (requests.exceptions.RequestException, ValueError) as e:
            raise WhatsAppError(f"Could not resolve media {media_id}: {e}") from e
        if not media_url:
            raise WhatsAppError(f"No URL for media {media_id}")
        return media_url

    def download_media(self, media_url) -> bytes:
        try:
            r = self.http.get(media_url, headers=self._headers(), timeout=60)
            r.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise WhatsAppError(f"Media download failed: {e}") from e
        return r.content
