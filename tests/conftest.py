import os
import sys
from io import BytesIO

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from PIL import Image, ImageDraw

from config import Config
from vault import create_app
from vault.errors import StorageError, WhatsAppError
from vault.extensions import db
from vault.models.user import User
from vault.services.classifier import Classification
from vault.services.storage import BaseStorage, UploadResult


class VaultTestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    REDIS_URL = None
    WTF_CSRF_ENABLED = False
    OPENAI_API_KEY = None
    OPENAI_MAX_ATTEMPTS = 1
    ENCRYPTION_KEY = 'test-encryption-key'
    WHATSAPP_VERIFY_TOKEN = 'verify-me'
    SENDGRID_API_KEY = None
    PUBLIC_BASE_URL = 'http://vault.test'


class MemoryStorage(BaseStorage):
    backend = "memory"

    def __init__(self, fail=False):
        self.objects = {}
        self.fail = fail

    def upload(self, data, key, content_type, metadata=None):
        if self.fail:
            raise StorageError("bucket unavailable")
        self.objects[key] = {"data": data, "content_type": content_type, "metadata": dict(metadata or {})}
        return UploadResult(key=key, url=f"memory://{key}")

    def download(self, key):
        try:
            return self.objects[key]["data"]
        except KeyError:
            raise StorageError(f"no such key {key}")

    def delete(self, key):
        self.objects.pop(key, None)

    def sign(self, key, expires_in=3600, operation="get_object"):
        return f"https://files.test/{key}?expires={expires_in}"

    def list_user_files(self, user_id, prefix=None):
        prefix = prefix or f"users/{user_id}/"
        return [{"key": k, "size": len(v["data"])} for k, v in self.objects.items() if k.startswith(prefix)]


class FakeClassifier:
    def __init__(self, result=None):
        self.result = result
        self.calls = []

    def classify(self, data, mime_type, filename):
        self.calls.append((mime_type, filename, len(data)))
        if self.result is not None:
            return self.result
        return Classification(type="Invoice", confidence=0.92,
                              suggested_name="ACME Invoice March", tags=["invoice", "acme"])


class FakeWhatsApp:
    def __init__(self, fail_media=False):
        self.sent = []
        self.fail_media = fail_media

    def send_text(self, to, body):
        self.sent.append(("text", to, body))
        return "wamid.text"

    def send_image(self, to, link, caption=None):
        self.sent.append(("image", to, {"link": link, "caption": caption}))
        return "wamid.image"

    def send_document(self, to, link, filename, caption=None):
        self.sent.append(("document", to, {"link": link, "filename": filename, "caption": caption}))
        return "wamid.document"

    def get_media_url(self, media_id):
        if self.fail_media:
            raise WhatsAppError("media lookup failed")
        return f"https://media.test/{media_id}"

    def download_media(self, media_url):
        return b"media-bytes"

    def texts(self):
        return [body for kind, _to, body in self.sent if kind == "text"]


class FakeMailer:
    def __init__(self):
        self.sent = []

    def send(self, to_email, subject, html):
        self.sent.append((to_email, subject, html))
        return 202, {}


@pytest.fixture
def clients():
    return {
        "storage": MemoryStorage(),
        "classifier": FakeClassifier(),
        "whatsapp": FakeWhatsApp(),
        "mailer": FakeMailer(),
    }


@pytest.fixture
def app(clients):
    app = create_app(VaultTestConfig, clients=clients)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(phone="+15550001111", email="ada@example.com", password="correct horse"):
    user = User(phone=phone, email=email)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def user(app):
    return make_user()


@pytest.fixture
def logged_in(client, user):
    r = client.post('/api/auth/login', json={"email": user.email, "password": "correct horse"})
    assert r.status_code == 200
    return user


def document_photo(fmt="PNG", size=(400, 300), box=(100, 80, 300, 220)):
    """Dark background with a white sheet of paper in the middle."""
    img = Image.new("RGB", size, (0, 0, 0))
    ImageDraw.Draw(img).rectangle(box, fill=(255, 255, 255))
    out = BytesIO()
    img.save(out, format=fmt)
    return out.getvalue()
