import hashlib
import os
import re
import sys

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from conftest import MemoryStorage, FakeClassifier, document_photo
from vault.errors import MetadataError, StorageError
from vault.models.audit_log import AuditLog
from vault.models.file import File
from vault.services import ingest as ingest_mod
from vault.services.classifier import Classification
from vault.services.ingest import generate_encrypted_key, generate_file_hash, ingest_file


def test_hashes():
    digest = generate_file_hash(b"abc")
    assert digest == hashlib.sha256(b"abc").hexdigest()
    assert generate_encrypted_key(digest, "k") == hashlib.sha256((digest + "k").encode()).hexdigest()


def test_ingest_pdf(app, user, clients):
    data = b"%PDF-1.4 board resolution"
    result = ingest_file(data, "Resolution.PDF", "application/pdf", user.id,
                         storage=clients["storage"], classifier=clients["classifier"],
                         ip_address="10.0.0.1", user_agent="pytest")

    f = result.file
    assert re.fullmatch(r"users/%d/files/\d+-[0-9a-f]{8}\.pdf" % user.id, f.storage_path)
    assert f.storage_path.split("-")[-1].startswith(generate_file_hash(data)[:8])
    assert f.display_name == "ACME Invoice March"
    assert f.ai_generated_name is True
    assert f.tags == ["invoice", "acme"]
    assert f.file_metadata["fileHash"] == generate_file_hash(data)
    assert f.encrypted_key == generate_encrypted_key(generate_file_hash(data), "test-encryption-key")
    assert "thumbnailPath" not in f.file_metadata

    stored = clients["storage"].objects[f.storage_path]
    assert stored["data"] == data
    assert stored["metadata"]["aiGeneratedName"] == "true"
    assert stored["metadata"]["tags"] == "invoice,acme"

    audit = AuditLog.query.filter_by(action="file_uploaded").one()
    assert audit.resource_id == f.id
    assert audit.ip_address == "10.0.0.1"

    summary = result.summary()
    assert summary["displayName"] == "ACME Invoice March"
    assert summary["shouldConvertToPdf"] is False


def test_ingest_image_crops_and_thumbnails(app, user, clients):
    data = document_photo()
    result = ingest_file(data, "photo.png", "image/png", user.id,
                         storage=clients["storage"], classifier=clients["classifier"])
    f = result.file
    objects = clients["storage"].objects

    assert result.should_convert_to_pdf is True
    assert result.converted_to_pdf is False
    assert objects[f.storage_path]["data"] != data
    assert f.file_metadata["originalSize"] == len(data)
    assert f.file_metadata["processedSize"] == f.file_size
    thumb_key = f.file_metadata["thumbnailPath"]
    assert thumb_key.endswith("_thumb.jpg")
    assert objects[thumb_key]["metadata"]["isThumbnail"] == "true"


def test_ingest_image_to_pdf(app, user, clients):
    result = ingest_file(document_photo(), "photo.jpeg", "image/jpeg", user.id,
                         storage=clients["storage"], classifier=clients["classifier"],
                         convert_to_pdf=True)
    f = result.file
    assert result.converted_to_pdf is True
    assert f.storage_path.endswith(".pdf")
    assert f.mime_type == "application/pdf"
    assert clients["storage"].objects[f.storage_path]["data"].startswith(b"%PDF")
    assert result.thumbnail_key is None


def test_low_confidence_keeps_ai_flag_off(app, user, clients):
    clf = FakeClassifier(Classification(type="Receipt", confidence=0.7, suggested_name="  ", tags=[]))
    result = ingest_file(b"abc", "lunch.receipt.txt", "text/plain", user.id,
                         storage=clients["storage"], classifier=clf)
    assert result.file.ai_generated_name is False
    # blank suggestion falls back to the filename stem
    assert result.file.display_name == "lunch"
    assert result.file.storage_path.endswith(".txt")


def test_storage_failure_persists_nothing(app, user):
    with pytest.raises(StorageError):
        ingest_file(b"abc", "a.pdf", "application/pdf", user.id,
                    storage=MemoryStorage(fail=True), classifier=FakeClassifier())
    assert File.query.count() == 0
    assert AuditLog.query.count() == 0


def test_metadata_failure_raises(app, user, clients, monkeypatch):
    def broken_audit(*args, **kwargs):
        raise RuntimeError("audit table missing")
    monkeypatch.setattr(ingest_mod, "write_audit", broken_audit)

    with pytest.raises(MetadataError):
        ingest_file(b"abc", "a.pdf", "application/pdf", user.id,
                    storage=clients["storage"], classifier=clients["classifier"])
    assert File.query.count() == 0
    # the object is left behind in storage
    assert len(clients["storage"].objects) == 1
