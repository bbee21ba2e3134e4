import json
import os
import sys

import pytest
import requests

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from vault.services import classifier as classifier_mod
from vault.services.classifier import (
    DocumentClassifier,
    fallback_classification,
    filename_stem,
    parse_classification_text,
    parse_response_content,
    parse_structured,
)


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text='', headers=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text or (json.dumps(payload) if payload is not None else '')
        self.headers = headers or {}

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _completion(content):
    return FakeResponse(payload={"choices": [{"message": {"content": content}}]})


def test_filename_stem():
    assert filename_stem("invoice.march.pdf") == "invoice"
    assert filename_stem(".bashrc") == ".bashrc"
    assert filename_stem("") == "Untitled"


def test_fallback_classification():
    c = fallback_classification("scan_001.jpg")
    assert c.type == "Unknown Document"
    assert c.confidence == 0.1
    assert c.suggested_name == "scan_001"
    assert c.tags == []
    assert c.ai_generated_name is False


def test_ai_generated_name_threshold():
    c = fallback_classification("x.pdf")
    c.confidence = 0.7
    assert c.ai_generated_name is False
    c.confidence = 0.71
    assert c.ai_generated_name is True


def test_parse_structured_fills_missing_fields():
    c = parse_structured(json.dumps({"document_type": " ", "tags": ["a", "", 3, " b "]}), "contract.pdf")
    assert c.type == "Unknown Document"
    assert c.confidence == 0.5
    assert c.suggested_name == "contract"
    assert c.tags == ["a", "b"]


def test_parse_structured_clamps_confidence():
    c = parse_structured(json.dumps({"document_type": "Invoice", "confidence": 7,
                                     "suggested_filename": "Invoice", "tags": []}), "x.pdf")
    assert c.confidence == 1.0


def test_parse_structured_rejects_non_object():
    with pytest.raises(ValueError):
        parse_structured("[1, 2]", "x.pdf")


def test_parse_classification_text():
    text = (
        "Document type: Memorandum of Association\n"
        "Confidence: 0.85\n"
        'Suggested filename: "Foundarv MoA 2024"\n'
        "Tags: legal, moa, company\n"
    )
    c = parse_classification_text(text, "scan.pdf")
    assert c.type == "Memorandum of Association"
    assert c.confidence == 0.85
    assert c.suggested_name == "Foundarv MoA 2024"
    assert c.tags == ["legal", "moa", "company"]
    assert c.source == "text"


def test_parse_response_content_falls_back_to_text(app):
    c = parse_response_content("Document type: Receipt\nConfidence: abc", "r.png")
    assert c.type == "Receipt"
    assert c.confidence == 0.5
    assert c.suggested_name == "r"


def test_classify_without_key_uses_fallback(app):
    c = DocumentClassifier(api_key=None).classify(b"data", "application/pdf", "deed.pdf")
    assert c.source == "fallback"
    assert c.suggested_name == "deed"


def test_classify_structured_answer(app):
    answer = json.dumps({"document_type": "Invoice", "confidence": 0.93,
                         "suggested_filename": "ACME Invoice March 2024", "tags": ["invoice", "acme"]})
    session = FakeSession([_completion(answer)])
    c = DocumentClassifier(api_key="sk-test", session=session).classify(b"\x89PNG", "image/png", "scan.png")

    assert c.type == "Invoice"
    assert c.suggested_name == "ACME Invoice March 2024"
    assert c.ai_generated_name is True

    body = session.calls[0]["json"]
    assert session.calls[0]["headers"]["Authorization"] == "Bearer sk-test"
    assert body["response_format"]["type"] == "json_schema"
    parts = body["messages"][0]["content"]
    assert parts[0]["type"] == "text"
    assert parts[1]["image_url"]["url"].startswith("data:image/png;base64,")


def test_classify_sends_pdf_as_file_part(app):
    clf = DocumentClassifier(api_key="sk-test")
    parts = clf.build_messages(b"%PDF-1.4", "application/pdf", "deed.pdf")[0]["content"]
    assert parts[1]["type"] == "file"
    assert parts[1]["file"]["filename"] == "deed.pdf"


def test_classify_retries_on_server_error(app, monkeypatch):
    monkeypatch.setattr(classifier_mod.time, "sleep", lambda s: None)
    answer = json.dumps({"document_type": "Receipt", "confidence": 0.4,
                         "suggested_filename": "Coffee receipt", "tags": []})
    session = FakeSession([FakeResponse(status_code=503, text="busy"), _completion(answer)])
    c = DocumentClassifier(api_key="sk-test", max_attempts=3, session=session).classify(
        b"x", "image/jpeg", "r.jpg")
    assert len(session.calls) == 2
    assert c.type == "Receipt"
    assert c.ai_generated_name is False


def test_classify_never_raises(app):
    session = FakeSession([requests.exceptions.ConnectionError("down")])
    c = DocumentClassifier(api_key="sk-test", max_attempts=1, session=session).classify(
        b"x", "application/pdf", "board minutes.pdf")
    assert c.source == "fallback"
    assert c.type == "Unknown Document"
    assert c.suggested_name == "board minutes"


def test_classify_refusal_uses_fallback(app):
    session = FakeSession([FakeResponse(payload={"choices": [{"message": {"content": None, "refusal": "no"}}]})])
    c = DocumentClassifier(api_key="sk-test", session=session).classify(b"x", "image/png", "id.png")
    assert c.source == "fallback"


def test_non_finite_confidence_counts_as_missing(app):
    c = parse_structured('{"document_type": "Invoice", "confidence": NaN, '
                         '"suggested_filename": "Invoice", "tags": []}', "x.pdf")
    assert c.confidence == 0.5
    assert c.ai_generated_name is False

    c = parse_classification_text("Document type: Invoice\nConfidence: nan", "x.pdf")
    assert c.confidence == 0.5
    assert c.ai_generated_name is False

    c = parse_classification_text("Document type: Invoice\nConfidence: inf", "x.pdf")
    assert c.confidence == 0.5
