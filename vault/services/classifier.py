"""Document classification through an OpenAI vision-capable model.

We call the Chat Completions HTTP API directly with `requests` and ask for
schema-validated JSON. Anything that goes wrong (no key, network, HTTP
error, unparseable answer) degrades to a default classification; callers
never see an exception from ``classify``.
"""
import base64
import json
import math
import random
import time
from dataclasses import dataclass, field
from typing import List, Optional

import requests
from flask import current_app

UNKNOWN_TYPE = "Unknown Document"
FALLBACK_CONFIDENCE = 0.1
MISSING_CONFIDENCE = 0.5
AI_NAME_THRESHOLD = 0.7

OPENAI_CHAT_URL = 'https://api.openai.com/v1/chat/completions'

CLASSIFICATION_SCHEMA = {
    "type": "json_schema",
    "json_schema": {
        "name": "DocumentClassification",
        "schema": {
            "type": "object",
            "properties": {
                "document_type": {"type": "string"},
                "confidence": {"type": "number"},
                "suggested_filename": {"type": "string"},
                "tags": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["document_type", "confidence", "suggested_filename", "tags"],
            "additionalProperties": False,
        },
        "strict": True,
    },
}

PROMPT = """Analyze this document and provide:
1. Document type (e.g., "Memorandum of Association", "Invoice", "Contract", "ID Document", "Receipt", "Certificate", etc.)
2. Confidence level (0-1)
3. Suggested filename (without extension, descriptive and professional)
4. Relevant tags (array of strings)

File: {filename}
MIME type: {mime_type}
Size: {size} bytes"""


def filename_stem(filename: str) -> str:
    """Name up to the first '.', never empty."""
    name = (filename or "").strip()
    stem = name.split(".")[0].strip()
    return stem or name or "Untitled"


def _clamp(value: float) -> float:
    # NaN and inf count as a missing confidence
    if not math.isfinite(value):
        return MISSING_CONFIDENCE
    return max(0.0, min(1.0, value))


@dataclass
class Classification:
    type: str
    confidence: float
    suggested_name: str
    tags: List[str] = field(default_factory=list)
    # model | text | fallback
    source: str = "model"

    @property
    def ai_generated_name(self) -> bool:
        return self.confidence > AI_NAME_THRESHOLD


def fallback_classification(filename: str) -> Classification:
    return Classification(
        type=UNKNOWN_TYPE,
        confidence=FALLBACK_CONFIDENCE,
        suggested_name=filename_stem(filename),
        tags=[],
        source="fallback",
    )


def _clean_tags(tags) -> List[str]:
    if not isinstance(tags, list):
        return []
    out = []
    for t in tags:
        if isinstance(t, str) and t.strip():
            out.append(t.strip())
    return out


def parse_structured(content: str, filename: str) -> Classification:
    """Parse the JSON answer requested via CLASSIFICATION_SCHEMA.

    Raises ValueError when the content is not a JSON object.
    """
    data = json.loads(content)
    if not isinstance(data, dict):
        raise ValueError("classification response is not an object")

    doc_type = data.get("document_type")
    name = data.get("suggested_filename")
    try:
        confidence = float(data["confidence"])
    except (KeyError, TypeError, ValueError):
        confidence = MISSING_CONFIDENCE

    return Classification(
        type=doc_type.strip() if isinstance(doc_type, str) and doc_type.strip() else UNKNOWN_TYPE,
        confidence=_clamp(confidence),
        suggested_name=name.strip() if isinstance(name, str) and name.strip() else filename_stem(filename),
        tags=_clean_tags(data.get("tags")),
        source="model",
    )


def _line_value(lines, label):
    for line in lines:
        if label in line:
            value = line.split(label, 1)[1].strip().strip('"').strip()
            if value:
                return value
    return None


def parse_classification_text(content: str, filename: str) -> Classification:
    """Line-oriented parse of a free-text answer such as::

        Document type: Invoice
        Confidence: 0.92
        Suggested filename: ACME Invoice March 2024
        Tags: invoice, acme, 2024
    """
    lines = (content or "").splitlines()
    doc_type = _line_value(lines, "Document type:") or UNKNOWN_TYPE
    name = _line_value(lines, "Suggested filename:") or filename_stem(filename)

    raw_conf = _line_value(lines, "Confidence:")
    try:
        confidence = float(raw_conf) if raw_conf is not None else MISSING_CONFIDENCE
    except ValueError:
        confidence = MISSING_CONFIDENCE

    tags_line = _line_value(lines, "Tags:")
    tags = [t.strip() for t in tags_line.split(",") if t.strip()] if tags_line else []

    return Classification(
        type=doc_type,
        confidence=_clamp(confidence),
        suggested_name=name,
        tags=tags,
        source="text",
    )


def parse_response_content(content: str, filename: str) -> Classification:
    try:
        return parse_structured(content, filename)
    except ValueError:
        # model ignored the schema; try the plain-text template instead
        current_app.logger.warning('Classification response was not JSON, parsing as text')
        return parse_classification_text(content, filename)


class DocumentClassifier:
    def __init__(self, api_key: Optional[str], model: str = "gpt-4o-mini", max_attempts: int = 3,
                 timeout: int = 60, session=None):
        self.api_key = api_key
        self.model = model
        self.max_attempts = max(1, int(max_attempts))
        self.timeout = timeout
        self.http = session or requests

    @classmethod
    def from_config(cls, config):
        return cls(
            api_key=config.get('OPENAI_API_KEY'),
            model=config.get('OPENAI_MODEL', 'gpt-4o-mini'),
            max_attempts=config.get('OPENAI_MAX_ATTEMPTS', 3),
        )

    def build_messages(self, data: bytes, mime_type: str, filename: str) -> list:
        text = PROMPT.format(filename=filename, mime_type=mime_type, size=len(data))
        content = [{"type": "text", "text": text}]
        b64 = base64.b64encode(data).decode("utf-8")
        if (mime_type or "").startswith("image/"):
            content.append({
                "type": "image_url",
                "image_url": {"url": f"data:{mime_type};base64,{b64}"},
            })
        elif mime_type == "application/pdf":
            content.append({
                "type": "file",
                "file": {"filename": filename, "file_data": f"data:application/pdf;base64,{b64}"},
            })
        # other types: the model only sees name, mime type and size
        return [{"role": "user", "content": content}]

    def _post(self, body: dict) -> dict:
        headers = {'Authorization': f'Bearer {self.api_key}', 'Content-Type': 'application/json'}
        backoff = 1.0
        for attempt in range(1, self.max_attempts + 1):
            last = attempt == self.max_attempts
            try:
                r = self.http.post(OPENAI_CHAT_URL, headers=headers, json=body, timeout=self.timeout)
            except requests.exceptions.RequestException:
                if last:
                    raise
                current_app.logger.warning(f'OpenAI network error, attempt {attempt}/{self.max_attempts}, retrying in {backoff}s')
                time.sleep(backoff + random.uniform(0, 0.5))
                backoff *= 2
                continue

            if r.status_code == 429 or 500 <= r.status_code < 600:
                body_text = r.text or ''
                if last or 'insufficient_quota' in body_text:
                    r.raise_for_status()
                ra = r.headers.get('Retry-After')
                try:
                    wait = float(ra) if ra else backoff
                except ValueError:
                    wait = backoff
                current_app.logger.warning(f'OpenAI returned {r.status_code}, attempt {attempt}/{self.max_attempts}, retrying in {wait}s')
                time.sleep(wait + random.uniform(0, 0.5))
                backoff *= 2
                continue

            r.raise_for_status()
            return r.json()
        raise RuntimeError('OpenAI request attempts exhausted')

    def classify(self, data: bytes, mime_type: str, filename: str) -> Classification:
        if not self.api_key:
            current_app.logger.warning('OPENAI_API_KEY not set; using fallback classification')
            return fallback_classification(filename)

        body = {
            'model': self.model,
            'messages': self.build_messages(data, mime_type, filename),
            'max_tokens': 500,
            'response_format': CLASSIFICATION_SCHEMA,
        }
        try:
            jr = self._post(body)
            message = jr['choices'][0]['message']
            content = message.get('content')
            if not content:
                raise ValueError(message.get('refusal') or 'No response from OpenAI')
            return parse_response_content(content, filename)
        except Exception:
            current_app.logger.exception('Document classification failed, using fallback')
            return fallback_classification(filename)
