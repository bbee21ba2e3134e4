"""File ingestion: hash -> classify -> image processing -> store -> persist.

Each step runs once, in order. Classification and image processing degrade
to defaults; storage and metadata failures abort the ingestion.
"""
import hashlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from flask import current_app

from ..errors import MetadataError
from ..extensions import db
from ..models.file import File
from .classifier import Classification, filename_stem
from .imaging import convert_image_to_pdf, crop_document_edges
from .storage import file_extension, generate_file_key
from .vault import write_audit


@dataclass
class IngestResult:
    file: File
    classification: Classification
    should_convert_to_pdf: bool
    converted_to_pdf: bool
    thumbnail_key: Optional[str] = None

    def summary(self):
        f = self.file
        return {
            "id": f.id,
            "displayName": f.display_name,
            "fileType": f.file_type,
            "size": f.file_size,
            "mimeType": f.mime_type,
            "aiGeneratedName": f.ai_generated_name,
            "tags": f.tags or [],
            "shouldConvertToPdf": self.should_convert_to_pdf,
            "convertedToPdf": self.converted_to_pdf,
            "createdAt": f.created_at.isoformat() if f.created_at else None,
        }


def generate_file_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def generate_encrypted_key(file_hash: str, secret: str) -> str:
    # opaque integrity token, not encryption of the content
    return hashlib.sha256((file_hash + (secret or "")).encode("utf-8")).hexdigest()


def _is_image(mime_type):
    return (mime_type or "").startswith("image/")


def ingest_file(data: bytes, filename: str, mime_type: str, user_id, storage, classifier,
                folder_id=None, convert_to_pdf=False, ip_address=None, user_agent=None) -> IngestResult:
    mime_type = mime_type or "application/octet-stream"
    file_hash = generate_file_hash(data)

    classification = classifier.classify(data, mime_type, filename)
    display_name = (classification.suggested_name or "").strip() or filename_stem(filename)

    processed = data
    stored_mime = mime_type
    extension = file_extension(filename)
    should_convert = False
    converted = False
    if _is_image(mime_type):
        processed = crop_document_edges(data)
        should_convert = True
        if convert_to_pdf:
            try:
                processed = convert_image_to_pdf(processed)
                stored_mime = "application/pdf"
                extension = "pdf"
                converted = True
            except Exception:
                current_app.logger.exception('Error converting image to PDF, storing image as-is')

    storage_path = generate_file_key(user_id, filename, file_hash, extension=extension)
    encrypted_key = generate_encrypted_key(file_hash, current_app.config.get('ENCRYPTION_KEY', ''))

    # StorageError propagates: nothing has been persisted yet
    upload = storage.upload_with_thumbnail(
        processed,
        storage_path,
        stored_mime,
        {
            "userId": str(user_id),
            "originalName": filename,
            "displayName": display_name,
            "fileType": classification.type,
            "aiGeneratedName": str(classification.ai_generated_name).lower(),
            "tags": ",".join(classification.tags),
            "fileHash": file_hash,
        },
    )

    metadata = {
        "originalSize": len(data),
        "processedSize": len(processed),
        "confidence": classification.confidence,
        "classificationSource": classification.source,
        "uploadedAt": datetime.now(timezone.utc).isoformat(),
        "fileHash": file_hash,
        "convertedToPdf": converted,
    }
    if upload.thumbnail_key:
        metadata["thumbnailPath"] = upload.thumbnail_key

    record = File(
        user_id=user_id,
        folder_id=folder_id,
        original_name=filename,
        display_name=display_name,
        file_type=classification.type,
        file_size=len(processed),
        mime_type=stored_mime,
        storage_path=storage_path,
        encrypted_key=encrypted_key,
        ai_generated_name=classification.ai_generated_name,
        tags=classification.tags,
        file_metadata=metadata,
    )
    try:
        db.session.add(record)
        db.session.flush()
        write_audit(
            user_id,
            "file_uploaded",
            "file",
            resource_id=record.id,
            details={
                "filename": record.display_name,
                "fileType": record.file_type,
                "size": record.file_size,
                "aiGeneratedName": record.ai_generated_name,
            },
            ip_address=ip_address,
            user_agent=user_agent,
            commit=False,
        )
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        # the stored object stays behind; there is no compensating delete
        current_app.logger.exception('Saving metadata for %s failed', storage_path)
        raise MetadataError(str(e)) from e

    current_app.logger.info('Ingested %s for user %s as %r (%s, confidence %.2f)',
                            storage_path, user_id, record.display_name, record.file_type,
                            classification.confidence)
    return IngestResult(
        file=record,
        classification=classification,
        should_convert_to_pdf=should_convert,
        converted_to_pdf=converted,
        thumbnail_key=upload.thumbnail_key,
    )
