"""Object storage backends.

``S3Storage`` is the production backend (boto3, server-side AES256);
``LocalStorage`` keeps objects under ``LOCAL_STORAGE_DIR`` for development
and serves them through signed, expiring links.
"""
import mimetypes
import os
import re
import time
from dataclasses import dataclass
from typing import Dict, List, Optional
from urllib.parse import quote

import boto3
from botocore.client import Config
from flask import current_app
from itsdangerous import BadSignature, URLSafeTimedSerializer
from werkzeug.utils import secure_filename

from ..errors import StorageError
from .imaging import create_thumbnail

THUMBNAIL_SUFFIX = "_thumb.jpg"


@dataclass
class UploadResult:
    key: str
    url: str
    thumbnail_key: Optional[str] = None


def file_extension(filename: str) -> str:
    """Text after the last '.' of the sanitized name, lower-cased; '' when
    there is none or it is not plain alphanumerics."""
    name = secure_filename(filename or "")
    if "." not in name:
        return ""
    ext = name.rsplit(".", 1)[1].lower()
    return ext if re.fullmatch(r"[a-z0-9]+", ext) else ""


def generate_file_key(user_id, filename: str, file_hash: str, now_ms: Optional[int] = None,
                      extension: Optional[str] = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    ext = file_extension(filename) if extension is None else extension
    return f"users/{user_id}/files/{now_ms}-{file_hash[:8]}.{ext}"


def generate_thumbnail_key(key: str) -> str:
    # strip the extension so the thumbnail never shadows the original object
    return re.sub(r"\.[^./]*$", "", key) + THUMBNAIL_SUFFIX


def _log(level, msg, *args):
    try:
        getattr(current_app.logger, level)(msg, *args)
    except RuntimeError:
        pass


class BaseStorage:
    backend = "base"

    def upload(self, data: bytes, key: str, content_type: str,
               metadata: Optional[Dict[str, str]] = None) -> UploadResult:
        raise NotImplementedError

    def download(self, key: str) -> bytes:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def sign(self, key: str, expires_in: int = 3600, operation: str = "get_object") -> str:
        raise NotImplementedError

    def list_user_files(self, user_id, prefix: Optional[str] = None) -> List[dict]:
        raise NotImplementedError

    def upload_with_thumbnail(self, data: bytes, key: str, content_type: str,
                              metadata: Optional[Dict[str, str]] = None) -> UploadResult:
        """Upload the object, then a JPEG thumbnail when it is an image.

        Thumbnail failures are logged and never fail the main upload.
        """
        result = self.upload(data, key, content_type, metadata)
        if not (content_type or "").startswith("image/"):
            return result
        try:
            thumb = create_thumbnail(data)
            thumb_key = generate_thumbnail_key(key)
            thumb_meta = dict(metadata or {})
            thumb_meta["isThumbnail"] = "true"
            self.upload(thumb, thumb_key, "image/jpeg", thumb_meta)
            result.thumbnail_key = thumb_key
        except Exception as e:
            _log("warning", "Failed to create thumbnail for %s: %s", key, e)
        return result


class S3Storage(BaseStorage):
    backend = "s3"

    def __init__(self, bucket, access_key=None, secret_key=None, region=None, endpoint=None, client=None):
        self.bucket = bucket
        if client is None:
            s3_kwargs = {}
            if endpoint:
                s3_kwargs['endpoint_url'] = endpoint
            if region:
                s3_kwargs['region_name'] = region
            # prefer virtual-hosted style addressing; ensure sigv4
            s3_config = Config(signature_version='s3v4', s3={'addressing_style': 'virtual'})
            client = boto3.client(
                's3',
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                config=s3_config,
                **s3_kwargs,
            )
        self.client = client

    @classmethod
    def from_config(cls, config):
        return cls(
            bucket=config.get('S3_BUCKET'),
            access_key=config.get('S3_ACCESS_KEY'),
            secret_key=config.get('S3_SECRET_KEY'),
            region=config.get('S3_REGION'),
            endpoint=config.get('S3_ENDPOINT'),
        )

    def upload(self, data, key, content_type, metadata=None):
        # S3 user metadata travels as HTTP headers: keep it ASCII
        meta = {k: quote(str(v), safe="") for k, v in (metadata or {}).items()}
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                Metadata=meta,
                ServerSideEncryption='AES256',
            )
        except Exception as e:
            _log("exception", "S3 upload failed for %s", key)
            raise StorageError(str(e)) from e
        return UploadResult(key=key, url=f"s3://{self.bucket}/{key}")

    def download(self, key):
        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=key)
            return obj['Body'].read()
        except Exception as e:
            _log("exception", "S3 download failed for %s", key)
            raise StorageError(str(e)) from e

    def delete(self, key):
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except Exception as e:
            _log("exception", "S3 delete failed for %s", key)
            raise StorageError(str(e)) from e

    def sign(self, key, expires_in=3600, operation="get_object"):
        try:
            return self.client.generate_presigned_url(
                operation,
                Params={'Bucket': self.bucket, 'Key': key},
                ExpiresIn=expires_in,
            )
        except Exception as e:
            _log("exception", "Presigning %s failed", key)
            raise StorageError(str(e)) from e

    def list_user_files(self, user_id, prefix=None):
        try:
            resp = self.client.list_objects_v2(
                Bucket=self.bucket,
                Prefix=prefix or f"users/{user_id}/",
                MaxKeys=1000,
            )
        except Exception as e:
            _log("exception", "S3 listing failed for user %s", user_id)
            raise StorageError(str(e)) from e
        return [
            {
                "key": item["Key"],
                "last_modified": item.get("LastModified"),
                "size": item.get("Size", 0),
            }
            for item in resp.get("Contents", [])
        ]


class LocalStorage(BaseStorage):
    backend = "local"

    def __init__(self, root, secret_key, base_url="http://localhost:5000"):
        self.root = os.path.abspath(root)
        self.base_url = base_url.rstrip("/")
        self._signer = URLSafeTimedSerializer(secret_key, salt="local-storage")

    @classmethod
    def from_config(cls, config):
        return cls(
            root=config.get('LOCAL_STORAGE_DIR', './storage'),
            secret_key=config.get('SECRET_KEY'),
            base_url=config.get('PUBLIC_BASE_URL', 'http://localhost:5000'),
        )

    def _path(self, key):
        path = os.path.abspath(os.path.join(self.root, key))
        if not path.startswith(self.root + os.sep):
            raise StorageError(f"Invalid storage key: {key}")
        return path

    def upload(self, data, key, content_type, metadata=None):
        path = self._path(key)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, 'wb') as f:
                f.write(data)
        except OSError as e:
            _log("exception", "Local upload failed for %s", key)
            raise StorageError(str(e)) from e
        return UploadResult(key=key, url=f"file://{path}")

    def download(self, key):
        try:
            with open(self._path(key), 'rb') as f:
                return f.read()
        except OSError as e:
            raise StorageError(str(e)) from e

    def delete(self, key):
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(str(e)) from e

    def sign(self, key, expires_in=3600, operation="get_object"):
        if operation != "get_object":
            raise StorageError("Local storage only signs downloads")
        token = self._signer.dumps({"key": key, "exp": expires_in})
        return f"{self.base_url}/api/storage/local/{token}"

    def resolve_token(self, token: str) -> str:
        """Key for a token issued by ``sign``; StorageError when invalid or expired."""
        try:
            data, signed_at = self._signer.loads(token, return_timestamp=True)
        except BadSignature as e:
            raise StorageError("Invalid link") from e
        if time.time() - signed_at.timestamp() > data.get("exp", 0):
            raise StorageError("Link expired")
        return data["key"]

    def content_type(self, key):
        return mimetypes.guess_type(key)[0] or 'application/octet-stream'

    def list_user_files(self, user_id, prefix=None):
        base = self._path(prefix or f"users/{user_id}/")
        out = []
        for dirpath, _dirnames, filenames in os.walk(base):
            for name in filenames:
                full = os.path.join(dirpath, name)
                st = os.stat(full)
                out.append({
                    "key": os.path.relpath(full, self.root).replace(os.sep, "/"),
                    "last_modified": st.st_mtime,
                    "size": st.st_size,
                })
        return out


def build_storage(config):
    backend = config.get('STORAGE_BACKEND', 'local')
    if backend == 's3':
        return S3Storage.from_config(config)
    return LocalStorage.from_config(config)
