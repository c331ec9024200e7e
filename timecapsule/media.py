import logging
import mimetypes
import os
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Set, Tuple
from urllib.parse import quote

import jwt

from timecapsule.config import Settings
from google.api_core import exceptions as gcs_exceptions
from google.auth import exceptions as auth_exceptions

from timecapsule.errors import AuthenticationError, NotFoundError, StorageError

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"[0-9a-f]{32}(\.[A-Za-z0-9]{1,16})?")


def new_storage_key(original_name: str = None) -> str:
    extension = os.path.splitext(original_name or "")[1]
    if not re.fullmatch(r"\.[A-Za-z0-9]{1,16}", extension):
        extension = ""
    return f"{uuid.uuid4().hex}{extension.lower()}"


def is_valid_key(key: str) -> bool:
    return bool(key) and bool(_KEY_PATTERN.fullmatch(key))


class LocalObjectStore:
    """Blob store on the local filesystem with JWT-signed, expiring read URLs."""

    def __init__(self, settings: Settings):
        self.root = settings.media_root
        self.base_url = settings.media_base_url.rstrip("/")
        self.ttl = timedelta(seconds=settings.signed_url_ttl_seconds)
        self._secret = settings.secret_key
        self._algorithm = settings.jwt_algorithm

    def _path(self, key: str) -> str:
        if not is_valid_key(key):
            raise NotFoundError("Media not found.")
        return os.path.join(self.root, key)

    def put(self, data: bytes, mime_type: str, original_name: str = None) -> str:
        key = new_storage_key(original_name)
        try:
            os.makedirs(self.root, exist_ok=True)
            with open(os.path.join(self.root, key), "wb") as fh:
                fh.write(data)
        except OSError as e:
            logger.error(f"Upload of {original_name!r} ({mime_type}) failed: {e}")
            raise StorageError("Failed to upload file.") from e
        logger.info(f"Stored blob {key} ({mime_type}, {len(data)} bytes)")
        return key

    def get(self, key: str) -> Tuple[bytes, str]:
        path = self._path(key)
        try:
            with open(path, "rb") as fh:
                data = fh.read()
        except FileNotFoundError as e:
            raise NotFoundError("Media not found.") from e
        except OSError as e:
            logger.error(f"Reading blob {key} failed: {e}")
            raise StorageError("Could not read media.") from e
        mime_type = mimetypes.guess_type(key)[0] or "application/octet-stream"
        return data, mime_type

    def keys(self) -> Set[str]:
        try:
            names = os.listdir(self.root)
        except FileNotFoundError:
            return set()
        except OSError as e:
            raise StorageError("Could not list media.") from e
        return {name for name in names if is_valid_key(name)}

    def signed_url(self, key: str) -> str:
        if not is_valid_key(key) or not os.path.exists(self._path(key)):
            raise StorageError("Could not generate signed URL.")
        token = jwt.encode(
            {"key": key, "exp": datetime.now(timezone.utc) + self.ttl},
            self._secret,
            algorithm=self._algorithm,
        )
        return f"{self.base_url}/media/{quote(key)}?token={token}"

    def verify_signature(self, key: str, token: str):
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.PyJWTError as e:
            raise AuthenticationError("Invalid or expired media link.") from e
        if payload.get("key") != key:
            raise AuthenticationError("Invalid or expired media link.")

    def read_signed(self, key: str, token: str) -> Tuple[bytes, str]:
        self.verify_signature(key, token)
        return self.get(key)


class GCSObjectStore:
    """Blob store in a Google Cloud Storage bucket; reads go through v4 signed URLs."""

    def __init__(self, settings: Settings, bucket=None):
        if bucket is None:
            from google.cloud import storage

            if not settings.gcs_bucket_name:
                raise StorageError("GCS_BUCKET_NAME is not set.")
            # Credentials come from GOOGLE_APPLICATION_CREDENTIALS
            bucket = storage.Client().bucket(settings.gcs_bucket_name)
        self.bucket = bucket
        self.ttl = timedelta(seconds=settings.signed_url_ttl_seconds)

    def put(self, data: bytes, mime_type: str, original_name: str = None) -> str:
        key = new_storage_key(original_name)
        try:
            self.bucket.blob(key).upload_from_string(data, content_type=mime_type)
        except gcs_exceptions.GoogleAPIError as e:
            logger.error(f"GCS upload of {original_name!r} ({mime_type}) failed: {e}")
            raise StorageError("Failed to upload file.") from e
        logger.info(f"Stored blob {key} in gs://{self.bucket.name} ({mime_type}, {len(data)} bytes)")
        return key

    def get(self, key: str) -> Tuple[bytes, str]:
        if not is_valid_key(key):
            raise NotFoundError("Media not found.")
        blob = self.bucket.blob(key)
        try:
            data = blob.download_as_bytes()
        except gcs_exceptions.NotFound as e:
            raise NotFoundError("Media not found.") from e
        except gcs_exceptions.GoogleAPIError as e:
            logger.error(f"Reading blob {key} failed: {e}")
            raise StorageError("Could not read media.") from e
        return data, blob.content_type or "application/octet-stream"

    def keys(self) -> Set[str]:
        try:
            return {blob.name for blob in self.bucket.list_blobs() if is_valid_key(blob.name)}
        except gcs_exceptions.GoogleAPIError as e:
            raise StorageError("Could not list media.") from e

    def signed_url(self, key: str) -> str:
        if not is_valid_key(key):
            raise StorageError("Could not generate signed URL.")
        try:
            return self.bucket.blob(key).generate_signed_url(version="v4", expiration=self.ttl, method="GET")
        except (gcs_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError, AttributeError) as e:
            # AttributeError: credentials without a private key cannot sign
            logger.error(f"Signing URL for blob {key} failed: {e}")
            raise StorageError("Could not generate signed URL.") from e


def make_object_store(settings: Settings):
    if settings.object_store == "gcs":
        return GCSObjectStore(settings)
    return LocalObjectStore(settings)
