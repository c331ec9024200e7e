import logging
from dataclasses import dataclass
from typing import Optional

from timecapsule.access import authorize_contributor
from timecapsule.errors import CapsuleError, ValidationError
from timecapsule.lifecycle import LockState, lock_state
from timecapsule.models import CONTENT_IMAGE, CONTENT_OTHER, CONTENT_TEXT, CONTENT_VIDEO, Content

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TextPayload:
    text: str


@dataclass(frozen=True)
class BinaryPayload:
    data: bytes
    mime_type: str
    original_name: Optional[str] = None


def classify_content_type(mime_type: Optional[str]) -> str:
    mime_type = (mime_type or "").lower()
    if mime_type.startswith("image/"):
        return CONTENT_IMAGE
    if mime_type.startswith("video/"):
        return CONTENT_VIDEO
    return CONTENT_OTHER


class ContentIngestion:
    def __init__(self, store, clock, object_store, scorer, max_upload_bytes: int = None):
        self.store = store
        self.clock = clock
        self.object_store = object_store
        self.scorer = scorer
        self.max_upload_bytes = max_upload_bytes

    def add_content(self, principal_id: str, capsule_id: int, payload) -> Content:
        capsule = authorize_contributor(principal_id, self.store.get_capsule(capsule_id))
        if lock_state(capsule, self.clock.now()) is LockState.UNLOCKED:
            raise ValidationError("Cannot add content to an unlocked capsule.")

        if isinstance(payload, BinaryPayload):
            return self._add_binary(principal_id, capsule_id, payload)
        if isinstance(payload, TextPayload) and payload.text and payload.text.strip():
            return self._add_text(principal_id, capsule_id, payload)
        raise ValidationError("Content (text or file) is required.")

    def _add_text(self, principal_id, capsule_id, payload: TextPayload) -> Content:
        score = self.scorer.score(payload.text)
        content = self.store.add_content(Content(
            capsule_id=capsule_id,
            contributor_id=principal_id,
            content_type=CONTENT_TEXT,
            text=payload.text,
            sentiment_score=score,
        ), self.clock)
        logger.info(f"Text content {content.id} added to capsule {capsule_id}")
        return content

    def _add_binary(self, principal_id, capsule_id, payload: BinaryPayload) -> Content:
        if not payload.data:
            raise ValidationError("Uploaded file is empty.")
        if self.max_upload_bytes is not None and len(payload.data) > self.max_upload_bytes:
            raise ValidationError("Uploaded file is too large.")
        content_type = classify_content_type(payload.mime_type)
        storage_key = self.object_store.put(payload.data, payload.mime_type, payload.original_name)
        try:
            content = self.store.add_content(Content(
                capsule_id=capsule_id,
                contributor_id=principal_id,
                content_type=content_type,
                storage_key=storage_key,
                sentiment_score=0,
            ), self.clock)
        except CapsuleError as e:
            # The blob stays behind; the periodic audit reports it too
            logger.warning(f"Orphaned blob {storage_key}: upload succeeded but content for capsule {capsule_id} was not saved ({type(e).__name__})")
            raise
        logger.info(f"{content_type.capitalize()} content {content.id} added to capsule {capsule_id}")
        return content
