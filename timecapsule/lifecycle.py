import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Mapping, Optional

from timecapsule.access import authorize_owner
from timecapsule.aggregator import SentimentSummary, summarize_contents
from timecapsule.clock import as_utc
from timecapsule.errors import AuthError, NotFoundError, ValidationError
from timecapsule.models import Capsule, Content

logger = logging.getLogger(__name__)


class LockState(str, enum.Enum):
    LOCKED = "LOCKED"
    UNLOCKED = "UNLOCKED"


def lock_state(capsule: Capsule, now: datetime) -> LockState:
    if as_utc(now) < as_utc(capsule.unlock_at):
        return LockState.LOCKED
    return LockState.UNLOCKED


def locked_message(unlock_at: datetime) -> str:
    return f"This capsule is locked until {as_utc(unlock_at):%a %b %d %Y}"


class CapsuleUpdate:
    """Partial update of capsule metadata; only the fields that were set are applied.

        CapsuleUpdate().title("New title").is_communal(True)
    """

    FIELDS = ("title", "description", "is_communal")

    def __init__(self):
        self._changes: Dict[str, object] = {}

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "CapsuleUpdate":
        update = cls()
        for name in cls.FIELDS:
            if name in data:
                getattr(update, name)(data[name])
        return update

    def title(self, value: Optional[str]) -> "CapsuleUpdate":
        self._changes["title"] = value
        return self

    def description(self, value: Optional[str]) -> "CapsuleUpdate":
        self._changes["description"] = value
        return self

    def is_communal(self, value: bool) -> "CapsuleUpdate":
        self._changes["is_communal"] = value
        return self

    @property
    def changes(self) -> Dict[str, object]:
        return dict(self._changes)

    def validate(self):
        if not self._changes:
            raise ValidationError("At least one field (title, description, or isCommunal) is required for update.")
        if "title" in self._changes and not _clean_title(self._changes["title"]):
            raise ValidationError("Title cannot be empty.")
        if "is_communal" in self._changes and not isinstance(self._changes["is_communal"], bool):
            raise ValidationError("isCommunal must be a boolean.")
        if "title" in self._changes:
            self._changes["title"] = _clean_title(self._changes["title"])
        return self


@dataclass
class CapsuleView:
    capsule: Capsule
    status: LockState
    message: Optional[str] = None
    contents: List[Content] = field(default_factory=list)
    summary: Optional[SentimentSummary] = None


def _clean_title(title) -> str:
    if not isinstance(title, str):
        return ""
    return title.strip()


class CapsuleLifecycle:
    def __init__(self, store, clock):
        self.store = store
        self.clock = clock

    def create(self, creator_id: str, title: str, unlock_at: datetime,
               description: Optional[str] = None, is_communal: bool = False) -> Capsule:
        title = _clean_title(title)
        if not title:
            raise ValidationError("Title and unlock date are required.")
        if unlock_at is None:
            raise ValidationError("Title and unlock date are required.")
        now = self.clock.now()
        unlock_at = as_utc(unlock_at)
        if unlock_at <= now:
            raise ValidationError("Unlock date must be in the future.")
        capsule = self.store.add_capsule(Capsule(
            creator_id=creator_id,
            title=title,
            description=description,
            unlock_at=unlock_at,
            is_communal=bool(is_communal),
            created_at=now,
        ))
        logger.info(f"Capsule {capsule.id} created by {creator_id}, unlocks at {unlock_at.isoformat()}")
        return capsule

    def list_owned(self, principal_id: str) -> List[Capsule]:
        return self.store.list_capsules(principal_id)

    def analytics(self, principal_id: str) -> Dict[str, int]:
        return self.store.count_capsules(principal_id, self.clock.now())

    def update(self, principal_id: str, capsule_id: int, update: CapsuleUpdate) -> Capsule:
        capsule = authorize_owner(principal_id, self.store.get_capsule(capsule_id))
        update.validate()
        if lock_state(capsule, self.clock.now()) is LockState.UNLOCKED:
            raise ValidationError("Cannot edit metadata for an unlocked capsule.")
        capsule = self.store.update_capsule(capsule_id, update.changes, self.clock)
        logger.info(f"Capsule {capsule_id} updated: {sorted(update.changes)}")
        return capsule

    def delete(self, principal_id: str, capsule_id: int):
        authorize_owner(principal_id, self.store.get_capsule(capsule_id))
        removed = self.store.delete_capsule(capsule_id)
        logger.info(f"Capsule {capsule_id} deleted with {removed} contents")

    def view(self, principal_id: str, capsule_id: int) -> CapsuleView:
        capsule = authorize_owner(principal_id, self.store.get_capsule(capsule_id))
        if lock_state(capsule, self.clock.now()) is LockState.LOCKED:
            # Nothing about the contents, not even how many, leaves the store while locked
            return CapsuleView(capsule=capsule, status=LockState.LOCKED, message=locked_message(capsule.unlock_at))
        contents = self.store.list_contents(capsule_id)
        return CapsuleView(
            capsule=capsule,
            status=LockState.UNLOCKED,
            contents=contents,
            summary=summarize_contents(contents),
        )

    def authorize_media(self, principal_id: str, storage_key: str) -> Content:
        """Media follows its capsule: creator only, and only once unlocked."""
        found = self.store.find_content(storage_key)
        if found is None:
            raise NotFoundError("Media not found.")
        content, capsule = found
        authorize_owner(principal_id, capsule)
        if lock_state(capsule, self.clock.now()) is LockState.LOCKED:
            raise AuthError(locked_message(capsule.unlock_at))
        return content
