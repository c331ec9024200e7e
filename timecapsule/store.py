import logging
import threading
import weakref
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from timecapsule.clock import as_utc
from timecapsule.database import session_scope
from timecapsule.errors import CapsuleError, ConflictError, NotFoundError, StorageError, ValidationError
from timecapsule.models import Capsule, Content

logger = logging.getLogger(__name__)


class CapsuleStore:
    """SQLAlchemy-backed persistence for capsules and their contents.

    Every public method is one transaction. Records come back detached, so
    callers can read them freely but changes only go through this class.
    """

    def __init__(self, session_factory):
        self._session_factory = session_factory
        self._guard = threading.Lock()
        # Locks live only while some caller holds them
        self._capsule_locks = weakref.WeakValueDictionary()

    @contextmanager
    def _transaction(self):
        try:
            with session_scope(self._session_factory) as session:
                yield session
        except CapsuleError:
            raise
        except IntegrityError as e:
            logger.error(f"Integrity error: {e}")
            raise ConflictError() from e
        except SQLAlchemyError as e:
            logger.error(f"Database error: {e}")
            raise StorageError() from e

    def _lock_for(self, capsule_id: int) -> threading.Lock:
        with self._guard:
            lock = self._capsule_locks.get(capsule_id)
            if lock is None:
                lock = self._capsule_locks[capsule_id] = threading.Lock()
            return lock

    def add_capsule(self, capsule: Capsule) -> Capsule:
        with self._transaction() as db:
            db.add(capsule)
            db.flush()
            db.refresh(capsule)
        return capsule

    def get_capsule(self, capsule_id: int) -> Optional[Capsule]:
        with self._transaction() as db:
            return db.get(Capsule, capsule_id)

    def list_capsules(self, creator_id: str) -> List[Capsule]:
        query = (
            select(Capsule)
            .where(Capsule.creator_id == creator_id)
            .order_by(Capsule.created_at.desc(), Capsule.id.desc())
        )
        with self._transaction() as db:
            return list(db.execute(query).scalars().all())

    def count_capsules(self, creator_id: str, now: datetime) -> Dict[str, int]:
        with self._transaction() as db:
            result = db.query(
                func.count(Capsule.id).label("total"),
                func.count(Capsule.id).filter(Capsule.unlock_at > now).label("pending"),
                func.count(Capsule.id).filter(Capsule.unlock_at <= now).label("opened"),
            ).filter(Capsule.creator_id == creator_id).first()
        return {"total": result.total, "pending": result.pending, "opened": result.opened}

    def update_capsule(self, capsule_id: int, changes: Dict[str, object], clock) -> Capsule:
        """Apply already-validated field changes while the capsule is still locked."""
        with self._lock_for(capsule_id), self._transaction() as db:
            capsule = self._locked_row(db, capsule_id)
            if clock.now() >= as_utc(capsule.unlock_at):
                raise ValidationError("Cannot edit metadata for an unlocked capsule.")
            for field, value in changes.items():
                setattr(capsule, field, value)
            db.flush()
            db.refresh(capsule)
        return capsule

    def delete_capsule(self, capsule_id: int) -> int:
        """Delete a capsule and its contents together. Returns the number of contents removed."""
        with self._lock_for(capsule_id), self._transaction() as db:
            capsule = self._locked_row(db, capsule_id)
            removed = len(capsule.contents)
            db.delete(capsule)
        return removed

    def add_content(self, content: Content, clock) -> Content:
        """Insert content, re-checking the time lock inside the same transaction."""
        with self._lock_for(content.capsule_id), self._transaction() as db:
            capsule = self._locked_row(db, content.capsule_id)
            now = clock.now()
            if now >= as_utc(capsule.unlock_at):
                raise ValidationError("Cannot add content to an unlocked capsule.")
            content.created_at = now
            db.add(content)
            db.flush()
            db.refresh(content)
        return content

    def list_contents(self, capsule_id: int) -> List[Content]:
        query = select(Content).where(Content.capsule_id == capsule_id).order_by(Content.created_at.asc(), Content.id.asc())
        with self._transaction() as db:
            return list(db.execute(query).scalars().all())

    def find_content(self, storage_key: str) -> Optional[Tuple[Content, Capsule]]:
        """The content row holding a blob, with its capsule."""
        query = select(Content, Capsule).join(Capsule, Content.capsule_id == Capsule.id).where(Content.storage_key == storage_key)
        with self._transaction() as db:
            row = db.execute(query).first()
        if row is None:
            return None
        return row[0], row[1]

    def count_contents(self, capsule_id: int) -> int:
        with self._transaction() as db:
            return db.query(func.count(Content.id)).filter(Content.capsule_id == capsule_id).scalar()

    def storage_keys(self) -> Set[str]:
        query = select(Content.storage_key).where(Content.storage_key.isnot(None))
        with self._transaction() as db:
            return set(db.execute(query).scalars().all())

    @staticmethod
    def _locked_row(db, capsule_id: int) -> Capsule:
        capsule = db.execute(
            select(Capsule).where(Capsule.id == capsule_id).with_for_update()
        ).scalars().first()
        if capsule is None:
            raise NotFoundError()
        return capsule
