"""The authoritative in-memory paste collection.

Every scan and mutation holds one lock over the whole list; the durable index
is updated inside the same critical section so memory and the table never
diverge across a restart. Storage I/O never happens under the lock: the sweep
detaches evicted pastes first and deletes their bytes after releasing it.
"""
from __future__ import annotations

import threading
import time
from typing import Callable, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError

from pastebox.errors import IdCollisionError, StorageError, StorageNotFoundError
from pastebox.logger import get_logger
from pastebox.models.paste import Paste
from pastebox.services import locator as loc
from pastebox.services.lifecycle import is_evictable
from pastebox.services.slugs import to_animal_names

log = get_logger("store")

ID_ATTEMPTS = 5


class PasteStore:
    def __init__(
        self,
        index,
        storage,
        gc_days: int = 0,
        slug: Callable[[int], str] = to_animal_names,
        defer_delete: Optional[Callable[[str, str], None]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.index = index
        self.storage = storage
        self.gc_days = gc_days
        self.slug = slug
        self.defer_delete = defer_delete
        self.clock = clock
        self._pastes: List[Paste] = []
        self._reserved: Set[int] = set()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._pastes)

    def now(self) -> int:
        return int(self.clock())

    def load(self) -> int:
        """Resume the collection from the durable index."""
        pastes = self.index.load_all()
        with self._lock:
            self._pastes = pastes
        log.info("Loaded %d pastes from the index", len(pastes))
        return len(pastes)

    def _position(self, paste_id: int) -> Optional[int]:
        for i, paste in enumerate(self._pastes):
            if paste.id == paste_id:
                return i
        return None

    def reserve_id(self, generate: Callable[[], int], attempts: int = ID_ATTEMPTS) -> int:
        """Pick an id unused by live pastes and in-flight creations."""
        with self._lock:
            taken = {p.id for p in self._pastes} | self._reserved
            for _ in range(attempts):  # retry on id collisions
                candidate = generate()
                if candidate not in taken:
                    self._reserved.add(candidate)
                    return candidate
        raise IdCollisionError(f"Failed to generate a unique paste id in {attempts} attempts")

    def release_id(self, paste_id: int) -> None:
        with self._lock:
            self._reserved.discard(paste_id)

    def insert(self, paste: Paste) -> None:
        with self._lock:
            if self._position(paste.id) is not None:
                raise IdCollisionError(f"Paste {paste.id} already exists")
            self._pastes.append(paste)
            try:
                self.index.upsert(paste)
            except SQLAlchemyError:
                self._pastes.pop()
                log.exception("Failed to persist paste %s", self.slug(paste.id))
                raise
            finally:
                self._reserved.discard(paste.id)

    def find_by_id(self, paste_id: int) -> Optional[Paste]:
        with self._lock:
            i = self._position(paste_id)
            return None if i is None else self._pastes[i].copy()

    def touch(self, paste_id: int, now: Optional[int] = None) -> Optional[Paste]:
        """Record one successful read.

        Returns None when the paste is gone or already evictable, so a read
        that raced a burn-after limit or an expiry is not delivered.
        """
        now = self.now() if now is None else now
        with self._lock:
            i = self._position(paste_id)
            if i is None:
                return None
            paste = self._pastes[i]
            if is_evictable(paste, now, self.gc_days):
                return None
            paste.read_count += 1
            paste.last_read = now
            try:
                self.index.upsert(paste)
            except SQLAlchemyError:
                log.exception("Failed to persist read of paste %s", self.slug(paste_id))
            return paste.copy()

    def remove_by_id(self, paste_id: int) -> Optional[Paste]:
        with self._lock:
            i = self._position(paste_id)
            if i is None:
                return None
            paste = self._pastes.pop(i)
            try:
                self.index.delete(paste_id)
            except SQLAlchemyError:
                log.exception("Failed to delete index row of paste %s", self.slug(paste_id))
            return paste

    def list_public(self) -> List[Paste]:
        with self._lock:
            return [p.copy() for p in self._pastes if p.privacy.listed]

    def snapshot(self) -> List[Paste]:
        with self._lock:
            return [p.copy() for p in self._pastes]

    def sweep(self, now: Optional[int] = None) -> List[Paste]:
        """Evict every expired, burnt or stale paste; returns what was evicted."""
        now = self.now() if now is None else now
        with self._lock:
            evicted = [p for p in self._pastes if is_evictable(p, now, self.gc_days)]
            if not evicted:
                return []
            gone = {p.id for p in evicted}
            self._pastes = [p for p in self._pastes if p.id not in gone]
            try:
                self.index.delete_many(sorted(gone))
            except SQLAlchemyError:
                log.exception("Failed to delete %d evicted rows from the index", len(gone))

        for paste in evicted:
            log.info("Evicted paste %s", self.slug(paste.id))
            if paste.file is not None:
                self.discard_file(paste)
        return evicted

    def discard_file(self, paste: Paste, defer: bool = True) -> None:
        """Delete a paste's attachment bytes; failures are logged, not raised."""
        slug = self.slug(paste.id)
        path = loc.storage_path(paste.file.locator, slug)
        if defer and self.defer_delete is not None and path.startswith(loc.S3_PREFIX):
            try:
                self.defer_delete(slug, path)
            except Exception as e:
                log.error("Failed to schedule deletion of %s: %s", path, e)
            return
        try:
            self.storage.delete(slug, path)
        except StorageNotFoundError:
            log.debug("Attachment %s of %s already gone", path, slug)
        except StorageError as e:
            log.error("Failed to delete file %s: %s", path, e)
