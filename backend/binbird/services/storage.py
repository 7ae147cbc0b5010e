from __future__ import annotations

import copy
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Callable, Generator, Iterator, Protocol, Sequence, TypeVar

from binbird.core.logging import get_logger


_logger = get_logger(__name__)

T = TypeVar("T")

SESSION_BACKEND = "session"
LOCAL_BACKEND = "local"


class StorageError(RuntimeError):
    """Raised by a key-value backend that cannot serve a request."""


class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Process-local key-value storage, the equivalent of a browser tab session."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class SqliteStorage:
    """Durable key-value storage in SQLite, partitioned by namespace."""

    def __init__(self, db_path: Path, namespace: str = "default") -> None:
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._namespace = namespace
        self._lock = Lock()
        self._ensure_schema()

    def scoped(self, namespace: str) -> "SqliteStorage":
        """
        Return a view of the same database under another namespace.

        Views share this instance's lock and skip schema setup.
        """
        view = copy.copy(self)
        view._namespace = namespace
        return view

    @contextmanager
    def _connect(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            conn = sqlite3.connect(self._db_path, check_same_thread=False)
        except sqlite3.Error as exc:
            raise StorageError(f"Unable to open {self._db_path}: {exc}") from exc
        try:
            yield conn
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_items (
                    namespace TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    PRIMARY KEY (namespace, key)
                )
                """
            )
            conn.commit()

    def get_item(self, key: str) -> str | None:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM kv_items WHERE namespace = ? AND key = ?",
                (self._namespace, key),
            ).fetchone()
        return row[0] if row else None

    def set_item(self, key: str, value: str) -> None:
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                INSERT INTO kv_items (namespace, key, value) VALUES (?, ?, ?)
                ON CONFLICT(namespace, key) DO UPDATE SET value=excluded.value
                """,
                (self._namespace, key, value),
            )
            conn.commit()

    def remove_item(self, key: str) -> None:
        with self._lock, self._connect() as conn:
            conn.execute(
                "DELETE FROM kv_items WHERE namespace = ? AND key = ?",
                (self._namespace, key),
            )
            conn.commit()


@dataclass(frozen=True, slots=True)
class StorageSlot:
    name: str
    storage: KeyValueStorage


class StorageBackends:
    """
    Ordered set of candidate backends, highest priority first.

    A slot holding ``None`` stands for a backend the environment does not
    offer and is skipped without complaint.
    """

    def __init__(
        self, candidates: Sequence[tuple[str, KeyValueStorage | None]]
    ) -> None:
        self._slots = [
            StorageSlot(name, storage)
            for name, storage in candidates
            if storage is not None
        ]
        if len(self._slots) < len(candidates):
            _logger.debug(
                "Storage backends unavailable",
                missing=[name for name, storage in candidates if storage is None],
            )

    @classmethod
    def default(
        cls,
        session: KeyValueStorage | None,
        local: KeyValueStorage | None,
    ) -> "StorageBackends":
        return cls([(SESSION_BACKEND, session), (LOCAL_BACKEND, local)])

    def __iter__(self) -> Iterator[StorageSlot]:
        return iter(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def __getitem__(self, index: int) -> StorageSlot:
        return self._slots[index]

    def get(self, name: str) -> KeyValueStorage | None:
        for slot in self._slots:
            if slot.name == name:
                return slot.storage
        return None


class ReplicatedItem:
    """
    One key mirrored across every available backend.

    Reads return the first copy ``parse`` accepts and back-fill the
    higher-priority backends that lacked it. Writes and removals go to every
    backend. Backend failures are logged and skipped, never raised.
    """

    def __init__(self, backends: StorageBackends, key: str) -> None:
        self._backends = backends
        self.key = key

    def read(self, parse: Callable[[str], T | None]) -> T | None:
        for index, slot in enumerate(self._backends):
            try:
                raw = slot.storage.get_item(self.key)
            except StorageError as exc:
                _logger.warning(
                    "Storage read failed", key=self.key, backend=slot.name, error=str(exc)
                )
                continue
            if not raw:
                continue
            parsed = parse(raw)
            if parsed is None:
                continue
            if index > 0:
                self._backfill(index, raw)
            return parsed
        return None

    def write(self, raw: str) -> int:
        written = 0
        for slot in self._backends:
            try:
                slot.storage.set_item(self.key, raw)
            except StorageError as exc:
                _logger.warning(
                    "Storage write failed", key=self.key, backend=slot.name, error=str(exc)
                )
                continue
            written += 1
        return written

    def remove(self) -> None:
        for slot in self._backends:
            try:
                slot.storage.remove_item(self.key)
            except StorageError as exc:
                _logger.warning(
                    "Storage clear failed", key=self.key, backend=slot.name, error=str(exc)
                )

    def _backfill(self, found_at: int, raw: str) -> None:
        for position, slot in enumerate(self._backends):
            if position >= found_at:
                break
            try:
                slot.storage.set_item(self.key, raw)
            except StorageError as exc:
                _logger.warning(
                    "Storage back-fill failed",
                    key=self.key,
                    backend=slot.name,
                    error=str(exc),
                )
                continue
            _logger.debug("Storage back-filled", key=self.key, backend=slot.name)
