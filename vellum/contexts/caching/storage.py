"""
Durable Artifact Storage

Key/value backends for persisted artifact records. Keys have the form
"<namespace>:<kind>:<session_id>" and every namespace has a byte quota
(key plus value, UTF-8 encoded) enforced on write.

Backends:
- MemoryArtifactStorage: dict-backed, survives store re-creation within a process
- SqliteArtifactStorage: single-table SQLite file, survives process restarts
"""

import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from vellum.contexts.caching.exceptions import StorageQuotaExceeded
from vellum.utils.config import RenderConfig
from vellum.utils.timestamp import now_exact


def namespace_of(key: str) -> str:
    return key.split(":", 1)[0]


def entry_size(key: str, value: str) -> int:
    """Bytes charged against the quota for one record."""
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class ArtifactStorage(ABC):
    """
    Durable key/value storage with a per-namespace byte quota.

    Attributes:
        quota_bytes: Byte budget of each namespace (None = unlimited)
    """

    def __init__(self, quota_bytes: Optional[int] = None):
        self.quota_bytes = quota_bytes

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Stored value, or None if absent."""

    @abstractmethod
    def _write_many(self, items: Dict[str, Optional[str]]) -> None:
        """Apply upserts (and deletions for None values) all together or not at all."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove a key. Returns True if it existed."""

    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        """Stored keys starting with prefix, sorted."""

    @abstractmethod
    def usage_bytes(self, namespace: str, exclude_keys: Iterable[str] = ()) -> int:
        """Bytes used by a namespace, ignoring exclude_keys."""

    def set(self, key: str, value: str) -> None:
        """
        Store a value, replacing any previous value of the key.

        Raises:
            StorageQuotaExceeded: If the namespace would exceed quota_bytes
                                  (nothing is written)
        """
        self.set_many({key: value})

    def set_many(self, items: Dict[str, Optional[str]]) -> None:
        """
        Write several keys as one unit; a None value deletes its key.

        The quota is checked against the combined result before anything is
        written.

        Raises:
            StorageQuotaExceeded: If any namespace would exceed quota_bytes
                                  (nothing is written)
        """
        if self.quota_bytes is not None:
            for namespace in sorted({namespace_of(key) for key in items}):
                keys = [key for key in items if namespace_of(key) == namespace]
                required = self.usage_bytes(namespace, exclude_keys=keys) + sum(
                    entry_size(key, items[key]) for key in keys if items[key] is not None
                )
                if required > self.quota_bytes:
                    raise StorageQuotaExceeded(namespace, required, self.quota_bytes)
        self._write_many(items)

    def close(self) -> None:
        """Release backend resources."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class MemoryArtifactStorage(ArtifactStorage):
    """Dict-backed storage (tests and single-process deployments)."""

    def __init__(self, quota_bytes: Optional[int] = None):
        super().__init__(quota_bytes)
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def _write_many(self, items: Dict[str, Optional[str]]) -> None:
        for key, value in items.items():
            if value is None:
                self._data.pop(key, None)
            else:
                self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self, prefix: str = "") -> List[str]:
        return sorted(key for key in self._data if key.startswith(prefix))

    def usage_bytes(self, namespace: str, exclude_keys: Iterable[str] = ()) -> int:
        excluded = set(exclude_keys)
        return sum(
            entry_size(key, value)
            for key, value in self._data.items()
            if namespace_of(key) == namespace and key not in excluded
        )


class SqliteArtifactStorage(ArtifactStorage):
    """
    SQLite-backed storage.

    The database file and its table are created on first use; reopening the
    same path sees every record written before.
    """

    def __init__(self, db_path: Path, quota_bytes: Optional[int] = None):
        """
        Open (or create) the storage database.

        Args:
            db_path: Path to SQLite database file
            quota_bytes: Byte budget of each namespace (None = unlimited)
        """
        super().__init__(quota_bytes)
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.conn = sqlite3.connect(str(self.db_path))
        self.conn.row_factory = sqlite3.Row  # Enable column access by name
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS artifact_records (
                key TEXT PRIMARY KEY,
                namespace TEXT NOT NULL,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """
        )
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_namespace ON artifact_records(namespace)")
        self.conn.commit()

    def get(self, key: str) -> Optional[str]:
        row = self.conn.execute("SELECT value FROM artifact_records WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def _write_many(self, items: Dict[str, Optional[str]]) -> None:
        updated_at = now_exact()
        # Connection context manager commits on success, rolls back on error
        with self.conn:
            for key, value in items.items():
                if value is None:
                    self.conn.execute("DELETE FROM artifact_records WHERE key = ?", (key,))
                    continue
                self.conn.execute(
                    """
                    INSERT INTO artifact_records (key, namespace, value, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                    (key, namespace_of(key), value, updated_at),
                )

    def delete(self, key: str) -> bool:
        cursor = self.conn.execute("DELETE FROM artifact_records WHERE key = ?", (key,))
        self.conn.commit()
        return cursor.rowcount > 0

    def keys(self, prefix: str = "") -> List[str]:
        rows = self.conn.execute("SELECT key FROM artifact_records ORDER BY key").fetchall()
        return [row["key"] for row in rows if row["key"].startswith(prefix)]

    def usage_bytes(self, namespace: str, exclude_keys: Iterable[str] = ()) -> int:
        excluded = list(exclude_keys)
        query = """
            SELECT COALESCE(SUM(LENGTH(CAST(key AS BLOB)) + LENGTH(CAST(value AS BLOB))), 0) AS used
            FROM artifact_records
            WHERE namespace = ?
        """
        if excluded:
            query += f" AND key NOT IN ({', '.join('?' * len(excluded))})"
        row = self.conn.execute(query, (namespace, *excluded)).fetchone()
        return row["used"]

    def close(self) -> None:
        self.conn.close()


def create_storage(config: RenderConfig) -> ArtifactStorage:
    """
    Build the durable backend selected by configuration.

    Args:
        config: Render configuration (storage_path None selects memory storage)

    Returns:
        ArtifactStorage with config.storage_quota_bytes as its quota
    """
    if config.storage_path is None:
        return MemoryArtifactStorage(quota_bytes=config.storage_quota_bytes)
    return SqliteArtifactStorage(Path(config.storage_path), quota_bytes=config.storage_quota_bytes)
