"""
Artifact Store

Owns the compiled artifacts of one session:

- the current artifact and its fingerprint
- a named library of saved artifacts, independent of the current slot
- an arena of transient handles exposing artifact bytes in this process
- durable text-safe records (base64 + SHA-256 checksum) in an ArtifactStorage

Handles live only as long as the arena entry they point to. Only the store
registers or revokes them, and they are never persisted: restore() always
issues fresh handles.

Persisted layout:
    <namespace>:current:<session_id>  -> JSON artifact record
    <namespace>:library:<session_id>  -> JSON list of library records
"""

import base64
import binascii
import json
import uuid
from collections import OrderedDict
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from vellum.contexts.caching.artifact_data_structure import (
    ArtifactHandle,
    CompiledArtifact,
    JobTargetContext,
    LibraryEntry,
    LibraryPolicy,
    require_field,
)
from vellum.contexts.caching.exceptions import (
    ArtifactDecodeError,
    ArtifactUnavailable,
    StorageQuotaExceeded,
)
from vellum.contexts.caching.logger import (
    _log_debug,
    _log_info,
    log_decode_failure,
    log_handle_event,
    log_library_eviction,
    log_persist_skipped,
)
from vellum.contexts.caching.storage import ArtifactStorage, MemoryArtifactStorage
from vellum.utils.config import RenderConfig
from vellum.utils.event_logging import log_render_event
from vellum.utils.timestamp import now_exact

RECORD_VERSION = 1


class ArtifactStore:
    """
    Current artifact, library and handle arena for one session.

    Example:
        >>> store = ArtifactStore("sess-1", MemoryArtifactStorage())
        >>> handle = store.set_current_artifact(artifact)
        >>> bytes(store.resolve(handle)) == artifact.binary_data
        True
        >>> store.persist()
        True
    """

    def __init__(
        self,
        session_id: str,
        storage: ArtifactStorage = None,
        namespace: str = "vellum",
        max_artifact_bytes: Optional[int] = None,
        library_policy: LibraryPolicy = None,
        events_file: Optional[Path] = None,
    ):
        """
        Initialize an empty store.

        Args:
            session_id: Identity used in durable storage keys
            storage: Durable backend (defaults to unlimited in-memory storage)
            namespace: Prefix of every durable key
            max_artifact_bytes: Largest artifact persist() will write (None = no limit)
            library_policy: Library capacity and eviction rule
            events_file: JSON Lines render-event log (None = disabled)
        """
        self.session_id = session_id
        self.storage = storage if storage is not None else MemoryArtifactStorage()
        self.namespace = namespace
        self.max_artifact_bytes = max_artifact_bytes
        self.library_policy = library_policy or LibraryPolicy()
        self.events_file = events_file

        # Each store instance is its own arena; handles from other arenas never resolve
        self.arena_id = uuid.uuid4().hex
        self._arena: Dict[str, bytes] = {}

        self._current: Optional[CompiledArtifact] = None
        self._current_handle: Optional[ArtifactHandle] = None
        self._fingerprint: Optional[str] = None
        self._library: "OrderedDict[str, LibraryEntry]" = OrderedDict()

    @classmethod
    def from_config(cls, session_id: str, storage: ArtifactStorage, config: RenderConfig) -> "ArtifactStore":
        """Build a store with limits and policy taken from configuration."""
        return cls(
            session_id=session_id,
            storage=storage,
            namespace=config.storage_namespace,
            max_artifact_bytes=config.max_artifact_bytes,
            library_policy=LibraryPolicy(
                max_entries=config.library_max_entries, eviction=config.library_eviction
            ),
            events_file=Path(config.events_file) if config.events_file else None,
        )

    # ------------------------------------------------------------------
    # Storage keys
    # ------------------------------------------------------------------

    @property
    def current_key(self) -> str:
        return f"{self.namespace}:current:{self.session_id}"

    @property
    def library_key(self) -> str:
        return f"{self.namespace}:library:{self.session_id}"

    # ------------------------------------------------------------------
    # Handle arena
    # ------------------------------------------------------------------

    def _register(self, data: bytes) -> ArtifactHandle:
        handle = ArtifactHandle(arena_id=self.arena_id, handle_id=uuid.uuid4().hex)
        self._arena[handle.handle_id] = data
        log_handle_event("Registered", handle, len(self._arena))
        return handle

    def _revoke(self, handle: Optional[ArtifactHandle]) -> None:
        if handle is None or handle.arena_id != self.arena_id:
            return
        if self._arena.pop(handle.handle_id, None) is not None:
            log_handle_event("Revoked", handle, len(self._arena))

    def is_live(self, handle: Optional[ArtifactHandle]) -> bool:
        """True if handle was issued by this store and has not been revoked."""
        return handle is not None and handle.arena_id == self.arena_id and handle.handle_id in self._arena

    def resolve(self, handle: Optional[ArtifactHandle]) -> Optional[memoryview]:
        """
        Borrow the bytes behind a handle.

        Args:
            handle: Handle issued by this store

        Returns:
            Read-only view of the artifact bytes, or None if the handle is not live
        """
        if not self.is_live(handle):
            return None
        self._touch_library_handle(handle)
        return memoryview(self._arena[handle.handle_id])

    @property
    def live_handle_count(self) -> int:
        return len(self._arena)

    # ------------------------------------------------------------------
    # Current artifact
    # ------------------------------------------------------------------

    @property
    def current_artifact(self) -> Optional[CompiledArtifact]:
        return self._current

    @property
    def current_handle(self) -> Optional[ArtifactHandle]:
        return self._current_handle

    @property
    def current_fingerprint(self) -> Optional[str]:
        return self._fingerprint

    def set_current_artifact(self, artifact: CompiledArtifact) -> ArtifactHandle:
        """
        Make artifact the current one.

        Registers a fresh handle for its bytes and revokes the previous
        current handle. The stored fingerprint becomes artifact.fingerprint_hash.

        Args:
            artifact: Newly compiled (or restored) artifact

        Returns:
            Handle to the new current artifact
        """
        previous = self._current_handle
        self._current = artifact
        self._current_handle = self._register(artifact.binary_data)
        self._fingerprint = artifact.fingerprint_hash
        self._revoke(previous)
        return self._current_handle

    def is_cache_valid(self, fingerprint: Optional[str], handle: Optional[ArtifactHandle]) -> bool:
        """
        Decide whether a render request can reuse the stored artifact.

        Args:
            fingerprint: Fingerprint of the latest snapshot
            handle: Handle the caller holds

        Returns:
            True iff fingerprint equals the stored fingerprint and handle is live
        """
        return fingerprint is not None and fingerprint == self._fingerprint and self.is_live(handle)

    # ------------------------------------------------------------------
    # Library
    # ------------------------------------------------------------------

    def _touch_library_handle(self, handle: ArtifactHandle) -> None:
        if self.library_policy.eviction != "lru":
            return
        for entry_id, entry in self._library.items():
            if entry.handle == handle:
                self._library.move_to_end(entry_id)
                return

    def _enforce_library_policy(self) -> None:
        policy = self.library_policy
        if not policy.is_bounded:
            return
        # Both fifo and lru evict from the front; lru moves entries to the back on access
        while len(self._library) > policy.max_entries:
            _, evicted = self._library.popitem(last=False)
            self._revoke(evicted.handle)
            log_library_eviction(evicted.id, evicted.name, policy.eviction)

    def save_to_library(self, name: str, job_target: Optional[JobTargetContext] = None) -> str:
        """
        Copy the current artifact into a new named library entry.

        The entry has its own handle and is unaffected by later changes to
        the current slot.

        Args:
            name: Display name of the entry
            job_target: Job targeting metadata to attach (defaults to the artifact's own)

        Returns:
            Id of the new entry

        Raises:
            ArtifactUnavailable: If there is no current artifact
        """
        if self._current is None:
            raise ArtifactUnavailable("No current artifact to save to the library")

        artifact = self._current
        if job_target is not None:
            artifact = replace(artifact, job_target=job_target)

        entry = LibraryEntry(
            id=uuid.uuid4().hex,
            name=name,
            artifact=artifact,
            handle=self._register(artifact.binary_data),
            saved_at=now_exact(),
        )
        self._library[entry.id] = entry
        _log_info(f"Saved '{name}' to library ({entry.id})")
        self._enforce_library_policy()
        return entry.id

    def delete_from_library(self, entry_id: str) -> bool:
        """
        Remove a library entry and revoke its handle.

        Returns:
            True if the entry existed
        """
        entry = self._library.pop(entry_id, None)
        if entry is None:
            return False
        self._revoke(entry.handle)
        _log_info(f"Deleted '{entry.name}' from library ({entry_id})")
        return True

    def library_entries(self) -> List[LibraryEntry]:
        """Library entries in eviction order (next to be evicted first)."""
        return list(self._library.values())

    def get_library_entry(self, entry_id: str) -> Optional[LibraryEntry]:
        entry = self._library.get(entry_id)
        if entry is not None and self.library_policy.eviction == "lru":
            self._library.move_to_end(entry_id)
        return entry

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def clear_all(self) -> None:
        """
        Revoke every live handle and forget the stored fingerprint.

        Durable records are left in storage so a later restore() can
        reconstruct them; use purge_persisted() to remove those.
        """
        revoked = len(self._arena)
        self._arena.clear()
        self._current = None
        self._current_handle = None
        self._fingerprint = None
        self._library.clear()
        _log_debug(f"Cleared store for session {self.session_id} ({revoked} handles revoked)")

    def purge_persisted(self) -> None:
        """Delete this session's durable records."""
        self.storage.delete(self.current_key)
        self.storage.delete(self.library_key)

    # ------------------------------------------------------------------
    # Durable encoding
    # ------------------------------------------------------------------

    def _encode_artifact(self, artifact: CompiledArtifact) -> Dict[str, Any]:
        if self.max_artifact_bytes is not None and artifact.size_bytes > self.max_artifact_bytes:
            raise StorageQuotaExceeded(
                self.namespace, artifact.size_bytes, self.max_artifact_bytes, what="artifact size limit"
            )
        return {
            "version": RECORD_VERSION,
            "fingerprint_hash": artifact.fingerprint_hash,
            "template_id": artifact.template_id,
            "generated_at": artifact.generated_at,
            "job_target": artifact.job_target.to_dict() if artifact.job_target else None,
            "page_count": artifact.page_count,
            "checksum": artifact.checksum(),
            "encoded_binary": base64.b64encode(artifact.binary_data).decode("ascii"),
        }

    def _decode_artifact(self, record: Any, key: str, entry_id: Optional[str] = None) -> CompiledArtifact:
        """
        Decode an artifact record.

        Raises:
            ArtifactDecodeError: On a malformed record, invalid base64 or checksum mismatch
        """
        if not isinstance(record, dict):
            raise ArtifactDecodeError(key, "record is not an object", entry_id=entry_id)

        encoded = require_field(record, "encoded_binary", key, entry_id)
        checksum = require_field(record, "checksum", key, entry_id)
        if not isinstance(encoded, str):
            raise ArtifactDecodeError(key, "encoded_binary is not a string", entry_id=entry_id)

        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ArtifactDecodeError(key, f"invalid base64 ({e})", entry_id=entry_id) from e

        job_target_data = record.get("job_target")
        if job_target_data is not None and not isinstance(job_target_data, dict):
            raise ArtifactDecodeError(key, "job_target is not an object", entry_id=entry_id)

        artifact = CompiledArtifact(
            fingerprint_hash=str(require_field(record, "fingerprint_hash", key, entry_id)),
            binary_data=data,
            generated_at=str(record.get("generated_at") or ""),
            template_id=str(require_field(record, "template_id", key, entry_id)),
            job_target=JobTargetContext.from_dict(job_target_data),
            page_count=record.get("page_count"),
        )
        if artifact.checksum() != checksum:
            raise ArtifactDecodeError(key, "checksum mismatch", entry_id=entry_id)
        return artifact

    def _library_records(self) -> List[Dict[str, Any]]:
        return [
            {"id": entry.id, "name": entry.name, "saved_at": entry.saved_at, **self._encode_artifact(entry.artifact)}
            for entry in self._library.values()
        ]

    def persist(self) -> bool:
        """
        Write the current artifact and the library to durable storage.

        Both records are written together. A quota or artifact-size violation
        is logged and absorbed: neither record is written and the in-memory
        state is untouched.

        Returns:
            True if both records were written, False if persistence was skipped
        """
        try:
            current = None if self._current is None else json.dumps(self._encode_artifact(self._current))
            self.storage.set_many(
                {
                    self.current_key: current,
                    self.library_key: json.dumps(self._library_records()),
                }
            )
        except StorageQuotaExceeded as e:
            log_persist_skipped(self.session_id, e)
            log_render_event(
                self.events_file,
                event_type="persist_skipped",
                session_id=self.session_id,
                source="cache",
                required_bytes=e.required_bytes,
                quota_bytes=e.quota_bytes,
            )
            return False

        _log_debug(f"Persisted session {self.session_id} ({len(self._library)} library entries)")
        return True

    def _load_current(self) -> Optional[CompiledArtifact]:
        raw = self.storage.get(self.current_key)
        if raw is None:
            return None
        try:
            try:
                record = json.loads(raw)
            except json.JSONDecodeError as e:
                raise ArtifactDecodeError(self.current_key, f"invalid JSON ({e.msg})") from e
            return self._decode_artifact(record, self.current_key)
        except ArtifactDecodeError as e:
            log_decode_failure(e)
            self._log_decode_event(e)
            self.storage.delete(self.current_key)
            return None

    def _load_library(self) -> List[LibraryEntry]:
        raw = self.storage.get(self.library_key)
        if raw is None:
            return []

        try:
            records = json.loads(raw)
            if not isinstance(records, list):
                raise ArtifactDecodeError(self.library_key, "library record is not a list")
        except json.JSONDecodeError as e:
            error = ArtifactDecodeError(self.library_key, f"invalid JSON ({e.msg})")
            log_decode_failure(error)
            self._log_decode_event(error)
            self.storage.delete(self.library_key)
            return []
        except ArtifactDecodeError as e:
            log_decode_failure(e)
            self._log_decode_event(e)
            self.storage.delete(self.library_key)
            return []

        entries = []
        dropped = 0
        for record in records:
            entry_id = record.get("id") if isinstance(record, dict) else None
            try:
                artifact = self._decode_artifact(record, self.library_key, entry_id=entry_id)
                if not entry_id:
                    raise ArtifactDecodeError(self.library_key, "missing field 'id'")
            except ArtifactDecodeError as e:
                log_decode_failure(e)
                self._log_decode_event(e)
                dropped += 1
                continue
            entries.append(
                LibraryEntry(
                    id=str(entry_id),
                    name=str(record.get("name") or ""),
                    artifact=artifact,
                    handle=self._register(artifact.binary_data),
                    saved_at=str(record.get("saved_at") or ""),
                )
            )

        if dropped:
            # Rewrite without the corrupt entries; the list only shrinks
            remaining = [r for r in records if isinstance(r, dict) and r.get("id") in {e.id for e in entries}]
            try:
                self.storage.set(self.library_key, json.dumps(remaining))
            except StorageQuotaExceeded as e:
                log_persist_skipped(self.session_id, e)
        return entries

    def _log_decode_event(self, error: ArtifactDecodeError) -> None:
        log_render_event(
            self.events_file,
            event_type="decode_failed",
            session_id=self.session_id,
            source="cache",
            key=error.key,
            reason=error.reason,
            entry_id=error.entry_id,
        )

    def restore(self) -> Optional[ArtifactHandle]:
        """
        Rebuild the current artifact and library from durable storage.

        Every restored artifact gets a fresh handle. Corrupt records are
        dropped (from memory and storage) and treated as cache misses.

        Returns:
            Handle of the restored current artifact, or None if there was no
            usable current record
        """
        for entry in self._library.values():
            self._revoke(entry.handle)
        self._library = OrderedDict((entry.id, entry) for entry in self._load_library())
        self._enforce_library_policy()

        artifact = self._load_current()
        if artifact is None:
            return None

        handle = self.set_current_artifact(artifact)
        _log_info(f"Restored artifact {artifact.fingerprint_hash} for session {self.session_id}")
        return handle
