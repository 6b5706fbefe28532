"""
Artifact Data Structures

Immutable records describing compiled artifacts and the handles that expose
their bytes within one process.
"""

import hashlib
from dataclasses import dataclass
from typing import Any, Dict, Optional

from vellum.contexts.caching.exceptions import ArtifactDecodeError

HANDLE_SCHEME = "blob:"
LIBRARY_EVICTION_POLICIES = ("unbounded", "fifo", "lru")


@dataclass(frozen=True)
class JobTargetContext:
    """
    Records that content was tailored for a specific job posting.

    Attributes:
        job_url: Posting URL
        job_title: Title of the targeted position
        company_name: Hiring company
        optimized_at: When the content was tailored (metadata only, not hashed)
    """

    job_url: str = ""
    job_title: str = ""
    company_name: str = ""
    optimized_at: Optional[str] = None

    def fingerprint_fields(self) -> Dict[str, str]:
        """Fields that reach the rendered document and therefore the fingerprint."""
        return {
            "job_url": self.job_url,
            "job_title": self.job_title,
            "company_name": self.company_name,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {**self.fingerprint_fields(), "optimized_at": self.optimized_at}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["JobTargetContext"]:
        """Build from a mapping with camelCase or snake_case keys (None -> None)."""
        if not data:
            return None
        aliases = {"jobUrl": "job_url", "jobTitle": "job_title", "companyName": "company_name", "optimizedAt": "optimized_at"}
        normalized = {aliases.get(k, k): v for k, v in data.items()}
        return cls(
            job_url=normalized.get("job_url") or "",
            job_title=normalized.get("job_title") or "",
            company_name=normalized.get("company_name") or "",
            optimized_at=normalized.get("optimized_at"),
        )


@dataclass(frozen=True)
class CompiledArtifact:
    """
    A compiled document. Never mutated; replace with a new instance instead.

    Attributes:
        fingerprint_hash: Fingerprint of the inputs that produced the bytes
        binary_data: PDF bytes
        generated_at: Compilation timestamp
        template_id: Template the document was rendered with
        job_target: Optional job targeting metadata
        page_count: Number of pages (None if unknown)
    """

    fingerprint_hash: str
    binary_data: bytes
    generated_at: str
    template_id: str
    job_target: Optional[JobTargetContext] = None
    page_count: Optional[int] = None

    @property
    def size_bytes(self) -> int:
        return len(self.binary_data)

    def checksum(self) -> str:
        """Full SHA-256 hex digest of the binary data."""
        return hashlib.sha256(self.binary_data).hexdigest()


@dataclass(frozen=True)
class ArtifactHandle:
    """
    Opaque reference to artifact bytes registered in an ArtifactStore arena.

    A handle is only meaningful to the store whose arena issued it, and only
    until that store revokes it. Handles are never persisted.
    """

    arena_id: str
    handle_id: str

    @property
    def uri(self) -> str:
        return f"{HANDLE_SCHEME}{self.arena_id}/{self.handle_id}"

    def __str__(self) -> str:
        return self.uri

    @classmethod
    def parse(cls, uri: str) -> "ArtifactHandle":
        """
        Parse a handle URI of the form "blob:<arena>/<id>".

        Raises:
            ValueError: If the URI is not a handle
        """
        if not uri.startswith(HANDLE_SCHEME) or "/" not in uri:
            raise ValueError(f"Not an artifact handle: {uri}")
        arena_id, handle_id = uri[len(HANDLE_SCHEME):].split("/", 1)
        return cls(arena_id=arena_id, handle_id=handle_id)


@dataclass(frozen=True)
class LibraryEntry:
    """
    A named artifact saved independently of the current-artifact slot.

    Attributes:
        id: Library entry identifier
        name: User-chosen name (e.g., "Draft 1")
        artifact: Saved artifact
        handle: Live handle for the saved bytes
        saved_at: When the entry was created
    """

    id: str
    name: str
    artifact: CompiledArtifact
    handle: ArtifactHandle
    saved_at: str


@dataclass(frozen=True)
class LibraryPolicy:
    """
    Capacity rule for the artifact library.

    Attributes:
        max_entries: Maximum number of entries (None = no limit)
        eviction: "unbounded" (never evict), "fifo" (oldest saved first) or
                  "lru" (least recently accessed first)
    """

    max_entries: Optional[int] = None
    eviction: str = "unbounded"

    def __post_init__(self):
        if self.eviction not in LIBRARY_EVICTION_POLICIES:
            raise ValueError(f"eviction must be one of {LIBRARY_EVICTION_POLICIES}, got: {self.eviction}")
        if self.eviction == "unbounded" and self.max_entries is not None:
            raise ValueError("max_entries requires a 'fifo' or 'lru' eviction policy")
        if self.eviction != "unbounded" and (self.max_entries is None or self.max_entries < 1):
            raise ValueError(f"'{self.eviction}' eviction requires max_entries >= 1")

    @property
    def is_bounded(self) -> bool:
        return self.eviction != "unbounded"


def require_field(record: Dict[str, Any], name: str, key: str, entry_id: Optional[str] = None) -> Any:
    """Fetch a mandatory record field or raise ArtifactDecodeError."""
    if name not in record:
        raise ArtifactDecodeError(key, f"missing field '{name}'", entry_id=entry_id)
    return record[name]
