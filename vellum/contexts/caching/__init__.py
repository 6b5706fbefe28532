"""
Caching Context

Responsibilities:
- Fingerprints render requests deterministically
- Owns the current compiled artifact, the artifact library and their transient handles
- Persists artifacts as durable text-safe records and restores them after a reload
- Enforces storage quotas and library eviction policies

Owns: Fingerprints, compiled artifacts, handle lifecycle, durable artifact storage
Never: Compiles LaTeX or decides when a render happens
"""

from vellum.contexts.caching.artifact_data_structure import (
    ArtifactHandle,
    CompiledArtifact,
    JobTargetContext,
    LibraryEntry,
    LibraryPolicy,
)
from vellum.contexts.caching.artifact_store import ArtifactStore
from vellum.contexts.caching.exceptions import (
    ArtifactDecodeError,
    ArtifactUnavailable,
    StorageQuotaExceeded,
)
from vellum.contexts.caching.fingerprint import compute_fingerprint
from vellum.contexts.caching.storage import (
    ArtifactStorage,
    MemoryArtifactStorage,
    SqliteArtifactStorage,
    create_storage,
)

__all__ = [
    # Data structures
    "ArtifactHandle",
    "CompiledArtifact",
    "JobTargetContext",
    "LibraryEntry",
    "LibraryPolicy",
    # Store and fingerprinting
    "ArtifactStore",
    "compute_fingerprint",
    # Durable backends
    "ArtifactStorage",
    "MemoryArtifactStorage",
    "SqliteArtifactStorage",
    "create_storage",
    # Failures
    "ArtifactDecodeError",
    "ArtifactUnavailable",
    "StorageQuotaExceeded",
]
