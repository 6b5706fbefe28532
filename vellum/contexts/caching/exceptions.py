"""Custom exceptions for the caching context."""

from typing import Optional

from vellum.utils.errors import VellumError


class ArtifactDecodeError(VellumError):
    """
    Exception raised when a durable artifact record cannot be decoded.

    Covers malformed JSON, missing fields, invalid base64 and checksum
    mismatches. The artifact store absorbs it as a cache miss.

    Attributes:
        key: Storage key of the record
        reason: What was wrong with the record
        entry_id: Library entry id (for library records)
    """

    def __init__(self, key: str, reason: str, entry_id: Optional[str] = None):
        self.key = key
        self.reason = reason
        self.entry_id = entry_id

        parts = [f"Cannot decode artifact record: {reason}", f"Key: {key}"]
        if entry_id:
            parts.append(f"Library entry: {entry_id}")

        super().__init__("\n".join(parts))


class StorageQuotaExceeded(VellumError):
    """
    Exception raised when a write would exceed the durable storage budget.

    Attributes:
        namespace: Storage namespace being written
        required_bytes: Size the namespace would reach (or the artifact size)
        quota_bytes: Configured limit
    """

    transient = True

    def __init__(self, namespace: str, required_bytes: int, quota_bytes: int, what: str = "storage quota"):
        self.namespace = namespace
        self.required_bytes = required_bytes
        self.quota_bytes = quota_bytes
        super().__init__(
            f"Write to '{namespace}' needs {required_bytes} bytes, exceeding the {what} of {quota_bytes} bytes"
        )


class ArtifactUnavailable(VellumError):
    """Exception raised when an operation needs an artifact that does not exist."""
