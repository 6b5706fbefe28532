"""
Caching context logger.

Provides logging interface for caching context with automatic [cache] prefix.
All caching modules should import from this module, not from loguru directly.
"""

from loguru import logger

CONTEXT_PREFIX = "[cache]"


def _log_info(message: str) -> None:
    """Log info message with [cache] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [cache] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [cache] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


def log_handle_event(action: str, handle, live_count: int) -> None:
    """Log registration or revocation of a transient handle."""
    _log_debug(f"{action} {handle} ({live_count} live)")


def log_persist_skipped(session_id: str, error: Exception) -> None:
    """Log that persistence was skipped; the in-memory artifact is kept."""
    _log_warning(f"Persistence skipped for session {session_id}: {error}")


def log_decode_failure(error) -> None:
    """Log a corrupt durable record that is being dropped."""
    _log_warning(f"Dropping corrupt record ({error.reason})")
    _log_debug(str(error))


def log_library_eviction(entry_id: str, name: str, policy: str) -> None:
    _log_info(f"Evicted library entry '{name}' ({entry_id}) under {policy} policy")
