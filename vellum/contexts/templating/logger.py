"""
Templating context logger.

Provides logging interface for templating context with automatic [template] prefix.
All templating modules should import from this module, not from loguru directly.
"""

from loguru import logger

CONTEXT_PREFIX = "[template]"


def _log_info(message: str) -> None:
    """Log info message with [template] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [template] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [template] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


def log_template_fallback(requested_id: str, fallback_id: str) -> None:
    """Log that an unknown template id was replaced by the default template."""
    _log_warning(f"Template '{requested_id}' not found, falling back to '{fallback_id}'")


def log_substitution(template_id: str, filled: int, empty_optional: int, source_chars: int) -> None:
    """Log summary of a completed substitution."""
    _log_debug(
        f"Substituted {filled} placeholders into '{template_id}' "
        f"({empty_optional} optional empty, {source_chars} chars)"
    )
