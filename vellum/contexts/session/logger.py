"""
Session context logger.

Provides logging interface for session context with automatic [session] prefix.
All session modules should import from this module, not from utils.logger directly.
"""

from pathlib import Path
from typing import Optional

from loguru import logger

from vellum.utils.config import RenderConfig
from vellum.utils.logger import setup_logger as _setup_logger

CONTEXT_PREFIX = "[session]"


def setup_session_logger(config: RenderConfig, log_dir: Optional[Path] = None, console_level: str = "INFO") -> Optional[Path]:
    """
    Setup logger for a rendering session.

    Configures loguru with provenance tracking and the configured toolchain.

    Args:
        config: Render configuration (recorded in the provenance header)
        log_dir: Directory for this session's log file (None = console only)
        console_level: Minimum level shown on the console

    Returns:
        Path to log file, or None when logging to console only

    Example:
        from vellum.contexts.session.logger import setup_session_logger

        log_file = setup_session_logger(config, log_dir)
    """
    return _setup_logger(
        context_name="session",
        log_dir=log_dir,
        console_level=console_level,
        extra_provenance={
            "LaTeX compiler": config.latex_compiler,
            "Compiler timeout": f"{config.compiler_timeout_s}s",
            "Storage": config.storage_path or "memory",
        },
    )


# Wrapper functions with automatic [session] prefix


def _log_info(message: str) -> None:
    """Log info message with [session] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [session] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [session] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [session] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [session] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


# High-level session-specific logging helpers


def log_state_change(session_id: str, old_state, new_state) -> None:
    _log_debug(f"{session_id}: {old_state.name} -> {new_state.name}")


def log_render_outcome(session_id: str, result) -> None:
    """Log the end of a render request (RenderResult)."""
    if result.failure is not None:
        _log_error(f"{session_id}: render failed [{result.failure.code}] {result.failure.message}")
    elif result.cache_hit:
        _log_info(f"{session_id}: cache hit {result.fingerprint}")
    else:
        _log_success(f"{session_id}: rendered {result.fingerprint}")
