"""
Rendering context logger.

Provides logging interface for rendering context with automatic [render] prefix.
All rendering modules should import from this module, not from loguru directly.
"""

from loguru import logger

CONTEXT_PREFIX = "[render]"


# Wrapper functions with automatic [render] prefix


def _log_info(message: str) -> None:
    """Log info message with [render] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [render] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [render] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [render] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [render] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


# High-level rendering-specific logging helpers


def log_compilation_start(engine: str, executable: str, num_passes: int, workspace) -> None:
    """Log start of compilation with context."""
    _log_info(f"Starting compilation with {engine}")
    _log_debug(f"  Executable: {executable}")
    _log_debug(f"  Passes: {num_passes}")
    _log_debug(f"  Workspace: {workspace}")


def log_compilation_success(engine: str, warnings: list, page_count, size_bytes: int, elapsed_time: float) -> None:
    """Log a successful compilation; warnings go to debug level."""
    pages = f"{page_count} pages" if page_count is not None else "unknown page count"
    _log_success(f"Compilation succeeded: {pages}, {size_bytes} bytes ({elapsed_time:.2f}s)")

    if warnings:
        _log_warning(f"{len(warnings)} warnings detected")
        for i, warn in enumerate(warnings[:3], 1):
            _log_debug(f"  Warning {i}: {warn}")
        if len(warnings) > 3:
            _log_debug(f"  ... and {len(warnings) - 3} more warnings")


def log_compilation_failure(error, elapsed_time: float, output: str = "") -> None:
    """
    Log a failed compilation with diagnostics.

    Raw compiler output is written at debug level only.

    Args:
        error: The CompilationError being raised
        elapsed_time: Time spent before the failure
        output: Combined compiler stdout/stderr
    """
    _log_error(f"Compilation failed: {type(error).__name__} ({elapsed_time:.2f}s)")
    for line in str(error).splitlines():
        _log_debug(f"  {line}")

    # Use opt(raw=True) to bypass format template and preserve original formatting
    if output:
        logger.opt(raw=True).debug(f"\n{'=' * 80}\nCOMPILER OUTPUT:\n{'=' * 80}\n{output}\n")
