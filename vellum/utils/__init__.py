"""
Shared utilities for VELLUM.

Common functionality used across contexts:
- Logging setup and render event log
- Configuration loading
- Timestamps
- PDF inspection
"""

from vellum.utils.config import RenderConfig, load_render_config
from vellum.utils.errors import VellumError
from vellum.utils.timestamp import now, now_exact, today

__all__ = ["RenderConfig", "VellumError", "load_render_config", "now", "now_exact", "today"]
