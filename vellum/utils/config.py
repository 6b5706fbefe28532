"""
Render Configuration

Loads the settings consumed by the rendering and caching contexts: toolchain
executables, compilation timeout, artifact size limits, storage namespace and
quota, and the library eviction policy.

Layers are merged with OmegaConf, later layers overriding earlier ones:
    1. RenderConfig dataclass defaults
    2. Optional YAML file (config_path argument or VELLUM_CONFIG_PATH)
    3. VELLUM_* environment variables (a .env file is honored via python-dotenv)
    4. Explicit keyword overrides

Examples:
    >>> config = load_render_config()
    >>> config = load_render_config(compiler_timeout_s=10, storage_path="outs/cache.db")
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from omegaconf import OmegaConf

load_dotenv()

ENV_PREFIX = "VELLUM_"
LIBRARY_EVICTION_POLICIES = ("unbounded", "fifo", "lru")


@dataclass
class RenderConfig:
    """
    Settings for one rendering deployment.

    Attributes:
        latex_compiler: Executable for the pdflatex engine
        xelatex_compiler: Executable for the xelatex engine
        lualatex_compiler: Executable for the lualatex engine
        preview_converter: Executable used to rasterize PDF pages (pdftoppm)
        preview_dpi: Resolution of raster previews
        max_preview_pages: Number of leading pages rasterized for previews
        compiler_timeout_s: Deadline covering all compiler passes of one render
        num_passes: Compiler passes per render (2 resolves cross-references)
        max_artifact_bytes: Largest artifact that will be persisted
        storage_quota_bytes: Byte budget of the durable storage namespace
        storage_namespace: Prefix for every durable storage key
        storage_path: SQLite file for durable storage (None = in-memory)
        library_max_entries: Library capacity (None = unbounded)
        library_eviction: "unbounded", "fifo" or "lru"
        default_template_id: Template used when a requested id is unknown
        print_command: Executable that sends a PDF to the system printer
        workspace_root: Parent directory for per-render scratch workspaces
        logs_path: Directory for session log files (None = console only)
        events_file: JSON Lines render-event log (None = disabled)
    """

    latex_compiler: str = "pdflatex"
    xelatex_compiler: str = "xelatex"
    lualatex_compiler: str = "lualatex"
    preview_converter: str = "pdftoppm"
    preview_dpi: int = 110
    max_preview_pages: int = 2
    compiler_timeout_s: float = 30.0
    num_passes: int = 2
    max_artifact_bytes: int = 5 * 1024 * 1024
    storage_quota_bytes: int = 10 * 1024 * 1024
    storage_namespace: str = "vellum"
    storage_path: Optional[str] = None
    library_max_entries: Optional[int] = None
    library_eviction: str = "unbounded"
    default_template_id: str = "classic"
    print_command: str = "lp"
    workspace_root: Optional[str] = None
    logs_path: Optional[str] = None
    events_file: Optional[str] = None

    def __post_init__(self):
        if self.compiler_timeout_s <= 0:
            raise ValueError(f"compiler_timeout_s must be positive, got: {self.compiler_timeout_s}")
        if self.num_passes < 1:
            raise ValueError(f"num_passes must be at least 1, got: {self.num_passes}")
        if self.library_eviction not in LIBRARY_EVICTION_POLICIES:
            raise ValueError(
                f"library_eviction must be one of {LIBRARY_EVICTION_POLICIES}, "
                f"got: {self.library_eviction}"
            )
        if self.library_max_entries is not None and self.library_max_entries < 1:
            raise ValueError(
                f"library_max_entries must be at least 1 or None, got: {self.library_max_entries}"
            )
        if (self.library_max_entries is None) != (self.library_eviction == "unbounded"):
            raise ValueError(
                "library_max_entries must be set exactly when library_eviction is 'fifo' or 'lru'"
            )

    def engine_executable(self, engine: str) -> str:
        """
        Map a TeX engine name to its configured executable.

        Args:
            engine: "pdflatex", "xelatex" or "lualatex"

        Returns:
            Executable name or path

        Raises:
            ValueError: If engine is not recognized
        """
        executables = {
            "pdflatex": self.latex_compiler,
            "xelatex": self.xelatex_compiler,
            "lualatex": self.lualatex_compiler,
        }
        if engine not in executables:
            raise ValueError(f"Unknown TeX engine '{engine}'. Valid engines: {list(executables)}")
        return executables[engine]


def _env_overrides() -> Dict[str, str]:
    """Collect non-empty VELLUM_<FIELD> environment variables."""
    overrides = {}
    for config_field in fields(RenderConfig):
        value = os.getenv(f"{ENV_PREFIX}{config_field.name.upper()}")
        if value:
            overrides[config_field.name] = value
    return overrides


def load_render_config(config_path: Optional[Path] = None, **overrides: Any) -> RenderConfig:
    """
    Load render configuration from defaults, YAML, environment and overrides.

    Args:
        config_path: Optional YAML file (defaults to VELLUM_CONFIG_PATH if set)
        **overrides: Field values that win over every other layer

    Returns:
        Validated RenderConfig

    Raises:
        FileNotFoundError: If an explicit config file does not exist
        omegaconf.errors.ValidationError: If a value has the wrong type
        omegaconf.errors.ConfigKeyError: If a YAML key is not a known setting
        ValueError: If a value is out of range
    """
    layers = [OmegaConf.structured(RenderConfig)]

    if config_path is None and os.getenv("VELLUM_CONFIG_PATH"):
        config_path = Path(os.getenv("VELLUM_CONFIG_PATH"))

    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Render config not found: {config_path}")
        layers.append(OmegaConf.load(config_path))

    env = _env_overrides()
    if env:
        layers.append(OmegaConf.create(env))

    if overrides:
        # Paths are stored as strings
        overrides = {k: str(v) if isinstance(v, Path) else v for k, v in overrides.items()}
        layers.append(OmegaConf.create(overrides))

    merged = OmegaConf.merge(*layers)
    return OmegaConf.to_object(merged)
