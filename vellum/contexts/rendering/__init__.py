"""
Rendering Context

Responsibilities:
- Compiles LaTeX source to PDF bytes with an external TeX engine
- Bounds every compilation by a single deadline and a scoped temporary workspace
- Classifies failures (syntax error, timeout, missing toolchain, unusable workspace)
- Produces optional raster previews

Owns: LaTeX compilation, engine selection, compiler diagnostics
Never: Modifies template content or decides whether a render is needed
"""

from vellum.contexts.rendering.compiler import (
    CompilationOutput,
    CompilationPipeline,
    CompilerBackend,
    check_toolchain,
    detect_engine,
    parse_latex_log,
)
from vellum.contexts.rendering.exceptions import (
    CompilationError,
    CompilationTimeout,
    CompilerSyntaxError,
    ToolchainUnavailable,
    WorkspaceUnavailable,
)

__all__ = [
    # Compilation
    "CompilationPipeline",
    "CompilationOutput",
    "CompilerBackend",
    "check_toolchain",
    "detect_engine",
    "parse_latex_log",
    # Failures
    "CompilationError",
    "CompilerSyntaxError",
    "CompilationTimeout",
    "ToolchainUnavailable",
    "WorkspaceUnavailable",
]
