"""
LaTeX Compilation Module

Compiles LaTeX source to PDF bytes with an external TeX engine. Every call
runs in its own temporary workspace that is removed on every exit path, and
all passes of one call share a single deadline.
"""

import asyncio
import re
import shutil
import tempfile
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from vellum.contexts.rendering.exceptions import (
    CompilationError,
    CompilationTimeout,
    CompilerSyntaxError,
    ToolchainUnavailable,
    WorkspaceUnavailable,
)
from vellum.contexts.rendering.logger import (
    _log_debug,
    _log_warning,
    log_compilation_failure,
    log_compilation_start,
    log_compilation_success,
)
from vellum.utils.config import RenderConfig, load_render_config
from vellum.utils.pdf_processing import page_count

JOB_NAME = "resume"
LATEX_FLAGS = ("-interaction=nonstopmode", "-halt-on-error", "-file-line-error")
DEFAULT_ENGINE = "pdflatex"

# Packages that only work under xelatex/lualatex
XELATEX_PACKAGES = re.compile(r"\\usepackage(?:\[[^\]]*\])?\{[^}]*\b(?:fontspec|polyglossia|xunicode|xltxtra)\b")
LUALATEX_MARKERS = re.compile(r"\\directlua|\\usepackage(?:\[[^\]]*\])?\{[^}]*\bluacode\b")


@dataclass
class CompilationOutput:
    """
    Result of a successful compilation.

    Attributes:
        pdf_bytes: The compiled document
        engine: Engine that produced it
        previews: PNG bytes of the leading pages (empty unless requested)
        warnings: Parsed LaTeX warnings
        page_count: Number of pages (None if the PDF could not be inspected)
        elapsed_s: Wall time of the whole call
    """

    pdf_bytes: bytes
    engine: str
    previews: List[bytes] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    page_count: Optional[int] = None
    elapsed_s: float = 0.0


def detect_engine(source: str, default: str = DEFAULT_ENGINE) -> str:
    """
    Pick the TeX engine a document needs from its preamble.

    Args:
        source: LaTeX source
        default: Engine used when nothing engine-specific is found

    Returns:
        "xelatex", "lualatex" or default
    """
    if LUALATEX_MARKERS.search(source):
        return "lualatex"
    if XELATEX_PACKAGES.search(source):
        return "xelatex"
    return default


def parse_latex_log(log_content: str) -> Tuple[List[str], List[str]]:
    """
    Parse LaTeX log file for errors and warnings.

    Args:
        log_content: Content of the .log file

    Returns:
        Tuple of (errors, warnings)
    """
    errors = []
    warnings = []

    # LaTeX error pattern: "! Error message"
    error_pattern = re.compile(r"^! (.+)$", re.MULTILINE)
    for match in error_pattern.finditer(log_content):
        errors.append(match.group(1).strip())

    # -file-line-error style: "./resume.tex:12: Undefined control sequence."
    file_line_pattern = re.compile(r"^\S*\.tex:(\d+): (.+)$", re.MULTILINE)
    for match in file_line_pattern.finditer(log_content):
        message = f"line {match.group(1)}: {match.group(2).strip()}"
        if match.group(2).strip() not in errors:
            errors.append(message)

    # Additional error patterns that don't start with "!"
    additional_error_patterns = [
        r"File ended while scanning use of",
        r"Emergency stop",
    ]
    for pattern in additional_error_patterns:
        match = re.search(rf"({pattern}.*?)$", log_content, re.MULTILINE)
        if match and not any(match.group(1) in err for err in errors):
            errors.append(match.group(1))

    # Common warning patterns
    warning_patterns = [
        r"LaTeX Warning: (.+)",
        r"Package \w+ Warning: (.+)",
        r"Overfull \\hbox \((.+)\)",
        r"Underfull \\hbox \((.+)\)",
    ]

    for pattern in warning_patterns:
        compiled = re.compile(pattern, re.MULTILINE)
        for match in compiled.finditer(log_content):
            warnings.append(match.group(1).strip())

    return errors, warnings


def check_toolchain(config: RenderConfig = None) -> Dict[str, Optional[str]]:
    """
    Report which configured executables can be found.

    Args:
        config: Render configuration (loaded from defaults/env if None)

    Returns:
        Dict mapping engine/tool name to its resolved path, or None if missing
    """
    config = config or load_render_config()
    tools = {
        "pdflatex": config.latex_compiler,
        "xelatex": config.xelatex_compiler,
        "lualatex": config.lualatex_compiler,
        "preview": config.preview_converter,
    }
    return {name: shutil.which(executable) for name, executable in tools.items()}


class CompilerBackend(ABC):
    """
    Interface of a compilation backend.

    The local subprocess pipeline is the default; a remote compilation
    service can implement the same coroutine.
    """

    @abstractmethod
    async def compile(self, source: str, engine: Optional[str] = None, previews: bool = False) -> CompilationOutput:
        """
        Compile LaTeX source.

        Raises:
            CompilerSyntaxError: If the source does not compile
            CompilationTimeout: If the deadline expires
            ToolchainUnavailable: If the engine is not installed
        """


async def _terminate(process: asyncio.subprocess.Process) -> None:
    """Kill a process (if still running) and reap it."""
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


class CompilationPipeline(CompilerBackend):
    """
    Local TeX compilation through asyncio subprocesses.

    Example:
        >>> pipeline = CompilationPipeline(load_render_config(compiler_timeout_s=20))
        >>> output = asyncio.run(pipeline.compile(source))
        >>> output.pdf_bytes[:5]
        b'%PDF-'
    """

    def __init__(self, config: RenderConfig = None):
        self.config = config or load_render_config()

    async def _run(self, cmd: List[str], cwd: Path, deadline: float, engine: str) -> Tuple[int, str]:
        """
        Run one command to completion before the deadline.

        Returns:
            Tuple of (exit status, combined stdout/stderr)

        Raises:
            ToolchainUnavailable: If the executable cannot be launched
            CompilationTimeout: If the deadline passes first (process is killed and reaped)
        """
        loop = asyncio.get_running_loop()
        remaining = deadline - loop.time()
        if remaining <= 0:
            raise CompilationTimeout(self.config.compiler_timeout_s, engine)

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except FileNotFoundError as e:
            raise ToolchainUnavailable(cmd[0]) from e
        except OSError as e:
            raise ToolchainUnavailable(cmd[0], reason=e.strerror or str(e)) from e

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=remaining)
        except asyncio.TimeoutError:
            await _terminate(process)
            raise CompilationTimeout(self.config.compiler_timeout_s, engine) from None
        except asyncio.CancelledError:
            await _terminate(process)
            raise

        return process.returncode, stdout.decode("utf-8", errors="replace")

    async def _render_previews(self, pdf_path: Path, workspace: Path, deadline: float, engine: str) -> List[bytes]:
        """Rasterize the leading pages with pdftoppm; missing converter yields no previews."""
        prefix = workspace / "preview"
        cmd = [
            self.config.preview_converter,
            "-png",
            "-r",
            str(self.config.preview_dpi),
            "-f",
            "1",
            "-l",
            str(self.config.max_preview_pages),
            str(pdf_path),
            str(prefix),
        ]
        try:
            returncode, output = await self._run(cmd, workspace, deadline, engine)
        except ToolchainUnavailable as e:
            _log_warning(f"Previews skipped: {e}")
            return []

        if returncode != 0:
            _log_warning(f"Previews skipped: {self.config.preview_converter} exited with {returncode}")
            _log_debug(output)
            return []

        return [path.read_bytes() for path in sorted(workspace.glob("preview*.png"))]

    async def compile(self, source: str, engine: Optional[str] = None, previews: bool = False) -> CompilationOutput:
        """
        Compile LaTeX source to PDF bytes.

        Args:
            source: Complete LaTeX document
            engine: TeX engine to use (detected from the source if None)
            previews: Also rasterize the leading pages to PNG

        Returns:
            CompilationOutput with the PDF bytes and diagnostics

        Raises:
            CompilerSyntaxError: Non-zero exit, "!" errors in the log, or missing/empty PDF
            CompilationTimeout: All passes together exceeded compiler_timeout_s
            ToolchainUnavailable: The engine executable is not installed or cannot be launched
            WorkspaceUnavailable: The temporary workspace cannot be created, written or read
        """
        engine = engine or detect_engine(source)
        executable = self.config.engine_executable(engine)
        loop = asyncio.get_running_loop()
        start_time = time.time()
        deadline = loop.time() + self.config.compiler_timeout_s

        workspace_root = self.config.workspace_root
        try:
            if workspace_root is not None:
                Path(workspace_root).mkdir(parents=True, exist_ok=True)
            scratch = tempfile.TemporaryDirectory(prefix="vellum_", dir=workspace_root)
        except OSError as e:
            error = WorkspaceUnavailable(str(e))
            log_compilation_failure(error, time.time() - start_time)
            raise error from e

        outputs = []
        with scratch as tmp:
            workspace = Path(tmp)
            tex_path = workspace / f"{JOB_NAME}.tex"
            log_compilation_start(engine, executable, self.config.num_passes, workspace)

            try:
                try:
                    tex_path.write_text(source, encoding="utf-8")
                except OSError as e:
                    raise WorkspaceUnavailable(str(e)) from e

                # Multiple passes needed for cross-references and page numbers
                returncode = 0
                for _ in range(self.config.num_passes):
                    cmd = [executable, *LATEX_FLAGS, tex_path.name]
                    returncode, output = await self._run(cmd, workspace, deadline, engine)
                    outputs.append(output)
                    if returncode != 0:
                        break

                errors, warnings = [], []
                log_file = workspace / f"{JOB_NAME}.log"
                if log_file.exists():
                    # TeX writes log files in latin-1 encoding (font metadata contains non-UTF-8)
                    errors, warnings = parse_latex_log(log_file.read_text(encoding="latin-1"))

                pdf_path = workspace / f"{JOB_NAME}.pdf"
                pdf_bytes = pdf_path.read_bytes() if pdf_path.exists() else b""

                if returncode != 0 or errors or not pdf_bytes:
                    if not errors:
                        errors.append("PDF file was not generated" if not pdf_bytes else "Compiler exited with an error")
                    raise CompilerSyntaxError(
                        errors,
                        engine=engine,
                        returncode=returncode if returncode != 0 else None,
                        log_excerpt="\n".join(outputs)[-4000:],
                    )

                preview_images = []
                if previews:
                    preview_images = await self._render_previews(pdf_path, workspace, deadline, engine)

            except CompilationError as e:
                log_compilation_failure(e, time.time() - start_time, "\n".join(outputs))
                raise
            except OSError as e:
                error = WorkspaceUnavailable(str(e))
                log_compilation_failure(error, time.time() - start_time, "\n".join(outputs))
                raise error from e

        elapsed = time.time() - start_time
        result = CompilationOutput(
            pdf_bytes=pdf_bytes,
            engine=engine,
            previews=preview_images,
            warnings=warnings,
            page_count=page_count(pdf_bytes),
            elapsed_s=elapsed,
        )
        log_compilation_success(engine, warnings, result.page_count, len(pdf_bytes), elapsed)
        return result
