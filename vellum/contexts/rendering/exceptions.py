"""Custom exceptions for the rendering context with compiler diagnostics."""

from typing import List, Optional

from vellum.utils.errors import VellumError


class CompilationError(VellumError):
    """Base class for failures of the compilation pipeline."""


class CompilerSyntaxError(CompilationError):
    """
    Exception raised when the TeX engine rejects the generated source.

    Raised for a non-zero exit status, "!" errors in the log, or a missing or
    empty PDF.

    Attributes:
        errors: Parsed error lines from the compiler log
        engine: Engine that was invoked
        returncode: Exit status of the failing pass (None if the engine exited cleanly)
        log_excerpt: Tail of the compiler output, for debug logs only
    """

    def __init__(
        self,
        errors: List[str],
        engine: str,
        returncode: Optional[int] = None,
        log_excerpt: str = "",
    ):
        self.errors = list(errors)
        self.engine = engine
        self.returncode = returncode
        self.log_excerpt = log_excerpt

        parts = [f"{engine} failed with {len(self.errors)} error(s)"]
        if returncode is not None:
            parts.append(f"Exit status: {returncode}")
        for i, err in enumerate(self.errors[:5], 1):
            parts.append(f"Error {i}: {err}")

        super().__init__("\n".join(parts))


class CompilationTimeout(CompilationError):
    """
    Exception raised when compilation exceeds its deadline.

    The compiler process has been killed and reaped before this is raised.

    Attributes:
        timeout_s: Deadline that was exceeded
        engine: Engine that was running
    """

    transient = True

    def __init__(self, timeout_s: float, engine: str):
        self.timeout_s = timeout_s
        self.engine = engine
        super().__init__(f"{engine} did not finish within {timeout_s:g}s")


class ToolchainUnavailable(CompilationError):
    """
    Exception raised when a required executable cannot be launched.

    Attributes:
        executable: Name or path that could not be launched
        reason: OS error text when the executable exists but failed to start
    """

    transient = True

    def __init__(self, executable: str, reason: Optional[str] = None):
        self.executable = executable
        self.reason = reason
        if reason is None:
            super().__init__(f"Executable not found: {executable}")
        else:
            super().__init__(f"Cannot launch {executable}: {reason}")


class WorkspaceUnavailable(CompilationError):
    """
    Exception raised when the scoped compilation workspace cannot be prepared or read.

    Attributes:
        reason: Underlying OS error text
    """

    transient = True

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Compilation workspace unavailable: {reason}")
