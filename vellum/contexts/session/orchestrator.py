"""
Render Orchestrator

State machine composing the registry, fingerprinting, the artifact store,
substitution and compilation for one session:

    IDLE -> HASHING -> CACHE_HIT -> READY
                    -> CACHE_MISS -> SUBSTITUTING -> COMPILING -> READY | FAILED

Renders run only when requested. An asyncio.Lock serializes them, so the
store always reflects the most recently completed render. FAILED carries a
RenderFailure and a new render() starts again from HASHING. After teardown
no render registers an artifact.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from vellum.contexts.caching.artifact_data_structure import (
    ArtifactHandle,
    CompiledArtifact,
    JobTargetContext,
)
from vellum.contexts.caching.artifact_store import ArtifactStore
from vellum.contexts.caching.fingerprint import compute_fingerprint
from vellum.contexts.rendering.compiler import CompilerBackend
from vellum.contexts.rendering.exceptions import (
    CompilationTimeout,
    CompilerSyntaxError,
    ToolchainUnavailable,
    WorkspaceUnavailable,
)
from vellum.contexts.session.exceptions import SessionClosed
from vellum.contexts.session.logger import _log_debug, _log_warning, log_render_outcome, log_state_change
from vellum.contexts.templating.exceptions import ContentNotReady, TemplateError
from vellum.contexts.templating.resume_content import ResumeContent
from vellum.contexts.templating.substitution import SubstitutionEngine
from vellum.contexts.templating.template_registry import TemplateRegistry
from vellum.utils.errors import VellumError
from vellum.utils.event_logging import log_render_event
from vellum.utils.timestamp import now_exact


class RenderState(Enum):
    IDLE = "idle"
    HASHING = "hashing"
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    SUBSTITUTING = "substituting"
    COMPILING = "compiling"
    READY = "ready"
    FAILED = "failed"

    @property
    def status(self) -> str:
        """Coarse presentation status (idle/hashing/compiling/ready/failed)."""
        return STATUS_BY_STATE[self]


STATUS_BY_STATE = {
    RenderState.IDLE: "idle",
    RenderState.HASHING: "hashing",
    RenderState.CACHE_HIT: "hashing",
    RenderState.CACHE_MISS: "hashing",
    RenderState.SUBSTITUTING: "compiling",
    RenderState.COMPILING: "compiling",
    RenderState.READY: "ready",
    RenderState.FAILED: "failed",
}


@dataclass(frozen=True)
class RenderFailure:
    """
    Structured reason for a FAILED render.

    Attributes:
        code: Stable failure code (e.g., "template_error", "timeout")
        message: Human-readable summary, never raw compiler output
        retryable: Whether issuing a new render may succeed
        transient: Whether the cause is environmental rather than the content
    """

    code: str
    message: str
    retryable: bool = True
    transient: bool = False


@dataclass
class RenderResult:
    """
    Outcome of one render request.

    Attributes:
        state: READY or FAILED
        fingerprint: Fingerprint of the request (None if hashing never finished)
        handle: Handle of the current artifact (None on failure)
        artifact: Current artifact (None on failure)
        cache_hit: Whether compilation was skipped
        failure: Reason for FAILED
        previews: PNG previews of the current artifact, when compiled with previews
        warnings: LaTeX warnings from compilation
    """

    state: RenderState
    fingerprint: Optional[str] = None
    handle: Optional[ArtifactHandle] = None
    artifact: Optional[CompiledArtifact] = None
    cache_hit: bool = False
    failure: Optional[RenderFailure] = None
    previews: List[bytes] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == RenderState.READY


def _describe_placeholder(name: Optional[str]) -> str:
    return name.replace("_", " ") if name else "a required section"


def failure_from_error(error: VellumError) -> RenderFailure:
    """
    Map an error to a user-facing failure with a redacted message.

    Args:
        error: Exception raised while substituting or compiling

    Returns:
        RenderFailure whose message contains no compiler diagnostics
    """
    if isinstance(error, ContentNotReady):
        return RenderFailure(
            code="content_not_ready",
            message=f"Complete these fields before rendering: {', '.join(error.missing_fields)}.",
        )
    if isinstance(error, TemplateError):
        if error.placeholder:
            message = (
                f"The selected template needs your {_describe_placeholder(error.placeholder)}. "
                "Add it or choose another template."
            )
        else:
            message = "The selected template could not be filled from your resume content."
        return RenderFailure(code="template_error", message=message)
    if isinstance(error, CompilerSyntaxError):
        return RenderFailure(
            code="syntax_error",
            message="The document could not be typeset. Check your content for unusual characters and try again.",
        )
    if isinstance(error, CompilationTimeout):
        return RenderFailure(
            code="timeout",
            message="Rendering took too long and was stopped. Please try again.",
            transient=True,
        )
    if isinstance(error, SessionClosed):
        return RenderFailure(
            code="session_closed",
            message="This editing session has ended. Reopen it to render again.",
            retryable=False,
        )
    if isinstance(error, ToolchainUnavailable):
        return RenderFailure(
            code="toolchain_unavailable",
            message="The document compiler is not available right now. Please try again later.",
            transient=True,
        )
    return RenderFailure(
        code="render_error",
        message="The document could not be rendered. Please try again.",
        retryable=error.retryable,
        transient=error.transient,
    )


StatusListener = Callable[[str], None]


class RenderOrchestrator:
    """
    Runs render requests for one session through the state machine.

    Only compilation suspends; hashing, substitution and store updates run
    synchronously between awaits.
    """

    def __init__(
        self,
        session_id: str,
        store: ArtifactStore,
        registry: TemplateRegistry,
        pipeline: CompilerBackend,
        substitution: SubstitutionEngine = None,
        events_file: Optional[Path] = None,
    ):
        self.session_id = session_id
        self.store = store
        self.registry = registry
        self.pipeline = pipeline
        self.substitution = substitution or SubstitutionEngine(registry)
        self.events_file = events_file

        self.state = RenderState.IDLE
        self.failure: Optional[RenderFailure] = None
        self.compile_count = 0
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None
        self._closed = False
        self._listeners: List[StatusListener] = []
        self._previews: List[bytes] = []
        self._previews_fingerprint: Optional[str] = None

    @property
    def status(self) -> str:
        return self.state.status

    @property
    def is_busy(self) -> bool:
        return self._lock is not None and self._lock.locked()

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _get_lock(self) -> asyncio.Lock:
        # Locks bind to one event loop; successive asyncio.run() calls each get a fresh one
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    def on_status(self, listener: StatusListener) -> Callable[[], None]:
        """
        Register a listener for coarse status changes.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _transition(self, new_state: RenderState, **extra) -> None:
        old_state = self.state
        self.state = new_state
        log_state_change(self.session_id, old_state, new_state)
        log_render_event(
            self.events_file,
            event_type="state_change",
            session_id=self.session_id,
            source="session",
            old_state=old_state.value,
            new_state=new_state.value,
            status=new_state.status,
            **extra,
        )
        if old_state.status != new_state.status:
            for listener in list(self._listeners):
                listener(new_state.status)

    def _fail(self, error: VellumError, fingerprint: Optional[str]) -> RenderResult:
        _log_debug(f"{self.session_id}: {type(error).__name__}: {error}")
        if self._closed:
            return self._closed_result(fingerprint)
        self.failure = failure_from_error(error)
        self._transition(RenderState.FAILED, code=self.failure.code)
        return RenderResult(state=RenderState.FAILED, fingerprint=fingerprint, failure=self.failure)

    def _closed_result(self, fingerprint: Optional[str]) -> RenderResult:
        """FAILED result for a render that outlived teardown; state stays IDLE."""
        failure = failure_from_error(SessionClosed(self.session_id))
        _log_debug(f"{self.session_id}: render discarded after teardown")
        return RenderResult(state=RenderState.FAILED, fingerprint=fingerprint, failure=failure)

    async def render(
        self,
        snapshot: ResumeContent,
        template_id: Optional[str] = None,
        job_target: Optional[JobTargetContext] = None,
        previews: bool = False,
        missing_fields: Optional[List[str]] = None,
    ) -> RenderResult:
        """
        Render a content snapshot, reusing the current artifact when valid.

        Concurrent calls are serialized; each one re-enters HASHING after the
        previous one completes.

        Args:
            snapshot: Detached content snapshot
            template_id: Requested template (unknown ids fall back to the default)
            job_target: Optional job targeting metadata
            previews: Rasterize preview images when compiling
            missing_fields: Mandatory fields the caller found empty; when non-empty
                            the render fails with "content_not_ready"

        Returns:
            RenderResult in state READY or FAILED
        """
        async with self._get_lock():
            result = await self._render(snapshot, template_id, job_target, previews, missing_fields)
        log_render_outcome(self.session_id, result)
        return result

    async def _render(
        self,
        snapshot: ResumeContent,
        template_id: Optional[str],
        job_target: Optional[JobTargetContext],
        previews: bool,
        missing_fields: Optional[List[str]],
    ) -> RenderResult:
        if self._closed:
            return self._closed_result(None)

        self.failure = None
        self._transition(RenderState.HASHING)
        template = self.registry.get_template_by_id(template_id)

        if missing_fields:
            return self._fail(ContentNotReady(missing_fields, template_id=template.id), None)

        fingerprint = compute_fingerprint(snapshot, template.id, job_target)

        if self.store.is_cache_valid(fingerprint, self.store.current_handle):
            self._transition(RenderState.CACHE_HIT, fingerprint=fingerprint)
            self._transition(RenderState.READY, fingerprint=fingerprint)
            return RenderResult(
                state=RenderState.READY,
                fingerprint=fingerprint,
                handle=self.store.current_handle,
                artifact=self.store.current_artifact,
                cache_hit=True,
                previews=self._previews if self._previews_fingerprint == fingerprint else [],
            )

        self._transition(RenderState.CACHE_MISS, fingerprint=fingerprint)
        self._transition(RenderState.SUBSTITUTING, template_id=template.id)
        try:
            source = self.substitution.substitute(snapshot, template)
        except TemplateError as e:
            return self._fail(e, fingerprint)

        self._transition(RenderState.COMPILING, engine=template.engine)
        self.compile_count += 1
        try:
            output = await self.pipeline.compile(source, engine=template.engine, previews=previews)
        except VellumError as e:
            return self._fail(e, fingerprint)
        except OSError as e:
            return self._fail(WorkspaceUnavailable(str(e)), fingerprint)

        if self._closed:
            return self._closed_result(fingerprint)

        artifact = CompiledArtifact(
            fingerprint_hash=fingerprint,
            binary_data=output.pdf_bytes,
            generated_at=now_exact(),
            template_id=template.id,
            job_target=job_target,
            page_count=output.page_count,
        )
        handle = self.store.set_current_artifact(artifact)
        self._previews = list(output.previews)
        self._previews_fingerprint = fingerprint

        self._transition(RenderState.READY, fingerprint=fingerprint, page_count=output.page_count)
        return RenderResult(
            state=RenderState.READY,
            fingerprint=fingerprint,
            handle=handle,
            artifact=artifact,
            previews=self._previews,
            warnings=list(output.warnings),
        )

    def teardown(self) -> None:
        """
        Release every artifact handle of the session.

        A render still compiling when this runs discards its output when it
        completes. From async code, aclose() waits for it instead.
        """
        self._closed = True
        if self.is_busy:
            _log_warning(f"{self.session_id}: torn down while a render is in flight; its output will be discarded")
        self._release()

    async def aclose(self) -> None:
        """Wait for the in-flight render, if any, then release every artifact handle."""
        self._closed = True
        async with self._get_lock():
            self._release()

    def _release(self) -> None:
        self.store.clear_all()
        self._previews = []
        self._previews_fingerprint = None
        self.failure = None
        self._transition(RenderState.IDLE)
