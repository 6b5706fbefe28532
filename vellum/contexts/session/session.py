"""
Rendering Session

A Session bundles everything one editing session needs to render a resume:
the content draft, configuration, template registry, compilation backend,
artifact store and orchestrator. It is an explicit object with an
init/teardown lifecycle instead of module-level state.

Usage:
    with Session(draft=draft) as session:
        result = asyncio.run(session.render())
        session.save_to_library("Draft 1")
        session.download(output_dir=Path("outs/results"))

    async with Session(draft=draft) as session:
        await session.render(template_id="modern")
"""

import re
import subprocess
import tempfile
import uuid
from pathlib import Path
from typing import Callable, List, Optional

from vellum.contexts.caching.artifact_data_structure import ArtifactHandle, JobTargetContext, LibraryEntry
from vellum.contexts.caching.artifact_store import ArtifactStore
from vellum.contexts.caching.exceptions import ArtifactUnavailable
from vellum.contexts.caching.storage import ArtifactStorage, create_storage
from vellum.contexts.rendering.compiler import CompilationPipeline, CompilerBackend
from vellum.contexts.rendering.exceptions import ToolchainUnavailable
from vellum.contexts.session.logger import _log_debug, _log_info
from vellum.contexts.session.orchestrator import RenderOrchestrator, RenderResult, StatusListener
from vellum.contexts.templating.resume_content import ResumeDraft
from vellum.contexts.templating.template_registry import TemplateRegistry
from vellum.utils.config import RenderConfig, load_render_config
from vellum.utils.errors import VellumError
from vellum.utils.event_logging import log_render_event
from vellum.utils.timestamp import today

_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w.\-]+")


def safe_filename(name: str) -> str:
    """Reduce a name to a portable file name ending in .pdf."""
    stem = name[:-4] if name.lower().endswith(".pdf") else name
    stem = _UNSAFE_FILENAME_CHARS.sub("_", stem).strip("._") or "resume"
    return f"{stem}.pdf"


class Session:
    """
    One editing session's rendering state and operations.

    Content changes only mark the session as stale; renders happen when
    render() is called.

    Attributes:
        session_id: Identity used for durable storage keys and event logs
        draft: Content collaborator providing snapshots and readiness
        config: Render configuration
        store: Artifact store owning every handle of this session
        orchestrator: Render state machine
        template_id: Template used when render() is not given one
        job_target: Job target attached to renders when render() is not given one
        stale: Whether content changed since the last successful render
    """

    def __init__(
        self,
        session_id: Optional[str] = None,
        draft: Optional[ResumeDraft] = None,
        config: Optional[RenderConfig] = None,
        storage: Optional[ArtifactStorage] = None,
        registry: Optional[TemplateRegistry] = None,
        pipeline: Optional[CompilerBackend] = None,
    ):
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.config = config or load_render_config()
        self.draft = draft or ResumeDraft()

        self._owns_storage = storage is None
        self.storage = storage if storage is not None else create_storage(self.config)
        self.registry = registry or TemplateRegistry(default_template_id=self.config.default_template_id)
        self.pipeline = pipeline or CompilationPipeline(self.config)
        self.events_file = Path(self.config.events_file) if self.config.events_file else None

        self.store = ArtifactStore.from_config(self.session_id, self.storage, self.config)
        self.orchestrator = RenderOrchestrator(
            session_id=self.session_id,
            store=self.store,
            registry=self.registry,
            pipeline=self.pipeline,
            events_file=self.events_file,
        )

        self.template_id = self.config.default_template_id
        self.job_target: Optional[JobTargetContext] = None
        self.stale = True
        self._unsubscribe: Optional[Callable[[], None]] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self) -> Optional[ArtifactHandle]:
        """
        Start the session: listen for content changes and restore persisted artifacts.

        Returns:
            Handle of the restored current artifact, or None
        """
        if self._unsubscribe is None:
            self._unsubscribe = self.draft.subscribe(self._on_content_changed)

        handle = self.store.restore()
        log_render_event(
            self.events_file,
            event_type="session_init",
            session_id=self.session_id,
            source="session",
            restored=handle is not None,
            library_entries=len(self.store.library_entries()),
        )
        _log_info(f"Session {self.session_id} started (restored artifact: {handle is not None})")
        return handle

    def teardown(self) -> None:
        """
        End the session: revoke every handle and stop listening for changes.

        Durable records stay in storage for the next session with the same id.
        A render still in flight discards its output; use aclose() from async
        code to wait for it.
        """
        self.orchestrator.teardown()
        self._release()

    async def aclose(self) -> None:
        """End the session after any in-flight render completes."""
        await self.orchestrator.aclose()
        self._release()

    def _release(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._owns_storage:
            self.storage.close()
        log_render_event(self.events_file, event_type="session_teardown", session_id=self.session_id, source="session")
        _log_debug(f"Session {self.session_id} torn down")

    def __enter__(self) -> "Session":
        self.init()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.teardown()

    async def __aenter__(self) -> "Session":
        self.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    def _on_content_changed(self, changed: List[str]) -> None:
        self.stale = True
        _log_debug(f"Content changed: {', '.join(changed)}")

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    async def render(
        self,
        template_id: Optional[str] = None,
        job_target: Optional[JobTargetContext] = None,
        previews: bool = False,
        require_ready: bool = False,
    ) -> RenderResult:
        """
        Render the current content.

        Args:
            template_id: Template to use (defaults to self.template_id)
            job_target: Job target to attach (defaults to self.job_target)
            previews: Also produce PNG previews when compiling
            require_ready: Fail with "content_not_ready" unless every mandatory field is filled

        Returns:
            RenderResult in state READY or FAILED
        """
        missing = self.draft.missing_required_fields() if require_ready else None
        result = await self.orchestrator.render(
            self.draft.snapshot(),
            template_id=template_id or self.template_id,
            job_target=job_target if job_target is not None else self.job_target,
            previews=previews,
            missing_fields=missing,
        )
        if result.ok:
            self.stale = False
        return result

    @property
    def status(self) -> str:
        """Coarse presentation status: idle, hashing, compiling, ready or failed."""
        return self.orchestrator.status

    @property
    def failure(self):
        return self.orchestrator.failure

    def on_status(self, listener: StatusListener) -> Callable[[], None]:
        return self.orchestrator.on_status(listener)

    @property
    def artifact_reference(self) -> Optional[str]:
        """Displayable reference (blob URI) of the current artifact, if live."""
        handle = self.store.current_handle
        return handle.uri if self.store.is_live(handle) else None

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def persist(self) -> bool:
        return self.store.persist()

    def save_to_library(self, name: str, job_target: Optional[JobTargetContext] = None) -> str:
        return self.store.save_to_library(name, job_target)

    def delete_from_library(self, entry_id: str) -> bool:
        return self.store.delete_from_library(entry_id)

    def library(self) -> List[LibraryEntry]:
        return self.store.library_entries()

    def _artifact_bytes(self, entry_id: Optional[str] = None) -> bytes:
        if entry_id is None:
            handle = self.store.current_handle
            missing = "No rendered resume to export"
        else:
            entry = self.store.get_library_entry(entry_id)
            if entry is None:
                raise ArtifactUnavailable(f"Library entry not found: {entry_id}")
            handle = entry.handle
            missing = f"Library entry {entry_id} is no longer available"

        view = self.store.resolve(handle)
        if view is None:
            raise ArtifactUnavailable(missing)
        return view.tobytes()

    def default_filename(self) -> str:
        """File name of the form First_Last_YYYY-MM-DD.pdf."""
        info = self.draft.snapshot().personal_info
        parts = [part for part in (info.first_name.strip(), info.last_name.strip()) if part] or ["Resume"]
        return safe_filename("_".join(parts + [today()]))

    def download(
        self, name: Optional[str] = None, entry_id: Optional[str] = None, output_dir: Optional[Path] = None
    ) -> Path:
        """
        Write an artifact to a PDF file.

        Args:
            name: File name (defaults to First_Last_YYYY-MM-DD.pdf)
            entry_id: Library entry to export (defaults to the current artifact)
            output_dir: Target directory (defaults to the working directory)

        Returns:
            Path of the written file

        Raises:
            ArtifactUnavailable: If there is no such live artifact
        """
        data = self._artifact_bytes(entry_id)
        output_dir = Path(output_dir) if output_dir is not None else Path.cwd()
        output_dir.mkdir(parents=True, exist_ok=True)

        path = output_dir / (safe_filename(name) if name else self.default_filename())
        path.write_bytes(data)
        _log_info(f"Downloaded artifact to {path}")
        return path

    def print(self, entry_id: Optional[str] = None) -> None:
        """
        Send an artifact to the configured print command.

        Args:
            entry_id: Library entry to print (defaults to the current artifact)

        Raises:
            ArtifactUnavailable: If there is no such live artifact
            ToolchainUnavailable: If the print command is not installed
            VellumError: If the print command fails
        """
        data = self._artifact_bytes(entry_id)
        with tempfile.TemporaryDirectory(prefix="vellum_print_") as tmp:
            path = Path(tmp) / self.default_filename()
            path.write_bytes(data)
            try:
                result = subprocess.run(
                    [self.config.print_command, str(path)],
                    capture_output=True,
                    text=True,
                    errors="replace",
                )
            except FileNotFoundError as e:
                raise ToolchainUnavailable(self.config.print_command) from e

        if result.returncode != 0:
            _log_debug(result.stderr)
            raise VellumError(f"Print command '{self.config.print_command}' exited with {result.returncode}")
        _log_info(f"Sent {path.name} to {self.config.print_command}")
