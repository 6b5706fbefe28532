"""
Session Context

Responsibilities:
- Runs render requests through the hashing/substitution/compilation state machine
- Serializes renders per session and reports a coarse presentation status
- Owns the session lifecycle (restore on init, handle revocation on teardown)
- Exposes download, print and library operations to the presentation layer

Owns: Render orchestration, session lifecycle
Never: Renders automatically on content edits
"""

from vellum.contexts.session.exceptions import SessionClosed
from vellum.contexts.session.orchestrator import (
    RenderFailure,
    RenderOrchestrator,
    RenderResult,
    RenderState,
    failure_from_error,
)
from vellum.contexts.session.session import Session

__all__ = [
    "Session",
    "RenderOrchestrator",
    "RenderState",
    "RenderResult",
    "RenderFailure",
    "failure_from_error",
    "SessionClosed",
]
