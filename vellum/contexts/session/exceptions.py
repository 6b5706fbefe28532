"""Custom exceptions for the session context."""

from vellum.utils.errors import VellumError


class SessionClosed(VellumError):
    """
    Exception raised for a render that reaches a session after teardown began.

    The render's output, if any, is discarded so no handle outlives the session.

    Attributes:
        session_id: Session that was closed
    """

    retryable = False

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} has been torn down")
