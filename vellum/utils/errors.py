"""Base exception shared by every VELLUM context."""


class VellumError(Exception):
    """
    Root of the VELLUM error taxonomy.

    Attributes:
        retryable: Whether a new render request may succeed
        transient: Whether the failure is environmental rather than caused by content
    """

    retryable: bool = True
    transient: bool = False
