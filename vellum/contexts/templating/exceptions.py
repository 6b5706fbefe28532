"""Custom exceptions for templating context with template references."""

from typing import List, Optional

from vellum.utils.errors import VellumError


class TemplateError(VellumError):
    """
    Exception raised when a template cannot be filled from resume content.

    Raised for a required placeholder without data, a Jinja2 rendering error,
    or a malformed template definition. Always raised before compilation.

    Attributes:
        message: Error description
        template_id: Template being substituted
        placeholder: Placeholder that could not be filled (if applicable)
        original_error: The underlying Jinja2 error (if applicable)
    """

    def __init__(
        self,
        message: str,
        template_id: Optional[str] = None,
        placeholder: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.template_id = template_id
        self.placeholder = placeholder
        self.original_error = original_error

        parts = [message]

        if template_id:
            parts.append(f"Template: {template_id}")

        if placeholder:
            parts.append(f"Placeholder: {placeholder}")

        if original_error:
            parts.append(f"Original error: {original_error}")

        super().__init__("\n".join(parts))


class ContentNotReady(TemplateError):
    """
    Exception raised when a render is requested for content missing mandatory fields.

    Attributes:
        missing_fields: Human-readable names of the fields that block rendering
    """

    def __init__(self, missing_fields: List[str], template_id: Optional[str] = None):
        self.missing_fields = list(missing_fields)
        super().__init__(
            f"Resume is missing required content: {', '.join(self.missing_fields)}",
            template_id=template_id,
        )
