"""
Templating Context

Responsibilities:
- Represents resume content (semantic aggregate plus the editable draft)
- Catalogs LaTeX templates and their required placeholders
- Escapes user text for LaTeX in a single declarative pass
- Fills template placeholders with derived, escaped section blocks

Owns: Resume content model, template catalog, escaping, substitution
Never: Compiles LaTeX or caches artifacts
"""

from vellum.contexts.templating.exceptions import ContentNotReady, TemplateError
from vellum.contexts.templating.latex_escaping import escape_content, escape_latex, escape_url
from vellum.contexts.templating.resume_content import (
    ResumeContent,
    ResumeDraft,
    canonicalize_content,
    load_resume_content,
)
from vellum.contexts.templating.section_builders import PLACEHOLDERS, build_placeholder_blocks
from vellum.contexts.templating.substitution import SubstitutionEngine
from vellum.contexts.templating.template_registry import Template, TemplateRegistry

__all__ = [
    # Content model
    "ResumeContent",
    "ResumeDraft",
    "canonicalize_content",
    "load_resume_content",
    # Templates
    "Template",
    "TemplateRegistry",
    # Substitution
    "SubstitutionEngine",
    "PLACEHOLDERS",
    "build_placeholder_blocks",
    "escape_content",
    "escape_latex",
    "escape_url",
    # Failures
    "TemplateError",
    "ContentNotReady",
]
