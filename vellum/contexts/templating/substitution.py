"""
Substitution Engine

Fills a template's placeholders from a resume content snapshot:

1. canonicalize_content() normalizes whitespace and orders the
   order-insensitive sections exactly as fingerprinting does
2. escape_content() escapes every string leaf in one pass
3. build_placeholder_blocks() derives the LaTeX block for each placeholder
4. required placeholders without data raise TemplateError
5. the Jinja2 template is rendered
"""

from typing import Dict, List

from jinja2 import TemplateError as JinjaTemplateError

from vellum.contexts.templating.exceptions import TemplateError
from vellum.contexts.templating.latex_escaping import escape_content
from vellum.contexts.templating.logger import log_substitution
from vellum.contexts.templating.resume_content import ResumeContent, canonicalize_content
from vellum.contexts.templating.section_builders import build_placeholder_blocks
from vellum.contexts.templating.template_registry import Template, TemplateRegistry


class SubstitutionEngine:
    """
    Turns (content snapshot, template) into complete LaTeX source.

    Never compiles anything; every TemplateError is raised before the
    compilation pipeline is involved.
    """

    def __init__(self, registry: TemplateRegistry = None):
        self.registry = registry or TemplateRegistry()

    def prepare_blocks(self, snapshot: ResumeContent) -> Dict[str, str]:
        """Escaped placeholder blocks for a snapshot, independent of any template."""
        escaped = escape_content(canonicalize_content(snapshot))
        return build_placeholder_blocks(escaped)

    def missing_placeholders(self, blocks: Dict[str, str], template: Template) -> List[str]:
        return [name for name in template.required_placeholders if not blocks.get(name)]

    def substitute(self, snapshot: ResumeContent, template: Template) -> str:
        """
        Produce LaTeX source for a snapshot rendered with a template.

        Args:
            snapshot: Detached content snapshot
            template: Template from the registry

        Returns:
            Complete LaTeX document source

        Raises:
            TemplateError: If a required placeholder has no data or Jinja2 fails
        """
        blocks = self.prepare_blocks(snapshot)

        missing = self.missing_placeholders(blocks, template)
        if missing:
            raise TemplateError(
                "Required placeholder has no content",
                template_id=template.id,
                placeholder=missing[0],
            )

        try:
            source = self.registry.get_jinja_template(template.id).render(**blocks)
        except JinjaTemplateError as e:
            raise TemplateError("Template rendering failed", template_id=template.id, original_error=e) from e

        empty_optional = sum(
            1 for name in template.placeholders if not blocks[name] and name not in template.required_placeholders
        )
        log_substitution(
            template.id,
            filled=len(template.placeholders) - empty_optional,
            empty_optional=empty_optional,
            source_chars=len(source),
        )
        return source
