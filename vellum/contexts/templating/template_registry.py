"""
Template Registry

Read-only catalog of resume templates. Each template lives in its own
directory under template/:

    template/<id>/template.tex.jinja   LaTeX body with placeholders
    template/<id>/template.yaml        display name, category, engine,
                                       required placeholders

Bodies are Jinja2 templates with delimiters that do not collide with LaTeX:
- Variable: <<< var >>>
- Block: <%% block %%>
- Comment: <# comment #>
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv
from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateSyntaxError, meta
from jinja2 import Template as JinjaTemplate
from omegaconf import OmegaConf

from vellum.contexts.templating.exceptions import TemplateError
from vellum.contexts.templating.logger import _log_debug, log_template_fallback
from vellum.contexts.templating.section_builders import PLACEHOLDERS

load_dotenv()
TEMPLATES_PATH = Path(os.getenv("VELLUM_TEMPLATES_PATH") or Path(__file__).parent / "template")

DEFAULT_TEMPLATE_ID = "classic"
TEMPLATE_BODY_FILE = "template.tex.jinja"
TEMPLATE_META_FILE = "template.yaml"
SUPPORTED_ENGINES = ("pdflatex", "xelatex", "lualatex")


@dataclass(frozen=True)
class Template:
    """
    Immutable template definition.

    Attributes:
        id: Directory name, used as the stable identifier
        display_name: Human-readable name
        category: Style family (e.g., "professional-corporate")
        body: Raw Jinja2/LaTeX source
        required_placeholders: Placeholders that must have data to render
        engine: TeX engine the body is written for
        placeholders: Every placeholder the body references
    """

    id: str
    display_name: str
    category: str
    body: str
    required_placeholders: Tuple[str, ...]
    engine: str = "pdflatex"
    description: str = ""
    placeholders: Tuple[str, ...] = ()


def create_environment(templates_path: Path) -> Environment:
    """Jinja2 environment with LaTeX-safe delimiters."""
    return Environment(
        loader=FileSystemLoader(str(templates_path)),
        # Catches silent failures
        undefined=StrictUndefined,
        # Custom delimiters to avoid LaTeX brace conflicts
        variable_start_string="<<<",
        variable_end_string=">>>",
        block_start_string="<%%",
        block_end_string="%%>",
        comment_start_string="<#",
        comment_end_string="#>",
        # Preserve whitespace (important for LaTeX)
        trim_blocks=False,
        lstrip_blocks=False,
        keep_trailing_newline=True,
        autoescape=False,
    )


class TemplateRegistry:
    """
    Registry for loading and caching resume templates.

    All template directories are read and validated at construction; compiled
    Jinja2 templates are cached on first use.

    Example:
        >>> registry = TemplateRegistry()
        >>> registry.get_template_by_id("classic").category
        'professional-corporate'
    """

    def __init__(self, templates_path: Path = None, default_template_id: str = DEFAULT_TEMPLATE_ID):
        """
        Initialize the template registry.

        Args:
            templates_path: Directory containing one subdirectory per template.
                            Defaults to VELLUM_TEMPLATES_PATH or the bundled templates
            default_template_id: Template returned when a requested id is unknown

        Raises:
            TemplateError: If a template definition is invalid or the default is missing
        """
        if templates_path is None:
            templates_path = TEMPLATES_PATH

        self.templates_path = Path(templates_path)
        self.env = create_environment(self.templates_path)
        self._cache: Dict[str, JinjaTemplate] = {}
        self._templates: Dict[str, Template] = self._load_templates()

        if default_template_id not in self._templates:
            raise TemplateError(
                f"Default template not found in {self.templates_path}",
                template_id=default_template_id,
            )
        self.default_template_id = default_template_id

    def _load_templates(self) -> Dict[str, Template]:
        templates = {}
        if not self.templates_path.is_dir():
            return templates

        for template_dir in sorted(self.templates_path.iterdir()):
            body_path = template_dir / TEMPLATE_BODY_FILE
            meta_path = template_dir / TEMPLATE_META_FILE
            if not (body_path.exists() and meta_path.exists()):
                continue
            template = self._load_template(template_dir.name, body_path, meta_path)
            templates[template.id] = template

        _log_debug(f"Loaded {len(templates)} templates from {self.templates_path}")
        return templates

    def _load_template(self, template_id: str, body_path: Path, meta_path: Path) -> Template:
        body = body_path.read_text(encoding="utf-8")
        config = OmegaConf.to_container(OmegaConf.load(meta_path), resolve=True) or {}

        try:
            referenced = meta.find_undeclared_variables(self.env.parse(body))
        except TemplateSyntaxError as e:
            raise TemplateError("Template body has invalid syntax", template_id=template_id, original_error=e) from e

        unknown = sorted(referenced - set(PLACEHOLDERS))
        if unknown:
            raise TemplateError(
                f"Template references unknown placeholders: {', '.join(unknown)}",
                template_id=template_id,
            )

        required = tuple(config.get("required_placeholders") or ())
        for name in required:
            if name not in referenced:
                raise TemplateError(
                    "Required placeholder is not referenced by the template body",
                    template_id=template_id,
                    placeholder=name,
                )

        engine = config.get("engine", "pdflatex")
        if engine not in SUPPORTED_ENGINES:
            raise TemplateError(f"Unsupported engine '{engine}'", template_id=template_id)

        return Template(
            id=template_id,
            display_name=config.get("display_name", template_id.title()),
            category=config.get("category", ""),
            body=body,
            required_placeholders=required,
            engine=engine,
            description=config.get("description", ""),
            placeholders=tuple(name for name in PLACEHOLDERS if name in referenced),
        )

    @property
    def template_ids(self) -> List[str]:
        return list(self._templates)

    def list_templates(self) -> List[Template]:
        """All registered templates, ordered by id."""
        return list(self._templates.values())

    def has_template(self, template_id: str) -> bool:
        return template_id in self._templates

    def get_template_by_id(self, template_id: Optional[str]) -> Template:
        """
        Get a template by id, falling back to the default template.

        Args:
            template_id: Requested template id (None selects the default)

        Returns:
            The requested Template, or the default one if it is not registered
        """
        if template_id is None:
            return self._templates[self.default_template_id]

        template = self._templates.get(template_id)
        if template is None:
            log_template_fallback(template_id, self.default_template_id)
            return self._templates[self.default_template_id]
        return template

    def get_jinja_template(self, template_id: str) -> JinjaTemplate:
        """
        Get the compiled Jinja2 template, loading and caching it if necessary.

        Args:
            template_id: Registered template id

        Returns:
            Jinja2 Template object

        Raises:
            TemplateError: If the id is not registered
        """
        # Check cache first
        if template_id in self._cache:
            return self._cache[template_id]

        template = self._templates.get(template_id)
        if template is None:
            raise TemplateError("Template not registered", template_id=template_id)

        compiled = self.env.from_string(template.body)
        self._cache[template_id] = compiled
        return compiled

    def get_template_path(self, template_id: str) -> Path:
        return self.templates_path / template_id / TEMPLATE_BODY_FILE

    def clear_cache(self):
        """Clear the compiled template cache."""
        self._cache.clear()

    def is_cached(self, template_id: str) -> bool:
        """
        Check if a compiled template is in the cache.

        Args:
            template_id: Template id

        Returns:
            True if cached, False otherwise
        """
        return template_id in self._cache
