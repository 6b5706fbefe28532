"""Unit tests for TemplateRegistry class."""

from pathlib import Path

import pytest

from vellum.contexts.templating.exceptions import TemplateError
from vellum.contexts.templating.section_builders import PLACEHOLDERS
from vellum.contexts.templating.template_registry import Template, TemplateRegistry

BUNDLED_TEMPLATES = {"classic", "modern", "technical", "minimal"}


def _write_template(base: Path, template_id: str, body: str, meta: str) -> None:
    template_dir = base / template_id
    template_dir.mkdir(parents=True)
    (template_dir / "template.tex.jinja").write_text(body)
    (template_dir / "template.yaml").write_text(meta)


@pytest.mark.unit
def test_template_registry_init():
    """Test TemplateRegistry initialization with bundled templates."""
    registry = TemplateRegistry()
    assert registry.templates_path.exists()
    assert set(registry.template_ids) == BUNDLED_TEMPLATES
    assert registry.default_template_id == "classic"
    assert registry._cache == {}


@pytest.mark.unit
def test_template_metadata():
    """Test metadata is read from template.yaml."""
    registry = TemplateRegistry()
    template = registry.get_template_by_id("classic")

    assert isinstance(template, Template)
    assert template.display_name == "Classic"
    assert template.category == "professional-corporate"
    assert template.engine == "pdflatex"
    assert "professional_summary" in template.required_placeholders
    assert "\\begin{document}" in template.body


@pytest.mark.unit
def test_every_bundled_template_only_references_known_placeholders():
    """Test each template's referenced placeholders are a subset of PLACEHOLDERS."""
    registry = TemplateRegistry()
    for template in registry.list_templates():
        assert set(template.placeholders) <= set(PLACEHOLDERS)
        assert set(template.required_placeholders) <= set(template.placeholders)
        assert "full_name" in template.required_placeholders


@pytest.mark.unit
def test_unknown_template_falls_back_to_default():
    """Test an unknown id returns the default template."""
    registry = TemplateRegistry()
    assert registry.get_template_by_id("does-not-exist").id == "classic"
    assert registry.get_template_by_id(None).id == "classic"


@pytest.mark.unit
def test_custom_default_template():
    """Test the fallback follows the configured default."""
    registry = TemplateRegistry(default_template_id="minimal")
    assert registry.get_template_by_id("nope").id == "minimal"


@pytest.mark.unit
def test_missing_default_template_raises():
    """Test a default id that is not registered is rejected."""
    with pytest.raises(TemplateError):
        TemplateRegistry(default_template_id="nonexistent")


@pytest.mark.unit
def test_template_caching():
    """Test that compiled templates are cached after first load."""
    registry = TemplateRegistry()

    template1 = registry.get_jinja_template("modern")
    assert registry.is_cached("modern")

    template2 = registry.get_jinja_template("modern")
    assert template1 is template2


@pytest.mark.unit
def test_clear_cache():
    """Test cache clearing."""
    registry = TemplateRegistry()
    registry.get_jinja_template("classic")
    assert len(registry._cache) == 1

    registry.clear_cache()
    assert len(registry._cache) == 0


@pytest.mark.unit
def test_get_jinja_template_unregistered_raises():
    """Test compiled lookup does not fall back silently."""
    registry = TemplateRegistry()
    with pytest.raises(TemplateError):
        registry.get_jinja_template("nonexistent")


@pytest.mark.unit
def test_get_template_path():
    """Test getting template file path."""
    registry = TemplateRegistry()
    path = registry.get_template_path("technical")

    assert isinstance(path, Path)
    assert path.name == "template.tex.jinja"
    assert path.exists()


@pytest.mark.unit
def test_custom_delimiters(tmp_path):
    """Test that LaTeX braces and hashes are not interpreted by Jinja2."""
    _write_template(
        tmp_path,
        "classic",
        "\\newcommand{\\x}[1]{#1}\\section*{<<< full_name >>>}<# ignored #>",
        "required_placeholders: [full_name]\n",
    )
    registry = TemplateRegistry(templates_path=tmp_path)

    rendered = registry.get_jinja_template("classic").render(full_name="Ada")
    assert rendered == "\\newcommand{\\x}[1]{#1}\\section*{Ada}"


@pytest.mark.unit
def test_required_placeholder_missing_from_body_is_rejected(tmp_path):
    """Test load-time validation of required placeholders."""
    _write_template(
        tmp_path,
        "classic",
        "<<< full_name >>>",
        "required_placeholders: [full_name, professional_summary]\n",
    )
    with pytest.raises(TemplateError) as exc_info:
        TemplateRegistry(templates_path=tmp_path)
    assert exc_info.value.placeholder == "professional_summary"


@pytest.mark.unit
def test_unknown_placeholder_is_rejected(tmp_path):
    """Test a body referencing a name with no builder is rejected."""
    _write_template(tmp_path, "classic", "<<< favourite_color >>>", "required_placeholders: []\n")
    with pytest.raises(TemplateError, match="favourite_color"):
        TemplateRegistry(templates_path=tmp_path)


@pytest.mark.unit
def test_unsupported_engine_is_rejected(tmp_path):
    _write_template(tmp_path, "classic", "<<< full_name >>>", "engine: context\n")
    with pytest.raises(TemplateError, match="context"):
        TemplateRegistry(templates_path=tmp_path)


@pytest.mark.unit
def test_directories_without_both_files_are_ignored(tmp_path):
    _write_template(tmp_path, "classic", "<<< full_name >>>", "display_name: Plain\n")
    (tmp_path / "scratch").mkdir()
    (tmp_path / "scratch" / "notes.txt").write_text("not a template")

    registry = TemplateRegistry(templates_path=tmp_path)
    assert registry.template_ids == ["classic"]
    assert registry.get_template_by_id("classic").display_name == "Plain"
