"""Unit tests for SubstitutionEngine."""

import pytest

from vellum.contexts.templating.exceptions import TemplateError
from vellum.contexts.templating.resume_content import Hobby, Language, ResumeContent, Skill
from vellum.contexts.templating.substitution import SubstitutionEngine
from vellum.contexts.templating.template_registry import TemplateRegistry


@pytest.fixture(scope="module")
def registry():
    return TemplateRegistry()


@pytest.fixture
def engine(registry):
    return SubstitutionEngine(registry)


@pytest.mark.unit
@pytest.mark.parametrize("template_id", ["classic", "modern", "technical", "minimal"])
def test_substitute_every_template(engine, registry, ada_content, template_id):
    """Test a complete document is produced for each bundled template."""
    source = engine.substitute(ada_content, registry.get_template_by_id(template_id))

    assert source.lstrip().startswith("\\documentclass")
    assert "\\begin{document}" in source
    assert source.rstrip().endswith("\\end{document}")
    assert "Ada Lovelace" in source
    assert r"Analyst \& Programmer" in source
    assert "<<<" not in source
    assert "<%%" not in source


@pytest.mark.unit
def test_missing_required_placeholder_raises(engine, registry, ada_content):
    """Test an empty summary cannot fill the classic template."""
    ada_content.professional_summary = "   "

    with pytest.raises(TemplateError) as exc_info:
        engine.substitute(ada_content, registry.get_template_by_id("classic"))

    assert exc_info.value.placeholder == "professional_summary"
    assert exc_info.value.template_id == "classic"


@pytest.mark.unit
def test_optional_placeholder_may_be_empty(engine, registry, ada_content):
    """Test the minimal template only needs a name."""
    ada_content.professional_summary = ""
    ada_content.work_experience = []

    source = engine.substitute(ada_content, registry.get_template_by_id("minimal"))

    assert "Ada Lovelace" in source
    assert "Experience" not in source


@pytest.mark.unit
def test_missing_placeholders(engine, registry):
    blocks = engine.prepare_blocks(ResumeContent())
    missing = engine.missing_placeholders(blocks, registry.get_template_by_id("classic"))
    assert missing == ["full_name", "professional_summary", "work_experience"]


@pytest.mark.unit
def test_special_characters_are_escaped(engine, registry, ada_content):
    ada_content.professional_summary = "Cut costs 50% & shipped #1 product_v2 for $0 {fast}"

    source = engine.substitute(ada_content, registry.get_template_by_id("classic"))

    assert r"Cut costs 50\% \& shipped \#1 product\_v2 for \$0 \{fast\}" in source


@pytest.mark.unit
def test_order_insensitive_sections_render_canonically(engine, registry, ada_content):
    """Test reordering skills, languages and hobbies yields identical source."""
    reordered = ada_content.snapshot()
    reordered.skills = list(reversed(reordered.skills))
    reordered.languages = list(reversed(reordered.languages))
    reordered.hobbies = list(reversed(reordered.hobbies))

    template = registry.get_template_by_id("technical")
    assert engine.substitute(ada_content, template) == engine.substitute(reordered, template)


@pytest.mark.unit
def test_whitespace_differences_render_identically(engine, registry):
    template = registry.get_template_by_id("minimal")
    a = ResumeContent(skills=[Skill(name="Python")], languages=[Language(name="Dutch")])
    a.personal_info.first_name = "Ada"
    b = ResumeContent(skills=[Skill(name="  Python ")], languages=[Language(name="Dutch\n")])
    b.personal_info.first_name = " Ada  "

    assert engine.substitute(a, template) == engine.substitute(b, template)


@pytest.mark.unit
def test_substitute_does_not_mutate_snapshot(engine, registry, ada_content):
    ada_content.hobbies = [Hobby(name="Music & dance"), Hobby(name="Chess")]
    before = ada_content.to_dict()

    engine.substitute(ada_content, registry.get_template_by_id("classic"))

    assert ada_content.to_dict() == before
