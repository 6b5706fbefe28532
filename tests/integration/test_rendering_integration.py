"""
Integration tests for rendering - real LaTeX compilation.

Skipped when pdflatex is not installed.
"""

import asyncio
import shutil
from dataclasses import fields

import pytest

from vellum.contexts.caching.storage import MemoryArtifactStorage
from vellum.contexts.rendering.compiler import CompilationPipeline
from vellum.contexts.rendering.exceptions import CompilerSyntaxError
from vellum.contexts.session.session import Session
from vellum.contexts.templating.latex_escaping import LATEX_ESCAPE_TABLE
from vellum.contexts.templating.resume_content import ENTRY_TYPES, PersonalInfo, ResumeContent, ResumeDraft
from vellum.contexts.templating.substitution import SubstitutionEngine
from vellum.contexts.templating.template_registry import TemplateRegistry
from vellum.utils.config import load_render_config
from vellum.utils.pdf_processing import looks_like_pdf

PDFLATEX_AVAILABLE = shutil.which("pdflatex") is not None
skip_if_no_pdflatex = pytest.mark.skipif(
    not PDFLATEX_AVAILABLE,
    reason="pdflatex not installed - install TeX Live, MiKTeX, or MacTeX"
)

REGISTRY = TemplateRegistry()
TEMPLATE_IDS = REGISTRY.template_ids


def _fill(entry_cls, text: str):
    """Entry whose every text field holds text (URL fields get a URL ending in text)."""
    values = {}
    for entry_field in fields(entry_cls):
        if entry_field.name == "id":
            continue
        if entry_field.default_factory is list:
            values[entry_field.name] = [text]
        elif isinstance(entry_field.default, bool):
            values[entry_field.name] = False
        elif entry_field.name.endswith("url"):
            values[entry_field.name] = f"https://example.com/a{text}"
        else:
            values[entry_field.name] = text
    return entry_cls(**values)


def content_filled_with(text: str) -> ResumeContent:
    """Content where every placeholder receives text."""
    return ResumeContent(
        personal_info=_fill(PersonalInfo, text),
        professional_summary=text,
        **{name: [_fill(entry_cls, text)] for name, entry_cls in ENTRY_TYPES.items()},
    )


@pytest.fixture(scope="module")
def pipeline():
    return CompilationPipeline(load_render_config(num_passes=1, compiler_timeout_s=60))


@pytest.mark.integration
@pytest.mark.latex
@skip_if_no_pdflatex
@pytest.mark.parametrize("template_id", TEMPLATE_IDS)
def test_render_sample_resume(template_id, ada_content, tmp_path):
    """Test each bundled template renders the sample resume end to end."""
    config = load_render_config(num_passes=2, compiler_timeout_s=60, workspace_root=tmp_path / "ws")

    with Session(
        session_id=f"it-{template_id}",
        draft=ResumeDraft(ada_content),
        config=config,
        storage=MemoryArtifactStorage(),
        registry=REGISTRY,
    ) as session:
        result = asyncio.run(session.render(template_id=template_id))
        assert result.ok, result.failure
        assert looks_like_pdf(result.artifact.binary_data)
        assert result.artifact.page_count >= 1

        path = session.download(output_dir=tmp_path)
        assert path.stat().st_size == result.artifact.size_bytes


@pytest.mark.integration
@pytest.mark.latex
@skip_if_no_pdflatex
@pytest.mark.parametrize("char", sorted(LATEX_ESCAPE_TABLE))
@pytest.mark.parametrize("template_id", TEMPLATE_IDS)
def test_special_character_in_every_placeholder_compiles(template_id, char, pipeline):
    """Test a lone special character in every field still produces a PDF."""
    engine = SubstitutionEngine(REGISTRY)
    template = REGISTRY.get_template_by_id(template_id)
    source = engine.substitute(content_filled_with(char), template)

    try:
        output = asyncio.run(pipeline.compile(source, engine=template.engine))
    except CompilerSyntaxError as e:
        pytest.fail(f"{template_id} failed for {char!r}:\n{e}\n{e.log_excerpt[-1500:]}")

    assert looks_like_pdf(output.pdf_bytes)


@pytest.mark.integration
@pytest.mark.latex
@skip_if_no_pdflatex
def test_broken_source_is_a_syntax_error(pipeline):
    source = "\\documentclass{article}\\begin{document}\\undefinedmacro\\end{document}\n"
    with pytest.raises(CompilerSyntaxError) as exc_info:
        asyncio.run(pipeline.compile(source))
    assert exc_info.value.errors
