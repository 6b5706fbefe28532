"""Shared fixtures: sample resume content, fake compilers and a fake pipeline."""

import asyncio
import stat
import sys
from pathlib import Path
from typing import List, Optional

import pytest

from vellum.contexts.rendering.compiler import CompilationOutput, CompilerBackend
from vellum.contexts.rendering.exceptions import CompilerSyntaxError
from vellum.contexts.templating.resume_content import ResumeContent, load_resume_content

FIXTURES_PATH = Path(__file__).parent / "fixtures"

FAKE_PDF = b"%PDF-1.4\n% fake compiler output\n%%EOF\n"


@pytest.fixture
def ada_content() -> ResumeContent:
    return load_resume_content(FIXTURES_PATH / "ada_lovelace.yaml")


class FakePipeline(CompilerBackend):
    """
    In-process stand-in for the compilation pipeline.

    Returns PDF-like bytes that embed the source, so different sources give
    different artifacts. Optional per-call delays let tests control
    completion order.
    """

    def __init__(self, delays: Optional[List[float]] = None, error: Optional[Exception] = None):
        self.calls: List[str] = []
        self.delays = list(delays or [])
        self.error = error

    async def compile(self, source, engine=None, previews=False):
        self.calls.append(source)
        if self.delays:
            await asyncio.sleep(self.delays.pop(0))
        if self.error is not None:
            raise self.error
        return CompilationOutput(
            pdf_bytes=FAKE_PDF + source.encode("utf-8"),
            engine=engine or "pdflatex",
            previews=[b"\x89PNG fake"] if previews else [],
            page_count=1,
        )


@pytest.fixture
def fake_pipeline() -> FakePipeline:
    return FakePipeline()


@pytest.fixture
def syntax_error() -> CompilerSyntaxError:
    return CompilerSyntaxError(["Undefined control sequence. \\secretmacro"], engine="pdflatex", returncode=1)


def _write_script(path: Path, body: str) -> Path:
    path.write_text(f"#!{sys.executable}\nimport sys, time\nfrom pathlib import Path\n{body}\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fake_compilers(tmp_path):
    """
    Executable scripts that imitate a TeX engine.

    Each receives the engine flags followed by the .tex file name and runs in
    the compilation workspace.
    """
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()

    scripts = {
        "ok": _write_script(
            bin_dir / "fake-ok",
            "tex = Path(sys.argv[-1])\n"
            "Path(tex.stem + '.log').write_text('LaTeX Warning: Reference undefined on input line 3.\\n')\n"
            f"Path(tex.stem + '.pdf').write_bytes({FAKE_PDF!r} + tex.read_bytes())\n",
        ),
        "syntax": _write_script(
            bin_dir / "fake-syntax",
            "tex = Path(sys.argv[-1])\n"
            "Path(tex.stem + '.log').write_text('! Undefined control sequence.\\nl.7 \\\\badmacro\\n')\n"
            "sys.exit(1)\n",
        ),
        "no_pdf": _write_script(
            bin_dir / "fake-no-pdf",
            "tex = Path(sys.argv[-1])\n"
            "Path(tex.stem + '.log').write_text('This is a clean log.\\n')\n",
        ),
        "slow": _write_script(bin_dir / "fake-slow", "time.sleep(30)\n"),
        "args": _write_script(
            bin_dir / "fake-args",
            "tex = Path(sys.argv[-1])\n"
            "with open('passes.txt', 'a') as f:\n"
            "    f.write(' '.join(sys.argv[1:]) + '\\n')\n"
            f"Path(tex.stem + '.pdf').write_bytes({FAKE_PDF!r} + Path('passes.txt').read_bytes())\n",
        ),
        # pdftoppm stand-in: last argument is the output prefix
        "preview": _write_script(
            bin_dir / "fake-pdftoppm",
            "prefix = sys.argv[-1]\n"
            "Path(prefix + '-1.png').write_bytes(b'PNG page 1')\n"
            "Path(prefix + '-2.png').write_bytes(b'PNG page 2')\n",
        ),
    }
    return scripts
