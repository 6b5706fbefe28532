#!/usr/bin/env python3
"""
Resume Rendering CLI

Renders structured resume content to PDF through a VELLUM session, with the
same caching, persistence and library behavior an editor session gets.

Commands:
    render    - Render a resume content file (YAML/JSON) to PDF
    compile   - Compile a raw LaTeX file to PDF
    templates - List registered templates
    check     - Report which toolchain executables are installed
    events    - Show recent render events

Examples:\n

    render_resume.py render data/ada.yaml                        # Default template

    render_resume.py render data/ada.yaml -t modern -o outs/     # Modern template into outs/

    render_resume.py render data/ada.yaml --save-as "Draft 1"    # Also save to the library

    render_resume.py compile notes/custom.tex                    # Raw LaTeX

    render_resume.py events -n 20 -e state_change                # Last 20 state changes
"""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from typing_extensions import Annotated

from vellum.contexts.caching import JobTargetContext
from vellum.contexts.rendering import CompilationError, CompilationPipeline, check_toolchain, detect_engine
from vellum.contexts.session import Session
from vellum.contexts.session.logger import setup_session_logger
from vellum.contexts.templating import ResumeDraft, TemplateRegistry, load_resume_content
from vellum.utils.config import load_render_config
from vellum.utils.errors import VellumError
from vellum.utils.event_logging import get_recent_events
from vellum.utils.timestamp import format_timestamp, now

load_dotenv()

app = typer.Typer(
    help="Render resumes to PDF with cached, persisted artifacts",
    add_completion=False,
    invoke_without_command=True,
)

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Render config YAML (defaults to VELLUM_CONFIG_PATH)"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Show debug output on the console"),
]


def _setup(config_path: Optional[Path], verbose: bool, context: str):
    """Load configuration and configure logging sinks for a command."""
    try:
        config = load_render_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        typer.secho(f"Error: {e}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    log_dir = Path(config.logs_path) / f"{context}_{now()}" if config.logs_path else None
    setup_session_logger(config, log_dir, console_level="DEBUG" if verbose else "WARNING")
    return config


@app.callback()
def main(ctx: typer.Context):
    """Show help by default when no command is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@app.command("render")
def render_command(
    content_path: Annotated[Path, typer.Argument(help="Resume content file (YAML or JSON)")],
    template_id: Annotated[
        Optional[str], typer.Option("--template", "-t", help="Template id (default from config)")
    ] = None,
    output_dir: Annotated[
        Path, typer.Option("--output-dir", "-o", help="Directory for the PDF")
    ] = Path("."),
    name: Annotated[
        Optional[str], typer.Option("--name", help="PDF file name (default: First_Last_date.pdf)")
    ] = None,
    session_id: Annotated[
        Optional[str],
        typer.Option("--session", "-s", help="Session id for cached artifacts (default: content file stem)"),
    ] = None,
    job_title: Annotated[Optional[str], typer.Option("--job-title", help="Targeted job title")] = None,
    company_name: Annotated[Optional[str], typer.Option("--company", help="Targeted company")] = None,
    job_url: Annotated[Optional[str], typer.Option("--job-url", help="Targeted job posting URL")] = None,
    previews: Annotated[
        bool, typer.Option("--previews", help="Also write PNG previews of the first pages")
    ] = False,
    require_ready: Annotated[
        bool, typer.Option("--require-ready", help="Refuse to render until mandatory fields are filled")
    ] = False,
    save_as: Annotated[
        Optional[str], typer.Option("--save-as", help="Also save the result to the library under this name")
    ] = None,
    send_to_printer: Annotated[
        bool, typer.Option("--print", help="Send the result to the configured print command")
    ] = False,
    persist: Annotated[
        bool, typer.Option("--persist/--no-persist", help="Persist artifacts for the next run")
    ] = True,
    config_path: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Render a resume content file to PDF.

    Unchanged content with the same template and job target is served from
    the persisted cache without recompiling (requires storage_path in config).

    Examples:\n

        $ render_resume.py render data/ada.yaml

        $ render_resume.py render data/ada.yaml -t technical --job-title "Data Engineer" --company Acme
    """
    config = _setup(config_path, verbose, "render")

    try:
        content = load_resume_content(content_path)
    except (FileNotFoundError, TypeError) as e:
        typer.secho(f"Error: {e}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    job_target = None
    if job_title or company_name or job_url:
        job_target = JobTargetContext(
            job_url=job_url or "", job_title=job_title or "", company_name=company_name or ""
        )

    typer.secho(f"\nRendering: {content_path}", fg=typer.colors.BLUE, bold=True)

    with Session(session_id=session_id or content_path.stem, draft=ResumeDraft(content), config=config) as session:
        result = asyncio.run(
            session.render(
                template_id=template_id,
                job_target=job_target,
                previews=previews,
                require_ready=require_ready,
            )
        )

        if not result.ok:
            typer.secho(f"✗ Render failed [{result.failure.code}]", fg=typer.colors.RED, bold=True)
            typer.secho(f"  {result.failure.message}", fg=typer.colors.RED)
            typer.echo("")
            raise typer.Exit(code=1)

        source = "cache" if result.cache_hit else "compiled"
        typer.secho(f"✓ Ready ({source})", fg=typer.colors.GREEN, bold=True)
        typer.echo(f"  Template: {result.artifact.template_id}")
        typer.echo(f"  Fingerprint: {result.fingerprint}")
        if result.artifact.page_count is not None:
            typer.echo(f"  Pages: {result.artifact.page_count}")

        try:
            pdf_path = session.download(name=name, output_dir=output_dir)
            typer.echo(f"  PDF: {pdf_path}")

            for i, image in enumerate(result.previews, 1):
                preview_path = pdf_path.with_name(f"{pdf_path.stem}_page{i}.png")
                preview_path.write_bytes(image)
                typer.echo(f"  Preview: {preview_path}")

            if save_as:
                entry_id = session.save_to_library(save_as, job_target)
                typer.echo(f"  Library: '{save_as}' ({entry_id})")

            if send_to_printer:
                session.print()
                typer.echo(f"  Sent to printer ({config.print_command})")
        except VellumError as e:
            typer.secho(f"Error: {e}\n", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)

        if persist and not session.persist():
            typer.secho("  Artifact not persisted (storage limit reached)", fg=typer.colors.YELLOW)

    typer.echo("")


@app.command("compile")
def compile_command(
    tex_file: Annotated[Path, typer.Argument(help="LaTeX file to compile")],
    output_dir: Annotated[
        Optional[Path], typer.Option("--output-dir", "-o", help="Directory for the PDF (default: next to the source)")
    ] = None,
    engine: Annotated[
        Optional[str], typer.Option("--engine", "-e", help="pdflatex, xelatex or lualatex (default: detected)")
    ] = None,
    config_path: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Compile a standalone LaTeX file to PDF.

    Examples:\n

        $ render_resume.py compile notes/custom.tex

        $ render_resume.py compile notes/custom.tex --engine xelatex
    """
    config = _setup(config_path, verbose, "compile")

    if not tex_file.exists():
        typer.secho(f"Error: TeX file not found: {tex_file}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    source = tex_file.read_text(encoding="utf-8")
    engine = engine or detect_engine(source)
    typer.secho(f"\nCompiling: {tex_file}", fg=typer.colors.BLUE, bold=True)
    typer.echo(f"Engine: {engine}")

    try:
        output = asyncio.run(CompilationPipeline(config).compile(source, engine=engine))
    except CompilationError as e:
        typer.secho("✗ Compilation failed", fg=typer.colors.RED, bold=True)
        for line in str(e).splitlines():
            typer.secho(f"  - {line}", fg=typer.colors.RED)
        typer.echo("")
        raise typer.Exit(code=1)

    output_dir = output_dir or tex_file.parent
    output_dir.mkdir(parents=True, exist_ok=True)
    pdf_path = output_dir / f"{tex_file.stem}.pdf"
    pdf_path.write_bytes(output.pdf_bytes)

    typer.secho("✓ Compilation succeeded", fg=typer.colors.GREEN, bold=True)
    typer.echo(f"  {engine} warnings: {len(output.warnings)}")
    if verbose and output.warnings:
        for warning in output.warnings[:10]:
            typer.echo(f"  - {warning}")
    typer.echo(f"  PDF: {pdf_path}")
    typer.echo("")


@app.command("templates")
def templates_command(config_path: ConfigOption = None):
    """List registered templates."""
    config = load_render_config(config_path)
    registry = TemplateRegistry(default_template_id=config.default_template_id)

    typer.secho(f"\n{len(registry.template_ids)} templates:", fg=typer.colors.BLUE, bold=True)
    for template in registry.list_templates():
        marker = " (default)" if template.id == registry.default_template_id else ""
        typer.secho(f"\n  {template.id}{marker}", bold=True)
        typer.echo(f"    {template.display_name} [{template.category}], {template.engine}")
        if template.description:
            typer.echo(f"    {template.description}")
        typer.echo(f"    Requires: {', '.join(template.required_placeholders) or 'nothing'}")
    typer.echo("")


@app.command("check")
def check_command(config_path: ConfigOption = None):
    """
    Report which toolchain executables are installed.

    Exits with status 1 when the default engine is missing.
    """
    config = load_render_config(config_path)
    found = check_toolchain(config)

    typer.secho("\nToolchain:", fg=typer.colors.BLUE, bold=True)
    for name, path in found.items():
        if path:
            typer.secho(f"  ✓ {name}: {path}", fg=typer.colors.GREEN)
        else:
            typer.secho(f"  ✗ {name}: not found", fg=typer.colors.RED)
    typer.echo("")

    raise typer.Exit(code=0 if found["pdflatex"] else 1)


@app.command("events")
def events_command(
    n: Annotated[int, typer.Option("--num", "-n", help="Number of recent events to show")] = 10,
    session_id: Annotated[
        Optional[str], typer.Option("--session", "-s", help="Filter to events for this session")
    ] = None,
    event_type: Annotated[
        Optional[str], typer.Option("--event-type", "-e", help="Filter to events of this type")
    ] = None,
    relative: Annotated[
        bool, typer.Option("--relative", "-r", help="Show relative timestamps (e.g., '2h ago')")
    ] = False,
    compact: Annotated[
        bool, typer.Option("--compact", help="Print one event per line (raw JSON)")
    ] = False,
    config_path: ConfigOption = None,
):
    """
    Show the last n events from the render event log.

    Examples:\n

        $ render_resume.py events -n 20

        $ render_resume.py events -s ada -e state_change --relative
    """
    config = load_render_config(config_path)
    if config.events_file is None:
        typer.secho("Event logging is disabled (set events_file)", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)

    events = get_recent_events(Path(config.events_file), n=n, session_id=session_id, event_type=event_type)
    if not events:
        typer.secho("No events found", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)

    for event in events:
        if compact:
            typer.echo(json.dumps(event))
            continue
        details = {k: v for k, v in event.items() if k not in ("timestamp", "event_type", "session_id", "source")}
        typer.secho(
            f"{format_timestamp(event['timestamp'], relative=relative)}  {event['event_type']}",
            fg=typer.colors.BLUE,
            nl=False,
        )
        typer.echo(f"  [{event['session_id']}] {json.dumps(details)}")


if __name__ == "__main__":
    app()
