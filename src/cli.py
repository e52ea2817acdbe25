"""CLI interface for quire."""

import datetime as dt
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from quire.config import QuireConfig, load_config, merge_cli_overrides
from quire.content import (
    ContentLoader,
    EntryKind,
    PublishPolicy,
    by_date,
    render_archetype,
    slugify,
)
from quire.pipeline import build_site, compile_site_styles
from quire.shared.errors import PipelineReport, QuireError

app = typer.Typer(
    name="quire",
    help="Build a static site from Markdown content and a token-driven theme.",
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from quire import __version__

        console.print(f"quire {__version__}")
        raise typer.Exit()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging."),
    ] = False,
) -> None:
    """quire - Markdown content + theme config -> static site."""
    _setup_logging(verbose)


SiteOption = Annotated[
    Path,
    typer.Option(
        "--site",
        "-s",
        help="Site directory containing quire.toml and content/.",
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
]


def _load(site: Path, config_path: Optional[Path]) -> QuireConfig:
    if not site.is_dir():
        console.print(f"[red]Error:[/red] Site directory not found: {site}")
        raise typer.Exit(1)
    return load_config(config_path, site_dir=site)


@app.command()
def build(
    site: SiteOption = Path("."),
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Explicit config file."),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output directory (default: public/)."),
    ] = None,
    drafts: Annotated[
        Optional[bool],
        typer.Option("--drafts/--no-drafts", help="Publish draft entries."),
    ] = None,
    future: Annotated[
        Optional[bool],
        typer.Option("--future/--no-future", help="Publish future-dated entries."),
    ] = None,
    base_url: Annotated[
        Optional[str],
        typer.Option("--base-url", help="Override [site] base_url."),
    ] = None,
    skip_errors: Annotated[
        bool,
        typer.Option("--skip-errors", help="Skip content files that fail to load."),
    ] = False,
    minify: Annotated[
        bool,
        typer.Option("--minify", help="Write a compressed stylesheet."),
    ] = False,
    clean: Annotated[
        bool,
        typer.Option("--clean", help="Remove stale files from the output directory."),
    ] = False,
) -> None:
    """Build the site into its output directory."""
    config = merge_cli_overrides(
        _load(site, config_path),
        output_dir=str(output.resolve()) if output is not None else None,
        base_url=base_url,
        include_drafts=drafts,
        include_future=future,
        on_content_error="skip" if skip_errors else None,
        output_style="compressed" if minify else None,
    )
    report = PipelineReport()

    try:
        result = build_site(site, config=config, report=report, clean=clean)
    except QuireError as exc:
        console.print(f"[red]Build failed:[/red] {exc}")
        raise typer.Exit(1) from exc

    for error in report.errors:
        console.print(f"[yellow]Skipped[/yellow] {error.source}: {error.message}")
    for warning in report.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")

    console.print(
        f"[green]Built[/green] {len(result.pages)} page(s) from "
        f"{result.published}/{result.entries} entries into {result.output_dir}"
    )
    console.print(f"  {result.manifest.summary()}; {report.summary()}")


@app.command()
def new(
    path: Annotated[
        str,
        typer.Argument(help="Content path, e.g. posts/my-first-post.md"),
    ],
    site: SiteOption = Path("."),
    title: Annotated[
        Optional[str],
        typer.Option("--title", "-t", help="Title (default: derived from the file name)."),
    ] = None,
    tags: Annotated[
        Optional[str],
        typer.Option("--tags", help="Comma-separated tags."),
    ] = None,
    publish: Annotated[
        bool,
        typer.Option("--publish", help="Create the entry with draft: false."),
    ] = False,
) -> None:
    """Create a new content file from the default archetype."""
    config = _load(site, None)
    rel = Path(path)
    if rel.suffix != ".md":
        rel = rel.with_suffix(".md")
    content_dir = config.resolve(site, config.build.content_dir).resolve()
    target = (content_dir / rel).resolve()
    if not target.is_relative_to(content_dir):
        console.print(f"[red]Error:[/red] {path} is outside the content directory")
        raise typer.Exit(1)
    if target.exists():
        console.print(f"[red]Error:[/red] {target} already exists")
        raise typer.Exit(1)

    stem = rel.parent.name if rel.name == "index.md" else rel.stem
    content = render_archetype(
        title or stem.replace("-", " ").replace("_", " ").title(),
        on=dt.date.today(),
        author=config.site.author,
        tags=[t.strip() for t in (tags or "").split(",") if t.strip()],
        draft=not publish,
    )
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    console.print(f"[green]Created[/green] {target} ({slugify(stem)})")


@app.command("list")
def list_cmd(
    site: SiteOption = Path("."),
    drafts: Annotated[
        bool,
        typer.Option("--drafts", help="Only show drafts."),
    ] = False,
) -> None:
    """List content entries with their publishing state."""
    config = _load(site, None)
    report = PipelineReport()
    loader = ContentLoader(
        config.resolve(site, config.build.content_dir), on_error="skip", report=report
    )
    try:
        entries = loader.load()
    except QuireError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc
    policy = PublishPolicy(
        include_drafts=config.build.include_drafts,
        include_future=config.build.include_future,
    )

    table = Table(title=f"{config.site.title} content")
    table.add_column("Date")
    table.add_column("Kind")
    table.add_column("Title")
    table.add_column("URL")
    table.add_column("State")
    for entry in by_date(entries):
        if drafts and not entry.draft:
            continue
        if entry.draft:
            state = "[yellow]draft[/yellow]"
        elif policy.is_published(entry):
            state = "[green]published[/green]"
        else:
            state = "[dim]future[/dim]"
        table.add_row(
            entry.date.isoformat() if entry.date else "",
            entry.kind.value if entry.kind != EntryKind.PAGE else entry.section or "page",
            entry.title,
            entry.permalink,
            state,
        )
    console.print(table)
    for error in report.errors:
        console.print(f"[red]Error:[/red] {error.source}: {error.message}")


@app.command()
def styles(
    site: SiteOption = Path("."),
    token: Annotated[
        Optional[list[str]],
        typer.Option("--token", "-t", help="Only show these tokens."),
    ] = None,
    show_css: Annotated[
        bool,
        typer.Option("--css", help="Print the compiled stylesheet."),
    ] = False,
) -> None:
    """Compile the stylesheet and show resolved design tokens."""
    config = _load(site, None)
    try:
        sheet = compile_site_styles(site, config)
    except QuireError as exc:
        console.print(f"[red]Style error:[/red] {exc}")
        raise typer.Exit(1) from exc

    wanted = [t.lstrip("$") for t in token] if token else sorted(sheet.scope)
    table = Table(title="Design tokens")
    table.add_column("Token")
    table.add_column("Resolved")
    table.add_column("Final")
    table.add_column("Declared at")
    for name in wanted:
        decls = sheet.declarations_for(name)
        winner = next(
            (d for d in reversed(decls) if d.applied and d.value == sheet.value(name)), None
        )
        table.add_row(
            f"${name}",
            sheet.value(name) or "[red]undefined[/red]",
            sheet.scope.get(name, ""),
            winner.origin if winner else "",
        )
    console.print(table)

    for warning in sheet.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
    if show_css:
        console.print(sheet.css, markup=False, highlight=False)


if __name__ == "__main__":
    app()
