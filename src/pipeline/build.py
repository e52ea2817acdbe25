"""Build pipeline: content -> styles -> render -> assemble."""

from __future__ import annotations

import datetime as dt
import logging
from pathlib import Path

from pydantic import BaseModel, Field

from quire.config import QuireConfig, load_config
from quire.content import ContentLoader, EntryKind, PublishPolicy, select_published
from quire.render import SiteView, TemplateRenderer
from quire.shared.errors import PipelineReport, StyleImportError
from quire.site import BuildManifest, SiteAssembler, check_output_dir, plan_site_pages
from quire.styles import CompiledStylesheet, StyleCompiler, StylePlan, ThemeOverride

logger = logging.getLogger(__name__)

BUILTIN_STYLES = Path(__file__).resolve().parent.parent / "theme" / "styles"


class BuildResult(BaseModel):
    """Outcome of one site build."""

    output_dir: Path
    entries: int = 0
    published: int = 0
    pages: list[str] = Field(default_factory=list)
    stylesheet: CompiledStylesheet | None = None
    stylesheet_path: str = ""
    manifest: BuildManifest = Field(default_factory=BuildManifest)
    report: PipelineReport = Field(default_factory=PipelineReport)


def _theme_dir(site_dir: Path, config: QuireConfig) -> Path | None:
    if not config.theme.directory:
        return None
    return config.resolve(site_dir, config.theme.directory)


def style_load_paths(site_dir: Path, config: QuireConfig) -> list[Path]:
    """Directories searched for stylesheet modules, highest priority first."""
    assets = config.resolve(site_dir, config.build.assets_dir)
    paths = [assets / "scss", assets]
    theme_dir = _theme_dir(site_dir, config)
    if theme_dir is not None:
        paths.extend([theme_dir / "assets" / "scss", theme_dir / "styles"])
    paths.append(BUILTIN_STYLES)
    paths.extend(config.resolve(site_dir, p) for p in config.theme.load_paths)
    return [p for p in paths if p.is_dir()]


def layout_dirs(site_dir: Path, config: QuireConfig) -> list[Path]:
    """Template directories: site layouts first, then the theme's."""
    dirs = [config.resolve(site_dir, config.build.layouts_dir)]
    theme_dir = _theme_dir(site_dir, config)
    if theme_dir is not None:
        dirs.append(theme_dir / "layouts")
    return dirs


def compile_site_styles(site_dir: Path, config: QuireConfig) -> CompiledStylesheet:
    """Compile the site stylesheet.

    With ``[theme] entry`` set, that entry stylesheet is compiled as
    written. Otherwise a StylePlan is built from configuration: overrides,
    then base modules, then dependent modules, then the literal CSS file.

    Raises:
        StyleImportError: If the entry, a module, or the literal CSS file
            is missing.
        StyleCompileError: On any other stylesheet error.
    """
    theme = config.theme
    compiler = StyleCompiler(
        style_load_paths(site_dir, config), output_style=theme.output_style
    )

    if theme.entry:
        entry = config.resolve(site_dir, theme.entry)
        logger.info("Compiling stylesheet %s", entry)
        return compiler.compile_file(entry)

    literal_css = ""
    if theme.literal_css:
        literal_path = config.resolve(site_dir, theme.literal_css)
        if not literal_path.is_file():
            raise StyleImportError("literal CSS file not found", literal_path)
        literal_css = literal_path.read_text(encoding="utf-8")

    plan = StylePlan.from_theme(
        [ThemeOverride(token=o.token, value=o.value) for o in theme.overrides],
        theme.base_modules,
        theme.dependent_modules,
        literal_css,
    )
    logger.info(
        "Compiling stylesheet plan: %d override(s), %d module(s)",
        len(theme.overrides),
        len(theme.base_modules) + len(theme.dependent_modules),
    )
    return compiler.compile_plan(plan, base_dir=site_dir)


def build_site(
    site_dir: Path,
    *,
    config: QuireConfig | None = None,
    report: PipelineReport | None = None,
    clean: bool = False,
    now: dt.date | None = None,
) -> BuildResult:
    """Build a site tree into its output directory.

    Args:
        site_dir: Site root holding the config file and content tree.
        config: Preloaded config; loaded from ``site_dir`` when omitted.
        report: Report collecting non-fatal problems.
        clean: Remove output files this build did not produce.
        now: Reference date for the future-dated publishing rule.

    Returns:
        BuildResult describing the written output.

    Raises:
        QuireError: On any fatal content, style or render error.
    """
    site_dir = Path(site_dir)
    config = config or load_config(site_dir=site_dir)
    report = report if report is not None else PipelineReport()
    output_dir = config.resolve(site_dir, config.build.output_dir)
    check_output_dir(output_dir, site_dir)

    # ---- Content ----
    loader = ContentLoader(
        config.resolve(site_dir, config.build.content_dir),
        on_error=config.build.on_content_error,
        report=report,
    )
    entries = loader.load()
    policy = PublishPolicy(
        include_drafts=config.build.include_drafts,
        include_future=config.build.include_future,
        now=now,
    )
    published = select_published(entries, policy)
    logger.info("Loaded %d entries, %d published", len(entries), len(published))

    # ---- Styles ----
    stylesheet = compile_site_styles(site_dir, config)
    for warning in stylesheet.warnings:
        report.add_warning(warning)
    css_path = stylesheet.output_name(
        config.theme.output_name, fingerprint=config.theme.fingerprint
    )

    # ---- Render ----
    renderer = TemplateRenderer(
        layout_dirs(site_dir, config),
        site=SiteView.from_config(config, stylesheet=css_path),
    )
    pages = plan_site_pages(published, renderer, config)

    # ---- Assemble ----
    assembler = SiteAssembler(output_dir)
    for page in pages:
        assembler.add_page(page)
    assembler.add_text(css_path, stylesheet.css, kind="stylesheet")
    for entry in published:
        if entry.kind != EntryKind.PAGE:
            continue
        for resource in entry.resources:
            prefix = f"{entry.output_dir}/" if entry.output_dir else ""
            assembler.add_asset(resource.source, prefix + resource.name, kind="resource")
    theme_dir = _theme_dir(site_dir, config)
    if theme_dir is not None:
        assembler.add_static_dir(theme_dir / "static")
    assembler.add_static_dir(config.resolve(site_dir, config.build.static_dir), replace=True)

    manifest = assembler.write(clean=clean)

    return BuildResult(
        output_dir=output_dir,
        entries=len(entries),
        published=len(published),
        pages=sorted(p.output_path for p in pages),
        stylesheet=stylesheet,
        stylesheet_path=css_path,
        manifest=manifest,
        report=report,
    )
