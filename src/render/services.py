"""Template rendering for content entries and generated pages.

Layout lookup follows a fixed order: the site's ``layouts/`` directory,
then the theme's ``layouts/``, then the built-in theme shipped with quire.
Within those, a template is chosen with ``select_template`` from the most
specific name (front-matter ``layout``, then section) to ``_default/``.
"""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable, Sequence
from email.utils import format_datetime
from pathlib import Path
from typing import Any

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    TemplateError,
    TemplateNotFound,
    TemplateSyntaxError,
    select_autoescape,
)

from quire.content.models import ContentEntry, EntryKind
from quire.content.services import slugify
from quire.render.markup import convert_markdown
from quire.render.models import PageView, RenderedBody, RenderedPage, SiteView
from quire.render.shortcodes import ShortcodeProcessor
from quire.shared.errors import RenderError, ShortcodeError

logger = logging.getLogger(__name__)

BUILTIN_LAYOUTS = Path(__file__).resolve().parent.parent / "theme" / "layouts"


def template_candidates(
    kind: str, *, section: str = "", layout: str = "", taxonomy: str = ""
) -> list[str]:
    """Template names to try, most specific first."""
    names: list[str] = []
    if kind == EntryKind.PAGE:
        if layout:
            if section:
                names.append(f"{section}/{layout}.html")
            names.append(f"_default/{layout}.html")
        if section:
            names.append(f"{section}/single.html")
        names.append("_default/single.html")
    elif kind == EntryKind.SECTION:
        if layout:
            names.append(f"_default/{layout}.html")
        if section:
            names.append(f"{section}/list.html")
        names.append("_default/list.html")
    elif kind == EntryKind.HOME:
        if layout:
            names.append(f"_default/{layout}.html")
        names.extend(["index.html", "_default/list.html"])
    elif kind == "terms":
        names.extend([f"{taxonomy}/terms.html", "_default/terms.html"])
    elif kind == "term":
        names.extend([f"{taxonomy}/term.html", "_default/term.html", "_default/list.html"])
    else:
        names.append(f"{kind}")
    return names


def _format_date(value: dt.date | None, fmt: str = "%b %d, %Y") -> str:
    if value is None:
        return ""
    return value.strftime(fmt)


def _rfc822(value: dt.date | None) -> str:
    if value is None:
        return ""
    moment = dt.datetime.combine(value, dt.time(), tzinfo=dt.UTC)
    return format_datetime(moment)


def _iso_date(value: dt.date | None) -> str:
    return value.isoformat() if value is not None else ""


class TemplateRenderer:
    """Renders entries and listings to HTML with Jinja2.

    Args:
        layout_dirs: Site and theme layout directories, highest priority first.
            Missing directories are skipped.
        site: Site-wide template values.
        include_builtin: Fall back to the built-in layouts.
    """

    def __init__(
        self,
        layout_dirs: Iterable[Path],
        *,
        site: SiteView | None = None,
        include_builtin: bool = True,
    ) -> None:
        self.site = site or SiteView()
        search = [d for d in layout_dirs if d.is_dir()]
        if include_builtin:
            search.append(BUILTIN_LAYOUTS)
        self.layout_dirs = search
        self.env = Environment(
            loader=ChoiceLoader([FileSystemLoader(str(d)) for d in search]),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self.env.filters["date_format"] = _format_date
        self.env.filters["rfc822"] = _rfc822
        self.env.filters["iso_date"] = _iso_date
        self.env.filters["slugify"] = slugify
        self.env.filters["relurl"] = self.site.rel_url
        self.env.filters["absurl"] = self.site.abs_url
        self.env.filters["markdownify"] = lambda text: convert_markdown(text or "")[0]
        self.env.globals["site"] = self.site
        self.shortcodes = ShortcodeProcessor(
            self.env, lambda text: convert_markdown(text)[0]
        )
        self._views: dict[str, PageView] = {}

    # -- markdown --------------------------------------------------------

    def render_body(self, entry: ContentEntry) -> RenderedBody:
        """Markdown body, table of contents and summary for an entry."""
        context = {"page": entry}
        try:
            protected = self.shortcodes.protect(entry.body, context)
            html, toc = convert_markdown(protected.text)
            html = protected.restore(html)
            summary_md = entry.summary_markdown
            summary = self.shortcodes.expand(summary_md, context) if summary_md else ""
        except ShortcodeError as exc:
            raise ShortcodeError(f"{entry.source_path}: {exc}") from exc
        return RenderedBody(html=html, toc=toc, summary=summary)

    def view(self, entry: ContentEntry) -> PageView:
        """Cached PageView for an entry; each body is rendered once per build."""
        key = entry.output_path
        cached = self._views.get(key)
        if cached is None or cached.entry is not entry:
            cached = PageView(entry=entry, body=self.render_body(entry))
            self._views[key] = cached
        return cached

    # -- templates -------------------------------------------------------

    def render_template(
        self,
        candidates: Sequence[str],
        output_path: str,
        context: dict[str, Any],
        *,
        kind: str = "page",
        source: Path | None = None,
    ) -> RenderedPage:
        """Render the first template found among ``candidates``."""
        try:
            template = self.env.select_template(list(candidates))
        except TemplateNotFound as exc:
            raise RenderError(
                f"no template for {output_path}; tried {', '.join(candidates)}"
            ) from exc
        except TemplateSyntaxError as exc:
            raise RenderError(
                f"template syntax error in {exc.filename} at line {exc.lineno}: {exc.message}"
            ) from exc
        try:
            content = template.render(**context)
        except TemplateError as exc:
            raise RenderError(f"rendering {output_path} with {template.name} failed: {exc}") from exc
        logger.debug("Rendered %s with %s", output_path, template.name)
        return RenderedPage(output_path=output_path, content=content, kind=kind, source=source)

    def render_entry(
        self, entry: ContentEntry, **extra: Any
    ) -> RenderedPage:
        """Render a content entry with its kind's template."""
        view = self.view(entry)
        candidates = template_candidates(
            entry.kind, section=entry.section, layout=entry.layout
        )
        source = entry.source_path if entry.source_path != Path(".") else None
        return self.render_template(
            candidates,
            entry.output_path,
            {"page": view, "title": entry.title, "description": entry.description, **extra},
            kind=entry.kind.value,
            source=source,
        )
