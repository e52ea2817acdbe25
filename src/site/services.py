"""Site assembly: listing pages, feeds, static files and the output tree.

``plan_site_pages`` renders every page the site needs from the published
entries. ``SiteAssembler`` collects rendered pages and copied files under
unique output paths and writes them to disk.
"""

from __future__ import annotations

import logging
import math
import shutil
from collections.abc import Iterable, Sequence
from pathlib import Path, PurePosixPath
from typing import Any

from quire.config import QuireConfig
from quire.content.models import ContentEntry, EntryKind
from quire.content.services import by_date, by_weight, slugify
from quire.core import _atomic_write
from quire.render.models import Pager, PageView, RenderedPage
from quire.render.services import TemplateRenderer, template_candidates
from quire.shared.errors import DuplicateOutputError, QuireError
from quire.site.models import BuildManifest, OutputFile

logger = logging.getLogger(__name__)

# Kinds that may be replaced by a later file at the same path.
_REPLACEABLE = {"static"}


def _normalize(path: str) -> str:
    posix = PurePosixPath(path.replace("\\", "/").lstrip("/"))
    if not posix.parts or ".." in posix.parts:
        raise QuireError(f"invalid output path: {path!r}")
    return posix.as_posix()


def check_output_dir(output_dir: Path, site_dir: Path) -> None:
    """Refuse output directories that would let ``clean`` delete the site."""
    out = output_dir.resolve()
    site = site_dir.resolve()
    if out == site or out in site.parents:
        raise QuireError(f"output directory {output_dir} contains the site directory")


# ---------------------------------------------------------------------------
# Assembler
# ---------------------------------------------------------------------------


class SiteAssembler:
    """Collects output files and writes them under ``output_dir``.

    Every output path is claimed once. Static files may be replaced by a
    later static file at the same path (site static overrides theme
    static); any other collision raises ``DuplicateOutputError``.
    """

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir
        self._files: dict[str, OutputFile] = {}

    @property
    def paths(self) -> list[str]:
        return sorted(self._files)

    def get(self, path: str) -> OutputFile | None:
        return self._files.get(_normalize(path))

    def add(self, file: OutputFile, *, replace: bool = False) -> None:
        path = _normalize(file.path)
        existing = self._files.get(path)
        if existing is not None:
            if not (replace and existing.kind in _REPLACEABLE and file.kind in _REPLACEABLE):
                owner = existing.source or existing.kind
                raise DuplicateOutputError(
                    f"output path {path!r} also produced by {owner}", file.source
                )
            logger.debug("%s replaces %s at %s", file.source, existing.source, path)
        self._files[path] = file.model_copy(update={"path": path})

    def add_page(self, page: RenderedPage) -> None:
        self.add(
            OutputFile(
                path=page.output_path,
                kind=page.kind,
                source=page.source,
                data=page.content.encode("utf-8"),
            )
        )

    def add_text(self, path: str, text: str, *, kind: str = "asset") -> None:
        self.add(OutputFile(path=path, kind=kind, data=text.encode("utf-8")))

    def add_asset(
        self, source: Path, path: str, *, kind: str = "static", replace: bool = False
    ) -> None:
        self.add(OutputFile(path=path, kind=kind, source=source), replace=replace)

    def add_static_dir(self, directory: Path, *, replace: bool = False) -> int:
        """Copy every non-hidden file of a static directory. Returns the count."""
        if not directory.is_dir():
            return 0
        count = 0
        for source in sorted(directory.rglob("*")):
            rel = source.relative_to(directory)
            if not source.is_file() or any(p.startswith(".") for p in rel.parts):
                continue
            self.add_asset(source, rel.as_posix(), replace=replace)
            count += 1
        logger.debug("Collected %d static file(s) from %s", count, directory)
        return count

    def write(self, *, clean: bool = False) -> BuildManifest:
        """Write every collected file, skipping files whose bytes are unchanged."""
        manifest = BuildManifest()
        self.output_dir.mkdir(parents=True, exist_ok=True)
        for path in self.paths:
            file = self._files[path]
            target = self.output_dir / path
            data = file.read()
            if target.is_file() and target.read_bytes() == data:
                manifest.unchanged.append(path)
                continue
            _atomic_write(target, data)
            if file.is_copy and file.source is not None:
                shutil.copystat(file.source, target)
            manifest.written.append(path)
        if clean:
            manifest.removed = self.clean()
        logger.info("Output %s: %s", self.output_dir, manifest.summary())
        return manifest

    def clean(self) -> list[str]:
        """Remove files under the output directory that this build did not produce."""
        removed: list[str] = []
        if not self.output_dir.is_dir():
            return removed
        for path in sorted(self.output_dir.rglob("*"), reverse=True):
            rel = path.relative_to(self.output_dir).as_posix()
            if path.is_file() or path.is_symlink():
                if rel not in self._files:
                    path.unlink()
                    removed.append(rel)
            elif path.is_dir() and not any(path.iterdir()):
                path.rmdir()
        return sorted(removed)


# ---------------------------------------------------------------------------
# Page planning
# ---------------------------------------------------------------------------


def _list_path(base_dir: str, number: int) -> str:
    prefix = f"{base_dir}/" if base_dir else ""
    if number == 1:
        return f"{prefix}index.html"
    return f"{prefix}page/{number}/index.html"


def _permalink(output_path: str) -> str:
    return "/" + output_path.removesuffix("index.html")


def paginate(
    items: Sequence[PageView], per_page: int, base_dir: str
) -> list[tuple[str, Pager]]:
    """Split a listing into pagers with their output paths.

    Page one lives at ``<base_dir>/index.html``, page N at
    ``<base_dir>/page/N/index.html``. A non-positive ``per_page`` keeps a
    single page.
    """
    if per_page <= 0:
        per_page = max(len(items), 1)
    total = max(1, math.ceil(len(items) / per_page))
    pagers: list[tuple[str, Pager]] = []
    for number in range(1, total + 1):
        chunk = list(items[(number - 1) * per_page : number * per_page])
        pager = Pager(
            number=number,
            total=total,
            items=chunk,
            prev_url=_permalink(_list_path(base_dir, number - 1)) if number > 1 else "",
            next_url=_permalink(_list_path(base_dir, number + 1)) if number < total else "",
        )
        pagers.append((_list_path(base_dir, number), pager))
    return pagers


def _section_dirs(entries: Iterable[ContentEntry]) -> list[str]:
    dirs: set[str] = set()
    for entry in entries:
        if entry.kind == EntryKind.SECTION:
            dirs.add(entry.rel_dir)
        elif entry.kind == EntryKind.PAGE and entry.section:
            dirs.add(entry.section)
    return sorted(dirs)


def _implicit_section(rel_dir: str) -> ContentEntry:
    name = rel_dir.rsplit("/", 1)[-1]
    return ContentEntry(
        title=name.replace("-", " ").replace("_", " ").title(),
        slug=slugify(name),
        kind=EntryKind.SECTION,
        section=rel_dir.split("/", 1)[0],
        rel_dir=rel_dir,
    )


def _terms(pages: Sequence[ContentEntry], taxonomy: str) -> dict[str, tuple[str, list[ContentEntry]]]:
    terms: dict[str, tuple[str, list[ContentEntry]]] = {}
    for entry in pages:
        for term in entry.terms(taxonomy):
            key = slugify(term)
            if not key:
                continue
            terms.setdefault(key, (term, []))[1].append(entry)
    return dict(sorted(terms.items()))


def plan_site_pages(
    entries: Sequence[ContentEntry],
    renderer: TemplateRenderer,
    config: QuireConfig,
) -> list[RenderedPage]:
    """Render every page of the site from published entries.

    Produces entry pages, the paginated home page, section lists, taxonomy
    pages, alias redirects, ``index.xml``, ``sitemap.xml`` and ``404.html``.
    Output order is deterministic.
    """
    build = config.build
    rendered: list[RenderedPage] = []
    sitemap: list[dict[str, Any]] = []

    pages = [e for e in entries if e.kind == EntryKind.PAGE]
    dated = by_date(pages)

    def listing(
        entry: ContentEntry, items: Sequence[ContentEntry], base_dir: str
    ) -> None:
        view = renderer.view(entry)
        views = [renderer.view(e) for e in items]
        candidates = template_candidates(
            entry.kind, section=entry.section, layout=entry.layout
        )
        source = entry.source_path if entry.source_path != Path(".") else None
        for output_path, pager in paginate(views, build.paginate, base_dir):
            rendered.append(
                renderer.render_template(
                    candidates,
                    output_path,
                    {
                        "page": view,
                        "pages": views,
                        "pager": pager,
                        "title": entry.title,
                        "description": entry.description,
                    },
                    kind=entry.kind.value,
                    source=source if pager.number == 1 else None,
                )
            )
        sitemap.append({"loc": _permalink(_list_path(base_dir, 1)), "lastmod": None})

    # -- entry pages ---------------------------------------------------------
    for entry in pages:
        rendered.append(renderer.render_entry(entry))
        sitemap.append({"loc": entry.permalink, "lastmod": entry.lastmod or entry.date})

    # -- home ----------------------------------------------------------------
    home = next((e for e in entries if e.kind == EntryKind.HOME), None)
    if home is None:
        home = ContentEntry(title=config.site.title, slug="", kind=EntryKind.HOME)
    main = [e for e in dated if not build.main_sections or e.section in build.main_sections]
    listing(home, main, "")

    # -- sections ------------------------------------------------------------
    explicit = {e.rel_dir: e for e in entries if e.kind == EntryKind.SECTION}
    for rel_dir in _section_dirs(entries):
        section = explicit.get(rel_dir) or _implicit_section(rel_dir)
        members = [
            e for e in pages if e.rel_dir == rel_dir or e.rel_dir.startswith(rel_dir + "/")
        ]
        listing(section, by_weight(members), rel_dir)

    # -- taxonomies ----------------------------------------------------------
    for taxonomy in build.taxonomies:
        terms = _terms(dated, taxonomy)
        if not terms:
            continue
        base = slugify(taxonomy)
        term_list = [
            {"name": name, "url": f"/{base}/{key}/", "count": len(members)}
            for key, (name, members) in terms.items()
        ]
        label = taxonomy.replace("_", " ").title()
        rendered.append(
            renderer.render_template(
                template_candidates("terms", taxonomy=base),
                f"{base}/index.html",
                {"title": label, "taxonomy": taxonomy, "terms": term_list},
                kind="taxonomy",
            )
        )
        sitemap.append({"loc": f"/{base}/", "lastmod": None})
        for key, (name, members) in terms.items():
            rendered.append(
                renderer.render_template(
                    template_candidates("term", taxonomy=base),
                    f"{base}/{key}/index.html",
                    {
                        "title": name,
                        "taxonomy": taxonomy,
                        "term": name,
                        "pages": [renderer.view(e) for e in members],
                    },
                    kind="term",
                )
            )
            sitemap.append({"loc": f"/{base}/{key}/", "lastmod": None})

    # -- aliases -------------------------------------------------------------
    for entry in pages:
        for alias in entry.aliases:
            path = alias.strip("/")
            output_path = path if path.endswith(".html") else f"{path}/index.html"
            rendered.append(
                renderer.render_template(
                    ["alias.html"],
                    output_path,
                    {"target": entry.permalink, "title": entry.title},
                    kind="alias",
                    source=entry.source_path,
                )
            )

    # -- feeds ---------------------------------------------------------------
    feed = [renderer.view(e) for e in main[: max(build.rss_limit, 0)]]
    updated = max((e.date for e in main if e.date is not None), default=None)
    rendered.append(
        renderer.render_template(
            ["rss.xml"], "index.xml", {"pages": feed, "updated": updated}, kind="rss"
        )
    )
    rendered.append(
        renderer.render_template(
            ["sitemap.xml"],
            "sitemap.xml",
            {"urls": sorted(sitemap, key=lambda u: u["loc"])},
            kind="sitemap",
        )
    )
    rendered.append(
        renderer.render_template(
            ["404.html"], "404.html", {"title": "Page not found"}, kind="404"
        )
    )

    logger.info("Planned %d page(s) from %d entries", len(rendered), len(entries))
    return rendered
