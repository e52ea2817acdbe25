"""Loading services for the content tree.

Reads Markdown files with YAML (``---``) or TOML (``+++``) front-matter,
classifies them as home, section, page or page bundle, and produces
frozen ``ContentEntry`` values. Imports models from
``quire.content.models``.
"""

from __future__ import annotations

import datetime as dt
import json
import logging
import re
import tomllib
import unicodedata
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Literal

import yaml

from quire.content.models import BundleResource, ContentEntry, EntryKind, PublishPolicy
from quire.shared.errors import (
    ContentError,
    DuplicateOutputError,
    FrontMatterError,
    PipelineReport,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

INDEX_FILENAME = "_index.md"
BUNDLE_FILENAME = "index.md"

_FENCES = {"---": "yaml", "+++": "toml"}
_TRUTHY = ("true", "yes", "1", "y", "on")

# Keys mapped onto ContentEntry fields; everything else lands in params.
_KNOWN_KEYS = {
    "title", "slug", "date", "lastmod", "author", "authors", "tags",
    "categories", "draft", "description", "summary", "weight", "layout",
    "url", "aliases", "params",
}


# ---------------------------------------------------------------------------
# Front-matter
# ---------------------------------------------------------------------------


def parse_front_matter(text: str, path: Path | None = None) -> tuple[dict[str, Any], str]:
    """Split a content file into its metadata mapping and Markdown body.

    Args:
        text: Full file contents.
        path: Source path, only used in error messages.

    Returns:
        ``(metadata, body)``. Files without a fence have empty metadata.

    Raises:
        FrontMatterError: If the fence is unterminated or the block is
            not a valid YAML/TOML mapping.
    """
    text = text.lstrip("\ufeff")
    first_line, _, rest = text.partition("\n")
    fence = first_line.strip()
    if fence not in _FENCES:
        return {}, text

    closing = re.search(rf"^{re.escape(fence)}[ \t]*$", rest, re.MULTILINE)
    if closing is None:
        raise FrontMatterError(f"unterminated {fence} front-matter block", path)

    raw = rest[: closing.start()]
    body = rest[closing.end():].lstrip("\n")

    try:
        if _FENCES[fence] == "yaml":
            data = yaml.safe_load(raw) if raw.strip() else {}
        else:
            data = tomllib.loads(raw)
    except (yaml.YAMLError, ValueError) as exc:
        raise FrontMatterError(f"malformed front-matter: {exc}", path) from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontMatterError("front-matter must be a mapping", path)
    return data, body


def _coerce_date(value: Any, key: str, path: Path | None) -> dt.date | None:
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        try:
            return dt.datetime.fromisoformat(value.strip()).date()
        except ValueError:
            pass
    raise FrontMatterError(f"invalid {key}: {value!r}", path)


def _coerce_list(value: Any) -> tuple[str, ...]:
    """Normalise a list-ish value, dropping duplicates but keeping order."""
    if value is None:
        return ()
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = value
    else:
        items = [value]
    seen: dict[str, None] = {}
    for item in items:
        text = str(item).strip()
        if text:
            seen.setdefault(text, None)
    return tuple(seen)


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


def slugify(text: str) -> str:
    """Lowercase, ASCII-fold and hyphenate a title or term."""
    normalized = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode()
    slug = re.sub(r"[^\w\s-]", "", normalized).strip().lower()
    return re.sub(r"[-\s_]+", "-", slug).strip("-")


def _title_from_slug(slug: str) -> str:
    return slug.replace("-", " ").replace("_", " ").strip().title()


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


class ContentLoader:
    """Discovers and reads content entries from the content directory.

    Args:
        content_dir: Root of the content tree.
        on_error: ``"abort"`` re-raises the first content error, ``"skip"``
            records it in ``report`` and drops only that file.
        report: Optional report collecting skipped files.
    """

    def __init__(
        self,
        content_dir: Path,
        *,
        on_error: Literal["abort", "skip"] = "abort",
        report: PipelineReport | None = None,
    ) -> None:
        self.content_dir = content_dir
        self.on_error = on_error
        self.report = report

    def discover(self) -> list[Path]:
        """Return content files in deterministic order.

        Markdown files nested inside a page bundle (other than its
        ``index.md``) are bundle resources, not pages.
        """
        if not self.content_dir.exists():
            logger.warning("Content directory not found: %s", self.content_dir)
            return []

        md_files = sorted(
            p
            for p in self.content_dir.rglob("*.md")
            if p.is_file() and not self._is_hidden(p)
        )
        bundle_dirs = {p.parent for p in md_files if p.name == BUNDLE_FILENAME}
        result: list[Path] = []
        for path in md_files:
            owners = [d for d in path.parents if d in bundle_dirs]
            if path.name == BUNDLE_FILENAME:
                owners = [d for d in owners if d != path.parent]
            if owners:
                continue
            result.append(path)
        return result

    def load(self) -> list[ContentEntry]:
        """Load every content file.

        Returns:
            Entries sorted by output path.

        Raises:
            ContentError: On the first bad file when ``on_error`` is
                ``"abort"``.
            DuplicateOutputError: When two entries share an output path.
        """
        entries: list[ContentEntry] = []
        for path in self.discover():
            try:
                entries.append(self.load_file(path))
            except ContentError as exc:
                if self.on_error == "abort":
                    raise
                logger.warning("Skipping %s: %s", path, exc)
                if self.report is not None:
                    self.report.add_error(
                        "content",
                        str(exc),
                        source=str(path),
                        error_type=type(exc).__name__,
                    )

        check_unique_output_paths(entries)
        return sorted(entries, key=lambda e: e.output_path)

    def load_file(self, path: Path) -> ContentEntry:
        """Parse a single content file into an entry."""
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ContentError(f"could not read file: {exc}", path) from exc

        meta, body = parse_front_matter(text, path)
        rel = path.relative_to(self.content_dir)
        parts = rel.parts

        if path.name == INDEX_FILENAME:
            kind = EntryKind.HOME if len(parts) == 1 else EntryKind.SECTION
            rel_dir = "/".join(parts[:-1])
            default_slug = parts[-2] if len(parts) > 1 else ""
        elif path.name == BUNDLE_FILENAME and len(parts) > 1:
            kind = EntryKind.PAGE
            rel_dir = "/".join(parts[:-2])
            default_slug = parts[-2]
        else:
            kind = EntryKind.PAGE
            rel_dir = "/".join(parts[:-1])
            default_slug = path.stem

        section = rel_dir.split("/", 1)[0] if rel_dir else ""
        slug = str(meta.get("slug") or "").strip() or slugify(default_slug)
        if kind == EntryKind.PAGE and not slug:
            raise FrontMatterError("could not derive a slug", path)

        title = str(meta.get("title") or "").strip()
        if not title:
            title = _title_from_slug(default_slug) if default_slug else ""

        authors = _coerce_list(meta.get("authors")) or _coerce_list(meta.get("author"))

        params: dict[str, Any] = {
            k: v for k, v in meta.items() if k not in _KNOWN_KEYS
        }
        extra = meta.get("params")
        if isinstance(extra, dict):
            params.update(extra)
        elif extra is not None:
            raise FrontMatterError("params must be a mapping", path)

        try:
            weight = int(meta.get("weight") or 0)
        except (TypeError, ValueError) as exc:
            raise FrontMatterError(f"invalid weight: {meta.get('weight')!r}", path) from exc

        resources: tuple[BundleResource, ...] = ()
        if path.name == BUNDLE_FILENAME:
            resources = tuple(
                BundleResource(source=p, name=p.relative_to(path.parent).as_posix())
                for p in sorted(path.parent.rglob("*"))
                if p.is_file() and p.suffix != ".md" and not self._is_hidden(p)
            )

        return ContentEntry(
            title=title,
            slug=slug,
            kind=kind,
            section=section,
            rel_dir=rel_dir,
            date=_coerce_date(meta.get("date"), "date", path),
            lastmod=_coerce_date(meta.get("lastmod"), "lastmod", path),
            authors=authors,
            tags=_coerce_list(meta.get("tags")),
            categories=_coerce_list(meta.get("categories")),
            draft=_coerce_bool(meta.get("draft", False)),
            description=str(meta.get("description") or ""),
            summary=str(meta.get("summary") or ""),
            body=body,
            weight=weight,
            layout=str(meta.get("layout") or ""),
            url=str(meta.get("url") or ""),
            aliases=_coerce_list(meta.get("aliases")),
            params=params,
            source_path=path,
            resources=resources,
        )

    def _is_hidden(self, path: Path) -> bool:
        rel = path.relative_to(self.content_dir)
        return any(part.startswith(".") for part in rel.parts)


def check_unique_output_paths(entries: Iterable[ContentEntry]) -> None:
    """Raise if two entries would be written to the same file."""
    seen: dict[str, ContentEntry] = {}
    for entry in entries:
        other = seen.get(entry.output_path)
        if other is not None:
            raise DuplicateOutputError(
                f"output path {entry.output_path!r} also produced by {other.source_path}",
                entry.source_path,
            )
        seen[entry.output_path] = entry


# ---------------------------------------------------------------------------
# Selection and ordering
# ---------------------------------------------------------------------------


def select_published(
    entries: Iterable[ContentEntry], policy: PublishPolicy | None = None
) -> list[ContentEntry]:
    """Return the entries the policy publishes, in output-path order."""
    policy = policy or PublishPolicy()
    published: list[ContentEntry] = []
    for entry in entries:
        if policy.is_published(entry):
            published.append(entry)
        else:
            logger.debug("Not publishing %s", entry.source_path)
    return sorted(published, key=lambda e: e.output_path)


def by_date(entries: Iterable[ContentEntry]) -> list[ContentEntry]:
    """Newest first; undated entries last; ties broken by title then path."""
    return sorted(
        entries,
        key=lambda e: (
            -(e.date.toordinal() if e.date else 0),
            e.title.lower(),
            e.output_path,
        ),
    )


def by_weight(entries: Iterable[ContentEntry]) -> list[ContentEntry]:
    """Explicit weight first (lower first), then newest first."""
    dated = by_date(entries)
    return sorted(dated, key=lambda e: (e.weight == 0, e.weight))


# ---------------------------------------------------------------------------
# Archetype
# ---------------------------------------------------------------------------


def render_archetype(
    title: str,
    *,
    on: dt.date,
    author: str = "",
    tags: Iterable[str] = (),
    draft: bool = True,
) -> str:
    """Front-matter and placeholder body for a new content file."""
    lines: list[str] = ["---"]
    lines.append(f"title: {json.dumps(title, ensure_ascii=False)}")
    lines.append(f"date: {on.isoformat()}")
    if author:
        lines.append(f"author: {json.dumps(author, ensure_ascii=False)}")
    tag_list = list(tags)
    if tag_list:
        lines.append("tags:")
        for tag in tag_list:
            lines.append(f"  - {tag}")
    lines.append(f"draft: {'true' if draft else 'false'}")
    lines.append("---")
    lines.append("")
    lines.append("Write the introduction here.")
    lines.append("")
    lines.append("<!--more-->")
    lines.append("")
    return "\n".join(lines)
