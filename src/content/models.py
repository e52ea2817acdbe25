"""Content domain models — pure Pydantic v2 data types.

A ContentEntry is what one Markdown file in the content tree becomes after
its front-matter has been parsed. Entries are frozen: they are created by
the loader and never mutated afterwards. No I/O happens here.
"""

from __future__ import annotations

import datetime as dt
import math
import re
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

MORE_MARKER = "<!--more-->"
WORDS_PER_MINUTE = 200

_WORD_RE = re.compile(r"\w+", re.UNICODE)


class EntryKind(StrEnum):
    """What an entry renders as."""

    HOME = "home"
    SECTION = "section"
    PAGE = "page"


class BundleResource(BaseModel):
    """A non-Markdown file living next to a page bundle's index.md."""

    model_config = {"frozen": True}

    source: Path
    name: str  # posix path relative to the bundle directory


class ContentEntry(BaseModel):
    """Parsed content file. Immutable once loaded."""

    model_config = {"frozen": True}

    title: str
    slug: str
    kind: EntryKind = EntryKind.PAGE
    section: str = ""
    rel_dir: str = ""
    date: dt.date | None = None
    lastmod: dt.date | None = None
    authors: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()
    draft: bool = False
    description: str = ""
    summary: str = ""
    body: str = ""
    weight: int = 0
    layout: str = ""
    url: str = ""
    aliases: tuple[str, ...] = ()
    params: dict[str, Any] = Field(default_factory=dict)
    source_path: Path = Path(".")
    resources: tuple[BundleResource, ...] = ()

    @property
    def author(self) -> str:
        return ", ".join(self.authors)

    @property
    def is_bundle(self) -> bool:
        return self.source_path.name == "index.md"

    @property
    def output_dir(self) -> str:
        """Directory (posix, relative to the output root) holding the page."""
        if self.url:
            path = self.url.strip("/")
            if path.endswith(".html"):
                return path.rpartition("/")[0]
            return path
        if self.kind == EntryKind.HOME:
            return ""
        if self.kind == EntryKind.SECTION:
            return self.rel_dir
        return f"{self.rel_dir}/{self.slug}" if self.rel_dir else self.slug

    @property
    def output_path(self) -> str:
        """File path (posix, relative to the output root) of the rendered page."""
        if self.url and self.url.strip("/").endswith(".html"):
            return self.url.strip("/")
        directory = self.output_dir
        return f"{directory}/index.html" if directory else "index.html"

    @property
    def permalink(self) -> str:
        """Site-relative URL, always starting with a slash."""
        path = self.output_path
        if path == "index.html":
            return "/"
        if path.endswith("/index.html"):
            return "/" + path.removesuffix("index.html")
        return "/" + path

    @property
    def summary_markdown(self) -> str:
        """Markdown shown in listings.

        Front-matter ``summary`` wins, then text before ``<!--more-->``,
        then the first paragraph of the body.
        """
        if self.summary:
            return self.summary
        if MORE_MARKER in self.body:
            return self.body.split(MORE_MARKER, 1)[0].strip()
        for block in re.split(r"\n\s*\n", self.body.strip()):
            block = block.strip()
            if block and not block.startswith(("#", "{{<", "{{%")):
                return block
        return ""

    @property
    def word_count(self) -> int:
        return len(_WORD_RE.findall(self.body))

    @property
    def reading_time(self) -> int:
        """Minutes to read, at least one for non-empty bodies."""
        if not self.body.strip():
            return 0
        return max(1, math.ceil(self.word_count / WORDS_PER_MINUTE))

    def terms(self, taxonomy: str) -> tuple[str, ...]:
        """Terms of a taxonomy (``tags``, ``categories`` or a params list)."""
        if taxonomy == "tags":
            return self.tags
        if taxonomy == "categories":
            return self.categories
        value = self.params.get(taxonomy)
        if value is None:
            return ()
        if isinstance(value, (list, tuple)):
            return tuple(str(v) for v in value)
        if isinstance(value, (set, frozenset)):
            return tuple(sorted(str(v) for v in value))
        return (str(value),)


class PublishPolicy(BaseModel):
    """Which entries end up in the published site.

    Drafts are excluded unless ``include_drafts`` is set. Entries dated
    after ``now`` are excluded when ``include_future`` is off.
    """

    include_drafts: bool = False
    include_future: bool = True
    now: dt.date | None = None

    def is_published(self, entry: ContentEntry) -> bool:
        if entry.draft and not self.include_drafts:
            return False
        if not self.include_future and entry.date is not None:
            today = self.now or dt.date.today()
            if entry.date > today:
                return False
        return True
