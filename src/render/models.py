"""Data passed into templates and produced by the renderer."""

from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, Field

from quire.config import MenuItem, QuireConfig
from quire.content.models import ContentEntry


class RenderedBody(BaseModel):
    """HTML produced from an entry's Markdown."""

    html: str = ""
    toc: str = ""
    summary: str = ""


class PageView(BaseModel):
    """Template-facing view of one entry: the entry plus its rendered HTML."""

    entry: ContentEntry
    body: RenderedBody = Field(default_factory=RenderedBody)

    @property
    def title(self) -> str:
        return self.entry.title

    @property
    def permalink(self) -> str:
        return self.entry.permalink

    @property
    def date(self) -> dt.date | None:
        return self.entry.date

    @property
    def lastmod(self) -> dt.date | None:
        return self.entry.lastmod or self.entry.date

    @property
    def author(self) -> str:
        return self.entry.author

    @property
    def tags(self) -> tuple[str, ...]:
        return self.entry.tags

    @property
    def description(self) -> str:
        return self.entry.description

    @property
    def params(self) -> dict[str, Any]:
        return self.entry.params

    @property
    def kind(self) -> str:
        return self.entry.kind.value

    @property
    def section(self) -> str:
        return self.entry.section

    @property
    def reading_time(self) -> int:
        return self.entry.reading_time

    @property
    def content(self) -> str:
        return self.body.html

    @property
    def toc(self) -> str:
        return self.body.toc

    @property
    def summary(self) -> str:
        return self.body.summary


class Pager(BaseModel):
    """One page of a paginated listing."""

    number: int = 1
    total: int = 1
    items: list[PageView] = Field(default_factory=list)
    prev_url: str = ""
    next_url: str = ""


class SiteView(BaseModel):
    """Site-wide values every template sees as ``site``."""

    title: str = ""
    base_url: str = "/"
    language: str = "en"
    description: str = ""
    author: str = ""
    menu: list[MenuItem] = Field(default_factory=list)
    params: dict[str, Any] = Field(default_factory=dict)
    stylesheet: str = ""

    @classmethod
    def from_config(cls, config: QuireConfig, *, stylesheet: str = "") -> SiteView:
        return cls(
            title=config.site.title,
            base_url=config.site.base_url,
            language=config.site.language,
            description=config.site.description,
            author=config.site.author,
            menu=config.sorted_menu,
            params=dict(config.params),
            stylesheet=stylesheet,
        )

    @property
    def base_path(self) -> str:
        """Path component of ``base_url``, with leading and trailing slash."""
        path = urlsplit(self.base_url).path or "/"
        path = path if path.startswith("/") else "/" + path
        return path if path.endswith("/") else path + "/"

    def rel_url(self, path: str) -> str:
        """Site-relative URL for an output path or permalink."""
        if "://" in path or path.startswith("//"):
            return path
        return self.base_path + path.lstrip("/")

    def abs_url(self, path: str) -> str:
        """Absolute URL when ``base_url`` has a host, else the relative URL."""
        if "://" in path or path.startswith("//"):
            return path
        parts = urlsplit(self.base_url)
        if not parts.netloc:
            return self.rel_url(path)
        return f"{parts.scheme}://{parts.netloc}{self.rel_url(path)}"


class RenderedPage(BaseModel):
    """A rendered output file."""

    model_config = {"frozen": True}

    output_path: str
    content: str
    kind: str = "page"
    source: Path | None = None
