"""Markdown to HTML conversion."""

from __future__ import annotations

import markdown

MARKDOWN_EXTENSIONS = ["extra", "toc", "sane_lists"]
MARKDOWN_EXTENSION_CONFIGS: dict[str, dict[str, object]] = {
    "toc": {"permalink": False},
}


def convert_markdown(text: str) -> tuple[str, str]:
    """Convert Markdown to ``(html, toc_html)``.

    A fresh converter is used per call so heading ids and footnote counters
    never leak between pages.
    """
    md = markdown.Markdown(
        extensions=MARKDOWN_EXTENSIONS,
        extension_configs=MARKDOWN_EXTENSION_CONFIGS,
        output_format="html",
    )
    html = md.convert(text)
    toc = getattr(md, "toc", "")
    return html, toc


def markdown_to_html(text: str) -> str:
    return convert_markdown(text)[0]
