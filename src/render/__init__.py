"""Render domain — Markdown, shortcodes and Jinja2 layouts.

Turns ContentEntry bodies into HTML and wraps them in templates looked up
from the site, the theme and the built-in layouts, in that order.
"""

from quire.render.markup import convert_markdown, markdown_to_html
from quire.render.models import PageView, Pager, RenderedBody, RenderedPage, SiteView
from quire.render.services import BUILTIN_LAYOUTS, TemplateRenderer, template_candidates
from quire.render.shortcodes import ShortcodeProcessor, find_tags, parse_args

__all__ = [
    "BUILTIN_LAYOUTS",
    "PageView",
    "Pager",
    "RenderedBody",
    "RenderedPage",
    "ShortcodeProcessor",
    "SiteView",
    "TemplateRenderer",
    "convert_markdown",
    "find_tags",
    "markdown_to_html",
    "parse_args",
    "template_candidates",
]
