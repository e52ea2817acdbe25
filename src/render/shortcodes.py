"""Shortcode expansion.

Shortcodes are embed directives inside Markdown bodies::

    {{< figure src="me.jpg" caption="Hello" >}}
    {{< profile name="Ada" >}}Short bio, kept verbatim.{{< /profile >}}
    {{% note %}}Inner text *rendered* as Markdown.{{% /note %}}

Each shortcode renders the Jinja2 template ``shortcodes/<name>.html``.
Rendered HTML is swapped for an opaque placeholder before the Markdown pass
and restored afterwards, so Markdown never rewrites it.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from jinja2 import Environment, TemplateError, TemplateNotFound

from quire.shared.errors import ShortcodeError

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"\{\{([<%])(.*?)([>%])\}\}", re.DOTALL)
_ARG_RE = re.compile(
    r"""(?:([A-Za-z_][\w-]*)\s*=\s*)?("(?:\\.|[^"\\])*"|'[^']*'|[^\s"']+)"""
)
_PLACEHOLDER = "QSC{}x{}QSC"
MAX_DEPTH = 16


@dataclass(frozen=True)
class ShortcodeTag:
    """One ``{{< ... >}}`` or ``{{% ... %}}`` tag found in text."""

    name: str
    markdown: bool
    closing: bool
    self_closing: bool
    args: dict[str, str]
    positional: list[str]
    start: int
    end: int
    literal: str = ""  # set for escaped tags such as {{</* figure */>}}


@dataclass
class Protected:
    """Text with shortcodes replaced by placeholders."""

    text: str
    blocks: dict[str, str] = field(default_factory=dict)

    def restore(self, html: str) -> str:
        """Put rendered shortcode HTML back in place of the placeholders."""
        for key, value in self.blocks.items():
            html = html.replace(f"<p>{key}</p>", value)
            html = html.replace(key, value)
        return html


def parse_args(raw: str) -> tuple[dict[str, str], list[str]]:
    """Parse shortcode arguments into named and positional values.

    Raises:
        ShortcodeError: If named and positional arguments are mixed.
    """
    named: dict[str, str] = {}
    positional: list[str] = []
    for match in _ARG_RE.finditer(raw):
        key, value = match.group(1), match.group(2)
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
            if match.group(2)[0] == '"':
                value = value.replace('\\"', '"')
        if key:
            named[key] = value
        else:
            positional.append(value)
    if named and positional:
        raise ShortcodeError(f"cannot mix named and positional arguments: {raw.strip()!r}")
    return named, positional


def find_tags(text: str) -> list[ShortcodeTag]:
    """Return every well-formed shortcode tag in ``text``, in order."""
    tags: list[ShortcodeTag] = []
    for match in _TAG_RE.finditer(text):
        opening, inner, closing = match.groups()
        if (opening == "<") != (closing == ">"):
            raise ShortcodeError(f"mismatched shortcode delimiters in {match.group(0)!r}")
        inner = inner.strip()
        if inner.startswith("/*") and inner.endswith("*/"):
            tags.append(
                ShortcodeTag(
                    name="",
                    markdown=opening == "%",
                    closing=False,
                    self_closing=True,
                    args={},
                    positional=[],
                    start=match.start(),
                    end=match.end(),
                    literal=f"{{{{{opening} {inner[2:-2].strip()} {closing}}}}}",
                )
            )
            continue
        is_closing = inner.startswith("/")
        if is_closing:
            inner = inner[1:].strip()
        self_closing = inner.endswith("/")
        if self_closing:
            inner = inner[:-1].strip()
        name, _, raw_args = inner.partition(" ")
        if not re.fullmatch(r"[\w-]+", name):
            raise ShortcodeError(f"invalid shortcode name in {match.group(0)!r}")
        args, positional = parse_args(raw_args) if not is_closing else ({}, [])
        tags.append(
            ShortcodeTag(
                name=name,
                markdown=opening == "%",
                closing=is_closing,
                self_closing=self_closing,
                args=args,
                positional=positional,
                start=match.start(),
                end=match.end(),
            )
        )
    return tags


class ShortcodeProcessor:
    """Expands shortcodes through Jinja2 templates.

    Args:
        env: Environment whose loader can find ``shortcodes/<name>.html``.
        markdown: Converter used for ``{{% %}}`` inner content.
    """

    def __init__(self, env: Environment, markdown: Callable[[str], str]) -> None:
        self.env = env
        self.markdown = markdown

    def protect(self, text: str, context: dict[str, Any], *, depth: int = 0) -> Protected:
        """Replace each top-level shortcode in ``text`` with a placeholder."""
        if depth > MAX_DEPTH:
            raise ShortcodeError("shortcodes nested too deeply")
        protected = Protected(text="")
        tags = find_tags(text)
        out: list[str] = []
        cursor = 0
        i = 0
        while i < len(tags):
            tag = tags[i]
            if tag.closing:
                raise ShortcodeError(f"closing tag {{{{< /{tag.name} >}}}} without an opening tag")
            out.append(text[cursor : tag.start])
            if tag.literal:
                out.append(tag.literal)
                cursor = tag.end
                i += 1
                continue
            inner: str | None = None
            end = tag.end
            next_index = i + 1
            if not tag.self_closing:
                close_index = self._find_close(tags, i)
                if close_index is not None:
                    close = tags[close_index]
                    inner = self._render_inner(
                        text[tag.end : close.start], tag.markdown, context, depth
                    )
                    end = close.end
                    next_index = close_index + 1
            html = self.render(tag, inner, context)
            key = _PLACEHOLDER.format(depth, len(protected.blocks))
            protected.blocks[key] = html
            out.append(key)
            cursor = end
            i = next_index
        out.append(text[cursor:])
        protected.text = "".join(out)
        return protected

    def expand(self, text: str, context: dict[str, Any]) -> str:
        """Render text as Markdown with shortcodes resolved."""
        protected = self.protect(text, context)
        return protected.restore(self.markdown(protected.text))

    def render(self, tag: ShortcodeTag, inner: str | None, context: dict[str, Any]) -> str:
        template_name = f"shortcodes/{tag.name}.html"
        try:
            template = self.env.get_template(template_name)
        except TemplateNotFound as exc:
            raise ShortcodeError(f"unknown shortcode {tag.name!r}") from exc
        try:
            html = template.render(
                **context,
                args=tag.args,
                positional=tag.positional,
                inner=inner or "",
                shortcode=tag.name,
            )
        except TemplateError as exc:
            raise ShortcodeError(f"shortcode {tag.name!r} failed: {exc}") from exc
        logger.debug("Rendered shortcode %s", tag.name)
        return html.strip()

    def _find_close(self, tags: list[ShortcodeTag], index: int) -> int | None:
        name = tags[index].name
        level = 0
        for j in range(index + 1, len(tags)):
            other = tags[j]
            if other.name != name or other.self_closing:
                continue
            if not other.closing:
                level += 1
            elif level == 0:
                return j
            else:
                level -= 1
        return None

    def _render_inner(
        self, raw: str, markdown: bool, context: dict[str, Any], depth: int
    ) -> str:
        nested = self.protect(raw.strip("\n"), context, depth=depth + 1)
        if markdown:
            return nested.restore(self.markdown(nested.text))
        return nested.restore(nested.text)
