"""Stylesheet compilation for the theme's design-token layer.

Compiles a small, ordered subset of SCSS:

- ``$token: value;`` and ``$token: value !default;`` at the top level,
- ``@import "module";`` resolved against the importing file's directory
  and the configured load paths,
- rule blocks and other at-rules, emitted with ``$token`` and
  ``#{$token}`` substituted from the scope at the point of emission.

Declarations are evaluated strictly in source order. ``!default`` only
assigns when the token is still unset, so a site override declared before
a base module's import wins. One declared after a base module has set the
token by ``!default`` has no effect at all.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from quire.shared.errors import StyleCompileError, StyleImportError
from quire.styles.models import (
    CompiledStylesheet,
    Declaration,
    StylePhase,
    StylePlan,
)

logger = logging.getLogger(__name__)

OutputStyle = Literal["expanded", "compressed"]

_ASSIGN_RE = re.compile(
    r"^\$(?P<name>[A-Za-z_][\w-]*)\s*:\s*(?P<value>.*?)\s*(?P<flags>(?:!(?:default|global)\s*)*)$",
    re.DOTALL,
)
_INTERP_RE = re.compile(r"#\{\s*\$([A-Za-z_][\w-]*)\s*\}")
_VAR_RE = re.compile(r"\$([A-Za-z_][\w-]*)")
_QUOTED_RE = re.compile(r"\"([^\"]*)\"|'([^']*)'")
_STRING_RE = re.compile(r"(\"(?:\\.|[^\"\\])*\"|'(?:\\.|[^'\\])*')")
_UNSUPPORTED = ("@use", "@forward", "@mixin", "@function", "@include", "@extend")


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Statement:
    """A top-level statement: ``text;`` or ``prelude { body }``."""

    text: str
    line: int
    is_block: bool = False


def split_statements(source: str) -> list[Statement]:
    """Split stylesheet source into top-level statements.

    Comments are dropped. ``//`` inside parentheses (``url(http://...)``)
    is not treated as a comment.
    """
    statements: list[Statement] = []
    buf: list[str] = []
    depth = 0
    parens = 0
    line = 1
    start_line: int | None = None
    i = 0
    n = len(source)

    while i < n:
        ch = source[i]
        nxt = source[i + 1] if i + 1 < n else ""

        if ch in "\"'":
            end = i + 1
            while end < n and source[end] != ch:
                end += 2 if source[end] == "\\" else 1
            chunk = source[i : end + 1]
            if start_line is None:
                start_line = line
            buf.append(chunk)
            line += chunk.count("\n")
            i = end + 1
            continue

        if ch == "#" and nxt == "{":
            end = source.find("}", i + 2)
            if end == -1:
                raise StyleCompileError("unclosed interpolation", line=line)
            if start_line is None:
                start_line = line
            buf.append(source[i : end + 1])
            i = end + 1
            continue

        if ch == "/" and nxt == "*":
            end = source.find("*/", i + 2)
            end = n if end == -1 else end + 2
            line += source.count("\n", i, end)
            i = end
            continue

        if ch == "/" and nxt == "/" and parens == 0:
            end = source.find("\n", i)
            i = n if end == -1 else end
            continue

        if ch == "\n":
            line += 1
        elif not ch.isspace() and start_line is None:
            start_line = line

        if ch == "(":
            parens += 1
        elif ch == ")":
            parens = max(0, parens - 1)

        if ch == "{":
            depth += 1
            buf.append(ch)
        elif ch == "}":
            depth -= 1
            buf.append(ch)
            if depth < 0:
                raise StyleCompileError("unbalanced '}'", line=line)
            if depth == 0:
                statements.append(
                    Statement("".join(buf).strip(), start_line or line, is_block=True)
                )
                buf, start_line = [], None
        elif ch == ";" and depth == 0:
            text = "".join(buf).strip()
            if text:
                statements.append(Statement(text, start_line or line))
            buf, start_line = [], None
        else:
            buf.append(ch)
        i += 1

    if depth != 0:
        raise StyleCompileError("unclosed '{'", line=start_line)
    tail = "".join(buf).strip()
    if tail:
        statements.append(Statement(tail, start_line or line))
    return statements


# ---------------------------------------------------------------------------
# Output formatting
# ---------------------------------------------------------------------------


def _format_block(text: str) -> str:
    lines = [ln.rstrip() for ln in text.splitlines()]
    return "\n".join(ln for ln in lines if ln.strip())


def compress_css(css: str) -> str:
    """Collapse whitespace outside string literals."""
    parts = _STRING_RE.split(css)
    out: list[str] = []
    for idx, part in enumerate(parts):
        if idx % 2 == 1:
            out.append(part)
            continue
        part = re.sub(r"\s+", " ", part)
        part = re.sub(r"\s*([{};,>])\s*", r"\1", part)
        part = re.sub(r"(?<=[{;])\s*([\w-]+)\s*:\s*", r"\1:", part)
        part = part.replace(";}", "}")
        out.append(part)
    return "".join(out).strip()


# ---------------------------------------------------------------------------
# Compiler
# ---------------------------------------------------------------------------


class _Compilation:
    """Mutable state of one compile run."""

    def __init__(self, compiler: StyleCompiler, root: Path | None) -> None:
        self.compiler = compiler
        self.root = root
        self.scope: dict[str, str] = {}
        self.resolved: dict[str, str] = {}
        self.declarations: list[Declaration] = []
        self.chunks: list[str] = []
        self.sources: list[Path] = []
        self.stack: list[Path] = []
        # Tokens set by a base or dependent module through !default.
        self.defaulted: set[str] = set()

    # -- helpers ---------------------------------------------------------

    def origin(self, path: Path | None, line: int) -> str:
        if path is None:
            return f"<entry>:{line}"
        label = path
        if self.root is not None:
            try:
                label = path.relative_to(self.root)
            except ValueError:
                label = path
        return f"{label.as_posix()}:{line}"

    def substitute(
        self, text: str, path: Path | None, line: int, *, consume: bool
    ) -> str:
        def lookup(match: re.Match[str]) -> str:
            name = match.group(1)
            if name not in self.scope:
                raise StyleCompileError(f"undefined variable ${name}", path, line)
            value = self.scope[name]
            if consume:
                self.resolved.setdefault(name, value)
            return value

        text = _INTERP_RE.sub(lookup, text)
        # Plain $name is left alone inside quoted strings.
        parts = _STRING_RE.split(text)
        return "".join(
            part if idx % 2 == 1 else _VAR_RE.sub(lookup, part)
            for idx, part in enumerate(parts)
        )

    # -- statements ------------------------------------------------------

    def assign(
        self,
        name: str,
        raw_value: str,
        *,
        is_default: bool,
        phase: StylePhase,
        path: Path | None,
        line: int,
        origin: str | None = None,
    ) -> None:
        value = self.substitute(raw_value, path, line, consume=False)
        if phase == StylePhase.LATE and name in self.defaulted:
            applied = False
        else:
            applied = not (is_default and name in self.scope)
        if applied:
            self.scope[name] = value
            if is_default and phase in (StylePhase.BASE, StylePhase.DEPENDENT):
                self.defaulted.add(name)
        self.declarations.append(
            Declaration(
                token=name,
                value=value,
                phase=phase,
                is_default=is_default,
                origin=origin or self.origin(path, line),
                applied=applied,
            )
        )

    def run_source(
        self, source: str, path: Path | None, *, phase: StylePhase | None
    ) -> None:
        """Evaluate a stylesheet.

        ``phase`` is None for the entry file: its assignments are OVERRIDE
        until the first import and LATE afterwards. Imported modules pass
        their own phase down to their assignments.
        """
        try:
            statements = split_statements(source)
        except StyleCompileError as exc:
            raise StyleCompileError(str(exc), path, exc.line) from exc

        seen_import = False
        for stmt in statements:
            keyword = stmt.text.split(None, 1)[0]
            if keyword in _UNSUPPORTED:
                raise StyleCompileError(f"{keyword} is not supported", path, stmt.line)
            if stmt.is_block:
                if re.search(r"[{;]\s*\$[A-Za-z_][\w-]*\s*:", stmt.text):
                    raise StyleCompileError(
                        "variable declarations inside blocks are not supported",
                        path,
                        stmt.line,
                    )
                css = self.substitute(stmt.text, path, stmt.line, consume=True)
                self.chunks.append(_format_block(css))
                continue

            match = _ASSIGN_RE.match(stmt.text)
            if match:
                if phase is None:
                    decl_phase = StylePhase.LATE if seen_import else StylePhase.OVERRIDE
                else:
                    decl_phase = phase
                self.assign(
                    match.group("name"),
                    match.group("value"),
                    is_default="!default" in match.group("flags"),
                    phase=decl_phase,
                    path=path,
                    line=stmt.line,
                )
                continue

            if keyword == "@import":
                seen_import = True
                self.run_import(stmt, path, phase=phase or StylePhase.BASE)
                continue
            css = self.substitute(stmt.text, path, stmt.line, consume=True)
            self.chunks.append(f"{css};")

    def run_import(self, stmt: Statement, path: Path | None, *, phase: StylePhase) -> None:
        argument = stmt.text[len("@import") :].strip()
        if argument.startswith("url("):
            self.chunks.append(f"{stmt.text};")
            return
        names = [a or b for a, b in _QUOTED_RE.findall(argument)]
        if not names:
            raise StyleCompileError("@import needs a quoted module name", path, stmt.line)
        for name in names:
            if _is_plain_css_import(name):
                self.chunks.append(f'@import "{name}";')
                continue
            importer_dir = path.parent if path is not None else self.root
            module = self.compiler.resolve_import(name, importer_dir)
            if module is None:
                raise StyleImportError(f"cannot find module {name!r}", path, stmt.line)
            self.run_module(module, phase)

    def run_module(self, module: Path, phase: StylePhase) -> None:
        resolved = module.resolve()
        if resolved in self.stack:
            chain = " -> ".join(p.name for p in [*self.stack, resolved])
            raise StyleCompileError(f"import cycle: {chain}", module)
        self.stack.append(resolved)
        if module not in self.sources:
            self.sources.append(module)
        try:
            source = module.read_text(encoding="utf-8")
        except OSError as exc:
            raise StyleImportError(f"cannot read module: {exc}", module) from exc
        logger.debug("Compiling %s module %s", phase.value, module)
        self.run_source(source, module, phase=phase)
        self.stack.pop()

    def result(self) -> CompiledStylesheet:
        css = "\n\n".join(c for c in self.chunks if c.strip())
        if self.compiler.output_style == "compressed":
            css = compress_css(css)
        css = css + "\n" if css else ""
        warnings = find_ordering_warnings(self.declarations, used=self.resolved)
        for warning in warnings:
            logger.warning("%s", warning)
        return CompiledStylesheet(
            css=css,
            resolved=dict(self.resolved),
            scope=dict(self.scope),
            declarations=list(self.declarations),
            warnings=warnings,
            sources=list(self.sources),
        )


def _is_plain_css_import(name: str) -> bool:
    return name.endswith(".css") or name.startswith(("http://", "https://", "//"))


class StyleCompiler:
    """Compiles entry stylesheets and StylePlans.

    Args:
        load_paths: Directories searched for imported modules after the
            importing file's own directory, in order.
        output_style: ``"expanded"`` or ``"compressed"``.
    """

    def __init__(
        self,
        load_paths: Iterable[Path] = (),
        *,
        output_style: OutputStyle = "expanded",
    ) -> None:
        self.load_paths = list(load_paths)
        self.output_style = output_style

    def resolve_import(self, name: str, importer_dir: Path | None) -> Path | None:
        """Find the file an ``@import`` refers to, or None."""
        target = Path(name)
        parent, stem = target.parent, target.name
        if stem.endswith(".scss"):
            stem = stem.removesuffix(".scss")
        candidates = [
            parent / f"_{stem}.scss",
            parent / f"{stem}.scss",
            parent / f"_{stem}.css",
            parent / f"{stem}.css",
            target / "_index.scss",
            target / "index.scss",
        ]
        dirs = ([importer_dir] if importer_dir is not None else []) + self.load_paths
        for base in dirs:
            for candidate in candidates:
                full = base / candidate
                if full.is_file():
                    return full
        return None

    def compile_string(
        self, source: str, *, base_dir: Path | None = None
    ) -> CompiledStylesheet:
        """Compile entry stylesheet text; relative imports use ``base_dir``."""
        run = _Compilation(self, base_dir)
        run.run_source(source, None, phase=None)
        return run.result()

    def compile_file(self, entry: Path) -> CompiledStylesheet:
        """Compile an entry stylesheet file."""
        if not entry.is_file():
            raise StyleImportError("entry stylesheet not found", entry)
        run = _Compilation(self, entry.parent)
        run.sources.append(entry)
        run.stack.append(entry.resolve())
        run.run_source(entry.read_text(encoding="utf-8"), entry, phase=None)
        return run.result()

    def compile_plan(
        self, plan: StylePlan, *, base_dir: Path | None = None
    ) -> CompiledStylesheet:
        """Compile a StylePlan step by step, tagging each step's phase."""
        run = _Compilation(self, base_dir)
        imported = False
        for index, step in enumerate(plan.steps, start=1):
            if step.phase == StylePhase.OVERRIDE:
                run.assign(
                    step.token.lstrip("$"),
                    step.value,
                    is_default=False,
                    phase=StylePhase.LATE if imported else StylePhase.OVERRIDE,
                    path=None,
                    line=index,
                    origin=f"<override {index}>",
                )
            elif step.phase in (StylePhase.BASE, StylePhase.DEPENDENT):
                module = self.resolve_import(step.module, base_dir)
                if module is None:
                    raise StyleImportError(f"cannot find module {step.module!r}")
                run.run_module(module, step.phase)
                imported = True
            elif step.phase == StylePhase.LITERAL:
                run.run_source(step.css, None, phase=StylePhase.LITERAL)
            else:
                raise StyleCompileError(f"unexpected plan phase {step.phase.value}")
        return run.result()


# ---------------------------------------------------------------------------
# Plan rendering and ordering checks
# ---------------------------------------------------------------------------


def compose_entry(plan: StylePlan) -> str:
    """Render a StylePlan as equivalent entry stylesheet text."""
    lines: list[str] = []
    current: StylePhase | None = None
    for step in plan.steps:
        if step.phase != current:
            if lines:
                lines.append("")
            lines.append(f"// {step.phase.value}")
            current = step.phase
        if step.phase == StylePhase.OVERRIDE:
            lines.append(f"${step.token.lstrip('$')}: {step.value};")
        elif step.phase in (StylePhase.BASE, StylePhase.DEPENDENT):
            lines.append(f'@import "{step.module}";')
        else:
            lines.append(step.css.strip())
    return "\n".join(lines) + "\n"


def find_ordering_warnings(
    declarations: list[Declaration], used: Iterable[str] = ()
) -> list[str]:
    """Describe overrides that lost to a base default because of their position.

    The outcome is never changed; these are reported so a site author can
    move the override above the import.
    """
    warnings: list[str] = []
    used_tokens = set(used)
    overrides: dict[str, Declaration] = {}
    base_defaults: dict[str, Declaration] = {}
    base_tokens: set[str] = set()

    for decl in declarations:
        if decl.phase == StylePhase.OVERRIDE:
            overrides[decl.token] = decl
            continue
        if decl.phase in (StylePhase.BASE, StylePhase.DEPENDENT):
            base_tokens.add(decl.token)
            if decl.is_default and decl.applied:
                base_defaults.setdefault(decl.token, decl)
            elif not decl.is_default and decl.token in overrides:
                warnings.append(
                    f"${decl.token} is assigned unconditionally at {decl.origin}; "
                    f"the override at {overrides[decl.token].origin} has no effect"
                )
            continue
        if decl.phase != StylePhase.LATE:
            continue
        earlier = base_defaults.get(decl.token)
        if earlier is None:
            continue
        if not decl.is_default:
            warnings.append(
                f"${decl.token} at {decl.origin} is assigned after its base default "
                f"at {earlier.origin} and has no effect; {earlier.value} is kept"
            )
        else:
            warnings.append(
                f"${decl.token} at {decl.origin} is a !default after the base default "
                f"at {earlier.origin} and has no effect"
            )

    if base_tokens:
        for token, decl in overrides.items():
            if token not in base_tokens and token not in used_tokens:
                warnings.append(
                    f"${token} at {decl.origin} is not declared by any base module"
                )
    return warnings
