"""Pure data models for stylesheet composition.

The override layer is modelled as an ordered sequence, never as a mapping:
a token assigned before a base module's ``!default`` assignment keeps its
value, one assigned afterwards does not reach the base module's rules.
"""

from __future__ import annotations

import hashlib
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field


class StylePhase(StrEnum):
    """Where a declaration or plan step sits in the evaluation order."""

    OVERRIDE = "override"  # before any base module import
    BASE = "base"  # inside a base design-system module
    DEPENDENT = "dependent"  # inside a module that reads resolved base tokens
    LATE = "late"  # entry-level assignment after a base import
    LITERAL = "literal"  # page-specific rules appended last


class ThemeOverride(BaseModel):
    """A design-token value supplied by the site."""

    model_config = {"frozen": True}

    token: str
    value: str


class Declaration(BaseModel):
    """One ``$token: value`` assignment as the compiler evaluated it."""

    token: str
    value: str
    phase: StylePhase
    is_default: bool = False
    origin: str = ""
    applied: bool = True


class StyleStep(BaseModel):
    """A single step of a StylePlan.

    Exactly one of ``token``/``module``/``css`` is meaningful, depending on
    ``phase``: overrides carry a token and value, base and dependent steps
    name a module, literal steps carry stylesheet text.
    """

    phase: StylePhase
    token: str = ""
    value: str = ""
    module: str = ""
    css: str = ""

    @classmethod
    def override(cls, token: str, value: str) -> StyleStep:
        return cls(phase=StylePhase.OVERRIDE, token=token, value=value)

    @classmethod
    def base(cls, module: str) -> StyleStep:
        return cls(phase=StylePhase.BASE, module=module)

    @classmethod
    def dependent(cls, module: str) -> StyleStep:
        return cls(phase=StylePhase.DEPENDENT, module=module)

    @classmethod
    def literal(cls, css: str) -> StyleStep:
        return cls(phase=StylePhase.LITERAL, css=css)


_PHASE_ORDER = {
    StylePhase.OVERRIDE: 0,
    StylePhase.BASE: 1,
    StylePhase.DEPENDENT: 2,
    StylePhase.LITERAL: 3,
}


class StylePlan(BaseModel):
    """Ordered steps producing the site stylesheet.

    ``from_theme`` always yields the canonical order: overrides, base
    modules, dependent modules, literal rules.
    """

    steps: list[StyleStep] = Field(default_factory=list)

    @classmethod
    def from_theme(
        cls,
        overrides: list[ThemeOverride],
        base_modules: list[str],
        dependent_modules: list[str] | None = None,
        literal_css: str = "",
    ) -> StylePlan:
        steps = [StyleStep.override(o.token, o.value) for o in overrides]
        steps.extend(StyleStep.base(m) for m in base_modules)
        steps.extend(StyleStep.dependent(m) for m in dependent_modules or [])
        if literal_css.strip():
            steps.append(StyleStep.literal(literal_css))
        return cls(steps=steps)

    @property
    def overrides(self) -> list[ThemeOverride]:
        return [
            ThemeOverride(token=s.token, value=s.value)
            for s in self.steps
            if s.phase == StylePhase.OVERRIDE
        ]

    @property
    def is_canonical(self) -> bool:
        """True when no step appears before a step of an earlier phase."""
        ranks = [_PHASE_ORDER.get(s.phase, 0) for s in self.steps]
        return ranks == sorted(ranks)


class CompiledStylesheet(BaseModel):
    """Result of compiling an entry stylesheet or a StylePlan.

    ``resolved`` holds the value each token had when compiled rules first
    used it. ``scope`` holds the value of every token at the end of the
    entry file.
    """

    css: str
    resolved: dict[str, str] = Field(default_factory=dict)
    scope: dict[str, str] = Field(default_factory=dict)
    declarations: list[Declaration] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    sources: list[Path] = Field(default_factory=list)

    def value(self, token: str) -> str | None:
        """Resolved value of a token, falling back to the final scope."""
        token = token.lstrip("$")
        if token in self.resolved:
            return self.resolved[token]
        return self.scope.get(token)

    def declarations_for(self, token: str) -> list[Declaration]:
        token = token.lstrip("$")
        return [d for d in self.declarations if d.token == token]

    @property
    def digest(self) -> str:
        return hashlib.sha256(self.css.encode("utf-8")).hexdigest()

    def output_name(self, name: str, *, fingerprint: bool = False) -> str:
        """Output path, optionally with a content hash before the suffix."""
        if not fingerprint:
            return name
        stem, dot, suffix = name.rpartition(".")
        if not dot:
            return f"{name}.{self.digest[:10]}"
        return f"{stem}.{self.digest[:10]}.{suffix}"
