"""Error types and the build report shared by every pipeline stage.

Fatal problems are raised as ``QuireError`` subclasses. Problems that a
stage can survive (a skipped content file, a stylesheet ordering trap) are
collected in a ``PipelineReport`` so the CLI can summarise them at the end.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field


class QuireError(Exception):
    """Base error for all build failures."""


class ContentError(QuireError):
    """A content file could not be turned into an entry."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        self.path = path
        super().__init__(f"{path}: {message}" if path is not None else message)


class FrontMatterError(ContentError):
    """Front-matter block is malformed or has invalid values."""


class DuplicateOutputError(ContentError):
    """Two entries resolve to the same output path."""


class StyleCompileError(QuireError):
    """The stylesheet could not be compiled."""

    def __init__(
        self, message: str, path: Path | None = None, line: int | None = None
    ) -> None:
        self.path = path
        self.line = line
        location = ""
        if path is not None:
            location = f"{path}:{line}: " if line is not None else f"{path}: "
        super().__init__(f"{location}{message}")


class StyleImportError(StyleCompileError):
    """An imported stylesheet module could not be found."""


class RenderError(QuireError):
    """A page could not be rendered."""


class ShortcodeError(RenderError):
    """A shortcode is unknown or malformed."""


class PipelineError(BaseModel):
    """A single recorded, non-fatal failure."""

    stage: str
    message: str
    source: str = ""
    error_type: str = "error"


class PipelineReport(BaseModel):
    """Collects errors and warnings raised while a build keeps going."""

    errors: list[PipelineError] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    def add_error(
        self,
        stage: str,
        message: str,
        *,
        source: str = "",
        error_type: str = "error",
    ) -> None:
        self.errors.append(
            PipelineError(
                stage=stage, message=message, source=source, error_type=error_type
            )
        )

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def errors_for(self, stage: str) -> list[PipelineError]:
        """Return the recorded errors of one stage."""
        return [e for e in self.errors if e.stage == stage]

    def summary(self) -> str:
        """One-line summary for CLI output."""
        if not self.errors and not self.warnings:
            return "no problems"
        parts: list[str] = []
        if self.errors:
            parts.append(f"{len(self.errors)} error(s)")
        if self.warnings:
            parts.append(f"{len(self.warnings)} warning(s)")
        return ", ".join(parts)
