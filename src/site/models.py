"""Site assembly data types."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field


class OutputFile(BaseModel):
    """One file the build will place in the output directory.

    Generated files carry ``data``; copied files carry ``source``.
    """

    model_config = {"frozen": True}

    path: str
    kind: str = "page"
    source: Path | None = None
    data: bytes | None = None

    @property
    def is_copy(self) -> bool:
        return self.data is None

    def read(self) -> bytes:
        if self.data is not None:
            return self.data
        if self.source is None:
            return b""
        return self.source.read_bytes()


class BuildManifest(BaseModel):
    """What a write pass did to the output directory."""

    written: list[str] = Field(default_factory=list)
    unchanged: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.written) + len(self.unchanged)

    def summary(self) -> str:
        parts = [f"{self.total} file(s)", f"{len(self.written)} written"]
        if self.unchanged:
            parts.append(f"{len(self.unchanged)} unchanged")
        if self.removed:
            parts.append(f"{len(self.removed)} removed")
        return ", ".join(parts)
