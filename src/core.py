"""Low-level file helpers shared by the build stages."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path


def _atomic_write(path: Path, content: str | bytes) -> None:
    """Write content to a file atomically via temp file + rename.

    Text is encoded as UTF-8. Parent directories are created as needed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    data = content.encode("utf-8") if isinstance(content, str) else content
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
