"""Pipeline modules — orchestration layer for the quire build.

``build`` runs the four stages in order:
  content  — content tree -> published ContentEntry values
  styles   — theme config or entry stylesheet -> compiled CSS
  render   — entries -> HTML pages, listings and feeds
  site     — pages, stylesheet and static files -> output directory

Pipeline modules import domain logic via public APIs
(``from quire.content import ...``, not ``quire.content.services``).
"""

from quire.pipeline.build import (
    BuildResult,
    build_site,
    compile_site_styles,
    layout_dirs,
    style_load_paths,
)

__all__ = [
    "BuildResult",
    "build_site",
    "compile_site_styles",
    "layout_dirs",
    "style_load_paths",
]
