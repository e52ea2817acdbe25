"""Style domain — ordered design-token overrides and stylesheet compilation.

Site overrides are declared first, base design-system modules are imported
next, dependent modules after them and literal rules last. Base modules
assign with ``!default``, so earlier declarations win.
"""

from quire.styles.models import (
    CompiledStylesheet,
    Declaration,
    StylePhase,
    StylePlan,
    StyleStep,
    ThemeOverride,
)
from quire.styles.services import (
    StyleCompiler,
    compose_entry,
    compress_css,
    find_ordering_warnings,
    split_statements,
)

__all__ = [
    "CompiledStylesheet",
    "Declaration",
    "StyleCompiler",
    "StylePhase",
    "StylePlan",
    "StyleStep",
    "ThemeOverride",
    "compose_entry",
    "compress_css",
    "find_ordering_warnings",
    "split_statements",
]
