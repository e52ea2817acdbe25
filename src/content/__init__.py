"""Content domain — front-matter parsing, entry models, publishing policy.

Turns the Markdown content tree into immutable ContentEntry values and
decides which of them are published.
"""

from quire.content.models import (
    BundleResource,
    ContentEntry,
    EntryKind,
    PublishPolicy,
)
from quire.content.services import (
    ContentLoader,
    by_date,
    by_weight,
    check_unique_output_paths,
    parse_front_matter,
    render_archetype,
    select_published,
    slugify,
)

__all__ = [
    "BundleResource",
    "ContentEntry",
    "ContentLoader",
    "EntryKind",
    "PublishPolicy",
    "by_date",
    "by_weight",
    "check_unique_output_paths",
    "parse_front_matter",
    "render_archetype",
    "select_published",
    "slugify",
]
