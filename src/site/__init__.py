"""Site domain — output planning and the written output tree."""

from quire.site.models import BuildManifest, OutputFile
from quire.site.services import (
    SiteAssembler,
    check_output_dir,
    paginate,
    plan_site_pages,
)

__all__ = [
    "BuildManifest",
    "OutputFile",
    "SiteAssembler",
    "check_output_dir",
    "paginate",
    "plan_site_pages",
]
