"""File-based matter store: markdown files as the only source of truth.

Layout:
    .mull/
        matters/
            <id>-<slug>.md    # YAML frontmatter + "# Title" + body
        docket.yml            # ordered queue: [{id, note}, ...]

Matters reference each other through relates (symmetric), blocks/needs
(complementary pair) and parent (one-way). Each side of a link lives in its
own file; links.link/unlink keep both sides in step and doctor.audit finds
and repairs drift between them.

Single writer only: nothing is locked.
"""

from mull.config import MullConfig, init_config, load_config
from mull.docket import Docket
from mull.doctor import AuditReport, Issue, audit
from mull.links import link, remove_all_references, unlink
from mull.models import DocketEntry, Matter
from mull.store import MatterStore

__all__ = [
    "AuditReport",
    "Docket",
    "DocketEntry",
    "Issue",
    "Matter",
    "MatterStore",
    "MullConfig",
    "audit",
    "init_config",
    "link",
    "load_config",
    "remove_all_references",
    "unlink",
]
