"""
Pipeline Module

Photo import, identification, enrichment and tagging.
"""

from booktender.pipeline.enrichment import (
    EnrichmentPipeline,
    ImportOutcome,
    PhotoOutcome,
    CandidateOutcome,
    PhotoStatus,
    CancellationToken,
    duplicate_note,
)
from booktender.pipeline.tags import (
    TAG_CATEGORIES,
    CLASSIFICATIONS,
    DEFAULT_CLASSIFICATION,
    default_tags,
    tag_category,
    group_tags,
    add_tag,
    remove_tag,
)

__all__ = [
    # Enrichment
    "EnrichmentPipeline",
    "ImportOutcome",
    "PhotoOutcome",
    "CandidateOutcome",
    "PhotoStatus",
    "CancellationToken",
    "duplicate_note",
    # Tags
    "TAG_CATEGORIES",
    "CLASSIFICATIONS",
    "DEFAULT_CLASSIFICATION",
    "default_tags",
    "tag_category",
    "group_tags",
    "add_tag",
    "remove_tag",
]
