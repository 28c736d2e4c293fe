"""
Book Identification Module

Turns photos into book candidates and candidates into catalog metadata.
"""

from booktender.identification.candidates import (
    BookCandidate,
    Confidence,
    parse_vision_response,
    extract_json_array,
)
from booktender.identification.vision import (
    VisionIdentifier,
    media_type_for,
)
from booktender.identification.google_books import (
    GoogleBooksClient,
    BookMetadata,
    parse_volumes_response,
)

__all__ = [
    # Candidates
    "BookCandidate",
    "Confidence",
    "parse_vision_response",
    "extract_json_array",
    # Vision
    "VisionIdentifier",
    "media_type_for",
    # Catalog
    "GoogleBooksClient",
    "BookMetadata",
    "parse_volumes_response",
]
