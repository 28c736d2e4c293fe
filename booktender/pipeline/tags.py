"""
Tags and Photo Classifications

Tags are stored as one flat list per book; the categories below only give
them meaning. A photo's classification seeds the tags of every book
identified in it.
"""

import re
from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class TagCategory:
    key: str
    label: str
    pick_one: bool
    tags: tuple[str, ...]


@dataclass(frozen=True)
class Classification:
    id: str
    label: str
    description: str
    default_tags: tuple[str, ...]


TAG_CATEGORIES: dict[str, TagCategory] = {
    "ownership": TagCategory(
        "ownership", "Ownership", True,
        ("owned", "to-buy", "to-borrow", "lent", "gave-away", "lost"),
    ),
    "reading": TagCategory(
        "reading", "Reading Status", True,
        ("unread", "reading", "read", "abandoned", "re-reading"),
    ),
    "intent": TagCategory(
        "intent", "Intent", False,
        ("tbr", "reference", "gift-idea", "favorite"),
    ),
    "source": TagCategory(
        "source", "Source", True,
        ("my-shelf", "bookstore", "library", "recommendation", "online"),
    ),
}

CUSTOM_CATEGORY = "custom"

CLASSIFICATIONS: dict[str, Classification] = {
    "my-shelf": Classification("my-shelf", "My Shelf", "Books I own on my shelf", ("owned", "my-shelf")),
    "bookstore": Classification("bookstore", "Bookstore", "Books spotted at a bookstore", ("to-buy", "bookstore")),
    "library": Classification("library", "Library", "Books spotted at a library", ("to-borrow", "library")),
    "other": Classification("other", "Other", "No default tags", ()),
}

DEFAULT_CLASSIFICATION = "other"


def default_tags(classification: str) -> list[str]:
    """Tags applied to every book identified in a photo of this kind."""
    found = CLASSIFICATIONS.get(classification)
    return list(found.default_tags) if found else []


def tag_category(tag: str) -> str:
    """Category key of a tag, "custom" for free-form tags."""
    for category in TAG_CATEGORIES.values():
        if tag in category.tags:
            return category.key
    return CUSTOM_CATEGORY


def group_tags(tags: Iterable[str]) -> dict[str, list[str]]:
    """Tags bucketed by category, preserving order within each bucket."""
    groups: dict[str, list[str]] = {key: [] for key in TAG_CATEGORIES}
    groups[CUSTOM_CATEGORY] = []
    for tag in tags:
        groups[tag_category(tag)].append(tag)
    return groups


def normalize_custom_tag(text: str) -> str:
    """Lowercase, whitespace runs become hyphens ("Gift for Mom" -> "gift-for-mom")."""
    return re.sub(r"\s+", "-", text.strip().lower())


def add_tag(tags: Iterable[str], tag: str) -> list[str]:
    """
    Add a tag, replacing its sibling in a pick-one category.

    Returns:
        New tag list; the input is not modified
    """
    tag = normalize_custom_tag(tag)
    if not tag:
        return list(tags)

    category = TAG_CATEGORIES.get(tag_category(tag))
    result = []
    for existing in tags:
        if existing == tag:
            continue
        if category is not None and category.pick_one and existing in category.tags:
            continue
        result.append(existing)
    result.append(tag)
    return result


def remove_tag(tags: Iterable[str], tag: str) -> list[str]:
    return [t for t in tags if t != tag]
