"""Catalog of interest tags students subscribe to and organizers attach to events."""
from typing import Dict, Iterable, List

from .exceptions import ValidationError

TAG_CATEGORIES: Dict[str, List[str]] = {
    "Goods": [
        "Free Pizza",
        "Free Food",
        "Free Snacks",
        "Free Coffee",
        "Free Drinks",
        "Free Swag",
        "Free T-Shirts",
        "Free Books",
        "Free Supplies",
        "Giveaways",
    ],
    "Topic": [
        "Technology",
        "Science",
        "Engineering",
        "Business",
        "Arts",
        "Health & Wellness",
        "Sustainability",
        "Culture",
        "Politics",
        "Research",
    ],
    "Career": [
        "Career Fair",
        "Networking",
        "Internships",
        "Resume Review",
        "Interview Prep",
        "Info Session",
        "Workshop",
        "Alumni Panel",
    ],
    "Entertainment": [
        "Music",
        "Movies",
        "Games",
        "Sports",
        "Comedy",
        "Dance",
        "Trivia",
        "Social",
    ],
}

_TAG_TO_CATEGORY = {
    tag: category
    for category, tags in TAG_CATEGORIES.items()
    for tag in tags
}


def is_valid_tag(tag) -> bool:
    return isinstance(tag, str) and tag in _TAG_TO_CATEGORY


def validate_tags(tags: Iterable, field: str = "tags") -> List[str]:
    """Return tags de-duplicated in first-seen order.

    Raises ValidationError for a non-string entry or a tag missing from the catalog.
    """
    if isinstance(tags, (str, bytes)):
        raise ValidationError(field, "must be a list of tags, not a string")

    seen = []
    unknown = []
    for tag in tags:
        if not isinstance(tag, str):
            raise ValidationError(field, f"tags must be strings, got {type(tag).__name__}")
        if tag not in _TAG_TO_CATEGORY:
            unknown.append(tag)
        elif tag not in seen:
            seen.append(tag)

    if unknown:
        raise ValidationError(field, f"unknown tags: {', '.join(unknown)}")
    return seen
