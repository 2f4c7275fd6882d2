from __future__ import annotations

from typing import List, Optional, Tuple

# Checked in order; the first group with a matching keyword wins.
KEYWORD_GROUPS: List[Tuple[str, Tuple[str, ...]]] = [
    ("Novel", ("roman", "fiction", "novel")),
    ("Essay", ("essai", "essay")),
    ("Science", ("science", "sciences")),
    ("History", ("histoire", "history")),
    ("Biography", ("biograph", "autobiograph")),
    ("Fantasy", ("fantasy", "fantastique", "fantaisie")),
    ("Mystery", ("policier", "detective", "crime", "mystery", "thriller")),
]


def map_category(raw_category: Optional[str]) -> Optional[str]:
    """Map a free-text category such as "Fiction / Thrillers" to a known genre.

    Returns ``None`` when nothing matches; callers keep their current value
    or fall back to the catch-all genre.
    """
    if raw_category is None:
        return None
    category = raw_category.lower().replace("’", "'")

    for genre, keywords in KEYWORD_GROUPS:
        if any(keyword in category for keyword in keywords):
            return genre

    if "/" in category:
        for part in category.split("/"):
            mapped = map_category(part.strip())
            if mapped:
                return mapped
    return None
