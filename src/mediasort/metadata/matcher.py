"""Choose the search result that matches a parsed title."""

from typing import Optional, Sequence

import structlog
from rapidfuzz import fuzz

from mediasort.metadata.queries import clean_name, comparison_title, comparison_year

logger = structlog.get_logger(__name__)

SIMILARITY_THRESHOLD = 0.8


def similarity(a: str, b: str) -> float:
    """Normalized similarity between two strings, 0.0 to 1.0."""
    return fuzz.ratio(a, b) / 100.0


def _year_ok(item: dict, year: Optional[str]) -> bool:
    return not year or str(item.get("year")) == year


def choose_match(items: Sequence[dict], pieces: dict) -> Optional[dict]:
    """Pick the best result for a title from provider-ordered search items.

    Tiers, first success wins:

    1. ``"<title> <year>"`` equals an item's ``name_clean`` (titles that carry
       a year, e.g. "blade runner 2049")
    2. title equals ``name_clean``, and the year matches when one is known
    3. only for the first item: every word of its ``name_clean`` appears in
       the title, or failing that the two are at least 80% similar; the year
       must still match when one is known

    Args:
        items: Parsed search result records, in provider order
        pieces: Parsed title pieces

    Returns:
        The matched record, or None
    """
    if not items:
        return None

    title = clean_name(comparison_title(pieces)) or ""
    year = comparison_year(pieces)

    if year:
        with_year = f"{title} {year}"
        for item in items:
            if item.get("name_clean") == with_year:
                logger.info("Matched title with year in name", title=title, year=year, match=item.get("name"))
                return item

    for item in items:
        if item.get("name_clean") == title and _year_ok(item, year):
            logger.info(
                "Matched",
                title=title,
                year=year,
                match=item.get("name"),
                match_year=item.get("year"),
            )
            return item

    first = items[0]
    first_name = first.get("name_clean") or ""

    if not _year_ok(first, year):
        return None

    words = first_name.split(" ")
    if first_name and all(word in title for word in words):
        logger.info("Matched all words of first result", title=title, year=year, match=first.get("name"))
        return first

    score = similarity(first_name, title)
    if score >= SIMILARITY_THRESHOLD:
        logger.info(
            "Matched first result by similarity",
            title=title,
            year=year,
            match=first.get("name"),
            score=round(score, 3),
        )
        return first

    return None
