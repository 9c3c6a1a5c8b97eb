"""Filename grammar for extracting titles, years, seasons and episodes.

Rules are tried in declared order and the first match wins, so more specific
rules (those that need more context, such as a year or a "specials" directory)
come before looser ones. Rules either match the base name of a file or the
full path when the directory layout carries the information.
"""

import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional

import structlog

from mediasort.config import ParsingConfig
from mediasort.errors import ParseFailure
from mediasort.models.candidate import Candidate

logger = structlog.get_logger(__name__)

_YEAR = r"[\(\[]?((?:19|20)[0-9]{2})[\)\]]?"

# How captured fields are converted
FIELD_TYPES = {
    "name": str,
    "year": int,
    "season": int,
    "episode": int,
}


@dataclass(frozen=True)
class Rule:
    """One grammar entry.

    Attributes:
        id: Priority, lower ids are tried first
        type: Media type the rule recognizes ("tv" or "movie")
        matches: Candidate attribute to test ("name" or "full")
        pattern: Compiled pattern
        captures: Field name for each capture group, in order
        hint: Informational only, never consulted when matching
        defaults: Values for fields the pattern may leave uncaptured
    """

    id: int
    type: str
    matches: str
    pattern: re.Pattern
    captures: tuple[str, ...]
    hint: Optional[re.Pattern] = None
    defaults: tuple[tuple[str, Any], ...] = ()


RULES: tuple[Rule, ...] = (
    # "show name 1999 s01e01" or "show name (1999) 1x02"
    Rule(
        1, "tv", "name",
        re.compile(rf"^(.+?)[ ._-]+{_YEAR}[ ._-]+s?([0-9]{{1,2}})?[ex]([0-9]{{1,2}})", re.I),
        ("name", "year", "season", "episode"),
        hint=re.compile(r"\d{4}"),
    ),
    # "show name s01e01" or "show name 1x02"
    Rule(
        2, "tv", "name",
        re.compile(r"^(.+?)[ ._-]+s?([0-9]{1,2})[ex]([0-9]{1,2})", re.I),
        ("name", "season", "episode"),
    ),
    # "show name 2000/specials/2 - title"
    Rule(
        3, "tv", "full",
        re.compile(rf"^.*/(.+?)[ ._-]{_YEAR}/specials/s?([0-9]{{1,2}})?[ex]([0-9]{{1,3}})", re.I),
        ("name", "year", "season", "episode"),
        hint=re.compile(r"specials", re.I),
        defaults=(("season", 0),),
    ),
    # "show name/specials/2 - title"
    Rule(
        4, "tv", "full",
        re.compile(r"^.*/(.+?)/specials/s?([0-9]{1,2})?[ex]([0-9]{1,3})", re.I),
        ("name", "season", "episode"),
        hint=re.compile(r"specials", re.I),
        defaults=(("season", 0),),
    ),
    # "show name 1999/s01e02" or "show name (1999)/1x2 foo"
    Rule(
        5, "tv", "full",
        re.compile(rf"^.*/(.+?)[ ._-]{_YEAR}/s?([0-9]{{1,2}})?[ex]([0-9]{{1,2}})", re.I),
        ("name", "year", "season", "episode"),
        hint=re.compile(r"\d{4}"),
    ),
    # "show name/s01e02" or "show name/1x2 foo"
    Rule(
        6, "tv", "full",
        re.compile(r"^.*/(.+?)/s?([0-9]{1,2})?[ex]([0-9]{1,2})", re.I),
        ("name", "season", "episode"),
    ),
    # "show name 1999/season 1/2 - title"
    Rule(
        7, "tv", "full",
        re.compile(rf"^.*/(.+)[ ._-]{_YEAR}/season[ ._-]?([0-9]{{1,2}}).*?/.*?e?([0-9]{{1,2}})", re.I),
        ("name", "year", "season", "episode"),
        hint=re.compile(r"season", re.I),
    ),
    # "show name/season 1/2 - title"
    Rule(
        8, "tv", "full",
        re.compile(r"^.*/(.+)/season[ ._-]?([0-9]{1,2}).*?/([0-9]{1,2})", re.I),
        ("name", "season", "episode"),
        hint=re.compile(r"season", re.I),
    ),
    # "show name 1999 - season 1/2 - title"
    Rule(
        9, "tv", "full",
        re.compile(rf"^.*/(.+)[ ._-]{_YEAR}[ ._-]+season[ ._-]?([0-9]{{1,2}}).*?/.*?e?([0-9]{{1,2}})", re.I),
        ("name", "year", "season", "episode"),
        hint=re.compile(r"season", re.I),
    ),
    # "show name - season 1/2 - title"
    Rule(
        10, "tv", "full",
        re.compile(r"^.*/(.+)[ ._-]+season[ ._-]?([0-9]{1,2}).*?/.*?e?([0-9]{1,2})", re.I),
        ("name", "season", "episode"),
        hint=re.compile(r"season", re.I),
    ),
    # "movie name 1960"
    Rule(
        11, "movie", "name",
        re.compile(rf"^(.+)[ ._-]{_YEAR}"),
        ("name", "year"),
    ),
    # "movie name 1999/movie name"
    Rule(
        12, "movie", "full",
        re.compile(r"^.* ((?:19|20)[0-9]{2})/(.+)\.\w+$"),
        ("year", "name"),
    ),
    # "movie name"
    Rule(
        13, "movie", "name",
        re.compile(r"^(.+)$"),
        ("name",),
    ),
)


def rules_for(media_type: str, rules: Iterable[Rule] = RULES) -> list[Rule]:
    """Select the rules to try for a media type filter.

    Args:
        media_type: "auto", "tv" or "movie"
        rules: Rule set in priority order

    Returns:
        Rules in their declared order, filtered by type unless "auto"
    """
    if media_type == "auto":
        return list(rules)
    return [rule for rule in rules if rule.type == media_type]


def clean_capture(value: str, base_name: str) -> str:
    """Normalize a captured string field.

    Underscores always become spaces. Hyphens and periods only become spaces
    when the base name has no literal space, otherwise they are kept as part
    of the title (e.g. "D.O.A 1950").
    """
    value = value.replace("_", " ").lower()
    if " " not in base_name:
        value = value.replace("-", " ").replace(".", " ")
    return value


class TitleParser:
    """Parse candidates into title pieces using the filename grammar."""

    def __init__(self, config: ParsingConfig, rules: Iterable[Rule] = RULES):
        """Initialize the parser.

        Args:
            config: Parsing configuration (media type filter, alternates)
            rules: Rule set in priority order
        """
        self.config = config
        self.rules = rules_for(config.media_type, rules)

    def parse(self, candidates: Iterable[Candidate]) -> None:
        """Parse candidates in place.

        Sets ``parsed``, and on success ``mediatype`` and ``pieces``. Candidates
        that match no rule are marked unparsed and left without pieces.
        """
        for candidate in candidates:
            try:
                self.parse_title(candidate)
            except ParseFailure:
                candidate.parsed = False
                candidate.mediatype = None
                candidate.pieces = None
                logger.debug("Failed to match candidate", name=candidate.name)

    def parse_title(self, candidate: Candidate) -> dict[str, Any]:
        """Parse one candidate.

        Args:
            candidate: Candidate to parse

        Returns:
            The extracted pieces

        Raises:
            ParseFailure: If no rule matches
        """
        logger.debug("Attempting to parse title", full=candidate.full)

        for rule in self.rules:
            match = rule.pattern.search(getattr(candidate, rule.matches))
            if not match:
                continue

            logger.debug(
                "Matched title",
                name=candidate.name,
                rule=rule.id,
                media_type=rule.type,
            )
            pieces = self._extract(rule, match, candidate.name)

            candidate.parsed = True
            candidate.mediatype = rule.type
            candidate.pieces = pieces
            return pieces

        raise ParseFailure(candidate, "parse", "no grammar rule matched")

    def _extract(self, rule: Rule, match: re.Match, base_name: str) -> dict[str, Any]:
        """Convert rule captures into pieces."""
        pieces: dict[str, Any] = dict(rule.defaults)

        for idx, field_name in enumerate(rule.captures, start=1):
            raw = match.group(idx)
            if raw is None:
                continue
            if FIELD_TYPES[field_name] is str:
                pieces[field_name] = clean_capture(raw, base_name)
            else:
                pieces[field_name] = int(raw, 10)

        if self.config.alt_title:
            pieces["altname"] = self.config.alt_title
        if self.config.alt_year:
            pieces["altyear"] = self.config.alt_year

        logger.debug("Match pieces", pieces=pieces)
        return pieces
