"""Declarative tables describing metadata queries.

Each logical query is described by data rather than code:

- ``QUERY_ARGS``: how to build the provider call arguments
- ``CACHE_LOOKUPS``: alternative ways to find a previous result in the cache
- ``RESPONSE_FIELDS``: how to flatten one provider item into a result record
- ``DEFAULT_META``: how to build metadata from parsed pieces alone

Bindings name a source (configuration, the candidate's parsed pieces, or a
previous query's result) and either a field key or a function computing the
value from that source.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Union

# Query names, also used as cache sections
SEARCH_TV = "search_tv"
SEARCH_MOVIE = "search_movie"
EPISODE_INFO = "episode_info"
SEASON_INFO = "season_info"
CONFIGURATION = "configuration"

# How each query's response is processed
METHOD_TYPES = {
    SEARCH_TV: "search",
    SEARCH_MOVIE: "search",
    EPISODE_INFO: "info",
    SEASON_INFO: "info",
}


class Source(str, Enum):
    """Where a bound value comes from."""

    CONFIG = "config"
    TITLE = "title"
    QUERY = "query"
    PROVIDER = "provider"


FieldRef = Union[str, Callable[[dict], Any]]


@dataclass(frozen=True)
class Binding:
    """One argument or lookup field binding.

    Attributes:
        source: Where the value is read from
        field: Key to read, or a function of the source mapping
        required: Whether a missing value invalidates the whole binding set
        query: Name of the prior query when ``source`` is ``Source.QUERY``
    """

    source: Source
    field: FieldRef
    required: bool = False
    query: Optional[str] = None


@dataclass(frozen=True)
class ResponseField:
    """How one result record field is produced.

    ``transform`` receives the raw value and the provider configuration (used
    to build image URLs).
    """

    source: Source
    field: str
    transform: Optional[Callable[[Any, Optional[dict]], Any]] = None
    query: Optional[str] = None


_INVALID_CHARS = re.compile(r'[/\\?<>:*|"\x00-\x1f\x80-\x9f]')
_STRIPPED_CHARS = re.compile(r"[!()\[\]]")
_SPACES = re.compile(r"\s+")
_WORD_START = re.compile(r"(^|\s)(\w)")
_YEAR_PREFIX = re.compile(r"^(\d{4})")


def clean_name(value: Any, provider_conf: Optional[dict] = None) -> Any:
    """Clean a name for matching or use in filenames.

    Lower-cases, replaces characters that are invalid in filenames with
    spaces, removes brackets and exclamation marks and collapses whitespace.
    Applying it twice gives the same result as applying it once.
    """
    if not value:
        return value
    value = str(value).lower()
    value = _INVALID_CHARS.sub(" ", value)
    value = _STRIPPED_CHARS.sub("", value)
    return _SPACES.sub(" ", value).strip()


def capitalize(value: Any, provider_conf: Optional[dict] = None) -> Any:
    """Upper-case the first letter of every word."""
    if not value:
        return value
    return _WORD_START.sub(lambda m: m.group(1) + m.group(2).upper(), str(value))


def year_from_date(value: Any, provider_conf: Optional[dict] = None) -> Optional[str]:
    """Take the 4 digit year from a date like "1960-09-30"."""
    if not value:
        return None
    match = _YEAR_PREFIX.match(str(value))
    return match.group(1) if match else None


def image_url(value: Any, provider_conf: Optional[dict] = None) -> Optional[str]:
    """Build a full image URL from a provider image path."""
    if not value or not provider_conf:
        return None
    images = provider_conf.get("images") or {}
    base = images.get("secure_base_url") or images.get("base_url")
    if not base:
        return None
    return base.rstrip("/") + "/original/" + str(value).lstrip("/")


def comparison_title(pieces: dict) -> Optional[str]:
    """Alternate title when provided, else the parsed title."""
    return pieces.get("altname") or pieces.get("name")


def comparison_year(pieces: dict) -> Optional[str]:
    """Alternate year when provided, else the parsed year, as a string."""
    year = pieces.get("altyear") or pieces.get("year")
    if year:
        return str(year)
    return None


# Parsed name lookups give way to the alternate title lookup when one is set
def _clean_parsed_name(pieces: dict) -> Optional[str]:
    if pieces.get("altname"):
        return None
    return clean_name(pieces.get("name"))


def _name_with_year(pieces: dict) -> Optional[str]:
    if pieces.get("altname"):
        return None
    year = comparison_year(pieces)
    if year and pieces.get("name"):
        return clean_name(f"{pieces['name']} {year}")
    return _clean_parsed_name(pieces)


def _clean_altname(pieces: dict) -> Optional[str]:
    return clean_name(pieces.get("altname"))


QUERY_ARGS: dict[str, dict[str, Binding]] = {
    SEARCH_TV: {
        "query": Binding(Source.TITLE, comparison_title, required=True),
        "first_air_date_year": Binding(Source.TITLE, comparison_year),
        "include_adult": Binding(Source.CONFIG, "include_adult"),
    },
    # The year is matched after the search rather than sent, since some
    # titles carry a year-like part in the name (2001: A Space Odyssey)
    SEARCH_MOVIE: {
        "query": Binding(Source.TITLE, comparison_title, required=True),
        "include_adult": Binding(Source.CONFIG, "include_adult"),
    },
    EPISODE_INFO: {
        "id": Binding(Source.QUERY, "id", required=True, query=SEARCH_TV),
        "season_number": Binding(Source.TITLE, "season", required=True),
        "episode_number": Binding(Source.TITLE, "episode", required=True),
    },
    SEASON_INFO: {
        "id": Binding(Source.QUERY, "id", required=True, query=SEARCH_TV),
        "season_number": Binding(Source.TITLE, "season", required=True),
    },
}


_SEARCH_LOOKUPS = [
    {
        "name_clean": Binding(Source.TITLE, _clean_parsed_name, required=True),
        "year": Binding(Source.TITLE, comparison_year),
    },
    # Some titles carry a year-like part in the name
    {
        "name_clean": Binding(Source.TITLE, _name_with_year, required=True),
    },
    {
        "name_clean": Binding(Source.TITLE, _clean_altname, required=True),
        "year": Binding(Source.TITLE, comparison_year, required=True),
    },
]

CACHE_LOOKUPS: dict[str, list[dict[str, Binding]]] = {
    SEARCH_TV: _SEARCH_LOOKUPS,
    SEARCH_MOVIE: _SEARCH_LOOKUPS,
    EPISODE_INFO: [
        {
            "tv_id": Binding(Source.QUERY, "id", required=True, query=SEARCH_TV),
            "season_number": Binding(Source.TITLE, "season", required=True),
            "episode_number": Binding(Source.TITLE, "episode", required=True),
        }
    ],
    SEASON_INFO: [
        {
            "tv_id": Binding(Source.QUERY, "id", required=True, query=SEARCH_TV),
            "season_number": Binding(Source.TITLE, "season", required=True),
        }
    ],
}


RESPONSE_FIELDS: dict[str, dict[str, ResponseField]] = {
    SEARCH_TV: {
        "id": ResponseField(Source.PROVIDER, "id"),
        "name": ResponseField(Source.PROVIDER, "name"),
        "name_clean": ResponseField(Source.PROVIDER, "name", clean_name),
        "year": ResponseField(Source.PROVIDER, "first_air_date", year_from_date),
        "poster_url": ResponseField(Source.PROVIDER, "poster_path", image_url),
        "fanart_url": ResponseField(Source.PROVIDER, "backdrop_path", image_url),
    },
    SEARCH_MOVIE: {
        "id": ResponseField(Source.PROVIDER, "id"),
        "name": ResponseField(Source.PROVIDER, "title"),
        "name_clean": ResponseField(Source.PROVIDER, "title", clean_name),
        "year": ResponseField(Source.PROVIDER, "release_date", year_from_date),
        "poster_url": ResponseField(Source.PROVIDER, "poster_path", image_url),
        "fanart_url": ResponseField(Source.PROVIDER, "backdrop_path", image_url),
    },
    EPISODE_INFO: {
        "id": ResponseField(Source.PROVIDER, "id"),
        "episode_name": ResponseField(Source.PROVIDER, "name"),
        "thumb_url": ResponseField(Source.PROVIDER, "still_path", image_url),
        "episode_number": ResponseField(Source.PROVIDER, "episode_number"),
        "season_number": ResponseField(Source.PROVIDER, "season_number"),
        # Needed for cache lookups
        "tv_id": ResponseField(Source.QUERY, "id", query=SEARCH_TV),
    },
    SEASON_INFO: {
        "id": ResponseField(Source.PROVIDER, "id"),
        "season_poster_url": ResponseField(Source.PROVIDER, "poster_path", image_url),
        "season_number": ResponseField(Source.PROVIDER, "season_number"),
        "tv_id": ResponseField(Source.QUERY, "id", query=SEARCH_TV),
    },
    CONFIGURATION: {
        "images": ResponseField(Source.PROVIDER, "images"),
    },
}


@dataclass(frozen=True)
class DefaultField:
    """How one default metadata field is read from parsed pieces."""

    field: FieldRef
    required: bool = False
    transform: Optional[Callable[[Any], Any]] = None


def _default_name(pieces: dict) -> Optional[str]:
    return comparison_title(pieces)


DEFAULT_META: dict[str, dict[str, DefaultField]] = {
    "tv": {
        "name": DefaultField(_default_name, required=True, transform=capitalize),
        "name_clean": DefaultField(_default_name, required=True, transform=clean_name),
        "year": DefaultField(comparison_year),
        "episode_number": DefaultField("episode", required=True),
        "season_number": DefaultField("season", required=True),
    },
    "movie": {
        "name": DefaultField(_default_name, required=True, transform=capitalize),
        "name_clean": DefaultField(_default_name, required=True, transform=clean_name),
        "year": DefaultField(comparison_year),
    },
}


def query_dependencies(query: str) -> set[str]:
    """Names of prior queries whose results a query's arguments consume."""
    return {
        binding.query
        for binding in QUERY_ARGS.get(query, {}).values()
        if binding.source is Source.QUERY and binding.query
    }
