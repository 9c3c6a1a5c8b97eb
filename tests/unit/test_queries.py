"""Unit tests for query tables and value transforms."""

import pytest

from mediasort.metadata.queries import (
    CACHE_LOOKUPS,
    EPISODE_INFO,
    QUERY_ARGS,
    RESPONSE_FIELDS,
    SEARCH_MOVIE,
    SEARCH_TV,
    SEASON_INFO,
    Source,
    capitalize,
    clean_name,
    comparison_title,
    comparison_year,
    image_url,
    query_dependencies,
    year_from_date,
)

PROVIDER_CONF = {
    "images": {
        "base_url": "http://image.tmdb.org/t/p/",
        "secure_base_url": "https://image.tmdb.org/t/p/",
    }
}


class TestCleanName:
    """Test name cleaning."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("The Flintstones", "the flintstones"),
            ("Mr. Magoo!", "mr. magoo"),
            ("Star Wars: Episode IV", "star wars episode iv"),
            ("What/If  (2019)", "what if 2019"),
            ("  [Spaced]  Out ", "spaced out"),
        ],
    )
    def test_clean_name(self, raw, expected):
        """Test cleaning of provider names."""
        assert clean_name(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        ["The Flintstones", "A  B   C", "Who?/What:When", "(Untitled) [2001]!"],
    )
    def test_idempotent(self, raw):
        """Test cleaning a clean name changes nothing."""
        once = clean_name(raw)
        assert clean_name(once) == once

    def test_empty_passthrough(self):
        """Test empty values are returned unchanged."""
        assert clean_name("") == ""
        assert clean_name(None) is None


class TestTransforms:
    """Test response value transforms."""

    def test_capitalize(self):
        """Test every word starts upper-case."""
        assert capitalize("the flintstones") == "The Flintstones"
        assert capitalize("i married joan") == "I Married Joan"

    def test_year_from_date(self):
        """Test the year is taken from a date."""
        assert year_from_date("1960-09-30") == "1960"
        assert year_from_date("") is None
        assert year_from_date(None) is None
        assert year_from_date("soon") is None

    def test_image_url_prefers_secure(self):
        """Test the secure base URL is used when present."""
        url = image_url("/abc.jpg", PROVIDER_CONF)
        assert url == "https://image.tmdb.org/t/p/original/abc.jpg"

    def test_image_url_falls_back_to_base(self):
        """Test the plain base URL is used without a secure one."""
        conf = {"images": {"base_url": "http://image.tmdb.org/t/p/"}}
        assert image_url("/abc.jpg", conf) == "http://image.tmdb.org/t/p/original/abc.jpg"

    def test_image_url_missing(self):
        """Test no URL without a path or provider configuration."""
        assert image_url(None, PROVIDER_CONF) is None
        assert image_url("/abc.jpg", None) is None


class TestComparisonValues:
    """Test title and year selection."""

    def test_alternate_title_preferred(self):
        """Test altname overrides the parsed name."""
        assert comparison_title({"name": "mr magoo", "altname": "mr. magoo"}) == "mr. magoo"
        assert comparison_title({"name": "mr magoo"}) == "mr magoo"

    def test_year_as_string(self):
        """Test the year is compared as a string."""
        assert comparison_year({"year": 1997}) == "1997"
        assert comparison_year({"year": 1997, "altyear": "1998"}) == "1998"
        assert comparison_year({"name": "x"}) is None


class TestTables:
    """Test table consistency."""

    def test_info_queries_depend_on_search(self):
        """Test episode and season lookups consume the show search."""
        assert query_dependencies(EPISODE_INFO) == {SEARCH_TV}
        assert query_dependencies(SEASON_INFO) == {SEARCH_TV}
        assert query_dependencies(SEARCH_TV) == set()
        assert query_dependencies(SEARCH_MOVIE) == set()

    def test_search_query_required(self):
        """Test the search term is a required argument."""
        assert QUERY_ARGS[SEARCH_TV]["query"].required is True
        assert QUERY_ARGS[SEARCH_MOVIE]["query"].required is True
        assert QUERY_ARGS[SEARCH_TV]["include_adult"].source is Source.CONFIG

    def test_every_result_has_id(self):
        """Test cached record types carry a provider id."""
        for query in (SEARCH_TV, SEARCH_MOVIE, EPISODE_INFO, SEASON_INFO):
            assert "id" in RESPONSE_FIELDS[query]

    def test_search_lookups_ordered(self):
        """Test search lookups try the parsed name first."""
        lookups = CACHE_LOOKUPS[SEARCH_TV]
        assert len(lookups) == 3
        assert set(lookups[0]) == {"name_clean", "year"}
        assert lookups[2]["year"].required is True

    def test_search_lookups_alternate_title(self):
        """Test only the alternate title lookup applies when an alternate title is set."""
        lookups = CACHE_LOOKUPS[SEARCH_MOVIE]
        pieces = {"name": "mr magoo", "year": 1997, "altname": "Mr. Magoo!"}

        assert lookups[0]["name_clean"].field(pieces) is None
        assert lookups[1]["name_clean"].field(pieces) is None
        assert lookups[2]["name_clean"].field(pieces) == "mr. magoo"
        assert lookups[1]["name_clean"].field({"name": "blade runner", "year": 2049}) == "blade runner 2049"
