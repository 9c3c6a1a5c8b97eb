"""TMDB API client."""

from typing import Any, Optional

import httpx
import structlog

from mediasort.errors import MediaSortError
from mediasort.metadata.queries import (
    CONFIGURATION,
    EPISODE_INFO,
    SEARCH_MOVIE,
    SEARCH_TV,
    SEASON_INFO,
)

logger = structlog.get_logger(__name__)


class TMDBError(MediaSortError):
    """Base exception for TMDB API errors."""

    pass


class TMDBClient:
    """TMDB API client exposing the named lookups used by the resolver.

    The client does not cache or rate limit; callers route calls through the
    shared rate limiter and keep results in the cache store.
    """

    BASE_URL = "https://api.themoviedb.org/3"

    def __init__(
        self,
        api_key: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize TMDB client.

        Args:
            api_key: TMDB API key
            timeout: HTTP timeout in seconds
            client: Optional preconfigured HTTP client
        """
        self.api_key = api_key
        self.base_url = self.BASE_URL
        self.client = client or httpx.AsyncClient(timeout=timeout)
        logger.info("Initialized TMDB client")

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    async def query(self, name: str, args: dict[str, Any]) -> dict:
        """Run a named lookup.

        Args:
            name: Query name (search_tv, search_movie, episode_info, ...)
            args: Query arguments

        Returns:
            Raw response body

        Raises:
            TMDBError: For unknown queries, non-success responses or transport errors
        """
        methods = {
            SEARCH_TV: self.search_tv,
            SEARCH_MOVIE: self.search_movie,
            EPISODE_INFO: self.episode_info,
            SEASON_INFO: self.season_info,
        }
        if name == CONFIGURATION:
            return await self.configuration()
        if name not in methods:
            raise TMDBError(f"Unknown TMDB query: {name}")
        return await methods[name](**args)

    async def search_tv(
        self,
        query: str,
        first_air_date_year: Optional[int | str] = None,
        include_adult: Optional[bool] = None,
    ) -> dict:
        """Search for TV shows.

        Args:
            query: Show title
            first_air_date_year: Optional year to filter results
            include_adult: Include adult results

        Returns:
            Search response with a ``results`` list
        """
        params: dict[str, Any] = {"query": query}
        if first_air_date_year:
            params["first_air_date_year"] = first_air_date_year
        if include_adult is not None:
            params["include_adult"] = str(include_adult).lower()

        data = await self._get("/search/tv", params)
        logger.info(
            "Searched TMDB for TV show",
            query=query,
            year=first_air_date_year,
            result_count=len(data.get("results") or []),
        )
        return data

    async def search_movie(self, query: str, include_adult: Optional[bool] = None) -> dict:
        """Search for movies.

        Args:
            query: Movie title

        Returns:
            Search response with a ``results`` list
        """
        params: dict[str, Any] = {"query": query}
        if include_adult is not None:
            params["include_adult"] = str(include_adult).lower()

        data = await self._get("/search/movie", params)
        logger.info(
            "Searched TMDB for movie",
            query=query,
            result_count=len(data.get("results") or []),
        )
        return data

    async def episode_info(self, id: int, season_number: int, episode_number: int) -> dict:
        """Get one episode's details, including its name and still."""
        data = await self._get(f"/tv/{id}/season/{season_number}/episode/{episode_number}")
        logger.info(
            "Fetched episode from TMDB",
            tmdb_id=id,
            season=season_number,
            episode=episode_number,
            name=data.get("name"),
        )
        return data

    async def season_info(self, id: int, season_number: int) -> dict:
        """Get one season's details, including its poster."""
        data = await self._get(f"/tv/{id}/season/{season_number}")
        logger.info("Fetched season from TMDB", tmdb_id=id, season=season_number)
        return data

    async def configuration(self) -> dict:
        """Get the API configuration (image base URLs and sizes)."""
        data = await self._get("/configuration")
        logger.info("Fetched TMDB configuration")
        return data

    async def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> dict:
        """GET an endpoint and return the decoded body."""
        request_params = {"api_key": self.api_key}
        if params:
            request_params.update(params)

        try:
            response = await self.client.get(f"{self.base_url}{path}", params=request_params)
            response.raise_for_status()
            return response.json()

        except httpx.HTTPStatusError as e:
            logger.error(
                "TMDB API error",
                path=path,
                status_code=e.response.status_code,
                error=str(e),
            )
            raise TMDBError(f"TMDB API error: {e}") from e
        except httpx.HTTPError as e:
            logger.error("TMDB request failed", path=path, error=str(e))
            raise TMDBError(f"TMDB request failed: {e}") from e
        except ValueError as e:
            raise TMDBError(f"TMDB returned invalid JSON: {e}") from e
