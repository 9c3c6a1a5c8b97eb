"""Metadata resolver: plans, runs, caches and matches provider queries."""

from pathlib import Path
from typing import Any, Iterable, Optional

import structlog

from mediasort.config import Config
from mediasort.errors import (
    ArgumentBindingFailure,
    ConfigurationError,
    DefaultMetadataFailure,
    NoMatchFound,
    ProviderFailure,
    ResolutionError,
)
from mediasort.metadata.cache import DAY_MS, CacheError, CacheStore, now_ms
from mediasort.metadata.matcher import choose_match
from mediasort.metadata.queries import (
    CACHE_LOOKUPS,
    CONFIGURATION,
    DEFAULT_META,
    EPISODE_INFO,
    METHOD_TYPES,
    QUERY_ARGS,
    RESPONSE_FIELDS,
    SEARCH_MOVIE,
    SEARCH_TV,
    SEASON_INFO,
    Binding,
    Source,
    query_dependencies,
)
from mediasort.metadata.ratelimit import RateLimiter
from mediasort.metadata.tmdb import TMDBClient
from mediasort.models.candidate import Candidate, ResolutionState

logger = structlog.get_logger(__name__)


class MetadataResolver:
    """Resolve parsed candidates to provider metadata.

    Queries for a candidate run strictly in plan order since later queries
    consume earlier results. Every remote call goes through the shared rate
    limiter, and every parsed provider item is kept in the cache store.
    """

    def __init__(
        self,
        config: Config,
        client: Optional[TMDBClient] = None,
        cache: Optional[CacheStore] = None,
        limiter: Optional[RateLimiter] = None,
    ):
        """Initialize metadata resolver.

        Args:
            config: Application configuration
            client: TMDB API client (None when lookups are disabled)
            cache: Cache store for provider results
            limiter: Rate limiter shared by all remote calls

        Raises:
            ConfigurationError: If lookups are enabled without collaborators
        """
        self.config = config
        self.client = client
        self.cache = cache
        self.limiter = limiter
        self.lookup_enabled = config.tmdb.enabled
        self.cache_enabled = config.tmdb.cache_enabled
        self._provider_conf: Optional[dict] = None

        if self.lookup_enabled and (client is None or cache is None or limiter is None):
            raise ConfigurationError("Lookups enabled but client, cache or rate limiter missing")

        logger.info(
            "Initialized metadata resolver",
            lookup_enabled=self.lookup_enabled,
            cache_enabled=self.cache_enabled,
        )

    @classmethod
    def from_config(cls, config: Config, client: Optional[TMDBClient] = None) -> "MetadataResolver":
        """Build a resolver and its collaborators from configuration.

        Raises:
            ConfigurationError: If lookups are enabled and no API key is set
            CacheError: If the cache file cannot be read
        """
        if not config.tmdb.enabled:
            return cls(config)

        api_key = config.tmdb.resolved_api_key()
        if client is None and not api_key:
            raise ConfigurationError("TMDB API key missing, required for lookups")

        # With caching disabled results are still recorded, but only in memory
        cache_path = Path(config.tmdb.cache_path) if config.tmdb.cache_enabled else None
        cache = CacheStore(cache_path, METHOD_TYPES.keys())

        if client is None:
            client = TMDBClient(api_key, timeout=config.tmdb.timeout_seconds)

        rate = config.tmdb.rate_limit
        limiter = RateLimiter(
            rate=rate.rate,
            interval=rate.interval_seconds,
            concurrency=rate.concurrency,
        )
        return cls(config, client, cache, limiter)

    async def close(self) -> None:
        """Close the provider client."""
        if self.client:
            await self.client.close()

    @property
    def provider_conf(self) -> Optional[dict]:
        """Provider configuration used to build image URLs."""
        if self._provider_conf is None and self.cache is not None:
            self._provider_conf = self.cache.get_configuration()
        return self._provider_conf

    async def check_config(self) -> None:
        """Fetch the provider configuration if missing or stale."""
        if not self.lookup_enabled:
            logger.debug("Lookups disabled, not checking TMDB configuration")
            return

        conf = self.cache.get_configuration()
        max_age = self.config.tmdb.config_ttl_days * DAY_MS

        if conf and conf.get("fetch_time", 0) >= now_ms() - max_age:
            logger.debug("TMDB configuration ok")
            self._provider_conf = conf
            return

        logger.debug("TMDB configuration missing or stale, loading")
        response = await self.limiter.submit(self.client.configuration)

        conf = {
            name: response[field_def.field]
            for name, field_def in RESPONSE_FIELDS[CONFIGURATION].items()
            if field_def.field in response
        }
        conf["fetch_time"] = now_ms()
        self.cache.set_configuration(conf)
        self._provider_conf = conf

    def flush_expired(self) -> None:
        """Prune expired records from every query section."""
        if not self.lookup_enabled:
            return

        max_age = self.config.tmdb.cache_ttl_days * DAY_MS
        logger.debug("Flushing expired TMDB cache", max_age_days=self.config.tmdb.cache_ttl_days)
        for query in METHOD_TYPES:
            self.cache.prune_older_than(query, max_age)

    def prepare(self, candidates: Iterable[Candidate]) -> None:
        """Assign each candidate its query plan."""
        for candidate in candidates:
            candidate.queries = []
            candidate.results = {}

            if candidate.kind != "video":
                logger.error("Lookup of non video titles unsupported, ignoring", full=candidate.full)
                continue

            if not candidate.parsed or candidate.mediatype is None or candidate.pieces is None:
                logger.error("Title is missing media type or parsed pieces, ignoring", full=candidate.full)
                continue

            candidate.state = ResolutionState.PLAN_SELECTED
            if not self.lookup_enabled:
                continue

            candidate.queries = self.choose_queries(candidate)
            logger.debug("Built query plan", full=candidate.full, queries=candidate.queries)

    def choose_queries(self, candidate: Candidate) -> list[str]:
        """Choose the provider queries needed for a candidate, in dependency order."""
        queries = []

        # Episode and season lookups need the show id from the search
        if candidate.mediatype == "tv":
            queries.append(SEARCH_TV)
            queries.append(EPISODE_INFO)
            if "season-poster" in self.config.images:
                queries.append(SEASON_INFO)

        if candidate.mediatype == "movie":
            queries.append(SEARCH_MOVIE)

        return queries

    async def execute(self, candidate: Candidate) -> None:
        """Run a candidate's query plan and merge results into its metadata.

        A search without a satisfying match is recorded on the candidate and
        only skips the queries that depend on it. When nothing was resolved the
        metadata is built from the parsed pieces alone.

        Raises:
            ArgumentBindingFailure: A required query argument is missing
            ProviderFailure: The provider call failed
            DefaultMetadataFailure: Fallback metadata could not be built
        """
        if candidate.state is ResolutionState.INIT:
            logger.warning("Candidate has no query plan, skipping", full=candidate.full)
            return

        unresolved: set[str] = set()

        for query in candidate.queries:
            if query_dependencies(query) & unresolved:
                logger.debug("Skipping query, dependency unresolved", query=query, full=candidate.full)
                unresolved.add(query)
                continue

            candidate.state = ResolutionState.RESOLVING
            try:
                await self._run_query(query, candidate)
            except NoMatchFound as e:
                logger.warning("No match found", query=query, full=candidate.full)
                candidate.errors.append(e)
                unresolved.add(query)
            except ResolutionError as e:
                logger.error("Failed to resolve title", query=query, full=candidate.full, error=str(e))
                candidate.state = ResolutionState.FAILED
                raise

        if not candidate.queries or not candidate.meta:
            try:
                candidate.meta = self.default_meta(candidate)
            except DefaultMetadataFailure:
                candidate.state = ResolutionState.FAILED
                raise
            candidate.state = ResolutionState.DEFAULTED
            return

        candidate.state = ResolutionState.COMPLETE

    async def _run_query(self, query: str, candidate: Candidate) -> None:
        """Resolve one query from the cache or the provider.

        Raises:
            ProviderFailure: Also raised when the cache cannot be written
        """
        args = self.build_args(query, candidate)

        cached = self.lookup_cache(query, candidate)
        if cached is not None:
            self._store(query, candidate, cached)
            return

        response = await self.fetch(query, candidate, args)
        try:
            self.process_response(query, candidate, response)
        except CacheError as e:
            raise ProviderFailure(candidate, query, f"cache error: {e}") from e

    def _resolve_binding(self, binding: Binding, candidate: Candidate) -> Any:
        """Value for a binding, or None when unavailable."""
        if binding.source is Source.CONFIG:
            return getattr(self.config.tmdb, binding.field, None)

        if binding.source is Source.TITLE:
            data = candidate.pieces or {}
        else:
            data = candidate.results.get(binding.query)
            if data is None:
                return None

        if callable(binding.field):
            return binding.field(data)
        return data.get(binding.field)

    def build_args(self, query: str, candidate: Candidate) -> dict[str, Any]:
        """Build provider arguments for a query.

        Raises:
            ArgumentBindingFailure: If a required argument cannot be resolved
        """
        args = {}
        for arg, binding in QUERY_ARGS[query].items():
            value = self._resolve_binding(binding, candidate)
            if value is None:
                if binding.required:
                    logger.error("Missing required lookup attribute", query=query, arg=arg)
                    raise ArgumentBindingFailure(candidate, query, f"missing required argument '{arg}'")
                continue
            args[arg] = value
        return args

    def lookup_cache(self, query: str, candidate: Candidate) -> Optional[dict]:
        """Find a previous result for a query using its cache lookup specs in order."""
        if not self.cache_enabled or self.cache is None:
            return None

        for lookup in CACHE_LOOKUPS[query]:
            predicate = {}
            for field_name, binding in lookup.items():
                value = self._resolve_binding(binding, candidate)
                if value is None:
                    if binding.required:
                        break
                    continue
                predicate[field_name] = value
            else:
                if not predicate:
                    continue

                item = self.cache.find_one(query, predicate)
                if item is not None:
                    logger.debug("Cache hit", query=query, lookup=predicate)
                    return item
                logger.debug("Cache miss", query=query, lookup=predicate)
                continue

            logger.debug("Cache lookup not applicable, missing required field", query=query)

        return None

    async def fetch(self, query: str, candidate: Candidate, args: dict[str, Any]) -> dict:
        """Send a query to the provider through the rate limiter.

        Raises:
            ProviderFailure: On any provider, transport or limiter error
        """
        logger.debug("Sending TMDB request", query=query, args=args)
        try:
            return await self.limiter.submit(lambda: self.client.query(query, args))
        except Exception as e:
            raise ProviderFailure(candidate, query, f"TMDB request failed: {e}") from e

    def process_response(self, query: str, candidate: Candidate, response: dict) -> None:
        """Parse, cache and store a provider response."""
        method_type = METHOD_TYPES.get(query)
        if method_type == "search":
            self._parse_search(query, candidate, response)
        elif method_type == "info":
            self._parse_info(query, candidate, response)
        else:
            raise ProviderFailure(candidate, query, "unknown query type")

    def _parse_info(self, query: str, candidate: Candidate, response: dict) -> None:
        item = self.parse_one(query, response, candidate)
        if item is None:
            raise ProviderFailure(candidate, query, "failed to process information response")

        self.cache_results(query, [item])
        self._store(query, candidate, item)

    def _parse_search(self, query: str, candidate: Candidate, response: dict) -> None:
        results = response.get("results") or []
        if not results:
            candidate.results[query] = None
            raise NoMatchFound(candidate, query, f"no results for '{candidate.name}'")

        items = []
        for result in results:
            item = self.parse_one(query, result, candidate)
            # Unusable items are dropped rather than failing the search
            if item is not None:
                items.append(item)

        self.cache_results(query, items)

        match = choose_match(items, candidate.pieces or {})
        if match is None:
            candidate.results[query] = None
            raise NoMatchFound(candidate, query, f"no match among {len(items)} results")

        self._store(query, candidate, match)

    def parse_one(self, query: str, result: dict, candidate: Candidate) -> Optional[dict]:
        """Flatten one provider item into a result record.

        Returns:
            The record stamped with its fetch time, or None when a declared
            field is missing
        """
        item = {}
        for name, field_def in RESPONSE_FIELDS[query].items():
            if field_def.source is Source.PROVIDER:
                if field_def.field not in result:
                    logger.warning("Response is missing field, ignoring item", query=query, field=field_def.field)
                    return None
                value = result[field_def.field]
            else:
                prior = candidate.results.get(field_def.query)
                if not prior or field_def.field not in prior:
                    logger.error("Missing response source data", query=query, source=field_def.query, field=name)
                    return None
                value = prior[field_def.field]

            item[name] = field_def.transform(value, self.provider_conf) if field_def.transform else value

        item["fetch_time"] = now_ms()
        return item

    def cache_results(self, query: str, items: list[dict]) -> None:
        """Upsert records into the cache by provider id."""
        if self.cache is None:
            return
        for item in items:
            if item.get("id") is None:
                logger.warning("Not caching record without an id", query=query)
                continue
            self.cache.upsert(query, item["id"], item)

    def _store(self, query: str, candidate: Candidate, item: dict) -> None:
        candidate.results[query] = item
        # Info records keep their own id in results, the merged id stays the title's
        if METHOD_TYPES.get(query) == "info":
            item = {key: value for key, value in item.items() if key != "id"}
        candidate.meta.update(item)

    def default_meta(self, candidate: Candidate) -> dict[str, Any]:
        """Build metadata from parsed pieces only.

        Raises:
            DefaultMetadataFailure: If a required field is missing
        """
        logger.debug("Populating default metadata", full=candidate.full)

        fields = DEFAULT_META.get(candidate.mediatype or "")
        if fields is None:
            raise DefaultMetadataFailure(candidate, "defaults", f"unknown media type {candidate.mediatype}")

        pieces = candidate.pieces or {}
        meta = {}
        for name, field_def in fields.items():
            value = field_def.field(pieces) if callable(field_def.field) else pieces.get(field_def.field)
            if value is None:
                if field_def.required:
                    raise DefaultMetadataFailure(candidate, "defaults", f"missing required field '{name}'")
                continue
            meta[name] = field_def.transform(value) if field_def.transform else value
        return meta
