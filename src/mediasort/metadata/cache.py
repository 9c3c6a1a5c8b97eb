"""JSON file cache for metadata provider results."""

import json
import time
from pathlib import Path
from typing import Any, Iterable, Optional

import structlog

from mediasort.errors import MediaSortError

logger = structlog.get_logger(__name__)

DAY_MS = 24 * 60 * 60 * 1000

CONFIGURATION_SECTION = "configuration"


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


class CacheError(MediaSortError):
    """The cache file could not be read or written."""

    pass


class CacheStore:
    """Sectioned record store persisted as one JSON document.

    Each query type gets a section holding a list of flat records, plus a
    singleton ``configuration`` section for the provider configuration.
    Records carry a provider ``id`` and a ``fetch_time`` in epoch
    milliseconds. The store assumes a single writer.
    """

    def __init__(self, path: Optional[Path], sections: Iterable[str]):
        """Initialize the store.

        Args:
            path: JSON file path, or None to keep the store in memory only
            sections: Record sections to create
        """
        self.path = Path(path) if path is not None else None
        self.sections = tuple(sections)
        self.data: dict[str, Any] = {}
        self.setup()

    def setup(self) -> None:
        """Load the file if present and add missing sections."""
        if self.path is not None and self.path.exists():
            try:
                with open(self.path, encoding="utf-8") as f:
                    self.data = json.load(f) or {}
            except (OSError, ValueError) as e:
                raise CacheError(f"Cannot read cache {self.path}: {e}") from e
            if not isinstance(self.data, dict):
                raise CacheError(f"Cannot read cache {self.path}: not a JSON object")
            logger.debug("Loaded cache", path=str(self.path))

        self.data.setdefault(CONFIGURATION_SECTION, None)
        for section in self.sections:
            self.data.setdefault(section, [])

        logger.info(
            "Initialized metadata cache",
            path=str(self.path) if self.path else None,
            records=sum(len(self.records(s)) for s in self.sections),
        )

    def save(self) -> None:
        """Write the store to disk.

        Raises:
            CacheError: If the file cannot be written
        """
        if self.path is None:
            return
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(self.data, f, indent=2)
            tmp_path.replace(self.path)
        except OSError as e:
            raise CacheError(f"Cannot write cache {self.path}: {e}") from e

    def records(self, section: str) -> list[dict]:
        """All records in a section."""
        return self.data.get(section) or []

    def find_one(self, section: str, predicate: dict[str, Any]) -> Optional[dict]:
        """Find the first record whose fields equal every predicate value.

        Args:
            section: Section name
            predicate: Field values the record must have

        Returns:
            Matching record or None
        """
        for record in self.records(section):
            if all(record.get(key) == value for key, value in predicate.items()):
                return record
        return None

    def upsert(self, section: str, identifier: Any, record: dict) -> None:
        """Update the record with the given id in place, or append it.

        Args:
            section: Section name
            identifier: Provider id of the record
            record: Record fields
        """
        records = self.data.setdefault(section, [])
        for existing in records:
            if existing.get("id") == identifier:
                logger.debug("Updating cache item", section=section, id=identifier)
                existing.update(record)
                break
        else:
            logger.debug("Creating cache item", section=section, id=identifier)
            records.append(dict(record))
        self.save()

    def prune_older_than(self, section: str, max_age_ms: int, now: Optional[int] = None) -> int:
        """Drop records fetched at or before ``now - max_age_ms``.

        Records without a fetch time are dropped too.

        Args:
            section: Section name
            max_age_ms: Maximum record age in milliseconds
            now: Current time in epoch milliseconds (defaults to the clock)

        Returns:
            Number of records removed
        """
        cutoff = (now if now is not None else now_ms()) - max_age_ms
        records = self.records(section)
        kept = [r for r in records if r.get("fetch_time") and r["fetch_time"] > cutoff]
        removed = len(records) - len(kept)

        if not removed:
            return 0

        self.data[section] = kept
        self.save()
        logger.info("Pruned expired cache records", section=section, count=removed)
        return removed

    def get_configuration(self) -> Optional[dict]:
        """Cached provider configuration, if any."""
        return self.data.get(CONFIGURATION_SECTION)

    def set_configuration(self, record: dict) -> None:
        """Replace the cached provider configuration."""
        self.data[CONFIGURATION_SECTION] = record
        self.save()
