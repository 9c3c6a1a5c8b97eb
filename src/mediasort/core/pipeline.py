"""Identification pipeline orchestrator."""

import time
from pathlib import Path
from typing import List, Optional

from mediasort.config import Config
from mediasort.core.scanner import FileScanner
from mediasort.errors import MediaSortError, ResolutionError
from mediasort.metadata.grammar import TitleParser
from mediasort.metadata.resolver import MetadataResolver
from mediasort.models.candidate import Candidate, ResolutionState
from mediasort.naming import render_name
from mediasort.utils.logger import get_logger

logger = get_logger(__name__)


class SortPipeline:
    """Discover, parse and resolve media files."""

    def __init__(self, config: Config, resolver: Optional[MetadataResolver] = None):
        """Initialize the pipeline with configuration.

        Args:
            config: Application configuration
            resolver: Metadata resolver (built from configuration when omitted)
        """
        self.config = config
        self.scanner = FileScanner()
        self.parser = TitleParser(config.parsing)
        self.resolver = resolver or MetadataResolver.from_config(config)

    async def identify(self, path: Path, fail_fast: bool = False) -> List[Candidate]:
        """Identify every video file under a path.

        Pipeline steps:
        1. Provider configuration check and cache pruning
        2. Discovery
        3. Filename parsing
        4. Query planning
        5. Resolution, one candidate at a time

        A candidate that fails resolution keeps its error in ``errors`` and
        the run continues, unless ``fail_fast`` is set.

        Args:
            path: File or directory to identify
            fail_fast: Re-raise the first resolution failure

        Returns:
            All discovered candidates
        """
        start_time = time.time()

        await self.resolver.check_config()
        self.resolver.flush_expired()

        candidates = self.scanner.candidates(path)
        logger.info("Found candidates", path=str(path), count=len(candidates))

        self.parser.parse(candidates)
        self.resolver.prepare(candidates)

        for candidate in candidates:
            if not candidate.parsed:
                logger.warning("Could not parse title, skipping", file=candidate.full)
                continue

            try:
                await self.resolver.execute(candidate)
            except ResolutionError as e:
                logger.error(
                    "Error processing title",
                    file=candidate.full,
                    stage=e.stage,
                    error=str(e),
                )
                if e not in candidate.errors:
                    candidate.errors.append(e)
                if fail_fast:
                    raise

        resolved = sum(
            1
            for c in candidates
            if c.state in (ResolutionState.COMPLETE, ResolutionState.DEFAULTED)
        )
        logger.info(
            "Identification complete",
            path=str(path),
            total=len(candidates),
            resolved=resolved,
            duration_seconds=round(time.time() - start_time, 2),
        )
        return candidates

    def target_name(self, candidate: Candidate) -> str:
        """Render the destination name for a resolved candidate.

        Raises:
            MediaSortError: If the media type is unknown or metadata is missing
        """
        naming = self.config.naming
        if candidate.mediatype == "tv":
            template = naming.tv_format
        elif candidate.mediatype == "movie":
            template = naming.movie_format
        else:
            raise MediaSortError(f"Unknown media type: {candidate.mediatype}")

        return f"{render_name(candidate.meta, template, naming.pad_numbers)}.{candidate.ext}"

    async def close(self) -> None:
        """Release the resolver's resources."""
        await self.resolver.close()
