"""Candidate media file data models."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Optional


class ResolutionState(str, Enum):
    """Where a candidate is in metadata resolution."""

    INIT = "init"
    PLAN_SELECTED = "plan_selected"
    RESOLVING = "resolving"
    COMPLETE = "complete"
    DEFAULTED = "defaulted"
    FAILED = "failed"


@dataclass
class Candidate:
    """A discovered media file under metadata resolution."""

    full: str  # Absolute path
    dir: str  # Containing directory
    name: str  # Base name without extension
    ext: str  # Extension without the dot
    kind: str = "video"
    parsed: Optional[bool] = None
    mediatype: Optional[Literal["tv", "movie"]] = None
    pieces: Optional[dict[str, Any]] = None
    queries: list[str] = field(default_factory=list)
    results: dict[str, Optional[dict[str, Any]]] = field(default_factory=dict)
    meta: dict[str, Any] = field(default_factory=dict)
    state: ResolutionState = ResolutionState.INIT
    errors: list[Exception] = field(default_factory=list)

    @classmethod
    def from_path(cls, path: Path | str, kind: str = "video") -> "Candidate":
        """Build a candidate from a file path.

        Args:
            path: Path to the media file
            kind: Media kind, only "video" is resolved

        Returns:
            Candidate with path attributes populated
        """
        path = Path(path).absolute()
        return cls(
            full=path.as_posix(),
            dir=path.parent.as_posix(),
            name=path.stem,
            ext=path.suffix.lstrip("."),
            kind=kind,
        )

    def __str__(self) -> str:
        """Human-readable representation."""
        if self.parsed and self.mediatype:
            return f"{self.name}.{self.ext} ({self.mediatype}, {self.state.value})"
        return f"{self.name}.{self.ext} (unparsed)"
