"""Exceptions raised while identifying media."""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from mediasort.models.candidate import Candidate


class MediaSortError(Exception):
    """Base exception for media-sort errors."""

    pass


class ConfigurationError(MediaSortError):
    """Raised when the runtime configuration cannot be used."""

    pass


class ResolutionError(MediaSortError):
    """A failure tied to one candidate and one processing stage.

    Attributes:
        candidate: The candidate being processed
        stage: Name of the failing stage (a query name, "parse" or "defaults")
    """

    def __init__(self, candidate: "Candidate", stage: str, message: Optional[str] = None):
        self.candidate = candidate
        self.stage = stage
        detail = message or self.__class__.__name__
        super().__init__(f"{candidate.full} [{stage}]: {detail}")


class ParseFailure(ResolutionError):
    """No grammar rule matched the candidate."""


class ArgumentBindingFailure(ResolutionError):
    """A required query argument could not be resolved."""


class ProviderFailure(ResolutionError):
    """The metadata provider returned an error or could not be reached."""


class NoMatchFound(ResolutionError):
    """A search returned results but none satisfied the matcher."""


class DefaultMetadataFailure(ResolutionError):
    """Default metadata could not be built from the parsed fields."""
