"""Metadata resolution components for media-sort.

This package contains the filename grammar, the TMDB client, the result
cache and the resolver that ties them together.
"""

from mediasort.metadata.grammar import TitleParser
from mediasort.metadata.resolver import MetadataResolver

__all__ = ["MetadataResolver", "TitleParser"]
