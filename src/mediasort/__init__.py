"""media-sort: identify media files and resolve them to TMDB metadata."""

__version__ = "0.1.0"
