"""Configuration management for media-sort."""

import os
import re
from pathlib import Path
from typing import Any, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

# Artwork kinds that can be requested from the metadata provider
IMAGE_TYPES = (
    "show-backdrop",
    "show-poster",
    "season-poster",
    "episode-still",
    "movie-backdrop",
    "movie-poster",
)


class ParsingConfig(BaseModel):
    """Filename parsing configuration."""

    media_type: Literal["auto", "tv", "movie"] = Field(
        default="auto", description="Media type used to select grammar rules"
    )
    alt_title: Optional[str] = Field(
        default=None, description="Specific title in case parsing picks the wrong one"
    )
    alt_year: Optional[str] = Field(
        default=None, description="Specific year in case parsing picks the wrong one"
    )

    @field_validator("alt_title", "alt_year", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        """Treat empty strings as unset."""
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class RateLimitConfig(BaseModel):
    """Remote call rate limiting."""

    rate: int = Field(default=2, ge=1, description="Calls allowed per interval")
    interval_seconds: float = Field(default=1.0, gt=0, description="Interval length")
    concurrency: int = Field(default=2, ge=1, description="Maximum in-flight calls")


class TMDBConfig(BaseModel):
    """TMDB API configuration."""

    enabled: bool = Field(default=True, description="Enable TMDB lookups")
    api_key: Optional[str] = Field(default=None, description="TMDB API key")
    include_adult: bool = Field(default=False, description="Include adult content in searches")
    cache_enabled: bool = Field(default=True, description="Use the lookup cache")
    cache_path: str = Field(default="data/cache.json", description="Cache file path")
    cache_ttl_days: int = Field(default=30, description="Cache record age limit in days")
    config_ttl_days: int = Field(default=7, description="Provider configuration age limit in days")
    timeout_seconds: float = Field(default=10.0, description="HTTP timeout")
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str], info) -> Optional[str]:
        """Validate API key is provided when TMDB is enabled."""
        enabled = info.data.get("enabled", True)
        if enabled and not v and not os.environ.get("MOVIEDB_API_KEY"):
            raise ValueError("TMDB API key required when TMDB is enabled")
        return v

    def resolved_api_key(self) -> Optional[str]:
        """Return the API key, preferring the MOVIEDB_API_KEY environment variable."""
        return os.environ.get("MOVIEDB_API_KEY") or self.api_key


class NamingConfig(BaseModel):
    """Destination name templates."""

    tv_format: str = Field(
        default="#name# s#season_number#e#episode_number# - #episode_name#",
        description="TV episode name template",
    )
    movie_format: str = Field(default="#name# (#year#)", description="Movie name template")
    pad_numbers: bool = Field(default=True, description="Zero pad season and episode numbers")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    format: str = Field(default="text", description="Log format (json or text)")
    level: str = Field(default="info", description="Log level")
    output: Optional[str] = Field(default=None, description="Optional log file path")

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        if v not in ("json", "text"):
            raise ValueError("Log format must be 'json' or 'text'")
        return v

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        if v.lower() not in ("debug", "info", "warning", "error", "critical"):
            raise ValueError("Invalid log level")
        return v.lower()


class Config(BaseModel):
    """Main configuration model."""

    parsing: ParsingConfig = Field(default_factory=ParsingConfig)
    tmdb: TMDBConfig = Field(default_factory=TMDBConfig, description="TMDB configuration")
    images: List[str] = Field(default_factory=list, description="Artwork kinds to look up")
    naming: NamingConfig = Field(default_factory=NamingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig, description="Logging configuration")

    @field_validator("images")
    @classmethod
    def validate_images(cls, v: List[str]) -> List[str]:
        """Validate requested artwork kinds."""
        unknown = [kind for kind in v if kind not in IMAGE_TYPES]
        if unknown:
            raise ValueError(f"Unknown image types: {', '.join(unknown)}")
        return v

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path) as f:
            raw_config = yaml.safe_load(f)

        if raw_config is None:
            raw_config = {}

        raw_config = cls._substitute_env_vars(raw_config)

        return cls(**raw_config)

    @staticmethod
    def _substitute_env_vars(obj: Any) -> Any:
        """Recursively replace ${VAR_NAME} with os.environ['VAR_NAME']."""
        if isinstance(obj, dict):
            return {key: Config._substitute_env_vars(value) for key, value in obj.items()}
        elif isinstance(obj, list):
            return [Config._substitute_env_vars(item) for item in obj]
        elif isinstance(obj, str):
            pattern = r"\$\{([^}]+)\}"

            def replace_var(match):
                var_name = match.group(1)
                value = os.environ.get(var_name)
                if value is None:
                    raise ValueError(
                        f"Environment variable '{var_name}' not found "
                        f"(referenced in configuration)"
                    )
                return value

            return re.sub(pattern, replace_var, obj)
        else:
            return obj

    @classmethod
    def from_defaults(cls) -> "Config":
        """Create configuration with default values."""
        return cls()


def load_config(path: Optional[str | Path] = None) -> Config:
    """Load configuration from file or use defaults.

    Args:
        path: Optional path to configuration file. If None, uses defaults.

    Returns:
        Config instance
    """
    if path is None:
        return Config.from_defaults()

    return Config.from_yaml(path)
