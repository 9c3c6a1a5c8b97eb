"""Command-line interface for media-sort."""

import asyncio
import json
import sys
from pathlib import Path

import click

from mediasort import __version__
from mediasort.config import load_config
from mediasort.core.pipeline import SortPipeline
from mediasort.core.scanner import FileScanner
from mediasort.errors import MediaSortError
from mediasort.metadata.grammar import TitleParser
from mediasort.metadata.resolver import MetadataResolver
from mediasort.models.candidate import ResolutionState
from mediasort.utils.logger import get_logger, setup_logging


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to configuration file (defaults to built-in defaults)",
)
@click.pass_context
def cli(ctx, config):
    """media-sort - Identify media files from their names and TMDB."""
    try:
        cfg = load_config(config)
        ctx.ensure_object(dict)
        ctx.obj["config"] = cfg

        setup_logging(cfg.logging)

    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)


def _apply_overrides(config, media_type=None, title=None, year=None, lookup=None, cache=None):
    """Return a copy of the configuration with command-line overrides applied."""
    parsing = {}
    if media_type:
        parsing["media_type"] = media_type
    if title:
        parsing["alt_title"] = title
    if year:
        parsing["alt_year"] = year

    tmdb = {}
    if lookup is not None:
        tmdb["enabled"] = lookup
    if cache is not None:
        tmdb["cache_enabled"] = cache

    return config.model_copy(
        update={
            "parsing": config.parsing.model_copy(update=parsing),
            "tmdb": config.tmdb.model_copy(update=tmdb),
        }
    )


@cli.command()
@click.argument("path", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--media-type",
    "-m",
    type=click.Choice(["auto", "tv", "movie"]),
    default=None,
    help="Restrict parsing rules to one media type",
)
@click.option("--title", "-t", default=None, help="Title to use instead of the parsed one")
@click.option("--year", "-y", default=None, help="Year to use instead of the parsed one")
@click.option("--lookup/--no-lookup", default=None, help="Enable or disable TMDB lookups")
@click.option("--cache/--no-cache", default=None, help="Enable or disable the lookup cache")
@click.option("--fail-fast", is_flag=True, default=False, help="Stop at the first failing title")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print metadata as JSON")
@click.pass_context
def identify(ctx, path, media_type, title, year, lookup, cache, fail_fast, as_json):
    """Identify video files and show their resolved names.

    Args:
        path: File or directory to identify
    """
    config = _apply_overrides(ctx.obj["config"], media_type, title, year, lookup, cache)
    logger = get_logger(__name__)

    async def _identify():
        pipeline = SortPipeline(config)
        try:
            return pipeline, await pipeline.identify(path, fail_fast=fail_fast)
        finally:
            await pipeline.close()

    try:
        pipeline, candidates = asyncio.run(_identify())
    except MediaSortError as e:
        logger.error("Identification failed", error=str(e))
        click.secho(f"✗ {e}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        output = [
            {
                "file": c.full,
                "parsed": bool(c.parsed),
                "mediatype": c.mediatype,
                "pieces": c.pieces,
                "state": c.state.value,
                "meta": c.meta,
                "errors": [str(e) for e in c.errors],
            }
            for c in candidates
        ]
        click.echo(json.dumps(output, indent=2))
    else:
        for c in candidates:
            if c.state not in (ResolutionState.COMPLETE, ResolutionState.DEFAULTED):
                reason = c.errors[-1] if c.errors else "could not parse title"
                click.secho(f"✗ {c.name}.{c.ext}: {reason}", fg="red")
                continue
            try:
                target = pipeline.target_name(c)
            except MediaSortError as e:
                click.secho(f"⊘ {c.name}.{c.ext}: {e}", fg="yellow")
                continue
            marker = "✓" if c.state is ResolutionState.COMPLETE else "⊙"
            click.secho(f"{marker} {c.name}.{c.ext} -> {target}", fg="green")

    failed = [c for c in candidates if c.state is ResolutionState.FAILED]
    if failed:
        sys.exit(1)


@cli.command()
@click.argument("path", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--media-type",
    "-m",
    type=click.Choice(["auto", "tv", "movie"]),
    default=None,
    help="Restrict parsing rules to one media type",
)
@click.pass_context
def parse(ctx, path, media_type):
    """Show what the filename grammar extracts, without lookups.

    Args:
        path: File or directory to parse
    """
    config = _apply_overrides(ctx.obj["config"], media_type)

    candidates = FileScanner().candidates(path)
    TitleParser(config.parsing).parse(candidates)

    for c in candidates:
        if c.parsed:
            click.echo(f"{c.name}.{c.ext}: {c.mediatype} {json.dumps(c.pieces, sort_keys=True)}")
        else:
            click.secho(f"{c.name}.{c.ext}: unparsed", fg="yellow")


@cli.command("flush-cache")
@click.pass_context
def flush_cache(ctx):
    """Remove expired records from the lookup cache."""
    config = ctx.obj["config"]

    try:
        resolver = MetadataResolver.from_config(config)
        try:
            resolver.flush_expired()
        finally:
            asyncio.run(resolver.close())
    except MediaSortError as e:
        click.secho(f"✗ {e}", fg="red", err=True)
        sys.exit(1)

    click.echo("Cache flushed")


@cli.command()
def version():
    """Show version information."""
    click.echo(f"media-sort v{__version__}")


def main():
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
