"""
Command-line interface for spot-mirror.

This module implements the CLI using Click. rich-click is used for the
help output colors.

Commands:
    spot-mirror sync                Fetch the user's Spotify playlists into
                                    playlists.json (opens a browser for login)
    spot-mirror list                Show the playlists in the catalog
    spot-mirror run <playlist>      Download every track of one playlist
    spot-mirror serve               Start the HTTP server

Options:
    --config <path>                 Config file (default: ./config.yaml)
    --verbose                       Show debug messages on the console
    --version                       Show the version and exit

Usage:
    # First time: build the catalog from your Spotify library
    spot-mirror sync

    # Download a playlist with a progress bar
    spot-mirror run "Road Trip"

    # Let a browser front end trigger runs and follow progress
    spot-mirror serve

Exit codes:
    0    Success
    1    Configuration error (or an unexpected crash)
    2    Catalog error (missing/corrupt playlists.json, unknown playlist)
    3    Spotify error (authentication or catalog retrieval)
    4    Any other spot-mirror error
    130  Interrupted by user
"""

import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Callable

import rich_click as click

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100

from spot_mirror import __version__
from spot_mirror.core import (
    CatalogError,
    CatalogStore,
    Config,
    ConfigError,
    PlaylistNotFound,
    PlaylistProgressBar,
    ProgressBroadcaster,
    SpotifyError,
    SpotMirrorError,
    TokenExchangeFailed,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from spot_mirror.download import PlaylistPipeline
from spot_mirror.server import run_server
from spot_mirror.spotify import CatalogFetcher, SpotifyClient

logger = get_logger(__name__)


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="<path>",
    help="Path to config.yaml (default: ./config.yaml)"
)
@click.option(
    "--verbose",
    is_flag=True,
    default=False,
    help="Show debug messages on the console"
)
@click.version_option(__version__, prog_name="spot-mirror")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """
    [bold]spot-mirror[/bold] - Mirror Spotify playlists into a local music library.

    Tracks are looked up on YouTube Music, downloaded as audio files and
    stored next to their album art, ready to be served to a web player.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["console_level"] = logging.DEBUG if verbose else logging.INFO


@cli.command()
@click.option(
    "--no-browser",
    is_flag=True,
    default=False,
    help="Print the login URL instead of opening a browser"
)
@click.pass_context
def sync(ctx: click.Context, no_browser: bool) -> None:
    """Fetch your Spotify playlists into the catalog file."""

    def command(config: Config) -> None:
        if config.spotify is None:
            raise ConfigError(
                "Spotify credentials are required for sync "
                "(set them in config.yaml or SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET)"
            )

        client = SpotifyClient.with_user_auth(config.spotify, open_browser=not no_browser)
        fetcher = CatalogFetcher(client, CatalogStore(config.output.catalog_file))
        playlists = fetcher.sync()

        track_count = sum(p.track_count for p in playlists)
        click.echo(f"Synced {len(playlists)} playlists ({track_count} tracks) to {config.output.catalog_file}")

    _execute(ctx, command)


@cli.command(name="list")
@click.pass_context
def list_playlists(ctx: click.Context) -> None:
    """Show the playlists in the catalog."""

    def command(config: Config) -> None:
        playlists = CatalogStore(config.output.catalog_file).load()
        if not playlists:
            click.echo("The catalog is empty. Run 'spot-mirror sync' first.")
            return

        width = max(len(p.name) for p in playlists)
        for playlist in playlists:
            click.echo(f"{playlist.name:<{width}}  {playlist.track_count:>5} tracks")

    _execute(ctx, command)


@cli.command()
@click.argument("playlist")
@click.pass_context
def run(ctx: click.Context, playlist: str) -> None:
    """Download every track of PLAYLIST (exact, case-sensitive name)."""

    def command(config: Config) -> None:
        broadcaster = ProgressBroadcaster()
        pipeline = PlaylistPipeline.from_config(config, broadcaster)

        with PlaylistProgressBar(playlist) as bar, broadcaster.subscribed(bar):
            summary = pipeline.run(playlist)

        _print_summary(summary.completed, summary.failed, summary.total)

        if summary.failed:
            click.echo(
                f"Failed tracks are listed in {config.output.directory / 'logs'}",
                err=True
            )

    _execute(ctx, command)


@cli.command()
@click.option("--host", type=str, default=None, help="Interface to bind (overrides config)")
@click.option("--port", type=int, default=None, help="Port to listen on (overrides config)")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Start the HTTP server (run trigger, progress stream, static library)."""
    def command(config: Config) -> None:
        server = replace(
            config.server,
            host=host or config.server.host,
            port=port or config.server.port
        )
        run_server(replace(config, server=server))

    _execute(ctx, command)


def _execute(ctx: click.Context, command: Callable[[Config], None]) -> None:
    """
    Load configuration, set up logging and run a command.

    Errors are mapped to exit codes (see module docstring). Logging is
    always shut down so the failure report is flushed.

    Raises:
        SystemExit: On fatal errors (with appropriate exit code).
    """
    try:
        config = load_config(ctx.obj["config_path"])

        setup_logging(config.output.directory, console_level=ctx.obj["console_level"])
        logger.info(f"spot-mirror {__version__} starting ({ctx.info_name})")

        command(config)

        logger.info("spot-mirror completed successfully")

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except (CatalogError, PlaylistNotFound) as e:
        click.echo(f"Catalog error: {e.message}", err=True)
        logger.error(f"Catalog error: {e.message}")
        sys.exit(2)

    except SpotifyError as e:
        click.echo(f"Spotify error: {e.message}", err=True)
        if e.is_rate_limit:
            click.echo("Spotify rate limit reached, try again later", err=True)
        elif isinstance(e, TokenExchangeFailed):
            click.echo("Check your client_id and client_secret in config.yaml", err=True)
        logger.error(f"Spotify error: {e.message}", exc_info=True)
        sys.exit(3)

    except SpotMirrorError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        shutdown_logging()


def _print_summary(completed: int, failed: int, total: int) -> None:
    logger.info("=" * 40)
    logger.info(f"Tracks:      {total}")
    logger.info(f"Downloaded:  {completed}")
    logger.info(f"Failed:      {failed}")
    logger.info("=" * 40)


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `spot-mirror` from the command line.
    It invokes the Click CLI group.
    """
    cli(obj={})


if __name__ == "__main__":
    main()
