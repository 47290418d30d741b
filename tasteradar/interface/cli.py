"""Click CLI for tasteradar."""

import asyncio
import functools
import random

import click
from rich.console import Console
from rich.progress import Progress
from rich.table import Table

from tasteradar.data.db import get_session, init_db, load_config, load_env
from tasteradar.data.fingerprint import Fingerprint
from tasteradar.errors import TasteRadarError

console = Console()


def handle_errors(func):
    """Print TasteRadarError messages instead of a traceback and exit 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except TasteRadarError as e:
            console.print(f"[red]{e}[/red]")
            raise SystemExit(1)

    return wrapper


def _print_genres(fingerprint: Fingerprint, limit: int):
    table = Table(title=f"Top Genres for {fingerprint.user.display_name or fingerprint.user.id}")
    table.add_column("#", justify="right")
    table.add_column("Genre")
    table.add_column("Score", justify="right")

    for i, genre in enumerate(fingerprint.top_genres(limit), 1):
        table.add_row(str(i), genre.name.replace("_", " "), f"{genre.score:.3f}")
    console.print(table)


@click.group()
def cli():
    """tasteradar: genre-weighted music discovery from your Spotify taste."""
    pass


@cli.command()
def init():
    """Initialize the database (create tables)."""
    init_db()
    console.print("[green]Database initialized successfully.[/green]")


@cli.command()
@click.option("--force", is_flag=True, help="Rebuild even if a fingerprint is stored.")
@handle_errors
def fingerprint(force):
    """Build your taste fingerprint from Spotify and store it."""
    from tasteradar.data.rate_limiter import SPOTIFY_MIN_DELAY, RateLimiter
    from tasteradar.data.spotify_client import SpotifyLibrary, get_spotify_client
    from tasteradar.data.store import load_fingerprint, save_fingerprint
    from tasteradar.features.progress import ProgressTracker
    from tasteradar.models.taste import FingerprintBuilder, FingerprintSettings

    load_env()
    config = load_config()

    if not force:
        with get_session() as session:
            existing = load_fingerprint(session)
        if existing is not None:
            console.print(
                f"Using stored fingerprint from {existing.generated_at:%Y-%m-%d %H:%M} "
                "(pass [bold]--force[/bold] to rebuild)"
            )
            _print_genres(existing, 10)
            return

    sp = get_spotify_client()
    delay = config.get("rate_limits", {}).get("spotify", SPOTIFY_MIN_DELAY)
    library = SpotifyLibrary(sp, RateLimiter(delay, name="spotify"))

    with Progress() as progress:
        task = progress.add_task("Starting…", total=100)
        tracker = ProgressTracker(
            lambda update: progress.update(task, completed=update.percent, description=update.message)
        )
        builder = FingerprintBuilder(library, FingerprintSettings.from_config(config), tracker)
        fp = asyncio.run(builder.build())

    with get_session() as session:
        save_fingerprint(session, fp)

    console.print("[green]Fingerprint saved.[/green]")
    _print_genres(fp, 10)


@cli.command()
@click.option("--limit", default=20, help="Number of genres to show.")
@handle_errors
def genres(limit):
    """Show the top genres of the stored fingerprint."""
    from tasteradar.data.store import load_fingerprint
    from tasteradar.errors import MissingFingerprintError

    with get_session() as session:
        fp = load_fingerprint(session)
    if fp is None:
        raise MissingFingerprintError("No fingerprint found. Run `tasteradar fingerprint` first.")
    _print_genres(fp, limit)


async def _recommend(fp, dedupe, settings, config, rng):
    from tasteradar.data.musicbrainz_client import get_musicbrainz_catalog
    from tasteradar.models.discovery import generate_recommendations

    catalog = get_musicbrainz_catalog(config)
    try:
        return await generate_recommendations(fp, catalog, dedupe=dedupe, settings=settings, rng=rng)
    finally:
        await catalog.aclose()


@cli.command()
@click.option("--seed", type=int, default=None, help="Seed for genre sampling.")
@handle_errors
def recommend(seed):
    """Find new recordings from MusicBrainz weighted by your genres."""
    from tasteradar.data.store import load_dedupe_cache, load_fingerprint, save_dedupe_cache
    from tasteradar.models.discovery import RecommendationSettings

    config = load_config()
    settings = RecommendationSettings.from_config(config)

    with get_session() as session:
        fp = load_fingerprint(session)
        dedupe = load_dedupe_cache(session)

    console.print("[bold]Discovering from MusicBrainz...[/bold]")
    rng = random.Random(seed) if seed is not None else None
    recs = asyncio.run(_recommend(fp, dedupe, settings, config, rng))

    with get_session() as session:
        save_dedupe_cache(session, displayed=[r.mrid for r in recs])

    if not recs:
        console.print("[yellow]No new recordings found for your genres.[/yellow]")
        return

    table = Table(title=f"Recommendations ({len(recs)})")
    table.add_column("#", justify="right")
    table.add_column("Song")
    table.add_column("Artist")
    table.add_column("Genre")
    table.add_column("ISRC / MBID")

    for i, rec in enumerate(recs, 1):
        table.add_row(
            str(i),
            rec.title[:40],
            rec.artist[:25],
            rec.genre.replace("_", " "),
            rec.isrc or rec.catalog_id or "",
        )
    console.print(table)


@cli.command()
@click.argument("artist")
@click.argument("title")
def skip(artist, title):
    """Mark a recording as having no playable video so it is never suggested."""
    from tasteradar.data.codec import build_pair_key
    from tasteradar.data.store import save_dedupe_cache

    mrid = build_pair_key(artist, title)
    with get_session() as session:
        added = save_dedupe_cache(session, no_video=[mrid])
    if added:
        console.print(f"Marked [bold]{mrid}[/bold] as no-video")
    else:
        console.print(f"[yellow]{mrid} was already marked.[/yellow]")


@cli.command()
def seen():
    """Show dedupe cache statistics."""
    from tasteradar.data.store import load_dedupe_cache

    with get_session() as session:
        cache = load_dedupe_cache(session)

    table = Table(title="tasteradar Dedupe Cache")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Displayed", str(len(cache.displayed)))
    table.add_row("No video", str(len(cache.no_video)))
    table.add_row("Excluded total", str(len(cache.excluded)))
    console.print(table)


if __name__ == "__main__":
    cli()
