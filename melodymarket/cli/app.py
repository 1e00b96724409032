"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
from collections.abc import Coroutine
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, TextColumn

from melodymarket import __version__
from melodymarket.exceptions import CatalogError, MelodyMarketError
from melodymarket.models.catalog import User
from melodymarket.models.config import MarketConfig
from melodymarket.models.drafts import AlbumDraft
from melodymarket.playback import HttpSoundLoader, PlaybackSession, PlaybackState
from melodymarket.storage import CatalogStore, ConfigManager, JsonFileBackend
from melodymarket.utils.formatting import format_clock, format_price
from melodymarket.utils.structured_logger import create_structured_logger

from .formatters import (
    format_error_with_suggestions,
    print_album_detail,
    print_albums_table,
    print_config,
    print_purchases_table,
    print_user_panel,
)

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("melodymarket")

app = typer.Typer(
    name="melodymarket",
    help=(
        "Browse, buy and preview music from a local MelodyMarket catalog. Use"
        " 'melodymarket <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

DEMO_USER_NAME = "Music Lover"
DEMO_USER_EMAIL = "user@melodymarket.com"


def get_config_dir() -> Path:
    if home := os.getenv("MELODYMARKET_HOME"):
        return Path(home).expanduser()
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "melodymarket"


def get_config_file() -> Path:
    return get_config_dir() / "config.ini"


def _load_config() -> MarketConfig:
    return ConfigManager(get_config_file()).load_config()


def _open_store(config: MarketConfig) -> CatalogStore:
    _, catalog_logger, _ = create_structured_logger(
        log_dir=Path(config.config_path) / "logs", enable_json=config.json_logs
    )
    return CatalogStore(
        JsonFileBackend(Path(config.data_dir)),
        namespace=config.namespace,
        logger=catalog_logger,
    )


async def _ready_store(config: MarketConfig) -> CatalogStore:
    """Opens the store and seeds the catalog on first launch."""
    store = _open_store(config)
    await store.initialize()
    return store


async def _ensure_user(store: CatalogStore) -> User:
    """Returns the current user, creating the demo account on first use."""
    user = await store.get_current_user()
    if user is None:
        user = await store.set_current_user(DEMO_USER_NAME, DEMO_USER_EMAIL)
        console.print(
            f"[dim]Created demo account '{DEMO_USER_NAME}'. "
            "Use 'melodymarket signup' for your own.[/dim]"
        )
    return user


def _run(coro: Coroutine[Any, Any, Any]) -> Any:
    """Runs a command coroutine, turning application errors into exit code 1."""
    try:
        return asyncio.run(coro)
    except MelodyMarketError as e:
        console.print(format_error_with_suggestions(e))
        log.debug("Full traceback:", exc_info=True)
        raise typer.Exit(code=1) from e


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-v for events, -vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
    reset: bool = typer.Option(
        False, "--reset", help="Erase all stored catalog data and exit."
    ),
):
    """MelodyMarket CLI"""
    if version:
        console.print(f"[bold]melodymarket[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("melodymarket").setLevel(log_level)
    logging.getLogger("melodymarket.events").setLevel(
        "WARNING" if verbose == 0 else log_level
    )

    if show_config:
        config_file = get_config_file()
        config_data = ConfigManager(config_file).get_config_as_dict()
        print_config(config_file, config_data)
        raise typer.Exit()

    if reset:
        if not typer.confirm(
            "Erase your account, purchases and the catalog? This cannot be undone."
        ):
            raise typer.Abort()

        async def _reset():
            store = _open_store(_load_config())
            return await store.reset()

        removed = _run(_reset())
        console.print(f"[green]✓ Removed {removed} stored entries.[/green]")
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    data_dir: Path | None = typer.Option(
        None, "--data-dir", help="Where catalog data is stored."
    ),
    namespace: str | None = typer.Option(
        None, "--namespace", help="Prefix for every stored key."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing config file."
    ),
):
    """Write the configuration file and seed the sample catalog."""
    config_file = get_config_file()
    if (
        config_file.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings: dict[str, Any] = {}
    if data_dir is not None:
        settings["data_dir"] = str(data_dir.expanduser().resolve())
    if namespace is not None:
        settings["namespace"] = namespace

    async def _init_async():
        manager = ConfigManager(config_file)
        # Validate before anything is written.
        manager.load_config(settings)
        manager.save_new_config(settings)
        config = manager.load_config()
        store = await _ready_store(config)
        return config, len(await store.get_albums())

    config, album_count = _run(_init_async())
    console.print(f"[bold green]✓ Configuration saved to '{config_file}'[/bold green]")
    console.print(f"[green]✓ Catalog ready with {album_count} albums.[/green]")
    console.print(f"[dim]Data directory: {config.data_dir}[/dim]")


@app.command(name="albums")
def albums_command(
    genre: str = typer.Option(
        "All", "--genre", "-g", help="Only show albums of this genre."
    ),
):
    """List the albums in the catalog."""

    async def _albums():
        store = await _ready_store(_load_config())
        albums = await store.get_albums_by_genre(genre)
        user = await store.get_current_user()
        return albums, user, await store.get_genres()

    albums, user, genres = _run(_albums())
    print_albums_table(albums, user, title=f"Catalog ({genre})")
    console.print(f"[dim]Genres: {', '.join(['All', *genres])}[/dim]")


@app.command(name="album")
def album_command(album_id: str = typer.Argument(..., help="Album ID.")):
    """Show an album and its tracks."""

    async def _album():
        store = await _ready_store(_load_config())
        album = await store.get_album(album_id)
        if album is None:
            raise CatalogError(f"Album '{album_id}' does not exist.")
        return album, await store.has_user_purchased_album(album_id)

    album, owned = _run(_album())
    print_album_detail(album, owned=owned)


@app.command()
def signup(
    name: str = typer.Argument(..., help="Display name."),
    email: str = typer.Argument(..., help="Email address."),
    artist: bool = typer.Option(False, "--artist", help="Start in artist mode."),
    sample: bool = typer.Option(
        True,
        "--sample/--no-sample",
        help="Give the new account the demo purchases.",
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Replace an existing account without asking."
    ),
):
    """Create the local account, replacing any existing one."""

    async def _signup():
        store = await _ready_store(_load_config())
        existing = await store.get_current_user()
        if (
            existing is not None
            and not force
            and not typer.confirm(f"Replace the account of '{existing.name}'?")
        ):
            raise typer.Abort()
        return await store.set_current_user(
            name, email, is_artist=artist, with_sample_data=sample
        )

    user = _run(_signup())
    console.print(f"[green]✓ Welcome, {user.name}![/green]")


@app.command()
def profile():
    """Show the current account."""

    async def _profile():
        store = await _ready_store(_load_config())
        user = await _ensure_user(store)
        purchased = await store.get_user_purchased_albums()
        uploads = await store.get_artist_albums(user.id)
        return user, len(purchased), len(uploads)

    user, purchased_count, uploaded_count = _run(_profile())
    print_user_panel(user, purchased_count, uploaded_count)


@app.command(name="artist-mode")
def artist_mode():
    """Toggle artist mode for the current account."""

    async def _toggle():
        store = await _ready_store(_load_config())
        await _ensure_user(store)
        return await store.toggle_artist_mode()

    user = _run(_toggle())
    if user.is_artist:
        console.print("[green]✓ Artist mode enabled! You can now upload music.[/green]")
    else:
        console.print("[yellow]Artist mode disabled.[/yellow]")


@app.command()
def buy(
    album_id: str = typer.Argument(..., help="Album ID."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation."),
):
    """Purchase an album."""

    async def _buy():
        store = await _ready_store(_load_config())
        await _ensure_user(store)
        album = await store.get_album(album_id)
        if album is None:
            raise CatalogError(f"Album '{album_id}' does not exist.")
        if await store.has_user_purchased_album(album_id):
            console.print(f"[yellow]⚠️  You already own '{album.title}'.[/yellow]")
        if not yes and not typer.confirm(
            f"Purchase \"{album.title}\" by {album.artist_name} for "
            f"{format_price(album.price)}?"
        ):
            raise typer.Abort()
        return album, await store.purchase_album(album_id)

    album, purchase = _run(_buy())
    console.print(
        f"[green]✓ Successfully purchased \"{album.title}\" "
        f"(${purchase.price:.2f}).[/green]"
    )


@app.command()
def library(
    downloaded: bool = typer.Option(
        False, "--downloaded", "-d", help="Only show downloaded albums."
    ),
):
    """Show the albums you own."""

    async def _library():
        store = await _ready_store(_load_config())
        user = await _ensure_user(store)
        if downloaded:
            albums = await store.get_user_downloaded_albums()
        else:
            albums = await store.get_user_purchased_albums()
        return albums, user

    albums, user = _run(_library())
    if not albums:
        if downloaded:
            console.print(
                "[dim]No downloads yet. Download purchased albums to listen offline."
                "[/dim]"
            )
        else:
            console.print("[dim]No music yet. Buy albums with 'melodymarket buy'.[/dim]")
        return
    title = "Downloaded" if downloaded else "Your Library"
    print_albums_table(albums, user, title=title)


@app.command()
def download(album_id: str = typer.Argument(..., help="Album ID.")):
    """Mark a purchased album as downloaded for offline listening."""

    async def _download():
        store = await _ready_store(_load_config())
        await _ensure_user(store)
        album = await store.get_album(album_id)
        if album is None:
            raise CatalogError(f"Album '{album_id}' does not exist.")
        if not await store.has_user_purchased_album(album_id):
            raise CatalogError(f"Buy '{album.title}' before downloading it.")
        await store.mark_album_as_downloaded(album_id)
        return album

    album = _run(_download())
    console.print(f"[green]✓ \"{album.title}\" downloaded successfully![/green]")


@app.command()
def purchases():
    """Show the purchase history."""

    async def _purchases():
        store = await _ready_store(_load_config())
        return await store.get_purchases(), await store.get_albums()

    ledger, albums = _run(_purchases())
    print_purchases_table(ledger, albums)


def _parse_track_spec(spec: str) -> dict[str, str]:
    """Turns 'Title' or 'Title|m:ss' into TrackDraft fields."""
    title, sep, duration = spec.partition("|")
    fields = {"title": title}
    if sep:
        fields["duration"] = duration.strip()
    return fields


@app.command()
def upload(
    title: str = typer.Option(..., "--title", help="Album title."),
    price: float = typer.Option(..., "--price", help="Album price."),
    tracks: list[str] = typer.Option(  # noqa: B008
        ...,
        "--track",
        "-t",
        help="A track as 'Title' or 'Title|m:ss'. Repeat for each track.",
    ),
    genre: str = typer.Option("Pop", "--genre", help="Album genre."),
    description: str = typer.Option("", "--description", help="Short description."),
    cover: str = typer.Option("", "--cover", help="Cover image URL."),
):
    """Publish a new album as the current artist."""

    async def _upload():
        draft = AlbumDraft.parse(
            title=title,
            price=price,
            genre=genre,
            description=description,
            cover_image_url=cover,
            tracks=[_parse_track_spec(spec) for spec in tracks],
        )
        store = await _ready_store(_load_config())
        user = await store.get_current_user()
        if user is None:
            raise CatalogError("No current user. Sign up first.")
        album = draft.to_album(user, album_id=store.new_id(), created_at=store.now())
        await store.save_album(album)
        return album

    album = _run(_upload())
    console.print(
        f"[green]✓ Album \"{album.title}\" uploaded successfully! "
        f"(ID {album.id}, {len(album.tracks)} tracks)[/green]"
    )


@app.command()
def play(
    track_id: str = typer.Argument(..., help="Track ID, e.g. '1-2'."),
    full: bool = typer.Option(
        False, "--full", help="Play the full track (requires a purchase)."
    ),
    preview_seconds: float | None = typer.Option(
        None, "--preview-seconds", help="Override the preview length."
    ),
):
    """Preview or play a track."""

    async def _play():
        config = _load_config()
        store = await _ready_store(config)
        found = await store.find_track(track_id)
        if found is None:
            raise CatalogError(f"Track '{track_id}' does not exist.")
        album, track = found

        if full:
            if not await store.has_user_purchased_album(album.id):
                raise CatalogError(f"Buy '{album.title}' to play full tracks.")
            url = track.file_url or track.preview_url
        else:
            url = track.preview_url
        if not url:
            raise CatalogError(f"'{track.title}' has no audio available.")

        _, _, playback_logger = create_structured_logger()
        loader = HttpSoundLoader(
            timeout=config.load_timeout,
            max_bytes=config.max_download_mb * 1024 * 1024,
        )
        limit = preview_seconds or config.preview_seconds
        async with PlaybackSession(
            loader,
            preview_seconds=limit,
            volume=config.volume,
            logger=playback_logger,
        ) as session:
            finished = asyncio.Event()

            def _on_play_state(is_playing: bool) -> None:
                if not is_playing and session.state is PlaybackState.IDLE:
                    finished.set()

            session.add_play_state_listener(_on_play_state)
            console.print(f"[cyan]♪ Loading '{track.title}'...[/cyan]")
            if full:
                await session.play_full_track(track.id, url)
            else:
                await session.play_preview(track.id, url)

            label = "Preview" if session.get_is_preview_mode() else "Playing"
            with Progress(
                TextColumn(f"[bold cyan]{label}[/bold cyan] {track.title}"),
                BarColumn(),
                TextColumn("{task.fields[clock]}"),
                console=console,
                transient=True,
            ) as progress:
                task = progress.add_task("play", total=None, clock="0:00")
                while not finished.is_set():
                    total = session.get_duration() or track.duration_seconds
                    if session.get_is_preview_mode():
                        total = min(total, limit) if total else limit
                    position = session.get_current_time()
                    progress.update(
                        task,
                        total=total or None,
                        completed=position,
                        clock=f"{format_clock(position)} / {format_clock(total)}",
                    )
                    await asyncio.sleep(0.25)
        return track

    track = _run(_play())
    console.print(f"[green]✓ Finished '{track.title}'.[/green]")
