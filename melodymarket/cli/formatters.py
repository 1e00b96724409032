"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from melodymarket.models.catalog import Album, Purchase, User
from melodymarket.utils.formatting import format_price


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "StorageWriteError": [
            "• Check that the data directory exists and is writable.",
            "• Make sure the disk is not full.",
            "• Point `data_dir` in the config file somewhere else.",
        ],
        "StorageReadError": [
            "• A stored file could not be read. Run `melodymarket --reset` to start over.",
        ],
        "PlaybackError": [
            "• The track's audio could not be loaded.",
            "• Check your internet connection for remote previews.",
            "• Try a higher `load_timeout` in the config file.",
        ],
        "ValidationError": [
            "• Every album needs a title, a price and at least one track.",
            "• Track durations are written as m:ss, e.g. `--track 'Intro|3:05'`.",
        ],
        "CatalogError": [
            "• List albums with `melodymarket albums`.",
            "• Create an account with `melodymarket signup NAME EMAIL`.",
        ],
        "ConfigurationError": [
            "• Run `melodymarket init --force` to write a fresh config file.",
            "• Check the values with `melodymarket --show-config`.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration."""
    console = Console()
    content = "\n".join(f"{key} = {value}" for key, value in config_data.items())
    console.print(
        Panel(
            content or "[dim]Using built-in defaults.[/dim]",
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_albums_table(
    albums: list[Album], user: User | None = None, title: str = "Catalog"
):
    """Lists albums, marking the ones the user owns or has downloaded."""
    console = Console()
    if not albums:
        console.print("[dim]No albums to show.[/dim]")
        return

    owned = set(user.purchased_albums) if user else set()
    downloaded = set(user.downloaded_albums) if user else set()

    table = Table(title=title, box=box.ROUNDED)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Album", style="bold cyan")
    table.add_column("Artist")
    table.add_column("Genre", style="magenta")
    table.add_column("Tracks", justify="right")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Status")

    for album in albums:
        if album.id in downloaded:
            status = "[green]✓ Downloaded[/green]"
        elif album.id in owned:
            status = "[cyan]Owned[/cyan]"
        else:
            status = ""
        table.add_row(
            album.id,
            album.title,
            album.artist_name,
            album.genre,
            str(len(album.tracks)),
            format_price(album.price),
            status,
        )
    console.print(table)


def print_album_detail(album: Album, owned: bool = False):
    """Displays an album with its track list."""
    console = Console()

    header = Table.grid(padding=(0, 2))
    header.add_column(style="bold cyan")
    header.add_column()
    header.add_row("Artist:", album.artist_name)
    header.add_row("Genre:", album.genre or "-")
    header.add_row("Price:", format_price(album.price))
    header.add_row("Released:", album.created_at.strftime("%Y-%m-%d"))
    if owned:
        header.add_row("Status:", "[green]✓ In your library[/green]")
    if album.description:
        header.add_row("About:", f"[dim]{album.description}[/dim]")

    tracks = Table(box=box.SIMPLE)
    tracks.add_column("#", justify="right", style="dim")
    tracks.add_column("ID", style="dim")
    tracks.add_column("Title")
    tracks.add_column("Length", justify="right")
    tracks.add_column("Preview", justify="center")
    for track in album.tracks:
        tracks.add_row(
            str(track.track_number),
            track.id,
            track.title,
            track.duration,
            "♪" if track.preview_url else "",
        )

    content = Table.grid(padding=(1, 0))
    content.add_row(header)
    content.add_row(tracks)
    console.print(
        Panel(content, title=f"[bold]{album.title}[/bold]", border_style="cyan")
    )


def print_user_panel(user: User, purchased_count: int, uploaded_count: int = 0):
    """Displays the current user's profile."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column()

    table.add_row("Name:", user.name)
    table.add_row("Email:", user.email)
    table.add_row(
        "Artist Mode:", "[green]✓ Enabled[/green]" if user.is_artist else "✗ Disabled"
    )
    table.add_row("Albums Owned:", str(purchased_count))
    table.add_row("Downloaded:", str(len(set(user.downloaded_albums))))
    if user.is_artist:
        table.add_row("Uploads:", str(uploaded_count))
    table.add_row("Balance:", f"${user.balance:.2f}")
    table.add_row("Member Since:", user.created_at.strftime("%Y-%m-%d"))

    console.print(
        Panel(
            table,
            title="🎵 [bold]Profile[/bold]",
            border_style="green",
            expand=False,
            padding=(1, 2),
        )
    )


def print_purchases_table(purchases: list[Purchase], albums: list[Album]):
    """Displays the purchase ledger, newest first, with a total."""
    console = Console()
    if not purchases:
        console.print("[dim]No purchases yet.[/dim]")
        return

    titles = {album.id: album.title for album in albums}
    table = Table(title="Purchase History", box=box.ROUNDED)
    table.add_column("Date", style="dim")
    table.add_column("Album", style="cyan")
    table.add_column("Purchase ID", style="dim")
    table.add_column("Price", justify="right", style="green")

    for purchase in sorted(purchases, key=lambda p: p.purchase_date, reverse=True):
        table.add_row(
            purchase.purchase_date.strftime("%Y-%m-%d %H:%M"),
            titles.get(purchase.album_id, f"Album {purchase.album_id}"),
            purchase.id,
            f"${purchase.price:.2f}",
        )
    total = sum(p.price for p in purchases)
    table.add_section()
    table.add_row("", "[bold]Total[/bold]", "", f"[bold]${total:.2f}[/bold]")
    console.print(table)
