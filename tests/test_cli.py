"""End-to-end tests for the Typer command line, run against a temporary home."""

import json

import pytest
from typer.testing import CliRunner

from melodymarket import __version__
from melodymarket.cli.app import app

runner = CliRunner()


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("MELODYMARKET_HOME", str(tmp_path))
    monkeypatch.setenv("COLUMNS", "200")
    return tmp_path


def read_record(home, name):
    path = home / "data" / f"melodymarket_{name}.json"
    return json.loads(path.read_text(encoding="utf-8"))


def invoke(*args, **kwargs):
    return runner.invoke(app, list(args), **kwargs)


def test_version(home):
    result = invoke("--version")

    assert result.exit_code == 0
    assert __version__ in result.output


def test_init_writes_config_and_seeds(home):
    result = invoke("init")

    assert result.exit_code == 0, result.output
    assert (home / "config.ini").is_file()
    assert len(read_record(home, "albums")) == 5
    assert (home / "data" / "melodymarket_initialized.json").read_text() == "true"


def test_init_rejects_bad_namespace(home):
    result = invoke("init", "--namespace", "no/slashes")

    assert result.exit_code == 1
    assert not (home / "config.ini").exists()


def test_albums_lists_catalog(home):
    result = invoke("albums")

    assert result.exit_code == 0, result.output
    assert "Midnight Vibes" in result.output
    assert "Rock Anthem" in result.output


def test_albums_by_genre(home):
    result = invoke("albums", "--genre", "Jazz")

    assert result.exit_code == 0
    assert "Jazz Nights" in result.output
    assert "Rock Anthem" not in result.output


def test_album_detail(home):
    result = invoke("album", "2")

    assert result.exit_code == 0
    assert "Morning Coffee" in result.output
    assert "River Flow" in result.output


def test_unknown_album(home):
    result = invoke("album", "404")

    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_first_use_creates_demo_account(home):
    result = invoke("profile")

    assert result.exit_code == 0, result.output
    user = read_record(home, "user")
    assert user["name"] == "Music Lover"
    assert user["purchasedAlbums"] == ["1", "2"]
    assert len(read_record(home, "purchases")) == 2


def test_signup_without_sample_data(home):
    result = invoke("signup", "Ann", "ann@example.com", "--no-sample")

    assert result.exit_code == 0, result.output
    user = read_record(home, "user")
    assert user["name"] == "Ann"
    assert user["purchasedAlbums"] == []


def test_signup_replacing_account_asks_first(home):
    invoke("signup", "Ann", "ann@example.com")

    result = invoke("signup", "Bob", "bob@example.com", input="n\n")

    assert result.exit_code != 0
    assert read_record(home, "user")["name"] == "Ann"


def test_buy_and_download(home):
    assert invoke("buy", "3", "--yes").exit_code == 0

    user = read_record(home, "user")
    assert user["purchasedAlbums"] == ["1", "2", "3"]
    assert read_record(home, "purchases")[-1]["albumId"] == "3"

    assert invoke("download", "3").exit_code == 0
    assert invoke("download", "3").exit_code == 0
    assert read_record(home, "user")["downloadedAlbums"] == ["1", "3"]


def test_download_requires_purchase(home):
    result = invoke("download", "4")

    assert result.exit_code == 1
    assert "4" not in read_record(home, "user")["downloadedAlbums"]


def test_buy_confirmation_declined(home):
    result = invoke("buy", "5", input="n\n")

    assert result.exit_code != 0
    assert "5" not in read_record(home, "user")["purchasedAlbums"]


def test_library_and_purchases(home):
    invoke("buy", "4", "--yes")

    library = invoke("library")
    downloaded = invoke("library", "--downloaded")
    history = invoke("purchases")

    assert "Jazz Nights" in library.output
    assert "Midnight Vibes" in downloaded.output
    assert "Jazz Nights" not in downloaded.output
    assert "Total" in history.output


def test_upload_requires_artist_mode(home):
    invoke("profile")

    result = invoke("upload", "--title", "Demo", "--price", "2", "-t", "One")

    assert result.exit_code == 1
    assert len(read_record(home, "albums")) == 5


def test_upload_as_artist(home):
    invoke("profile")
    assert invoke("artist-mode").exit_code == 0

    result = invoke(
        "upload",
        "--title",
        "Demo",
        "--price",
        "2",
        "-t",
        "Intro|1:05",
        "-t",
        "Outro",
        "--genre",
        "Ambient",
    )

    assert result.exit_code == 0, result.output
    album = read_record(home, "albums")[-1]
    assert album["title"] == "Demo"
    assert album["artistName"] == "Music Lover"
    assert [t["duration"] for t in album["tracks"]] == ["1:05", "3:30"]


def test_upload_rejects_bad_duration(home):
    result = invoke("upload", "--title", "Demo", "--price", "2", "-t", "One|1m")

    assert result.exit_code == 1
    assert "duration" in result.output


def test_play_unknown_track(home):
    result = invoke("play", "9-9")

    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_play_full_requires_purchase(home):
    invoke("profile")

    result = invoke("play", "5-1", "--full")

    assert result.exit_code == 1
    assert "Buy" in result.output


def test_reset(home):
    invoke("profile")

    result = invoke("--reset", input="y\n")

    assert result.exit_code == 0, result.output
    assert not (home / "data" / "melodymarket_user.json").exists()
    assert not (home / "data" / "melodymarket_albums.json").exists()
