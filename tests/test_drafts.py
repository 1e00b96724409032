"""Tests for album upload drafts."""

import pytest

from melodymarket.exceptions import ValidationError
from melodymarket.models import AlbumDraft, TrackDraft, User


@pytest.fixture
def artist(fixed_time) -> User:
    return User(
        id="42",
        name="Nova",
        email="nova@example.com",
        is_artist=True,
        created_at=fixed_time,
    )


class TestAlbumDraft:
    def test_parse_valid_draft(self):
        draft = AlbumDraft.parse(
            title="  First Light ",
            price=4.999,
            tracks=[{"title": "Dawn"}, {"title": "Noon", "duration": "5:01"}],
        )

        assert draft.title == "First Light"
        assert draft.price == 5.0
        assert draft.genre == "Pop"
        assert [t.duration for t in draft.tracks] == ["3:30", "5:01"]

    def test_parse_collects_every_problem(self):
        with pytest.raises(ValidationError) as exc_info:
            AlbumDraft.parse(title="", price=-1, tracks=[])

        lines = str(exc_info.value).splitlines()
        assert len(lines) == 3
        assert lines[0].startswith("title:")
        assert any(line.startswith("price:") for line in lines)
        assert any("at least one track" in line for line in lines)

    def test_parse_reports_bad_track_duration(self):
        with pytest.raises(ValidationError, match="tracks.0.duration"):
            AlbumDraft.parse(title="A", price=1, tracks=[{"title": "x", "duration": "3m"}])

    def test_free_album(self):
        draft = AlbumDraft.parse(title="Gift", price=0, tracks=[{"title": "Thanks"}])

        assert draft.price == 0


class TestToAlbum:
    def test_builds_numbered_tracks(self, artist, fixed_time):
        draft = AlbumDraft(
            title="First Light",
            price=6,
            genre="Ambient",
            cover_image_url="https://example.com/c.jpg",
            tracks=[TrackDraft(title="Dawn", duration="2:10"), TrackDraft(title="Dusk")],
        )

        album = draft.to_album(artist, album_id="900", created_at=fixed_time)

        assert album.artist_id == "42"
        assert album.artist_name == "Nova"
        assert album.created_at == fixed_time
        assert [t.id for t in album.tracks] == ["900-1", "900-2"]
        assert [t.track_number for t in album.tracks] == [1, 2]
        assert all(t.album_id == "900" and t.genre == "Ambient" for t in album.tracks)
        assert album.tracks[0].duration_seconds == 130

    def test_requires_artist_mode(self, artist, fixed_time):
        listener = artist.model_copy(update={"is_artist": False})
        draft = AlbumDraft(title="A", price=1, tracks=[TrackDraft(title="x")])

        with pytest.raises(ValidationError, match="not an artist"):
            draft.to_album(listener, album_id="1", created_at=fixed_time)

    @pytest.mark.asyncio
    async def test_uploaded_album_is_stored(self, store, artist, fixed_time):
        draft = AlbumDraft.parse(title="Demo", price=3, tracks=[{"title": "One"}])
        album = draft.to_album(artist, album_id=store.new_id(), created_at=store.now())

        await store.save_album(album)

        assert await store.get_artist_albums("42") == [album]
        assert (await store.find_track(f"{album.id}-1"))[1].title == "One"
