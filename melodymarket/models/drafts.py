"""
Upload drafts: what an artist fills in before an album is created.

Validation here belongs to the uploading front end, not to the catalog store;
``save_album`` accepts any well-formed Album.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from melodymarket.exceptions import ValidationError
from melodymarket.models.catalog import Album, Track, User

DEFAULT_TRACK_DURATION = "3:30"


class TrackDraft(BaseModel):
    """A track entered during upload. Only the title is required."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str
    duration: str = DEFAULT_TRACK_DURATION
    preview_url: str | None = None
    file_url: str | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v:
            raise ValueError("Track title cannot be empty.")
        return v

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v: str) -> str:
        minutes, sep, seconds = v.partition(":")
        if not sep or not minutes.isdigit() or not seconds.isdigit() or len(seconds) != 2:
            raise ValueError(f"Duration must look like 'm:ss', got '{v}'.")
        return v


class AlbumDraft(BaseModel):
    """A validated album upload form."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str
    price: float
    genre: str = "Pop"
    description: str = ""
    cover_image_url: str = ""
    tracks: list[TrackDraft] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v:
            raise ValueError("Please enter an album title.")
        return v

    @field_validator("price")
    @classmethod
    def validate_price(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Price cannot be negative.")
        return round(v, 2)

    @field_validator("tracks")
    @classmethod
    def validate_tracks(cls, v: list[TrackDraft]) -> list[TrackDraft]:
        if not v:
            raise ValueError("Please add at least one track.")
        return v

    @classmethod
    def parse(cls, **fields) -> "AlbumDraft":
        """
        Builds a draft from raw form values.

        Raises:
            ValidationError: with every problem found, one per line.
        """
        try:
            return cls(**fields)
        except PydanticValidationError as e:
            problems = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ]
            raise ValidationError("\n".join(problems)) from e

    def to_album(self, artist: User, album_id: str, created_at: datetime) -> Album:
        """Creates the catalog Album credited to ``artist``."""
        if not artist.is_artist:
            raise ValidationError(
                f"User '{artist.name}' is not an artist. Enable artist mode first."
            )
        tracks = [
            Track(
                id=f"{album_id}-{number}",
                title=draft.title,
                artist=artist.name,
                artist_id=artist.id,
                duration=draft.duration,
                preview_url=draft.preview_url,
                file_url=draft.file_url,
                album_id=album_id,
                track_number=number,
                price=0.0,
                is_free=True,
                genre=self.genre,
                cover_image_url=self.cover_image_url or None,
                created_at=created_at,
            )
            for number, draft in enumerate(self.tracks, 1)
        ]
        return Album(
            id=album_id,
            title=self.title,
            artist_id=artist.id,
            artist_name=artist.name,
            price=self.price,
            cover_image_url=self.cover_image_url,
            tracks=tracks,
            created_at=created_at,
            genre=self.genre,
            description=self.description,
        )
