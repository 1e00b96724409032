"""
First-run sample data: the demo catalog and the demo account's purchases.
"""

from datetime import datetime, timedelta

from melodymarket.models.catalog import Album, Purchase, Track

SAMPLE_PURCHASED_ALBUMS = ("1", "2")
SAMPLE_DOWNLOADED_ALBUMS = ("1",)

_PEXELS = "https://images.pexels.com/photos/{}/pexels-photo-{}.jpeg?auto=compress&cs=tinysrgb&w=400"
_SOUNDS = "https://www.soundjay.com/misc/sounds/{}.wav"

# (id, title, artist_id, artist, price, photo, age_days, genre, description, tracks)
# tracks: (title, duration, price, streams, purchases, preview sound, tags)
_SAMPLE_CATALOG = [
    (
        "1", "Midnight Vibes", "artist1", "Luna Eclipse", 12.99, 1763075, 30,
        "Electronic",
        "A collection of ambient electronic tracks perfect for late-night listening.",
        [
            ("Neon Dreams", "4:32", 2.50, 15420, 89, "bell-ringing-05",
             ["electronic", "ambient", "chill"]),
            ("City Lights", "3:47", 2.50, 12890, 67, "magic-chime-02",
             ["electronic", "upbeat"]),
        ],
    ),
    (
        "2", "Acoustic Soul", "artist2", "River Stone", 9.99, 1190297, 15,
        "Acoustic",
        "Heartfelt acoustic melodies that speak to the soul.",
        [
            ("Morning Coffee", "3:28", 1.99, 8920, 45, "magic-chime-02",
             ["acoustic", "folk", "morning"]),
            ("River Flow", "4:12", 1.99, 7340, 38, "clock-chimes-01",
             ["acoustic", "nature"]),
        ],
    ),
    (
        "3", "Beat Drop", "artist3", "DJ Thunder", 15.99, 1105666, 7,
        "EDM",
        "High-energy electronic dance music to get you moving.",
        [
            ("Bass Explosion", "5:43", 2.99, 23410, 156, "bell-ringing-05",
             ["edm", "bass", "party"]),
            ("Rhythm Machine", "4:28", 2.99, 18750, 134, "magic-chime-02",
             ["edm", "rhythm"]),
        ],
    ),
    (
        "4", "Jazz Nights", "artist4", "Smooth Quartet", 11.99, 1407322, 45,
        "Jazz",
        "Smooth jazz compositions for elegant evenings.",
        [
            ("Blue Moon", "6:22", 2.25, 9840, 72, "clock-chimes-01",
             ["jazz", "smooth", "classic"]),
        ],
    ),
    (
        "5", "Rock Anthem", "artist5", "Electric Storm", 13.99, 1540406, 22,
        "Rock",
        "Powerful rock anthems with electrifying guitar solos.",
        [
            ("Thunder Strike", "4:18", 2.99, 16780, 98, "bell-ringing-05",
             ["rock", "electric", "powerful"]),
        ],
    ),
]  # fmt: skip


def sample_albums(now: datetime) -> list[Album]:
    """Builds the demo catalog, with creation dates backdated from ``now``."""
    albums = []
    for (
        album_id, title, artist_id, artist, price, photo, age_days, genre,
        description, tracks,
    ) in _SAMPLE_CATALOG:  # fmt: skip
        created_at = now - timedelta(days=age_days)
        cover = _PEXELS.format(photo, photo)
        albums.append(
            Album(
                id=album_id,
                title=title,
                artist_id=artist_id,
                artist_name=artist,
                price=price,
                cover_image_url=cover,
                created_at=created_at,
                genre=genre,
                description=description,
                tracks=[
                    Track(
                        id=f"{album_id}-{number}",
                        title=track_title,
                        artist=artist,
                        artist_id=artist_id,
                        duration=duration,
                        album_id=album_id,
                        track_number=number,
                        price=track_price,
                        stream_count=streams,
                        purchase_count=purchases,
                        genre=genre,
                        cover_image_url=cover,
                        preview_url=_SOUNDS.format(sound),
                        created_at=created_at,
                        tags=tags,
                    )
                    for number, (
                        track_title, duration, track_price, streams, purchases,
                        sound, tags,
                    ) in enumerate(tracks, 1)  # fmt: skip
                ],
            )
        )
    return albums


def sample_purchases(
    user_id: str, purchase_ids: list[str], now: datetime
) -> list[Purchase]:
    """The two backdated ledger rows that match SAMPLE_PURCHASED_ALBUMS."""
    prices = {album_id: price for album_id, _, _, _, price, *_ in _SAMPLE_CATALOG}
    ages = (5, 3)
    return [
        Purchase(
            id=purchase_id,
            user_id=user_id,
            album_id=album_id,
            purchase_date=now - timedelta(days=age),
            price=prices[album_id],
        )
        for purchase_id, album_id, age in zip(
            purchase_ids, SAMPLE_PURCHASED_ALBUMS, ages
        )
    ]
