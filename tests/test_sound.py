"""Tests for ClockSound and the bundled sound loader."""

import asyncio
import io
import wave

import pytest

from melodymarket.exceptions import PlaybackError
from melodymarket.playback import ClockSound, HttpSoundLoader


def make_wav(seconds: float, rate: int = 8000) -> bytes:
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(rate)
        wav.writeframes(b"\x00\x00" * int(rate * seconds))
    return buffer.getvalue()


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestClockSound:
    @pytest.mark.asyncio
    async def test_playhead_follows_clock(self):
        clock = FakeClock()
        sound = ClockSound(10.0, clock=clock)

        await sound.play()
        clock.now += 2.5
        assert sound.position == 2.5
        assert sound.is_playing

        await sound.pause()
        clock.now += 5
        assert sound.position == 2.5
        assert not sound.is_playing
        await sound.unload()

    @pytest.mark.asyncio
    async def test_position_never_passes_duration(self):
        clock = FakeClock()
        sound = ClockSound(3.0, clock=clock)

        await sound.play()
        clock.now += 60
        assert sound.position == 3.0
        await sound.unload()

    @pytest.mark.asyncio
    async def test_set_position_clamps(self):
        sound = ClockSound(8.0)

        await sound.set_position(-1)
        assert sound.position == 0.0
        await sound.set_position(100)
        assert sound.position == 8.0

    @pytest.mark.asyncio
    async def test_finish_callback_runs_at_end(self):
        sound = ClockSound(0.05)
        finished = asyncio.Event()

        async def on_finish():
            finished.set()

        sound.set_finish_callback(on_finish)
        await sound.play()
        await asyncio.wait_for(finished.wait(), timeout=1)

        assert not sound.is_playing
        assert sound.position == 0.05

    @pytest.mark.asyncio
    async def test_pause_prevents_finish(self):
        sound = ClockSound(0.05)
        calls = []

        async def on_finish():
            calls.append(True)

        sound.set_finish_callback(on_finish)
        await sound.play()
        await sound.pause()
        await asyncio.sleep(0.1)

        assert calls == []

    @pytest.mark.asyncio
    async def test_unloaded_sound_cannot_play(self):
        sound = ClockSound(5.0)
        await sound.unload()

        assert sound.is_unloaded
        with pytest.raises(PlaybackError):
            await sound.play()

    @pytest.mark.asyncio
    async def test_unknown_duration_never_finishes(self):
        clock = FakeClock()
        sound = ClockSound(0.0, clock=clock)

        await sound.play()
        clock.now += 42
        assert sound.position == 42
        assert sound.is_playing
        await sound.unload()


class TestHttpSoundLoader:
    def test_probe_duration_reads_wav_header(self):
        assert HttpSoundLoader.probe_duration(make_wav(1.5)) == pytest.approx(1.5)

    def test_probe_duration_rejects_non_audio(self):
        with pytest.raises(PlaybackError):
            HttpSoundLoader.probe_duration(b"definitely not audio" * 10, "junk.bin")

    @pytest.mark.asyncio
    async def test_loads_local_path(self, tmp_path):
        path = tmp_path / "clip.wav"
        path.write_bytes(make_wav(2.0))
        loader = HttpSoundLoader()

        sound = await loader.load(str(path))

        assert sound.duration == pytest.approx(2.0)
        assert sound.source == str(path)
        await loader.close()

    @pytest.mark.asyncio
    async def test_loads_file_url(self, tmp_path):
        path = tmp_path / "clip.wav"
        path.write_bytes(make_wav(0.5))

        sound = await HttpSoundLoader().load(path.as_uri())

        assert sound.duration == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(PlaybackError, match="Could not read"):
            await HttpSoundLoader().load(str(tmp_path / "nope.wav"))

    @pytest.mark.asyncio
    async def test_file_over_size_cap(self, tmp_path):
        path = tmp_path / "big.wav"
        path.write_bytes(make_wav(1.0))

        with pytest.raises(PlaybackError, match="too large"):
            await HttpSoundLoader(max_bytes=100).load(str(path))

    @pytest.mark.asyncio
    async def test_unsupported_scheme(self):
        with pytest.raises(PlaybackError, match="Unsupported"):
            await HttpSoundLoader().load("ftp://example.com/a.mp3")

    @pytest.mark.asyncio
    async def test_close_without_session_is_safe(self):
        loader = HttpSoundLoader()
        await loader.close()
        await loader.close()
