from pathlib import Path

import pytest

from flac2mp3_cli.exceptions import TranscodeError


class FakeTranscoder:
    """Writes a small MP3 stand-in, or fails for sources named in fail_names."""

    def __init__(self, fail_names=(), on_call=None):
        self.fail_names = set(fail_names)
        self.on_call = on_call
        self.calls: list[tuple[Path, Path, str]] = []

    def ensure_available(self) -> str:
        return "/usr/bin/ffmpeg"

    def transcode(self, source: Path, target: Path, bitrate: str) -> None:
        self.calls.append((source, target, bitrate))
        if self.on_call:
            self.on_call(source)
        if source.name in self.fail_names:
            raise TranscodeError("ffmpeg exited with status 1", f"{source}: Invalid data found when processing input\n")
        target.write_bytes(b"ID3" + source.read_bytes())


@pytest.fixture
def fake_transcoder():
    return FakeTranscoder()


@pytest.fixture
def music_dir(tmp_path):
    root = tmp_path / "music"
    (root / "A").mkdir(parents=True)
    (root / "B").mkdir()
    (root / "A" / "song1.flac").write_bytes(b"fLaC-one")
    (root / "B" / "song2.flac").write_bytes(b"fLaC-two")
    return root
