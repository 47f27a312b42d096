import sys
from pathlib import Path

import pytest

from flac2mp3_cli.exceptions import InvalidInputError, TranscodeError
from flac2mp3_cli.transcoder import FfmpegTranscoder, is_stats_line

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="fake ffmpeg is a shell script")

WRITE_TARGET = 'for last; do :; done\nprintf "ID3data" > "$last"\n'


def fake_ffmpeg(tmp_path, body):
    script = tmp_path / "ffmpeg"
    script.write_text("#!/bin/sh\n" + body)
    script.chmod(0o755)
    return str(script)


def test_build_command():
    cmd = FfmpegTranscoder().build_command(Path("/m/in.flac"), Path("/m/in.mp3"), "320k")
    assert cmd[0] == "ffmpeg"
    assert cmd[cmd.index("-i") + 1] == "/m/in.flac"
    assert cmd[cmd.index("-ab") + 1] == "320k"
    assert cmd[cmd.index("-map_metadata") + 1] == "0"
    assert cmd[cmd.index("-id3v2_version") + 1] == "3"
    assert "-stats" in cmd
    assert "-nostdin" in cmd
    assert cmd[-2:] == ["-y", "/m/in.mp3"]


def test_build_command_custom_binary_and_bitrate():
    cmd = FfmpegTranscoder(binary="/opt/ffmpeg").build_command(Path("a.flac"), Path("a.mp3"), "192k")
    assert cmd[0] == "/opt/ffmpeg"
    assert cmd[cmd.index("-ab") + 1] == "192k"


def test_is_stats_line():
    assert is_stats_line("size=  100kB time=00:00:05.00 bitrate= 163.8kbits/s speed=50x")
    assert not is_stats_line("a.flac: Invalid data found when processing input")


def test_ensure_available_missing(monkeypatch):
    monkeypatch.setattr("flac2mp3_cli.transcoder.shutil.which", lambda name: None)
    with pytest.raises(InvalidInputError, match="not found in your PATH"):
        FfmpegTranscoder().ensure_available()


def test_ensure_available_found(monkeypatch):
    monkeypatch.setattr("flac2mp3_cli.transcoder.shutil.which", lambda name: f"/usr/bin/{name}")
    assert FfmpegTranscoder().ensure_available() == "/usr/bin/ffmpeg"


@posix_only
def test_transcode_shows_progress_on_stderr(tmp_path, capfd):
    binary = fake_ffmpeg(
        tmp_path,
        'printf "size=  100kB time=00:00:05.00 bitrate= 163.8kbits/s speed=50x\\r" >&2\n' + WRITE_TARGET,
    )
    target = tmp_path / "a.mp3"

    FfmpegTranscoder(binary=binary).transcode(tmp_path / "a.flac", target, "320k")

    out, err = capfd.readouterr()
    assert "time=00:00:05.00" in out + err
    assert target.read_bytes() == b"ID3data"


@posix_only
def test_transcode_passes_each_stats_line_to_callback(tmp_path):
    binary = fake_ffmpeg(
        tmp_path,
        'printf "size=  50kB time=00:00:02.00\\rsize= 100kB time=00:00:05.00\\r" >&2\n' + WRITE_TARGET,
    )
    seen = []

    FfmpegTranscoder(binary=binary, on_stats=seen.append).transcode(tmp_path / "a.flac", tmp_path / "a.mp3", "320k")

    assert seen == ["size=  50kB time=00:00:02.00", "size= 100kB time=00:00:05.00"]


@posix_only
def test_transcode_nonzero_exit_carries_diagnostics(tmp_path):
    binary = fake_ffmpeg(
        tmp_path,
        'printf "size=   0kB time=00:00:00.00\\r" >&2\n'
        'echo "a.flac: Invalid data found when processing input" >&2\n'
        "exit 1\n",
    )

    with pytest.raises(TranscodeError) as exc_info:
        FfmpegTranscoder(binary=binary, on_stats=None).transcode(tmp_path / "a.flac", tmp_path / "a.mp3", "320k")

    assert "status 1" in str(exc_info.value)
    assert exc_info.value.diagnostics == "a.flac: Invalid data found when processing input"
    assert exc_info.value.diagnostic_text == "a.flac: Invalid data found when processing input"


@posix_only
def test_transcode_empty_output_is_failure(tmp_path):
    binary = fake_ffmpeg(tmp_path, 'for last; do :; done\n: > "$last"\n')

    with pytest.raises(TranscodeError, match="no output"):
        FfmpegTranscoder(binary=binary).transcode(tmp_path / "a.flac", tmp_path / "a.mp3", "320k")


def test_transcode_launch_error(tmp_path):
    missing = str(tmp_path / "no-such-ffmpeg")
    with pytest.raises(TranscodeError, match="could not run"):
        FfmpegTranscoder(binary=missing).transcode(tmp_path / "a.flac", tmp_path / "a.mp3", "320k")


def test_diagnostic_text_joins_lines():
    err = TranscodeError("boom", "first problem\n\nsecond problem\n")
    assert err.diagnostic_text == "first problem second problem"


def test_diagnostic_text_without_diagnostics():
    assert TranscodeError("boom").diagnostic_text == "boom"
