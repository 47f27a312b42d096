import logging
import shutil
import subprocess
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from .config import DEFAULT_BITRATE, FFMPEG_BINARY, ID3V2_VERSION
from .exceptions import InvalidInputError, TranscodeError

logger = logging.getLogger(__name__)

STATS_PREFIXES = ("size=", "frame=")


class Transcoder(Protocol):
    def transcode(self, source: Path, target: Path, bitrate: str) -> None: ...


def echo_stats(line: str) -> None:
    """Redraw ffmpeg's progress line in place on stderr."""
    sys.stderr.write(f"\r  {line}")
    sys.stderr.flush()


def is_stats_line(line: str) -> bool:
    return line.lstrip().startswith(STATS_PREFIXES)


class FfmpegTranscoder:
    """Converts one FLAC file to MP3 by running ffmpeg to completion.

    A single attempt is made per file. Tags are copied from the input stream
    and written as ID3v2.3, and an existing target is overwritten. ffmpeg's
    progress lines are passed to on_stats as they arrive; everything else it
    prints is kept as the diagnostics of a TranscodeError.
    """

    def __init__(self, binary: str = FFMPEG_BINARY, on_stats: Callable[[str], None] | None = echo_stats):
        self.binary = binary
        self.on_stats = on_stats

    def ensure_available(self) -> str:
        path = shutil.which(self.binary)
        if path is None:
            raise InvalidInputError(
                f"{self.binary} is not installed or not found in your PATH. "
                "E.g., sudo apt install ffmpeg (Debian/Ubuntu) or brew install ffmpeg (macOS)."
            )
        return path

    def build_command(self, source: Path, target: Path, bitrate: str = DEFAULT_BITRATE) -> list[str]:
        return [
            self.binary,
            "-nostdin",
            "-hide_banner",
            "-i", str(source),
            "-ab", bitrate,
            "-map_metadata", "0",
            "-id3v2_version", ID3V2_VERSION,
            "-v", "error",
            "-stats",
            "-y",
            str(target),
        ]

    def transcode(self, source: Path, target: Path, bitrate: str = DEFAULT_BITRATE) -> None:
        cmd = self.build_command(source, target, bitrate)
        logger.debug("Running %s", " ".join(cmd))
        try:
            # text mode reads with universal newlines, so "\r"-terminated stats lines arrive one by one
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise TranscodeError(f"could not run {self.binary}: {e}") from e

        diagnostics = []
        showed_stats = False
        try:
            for line in proc.stderr:
                line = line.rstrip("\n")
                if not line.strip():
                    continue
                if is_stats_line(line):
                    if self.on_stats:
                        self.on_stats(line)
                        showed_stats = True
                else:
                    diagnostics.append(line)
            returncode = proc.wait()
        except BaseException:
            proc.kill()
            proc.wait()
            raise
        finally:
            proc.stderr.close()
            if showed_stats and self.on_stats is echo_stats:
                sys.stderr.write("\n")
                sys.stderr.flush()

        captured = "\n".join(diagnostics)
        if returncode != 0:
            raise TranscodeError(f"{self.binary} exited with status {returncode}", captured)

        if not target.is_file() or target.stat().st_size == 0:
            raise TranscodeError(f"{self.binary} produced no output at {target}", captured)
