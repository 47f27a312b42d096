import logging
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path

from .config import SOURCE_EXTENSION, TARGET_EXTENSION
from .exceptions import InvalidInputError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkItem:
    source_path: Path
    target_path: Path


def validate_root(input_dir: Path) -> None:
    if not input_dir.exists():
        raise InvalidInputError(f"Input directory '{input_dir}' does not exist.")
    if not input_dir.is_dir():
        raise InvalidInputError(f"Input path '{input_dir}' is not a directory.")


def scan_directory(input_dir: Path) -> list[Path]:
    """Recursively scan input_dir for FLAC files.

    Hidden directories are included; symlinked files are skipped and
    symlinked directories are not descended into.
    """
    validate_root(input_dir)

    root = input_dir.resolve()
    files = []
    for path in sorted(root.rglob(f"*{SOURCE_EXTENSION}")):
        if path.is_file() and not path.is_symlink() and path.name.endswith(SOURCE_EXTENSION):
            files.append(path)
    logger.debug("Found %d %s files under %s", len(files), SOURCE_EXTENSION, root)
    return files


def compute_output_path(input_file: Path, input_dir: Path) -> Path:
    """Compute the MP3 path that sits alongside input_file under input_dir."""
    relative = input_file.relative_to(input_dir)
    return input_dir / relative.with_suffix(TARGET_EXTENSION)


def build_work_set(files: list[Path], input_dir: Path) -> list[WorkItem]:
    root = input_dir.resolve()
    return [WorkItem(source_path=f, target_path=compute_output_path(f, root)) for f in files]


def find_target_collisions(items: list[WorkItem]) -> dict[Path, list[Path]]:
    """Return targets that more than one source would write, keyed case-insensitively."""
    by_target: dict[str, list[WorkItem]] = defaultdict(list)
    for item in items:
        by_target[str(item.target_path).casefold()].append(item)

    collisions = {}
    for group in by_target.values():
        if len(group) > 1:
            collisions[group[0].target_path] = [item.source_path for item in group]
            logger.warning(
                "%d source files map to %s; the last one converted wins",
                len(group),
                group[0].target_path,
            )
    return collisions
