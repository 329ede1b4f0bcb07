"""Request-scoped temp file allocation and cleanup."""

import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import structlog

logger = structlog.get_logger(__name__)


def allocate_stem(temp_dir: str, prefix: str) -> Path:
    """Return a unique, not yet existing path stem such as ``/tmp/video_<hex>``.

    The stem carries no extension; yt-dlp appends the final one.
    """
    return Path(temp_dir) / f"{prefix}_{uuid.uuid4().hex}"


def discard_stem(stem: Path, keep: Optional[Path] = None) -> int:
    """Delete every file produced under a stem (final file, .part, intermediates).

    Args:
        stem: Stem returned by allocate_stem
        keep: A file to leave in place

    Returns:
        Number of files removed.
    """
    removed = 0
    candidates = [stem, *stem.parent.glob(f"{stem.name}.*")]
    for path in candidates:
        if keep is not None and path == keep:
            continue
        try:
            if path.is_file():
                path.unlink()
                removed += 1
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning("temp_file_delete_failed", path=str(path), error=str(e))
    if removed:
        logger.debug("temp_files_deleted", stem=str(stem), count=removed)
    return removed


@contextmanager
def scoped_stem(temp_dir: str, prefix: str) -> Iterator[Path]:
    """Allocate a stem and remove its files if the block does not complete.

    Cleanup runs on any exception, including task cancellation. On normal
    exit the files are left in place for the caller.
    """
    stem = allocate_stem(temp_dir, prefix)
    try:
        yield stem
    except BaseException:
        discard_stem(stem)
        raise


def file_size(path: Path) -> Optional[int]:
    """Size of a regular file, None if it does not exist."""
    try:
        if not path.is_file():
            return None
        return path.stat().st_size
    except OSError:
        return None
