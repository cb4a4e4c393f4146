"""Utility functions for timemachine."""

from datetime import datetime
from pathlib import Path
import logging
import os
import tempfile

logger = logging.getLogger(__name__)

SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def humanize_size(size: float) -> str:
    """Render a byte count as e.g. ``"1.5 MB"``."""
    for unit in SIZE_UNITS:
        if size < 1024 or unit == SIZE_UNITS[-1]:
            break
        size /= 1024
    return f"{size:.1f} {unit}"


def get_iso_timestamp() -> str:
    """Current local time as ISO 8601 with its UTC offset."""
    return datetime.now().astimezone().isoformat()


def format_iso_date(iso_string: str) -> str:
    """Shorten a stored ISO 8601 timestamp for tables.

    Examples:
        "2025-08-26T02:51:17.317839+02:00" -> "2025-08-26 02:51:17"
        "2025-08-26T02:51:17Z" -> "2025-08-26 02:51:17"

    Unparseable input is returned unchanged.
    """
    try:
        parsed = datetime.fromisoformat(iso_string.replace("Z", "+00:00"))
    except ValueError:
        return iso_string
    return parsed.strftime("%Y-%m-%d %H:%M:%S")


def format_epoch(seconds: str) -> str:
    """Render an epoch-seconds string (FileState.last_modified) for display."""
    try:
        return datetime.fromtimestamp(int(seconds)).strftime("%Y-%m-%d %H:%M:%S")
    except (ValueError, OverflowError, OSError):
        return seconds


def atomic_write_text(path: Path, text: str) -> None:
    """Replace ``path`` with ``text`` so readers see the old or new file, never a mix.

    The text is written and fsynced to a sibling temp file, renamed over the
    target, and the directory entry is flushed with :func:`fsync_dir`.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.tmp-")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    fsync_dir(path.parent)


def fsync_dir(path: Path) -> None:
    """Flush a directory's entries (renames, creates) to disk.

    Best-effort: platforms without directory fsync only get a debug message.
    """
    flags = os.O_RDONLY | getattr(os, "O_DIRECTORY", 0)
    try:
        dir_fd = os.open(str(path), flags)
    except OSError:
        logger.debug("Cannot open %s for fsync", path)
        return
    try:
        os.fsync(dir_fd)
    except OSError:
        logger.debug("Directory fsync not supported for %s", path)
    finally:
        os.close(dir_fd)
