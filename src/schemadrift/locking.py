"""
Advisory file locking and atomic file replacement.

The history append and the registry upsert run under ``file_lock()`` on a
sibling ``.lock`` file.  Rewrites of whole files (registry, model source)
land through ``atomic_write()``, so readers never see a partial file.
Callers that read-modify-write hold a single ``file_lock()`` block for the
whole cycle.

Usage::

    from schemadrift.locking import atomic_write, file_lock

    with file_lock(path):
        atomic_write(path, new_text)
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import sys
import tempfile
from pathlib import Path
from typing import IO, Generator

from schemadrift.errors import WriteFailure

logger = logging.getLogger(__name__)


# Cross-platform file locking
if sys.platform == "win32":
    import msvcrt

    def _lock_file(f: IO, exclusive: bool = True) -> None:
        """Lock file on Windows."""
        msvcrt.locking(f.fileno(), msvcrt.LK_LOCK if exclusive else msvcrt.LK_RLCK, 1)

    def _unlock_file(f: IO) -> None:
        """Unlock file on Windows."""
        msvcrt.locking(f.fileno(), msvcrt.LK_UNLCK, 1)
else:
    import fcntl

    def _lock_file(f: IO, exclusive: bool = True) -> None:
        """Lock file on Unix."""
        fcntl.flock(f.fileno(), fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)

    def _unlock_file(f: IO) -> None:
        """Unlock file on Unix."""
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)


@contextlib.contextmanager
def file_lock(path: Path, exclusive: bool = True) -> Generator[IO, None, None]:
    """
    Hold an advisory lock for *path* for the duration of the block.

    The lock lives on ``<path>.lock`` so the target itself can be replaced
    atomically while the lock is held.

    Raises:
        WriteFailure: If the lock file cannot be created.
    """
    lock_path = path.with_suffix(path.suffix + ".lock")
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock_file = open(lock_path, "a+")
    except OSError as exc:
        raise WriteFailure(lock_path, exc) from exc

    try:
        _lock_file(lock_file, exclusive)
        yield lock_file
    finally:
        try:
            _unlock_file(lock_file)
        except OSError:
            logger.debug("Failed to release lock on %s", lock_path)
        finally:
            lock_file.close()


def atomic_write(path: Path, content: str) -> None:
    """Write *content* to *path* through a temp file and ``os.replace``.

    Raises:
        WriteFailure: On any filesystem error; the original file is left
            untouched.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", text=True)
    except OSError as exc:
        raise WriteFailure(path, exc) from exc

    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        # Preserve permissions if possible
        if path.exists():
            shutil.copymode(path, temp_path)
        os.replace(temp_path, path)
    except OSError as exc:
        with contextlib.suppress(OSError):
            os.unlink(temp_path)
        raise WriteFailure(path, exc) from exc
