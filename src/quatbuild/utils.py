"""
Utility functions and classes for quatbuild.

This module provides common utilities for:
- Timing of reconstruction steps
- Atomic (optionally gzipped) text output
- Logging configuration for the command line
"""

from __future__ import annotations

import gzip
import logging
import os
import sys
import tempfile
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


# =============================================================================
# Timing Utilities
# =============================================================================


class Timer:
    """Context manager that logs how long a block took.

    Examples
    --------
    >>> with Timer("assembly 1 of 4HHB", log_level=logging.DEBUG) as t:
    ...     builder.rebuild_quaternary_structure(asym_unit, transformations)
    >>> t.elapsed
    0.012
    """

    def __init__(self, label: str, log_level: int = logging.INFO) -> None:
        self.label = label
        self.log_level = log_level
        self.elapsed = 0.0
        self._start: float | None = None

    def __enter__(self) -> Timer:
        self._start = time.perf_counter()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.elapsed = time.perf_counter() - self._start
        logger.log(self.log_level, "[Timer] %s: %.3fs", self.label, self.elapsed)


# =============================================================================
# File Utilities
# =============================================================================


@contextmanager
def atomic_write(path: str | Path, compress: bool = False) -> Iterator[IO[str]]:
    """Open a text file that only replaces ``path`` once writing succeeds.

    Readers never see a partially written structure file. The parent
    directory is created if needed.

    Parameters
    ----------
    path : str or Path
        Target file path.
    compress : bool
        Gzip the content.

    Yields
    ------
    file object
        Text handle for writing.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    os.close(fd)
    temp_path = Path(temp_name)

    try:
        opener = gzip.open if compress else open
        with opener(temp_path, "wt", encoding="utf-8") as f:
            yield f
        os.replace(temp_path, path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


# =============================================================================
# Logging
# =============================================================================


def setup_logging(level: int | str = logging.INFO, log_file: str | Path | None = None) -> None:
    """Send quatbuild log records to stderr and, optionally, a file.

    Parameters
    ----------
    level : int or str
        Logging level, as a number or a name such as "DEBUG".
    log_file : str or Path, optional
        Also append records to this file.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
        force=True,
    )


__all__ = [
    "Timer",
    "atomic_write",
    "setup_logging",
]
