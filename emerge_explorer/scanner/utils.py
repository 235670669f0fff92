import bz2
import gzip
import lzma
from pathlib import Path

from .log_core import LogLine

import logging

logger = logging.getLogger(__name__)

# logrotate leaves emerge.log.1.gz and friends; anything else is plain text
LOG_OPENERS = {".gz": gzip.open, ".bz2": bz2.open, ".xz": lzma.open, ".lzma": lzma.open}


def open_log(filepath):
    """Open an emerge.log for text reading, decompressing by file suffix."""
    opener = LOG_OPENERS.get(Path(filepath).suffix.lower(), open)
    return opener(filepath, "rt", encoding="utf-8", errors="replace")


def read_log_lines(filepath):
    """Yield numbered LogLines from an emerge.log, rotated/compressed or not."""
    filepath = Path(filepath)

    if not filepath.exists():
        raise FileNotFoundError(f"File not found: {filepath}")

    if not filepath.is_file():
        raise ValueError(f"Path is not a file: {filepath}")

    line_no = 0
    try:
        with open_log(filepath) as f:
            for line_no, line in enumerate(f, 1):
                yield LogLine(line.rstrip("\n\r"), line_no)
    except OSError as e:
        logger.error(f"Error reading {filepath} at line {line_no}: {e}")
        raise
    logger.info(f"Read {line_no} lines from {filepath}")
