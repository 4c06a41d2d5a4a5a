"""Byte I/O collaborator used by every table handle."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import IO

logger = logging.getLogger(__name__)

# Longest leading float literal, "." as decimal point
_FLOAT_PREFIX = re.compile(
    r"""\s*(
        [+-]?(?:
            (?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?
            |inf(?:inity)?
            |nan
        )
    )""",
    re.VERBOSE | re.IGNORECASE,
)


class FileHooks:
    """File access, number parsing and error reporting for a table.

    Tables never touch the operating system directly; they go through an
    instance of this class. Subclass it to redirect storage (for example to
    in-memory buffers), to observe seeks, or to route error messages.

    The objects returned by open() must provide seek, tell, read, write,
    flush, truncate and close with the semantics of a binary file object.
    """

    def open(self, path: Path, mode: str) -> IO[bytes]:
        """Open a file, raising OSError on failure."""
        return open(path, mode)

    def remove(self, path: Path) -> None:
        """Remove a file, ignoring a file that is already gone."""
        try:
            os.remove(path)
        except FileNotFoundError:
            pass

    def atof(self, text: str) -> float:
        """Parse the leading number of text, locale-independently.

        Returns 0.0 when no number is present.
        """
        match = _FLOAT_PREFIX.match(text)
        if match is None:
            return 0.0
        return float(match.group(1))

    def error(self, message: str) -> None:
        """Report a failure message."""
        logger.error(message)


DEFAULT_HOOKS = FileHooks()
