from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, TextIO

from .errors import TargetUnavailable

logger = logging.getLogger("alertscan.sink")

DEFAULT_SINK_PATH = "error_log.txt"
RECORD_FORMAT = "Error found in {path}: {line}"


def format_record(path: str, line: str) -> str:
    return RECORD_FORMAT.format(path=path, line=line)


class MatchSink:
    """Append-only record of matched lines. Single writer, closed once."""

    def __init__(self, path: str = DEFAULT_SINK_PATH):
        self.path = Path(path)
        self._fh: Optional[TextIO] = None
        self.records = 0

    def open(self) -> "MatchSink":
        try:
            # Truncated at startup, then appended to for the rest of the run.
            self._fh = self.path.open("w", encoding="utf-8", errors="surrogateescape")
        except OSError as e:
            raise TargetUnavailable(str(self.path), f"cannot open sink: {e}") from e
        return self

    @property
    def closed(self) -> bool:
        return self._fh is None

    def write(self, path: str, line: str) -> None:
        if self._fh is None:
            logger.warning("sink %s is closed; dropping record for %s", self.path, path)
            return
        try:
            self._fh.write(format_record(path, line))
            self.records += 1
        except (OSError, UnicodeError) as e:
            logger.error("failed to write to sink %s: %s", self.path, e)

    def close(self) -> bool:
        """Close the sink. Returns False when it was already closed."""
        if self._fh is None:
            return False
        fh, self._fh = self._fh, None
        try:
            fh.flush()
        finally:
            fh.close()
        return True
