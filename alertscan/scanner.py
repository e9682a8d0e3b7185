from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union

from .errors import TargetUnavailable
from .filters import enumerate_targets, is_eligible
from .matcher import LineMatcher
from .stats import StopFlag

logger = logging.getLogger("alertscan.scanner")

# Bytes per line, terminator excluded; the rest of a longer line is dropped.
MAX_LINE_LENGTH = 2048


def read_lines(fh: BinaryIO, max_len: int = MAX_LINE_LENGTH) -> Iterator[bytes]:
    """Yield raw lines from `fh` keeping their terminators, truncated to `max_len` bytes."""
    while True:
        line = fh.readline(max_len)
        if not line:
            return
        if len(line) == max_len and not line.endswith(b"\n"):
            # Drain the remainder of the physical line
            rest = fh.readline(max_len)
            while rest and not rest.endswith(b"\n"):
                rest = fh.readline(max_len)
            if rest:
                line += b"\n"
        yield line


class BatchScanner:
    def __init__(self, matcher: LineMatcher, max_line_length: int = MAX_LINE_LENGTH,
                 stop: Optional[StopFlag] = None):
        self.matcher = matcher
        self.max_line_length = int(max_line_length)
        if self.max_line_length <= 0:
            raise ValueError(f"max_line_length must be positive, got {max_line_length}")
        self.stop = stop or StopFlag()

    def _consume(self, fh: BinaryIO, path: str) -> int:
        n = 0
        try:
            for raw in read_lines(fh, self.max_line_length):
                if self.stop.is_set():
                    break
                self.matcher.process_line(path, raw.decode("utf-8", errors="surrogateescape"))
                n += 1
        except OSError as e:
            logger.error("read failed for %s after %d lines: %s", path, n, e)
        return n

    def scan_file(self, path: Union[str, Path], offset: int = 0, strict: bool = False) -> Optional[int]:
        """Feed every line of `path` from `offset` to the matcher.

        Returns the byte offset reached, or None when the file could not be
        opened. With `strict` an open failure raises TargetUnavailable instead.
        """
        p = str(path)
        try:
            fh = open(p, "rb")
        except OSError as e:
            if strict:
                raise TargetUnavailable(p, f"failed to open log file: {e}") from e
            logger.error("Failed to open log file %s: %s", p, e)
            return None
        with fh:
            if offset:
                fh.seek(offset)
            self._consume(fh, p)
            end = fh.tell()
        return end

    def scan_directory(self, directory: Union[str, Path]) -> int:
        scanned = 0
        for target in enumerate_targets(directory):
            if self.stop.is_set():
                break
            if not target.eligible:
                continue
            print(f"Processing log file: {target.path}")
            if self.scan_file(target.path) is not None:
                scanned += 1
        return scanned

    def scan_path(self, path: Union[str, Path]) -> int:
        """Scan a single file or every eligible file directly inside a directory.

        Returns the number of files read. A missing target, an unreadable
        directory or an unopenable top-level file raises TargetUnavailable.
        """
        p = str(path)
        try:
            st = os.stat(p)
        except OSError as e:
            raise TargetUnavailable(p, f"cannot access target: {e}") from e
        if os.path.isdir(p):
            return self.scan_directory(p)
        if not is_eligible(p):
            logger.warning("Skipping %s: not a regular file with a log extension", p)
            return 0
        logger.debug("scanning %s (%d bytes)", p, st.st_size)
        self.scan_file(p, strict=True)
        return 1
