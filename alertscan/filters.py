import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

from .errors import TargetUnavailable

logger = logging.getLogger("alertscan.filters")

# Substring containment, not suffix: "log.txtbak" is eligible.
VALID_EXTENSIONS = (".log", ".txt", ".conf", ".csv", ".md")


def has_valid_extension(name: str) -> bool:
    return any(ext in name for ext in VALID_EXTENSIONS)


def is_regular_file(path: Union[str, Path]) -> bool:
    try:
        st = os.stat(path)
    except OSError as e:
        logger.debug("stat failed for %s: %s", path, e)
        return False
    return stat.S_ISREG(st.st_mode)


def is_eligible(path: Union[str, Path]) -> bool:
    """True if `path` resolves to a regular file whose name carries an allowed extension.

    Status lookup failures (permission denied, entry vanished) make the entry
    ineligible instead of raising.
    """
    return has_valid_extension(Path(path).name) and is_regular_file(path)


@dataclass
class WatchTarget:
    path: str
    file_kind: str  # "regular" | "other"

    @property
    def eligible(self) -> bool:
        return self.file_kind == "regular" and has_valid_extension(Path(self.path).name)


def enumerate_targets(directory: Union[str, Path]) -> List[WatchTarget]:
    """List the immediate entries of `directory` in directory order.

    Not recursive and not sorted. Raises TargetUnavailable when the directory
    itself cannot be read.
    """
    targets: List[WatchTarget] = []
    try:
        with os.scandir(directory) as it:
            for entry in it:
                kind = "regular" if is_regular_file(entry.path) else "other"
                targets.append(WatchTarget(path=entry.path, file_kind=kind))
    except OSError as e:
        raise TargetUnavailable(str(directory), f"unable to open directory: {e}") from e
    return targets
