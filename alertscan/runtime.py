import asyncio
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .config import Settings
from .errors import EventSourceError, TargetUnavailable
from .filters import enumerate_targets
from .matcher import AggregationContext, LineMatcher
from .scanner import BatchScanner
from .sink import MatchSink
from .stats import Shutdown, StopFlag

logger = logging.getLogger("alertscan.runtime")


@dataclass
class FileEvent:
    kind: str  # "modified"
    path: str
    ts: float


@dataclass
class FileCursor:
    path: str
    offset: int = 0
    inode: Optional[int] = None


class DirWatcher:
    """Polling change source for a fixed set of files inside one directory.

    `run()` yields non-empty lists of FileEvent. If the directory itself can no
    longer be stat'ed the generator raises EventSourceError.
    """

    def __init__(self, path: str, poll_interval: float = 0.5, stop: Optional[StopFlag] = None):
        self.root = Path(path)
        self.poll = poll_interval
        self.stop_flag = stop
        self._snapshot: Dict[str, Tuple[int, int, int]] = {}
        self._running = False

    @staticmethod
    def _signature(path: str) -> Tuple[int, int, int]:
        st = os.stat(path)
        return st.st_mtime_ns, st.st_size, st.st_ino

    def add_watch(self, path: str) -> None:
        # OSError propagates to the caller as a subscription failure
        self._snapshot[str(path)] = self._signature(str(path))

    @property
    def watched(self) -> List[str]:
        return list(self._snapshot)

    def _stopped(self) -> bool:
        return not self._running or (self.stop_flag is not None and self.stop_flag.is_set())

    def _scan(self) -> List[FileEvent]:
        try:
            os.stat(self.root)
        except OSError as e:
            raise EventSourceError(f"Failed to read change events for {self.root}: {e}") from e
        ts = time.time()
        events: List[FileEvent] = []
        for p, old in list(self._snapshot.items()):
            try:
                new = self._signature(p)
            except FileNotFoundError:
                continue
            except OSError as e:
                # one bad file must not end the watch
                logger.warning("Failed to stat watched file %s: %s", p, e)
                continue
            if new != old:
                self._snapshot[p] = new
                events.append(FileEvent("modified", p, ts))
        return events

    async def run(self):
        self._running = True
        while not self._stopped():
            await asyncio.sleep(self.poll)
            if self._stopped():
                break
            events = self._scan()
            if events:
                yield events

    def stop(self):
        self._running = False


class ChangeMonitor:
    IDLE = "idle"
    WATCHING = "watching"

    def __init__(self, directory: str, scanner: BatchScanner, poll_interval: float = 0.5,
                 pause: float = 0.5, incremental: bool = False, stop: Optional[StopFlag] = None):
        self.directory = str(directory)
        self.scanner = scanner
        self.pause = pause
        self.incremental = incremental
        self.stop = stop or scanner.stop
        self.watcher = DirWatcher(self.directory, poll_interval=poll_interval, stop=self.stop)
        self.state = self.IDLE
        self.cursors: Dict[str, FileCursor] = {}
        self.rescans = 0
        self.error: Optional[EventSourceError] = None

    def subscribe(self) -> List[str]:
        """Idle -> Watching: watch every eligible file directly inside the directory."""
        for target in enumerate_targets(self.directory):
            if not target.eligible:
                continue
            try:
                self.watcher.add_watch(target.path)
                if self.incremental:
                    self.cursors[target.path] = self._open_cursor(target.path)
            except OSError as e:
                logger.error("Failed to add watch for %s: %s", target.path, e)
                continue
            print(f"Monitoring file: {target.path}")
        self.state = self.WATCHING
        return self.watcher.watched

    @staticmethod
    def _open_cursor(path: str) -> FileCursor:
        st = os.stat(path)
        return FileCursor(path=path, offset=st.st_size, inode=st.st_ino)

    def _read_appended(self, path: str) -> None:
        cur = self.cursors.get(path) or FileCursor(path=path)
        try:
            st = os.stat(path)
        except OSError as e:
            logger.error("Failed to stat %s: %s", path, e)
            return
        if st.st_size < cur.offset or (cur.inode is not None and st.st_ino != cur.inode):
            # truncated or rotated
            cur.offset = 0
        cur.inode = st.st_ino
        end = self.scanner.scan_file(path, offset=cur.offset)
        if end is not None:
            cur.offset = end
        self.cursors[path] = cur

    def handle(self, event: FileEvent) -> None:
        if event.kind != "modified":
            return
        if self.incremental:
            self._read_appended(event.path)
        else:
            # Whole file again: lines already counted are counted again
            self.scanner.scan_file(event.path)
        self.rescans += 1

    async def run(self) -> None:
        if self.state == self.IDLE:
            self.subscribe()
        try:
            async for batch in self.watcher.run():
                for ev in batch:
                    if self.stop.is_set():
                        break
                    self.handle(ev)
                if self.stop.is_set():
                    break
                await asyncio.sleep(self.pause)
        except EventSourceError as e:
            logger.error("%s", e)
            self.error = e
        finally:
            self.watcher.stop()
            self.state = self.IDLE


def run_analysis(path: str, settings: Optional[Settings] = None, monitor: bool = False,
                 stop: Optional[StopFlag] = None) -> int:
    """Scan or monitor `path`, then report statistics and close the sink.

    Returns the process exit code. A sink that cannot be opened raises
    TargetUnavailable before anything is scanned.
    """
    settings = settings or Settings()
    stop = stop or StopFlag()
    ctx = AggregationContext()
    sink = MatchSink(settings.sink).open()
    shutdown = Shutdown(ctx, sink)
    scanner = BatchScanner(LineMatcher(ctx, sink), max_line_length=settings.max_line_length, stop=stop)
    code = 0
    interrupted = False
    try:
        if monitor and os.path.isdir(path):
            print(f"Real-time monitoring enabled for directory {path}")
            mon = ChangeMonitor(path, scanner, poll_interval=settings.poll_interval,
                                pause=settings.pause, incremental=settings.incremental, stop=stop)
            asyncio.run(mon.run())
        else:
            if monitor:
                # A lone file gets a single static pass, no subscription
                print(f"Real-time monitoring enabled for file {path}")
            scanner.scan_path(path)
    except TargetUnavailable as e:
        logger.error("%s", e)
        code = 1
    except KeyboardInterrupt:
        interrupted = True
    finally:
        shutdown.run(interrupted=interrupted or stop.is_set())
    return code
