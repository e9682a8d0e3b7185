from __future__ import annotations

import signal
import threading
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional

if TYPE_CHECKING:
    from .matcher import AggregationContext
    from .sink import MatchSink


HEADER = "===== Log Statistics ====="
FOOTER = "=========================="


def format_statistics(ctx: "AggregationContext") -> str:
    lines: List[str] = [HEADER, f"Total logs processed: {ctx.total_lines}"]
    for pat in ctx.registry:
        lines.append(f"{pat.text}: {pat.occurrences} occurrences")
    lines.append(FOOTER)
    return "\n".join(lines)


def report_statistics(ctx: "AggregationContext", out: Callable[[str], None] = print) -> None:
    out("\n" + format_statistics(ctx))


class StopFlag:
    """Cooperative cancellation marker.

    The signal handler only sets the flag; scanners and the monitor loop poll
    it and unwind, and the caller runs the shutdown sequence on its own stack.
    Repeated signals just set the flag again.
    """

    def __init__(self):
        self._event = threading.Event()
        self.signals_received = 0
        self._previous: Dict[int, object] = {}

    def set(self) -> None:
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    def _handle(self, signum, frame) -> None:
        self.signals_received += 1
        self._event.set()

    def install(self, signums: Iterable[int] = (signal.SIGINT,)) -> "StopFlag":
        for s in signums:
            try:
                self._previous[s] = signal.signal(s, self._handle)
            except ValueError:
                # not the main thread; KeyboardInterrupt still reaches the caller
                pass
        return self

    def restore(self) -> None:
        for s, prev in self._previous.items():
            try:
                signal.signal(s, prev)
            except (ValueError, TypeError):
                pass
        self._previous.clear()


class Shutdown:
    """Report statistics and close the sink, at most once per run."""

    def __init__(self, ctx: "AggregationContext", sink: Optional["MatchSink"] = None,
                 out: Callable[[str], None] = print):
        self.ctx = ctx
        self.sink = sink
        self.out = out
        self.done = False

    def run(self, interrupted: bool = False) -> bool:
        if self.done:
            return False
        self.done = True
        if interrupted:
            self.out("\nTerminating log analysis...")
        try:
            report_statistics(self.ctx, self.out)
        finally:
            if self.sink is not None:
                self.sink.close()
        return True
