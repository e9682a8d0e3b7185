from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .patterns import PatternRegistry
from .sink import MatchSink, format_record

logger = logging.getLogger("alertscan.matcher")


@dataclass
class MatchResult:
    path: str
    line: str
    matched: List[str] = field(default_factory=list)

    @property
    def hit(self) -> bool:
        return bool(self.matched)


class AggregationContext:
    """Counters for one run: the pattern registry plus the total line count."""

    def __init__(self, registry: Optional[PatternRegistry] = None):
        if registry is None:
            registry = PatternRegistry().initialize()
        elif not registry.initialized:
            registry.initialize()
        self.registry = registry
        self.total_lines = 0

    def count_line(self) -> int:
        self.total_lines += 1
        return self.total_lines


def _echo(text: str) -> None:
    # Record already carries the source line terminator
    end = "" if text.endswith("\n") else "\n"
    try:
        print(text, end=end, flush=True)
    except UnicodeEncodeError:
        # undecodable source bytes, carried as surrogate escapes
        safe = text.encode("utf-8", "surrogateescape").decode("utf-8", "backslashreplace")
        print(safe, end=end, flush=True)


class LineMatcher:
    def __init__(self, ctx: AggregationContext, sink: Optional[MatchSink] = None,
                 out: Optional[Callable[[str], None]] = None):
        self.ctx = ctx
        self.sink = sink
        self.out = out or _echo

    def process_line(self, source_path: str, line: str) -> MatchResult:
        """Count `line` and record one hit per contained pattern (case-sensitive substring)."""
        self.ctx.count_line()
        result = MatchResult(path=str(source_path), line=line)
        if not isinstance(line, str):
            logger.debug("skipping non-text line from %s", source_path)
            return result
        for pat in self.ctx.registry:
            if pat.text not in line:
                continue
            self.ctx.registry.record_match(pat.text)
            result.matched.append(pat.text)
            try:
                self.out(format_record(result.path, line))
            except (OSError, UnicodeError) as e:
                logger.warning("could not echo match from %s: %s", source_path, e)
            if self.sink is not None:
                self.sink.write(result.path, line)
        return result
