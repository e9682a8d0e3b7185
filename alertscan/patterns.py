from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List

from .errors import RegistryError


DEFAULT_PATTERNS = ("ERROR", "WARN", "CRITICAL")


@dataclass
class AlertPattern:
    text: str
    occurrences: int = 0


class PatternRegistry:
    """Closed set of alert patterns and their occurrence counters.

    Membership is fixed by `initialize()`; afterwards only the counters change.
    Iteration follows insertion order (ERROR, WARN, CRITICAL).
    """

    def __init__(self, texts=DEFAULT_PATTERNS):
        self._texts = tuple(texts)
        self._patterns: Dict[str, AlertPattern] = {}
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> "PatternRegistry":
        if self._initialized:
            raise RegistryError("pattern registry already initialized")
        for text in self._texts:
            self._patterns[text] = AlertPattern(text=text)
        self._initialized = True
        return self

    def _require_init(self) -> None:
        if not self._initialized:
            raise RegistryError("pattern registry used before initialize()")

    def record_match(self, text: str) -> int:
        self._require_init()
        pat = self._patterns[text]
        pat.occurrences += 1
        return pat.occurrences

    def patterns(self) -> List[AlertPattern]:
        self._require_init()
        return list(self._patterns.values())

    def count(self, text: str) -> int:
        self._require_init()
        return self._patterns[text].occurrences

    def counts(self) -> Dict[str, int]:
        return {p.text: p.occurrences for p in self.patterns()}

    def __iter__(self) -> Iterator[AlertPattern]:
        return iter(self.patterns())

    def __len__(self) -> int:
        return len(self._patterns)
