"""
Approximation audit trail.

Recoverable fidelity losses (font fallback, non-uniform corners, unsupported
gradient shapes, custom easing, overflow) are recorded here instead of being
raised. Each (category, subject) pair is kept once and the whole log is
reported in bulk when the run finishes.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

logger = logging.getLogger("forge.audit")


@dataclass(frozen=True)
class Approximation:
    category: str
    subject: str
    message: str


@dataclass
class ApproximationLog:
    entries: List[Approximation] = field(default_factory=list)
    _seen: set = field(default_factory=set, repr=False)

    def record(self, category: str, subject: str, message: str) -> bool:
        """Add an entry; returns False when (category, subject) was already logged."""
        key: Tuple[str, str] = (category, subject)
        if key in self._seen:
            return False
        self._seen.add(key)
        self.entries.append(Approximation(category, subject, message))
        return True

    def __len__(self) -> int:
        return len(self.entries)

    def by_category(self) -> Dict[str, int]:
        return dict(Counter(e.category for e in self.entries))

    def messages(self) -> List[str]:
        return [f"[{e.category}] {e.message}" for e in self.entries]

    def report(self, log: logging.Logger = logger) -> None:
        if not self.entries:
            return
        summary = ", ".join(f"{cat}={n}" for cat, n in sorted(self.by_category().items()))
        log.warning("%d approximation(s): %s", len(self.entries), summary)
        for line in self.messages():
            log.warning("  %s", line)
