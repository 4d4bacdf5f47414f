"""Per-item processing outcomes.

Webhook items and scheduled jobs report one outcome per item; the outcomes
are aggregated for logging and never change the HTTP response.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Optional, Union


@dataclass(frozen=True)
class Ok:
    detail: Optional[str] = None


@dataclass(frozen=True)
class Skipped:
    reason: str


@dataclass(frozen=True)
class Failed:
    error: str


Outcome = Union[Ok, Skipped, Failed]


def summarize(outcomes: Iterable[Outcome]) -> dict:
    """Count outcomes: ``{"ok": n, "skipped": n, "failed": n, "skip_reasons": {...}}``."""
    counts = Counter()
    reasons = Counter()
    for outcome in outcomes:
        if isinstance(outcome, Ok):
            counts["ok"] += 1
        elif isinstance(outcome, Skipped):
            counts["skipped"] += 1
            reasons[outcome.reason] += 1
        else:
            counts["failed"] += 1
    return {
        "ok": counts["ok"],
        "skipped": counts["skipped"],
        "failed": counts["failed"],
        "skip_reasons": dict(reasons),
    }
