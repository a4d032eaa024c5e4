"""Result types exchanged between the worker pool and the lifecycle controller."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class JoinOutcome(Enum):
    """How a pool shutdown ended.

    ``CLEAN`` means every worker exited within the grace period.
    ``TIMED_OUT`` means at least one had to be force-cancelled.
    """

    CLEAN = "clean"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class JoinResult:
    """Outcome of ``WorkerPool.shutdown``.

    Attributes:
        outcome: Clean or timed out.
        timed_out_workers: Ids of workers still running when the grace
            period expired, in ascending order.
        elapsed_seconds: Wall time spent joining, force-cancel included.
    """

    outcome: JoinOutcome
    timed_out_workers: tuple[int, ...] = ()
    elapsed_seconds: float = 0.0

    @property
    def clean(self) -> bool:
        return self.outcome is JoinOutcome.CLEAN
