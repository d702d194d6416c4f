"""
Run aggregation and readiness classification.
Each database owns a RunAggregator; the report sums the finalized runs.
"""
from datetime import datetime
from typing import Iterable, Optional

from models.inventory import InventoryCatalog
from models.precheck import (
    AggregateReport, CheckOutcome, ConnectionMode, DatabaseRun, Readiness, RunCounts, Target,
)


def classify_readiness(counts: RunCounts) -> Readiness:
    if counts.failed > 0:
        return Readiness.NOT_READY
    if counts.warning > 0:
        return Readiness.REVIEW_REQUIRED
    return Readiness.READY


def overall_readiness(readinesses: Iterable[Readiness]) -> Readiness:
    """Worst of the given tiers; READY when there are none."""
    return max(readinesses, key=lambda r: r.rank, default=Readiness.READY)


class RunAggregator:
    """Collects outcomes for one target in registration order."""

    def __init__(self, target: Target):
        self.target = target
        self.started_at = datetime.now()
        self._outcomes: list[CheckOutcome] = []
        self._counts = RunCounts()

    @property
    def outcomes(self) -> list[CheckOutcome]:
        return list(self._outcomes)

    @property
    def counts(self) -> RunCounts:
        return self._counts

    def add(self, outcome: CheckOutcome) -> None:
        self._outcomes.append(outcome)
        self._counts = self._counts.tally(outcome.status)

    def extend(self, outcomes: Iterable[CheckOutcome]) -> None:
        for o in outcomes:
            self.add(o)

    def finalize(self, inventory: Optional[InventoryCatalog] = None) -> DatabaseRun:
        return DatabaseRun(
            target=self.target,
            outcomes=self.outcomes,
            counts=self._counts,
            inventory=inventory,
            readiness=classify_readiness(self._counts),
            started_at=self.started_at,
            finished_at=datetime.now(),
        )


def build_report(
    mode: ConnectionMode,
    runs: list[DatabaseRun],
    instance: Optional[str] = None,
    alias_hints: Optional[list[str]] = None,
) -> AggregateReport:
    totals = RunCounts()
    for run in runs:
        totals = totals + run.counts
    return AggregateReport(
        mode=mode,
        instance=instance,
        runs=runs,
        totals=totals,
        overall_readiness=overall_readiness(r.readiness for r in runs),
        alias_hints=alias_hints or [],
    )
