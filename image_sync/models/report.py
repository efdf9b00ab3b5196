from typing import Dict, List, Optional

from pydantic import BaseModel, computed_field

from .asset import ImageAsset
from .enums import EntryStatus, FailureKind, MatchKind
from .match import MatchResult


class EntryOutcome(BaseModel):
    """What happened to one catalog entry during a batch run."""

    show_id: str
    name: str
    status: EntryStatus
    match: Optional[MatchResult] = None
    asset: Optional[ImageAsset] = None
    failure: Optional[FailureKind] = None
    error: Optional[str] = None


class BatchReport(BaseModel):
    """Aggregate counts for a reconciliation run."""

    outcomes: List[EntryOutcome] = []
    aborted: bool = False
    abort_reason: Optional[str] = None

    def add(self, outcome: EntryOutcome) -> None:
        self.outcomes.append(outcome)

    def _count(self, status: EntryStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @computed_field  # type: ignore[misc]
    @property
    def processed(self) -> int:
        return len(self.outcomes)

    @computed_field  # type: ignore[misc]
    @property
    def matched(self) -> int:
        return sum(1 for o in self.outcomes if o.match and o.match.matched)

    @computed_field  # type: ignore[misc]
    @property
    def updated(self) -> int:
        return self._count(EntryStatus.UPDATED)

    @computed_field  # type: ignore[misc]
    @property
    def skipped(self) -> int:
        return self._count(EntryStatus.SKIPPED)

    @computed_field  # type: ignore[misc]
    @property
    def failed(self) -> int:
        return self._count(EntryStatus.FAILED)

    @property
    def failures_by_kind(self) -> Dict[FailureKind, int]:
        counts: Dict[FailureKind, int] = {kind: 0 for kind in FailureKind}
        for outcome in self.outcomes:
            if outcome.failure:
                counts[outcome.failure] += 1
        return counts

    @property
    def matches_by_kind(self) -> Dict[MatchKind, int]:
        counts: Dict[MatchKind, int] = {kind: 0 for kind in MatchKind}
        for outcome in self.outcomes:
            if outcome.match and outcome.match.kind:
                counts[outcome.match.kind] += 1
        return counts
