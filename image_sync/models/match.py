from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .enums import MatchKind
from .show import CandidateShow


class NormalizedName(BaseModel):
    """Canonical comparison form of a display name plus alternate spellings."""

    model_config = ConfigDict(frozen=True)

    canonical: str
    variations: List[str] = []

    def __contains__(self, item: str) -> bool:
        return item == self.canonical or item in self.variations


class MatchResult(BaseModel):
    """Outcome of comparing one catalog name against the candidate set."""

    target_name: str
    candidate: Optional[CandidateShow] = None
    kind: Optional[MatchKind] = None
    # Only set for fuzzy matches
    score: Optional[float] = Field(None, ge=0, le=1)
    # Other candidates that satisfied the same stage but were not picked
    alternatives: List[CandidateShow] = []

    @computed_field  # type: ignore[misc]
    @property
    def matched(self) -> bool:
        return self.candidate is not None

    @property
    def description(self) -> str:
        if not self.candidate:
            return f"{self.target_name} -> no match"
        detail = f"{self.kind.value}" if self.kind else "?"
        if self.score is not None:
            detail += f" {round(self.score * 100)}%"
        return f"{self.target_name} -> {self.candidate.name} ({detail})"

    @classmethod
    def no_match(cls, target_name: str) -> "MatchResult":
        return cls(target_name=target_name)
