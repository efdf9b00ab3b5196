from typing import List, Optional, Sequence, Tuple

from loguru import logger

from image_sync.models.enums import MatchKind, SubstringPolicy
from image_sync.models.match import MatchResult, NormalizedName
from image_sync.models.show import CandidateShow
from image_sync.normalization.normalizer import NameNormalizer

DEFAULT_THRESHOLD = 0.8
# Shorter side of a substring match must be longer than this
MIN_SUBSTRING_LENGTH = 3


def fuzzy_score(first: str, second: str) -> float:
    """Bag-of-words overlap between two normalized names, in [0, 1].

    A word pair counts when both words are longer than two characters and
    are equal, or both are longer than three characters and one contains
    the other. The count is divided by the larger word count.
    """
    words1 = first.split()
    words2 = second.split()
    total_words = max(len(words1), len(words2))
    if total_words == 0:
        return 0.0

    matches = 0
    for word1 in words1:
        if len(word1) <= 2:
            continue
        for word2 in words2:
            if len(word2) <= 2:
                continue
            if word1 == word2 or (
                len(word1) > 3
                and len(word2) > 3
                and (word1 in word2 or word2 in word1)
            ):
                matches += 1

    return min(1.0, matches / total_words)


class Matcher:
    """Matches catalog show names against legacy candidates in three stages.

    Stages run in order and stop at the first that produces a match:
    exact (shared normalized variation), substring (either canonical name
    contains the other) and fuzzy (word overlap above ``threshold``).
    """

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        substring_policy: SubstringPolicy = SubstringPolicy.FIRST,
        normalizer: Optional[NameNormalizer] = None,
    ):
        if not 0 <= threshold <= 1:
            raise ValueError(f"threshold must be within [0, 1], got {threshold}")
        self.threshold = threshold
        self.substring_policy = SubstringPolicy(substring_policy)
        self.normalizer = normalizer or NameNormalizer()

    def prepare(
        self, candidates: Sequence[CandidateShow]
    ) -> List[Tuple[CandidateShow, NormalizedName]]:
        """Normalizes a candidate list once so it can be reused across targets."""
        return [(c, self.normalizer.normalize(c.name)) for c in candidates]

    def match(
        self,
        target_name: str,
        candidates: Sequence[CandidateShow],
        prepared: Optional[List[Tuple[CandidateShow, NormalizedName]]] = None,
    ) -> MatchResult:
        """Returns the best MatchResult for ``target_name``; never raises on no match."""
        if prepared is None:
            prepared = self.prepare(candidates)
        target = self.normalizer.normalize(target_name)
        if not target.canonical:
            logger.debug(f"Empty normalized name for '{target_name}', not matching.")
            return MatchResult.no_match(target_name)

        return (
            self._match_exact(target_name, target, prepared)
            or self._match_substring(target_name, target, prepared)
            or self._match_fuzzy(target_name, target, prepared)
            or MatchResult.no_match(target_name)
        )

    # --- Stages ---

    def _match_exact(
        self,
        target_name: str,
        target: NormalizedName,
        prepared: List[Tuple[CandidateShow, NormalizedName]],
    ) -> Optional[MatchResult]:
        target_variations = set(target.variations)
        for candidate, normalized in prepared:
            if target_variations.intersection(normalized.variations):
                return MatchResult(
                    target_name=target_name, candidate=candidate, kind=MatchKind.EXACT
                )
        return None

    def _match_substring(
        self,
        target_name: str,
        target: NormalizedName,
        prepared: List[Tuple[CandidateShow, NormalizedName]],
    ) -> Optional[MatchResult]:
        hits: List[CandidateShow] = []
        distances: List[int] = []
        for candidate, normalized in prepared:
            a, b = target.canonical, normalized.canonical
            if not b:
                continue
            shorter = a if len(a) <= len(b) else b
            if len(shorter) <= MIN_SUBSTRING_LENGTH:
                continue
            if b in a or a in b:
                distances.append(abs(len(a) - len(b)))
                hits.append(candidate)

        if not hits:
            return None

        pick = 0
        if self.substring_policy == SubstringPolicy.CLOSEST:
            # min() keeps the earliest index on ties
            pick = min(range(len(hits)), key=lambda i: distances[i])

        alternatives = [c for i, c in enumerate(hits) if i != pick]
        if alternatives:
            logger.warning(
                f"Ambiguous substring match for '{target_name}': picked "
                f"'{hits[pick].name}' ({self.substring_policy.value}) over "
                f"{[c.name for c in alternatives]}"
            )
        return MatchResult(
            target_name=target_name,
            candidate=hits[pick],
            kind=MatchKind.SUBSTRING,
            alternatives=alternatives,
        )

    def _match_fuzzy(
        self,
        target_name: str,
        target: NormalizedName,
        prepared: List[Tuple[CandidateShow, NormalizedName]],
    ) -> Optional[MatchResult]:
        best: Optional[CandidateShow] = None
        best_score = 0.0
        for candidate, normalized in prepared:
            score = fuzzy_score(target.canonical, normalized.canonical)
            if score > self.threshold and score > best_score:
                best, best_score = candidate, score

        if best is None:
            return None
        return MatchResult(
            target_name=target_name,
            candidate=best,
            kind=MatchKind.FUZZY,
            score=best_score,
        )


def match_show(
    target_name: str,
    candidates: Sequence[CandidateShow],
    threshold: float = DEFAULT_THRESHOLD,
) -> MatchResult:
    """Convenience wrapper running a default Matcher once."""
    return Matcher(threshold=threshold).match(target_name, candidates)


__all__ = ["Matcher", "fuzzy_score", "match_show"]
