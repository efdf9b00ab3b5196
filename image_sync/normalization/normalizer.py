import re
from typing import Iterable, List, Optional

from loguru import logger

from image_sync.models.match import NormalizedName

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")
_AND_WORD_RE = re.compile(r"\band\b")

# "(2018)", "(2018-present)", "(1997–2000)", "( 1969 - present )"
_YEAR_ANNOTATION_RE = re.compile(
    r"\s*\(\s*\d{4}\s*(?:[-\u2013\u2014]\s*(?:\d{4}|present)?\s*)?\)\s*$",
    re.IGNORECASE,
)
# Same annotation after normalize_name, e.g. "bluey 2018 present"
_BARE_YEAR_RE = re.compile(r"\s+(?:19|20)\d{2}(?:\s+(?:(?:19|20)\d{2}|present))?$")
# Trailing parenthetical that is not part of the title, e.g. "(TV Series)"
_TRAILING_PARENTHETICAL_RE = re.compile(r"\s*\([^()]*\)\s*$")

DEFAULT_SUFFIXES = (
    "original series",
    "special delivery service",
    "tv series",
    "reboot",
)


def normalize_name(name: Optional[str]) -> str:
    """Lowercases, replaces punctuation with spaces and collapses whitespace.

    Normalizing an already normalized name returns it unchanged.
    """
    if not name:
        return ""
    lowered = name.lower()
    no_punct = _PUNCTUATION_RE.sub(" ", lowered)
    return _WHITESPACE_RE.sub(" ", no_punct).strip()


def _dedupe(values: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


class NameNormalizer:
    """Derives the canonical name and match variations for show titles."""

    def __init__(self, suffixes: Iterable[str] = DEFAULT_SUFFIXES):
        # Stored normalized and longest first so "original series" wins over "series"
        self.suffixes: List[str] = sorted(
            _dedupe(normalize_name(s) for s in suffixes), key=len, reverse=True
        )

    def strip_annotations(self, name: str) -> List[str]:
        """Returns raw-name forms with trailing year/parenthetical annotations removed."""
        stripped = []
        without_year = _YEAR_ANNOTATION_RE.sub("", name)
        if without_year != name:
            stripped.append(without_year)
        without_paren = _TRAILING_PARENTHETICAL_RE.sub("", name)
        if without_paren != name and without_paren.strip():
            stripped.append(without_paren)
        return stripped

    def strip_suffixes(self, normalized: str) -> List[str]:
        forms = []
        for suffix in self.suffixes:
            if normalized.endswith(" " + suffix):
                forms.append(normalized[: -len(suffix)].strip())
        return forms

    def _and_forms(self, raw: str, normalized: str) -> List[str]:
        return [
            normalize_name(raw.replace("&", " and ")),
            # "&" is dropped by normalization, so "and" -> "&" means dropping the word
            _WHITESPACE_RE.sub(" ", _AND_WORD_RE.sub(" ", normalized)).strip(),
        ]

    def normalize(self, name: Optional[str]) -> NormalizedName:
        """Builds the NormalizedName for a display name.

        Variations always start with the canonical form. Never raises; an
        empty or missing name yields an empty canonical with no variations.
        """
        raw = name or ""
        canonical = normalize_name(raw)
        if not canonical:
            return NormalizedName(canonical="", variations=[])

        raw_forms = [raw] + self.strip_annotations(raw)
        without_year = _BARE_YEAR_RE.sub("", canonical)
        if without_year and without_year != canonical:
            raw_forms.append(without_year)
        variations = []
        for raw_form in raw_forms:
            base = normalize_name(raw_form)
            for form in [base] + self.strip_suffixes(base):
                variations.append(form)
                variations.extend(self._and_forms(raw_form, form))

        result = NormalizedName(
            canonical=canonical, variations=_dedupe([canonical] + variations)
        )
        logger.trace(f"Normalized '{raw}' -> {result.variations}")
        return result
