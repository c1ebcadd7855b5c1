"""
Field scoring

Scores how likely a column represents a canonical field by combining five
gated signals: exact alias match, token overlap, fuzzy similarity, content
hints from sample values and the usual column position of the field.
"""
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import structlog

from ..config import settings as default_settings
from .aliases import AliasTable
from .content_detector import FIELD_CONTENT_TYPES, ContentHint, detect_content_types
from .fuzzy import best_similarity, token_overlap
from .models import (
    CanonicalField,
    ColumnCandidate,
    FieldGuess,
    FieldSignals,
    RawHeader,
    ScoringWeights,
)
from .normalizer import normalize_header

logger = structlog.get_logger(__name__)

NO_CANDIDATES_REASON = "no candidates available"

# Zero-based column positions where a field usually appears in exports
POSITION_HINTS: Dict[CanonicalField, Tuple[int, ...]] = {
    CanonicalField.AMS_ID: (0,),
    CanonicalField.FIRST_NAME: (0, 1),
    CanonicalField.LAST_NAME: (1, 2),
    CanonicalField.EMAIL: (2, 3, 4),
    CanonicalField.PHONE: (3, 4, 5),
    CanonicalField.ADDRESS: (4, 5, 6),
    CanonicalField.ZIP: (5, 6, 7),
    CanonicalField.CITY: (6, 7, 8),
    CanonicalField.STATUS: (8, 9, 10),
    CanonicalField.PRIORITY: (9, 10, 11),
}


def _column_samples(sample_rows: Optional[Sequence[Sequence[Any]]], index: int, limit: int) -> Tuple[Any, ...]:
    samples = []
    for row in sample_rows or ():
        if row is None or index >= len(row):
            continue
        samples.append(row[index])
        if len(samples) >= limit:
            break
    return tuple(samples)


def build_candidates(
    headers: Sequence[Any],
    sample_rows: Optional[Sequence[Sequence[Any]]] = None,
    sample_size: Optional[int] = None,
) -> List[ColumnCandidate]:
    """Derive column candidates once per import session"""
    limit = default_settings.sample_size if sample_size is None else sample_size
    return [
        ColumnCandidate(
            index=index,
            raw_header=normalize_header(header),
            sample_values=_column_samples(sample_rows, index, limit),
        )
        for index, header in enumerate(headers or ())
    ]


class FieldScorer:
    """Scores (field, column) pairs against the alias dictionary"""

    def __init__(
        self,
        alias_table: Optional[AliasTable] = None,
        weights: Optional[ScoringWeights] = None,
        settings=None,
    ):
        self.settings = settings or default_settings
        self.alias_table = alias_table or AliasTable.default()
        self.weights = weights or ScoringWeights.from_settings(self.settings)
        self._alias_headers: Dict[CanonicalField, Tuple[RawHeader, ...]] = {}
        self._content_cache: Dict[Tuple[Any, ...], List[ContentHint]] = {}

    def alias_headers(self, field: CanonicalField) -> Tuple[RawHeader, ...]:
        if field not in self._alias_headers:
            self._alias_headers[field] = tuple(
                normalize_header(alias)
                for alias in sorted(self.alias_table.aliases_for(field))
            )
        return self._alias_headers[field]

    def content_hints(self, candidate: ColumnCandidate) -> List[ContentHint]:
        samples = candidate.sample_values
        if not samples:
            return []
        try:
            key = samples
            if key not in self._content_cache:
                self._content_cache[key] = detect_content_types(samples, self.settings.sample_size)
            return self._content_cache[key]
        except TypeError:
            # unhashable sample values
            return detect_content_types(samples, self.settings.sample_size)

    def _is_exact_alias(self, field: CanonicalField, header: RawHeader) -> bool:
        if header.is_empty:
            return False
        if header.original.strip().lower() in self.alias_table.aliases_for(field):
            return True
        compact = header.normalized.replace(" ", "")
        return any(
            alias.normalized == header.normalized or alias.normalized.replace(" ", "") == compact
            for alias in self.alias_headers(field)
        )

    def score(self, field: Any, candidate: ColumnCandidate) -> FieldGuess:
        """Score one (field, column) pair; the result is clamped to [0, 1]"""
        field = CanonicalField.parse(field)
        header = candidate.raw_header
        weights = self.weights
        signals = FieldSignals()
        reasons: List[str] = []
        content_reasons: List[str] = []
        confidence = 0.0

        if not header.is_empty:
            if self._is_exact_alias(field, header):
                signals.exact_alias = True
                confidence += weights.exact_alias
                reasons.append(f"exact alias match for '{header.display}'")

            best_overlap, best_fuzzy, fuzzy_alias = 0.0, 0.0, ""
            for alias in self.alias_headers(field):
                if header.tokens and alias.tokens:
                    best_overlap = max(best_overlap, token_overlap(header.tokens, alias.tokens))
                similarity = best_similarity(header.normalized, alias.normalized)
                if similarity > best_fuzzy:
                    best_fuzzy, fuzzy_alias = similarity, alias.normalized

            if best_overlap > self.settings.token_overlap_threshold:
                signals.token_overlap = best_overlap
                confidence += weights.token_overlap * best_overlap
                reasons.append(f"token overlap {best_overlap:.0%}")

            if best_fuzzy >= self.settings.fuzzy_threshold:
                signals.fuzzy_score = best_fuzzy
                confidence += weights.fuzzy_match * best_fuzzy
                reasons.append(f"fuzzy match {best_fuzzy:.0%} with '{fuzzy_alias}'")

        expected_type = FIELD_CONTENT_TYPES.get(field)
        if expected_type:
            for hint in self.content_hints(candidate):
                if hint.type == expected_type and hint.confidence >= self.settings.content_boost_min_confidence:
                    signals.content_boost = hint.confidence
                    confidence += weights.content_hint * hint.confidence
                    content_reasons.append(f"{hint.type} content in {hint.confidence:.0%} of samples")
                    reasons.append(f"content looks like {hint.type} ({hint.confidence:.0%})")
                    break

        if candidate.index in POSITION_HINTS.get(field, ()):
            signals.position_boost = weights.position_hint
            confidence += weights.position_hint
            reasons.append(f"expected column position {candidate.index + 1}")

        return FieldGuess(
            field=field,
            confidence=max(0.0, min(1.0, confidence)),
            column_index=candidate.index,
            header=header.original,
            signals=signals,
            reasons=reasons,
            content_hints=content_reasons,
        )

    def score_candidates(self, field: Any, candidates: Sequence[ColumnCandidate]) -> List[FieldGuess]:
        """Score every candidate for one field, best first, then column order"""
        field = CanonicalField.parse(field)
        if not candidates:
            return [FieldGuess(field=field, confidence=0.0, reasons=[NO_CANDIDATES_REASON])]
        guesses = [self.score(field, candidate) for candidate in candidates]
        guesses.sort(key=lambda guess: (-guess.confidence, guess.column_index))
        return guesses


def guess_column(
    field: Any,
    candidate_headers: Sequence[Union[str, ColumnCandidate]],
    sample_rows: Optional[Sequence[Sequence[Any]]] = None,
    weights: Optional[ScoringWeights] = None,
) -> List[FieldGuess]:
    """Rank the candidate columns for a field

    Returns one FieldGuess per candidate sorted by confidence, or a single
    zero-confidence guess when there is nothing to score.
    """
    field = CanonicalField.parse(field)
    if candidate_headers and all(isinstance(c, ColumnCandidate) for c in candidate_headers):
        candidates = list(candidate_headers)
    else:
        candidates = build_candidates(candidate_headers or [], sample_rows)

    scorer = FieldScorer(weights=weights)
    guesses = scorer.score_candidates(field, candidates)
    logger.debug(
        "Column guessed",
        field=field.value,
        candidates=len(candidates),
        best_column=guesses[0].column_index,
        best_confidence=round(guesses[0].confidence, 3),
    )
    return guesses
