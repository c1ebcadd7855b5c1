"""
Mapping assignment

Turns per-pair field guesses into a conflict-free column to field mapping
with a greedy pass over all guesses sorted by confidence. The greedy pass is
not globally optimal; its output is deterministic and each accepted pair
can be explained on its own.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np
import structlog

from ..config import settings as default_settings
from ..errors import InvalidConfigurationError
from .models import (
    FIELD_PRIORITY,
    AssignmentStatus,
    CanonicalField,
    ColumnAssignment,
    ColumnCandidate,
    FieldGuess,
    MappingResult,
    ScoringWeights,
)
from .normalizer import headers_match
from .scorer import FieldScorer, build_candidates

logger = structlog.get_logger(__name__)

OVERRIDE_REASON = "manual override"
DEFAULT_REQUIRED_FIELDS = (CanonicalField.FIRST_NAME, CanonicalField.LAST_NAME)

OverrideKey = Union[int, str]


def _parse_fields(fields: Optional[Iterable[Any]]) -> List[CanonicalField]:
    if fields is None:
        return list(CanonicalField)
    parsed: List[CanonicalField] = []
    for value in fields:
        canonical = CanonicalField.parse(value)
        if canonical not in parsed:
            parsed.append(canonical)
    return parsed


class MappingAssigner:
    """Greedy conflict-free assignment of columns to fields"""

    def __init__(
        self,
        scorer: Optional[FieldScorer] = None,
        auto_threshold: Optional[float] = None,
        suggest_threshold: Optional[float] = None,
        settings=None,
    ):
        self.settings = settings or default_settings
        self.scorer = scorer or FieldScorer(settings=self.settings)
        self.auto_threshold = (
            self.settings.auto_accept_threshold if auto_threshold is None else auto_threshold
        )
        self.suggest_threshold = (
            self.settings.suggest_threshold if suggest_threshold is None else suggest_threshold
        )
        if not 0.0 <= self.suggest_threshold <= self.auto_threshold <= 1.0:
            raise InvalidConfigurationError(
                f"Invalid thresholds: suggest={self.suggest_threshold}, auto={self.auto_threshold}",
                setting="auto_accept_threshold",
            )

    def _resolve_overrides(
        self,
        overrides: Optional[Mapping[OverrideKey, Any]],
        candidates: Sequence[ColumnCandidate],
    ) -> Dict[int, CanonicalField]:
        """Resolve override keys (column index or header) to column indices"""
        resolved: Dict[int, CanonicalField] = {}
        if not overrides:
            return resolved

        by_index = {candidate.index: candidate for candidate in candidates}
        for key, value in overrides.items():
            if value is None:
                continue
            canonical = CanonicalField.parse(value)

            column = None
            if isinstance(key, int) and not isinstance(key, bool):
                column = key if key in by_index else None
            elif isinstance(key, str):
                if key.strip().isdigit() and int(key) in by_index:
                    column = int(key)
                else:
                    column = next(
                        (
                            c.index for c in candidates
                            if c.index not in resolved and headers_match(c.header, key)
                        ),
                        None,
                    )

            if column is None:
                logger.warning("Override ignored, column not found", column=key, field=canonical.value)
                continue
            if column in resolved:
                logger.warning("Override ignored, column already overridden", column=key, field=canonical.value)
                continue
            if canonical in resolved.values():
                logger.warning("Override ignored, field already overridden", column=key, field=canonical.value)
                continue
            resolved[column] = canonical
        return resolved

    def assign(
        self,
        fields: Optional[Iterable[Any]],
        candidates: Sequence[ColumnCandidate],
        overrides: Optional[Mapping[OverrideKey, Any]] = None,
    ) -> MappingResult:
        """Assign each column at most one field and each field at most one column"""
        target_fields = _parse_fields(fields)
        result = MappingResult(headers=[candidate.header for candidate in candidates])
        by_index = {candidate.index: candidate for candidate in candidates}

        for column, canonical in self._resolve_overrides(overrides, candidates).items():
            candidate = by_index[column]
            guess = FieldGuess(
                field=canonical,
                confidence=1.0,
                column_index=column,
                header=candidate.header,
                reasons=[OVERRIDE_REASON],
            )
            result.assignments[column] = ColumnAssignment(
                column_index=column,
                header=candidate.header,
                guess=guess,
                status=AssignmentStatus.OVERRIDE,
            )

        taken_fields = {a.field for a in result.assignments.values()}
        free_fields = [f for f in target_fields if f not in taken_fields]
        free_columns = [c for c in candidates if c.index not in result.assignments]

        guesses: List[FieldGuess] = []
        for candidate in free_columns:
            column_guesses = [self.scorer.score(f, candidate) for f in free_fields]
            column_guesses.sort(key=lambda g: (-g.confidence, FIELD_PRIORITY[g.field]))
            result.candidates[candidate.index] = column_guesses
            guesses.extend(column_guesses)

        guesses.sort(key=lambda g: (-g.confidence, FIELD_PRIORITY[g.field], g.column_index))
        self._greedy(guesses, result, taken_fields)

        result.unmapped_columns = [c.index for c in candidates if c.index not in result.assignments]
        assigned_fields = {a.field for a in result.assignments.values()}
        result.unmapped_fields = [f for f in target_fields if f not in assigned_fields]

        logger.info(
            "Mapping assigned",
            columns=len(candidates),
            fields=len(target_fields),
            assigned=len(result.assignments),
            overrides=sum(1 for a in result.assignments.values() if a.status == AssignmentStatus.OVERRIDE),
            suggested=len(result.needs_confirmation()),
        )
        return result

    def _greedy(self, guesses: List[FieldGuess], result: MappingResult, taken_fields: set) -> None:
        taken_columns = set(result.assignments)

        position = 0
        while position < len(guesses):
            # Guesses with equal confidence form one tie group
            end = position
            while end < len(guesses) and guesses[end].confidence == guesses[position].confidence:
                end += 1
            group = guesses[position:end]
            position = end

            if group[0].confidence < self.suggest_threshold:
                break

            for guess in group:
                if guess.field in taken_fields or guess.column_index in taken_columns:
                    continue

                for rival in group:
                    if rival is guess or rival.field in taken_fields or rival.column_index in taken_columns:
                        continue
                    if rival.field == guess.field:
                        guess.reasons.append(
                            f"tie with column {rival.column_index + 1} broken by column order"
                        )
                    elif rival.column_index == guess.column_index:
                        guess.reasons.append(
                            f"tie with field {rival.field.value} broken by field priority"
                        )

                status = (
                    AssignmentStatus.AUTO
                    if guess.confidence >= self.auto_threshold
                    else AssignmentStatus.SUGGESTED
                )
                result.assignments[guess.column_index] = ColumnAssignment(
                    column_index=guess.column_index,
                    header=guess.header,
                    guess=guess,
                    status=status,
                )
                taken_fields.add(guess.field)
                taken_columns.add(guess.column_index)


def find_best_mappings(
    fields: Optional[Iterable[Any]],
    headers: Sequence[Any],
    sample_rows: Optional[Sequence[Sequence[Any]]] = None,
    weights: Optional[ScoringWeights] = None,
    overrides: Optional[Mapping[OverrideKey, Any]] = None,
    settings=None,
) -> MappingResult:
    """Score and assign in one call"""
    settings = settings or default_settings
    candidates = build_candidates(headers, sample_rows, settings.sample_size)
    scorer = FieldScorer(weights=weights, settings=settings)
    return MappingAssigner(scorer, settings=settings).assign(fields, candidates, overrides)


@dataclass
class MappingIssue:
    type: str
    message: str
    severity: str
    field: Optional[CanonicalField] = None
    column: Optional[int] = None


@dataclass
class MappingQuality:
    """Aggregate quality of a mapping"""
    score: float
    coverage: float
    required_coverage: float
    average_confidence: float
    issues: List[MappingIssue] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)


def _as_guesses(mapping: Union[MappingResult, Mapping[Any, Any]]) -> Dict[Any, FieldGuess]:
    if isinstance(mapping, MappingResult):
        return {index: a.guess for index, a in mapping.assignments.items()}
    guesses = {}
    for column, value in mapping.items():
        guesses[column] = value.guess if isinstance(value, ColumnAssignment) else value
    return guesses


def validate_mapping_quality(
    mapping: Union[MappingResult, Mapping[Any, Any]],
    required_fields: Iterable[Any] = DEFAULT_REQUIRED_FIELDS,
    low_confidence_threshold: Optional[float] = None,
) -> MappingQuality:
    """Score coverage and confidence of a mapping and list its issues"""
    threshold = (
        default_settings.low_confidence_threshold
        if low_confidence_threshold is None
        else low_confidence_threshold
    )
    required = _parse_fields(required_fields)
    guesses = _as_guesses(mapping)
    mapped_fields = [guess.field for guess in guesses.values()]
    issues: List[MappingIssue] = []

    for required_field in required:
        if required_field not in mapped_fields:
            issues.append(MappingIssue(
                type="missing_required",
                field=required_field,
                message=f"Required field '{required_field.value}' is not mapped",
                severity="error",
            ))

    for column, guess in sorted(guesses.items(), key=lambda item: str(item[0])):
        if guess.confidence < threshold:
            issues.append(MappingIssue(
                type="low_confidence",
                field=guess.field,
                column=column,
                message=f"Low mapping confidence ({guess.confidence:.0%})",
                severity="warning",
            ))

    for canonical in sorted(set(mapped_fields), key=lambda f: FIELD_PRIORITY[f]):
        count = mapped_fields.count(canonical)
        if count > 1:
            issues.append(MappingIssue(
                type="duplicate_mapping",
                field=canonical,
                message=f"Field '{canonical.value}' is mapped to {count} columns",
                severity="error",
            ))

    confidences = np.array([guess.confidence for guess in guesses.values()], dtype=float)
    coverage = len(set(mapped_fields)) / len(guesses) if guesses else 0.0
    required_coverage = (
        sum(1 for f in required if f in mapped_fields) / len(required) if required else 1.0
    )
    average_confidence = float(confidences.mean()) if confidences.size else 0.0

    errors = sum(1 for issue in issues if issue.severity == "error")
    warnings = sum(1 for issue in issues if issue.severity == "warning")
    raw_score = coverage * 0.4 + required_coverage * 0.4 + average_confidence * 0.2
    score = float(np.clip(raw_score - errors * 0.3 - warnings * 0.1, 0.0, 1.0))

    return MappingQuality(
        score=score,
        coverage=coverage,
        required_coverage=required_coverage,
        average_confidence=average_confidence,
        issues=issues,
    )
