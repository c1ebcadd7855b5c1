"""
Import pipeline

Runs the full import of a tabular source:

1. Mapping: template overrides, explicit overrides, scoring and assignment
2. Transformation: rows to canonical records (optionally in parallel)
3. Validation: field and cross-field rules with progress and cancellation
4. Deduplication: identity keys over the transformed records, in source order
"""
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

import structlog

from ..config import settings as global_settings
from ..mapping.assigner import MappingAssigner, MappingQuality, validate_mapping_quality
from ..mapping.models import MappingResult, ScoringWeights
from ..mapping.scorer import FieldScorer, build_candidates
from ..mapping.templates import MappingTemplate, TransformOptions
from .duplicate_detection import DedupeKeyGenerator, dedupe_import
from .models import (
    BatchTransformResult,
    CanonicalRecord,
    DedupeResult,
    FailedRow,
    ValidationIssue,
    ValidationResult,
)
from .row_transformer import RowTransformer
from .validator import RecordValidator

logger = structlog.get_logger(__name__)

# Share of overall progress per stage
TRANSFORM_PROGRESS = 0.5
VALIDATION_PROGRESS = 0.4


@dataclass
class ImportStats:
    total_rows: int = 0
    transformed: int = 0
    failed: int = 0
    duplicates: int = 0
    error_rows: int = 0
    warning_rows: int = 0
    processing_time_ms: int = 0


@dataclass
class ImportResult:
    """Everything an import produced, in source row order"""
    mapping: MappingResult
    records: List[CanonicalRecord] = field(default_factory=list)
    row_indices: List[int] = field(default_factory=list)
    failed: List[FailedRow] = field(default_factory=list)
    transform_issues: List[ValidationIssue] = field(default_factory=list)
    validation: Optional[ValidationResult] = None
    dedupe: Optional[DedupeResult] = None
    quality: Optional[MappingQuality] = None
    stats: ImportStats = field(default_factory=ImportStats)

    @property
    def unique_records(self) -> List[CanonicalRecord]:
        return list(self.dedupe.deduped_rows) if self.dedupe else list(self.records)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mapping": self.mapping.to_dict(),
            "quality": {
                "score": self.quality.score,
                "coverage": self.quality.coverage,
                "required_coverage": self.quality.required_coverage,
                "average_confidence": self.quality.average_confidence,
                "issues": [
                    {
                        "type": issue.type,
                        "severity": issue.severity,
                        "message": issue.message,
                        "field": issue.field.value if issue.field else None,
                        "column": issue.column,
                    }
                    for issue in self.quality.issues
                ],
            } if self.quality else None,
            "records": [
                {"row_index": index, **record.to_dict()}
                for index, record in zip(self.row_indices, self.records)
            ],
            "failed": [{"row_index": f.row_index, "errors": f.errors} for f in self.failed],
            "transform_issues": [issue.to_dict() for issue in self.transform_issues],
            "validation": self.validation.to_dict() if self.validation else None,
            "duplicates": [
                {
                    "row_index": d.row_index,
                    "duplicate_of": d.duplicate_of,
                    "key": d.key,
                    "reason": d.reason,
                }
                for d in (self.dedupe.duplicates if self.dedupe else [])
            ],
            "stats": {
                "total_rows": self.stats.total_rows,
                "transformed": self.stats.transformed,
                "failed": self.stats.failed,
                "duplicates": self.stats.duplicates,
                "error_rows": self.stats.error_rows,
                "warning_rows": self.stats.warning_rows,
                "processing_time_ms": self.stats.processing_time_ms,
            },
        }


class ImportPipeline:
    """Mapping, transformation, validation and deduplication of one import"""

    def __init__(
        self,
        settings=None,
        template: Optional[MappingTemplate] = None,
        weights: Optional[ScoringWeights] = None,
        parallel: bool = False,
        max_workers: Optional[int] = None,
    ):
        self.settings = settings or global_settings
        self.template = template
        self.parallel = parallel
        self.max_workers = max_workers
        self.scorer = FieldScorer(weights=weights, settings=self.settings)
        self.assigner = MappingAssigner(self.scorer, settings=self.settings)
        self.key_generator = DedupeKeyGenerator()
        if template is not None:
            self.transform_options = template.transform_options
        else:
            self.transform_options = TransformOptions(
                date_format=self.settings.date_format,
                missing_name_policy=self.settings.missing_name_policy,
            )

    def _overrides(
        self,
        headers: Sequence[Any],
        overrides: Optional[Mapping[Any, Any]],
    ) -> Dict[Any, Any]:
        """Explicit overrides first so they win over template columns"""
        combined: Dict[Any, Any] = dict(overrides or {})
        if self.template is not None:
            for index, canonical in self.template.overrides_for(headers).items():
                combined.setdefault(index, canonical)
        return combined

    def suggest_mapping(
        self,
        headers: Sequence[Any],
        sample_rows: Optional[Sequence[Sequence[Any]]] = None,
        fields: Optional[Iterable[Any]] = None,
        overrides: Optional[Mapping[Any, Any]] = None,
    ) -> MappingResult:
        candidates = build_candidates(headers, sample_rows, self.settings.sample_size)
        return self.assigner.assign(fields, candidates, self._overrides(headers, overrides))

    def run(
        self,
        headers: Sequence[Any],
        rows: Sequence[Any],
        overrides: Optional[Mapping[Any, Any]] = None,
        mapping: Optional[MappingResult] = None,
        on_progress: Optional[Callable[[float], None]] = None,
        cancel_check: Optional[Callable[[], bool]] = None,
    ) -> ImportResult:
        """Run all stages; ``mapping`` skips inference when already confirmed"""
        start_time = time.time()
        rows = list(rows)
        logger.info("Import started", rows=len(rows), columns=len(headers),
                    template_id=self.template.id if self.template else None)

        if mapping is None:
            samples = [
                [row.get(header) for header in headers] if isinstance(row, Mapping) else row
                for row in rows[:self.settings.sample_size]
            ]
            mapping = self.suggest_mapping(headers, samples, overrides=overrides)
        quality = validate_mapping_quality(mapping)
        logger.info("Mapping stage completed", mapped=len(mapping), quality_score=quality.score,
                    needs_confirmation=len(mapping.needs_confirmation()))

        transformer = RowTransformer(mapping, self.transform_options, headers=headers, settings=self.settings)
        transformed: BatchTransformResult = transformer.transform_rows(
            rows,
            on_progress=(
                (lambda done, total: on_progress(TRANSFORM_PROGRESS * done / total))
                if on_progress else None
            ),
            parallel=self.parallel,
            max_workers=self.max_workers,
        )

        validator = RecordValidator(
            settings=self.settings,
            date_format=self.transform_options.date_format,
        )
        validation = validator.validate_batch(
            transformed.successful,
            on_progress=(
                (lambda fraction: on_progress(TRANSFORM_PROGRESS + VALIDATION_PROGRESS * fraction))
                if on_progress else None
            ),
            cancel_check=cancel_check,
            row_numbers=[index + 1 for index in transformed.row_indices],
        )

        result = ImportResult(
            mapping=mapping,
            records=transformed.successful,
            row_indices=transformed.row_indices,
            failed=transformed.failed,
            transform_issues=transformed.warnings,
            validation=validation,
            quality=quality,
        )
        if validation.cancelled:
            logger.info("Import cancelled", validated_rows=validation.stats.total_rows)
        else:
            result.dedupe = dedupe_import(transformed.successful, self.key_generator, transformed.row_indices)
            if on_progress:
                on_progress(1.0)

        result.stats = ImportStats(
            total_rows=len(rows),
            transformed=len(transformed.successful),
            failed=len(transformed.failed),
            duplicates=result.dedupe.duplicate_count if result.dedupe else 0,
            error_rows=validation.stats.error_rows,
            warning_rows=validation.stats.warning_rows,
            processing_time_ms=int((time.time() - start_time) * 1000),
        )
        if self.template is not None:
            self.template.record_usage()
        logger.info(
            "Import completed",
            total_rows=result.stats.total_rows,
            transformed=result.stats.transformed,
            failed=result.stats.failed,
            duplicates=result.stats.duplicates,
            error_rows=result.stats.error_rows,
            processing_time_ms=result.stats.processing_time_ms,
        )
        return result
