"""
Record transformation, validation and deduplication

This package turns mapped rows into canonical client records:
- Field value normalization (dates, phones, gender, enumerations)
- Row transformation with custom fields and missing-name policy
- Field and cross-field validation with batch statistics
- Identity-stable duplicate detection
- The end-to-end import pipeline
"""

from .models import (
    Gender,
    Priority,
    Status,
    ContactResult,
    Angebot,
    Severity,
    CanonicalRecord,
    ValidationIssue,
    ValidationStats,
    ValidationResult,
    QuickCheck,
    FixSuggestion,
    TransformOutcome,
    FailedRow,
    TransformStats,
    BatchTransformResult,
    DuplicateEntry,
    DedupeResult,
)
from .field_normalizers import PhoneParts, build_phone, normalize_gender
from .row_transformer import RowTransformer, create_transform_summary
from .validator import RecordValidator, suggest_fixes, validate_batch
from .duplicate_detection import DedupeKeyGenerator, dedupe_import
from .pipeline import ImportPipeline, ImportResult, ImportStats

__all__ = [
    "Gender",
    "Priority",
    "Status",
    "ContactResult",
    "Angebot",
    "Severity",
    "CanonicalRecord",
    "ValidationIssue",
    "ValidationStats",
    "ValidationResult",
    "QuickCheck",
    "FixSuggestion",
    "TransformOutcome",
    "FailedRow",
    "TransformStats",
    "BatchTransformResult",
    "DuplicateEntry",
    "DedupeResult",
    "PhoneParts",
    "build_phone",
    "normalize_gender",
    "RowTransformer",
    "create_transform_summary",
    "RecordValidator",
    "suggest_fixes",
    "validate_batch",
    "DedupeKeyGenerator",
    "dedupe_import",
    "ImportPipeline",
    "ImportResult",
    "ImportStats",
]
