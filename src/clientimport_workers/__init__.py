"""
Client Import Workers - column mapping inference and client record import

This package provides workers for tabular client imports:
- Column mapping inference for noisy, mis-encoded headers
- Value transformation into canonical client records
- Field and cross-field validation
- Identity-stable duplicate detection
"""

__version__ = "1.0.0"
__author__ = "Client Import Team"

from .errors import ImportCoreError, UnknownFieldError, InvalidConfigurationError
from .mapping import (
    CanonicalField,
    MappingResult,
    MappingTemplate,
    find_best_mappings,
    guess_column,
    validate_mapping_quality,
)
from .validation import (
    CanonicalRecord,
    ImportPipeline,
    RecordValidator,
    RowTransformer,
    dedupe_import,
    validate_batch,
)

__all__ = [
    "ImportCoreError",
    "UnknownFieldError",
    "InvalidConfigurationError",
    "CanonicalField",
    "MappingResult",
    "MappingTemplate",
    "find_best_mappings",
    "guess_column",
    "validate_mapping_quality",
    "CanonicalRecord",
    "ImportPipeline",
    "RecordValidator",
    "RowTransformer",
    "dedupe_import",
    "validate_batch",
]
