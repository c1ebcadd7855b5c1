"""
Column mapping inference

Infers which canonical field each column of a tabular import represents:
- Header normalization with encoding repair
- Alias dictionary with German/Austrian/English variants
- Fuzzy string matching
- Content detection on sample values
- Gated signal scoring and greedy conflict-free assignment
- Reusable mapping templates
"""

from .models import (
    CanonicalField,
    IDENTITY_FIELDS,
    DATE_FIELDS,
    ScoringWeights,
    DEFAULT_SCORING_WEIGHTS,
    RawHeader,
    ColumnCandidate,
    FieldSignals,
    FieldGuess,
    AssignmentStatus,
    ColumnAssignment,
    MappingResult,
)
from .normalizer import (
    normalize_header,
    display_header,
    headers_match,
    token_overlap_for_headers,
    fold_for_key,
)
from .aliases import ALIASES, AliasTable, get_aliases, find_field_by_alias
from .fuzzy import levenshtein, levenshtein_similarity, jaro, jaro_winkler, token_overlap, best_similarity
from .content_detector import (
    ContentHint,
    ContentSuggestion,
    ContentAnalysis,
    ContentCheck,
    detect_content_types,
    suggest_fields_from_content,
    analyze_content,
    validate_field_content,
)
from .scorer import FieldScorer, build_candidates, guess_column
from .assigner import (
    MappingAssigner,
    MappingQuality,
    MappingIssue,
    find_best_mappings,
    validate_mapping_quality,
)
from .templates import (
    CustomFieldSpec,
    TransformOptions,
    MappingTemplate,
    find_matching_template,
)

__all__ = [
    "CanonicalField",
    "IDENTITY_FIELDS",
    "DATE_FIELDS",
    "ScoringWeights",
    "DEFAULT_SCORING_WEIGHTS",
    "RawHeader",
    "ColumnCandidate",
    "FieldSignals",
    "FieldGuess",
    "AssignmentStatus",
    "ColumnAssignment",
    "MappingResult",
    "normalize_header",
    "display_header",
    "headers_match",
    "token_overlap_for_headers",
    "fold_for_key",
    "ALIASES",
    "AliasTable",
    "get_aliases",
    "find_field_by_alias",
    "levenshtein",
    "levenshtein_similarity",
    "jaro",
    "jaro_winkler",
    "token_overlap",
    "best_similarity",
    "ContentHint",
    "ContentSuggestion",
    "ContentAnalysis",
    "ContentCheck",
    "detect_content_types",
    "suggest_fields_from_content",
    "analyze_content",
    "validate_field_content",
    "FieldScorer",
    "build_candidates",
    "guess_column",
    "MappingAssigner",
    "MappingQuality",
    "MappingIssue",
    "find_best_mappings",
    "validate_mapping_quality",
    "CustomFieldSpec",
    "TransformOptions",
    "MappingTemplate",
    "find_matching_template",
]
