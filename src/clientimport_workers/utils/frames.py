"""
pandas adapters

Bridges between DataFrames and the mapping/validation types for callers
that already hold their import in a DataFrame.
"""
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from ..config import settings
from ..mapping.models import CanonicalField, ColumnCandidate
from ..mapping.scorer import build_candidates
from ..validation.models import CanonicalRecord, ValidationIssue


def frame_rows(frame: pd.DataFrame) -> Tuple[List[str], List[list]]:
    """Headers and row lists of a DataFrame; NaN cells become None"""
    headers = [str(column) for column in frame.columns]
    cleaned = frame.astype(object)
    cleaned = cleaned.where(pd.notna(cleaned), None)
    return headers, cleaned.values.tolist()


def candidates_from_frame(frame: pd.DataFrame, sample_size: Optional[int] = None) -> List[ColumnCandidate]:
    """Column candidates with samples from the leading rows"""
    sample_size = sample_size or settings.sample_size
    headers, rows = frame_rows(frame.head(sample_size * 2))
    return build_candidates(headers, rows, sample_size)


def records_to_frame(records: Iterable[CanonicalRecord]) -> pd.DataFrame:
    """One row per record, canonical columns first, extensions flattened"""
    data = []
    for record in records:
        row = record.to_dict(include_empty=True)
        extensions = row.pop("extensions", {})
        row["namePlaceholder"] = record.name_placeholder
        row.update(extensions)
        data.append(row)
    columns = [f.value for f in CanonicalField] + ["namePlaceholder"]
    frame = pd.DataFrame(data)
    if frame.empty:
        return pd.DataFrame(columns=columns)
    extra = [column for column in frame.columns if column not in columns]
    return frame[columns + extra]


def issues_to_frame(issues: Iterable[ValidationIssue]) -> pd.DataFrame:
    columns = ["row", "severity", "field", "message", "value", "suggestion"]
    data = [issue.to_dict() for issue in issues]
    if not data:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(data)[columns]
