"""
Duplicate detection for imported client rows

Every row gets a deterministic dedupe key: the external identifier when one
is present, otherwise folded name plus birth date, otherwise a content hash.
The first row with a key is canonical; later rows are reported as
duplicates of it and never dropped silently.
"""
import hashlib
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import structlog

from ..mapping.models import CanonicalField
from ..mapping.normalizer import fold_for_key
from ..utils.dates import to_iso_date
from .field_normalizers import clean_text
from .models import CanonicalRecord, DedupeResult, DuplicateEntry

logger = structlog.get_logger(__name__)

DEFAULT_ID_FIELDS = ("amsId", "id")

# Import-relevant fields hashed when neither id nor name is available
HASH_FIELDS = tuple(sorted((
    "email", "phone", "svNumber", "zip", "city", "address", "birthDate", "note",
)))

KEY_PREFIX_NAME = "name:"
KEY_PREFIX_HASH = "hash:"

RowLike = Union[CanonicalRecord, Mapping[str, Any]]


def _row_value(row: RowLike, name: str) -> Any:
    """Value of a canonical or extension column of a record or mapping"""
    if isinstance(row, CanonicalRecord):
        try:
            return row.get(name)
        except ValueError:
            return row.extensions.get(name)
    return row.get(name)


def _key_text(value: Any) -> str:
    if isinstance(value, Enum):
        value = value.value
    return clean_text(value) or ""


class DedupeKeyGenerator:
    """Builds deterministic dedupe keys with a fixed strategy order"""

    def __init__(self, id_fields: Sequence[str] = DEFAULT_ID_FIELDS):
        self.id_fields = tuple(id_fields)
        self.key_strategies: List[Tuple[str, Callable[[RowLike], Optional[str]]]] = [
            ("external_id", self._external_id_key),
            ("name_birth_date", self._name_key),
        ]

    def _external_id_key(self, row: RowLike) -> Optional[str]:
        for id_field in self.id_fields:
            value = _key_text(_row_value(row, id_field))
            if value:
                return value.upper()
        return None

    def _name_key(self, row: RowLike) -> Optional[str]:
        if isinstance(row, CanonicalRecord) and row.name_placeholder:
            return None
        first = fold_for_key(_key_text(_row_value(row, CanonicalField.FIRST_NAME.value)))
        last = fold_for_key(_key_text(_row_value(row, CanonicalField.LAST_NAME.value)))
        if not first and not last:
            return None
        birth_date = to_iso_date(_row_value(row, CanonicalField.BIRTH_DATE.value)) or ""
        return f"{KEY_PREFIX_NAME}{first}|{last}|{birth_date}"

    def hash_row(self, row: RowLike) -> str:
        """Short sha256 over the import-relevant fields in sorted order"""
        parts = []
        for name in HASH_FIELDS:
            value = _row_value(row, name)
            if name == CanonicalField.BIRTH_DATE.value:
                text = to_iso_date(value) or _key_text(value)
            else:
                text = _key_text(value).lower()
            parts.append(f"{name}={text}")
        return hashlib.sha256("|".join(parts).encode()).hexdigest()[:16]

    def build_key(self, row: RowLike) -> Tuple[str, str]:
        """(key, reason) for a row; the hash strategy always applies"""
        for reason, strategy in self.key_strategies:
            key = strategy(row)
            if key:
                return key, reason
        return f"{KEY_PREFIX_HASH}{self.hash_row(row)}", "content_hash"


def dedupe_import(
    rows: Sequence[RowLike],
    key_generator: Optional[DedupeKeyGenerator] = None,
    row_indices: Optional[Sequence[int]] = None,
) -> DedupeResult:
    """Split rows into first occurrences and duplicates, keeping input order

    ``row_indices`` maps positions in ``rows`` to source row indices for
    rows that were filtered before deduplication.
    """
    key_generator = key_generator or DedupeKeyGenerator()
    first_seen: Dict[str, int] = {}
    result = DedupeResult()

    for position, row in enumerate(rows):
        row_index = row_indices[position] if row_indices is not None else position
        key, reason = key_generator.build_key(row)
        result.key_by_index.append(key)
        if key in first_seen:
            result.duplicates.append(DuplicateEntry(
                row_index=row_index,
                duplicate_of=first_seen[key],
                key=key,
                reason=reason,
            ))
        else:
            first_seen[key] = row_index
            result.deduped_rows.append(row)

    logger.info(
        "Deduplication completed",
        total_rows=len(rows),
        unique_rows=len(result.deduped_rows),
        duplicate_count=result.duplicate_count,
    )
    return result
