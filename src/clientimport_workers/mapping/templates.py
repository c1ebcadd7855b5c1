"""
Mapping templates

A template remembers the column mapping and transform options of a known
export layout so that a later import with the same headers can reuse them.
Templates are plain values; storing them is up to the caller, which round
trips them through ``to_dict``/``from_dict``.
"""
import hashlib
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog

from ..config import settings
from ..errors import InvalidConfigurationError
from ..utils.dates import DATE_FORMATS
from .fuzzy import token_overlap
from .models import CanonicalField, MappingResult
from .normalizer import normalize_header

logger = structlog.get_logger(__name__)

PHONE_FORMAT_SPLIT = "split"
PHONE_FORMAT_COMBINED = "combined"
PHONE_FORMATS = (PHONE_FORMAT_SPLIT, PHONE_FORMAT_COMBINED)

CUSTOM_FIELD_TYPES = ("text", "number", "date", "boolean")
MISSING_NAME_POLICIES = ("placeholder", "reject")


@dataclass(frozen=True)
class CustomFieldSpec:
    """A non-canonical column carried into a record's extensions"""
    name: str
    type: str = "text"
    required: bool = False
    label: Optional[str] = None

    def __post_init__(self):
        if self.type not in CUSTOM_FIELD_TYPES:
            raise InvalidConfigurationError(
                f"Unknown custom field type: {self.type}", setting="custom_fields"
            )


@dataclass
class TransformOptions:
    """Per-import options for value conversion"""
    date_format: Optional[str] = None
    phone_format: str = PHONE_FORMAT_SPLIT
    gender_mapping: Dict[str, str] = field(default_factory=dict)
    custom_fields: List[CustomFieldSpec] = field(default_factory=list)
    missing_name_policy: Optional[str] = None

    def __post_init__(self):
        if self.date_format is None:
            self.date_format = settings.date_format
        if self.date_format not in DATE_FORMATS:
            raise InvalidConfigurationError(
                f"Unknown date format: {self.date_format}", setting="date_format"
            )
        if self.phone_format not in PHONE_FORMATS:
            raise InvalidConfigurationError(
                f"Unknown phone format: {self.phone_format}", setting="phone_format"
            )
        if self.missing_name_policy is None:
            self.missing_name_policy = settings.missing_name_policy
        if self.missing_name_policy not in MISSING_NAME_POLICIES:
            raise InvalidConfigurationError(
                f"Unknown missing name policy: {self.missing_name_policy}",
                setting="missing_name_policy",
            )
        self.custom_fields = [
            spec if isinstance(spec, CustomFieldSpec) else CustomFieldSpec(**spec)
            for spec in self.custom_fields
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            **asdict(self),
            "custom_fields": [asdict(spec) for spec in self.custom_fields],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TransformOptions":
        data = data or {}
        return cls(
            date_format=data.get("date_format"),
            phone_format=data.get("phone_format", PHONE_FORMAT_SPLIT),
            gender_mapping=dict(data.get("gender_mapping") or {}),
            custom_fields=[CustomFieldSpec(**spec) for spec in data.get("custom_fields") or []],
            missing_name_policy=data.get("missing_name_policy"),
        )


def generate_template_id(name: str, headers: Iterable[str]) -> str:
    """Stable id from the template name and its header layout"""
    content = f"{name}_{'_'.join(sorted(normalize_header(h).normalized for h in headers))}"
    return f"tpl_{hashlib.md5(content.encode()).hexdigest()[:12]}"


@dataclass
class MappingTemplate:
    """A reusable header to field mapping with its transform options"""
    id: str
    name: str
    column_mappings: Dict[str, CanonicalField]
    transform_options: TransformOptions = field(default_factory=TransformOptions)
    header_patterns: List[str] = field(default_factory=list)
    description: Optional[str] = None
    usage_count: int = 0
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    last_used: Optional[str] = None

    def __post_init__(self):
        self.column_mappings = {
            header: CanonicalField.parse(value) for header, value in self.column_mappings.items()
        }
        if not self.header_patterns:
            self.header_patterns = list(self.column_mappings)

    def to_dict(self) -> Dict[str, Any]:
        """Convert template to dictionary for storage"""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "column_mappings": {header: f.value for header, f in self.column_mappings.items()},
            "transform_options": self.transform_options.to_dict(),
            "header_patterns": list(self.header_patterns),
            "usage_count": self.usage_count,
            "created_at": self.created_at,
            "last_used": self.last_used,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MappingTemplate":
        """Create template from dictionary"""
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description"),
            column_mappings=dict(data.get("column_mappings") or {}),
            transform_options=TransformOptions.from_dict(data.get("transform_options")),
            header_patterns=list(data.get("header_patterns") or []),
            usage_count=data.get("usage_count", 0),
            created_at=data.get("created_at") or datetime.now(timezone.utc).isoformat(),
            last_used=data.get("last_used"),
        )

    @classmethod
    def from_mapping(
        cls,
        name: str,
        mapping: MappingResult,
        transform_options: Optional[TransformOptions] = None,
        description: Optional[str] = None,
    ) -> "MappingTemplate":
        """Capture a confirmed mapping as a template"""
        column_mappings = {a.header: a.field for _, a in sorted(mapping.assignments.items()) if a.header}
        headers = [h for h in mapping.headers if h] or list(column_mappings)
        return cls(
            id=generate_template_id(name, headers),
            name=name,
            column_mappings=column_mappings,
            transform_options=transform_options or TransformOptions(),
            header_patterns=headers,
            description=description,
        )

    def overrides_for(self, headers: Sequence[Any]) -> Dict[int, CanonicalField]:
        """Column overrides for the given headers, matched on normalized form"""
        by_normalized = {
            normalize_header(header).normalized: canonical
            for header, canonical in self.column_mappings.items()
        }
        overrides: Dict[int, CanonicalField] = {}
        used = set()
        for index, header in enumerate(headers):
            canonical = by_normalized.get(normalize_header(header).normalized)
            if canonical is not None and canonical not in used:
                overrides[index] = canonical
                used.add(canonical)
        return overrides

    def match_score(self, headers: Sequence[Any]) -> float:
        """Jaccard overlap of normalized header sets"""
        own = {normalize_header(h).normalized for h in self.header_patterns} - {""}
        other = {normalize_header(h).normalized for h in headers} - {""}
        if not own or not other:
            return 0.0
        return token_overlap(own, other)

    def record_usage(self) -> None:
        self.usage_count += 1
        self.last_used = datetime.now(timezone.utc).isoformat()


def find_matching_template(
    templates: Iterable[MappingTemplate],
    headers: Sequence[Any],
    min_score: float = 0.5,
) -> Optional[Tuple[MappingTemplate, float]]:
    """Best template for a header layout, or None below ``min_score``"""
    matching = []
    for template in templates:
        similarity = template.match_score(headers)
        if similarity >= min_score:
            matching.append((template, similarity))

    if not matching:
        return None

    # Highest similarity, then most used
    best_template, best_similarity = max(matching, key=lambda item: (item[1], item[0].usage_count))
    logger.info(
        "Found matching template",
        template_id=best_template.id,
        similarity=round(best_similarity, 3),
        usage_count=best_template.usage_count,
    )
    return best_template, best_similarity
