"""
Data model for column mapping inference

Canonical fields, normalized headers, column candidates, per-pair guesses
and the conflict-free mapping produced by the assigner.
"""
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, List, Optional, Tuple, Any

from ..errors import UnknownFieldError, InvalidConfigurationError


class CanonicalField(str, Enum):
    """Closed set of domain attributes every import maps onto"""
    AMS_ID = "amsId"
    FIRST_NAME = "firstName"
    LAST_NAME = "lastName"
    TITLE = "title"
    GENDER = "gender"
    BIRTH_DATE = "birthDate"
    SV_NUMBER = "svNumber"
    PHONE = "phone"
    EMAIL = "email"
    ADDRESS = "address"
    ZIP = "zip"
    CITY = "city"
    COUNTRY_CODE = "countryCode"
    AREA_CODE = "areaCode"
    PHONE_NUMBER = "phoneNumber"
    AMS_BOOKING_DATE = "amsBookingDate"
    ENTRY_DATE = "entryDate"
    EXIT_DATE = "exitDate"
    AMS_AGENT_LAST_NAME = "amsAgentLastName"
    AMS_AGENT_FIRST_NAME = "amsAgentFirstName"
    AMS_ADVISOR = "amsAdvisor"
    NOTE = "note"
    INTERNAL_CODE = "internalCode"
    STATUS = "status"
    PRIORITY = "priority"
    RESULT = "result"
    ANGEBOT = "angebot"
    FOLLOW_UP = "followUp"
    LAST_ACTIVITY = "lastActivity"
    ASSIGNED_TO = "assignedTo"

    @classmethod
    def parse(cls, value: Any) -> "CanonicalField":
        """Resolve a member or its string value; anything else is a caller error"""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            pass
        if isinstance(value, str) and value.upper() in cls.__members__:
            return cls.__members__[value.upper()]
        raise UnknownFieldError(value)

    def __str__(self) -> str:
        return self.value


# Required identity fields win ties during assignment
IDENTITY_FIELDS: Tuple[CanonicalField, ...] = (
    CanonicalField.AMS_ID,
    CanonicalField.FIRST_NAME,
    CanonicalField.LAST_NAME,
)

DATE_FIELDS: Tuple[CanonicalField, ...] = (
    CanonicalField.BIRTH_DATE,
    CanonicalField.AMS_BOOKING_DATE,
    CanonicalField.ENTRY_DATE,
    CanonicalField.EXIT_DATE,
    CanonicalField.FOLLOW_UP,
    CanonicalField.LAST_ACTIVITY,
)

FIELD_PRIORITY: Dict[CanonicalField, int] = {
    **{f: i for i, f in enumerate(IDENTITY_FIELDS)},
    **{
        f: len(IDENTITY_FIELDS) + i
        for i, f in enumerate(f for f in CanonicalField if f not in IDENTITY_FIELDS)
    },
}


@dataclass(frozen=True)
class ScoringWeights:
    """Weights of the individual scoring signals"""
    exact_alias: float = 1.0
    token_overlap: float = 0.7
    fuzzy_match: float = 0.4
    content_hint: float = 0.6
    position_hint: float = 0.2

    def __post_init__(self):
        for name, value in asdict(self).items():
            if value < 0:
                raise InvalidConfigurationError(
                    f"Scoring weight {name} must not be negative", setting=name
                )

    @classmethod
    def from_settings(cls, settings) -> "ScoringWeights":
        return cls(**settings.scoring_weights)

    def replace(self, **overrides: float) -> "ScoringWeights":
        return ScoringWeights(**{**asdict(self), **overrides})


DEFAULT_SCORING_WEIGHTS = ScoringWeights()


@dataclass(frozen=True)
class RawHeader:
    """A header derived once from the parser output; immutable"""
    original: str
    repaired: str
    normalized: str
    display: str
    tokens: Tuple[str, ...] = ()
    repairs: Tuple[str, ...] = ()

    @classmethod
    def empty(cls, original: Any = "") -> "RawHeader":
        return cls(
            original=original if isinstance(original, str) else "",
            repaired="",
            normalized="",
            display="",
        )

    @property
    def is_empty(self) -> bool:
        return not self.normalized


@dataclass(frozen=True)
class ColumnCandidate:
    """A source column: position, normalized header and a few sample values"""
    index: int
    raw_header: RawHeader
    sample_values: Tuple[str, ...] = ()

    @property
    def header(self) -> str:
        return self.raw_header.original

    @property
    def normalized_header(self) -> str:
        return self.raw_header.normalized


@dataclass
class FieldSignals:
    """Individual scoring signals of one (field, column) pair"""
    exact_alias: bool = False
    token_overlap: float = 0.0
    fuzzy_score: float = 0.0
    content_boost: float = 0.0
    position_boost: float = 0.0


@dataclass
class FieldGuess:
    """Confidence that a column represents a field, with its reason trail"""
    field: CanonicalField
    confidence: float
    column_index: Optional[int] = None
    header: str = ""
    signals: FieldSignals = field(default_factory=FieldSignals)
    reasons: List[str] = field(default_factory=list)
    content_hints: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field.value,
            "confidence": round(self.confidence, 4),
            "column_index": self.column_index,
            "header": self.header,
            "signals": asdict(self.signals),
            "reasons": list(self.reasons),
            "content_hints": list(self.content_hints),
        }


class AssignmentStatus(str, Enum):
    """How a column got its field"""
    OVERRIDE = "override"
    AUTO = "auto"
    SUGGESTED = "suggested"


@dataclass
class ColumnAssignment:
    """A column bound to exactly one field"""
    column_index: int
    header: str
    guess: FieldGuess
    status: AssignmentStatus

    @property
    def field(self) -> CanonicalField:
        return self.guess.field

    @property
    def confidence(self) -> float:
        return self.guess.confidence


@dataclass
class MappingResult:
    """Conflict-free column to field mapping

    Each field and each column appears at most once in ``assignments``.
    """
    assignments: Dict[int, ColumnAssignment] = field(default_factory=dict)
    candidates: Dict[int, List[FieldGuess]] = field(default_factory=dict)
    unmapped_columns: List[int] = field(default_factory=list)
    unmapped_fields: List[CanonicalField] = field(default_factory=list)
    headers: List[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.assignments)

    def __contains__(self, column_index: int) -> bool:
        return column_index in self.assignments

    def get(self, column_index: int) -> Optional[ColumnAssignment]:
        return self.assignments.get(column_index)

    def column_to_field(self) -> Dict[int, CanonicalField]:
        return {index: a.field for index, a in sorted(self.assignments.items())}

    def field_to_column(self) -> Dict[CanonicalField, int]:
        return {a.field: index for index, a in sorted(self.assignments.items())}

    def needs_confirmation(self) -> List[ColumnAssignment]:
        return [
            a for _, a in sorted(self.assignments.items())
            if a.status == AssignmentStatus.SUGGESTED
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assignments": {
                str(index): {
                    "header": a.header,
                    "status": a.status.value,
                    **a.guess.to_dict(),
                }
                for index, a in sorted(self.assignments.items())
            },
            "unmapped_columns": list(self.unmapped_columns),
            "unmapped_fields": [f.value for f in self.unmapped_fields],
        }
