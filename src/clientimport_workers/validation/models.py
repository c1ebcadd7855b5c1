"""
Records, issues and results of the transform/validate/dedupe stages
"""
import re
import dataclasses
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from ..mapping.models import CanonicalField

ExtensionValue = Union[str, int, float, bool, None]


class Gender(str, Enum):
    MALE = "M"
    FEMALE = "F"
    DIVERSE = "D"


class Priority(str, Enum):
    NIEDRIG = "niedrig"
    NORMAL = "normal"
    HOCH = "hoch"
    DRINGEND = "dringend"


class Status(str, Enum):
    OFFEN = "offen"
    IN_BEARBEITUNG = "inBearbeitung"
    TERMIN_VEREINBART = "terminVereinbart"
    WARTET_RUECKMELDUNG = "wartetRueckmeldung"
    DOKUMENTE_OFFEN = "dokumenteOffen"
    FOERDER_ABKLAERUNG = "foerderAbklaerung"
    ZUGEWIESEN_EXTERN = "zugewiesenExtern"
    RUHT = "ruht"
    ERLEDIGT = "erledigt"
    NICHT_ERREICHBAR = "nichtErreichbar"
    ABGEBROCHEN = "abgebrochen"


class ContactResult(str, Enum):
    INFOGESPRAECH = "infogespraech"
    TERMIN_FIXIERT = "terminFixiert"
    NACHRICHT_HINTERLASSEN = "nachrichtHinterlassen"
    RUECKRUF_ZUGESAGT = "rueckrufZugesagt"
    KEINE_REAKTION = "keineReaktion"
    ABLEHNUNG = "ablehnung"
    MASSNAHME_BEENDET = "massnahmeBeendet"
    VERMITTELT = "vermittelt"
    SONSTIGES = "sonstiges"
    BAM = "bam"
    BEWERBUNGSBUERO = "bewerbungsbuero"
    LEBENSLAUF = "lebenslauf"
    MAILAUSTAUSCH = "mailaustausch"
    GESUNDHEITLICHE_MASSNAHME = "gesundheitlicheMassnahme"
    UEBERGABE_AN_AMS = "uebergabeAnAMS"
    TERMIN_NICHT_EINGEHALTEN = "terminNichtEingehalten"
    KEIN_INTERESSE = "keinInteresse"


class Angebot(str, Enum):
    BAM = "BAM"
    LL_B_PLUS = "LL/B+"
    BWB = "BwB"
    NB = "NB"


class Severity(str, Enum):
    """Severity levels for validation issues"""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


def attribute_name(canonical_field: CanonicalField) -> str:
    """snake_case attribute for a camelCase canonical field"""
    return re.sub(r"([A-Z])", r"_\1", canonical_field.value).lower()


@dataclass
class CanonicalRecord:
    """One imported client with a fixed attribute per canonical field

    Columns that are not canonical fields live in ``extensions``.
    """
    ams_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    title: Optional[str] = None
    gender: Optional[Any] = None
    birth_date: Optional[Any] = None
    sv_number: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    zip: Optional[str] = None
    city: Optional[str] = None
    country_code: Optional[str] = None
    area_code: Optional[str] = None
    phone_number: Optional[str] = None
    ams_booking_date: Optional[Any] = None
    entry_date: Optional[Any] = None
    exit_date: Optional[Any] = None
    ams_agent_last_name: Optional[str] = None
    ams_agent_first_name: Optional[str] = None
    ams_advisor: Optional[str] = None
    note: Optional[str] = None
    internal_code: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    result: Optional[str] = None
    angebot: Optional[str] = None
    follow_up: Optional[Any] = None
    last_activity: Optional[Any] = None
    assigned_to: Optional[str] = None
    name_placeholder: bool = False
    extensions: Dict[str, ExtensionValue] = field(default_factory=dict)

    def get(self, canonical_field: Any) -> Any:
        return getattr(self, attribute_name(CanonicalField.parse(canonical_field)))

    def set(self, canonical_field: Any, value: Any) -> None:
        setattr(self, attribute_name(CanonicalField.parse(canonical_field)), value)

    def is_set(self, canonical_field: Any) -> bool:
        value = self.get(canonical_field)
        return value is not None and value != ""

    def to_dict(self, include_empty: bool = False) -> Dict[str, Any]:
        """Canonical-key dictionary; enum values rendered as their value"""
        data: Dict[str, Any] = {}
        for canonical_field in CanonicalField:
            value = self.get(canonical_field)
            if value is None and not include_empty:
                continue
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, date):
                value = value.isoformat()
            data[canonical_field.value] = value
        if self.name_placeholder:
            data["namePlaceholder"] = True
        if self.extensions:
            data["extensions"] = dict(self.extensions)
        return data

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CanonicalRecord":
        """Build a record from canonical keys; unknown keys become extensions"""
        record = cls()
        for key, value in data.items():
            if key == "extensions" and isinstance(value, Mapping):
                record.extensions.update(value)
                continue
            if key in ("namePlaceholder", "name_placeholder"):
                record.name_placeholder = bool(value)
                continue
            try:
                canonical_field = CanonicalField.parse(key)
            except ValueError:
                record.extensions[str(key)] = value
                continue
            record.set(canonical_field, value)
        return record

    @classmethod
    def coerce(cls, row: Union["CanonicalRecord", Mapping[str, Any]]) -> "CanonicalRecord":
        return row if isinstance(row, cls) else cls.from_mapping(row)


@dataclass
class ValidationIssue:
    """A problem found in one row"""
    severity: Severity
    row: int
    message: str
    field: Optional[str] = None
    value: Any = None
    suggestion: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity.value,
            "row": self.row,
            "field": self.field,
            "message": self.message,
            "value": self.value if isinstance(self.value, (str, int, float, bool, type(None))) else str(self.value),
            "suggestion": self.suggestion,
        }


@dataclass
class ValidationStats:
    total_rows: int = 0
    valid_rows: int = 0
    warning_rows: int = 0
    error_rows: int = 0


@dataclass
class ValidationResult:
    """Issues and row statistics of a validated batch"""
    valid: bool
    issues: List[ValidationIssue] = field(default_factory=list)
    stats: ValidationStats = field(default_factory=ValidationStats)
    cancelled: bool = False

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.ERROR]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]

    def issues_for_row(self, row: int) -> List[ValidationIssue]:
        return [i for i in self.issues if i.row == row]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "cancelled": self.cancelled,
            "stats": {
                "total_rows": self.stats.total_rows,
                "valid_rows": self.stats.valid_rows,
                "warning_rows": self.stats.warning_rows,
                "error_rows": self.stats.error_rows,
            },
            "issues": [issue.to_dict() for issue in self.issues],
        }


@dataclass
class QuickCheck:
    """Outcome of validating a single value"""
    valid: bool
    severity: Optional[Severity] = None
    message: Optional[str] = None
    suggestion: Optional[str] = None


@dataclass
class FixSuggestion:
    """A bulk fix proposed for a recurring problem"""
    type: str
    description: str
    field: Optional[str] = None
    affected_rows: List[int] = dataclasses.field(default_factory=list)
    action: Dict[str, Any] = dataclasses.field(default_factory=dict)


@dataclass
class TransformOutcome:
    """Result of transforming one source row"""
    row_index: int
    record: Optional[CanonicalRecord]
    errors: List[str] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.record is None


@dataclass
class FailedRow:
    row_index: int
    data: Any
    errors: List[str]


@dataclass
class TransformStats:
    total: int = 0
    successful: int = 0
    failed: int = 0
    processing_time_ms: int = 0


@dataclass
class BatchTransformResult:
    """Transformed records in source order plus rows that could not be used"""
    successful: List[CanonicalRecord] = field(default_factory=list)
    row_indices: List[int] = field(default_factory=list)
    failed: List[FailedRow] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)
    stats: TransformStats = field(default_factory=TransformStats)


@dataclass
class DuplicateEntry:
    """A row whose dedupe key was already taken by an earlier row"""
    row_index: int
    duplicate_of: int
    key: str
    reason: str


@dataclass
class DedupeResult:
    deduped_rows: List[Any] = field(default_factory=list)
    duplicates: List[DuplicateEntry] = field(default_factory=list)
    key_by_index: List[str] = field(default_factory=list)

    @property
    def duplicate_count(self) -> int:
        return len(self.duplicates)
