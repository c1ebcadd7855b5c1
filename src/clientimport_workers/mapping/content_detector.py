"""
Content detection for column mapping

Classifies sample values of a column against a fixed battery of patterns
(Austrian/German dates, e-mail addresses, phone numbers, postal codes, social
security numbers, AMS ids, personal names and street addresses). The result
boosts the score of fields whose expected content is observed and allows
suggestions purely from content when a header is unusable.
"""
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog

from ..config import settings
from ..utils.dates import parse_date
from .models import CanonicalField

logger = structlog.get_logger(__name__)

DATE = "date"
EMAIL = "email"
PHONE = "phone"
ZIP = "zip"
SV_NUMBER = "sv_number"
AMS_ID = "ams_id"
NAME = "name"
ADDRESS = "address"

CONTENT_TYPES = (DATE, EMAIL, PHONE, ZIP, SV_NUMBER, AMS_ID, NAME, ADDRESS)

_DATE_SHAPE = re.compile(
    r"^(?:\d{4}-\d{1,2}-\d{1,2}(?:[T ].*)?"
    r"|\d{4}/\d{1,2}/\d{1,2}"
    r"|\d{1,2}[./-]\d{1,2}[./-](?:\d{4}|\d{2})\.?(?:\s+\d{1,2}:\d{2}(?::\d{2})?)?)$"
)
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]{2,}$")
_PHONE_INTERNATIONAL = re.compile(r"^(?:\+|00)[1-9][\d\s/().-]{6,}$")
_PHONE_NATIONAL = re.compile(r"^0[1-9][\d\s/().-]{5,}$")
_ZIP = re.compile(r"^(?:[A-Z]{1,2}-)?\d{4,5}$")
_SV_NUMBER = re.compile(r"^[1-9]\d{3}\s?\d{6}$")
_AMS_ID = re.compile(r"^[A-Za-z]{1,3}-?\d{4,}$")
_NAME = re.compile(
    r"^[A-ZÄÖÜ][a-zäöüßéèáàíóú]+(?:[-' ](?:[A-ZÄÖÜ][a-zäöüßéèáàíóú]+|von|van|de|der|zu))*$"
)
_ADDRESS = re.compile(
    r"^[A-Za-zÄÖÜäöüßéè�][A-Za-zÄÖÜäöüßéè�.\- ]{2,}\s+\d+[a-zA-Z]?"
    r"(?:\s*[/-]\s*\d+[a-zA-Z]?)*(?:\s*,.*)?$"
)


def _digit_count(text: str) -> int:
    return sum(char.isdigit() for char in text)


def _is_date(value: Any, text: str) -> bool:
    if isinstance(value, date):
        return True
    return bool(_DATE_SHAPE.match(text)) and parse_date(text) is not None


def _is_phone(value: Any, text: str) -> bool:
    if not (_PHONE_INTERNATIONAL.match(text) or _PHONE_NATIONAL.match(text)):
        return False
    return 7 <= _digit_count(text) <= 15


# (content type, matcher, human readable pattern); order is report order on ties
_PATTERNS: Tuple[Tuple[str, Callable[[Any, str], bool], str], ...] = (
    (DATE, _is_date, "ISO, dd.mm.yyyy, d/m/yyyy or m/d/yyyy date"),
    (EMAIL, lambda value, text: bool(_EMAIL.match(text)), "local@domain.tld"),
    (PHONE, _is_phone, "+CC / 00CC / 0 trunk prefix phone number"),
    (ZIP, lambda value, text: bool(_ZIP.match(text)), "4 digit (AT) or 5 digit (DE) postal code"),
    (SV_NUMBER, lambda value, text: bool(_SV_NUMBER.match(text)), "10 digit social security number"),
    (AMS_ID, lambda value, text: bool(_AMS_ID.match(text)), "letters followed by 4+ digits"),
    (NAME, lambda value, text: bool(_NAME.match(text)), "capitalized name"),
    (ADDRESS, lambda value, text: bool(_ADDRESS.match(text)), "street with house number"),
)

# Fields suggested per content type with a relative weight
CONTENT_FIELD_SUGGESTIONS: Dict[str, Tuple[Tuple[CanonicalField, float], ...]] = {
    DATE: (
        (CanonicalField.BIRTH_DATE, 1.0),
        (CanonicalField.ENTRY_DATE, 0.8),
        (CanonicalField.EXIT_DATE, 0.8),
        (CanonicalField.AMS_BOOKING_DATE, 0.7),
        (CanonicalField.FOLLOW_UP, 0.7),
        (CanonicalField.LAST_ACTIVITY, 0.7),
    ),
    EMAIL: ((CanonicalField.EMAIL, 1.0),),
    PHONE: ((CanonicalField.PHONE, 1.0), (CanonicalField.PHONE_NUMBER, 0.7)),
    ZIP: ((CanonicalField.ZIP, 1.0),),
    SV_NUMBER: ((CanonicalField.SV_NUMBER, 1.0),),
    AMS_ID: ((CanonicalField.AMS_ID, 1.0), (CanonicalField.INTERNAL_CODE, 0.5)),
    NAME: (
        (CanonicalField.FIRST_NAME, 0.8),
        (CanonicalField.LAST_NAME, 0.8),
        (CanonicalField.CITY, 0.5),
    ),
    ADDRESS: ((CanonicalField.ADDRESS, 1.0),),
}

# Content type each field is expected to carry
FIELD_CONTENT_TYPES: Dict[CanonicalField, str] = {
    CanonicalField.BIRTH_DATE: DATE,
    CanonicalField.ENTRY_DATE: DATE,
    CanonicalField.EXIT_DATE: DATE,
    CanonicalField.AMS_BOOKING_DATE: DATE,
    CanonicalField.FOLLOW_UP: DATE,
    CanonicalField.LAST_ACTIVITY: DATE,
    CanonicalField.EMAIL: EMAIL,
    CanonicalField.PHONE: PHONE,
    CanonicalField.PHONE_NUMBER: PHONE,
    CanonicalField.ZIP: ZIP,
    CanonicalField.SV_NUMBER: SV_NUMBER,
    CanonicalField.AMS_ID: AMS_ID,
    CanonicalField.FIRST_NAME: NAME,
    CanonicalField.LAST_NAME: NAME,
    CanonicalField.AMS_AGENT_FIRST_NAME: NAME,
    CanonicalField.AMS_AGENT_LAST_NAME: NAME,
    CanonicalField.ADDRESS: ADDRESS,
}


@dataclass
class ContentHint:
    """A content type observed in a column's samples"""
    type: str
    confidence: float
    matches: int
    samples: List[str] = field(default_factory=list)
    pattern: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "confidence": round(self.confidence, 4),
            "matches": self.matches,
            "samples": list(self.samples),
            "pattern": self.pattern,
        }


@dataclass
class ContentSuggestion:
    field: CanonicalField
    confidence: float
    reason: str
    content_type: str


@dataclass
class ContentAnalysis:
    """Summary of a column's sample values"""
    hints: List[ContentHint]
    patterns: Dict[str, int]
    total_samples: int
    empty_samples: int
    unique_ratio: float
    average_length: float

    @property
    def primary_type(self) -> Optional[str]:
        return self.hints[0].type if self.hints else None


@dataclass
class ContentCheck:
    valid: bool
    confidence: float
    message: Optional[str] = None


def _prepare(samples: Optional[Iterable[Any]], max_samples: Optional[int]) -> List[Tuple[Any, str]]:
    """Keep non-empty samples as (value, stripped text) pairs"""
    limit = settings.sample_size if max_samples is None else max_samples
    prepared = []
    for value in samples or ():
        if value is None or isinstance(value, bool):
            continue
        text = value.isoformat() if isinstance(value, date) else str(value).strip()
        if not text:
            continue
        prepared.append((value, text))
        if len(prepared) >= limit:
            break
    return prepared


def _matches(content_type: str, value: Any, text: str) -> bool:
    for name, matcher, _description in _PATTERNS:
        if name == content_type:
            return matcher(value, text)
    return False


def detect_content_types(
    samples: Optional[Sequence[Any]],
    max_samples: Optional[int] = None,
    min_confidence: Optional[float] = None,
) -> List[ContentHint]:
    """Classify samples; confidence = matches / non-empty samples"""
    prepared = _prepare(samples, max_samples)
    if not prepared:
        return []

    threshold = settings.content_min_confidence if min_confidence is None else min_confidence
    hints = []
    for content_type, matcher, description in _PATTERNS:
        matched = [text for value, text in prepared if matcher(value, text)]
        if not matched:
            continue
        confidence = len(matched) / len(prepared)
        if confidence >= threshold:
            hints.append(ContentHint(
                type=content_type,
                confidence=confidence,
                matches=len(matched),
                samples=matched[:3],
                pattern=description,
            ))

    order = {content_type: i for i, content_type in enumerate(CONTENT_TYPES)}
    hints.sort(key=lambda hint: (-hint.confidence, order[hint.type]))
    logger.debug(
        "Content types detected",
        samples=len(prepared),
        types=[(hint.type, round(hint.confidence, 2)) for hint in hints],
    )
    return hints


def suggest_fields_from_content(
    samples: Optional[Sequence[Any]],
    max_samples: Optional[int] = None,
) -> List[ContentSuggestion]:
    """Suggest fields from content alone, best first; one entry per field"""
    best: Dict[CanonicalField, ContentSuggestion] = {}
    for hint in detect_content_types(samples, max_samples):
        for canonical_field, weight in CONTENT_FIELD_SUGGESTIONS.get(hint.type, ()):
            confidence = hint.confidence * weight
            current = best.get(canonical_field)
            if current is None or confidence > current.confidence:
                best[canonical_field] = ContentSuggestion(
                    field=canonical_field,
                    confidence=confidence,
                    reason=f"{hint.type} content in {hint.matches} samples ({hint.confidence:.0%})",
                    content_type=hint.type,
                )
    return sorted(best.values(), key=lambda s: -s.confidence)


def analyze_content(samples: Optional[Sequence[Any]], max_samples: Optional[int] = None) -> ContentAnalysis:
    """Full content analysis of a column's samples"""
    values = list(samples or ())
    prepared = _prepare(values, max_samples)
    considered = min(len(values), settings.sample_size if max_samples is None else max_samples)

    patterns: Counter = Counter()
    for value, text in prepared:
        for content_type, matcher, _description in _PATTERNS:
            if matcher(value, text):
                patterns[content_type] += 1

    texts = [text for _value, text in prepared]
    return ContentAnalysis(
        hints=detect_content_types(values, max_samples),
        patterns=dict(patterns),
        total_samples=len(prepared),
        empty_samples=max(0, considered - len(prepared)),
        unique_ratio=len(set(texts)) / len(texts) if texts else 0.0,
        average_length=sum(len(text) for text in texts) / len(texts) if texts else 0.0,
    )


def validate_field_content(canonical_field: Any, value: Any) -> ContentCheck:
    """Check a single value against the content its field is expected to carry"""
    canonical_field = CanonicalField.parse(canonical_field)
    prepared = _prepare([value], 1)
    if not prepared:
        return ContentCheck(valid=True, confidence=0.0, message="empty value")

    expected = FIELD_CONTENT_TYPES.get(canonical_field)
    if expected is None:
        return ContentCheck(valid=True, confidence=0.5)

    raw, text = prepared[0]
    if _matches(expected, raw, text):
        return ContentCheck(valid=True, confidence=0.9)
    return ContentCheck(
        valid=False,
        confidence=0.1,
        message=f"value does not look like {expected} expected for {canonical_field.value}",
    )
