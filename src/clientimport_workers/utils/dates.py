"""
Date parsing shared by content detection, transformation and validation

All parsers follow the optional-return idiom: an unparseable value yields
None, never an exception.
"""
import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

import pytz
from dateutil import parser as dateutil_parser

from ..config import settings

DATE_FORMAT_AUTO = "auto"
DATE_FORMAT_DAY_FIRST = "dd.mm.yyyy"
DATE_FORMAT_ISO = "yyyy-mm-dd"
DATE_FORMAT_MONTH_FIRST = "mm/dd/yyyy"

DATE_FORMATS = (
    DATE_FORMAT_AUTO,
    DATE_FORMAT_DAY_FIRST,
    DATE_FORMAT_ISO,
    DATE_FORMAT_MONTH_FIRST,
)

_ISO_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ](.+))?$")
_YEAR_FIRST_SLASH_PATTERN = re.compile(r"^(\d{4})/(\d{1,2})/(\d{1,2})$")
_NUMERIC_PATTERN = re.compile(
    r"^(\d{1,2})([./-])(\d{1,2})\2(\d{4}|\d{2})\.?"
    r"(?:\s+\d{1,2}:\d{2}(?::\d{2})?)?$"
)

# Excel stores dates as days since 1899-12-30
_EXCEL_EPOCH = date(1899, 12, 30)
_MAX_EXCEL_SERIAL = 100000
_MIN_EPOCH_MILLIS = 10 ** 11


class _GermanEnglishParserInfo(dateutil_parser.parserinfo):
    """dateutil parser info understanding German and English month names"""

    MONTHS = [
        ("Jan", "January", "Januar", "Jänner", "Jän", "Jaenner"),
        ("Feb", "February", "Februar", "Feber"),
        ("Mar", "March", "März", "Mär", "Maerz", "Mrz"),
        ("Apr", "April"),
        ("May", "Mai"),
        ("Jun", "June", "Juni"),
        ("Jul", "July", "Juli"),
        ("Aug", "August"),
        ("Sep", "Sept", "September"),
        ("Oct", "October", "Okt", "Oktober"),
        ("Nov", "November"),
        ("Dec", "December", "Dez", "Dezember"),
    ]


_PARSER_INFO = _GermanEnglishParserInfo(dayfirst=True)
_MONTH_NAMES = {
    name.lower() for names in _GermanEnglishParserInfo.MONTHS for name in names
}


def _expand_year(year_text: str, pivot: int) -> int:
    year = int(year_text)
    if len(year_text) == 2:
        return 2000 + year if year < pivot else 1900 + year
    return year


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _from_number(value: float) -> Optional[date]:
    if math.isnan(value) or math.isinf(value) or value <= 0:
        return None
    if value >= _MIN_EPOCH_MILLIS:
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc).date()
        except (OverflowError, OSError, ValueError):
            return None
    if value < _MAX_EXCEL_SERIAL:
        return _EXCEL_EPOCH + timedelta(days=int(value))
    return None


def _resolve_day_month(first: int, second: int, date_format: str):
    """Resolve (day, month) for a two-number date

    The second number above 12 can only be a day; otherwise the configured
    preference decides and day-first is the default.
    """
    if second > 12:
        return second, first
    if date_format == DATE_FORMAT_MONTH_FIRST and first <= 12:
        return second, first
    return first, second


def _has_month_name(text: str) -> bool:
    tokens = re.split(r"[\s,./-]+", text.lower())
    return any(token.strip(".") in _MONTH_NAMES for token in tokens if token)


def parse_date(
    value: Any,
    date_format: str = DATE_FORMAT_AUTO,
    year_pivot: Optional[int] = None,
) -> Optional[date]:
    """Parse a cell value into a calendar date, or None"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        return _from_number(float(value))
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    pivot = settings.two_digit_year_pivot if year_pivot is None else year_pivot

    iso_match = _ISO_PATTERN.match(text)
    if iso_match:
        year, month, day, time_part = iso_match.groups()
        if time_part:
            try:
                return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
            except ValueError:
                return None
        return _safe_date(int(year), int(month), int(day))

    slash_match = _YEAR_FIRST_SLASH_PATTERN.match(text)
    if slash_match:
        year, month, day = (int(part) for part in slash_match.groups())
        return _safe_date(year, month, day)

    numeric_match = _NUMERIC_PATTERN.match(text)
    if numeric_match:
        first, _separator, second, year_text = numeric_match.groups()
        day, month = _resolve_day_month(int(first), int(second), date_format)
        return _safe_date(_expand_year(year_text, pivot), month, day)

    if _has_month_name(text) and re.search(r"\d{4}", text):
        try:
            parsed = dateutil_parser.parse(text, parserinfo=_PARSER_INFO)
        except (ValueError, OverflowError):
            return None
        return parsed.date()

    return None


def to_iso_date(value: Any, date_format: str = DATE_FORMAT_AUTO) -> Optional[str]:
    """Parse a cell value and render it as YYYY-MM-DD, or None"""
    parsed = parse_date(value, date_format)
    return parsed.isoformat() if parsed else None


def looks_like_date(value: Any) -> bool:
    """True when the value parses as a real calendar date"""
    return parse_date(value) is not None


def today(timezone_name: Optional[str] = None) -> date:
    """Current date in the configured timezone"""
    tz = pytz.timezone(timezone_name or settings.timezone)
    return datetime.now(tz).date()


def age_on(birth_date: date, reference: date) -> int:
    """Completed years between birth_date and reference"""
    years = reference.year - birth_date.year
    if (reference.month, reference.day) < (birth_date.month, birth_date.day):
        years -= 1
    return years
