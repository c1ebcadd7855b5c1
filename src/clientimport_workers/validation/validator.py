"""
Record validation

Field rules, cross-field plausibility checks and batch statistics for
canonical records. Every problem becomes a ValidationIssue carrying the
1-based row number; nothing is raised for bad data.
"""
import re
from collections import defaultdict
from datetime import date, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import structlog

from ..config import settings as global_settings
from ..mapping.models import CanonicalField, DATE_FIELDS
from ..utils.dates import DATE_FORMAT_AUTO, age_on, parse_date, today as current_date
from .field_normalizers import (
    clean_text,
    is_plausible_phone,
    match_angebot,
    match_priority,
    match_result,
    match_status,
    normalize_gender,
)
from .models import (
    Angebot,
    CanonicalRecord,
    ContactResult,
    FixSuggestion,
    Gender,
    Priority,
    QuickCheck,
    Severity,
    Status,
    ValidationIssue,
    ValidationResult,
    ValidationStats,
)

logger = structlog.get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]{2,}$")
ZIP_PATTERN = re.compile(r"^\d{4,5}$")
SV_NUMBER_PATTERN = re.compile(r"^[1-9]\d{9}$")
AMS_ID_PATTERN = re.compile(r"^[A-Za-z]{1,3}-?\d{4,}$")

NAME_FIELDS = (CanonicalField.FIRST_NAME, CanonicalField.LAST_NAME)
NO_NAME_MESSAGE = "Record has neither first nor last name"

# field -> (enum, matcher, label)
ENUM_RULES: Dict[CanonicalField, tuple] = {
    CanonicalField.STATUS: (Status, match_status, "status"),
    CanonicalField.PRIORITY: (Priority, match_priority, "priority"),
    CanonicalField.RESULT: (ContactResult, match_result, "result"),
    CanonicalField.ANGEBOT: (Angebot, match_angebot, "angebot"),
}

SEVERITY_ORDER = {Severity.ERROR: 0, Severity.WARNING: 1, Severity.INFO: 2}

RecordLike = Union[CanonicalRecord, Mapping[str, Any]]


def _blank(value: Any) -> bool:
    if isinstance(value, (Enum, date)):
        return False
    return clean_text(value) is None


def _display(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return value


class RecordValidator:
    """Validates canonical records one by one or as a batch"""

    def __init__(
        self,
        settings=None,
        today: Optional[date] = None,
        date_format: str = DATE_FORMAT_AUTO,
        phone_region: Optional[str] = None,
    ):
        self.settings = settings or global_settings
        self._today = today
        self.date_format = date_format
        self.phone_region = phone_region or self.settings.default_phone_region

    @property
    def today(self) -> date:
        return self._today or current_date(self.settings.timezone)

    def _parse_date(self, value: Any) -> Optional[date]:
        return parse_date(value, self.date_format)

    def _issue(self, severity, row, canonical, message, value=None, suggestion=None) -> ValidationIssue:
        return ValidationIssue(
            severity=severity,
            row=row,
            field=canonical.value if isinstance(canonical, CanonicalField) else canonical,
            message=message,
            value=_display(value),
            suggestion=suggestion,
        )

    def check_field(self, canonical: CanonicalField, value: Any, row: int) -> List[ValidationIssue]:
        """Single-field rules for a non-empty value"""
        issues: List[ValidationIssue] = []
        text = clean_text(_display(value))

        if canonical == CanonicalField.EMAIL:
            if not EMAIL_PATTERN.match(text.lower()):
                issues.append(self._issue(
                    Severity.ERROR, row, canonical, f"Invalid email address '{text}'", value,
                    "Expected format name@domain.tld",
                ))
        elif canonical == CanonicalField.PHONE:
            if not is_plausible_phone(text, self.phone_region):
                issues.append(self._issue(
                    Severity.WARNING, row, canonical, f"Phone number '{text}' looks implausible", value,
                    "Include the area code, e.g. +43 1 234 5678",
                ))
        elif canonical == CanonicalField.ZIP:
            if not ZIP_PATTERN.match(text):
                issues.append(self._issue(
                    Severity.WARNING, row, canonical, f"Postal code '{text}' should have 4 or 5 digits", value,
                ))
        elif canonical == CanonicalField.SV_NUMBER:
            if not SV_NUMBER_PATTERN.match(re.sub(r"\s+", "", text)):
                issues.append(self._issue(
                    Severity.ERROR, row, canonical, f"Social insurance number '{text}' must have 10 digits",
                    value, "Format: 4 digit serial followed by the 6 digit birth date",
                ))
        elif canonical == CanonicalField.AMS_ID:
            if not AMS_ID_PATTERN.match(text):
                issues.append(self._issue(
                    Severity.INFO, row, canonical, f"AMS id '{text}' has an unusual format", value,
                ))
        elif canonical in DATE_FIELDS:
            if self._parse_date(value) is None:
                issues.append(self._issue(
                    Severity.ERROR, row, canonical, f"Invalid date '{text}'", value,
                    "Use DD.MM.YYYY or YYYY-MM-DD",
                ))
        elif canonical in ENUM_RULES:
            enum_type, matcher, label = ENUM_RULES[canonical]
            if not isinstance(value, enum_type) and text not in {m.value for m in enum_type} and matcher(text) is None:
                issues.append(self._issue(
                    Severity.WARNING, row, canonical, f"Unknown {label} value '{text}' kept as free text", value,
                    f"Known values: {', '.join(m.value for m in enum_type)}",
                ))
        elif canonical == CanonicalField.GENDER:
            if not isinstance(value, Gender) and normalize_gender(text) is None:
                issues.append(self._issue(
                    Severity.WARNING, row, canonical, f"Unknown gender '{text}'", value, "Use M, F or D",
                ))
        elif canonical in NAME_FIELDS:
            if len(text) < 2:
                issues.append(self._issue(
                    Severity.WARNING, row, canonical, f"Name is very short: '{text}'", value,
                ))
        return issues

    def _name_issues(self, record: CanonicalRecord, row: int) -> List[ValidationIssue]:
        first, last = record.first_name, record.last_name
        if record.name_placeholder or (_blank(first) and _blank(last)):
            return [self._issue(
                Severity.ERROR, row, CanonicalField.LAST_NAME, NO_NAME_MESSAGE,
                last if record.name_placeholder else None,
                "Map a name column or complete the name before importing",
            )]
        issues = []
        if _blank(first):
            issues.append(self._issue(Severity.WARNING, row, CanonicalField.FIRST_NAME, "First name is missing"))
        if _blank(last):
            issues.append(self._issue(Severity.WARNING, row, CanonicalField.LAST_NAME, "Last name is missing"))
        return issues

    def _cross_field_issues(self, record: CanonicalRecord, row: int) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        reference = self.today

        entry = self._parse_date(record.entry_date) if not _blank(record.entry_date) else None
        exit_ = self._parse_date(record.exit_date) if not _blank(record.exit_date) else None
        if entry and exit_ and entry > exit_:
            issues.append(self._issue(
                Severity.ERROR, row, CanonicalField.ENTRY_DATE,
                f"Entry date {entry.isoformat()} is after exit date {exit_.isoformat()}",
                record.entry_date, "Check whether entry and exit dates were swapped",
            ))

        follow_up = self._parse_date(record.follow_up) if not _blank(record.follow_up) else None
        stale_days = self.settings.followup_stale_days
        if follow_up and follow_up < reference - timedelta(days=stale_days):
            issues.append(self._issue(
                Severity.WARNING, row, CanonicalField.FOLLOW_UP,
                f"Follow-up date {follow_up.isoformat()} is more than {stale_days} days in the past",
                record.follow_up, "Reschedule the follow-up",
            ))

        birth = self._parse_date(record.birth_date) if not _blank(record.birth_date) else None
        if birth:
            if birth > reference:
                issues.append(self._issue(
                    Severity.WARNING, row, CanonicalField.BIRTH_DATE,
                    f"Birth date {birth.isoformat()} is in the future", record.birth_date,
                ))
            else:
                age = age_on(birth, reference)
                if not self.settings.min_plausible_age <= age <= self.settings.max_plausible_age:
                    issues.append(self._issue(
                        Severity.WARNING, row, CanonicalField.BIRTH_DATE,
                        f"Age {age} is outside the plausible range "
                        f"{self.settings.min_plausible_age}-{self.settings.max_plausible_age}",
                        record.birth_date,
                    ))
        return issues

    def validate_row(self, record: RecordLike, row_number: int) -> List[ValidationIssue]:
        """All issues of one record; ``row_number`` is 1-based"""
        record = CanonicalRecord.coerce(record)
        issues: List[ValidationIssue] = []
        for canonical in CanonicalField:
            value = record.get(canonical)
            if _blank(value):
                continue
            issues.extend(self.check_field(canonical, value, row_number))
        issues.extend(self._name_issues(record, row_number))
        issues.extend(self._cross_field_issues(record, row_number))
        return issues

    def validate_batch(
        self,
        rows: Iterable[RecordLike],
        on_progress: Optional[Callable[[float], None]] = None,
        cancel_check: Optional[Callable[[], bool]] = None,
        row_numbers: Optional[Sequence[int]] = None,
    ) -> ValidationResult:
        """Validate rows in chunks with progress reporting and cancellation

        ``row_numbers`` gives the 1-based source row of each record when rows
        were filtered before validation.
        """
        rows = list(rows)
        total = len(rows)
        interval = self.settings.effective_progress_interval
        issues: List[ValidationIssue] = []
        stats = ValidationStats()
        cancelled = False

        for start in range(0, total, interval):
            if cancel_check and cancel_check():
                cancelled = True
                logger.info("Validation cancelled", processed=start, total=total)
                break
            for offset, row in enumerate(rows[start:start + interval]):
                index = start + offset
                row_number = row_numbers[index] if row_numbers is not None else index + 1
                row_issues = self.validate_row(row, row_number)
                issues.extend(row_issues)
                stats.total_rows += 1
                severities = {issue.severity for issue in row_issues}
                if Severity.ERROR in severities:
                    stats.error_rows += 1
                elif Severity.WARNING in severities:
                    stats.warning_rows += 1
                else:
                    stats.valid_rows += 1
            if on_progress:
                on_progress(min(start + interval, total) / total)

        if on_progress and total == 0:
            on_progress(1.0)

        result = ValidationResult(
            valid=stats.error_rows == 0,
            issues=issues,
            stats=stats,
            cancelled=cancelled,
        )
        logger.info(
            "Batch validated",
            total_rows=stats.total_rows,
            valid_rows=stats.valid_rows,
            warning_rows=stats.warning_rows,
            error_rows=stats.error_rows,
            cancelled=cancelled,
        )
        return result

    def quick_validate(self, canonical_field: Any, value: Any) -> QuickCheck:
        """Validate a single value, e.g. while a user edits a cell"""
        canonical = CanonicalField.parse(canonical_field)
        if _blank(value):
            if canonical in NAME_FIELDS:
                return QuickCheck(False, Severity.ERROR, "Required field is empty")
            return QuickCheck(True)
        issues = self.check_field(canonical, value, 0)
        if not issues:
            return QuickCheck(True)
        issue = min(issues, key=lambda i: SEVERITY_ORDER[i.severity])
        return QuickCheck(
            valid=issue.severity != Severity.ERROR,
            severity=issue.severity,
            message=issue.message,
            suggestion=issue.suggestion,
        )

    def suggest_fixes(self, issues: Iterable[ValidationIssue]) -> List[FixSuggestion]:
        return suggest_fixes(issues)


# Recurring issues per field: (suggestion type, description, action)
FIX_TEMPLATES: Dict[str, tuple] = {
    CanonicalField.EMAIL.value: (
        "bulk_fix", "Correct {count} invalid email addresses", {"type": "normalize_email"},
    ),
    CanonicalField.PHONE.value: (
        "data_transform", "Normalize {count} phone numbers to international format",
        {"type": "normalize_phone", "phone_format": "combined"},
    ),
    CanonicalField.ZIP.value: (
        "bulk_fix", "Check {count} postal codes", {"type": "pad_zip"},
    ),
}
DATE_FIX = ("data_transform", "Convert {count} dates in column {field}", {"type": "change_date_format"})
DEFAULT_FIX = ("bulk_fix", "Review {count} values in column {field}", {"type": "review"})


def suggest_fixes(issues: Iterable[ValidationIssue], min_occurrences: int = 3) -> List[FixSuggestion]:
    """Bulk fix suggestions for fields with recurring issues"""
    by_field: Dict[str, List[ValidationIssue]] = defaultdict(list)
    for issue in issues:
        if issue.field and issue.severity != Severity.INFO:
            by_field[issue.field].append(issue)

    date_fields = {f.value for f in DATE_FIELDS}
    suggestions = []
    for field_name, field_issues in by_field.items():
        if len(field_issues) < min_occurrences:
            continue
        if field_name in FIX_TEMPLATES:
            kind, description, action = FIX_TEMPLATES[field_name]
        elif field_name in date_fields:
            kind, description, action = DATE_FIX
        else:
            kind, description, action = DEFAULT_FIX
        suggestions.append(FixSuggestion(
            type=kind,
            description=description.format(count=len(field_issues), field=field_name),
            field=field_name,
            affected_rows=sorted({i.row for i in field_issues}),
            action={**action, "field": field_name},
        ))
    return suggestions


def validate_batch(
    rows: Iterable[RecordLike],
    on_progress: Optional[Callable[[float], None]] = None,
    cancel_check: Optional[Callable[[], bool]] = None,
    settings=None,
) -> ValidationResult:
    """Validate rows with a default validator"""
    return RecordValidator(settings=settings).validate_batch(rows, on_progress, cancel_check)
