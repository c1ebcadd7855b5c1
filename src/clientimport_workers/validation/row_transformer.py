"""
Row transformation

Applies a confirmed column mapping to source rows and converts every mapped
cell into the canonical representation of its field. Bad values never raise;
they are dropped or kept verbatim with a warning so the validator can report
them.
"""
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

import structlog

from ..config import settings as global_settings
from ..mapping.models import CanonicalField, DATE_FIELDS, MappingResult
from ..mapping.normalizer import headers_match
from ..mapping.templates import PHONE_FORMAT_COMBINED, CustomFieldSpec, TransformOptions
from ..performance.parallel import ParallelProcessor
from ..utils.dates import to_iso_date
from .field_normalizers import (
    build_phone,
    clean_text,
    match_angebot,
    match_priority,
    match_result,
    match_status,
    normalize_email,
    normalize_gender,
    normalize_sv_number,
    parse_bool,
    parse_number,
)
from .models import (
    BatchTransformResult,
    CanonicalRecord,
    FailedRow,
    Severity,
    TransformOutcome,
    TransformStats,
    ValidationIssue,
)

logger = structlog.get_logger(__name__)

# Unmapped columns with these headers seed followUp
PLANNED_HEADERS = ("geplant", "planned")

NO_NAME_MESSAGE = "Row has neither first nor last name"

ENUM_MATCHERS: Dict[CanonicalField, Callable[[Any], Any]] = {
    CanonicalField.STATUS: match_status,
    CanonicalField.PRIORITY: match_priority,
    CanonicalField.RESULT: match_result,
    CanonicalField.ANGEBOT: match_angebot,
}

CUSTOM_CONVERTERS: Dict[str, Callable[[Any], Any]] = {
    "text": clean_text,
    "number": parse_number,
    "date": to_iso_date,
    "boolean": parse_bool,
}

# on_progress(processed, total)
ProgressCallback = Callable[[int, int], None]


def _is_blank(value: Any) -> bool:
    return clean_text(value) is None


class RowTransformer:
    """Converts source rows into canonical records using a column mapping"""

    def __init__(
        self,
        mapping: MappingResult,
        options: Optional[TransformOptions] = None,
        headers: Optional[Sequence[Any]] = None,
        settings=None,
    ):
        self.settings = settings or global_settings
        self.options = options or TransformOptions()
        self.mapping = mapping
        self.headers = list(headers if headers is not None else mapping.headers)
        self.column_fields = mapping.column_to_field()
        self.custom_columns = self._resolve_custom_columns()
        self.planned_column = self._find_planned_column()

    def _unmapped_columns(self) -> List[int]:
        return [i for i in range(len(self.headers)) if i not in self.column_fields]

    def _resolve_custom_columns(self) -> Dict[int, CustomFieldSpec]:
        columns: Dict[int, CustomFieldSpec] = {}
        for spec in self.options.custom_fields:
            names = [spec.name] + ([spec.label] if spec.label else [])
            for index in self._unmapped_columns():
                if index in columns:
                    continue
                if any(headers_match(self.headers[index], name) for name in names):
                    columns[index] = spec
                    break
            else:
                logger.warning("Custom field has no matching column", custom_field=spec.name)
        return columns

    def _find_planned_column(self) -> Optional[int]:
        for index in self._unmapped_columns():
            if index in self.custom_columns:
                continue
            if any(headers_match(self.headers[index], name) for name in PLANNED_HEADERS):
                return index
        return None

    def _cells(self, row: Any) -> Dict[int, Any]:
        """Cell values by column index for list rows and header-keyed dict rows"""
        if isinstance(row, Mapping):
            return {index: row.get(header) for index, header in enumerate(self.headers)}
        return dict(enumerate(row))

    def transform_row(self, row: Any, row_index: int) -> TransformOutcome:
        """Transform one source row; an unexpected failure marks the row failed"""
        try:
            return self._transform(row, row_index)
        except Exception as e:
            logger.error("Row transformation failed", row_index=row_index, error=str(e))
            return TransformOutcome(
                row_index=row_index,
                record=None,
                errors=[f"Transformation error: {e}"],
            )

    def _transform(self, row: Any, row_index: int) -> TransformOutcome:
        cells = self._cells(row)
        record = CanonicalRecord()
        warnings: List[ValidationIssue] = []
        row_number = row_index + 1

        phone_value = None
        for index, canonical in self.column_fields.items():
            value = cells.get(index)
            if _is_blank(value):
                continue
            if canonical == CanonicalField.PHONE:
                phone_value = value
                continue
            self._apply(record, canonical, value, row_number, warnings)

        # Split parts only fill what dedicated columns left empty
        if phone_value is not None:
            self._apply_phone(record, phone_value)

        for index, spec in self.custom_columns.items():
            self._apply_custom(record, spec, cells.get(index), row_number, warnings)

        if self.planned_column is not None and record.follow_up is None:
            record.follow_up = to_iso_date(cells.get(self.planned_column), self.options.date_format)

        if not record.first_name and not record.last_name:
            if self.options.missing_name_policy == "reject":
                return TransformOutcome(row_index=row_index, record=None, errors=[NO_NAME_MESSAGE])
            record.last_name = self.settings.placeholder_last_name
            record.name_placeholder = True

        return TransformOutcome(row_index=row_index, record=record, warnings=warnings)

    def _apply(
        self,
        record: CanonicalRecord,
        canonical: CanonicalField,
        value: Any,
        row_number: int,
        warnings: List[ValidationIssue],
    ) -> None:
        if canonical in DATE_FIELDS:
            iso = to_iso_date(value, self.options.date_format)
            if iso is None:
                warnings.append(ValidationIssue(
                    severity=Severity.WARNING,
                    row=row_number,
                    field=canonical.value,
                    value=clean_text(value),
                    message=f"Could not parse date '{clean_text(value)}', value dropped",
                    suggestion="Use DD.MM.YYYY or YYYY-MM-DD",
                ))
            record.set(canonical, iso)
        elif canonical == CanonicalField.GENDER:
            gender = normalize_gender(value, self.options.gender_mapping)
            if gender is None:
                warnings.append(ValidationIssue(
                    severity=Severity.WARNING,
                    row=row_number,
                    field=canonical.value,
                    value=clean_text(value),
                    message=f"Unrecognized gender '{clean_text(value)}', left empty",
                    suggestion="Use M, F or D or extend the gender mapping",
                ))
            record.gender = gender
        elif canonical in ENUM_MATCHERS:
            matched = ENUM_MATCHERS[canonical](value)
            record.set(canonical, matched if matched is not None else clean_text(value))
        elif canonical == CanonicalField.EMAIL:
            record.email = normalize_email(value)
        elif canonical == CanonicalField.SV_NUMBER:
            record.sv_number = normalize_sv_number(value)
        elif canonical == CanonicalField.COUNTRY_CODE:
            text = clean_text(value)
            record.country_code = f"+{text}" if text and text.isdigit() else text
        else:
            record.set(canonical, clean_text(value))

    def _apply_phone(self, record: CanonicalRecord, value: Any) -> None:
        parts = build_phone(value, self.settings.default_phone_region)
        if parts is None:
            return
        if self.options.phone_format == PHONE_FORMAT_COMBINED:
            record.phone = parts.e164 or parts.display
            return
        record.phone = parts.display
        if parts.is_split:
            record.country_code = record.country_code or parts.country_code
            record.area_code = record.area_code or parts.area_code
            record.phone_number = record.phone_number or parts.subscriber

    def _apply_custom(
        self,
        record: CanonicalRecord,
        spec: CustomFieldSpec,
        value: Any,
        row_number: int,
        warnings: List[ValidationIssue],
    ) -> None:
        if _is_blank(value):
            if spec.required:
                warnings.append(ValidationIssue(
                    severity=Severity.WARNING,
                    row=row_number,
                    field=spec.name,
                    message=f"Required custom field '{spec.label or spec.name}' is empty",
                ))
            return
        converted = CUSTOM_CONVERTERS[spec.type](value)
        if converted is None:
            warnings.append(ValidationIssue(
                severity=Severity.WARNING,
                row=row_number,
                field=spec.name,
                value=clean_text(value),
                message=f"Value '{clean_text(value)}' is not a valid {spec.type}, value dropped",
            ))
            return
        record.extensions[spec.name] = converted

    def transform_rows(
        self,
        rows: Iterable[Any],
        start_index: int = 0,
        on_progress: Optional[ProgressCallback] = None,
        parallel: bool = False,
        max_workers: Optional[int] = None,
    ) -> BatchTransformResult:
        """Transform rows in order; failed rows are collected, never raised"""
        start_time = time.time()
        rows = list(rows)
        total = len(rows)

        if parallel and total > self.settings.chunk_size:
            processor = ParallelProcessor(max_workers=max_workers, chunk_size=self.settings.chunk_size)
            outcomes = processor.process_in_chunks(
                rows,
                lambda chunk, offset: [
                    self.transform_row(row, start_index + offset + i) for i, row in enumerate(chunk)
                ],
                on_error=lambda chunk, offset, error: [
                    TransformOutcome(
                        row_index=start_index + offset + i,
                        record=None,
                        errors=[f"Transformation error: {error}"],
                    )
                    for i in range(len(chunk))
                ],
                progress_callback=on_progress,
            )
        else:
            interval = self.settings.effective_progress_interval
            outcomes = []
            for i, row in enumerate(rows):
                outcomes.append(self.transform_row(row, start_index + i))
                if on_progress and ((i + 1) % interval == 0 or i + 1 == total):
                    on_progress(i + 1, total)

        result = BatchTransformResult()
        for offset, outcome in enumerate(outcomes):
            result.warnings.extend(outcome.warnings)
            if outcome.failed:
                result.failed.append(FailedRow(outcome.row_index, rows[offset], outcome.errors))
            else:
                result.successful.append(outcome.record)
                result.row_indices.append(outcome.row_index)

        result.stats = TransformStats(
            total=total,
            successful=len(result.successful),
            failed=len(result.failed),
            processing_time_ms=int((time.time() - start_time) * 1000),
        )
        logger.info(
            "Rows transformed",
            total=total,
            successful=result.stats.successful,
            failed=result.stats.failed,
            warnings=len(result.warnings),
            parallel=parallel,
            processing_time_ms=result.stats.processing_time_ms,
        )
        return result


def create_transform_summary(result: BatchTransformResult, max_failures: int = 5) -> str:
    """Human readable summary of a batch transformation"""
    stats = result.stats
    lines = [
        "Transformation completed:",
        f"- {stats.successful} records transformed",
        f"- {stats.failed} records failed",
        f"- Processing time: {stats.processing_time_ms / 1000:.1f}s",
    ]
    if result.failed:
        lines.append("")
        lines.append("Failed rows:")
        for failed in result.failed[:max_failures]:
            lines.append(f"- Row {failed.row_index + 1}: {', '.join(failed.errors)}")
        if len(result.failed) > max_failures:
            lines.append(f"- ... and {len(result.failed) - max_failures} more")
    return "\n".join(lines) + "\n"
