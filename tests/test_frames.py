import numpy as np
import pandas as pd

from clientimport_workers.mapping.models import CanonicalField
from clientimport_workers.utils.frames import (
    candidates_from_frame,
    frame_rows,
    issues_to_frame,
    records_to_frame,
)
from clientimport_workers.validation.models import CanonicalRecord, Severity, ValidationIssue
from clientimport_workers.validation.pipeline import ImportPipeline


def test_frame_rows_turns_nan_into_none():
    frame = pd.DataFrame({"Vorname": ["Max", np.nan], "PLZ": [1010, 8010]})
    headers, rows = frame_rows(frame)
    assert headers == ["Vorname", "PLZ"]
    assert rows == [["Max", 1010], [None, 8010]]


def test_frame_rows_keeps_blank_rows():
    frame = pd.DataFrame({"A": ["x", np.nan, "z"], "B": ["y", np.nan, np.nan]})
    assert frame_rows(frame)[1] == [["x", "y"], [None, None], ["z", None]]


def test_blank_row_does_not_shift_row_numbers():
    frame = pd.DataFrame({
        "Vorname": ["Max", np.nan, "Eva"],
        "Nachname": ["Mustermann", np.nan, "Bauer"],
        "E-Mail": ["max@example.com", np.nan, "kaputt"],
    })
    headers, rows = frame_rows(frame)
    result = ImportPipeline().run(headers, rows)
    assert result.row_indices == [0, 1, 2]
    assert [issue.row for issue in result.validation.errors if issue.field == "email"] == [3]


def test_candidates_from_frame():
    frame = pd.DataFrame({"E-Mail": ["max@example.com", "anna@example.at", "eva@example.de"]})
    candidates = candidates_from_frame(frame, sample_size=2)
    assert candidates[0].header == "E-Mail"
    assert candidates[0].sample_values == ("max@example.com", "anna@example.at")


def test_records_to_frame():
    records = [
        CanonicalRecord(first_name="Max", last_name="Mustermann", extensions={"course": 12}),
        CanonicalRecord(last_name="Unbekannt", name_placeholder=True),
    ]
    frame = records_to_frame(records)
    columns = list(frame.columns)
    assert columns[:len(CanonicalField)] == [f.value for f in CanonicalField]
    assert columns[-2:] == ["namePlaceholder", "course"]
    assert frame.loc[0, "firstName"] == "Max"
    assert bool(frame.loc[1, "namePlaceholder"]) is True
    assert frame.loc[0, "course"] == 12


def test_records_to_frame_empty():
    frame = records_to_frame([])
    assert frame.empty
    assert "lastName" in frame.columns


def test_issues_to_frame():
    issue = ValidationIssue(severity=Severity.ERROR, row=2, message="Invalid email", field="email", value="x")
    frame = issues_to_frame([issue])
    assert list(frame.columns) == ["row", "severity", "field", "message", "value", "suggestion"]
    assert frame.loc[0, "severity"] == "error"
    assert issues_to_frame([]).empty
