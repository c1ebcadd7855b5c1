import pytest

from clientimport_workers.errors import InvalidConfigurationError
from clientimport_workers.mapping.assigner import (
    OVERRIDE_REASON,
    MappingAssigner,
    find_best_mappings,
    validate_mapping_quality,
)
from clientimport_workers.mapping.models import AssignmentStatus, CanonicalField as F, FieldGuess
from clientimport_workers.mapping.scorer import build_candidates

CLIENT_FIELDS = ["firstName", "lastName", "email", "phone", "zip", "city", "birthDate"]


def test_maps_typical_client_export(client_headers, client_rows):
    result = find_best_mappings(CLIENT_FIELDS, client_headers, client_rows)

    assert result.column_to_field() == {
        0: F.FIRST_NAME,
        1: F.LAST_NAME,
        2: F.EMAIL,
        3: F.PHONE,
        4: F.ZIP,
        5: F.CITY,
        6: F.BIRTH_DATE,
    }
    assert all(a.status == AssignmentStatus.AUTO for a in result.assignments.values())
    assert result.unmapped_columns == []
    assert result.unmapped_fields == []


def test_each_field_and_column_used_once():
    result = find_best_mappings(None, ["E-Mail", "Mail", "Email Adresse", "Vorname"])
    fields = [a.field for a in result.assignments.values()]
    assert len(fields) == len(set(fields))
    assert result.field_to_column()[F.EMAIL] == 0
    assert result.field_to_column()[F.FIRST_NAME] == 3


def test_tie_between_columns_is_broken_by_column_order():
    result = find_best_mappings(["email"], ["E-Mail", "Mail"])
    assignment = result.get(0)
    assert assignment.field == F.EMAIL
    assert any("broken by column order" in reason for reason in assignment.guess.reasons)
    assert result.unmapped_columns == [1]


def test_override_by_header_and_index():
    result = find_best_mappings(
        CLIENT_FIELDS,
        ["Spalte 1", "Spalte 2", "E-Mail"],
        overrides={"Spalte 1": "lastName", 1: F.FIRST_NAME},
    )
    first = result.get(0)
    assert first.field == F.LAST_NAME
    assert first.status == AssignmentStatus.OVERRIDE
    assert first.confidence == 1.0
    assert first.guess.reasons == [OVERRIDE_REASON]
    assert result.get(1).field == F.FIRST_NAME
    assert result.get(2).field == F.EMAIL


def test_override_field_is_not_assigned_again():
    result = find_best_mappings(CLIENT_FIELDS, ["Vorname", "Notiz"], overrides={1: "firstName"})
    assert result.get(1).field == F.FIRST_NAME
    assert result.get(0) is None or result.get(0).field != F.FIRST_NAME


def test_conflicting_overrides_keep_first():
    result = find_best_mappings(
        CLIENT_FIELDS, ["A", "B"], overrides={0: "email", 1: "email"}
    )
    assert result.get(0).field == F.EMAIL
    assert result.get(0).status == AssignmentStatus.OVERRIDE
    assert result.get(1) is None or result.get(1).status != AssignmentStatus.OVERRIDE


def test_override_for_unknown_column_is_ignored():
    result = find_best_mappings(["email"], ["E-Mail"], overrides={"Nichtda": "firstName"})
    assert result.get(0).field == F.EMAIL
    assert result.get(0).status == AssignmentStatus.AUTO


def test_low_confidence_pairs_are_suggested_or_skipped():
    rows = [["", "", "Max"], ["", "", "Anna"], ["", "", "Eva"], ["", "", "123"]]
    result = find_best_mappings(["firstName"], ["x", "y", "zzzz"], sample_rows=rows)
    assignment = result.get(2)
    assert assignment is not None
    assert assignment.status == AssignmentStatus.SUGGESTED
    assert result.needs_confirmation() == [assignment]

    nothing = find_best_mappings(["email"], ["zzzz"])
    assert len(nothing) == 0
    assert nothing.unmapped_fields == [F.EMAIL]


def test_invalid_thresholds():
    with pytest.raises(InvalidConfigurationError):
        MappingAssigner(auto_threshold=0.2, suggest_threshold=0.5)


def test_candidates_recorded_for_free_columns():
    assigner = MappingAssigner()
    result = assigner.assign(["email", "firstName"], build_candidates(["E-Mail"]))
    guesses = result.candidates[0]
    assert [g.field for g in guesses][0] == F.EMAIL
    assert len(guesses) == 2


def test_mapping_result_to_dict(client_headers):
    data = find_best_mappings(CLIENT_FIELDS, client_headers).to_dict()
    assert data["assignments"]["0"]["field"] == "firstName"
    assert data["assignments"]["0"]["status"] == "auto"
    assert data["unmapped_fields"] == []


class TestMappingQuality:
    def test_good_mapping(self, client_headers):
        quality = validate_mapping_quality(find_best_mappings(CLIENT_FIELDS, client_headers))
        assert quality.issues == []
        assert quality.required_coverage == 1.0
        assert quality.score == pytest.approx(1.0)

    def test_missing_required_field(self):
        quality = validate_mapping_quality(find_best_mappings(CLIENT_FIELDS, ["Vorname", "E-Mail"]))
        missing = [issue for issue in quality.issues if issue.type == "missing_required"]
        assert [issue.field for issue in missing] == [F.LAST_NAME]
        assert quality.has_errors
        assert quality.required_coverage == 0.5

    def test_duplicate_and_low_confidence_in_raw_mapping(self):
        mapping = {
            0: FieldGuess(field=F.FIRST_NAME, confidence=0.9),
            1: FieldGuess(field=F.FIRST_NAME, confidence=0.2),
            2: FieldGuess(field=F.LAST_NAME, confidence=0.9),
        }
        quality = validate_mapping_quality(mapping)
        types = [issue.type for issue in quality.issues]
        assert "duplicate_mapping" in types
        assert "low_confidence" in types
        assert 0.0 <= quality.score < 1.0

    def test_empty_mapping(self):
        quality = validate_mapping_quality({})
        assert quality.coverage == 0.0
        assert quality.average_confidence == 0.0
        assert quality.score == 0.0


HEADER_SETS = [
    [],
    [None, "", "   "],
    ["E-Mail", "E-Mail", "Email", "Mail Adresse"],
    ["Vorname", "Vorname", "Nachname", "Name"],
    ["Stra�e", "Straße", "Adresse", "PLZ", "Ort"],
    ["PrioritÃ¤t", "Priorität", "Status", "Angebot", None],
    ["Telefon", "Tel.", "Handy", "Vorwahl", "Landesvorwahl", "Telefonnummer"],
    ["Geburtsdatum", "Geb.Datum", "Eintritt", "Austritt", "SV-Nr.", "AMS-ID"],
    ["x", "y", "zzzz", 42],
]


@pytest.mark.parametrize("headers", HEADER_SETS)
def test_assignment_is_one_to_one(headers):
    rows = [["Max", "max@example.com", "+43 664 1234567", "1010", "15.03.1985", "Wien"][:len(headers)]] * 3
    for sample_rows in (None, rows):
        result = find_best_mappings(None, headers, sample_rows)
        fields = [a.field for a in result.assignments.values()]
        assert len(fields) == len(set(fields))
        assert all(0 <= index < len(headers) for index in result.assignments)
        assert len(result.column_to_field()) == len(result.field_to_column())


def test_overrides_keep_assignment_one_to_one():
    headers = ["E-Mail", "Mail", "Vorname", "Nachname"]
    result = find_best_mappings(None, headers, overrides={1: "email", "Vorname": "note"})
    assert result.field_to_column()[F.EMAIL] == 1
    assert result.field_to_column()[F.NOTE] == 2
    fields = [a.field for a in result.assignments.values()]
    assert len(fields) == len(set(fields))
