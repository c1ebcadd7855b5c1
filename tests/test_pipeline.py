import pytest

from clientimport_workers.config import Settings
from clientimport_workers.mapping.models import AssignmentStatus, CanonicalField as F
from clientimport_workers.mapping.templates import MappingTemplate, TransformOptions
from clientimport_workers.validation.pipeline import ImportPipeline


@pytest.fixture
def rows_with_duplicate(client_rows):
    return client_rows + [["max", "MUSTERMANN", "max@example.com", "", "1010", "Wien", "1985-03-15"]]


def test_full_run(client_headers, rows_with_duplicate):
    progress = []
    result = ImportPipeline().run(client_headers, rows_with_duplicate, on_progress=progress.append)

    assert result.mapping.field_to_column()[F.EMAIL] == 2
    assert result.quality.required_coverage == 1.0
    assert [r.last_name for r in result.records] == ["Mustermann", "Müller", "Huber", "MUSTERMANN"]
    assert result.row_indices == [0, 1, 2, 3]
    assert result.validation.valid
    assert [(d.row_index, d.duplicate_of) for d in result.dedupe.duplicates] == [(3, 0)]
    assert len(result.unique_records) == 3
    assert result.stats.total_rows == 4
    assert result.stats.duplicates == 1
    assert progress[-1] == 1.0
    assert progress == sorted(progress)


def test_dict_rows(client_headers, client_rows):
    rows = [dict(zip(client_headers, row)) for row in client_rows]
    result = ImportPipeline().run(client_headers, rows)
    assert [r.first_name for r in result.records] == ["Max", "Anna", "Peter"]


def test_failed_rows_keep_source_row_numbers(client_headers, client_rows):
    blank = ["", "", "bad-email", "", "", "", ""]
    broken = ["Eva", "Bauer", "kaputt", "", "", "", ""]
    pipeline = ImportPipeline(settings=Settings(missing_name_policy="reject"))
    result = pipeline.run(client_headers, [blank, client_rows[0], broken])

    assert [f.row_index for f in result.failed] == [0]
    assert result.row_indices == [1, 2]
    assert [i.row for i in result.validation.errors] == [3]
    assert not result.validation.valid


def test_placeholder_rows_are_reported(client_headers):
    rows = [["", "", "x@example.com", "", "", "", ""]]
    result = ImportPipeline().run(client_headers, rows)
    assert result.records[0].name_placeholder
    assert result.validation.stats.error_rows == 1


def test_explicit_overrides_win_over_template(client_headers, client_rows):
    template = MappingTemplate(
        id="tpl_1",
        name="Export",
        column_mappings={"Ort": "address", "Vorname": "firstName"},
        transform_options=TransformOptions(phone_format="combined"),
    )
    pipeline = ImportPipeline(template=template)
    result = pipeline.run(client_headers, client_rows, overrides={"Ort": "city"})

    city = result.mapping.get(5)
    assert city.field == F.CITY
    assert city.status == AssignmentStatus.OVERRIDE
    assert result.mapping.get(0).status == AssignmentStatus.OVERRIDE
    assert result.records[0].phone == "+436641234567"
    assert template.usage_count == 1


def test_confirmed_mapping_skips_inference(client_headers, client_rows):
    pipeline = ImportPipeline()
    mapping = pipeline.suggest_mapping(client_headers, client_rows, overrides={6: "note"})
    result = pipeline.run(client_headers, client_rows, mapping=mapping)
    assert result.mapping is mapping
    assert result.records[0].note == "15.03.1985"
    assert result.records[0].birth_date is None


def test_suggest_mapping_with_field_subset(client_headers):
    mapping = ImportPipeline().suggest_mapping(client_headers, fields=["email"])
    assert mapping.column_to_field() == {2: F.EMAIL}


def test_cancellation_skips_dedupe(client_headers, client_rows):
    progress = []
    result = ImportPipeline().run(
        client_headers, client_rows, on_progress=progress.append, cancel_check=lambda: True
    )
    assert result.validation.cancelled
    assert result.dedupe is None
    assert result.stats.duplicates == 0
    assert 1.0 not in progress


def test_parallel_run(client_headers, client_rows, test_settings):
    rows = [list(row) for _ in range(5) for row in client_rows]
    result = ImportPipeline(settings=test_settings, parallel=True, max_workers=2).run(client_headers, rows)
    assert result.row_indices == list(range(15))
    assert result.stats.duplicates == 12


def test_to_dict(client_headers, rows_with_duplicate):
    data = ImportPipeline().run(client_headers, rows_with_duplicate).to_dict()
    assert data["records"][0]["row_index"] == 0
    assert data["records"][0]["firstName"] == "Max"
    assert data["duplicates"][0]["duplicate_of"] == 0
    assert data["stats"]["total_rows"] == 4
    assert data["validation"]["valid"] is True
    assert data["quality"]["issues"] == []


def test_date_format_comes_from_settings():
    headers = ["Vorname", "Nachname", "Geburtsdatum"]
    rows = [["Max", "Mustermann", "01/02/1985"]]
    month_first = ImportPipeline(settings=Settings(date_format="mm/dd/yyyy")).run(headers, rows)
    assert month_first.records[0].birth_date == "1985-01-02"
    day_first = ImportPipeline().run(headers, rows)
    assert day_first.records[0].birth_date == "1985-02-01"
