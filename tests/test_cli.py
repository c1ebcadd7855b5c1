import json

import pytest

from clientimport_workers import __version__
from clientimport_workers.cli import (
    EXIT_COMMAND_ERROR,
    EXIT_SUCCESS,
    EXIT_VALIDATION_ERRORS,
    main,
)


@pytest.fixture
def input_file(tmp_path, client_headers, client_rows):
    path = tmp_path / "input.json"
    path.write_text(json.dumps({"headers": client_headers, "rows": client_rows}), encoding="utf-8")
    return path


def test_map_table(input_file, capsys):
    assert main(["map", str(input_file)]) == EXIT_SUCCESS
    out = capsys.readouterr().out
    assert out.splitlines()[0].split() == ["#", "Header", "Field", "Conf", "Status"]
    assert "firstName" in out
    assert "auto" in out


def test_map_json(input_file, capsys):
    assert main(["map", str(input_file), "--json"]) == EXIT_SUCCESS
    data = json.loads(capsys.readouterr().out)
    assert data["assignments"]["2"]["field"] == "email"


def test_map_shows_unmapped_columns(tmp_path, capsys):
    path = tmp_path / "input.json"
    path.write_text(json.dumps({"headers": ["Vorname", "qqqq"], "rows": []}), encoding="utf-8")
    assert main(["map", str(path)]) == EXIT_SUCCESS
    out = capsys.readouterr().out
    assert "unmapped" in out
    assert "Unmapped fields:" in out


def test_run_writes_report(input_file, tmp_path, capsys):
    output = tmp_path / "report.json"
    assert main(["run", str(input_file), "-o", str(output)]) == EXIT_SUCCESS
    assert f"Report written: {output}" in capsys.readouterr().err
    report = json.loads(output.read_text(encoding="utf-8"))
    assert report["stats"]["total_rows"] == 3
    assert report["validation"]["valid"] is True


def test_run_reports_validation_errors(tmp_path, client_headers, capsys):
    path = tmp_path / "input.json"
    rows = [["Max", "Mustermann", "kaputt", "", "", "", ""]]
    path.write_text(json.dumps({"headers": client_headers, "rows": rows}), encoding="utf-8")
    assert main(["run", str(path)]) == EXIT_VALIDATION_ERRORS
    report = json.loads(capsys.readouterr().out)
    assert report["validation"]["stats"]["error_rows"] == 1


def test_run_with_overrides_and_workers(tmp_path, client_headers, client_rows, capsys):
    path = tmp_path / "input.json"
    payload = {"headers": client_headers, "rows": client_rows, "overrides": {"Ort": "note"}}
    path.write_text(json.dumps(payload), encoding="utf-8")
    assert main(["run", str(path), "--workers", "2"]) == EXIT_SUCCESS
    report = json.loads(capsys.readouterr().out)
    assert report["records"][0]["note"] == "Wien"


def test_run_with_template(tmp_path, input_file, capsys):
    template = tmp_path / "template.json"
    template.write_text(json.dumps({
        "id": "tpl_1",
        "name": "Export",
        "column_mappings": {"Ort": "note"},
        "transform_options": {"phone_format": "combined"},
    }), encoding="utf-8")
    assert main(["--template", str(template), "run", str(input_file)]) == EXIT_SUCCESS
    report = json.loads(capsys.readouterr().out)
    assert report["records"][0]["phone"] == "+436641234567"
    assert report["records"][0]["note"] == "Wien"


def test_missing_file(tmp_path, capsys):
    assert main(["map", str(tmp_path / "missing.json")]) == EXIT_COMMAND_ERROR
    assert "error:" in capsys.readouterr().err


def test_invalid_payload(tmp_path, capsys):
    path = tmp_path / "input.json"
    path.write_text(json.dumps({"rows": []}), encoding="utf-8")
    assert main(["map", str(path)]) == EXIT_COMMAND_ERROR


def test_unknown_override_field(tmp_path, capsys):
    path = tmp_path / "input.json"
    path.write_text(json.dumps({"headers": ["A"], "overrides": {"A": "shoeSize"}}), encoding="utf-8")
    assert main(["map", str(path)]) == EXIT_COMMAND_ERROR
    assert "shoeSize" in capsys.readouterr().err


def test_version(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--version"])
    assert excinfo.value.code == 0
    assert __version__ in capsys.readouterr().out
