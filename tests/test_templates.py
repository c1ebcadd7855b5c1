import pytest

from clientimport_workers.errors import InvalidConfigurationError
from clientimport_workers.mapping import templates as templates_module
from clientimport_workers.mapping.assigner import find_best_mappings
from clientimport_workers.mapping.models import CanonicalField as F
from clientimport_workers.mapping.templates import (
    CustomFieldSpec,
    MappingTemplate,
    TransformOptions,
    find_matching_template,
    generate_template_id,
)


@pytest.fixture
def template():
    return MappingTemplate(
        id="tpl_test",
        name="AMS Export",
        column_mappings={"Vorname": "firstName", "Nachname": F.LAST_NAME, "E-Mail": "email"},
        transform_options=TransformOptions(phone_format="combined"),
    )


class TestTransformOptions:
    def test_defaults(self):
        options = TransformOptions()
        assert options.date_format == "auto"
        assert options.phone_format == "split"
        assert options.missing_name_policy == "placeholder"

    def test_defaults_follow_settings(self, monkeypatch):
        monkeypatch.setattr(templates_module.settings, "date_format", "mm/dd/yyyy")
        monkeypatch.setattr(templates_module.settings, "missing_name_policy", "reject")
        options = TransformOptions()
        assert options.date_format == "mm/dd/yyyy"
        assert options.missing_name_policy == "reject"
        assert TransformOptions(date_format="auto").date_format == "auto"

    @pytest.mark.parametrize("kwargs", [
        {"date_format": "dd/mm/yy"},
        {"phone_format": "pretty"},
        {"missing_name_policy": "drop"},
    ])
    def test_rejects_unknown_values(self, kwargs):
        with pytest.raises(InvalidConfigurationError):
            TransformOptions(**kwargs)

    def test_custom_field_specs_from_dicts(self):
        options = TransformOptions(custom_fields=[{"name": "Kurs", "type": "text", "required": True}])
        assert options.custom_fields == [CustomFieldSpec(name="Kurs", required=True)]

    def test_unknown_custom_field_type(self):
        with pytest.raises(InvalidConfigurationError):
            CustomFieldSpec(name="Kurs", type="blob")

    def test_dict_round_trip(self):
        options = TransformOptions(
            date_format="dd.mm.yyyy",
            gender_mapping={"x": "male"},
            custom_fields=[CustomFieldSpec(name="Kurs", type="number", label="Kursnummer")],
            missing_name_policy="reject",
        )
        assert TransformOptions.from_dict(options.to_dict()) == options


class TestMappingTemplate:
    def test_fields_are_parsed(self, template):
        assert template.column_mappings["Vorname"] == F.FIRST_NAME
        assert template.header_patterns == ["Vorname", "Nachname", "E-Mail"]

    def test_unknown_field_is_rejected(self):
        with pytest.raises(ValueError):
            MappingTemplate(id="x", name="x", column_mappings={"Kurs": "course"})

    def test_overrides_match_normalized_headers(self, template):
        overrides = template.overrides_for(["E Mail", "VORNAME", "Ort", "nachname"])
        assert overrides == {0: F.EMAIL, 1: F.FIRST_NAME, 3: F.LAST_NAME}

    def test_match_score(self, template):
        assert template.match_score(["Vorname", "Nachname", "E-Mail"]) == 1.0
        assert template.match_score(["Vorname", "Nachname", "E-Mail", "Ort"]) == pytest.approx(0.75)
        assert template.match_score([]) == 0.0

    def test_record_usage(self, template):
        template.record_usage()
        assert template.usage_count == 1
        assert template.last_used is not None

    def test_dict_round_trip(self, template):
        template.record_usage()
        restored = MappingTemplate.from_dict(template.to_dict())
        assert restored.to_dict() == template.to_dict()
        assert restored.transform_options.phone_format == "combined"

    def test_from_mapping(self, client_headers):
        mapping = find_best_mappings(None, client_headers)
        template = MappingTemplate.from_mapping("Kunden", mapping)
        assert template.column_mappings["Vorname"] == F.FIRST_NAME
        assert template.column_mappings["E-Mail"] == F.EMAIL
        assert template.id == generate_template_id("Kunden", client_headers)
        assert template.header_patterns == client_headers


def test_template_id_is_stable_and_order_independent():
    first = generate_template_id("A", ["Vorname", "Nachname"])
    assert first == generate_template_id("A", ["nachname", "VORNAME"])
    assert first.startswith("tpl_")
    assert first != generate_template_id("B", ["Vorname", "Nachname"])


def test_find_matching_template_prefers_similarity_then_usage(template):
    other = MappingTemplate(
        id="tpl_other",
        name="Other",
        column_mappings={"Vorname": "firstName", "Nachname": "lastName", "E-Mail": "email"},
        usage_count=5,
    )
    best, similarity = find_matching_template([template, other], ["Vorname", "Nachname", "E-Mail"])
    assert best is other
    assert similarity == 1.0


def test_find_matching_template_below_threshold(template):
    assert find_matching_template([template], ["Kurs", "Beginn", "Ende"]) is None
    assert find_matching_template([], ["Vorname"]) is None
