import pytest

from clientimport_workers.errors import UnknownFieldError
from clientimport_workers.mapping.aliases import ALIASES, AliasTable, find_field_by_alias, get_aliases
from clientimport_workers.mapping.fuzzy import (
    best_similarity,
    jaro,
    jaro_winkler,
    levenshtein,
    levenshtein_similarity,
    token_overlap,
)
from clientimport_workers.mapping.models import CanonicalField


class TestAliasTable:
    def test_default_table_is_shared(self):
        assert AliasTable.default() is AliasTable.default()

    @pytest.mark.parametrize("header, expected", [
        ("Vorname", CanonicalField.FIRST_NAME),
        ("NACHNAME", CanonicalField.LAST_NAME),
        ("E-Mail", CanonicalField.EMAIL),
        ("Stra�e", CanonicalField.ADDRESS),
        ("Straße", CanonicalField.ADDRESS),
        ("PLZ", CanonicalField.ZIP),
        ("SV-Nr.", CanonicalField.SV_NUMBER),
        ("Geb.Datum", CanonicalField.BIRTH_DATE),
        ("Priorit�t", CanonicalField.PRIORITY),
    ])
    def test_lookup(self, header, expected):
        assert find_field_by_alias(header) == expected

    def test_lookup_unknown_header(self):
        assert find_field_by_alias("Lieblingsfarbe") is None
        assert find_field_by_alias("") is None
        assert find_field_by_alias(None) is None

    def test_field_value_is_its_own_alias(self):
        for field in CanonicalField:
            assert field.value.lower() in get_aliases(field)

    def test_compact_forms_do_not_shadow_spelled_out_aliases(self):
        assert find_field_by_alias("phonenumber") == CanonicalField.PHONE_NUMBER
        assert find_field_by_alias("phone number") == CanonicalField.PHONE

    def test_table_is_read_only(self):
        table = AliasTable.default()
        with pytest.raises(TypeError):
            table.index["foo"] = CanonicalField.NOTE

    def test_every_field_has_aliases(self):
        assert set(ALIASES) == set(CanonicalField)

    def test_unknown_field_raises(self):
        with pytest.raises(UnknownFieldError):
            get_aliases("shoeSize")


class TestFuzzy:
    def test_levenshtein(self):
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "abc") == 3

    def test_levenshtein_similarity(self):
        assert levenshtein_similarity("", "") == 1.0
        assert levenshtein_similarity("abc", "abc") == 1.0
        assert levenshtein_similarity("abcd", "abce") == pytest.approx(0.75)

    def test_jaro_winkler(self):
        assert jaro_winkler("martha", "martha") == 1.0
        assert jaro_winkler("martha", "") == 0.0
        assert jaro_winkler("martha", "marhta") == pytest.approx(0.9611, abs=1e-3)

    def test_jaro_winkler_boosts_common_prefix(self):
        assert jaro_winkler("vorname", "vornamen") > jaro_winkler("rovname", "vornamen")

    def test_token_overlap(self):
        assert token_overlap([], []) == 1.0
        assert token_overlap(["a"], []) == 0.0
        assert token_overlap(["a", "b"], ["b", "c"]) == pytest.approx(1 / 3)

    def test_best_similarity_takes_maximum(self):
        a, b = "telefon", "telefonnr"
        assert best_similarity(a, b) == max(levenshtein_similarity(a, b), jaro_winkler(a, b))

    @pytest.mark.parametrize("a, b, expected", [
        ("bead", "adeabad", 0.5595),
        ("ccdbdc", "dbcbe", 0.5333),
        ("crate", "trace", 0.7333),
    ])
    def test_jaro_counts_half_transpositions(self, a, b, expected):
        assert jaro(a, b) == pytest.approx(expected, abs=1e-4)
        assert jaro_winkler(a, b) == pytest.approx(expected, abs=1e-4)

    def test_jaro_window_limits_matches(self):
        # "a" sits 3 places apart, beyond the window of 1
        assert jaro("abcd", "xyza") == 0.0


WORDS = ["", "a", "vorname", "Vorname", "nachname", "e mail", "straße", "telefon nr", "plz", "geburtsdatum"]


class TestFuzzyProperties:
    @pytest.mark.parametrize("word", WORDS)
    def test_identity(self, word):
        assert levenshtein(word, word) == 0
        assert levenshtein_similarity(word, word) == 1.0
        assert jaro_winkler(word, word) == 1.0

    def test_empty_strings(self):
        assert jaro_winkler("", "") == 1.0
        assert jaro_winkler(None, None) == 1.0
        assert jaro_winkler("", "plz") == 0.0
        assert jaro_winkler("plz", "") == 0.0

    def test_levenshtein_is_symmetric(self):
        for a in WORDS:
            for b in WORDS:
                assert levenshtein(a, b) == levenshtein(b, a)

    def test_similarities_stay_in_range(self):
        for a in WORDS:
            for b in WORDS:
                assert 0.0 <= jaro_winkler(a, b) <= 1.0
                assert 0.0 <= levenshtein_similarity(a, b) <= 1.0
