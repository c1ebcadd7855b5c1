"""
Header normalization

Repairs encoding artifacts in raw column headers and derives two forms from
the repaired text:
- a display form that keeps umlauts, case and punctuation
- a matching form with diacritics folded, separators collapsed, lower-cased

The matching form is tokenized for overlap scoring. Every function here is
pure and never raises; unusable input yields an empty result.
"""
import re
import unicodedata
from functools import lru_cache
from typing import Any, List, Tuple

from .models import RawHeader
from .fuzzy import token_overlap

REPLACEMENT_CHAR = "�"

# Whole-word repairs for known broken German terms. Applied first and in
# order, so that longer terms win over their prefixes.
WORD_REPAIRS: Tuple[Tuple[str, str], ...] = (
    ("Ma�nahmennummer", "Maßnahmennummer"),
    ("Stra�ennummer", "Straßennummer"),
    ("Ma�nahme", "Maßnahme"),
    ("Stra�e", "Straße"),
    ("Geb�ude", "Gebäude"),
    ("Geb�hren", "Gebühren"),
    ("Schl�ssel", "Schlüssel"),
    ("Gr��e", "Größe"),
    ("Wei�", "Weiß"),
    ("Fu�", "Fuß"),
    ("Pr�fung", "Prüfung"),
    ("Erg�nzung", "Ergänzung"),
    ("Erl�uterung", "Erläuterung"),
    ("Verf�gung", "Verfügung"),
    ("Zust�ndigkeit", "Zuständigkeit"),
    ("T�tigkeit", "Tätigkeit"),
    ("Qualit�t", "Qualität"),
    ("Priorit�t", "Priorität"),
    ("Aktivit�t", "Aktivität"),
    ("Nationalit�t", "Nationalität"),
    ("Telefonnr�", "Telefonnr."),
    ("Berater�in", "Berater:in"),
    ("L�ndercode", "Ländercode"),
    ("R�ckmeldung", "Rückmeldung"),
    ("Zugeh�rigkeit", "Zugehörigkeit"),
    ("Gesch�ftsfall", "Geschäftsfall"),
    ("M�nnlich", "Männlich"),
)

# UTF-8 bytes decoded as Latin-1/Windows-1252
DOUBLE_ENCODING_REPAIRS: Tuple[Tuple[str, str], ...] = (
    ("Ã¤", "ä"), ("Ã¶", "ö"), ("Ã¼", "ü"),
    ("Ã„", "Ä"), ("Ã–", "Ö"), ("Ãœ", "Ü"),
    ("ÃŸ", "ß"), ("Ã©", "é"), ("Ã¨", "è"),
    ("â€™", "'"), ("â€œ", '"'), ("â€\x9d", '"'),
    ("â€“", "–"), ("â€”", "—"),
    ("Â ", " "), ("Â", ""),
)

DIACRITIC_FOLDS = {
    "ä": "ae", "ö": "oe", "ü": "ue",
    "Ä": "Ae", "Ö": "Oe", "Ü": "Ue",
    "ß": "ss", "ẞ": "SS",
}

STOP_WORDS = frozenset({"und", "der", "die", "das", "von", "zu", "im", "am", "an", "auf"})

_LOWER = "a-zäöüß"
_LETTER = "A-Za-zÄÖÜäöüß"
_WHITESPACE = re.compile(r"\s+")
_LOST_BETWEEN_LOWER = re.compile(rf"(?<=[{_LOWER}])[{REPLACEMENT_CHAR}?](?=[{_LOWER}])")
_LOST_AT_EDGE = re.compile(REPLACEMENT_CHAR)
_SEPARATORS = re.compile(r"[_\-./\\|+&*#:;,'\"`´=<>!?]")
_BRACKETS = re.compile(r"[()\[\]{}]")
_LEFT_BOUNDARY = rf"(?<![{_LETTER}])"


def _match_case(replacement: str, matched: str) -> str:
    if matched.isupper():
        return replacement.upper()
    if matched[:1].islower():
        return replacement[:1].lower() + replacement[1:]
    return replacement


@lru_cache(maxsize=None)
def _word_rule(broken: str) -> "re.Pattern":
    return re.compile(_LEFT_BOUNDARY + re.escape(broken), re.IGNORECASE)


def repair_mojibake(text: str) -> Tuple[str, List[str]]:
    """Repair encoding artifacts, returning the text and applied substitutions"""
    repaired = text
    repairs: List[str] = []

    for broken, fixed in WORD_REPAIRS:
        pattern = _word_rule(broken)
        if pattern.search(repaired):
            def substitute(match, fixed=fixed):
                replacement = _match_case(fixed, match.group(0))
                repairs.append(f"{match.group(0)} -> {replacement}")
                return replacement
            repaired = pattern.sub(substitute, repaired)

    for broken, fixed in DOUBLE_ENCODING_REPAIRS:
        if broken in repaired:
            repaired = repaired.replace(broken, fixed)
            repairs.append(f"{broken} -> {fixed}")

    # A lost character inside a lowercase run is most likely ß
    if _LOST_BETWEEN_LOWER.search(repaired):
        def lost_sharp_s(match):
            repairs.append(f"{match.group(0)} -> ß")
            return "ß"
        repaired = _LOST_BETWEEN_LOWER.sub(lost_sharp_s, repaired)

    # At a word edge, most likely ä
    if REPLACEMENT_CHAR in repaired:
        def lost_umlaut(match):
            repairs.append(f"{match.group(0)} -> ä")
            return "ä"
        repaired = _LOST_AT_EDGE.sub(lost_umlaut, repaired)

    return repaired, repairs


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def fold_diacritics(text: str) -> str:
    """Fold umlauts to their two-letter forms and strip other accents"""
    folded = "".join(DIACRITIC_FOLDS.get(char, char) for char in text)
    decomposed = unicodedata.normalize("NFKD", folded)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def matching_form(text: str) -> str:
    """Lower-cased, diacritic-free, separator-free form used for comparisons"""
    folded = fold_diacritics(text)
    folded = _BRACKETS.sub("", folded)
    folded = _SEPARATORS.sub(" ", folded)
    return collapse_whitespace(folded).lower()


def tokenize(normalized: str) -> Tuple[str, ...]:
    return tuple(
        token for token in normalized.split()
        if token and token not in STOP_WORDS
    )


@lru_cache(maxsize=4096)
def _normalize_cached(raw: str) -> RawHeader:
    repaired, repairs = repair_mojibake(raw)
    display = collapse_whitespace(repaired)
    normalized = matching_form(display)
    return RawHeader(
        original=raw,
        repaired=repaired,
        normalized=normalized,
        display=display,
        tokens=tokenize(normalized),
        repairs=tuple(repairs),
    )


def normalize_header(raw: Any) -> RawHeader:
    """Normalize a raw header; non-string or blank input gives an empty header"""
    if not isinstance(raw, str) or not raw.strip():
        return RawHeader.empty(raw)
    return _normalize_cached(raw)


def display_header(raw: Any) -> str:
    """Repaired header for display, keeping case and umlauts"""
    return normalize_header(raw).display


def headers_match(header_a: Any, header_b: Any) -> bool:
    """True when both headers share the same matching form, ignoring spacing"""
    a = normalize_header(header_a).normalized
    b = normalize_header(header_b).normalized
    return a == b or a.replace(" ", "") == b.replace(" ", "")


def token_overlap_for_headers(header_a: Any, header_b: Any) -> float:
    """Jaccard overlap of the tokens of two headers"""
    return token_overlap(normalize_header(header_a).tokens, normalize_header(header_b).tokens)


def fold_for_key(text: Any) -> str:
    """Aggressive fold for identity keys: letters and digits only"""
    if text is None:
        return ""
    return re.sub(r"[^a-z0-9]", "", fold_diacritics(str(text)).lower())
