"""
Per-field value normalization

Converts raw cell values into the canonical representation of their field:
phone numbers split into country/area/subscriber parts, gender tokens, the
enumerated business fields and plain text. Every helper follows the
optional-return idiom and never raises for bad input.
"""
import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional, Union

import phonenumbers
from phonenumbers import NumberParseException

from ..config import settings
from ..mapping.normalizer import fold_diacritics
from .models import Angebot, ContactResult, Gender, Priority, Status


@dataclass
class PhoneParts:
    """A phone number split into its dialling parts"""
    display: str
    country_code: Optional[str] = None
    area_code: Optional[str] = None
    subscriber: Optional[str] = None
    e164: Optional[str] = None
    is_valid: bool = False

    @property
    def is_split(self) -> bool:
        return bool(self.country_code and self.subscriber)


_INTERNATIONAL = re.compile(r"^\+(\d{1,3})[\s/-]*(\d{1,4})[\s/-]*(.+)$")
_NATIONAL = re.compile(r"^0(\d{1,4})[\s/-]*(.+)$")


def _clean_phone_number(phone: str) -> str:
    """Strip formatting characters; a leading 00 becomes +"""
    cleaned = re.sub(r"[^\d+]", "", phone)
    if cleaned.startswith("00"):
        cleaned = "+" + cleaned[2:]
    return cleaned


def _fallback_phone_parsing(text: str, region: str) -> Optional[PhoneParts]:
    """Split by prefix when the phonenumbers metadata does not help"""
    match = _INTERNATIONAL.match(text)
    if match:
        return PhoneParts(
            display=text,
            country_code=f"+{match.group(1)}",
            area_code=match.group(2),
            subscriber=re.sub(r"\D", "", match.group(3)),
        )
    match = _NATIONAL.match(text)
    if match:
        # National trunk prefix, assume the default region
        dial_code = phonenumbers.country_code_for_region(region) or 43
        return PhoneParts(
            display=text,
            country_code=f"+{dial_code}",
            area_code=match.group(1),
            subscriber=re.sub(r"\D", "", match.group(2)),
        )
    return None


def build_phone(value: Any, region: Optional[str] = None) -> Optional[PhoneParts]:
    """Decompose a phone number; unrecognizable numbers pass through as display"""
    if value is None or isinstance(value, bool):
        return None
    text = clean_text(value)
    if not text:
        return None

    region = region or settings.default_phone_region
    cleaned = _clean_phone_number(text)
    if len(re.sub(r"\D", "", cleaned)) < 5:
        return PhoneParts(display=text)

    try:
        parsed = phonenumbers.parse(cleaned, region)
    except NumberParseException:
        parsed = None

    if parsed is not None and phonenumbers.is_possible_number(parsed):
        national = phonenumbers.national_significant_number(parsed)
        area_length = (
            phonenumbers.length_of_geographical_area_code(parsed)
            or phonenumbers.length_of_national_destination_code(parsed)
        )
        if 0 < area_length < len(national):
            return PhoneParts(
                display=text,
                country_code=f"+{parsed.country_code}",
                area_code=national[:area_length],
                subscriber=national[area_length:],
                e164=phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164),
                is_valid=phonenumbers.is_valid_number(parsed),
            )

    fallback = _fallback_phone_parsing(text, region)
    if fallback:
        return fallback
    return PhoneParts(display=text)


def is_plausible_phone(value: Any, region: Optional[str] = None) -> bool:
    """True when phonenumbers accepts the number as valid"""
    text = clean_text(value)
    if not text:
        return False
    try:
        parsed = phonenumbers.parse(_clean_phone_number(text), region or settings.default_phone_region)
    except NumberParseException:
        return False
    return phonenumbers.is_valid_number(parsed)


GENDER_TOKENS: Dict[str, Gender] = {
    **{token: Gender.MALE for token in ("m", "male", "mann", "männlich", "maennlich", "herr", "hr", "1")},
    **{token: Gender.FEMALE for token in ("f", "w", "female", "frau", "weiblich", "fr", "2")},
    **{token: Gender.DIVERSE for token in ("d", "diverse", "divers", "other", "x", "inter", "3")},
}


def normalize_gender(value: Any, extra_tokens: Optional[Mapping[str, Any]] = None) -> Optional[Gender]:
    """Map a gender token to M/F/D; unknown tokens give None"""
    if isinstance(value, Gender):
        return value
    text = clean_text(value)
    if not text:
        return None
    token = text.lower().rstrip(".")
    for raw, mapped in (extra_tokens or {}).items():
        if raw.strip().lower() == token:
            try:
                return Gender(str(mapped).strip().upper())
            except ValueError:
                return None
    return GENDER_TOKENS.get(token)


def enum_key(value: Any) -> str:
    """Case, whitespace and diacritic insensitive lookup key"""
    return re.sub(r"[\s_\-]", "", fold_diacritics(str(value)).lower())


def _synonyms(pairs: Mapping[str, Any]) -> Dict[str, Any]:
    return {enum_key(raw): canonical for raw, canonical in pairs.items()}


PRIORITY_SYNONYMS = _synonyms({
    "niedrig": Priority.NIEDRIG, "low": Priority.NIEDRIG, "gering": Priority.NIEDRIG,
    "normal": Priority.NORMAL, "mittel": Priority.NORMAL, "medium": Priority.NORMAL,
    "hoch": Priority.HOCH, "high": Priority.HOCH, "wichtig": Priority.HOCH,
    "dringend": Priority.DRINGEND, "urgent": Priority.DRINGEND, "sehr hoch": Priority.DRINGEND,
    "prio1": Priority.DRINGEND, "prio2": Priority.HOCH,
    "prio3": Priority.NORMAL, "prio4": Priority.NIEDRIG,
})

STATUS_SYNONYMS = _synonyms({
    "offen": Status.OFFEN, "open": Status.OFFEN, "neu": Status.OFFEN,
    "in bearbeitung": Status.IN_BEARBEITUNG, "in-bearbeitung": Status.IN_BEARBEITUNG,
    "in progress": Status.IN_BEARBEITUNG,
    "termin vereinbart": Status.TERMIN_VEREINBART, "termin fixiert": Status.TERMIN_VEREINBART,
    "wartet rückmeldung": Status.WARTET_RUECKMELDUNG, "wartet auf rückmeldung": Status.WARTET_RUECKMELDUNG,
    "dokumente offen": Status.DOKUMENTE_OFFEN,
    "förderabklärung": Status.FOERDER_ABKLAERUNG, "förder abklärung": Status.FOERDER_ABKLAERUNG,
    "zugewiesen extern": Status.ZUGEWIESEN_EXTERN,
    "ruht": Status.RUHT, "pausiert": Status.RUHT,
    "erledigt": Status.ERLEDIGT, "done": Status.ERLEDIGT, "abgeschlossen": Status.ERLEDIGT,
    "nicht erreichbar": Status.NICHT_ERREICHBAR, "nicht-erreichbar": Status.NICHT_ERREICHBAR,
    "abgebrochen": Status.ABGEBROCHEN, "vom tas entfernt": Status.ABGEBROCHEN,
})

RESULT_SYNONYMS = _synonyms({
    "infogespräch": ContactResult.INFOGESPRAECH, "infosgespräch": ContactResult.INFOGESPRAECH,
    "termin fixiert": ContactResult.TERMIN_FIXIERT, "termin vereinbart": ContactResult.TERMIN_FIXIERT,
    "nachricht hinterlassen": ContactResult.NACHRICHT_HINTERLASSEN, "nachricht": ContactResult.NACHRICHT_HINTERLASSEN,
    "rückruf zugesagt": ContactResult.RUECKRUF_ZUGESAGT, "rückmeldung erwartet": ContactResult.RUECKRUF_ZUGESAGT,
    "keine reaktion": ContactResult.KEINE_REAKTION,
    "ablehnung": ContactResult.ABLEHNUNG,
    "maßnahme beendet": ContactResult.MASSNAHME_BEENDET,
    "vermittelt": ContactResult.VERMITTELT, "arbeitsaufnahme": ContactResult.VERMITTELT,
    "sonstiges": ContactResult.SONSTIGES,
    "bam": ContactResult.BAM,
    "bewerbungsbüro": ContactResult.BEWERBUNGSBUERO,
    "lebenslauf": ContactResult.LEBENSLAUF,
    "mailaustausch": ContactResult.MAILAUSTAUSCH,
    "gesundheitliche maßnahme": ContactResult.GESUNDHEITLICHE_MASSNAHME,
    "übergabe an ams": ContactResult.UEBERGABE_AN_AMS,
    "termin nicht eingehalten": ContactResult.TERMIN_NICHT_EINGEHALTEN,
    "kein interesse": ContactResult.KEIN_INTERESSE,
})

ANGEBOT_SYNONYMS = _synonyms({
    "bam": Angebot.BAM,
    "ll/b+": Angebot.LL_B_PLUS, "llb+": Angebot.LL_B_PLUS, "lebenslauf/bewerbung": Angebot.LL_B_PLUS,
    "bwb": Angebot.BWB, "bewerbungsbüro": Angebot.BWB,
    "nb": Angebot.NB, "nachbetreuung": Angebot.NB,
})


def _match(value: Any, synonyms: Mapping[str, Any]):
    text = clean_text(value)
    if not text:
        return None
    return synonyms.get(enum_key(text))


def match_priority(value: Any) -> Optional[Priority]:
    return _match(value, PRIORITY_SYNONYMS)


def match_status(value: Any) -> Optional[Status]:
    return _match(value, STATUS_SYNONYMS)


def match_result(value: Any) -> Optional[ContactResult]:
    return _match(value, RESULT_SYNONYMS)


def match_angebot(value: Any) -> Optional[Angebot]:
    return _match(value, ANGEBOT_SYNONYMS)


def clean_text(value: Any) -> Optional[str]:
    """Trimmed text; whole floats from spreadsheets lose their '.0'"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        if value.is_integer():
            value = int(value)
    if isinstance(value, datetime):
        value = value.isoformat()
    elif isinstance(value, date):
        value = value.isoformat()
    text = re.sub(r"\s+", " ", str(value)).strip()
    return text or None


def normalize_email(value: Any) -> Optional[str]:
    text = clean_text(value)
    return text.lower().replace(" ", "") if text else None


def normalize_sv_number(value: Any) -> Optional[str]:
    text = clean_text(value)
    return re.sub(r"\s+", "", text) if text else None


TRUE_TOKENS = frozenset({"1", "true", "yes", "ja", "y", "j", "wahr", "x"})
FALSE_TOKENS = frozenset({"0", "false", "no", "nein", "n", "falsch"})


def parse_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    text = clean_text(value)
    if not text:
        return None
    token = text.lower()
    if token in TRUE_TOKENS:
        return True
    if token in FALSE_TOKENS:
        return False
    return None


def parse_number(value: Any) -> Optional[Union[int, float]]:
    """Parse numbers with either decimal comma or decimal point"""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return None
        return value
    text = clean_text(value)
    if not text:
        return None
    text = text.replace(" ", "")
    if "," in text and "." in text:
        text = text.replace(".", "").replace(",", ".")
    elif "," in text:
        text = text.replace(",", ".")
    try:
        number = float(text)
    except ValueError:
        return None
    return int(number) if number.is_integer() and "." not in text else number
