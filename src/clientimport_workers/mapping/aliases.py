"""
Alias dictionary for German/Austrian column headers

Maps every canonical field to the header spellings seen in real exports:
German and English synonyms, abbreviations and deliberately mis-encoded
variants so that a still-corrupted header can match before repair.
"""
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from .models import CanonicalField
from .normalizer import normalize_header

F = CanonicalField

ALIASES: Dict[CanonicalField, Tuple[str, ...]] = {
    F.AMS_ID: (
        "ams id", "ams-id", "amsid", "ams_id", "ams nummer", "ams-nummer",
        "ams nr", "ams-nr", "amsnr", "kundennummer", "kunden nr", "kundennr",
        "klienten id", "klienten-id", "klientennummer", "client id", "customer id",
        "ams kundennummer", "ams-kundennummer", "ams kunden nr", "ams-kz",
        "personennummer", "pers nr", "pst nr",
    ),
    F.FIRST_NAME: (
        "vorname", "vornamen", "first name", "firstname", "first_name",
        "given name", "givenname", "rufname", "vname", "vn", "name vorname",
        "vorname�", "vor�name", "vor name", "forename",
    ),
    F.LAST_NAME: (
        "nachname", "familienname", "last name", "lastname", "last_name",
        "surname", "family name", "zuname", "nname", "nn", "name nachname",
        "nach�name", "nachname�", "name",
    ),
    F.TITLE: (
        "titel", "title", "anrede", "akademischer titel", "akad titel",
        "akad. titel", "grad", "salutation",
    ),
    F.GENDER: (
        "geschlecht", "gender", "sex", "geschl", "geschl.", "m/w", "m/w/d",
        "w/m", "w/m/d",
    ),
    F.BIRTH_DATE: (
        "geburtsdatum", "geb datum", "geb.datum", "geb. datum", "gebdatum",
        "geboren", "geboren am", "geb", "geb.", "birth date", "birthdate",
        "date of birth", "dob", "birthday", "geb�rtsdatum",
    ),
    F.SV_NUMBER: (
        "sv nummer", "sv-nummer", "svnummer", "sv nr", "sv-nr", "svnr",
        "sv-nr.", "sozialversicherungsnummer", "versicherungsnummer",
        "vers nr", "vsnr", "ssn", "social security number", "svn",
    ),
    F.PHONE: (
        "telefon", "tel", "tel.", "telefonnummer", "telefon nr", "telefon-nr",
        "telefon-nr.", "telnr", "tel nr", "tel. nr.", "handy", "handynummer",
        "mobil", "mobiltelefon", "mobilnummer", "mobile", "phone", "phone number",
        "telephone", "kontakt telefon", "telefonnr.", "telefonnr",
    ),
    F.EMAIL: (
        "email", "e-mail", "e mail", "mail", "emailadresse", "e-mail-adresse",
        "e-mail adresse", "email adresse", "mailadresse", "email address",
        "e-mail address", "mail address",
    ),
    F.ADDRESS: (
        "adresse", "address", "anschrift", "strasse", "straße", "stra�e",
        "strasse hausnummer", "straße hausnummer", "straße und hausnummer",
        "strasse und hausnummer", "str", "str.", "wohnadresse", "wohnanschrift",
        "street", "street address", "strasse nr", "straßennummer", "stra�ennummer",
    ),
    F.ZIP: (
        "plz", "postleitzahl", "zip", "zip code", "zipcode", "postal code",
        "postcode", "post code", "plz.",
    ),
    F.CITY: (
        "ort", "stadt", "city", "wohnort", "gemeinde", "town", "place",
        "ortschaft",
    ),
    F.COUNTRY_CODE: (
        "land", "country", "ländercode", "laendercode", "l�ndercode",
        "country code", "countrycode", "landesvorwahl", "ländervorwahl",
        "laendervorwahl", "staat", "nation",
    ),
    F.AREA_CODE: (
        "vorwahl", "area code", "areacode", "ortsvorwahl", "netzvorwahl",
        "vorwahl nr",
    ),
    F.PHONE_NUMBER: (
        "rufnummer", "phonenumber", "anschlussnummer",
        "durchwahl", "teilnehmernummer", "subscriber number",
    ),
    F.AMS_BOOKING_DATE: (
        "ams buchung", "ams-buchung", "amsbuchung", "buchungsdatum",
        "ams buchungsdatum", "ams-buchungsdatum", "gebucht am", "booking date",
        "zubuchung", "zubuchungsdatum",
    ),
    F.ENTRY_DATE: (
        "eintrittsdatum", "eintritt", "entry date", "entrydate", "start",
        "startdatum", "beginn", "kursbeginn", "maßnahmenbeginn",
        "massnahmenbeginn", "eintritt am", "start date",
    ),
    F.EXIT_DATE: (
        "austrittsdatum", "austritt", "exit date", "exitdate", "ende",
        "enddatum", "kursende", "maßnahmenende", "massnahmenende", "austritt am",
        "end date",
    ),
    F.AMS_AGENT_LAST_NAME: (
        "ams berater nachname", "ams-berater-nachname", "berater nachname",
        "ams betreuer nachname", "ams agent last name", "beraterin nachname",
    ),
    F.AMS_AGENT_FIRST_NAME: (
        "ams berater vorname", "ams-berater-vorname", "berater vorname",
        "ams betreuer vorname", "ams agent first name", "beraterin vorname",
    ),
    F.AMS_ADVISOR: (
        "ams berater", "ams-berater", "amsberater", "ams beraterin",
        "ams berater:in", "ams-betreuer", "ams betreuer", "ams advisor",
        "berater ams", "rgs berater",
    ),
    F.NOTE: (
        "notiz", "notizen", "note", "notes", "bemerkung", "bemerkungen",
        "anmerkung", "anmerkungen", "kommentar", "comment", "comments",
        "hinweis", "info", "beschreibung",
    ),
    F.INTERNAL_CODE: (
        "interner code", "internal code", "code", "intern", "interne nummer",
        "internal id", "kürzel", "kuerzel", "kennung",
    ),
    F.STATUS: (
        "status", "zustand", "state", "bearbeitungsstatus", "fallstatus",
        "stand",
    ),
    F.PRIORITY: (
        "priorität", "prioritaet", "priority", "prio", "priorit�t",
        "dringlichkeit", "wichtigkeit",
    ),
    F.RESULT: (
        "ergebnis", "result", "resultat", "outcome", "kontaktergebnis",
        "gesprächsergebnis", "gespraechsergebnis", "ausgang",
    ),
    F.ANGEBOT: (
        "angebot", "offer", "maßnahme", "massnahme", "ma�nahme", "programm",
        "kurs", "produkt", "maßnahmenart", "massnahmenart", "angebotsart",
    ),
    F.FOLLOW_UP: (
        "nachfass", "follow up", "followup", "follow-up", "wiedervorlage",
        "nächster termin", "naechster termin", "termin", "nachfassdatum",
        "wv", "wiedervorlage am", "rückruf", "rueckruf",
    ),
    F.LAST_ACTIVITY: (
        "letzte aktivität", "letzte aktivitaet", "last activity",
        "letzter kontakt", "last contact", "zuletzt bearbeitet",
        "letzte aktivit�t", "letzte änderung", "last modified",
    ),
    F.ASSIGNED_TO: (
        "zugewiesen an", "assigned to", "verantwortlich", "zuständig",
        "zustaendig", "zust�ndig", "betreuer", "betreuerin", "sachbearbeiter",
        "sachbearbeiterin", "owner", "bearbeiter",
    ),
}


def _compact(text: str) -> str:
    return text.replace(" ", "")


@dataclass(frozen=True)
class AliasTable:
    """Immutable alias dictionary with an O(1) reverse index

    The reverse index holds the raw lower-cased alias, its normalized
    matching form and the matching form without spaces. The first field to
    claim a key keeps it.
    """
    by_field: Mapping[CanonicalField, FrozenSet[str]]
    index: Mapping[str, CanonicalField]

    @classmethod
    def from_aliases(cls, aliases: Mapping[CanonicalField, Tuple[str, ...]]) -> "AliasTable":
        by_field: Dict[CanonicalField, FrozenSet[str]] = {}
        index: Dict[str, CanonicalField] = {}

        for field in CanonicalField:
            names = tuple(a.strip().lower() for a in aliases.get(field, ()) if a and a.strip())
            # The field's own key always resolves to itself
            names = names + (field.value.lower(),)
            by_field[field] = frozenset(names)

        # Spelled-out keys first, so compact forms never shadow a real alias
        for key_of in (
            lambda name: name,
            lambda name: normalize_header(name).normalized,
            lambda name: _compact(normalize_header(name).normalized),
        ):
            for field, names in by_field.items():
                for name in sorted(names):
                    key = key_of(name)
                    if key and key not in index:
                        index[key] = field

        return cls(by_field=MappingProxyType(by_field), index=MappingProxyType(index))

    @classmethod
    def default(cls) -> "AliasTable":
        return _default_table()

    def aliases_for(self, field: Any) -> FrozenSet[str]:
        return self.by_field.get(CanonicalField.parse(field), frozenset())

    def lookup(self, header: Any) -> Optional[CanonicalField]:
        """Resolve a header to its field by exact alias, or None"""
        if not isinstance(header, str):
            return None
        raw = header.strip().lower()
        if not raw:
            return None
        if raw in self.index:
            return self.index[raw]
        normalized = normalize_header(header).normalized
        if normalized in self.index:
            return self.index[normalized]
        return self.index.get(_compact(normalized))

    def all_aliases(self) -> Dict[str, CanonicalField]:
        return dict(self.index)

    def __len__(self) -> int:
        return len(self.index)


@lru_cache(maxsize=1)
def _default_table() -> AliasTable:
    return AliasTable.from_aliases(ALIASES)


def get_aliases(field: Any) -> FrozenSet[str]:
    return AliasTable.default().aliases_for(field)


def find_field_by_alias(header: Any) -> Optional[CanonicalField]:
    return AliasTable.default().lookup(header)
