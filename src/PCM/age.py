"""
Age strings used in the age_of_onset / age_at_last_encounter columns and in phenotype cells.

An age string is valid if it is one of:
  - the literal "na",
  - one of the HPO onset labels (e.g. "Congenital onset"),
  - an ISO 8601 duration restricted to years/months/days with at least one
    positive component (e.g. "P3Y", "P1Y9M", "P10D"),
  - a gestational age token (e.g. "G20w", "G20w1d").

`normalize_age_string` converts free text found in legacy spreadsheets
("neonate", "1y9m", "2 weeks") into one of the forms above.
"""

import math
import re
import typing

ONSET_LABELS: typing.Tuple[str, ...] = (
    "Late onset",
    "Middle age onset",
    "Young adult onset",
    "Late young adult onset",
    "Intermediate young adult onset",
    "Early young adult onset",
    "Adult onset",
    "Juvenile onset",
    "Childhood onset",
    "Infantile onset",
    "Neonatal onset",
    "Congenital onset",
    "Antenatal onset",
    "Embryonal onset",
    "Fetal onset",
    "Late first trimester onset",
    "Second trimester onset",
    "Third trimester onset",
)

NOT_AVAILABLE = "na"

_ISO8601_RE = re.compile(r"^P(?:(?P<years>\d+)Y)?(?:(?P<months>\d+)M)?(?:(?P<days>\d+)D)?$")
_GESTATIONAL_RE = re.compile(r"^G\d+w(?:[0-6]d)?$")

# Free-text synonyms seen in legacy templates (keys are lower case)
_SYMBOLIC_AGE_MAP = {
    "antenatal": "Antenatal onset",
    "neonate": "Neonatal onset",
    "neonatal": "Neonatal onset",
    "birth": "Congenital onset",
    "congenital": "Congenital onset",
    "childhood": "Childhood onset",
    "adult": "Adult onset",
    "unk": NOT_AVAILABLE,
    "na": NOT_AVAILABLE,
}

_YEAR_RE = re.compile(r"(\d+(?:\.\d+)?)\s*y", re.IGNORECASE)
_MONTH_RE = re.compile(r"(\d+(?:\.\d+)?)\s*m", re.IGNORECASE)
_WEEK_RE = re.compile(r"(\d+(?:\.\d+)?)\s*w", re.IGNORECASE)
_DAY_RE = re.compile(r"(\d+)\s*d", re.IGNORECASE)


def is_iso8601_duration(value: str) -> bool:
    """True for P[nY][nM][nD] with at least one positive component ("P0Y" and "P" are rejected)."""
    m = _ISO8601_RE.match(value)
    if not m:
        return False
    components = [c for c in m.group("years", "months", "days") if c is not None]
    return any(int(c) > 0 for c in components)


def is_gestational_age(value: str) -> bool:
    return bool(_GESTATIONAL_RE.match(value))


def is_valid_age_string(value: str, onset_labels: typing.Collection[str] = ONSET_LABELS) -> bool:
    if not value:
        return False
    if value == NOT_AVAILABLE:
        return True
    if value in onset_labels:
        return True
    return is_iso8601_duration(value) or is_gestational_age(value)


def map_age_string_to_symbolic(value: str, onset_labels: typing.Collection[str] = ONSET_LABELS) -> typing.Optional[str]:
    """Map a synonym such as "neonate" to its onset label; exact onset labels map to themselves."""
    mapped = _SYMBOLIC_AGE_MAP.get(value.strip().lower())
    if mapped is not None:
        return mapped
    if value in onset_labels:
        return value
    return None


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _first_number(pattern: re.Pattern, value: str) -> typing.Optional[float]:
    m = pattern.search(value)
    return float(m.group(1)) if m else None


def map_ymd_to_iso(value: str) -> typing.Optional[str]:
    """
    Convert free text like "1y9m", "5y6m3d", "2 weeks" or "1.5 years" to an ISO 8601 duration.

    Fractional years become months, weeks become days. Zero components are omitted;
    returns None if nothing was recognised or every component is zero.
    """
    y_val = _first_number(_YEAR_RE, value)
    m_val = _first_number(_MONTH_RE, value)
    w_val = _first_number(_WEEK_RE, value)
    d_val = _first_number(_DAY_RE, value)
    if y_val is None and m_val is None and w_val is None and d_val is None:
        return None

    raw_years = y_val or 0.0
    years = int(math.floor(raw_years))
    months = int(math.floor(m_val or 0.0)) + _round_half_up((raw_years - years) * 12.0)
    days = int(math.floor(d_val or 0.0)) + _round_half_up((w_val or 0.0) * 7.0)

    iso = "P"
    if years > 0:
        iso += f"{years}Y"
    if months > 0:
        iso += f"{months}M"
    if days > 0:
        iso += f"{days}D"
    return None if iso == "P" else iso


def normalize_age_string(value: str, onset_labels: typing.Collection[str] = ONSET_LABELS) -> typing.Optional[str]:
    """
    Return a valid age string for `value`, or None if it cannot be interpreted.

    Valid input is returned unchanged ("G20w1d" stays "G20w1d"), then synonyms are
    tried ("neonate" -> "Neonatal onset"), then the y/m/w/d parser ("1y9m" -> "P1Y9M").
    """
    if value is None:
        return None
    stripped = value.strip()
    if is_valid_age_string(stripped, onset_labels):
        return stripped
    symbolic = map_age_string_to_symbolic(stripped, onset_labels)
    if symbolic is not None:
        return symbolic
    return map_ymd_to_iso(stripped)
