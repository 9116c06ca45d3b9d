"""
Parsing of the brand/model/country/year segments used by the /buy/ hubs.

Stored values are free text typed by sellers ("Beneteau", "BENETEAU",
"Oceanis 51.1"), so each URL segment is expanded into the handful of
spellings it might have been stored under and the database is asked for
any of them case-insensitively.
"""
import re
from dataclasses import dataclass
from urllib.parse import unquote

from django.utils import timezone

_SPACES = re.compile(r"\s+")
_SEPARATORS = re.compile(r"[-_]+")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_SPLIT_NUMBER = re.compile(r"\b(\d+)\s+(\d+)\b")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

MIN_HUB_YEAR = 1900


def decode_param(value):
    return unquote(value or "")


def normalize_spaces(value):
    return _SPACES.sub(" ", value or "").strip()


def slugify_loose(value):
    """Lower-case slug that keeps every alphanumeric run: "B&B 51.1" -> "b-and-b-51-1"."""
    lowered = normalize_spaces(value).lower()
    lowered = lowered.replace("'", "").replace('"', "").replace("&", " and ")
    return _NON_ALNUM.sub("-", lowered).strip("-")


def title_case_words(value):
    # Only the first letter of each word changes, "RS" stays "RS"
    return " ".join(word[:1].upper() + word[1:] for word in normalize_spaces(value).split(" ") if word)


def uniq_strings(values):
    """Drop blanks and case-insensitive repeats, keeping first spellings."""
    seen = set()
    result = []
    for value in values:
        cleaned = normalize_spaces(str(value or ""))
        key = cleaned.lower()
        if not cleaned or key in seen:
            continue
        seen.add(key)
        result.append(cleaned)
    return result


def param_to_spaced(value):
    return normalize_spaces(_SEPARATORS.sub(" ", decode_param(value)))


def dotted_number_variant(value):
    """ "Oceanis 51 1" -> "Oceanis 51.1" """
    return _SPLIT_NUMBER.sub(r"\1.\2", value)


@dataclass(frozen=True)
class BrandParam:
    raw: str
    spaced: str
    display: str

    @property
    def variants(self):
        return uniq_strings([self.spaced, self.raw, self.display])


@dataclass(frozen=True)
class CountryParam:
    raw: str
    spaced: str
    display: str
    upper: str

    @property
    def variants(self):
        return uniq_strings([self.spaced, self.raw, self.display, self.upper])


@dataclass(frozen=True)
class ModelParam:
    raw: str
    spaced: str
    display: str
    candidates: tuple
    brand_candidate: str = None


def brand_from_param(param):
    raw = decode_param(param).strip()
    spaced = param_to_spaced(param)
    return BrandParam(raw=raw, spaced=spaced, display=title_case_words(spaced))


def country_from_param(param):
    raw = decode_param(param).strip()
    spaced = param_to_spaced(param)
    return CountryParam(raw=raw, spaced=spaced, display=title_case_words(spaced), upper=spaced.upper())


def _model_candidates(*forms):
    candidates = []
    for form in forms:
        dotted = dotted_number_variant(form)
        candidates.extend([form, dotted, title_case_words(form), title_case_words(dotted)])
    return tuple(uniq_strings(candidates))


def model_from_param(param):
    """
    Model segment on the model-only routes, where sellers' slugs often carry
    the brand: "beneteau-oceanis-51-1" is tried as the model
    "oceanis 51 1" (brand "beneteau") as well as the full spaced text.
    """
    raw = decode_param(param).strip()
    spaced = param_to_spaced(param)
    parts = spaced.split(" ") if spaced else []

    brand_candidate = parts[0] if len(parts) >= 2 else None
    model_candidate = " ".join(parts[1:]) if len(parts) >= 2 else ""
    canonical = model_candidate or spaced

    return ModelParam(
        raw=raw,
        spaced=spaced,
        display=title_case_words(canonical),
        candidates=_model_candidates(canonical, spaced),
        brand_candidate=brand_candidate,
    )


def model_from_param_scoped(param):
    """Model segment under /buy/brand/<brand>/, where the brand is already known."""
    raw = decode_param(param).strip()
    spaced = param_to_spaced(param)
    return ModelParam(
        raw=raw,
        spaced=spaced,
        display=title_case_words(spaced),
        candidates=_model_candidates(spaced),
    )


def parse_year_param(param, today=None):
    match = _LEADING_INT.match(decode_param(param))
    if not match:
        return None
    year = int(match.group(1))
    current = (today or timezone.now().date()).year
    if year < MIN_HUB_YEAR or year > current + 1:
        return None
    return year


def brand_slug_from_value(value):
    return slugify_loose(value)


def country_slug_from_value(value):
    return slugify_loose(value)


def model_slug_from_value(value):
    # "Oceanis 51.1" -> "oceanis-51-1"; the dot survives the round trip as a space
    return slugify_loose(dotted_number_variant(normalize_spaces(value)))
