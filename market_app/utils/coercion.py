"""
Lenient coercion of incoming listing payloads.

The listing wizard posts loosely typed JSON: numbers arrive as strings
("12ft"), enums in any casing and lists may contain junk.
Every helper here returns a best-effort typed value and never raises;
unparseable input becomes ``None`` (or an empty value).
"""
import math
import re
import uuid
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.utils.dateparse import parse_date, parse_datetime

from ..models import (
    CharterPricePeriod,
    Currency,
    ListingIntent,
    ListingKind,
    ListingStatus,
    PartsCondition,
    PriceType,
    SellerType,
    VesselCondition,
)

# Returned by field rules when the incoming value must not touch the record
UNSET = object()

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)")

# Column ranges: IntegerField and BigIntegerField
INT32_MAX = 2 ** 31 - 1
INT64_MAX = 2 ** 63 - 1

LISTING_TYPES = {
    "sale": (ListingKind.VESSEL, ListingIntent.SALE),
    "charter": (ListingKind.VESSEL, ListingIntent.CHARTER),
    "parts": (ListingKind.PARTS, ListingIntent.SALE),
    "service": (ListingKind.SERVICES, ListingIntent.SALE),
}


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def text(value):
    return value if isinstance(value, str) else ""


def text_or_none(value):
    return text(value).strip() or None


def flag(value):
    return value is True


def _within(number, bound):
    if bound is None or -bound - 1 <= number <= bound:
        return number
    return None


def int_or_none(value, bound=INT64_MAX):
    """Leading integer of ``value``; ``None`` when it falls outside +/- ``bound``."""
    if _is_number(value):
        return _within(int(value), bound) if math.isfinite(value) else None
    match = _LEADING_INT.match(text(value))
    return _within(int(match.group(1)), bound) if match else None


def int32_or_none(value):
    return int_or_none(value, INT32_MAX)


def float_or_none(value):
    if _is_number(value):
        value = float(value)
        return value if math.isfinite(value) else None
    match = _LEADING_FLOAT.match(text(value))
    if not match:
        return None
    parsed = float(match.group(1))
    return parsed if math.isfinite(parsed) else None


def price_cents_or_none(value):
    """Major currency units to integer cents, rounding half up."""
    amount = float_or_none(value)
    if amount is None:
        return None
    try:
        cents = (Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None
    return _within(int(cents), INT64_MAX)


def string_list(value):
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, str)]


def date_or_none(value):
    raw = text(value).strip()
    if not raw:
        return None
    try:
        moment = parse_datetime(raw)
        if moment is not None:
            return moment.date()
        return parse_date(raw)
    except ValueError:
        return None


def choice_or_none(value, choices):
    """Case-insensitive match of ``value`` against a TextChoices allow-list."""
    candidate = text(value).strip().upper()
    if candidate in choices.values:
        return choices(candidate)
    return None


def currency_or_none(value):
    return choice_or_none(value, Currency)


def price_type_or_none(value):
    return choice_or_none(value, PriceType)


def vessel_condition_or_none(value):
    return choice_or_none(value, VesselCondition)


def parts_condition_or_none(value):
    return choice_or_none(value, PartsCondition)


def seller_type_or_none(value):
    return choice_or_none(value, SellerType)


def charter_price_period_or_none(value):
    return choice_or_none(value, CharterPricePeriod)


def status_or_none(value):
    return choice_or_none(value, ListingStatus)


def kind_intent_from_listing_type(value):
    return LISTING_TYPES.get(text(value).strip().lower())


def listing_type_for(kind, intent):
    """Inverse of kind_intent_from_listing_type, used when echoing listings back."""
    for listing_type, pair in LISTING_TYPES.items():
        if pair == (kind, intent):
            return listing_type
    return "sale"


def is_blob_or_data_url(url):
    return url.startswith("blob:") or url.startswith("data:image/")


def _is_blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


def _nullable_choice(parser):
    # null or "" clears, unknown strings leave the stored value alone
    def rule(value):
        if _is_blank(value):
            return None
        parsed = parser(value)
        return UNSET if parsed is None else parsed

    return rule


def _sticky_choice(parser):
    def rule(value):
        parsed = parser(value)
        return UNSET if parsed is None else parsed

    return rule


def _title(value):
    return text(value).strip()


# wire name -> (model field, rule)
FIELD_RULES = {
    "title": ("title", _title),
    "description": ("description", text_or_none),
    "location": ("location", text_or_none),
    "country": ("country", text_or_none),
    "marina": ("marina", text_or_none),
    "lying": ("lying", text_or_none),
    "currency": ("currency", _sticky_choice(currency_or_none)),
    "priceType": ("price_type", _sticky_choice(price_type_or_none)),
    "taxStatus": ("tax_status", text_or_none),
    "boatCategory": ("boat_category", text_or_none),
    "charterType": ("charter_type", text_or_none),
    "condition": ("vessel_condition", _nullable_choice(vessel_condition_or_none)),
    "brand": ("brand", text_or_none),
    "model": ("model", text_or_none),
    "year": ("year", int32_or_none),
    "lengthFt": ("length_ft", float_or_none),
    "lengthM": ("length_m", float_or_none),
    "beamFt": ("beam_ft", float_or_none),
    "beamM": ("beam_m", float_or_none),
    "draftFt": ("draft_ft", float_or_none),
    "draftM": ("draft_m", float_or_none),
    "displacement": ("displacement", text_or_none),
    "hullMaterial": ("hull_material", text_or_none),
    "hullType": ("hull_type", text_or_none),
    "hullColor": ("hull_color", text_or_none),
    "engineMake": ("engine_make", text_or_none),
    "engineModel": ("engine_model", text_or_none),
    "enginePower": ("engine_power", text_or_none),
    "engineCount": ("engine_count", int32_or_none),
    "engineHours": ("engine_hours", int32_or_none),
    "fuelType": ("fuel_type", text_or_none),
    "fuelCapacity": ("fuel_capacity", text_or_none),
    "cabins": ("cabins", int32_or_none),
    "berths": ("berths", int32_or_none),
    "heads": ("heads", int32_or_none),
    "features": ("features", string_list),
    "electronics": ("electronics", string_list),
    "safetyEquipment": ("safety_equipment", string_list),
    "customFeatures": ("custom_features", text_or_none),
    "charterGuests": ("charter_guests", int32_or_none),
    "charterCrew": ("charter_crew", int32_or_none),
    "charterPricePeriod": ("charter_price_period", _nullable_choice(charter_price_period_or_none)),
    "charterAvailableFrom": ("charter_available_from", date_or_none),
    "charterAvailableTo": ("charter_available_to", date_or_none),
    "charterIncluded": ("charter_included", string_list),
    "serviceCategory": ("service_category", text_or_none),
    "serviceName": ("service_name", text_or_none),
    "serviceDescription": ("service_description", text_or_none),
    "serviceExperience": ("service_experience", text_or_none),
    "serviceAreas": ("service_areas", string_list),
    "partsCategory": ("parts_category", text_or_none),
    "partsCondition": ("parts_condition", _nullable_choice(parts_condition_or_none)),
    "partsCompatibility": ("parts_compatibility", text_or_none),
    "sellerType": ("seller_type", _sticky_choice(seller_type_or_none)),
    "sellerName": ("seller_name", text_or_none),
    "sellerCompany": ("seller_company", text_or_none),
    "sellerEmail": ("seller_email", text_or_none),
    "sellerPhone": ("seller_phone", text_or_none),
    "sellerWhatsapp": ("seller_whatsapp", flag),
    "sellerLocation": ("seller_location", text_or_none),
    "sellerWebsite": ("seller_website", text_or_none),
    "featured": ("featured", flag),
    "urgent": ("urgent", flag),
    "acceptOffers": ("accept_offers", flag),
    "videoUrl": ("video_url", text_or_none),
    "virtualTourUrl": ("virtual_tour_url", text_or_none),
    "recentWorks": ("recent_works", text_or_none),
}

# model field -> wire name, for serialising listings back to the client
WIRE_NAMES = {field: wire for wire, (field, _rule) in FIELD_RULES.items()}


def coerce_listing_patch(body):
    """
    Turn a wizard payload into ``{model_field: value}``.

    Only keys present in ``body`` produce entries, so the result can be laid
    over a persisted listing. ``status`` and ``photoUrls`` are left to the
    caller.
    """
    if not isinstance(body, dict):
        return {}

    changes = {}
    for wire_name, (field, rule) in FIELD_RULES.items():
        if wire_name not in body:
            continue
        value = rule(body[wire_name])
        if value is not UNSET:
            changes[field] = value

    if "listingType" in body:
        pair = kind_intent_from_listing_type(body["listingType"])
        if pair is not None:
            changes["kind"], changes["intent"] = pair

    # The charter step posts its rate as charterBasePrice
    if "price" in body or "charterBasePrice" in body:
        price = body.get("price")
        candidate = price if not _is_blank(price) else body.get("charterBasePrice")
        changes["price_cents"] = price_cents_or_none(candidate)

    return changes


def uuid_or_none(value):
    try:
        return uuid.UUID(text(value).strip())
    except ValueError:
        return None
