"""
Publish gating for listings.

A listing may only go LIVE once it carries the minimum set of fields for
its kind. Validation runs against the *effective* state: the persisted row
with the incoming changes laid on top, computed without writing anything.
"""
from dataclasses import dataclass
from types import MappingProxyType

from ..exceptions import ListingIncomplete
from ..models import Listing, ListingIntent, ListingKind, ListingStatus, PriceType, SellerType
from .media_sync import clean_photo_urls

EXCLUDED_FIELDS = {"id", "profile", "created_at", "updated_at"}

LISTING_FIELDS = tuple(
    f.name for f in Listing._meta.concrete_fields if f.name not in EXCLUDED_FIELDS
)


@dataclass(frozen=True)
class EffectiveState:
    values: MappingProxyType
    photo_urls: tuple

    def __getitem__(self, name):
        return self.values[name]

    def get(self, name, default=None):
        return self.values.get(name, default)


def _persisted_photo_urls(listing):
    if listing is None or listing._state.adding:
        return ()
    return tuple(listing.media.order_by("sort", "created_at").values_list("url", flat=True))


def build_effective_state(listing, changes, photo_urls=None):
    """
    Merge ``changes`` over ``listing`` without touching the database row.

    ``listing`` may be ``None`` for a listing that does not exist yet, in
    which case model defaults fill the gaps. When ``photo_urls`` is ``None``
    the persisted media is used.
    """
    base = listing if listing is not None else Listing()
    values = {name: getattr(base, name) for name in LISTING_FIELDS}
    values.update({name: value for name, value in changes.items() if name in values})

    if photo_urls is None:
        photos = _persisted_photo_urls(listing)
    else:
        photos = tuple(clean_photo_urls(photo_urls))

    return EffectiveState(values=MappingProxyType(values), photo_urls=photos)


def _filled(value):
    if isinstance(value, str):
        return bool(value.strip())
    return value is not None


def _seller_missing(state):
    missing = []
    seller_type = state["seller_type"]
    if not seller_type:
        missing.append("sellerType")
    elif seller_type == SellerType.PROFESSIONAL and not _filled(state["seller_company"]):
        missing.append("sellerCompany")
    elif seller_type == SellerType.PRIVATE and not _filled(state["seller_name"]):
        missing.append("sellerName")

    if not (_filled(state["seller_email"]) or _filled(state["seller_phone"])):
        missing.append("sellerContact")
    return missing


def missing_publish_fields(state):
    """Ordered, de-duplicated identifiers of the fields blocking a LIVE transition."""
    kind = state["kind"]
    intent = state["intent"]
    has_title = _filled(state["title"]) or (_filled(state["brand"]) and _filled(state["model"]))

    missing = []
    if kind == ListingKind.VESSEL:
        if not _filled(state["boat_category"]):
            missing.append("boatCategory")
        if not has_title:
            missing.append("title")
        if state["year"] is None:
            missing.append("year")
        if not _filled(state["description"]):
            missing.append("description")
    elif kind == ListingKind.PARTS:
        if not _filled(state["parts_category"]):
            missing.append("partsCategory")
        if not has_title:
            missing.append("title")
    elif kind == ListingKind.SERVICES:
        if not _filled(state["service_category"]):
            missing.append("serviceCategory")
        if not _filled(state["service_name"]):
            missing.append("serviceName")

    if not _filled(state["location"]):
        missing.append("location")
    if not _filled(state["country"]):
        missing.append("country")
    if not state.photo_urls:
        missing.append("photos")

    priced = state["price_type"] == PriceType.POA or state["price_cents"] is not None
    if kind == ListingKind.VESSEL and intent == ListingIntent.CHARTER:
        if not priced:
            missing.append("charterBasePrice")
        if not state["charter_price_period"]:
            missing.append("charterPricePeriod")
    elif kind in (ListingKind.VESSEL, ListingKind.PARTS) and not priced:
        missing.append("price")

    missing.extend(_seller_missing(state))
    return list(dict.fromkeys(missing))


def check_publishable(state):
    missing = missing_publish_fields(state)
    if missing:
        raise ListingIncomplete(missing)


def transition_requires_validation(target_status):
    # Every other transition (to DRAFT, PAUSED or SOLD) is unconditional
    return target_status == ListingStatus.LIVE
