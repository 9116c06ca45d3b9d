from dataclasses import dataclass

from django.db.models import Avg, Count, Max, Min, Q

from ..models import ListingIntent, ListingKind, ListingStatus
from .seo_params import (
    brand_from_param,
    brand_slug_from_value,
    country_from_param,
    country_slug_from_value,
    model_from_param,
    model_from_param_scoped,
    model_slug_from_value,
    uniq_strings,
)

FACET_LIMIT = 12


def _iexact_any(field, values):
    values = uniq_strings(values)
    if not values:
        # An empty segment must not widen the hub to every listing
        return Q(pk__in=[])
    condition = Q()
    for value in values:
        condition |= Q(**{f"{field}__iexact": value})
    return condition


@dataclass(frozen=True)
class Hub:
    filter: Q
    brand: object = None
    model: object = None
    country: object = None
    year: int = None

    @property
    def subject(self):
        return " ".join(p.display for p in (self.brand, self.model) if p is not None)

    @property
    def heading(self):
        """ "Beneteau Oceanis 51 1 in France from 2019" style label for the hub."""
        label = self.subject
        if self.country is not None:
            label = f"{label} in {self.country.display}" if label else self.country.display
        if self.year is not None:
            label = f"{label} from {self.year}" if label else str(self.year)
        return label

    @property
    def canonical_path(self):
        segments = ["buy"]
        if self.brand is not None:
            segments += ["brand", brand_slug_from_value(self.brand.spaced)]
        if self.model is not None:
            segments += ["model", model_slug_from_value(self.model.display)]
        if self.country is not None:
            segments += ["country", country_slug_from_value(self.country.spaced)]
        if self.year is not None:
            segments += ["year", str(self.year)]
        return "/" + "/".join(segments) + "/"


def resolve_hub(brand=None, model=None, country=None, year=None):
    """
    Parse hub URL segments into a Hub whose ``filter`` selects live vessels
    for sale matching every given dimension. ``year`` must already be parsed.
    """
    condition = Q(
        status=ListingStatus.LIVE,
        kind=ListingKind.VESSEL,
        intent=ListingIntent.SALE,
    )

    brand_param = model_param = country_param = None
    if brand is not None:
        brand_param = brand_from_param(brand)
        condition &= _iexact_any("brand", brand_param.variants)
    if model is not None:
        model_param = model_from_param_scoped(model) if brand is not None else model_from_param(model)
        condition &= Q(model__isnull=False) & _iexact_any("model", model_param.candidates)
    if country is not None:
        country_param = country_from_param(country)
        condition &= _iexact_any("country", country_param.variants)
    if year is not None:
        condition &= Q(year=year)

    return Hub(filter=condition, brand=brand_param, model=model_param, country=country_param, year=year)


def hub_filter(brand=None, model=None, country=None, year=None):
    return resolve_hub(brand, model, country, year).filter


def top_values(queryset, field, limit=FACET_LIMIT, text=True):
    """Most common values of ``field`` as ``[{"value": ..., "count": ...}]``."""
    rows = queryset.exclude(**{f"{field}__isnull": True})
    if text:
        rows = rows.exclude(**{field: ""})
    rows = rows.order_by().values(field).annotate(count=Count("id")).order_by("-count", field)[:limit]
    return [{"value": row[field], "count": row["count"]} for row in rows]


def market_stats(queryset):
    priced = queryset.filter(price_cents__gt=0).aggregate(
        count=Count("id"),
        avg=Avg("price_cents"),
        min=Min("price_cents"),
        max=Max("price_cents"),
    )
    lengths = queryset.aggregate(avg_m=Avg("length_m"), avg_ft=Avg("length_ft"))
    countries = (
        queryset.exclude(country__isnull=True)
        .exclude(country="")
        .order_by()
        .values("country")
        .distinct()
        .count()
    )

    return {
        "total": queryset.count(),
        "pricedCount": priced["count"],
        "avgPriceCents": round(priced["avg"]) if priced["avg"] is not None else None,
        "minPriceCents": priced["min"],
        "maxPriceCents": priced["max"],
        "avgLengthM": round(lengths["avg_m"], 1) if lengths["avg_m"] is not None else None,
        "avgLengthFt": round(lengths["avg_ft"], 1) if lengths["avg_ft"] is not None else None,
        "countriesListed": countries,
    }


def build_intro(hub, total, brands=(), countries=(), years=()):
    brands = [b for b in brands if b][:3]
    countries = [c for c in countries if c][:3]
    years = [str(y) for y in years if y][:3]

    noun = "boat" if total == 1 else "boats"
    label = f"{hub.subject} {noun}" if hub.subject else noun
    where = ""
    if hub.country is not None:
        where += f" in {hub.country.display}"
    if hub.year is not None:
        where += f" from {hub.year}"
    sentences = [
        f"Browse {total:,} {label} for sale{where} on Findaly, updated regularly from trusted sellers and brokers."
    ]
    if brands:
        sentences.append(f"Top brands include {', '.join(brands)}.")
    if years:
        sentences.append(f"Popular years include {', '.join(years)}.")
    if countries:
        sentences.append(f"Explore listings in {', '.join(countries)} and beyond.")
    else:
        sentences.append("Compare specs, pricing and location, then enquire directly with sellers and brokers.")
    return " ".join(sentences)
