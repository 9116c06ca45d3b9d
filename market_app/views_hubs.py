"""
/buy/ hub endpoints: live vessels for sale grouped by brand, model,
country and year, with facet counts for the dimensions not yet fixed.
"""
import logging

from django.conf import settings
from django.db.models import Prefetch
from django.http import JsonResponse
from django.views.decorators.http import require_GET

from .models import Listing, ListingMedia
from .payloads import listing_card
from .utils.hubs import build_intro, market_stats, resolve_hub, top_values
from .utils.seo_params import parse_year_param

logger = logging.getLogger(__name__)


@require_GET
def listing_hub(request, brand=None, model=None, country=None, year=None):
    year_value = None
    if year is not None:
        year_value = parse_year_param(year)
        if year_value is None:
            logger.info(f"Hub requested with invalid year {year!r}")
            return JsonResponse({"error": "Not found"}, status=404)

    hub = resolve_hub(brand=brand, model=model, country=country, year=year_value)
    queryset = Listing.objects.filter(hub.filter)

    facets = {}
    if hub.brand is None:
        facets["brands"] = top_values(queryset, "brand")
    if hub.model is None:
        facets["models"] = top_values(queryset, "model")
    if hub.country is None:
        facets["countries"] = top_values(queryset, "country")
    if hub.year is None:
        facets["years"] = top_values(queryset, "year", text=False)

    stats = market_stats(queryset)
    results = (
        queryset.prefetch_related(
            Prefetch("media", queryset=ListingMedia.objects.order_by("sort", "created_at"))
        )
        .order_by("-featured", "-updated_at")[: settings.LISTING_HUB_PAGE_SIZE]
    )

    intro = build_intro(
        hub,
        stats["total"],
        brands=[row["value"] for row in facets.get("brands", [])],
        countries=[row["value"] for row in facets.get("countries", [])],
        years=[row["value"] for row in facets.get("years", [])],
    )

    return JsonResponse(
        {
            "heading": hub.heading,
            "canonicalUrl": f"{settings.SITE_URL}{hub.canonical_path}",
            "intro": intro,
            "stats": stats,
            "facets": facets,
            "listings": [listing_card(listing) for listing in results],
        }
    )
