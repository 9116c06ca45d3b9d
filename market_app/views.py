# market_app/views.py
import json
import logging

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import Count, Prefetch
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_http_methods

from .decorators import profile_required
from .exceptions import ListingIncomplete
from .models import Listing, ListingKind, ListingIntent, ListingMedia, ListingStatus, SellerType
from .payloads import listing_card, listing_detail
from .utils.coercion import INT32_MAX, choice_or_none, coerce_listing_patch, int_or_none, status_or_none
from .utils.media_sync import apply_media_plan, clean_photo_urls, plan_media_sync
from .utils.publishing import build_effective_state, check_publishable, transition_requires_validation

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_OFFSET = INT32_MAX


def parse_json_body(request):
    """Decoded JSON object from the request body, or None when it is not one."""
    try:
        data = json.loads(request.body or b"{}")
    except (ValueError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


def incomplete_response(exc):
    return JsonResponse({"error": exc.code, "missing": exc.missing}, status=400)


def _ordered_media():
    return Prefetch("media", queryset=ListingMedia.objects.order_by("sort", "created_at"))


@require_http_methods(["GET", "POST"])
def listings(request):
    if request.method == "POST":
        return create_listing(request)
    return list_listings(request)


def list_listings(request):
    """Live listings, featured first, paged with limit/offset."""
    limit = int_or_none(request.GET.get("limit"))
    limit = DEFAULT_PAGE_SIZE if limit is None else max(1, min(limit, settings.LISTING_API_MAX_LIMIT))
    offset = int_or_none(request.GET.get("offset"), bound=None) or 0
    offset = max(0, min(offset, MAX_OFFSET))

    queryset = Listing.objects.filter(status=ListingStatus.LIVE)
    kind = choice_or_none(request.GET.get("kind"), ListingKind)
    if kind:
        queryset = queryset.filter(kind=kind)
    intent = choice_or_none(request.GET.get("intent"), ListingIntent)
    if intent:
        queryset = queryset.filter(intent=intent)

    total = queryset.count()
    page = queryset.prefetch_related(_ordered_media()).order_by("-featured", "-created_at")[offset:offset + limit]

    return JsonResponse(
        {
            "listings": [listing_card(listing) for listing in page],
            "total": total,
            "limit": limit,
            "offset": offset,
        }
    )


def _fallback_title(changes):
    if changes.get("kind") == ListingKind.SERVICES and changes.get("service_name"):
        return changes["service_name"]
    brand_model = f"{changes.get('brand') or ''} {changes.get('model') or ''}".strip()
    return brand_model or "Untitled Listing"


@profile_required
def create_listing(request):
    """Create a listing from the wizard payload. Requests for LIVE are validated first."""
    body = parse_json_body(request)
    if body is None:
        return JsonResponse({"error": "BAD_JSON"}, status=400)

    changes = coerce_listing_patch(body)
    changes.setdefault("seller_type", SellerType.PRIVATE)
    status = status_or_none(body.get("status")) or ListingStatus.DRAFT
    photo_urls = clean_photo_urls(body.get("photoUrls"))

    if transition_requires_validation(status):
        state = build_effective_state(None, changes, photo_urls)
        try:
            check_publishable(state)
        except ListingIncomplete as exc:
            return incomplete_response(exc)

    if not changes.get("title"):
        changes["title"] = _fallback_title(changes)

    try:
        with transaction.atomic():
            listing = Listing(
                profile=request.profile,
                status=status,
                slug=Listing.generate_slug(changes["title"], changes.get("brand"), changes.get("model")),
                **changes,
            )
            listing.save()
            ListingMedia.objects.bulk_create(
                [ListingMedia(listing=listing, url=url, sort=index) for index, url in enumerate(photo_urls)]
            )
    except DatabaseError as e:
        logger.error(f"Error creating listing for profile {request.profile.id}: {str(e)}", exc_info=True)
        return JsonResponse({"error": "Failed to create listing"}, status=500)

    logger.info(f"Listing {listing.id} created by profile {request.profile.id} as {status}")
    return JsonResponse(
        {"success": True, "id": listing.id, "slug": listing.slug, "status": listing.status},
        status=201,
    )


@require_http_methods(["GET", "PATCH", "DELETE"])
def listing_detail_api(request, listing_id):
    if request.method == "PATCH":
        return update_listing(request, listing_id)
    if request.method == "DELETE":
        return delete_listing(request, listing_id)

    listing = (
        Listing.objects.select_related("profile")
        .prefetch_related(_ordered_media())
        .filter(id=listing_id)
        .first()
    )
    if listing is None:
        return JsonResponse({"error": "Listing not found"}, status=404)
    return JsonResponse({"listing": listing_detail(listing)})


def _owned_listing(request, listing_id):
    """(listing, None) for the caller's own listing, else (None, error response)."""
    if not request.user.is_authenticated:
        return None, JsonResponse({"error": "Unauthorized"}, status=401)

    listing = Listing.objects.select_related("profile").filter(id=listing_id).first()
    if listing is None:
        return None, JsonResponse({"error": "Not found"}, status=404)
    if listing.profile.user_id != request.user.id:
        logger.warning(f"User {request.user.id} tried to modify listing {listing.id} they do not own")
        return None, JsonResponse({"error": "Forbidden"}, status=403)
    return listing, None


def _update_status(listing, value):
    status = status_or_none(value)
    if status is None:
        return JsonResponse({"error": "Invalid status"}, status=400)

    if transition_requires_validation(status):
        try:
            check_publishable(build_effective_state(listing, {}))
        except ListingIncomplete as exc:
            return incomplete_response(exc)

    previous = listing.status
    listing.status = status
    listing.save(update_fields=["status", "updated_at"])
    logger.info(f"Listing {listing.id} status {previous} -> {status}")
    return JsonResponse({"ok": True, "status": listing.status})


def update_listing(request, listing_id):
    """
    PATCH a listing.

    A body holding only ``status`` changes the status alone. Anything else
    is a wizard save: present fields are coerced and laid over the stored
    row, and photos are reconciled only when ``photoUrls`` is sent.
    """
    listing, error = _owned_listing(request, listing_id)
    if error:
        return error

    # Malformed bodies are treated as an empty patch
    body = parse_json_body(request) or {}

    if set(body) == {"status"}:
        try:
            return _update_status(listing, body["status"])
        except DatabaseError as e:
            logger.error(f"Error updating status of listing {listing.id}: {str(e)}", exc_info=True)
            return JsonResponse({"error": "Failed to update listing"}, status=500)

    changes = coerce_listing_patch(body)
    requested_status = status_or_none(body.get("status"))
    if requested_status:
        changes["status"] = requested_status
    photo_urls = clean_photo_urls(body["photoUrls"]) if "photoUrls" in body else None

    if requested_status and transition_requires_validation(requested_status):
        try:
            check_publishable(build_effective_state(listing, changes, photo_urls))
        except ListingIncomplete as exc:
            return incomplete_response(exc)

    try:
        with transaction.atomic():
            for field, value in changes.items():
                setattr(listing, field, value)
            listing.save()

            if photo_urls is not None:
                plan = plan_media_sync(photo_urls, listing.media.all())
                apply_media_plan(listing, plan)
    except DatabaseError as e:
        logger.error(f"Error updating listing {listing.id}: {str(e)}", exc_info=True)
        return JsonResponse({"error": "Failed to update listing"}, status=500)

    return JsonResponse({"ok": True, "slug": listing.slug, "status": listing.status})


def delete_listing(request, listing_id):
    listing, error = _owned_listing(request, listing_id)
    if error:
        return error

    try:
        listing.delete()
    except DatabaseError as e:
        logger.error(f"Error deleting listing {listing_id}: {str(e)}", exc_info=True)
        return JsonResponse({"error": "Failed to delete listing"}, status=500)

    logger.info(f"Listing {listing_id} deleted by user {request.user.id}")
    return JsonResponse({"ok": True})


@require_GET
@profile_required
def my_listings(request):
    """Every listing across the caller's profiles, with per-status counts."""
    queryset = Listing.objects.filter(profile__user=request.user)

    counts = {status: 0 for status in ListingStatus.values}
    for row in queryset.order_by().values("status").annotate(count=Count("id")):
        counts[row["status"]] = row["count"]

    rows = queryset.prefetch_related(_ordered_media()).order_by("-updated_at")
    return JsonResponse(
        {
            "listings": [listing_card(listing) for listing in rows],
            "counts": counts,
            "total": sum(counts.values()),
        }
    )


@require_GET
def buy_listing(request, slug):
    """Public detail page data for a live listing."""
    listing = (
        Listing.objects.select_related("profile")
        .prefetch_related(_ordered_media())
        .filter(slug=slug, status=ListingStatus.LIVE)
        .first()
    )
    if listing is None:
        return JsonResponse({"error": "Listing not found"}, status=404)
    return JsonResponse({"listing": listing_detail(listing)})
