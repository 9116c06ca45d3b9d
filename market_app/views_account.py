# market_app/views_account.py
import logging

from django.db import DatabaseError
from django.db.models import Prefetch
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from .decorators import api_login_required
from .forms import ProfileUpdateForm, SavedSearchForm
from .models import Listing, ListingMedia, ListingStatus, Profile, SavedListing, SavedSearch
from .payloads import listing_card
from .utils.coercion import int_or_none, text, uuid_or_none
from .views import parse_json_body

logger = logging.getLogger(__name__)

MAX_SEARCHES = 100
DEFAULT_SEARCHES = 50


def _live_media():
    return Prefetch("media", queryset=ListingMedia.objects.order_by("sort", "created_at"))


@require_POST
@api_login_required
def update_profile(request):
    """Update one of the caller's profiles, addressed by slug."""
    body = parse_json_body(request)
    if body is None:
        return JsonResponse({"error": "BAD_JSON"}, status=400)

    form = ProfileUpdateForm(data=body)
    if not form.is_valid():
        return JsonResponse({"error": form.error_code(), "fields": form.errors.get_json_data()}, status=400)

    profile = Profile.objects.filter(slug=form.cleaned_data["slug"]).first()
    if profile is None:
        return JsonResponse({"error": "PROFILE_NOT_FOUND"}, status=404)
    if profile.user_id != request.user.id:
        logger.warning(f"User {request.user.id} tried to update profile {profile.slug}")
        return JsonResponse({"error": "FORBIDDEN"}, status=403)

    for field, value in form.profile_values().items():
        setattr(profile, field, value)
    try:
        profile.save()
    except DatabaseError as e:
        logger.error(f"Error updating profile {profile.slug}: {str(e)}", exc_info=True)
        return JsonResponse({"error": "Failed to update profile"}, status=500)

    return JsonResponse({"ok": True})


@require_GET
def public_profile(request, slug):
    profile = Profile.objects.filter(slug=slug).first()
    if profile is None:
        return JsonResponse({"error": "Not found"}, status=404)

    live = (
        profile.listings.filter(status=ListingStatus.LIVE)
        .prefetch_related(_live_media())
        .order_by("-featured", "-created_at")
    )
    return JsonResponse(
        {
            "profile": {
                "slug": profile.slug,
                "name": profile.name,
                "tagline": profile.tagline,
                "location": profile.location,
                "website": profile.website,
                "email": profile.email,
                "phone": profile.phone,
                "about": profile.about,
                "avatarUrl": profile.avatar.url if profile.avatar else None,
                "isVerified": profile.is_verified,
                "createdAt": profile.created_at,
            },
            "listings": [listing_card(listing) for listing in live],
        }
    )


@require_http_methods(["GET", "POST"])
@api_login_required
def saved_listings(request):
    """
    GET ?listingId=... answers whether that listing is saved, plain GET lists
    saved listings, POST toggles the saved flag for ``listingId``.
    """
    if request.method == "POST":
        body = parse_json_body(request)
        if body is None:
            return JsonResponse({"error": "BAD_JSON"}, status=400)
        listing_id = text(body.get("listingId")).strip()
        if not listing_id:
            return JsonResponse({"error": "MISSING_LISTING_ID"}, status=400)

        listing_uuid = uuid_or_none(listing_id)
        listing = Listing.objects.filter(id=listing_uuid).first() if listing_uuid else None
        if listing is None:
            return JsonResponse({"error": "Listing not found"}, status=404)

        deleted, _rows = SavedListing.objects.filter(user=request.user, listing=listing).delete()
        if deleted:
            return JsonResponse({"saved": False})
        SavedListing.objects.create(user=request.user, listing=listing)
        return JsonResponse({"saved": True})

    listing_id = request.GET.get("listingId")
    if listing_id:
        listing_uuid = uuid_or_none(listing_id)
        saved = bool(listing_uuid) and SavedListing.objects.filter(
            user=request.user, listing_id=listing_uuid
        ).exists()
        return JsonResponse({"saved": saved})

    rows = (
        SavedListing.objects.filter(user=request.user)
        .select_related("listing")
        .prefetch_related(Prefetch("listing__media", queryset=ListingMedia.objects.order_by("sort")))
    )
    return JsonResponse(
        {"items": [{"savedAt": row.created_at, "listing": listing_card(row.listing)} for row in rows]}
    )


def _search_payload(search):
    return {
        "id": search.id,
        "name": search.name,
        "kind": search.kind,
        "query": search.query,
        "replayUrl": search.replay_url,
        "createdAt": search.created_at,
        "updatedAt": search.updated_at,
        "lastUsedAt": search.last_used_at,
    }


@require_http_methods(["GET", "POST"])
@api_login_required
def saved_searches(request):
    if request.method == "POST":
        body = parse_json_body(request)
        if body is None:
            return JsonResponse({"error": "BAD_JSON"}, status=400)

        form = SavedSearchForm(
            data={
                "name": body.get("name"),
                "kind": body.get("kind"),
                "query": body.get("query"),
                "replay_url": body.get("replayUrl"),
            }
        )
        if not form.is_valid():
            return JsonResponse({"error": form.error_code()}, status=400)

        search = SavedSearch.objects.create(
            user=request.user,
            name=form.cleaned_data["name"].strip(),
            kind=form.cleaned_data["kind"],
            query=form.cleaned_data["query"],
            replay_url=form.cleaned_data["replay_url"],
            last_used_at=timezone.now(),
        )
        return JsonResponse({"search": _search_payload(search)}, status=201)

    kind = text(request.GET.get("kind")).strip().upper() or "BUY"
    take = int_or_none(request.GET.get("take"))
    take = DEFAULT_SEARCHES if take is None else max(1, min(take, MAX_SEARCHES))

    searches = SavedSearch.objects.filter(user=request.user, kind=kind).order_by("-updated_at")[:take]
    return JsonResponse({"items": [_search_payload(s) for s in searches]})


@require_http_methods(["PATCH", "DELETE"])
@api_login_required
def saved_search_detail(request, search_id):
    if request.method == "DELETE":
        deleted, _rows = SavedSearch.objects.filter(id=search_id, user=request.user).delete()
        if not deleted:
            return JsonResponse({"error": "NOT_FOUND"}, status=404)
        return JsonResponse({"ok": True})

    body = parse_json_body(request)
    if body is None:
        return JsonResponse({"error": "BAD_JSON"}, status=400)
    name = text(body.get("name")).strip()
    if not name:
        return JsonResponse({"error": "NAME_REQUIRED"}, status=400)

    updated = SavedSearch.objects.filter(id=search_id, user=request.user).update(
        name=name, updated_at=timezone.now()
    )
    if not updated:
        return JsonResponse({"error": "NOT_FOUND"}, status=404)
    return JsonResponse({"ok": True})
