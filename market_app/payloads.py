"""
JSON shapes returned by the marketplace API.

Field names follow the wizard's camelCase wire names so a listing fetched
from the API can be posted back unchanged.
"""
from .utils.coercion import WIRE_NAMES, listing_type_for
from .utils.publishing import LISTING_FIELDS


def _camel(name):
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def profile_summary(profile):
    if profile is None:
        return None
    return {
        "id": profile.id,
        "slug": profile.slug,
        "name": profile.name,
        "avatarUrl": profile.avatar.url if profile.avatar else None,
        "location": profile.location,
        "isVerified": profile.is_verified,
    }


def _first_media_url(listing):
    # Uses the prefetched `media` relation when the queryset has one
    for item in listing.media.all():
        return item.url
    return None


def listing_card(listing):
    return {
        "id": listing.id,
        "slug": listing.slug,
        "title": listing.display_title,
        "kind": listing.kind,
        "intent": listing.intent,
        "status": listing.status,
        "priceCents": listing.price_cents,
        "currency": listing.currency,
        "priceType": listing.price_type,
        "location": listing.location,
        "country": listing.country,
        "brand": listing.brand,
        "model": listing.model,
        "year": listing.year,
        "lengthFt": listing.length_ft,
        "lengthM": listing.length_m,
        "featured": listing.featured,
        "urgent": listing.urgent,
        "imageUrl": _first_media_url(listing),
        "createdAt": listing.created_at,
        "updatedAt": listing.updated_at,
    }


def listing_detail(listing, include_profile=True):
    data = {"id": listing.id, "listingType": listing_type_for(listing.kind, listing.intent)}
    for name in LISTING_FIELDS:
        data[WIRE_NAMES.get(name, _camel(name))] = getattr(listing, name)
    data["photoUrls"] = [m.url for m in listing.media.all()]
    data["media"] = [{"id": m.id, "url": m.url, "sort": m.sort} for m in listing.media.all()]
    data["createdAt"] = listing.created_at
    data["updatedAt"] = listing.updated_at
    if include_profile:
        data["profile"] = profile_summary(listing.profile)
    return data


def message_payload(message, viewer):
    sender = message.sender
    return {
        "id": message.id,
        "body": message.body,
        "createdAt": message.created_at,
        "readAt": message.read_at,
        "senderId": sender.id,
        "senderName": display_name(sender),
        "isFromMe": sender.id == viewer.id,
    }


def display_name(user):
    """Name shown in the inbox: primary profile name, then full name, then username."""
    if user is None:
        return None
    profiles = list(user.profiles.all()[:1])
    if profiles and profiles[0].name:
        return profiles[0].name
    return user.get_full_name() or user.username
