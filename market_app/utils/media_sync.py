import logging
from dataclasses import dataclass, field

from ..models import ListingMedia
from .coercion import is_blob_or_data_url, string_list

logger = logging.getLogger(__name__)


def clean_photo_urls(urls):
    """Drop unsaved browser URLs (blob:, data:image/), blanks and repeats, keeping order."""
    cleaned = []
    seen = set()
    for url in string_list(urls):
        url = url.strip()
        if not url or is_blob_or_data_url(url) or url in seen:
            continue
        seen.add(url)
        cleaned.append(url)
    return cleaned


@dataclass
class MediaPlan:
    to_delete: list = field(default_factory=list)  # media ids
    to_create: list = field(default_factory=list)  # (url, sort)
    to_reorder: list = field(default_factory=list)  # (media id, sort)

    @property
    def is_empty(self):
        return not (self.to_delete or self.to_create or self.to_reorder)


def plan_media_sync(desired_urls, existing_media):
    """
    Diff the desired photo list against the persisted media rows.

    ``existing_media`` is any iterable of objects with ``id``, ``url`` and
    ``sort``. Rows whose URL is no longer wanted are deleted (so are repeated
    rows for the same URL), new URLs are created and every kept row ends up
    with ``sort`` equal to its index in the desired list.
    """
    desired = clean_photo_urls(desired_urls)
    wanted = set(desired)

    plan = MediaPlan()
    kept = {}
    for media in existing_media:
        if media.url not in wanted or media.url in kept:
            plan.to_delete.append(media.id)
        else:
            kept[media.url] = media

    for index, url in enumerate(desired):
        media = kept.get(url)
        if media is None:
            plan.to_create.append((url, index))
        elif media.sort != index:
            plan.to_reorder.append((media.id, index))

    return plan


def apply_media_plan(listing, plan):
    """Write a MediaPlan. Run it inside the transaction that saves the listing."""
    if plan.is_empty:
        return

    if plan.to_delete:
        ListingMedia.objects.filter(listing=listing, id__in=plan.to_delete).delete()

    if plan.to_create:
        ListingMedia.objects.bulk_create(
            [ListingMedia(listing=listing, url=url, sort=sort) for url, sort in plan.to_create]
        )

    for media_id, sort in plan.to_reorder:
        ListingMedia.objects.filter(listing=listing, id=media_id).update(sort=sort)

    logger.info(
        f"Media synced for listing {listing.id}: "
        f"{len(plan.to_delete)} deleted, {len(plan.to_create)} created, {len(plan.to_reorder)} reordered"
    )
