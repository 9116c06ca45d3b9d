import logging

from django.db import transaction

from ..models import Category, PricingModel, SubmissionStatus, Tool, ToolStatus
from .use_cases import slugify_name

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Tools"
PLACEHOLDER_DESCRIPTION = "Overview coming soon."


def unique_tool_slug(name):
    root = slugify_name(name) or "tool"
    slug, suffix = root, 2
    while Tool.objects.filter(slug=slug).exists():
        slug = f"{root}-{suffix}"
        suffix += 1
    return slug


def client_ip(request):
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",")[0].strip()[:64] or None
    return request.META.get("REMOTE_ADDR") or None


@transaction.atomic
def approve_submission(submission):
    """
    Mark a submission approved. The first approval creates a DRAFT tool
    in the submitted category (created when missing) and links it.
    """
    if submission.tool_id is None:
        category_name = (submission.category or "").strip() or DEFAULT_CATEGORY
        category, _created = Category.objects.update_or_create(
            slug=slugify_name(category_name) or "tools", defaults={"name": category_name}
        )
        submission.tool = Tool.objects.create(
            name=submission.name,
            slug=unique_tool_slug(submission.name),
            short_description=(submission.notes or "").strip()[:300] or PLACEHOLDER_DESCRIPTION,
            website_url=(submission.website_url or "")[:300] or None,
            pricing_model=PricingModel.FREEMIUM,
            status=ToolStatus.DRAFT,
            primary_category=category,
        )
        logger.info(f"Submission {submission.id} created draft tool {submission.tool.slug}")

    submission.status = SubmissionStatus.APPROVED
    submission.save(update_fields=["status", "tool", "updated_at"])
    return submission.tool
