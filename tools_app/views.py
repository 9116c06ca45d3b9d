# tools_app/views.py
import json
import logging

from django.core.paginator import Paginator
from django.db import DatabaseError
from django.db.models import Q
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST

from .forms import SubmissionForm
from .models import Category, Submission, Tool, ToolStatus, UseCase
from .utils.alternatives import compare_tools, get_alternatives, parse_compare_pair
from .utils.submissions import client_ip

logger = logging.getLogger(__name__)

TOOLS_PER_PAGE = 24


def _page_payload(page):
    return {
        "number": page.number,
        "numPages": page.paginator.num_pages,
        "count": page.paginator.count,
        "hasNext": page.has_next(),
        "hasPrevious": page.has_previous(),
    }


def _active_tools():
    return Tool.objects.filter(status=ToolStatus.ACTIVE).select_related("primary_category")


@require_GET
def tools_list(request):
    q = request.GET.get("q", "").strip()
    category = request.GET.get("category", "").strip()

    qs = _active_tools().order_by("-is_featured", "name")
    if q:
        qs = qs.filter(
            Q(name__icontains=q) | Q(short_description__icontains=q) | Q(tagline__icontains=q)
        )
    if category:
        qs = qs.filter(primary_category__slug=category)

    page = Paginator(qs, TOOLS_PER_PAGE).get_page(request.GET.get("page"))
    categories = Category.objects.order_by("name")
    return JsonResponse(
        {
            "tools": [tool.as_card() for tool in page],
            "page": _page_payload(page),
            "categories": [{"name": c.name, "slug": c.slug} for c in categories],
            "q": q,
            "category": category or None,
        }
    )


@require_GET
def tool_detail(request, slug):
    tool = (
        Tool.objects.select_related("primary_category")
        .prefetch_related("use_cases")
        .filter(slug=slug)
        .first()
    )
    if tool is None or tool.status == ToolStatus.DRAFT:
        return JsonResponse({"error": "Tool not found"}, status=404)
    return JsonResponse({"tool": tool.as_dict()})


@require_GET
def category_detail(request, slug):
    category = Category.objects.filter(slug=slug).first()
    if category is None:
        return JsonResponse({"error": "Category not found"}, status=404)

    qs = _active_tools().filter(primary_category=category).order_by("-is_featured", "name")
    page = Paginator(qs, TOOLS_PER_PAGE).get_page(request.GET.get("page"))
    return JsonResponse(
        {
            "category": {"name": category.name, "slug": category.slug, "description": category.description},
            "tools": [tool.as_card() for tool in page],
            "page": _page_payload(page),
        }
    )


@require_GET
def use_case_detail(request, slug):
    use_case = UseCase.objects.filter(slug=slug).first()
    if use_case is None:
        return JsonResponse({"error": "Use case not found"}, status=404)

    tools = _active_tools().filter(use_cases=use_case).order_by("-is_featured", "name")
    return JsonResponse(
        {
            "useCase": {"name": use_case.name, "slug": use_case.slug, "description": use_case.description},
            "tools": [tool.as_card() for tool in tools],
        }
    )


@require_GET
def alternatives(request, slug):
    result = get_alternatives(slug)
    if result is None:
        return JsonResponse({"error": "Tool not found"}, status=404)

    tool, ranked = result
    return JsonResponse(
        {
            "tool": tool.as_card(),
            "alternatives": [
                dict(candidate.as_card(), score=score, signals=signals)
                for candidate, score, signals in ranked
            ],
        }
    )


@require_GET
def compare(request, pair):
    """Head-to-head data for ``<a>-vs-<b>``. Both tools must exist and be active."""
    parsed = parse_compare_pair(pair)
    if parsed is None:
        return JsonResponse({"error": "Not found"}, status=404)

    tools = {
        t.slug: t
        for t in Tool.objects.filter(slug__in=parsed)
        .select_related("primary_category")
        .prefetch_related("use_cases")
    }
    tool_a, tool_b = tools.get(parsed[0]), tools.get(parsed[1])
    if tool_a is None or tool_b is None or not (tool_a.is_active and tool_b.is_active):
        logger.info(f"Compare page requested for unknown pair {pair}")
        return JsonResponse({"error": "Not found"}, status=404)

    return JsonResponse(
        {
            "tools": [tool_a.as_dict(), tool_b.as_dict()],
            "canonicalPath": f"/compare/{tool_a.slug}-vs-{tool_b.slug}/",
            "summary": compare_tools(tool_a, tool_b),
        }
    )


@require_POST
def submit_tool(request):
    """Public tool suggestion. Stored as NEW for review in the admin."""
    try:
        body = json.loads(request.body or b"{}")
    except (ValueError, UnicodeDecodeError):
        body = {}
    if not isinstance(body, dict):
        body = {}

    form = SubmissionForm(
        data={
            "name": body.get("name"),
            "website_url": body.get("websiteUrl"),
            "category": body.get("category"),
            "notes": body.get("notes"),
            "email": body.get("email"),
        }
    )
    if not form.is_valid():
        return JsonResponse({"error": form.error_code()}, status=400)

    try:
        submission = Submission.objects.create(
            **form.cleaned_data,
            ip=client_ip(request),
            user_agent=request.META.get("HTTP_USER_AGENT") or None,
        )
    except DatabaseError as e:
        logger.error(f"Error saving tool submission: {str(e)}", exc_info=True)
        return JsonResponse({"error": "Failed to save submission"}, status=500)

    logger.info(f"Tool submission {submission.id} received for {submission.name}")
    return JsonResponse(
        {"ok": True, "submission": {"id": submission.id, "createdAt": submission.created_at}},
        status=201,
    )
