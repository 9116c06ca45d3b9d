"""
Alternatives ranking and head-to-head comparison for tools.
"""
from decimal import ROUND_HALF_UP, Decimal
from urllib.parse import unquote

from ..models import PricingModel, Tool, ToolStatus

MAX_ALTERNATIVES = 12
MAX_INTEGRATION_BONUS = 5
FEATURED_BONUS = 2

USE_CASE_WEIGHT = 50
AUDIENCE_WEIGHT = 20
FEATURE_WEIGHT = 25

PRICING_ORDER = [PricingModel.FREE, PricingModel.FREEMIUM, PricingModel.PAID, PricingModel.ENTERPRISE]


def _token_set(values):
    return {str(v).strip().lower() for v in values or [] if str(v).strip()}


def jaccard(a, b):
    """Case-insensitive Jaccard similarity of two string lists; 0.0 when both are empty."""
    left, right = _token_set(a), _token_set(b)
    if not left and not right:
        return 0.0
    union = left | right
    return len(left & right) / len(union)


def overlap_count(a, b):
    return len(_token_set(a) & _token_set(b))


def set_intersection(a, b):
    """Lowercased values present in both lists, in the order of the first."""
    right = _token_set(b)
    seen = []
    for value in a or []:
        token = str(value).strip().lower()
        if token and token in right and token not in seen:
            seen.append(token)
    return seen


def unique_top(values, n):
    out = []
    for value in values or []:
        value = str(value or "").strip()
        if value and value not in out:
            out.append(value)
    return out[:n]


def score_alternative(tool, candidate, tool_use_cases, candidate_use_cases):
    """(score, signals) for one candidate against ``tool``."""
    integrations = overlap_count(tool.integrations, candidate.integrations)
    score = (
        jaccard(tool_use_cases, candidate_use_cases) * USE_CASE_WEIGHT
        + jaccard(tool.target_audience, candidate.target_audience) * AUDIENCE_WEIGHT
        + jaccard(tool.key_features, candidate.key_features) * FEATURE_WEIGHT
        + min(integrations, MAX_INTEGRATION_BONUS)
    )
    if candidate.is_featured:
        score += FEATURED_BONUS

    signals = {
        "useCaseOverlap": overlap_count(tool_use_cases, candidate_use_cases),
        "integrationsOverlap": integrations,
    }
    score = float(Decimal(str(score)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
    return score, signals


def rank_alternatives(tool, candidates, limit=MAX_ALTERNATIVES):
    """
    Candidates scored against ``tool``, best first. Ties keep candidate order.
    Returns a list of ``(candidate, score, signals)``.
    """
    tool_use_cases = [u.slug for u in tool.use_cases.all()]
    scored = []
    for candidate in candidates:
        score, signals = score_alternative(
            tool, candidate, tool_use_cases, [u.slug for u in candidate.use_cases.all()]
        )
        scored.append((candidate, score, signals))
    scored.sort(key=lambda row: row[1], reverse=True)
    return scored[:limit]


def get_alternatives(slug):
    """(tool, ranked alternatives) for a tool slug, or None when it does not exist."""
    tool = (
        Tool.objects.select_related("primary_category")
        .prefetch_related("use_cases")
        .filter(slug=slug)
        .first()
    )
    if tool is None:
        return None

    candidates = (
        Tool.objects.filter(status=ToolStatus.ACTIVE, primary_category_id=tool.primary_category_id)
        .exclude(id=tool.id)
        .select_related("primary_category")
        .prefetch_related("use_cases")
        .order_by("name")
    )
    return tool, rank_alternatives(tool, candidates)


def parse_compare_pair(pair):
    """``"notion-vs-obsidian"`` -> ``("notion", "obsidian")``; None unless exactly two parts."""
    decoded = unquote(pair or "").strip()
    parts = [p.strip() for p in decoded.split("-vs-") if p]
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


def pricing_rank(value):
    try:
        return PRICING_ORDER.index(PricingModel(str(value or "").upper()))
    except ValueError:
        return len(PRICING_ORDER)


def compare_tools(tool_a, tool_b):
    """Shared signals and the cheaper pricing model of two tools."""
    rank_a, rank_b = pricing_rank(tool_a.pricing_model), pricing_rank(tool_b.pricing_model)
    if rank_a < rank_b:
        pricing_winner = tool_a.slug
    elif rank_b < rank_a:
        pricing_winner = tool_b.slug
    else:
        pricing_winner = None

    return {
        "sameCategory": tool_a.primary_category_id == tool_b.primary_category_id,
        "pricingWinner": pricing_winner,
        "commonIntegrations": set_intersection(tool_a.integrations, tool_b.integrations),
        "commonUseCases": set_intersection(
            [u.name for u in tool_a.use_cases.all()], [u.name for u in tool_b.use_cases.all()]
        ),
        "bestFor": {
            tool_a.slug: " & ".join(unique_top(tool_a.target_audience, 2)) or "teams",
            tool_b.slug: " & ".join(unique_top(tool_b.target_audience, 2)) or "teams",
        },
        "topFeature": {
            tool_a.slug: (unique_top(tool_a.key_features, 1) or ["core workflows"])[0],
            tool_b.slug: (unique_top(tool_b.key_features, 1) or ["core workflows"])[0],
        },
    }
