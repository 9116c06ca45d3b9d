"""
Use-case tagging for the tools directory.

Tools are tagged from their category, audience, features and integrations
when they are imported, so the use-case pages stay populated without
hand curation.
"""
import re

from ..models import PricingModel, ToolStatus

MAX_USE_CASES = 8

USE_CASE_DEFS = [
    ("For startups", "startups"),
    ("For freelancers", "freelancers"),
    ("For agencies", "agencies"),
    ("For creators", "creators"),
    ("For small businesses", "small-businesses"),
    ("For enterprises", "enterprises"),
    ("For teams", "teams"),
    ("For individuals", "individuals"),
    ("Project planning", "project-planning"),
    ("Task management", "task-management"),
    ("Docs & knowledge base", "docs-knowledge-base"),
    ("Note taking", "note-taking"),
    ("Collaboration", "collaboration"),
    ("UI design", "ui-design"),
    ("Prototyping", "prototyping"),
    ("Website building", "website-building"),
    ("Brand design", "brand-design"),
    ("Email marketing", "email-marketing"),
    ("Marketing automation", "marketing-automation"),
    ("SEO", "seo"),
    ("Content marketing", "content-marketing"),
    ("Website analytics", "website-analytics"),
    ("Product analytics", "product-analytics"),
    ("CRM", "crm"),
    ("Pipeline management", "pipeline-management"),
    ("Live chat", "live-chat"),
    ("Help desk", "help-desk"),
    ("Code hosting", "code-hosting"),
    ("CI/CD", "ci-cd"),
    ("Frontend deployment", "frontend-deployment"),
]

AUDIENCE_EXACT = [
    (("founders", "startup", "startups"), "startups"),
    (("freelancers", "freelancer"), "freelancers"),
    (("agencies", "agency"), "agencies"),
    (("creators", "creator"), "creators"),
]

AUDIENCE_CONTAINS = [
    ("enterprise", "enterprises"),
    ("team", "teams"),
    ("individual", "individuals"),
    ("business", "small-businesses"),
]

FEATURE_RULES = [
    (("project", "timeline", "goals"), "project-planning"),
    (("task", "priorit"), "task-management"),
    (("docs", "wikis", "knowledge"), "docs-knowledge-base"),
    (("note", "web clipper"), "note-taking"),
    (("collab",), "collaboration"),
    (("ui", "interface"), "ui-design"),
    (("prototype",), "prototyping"),
    (("cms", "hosting", "website"), "website-building"),
    (("brand",), "brand-design"),
    (("email",), "email-marketing"),
    (("automation",), "marketing-automation"),
    (("seo", "backlink", "keyword"), "seo"),
    (("analytics", "traffic", "behavior"), "website-analytics"),
    (("funnels", "cohorts"), "product-analytics"),
    (("crm",), "crm"),
    (("pipeline",), "pipeline-management"),
    (("chat",), "live-chat"),
    (("ticket", "help desk"), "help-desk"),
    (("repo", "repositories"), "code-hosting"),
    (("ci/cd", "ci", "cd"), "ci-cd"),
    (("deployment", "hosting"), "frontend-deployment"),
]

CATEGORY_FALLBACKS = {
    "productivity": ["docs-knowledge-base", "note-taking", "task-management"],
    "project-management": ["project-planning", "task-management", "collaboration"],
    "design": ["ui-design", "prototyping", "website-building"],
    "marketing": ["email-marketing", "marketing-automation", "seo"],
    "analytics": ["website-analytics", "product-analytics"],
    "sales": ["crm", "pipeline-management"],
    "customer-support": ["live-chat", "help-desk"],
    "engineering": ["code-hosting", "ci-cd", "frontend-deployment"],
}

INTEGRATION_HINTS = {
    "slack": "collaboration",
    "github": "ci-cd",
}


def slugify_name(value):
    """Lowercase, runs of non-alphanumerics collapsed to '-', edges trimmed."""
    value = str(value or "").strip().lower()
    return re.sub(r"[^a-z0-9]+", "-", value).strip("-")


def normalize_tokens(values):
    """Lowercased, stripped, non-empty strings; anything but a list gives []."""
    if not isinstance(values, (list, tuple)):
        return []
    return [v.strip().lower() for v in values if isinstance(v, str) and v.strip()]


def normalize_tool_status(value):
    raw = str(value or "").strip().upper()
    if raw in ("ACTIVE", "1"):
        return ToolStatus.ACTIVE
    if raw == "DRAFT":
        return ToolStatus.DRAFT
    if raw in ("DISCONTINUED", "INACTIVE"):
        return ToolStatus.DISCONTINUED
    return ToolStatus.ACTIVE


def pricing_model_or_default(value, current=None):
    """Known pricing model, else the current value, else the model default."""
    raw = str(value or "").strip().upper()
    if raw in PricingModel.values:
        return PricingModel(raw)
    return current or PricingModel.FREEMIUM


def infer_use_cases(primary_category, target_audience=None, key_features=None, integrations=None):
    """
    Use-case slugs for a tool in rule order, capped at MAX_USE_CASES.

    Audience and feature keywords come first, then the slugs every tool in
    the category gets, then integration hints.
    """
    audience = normalize_tokens(target_audience)
    features = normalize_tokens(key_features)
    found = []

    def add(slug):
        if slug not in found:
            found.append(slug)

    for tokens, slug in AUDIENCE_EXACT:
        if any(token in tokens for token in audience):
            add(slug)
    for needle, slug in AUDIENCE_CONTAINS:
        if any(needle in token for token in audience):
            add(slug)

    for needles, slug in FEATURE_RULES:
        if any(needle in feature for feature in features for needle in needles):
            add(slug)

    for slug in CATEGORY_FALLBACKS.get(slugify_name(primary_category), []):
        add(slug)

    integrations = normalize_tokens(integrations)
    for hint, slug in INTEGRATION_HINTS.items():
        if any(hint in integration for integration in integrations):
            add(slug)

    return found[:MAX_USE_CASES]
