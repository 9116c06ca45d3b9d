import json
import logging

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from tools_app.models import Category, Tool, UseCase
from tools_app.utils.use_cases import (
    USE_CASE_DEFS,
    infer_use_cases,
    normalize_tool_status,
    pricing_model_or_default,
    slugify_name,
)

logger = logging.getLogger(__name__)


def _text_or_none(value):
    value = str(value or "").strip()
    return value or None


def _string_list(value):
    if not isinstance(value, list):
        return []
    return [v.strip() for v in value if isinstance(v, str) and v.strip()]


class Command(BaseCommand):
    help = (
        "Load tools from a JSON file. Categories, use cases and tools are upserted by slug "
        "and each tool's use cases are inferred from its category, audience, features and integrations."
    )

    def add_arguments(self, parser):
        parser.add_argument("path", help="JSON file holding a list of tools (or {\"tools\": [...]}).")

    def handle(self, *args, **options):
        try:
            with open(options["path"], encoding="utf-8") as fh:
                data = json.load(fh)
        except OSError as e:
            raise CommandError(f"Cannot read {options['path']}: {e}")
        except ValueError as e:
            raise CommandError(f"Invalid JSON in {options['path']}: {e}")

        rows = data.get("tools") if isinstance(data, dict) else data
        if not isinstance(rows, list):
            raise CommandError("Expected a list of tools.")

        with transaction.atomic():
            categories = self._upsert_categories(rows)
            use_cases = self._upsert_use_cases()
            created, updated, skipped = 0, 0, 0
            for row in rows:
                result = self._upsert_tool(row, categories, use_cases)
                if result is None:
                    skipped += 1
                elif result:
                    created += 1
                else:
                    updated += 1

        if skipped:
            self.stdout.write(self.style.WARNING(f"Skipped {skipped} row(s) without name, slug or category."))
        self.stdout.write(
            self.style.SUCCESS(
                f"Seeded {len(categories)} categories, {len(use_cases)} use cases, "
                f"{created} new and {updated} updated tools."
            )
        )

    def _upsert_categories(self, rows):
        names = sorted(
            {
                str(row.get("primaryCategory")).strip()
                for row in rows
                if isinstance(row, dict) and _text_or_none(row.get("primaryCategory"))
            }
        )
        categories = {}
        for name in names:
            category, _created = Category.objects.update_or_create(
                slug=slugify_name(name), defaults={"name": name}
            )
            categories[category.slug] = category
        return categories

    def _upsert_use_cases(self):
        use_cases = {}
        for name, slug in USE_CASE_DEFS:
            use_case, _created = UseCase.objects.update_or_create(slug=slug, defaults={"name": name})
            use_cases[slug] = use_case
        return use_cases

    def _upsert_tool(self, row, categories, use_cases):
        """True when created, False when updated, None when the row was skipped."""
        if not isinstance(row, dict):
            return None
        name = _text_or_none(row.get("name"))
        slug = _text_or_none(row.get("slug"))
        category = categories.get(slugify_name(row.get("primaryCategory")))
        if not (name and slug and category):
            logger.warning(f"Skipping tool row {row.get('slug') or row.get('name')!r}")
            return None

        existing = Tool.objects.filter(slug=slug).first()
        target_audience = _string_list(row.get("targetAudience"))
        key_features = _string_list(row.get("keyFeatures"))
        integrations = _string_list(row.get("integrations"))

        tool, created = Tool.objects.update_or_create(
            slug=slug,
            defaults={
                "name": name,
                "tagline": _text_or_none(row.get("tagline")),
                "short_description": _text_or_none(row.get("shortDescription")) or "",
                "long_description": _text_or_none(row.get("longDescription")),
                "website_url": _text_or_none(row.get("websiteUrl")),
                "logo_url": _text_or_none(row.get("logoUrl")),
                "pricing_model": pricing_model_or_default(
                    row.get("pricingModel"), existing.pricing_model if existing else None
                ),
                "starting_price": _text_or_none(row.get("startingPrice")),
                "pricing_notes": _text_or_none(row.get("pricingNotes")),
                "target_audience": target_audience,
                "key_features": key_features,
                "integrations": integrations,
                "status": normalize_tool_status(row.get("status")),
                "is_featured": bool(row.get("isFeatured")),
                "primary_category": category,
            },
        )

        slugs = infer_use_cases(category.name, target_audience, key_features, integrations)
        tool.use_cases.set([use_cases[s] for s in slugs if s in use_cases])
        if not slugs:
            logger.info(f"No use cases inferred for tool {slug}")
        return created
