import json
import os
import tempfile
from io import StringIO
from types import SimpleNamespace

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import Client, SimpleTestCase, TestCase
from django.urls import reverse

from .forms import SubmissionForm
from .models import Category, PricingModel, Submission, SubmissionStatus, Tool, ToolStatus, UseCase
from .utils.alternatives import jaccard, overlap_count, parse_compare_pair, score_alternative, set_intersection
from .utils.use_cases import (
    MAX_USE_CASES,
    infer_use_cases,
    normalize_tool_status,
    pricing_model_or_default,
    slugify_name,
)
from .utils.submissions import approve_submission


def make_tool(category, slug, use_cases=(), **overrides):
    """Helper to create an active tool in a category"""
    values = {
        "name": slug.replace("-", " ").title(),
        "short_description": f"{slug} short description",
        "pricing_model": PricingModel.FREEMIUM,
        "primary_category": category,
    }
    values.update(overrides)
    tool = Tool.objects.create(slug=slug, **values)
    if use_cases:
        tool.use_cases.set(use_cases)
    return tool


class UseCaseInferenceTests(SimpleTestCase):
    """Tests for keyword based use-case tagging"""

    def test_audience_keywords(self):
        """Test exact and substring audience rules"""
        slugs = infer_use_cases("Other", target_audience=["Startups", "Remote teams", "Enterprise IT"])
        self.assertEqual(slugs, ["startups", "enterprises", "teams"])

    def test_feature_keywords_follow_rule_order(self):
        """Test that matches are listed in rule order, not feature order"""
        slugs = infer_use_cases("Other", key_features=["Email campaigns", "Kanban tasks"])
        self.assertEqual(slugs, ["task-management", "email-marketing"])

    def test_category_fallback_applies_without_keywords(self):
        """Test that a known category always contributes its use cases"""
        self.assertEqual(
            infer_use_cases("Customer Support"),
            ["live-chat", "help-desk"],
        )

    def test_unknown_category_without_keywords_gives_nothing(self):
        self.assertEqual(infer_use_cases("Gardening"), [])

    def test_integration_hints(self):
        """Test that Slack and GitHub integrations add their hints"""
        slugs = infer_use_cases("Other", integrations=["GitHub Enterprise", "Slack"])
        self.assertEqual(slugs, ["collaboration", "ci-cd"])

    def test_result_is_capped(self):
        """Test that no tool gets more than the maximum number of use cases"""
        slugs = infer_use_cases(
            "Marketing",
            target_audience=["startups", "freelancers", "agencies", "creators", "teams"],
            key_features=["Email", "SEO audits", "Analytics", "CRM sync"],
        )
        self.assertEqual(len(slugs), MAX_USE_CASES)
        self.assertEqual(slugs[:4], ["startups", "freelancers", "agencies", "creators"])

    def test_no_duplicates(self):
        slugs = infer_use_cases("Project Management", key_features=["Project timelines", "Task lists"])
        self.assertEqual(len(slugs), len(set(slugs)))
        self.assertIn("collaboration", slugs)

    def test_non_list_inputs_are_ignored(self):
        self.assertEqual(infer_use_cases("Sales", target_audience="founders", key_features=None), ["crm", "pipeline-management"])


class ToolNormalizationTests(SimpleTestCase):
    """Tests for status, pricing model and slug normalization"""

    def test_status_aliases(self):
        self.assertEqual(normalize_tool_status("active"), ToolStatus.ACTIVE)
        self.assertEqual(normalize_tool_status("1"), ToolStatus.ACTIVE)
        self.assertEqual(normalize_tool_status("Draft"), ToolStatus.DRAFT)
        self.assertEqual(normalize_tool_status("inactive"), ToolStatus.DISCONTINUED)
        self.assertEqual(normalize_tool_status("DISCONTINUED"), ToolStatus.DISCONTINUED)

    def test_unknown_status_defaults_to_active(self):
        self.assertEqual(normalize_tool_status(None), ToolStatus.ACTIVE)
        self.assertEqual(normalize_tool_status("archived"), ToolStatus.ACTIVE)

    def test_pricing_model(self):
        """Test that unknown pricing models keep the current value or fall back to the default"""
        self.assertEqual(pricing_model_or_default("paid"), PricingModel.PAID)
        self.assertEqual(pricing_model_or_default("LIFETIME", PricingModel.ENTERPRISE), PricingModel.ENTERPRISE)
        self.assertEqual(pricing_model_or_default("LIFETIME"), PricingModel.FREEMIUM)

    def test_slugify_name(self):
        self.assertEqual(slugify_name("  Project Management "), "project-management")
        self.assertEqual(slugify_name("Design & UX!"), "design-ux")


class SimilarityTests(SimpleTestCase):
    """Tests for the set similarity helpers"""

    def test_jaccard(self):
        self.assertEqual(jaccard([], []), 0.0)
        self.assertEqual(jaccard(["Slack", "github"], ["slack ", "GitHub"]), 1.0)
        self.assertAlmostEqual(jaccard(["a", "b"], ["b", "c"]), 1 / 3)
        self.assertEqual(jaccard(["a"], []), 0.0)

    def test_overlap_count(self):
        self.assertEqual(overlap_count(["Slack", "Zapier", "Slack"], ["slack", "zapier"]), 2)

    def test_set_intersection_keeps_first_list_order(self):
        self.assertEqual(set_intersection(["Zapier", "Slack", ""], ["slack", "ZAPIER"]), ["zapier", "slack"])

    def test_scores_round_half_up(self):
        """Test that a score ending in .x5 rounds up to one decimal"""
        tool = SimpleNamespace(
            integrations=[], target_audience=[], key_features=[f"feature {i}" for i in range(20)]
        )
        candidate = SimpleNamespace(
            integrations=[], target_audience=[], key_features=["Feature 0"], is_featured=False
        )
        # features 1/20 * 25 = 1.25
        score, signals = score_alternative(tool, candidate, [], [])
        self.assertEqual(score, 1.3)
        self.assertEqual(signals, {"useCaseOverlap": 0, "integrationsOverlap": 0})


class ComparePairTests(SimpleTestCase):
    """Tests for parsing /compare/<a>-vs-<b>/ pairs"""

    def test_valid_pair(self):
        self.assertEqual(parse_compare_pair("notion-vs-obsidian"), ("notion", "obsidian"))

    def test_encoded_pair(self):
        self.assertEqual(parse_compare_pair("notion%2Dvs%2Dclickup"), ("notion", "clickup"))

    def test_invalid_pairs(self):
        self.assertIsNone(parse_compare_pair("notion"))
        self.assertIsNone(parse_compare_pair("a-vs-b-vs-c"))
        self.assertIsNone(parse_compare_pair("-vs-obsidian"))
        self.assertIsNone(parse_compare_pair(""))


class ToolDirectoryViewTests(TestCase):
    """Tests for the tools directory endpoints"""

    def setUp(self):
        """Set up a small catalog of tools"""
        self.client = Client()
        self.productivity = Category.objects.create(name="Productivity", slug="productivity")
        self.design = Category.objects.create(name="Design", slug="design")
        self.docs = UseCase.objects.create(name="Docs & knowledge base", slug="docs-knowledge-base")
        self.notes = UseCase.objects.create(name="Note taking", slug="note-taking")
        self.tasks = UseCase.objects.create(name="Task management", slug="task-management")

        self.notion = make_tool(
            self.productivity,
            "notion",
            use_cases=[self.docs, self.notes, self.tasks],
            pricing_model=PricingModel.FREEMIUM,
            target_audience=["teams", "startups"],
            key_features=["Docs", "Wikis", "Databases"],
            integrations=["Slack", "GitHub"],
        )
        self.obsidian = make_tool(
            self.productivity,
            "obsidian",
            use_cases=[self.docs, self.notes],
            pricing_model=PricingModel.FREE,
            target_audience=["individuals"],
            key_features=["Docs", "Graph view"],
            integrations=["GitHub"],
        )
        self.todoist = make_tool(
            self.productivity,
            "todoist",
            use_cases=[self.tasks],
            pricing_model=PricingModel.PAID,
            target_audience=["individuals"],
            key_features=["Tasks"],
            is_featured=True,
        )
        self.retired = make_tool(
            self.productivity,
            "retired-notes",
            use_cases=[self.docs, self.notes, self.tasks],
            status=ToolStatus.DISCONTINUED,
            target_audience=["teams", "startups"],
            key_features=["Docs", "Wikis", "Databases"],
        )
        self.figma = make_tool(self.design, "figma", short_description="Collaborative interface design")

    def test_tools_list_shows_active_tools_featured_first(self):
        """Test that discontinued tools are hidden and featured tools lead"""
        response = self.client.get(reverse("tools_app:tools_list"))
        self.assertEqual(response.status_code, 200)
        slugs = [t["slug"] for t in response.json()["tools"]]
        self.assertEqual(slugs[0], "todoist")
        self.assertNotIn("retired-notes", slugs)
        self.assertEqual(response.json()["page"]["count"], 4)

    def test_tools_list_search_and_category_filter(self):
        response = self.client.get(reverse("tools_app:tools_list"), {"q": "interface"})
        self.assertEqual([t["slug"] for t in response.json()["tools"]], ["figma"])

        response = self.client.get(reverse("tools_app:tools_list"), {"category": "design"})
        self.assertEqual([t["slug"] for t in response.json()["tools"]], ["figma"])

    def test_tool_detail(self):
        response = self.client.get(reverse("tools_app:tool_detail", args=["notion"]))
        self.assertEqual(response.status_code, 200)
        tool = response.json()["tool"]
        self.assertEqual(tool["category"]["slug"], "productivity")
        self.assertEqual({u["slug"] for u in tool["useCases"]}, {"docs-knowledge-base", "note-taking", "task-management"})

    def test_tool_detail_missing(self):
        response = self.client.get(reverse("tools_app:tool_detail", args=["nope"]))
        self.assertEqual(response.status_code, 404)

    def test_category_route_is_not_shadowed_by_tool_route(self):
        """Test that /tools/category/<slug>/ resolves to the category page"""
        response = self.client.get(reverse("tools_app:category_detail", args=["productivity"]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["category"]["slug"], "productivity")
        self.assertEqual(len(response.json()["tools"]), 3)

    def test_use_case_detail(self):
        response = self.client.get(reverse("tools_app:use_case_detail", args=["note-taking"]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual({t["slug"] for t in response.json()["tools"]}, {"notion", "obsidian"})

    def test_alternatives_ranked_within_category(self):
        """Test that alternatives come from the same category, active only, best match first"""
        response = self.client.get(reverse("tools_app:alternatives", args=["notion"]))
        self.assertEqual(response.status_code, 200)
        alternatives = response.json()["alternatives"]
        slugs = [a["slug"] for a in alternatives]
        self.assertEqual(slugs, ["obsidian", "todoist"])
        self.assertNotIn("figma", slugs)
        self.assertNotIn("retired-notes", slugs)

        top = alternatives[0]
        # use cases 2/3 * 50 + features 1/4 * 25 + 1 shared integration
        self.assertEqual(top["score"], 40.6)
        self.assertEqual(top["signals"], {"useCaseOverlap": 2, "integrationsOverlap": 1})

    def test_alternatives_featured_bonus(self):
        response = self.client.get(reverse("tools_app:alternatives", args=["notion"]))
        todoist = next(a for a in response.json()["alternatives"] if a["slug"] == "todoist")
        # use cases 1/3 * 50 + featured bonus
        self.assertEqual(todoist["score"], 18.7)

    def test_alternatives_unknown_tool(self):
        response = self.client.get(reverse("tools_app:alternatives", args=["nope"]))
        self.assertEqual(response.status_code, 404)

    def test_compare(self):
        response = self.client.get(reverse("tools_app:compare", args=["notion-vs-obsidian"]))
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual([t["slug"] for t in data["tools"]], ["notion", "obsidian"])
        summary = data["summary"]
        self.assertTrue(summary["sameCategory"])
        self.assertEqual(summary["pricingWinner"], "obsidian")
        self.assertEqual(summary["commonIntegrations"], ["github"])
        self.assertEqual(summary["bestFor"]["notion"], "teams & startups")
        self.assertEqual(data["canonicalPath"], "/compare/notion-vs-obsidian/")

    def test_compare_missing_or_inactive_tool(self):
        """Test that compare pages 404 unless both tools exist and are active"""
        for pair in ["notion-vs-nope", "notion-vs-retired-notes", "notion"]:
            response = self.client.get(reverse("tools_app:compare", args=[pair]))
            self.assertEqual(response.status_code, 404, pair)


class SeedToolsCommandTests(TestCase):
    """Tests for the seed_tools management command"""

    def write_seed(self, rows):
        fd, path = tempfile.mkstemp(suffix=".json")
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(rows, fh)
        self.addCleanup(os.remove, path)
        return path

    def test_seed_creates_categories_use_cases_and_tools(self):
        path = self.write_seed(
            [
                {
                    "name": "Notion",
                    "slug": "notion",
                    "shortDescription": "All-in-one workspace",
                    "primaryCategory": "Productivity",
                    "pricingModel": "FREEMIUM",
                    "targetAudience": ["Startups"],
                    "keyFeatures": ["Docs"],
                    "integrations": ["Slack"],
                    "status": "1",
                    "isFeatured": True,
                },
                {"name": "No category", "slug": "orphan"},
            ]
        )
        out = StringIO()
        call_command("seed_tools", path, stdout=out)

        self.assertIn("Seeded 1 categories", out.getvalue())
        self.assertIn("Skipped 1 row(s)", out.getvalue())
        self.assertEqual(Category.objects.get().slug, "productivity")
        self.assertTrue(UseCase.objects.filter(slug="content-marketing").exists())

        tool = Tool.objects.get(slug="notion")
        self.assertEqual(tool.status, ToolStatus.ACTIVE)
        self.assertTrue(tool.is_featured)
        self.assertEqual(
            set(tool.use_cases.values_list("slug", flat=True)),
            {"startups", "docs-knowledge-base", "note-taking", "task-management", "collaboration"},
        )
        self.assertFalse(Tool.objects.filter(slug="orphan").exists())

    def test_reseed_updates_and_keeps_known_pricing_model(self):
        """Test that a bogus pricing model on re-import keeps the stored one"""
        row = {
            "name": "Linear",
            "slug": "linear",
            "shortDescription": "Issue tracking",
            "primaryCategory": "Engineering",
            "pricingModel": "PAID",
        }
        call_command("seed_tools", self.write_seed([row]), stdout=StringIO())

        row.update({"name": "Linear App", "pricingModel": "LIFETIME", "status": "inactive"})
        out = StringIO()
        call_command("seed_tools", self.write_seed({"tools": [row]}), stdout=out)

        tool = Tool.objects.get(slug="linear")
        self.assertEqual(tool.name, "Linear App")
        self.assertEqual(tool.pricing_model, PricingModel.PAID)
        self.assertEqual(tool.status, ToolStatus.DISCONTINUED)
        self.assertIn("0 new and 1 updated", out.getvalue())
        self.assertEqual(Tool.objects.count(), 1)

    def test_invalid_file(self):
        path = self.write_seed({"tools": "nope"})
        with self.assertRaises(CommandError):
            call_command("seed_tools", path, stdout=StringIO())


class SubmissionFormTests(SimpleTestCase):
    """Tests for the public tool submission form"""

    def test_values_are_trimmed_and_capped(self):
        form = SubmissionForm(
            data={"name": "  " + "N" * 200 + "  ", "category": " Design ", "notes": "x" * 3000, "email": ""}
        )
        self.assertTrue(form.is_valid())
        self.assertEqual(len(form.cleaned_data["name"]), 120)
        self.assertEqual(form.cleaned_data["category"], "Design")
        self.assertEqual(len(form.cleaned_data["notes"]), 2000)
        self.assertIsNone(form.cleaned_data["email"])
        self.assertIsNone(form.cleaned_data["website_url"])

    def test_name_is_required(self):
        form = SubmissionForm(data={"name": "   "})
        self.assertFalse(form.is_valid())
        self.assertEqual(form.error_code(), "NAME_REQUIRED")

    def test_website_must_be_http_or_https(self):
        """Test that only http and https website URLs are accepted"""
        for bad in ["ftp://example.com", "not a url", "javascript:alert(1)"]:
            form = SubmissionForm(data={"name": "Tool", "website_url": bad})
            self.assertFalse(form.is_valid(), bad)
            self.assertEqual(form.error_code(), "INVALID_WEBSITE_URL")

        form = SubmissionForm(data={"name": "Tool", "website_url": " https://example.com/app "})
        self.assertTrue(form.is_valid())
        self.assertEqual(form.cleaned_data["website_url"], "https://example.com/app")


class SubmissionViewTests(TestCase):
    """Tests for POST /api/submissions/"""

    def setUp(self):
        self.client = Client()
        self.url = reverse("tools_app:submit_tool")

    def post(self, body, **extra):
        data = body if isinstance(body, str) else json.dumps(body)
        return self.client.post(self.url, data=data, content_type="application/json", **extra)

    def test_submission_is_stored_as_new(self):
        """Test that a valid submission is saved with request metadata"""
        response = self.post(
            {"name": "Linear", "websiteUrl": "https://linear.app", "category": "Engineering", "email": "a@b.co"},
            HTTP_USER_AGENT="TestBrowser/1.0",
            HTTP_X_FORWARDED_FOR="203.0.113.7, 10.0.0.1",
        )

        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.json()["ok"])
        submission = Submission.objects.get(id=response.json()["submission"]["id"])
        self.assertEqual(submission.status, SubmissionStatus.NEW)
        self.assertEqual(submission.website_url, "https://linear.app")
        self.assertEqual(submission.ip, "203.0.113.7")
        self.assertEqual(submission.user_agent, "TestBrowser/1.0")

    def test_missing_name(self):
        response = self.post({"websiteUrl": "https://linear.app"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "NAME_REQUIRED")
        self.assertFalse(Submission.objects.exists())

    def test_invalid_website(self):
        response = self.post({"name": "Linear", "websiteUrl": "ftp://linear.app"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "INVALID_WEBSITE_URL")

    def test_malformed_json_is_treated_as_empty(self):
        response = self.post("{oops")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "NAME_REQUIRED")

    def test_get_not_allowed(self):
        self.assertEqual(self.client.get(self.url).status_code, 405)


class ApproveSubmissionTests(TestCase):
    """Tests for approving submissions into draft tools"""

    def test_approve_creates_draft_tool_once(self):
        """Test that approval creates one hidden draft tool and links it"""
        Tool.objects.create(
            name="Linear",
            slug="linear",
            short_description="Existing",
            primary_category=Category.objects.create(name="Other", slug="other"),
        )
        submission = Submission.objects.create(name="Linear", category="Engineering", notes="Issue tracking")

        tool = approve_submission(submission)
        submission.refresh_from_db()

        self.assertEqual(submission.status, SubmissionStatus.APPROVED)
        self.assertEqual(submission.tool, tool)
        self.assertEqual(tool.slug, "linear-2")
        self.assertEqual(tool.status, ToolStatus.DRAFT)
        self.assertEqual(tool.short_description, "Issue tracking")
        self.assertEqual(tool.primary_category.slug, "engineering")

        self.assertEqual(approve_submission(submission), tool)
        self.assertEqual(Tool.objects.count(), 2)

    def test_approve_without_category_or_notes(self):
        submission = Submission.objects.create(name="Mystery")
        tool = approve_submission(submission)
        self.assertEqual(tool.primary_category.slug, "tools")
        self.assertEqual(tool.short_description, "Overview coming soon.")
