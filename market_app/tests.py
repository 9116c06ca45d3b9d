import importlib
import json
import os
import uuid
from datetime import date
from io import StringIO
from types import SimpleNamespace
from unittest import mock

from django.contrib.auth.models import User
from django.core.management import call_command
from django.db import DatabaseError
from django.test import Client, SimpleTestCase, TestCase
from django.urls import reverse

from .exceptions import ListingIncomplete
from .models import (
    Conversation,
    Currency,
    Listing,
    ListingIntent,
    ListingKind,
    ListingMedia,
    ListingStatus,
    Message,
    PriceType,
    Profile,
    SavedListing,
    SavedSearch,
    SellerType,
)
from .utils.coercion import (
    coerce_listing_patch,
    date_or_none,
    float_or_none,
    int32_or_none,
    int_or_none,
    kind_intent_from_listing_type,
    price_cents_or_none,
    string_list,
)
from .utils.hubs import hub_filter
from .utils.media_sync import clean_photo_urls, plan_media_sync
from .utils.publishing import (
    build_effective_state,
    check_publishable,
    missing_publish_fields,
    transition_requires_validation,
)
from .utils.seo_params import (
    brand_from_param,
    country_from_param,
    dotted_number_variant,
    model_from_param,
    model_from_param_scoped,
    model_slug_from_value,
    parse_year_param,
    slugify_loose,
    title_case_words,
    uniq_strings,
)

PHOTO_A = "https://cdn.example.com/a.jpg"
PHOTO_B = "https://cdn.example.com/b.jpg"
PHOTO_C = "https://cdn.example.com/c.jpg"
PHOTO_D = "https://cdn.example.com/d.jpg"


def complete_vessel_fields(**overrides):
    """Field values for a vessel for sale that passes the publish checks"""
    fields = {
        "kind": ListingKind.VESSEL,
        "intent": ListingIntent.SALE,
        "boat_category": "Sailing Yacht",
        "title": "Beneteau Oceanis 51.1",
        "brand": "Beneteau",
        "model": "Oceanis 51.1",
        "year": 2019,
        "description": "Owner's version, one careful owner.",
        "location": "Palma",
        "country": "Spain",
        "price_cents": 45000000,
        "price_type": PriceType.FIXED,
        "seller_type": SellerType.PRIVATE,
        "seller_name": "Ana",
        "seller_email": "ana@example.com",
    }
    fields.update(overrides)
    return fields


def make_listing(profile, media_urls=(), **overrides):
    """Helper function to create a listing with ordered media"""
    fields = complete_vessel_fields(**overrides)
    listing = Listing.objects.create(
        profile=profile,
        slug=Listing.generate_slug(fields.get("title"), fields.get("brand"), fields.get("model")),
        **fields,
    )
    for index, url in enumerate(media_urls):
        ListingMedia.objects.create(listing=listing, url=url, sort=index)
    return listing


def media_urls(listing):
    return list(listing.media.order_by("sort").values_list("url", flat=True))


class FieldCoercionTests(SimpleTestCase):
    """Tests for the lenient payload coercion helpers"""

    def test_numbers_parse_leading_digits(self):
        """Test that numeric strings keep their leading number and junk becomes None"""
        self.assertEqual(int_or_none("12ft"), 12)
        self.assertEqual(int_or_none(3.9), 3)
        self.assertIsNone(int_or_none("abc"))
        self.assertIsNone(int_or_none(True))
        self.assertIsNone(int_or_none(float("nan")))
        self.assertEqual(float_or_none("15.5m"), 15.5)
        self.assertIsNone(float_or_none(""))

    def test_price_rounds_half_up_to_cents(self):
        """Test price conversion to integer cents"""
        self.assertEqual(price_cents_or_none("1234.565"), 123457)
        self.assertEqual(price_cents_or_none(0.5), 50)
        self.assertEqual(price_cents_or_none("450000"), 45000000)
        self.assertIsNone(price_cents_or_none("POA"))

    def test_out_of_range_numbers_become_none(self):
        """Test that integers too large for their column are dropped to None"""
        self.assertIsNone(int_or_none("99999999999999999999"))
        self.assertIsNone(int_or_none(1e300))
        self.assertEqual(int_or_none(str(2 ** 63 - 1)), 2 ** 63 - 1)
        self.assertIsNone(int32_or_none(str(2 ** 31)))
        self.assertEqual(int32_or_none("-2147483648"), -2147483648)
        self.assertIsNone(price_cents_or_none("1e20"))
        self.assertEqual(int_or_none("99999999999999999999", bound=None), 99999999999999999999)

    def test_integer_columns_use_the_smaller_range(self):
        """Test that a huge year or cabin count is coerced to None"""
        changes = coerce_listing_patch({"year": "99999999999999999999", "cabins": str(2 ** 31), "price": "1e20"})
        self.assertEqual(changes, {"year": None, "cabins": None, "price_cents": None})

    def test_dates_and_lists(self):
        """Test ISO dates and string lists"""
        self.assertEqual(date_or_none("2024-06-01"), date(2024, 6, 1))
        self.assertEqual(date_or_none("2024-06-01T10:00:00Z"), date(2024, 6, 1))
        self.assertIsNone(date_or_none("2024-13-01"))
        self.assertIsNone(date_or_none("next summer"))
        self.assertEqual(string_list(["GPS", 3, None, "Radar"]), ["GPS", "Radar"])
        self.assertEqual(string_list("GPS"), [])

    def test_listing_type_maps_to_kind_and_intent(self):
        """Test the wizard listing type discriminator"""
        self.assertEqual(kind_intent_from_listing_type("charter"), (ListingKind.VESSEL, ListingIntent.CHARTER))
        self.assertEqual(kind_intent_from_listing_type("Parts"), (ListingKind.PARTS, ListingIntent.SALE))
        self.assertIsNone(kind_intent_from_listing_type("yacht"))

    def test_unknown_enum_strings_are_dropped(self):
        """Test that unrecognized enum values do not appear in the coerced patch"""
        changes = coerce_listing_patch(
            {"currency": "bogus", "priceType": "nonsense", "sellerType": "robot", "listingType": "yacht"}
        )
        self.assertNotIn("currency", changes)
        self.assertNotIn("price_type", changes)
        self.assertNotIn("seller_type", changes)
        self.assertNotIn("kind", changes)

    def test_enums_match_case_insensitively(self):
        """Test enum matching ignores casing"""
        changes = coerce_listing_patch({"currency": "gbp", "priceType": "poa", "condition": "Used"})
        self.assertEqual(changes["currency"], Currency.GBP)
        self.assertEqual(changes["price_type"], PriceType.POA)
        self.assertEqual(changes["vessel_condition"], "USED")

    def test_explicit_null_clears_nullable_enum(self):
        """Test that null or empty clears nullable enums but not currency"""
        changes = coerce_listing_patch({"condition": None, "charterPricePeriod": "", "currency": ""})
        self.assertIsNone(changes["vessel_condition"])
        self.assertIsNone(changes["charter_price_period"])
        self.assertNotIn("currency", changes)

    def test_only_present_keys_are_coerced(self):
        """Test that absent keys stay out of the patch"""
        changes = coerce_listing_patch({"title": "  Swan 48  ", "cabins": "3"})
        self.assertEqual(changes, {"title": "Swan 48", "cabins": 3})

    def test_price_falls_back_to_charter_base_price(self):
        """Test that an empty price uses the charter base price"""
        self.assertEqual(coerce_listing_patch({"price": "", "charterBasePrice": "2500"})["price_cents"], 250000)
        self.assertEqual(coerce_listing_patch({"price": "10", "charterBasePrice": "2500"})["price_cents"], 1000)

    def test_non_object_body_is_empty_patch(self):
        """Test that a non-dict body coerces to nothing"""
        self.assertEqual(coerce_listing_patch(["title"]), {})


class PublishRulesTests(SimpleTestCase):
    """Tests for the publish validator against effective state"""

    def state(self, photos=(PHOTO_A,), **overrides):
        return build_effective_state(None, complete_vessel_fields(**overrides), list(photos))

    def test_complete_vessel_passes(self):
        """Test that a complete vessel for sale has nothing missing"""
        self.assertEqual(missing_publish_fields(self.state()), [])

    def test_vessel_without_price_is_missing_price(self):
        """Test that a vessel with no price and no POA cannot publish"""
        missing = missing_publish_fields(self.state(price_cents=None))
        self.assertEqual(missing, ["price"])

    def test_price_on_application_needs_no_price(self):
        """Test that POA listings skip the price requirement"""
        self.assertEqual(missing_publish_fields(self.state(price_cents=None, price_type=PriceType.POA)), [])

    def test_charter_requires_base_price_and_period(self):
        """Test charter pricing identifiers"""
        missing = missing_publish_fields(self.state(intent=ListingIntent.CHARTER, price_cents=None))
        self.assertIn("charterBasePrice", missing)
        self.assertIn("charterPricePeriod", missing)
        self.assertNotIn("price", missing)

    def test_title_can_come_from_brand_and_model(self):
        """Test that brand plus model stands in for a title"""
        self.assertEqual(missing_publish_fields(self.state(title="")), [])
        self.assertIn("title", missing_publish_fields(self.state(title="", model=None)))

    def test_blob_photos_do_not_count(self):
        """Test that unsaved browser URLs are not photos"""
        missing = missing_publish_fields(self.state(photos=["blob:http://localhost/1", "data:image/png;base64,AA"]))
        self.assertEqual(missing, ["photos"])

    def test_seller_block(self):
        """Test seller type, matching name field and contact channel"""
        missing = missing_publish_fields(
            self.state(seller_type=SellerType.PROFESSIONAL, seller_email=None, seller_phone=None)
        )
        self.assertEqual(missing, ["sellerCompany", "sellerContact"])
        self.assertEqual(missing_publish_fields(self.state(seller_type=None)), ["sellerType"])

    def test_services_do_not_need_price(self):
        """Test the services rules"""
        state = self.state(
            kind=ListingKind.SERVICES,
            price_cents=None,
            service_category="Rigging",
            service_name="Mast inspection",
        )
        self.assertEqual(missing_publish_fields(state), [])

    def test_parts_rules(self):
        """Test the parts rules"""
        missing = missing_publish_fields(self.state(kind=ListingKind.PARTS, price_cents=None))
        self.assertEqual(missing, ["partsCategory", "price"])

    def test_empty_listing_reports_each_field_once(self):
        """Test that a blank new listing lists missing fields without repeats"""
        missing = missing_publish_fields(build_effective_state(None, {}, []))
        self.assertEqual(len(missing), len(set(missing)))
        for field in ["boatCategory", "title", "year", "description", "location", "country", "photos", "price"]:
            self.assertIn(field, missing)

    def test_check_publishable_raises_with_missing(self):
        """Test the structured failure"""
        with self.assertRaises(ListingIncomplete) as ctx:
            check_publishable(self.state(country=None))
        self.assertEqual(ctx.exception.missing, ["country"])
        self.assertEqual(ctx.exception.code, "LISTING_INCOMPLETE")

    def test_only_live_is_gated(self):
        """Test which target statuses require validation"""
        self.assertTrue(transition_requires_validation(ListingStatus.LIVE))
        for status in (ListingStatus.DRAFT, ListingStatus.PAUSED, ListingStatus.SOLD):
            self.assertFalse(transition_requires_validation(status))


class MediaPlanTests(SimpleTestCase):
    """Tests for the media reconciliation plan"""

    def test_reconcile_desired_against_persisted(self):
        """Test [a, b, c] against persisted [b, d]"""
        existing = [SimpleNamespace(id=1, url=PHOTO_B, sort=0), SimpleNamespace(id=2, url=PHOTO_D, sort=1)]
        plan = plan_media_sync([PHOTO_A, PHOTO_B, PHOTO_C], existing)
        self.assertEqual(plan.to_delete, [2])
        self.assertEqual(plan.to_create, [(PHOTO_A, 0), (PHOTO_C, 2)])
        self.assertEqual(plan.to_reorder, [(1, 1)])

    def test_unchanged_list_is_empty_plan(self):
        """Test that nothing happens when the list is unchanged"""
        existing = [SimpleNamespace(id=1, url=PHOTO_A, sort=0), SimpleNamespace(id=2, url=PHOTO_B, sort=1)]
        self.assertTrue(plan_media_sync([PHOTO_A, PHOTO_B], existing).is_empty)

    def test_clean_photo_urls(self):
        """Test filtering of browser-only URLs, blanks and repeats"""
        cleaned = clean_photo_urls(["blob:http://x/1", PHOTO_A, " ", PHOTO_A, "data:image/png;base64,AA", PHOTO_B, 7])
        self.assertEqual(cleaned, [PHOTO_A, PHOTO_B])

    def test_repeated_persisted_rows_are_removed(self):
        """Test that duplicate persisted URLs collapse to one row"""
        existing = [SimpleNamespace(id=1, url=PHOTO_A, sort=0), SimpleNamespace(id=2, url=PHOTO_A, sort=1)]
        plan = plan_media_sync([PHOTO_A], existing)
        self.assertEqual(plan.to_delete, [2])
        self.assertEqual(plan.to_create, [])


class SeoParamTests(SimpleTestCase):
    """Tests for hub URL segment parsing"""

    def test_dotted_model_variant(self):
        """Test that "oceanis-51-1" yields the stored spelling "Oceanis 51.1" """
        self.assertEqual(dotted_number_variant("Oceanis 51 1"), "Oceanis 51.1")
        candidates = [c.lower() for c in model_from_param_scoped("oceanis-51-1").candidates]
        self.assertIn("oceanis 51.1", candidates)

    def test_model_only_route_strips_brand_prefix(self):
        """Test brand-prefixed model slugs"""
        param = model_from_param("beneteau-oceanis-51-1")
        self.assertEqual(param.brand_candidate, "beneteau")
        self.assertEqual(param.display, "Oceanis 51 1")
        self.assertIn("oceanis 51.1", param.candidates)
        self.assertIn("beneteau oceanis 51 1", param.candidates)

    def test_brand_and_country_variants(self):
        """Test brand and country spellings"""
        brand = brand_from_param("prestige-yachts")
        self.assertEqual(brand.spaced, "prestige yachts")
        self.assertEqual(brand.display, "Prestige Yachts")
        country = country_from_param("united%20kingdom")
        self.assertEqual(country.upper, "UNITED KINGDOM")
        self.assertEqual(country.display, "United Kingdom")

    def test_helpers(self):
        """Test the string helpers"""
        self.assertEqual(slugify_loose("Jeanneau & Co's"), "jeanneau-and-cos")
        self.assertEqual(title_case_words("rs  aero 7"), "Rs Aero 7")
        self.assertEqual(uniq_strings(["Beneteau", "beneteau", " BENETEAU ", "", None]), ["Beneteau"])
        self.assertEqual(model_slug_from_value("Oceanis 51.1"), "oceanis-51-1")

    def test_year_bounds(self):
        """Test the accepted year range"""
        today = date(2024, 5, 1)
        self.assertEqual(parse_year_param("2019", today=today), 2019)
        self.assertEqual(parse_year_param("2025", today=today), 2025)
        self.assertIsNone(parse_year_param("2026", today=today))
        self.assertIsNone(parse_year_param("1899", today=today))
        self.assertIsNone(parse_year_param("latest", today=today))


class ListingApiTestBase(TestCase):
    def setUp(self):
        """Set up an owner, a stranger and a client"""
        self.client = Client()
        self.owner = User.objects.create_user(username="owner", email="owner@example.com", password="testpass123")
        self.other = User.objects.create_user(username="other", email="other@example.com", password="testpass123")
        self.profile = Profile.primary_for(self.owner)

    def patch(self, listing, body):
        url = reverse("market_app:listing_detail", kwargs={"listing_id": listing.id})
        return self.client.patch(url, data=json.dumps(body), content_type="application/json")


class ListingPatchTests(ListingApiTestBase):
    """Tests for PATCH /api/listings/<id>/"""

    def test_patch_without_photo_urls_leaves_media_untouched(self):
        """Test that media rows survive a patch that does not mention photos"""
        listing = make_listing(self.profile, media_urls=[PHOTO_A, PHOTO_B])
        before = list(listing.media.order_by("sort").values_list("id", "url", "sort"))

        self.client.login(username="owner", password="testpass123")
        response = self.patch(listing, {"title": "Renamed", "cabins": "4"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(list(listing.media.order_by("sort").values_list("id", "url", "sort")), before)
        listing.refresh_from_db()
        self.assertEqual(listing.title, "Renamed")
        self.assertEqual(listing.cabins, 4)

    def test_patch_reconciles_photo_list(self):
        """Test desired [a, b, c] against persisted [b, d]"""
        listing = make_listing(self.profile, media_urls=[PHOTO_B, PHOTO_D])
        b_id = listing.media.get(url=PHOTO_B).id

        self.client.login(username="owner", password="testpass123")
        response = self.patch(listing, {"photoUrls": [PHOTO_A, PHOTO_B, "blob:http://x/tmp", PHOTO_C]})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            list(listing.media.order_by("sort").values_list("url", "sort")),
            [(PHOTO_A, 0), (PHOTO_B, 1), (PHOTO_C, 2)],
        )
        self.assertEqual(listing.media.get(url=PHOTO_B).id, b_id)
        self.assertFalse(ListingMedia.objects.filter(url=PHOTO_D).exists())

    def test_publish_without_price_is_incomplete(self):
        """Test that a vessel with no price cannot go LIVE"""
        listing = make_listing(self.profile, media_urls=[PHOTO_A], price_cents=None)

        self.client.login(username="owner", password="testpass123")
        response = self.patch(listing, {"status": "LIVE"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "LISTING_INCOMPLETE")
        self.assertIn("price", response.json()["missing"])
        listing.refresh_from_db()
        self.assertEqual(listing.status, ListingStatus.DRAFT)

    def test_charter_publish_reports_charter_base_price(self):
        """Test the charter identifier for a missing price"""
        listing = make_listing(
            self.profile,
            media_urls=[PHOTO_A],
            intent=ListingIntent.CHARTER,
            price_cents=None,
            charter_price_period="WEEK",
        )

        self.client.login(username="owner", password="testpass123")
        response = self.patch(listing, {"status": "live"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["missing"], ["charterBasePrice"])

    def test_paused_and_draft_publish_use_the_same_rules(self):
        """Test PAUSED -> LIVE and DRAFT -> LIVE give identical results"""
        draft = make_listing(self.profile, media_urls=[PHOTO_A], price_cents=None, description=None)
        paused = make_listing(
            self.profile, media_urls=[PHOTO_A], price_cents=None, description=None, status=ListingStatus.PAUSED
        )

        self.client.login(username="owner", password="testpass123")
        from_draft = self.patch(draft, {"status": "LIVE"})
        from_paused = self.patch(paused, {"status": "LIVE"})

        self.assertEqual(from_draft.status_code, 400)
        self.assertEqual(from_paused.status_code, 400)
        self.assertEqual(from_draft.json(), from_paused.json())

    def test_complete_listing_goes_live(self):
        """Test a status-only publish of a complete listing"""
        listing = make_listing(self.profile, media_urls=[PHOTO_A])

        self.client.login(username="owner", password="testpass123")
        response = self.patch(listing, {"status": "LIVE"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"ok": True, "status": "LIVE"})
        listing.refresh_from_db()
        self.assertEqual(listing.status, ListingStatus.LIVE)

    def test_pausing_is_not_validated(self):
        """Test that leaving LIVE never needs validation"""
        listing = make_listing(self.profile, status=ListingStatus.LIVE, country=None)

        self.client.login(username="owner", password="testpass123")
        response = self.patch(listing, {"status": "PAUSED"})

        self.assertEqual(response.status_code, 200)
        listing.refresh_from_db()
        self.assertEqual(listing.status, ListingStatus.PAUSED)

    def test_invalid_status(self):
        """Test an unknown status on a status-only patch"""
        listing = make_listing(self.profile)

        self.client.login(username="owner", password="testpass123")
        response = self.patch(listing, {"status": "ARCHIVED"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "Invalid status"})

    def test_bogus_enum_keeps_persisted_value(self):
        """Test that unrecognized enum strings fall back to the stored value"""
        listing = make_listing(self.profile, currency=Currency.GBP, price_type=PriceType.NEGOTIABLE)

        self.client.login(username="owner", password="testpass123")
        response = self.patch(listing, {"currency": "bogus", "priceType": "whatever", "title": "Still here"})

        self.assertEqual(response.status_code, 200)
        listing.refresh_from_db()
        self.assertEqual(listing.currency, Currency.GBP)
        self.assertEqual(listing.price_type, PriceType.NEGOTIABLE)
        self.assertEqual(listing.title, "Still here")

    def test_full_patch_validates_merged_state(self):
        """Test that a wizard save requesting LIVE validates the merged listing and photos"""
        listing = make_listing(self.profile, media_urls=[PHOTO_A], price_cents=None)

        self.client.login(username="owner", password="testpass123")
        refused = self.patch(listing, {"status": "LIVE", "photoUrls": []})
        self.assertEqual(refused.status_code, 400)
        self.assertEqual(refused.json()["missing"], ["photos", "price"])
        self.assertEqual(media_urls(listing), [PHOTO_A])

        accepted = self.patch(listing, {"status": "LIVE", "price": "250000"})
        self.assertEqual(accepted.status_code, 200)
        self.assertEqual(accepted.json()["slug"], listing.slug)
        listing.refresh_from_db()
        self.assertEqual(listing.status, ListingStatus.LIVE)
        self.assertEqual(listing.price_cents, 25000000)

    def test_listing_type_switch(self):
        """Test that listingType sets kind and intent"""
        listing = make_listing(self.profile)

        self.client.login(username="owner", password="testpass123")
        self.patch(listing, {"listingType": "charter", "charterPricePeriod": "week"})

        listing.refresh_from_db()
        self.assertEqual(listing.kind, ListingKind.VESSEL)
        self.assertEqual(listing.intent, ListingIntent.CHARTER)
        self.assertEqual(listing.charter_price_period, "WEEK")

    def test_patch_requires_login(self):
        """Test 401 for anonymous callers"""
        listing = make_listing(self.profile)
        response = self.patch(listing, {"title": "x"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Unauthorized"})

    def test_patch_by_non_owner_is_forbidden(self):
        """Test 403 for another user's listing"""
        listing = make_listing(self.profile)

        self.client.login(username="other", password="testpass123")
        response = self.patch(listing, {"title": "Mine now"})

        self.assertEqual(response.status_code, 403)
        listing.refresh_from_db()
        self.assertNotEqual(listing.title, "Mine now")

    def test_patch_missing_listing(self):
        """Test 404 for an unknown id"""
        self.client.login(username="owner", password="testpass123")
        url = reverse("market_app:listing_detail", kwargs={"listing_id": uuid.uuid4()})
        response = self.client.patch(url, data="{}", content_type="application/json")
        self.assertEqual(response.status_code, 404)

    def test_malformed_body_is_empty_patch(self):
        """Test that bad JSON changes nothing"""
        listing = make_listing(self.profile, media_urls=[PHOTO_A])

        self.client.login(username="owner", password="testpass123")
        url = reverse("market_app:listing_detail", kwargs={"listing_id": listing.id})
        response = self.client.patch(url, data="{not json", content_type="application/json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(media_urls(listing), [PHOTO_A])

    def test_patch_with_huge_numbers_saves_them_as_empty(self):
        """Test that oversized numbers are cleared instead of breaking the save"""
        listing = make_listing(self.profile, media_urls=[PHOTO_A])

        self.client.login(username="owner", password="testpass123")
        response = self.patch(listing, {"year": "99999999999999999999", "price": "1e20"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["ok"], True)
        listing.refresh_from_db()
        self.assertIsNone(listing.year)
        self.assertIsNone(listing.price_cents)


class ListingUpdateAtomicityTests(ListingApiTestBase):
    """Tests that a listing update and its photo sync succeed or fail together"""

    def test_media_failure_rolls_back_listing_fields(self):
        """Test that a failed photo sync leaves the listing and its media untouched"""
        listing = make_listing(self.profile, media_urls=[PHOTO_A, PHOTO_B], title="Original title")
        before = list(listing.media.order_by("sort").values_list("id", "url", "sort"))

        self.client.login(username="owner", password="testpass123")
        with mock.patch("market_app.views.apply_media_plan", side_effect=DatabaseError("disk full")):
            response = self.patch(listing, {"title": "New title", "photoUrls": [PHOTO_C]})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "Failed to update listing"})
        listing.refresh_from_db()
        self.assertEqual(listing.title, "Original title")
        self.assertEqual(list(listing.media.order_by("sort").values_list("id", "url", "sort")), before)

    def test_save_failure_leaves_media_untouched(self):
        """Test that media is not reconciled when the listing save fails"""
        listing = make_listing(self.profile, media_urls=[PHOTO_A])

        self.client.login(username="owner", password="testpass123")
        with mock.patch.object(Listing, "save", side_effect=DatabaseError("locked")):
            response = self.patch(listing, {"title": "New title", "photoUrls": [PHOTO_B, PHOTO_C]})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(media_urls(listing), [PHOTO_A])


class ListingCrudTests(ListingApiTestBase):
    """Tests for listing create, read, list and delete"""

    def test_get_listing_detail(self):
        """Test the detail payload with ordered media and profile"""
        listing = make_listing(self.profile, media_urls=[PHOTO_B, PHOTO_A])
        response = self.client.get(reverse("market_app:listing_detail", kwargs={"listing_id": listing.id}))

        self.assertEqual(response.status_code, 200)
        data = response.json()["listing"]
        self.assertEqual(data["photoUrls"], [PHOTO_B, PHOTO_A])
        self.assertEqual(data["listingType"], "sale")
        self.assertEqual(data["priceCents"], 45000000)
        self.assertEqual(data["profile"]["slug"], self.profile.slug)

    def test_get_missing_listing(self):
        """Test 404 for a missing listing"""
        response = self.client.get(reverse("market_app:listing_detail", kwargs={"listing_id": uuid.uuid4()}))
        self.assertEqual(response.status_code, 404)

    def test_delete_by_owner(self):
        """Test owner hard delete"""
        listing = make_listing(self.profile, media_urls=[PHOTO_A])
        url = reverse("market_app:listing_detail", kwargs={"listing_id": listing.id})

        self.client.login(username="other", password="testpass123")
        self.assertEqual(self.client.delete(url).status_code, 403)

        self.client.login(username="owner", password="testpass123")
        response = self.client.delete(url)
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Listing.objects.filter(id=listing.id).exists())
        self.assertFalse(ListingMedia.objects.filter(url=PHOTO_A).exists())

    def test_list_only_live_listings(self):
        """Test the public feed"""
        live = make_listing(self.profile, media_urls=[PHOTO_A, PHOTO_B], status=ListingStatus.LIVE)
        make_listing(self.profile, status=ListingStatus.DRAFT)
        make_listing(
            self.profile,
            status=ListingStatus.LIVE,
            kind=ListingKind.PARTS,
            parts_category="Engines",
        )

        response = self.client.get(reverse("market_app:listings"), {"kind": "vessel"})

        data = response.json()
        self.assertEqual(data["total"], 1)
        self.assertEqual(data["limit"], 20)
        self.assertEqual(data["listings"][0]["id"], str(live.id))
        self.assertEqual(data["listings"][0]["imageUrl"], PHOTO_A)

    def test_list_huge_offset_is_clamped(self):
        """Test that an enormous offset returns an empty page instead of an error"""
        make_listing(self.profile, status=ListingStatus.LIVE)
        response = self.client.get(reverse("market_app:listings"), {"offset": "99999999999999999999999"})

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["listings"], [])
        self.assertEqual(data["offset"], 2 ** 31 - 1)
        self.assertEqual(data["total"], 1)

    def test_list_limit_is_capped(self):
        """Test limit bounds"""
        response = self.client.get(reverse("market_app:listings"), {"limit": "5000", "offset": "-3"})
        self.assertEqual(response.json()["limit"], 100)
        self.assertEqual(response.json()["offset"], 0)

    def test_create_draft_listing(self):
        """Test creating a draft with title fallback and ordered photos"""
        self.client.login(username="owner", password="testpass123")
        body = {
            "listingType": "sale",
            "brand": "Hallberg-Rassy",
            "model": "40C",
            "price": "320000",
            "photoUrls": [PHOTO_B, "blob:http://x/1", PHOTO_A],
        }
        response = self.client.post(reverse("market_app:listings"), data=json.dumps(body), content_type="application/json")

        self.assertEqual(response.status_code, 201)
        listing = Listing.objects.get(id=response.json()["id"])
        self.assertEqual(listing.title, "Hallberg-Rassy 40C")
        self.assertEqual(listing.status, ListingStatus.DRAFT)
        self.assertEqual(listing.profile, self.profile)
        self.assertEqual(listing.seller_type, SellerType.PRIVATE)
        self.assertEqual(media_urls(listing), [PHOTO_B, PHOTO_A])
        self.assertTrue(listing.slug.startswith("hallberg-rassy-40c-"))

    def test_create_live_listing_is_validated(self):
        """Test that creating straight to LIVE runs the publish checks"""
        self.client.login(username="owner", password="testpass123")
        body = {"listingType": "service", "serviceName": "Antifouling", "status": "LIVE"}
        response = self.client.post(reverse("market_app:listings"), data=json.dumps(body), content_type="application/json")

        self.assertEqual(response.status_code, 400)
        self.assertIn("serviceCategory", response.json()["missing"])
        self.assertFalse(Listing.objects.exists())

    def test_create_requires_login(self):
        """Test 401 on anonymous create"""
        response = self.client.post(reverse("market_app:listings"), data="{}", content_type="application/json")
        self.assertEqual(response.status_code, 401)

    def test_my_listings_counts(self):
        """Test the owner's dashboard feed"""
        make_listing(self.profile, status=ListingStatus.LIVE)
        make_listing(self.profile)
        make_listing(Profile.primary_for(self.other), status=ListingStatus.LIVE)

        self.client.login(username="owner", password="testpass123")
        data = self.client.get(reverse("market_app:my_listings")).json()

        self.assertEqual(data["total"], 2)
        self.assertEqual(data["counts"]["LIVE"], 1)
        self.assertEqual(data["counts"]["DRAFT"], 1)

    def test_buy_listing_by_slug(self):
        """Test that only live listings are public by slug"""
        live = make_listing(self.profile, status=ListingStatus.LIVE)
        draft = make_listing(self.profile)

        self.assertEqual(self.client.get(reverse("market_app:buy_listing", kwargs={"slug": live.slug})).status_code, 200)
        self.assertEqual(self.client.get(reverse("market_app:buy_listing", kwargs={"slug": draft.slug})).status_code, 404)

    def test_api_requests_are_timed(self):
        """Test that API requests are logged with their duration"""
        with self.assertLogs("market_app.middleware", level="INFO") as logs:
            self.client.get(reverse("market_app:listings"))
        self.assertIn("GET /api/listings/", logs.output[0])


class HubTests(TestCase):
    """Tests for the /buy/ hub endpoints"""

    def setUp(self):
        self.client = Client()
        owner = User.objects.create_user(username="broker", password="testpass123")
        self.profile = Profile.primary_for(owner)
        self.oceanis = make_listing(
            self.profile, media_urls=[PHOTO_A], status=ListingStatus.LIVE, country="France"
        )
        make_listing(
            self.profile,
            status=ListingStatus.LIVE,
            brand="BENETEAU",
            model="First 36",
            title="First 36",
            year=2021,
            country="Spain",
        )
        make_listing(self.profile, status=ListingStatus.DRAFT)
        make_listing(self.profile, status=ListingStatus.LIVE, intent=ListingIntent.CHARTER)

    def test_dotted_model_matches(self):
        """Test that the model slug matches the stored dotted model"""
        queryset = Listing.objects.filter(hub_filter(brand="beneteau", model="oceanis-51-1"))
        self.assertEqual(list(queryset), [self.oceanis])

    def test_model_route_with_brand_prefix(self):
        """Test /buy/model/ with a brand-prefixed slug"""
        response = self.client.get(reverse("market_app:hub_model", kwargs={"model": "beneteau-oceanis-51-1"}))
        data = response.json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual([item["id"] for item in data["listings"]], [str(self.oceanis.id)])

    def test_brand_hub_ignores_case_and_facets(self):
        """Test a brand hub across stored casings"""
        response = self.client.get(reverse("market_app:hub_brand", kwargs={"brand": "beneteau"}))
        data = response.json()

        self.assertEqual(data["stats"]["total"], 2)
        self.assertEqual(data["stats"]["countriesListed"], 2)
        self.assertNotIn("brands", data["facets"])
        self.assertEqual({row["value"] for row in data["facets"]["countries"]}, {"France", "Spain"})
        self.assertTrue(data["canonicalUrl"].endswith("/buy/brand/beneteau/"))
        self.assertIn("Browse 2 Beneteau boats for sale", data["intro"])

    def test_country_and_year_hub(self):
        """Test combined country and year filters"""
        response = self.client.get(
            reverse("market_app:hub_country_year", kwargs={"country": "spain", "year": "2021"})
        )
        self.assertEqual(response.json()["stats"]["total"], 1)

    def test_invalid_year_is_not_found(self):
        """Test that out-of-range years 404"""
        with self.assertLogs("market_app.views_hubs", level="INFO") as logs:
            response = self.client.get(reverse("market_app:hub_year", kwargs={"year": "1800"}))
        self.assertEqual(response.status_code, 404)
        self.assertIn("invalid year '1800'", logs.output[0])


class MessagingTests(TestCase):
    """Tests for the messaging API"""

    def setUp(self):
        self.client = Client()
        self.buyer = User.objects.create_user(username="buyer", password="testpass123")
        self.seller = User.objects.create_user(username="seller", password="testpass123")
        self.stranger = User.objects.create_user(username="stranger", password="testpass123")
        self.listing = make_listing(Profile.primary_for(self.seller), status=ListingStatus.LIVE)
        self.send_url = reverse("market_app:send_message")

    def send(self, body):
        return self.client.post(self.send_url, data=json.dumps(body), content_type="application/json")

    def test_send_validation(self):
        """Test the send endpoint's input checks"""
        self.client.login(username="buyer", password="testpass123")
        self.assertEqual(self.send({"receiverId": self.seller.id, "message": "  "}).json()["error"], "Message is required")
        self.assertEqual(self.send({"message": "Hi"}).json()["error"], "Receiver is required")
        self.assertEqual(self.send({"receiverId": self.buyer.id, "message": "Hi"}).json()["error"], "Cannot message yourself")
        response = self.send({"receiverId": 99999, "message": "Hi"})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "Receiver not found")

    def test_send_requires_login(self):
        """Test 401 on anonymous send"""
        self.assertEqual(self.send({"receiverId": self.seller.id, "message": "Hi"}).status_code, 401)

    def test_first_contact_and_reply_share_conversation(self):
        """Test that messages about the same listing land in one conversation"""
        self.client.login(username="buyer", password="testpass123")
        first = self.send({"receiverId": self.seller.id, "listingId": str(self.listing.id), "message": "Is it available?"})
        second = self.send({"receiverId": self.seller.id, "listingId": str(self.listing.id), "message": "Still keen"})

        self.assertEqual(first.status_code, 200)
        self.assertTrue(first.json()["message"]["isFromMe"])
        self.assertEqual(first.json()["conversationId"], second.json()["conversationId"])
        conversation = Conversation.objects.get(id=first.json()["conversationId"])
        self.assertEqual(conversation.listing, self.listing)
        self.assertEqual(conversation.messages.count(), 2)

    def test_unread_and_mark_read(self):
        """Test unread counts and marking a thread as read"""
        self.client.login(username="buyer", password="testpass123")
        conversation_id = self.send({"receiverId": self.seller.id, "message": "Hello"}).json()["conversationId"]

        self.client.login(username="seller", password="testpass123")
        self.assertEqual(self.client.get(reverse("market_app:unread_count")).json()["unreadCount"], 1)

        inbox = self.client.get(reverse("market_app:inbox")).json()["conversations"]
        self.assertEqual(inbox[0]["otherUser"]["id"], self.buyer.id)
        self.assertEqual(inbox[0]["unreadCount"], 1)
        self.assertFalse(inbox[0]["lastMessage"]["isFromMe"])

        thread = self.client.get(reverse("market_app:conversation", kwargs={"conversation_id": conversation_id}))
        self.assertEqual(thread.status_code, 200)
        self.assertEqual(thread.json()["messages"][0]["body"], "Hello")
        self.assertEqual(self.client.get(reverse("market_app:unread_count")).json()["unreadCount"], 0)
        self.assertTrue(Message.objects.get(conversation_id=conversation_id).is_read)

    def test_reply_by_conversation_id(self):
        """Test replying inside an existing conversation"""
        self.client.login(username="buyer", password="testpass123")
        conversation_id = self.send({"receiverId": self.seller.id, "message": "Hello"}).json()["conversationId"]

        self.client.login(username="seller", password="testpass123")
        reply = self.send({"conversationId": conversation_id, "message": "Hi there"})

        self.assertEqual(reply.status_code, 200)
        self.assertEqual(Message.objects.get(body="Hi there").receiver, self.buyer)

    def test_non_participant_cannot_read(self):
        """Test 403 and 404 on conversation detail"""
        self.client.login(username="buyer", password="testpass123")
        conversation_id = self.send({"receiverId": self.seller.id, "message": "Hello"}).json()["conversationId"]

        self.client.login(username="stranger", password="testpass123")
        url = reverse("market_app:conversation", kwargs={"conversation_id": conversation_id})
        self.assertEqual(self.client.get(url).status_code, 403)
        self.assertEqual(self.send({"conversationId": conversation_id, "message": "Hey"}).status_code, 403)
        missing = reverse("market_app:conversation", kwargs={"conversation_id": 424242})
        self.assertEqual(self.client.get(missing).status_code, 404)


class ProfileAndSavedTests(TestCase):
    """Tests for profile updates, saved listings and saved searches"""

    def setUp(self):
        self.client = Client()
        self.user = User.objects.create_user(username="skipper", email="skipper@example.com", password="testpass123")
        self.other = User.objects.create_user(username="other", password="testpass123")
        self.profile = Profile.primary_for(self.user)
        self.client.login(username="skipper", password="testpass123")

    def post_json(self, url, body):
        return self.client.post(url, data=json.dumps(body), content_type="application/json")

    def test_profile_created_for_new_user(self):
        """Test the signal-created profile"""
        self.assertEqual(self.profile.name, "skipper")
        self.assertTrue(self.profile.slug.startswith(f"user-{self.user.id}-"))

    def test_update_profile_normalises_website(self):
        """Test website scheme and blank fields"""
        response = self.post_json(
            reverse("market_app:update_profile"),
            {"slug": self.profile.slug, "name": "Skipper Yachts", "website": "skipper.example.com", "tagline": "  "},
        )

        self.assertEqual(response.status_code, 200)
        self.profile.refresh_from_db()
        self.assertEqual(self.profile.name, "Skipper Yachts")
        self.assertEqual(self.profile.website, "https://skipper.example.com")
        self.assertIsNone(self.profile.tagline)

    def test_update_profile_errors(self):
        """Test validation, ownership and lookup errors"""
        url = reverse("market_app:update_profile")
        self.assertEqual(self.post_json(url, {"name": "x"}).json()["error"], "SLUG_REQUIRED")
        self.assertEqual(self.post_json(url, {"slug": self.profile.slug}).json()["error"], "NAME_REQUIRED")
        self.assertEqual(self.post_json(url, {"slug": "nobody", "name": "x"}).status_code, 404)

        other_profile = Profile.primary_for(self.other)
        response = self.post_json(url, {"slug": other_profile.slug, "name": "Hijacked"})
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"], "FORBIDDEN")

        bad = self.client.post(url, data="{oops", content_type="application/json")
        self.assertEqual(bad.json()["error"], "BAD_JSON")

    def test_public_profile_shows_live_listings(self):
        """Test the public profile payload"""
        make_listing(self.profile, status=ListingStatus.LIVE)
        make_listing(self.profile)

        data = self.client.get(reverse("market_app:public_profile", kwargs={"slug": self.profile.slug})).json()
        self.assertEqual(len(data["listings"]), 1)

    def test_toggle_saved_listing(self):
        """Test saving and unsaving a listing"""
        listing = make_listing(Profile.primary_for(self.other), status=ListingStatus.LIVE)
        url = reverse("market_app:saved_listings")

        self.assertTrue(self.post_json(url, {"listingId": str(listing.id)}).json()["saved"])
        self.assertTrue(self.client.get(url, {"listingId": str(listing.id)}).json()["saved"])
        self.assertEqual(len(self.client.get(url).json()["items"]), 1)
        self.assertFalse(self.post_json(url, {"listingId": str(listing.id)}).json()["saved"])
        self.assertFalse(SavedListing.objects.exists())
        self.assertEqual(self.post_json(url, {}).json()["error"], "MISSING_LISTING_ID")

    def test_saved_searches(self):
        """Test creating, listing, renaming and deleting saved searches"""
        url = reverse("market_app:saved_searches")
        body = {"name": "Cats in Greece", "query": {"q": "catamaran", "country": "Greece"}, "replayUrl": "/buy?q=catamaran"}

        created = self.post_json(url, body)
        self.assertEqual(created.status_code, 201)
        search_id = created.json()["search"]["id"]
        self.assertEqual(created.json()["search"]["kind"], "BUY")

        self.assertEqual(self.post_json(url, dict(body, replayUrl="https://evil.example")).json()["error"], "REPLAY_URL_REQUIRED")
        self.assertEqual(self.post_json(url, dict(body, query=[])).json()["error"], "QUERY_REQUIRED")
        self.assertEqual(self.post_json(url, dict(body, name="")).json()["error"], "NAME_REQUIRED")

        self.assertEqual(len(self.client.get(url).json()["items"]), 1)
        self.assertEqual(len(self.client.get(url, {"kind": "rent"}).json()["items"]), 0)

        detail = reverse("market_app:saved_search_detail", kwargs={"search_id": search_id})
        renamed = self.client.patch(detail, data=json.dumps({"name": "Greek cats"}), content_type="application/json")
        self.assertEqual(renamed.status_code, 200)
        self.assertEqual(SavedSearch.objects.get(id=search_id).name, "Greek cats")

        self.client.login(username="other", password="testpass123")
        self.assertEqual(self.client.delete(detail).json()["error"], "NOT_FOUND")

        self.client.login(username="skipper", password="testpass123")
        self.assertEqual(self.client.delete(detail).status_code, 200)
        self.assertFalse(SavedSearch.objects.exists())


class PauseIncompleteListingsCommandTests(TestCase):
    """Tests for the pause_incomplete_listings management command"""

    def setUp(self):
        owner = User.objects.create_user(username="owner", password="testpass123")
        profile = Profile.primary_for(owner)
        self.good = make_listing(profile, media_urls=[PHOTO_A], status=ListingStatus.LIVE)
        self.bad = make_listing(profile, status=ListingStatus.LIVE)

    def test_dry_run_changes_nothing(self):
        """Test the dry run"""
        out = StringIO()
        call_command("pause_incomplete_listings", "--dry-run", stdout=out)

        self.assertIn("missing: photos", out.getvalue())
        self.bad.refresh_from_db()
        self.assertEqual(self.bad.status, ListingStatus.LIVE)

    def test_incomplete_live_listings_are_paused(self):
        """Test that only incomplete listings are paused"""
        call_command("pause_incomplete_listings", stdout=StringIO())

        self.bad.refresh_from_db()
        self.good.refresh_from_db()
        self.assertEqual(self.bad.status, ListingStatus.PAUSED)
        self.assertEqual(self.good.status, ListingStatus.LIVE)


class SettingsTests(SimpleTestCase):
    """Tests for environment driven settings"""

    def test_debug_is_off_without_environment(self):
        """Test that DEBUG defaults to off when neither the environment nor .env sets it"""
        from findaly_project import settings as project_settings

        if project_settings.env_file.exists():
            self.skipTest(".env file present")
        with mock.patch.dict(os.environ):
            os.environ.pop("DEBUG", None)
            reloaded = importlib.reload(project_settings)
            self.assertIs(reloaded.DEBUG, False)
        importlib.reload(project_settings)
