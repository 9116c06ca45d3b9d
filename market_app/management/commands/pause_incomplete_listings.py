from django.core.management.base import BaseCommand

from market_app.models import Listing, ListingStatus
from market_app.utils.publishing import build_effective_state, missing_publish_fields


class Command(BaseCommand):
    help = (
        "Pause LIVE listings that no longer pass the publish checks "
        "(e.g. photos removed or seller contact cleared). Run after data imports."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List listings that would be paused without changing them.",
        )
        parser.add_argument(
            "--limit",
            type=int,
            default=500,
            help="Max listings to check in one run (default: 500).",
        )

    def handle(self, *args, **options):
        qs = Listing.objects.filter(status=ListingStatus.LIVE).order_by("updated_at")[: options["limit"]]

        incomplete = []
        for listing in qs:
            missing = missing_publish_fields(build_effective_state(listing, {}))
            if missing:
                incomplete.append((listing, missing))

        if not incomplete:
            self.stdout.write(self.style.SUCCESS("No incomplete live listings found."))
            return

        self.stdout.write(f"Found {len(incomplete)} incomplete live listing(s).")
        for listing, missing in incomplete:
            self.stdout.write(f"- {listing.slug} (id={listing.id}) missing: {', '.join(missing)}")

        if options["dry_run"]:
            self.stdout.write(self.style.WARNING("Dry run enabled; no listings paused."))
            return

        paused = Listing.objects.filter(id__in=[listing.id for listing, _missing in incomplete]).update(
            status=ListingStatus.PAUSED
        )
        self.stdout.write(self.style.SUCCESS(f"Paused {paused} incomplete listing(s)."))
