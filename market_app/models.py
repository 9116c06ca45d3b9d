import secrets
import uuid

from django.contrib.auth.models import User
from django.db import models
from django.db.models.signals import post_save
from django.dispatch import receiver
from django.utils import timezone
from django.utils.text import slugify


class ListingKind(models.TextChoices):
    VESSEL = "VESSEL", "Vessel"
    PARTS = "PARTS", "Parts"
    SERVICES = "SERVICES", "Services"


class ListingIntent(models.TextChoices):
    SALE = "SALE", "Sale"
    CHARTER = "CHARTER", "Charter"


class ListingStatus(models.TextChoices):
    DRAFT = "DRAFT", "Draft"
    LIVE = "LIVE", "Live"
    PAUSED = "PAUSED", "Paused"
    SOLD = "SOLD", "Sold"


class Currency(models.TextChoices):
    EUR = "EUR", "Euro"
    GBP = "GBP", "Pound sterling"
    USD = "USD", "US dollar"
    AED = "AED", "UAE dirham"
    OTHER = "OTHER", "Other"


class PriceType(models.TextChoices):
    FIXED = "FIXED", "Fixed"
    NEGOTIABLE = "NEGOTIABLE", "Negotiable"
    POA = "POA", "Price on application"
    AUCTION = "AUCTION", "Auction"


class VesselCondition(models.TextChoices):
    NEW = "NEW", "New"
    USED = "USED", "Used"


class PartsCondition(models.TextChoices):
    NEW = "NEW", "New"
    USED = "USED", "Used"
    REFURBISHED = "REFURBISHED", "Refurbished"


class SellerType(models.TextChoices):
    PROFESSIONAL = "PROFESSIONAL", "Professional"
    PRIVATE = "PRIVATE", "Private"


class CharterPricePeriod(models.TextChoices):
    HOUR = "HOUR", "Per hour"
    DAY = "DAY", "Per day"
    WEEK = "WEEK", "Per week"


class Profile(models.Model):
    # A user may own several profiles; the earliest one is the primary profile
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="profiles")

    slug = models.SlugField(max_length=80, unique=True)
    name = models.CharField(max_length=120)
    tagline = models.CharField(max_length=200, blank=True, null=True)
    location = models.CharField(max_length=120, blank=True, null=True)
    website = models.URLField(max_length=300, blank=True, null=True)
    email = models.EmailField(max_length=200, blank=True, null=True)
    phone = models.CharField(max_length=40, blank=True, null=True)
    about = models.TextField(blank=True, null=True)
    avatar = models.ImageField(upload_to="uploads/avatars/", blank=True, null=True)
    is_verified = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.name} ({self.slug})"

    @classmethod
    def primary_for(cls, user):
        """Return the user's primary (earliest created) profile, or None."""
        if user is None or not user.is_authenticated:
            return None
        return cls.objects.filter(user=user).order_by("created_at", "id").first()

    @classmethod
    def create_for_user(cls, user):
        name = (user.email or "").split("@")[0] or user.username
        slug = f"user-{user.id}-{secrets.token_hex(3)}"
        return cls.objects.create(user=user, slug=slug, name=name)


class Listing(models.Model):
    """One marketplace item: a vessel for sale or charter, a part, or a service."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    profile = models.ForeignKey(Profile, on_delete=models.CASCADE, related_name="listings")

    kind = models.CharField(max_length=10, choices=ListingKind.choices, default=ListingKind.VESSEL)
    intent = models.CharField(max_length=10, choices=ListingIntent.choices, default=ListingIntent.SALE)
    status = models.CharField(max_length=10, choices=ListingStatus.choices, default=ListingStatus.DRAFT)

    title = models.CharField(max_length=200, blank=True, default="")
    slug = models.SlugField(max_length=100, unique=True)
    description = models.TextField(blank=True, null=True)

    # Location
    location = models.CharField(max_length=200, blank=True, null=True)
    country = models.CharField(max_length=100, blank=True, null=True)
    marina = models.CharField(max_length=200, blank=True, null=True)
    lying = models.CharField(max_length=200, blank=True, null=True)

    # Pricing
    currency = models.CharField(max_length=5, choices=Currency.choices, default=Currency.EUR)
    price_cents = models.BigIntegerField(blank=True, null=True)
    price_type = models.CharField(max_length=12, choices=PriceType.choices, default=PriceType.NEGOTIABLE)
    tax_status = models.CharField(max_length=50, blank=True, null=True)

    # Vessel
    boat_category = models.CharField(max_length=100, blank=True, null=True)
    charter_type = models.CharField(max_length=100, blank=True, null=True)
    vessel_condition = models.CharField(max_length=10, choices=VesselCondition.choices, blank=True, null=True)
    brand = models.CharField(max_length=120, blank=True, null=True)
    model = models.CharField(max_length=120, blank=True, null=True)
    year = models.IntegerField(blank=True, null=True)

    length_ft = models.FloatField(blank=True, null=True)
    length_m = models.FloatField(blank=True, null=True)
    beam_ft = models.FloatField(blank=True, null=True)
    beam_m = models.FloatField(blank=True, null=True)
    draft_ft = models.FloatField(blank=True, null=True)
    draft_m = models.FloatField(blank=True, null=True)
    displacement = models.CharField(max_length=60, blank=True, null=True)

    hull_material = models.CharField(max_length=60, blank=True, null=True)
    hull_type = models.CharField(max_length=60, blank=True, null=True)
    hull_color = models.CharField(max_length=60, blank=True, null=True)

    engine_make = models.CharField(max_length=100, blank=True, null=True)
    engine_model = models.CharField(max_length=100, blank=True, null=True)
    engine_power = models.CharField(max_length=60, blank=True, null=True)
    engine_count = models.IntegerField(blank=True, null=True)
    engine_hours = models.IntegerField(blank=True, null=True)
    fuel_type = models.CharField(max_length=40, blank=True, null=True)
    fuel_capacity = models.CharField(max_length=40, blank=True, null=True)

    cabins = models.IntegerField(blank=True, null=True)
    berths = models.IntegerField(blank=True, null=True)
    heads = models.IntegerField(blank=True, null=True)

    features = models.JSONField(default=list, blank=True)
    electronics = models.JSONField(default=list, blank=True)
    safety_equipment = models.JSONField(default=list, blank=True)
    custom_features = models.TextField(blank=True, null=True)

    # Charter
    charter_guests = models.IntegerField(blank=True, null=True)
    charter_crew = models.IntegerField(blank=True, null=True)
    charter_price_period = models.CharField(
        max_length=5, choices=CharterPricePeriod.choices, blank=True, null=True
    )
    charter_available_from = models.DateField(blank=True, null=True)
    charter_available_to = models.DateField(blank=True, null=True)
    charter_included = models.JSONField(default=list, blank=True)

    # Services
    service_category = models.CharField(max_length=100, blank=True, null=True)
    service_name = models.CharField(max_length=200, blank=True, null=True)
    service_description = models.TextField(blank=True, null=True)
    service_experience = models.CharField(max_length=100, blank=True, null=True)
    service_areas = models.JSONField(default=list, blank=True)

    # Parts
    parts_category = models.CharField(max_length=100, blank=True, null=True)
    parts_condition = models.CharField(max_length=12, choices=PartsCondition.choices, blank=True, null=True)
    parts_compatibility = models.TextField(blank=True, null=True)

    # Seller info (denormalized for display)
    seller_type = models.CharField(max_length=12, choices=SellerType.choices, blank=True, null=True)
    seller_name = models.CharField(max_length=150, blank=True, null=True)
    seller_company = models.CharField(max_length=150, blank=True, null=True)
    seller_email = models.EmailField(max_length=200, blank=True, null=True)
    seller_phone = models.CharField(max_length=40, blank=True, null=True)
    seller_whatsapp = models.BooleanField(default=False)
    seller_location = models.CharField(max_length=200, blank=True, null=True)
    seller_website = models.CharField(max_length=300, blank=True, null=True)

    # Listing options
    featured = models.BooleanField(default=False)
    urgent = models.BooleanField(default=False)
    accept_offers = models.BooleanField(default=True)

    video_url = models.CharField(max_length=500, blank=True, null=True)
    virtual_tour_url = models.CharField(max_length=500, blank=True, null=True)
    recent_works = models.TextField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-featured", "-created_at"]
        indexes = [
            models.Index(fields=["status", "kind", "intent"]),
            models.Index(fields=["brand"]),
            models.Index(fields=["model"]),
            models.Index(fields=["country"]),
            models.Index(fields=["year"]),
        ]

    def __str__(self):
        return self.display_title

    @property
    def display_title(self):
        if self.title:
            return self.title
        if self.kind == ListingKind.SERVICES and self.service_name:
            return self.service_name
        return f"{self.brand or ''} {self.model or ''}".strip() or "Untitled Listing"

    @property
    def is_live(self):
        return self.status == ListingStatus.LIVE

    @staticmethod
    def generate_slug(title, brand=None, model=None):
        """Slug from title (or brand + model) plus a short random suffix."""
        base = title or f"{brand or ''} {model or ''}".strip() or "listing"
        stem = slugify(base)[:60].strip("-") or "listing"
        suffix = format(int(timezone.now().timestamp()), "x") + secrets.token_hex(2)
        return f"{stem}-{suffix}"


class ListingMedia(models.Model):
    """Photos of a listing, identified by URL and ordered by `sort` (0 = cover)."""

    listing = models.ForeignKey(Listing, on_delete=models.CASCADE, related_name="media")
    url = models.CharField(max_length=1000)
    sort = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["sort", "created_at"]
        verbose_name = "Listing Media"
        verbose_name_plural = "Listing Media"

    def __str__(self):
        return f"Media {self.sort} for {self.listing}"


class Conversation(models.Model):
    """Represents a conversation between two users, optionally about a listing"""

    participants = models.ManyToManyField(User, related_name="conversations")
    listing = models.ForeignKey(
        Listing, on_delete=models.SET_NULL, null=True, blank=True, related_name="conversations"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-updated_at"]

    def __str__(self):
        names = [p.get_full_name() or p.username for p in self.participants.all()]
        return f"Conversation between {', '.join(names)}"

    def get_other_participant(self, user):
        return self.participants.exclude(id=user.id).first()

    def get_latest_message(self):
        return self.messages.order_by("-created_at", "-id").first()

    def unread_count_for(self, user):
        return self.messages.filter(receiver=user, read_at__isnull=True).count()

    @classmethod
    def find_between(cls, user1, user2, listing=None):
        """Existing conversation between two users about the same listing (or none)."""
        return (
            cls.objects.filter(participants=user1)
            .filter(participants=user2)
            .filter(listing=listing)
            .first()
        )

    @classmethod
    def get_or_create_conversation(cls, user1, user2, listing=None):
        existing = cls.find_between(user1, user2, listing)
        if existing:
            return existing, False

        conversation = cls.objects.create(listing=listing)
        conversation.participants.add(user1, user2)
        return conversation, True


class Message(models.Model):
    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name="messages")
    sender = models.ForeignKey(User, on_delete=models.CASCADE, related_name="sent_messages")
    receiver = models.ForeignKey(User, on_delete=models.CASCADE, related_name="received_messages")
    body = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)
    read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"Message from {self.sender.get_full_name() or self.sender.username} in {self.conversation_id}"

    @property
    def is_read(self):
        return self.read_at is not None

    def mark_as_read(self):
        if self.read_at is None:
            self.read_at = timezone.now()
            self.save(update_fields=["read_at"])


class SavedListing(models.Model):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="saved_listings")
    listing = models.ForeignKey(Listing, on_delete=models.CASCADE, related_name="saved_by")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ["user", "listing"]
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.listing} saved by {self.user}"


class SavedSearch(models.Model):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="saved_searches")
    name = models.CharField(max_length=120)
    kind = models.CharField(max_length=20, default="BUY")
    query = models.JSONField(default=dict)
    replay_url = models.CharField(max_length=1000)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    last_used_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "Saved Searches"

    def __str__(self):
        return f"{self.name} ({self.kind})"


# Signal to automatically create a profile when a User is created
@receiver(post_save, sender=User)
def create_user_profile(sender, instance, created, **kwargs):
    if created:
        Profile.create_for_user(instance)
