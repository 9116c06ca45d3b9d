from django.db import models


class ToolStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    DRAFT = "DRAFT", "Draft"
    DISCONTINUED = "DISCONTINUED", "Discontinued"


class PricingModel(models.TextChoices):
    FREE = "FREE", "Free"
    FREEMIUM = "FREEMIUM", "Freemium"
    PAID = "PAID", "Paid"
    ENTERPRISE = "ENTERPRISE", "Enterprise"


class Category(models.Model):
    name = models.CharField(max_length=80, unique=True)
    slug = models.SlugField(max_length=80, unique=True)
    description = models.TextField(blank=True, null=True)
    parent = models.ForeignKey(
        "self", on_delete=models.SET_NULL, null=True, blank=True, related_name="children"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "Categories"

    def __str__(self):
        return self.name


class UseCase(models.Model):
    name = models.CharField(max_length=120)
    slug = models.SlugField(max_length=80, unique=True)
    description = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Tool(models.Model):
    name = models.CharField(max_length=120)
    slug = models.SlugField(max_length=120, unique=True)
    status = models.CharField(max_length=12, choices=ToolStatus.choices, default=ToolStatus.ACTIVE)

    tagline = models.CharField(max_length=200, blank=True, null=True)
    short_description = models.CharField(max_length=300)
    long_description = models.TextField(blank=True, null=True)
    website_url = models.URLField(max_length=300, blank=True, null=True)
    logo_url = models.URLField(max_length=500, blank=True, null=True)

    pricing_model = models.CharField(max_length=12, choices=PricingModel.choices, default=PricingModel.FREEMIUM)
    starting_price = models.CharField(max_length=120, blank=True, null=True)
    pricing_notes = models.TextField(blank=True, null=True)

    target_audience = models.JSONField(default=list, blank=True)
    key_features = models.JSONField(default=list, blank=True)
    integrations = models.JSONField(default=list, blank=True)

    is_featured = models.BooleanField(default=False)
    primary_category = models.ForeignKey(Category, on_delete=models.PROTECT, related_name="tools")
    use_cases = models.ManyToManyField(UseCase, related_name="tools", blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-is_featured", "name"]

    def __str__(self):
        return self.name

    @property
    def is_active(self):
        return self.status == ToolStatus.ACTIVE

    def as_card(self):
        return {
            "name": self.name,
            "slug": self.slug,
            "shortDescription": self.short_description,
            "pricingModel": self.pricing_model,
            "startingPrice": self.starting_price,
            "logoUrl": self.logo_url,
            "isFeatured": self.is_featured,
            "category": self.primary_category.slug if self.primary_category_id else None,
        }

    def as_dict(self):
        data = self.as_card()
        data.update(
            {
                "status": self.status,
                "tagline": self.tagline,
                "longDescription": self.long_description,
                "websiteUrl": self.website_url,
                "pricingNotes": self.pricing_notes,
                "targetAudience": self.target_audience,
                "keyFeatures": self.key_features,
                "integrations": self.integrations,
                "category": {"name": self.primary_category.name, "slug": self.primary_category.slug},
                "useCases": [{"name": u.name, "slug": u.slug} for u in self.use_cases.all()],
            }
        )
        return data


class SubmissionStatus(models.TextChoices):
    NEW = "NEW", "New"
    REVIEWED = "REVIEWED", "Reviewed"
    APPROVED = "APPROVED", "Approved"
    REJECTED = "REJECTED", "Rejected"


class Submission(models.Model):
    """A tool suggested by a visitor, waiting for admin review."""

    name = models.CharField(max_length=120)
    website_url = models.CharField(max_length=500, blank=True, null=True)
    category = models.CharField(max_length=80, blank=True, null=True)
    notes = models.TextField(max_length=2000, blank=True, null=True)
    email = models.CharField(max_length=200, blank=True, null=True)

    ip = models.CharField(max_length=64, blank=True, null=True)
    user_agent = models.TextField(blank=True, null=True)

    status = models.CharField(max_length=10, choices=SubmissionStatus.choices, default=SubmissionStatus.NEW)
    tool = models.ForeignKey(Tool, on_delete=models.SET_NULL, null=True, blank=True, related_name="submissions")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.name} ({self.status})"
