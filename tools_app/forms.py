from django import forms
from django.core.exceptions import ValidationError
from django.core.validators import URLValidator

from market_app.forms import JsonApiForm


def _clip(value, limit):
    """Stripped value cut to ``limit`` characters; blanks become None."""
    value = (value or "").strip()
    return value[:limit] or None


class SubmissionForm(JsonApiForm):
    name = forms.CharField()
    website_url = forms.CharField(required=False)
    category = forms.CharField(required=False)
    notes = forms.CharField(required=False)
    email = forms.CharField(required=False)

    # Over-long input is truncated rather than rejected
    limits = {"name": 120, "website_url": 500, "category": 80, "notes": 2000, "email": 200}

    error_codes = {
        "name": "NAME_REQUIRED",
        "website_url": "INVALID_WEBSITE_URL",
    }

    website_validator = URLValidator(schemes=["http", "https"])

    def clean(self):
        cleaned = super().clean()
        for field, limit in self.limits.items():
            if field in cleaned:
                cleaned[field] = _clip(cleaned[field], limit)
        return cleaned

    def clean_website_url(self):
        website_url = (self.cleaned_data.get("website_url") or "").strip()
        if website_url:
            try:
                self.website_validator(website_url)
            except ValidationError:
                raise ValidationError("Website URL must be a valid URL.")
        return website_url
