from django import forms
from django.core.exceptions import ValidationError


class JsonApiForm(forms.Form):
    """
    Form fed from a decoded JSON body. ``error_code()`` reports the first
    failing field as the short code the API returns.
    """

    error_codes = {}

    def error_code(self):
        for name in self.fields:
            if name in self.errors:
                return self.error_codes.get(name, "INVALID")
        if self.non_field_errors():
            return "INVALID"
        return None


class ProfileUpdateForm(JsonApiForm):
    slug = forms.CharField(max_length=80)
    name = forms.CharField(max_length=120)
    tagline = forms.CharField(max_length=200, required=False)
    location = forms.CharField(max_length=120, required=False)
    website = forms.CharField(max_length=300, required=False)
    email = forms.EmailField(max_length=200, required=False)
    phone = forms.CharField(max_length=40, required=False)
    about = forms.CharField(required=False)

    error_codes = {
        "slug": "SLUG_REQUIRED",
        "name": "NAME_REQUIRED",
        "website": "INVALID_WEBSITE",
        "email": "INVALID_EMAIL",
    }

    def clean_website(self):
        website = self.cleaned_data["website"].strip()
        if not website:
            return ""
        if not website.startswith(("http://", "https://")):
            website = f"https://{website}"
        if " " in website:
            raise ValidationError("Enter a valid website address.")
        return website

    def profile_values(self):
        """Cleaned values ready for the Profile row; blanks become NULL."""
        cd = self.cleaned_data
        values = {"name": cd["name"]}
        for field in ("tagline", "location", "website", "email", "phone", "about"):
            values[field] = (cd.get(field) or "").strip() or None
        return values


class SavedSearchForm(JsonApiForm):
    name = forms.CharField(max_length=120)
    kind = forms.CharField(max_length=20, required=False)
    query = forms.JSONField()
    replay_url = forms.CharField(max_length=1000)

    error_codes = {
        "name": "NAME_REQUIRED",
        "kind": "INVALID_KIND",
        "query": "QUERY_REQUIRED",
        "replay_url": "REPLAY_URL_REQUIRED",
    }

    def clean_kind(self):
        return (self.cleaned_data.get("kind") or "BUY").strip().upper() or "BUY"

    def clean_query(self):
        query = self.cleaned_data.get("query")
        if not isinstance(query, dict):
            raise ValidationError("Query must be an object.")
        return query

    def clean_replay_url(self):
        replay_url = self.cleaned_data["replay_url"].strip()
        if not replay_url.startswith("/"):
            raise ValidationError("Replay URL must be a site path.")
        return replay_url
