from django.contrib import admin
from django.utils import timezone

from .models import Category, Submission, SubmissionStatus, Tool, UseCase
from .utils.submissions import approve_submission


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "parent")
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}


@admin.register(UseCase)
class UseCaseAdmin(admin.ModelAdmin):
    list_display = ("name", "slug")
    search_fields = ("name", "slug")


@admin.register(Tool)
class ToolAdmin(admin.ModelAdmin):
    list_display = ("name", "primary_category", "pricing_model", "status", "is_featured", "updated_at")
    list_filter = ("primary_category", "pricing_model", "status", "is_featured")
    search_fields = ("name", "slug", "short_description")
    filter_horizontal = ("use_cases",)


@admin.register(Submission)
class SubmissionAdmin(admin.ModelAdmin):
    list_display = ("name", "website_url", "category", "email", "status", "tool", "created_at")
    list_filter = ("status", "created_at")
    search_fields = ("name", "website_url", "email", "category")
    readonly_fields = ("ip", "user_agent", "created_at", "updated_at")
    actions = ["approve", "mark_reviewed", "mark_rejected"]

    @admin.action(description="Approve (creates a draft tool)")
    def approve(self, request, queryset):
        for submission in queryset:
            approve_submission(submission)
        self.message_user(request, f"Approved {queryset.count()} submission(s).")

    @admin.action(description="Mark as reviewed")
    def mark_reviewed(self, request, queryset):
        updated = queryset.update(status=SubmissionStatus.REVIEWED, updated_at=timezone.now())
        self.message_user(request, f"Marked {updated} submission(s) as reviewed.")

    @admin.action(description="Reject")
    def mark_rejected(self, request, queryset):
        updated = queryset.update(status=SubmissionStatus.REJECTED, updated_at=timezone.now())
        self.message_user(request, f"Rejected {updated} submission(s).")
