from django.contrib import admin

from .models import (
    Conversation,
    Listing,
    ListingMedia,
    Message,
    Profile,
    SavedListing,
    SavedSearch,
)


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ["name", "slug", "user", "is_verified", "created_at"]
    search_fields = ["name", "slug", "user__username", "user__email"]
    list_filter = ["is_verified", "created_at"]
    readonly_fields = ["created_at", "updated_at"]


class ListingMediaInline(admin.TabularInline):
    model = ListingMedia
    extra = 0
    fields = ["url", "sort"]
    ordering = ["sort"]


@admin.register(Listing)
class ListingAdmin(admin.ModelAdmin):
    list_display = ["display_title", "kind", "intent", "status", "brand", "model", "country", "featured", "updated_at"]
    list_filter = ["status", "kind", "intent", "featured", "country"]
    search_fields = ["title", "slug", "brand", "model", "service_name", "profile__name"]
    readonly_fields = ["id", "created_at", "updated_at"]
    inlines = [ListingMediaInline]


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ["id", "get_participants", "listing", "created_at", "updated_at", "message_count"]
    list_filter = ["created_at", "updated_at"]
    search_fields = ["participants__username", "participants__email", "listing__title"]
    readonly_fields = ["created_at", "updated_at"]
    filter_horizontal = ["participants"]

    def get_participants(self, obj):
        return ", ".join([p.get_full_name() or p.username for p in obj.participants.all()])

    get_participants.short_description = "Participants"

    def message_count(self, obj):
        return obj.messages.count()

    message_count.short_description = "Messages"


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ["id", "conversation", "sender", "receiver", "body_preview", "read_at", "created_at"]
    list_filter = ["created_at", "read_at"]
    search_fields = ["body", "sender__username", "receiver__username"]
    readonly_fields = ["created_at", "read_at"]
    date_hierarchy = "created_at"

    def body_preview(self, obj):
        return obj.body[:50] + "..." if len(obj.body) > 50 else obj.body

    body_preview.short_description = "Body"


admin.site.register(SavedListing)
admin.site.register(SavedSearch)

admin.site.site_header = "Findaly Admin"
admin.site.site_title = "Findaly Admin Portal"
admin.site.index_title = "Welcome to Findaly Admin Portal"
