from django.urls import path

from . import views, views_account, views_hubs, views_messages

app_name = "market_app"

hub = views_hubs.listing_hub

urlpatterns = [
    # Listings API
    path("api/listings/", views.listings, name="listings"),
    path("api/listings/<uuid:listing_id>/", views.listing_detail_api, name="listing_detail"),
    path("api/my-listings/", views.my_listings, name="my_listings"),
    # Hubs (canonical order brand > model > country > year)
    path("buy/brand/<str:brand>/", hub, name="hub_brand"),
    path("buy/brand/<str:brand>/model/<str:model>/", hub, name="hub_brand_model"),
    path("buy/brand/<str:brand>/model/<str:model>/country/<str:country>/", hub, name="hub_brand_model_country"),
    path("buy/brand/<str:brand>/model/<str:model>/year/<str:year>/", hub, name="hub_brand_model_year"),
    path(
        "buy/brand/<str:brand>/model/<str:model>/country/<str:country>/year/<str:year>/",
        hub,
        name="hub_brand_model_country_year",
    ),
    path("buy/brand/<str:brand>/country/<str:country>/", hub, name="hub_brand_country"),
    path("buy/brand/<str:brand>/country/<str:country>/year/<str:year>/", hub, name="hub_brand_country_year"),
    path("buy/brand/<str:brand>/year/<str:year>/", hub, name="hub_brand_year"),
    path("buy/model/<str:model>/", hub, name="hub_model"),
    path("buy/model/<str:model>/country/<str:country>/", hub, name="hub_model_country"),
    path("buy/model/<str:model>/country/<str:country>/year/<str:year>/", hub, name="hub_model_country_year"),
    path("buy/model/<str:model>/year/<str:year>/", hub, name="hub_model_year"),
    path("buy/country/<str:country>/", hub, name="hub_country"),
    path("buy/country/<str:country>/year/<str:year>/", hub, name="hub_country_year"),
    path("buy/year/<str:year>/", hub, name="hub_year"),
    path("buy/year/<str:year>/brand/<str:brand>/", hub, name="hub_year_brand"),
    path("buy/year/<str:year>/country/<str:country>/", hub, name="hub_year_country"),
    path("buy/year/<str:year>/model/<str:model>/", hub, name="hub_year_model"),
    # Must stay after the hub routes
    path("buy/<slug:slug>/", views.buy_listing, name="buy_listing"),
    # Messaging
    path("api/messages/", views_messages.inbox, name="inbox"),
    path("api/messages/send/", views_messages.send_message, name="send_message"),
    path("api/messages/unread/", views_messages.unread_count, name="unread_count"),
    path("api/messages/<int:conversation_id>/", views_messages.conversation_detail, name="conversation"),
    # Profiles and saved items
    path("api/profile/update/", views_account.update_profile, name="update_profile"),
    path("profile/<slug:slug>/", views_account.public_profile, name="public_profile"),
    path("api/saved/", views_account.saved_listings, name="saved_listings"),
    path("api/searches/", views_account.saved_searches, name="saved_searches"),
    path("api/searches/<int:search_id>/", views_account.saved_search_detail, name="saved_search_detail"),
]
