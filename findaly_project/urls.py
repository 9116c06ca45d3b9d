from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("", include("market_app.urls")),
    path("", include("tools_app.urls")),
]
