from django.urls import path

from . import views

app_name = "tools_app"

urlpatterns = [
    path("tools/", views.tools_list, name="tools_list"),
    path("tools/category/<slug:slug>/", views.category_detail, name="category_detail"),
    path("tools/<slug:slug>/", views.tool_detail, name="tool_detail"),
    path("alternatives/<slug:slug>/", views.alternatives, name="alternatives"),
    path("compare/<str:pair>/", views.compare, name="compare"),
    path("use-cases/<slug:slug>/", views.use_case_detail, name="use_case_detail"),
    path("api/submissions/", views.submit_tool, name="submit_tool"),
]
