# hallpass/urls.py
from django.contrib import admin
from django.urls import path, include
from django.shortcuts import redirect
from django.conf import settings
from django.conf.urls.static import static

from accounts import views as account_views
from classrooms import views as classroom_views
from core import views as core_views


def home(_request):
    return redirect("dashboard:dashboard")


urlpatterns = [
    path("admin/", admin.site.urls),
    path("", home, name="home"),
    path("accounts/", include(("accounts.urls", "accounts"), namespace="accounts")),
    path("classrooms/", include(("classrooms.urls", "classrooms"), namespace="classrooms")),
    path("students/", include(("students.urls", "students"), namespace="students")),
    path("messages/", include(("messaging.urls", "messaging"), namespace="messaging")),
    path("points/", include(("points.urls", "points"), namespace="points")),
    path("stories/", include(("stories.urls", "stories"), namespace="stories")),
    path("dashboard/", include(("dashboard.urls", "dashboard"), namespace="dashboard")),
    path("reports/", include(("reports.urls", "reports"), namespace="reports")),
    path("join/<str:code>/", classroom_views.join_by_link, name="join_by_link"),
    path("api/auth/signout", account_views.api_signout, name="api_signout"),
    path("api/admin/seed", core_views.api_seed, name="api_seed"),
]

if settings.DEBUG:
    urlpatterns += static(settings.STATIC_URL, document_root=settings.STATIC_ROOT)
