from django.urls import path

from . import views

app_name = "reports"

urlpatterns = [
    path("", views.overview, name="overview"),
    path("district/<int:pk>/", views.district_report, name="district_report"),
    path("school/<int:pk>/", views.school_report, name="school_report"),
]
