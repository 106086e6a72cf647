from django.urls import path

from . import views

app_name = "points"

urlpatterns = [
    path("", views.points_overview, name="overview"),
    path("award/", views.award, name="award"),
    path("students/<int:pk>/", views.student_history, name="student_history"),
    path("students/<int:pk>/reset/", views.student_reset, name="student_reset"),
    path("records/<int:pk>/delete/", views.record_delete, name="record_delete"),
]
