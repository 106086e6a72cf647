from django.urls import path

from . import views

app_name = "classrooms"

urlpatterns = [
    path("", views.classroom_list, name="classroom_list"),
    path("create/", views.classroom_create, name="classroom_create"),
    path("join/", views.classroom_join, name="classroom_join"),
    path("<int:pk>/select/", views.classroom_select, name="classroom_select"),
]
