from django.urls import path

from . import views

app_name = "students"

urlpatterns = [
    path("", views.student_list, name="student_list"),
    path("create/", views.student_create, name="student_create"),
    path("<int:pk>/", views.student_detail, name="student_detail"),
    path("<int:pk>/link-parent/", views.student_link_parent, name="student_link_parent"),
    path("<int:pk>/delete/", views.student_delete, name="student_delete"),
]
