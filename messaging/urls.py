from django.urls import path

from . import views

app_name = "messaging"

urlpatterns = [
    path("", views.conversation_list, name="conversation_list"),
    path("new/", views.conversation_start, name="conversation_start"),
    path("broadcast/", views.broadcast, name="broadcast"),
    path("<int:pk>/", views.conversation_detail, name="conversation_detail"),
]
