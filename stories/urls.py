from django.urls import path

from . import views

app_name = "stories"

urlpatterns = [
    path("", views.story_feed, name="story_feed"),
    path("<int:pk>/", views.story_detail, name="story_detail"),
    path("<int:pk>/like/", views.story_like, name="story_like"),
    path("<int:pk>/delete/", views.story_delete, name="story_delete"),
    path("comments/<int:pk>/delete/", views.comment_delete, name="comment_delete"),
]
