from django.conf import settings
from django.db import models


class Story(models.Model):
    """A classroom post from the teacher: text, photos or a video link."""

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    MEDIA_TYPE_CHOICES = [
        (TEXT, "Text"),
        (IMAGE, "Image"),
        (VIDEO, "Video"),
    ]

    classroom = models.ForeignKey(
        "classrooms.Classroom",
        on_delete=models.CASCADE,
        related_name="stories",
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="stories",
    )
    author_name = models.CharField(max_length=150, blank=True)
    content = models.TextField(blank=True)
    media_type = models.CharField(max_length=10, choices=MEDIA_TYPE_CHOICES, default=TEXT)
    media_urls = models.JSONField(default=list, blank=True)
    likes = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="liked_stories",
    )
    comment_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "stories"
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.author_name}: {self.content[:40] or self.get_media_type_display()}"

    @property
    def like_count(self):
        return self.likes.count()

    def is_liked_by(self, user) -> bool:
        return self.likes.filter(pk=user.pk).exists()


class StoryComment(models.Model):
    story = models.ForeignKey(
        Story,
        on_delete=models.CASCADE,
        related_name="comments",
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="story_comments",
    )
    author_name = models.CharField(max_length=150, blank=True)
    content = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"{self.author_name}: {self.content[:40]}"
