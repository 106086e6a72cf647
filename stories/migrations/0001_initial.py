from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("classrooms", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Story",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("author_name", models.CharField(blank=True, max_length=150)),
                ("content", models.TextField(blank=True)),
                ("media_type", models.CharField(choices=[("text", "Text"), ("image", "Image"), ("video", "Video")], default="text", max_length=10)),
                ("media_urls", models.JSONField(blank=True, default=list)),
                ("comment_count", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("author", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="stories", to=settings.AUTH_USER_MODEL)),
                ("classroom", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="stories", to="classrooms.classroom")),
                ("likes", models.ManyToManyField(blank=True, related_name="liked_stories", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name_plural": "stories",
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="StoryComment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("author_name", models.CharField(blank=True, max_length=150)),
                ("content", models.TextField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("author", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="story_comments", to=settings.AUTH_USER_MODEL)),
                ("story", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="comments", to="stories.story")),
            ],
            options={
                "ordering": ["created_at", "id"],
            },
        ),
    ]
