from django.contrib import admin

from .models import Story, StoryComment


class StoryCommentInline(admin.TabularInline):
    model = StoryComment
    extra = 0
    readonly_fields = ("author", "created_at")


@admin.register(Story)
class StoryAdmin(admin.ModelAdmin):
    list_display = ("__str__", "classroom", "media_type", "comment_count", "created_at")
    list_filter = ("media_type", "classroom")
    search_fields = ("content", "author_name")
    raw_id_fields = ("classroom", "author")
    filter_horizontal = ("likes",)
    inlines = [StoryCommentInline]
