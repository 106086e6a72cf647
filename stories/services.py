import logging

from django.db import transaction
from django.db.models import F
from django.db.models.functions import Greatest

from core.errors import AuthorizationError, ValidationError
from core.permissions import is_classroom_member, is_classroom_teacher

from .models import Story, StoryComment

logger = logging.getLogger(__name__)


def create_story(classroom, author, content: str = "", media_urls=(), media_type: str = Story.TEXT) -> Story:
    """Post a story to a classroom (classroom teacher only)."""
    if not is_classroom_teacher(author, classroom):
        raise AuthorizationError("Only the classroom teacher can post stories.")
    if media_type not in dict(Story.MEDIA_TYPE_CHOICES):
        raise ValidationError(f"Unsupported media type: {media_type}.")
    content = (content or "").strip()
    media_urls = [url.strip() for url in media_urls if url and url.strip()]
    if media_type == Story.TEXT and not content:
        raise ValidationError("Write something before posting.")
    if media_type != Story.TEXT and not media_urls:
        raise ValidationError("Add at least one media link.")

    story = Story.objects.create(
        classroom=classroom,
        author=author,
        author_name=author.display_name,
        content=content,
        media_type=media_type,
        media_urls=media_urls,
    )
    logger.info("Teacher %s posted story %s to classroom %s", author.pk, story.pk, classroom.pk)
    return story


def stories_for_class(classroom, limit: int = 20) -> list:
    """Newest first."""
    return list(
        Story.objects.filter(classroom=classroom)
        .prefetch_related("likes")
        .order_by("-created_at", "-id")[:limit]
    )


def delete_story(story, user) -> None:
    if story.author_id != user.pk and not is_classroom_teacher(user, story.classroom):
        raise AuthorizationError("You can't delete this story.")
    story.delete()


def toggle_like(story, user) -> bool:
    """Like or unlike; returns True when the story is now liked by *user*."""
    if not is_classroom_member(user, story.classroom):
        raise AuthorizationError("Only classroom members can like stories.")
    if story.likes.filter(pk=user.pk).exists():
        story.likes.remove(user)
        return False
    story.likes.add(user)
    return True


def get_comments(story) -> list:
    return list(story.comments.order_by("created_at", "id"))


def add_comment(story, author, content: str) -> StoryComment:
    if not is_classroom_member(author, story.classroom):
        raise AuthorizationError("Only classroom members can comment.")
    content = (content or "").strip()
    if not content:
        raise ValidationError("Comment cannot be empty.")
    with transaction.atomic():
        comment = StoryComment.objects.create(
            story=story,
            author=author,
            author_name=author.display_name,
            content=content,
        )
        Story.objects.filter(pk=story.pk).update(comment_count=F("comment_count") + 1)
    story.refresh_from_db(fields=["comment_count"])
    return comment


def delete_comment(comment, user) -> None:
    """Comment author or the classroom teacher may delete."""
    story = comment.story
    if comment.author_id != user.pk and not is_classroom_teacher(user, story.classroom):
        raise AuthorizationError("You can't delete this comment.")
    with transaction.atomic():
        comment.delete()
        Story.objects.filter(pk=story.pk).update(comment_count=Greatest(F("comment_count") - 1, 0))
    story.refresh_from_db(fields=["comment_count"])
