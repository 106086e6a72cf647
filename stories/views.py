from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.http import Http404
from django.shortcuts import get_object_or_404, redirect, render
from django.views.decorators.http import require_POST

from classrooms.utils import get_selected_classroom
from core.errors import AuthorizationError, ValidationError
from core.permissions import is_classroom_member, is_classroom_teacher

from . import services
from .forms import CommentForm, StoryForm
from .models import Story, StoryComment


def _story_for_member(request, pk):
    story = get_object_or_404(Story.objects.select_related("classroom"), pk=pk)
    if not is_classroom_member(request.user, story.classroom):
        raise Http404
    return story


@login_required
def story_feed(request):
    """Stories of the selected classroom, newest first."""
    classroom = get_selected_classroom(request)
    stories = services.stories_for_class(classroom) if classroom is not None else []
    can_post = is_classroom_teacher(request.user, classroom)
    form = StoryForm(request.POST or None) if can_post else None

    if request.method == "POST":
        if not can_post:
            raise Http404
        if form.is_valid():
            try:
                services.create_story(
                    classroom,
                    request.user,
                    form.cleaned_data["content"],
                    form.cleaned_data["media_urls"],
                    form.cleaned_data["media_type"],
                )
            except (AuthorizationError, ValidationError) as exc:
                form.add_error(None, str(exc))
            else:
                messages.success(request, "Story posted.")
                return redirect("stories:story_feed")

    liked_ids = {story.pk for story in stories if request.user in story.likes.all()}
    return render(request, "stories/feed.html", {
        "classroom": classroom,
        "stories": stories,
        "liked_ids": liked_ids,
        "form": form,
        "can_post": can_post,
    })


@login_required
def story_detail(request, pk):
    story = _story_for_member(request, pk)
    form = CommentForm(request.POST or None)
    if request.method == "POST" and form.is_valid():
        try:
            services.add_comment(story, request.user, form.cleaned_data["content"])
        except (AuthorizationError, ValidationError) as exc:
            form.add_error("content", str(exc))
        else:
            return redirect("stories:story_detail", pk=story.pk)
    return render(request, "stories/detail.html", {
        "story": story,
        "comments": services.get_comments(story),
        "liked": story.is_liked_by(request.user),
        "form": form,
        "can_moderate": is_classroom_teacher(request.user, story.classroom),
    })


@login_required
@require_POST
def story_like(request, pk):
    story = _story_for_member(request, pk)
    services.toggle_like(story, request.user)
    if request.POST.get("from") == "detail":
        return redirect("stories:story_detail", pk=story.pk)
    return redirect("stories:story_feed")


@login_required
@require_POST
def story_delete(request, pk):
    story = _story_for_member(request, pk)
    try:
        services.delete_story(story, request.user)
    except AuthorizationError:
        raise Http404
    messages.success(request, "Story deleted.")
    return redirect("stories:story_feed")


@login_required
@require_POST
def comment_delete(request, pk):
    comment = get_object_or_404(StoryComment.objects.select_related("story__classroom"), pk=pk)
    try:
        services.delete_comment(comment, request.user)
    except AuthorizationError:
        raise Http404
    return redirect("stories:story_detail", pk=comment.story_id)
