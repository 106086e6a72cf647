import logging

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.http import Http404
from django.shortcuts import redirect, render

from classrooms.utils import get_selected_classroom
from core.errors import AuthorizationError, NotFoundError, ValidationError
from core.permissions import is_classroom_teacher

from .forms import BroadcastForm, MessageForm, StartConversationForm
from .services import MessagingService

logger = logging.getLogger(__name__)


@login_required
def conversation_list(request):
    """Conversations with the newest activity first, plus the unread total."""
    conversations = MessagingService.list_for_user(request.user)
    rows = [
        {
            "conversation": conversation,
            "other_name": conversation.other_participant_name(request.user),
            "unread": conversation.unread_for(request.user),
        }
        for conversation in conversations
    ]
    return render(request, "messaging/conversation_list.html", {
        "rows": rows,
        "total_unread": sum(row["unread"] for row in rows),
        "can_broadcast": is_classroom_teacher(request.user, get_selected_classroom(request)),
    })


@login_required
def conversation_start(request):
    """Open a conversation with a classroom member, optionally about a student."""
    classroom = get_selected_classroom(request)
    if classroom is None:
        messages.info(request, "Join or create a classroom before sending messages.")
        return redirect("classrooms:classroom_list")

    form = StartConversationForm(request.POST or None, user=request.user, classroom=classroom)
    if request.method == "POST" and form.is_valid():
        recipient = form.cleaned_data["recipient"]
        student = form.cleaned_data["student"]
        try:
            conversation = MessagingService.get_or_create_conversation(
                [request.user, recipient],
                classroom=classroom,
                student=student,
            )
            if form.cleaned_data["content"].strip():
                MessagingService.send_message(
                    conversation,
                    request.user,
                    request.user.display_name,
                    form.cleaned_data["content"],
                )
        except (ValidationError, AuthorizationError) as exc:
            form.add_error(None, str(exc))
        else:
            return redirect("messaging:conversation_detail", pk=conversation.pk)

    return render(request, "messaging/conversation_start.html", {
        "form": form,
        "classroom": classroom,
    })


@login_required
def conversation_detail(request, pk):
    """Message thread grouped by day; viewing it marks the thread read."""
    try:
        conversation = MessagingService.get_conversation(pk, user=request.user)
    except NotFoundError:
        raise Http404

    form = MessageForm(request.POST or None)
    if request.method == "POST":
        if form.is_valid():
            try:
                MessagingService.send_message(
                    conversation,
                    request.user,
                    request.user.display_name,
                    form.cleaned_data["content"],
                )
            except (ValidationError, AuthorizationError) as exc:
                # Keep the typed content so it can be resubmitted.
                form.add_error("content", str(exc))
            else:
                return redirect("messaging:conversation_detail", pk=conversation.pk)
    else:
        MessagingService.mark_as_read(conversation, request.user)

    thread = MessagingService.get_messages(conversation)
    return render(request, "messaging/conversation_detail.html", {
        "conversation": conversation,
        "other_name": conversation.other_participant_name(request.user),
        "days": MessagingService.group_messages_by_day(thread),
        "form": form,
    })


@login_required
def broadcast(request):
    """Send one message to every parent of the selected classroom."""
    classroom = get_selected_classroom(request)
    if not is_classroom_teacher(request.user, classroom):
        raise Http404

    form = BroadcastForm(request.POST or None)
    if request.method == "POST" and form.is_valid():
        try:
            sent = MessagingService.send_broadcast_message(
                request.user, classroom, form.cleaned_data["content"],
            )
        except (ValidationError, AuthorizationError) as exc:
            form.add_error("content", str(exc))
        else:
            messages.success(request, f"Message sent to {len(sent)} parent(s).")
            return redirect("messaging:conversation_list")

    return render(request, "messaging/broadcast.html", {
        "form": form,
        "classroom": classroom,
        "parent_count": classroom.parents.count(),
    })
