import logging
from datetime import date

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone

from core import emails, realtime
from core.errors import (
    AuthorizationError,
    EmailDeliveryError,
    NotFoundError,
    ValidationError,
)

from .models import Conversation, Message, make_participant_key
from .signals import conversations_for_user, publish_messages

logger = logging.getLogger(__name__)

User = get_user_model()


def _lookup_name(names, user):
    for key in (user.pk, str(user.pk)):
        if names.get(key):
            return names[key]
    return user.display_name


class MessagingService:
    """Two-party conversations, messages and per-participant unread counters."""

    @staticmethod
    def get_or_create_conversation(
        participants,
        names=None,
        classroom=None,
        student=None,
        student_name: str = "",
    ) -> Conversation:
        """Return the conversation for this pair (and student), creating it once.

        The pair is unordered: ``[a, b]`` and ``[b, a]`` resolve to the same
        conversation. A concurrent insert that loses the race on the unique
        constraints re-reads the winner.

        Raises:
            ValidationError: not exactly two distinct participants.
        """
        participants = list(participants)
        participant_ids = {user.pk for user in participants}
        if len(participants) != 2 or len(participant_ids) != 2:
            raise ValidationError("A conversation needs exactly two different participants.")

        key = make_participant_key(participant_ids)
        lookup = Conversation.objects.filter(participant_key=key, student=student)
        existing = lookup.first()
        if existing is not None:
            return existing

        names = names or {}
        try:
            with transaction.atomic():
                conversation = Conversation.objects.create(
                    participant_key=key,
                    participant_names={str(user.pk): _lookup_name(names, user) for user in participants},
                    classroom=classroom if classroom is not None else getattr(student, "classroom", None),
                    student=student,
                    student_name=student_name or (student.get_full_name() if student else ""),
                    unread_counts={str(pk): 0 for pk in sorted(participant_ids)},
                )
                conversation.participants.add(*participants)
        except IntegrityError:
            logger.info("Conversation %s was created concurrently; reusing it", key)
            return lookup.get()

        logger.info(
            "Created conversation %s for %s (student %s)",
            conversation.pk, key, getattr(student, "pk", None),
        )
        return conversation

    @staticmethod
    def list_for_user(user) -> list:
        """Newest activity first; conversations without messages go last."""
        return list(conversations_for_user(user.pk).select_related("student", "classroom"))

    @staticmethod
    def get_conversation(conversation_id, user=None) -> Conversation:
        """Raises NotFoundError for unknown ids and for non-participants."""
        try:
            conversation = Conversation.objects.get(pk=conversation_id)
        except (Conversation.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Conversation not found.")
        if user is not None and not conversation.has_participant(user):
            raise NotFoundError("Conversation not found.")
        return conversation

    @staticmethod
    def get_messages(conversation, limit: int | None = None) -> list:
        """Messages oldest first; with *limit*, the most recent ones."""
        qs = Message.objects.filter(conversation=conversation).order_by("created_at", "id")
        if limit:
            return list(qs.reverse()[:limit])[::-1]
        return list(qs)

    @staticmethod
    def group_messages_by_day(messages) -> list[tuple[date, list]]:
        """Split messages into ``(day, messages)`` pairs by local calendar day.

        Every message lands in exactly one group; groups keep input order.
        """
        groups = {}
        for message in messages:
            day = timezone.localtime(message.created_at).date()
            groups.setdefault(day, []).append(message)
        return list(groups.items())

    @staticmethod
    def send_message(conversation, sender, sender_name: str, content: str) -> Message:
        """Store a message and bump every other participant's unread counter.

        Raises:
            ValidationError: the content is empty or whitespace.
            AuthorizationError: the sender is not a participant.
        """
        content = (content or "").strip()
        if not content:
            raise ValidationError("Message cannot be empty.")
        if not conversation.has_participant(sender):
            raise AuthorizationError("You are not part of this conversation.")
        sender_name = sender_name or sender.display_name

        with transaction.atomic():
            locked = Conversation.objects.select_for_update().get(pk=conversation.pk)
            message = Message.objects.create(
                conversation=locked,
                sender=sender,
                sender_name=sender_name,
                content=content,
            )
            counts = {
                str(pk): int(locked.unread_counts.get(str(pk), 0))
                for pk in locked.participant_ids
            }
            for pk in locked.participant_ids:
                if pk != sender.pk:
                    counts[str(pk)] += 1
            locked.unread_counts = counts
            locked.last_message = content
            locked.last_message_date = message.created_at
            locked.last_message_sender = sender
            locked.save(update_fields=[
                "unread_counts", "last_message", "last_message_date", "last_message_sender",
            ])

        conversation.unread_counts = locked.unread_counts
        conversation.last_message = locked.last_message
        conversation.last_message_date = locked.last_message_date
        conversation.last_message_sender = sender

        if getattr(settings, "HALLPASS_MESSAGE_EMAILS", True):
            recipients = User.objects.filter(
                pk__in=[pk for pk in locked.participant_ids if pk != sender.pk]
            )
            for recipient in recipients:
                try:
                    emails.send_new_message_email(recipient, sender_name, content)
                except EmailDeliveryError:
                    logger.warning(
                        "New-message email to user %s for conversation %s was not delivered",
                        recipient.pk, conversation.pk,
                    )
        return message

    @staticmethod
    def mark_as_read(conversation, user) -> int:
        """Zero the user's counter and mark the other side's messages read.

        Returns the number of messages newly marked read. Calling it again is
        a no-op.
        """
        if not conversation.has_participant(user):
            raise AuthorizationError("You are not part of this conversation.")

        with transaction.atomic():
            locked = Conversation.objects.select_for_update().get(pk=conversation.pk)
            updated = (
                Message.objects.filter(conversation=locked, is_read=False)
                .exclude(sender=user)
                .update(is_read=True, read_at=timezone.now())
            )
            if locked.unread_for(user) != 0 or str(user.pk) not in locked.unread_counts:
                locked.unread_counts = {**locked.unread_counts, str(user.pk): 0}
                locked.save(update_fields=["unread_counts"])
            if updated:
                publish_messages(locked.pk)

        conversation.unread_counts = locked.unread_counts
        return updated

    @staticmethod
    def get_total_unread_count(user) -> int:
        counts = Conversation.objects.filter(participants=user).values_list("unread_counts", flat=True)
        return sum(max(0, int(c.get(str(user.pk), 0))) for c in counts)

    @classmethod
    def send_broadcast_message(cls, teacher, classroom, content: str) -> list:
        """Send the same message to every parent of the classroom.

        Returns the messages sent, one per parent.
        """
        if classroom.teacher_id != teacher.pk:
            raise AuthorizationError("Only the classroom teacher can send a broadcast.")
        if not (content or "").strip():
            raise ValidationError("Message cannot be empty.")

        sent = []
        for parent in classroom.parents.order_by("pk"):
            conversation = cls.get_or_create_conversation([teacher, parent], classroom=classroom)
            sent.append(cls.send_message(conversation, teacher, teacher.display_name, content))
        logger.info(
            "Teacher %s broadcast to %s parents of classroom %s", teacher.pk, len(sent), classroom.pk,
        )
        return sent

    @staticmethod
    def delete_message(message, user) -> None:
        """Delete a message (sender only) and rewind the conversation snapshot."""
        if message.sender_id != user.pk:
            raise AuthorizationError("You can only delete your own messages.")

        with transaction.atomic():
            conversation = Conversation.objects.select_for_update().get(pk=message.conversation_id)
            was_unread = not message.is_read
            message.delete()

            if was_unread:
                conversation.unread_counts = {
                    key: max(0, int(value) - 1) if key != str(user.pk) else int(value)
                    for key, value in conversation.unread_counts.items()
                }
            latest = Message.objects.filter(conversation=conversation).order_by("-created_at", "-id").first()
            conversation.last_message = latest.content if latest else ""
            conversation.last_message_date = latest.created_at if latest else None
            conversation.last_message_sender_id = latest.sender_id if latest else None
            conversation.save(update_fields=[
                "unread_counts", "last_message", "last_message_date", "last_message_sender",
            ])

    # Live updates -------------------------------------------------------------

    @staticmethod
    def subscribe_to_messages(conversation_id, callback) -> realtime.Subscription:
        """Push the conversation's full message list on every change."""
        return realtime.subscribe(realtime.messages_topic(conversation_id), callback)

    @staticmethod
    def subscribe_to_conversations(user_id, callback) -> realtime.Subscription:
        """Push the user's full conversation list on every change."""
        return realtime.subscribe(realtime.conversations_topic(user_id), callback)
