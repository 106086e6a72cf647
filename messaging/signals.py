"""Push conversation lists and message lists to live subscribers."""

from django.db import transaction
from django.db.models import F
from django.db.models.signals import m2m_changed, post_delete, post_save
from django.dispatch import receiver

from core import realtime

from .models import Conversation, Message


def conversations_for_user(user_id):
    return (
        Conversation.objects.filter(participants__pk=user_id)
        .order_by(F("last_message_date").desc(nulls_last=True), "-created_at", "-id")
    )


def conversations_snapshot(user_id):
    return [conversation.snapshot() for conversation in conversations_for_user(user_id)]


def messages_snapshot(conversation_id):
    return [
        message.snapshot()
        for message in Message.objects.filter(conversation_id=conversation_id).order_by("created_at", "id")
    ]


def publish_messages(conversation_id):
    transaction.on_commit(lambda: realtime.publish_lazy(
        realtime.messages_topic(conversation_id),
        lambda: messages_snapshot(conversation_id),
    ))


def publish_conversations(user_ids):
    for user_id in set(user_ids):
        transaction.on_commit(lambda user_id=user_id: realtime.publish_lazy(
            realtime.conversations_topic(user_id),
            lambda: conversations_snapshot(user_id),
        ))


@receiver(post_save, sender=Message)
@receiver(post_delete, sender=Message)
def message_changed(sender, instance, **kwargs):
    publish_messages(instance.conversation_id)


@receiver(post_save, sender=Conversation)
@receiver(post_delete, sender=Conversation)
def conversation_changed(sender, instance, **kwargs):
    publish_conversations(instance.participant_ids)


@receiver(m2m_changed, sender=Conversation.participants.through)
def conversation_participants_changed(sender, instance, action, pk_set=None, **kwargs):
    if action in ("post_add", "post_remove") and isinstance(instance, Conversation):
        publish_conversations([*instance.participant_ids, *(pk_set or ())])
