from django.conf import settings
from django.db import models
from django.db.models import Q


def make_participant_key(participant_ids) -> str:
    """Order-independent key for a pair of participants, e.g. ``"3:7"``."""
    return ":".join(str(pk) for pk in sorted(int(pk) for pk in participant_ids))


class Conversation(models.Model):
    """A two-party message thread, optionally about one student."""

    participants = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        related_name="conversations",
    )
    participant_key = models.CharField(max_length=64, db_index=True)
    participant_names = models.JSONField(default=dict, blank=True)
    classroom = models.ForeignKey(
        "classrooms.Classroom",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="conversations",
    )
    student = models.ForeignKey(
        "students.Student",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="conversations",
    )
    student_name = models.CharField(max_length=200, blank=True)
    last_message = models.TextField(blank=True)
    last_message_date = models.DateTimeField(null=True, blank=True)
    last_message_sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    unread_counts = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["participant_key", "student"],
                condition=Q(student__isnull=False),
                name="unique_conversation_per_pair_and_student",
            ),
            models.UniqueConstraint(
                fields=["participant_key"],
                condition=Q(student__isnull=True),
                name="unique_conversation_per_pair",
            ),
        ]

    def __str__(self):
        names = " & ".join(self.participant_names.values()) or self.participant_key
        if self.student_name:
            return f"{names} (re: {self.student_name})"
        return names

    @property
    def participant_ids(self):
        return [int(pk) for pk in self.participant_key.split(":") if pk]

    def has_participant(self, user) -> bool:
        return getattr(user, "pk", None) in self.participant_ids

    def unread_for(self, user) -> int:
        return int(self.unread_counts.get(str(user.pk), 0))

    def other_participant_id(self, user):
        others = [pk for pk in self.participant_ids if pk != user.pk]
        return others[0] if others else None

    def other_participant_name(self, user) -> str:
        other = self.other_participant_id(user)
        return self.participant_names.get(str(other), "") if other is not None else ""

    def snapshot(self):
        return {
            "id": self.pk,
            "participant_ids": self.participant_ids,
            "participant_names": dict(self.participant_names),
            "class_id": self.classroom_id,
            "student_id": self.student_id,
            "student_name": self.student_name,
            "last_message": self.last_message,
            "last_message_date": self.last_message_date.isoformat() if self.last_message_date else None,
            "last_message_sender_id": self.last_message_sender_id,
            "unread_counts": {key: int(value) for key, value in self.unread_counts.items()},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Message(models.Model):
    """One message in a conversation; only the read flag changes after creation."""

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sent_messages",
    )
    sender_name = models.CharField(max_length=150, blank=True)
    content = models.TextField()
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"{self.sender_name}: {self.content[:40]}"

    def snapshot(self):
        return {
            "id": self.pk,
            "conversation_id": self.conversation_id,
            "sender_id": self.sender_id,
            "sender_name": self.sender_name,
            "content": self.content,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
