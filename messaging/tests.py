from datetime import datetime, timedelta
from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.db import IntegrityError, transaction
from django.db.models.query import QuerySet
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from classrooms.models import Classroom
from core import realtime
from core.errors import AuthorizationError, NotFoundError, ValidationError
from messaging.models import Conversation, Message, make_participant_key
from messaging.services import MessagingService
from students.models import Student

User = get_user_model()


class MessagingTestMixin:
    """A classroom with its teacher, two joined parents and one student."""

    @classmethod
    def setUpTestData(cls):
        cls.teacher = User.objects.create_user(
            username="teacher", email="teacher@example.com", password="testpass123",
            role="teacher", name="Ms. Frizzle",
        )
        cls.parent = User.objects.create_user(
            username="parent", email="parent@example.com", password="testpass123",
            role="parent", name="Pat Parent",
        )
        cls.other_parent = User.objects.create_user(
            username="other", email="other@example.com", password="testpass123",
            role="parent", name="Olive Other",
        )
        cls.outsider = User.objects.create_user(
            username="outsider", email="outsider@example.com", password="testpass123", role="parent",
        )
        cls.classroom = Classroom.objects.create(name="Room 12", teacher=cls.teacher)
        cls.classroom.parents.add(cls.parent, cls.other_parent)
        cls.student = Student.objects.create(classroom=cls.classroom, first_name="Arnold")
        cls.student.parents.add(cls.parent)

    def conversation(self, *users, **kwargs):
        return MessagingService.get_or_create_conversation(
            list(users) or [self.teacher, self.parent], **kwargs,
        )


# ===========================================================================
# Conversations
# ===========================================================================


class GetOrCreateConversationTests(MessagingTestMixin, TestCase):

    def test_participant_key_is_order_independent(self):
        self.assertEqual(make_participant_key([7, 3]), "3:7")
        self.assertEqual(make_participant_key(["3", 7]), "3:7")

    def test_same_conversation_in_either_order(self):
        first = self.conversation(self.teacher, self.parent)
        second = self.conversation(self.parent, self.teacher)

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(Conversation.objects.count(), 1)

    def test_new_conversation_starts_with_zero_unread(self):
        conversation = self.conversation()

        self.assertEqual(
            conversation.unread_counts, {str(self.teacher.pk): 0, str(self.parent.pk): 0},
        )
        self.assertEqual(
            set(conversation.participants.values_list("pk", flat=True)),
            {self.teacher.pk, self.parent.pk},
        )
        self.assertEqual(conversation.other_participant_name(self.teacher), "Pat Parent")

    def test_one_conversation_per_student(self):
        general = self.conversation()
        about_arnold = self.conversation(student=self.student)
        again = self.conversation(self.parent, self.teacher, student=self.student)

        self.assertNotEqual(general.pk, about_arnold.pk)
        self.assertEqual(about_arnold.pk, again.pk)
        self.assertEqual(about_arnold.student_name, "Arnold")
        self.assertEqual(about_arnold.classroom, self.classroom)

    def test_names_override_display_names(self):
        conversation = self.conversation(names={self.teacher.pk: "Valerie"})
        self.assertEqual(conversation.other_participant_name(self.parent), "Valerie")

    def test_needs_two_distinct_participants(self):
        with self.assertRaises(ValidationError):
            MessagingService.get_or_create_conversation([self.teacher])
        with self.assertRaises(ValidationError):
            MessagingService.get_or_create_conversation([self.teacher, self.teacher])

    def test_get_conversation_hides_non_participants(self):
        conversation = self.conversation()

        self.assertEqual(MessagingService.get_conversation(conversation.pk, user=self.parent), conversation)
        with self.assertRaises(NotFoundError):
            MessagingService.get_conversation(conversation.pk, user=self.outsider)
        with self.assertRaises(NotFoundError):
            MessagingService.get_conversation(999999)

    # ── storage uniqueness ─────────────────────────────────────────────────

    def test_storage_rejects_duplicate_pair(self):
        existing = self.conversation()

        with self.assertRaises(IntegrityError), transaction.atomic():
            Conversation.objects.create(participant_key=existing.participant_key)

    def test_storage_rejects_duplicate_pair_for_same_student(self):
        existing = self.conversation(student=self.student)

        with self.assertRaises(IntegrityError), transaction.atomic():
            Conversation.objects.create(participant_key=existing.participant_key, student=self.student)

    def test_lost_race_reuses_existing_conversation(self):
        existing = self.conversation()

        with mock.patch.object(QuerySet, "first", return_value=None), \
                self.assertLogs("messaging.services", level="INFO") as logs:
            again = self.conversation(self.parent, self.teacher)

        self.assertEqual(again.pk, existing.pk)
        self.assertEqual(Conversation.objects.count(), 1)
        self.assertIn("created concurrently", logs.output[0])


class ConversationOrderingTests(MessagingTestMixin, TestCase):

    def test_newest_activity_first_and_empty_last(self):
        older = self.conversation(self.teacher, self.parent)
        newer = self.conversation(self.teacher, self.other_parent)
        empty = self.conversation(self.teacher, self.parent, student=self.student)
        now = timezone.now()
        Conversation.objects.filter(pk=older.pk).update(last_message_date=now - timedelta(hours=2))
        Conversation.objects.filter(pk=newer.pk).update(last_message_date=now - timedelta(hours=1))

        self.assertEqual(
            [c.pk for c in MessagingService.list_for_user(self.teacher)],
            [newer.pk, older.pk, empty.pk],
        )

    def test_list_only_includes_own_conversations(self):
        self.conversation(self.teacher, self.parent)
        self.assertEqual(MessagingService.list_for_user(self.outsider), [])


# ===========================================================================
# Messages
# ===========================================================================


class SendMessageTests(MessagingTestMixin, TestCase):

    def test_parent_message_bumps_teacher_unread(self):
        conversation = self.conversation()

        message = MessagingService.send_message(conversation, self.parent, "Pat Parent", "  Hello  ")

        conversation.refresh_from_db()
        self.assertEqual(message.content, "Hello")
        self.assertEqual(conversation.last_message, "Hello")
        self.assertEqual(conversation.last_message_sender, self.parent)
        self.assertEqual(conversation.last_message_date, message.created_at)
        self.assertEqual(conversation.unread_for(self.teacher), 1)
        self.assertEqual(conversation.unread_for(self.parent), 0)

    def test_unread_accumulates(self):
        conversation = self.conversation()
        for text in ("one", "two", "three"):
            MessagingService.send_message(conversation, self.teacher, "", text)

        conversation.refresh_from_db()
        self.assertEqual(conversation.unread_for(self.parent), 3)
        self.assertEqual(conversation.last_message, "three")

    def test_empty_message_rejected(self):
        conversation = self.conversation()
        with self.assertRaisesMessage(ValidationError, "Message cannot be empty."):
            MessagingService.send_message(conversation, self.teacher, "", "   ")
        self.assertFalse(Message.objects.exists())

    def test_non_participant_rejected(self):
        conversation = self.conversation()
        with self.assertRaises(AuthorizationError):
            MessagingService.send_message(conversation, self.outsider, "", "Hi")

    def test_recipient_gets_email(self):
        conversation = self.conversation()
        MessagingService.send_message(conversation, self.teacher, "Ms. Frizzle", "Field trip Friday")

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["parent@example.com"])
        self.assertEqual(mail.outbox[0].subject, "New message from Ms. Frizzle")

    @override_settings(HALLPASS_MESSAGE_EMAILS=False)
    def test_email_can_be_disabled(self):
        conversation = self.conversation()
        MessagingService.send_message(conversation, self.teacher, "", "Hi")
        self.assertEqual(mail.outbox, [])

    def test_get_messages_limit_keeps_latest(self):
        conversation = self.conversation()
        for text in ("one", "two", "three"):
            MessagingService.send_message(conversation, self.teacher, "", text)

        latest = MessagingService.get_messages(conversation, limit=2)
        self.assertEqual([m.content for m in latest], ["two", "three"])


class MarkAsReadTests(MessagingTestMixin, TestCase):

    def test_mark_as_read_zeroes_counter(self):
        conversation = self.conversation()
        MessagingService.send_message(conversation, self.teacher, "", "one")
        MessagingService.send_message(conversation, self.teacher, "", "two")

        updated = MessagingService.mark_as_read(conversation, self.parent)

        conversation.refresh_from_db()
        self.assertEqual(updated, 2)
        self.assertEqual(conversation.unread_for(self.parent), 0)
        self.assertFalse(Message.objects.filter(is_read=False).exists())

    def test_second_call_is_a_no_op(self):
        conversation = self.conversation()
        MessagingService.send_message(conversation, self.teacher, "", "one")
        MessagingService.mark_as_read(conversation, self.parent)

        self.assertEqual(MessagingService.mark_as_read(conversation, self.parent), 0)
        conversation.refresh_from_db()
        self.assertEqual(conversation.unread_for(self.parent), 0)

    def test_own_messages_stay_unread_for_recipient(self):
        conversation = self.conversation()
        MessagingService.send_message(conversation, self.teacher, "", "one")

        self.assertEqual(MessagingService.mark_as_read(conversation, self.teacher), 0)
        conversation.refresh_from_db()
        self.assertEqual(conversation.unread_for(self.parent), 1)

    def test_total_unread_across_conversations(self):
        general = self.conversation()
        about_arnold = self.conversation(student=self.student)
        MessagingService.send_message(general, self.teacher, "", "one")
        MessagingService.send_message(about_arnold, self.teacher, "", "two")
        MessagingService.send_message(about_arnold, self.teacher, "", "three")

        self.assertEqual(MessagingService.get_total_unread_count(self.parent), 3)
        self.assertEqual(MessagingService.get_total_unread_count(self.teacher), 0)


class GroupByDayTests(MessagingTestMixin, TestCase):

    def test_each_message_in_exactly_one_group(self):
        conversation = self.conversation()
        stamps = [
            timezone.make_aware(datetime(2026, 3, 1, 8, 0)),
            timezone.make_aware(datetime(2026, 3, 1, 23, 30)),
            timezone.make_aware(datetime(2026, 3, 2, 0, 15)),
        ]
        for index, stamp in enumerate(stamps):
            message = MessagingService.send_message(conversation, self.teacher, "", f"m{index}")
            Message.objects.filter(pk=message.pk).update(created_at=stamp)

        groups = MessagingService.group_messages_by_day(MessagingService.get_messages(conversation))

        self.assertEqual([day.isoformat() for day, _ in groups], ["2026-03-01", "2026-03-02"])
        self.assertEqual([[m.content for m in items] for _, items in groups], [["m0", "m1"], ["m2"]])

    def test_empty_input(self):
        self.assertEqual(MessagingService.group_messages_by_day([]), [])


class BroadcastTests(MessagingTestMixin, TestCase):

    def test_broadcast_reaches_every_parent(self):
        sent = MessagingService.send_broadcast_message(self.teacher, self.classroom, "No school Monday")

        self.assertEqual(len(sent), 2)
        self.assertEqual(MessagingService.get_total_unread_count(self.parent), 1)
        self.assertEqual(MessagingService.get_total_unread_count(self.other_parent), 1)

    def test_broadcast_reuses_conversations(self):
        existing = self.conversation()
        MessagingService.send_broadcast_message(self.teacher, self.classroom, "Reminder")

        self.assertEqual(Conversation.objects.count(), 2)
        self.assertEqual(existing.messages.count(), 1)

    def test_only_teacher_can_broadcast(self):
        with self.assertRaises(AuthorizationError):
            MessagingService.send_broadcast_message(self.parent, self.classroom, "Hi all")


class DeleteMessageTests(MessagingTestMixin, TestCase):

    def test_delete_rewinds_snapshot_and_unread(self):
        conversation = self.conversation()
        MessagingService.send_message(conversation, self.teacher, "", "first")
        second = MessagingService.send_message(conversation, self.teacher, "", "second")

        MessagingService.delete_message(second, self.teacher)

        conversation.refresh_from_db()
        self.assertEqual(conversation.last_message, "first")
        self.assertEqual(conversation.unread_for(self.parent), 1)

    def test_only_sender_can_delete(self):
        conversation = self.conversation()
        message = MessagingService.send_message(conversation, self.teacher, "", "mine")

        with self.assertRaises(AuthorizationError):
            MessagingService.delete_message(message, self.parent)
        self.assertTrue(Message.objects.filter(pk=message.pk).exists())


# ===========================================================================
# Live updates
# ===========================================================================


class MessagingLiveUpdateTests(MessagingTestMixin, TestCase):

    def setUp(self):
        realtime.reset()
        self.addCleanup(realtime.reset)

    def test_message_list_pushed_on_send(self):
        conversation = self.conversation()
        received = []
        MessagingService.subscribe_to_messages(conversation.pk, received.append)

        with self.captureOnCommitCallbacks(execute=True):
            MessagingService.send_message(conversation, self.teacher, "", "Hello")

        self.assertEqual([m["content"] for m in received[-1]], ["Hello"])

    def test_conversation_list_pushed_to_recipient(self):
        conversation = self.conversation()
        received = []
        MessagingService.subscribe_to_conversations(self.parent.pk, received.append)

        with self.captureOnCommitCallbacks(execute=True):
            MessagingService.send_message(conversation, self.teacher, "", "Hello")

        self.assertEqual(received[-1][0]["id"], conversation.pk)
        self.assertEqual(received[-1][0]["last_message"], "Hello")
        self.assertEqual(received[-1][0]["unread_counts"][str(self.parent.pk)], 1)

    def test_mark_as_read_pushes_read_flags(self):
        conversation = self.conversation()
        MessagingService.send_message(conversation, self.teacher, "", "Hello")
        received = []
        MessagingService.subscribe_to_messages(conversation.pk, received.append)

        with self.captureOnCommitCallbacks(execute=True):
            MessagingService.mark_as_read(conversation, self.parent)

        self.assertTrue(received[-1][0]["is_read"])


# ===========================================================================
# Views
# ===========================================================================


class ConversationViewTests(MessagingTestMixin, TestCase):

    def test_list_requires_login(self):
        response = self.client.get(reverse("messaging:conversation_list"))
        self.assertEqual(response.status_code, 302)

    def test_list_shows_unread_total(self):
        conversation = self.conversation()
        MessagingService.send_message(conversation, self.teacher, "", "Hello")
        self.client.force_login(self.parent)

        response = self.client.get(reverse("messaging:conversation_list"))

        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "messaging/conversation_list.html")
        self.assertEqual(response.context["total_unread"], 1)
        self.assertFalse(response.context["can_broadcast"])

    def test_detail_marks_read(self):
        conversation = self.conversation()
        MessagingService.send_message(conversation, self.teacher, "", "Hello")
        self.client.force_login(self.parent)

        response = self.client.get(reverse("messaging:conversation_detail", args=[conversation.pk]))

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "Hello")
        conversation.refresh_from_db()
        self.assertEqual(conversation.unread_for(self.parent), 0)

    def test_detail_hidden_from_outsider(self):
        conversation = self.conversation()
        self.client.force_login(self.outsider)
        response = self.client.get(reverse("messaging:conversation_detail", args=[conversation.pk]))
        self.assertEqual(response.status_code, 404)

    def test_post_sends_message(self):
        conversation = self.conversation()
        self.client.force_login(self.parent)

        response = self.client.post(
            reverse("messaging:conversation_detail", args=[conversation.pk]), {"content": "Thanks!"},
        )

        self.assertRedirects(response, reverse("messaging:conversation_detail", args=[conversation.pk]))
        self.assertEqual(conversation.messages.get().content, "Thanks!")

    def test_whitespace_post_shows_error(self):
        conversation = self.conversation()
        self.client.force_login(self.parent)

        response = self.client.post(
            reverse("messaging:conversation_detail", args=[conversation.pk]), {"content": "   "},
        )

        self.assertEqual(response.status_code, 200)
        self.assertFormError(response.context["form"], "content", "Message cannot be empty.")

    def test_parent_starts_conversation_with_teacher(self):
        self.client.force_login(self.parent)

        response = self.client.post(reverse("messaging:conversation_start"), {
            "recipient": self.teacher.pk,
            "student": self.student.pk,
            "content": "Question about homework",
        })

        conversation = Conversation.objects.get()
        self.assertRedirects(response, reverse("messaging:conversation_detail", args=[conversation.pk]))
        self.assertEqual(conversation.student, self.student)
        self.assertEqual(conversation.last_message, "Question about homework")

    def test_start_without_classroom_redirects(self):
        self.client.force_login(self.outsider)
        response = self.client.get(reverse("messaging:conversation_start"))
        self.assertRedirects(response, reverse("classrooms:classroom_list"))

    def test_broadcast_view(self):
        self.client.force_login(self.teacher)

        response = self.client.post(reverse("messaging:broadcast"), {"content": "Picture day!"})

        self.assertRedirects(response, reverse("messaging:conversation_list"))
        self.assertEqual(Message.objects.filter(content="Picture day!").count(), 2)

    def test_broadcast_view_teacher_only(self):
        self.client.force_login(self.parent)
        response = self.client.get(reverse("messaging:broadcast"))
        self.assertEqual(response.status_code, 404)
