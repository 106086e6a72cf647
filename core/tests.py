import threading
from io import StringIO
from smtplib import SMTPException
from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.mail import EmailMultiAlternatives
from django.core.management import CommandError, call_command
from django.db import InterfaceError, OperationalError
from django.test import TestCase, override_settings
from django.urls import reverse

from classrooms.models import Classroom
from core import emails, realtime
from core.errors import (
    AuthorizationError,
    EmailDeliveryError,
    NotFoundError,
    TransientNetworkError,
    ValidationError,
    is_transient_error,
)
from core.models import District, School
from core.permissions import (
    admin_level,
    can_view_district,
    can_view_school,
    is_classroom_member,
    is_classroom_teacher,
    is_super_admin,
)
from core.services import DEMO_SCHOOLS, seed_demo_district

User = get_user_model()


def make_user(username, role="", admin_level="", **extra):
    return User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="testpass123",
        role=role,
        admin_level=admin_level,
        **extra,
    )


# ===========================================================================
# Errors
# ===========================================================================


class ErrorTests(TestCase):

    def test_status_codes(self):
        self.assertEqual(ValidationError("x").status_code, 400)
        self.assertEqual(NotFoundError("x").status_code, 404)
        self.assertEqual(AuthorizationError("x").status_code, 403)

    def test_str_is_message(self):
        self.assertEqual(str(NotFoundError("Invalid class code")), "Invalid class code")

    def test_transient_errors(self):
        class AbortError(Exception):
            pass

        self.assertTrue(is_transient_error(TransientNetworkError("reset")))
        self.assertTrue(is_transient_error(OperationalError("database is locked")))
        self.assertTrue(is_transient_error(AbortError("signal")))
        self.assertTrue(is_transient_error(RuntimeError("The request was Aborted")))

    def test_real_failures_are_not_transient(self):
        self.assertFalse(is_transient_error(ValueError("bad token")))
        self.assertFalse(is_transient_error(ValidationError("Password too short")))
        self.assertFalse(is_transient_error(OperationalError("no such table: accounts_customuser")))

    def test_connection_loss_is_transient(self):
        self.assertTrue(is_transient_error(OperationalError("server closed the connection unexpectedly")))
        self.assertTrue(is_transient_error(OperationalError("could not connect to server")))
        self.assertTrue(is_transient_error(InterfaceError("connection already closed")))


# ===========================================================================
# Live updates
# ===========================================================================


class RealtimeTests(TestCase):

    def setUp(self):
        realtime.reset()
        self.addCleanup(realtime.reset)

    def test_publish_reaches_every_subscriber(self):
        first, second = [], []
        realtime.subscribe("topic", first.append)
        realtime.subscribe("topic", second.append)

        delivered = realtime.publish("topic", {"n": 1})

        self.assertEqual(delivered, 2)
        self.assertEqual(first, [{"n": 1}])
        self.assertEqual(second, [{"n": 1}])

    def test_concurrent_publish_delivers_in_order(self):
        received = []
        racer = threading.Thread(target=realtime.publish, args=("topic", "second"))

        def slow_callback(snapshot):
            if snapshot == "first":
                racer.start()
                racer.join(timeout=0.2)
            received.append(snapshot)

        realtime.subscribe("topic", slow_callback)
        realtime.publish("topic", "first")
        racer.join()

        self.assertEqual(received, ["first", "second"])

    def test_unsubscribe_stops_delivery(self):
        received = []
        sub = realtime.subscribe("topic", received.append)
        sub.unsubscribe()
        sub.unsubscribe()

        realtime.publish("topic", "late")

        self.assertEqual(received, [])
        self.assertFalse(realtime.has_subscribers("topic"))

    def test_context_manager_unsubscribes(self):
        with realtime.subscribe("topic", lambda snapshot: None):
            self.assertEqual(realtime.subscriber_count("topic"), 1)
        self.assertEqual(realtime.subscriber_count("topic"), 0)

    def test_failing_callback_does_not_block_others(self):
        received = []

        def broken(snapshot):
            raise RuntimeError("boom")

        realtime.subscribe("topic", broken)
        realtime.subscribe("topic", received.append)

        with self.assertLogs("core.realtime", level="ERROR"):
            delivered = realtime.publish("topic", "snapshot")

        self.assertEqual(delivered, 1)
        self.assertEqual(received, ["snapshot"])

    def test_older_snapshot_is_never_delivered(self):
        received = []
        sub = realtime.subscribe("topic", received.append)

        self.assertTrue(sub.deliver(5, "newer"))
        self.assertFalse(sub.deliver(4, "older"))
        self.assertEqual(received, ["newer"])

    def test_publish_lazy_skips_build_without_subscribers(self):
        build = mock.Mock(return_value="snapshot")

        self.assertEqual(realtime.publish_lazy("topic", build), 0)
        build.assert_not_called()

        received = []
        realtime.subscribe("topic", received.append)
        self.assertEqual(realtime.publish_lazy("topic", build), 1)
        self.assertEqual(received, ["snapshot"])


# ===========================================================================
# Email
# ===========================================================================


@override_settings(HALLPASS_PUBLIC_URL="https://hallpass.test")
class EmailTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.teacher = make_user("teach", role="teacher", name="Ms. Frizzle")
        cls.parent = make_user("mom", role="parent", name="Pat Parent")

    def test_welcome_email(self):
        emails.send_welcome_email(self.teacher)

        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.to, ["teach@example.com"])
        self.assertEqual(message.subject, "Welcome to Hall Pass, Ms. Frizzle!")
        html = message.alternatives[0][0]
        self.assertIn("https://hallpass.test/dashboard/", html)

    def test_parent_joined_email_goes_to_teacher(self):
        classroom = Classroom.objects.create(name="Room 4", teacher=self.teacher)

        emails.send_parent_joined_email(self.teacher, self.parent, classroom, "Arnold")

        self.assertEqual(mail.outbox[0].to, ["teach@example.com"])
        self.assertEqual(mail.outbox[0].subject, "Pat Parent joined Room 4")

    def test_new_message_preview_is_truncated(self):
        emails.send_new_message_email(self.parent, "Ms. Frizzle", "x" * 300)

        self.assertEqual(mail.outbox[0].subject, "New message from Ms. Frizzle")
        self.assertIn("x" * emails.PREVIEW_LENGTH, mail.outbox[0].body)
        self.assertNotIn("x" * (emails.PREVIEW_LENGTH + 1), mail.outbox[0].body)

    def test_send_to_many_recipients(self):
        emails.send_email(["a@example.com", "b@example.com"], "Hi", "<p>Hi</p>")

        self.assertEqual(mail.outbox[0].to, ["a@example.com", "b@example.com"])

    def test_backend_failure_raises_delivery_error(self):
        with mock.patch.object(EmailMultiAlternatives, "send", side_effect=SMTPException("down")):
            with self.assertLogs("core.emails", level="ERROR"):
                with self.assertRaises(EmailDeliveryError) as ctx:
                    emails.send_welcome_email(self.parent)

        self.assertIsInstance(ctx.exception.__cause__, SMTPException)
        self.assertEqual(mail.outbox, [])


# ===========================================================================
# Permission helpers
# ===========================================================================


class PermissionHelperTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.district = District.objects.create(name="North", code="NORTH")
        cls.other_district = District.objects.create(name="South", code="SOUTH")
        cls.school = School.objects.create(district=cls.district, name="Lincoln", code="LIN")
        cls.other_school = School.objects.create(district=cls.district, name="Grant", code="GRA")

        cls.teacher = make_user("teacher", role="teacher")
        cls.parent = make_user("parent", role="parent")
        cls.outsider = make_user("outsider", role="parent")
        cls.super_admin = make_user("super", role="admin", admin_level="super_admin")
        cls.district_admin = make_user(
            "dadmin", role="admin", admin_level="district_admin", district=cls.district,
        )
        cls.principal = make_user("principal", role="admin", admin_level="principal")
        cls.school.principal = cls.principal
        cls.school.save()
        cls.levelless_admin = make_user("noadmin", role="admin")

        cls.classroom = Classroom.objects.create(name="Room 1", teacher=cls.teacher)
        cls.classroom.parents.add(cls.parent)

    # ── admin levels ───────────────────────────────────────────────────────

    def test_admin_level(self):
        self.assertEqual(admin_level(self.super_admin), "super_admin")
        self.assertIsNone(admin_level(self.levelless_admin))
        self.assertIsNone(admin_level(self.teacher))

    def test_is_super_admin(self):
        self.assertTrue(is_super_admin(self.super_admin))
        self.assertFalse(is_super_admin(self.district_admin))

    # ── classroom membership ───────────────────────────────────────────────

    def test_classroom_members(self):
        self.assertTrue(is_classroom_member(self.teacher, self.classroom))
        self.assertTrue(is_classroom_member(self.parent, self.classroom))
        self.assertFalse(is_classroom_member(self.outsider, self.classroom))
        self.assertFalse(is_classroom_member(self.teacher, None))

    def test_only_the_teacher_is_classroom_teacher(self):
        self.assertTrue(is_classroom_teacher(self.teacher, self.classroom))
        self.assertFalse(is_classroom_teacher(self.parent, self.classroom))

    # ── report scope ───────────────────────────────────────────────────────

    def test_super_admin_sees_everything(self):
        self.assertTrue(can_view_district(self.super_admin, self.other_district))
        self.assertTrue(can_view_school(self.super_admin, self.school))

    def test_district_admin_scope(self):
        self.assertTrue(can_view_district(self.district_admin, self.district))
        self.assertFalse(can_view_district(self.district_admin, self.other_district))
        self.assertTrue(can_view_school(self.district_admin, self.other_school))

    def test_district_admin_via_admin_list(self):
        self.other_district.admins.add(self.district_admin)
        self.assertTrue(can_view_district(self.district_admin, self.other_district))

    def test_principal_scope(self):
        self.assertTrue(can_view_school(self.principal, self.school))
        self.assertFalse(can_view_school(self.principal, self.other_school))
        self.assertFalse(can_view_district(self.principal, self.district))

    def test_admin_without_level_has_no_scope(self):
        self.assertFalse(can_view_district(self.levelless_admin, self.district))
        self.assertFalse(can_view_school(self.levelless_admin, self.school))


# ===========================================================================
# Demo data seeding
# ===========================================================================


class SeedDemoDistrictTests(TestCase):

    def test_creates_district_and_schools(self):
        summary = seed_demo_district()

        self.assertTrue(summary["created"]["district"])
        self.assertEqual(summary["created"]["schools"], len(DEMO_SCHOOLS))
        school = School.objects.get(code="ELEM-01")
        self.assertEqual(school.grade_levels, ["K", "1", "2", "3", "4", "5"])

    def test_is_idempotent(self):
        seed_demo_district()
        summary = seed_demo_district()

        self.assertFalse(summary["created"]["district"])
        self.assertEqual(summary["created"]["schools"], 0)
        self.assertEqual(District.objects.count(), 1)
        self.assertEqual(School.objects.count(), len(DEMO_SCHOOLS))

    def test_actor_added_to_admin_lists(self):
        admin = make_user("super", role="admin", admin_level="super_admin")

        summary = seed_demo_district(actor=admin)

        district = District.objects.get(pk=summary["district"]["id"])
        self.assertIn(admin.pk, district.admin_ids)
        for school in summary["schools"]:
            self.assertIn(admin.pk, school["admin_ids"])


class SeedApiTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.super_admin = make_user("super", role="admin", admin_level="super_admin")
        cls.principal = make_user("principal", role="admin", admin_level="principal")

    def test_anonymous_gets_401(self):
        response = self.client.post(reverse("api_seed"))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Not authenticated"})

    def test_non_super_admin_gets_403(self):
        self.client.force_login(self.principal)
        response = self.client.post(reverse("api_seed"))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {"error": "Not authorized"})
        self.assertFalse(District.objects.exists())

    def test_get_not_allowed(self):
        self.client.force_login(self.super_admin)
        response = self.client.get(reverse("api_seed"))
        self.assertEqual(response.status_code, 405)

    def test_super_admin_seeds(self):
        self.client.force_login(self.super_admin)
        response = self.client.post(reverse("api_seed"))

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["message"], "Test data created successfully")
        self.assertEqual(len(body["schools"]), len(DEMO_SCHOOLS))


class SeedCommandTests(TestCase):

    def test_command_seeds_once(self):
        out = StringIO()
        call_command("seed_demo_district", stdout=out)
        call_command("seed_demo_district", stdout=out)

        self.assertEqual(District.objects.count(), 1)
        self.assertIn("District already exists", out.getvalue())

    def test_unknown_admin_email(self):
        with self.assertRaises(CommandError):
            call_command("seed_demo_district", admin_email="nobody@example.com", stdout=StringIO())
