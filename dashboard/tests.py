from django.contrib.auth import get_user_model
from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse

from classrooms.models import Classroom
from core.models import District, School
from dashboard.router import (
    Authenticated,
    Loading,
    NeedsConfirmation,
    Screen,
    Unauthenticated,
    resolve_screen,
    resolve_state,
    route,
)
from messaging.services import MessagingService
from points import services as points_services
from students.models import Student

User = get_user_model()


def signed_in(role=None, admin_level=None):
    return route(
        is_loading=False,
        needs_email_confirmation=False,
        is_authenticated=True,
        role=role,
        admin_level=admin_level,
    )


# ===========================================================================
# Router
# ===========================================================================


class RouterTests(SimpleTestCase):

    # ── precedence ─────────────────────────────────────────────────────────

    def test_loading_wins(self):
        self.assertEqual(route(True, True, True, "teacher"), Screen.LOADING)
        self.assertEqual(route(True, False, False), Screen.LOADING)

    def test_email_confirmation_before_sign_in(self):
        self.assertEqual(route(False, True, False), Screen.EMAIL_CONFIRMATION)
        self.assertEqual(route(False, True, True, "teacher"), Screen.EMAIL_CONFIRMATION)

    def test_unauthenticated_goes_to_login(self):
        self.assertEqual(route(False, False, False, "teacher"), Screen.LOGIN)

    def test_missing_role_goes_to_setup(self):
        self.assertEqual(signed_in(role=None), Screen.ACCOUNT_SETUP)
        self.assertEqual(signed_in(role=""), Screen.ACCOUNT_SETUP)

    # ── role table ─────────────────────────────────────────────────────────

    def test_roles(self):
        self.assertEqual(signed_in("teacher"), Screen.TEACHER)
        self.assertEqual(signed_in("parent"), Screen.PARENT)
        self.assertEqual(signed_in("student"), Screen.PARENT)

    def test_unknown_role_goes_to_setup(self):
        with self.assertLogs("dashboard.router", level="WARNING"):
            self.assertEqual(signed_in("janitor"), Screen.ACCOUNT_SETUP)

    # ── admin level table ──────────────────────────────────────────────────

    def test_admin_levels(self):
        self.assertEqual(signed_in("admin", "super_admin"), Screen.ADMIN)
        self.assertEqual(signed_in("admin", "district_admin"), Screen.DISTRICT_ADMIN)
        self.assertEqual(signed_in("admin", "principal"), Screen.PRINCIPAL)
        self.assertEqual(signed_in("admin", "school_admin"), Screen.PRINCIPAL)

    def test_admin_level_ignored_for_other_roles(self):
        self.assertEqual(signed_in("teacher", "super_admin"), Screen.TEACHER)

    @override_settings(HALLPASS_ADMIN_WITHOUT_LEVEL_SCREEN="admin")
    def test_admin_without_level_uses_admin_screen(self):
        with self.assertLogs("dashboard.router", level="WARNING") as logs:
            self.assertEqual(signed_in("admin", None), Screen.ADMIN)
        self.assertIn("routed to the admin dashboard", logs.output[0])

    @override_settings(HALLPASS_ADMIN_WITHOUT_LEVEL_SCREEN="admin")
    def test_admin_with_unknown_level_uses_admin_screen(self):
        with self.assertLogs("dashboard.router", level="WARNING"):
            self.assertEqual(signed_in("admin", "janitor"), Screen.ADMIN)

    @override_settings(HALLPASS_ADMIN_WITHOUT_LEVEL_SCREEN="account_setup")
    def test_admin_without_level_fallback_is_configurable(self):
        with self.assertLogs("dashboard.router", level="WARNING"):
            self.assertEqual(signed_in("admin", ""), Screen.ACCOUNT_SETUP)

    @override_settings(HALLPASS_ADMIN_WITHOUT_LEVEL_SCREEN="nowhere")
    def test_bad_fallback_setting(self):
        with self.assertRaises(ImproperlyConfigured):
            signed_in("admin", None)

    # ── states ─────────────────────────────────────────────────────────────

    def test_resolve_state_variants(self):
        self.assertEqual(resolve_state(True, False, False), Loading())
        self.assertEqual(resolve_state(False, True, True), NeedsConfirmation())
        self.assertEqual(resolve_state(False, False, False), Unauthenticated())
        self.assertEqual(
            resolve_state(False, False, True, "admin", "principal"),
            Authenticated(role="admin", admin_level="principal"),
        )

    def test_unknown_state_rejected(self):
        with self.assertRaises(TypeError):
            resolve_screen(object())


# ===========================================================================
# Dashboard view
# ===========================================================================


class DashboardViewTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        # ── Users ──
        cls.teacher = User.objects.create_user(
            username="teacher", email="teacher@example.com", password="testpass123",
            role="teacher", name="Ms. Frizzle",
        )
        cls.parent = User.objects.create_user(
            username="parent", email="parent@example.com", password="testpass123",
            role="parent", name="Pat Parent",
        )
        cls.blank = User.objects.create_user(
            username="blank", email="blank@example.com", password="testpass123",
        )

        # ── Classroom ──
        cls.classroom = Classroom.objects.create(name="Room 12", teacher=cls.teacher)
        cls.classroom.parents.add(cls.parent)
        cls.student = Student.objects.create(classroom=cls.classroom, first_name="Arnold")
        cls.student.parents.add(cls.parent)
        points_services.award_points(cls.student, cls.classroom, "helping", cls.teacher)

        conversation = MessagingService.get_or_create_conversation([cls.teacher, cls.parent])
        MessagingService.send_message(conversation, cls.teacher, "", "Welcome!")

        # ── Admins ──
        cls.district = District.objects.create(name="North", code="NORTH")
        cls.school = School.objects.create(district=cls.district, name="Lincoln", code="LIN")
        cls.super_admin = User.objects.create_user(
            username="super", email="super@example.com", password="testpass123",
            role="admin", admin_level="super_admin",
        )
        cls.district_admin = User.objects.create_user(
            username="dadmin", email="dadmin@example.com", password="testpass123",
            role="admin", admin_level="district_admin", district=cls.district,
        )
        cls.principal = User.objects.create_user(
            username="principal", email="principal@example.com", password="testpass123",
            role="admin", admin_level="principal", school=cls.school,
        )
        cls.levelless_admin = User.objects.create_user(
            username="noadmin", email="noadmin@example.com", password="testpass123", role="admin",
        )

    def get_dashboard(self, user):
        self.client.force_login(user)
        return self.client.get(reverse("dashboard:dashboard"))

    def test_anonymous_redirects_to_signin(self):
        response = self.client.get(reverse("dashboard:dashboard"))
        self.assertRedirects(
            response,
            f"{reverse('accounts:signin')}?next={reverse('dashboard:dashboard')}",
            fetch_redirect_response=False,
        )

    def test_home_redirects_to_dashboard(self):
        response = self.client.get("/")
        self.assertRedirects(response, reverse("dashboard:dashboard"), fetch_redirect_response=False)

    def test_account_without_role_goes_to_setup(self):
        response = self.get_dashboard(self.blank)
        self.assertRedirects(response, reverse("accounts:setup"))

    def test_teacher_dashboard(self):
        response = self.get_dashboard(self.teacher)

        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "dashboard/teacher.html")
        self.assertEqual(response.context["screen"], Screen.TEACHER)
        self.assertEqual(response.context["classroom"], self.classroom)
        self.assertEqual(response.context["parent_count"], 1)
        self.assertEqual(response.context["leaders"][0].total_points, 5)

    def test_parent_dashboard(self):
        response = self.get_dashboard(self.parent)

        self.assertTemplateUsed(response, "dashboard/parent.html")
        self.assertEqual(response.context["children"], [self.student])
        self.assertEqual(response.context["total_unread"], 1)
        summaries = dict(response.context["summaries"])
        self.assertEqual(summaries[self.student].total_points, 5)

    def test_classroom_switch_by_query_param(self):
        second = Classroom.objects.create(name="Room 13", teacher=self.teacher)
        self.client.force_login(self.teacher)

        response = self.client.get(reverse("dashboard:dashboard"), {"classroom_id": second.pk})

        self.assertEqual(response.context["classroom"], second)
        self.assertEqual(self.client.session["selected_classroom_id"], second.pk)

    def test_super_admin_dashboard(self):
        response = self.get_dashboard(self.super_admin)

        self.assertTemplateUsed(response, "dashboard/admin.html")
        self.assertEqual(response.context["stats"]["total_classrooms"], 1)

    def test_admin_without_level_sees_admin_screen_without_data(self):
        with self.assertLogs("dashboard.router", level="WARNING"):
            response = self.get_dashboard(self.levelless_admin)

        self.assertTemplateUsed(response, "dashboard/admin.html")
        self.assertIsNone(response.context["stats"])

    def test_district_admin_dashboard(self):
        response = self.get_dashboard(self.district_admin)

        self.assertTemplateUsed(response, "dashboard/district_admin.html")
        self.assertEqual(response.context["district"], self.district)
        self.assertEqual(response.context["stats"].school_count, 1)

    def test_principal_dashboard(self):
        response = self.get_dashboard(self.principal)

        self.assertTemplateUsed(response, "dashboard/principal.html")
        self.assertEqual(response.context["school"], self.school)

    @override_settings(HALLPASS_REQUIRE_EMAIL_CONFIRMATION=True)
    def test_unconfirmed_email_gate(self):
        response = self.get_dashboard(self.teacher)

        self.assertTemplateUsed(response, "dashboard/email_confirmation.html")
        self.assertEqual(response.context["screen"], Screen.EMAIL_CONFIRMATION)

    @override_settings(HALLPASS_REQUIRE_EMAIL_CONFIRMATION=True)
    def test_confirmed_email_passes_gate(self):
        User.objects.filter(pk=self.teacher.pk).update(email_confirmed=True)
        response = self.get_dashboard(self.teacher)
        self.assertTemplateUsed(response, "dashboard/teacher.html")
