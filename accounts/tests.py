from unittest import mock

from django.contrib.auth import authenticate, get_user_model
from django.core import mail
from django.db import OperationalError
from django.test import RequestFactory, TestCase, override_settings
from django.urls import reverse

from accounts.services import AuthGateway
from classrooms.models import Classroom
from core import realtime
from core.errors import AuthenticationError, ValidationError
from messaging.models import Message
from messaging.services import MessagingService

User = get_user_model()


def make_user(email="teach@example.com", password="testpass123", **extra):
    extra.setdefault("role", "teacher")
    return User.objects.create_user(username=email, email=email, password=password, **extra)


# ===========================================================================
# Sign in
# ===========================================================================


class SignInTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.user = make_user(name="Ms. Frizzle")

    def test_signin_page_renders(self):
        response = self.client.get(reverse("accounts:signin"))
        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "accounts/signin.html")

    def test_signin_is_case_insensitive(self):
        response = self.client.post(reverse("accounts:signin"), {
            "email": "  Teach@Example.com ",
            "password": "testpass123",
        })
        self.assertRedirects(response, reverse("dashboard:dashboard"), fetch_redirect_response=False)
        self.assertEqual(int(self.client.session["_auth_user_id"]), self.user.pk)

    def test_wrong_password_shows_error(self):
        response = self.client.post(reverse("accounts:signin"), {
            "email": "teach@example.com",
            "password": "nope",
        })
        self.assertEqual(response.status_code, 200)
        self.assertFormError(response.context["form"], None, "Invalid email or password.")
        self.assertNotIn("_auth_user_id", self.client.session)

    def test_safe_next_is_followed(self):
        response = self.client.post(
            reverse("accounts:signin") + "?next=/messages/",
            {"email": "teach@example.com", "password": "testpass123", "next": "/messages/"},
        )
        self.assertRedirects(response, "/messages/", fetch_redirect_response=False)

    def test_offsite_next_is_ignored(self):
        response = self.client.post(reverse("accounts:signin"), {
            "email": "teach@example.com",
            "password": "testpass123",
            "next": "https://evil.example.com/",
        })
        self.assertRedirects(response, reverse("dashboard:dashboard"), fetch_redirect_response=False)

    def test_sign_in_service_raises_on_bad_credentials(self):
        request = RequestFactory().post("/")
        with self.assertRaises(AuthenticationError):
            AuthGateway.sign_in(request, "teach@example.com", "wrong")

    def test_backend_accepts_username(self):
        staff = User.objects.create_user(
            username="root", email="root@example.com", password="testpass123",
        )
        self.assertEqual(authenticate(username="ROOT", password="testpass123"), staff)


# ===========================================================================
# Sign up
# ===========================================================================


class SignUpValidationTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        make_user(email="taken@example.com")

    def assertRejected(self, message, **overrides):
        data = {
            "email": "new@example.com",
            "password": "secret1",
            "name": "New Person",
            "role": "parent",
            "password_confirm": "secret1",
        }
        data.update(overrides)
        with self.assertRaisesMessage(ValidationError, message):
            AuthGateway.validate_sign_up(**data)

    def test_short_password(self):
        self.assertRejected(
            "Password must be at least 6 characters.", password="12345", password_confirm="12345",
        )

    def test_mismatched_confirmation(self):
        self.assertRejected("Passwords do not match.", password_confirm="secret2")

    def test_missing_role(self):
        self.assertRejected("Please choose whether you are a teacher or a parent.", role="")

    def test_admin_role_cannot_sign_up(self):
        self.assertRejected("Unsupported role: admin.", role="admin")

    def test_duplicate_email_any_case(self):
        self.assertRejected("An account with this email already exists.", email="TAKEN@example.com")

    def test_valid_input_returns_normalized_email(self):
        email = AuthGateway.validate_sign_up(
            " New@Example.com", "secret1", "New Person", "teacher", "secret1",
        )
        self.assertEqual(email, "new@example.com")


class SignUpViewTests(TestCase):

    def post_signup(self, **overrides):
        data = {
            "name": "Valerie Frizzle",
            "email": "frizzle@example.com",
            "role": "teacher",
            "password1": "magicbus",
            "password2": "magicbus",
        }
        data.update(overrides)
        return self.client.post(reverse("accounts:signup"), data)

    def test_signup_page_renders(self):
        response = self.client.get(reverse("accounts:signup"))
        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "accounts/signup.html")

    def test_signup_creates_unconfirmed_account_and_signs_in(self):
        response = self.post_signup()

        self.assertRedirects(response, reverse("dashboard:dashboard"), fetch_redirect_response=False)
        user = User.objects.get(email="frizzle@example.com")
        self.assertEqual(user.role, "teacher")
        self.assertEqual(user.name, "Valerie Frizzle")
        self.assertFalse(user.email_confirmed)
        self.assertEqual(int(self.client.session["_auth_user_id"]), user.pk)

    def test_signup_sends_confirmation_email(self):
        self.post_signup()

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["frizzle@example.com"])
        self.assertEqual(mail.outbox[0].subject, "Confirm your Hall Pass email")
        self.assertIn("/accounts/confirm/", mail.outbox[0].body)

    def test_password_mismatch(self):
        response = self.post_signup(password2="different")

        self.assertEqual(response.status_code, 200)
        self.assertFormError(response.context["form"], None, "Passwords do not match.")
        self.assertFalse(User.objects.filter(email="frizzle@example.com").exists())


# ===========================================================================
# Email confirmation
# ===========================================================================


class ConfirmEmailTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.user = make_user(email="mom@example.com", role="parent", name="Pat")

    def test_confirm_marks_account_and_sends_welcome(self):
        token = AuthGateway.make_confirm_token(self.user)

        user = AuthGateway.confirm_email(token)

        self.assertTrue(user.email_confirmed)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, "Welcome to Hall Pass, Pat!")

    def test_confirm_twice_sends_one_welcome(self):
        token = AuthGateway.make_confirm_token(self.user)

        AuthGateway.confirm_email(token)
        AuthGateway.confirm_email(token)

        self.assertEqual(len(mail.outbox), 1)

    def test_tampered_token_rejected(self):
        with self.assertRaises(ValidationError):
            AuthGateway.confirm_email("not-a-token")

    def test_token_for_old_address_rejected(self):
        token = AuthGateway.make_confirm_token(self.user)
        self.user.email = "new@example.com"
        self.user.save()

        with self.assertRaises(ValidationError):
            AuthGateway.confirm_email(token)

    def test_confirm_view_redirects_anonymous_to_signin(self):
        token = AuthGateway.make_confirm_token(self.user)

        response = self.client.get(reverse("accounts:confirm", kwargs={"token": token}))

        self.assertRedirects(response, reverse("accounts:signin"), fetch_redirect_response=False)
        self.user.refresh_from_db()
        self.assertTrue(self.user.email_confirmed)

    def test_resend_confirmation(self):
        self.client.force_login(self.user)

        response = self.client.post(reverse("accounts:resend_confirmation"))

        self.assertRedirects(response, reverse("dashboard:dashboard"), fetch_redirect_response=False)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["mom@example.com"])


# ===========================================================================
# Sign out
# ===========================================================================


class SignOutTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.user = make_user()

    def test_api_signout_clears_session_cookies(self):
        self.client.force_login(self.user)
        self.client.cookies["sb-project-auth-token"] = "stale"
        self.client.cookies["theme"] = "dark"

        response = self.client.post(reverse("api_signout"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True})
        self.assertEqual(response["Clear-Site-Data"], '"cache", "cookies", "storage"')
        self.assertEqual(response.cookies["sessionid"]["max-age"], 0)
        self.assertEqual(response.cookies["sb-project-auth-token"]["max-age"], 0)
        self.assertNotIn("theme", response.cookies)
        self.assertNotIn("_auth_user_id", self.client.session)

    def test_api_signout_when_anonymous(self):
        response = self.client.post(reverse("api_signout"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True})

    def test_api_signout_requires_post(self):
        response = self.client.get(reverse("api_signout"))
        self.assertEqual(response.status_code, 405)

    def test_api_signout_succeeds_when_logout_fails(self):
        self.client.force_login(self.user)

        with mock.patch("accounts.services.logout", side_effect=RuntimeError("backend down")):
            with self.assertLogs("accounts.services", level="ERROR"):
                response = self.client.post(reverse("api_signout"))

        self.assertEqual(response.json(), {"success": True})
        self.assertNotIn("_auth_user_id", self.client.session)

    def test_signout_page_rejects_get(self):
        self.client.force_login(self.user)
        response = self.client.get(reverse("accounts:signout"))
        self.assertEqual(response.status_code, 403)

    def test_signout_page_post(self):
        self.client.force_login(self.user)
        response = self.client.post(reverse("accounts:signout"))
        self.assertRedirects(response, reverse("accounts:signin"), fetch_redirect_response=False)


# ===========================================================================
# Session restore and auth state
# ===========================================================================


class LoadSessionUserTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.user = make_user()

    def setUp(self):
        self.request = RequestFactory().get("/")
        self.sleeps = []

    def test_retries_transient_failure(self):
        with mock.patch(
            "accounts.services.get_user",
            side_effect=[OperationalError("connection aborted"), self.user],
        ):
            with self.assertLogs("accounts.services", level="WARNING"):
                user = AuthGateway.load_session_user(
                    self.request, attempts=3, backoff=0.5, sleep=self.sleeps.append,
                )

        self.assertEqual(user, self.user)
        self.assertEqual(self.sleeps, [0.5])

    def test_gives_up_after_last_attempt(self):
        with mock.patch("accounts.services.get_user", side_effect=OperationalError("locked")):
            with self.assertRaises(OperationalError):
                AuthGateway.load_session_user(
                    self.request, attempts=3, backoff=0.1, sleep=self.sleeps.append,
                )

        self.assertEqual(len(self.sleeps), 2)

    def test_schema_errors_are_not_retried(self):
        with mock.patch("accounts.services.get_user", side_effect=OperationalError("no such table: django_session")):
            with self.assertRaises(OperationalError):
                AuthGateway.load_session_user(self.request, sleep=self.sleeps.append)

        self.assertEqual(self.sleeps, [])

    def test_real_failure_is_not_retried(self):
        with mock.patch("accounts.services.get_user", side_effect=ValueError("corrupt")):
            with self.assertRaises(ValueError):
                AuthGateway.load_session_user(self.request, sleep=self.sleeps.append)

        self.assertEqual(self.sleeps, [])


class AuthStateSubscriptionTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.user = make_user()

    def setUp(self):
        realtime.reset()
        self.addCleanup(realtime.reset)

    def test_sign_in_and_out_are_pushed(self):
        events = []
        sub = AuthGateway.subscribe_to_auth_state(events.append)

        self.client.force_login(self.user)
        self.client.post(reverse("api_signout"))
        sub.unsubscribe()
        self.client.force_login(self.user)

        self.assertEqual(events, [
            {"event": "signed_in", "user_id": self.user.pk},
            {"event": "signed_out", "user_id": self.user.pk},
        ])


# ===========================================================================
# Account setup
# ===========================================================================


class AccountSetupTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.user = make_user(email="blank@example.com", role="")

    def test_setup_page_renders(self):
        self.client.force_login(self.user)
        response = self.client.get(reverse("accounts:setup"))
        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "accounts/setup.html")

    def test_setup_sets_role(self):
        self.client.force_login(self.user)

        response = self.client.post(reverse("accounts:setup"), {"name": "Pat", "role": "parent"})

        self.assertRedirects(response, reverse("dashboard:dashboard"), fetch_redirect_response=False)
        self.user.refresh_from_db()
        self.assertEqual(self.user.role, "parent")
        self.assertEqual(self.user.name, "Pat")

    def test_completed_profile_skips_setup(self):
        teacher = make_user(email="done@example.com")
        self.client.force_login(teacher)
        response = self.client.get(reverse("accounts:setup"))
        self.assertRedirects(response, reverse("dashboard:dashboard"), fetch_redirect_response=False)


# ===========================================================================
# User manager
# ===========================================================================


class UserManagerTests(TestCase):

    def test_email_lowercased_and_used_as_username(self):
        user = User.objects.create_user(username="", email="Mixed@Example.COM", password="testpass123")
        self.assertEqual(user.email, "mixed@example.com")
        self.assertEqual(user.username, "mixed@example.com")

    def test_get_by_email_ignores_case(self):
        user = make_user(email="teach@example.com")
        self.assertEqual(User.objects.get_by_email(" TEACH@example.com "), user)
        with self.assertRaises(User.DoesNotExist):
            User.objects.get_by_email("nobody@example.com")

    def test_role_filters(self):
        teacher = make_user(email="t@example.com", role="teacher")
        parent = make_user(email="p@example.com", role="parent")
        self.assertEqual(list(User.objects.teachers()), [teacher])
        self.assertEqual(list(User.objects.parents()), [parent])


# ===========================================================================
# Account gate
# ===========================================================================


class AccountGateTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.teacher = make_user(email="teacher@example.com", email_confirmed=True)
        cls.parent = make_user(email="parent@example.com", role="parent")
        cls.blank = make_user(email="blank@example.com", role="")
        cls.classroom = Classroom.objects.create(name="Room 12", teacher=cls.teacher)
        cls.classroom.parents.add(cls.parent)
        cls.conversation = MessagingService.get_or_create_conversation([cls.teacher, cls.parent])

    # ── email confirmation ────────────────────────────────────────────────

    @override_settings(HALLPASS_REQUIRE_EMAIL_CONFIRMATION=True)
    def test_unconfirmed_user_cannot_send_messages(self):
        self.client.force_login(self.parent)

        response = self.client.post(
            reverse("messaging:conversation_detail", args=[self.conversation.pk]),
            {"content": "hi"},
        )

        self.assertRedirects(response, reverse("dashboard:dashboard"), fetch_redirect_response=False)
        self.assertFalse(Message.objects.exists())

    @override_settings(HALLPASS_REQUIRE_EMAIL_CONFIRMATION=True)
    def test_unconfirmed_user_sent_to_confirmation_screen(self):
        self.client.force_login(self.parent)

        response = self.client.get(reverse("classrooms:classroom_join"), follow=True)

        self.assertTemplateUsed(response, "dashboard/email_confirmation.html")

    @override_settings(HALLPASS_REQUIRE_EMAIL_CONFIRMATION=True)
    def test_unconfirmed_user_can_resend_and_sign_out(self):
        self.client.force_login(self.parent)

        self.client.post(reverse("accounts:resend_confirmation"))
        self.assertEqual(len(mail.outbox), 1)

        response = self.client.post(reverse("api_signout"))
        self.assertEqual(response.json(), {"success": True})

    @override_settings(HALLPASS_REQUIRE_EMAIL_CONFIRMATION=True)
    def test_unconfirmed_parent_cannot_join_by_link(self):
        other = Classroom.objects.create(name="Room 13", teacher=self.teacher)
        self.client.force_login(self.parent)

        url = reverse("join_by_link", args=[other.class_code])
        self.assertEqual(self.client.get(url).status_code, 200)
        response = self.client.post(url)

        self.assertRedirects(response, reverse("dashboard:dashboard"), fetch_redirect_response=False)
        self.assertFalse(other.parents.filter(pk=self.parent.pk).exists())

    @override_settings(HALLPASS_REQUIRE_EMAIL_CONFIRMATION=True)
    def test_confirmed_user_passes(self):
        self.client.force_login(self.teacher)
        response = self.client.get(reverse("messaging:conversation_list"))
        self.assertEqual(response.status_code, 200)

    def test_unconfirmed_user_passes_when_gate_is_off(self):
        self.client.force_login(self.parent)
        response = self.client.get(reverse("messaging:conversation_list"))
        self.assertEqual(response.status_code, 200)

    # ── missing role ──────────────────────────────────────────────────────

    def test_roleless_user_sent_to_setup(self):
        self.client.force_login(self.blank)

        for url in (reverse("messaging:conversation_list"), reverse("classrooms:classroom_list")):
            response = self.client.get(url)
            self.assertRedirects(response, reverse("accounts:setup"), fetch_redirect_response=False)

    def test_roleless_user_can_open_join_link(self):
        self.client.force_login(self.blank)
        response = self.client.get(reverse("join_by_link", args=[self.classroom.class_code]))
        self.assertEqual(response.status_code, 200)

    def test_anonymous_requests_untouched(self):
        response = self.client.get(reverse("messaging:conversation_list"))
        self.assertRedirects(
            response,
            f"{reverse('accounts:signin')}?next={reverse('messaging:conversation_list')}",
            fetch_redirect_response=False,
        )
