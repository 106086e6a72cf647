import logging
import time

from django.conf import settings
from django.contrib.auth import authenticate, get_user, get_user_model, login, logout
from django.core import signing
from django.db import IntegrityError
from django.urls import reverse

from core import emails, realtime
from core.errors import (
    AuthenticationError,
    EmailDeliveryError,
    ValidationError,
    is_transient_error,
)

logger = logging.getLogger(__name__)

User = get_user_model()

MIN_PASSWORD_LENGTH = 6
SESSION_BACKEND = "accounts.backends.EmailOrUsernameModelBackend"
CONFIRM_SALT = "accounts.email-confirm"


class AuthGateway:
    """Sign-in, sign-up, sign-out and session lookup for the web client."""

    @staticmethod
    def sign_in(request, email: str, password: str) -> User:
        """Authenticate and start a session.

        Raises:
            AuthenticationError: the credentials were rejected.
        """
        user = authenticate(request, email=email, password=password)
        if user is None:
            logger.info("Rejected sign-in for %s", (email or "").strip().lower())
            raise AuthenticationError("Invalid email or password.")
        login(request, user)
        logger.info("User %s signed in", user.pk)
        return user

    @staticmethod
    def validate_sign_up(email: str, password: str, name: str, role: str, password_confirm: str | None = None) -> str:
        """Check sign-up input and return the normalized email."""
        email = (email or "").strip().lower()
        if not email:
            raise ValidationError("Email is required.")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        if password_confirm is not None and password != password_confirm:
            raise ValidationError("Passwords do not match.")
        if not role:
            raise ValidationError("Please choose whether you are a teacher or a parent.")
        if role not in User.SIGNUP_ROLES:
            raise ValidationError(f"Unsupported role: {role}.")
        if not (name or "").strip():
            raise ValidationError("Name is required.")
        if User.objects.filter(email__iexact=email).exists():
            raise ValidationError("An account with this email already exists.")
        return email

    @classmethod
    def sign_up(cls, request, email: str, password: str, name: str, role: str, password_confirm: str | None = None) -> User:
        """Create an account, start a session and send the confirmation email.

        The account starts with ``email_confirmed=False``. A failed
        confirmation email is logged; the account is kept.
        """
        email = cls.validate_sign_up(email, password, name, role, password_confirm)
        try:
            user = User.objects.create_user(
                username=email,
                email=email,
                password=password,
                name=name.strip(),
                role=role,
            )
        except IntegrityError as exc:
            raise ValidationError("An account with this email already exists.") from exc
        logger.info("Created %s account %s", role, user.pk)

        if request is not None:
            login(request, user, backend=SESSION_BACKEND)
            try:
                cls.send_confirmation_email(user, cls.build_confirm_link(request, user))
            except EmailDeliveryError:
                logger.warning("Confirmation email for user %s was not delivered", user.pk)
        return user

    @staticmethod
    def sign_out(request) -> None:
        """End the session. Best-effort: failures are logged, state is always cleared."""
        user_id = getattr(getattr(request, "user", None), "pk", None)
        try:
            logout(request)
        except Exception:
            logger.exception("Sign-out failed for user %s; clearing session anyway", user_id)
        try:
            request.session.flush()
        except Exception:
            logger.exception("Could not flush session for user %s", user_id)
        logger.info("User %s signed out", user_id)

    @staticmethod
    def current_user(request):
        """Return the signed-in user, or None for anonymous requests."""
        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            return None
        return user

    @staticmethod
    def load_session_user(request, attempts: int | None = None, backoff: float | None = None, sleep=time.sleep):
        """Restore the session user, retrying transient failures with linear backoff."""
        if attempts is None:
            attempts = getattr(settings, "HALLPASS_SESSION_RETRY_ATTEMPTS", 3)
        if backoff is None:
            backoff = getattr(settings, "HALLPASS_SESSION_RETRY_BACKOFF", 0.1)
        attempts = max(1, attempts)

        for attempt in range(1, attempts + 1):
            try:
                return get_user(request)
            except Exception as exc:
                if not is_transient_error(exc) or attempt == attempts:
                    raise
                logger.warning(
                    "Session fetch interrupted (attempt %s/%s): %s", attempt, attempts, exc
                )
                sleep(backoff * attempt)

    @staticmethod
    def needs_email_confirmation(user) -> bool:
        """True when confirmation is required and this signed-in user has not confirmed."""
        if not getattr(settings, "HALLPASS_REQUIRE_EMAIL_CONFIRMATION", False):
            return False
        return user.is_authenticated and not user.email_confirmed

    @staticmethod
    def subscribe_to_auth_state(callback) -> realtime.Subscription:
        """Receive ``{"event": "signed_in" | "signed_out", "user_id": ...}`` pushes."""
        return realtime.subscribe(realtime.AUTH_TOPIC, callback)

    # Email confirmation -----------------------------------------------------

    @staticmethod
    def make_confirm_token(user) -> str:
        """Signed token binding the user id to the address being confirmed."""
        return signing.dumps({"user_id": user.pk, "email": user.email}, salt=CONFIRM_SALT)

    @classmethod
    def build_confirm_link(cls, request, user) -> str:
        """Construct an absolute confirmation URL for the given user."""
        return request.build_absolute_uri(
            reverse("accounts:confirm", kwargs={"token": cls.make_confirm_token(user)})
        )

    @staticmethod
    def send_confirmation_email(user, confirm_url: str) -> None:
        subject, html, text = emails.render_email("confirm_email", {
            "name": user.display_name,
            "confirm_url": confirm_url,
        })
        emails.send_email(user.email, subject, html, text)

    @staticmethod
    def confirm_email(token: str) -> User:
        """Mark the account confirmed and send the welcome email.

        Raises:
            ValidationError: the link is malformed, expired, or was issued for
                a different address.
        """
        max_age = getattr(settings, "EMAIL_CONFIRM_MAX_AGE_DAYS", 7) * 24 * 60 * 60
        try:
            data = signing.loads(token, salt=CONFIRM_SALT, max_age=max_age)
            user = User.objects.get(pk=data["user_id"], email__iexact=data["email"])
        except (signing.BadSignature, User.DoesNotExist, KeyError, TypeError):
            raise ValidationError("The confirmation link is invalid or has expired.")

        if not user.email_confirmed:
            user.email_confirmed = True
            user.save(update_fields=["email_confirmed"])
            logger.info("User %s confirmed their email", user.pk)
            try:
                emails.send_welcome_email(user)
            except EmailDeliveryError:
                logger.warning("Welcome email for user %s was not delivered", user.pk)
        return user

    @staticmethod
    def complete_profile(user, name: str, role: str) -> User:
        """Finish setting up an authenticated account that has no role yet."""
        if role not in User.SIGNUP_ROLES:
            raise ValidationError("Please choose whether you are a teacher or a parent.")
        if not (name or "").strip():
            raise ValidationError("Name is required.")
        user.name = name.strip()
        user.role = role
        user.save(update_fields=["name", "role"])
        return user
