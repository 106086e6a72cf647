"""Choose the dashboard screen for a user.

Pure functions of the request's auth state; no database access. The state
is one of four variants and each maps to a screen through explicit tables:

    route(is_loading=False, needs_email_confirmation=False,
          is_authenticated=True, role="admin", admin_level="principal")
    # -> Screen.PRINCIPAL

Precedence: loading, then email confirmation, then sign-in, then account
setup, then the role and admin-level tables.
"""

import enum
import logging
from dataclasses import dataclass

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

logger = logging.getLogger(__name__)


class Screen(str, enum.Enum):
    LOADING = "loading"
    EMAIL_CONFIRMATION = "email_confirmation"
    LOGIN = "login"
    ACCOUNT_SETUP = "account_setup"
    TEACHER = "teacher"
    PARENT = "parent"
    ADMIN = "admin"
    DISTRICT_ADMIN = "district_admin"
    PRINCIPAL = "principal"


@dataclass(frozen=True)
class Loading:
    pass


@dataclass(frozen=True)
class NeedsConfirmation:
    pass


@dataclass(frozen=True)
class Unauthenticated:
    pass


@dataclass(frozen=True)
class Authenticated:
    role: str | None = None
    admin_level: str | None = None


ROLE_SCREENS = {
    "teacher": Screen.TEACHER,
    "parent": Screen.PARENT,
    # Students share the parent view.
    "student": Screen.PARENT,
}

ADMIN_LEVEL_SCREENS = {
    "super_admin": Screen.ADMIN,
    "district_admin": Screen.DISTRICT_ADMIN,
    "principal": Screen.PRINCIPAL,
    "school_admin": Screen.PRINCIPAL,
}


def admin_without_level_screen() -> Screen:
    """Screen for an admin whose admin level is missing or unknown."""
    value = getattr(settings, "HALLPASS_ADMIN_WITHOUT_LEVEL_SCREEN", Screen.ADMIN.value)
    try:
        return Screen(value)
    except ValueError:
        raise ImproperlyConfigured(
            f"HALLPASS_ADMIN_WITHOUT_LEVEL_SCREEN={value!r} is not a dashboard screen."
        )


def resolve_state(is_loading, needs_email_confirmation, is_authenticated, role=None, admin_level=None):
    if is_loading:
        return Loading()
    if needs_email_confirmation:
        return NeedsConfirmation()
    if not is_authenticated:
        return Unauthenticated()
    return Authenticated(role=role or None, admin_level=admin_level or None)


def resolve_screen(state) -> Screen:
    if isinstance(state, Loading):
        return Screen.LOADING
    if isinstance(state, NeedsConfirmation):
        return Screen.EMAIL_CONFIRMATION
    if isinstance(state, Unauthenticated):
        return Screen.LOGIN
    if not isinstance(state, Authenticated):
        raise TypeError(f"Unknown dashboard state: {state!r}")

    if not state.role:
        return Screen.ACCOUNT_SETUP

    if state.role == "admin":
        screen = ADMIN_LEVEL_SCREENS.get(state.admin_level)
        if screen is None:
            screen = admin_without_level_screen()
            logger.warning(
                "Admin account with admin level %r routed to the %s dashboard",
                state.admin_level, screen.value,
            )
        return screen

    screen = ROLE_SCREENS.get(state.role)
    if screen is None:
        logger.warning("Unknown role %r sent to account setup", state.role)
        return Screen.ACCOUNT_SETUP
    return screen


def route(is_loading, needs_email_confirmation, is_authenticated, role=None, admin_level=None) -> Screen:
    return resolve_screen(
        resolve_state(is_loading, needs_email_confirmation, is_authenticated, role, admin_level)
    )
