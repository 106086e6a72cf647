from django.conf import settings
from django.shortcuts import redirect
from django.urls import Resolver404, resolve

from .services import AuthGateway

# Reachable before the account is confirmed and has a role.
OPEN_NAMESPACES = {"accounts", "dashboard", "admin"}
OPEN_URL_NAMES = {"home", "api_signout"}
# Viewable before the gate clears; joining still waits for it.
READ_ONLY_URL_NAMES = {"join_by_link"}


class SessionUserMiddleware:
    """Resolve ``request.user`` up front, retrying interrupted session fetches.

    Must sit after ``AuthenticationMiddleware``.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.user = AuthGateway.load_session_user(request)
        return self.get_response(request)


class AccountGateMiddleware:
    """Keep unconfirmed or role-less accounts on the dashboard's gate screens.

    Unconfirmed accounts go to the dashboard, which shows the confirmation
    screen. Accounts without a role go to account setup. Must sit after
    ``SessionUserMiddleware``.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        user = request.user
        if user.is_authenticated and not self.is_open(request):
            if AuthGateway.needs_email_confirmation(user):
                return redirect("dashboard:dashboard")
            if not user.has_profile:
                return redirect("accounts:setup")
        return self.get_response(request)

    @staticmethod
    def is_open(request) -> bool:
        if settings.STATIC_URL and request.path_info.startswith(settings.STATIC_URL):
            return True
        try:
            match = resolve(request.path_info)
        except Resolver404:
            return True
        if match.url_name in READ_ONLY_URL_NAMES:
            return request.method in ("GET", "HEAD")
        return match.url_name in OPEN_URL_NAMES or bool(set(match.namespaces) & OPEN_NAMESPACES)
