import logging

from django.conf import settings
from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.http import HttpResponseForbidden, JsonResponse
from django.shortcuts import redirect, render, resolve_url
from django.utils.http import url_has_allowed_host_and_scheme
from django.views.decorators.csrf import csrf_exempt, csrf_protect
from django.views.decorators.http import require_POST

from core.errors import AuthenticationError, EmailDeliveryError, ValidationError

from .forms import AccountSetupForm, SignInForm, SignUpForm
from .services import AuthGateway

logger = logging.getLogger(__name__)

CLEAR_SITE_DATA = '"cache", "cookies", "storage"'


def _next_url(request, default=None):
    """Return a safe post-login redirect target."""
    candidate = request.POST.get("next") or request.GET.get("next")
    if candidate and url_has_allowed_host_and_scheme(
        candidate, allowed_hosts={request.get_host()}, require_https=request.is_secure(),
    ):
        return candidate
    return resolve_url(default or settings.LOGIN_REDIRECT_URL)


def is_session_cookie(name: str) -> bool:
    markers = getattr(settings, "HALLPASS_SESSION_COOKIE_MARKERS", ()) or (settings.SESSION_COOKIE_NAME,)
    return any(marker in name for marker in markers)


def clear_session_cookies(request, response):
    """Expire every session cookie the browser sent and ask it to drop local storage."""
    for name in request.COOKIES:
        if is_session_cookie(name):
            response.delete_cookie(name, path="/")
    response["Clear-Site-Data"] = CLEAR_SITE_DATA
    return response


@csrf_protect
def signin(request):
    """Email + password sign-in."""
    if request.user.is_authenticated and request.method != "POST":
        return redirect(_next_url(request))

    form = SignInForm(request.POST or None)
    if request.method == "POST" and form.is_valid():
        try:
            AuthGateway.sign_in(
                request,
                form.cleaned_data["email"],
                form.cleaned_data["password"],
            )
        except AuthenticationError as exc:
            form.add_error(None, str(exc))
        else:
            return redirect(_next_url(request))
    return render(request, "accounts/signin.html", {
        "form": form,
        "next": request.GET.get("next", ""),
    })


@csrf_protect
def signup(request):
    """Create a teacher or parent account."""
    form = SignUpForm(request.POST or None, initial={"role": request.GET.get("role", "")})
    if request.method == "POST" and form.is_valid():
        data = form.cleaned_data
        try:
            AuthGateway.sign_up(
                request,
                email=data["email"],
                password=data["password1"],
                name=data["name"],
                role=data["role"],
                password_confirm=data["password2"],
            )
        except ValidationError as exc:
            form.add_error(None, str(exc))
        else:
            messages.success(
                request,
                "Account created. We sent a confirmation link to your email.",
            )
            return redirect(_next_url(request))
    return render(request, "accounts/signup.html", {
        "form": form,
        "next": request.GET.get("next", ""),
    })


@csrf_protect
def signout_view(request):
    """Sign out via POST only to ensure CSRF coverage."""
    if request.method != "POST":
        return HttpResponseForbidden("Sign out must be a POST request.")
    AuthGateway.sign_out(request)
    response = redirect(settings.LOGOUT_REDIRECT_URL)
    return clear_session_cookies(request, response)


@csrf_exempt
@require_POST
def api_signout(request):
    """Clear the session and every session cookie; always reports success."""
    AuthGateway.sign_out(request)
    return clear_session_cookies(request, JsonResponse({"success": True}))


def confirm(request, token: str):
    """Confirm an email address from the link sent at sign-up."""
    try:
        AuthGateway.confirm_email(token)
    except ValidationError as exc:
        messages.error(request, str(exc))
    else:
        messages.success(request, "Email confirmed. Welcome to Hall Pass!")
    if request.user.is_authenticated:
        return redirect("dashboard:dashboard")
    return redirect("accounts:signin")


@login_required
@require_POST
def resend_confirmation(request):
    user = request.user
    if user.email_confirmed:
        return redirect("dashboard:dashboard")
    try:
        AuthGateway.send_confirmation_email(user, AuthGateway.build_confirm_link(request, user))
    except EmailDeliveryError:
        messages.error(request, "We couldn't send the email. Please try again in a moment.")
    else:
        messages.success(request, f"We sent a new confirmation link to {user.email}.")
    return redirect("dashboard:dashboard")


@login_required
def account_setup(request):
    """Finish the profile of an authenticated account that has no role yet."""
    if request.user.has_profile:
        return redirect("dashboard:dashboard")

    form = AccountSetupForm(request.POST or None, initial={"name": request.user.name})
    if request.method == "POST" and form.is_valid():
        try:
            AuthGateway.complete_profile(
                request.user, form.cleaned_data["name"], form.cleaned_data["role"],
            )
        except ValidationError as exc:
            form.add_error(None, str(exc))
        else:
            return redirect("dashboard:dashboard")
    return render(request, "accounts/setup.html", {"form": form})
