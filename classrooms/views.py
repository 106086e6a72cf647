import logging

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.http import Http404
from django.shortcuts import redirect, render
from django.views.decorators.http import require_POST

from core.errors import AuthorizationError, NotFoundError, ValidationError
from core.permissions import is_classroom_member

from .forms import ClassroomForm, JoinClassForm
from .services import ClassroomDirectory
from .utils import SESSION_KEY, get_selected_classroom

logger = logging.getLogger(__name__)


@login_required
def classroom_list(request):
    """List the user's classrooms and mark the selected one."""
    classrooms = ClassroomDirectory.list_for_user(request.user)
    return render(request, "classrooms/classroom_list.html", {
        "classrooms": classrooms,
        "selected": get_selected_classroom(request),
        "can_create": request.user.role == "teacher",
        "can_join": request.user.role == "parent",
    })


@login_required
@require_POST
def classroom_select(request, pk):
    """Store the chosen classroom in the session."""
    classroom = next(
        (c for c in ClassroomDirectory.list_for_user(request.user) if c.pk == pk), None
    )
    if classroom is None:
        raise Http404
    request.session[SESSION_KEY] = classroom.pk
    return redirect("dashboard:dashboard")


@login_required
def classroom_create(request):
    """Create a classroom (teachers only)."""
    if request.user.role != "teacher":
        raise Http404

    form = ClassroomForm(request.POST or None)
    if request.method == "POST" and form.is_valid():
        try:
            classroom = ClassroomDirectory.create_classroom(
                request.user,
                form.cleaned_data["name"],
                form.cleaned_data["grade_level"],
                school=request.user.school,
            )
        except (AuthorizationError, ValidationError) as exc:
            form.add_error(None, str(exc))
        else:
            request.session[SESSION_KEY] = classroom.pk
            messages.success(
                request,
                f"{classroom.name} is ready. Share class code {classroom.class_code} with parents.",
            )
            return redirect("classrooms:classroom_list")

    return render(request, "classrooms/classroom_form.html", {"form": form})


@login_required
def classroom_join(request):
    """Join a classroom by typing its class code."""
    form = JoinClassForm(request.POST or None, initial={"class_code": request.GET.get("code", "")})
    if request.method == "POST" and form.is_valid():
        try:
            classroom = ClassroomDirectory.join_with_code(
                form.cleaned_data["class_code"], request.user,
            )
        except (NotFoundError, AuthorizationError) as exc:
            form.add_error("class_code", str(exc))
        else:
            request.session[SESSION_KEY] = classroom.pk
            messages.success(request, f"You joined {classroom.name}.")
            return redirect("dashboard:dashboard")
    return render(request, "classrooms/join.html", {"form": form})


def join_by_link(request, code):
    """Public invite page for ``/join/<code>/``.

    Shows sign-in/sign-up prompts to anonymous visitors, an ineligible notice
    to non-parents, a joined notice to members, and a confirm button to
    parents. POST performs the join.
    """
    try:
        classroom = ClassroomDirectory.get_by_code(code)
    except NotFoundError:
        return render(request, "classrooms/join_link.html", {
            "state": "invalid",
            "code": code,
        }, status=404)

    user = request.user
    context = {"classroom": classroom, "code": classroom.class_code}

    if not user.is_authenticated:
        context["state"] = "anonymous"
        context["next"] = request.path
        return render(request, "classrooms/join_link.html", context)

    if is_classroom_member(user, classroom):
        context["state"] = "member"
        return render(request, "classrooms/join_link.html", context)

    if user.role != "parent":
        context["state"] = "ineligible"
        return render(request, "classrooms/join_link.html", context)

    if request.method == "POST":
        try:
            ClassroomDirectory.join_with_code(classroom.class_code, user)
        except (NotFoundError, AuthorizationError) as exc:
            messages.error(request, str(exc))
        else:
            request.session[SESSION_KEY] = classroom.pk
            messages.success(request, f"You joined {classroom.name}.")
            return redirect("dashboard:dashboard")

    context["state"] = "confirm"
    return render(request, "classrooms/join_link.html", context)
