from core.permissions import is_classroom_member

from .models import Classroom

SESSION_KEY = "selected_classroom_id"


def get_user_classrooms(user, role=None):
    """Return the classrooms the user teaches or joined, oldest first.

    Teachers get the classrooms they own, parents the ones they joined.
    Every other role gets none.
    """
    if not user.is_authenticated:
        return Classroom.objects.none()
    role = role or user.role
    if role == "teacher":
        qs = Classroom.objects.filter(teacher=user)
    elif role == "parent":
        qs = Classroom.objects.filter(parents=user)
    else:
        return Classroom.objects.none()
    return qs.select_related("teacher").order_by("created_at", "id")


def get_selected_classroom(request):
    """Return the currently selected classroom for the request user.

    Resolution order:
    1. GET param ``classroom_id`` (validated + stored to session)
    2. Session ``selected_classroom_id``
    3. First classroom (by creation)
    4. None (no classrooms yet)

    Result is cached on ``request._selected_classroom``.
    """
    if hasattr(request, "_selected_classroom"):
        return request._selected_classroom

    user = request.user
    if not user.is_authenticated:
        request._selected_classroom = None
        return None

    # 1. GET param
    classroom_id = request.GET.get("classroom_id")
    if classroom_id:
        try:
            classroom = Classroom.objects.select_related("teacher").get(pk=int(classroom_id))
        except (Classroom.DoesNotExist, ValueError, TypeError):
            classroom = None
        if classroom is not None and is_classroom_member(user, classroom):
            request.session[SESSION_KEY] = classroom.pk
            request._selected_classroom = classroom
            return classroom

    # 2. Session
    session_id = request.session.get(SESSION_KEY)
    if session_id is not None:
        classroom = Classroom.objects.select_related("teacher").filter(pk=session_id).first()
        if classroom is not None and is_classroom_member(user, classroom):
            request._selected_classroom = classroom
            return classroom
        # Stale session value
        del request.session[SESSION_KEY]

    # 3. First classroom
    classroom = get_user_classrooms(user).first()
    if classroom is not None:
        request.session[SESSION_KEY] = classroom.pk
    request._selected_classroom = classroom
    return classroom
