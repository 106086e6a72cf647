from .utils import get_selected_classroom, get_user_classrooms


def classroom_context(request):
    """Provide classroom data to all templates for the navbar switcher."""
    if not hasattr(request, "user") or not request.user.is_authenticated:
        return {}

    selected = get_selected_classroom(request)
    return {
        "user_classrooms": get_user_classrooms(request.user),
        "selected_classroom": selected,
        "is_selected_teacher": selected is not None and selected.teacher_id == request.user.pk,
    }
