from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.http import Http404
from django.shortcuts import get_object_or_404, redirect, render
from django.views.decorators.http import require_POST

from classrooms.utils import get_selected_classroom
from core.errors import AuthorizationError, ValidationError
from core.permissions import is_classroom_member, is_classroom_teacher
from students.models import Student

from . import services
from .behaviors import DEFAULT_NEGATIVE_BEHAVIORS, DEFAULT_POSITIVE_BEHAVIORS
from .forms import AwardPointsForm
from .models import PointRecord


@login_required
def points_overview(request):
    """Class leaderboard for teachers; parents see only their own children."""
    classroom = get_selected_classroom(request)
    context = {"classroom": classroom, "summaries": [], "history": []}
    if classroom is None:
        return render(request, "points/overview.html", context)

    is_teacher = is_classroom_teacher(request.user, classroom)
    summaries = services.class_summaries(classroom)
    history = services.class_points_history(classroom, limit=20)
    if not is_teacher:
        child_ids = set(
            Student.objects.filter(classroom=classroom, parents=request.user).values_list("pk", flat=True)
        )
        summaries = [s for s in summaries if s.student_id in child_ids]
        history = [r for r in history if r.student_id in child_ids]

    context.update({
        "is_teacher": is_teacher,
        "summaries": summaries,
        "history": history,
        "form": AwardPointsForm(classroom=classroom) if is_teacher else None,
        "positive_behaviors": DEFAULT_POSITIVE_BEHAVIORS,
        "negative_behaviors": DEFAULT_NEGATIVE_BEHAVIORS,
    })
    return render(request, "points/overview.html", context)


@login_required
@require_POST
def award(request):
    classroom = get_selected_classroom(request)
    if not is_classroom_teacher(request.user, classroom):
        raise Http404

    form = AwardPointsForm(request.POST, classroom=classroom)
    if form.is_valid():
        try:
            records = services.award_points_to_students(
                form.cleaned_data["students"],
                classroom,
                form.cleaned_data["behavior"],
                request.user,
                form.cleaned_data["note"],
            )
        except (AuthorizationError, ValidationError) as exc:
            messages.error(request, str(exc))
        else:
            behavior = records[0].behavior_name if records else ""
            messages.success(request, f"{behavior} recorded for {len(records)} student(s).")
    else:
        messages.error(request, "Pick at least one student and a behavior.")
    return redirect("points:overview")


@login_required
def student_history(request, pk):
    student = get_object_or_404(Student.objects.select_related("classroom"), pk=pk)
    classroom = student.classroom
    is_teacher = is_classroom_teacher(request.user, classroom)
    if not is_teacher and not (
        is_classroom_member(request.user, classroom) and request.user.pk in student.parent_ids
    ):
        raise Http404
    return render(request, "points/student_history.html", {
        "student": student,
        "summary": services.student_summary(student, classroom),
        "history": services.points_history(student),
        "is_teacher": is_teacher,
    })


@login_required
@require_POST
def record_delete(request, pk):
    record = get_object_or_404(PointRecord.objects.select_related("classroom", "student"), pk=pk)
    try:
        services.delete_point_record(record, actor=request.user)
    except AuthorizationError:
        raise Http404
    messages.success(request, "Point record removed.")
    return redirect("points:student_history", pk=record.student_id)


@login_required
@require_POST
def student_reset(request, pk):
    student = get_object_or_404(Student.objects.select_related("classroom"), pk=pk)
    try:
        services.reset_student_points(student, student.classroom, actor=request.user)
    except AuthorizationError:
        raise Http404
    messages.success(request, f"{student.first_name}'s points have been reset.")
    return redirect("points:student_history", pk=student.pk)
