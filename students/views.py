from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.http import Http404
from django.shortcuts import get_object_or_404, redirect, render

from classrooms.services import ClassroomDirectory
from classrooms.utils import get_selected_classroom
from core.errors import AuthorizationError, ValidationError
from core.permissions import is_classroom_member, is_classroom_teacher

from .forms import LinkParentForm, StudentForm
from .models import Student


def _student_for_member(request, pk):
    student = get_object_or_404(Student.objects.select_related("classroom"), pk=pk)
    if not is_classroom_member(request.user, student.classroom):
        raise Http404
    return student


@login_required
def student_list(request):
    """Roster of the selected classroom; parents only see their own children."""
    classroom = get_selected_classroom(request)
    students = []
    can_edit = False
    if classroom is not None:
        can_edit = is_classroom_teacher(request.user, classroom)
        students = ClassroomDirectory.students_for_class(classroom)
        if not can_edit:
            students = [s for s in students if request.user.pk in s.parent_ids]
    return render(request, "students/student_list.html", {
        "classroom": classroom,
        "students": students,
        "can_edit": can_edit,
    })


@login_required
def student_create(request):
    """Add a student to the selected classroom (classroom teacher only)."""
    classroom = get_selected_classroom(request)
    if not is_classroom_teacher(request.user, classroom):
        raise Http404

    form = StudentForm(request.POST or None)
    if request.method == "POST" and form.is_valid():
        try:
            student = ClassroomDirectory.add_student(
                classroom,
                form.cleaned_data["first_name"],
                form.cleaned_data["last_name"],
                actor=request.user,
            )
        except (AuthorizationError, ValidationError) as exc:
            form.add_error(None, str(exc))
        else:
            messages.success(request, f"{student.first_name} has been added.")
            return redirect("students:student_list")

    return render(request, "students/student_form.html", {"form": form, "classroom": classroom})


@login_required
def student_detail(request, pk):
    """View a student; the teacher can link parents from here."""
    student = _student_for_member(request, pk)
    classroom = student.classroom
    can_edit = is_classroom_teacher(request.user, classroom)
    if not can_edit and request.user.pk not in student.parent_ids:
        raise Http404
    return render(request, "students/student_detail.html", {
        "student": student,
        "parents": student.parents.order_by("name"),
        "can_edit": can_edit,
        "link_form": LinkParentForm(classroom=classroom) if can_edit else None,
    })


@login_required
def student_link_parent(request, pk):
    student = _student_for_member(request, pk)
    if not is_classroom_teacher(request.user, student.classroom) or request.method != "POST":
        raise Http404

    form = LinkParentForm(request.POST, classroom=student.classroom)
    if form.is_valid():
        try:
            ClassroomDirectory.link_parent_to_student(student, form.cleaned_data["parent"])
        except AuthorizationError as exc:
            messages.error(request, str(exc))
        else:
            messages.success(
                request,
                f"Linked {form.cleaned_data['parent'].display_name} to {student.first_name}.",
            )
    else:
        messages.error(request, "Choose a parent who has joined this classroom.")
    return redirect("students:student_detail", pk=student.pk)


@login_required
def student_delete(request, pk):
    """Remove a student with confirmation (classroom teacher only)."""
    student = _student_for_member(request, pk)
    if not is_classroom_teacher(request.user, student.classroom):
        raise Http404

    if request.method == "POST":
        name = student.first_name
        ClassroomDirectory.remove_student(student, actor=request.user)
        messages.success(request, f"{name} has been removed from the roster.")
        return redirect("students:student_list")

    return render(request, "students/student_confirm_delete.html", {"student": student})
