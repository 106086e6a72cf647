import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from core import emails
from core.errors import AuthorizationError, EmailDeliveryError, ValidationError

from .behaviors import Behavior, get_behavior
from .models import PointRecord, StudentPointsSummary

logger = logging.getLogger(__name__)


def _resolve_behavior(behavior) -> Behavior:
    if isinstance(behavior, Behavior):
        return behavior
    resolved = get_behavior(behavior)
    if resolved is None:
        raise ValidationError(f"Unknown behavior: {behavior}.")
    return resolved


def _check_teacher(classroom, user):
    if user is None or classroom.teacher_id != user.pk:
        raise AuthorizationError("Only the classroom teacher can change points.")


def _apply_to_summary(student, classroom, points: int, reverse: bool = False) -> StudentPointsSummary:
    """Upsert the summary row for one award, or take one award back out."""
    summary, _ = StudentPointsSummary.objects.select_for_update().get_or_create(
        student=student, classroom=classroom,
    )
    step = -1 if reverse else 1
    summary.total_points += step * points
    if points > 0:
        summary.positive_count = max(0, summary.positive_count + step)
    elif points < 0:
        summary.negative_count = max(0, summary.negative_count + step)
    summary.save()
    return summary


def crossed_milestones(old_total: int, new_total: int) -> list[tuple[int, str]]:
    """Milestones reached by moving from *old_total* up to *new_total*."""
    milestones = getattr(settings, "HALLPASS_POINT_MILESTONES", {}) or {}
    return [
        (threshold, name)
        for threshold, name in sorted(milestones.items())
        if old_total < threshold <= new_total
    ]


def notify_milestones(student, old_total: int, new_total: int) -> int:
    """Email the student's parents for each milestone crossed. Returns emails sent."""
    sent = 0
    for threshold, name in crossed_milestones(old_total, new_total):
        for parent in student.parents.all():
            try:
                emails.send_points_milestone_email(parent, student.first_name, new_total, name)
            except EmailDeliveryError:
                logger.warning(
                    "Milestone email (%s) to parent %s for student %s was not delivered",
                    threshold, parent.pk, student.pk,
                )
            else:
                sent += 1
    return sent


def award_points(student, classroom, behavior, awarded_by, note: str = "") -> PointRecord:
    """Record an award or deduction and update the student's running total.

    Raises:
        AuthorizationError: *awarded_by* does not teach the classroom.
        ValidationError: unknown behavior, or the student is not on the roster.
    """
    behavior = _resolve_behavior(behavior)
    _check_teacher(classroom, awarded_by)
    if student.classroom_id != classroom.pk:
        raise ValidationError("That student is not in this classroom.")

    with transaction.atomic():
        record = PointRecord.objects.create(
            student=student,
            classroom=classroom,
            behavior_id=behavior.id,
            behavior_name=behavior.name,
            points=behavior.points,
            note=(note or "").strip(),
            awarded_by=awarded_by,
            awarded_by_name=awarded_by.display_name,
        )
        summary = _apply_to_summary(student, classroom, behavior.points)

    logger.info(
        "Teacher %s gave %s %+d (%s)", awarded_by.pk, student.pk, behavior.points, behavior.id,
    )
    if behavior.points > 0:
        notify_milestones(student, summary.total_points - behavior.points, summary.total_points)
    return record


def award_points_to_students(students, classroom, behavior, awarded_by, note: str = "") -> list:
    return [award_points(student, classroom, behavior, awarded_by, note) for student in students]


def points_history(student, limit: int = 50) -> list:
    return list(PointRecord.objects.filter(student=student).order_by("-created_at", "-id")[:limit])


def class_points_history(classroom, limit: int = 100) -> list:
    return list(
        PointRecord.objects.filter(classroom=classroom)
        .select_related("student")
        .order_by("-created_at", "-id")[:limit]
    )


def student_summary(student, classroom):
    return StudentPointsSummary.objects.filter(student=student, classroom=classroom).first()


def class_summaries(classroom) -> list:
    """Per-student totals, highest first."""
    return list(
        StudentPointsSummary.objects.filter(classroom=classroom)
        .select_related("student")
        .order_by("-total_points", "student__first_name", "id")
    )


def delete_point_record(record, actor=None) -> None:
    """Delete a record and take its points back out of the summary."""
    if actor is not None:
        _check_teacher(record.classroom, actor)
    with transaction.atomic():
        _apply_to_summary(record.student, record.classroom, record.points, reverse=True)
        record.delete()


def reset_student_points(student, classroom, actor=None) -> int:
    """Delete every record for the student in this classroom and zero the summary."""
    if actor is not None:
        _check_teacher(classroom, actor)
    with transaction.atomic():
        deleted, _ = PointRecord.objects.filter(student=student, classroom=classroom).delete()
        StudentPointsSummary.objects.filter(student=student, classroom=classroom).update(
            total_points=0, positive_count=0, negative_count=0, last_updated=timezone.now(),
        )
    logger.info("Reset points for student %s in classroom %s", student.pk, classroom.pk)
    return deleted
