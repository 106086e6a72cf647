import logging

from django.db import IntegrityError, transaction

from core import emails, realtime
from core.errors import (
    AuthorizationError,
    EmailDeliveryError,
    NotFoundError,
    ValidationError,
)
from students.models import Student

from .models import Classroom, generate_class_code, normalize_class_code
from .utils import get_user_classrooms

logger = logging.getLogger(__name__)


def classroom_snapshot(classroom_id):
    """Current state of one classroom as a dict, or None once it is deleted."""
    classroom = Classroom.objects.select_related("teacher").filter(pk=classroom_id).first()
    return classroom.snapshot() if classroom else None


def students_snapshot(classroom_id):
    students = Student.objects.filter(classroom_id=classroom_id).prefetch_related("parents")
    return [student.snapshot() for student in students]


class ClassroomDirectory:
    """Classrooms visible to a user, join-by-code, and the student roster."""

    MAX_CODE_ATTEMPTS = 10

    @classmethod
    def create_classroom(cls, teacher, name: str, grade_level: str = "", school=None) -> Classroom:
        """Create a classroom owned by *teacher* with a fresh unique class code."""
        if teacher.role != "teacher":
            raise AuthorizationError("Only teachers can create classrooms.")
        name = (name or "").strip()
        if not name:
            raise ValidationError("Classroom name is required.")

        for _ in range(cls.MAX_CODE_ATTEMPTS):
            code = generate_class_code()
            if Classroom.objects.filter(class_code=code).exists():
                continue
            try:
                with transaction.atomic():
                    classroom = Classroom.objects.create(
                        name=name,
                        grade_level=(grade_level or "").strip(),
                        teacher=teacher,
                        school=school,
                        class_code=code,
                    )
            except IntegrityError:
                logger.warning("Class code %s collided on insert; retrying", code)
                continue
            logger.info("Teacher %s created classroom %s (%s)", teacher.pk, classroom.pk, code)
            return classroom
        raise ValidationError("Could not generate a unique class code. Please try again.")

    @staticmethod
    def list_for_user(user, role: str | None = None) -> list:
        """Classrooms for the user in creation order, chosen by role."""
        return list(get_user_classrooms(user, role))

    @staticmethod
    def get_by_code(code) -> Classroom:
        """Look up a classroom by class code, ignoring case and whitespace.

        Raises:
            NotFoundError: no classroom has this code.
        """
        normalized = normalize_class_code(code)
        if not normalized:
            raise NotFoundError("Invalid class code")
        try:
            return Classroom.objects.select_related("teacher").get(class_code=normalized)
        except Classroom.DoesNotExist:
            raise NotFoundError("Invalid class code")

    @classmethod
    def join_with_code(cls, code, parent) -> Classroom:
        """Add *parent* to the classroom with this code.

        Joining a classroom the parent already belongs to is a no-op.

        Raises:
            NotFoundError: the code matches no classroom.
            AuthorizationError: the user is not a parent.
        """
        classroom = cls.get_by_code(code)
        if getattr(parent, "role", None) != "parent":
            raise AuthorizationError("Only parents can join classrooms with a class code.")

        with transaction.atomic():
            if classroom.parents.filter(pk=parent.pk).exists():
                logger.info("Parent %s is already in classroom %s", parent.pk, classroom.pk)
                return classroom
            classroom.parents.add(parent)

        logger.info("Parent %s joined classroom %s", parent.pk, classroom.pk)
        student_name = ", ".join(
            student.first_name
            for student in Student.objects.filter(classroom=classroom, parents=parent)
        )
        try:
            emails.send_parent_joined_email(classroom.teacher, parent, classroom, student_name)
        except EmailDeliveryError:
            logger.warning("Parent-joined email for classroom %s was not delivered", classroom.pk)
        return classroom

    @staticmethod
    def members(classroom) -> list:
        """Teacher first, then parents in join order."""
        return [classroom.teacher, *classroom.parents.order_by("pk")]

    # Roster -----------------------------------------------------------------

    @staticmethod
    def students_for_class(classroom) -> list:
        return list(
            Student.objects.filter(classroom=classroom)
            .prefetch_related("parents")
            .order_by("last_name", "first_name", "id")
        )

    @staticmethod
    def add_student(classroom, first_name: str, last_name: str = "", parents=(), actor=None) -> Student:
        if actor is not None and classroom.teacher_id != actor.pk:
            raise AuthorizationError("Only the classroom teacher can add students.")
        first_name = (first_name or "").strip()
        if not first_name:
            raise ValidationError("First name is required.")
        with transaction.atomic():
            student = Student.objects.create(
                classroom=classroom,
                first_name=first_name,
                last_name=(last_name or "").strip(),
            )
            if parents:
                student.parents.add(*parents)
        return student

    @staticmethod
    def link_parent_to_student(student, parent) -> Student:
        """Link a parent account to a student; linking twice is a no-op."""
        if getattr(parent, "role", None) != "parent":
            raise AuthorizationError("Only parent accounts can be linked to a student.")
        if not student.parents.filter(pk=parent.pk).exists():
            student.parents.add(parent)
            logger.info("Linked parent %s to student %s", parent.pk, student.pk)
        return student

    @staticmethod
    def remove_student(student, actor=None) -> None:
        if actor is not None and student.classroom.teacher_id != actor.pk:
            raise AuthorizationError("Only the classroom teacher can remove students.")
        student.delete()

    # Live updates -------------------------------------------------------------

    @staticmethod
    def subscribe_to_classroom(classroom_id, callback) -> realtime.Subscription:
        """Push the full classroom dict (or None once deleted) on every change."""
        return realtime.subscribe(realtime.classroom_topic(classroom_id), callback)

    @staticmethod
    def subscribe_to_students(classroom_id, callback) -> realtime.Subscription:
        """Push the full roster list on every change to it."""
        return realtime.subscribe(realtime.students_topic(classroom_id), callback)
