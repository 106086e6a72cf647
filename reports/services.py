"""Read-only aggregations for the admin report pages."""

import math
from dataclasses import dataclass, field

from django.contrib.auth import get_user_model
from django.db.models import Count, Sum

from classrooms.models import Classroom
from core.models import District, School
from messaging.models import Message
from points.models import PointRecord
from stories.models import Story
from students.models import Student

User = get_user_model()

RECENT_LIMIT = 20


def average_points(total_points: int, student_count: int) -> int:
    """Points per student rounded half up; 0 for an empty classroom."""
    if student_count <= 0:
        return 0
    return math.floor(total_points / student_count + 0.5)


@dataclass
class ClassroomStats:
    classroom_id: int
    classroom_name: str
    teacher_name: str
    student_count: int = 0
    parent_count: int = 0
    total_points: int = 0
    story_count: int = 0
    message_count: int = 0

    @property
    def avg_points_per_student(self) -> int:
        return average_points(self.total_points, self.student_count)


@dataclass
class SchoolStats:
    school_id: int
    school_name: str
    classroom_count: int = 0
    teacher_count: int = 0
    student_count: int = 0
    parent_count: int = 0
    total_points: int = 0
    story_count: int = 0
    message_count: int = 0
    classrooms: list = field(default_factory=list)


@dataclass
class DistrictStats:
    district_id: int
    district_name: str
    school_count: int = 0
    classroom_count: int = 0
    teacher_count: int = 0
    student_count: int = 0
    parent_count: int = 0
    total_points: int = 0
    story_count: int = 0
    message_count: int = 0
    schools: list = field(default_factory=list)


def classroom_stats(classroom) -> ClassroomStats:
    return ClassroomStats(
        classroom_id=classroom.pk,
        classroom_name=classroom.name,
        teacher_name=classroom.teacher.display_name if classroom.teacher_id else "Unknown",
        student_count=Student.objects.filter(classroom=classroom).count(),
        parent_count=classroom.parents.count(),
        total_points=PointRecord.objects.filter(classroom=classroom).aggregate(
            total=Sum("points"),
        )["total"] or 0,
        story_count=Story.objects.filter(classroom=classroom).count(),
        message_count=Message.objects.filter(conversation__classroom=classroom).count(),
    )


def get_school_stats(school) -> SchoolStats:
    """Totals for one school plus a row per classroom."""
    classrooms = list(
        Classroom.objects.filter(school=school).select_related("teacher").order_by("created_at", "id")
    )
    rows = [classroom_stats(classroom) for classroom in classrooms]

    teacher_ids = {classroom.teacher_id for classroom in classrooms}
    teacher_ids.update(
        User.objects.teachers().filter(school=school).values_list("pk", flat=True)
    )
    parent_count = (
        User.objects.filter(joined_classrooms__school=school).distinct().count()
    )

    return SchoolStats(
        school_id=school.pk,
        school_name=school.name,
        classroom_count=len(classrooms),
        teacher_count=len(teacher_ids),
        student_count=sum(row.student_count for row in rows),
        parent_count=parent_count,
        total_points=sum(row.total_points for row in rows),
        story_count=sum(row.story_count for row in rows),
        message_count=sum(row.message_count for row in rows),
        classrooms=rows,
    )


def get_district_stats(district) -> DistrictStats:
    """Sums over the district's schools."""
    schools = [get_school_stats(school) for school in district.schools.order_by("name", "id")]
    stats = DistrictStats(
        district_id=district.pk,
        district_name=district.name,
        school_count=len(schools),
        schools=schools,
    )
    for school in schools:
        stats.classroom_count += school.classroom_count
        stats.teacher_count += school.teacher_count
        stats.student_count += school.student_count
        stats.parent_count += school.parent_count
        stats.total_points += school.total_points
        stats.story_count += school.story_count
        stats.message_count += school.message_count
    return stats


def get_super_admin_stats() -> dict:
    return {
        "districts": list(District.objects.annotate(school_count=Count("schools")).order_by("name")),
        "total_schools": School.objects.count(),
        "total_classrooms": Classroom.objects.count(),
        "total_teachers": User.objects.teachers().count(),
        "total_students": Student.objects.count(),
        "total_parents": User.objects.parents().count(),
        "recent_stories": list(
            Story.objects.select_related("classroom").order_by("-created_at", "-id")[:RECENT_LIMIT]
        ),
        "recent_activity": list(
            PointRecord.objects.select_related("student", "classroom")
            .order_by("-created_at", "-id")[:RECENT_LIMIT]
        ),
    }


def top_classrooms(stats, limit: int | None = None) -> list:
    """Highest average points per student first; ties keep input order."""
    ranked = sorted(stats, key=lambda row: row.avg_points_per_student, reverse=True)
    return ranked[:limit] if limit is not None else ranked
