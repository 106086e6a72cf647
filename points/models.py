from django.conf import settings
from django.db import models


class PointRecord(models.Model):
    """One award or deduction for a student in a classroom."""

    student = models.ForeignKey(
        "students.Student",
        on_delete=models.CASCADE,
        related_name="point_records",
    )
    classroom = models.ForeignKey(
        "classrooms.Classroom",
        on_delete=models.CASCADE,
        related_name="point_records",
    )
    behavior_id = models.CharField(max_length=50, blank=True)
    behavior_name = models.CharField(max_length=100)
    points = models.IntegerField()
    note = models.TextField(blank=True)
    awarded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="awarded_points",
    )
    awarded_by_name = models.CharField(max_length=150, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        sign = "+" if self.points > 0 else ""
        return f"{self.student} {sign}{self.points} ({self.behavior_name})"


class StudentPointsSummary(models.Model):
    """Running totals for a student in a classroom."""

    student = models.ForeignKey(
        "students.Student",
        on_delete=models.CASCADE,
        related_name="points_summaries",
    )
    classroom = models.ForeignKey(
        "classrooms.Classroom",
        on_delete=models.CASCADE,
        related_name="points_summaries",
    )
    total_points = models.IntegerField(default=0)
    positive_count = models.PositiveIntegerField(default=0)
    negative_count = models.PositiveIntegerField(default=0)
    last_updated = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "student points summaries"
        ordering = ["-total_points", "student__first_name"]
        constraints = [
            models.UniqueConstraint(
                fields=["student", "classroom"],
                name="unique_points_summary_per_student_classroom",
            ),
        ]

    def __str__(self):
        return f"{self.student}: {self.total_points} pts"
