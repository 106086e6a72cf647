import secrets

from django.conf import settings
from django.db import models

CLASS_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CLASS_CODE_LENGTH = 6


def generate_class_code() -> str:
    """Random 6-character code without the look-alike characters I, O, 0 and 1."""
    return "".join(secrets.choice(CLASS_CODE_ALPHABET) for _ in range(CLASS_CODE_LENGTH))


def normalize_class_code(code) -> str:
    return (code or "").strip().upper()


def is_valid_class_code(code) -> bool:
    code = normalize_class_code(code)
    return len(code) == CLASS_CODE_LENGTH and all(ch in CLASS_CODE_ALPHABET for ch in code)


class Classroom(models.Model):
    """A teacher-owned group with a join code, students and parent members."""

    name = models.CharField(max_length=200)
    grade_level = models.CharField(max_length=50, blank=True)
    teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="taught_classrooms",
    )
    school = models.ForeignKey(
        "core.School",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="classrooms",
    )
    class_code = models.CharField(max_length=CLASS_CODE_LENGTH, unique=True, db_index=True)
    parents = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="joined_classrooms",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"{self.name} ({self.class_code})"

    def save(self, *args, **kwargs):
        if not self.class_code:
            self.class_code = generate_class_code()
        else:
            self.class_code = normalize_class_code(self.class_code)
        super().save(*args, **kwargs)

    @property
    def teacher_name(self):
        return self.teacher.display_name

    @property
    def student_ids(self):
        return list(self.students.values_list("pk", flat=True))

    @property
    def parent_ids(self):
        return list(self.parents.order_by("pk").values_list("pk", flat=True))

    def snapshot(self):
        """Plain-dict view pushed to live subscribers."""
        return {
            "id": self.pk,
            "name": self.name,
            "grade_level": self.grade_level,
            "teacher_id": self.teacher_id,
            "teacher_name": self.teacher_name,
            "class_code": self.class_code,
            "school_id": self.school_id,
            "student_ids": self.student_ids,
            "parent_ids": self.parent_ids,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
