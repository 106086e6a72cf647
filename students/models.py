from django.conf import settings
from django.db import models


class Student(models.Model):
    """A child on a classroom roster, linked to zero or more parent accounts."""

    classroom = models.ForeignKey(
        "classrooms.Classroom",
        on_delete=models.CASCADE,
        related_name="students",
    )
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100, blank=True)
    parents = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="children",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["last_name", "first_name", "id"]

    def __str__(self):
        return self.get_full_name()

    def get_full_name(self):
        if self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name

    @property
    def initials(self):
        first = self.first_name[:1].upper()
        last = self.last_name[:1].upper()
        return f"{first}{last}"

    @property
    def parent_ids(self):
        return list(self.parents.order_by("pk").values_list("pk", flat=True))

    def snapshot(self):
        return {
            "id": self.pk,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "class_id": self.classroom_id,
            "parent_ids": self.parent_ids,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
