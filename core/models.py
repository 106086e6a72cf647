from django.conf import settings
from django.db import models


class District(models.Model):
    """Top-level organization that groups schools."""

    name = models.CharField(max_length=200)
    code = models.CharField(max_length=50, unique=True)
    address = models.CharField(max_length=200, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=50, blank=True)
    zip_code = models.CharField(max_length=20, blank=True)
    phone = models.CharField(max_length=30, blank=True)
    admins = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="administered_districts",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.code})"

    @property
    def admin_ids(self):
        return list(self.admins.values_list("pk", flat=True))


class School(models.Model):
    """A school inside a district; classrooms may link to one."""

    district = models.ForeignKey(
        District,
        on_delete=models.CASCADE,
        related_name="schools",
    )
    name = models.CharField(max_length=200)
    code = models.CharField(max_length=50)
    address = models.CharField(max_length=200, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=50, blank=True)
    zip_code = models.CharField(max_length=20, blank=True)
    phone = models.CharField(max_length=30, blank=True)
    principal = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="principal_of",
    )
    admins = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="administered_schools",
    )
    grade_levels_csv = models.CharField(
        "grade levels",
        max_length=100,
        blank=True,
        help_text="Comma-separated, e.g. K,1,2,3,4,5",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["district", "code"],
                name="unique_school_code_per_district",
            ),
        ]

    def __str__(self):
        return self.name

    @property
    def grade_levels(self):
        return [level.strip() for level in self.grade_levels_csv.split(",") if level.strip()]

    @grade_levels.setter
    def grade_levels(self, levels):
        self.grade_levels_csv = ",".join(str(level).strip() for level in levels)

    @property
    def admin_ids(self):
        return list(self.admins.values_list("pk", flat=True))
