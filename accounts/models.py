from django.contrib.auth.models import AbstractUser
from django.db import models

from .managers import CustomerUserManager


class CustomUser(AbstractUser):
    """Project user model based on Django's ``AbstractUser``.

    Attributes:
        email: Unique, indexed email address used to sign in.
        name: Display name shown to other classroom members.
        role: ``teacher`` | ``parent`` | ``student`` | ``admin``; blank until
            the account profile has been set up.
        admin_level: Privilege tier for admins; blank for everyone else.
        email_confirmed: Set once the confirmation link has been followed.
    """

    TEACHER = "teacher"
    PARENT = "parent"
    STUDENT = "student"
    ADMIN = "admin"
    ROLE_CHOICES = [
        (TEACHER, "Teacher"),
        (PARENT, "Parent"),
        (STUDENT, "Student"),
        (ADMIN, "Admin"),
    ]
    SIGNUP_ROLES = (TEACHER, PARENT)

    SUPER_ADMIN = "super_admin"
    DISTRICT_ADMIN = "district_admin"
    PRINCIPAL = "principal"
    SCHOOL_ADMIN = "school_admin"
    ADMIN_LEVEL_CHOICES = [
        (SUPER_ADMIN, "Super Admin"),
        (DISTRICT_ADMIN, "District Admin"),
        (PRINCIPAL, "Principal"),
        (SCHOOL_ADMIN, "School Admin"),
    ]

    email = models.EmailField("email address", unique=True, db_index=True)
    name = models.CharField(max_length=150, blank=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, blank=True)
    admin_level = models.CharField(max_length=20, choices=ADMIN_LEVEL_CHOICES, blank=True)
    district = models.ForeignKey(
        "core.District",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="members",
    )
    school = models.ForeignKey(
        "core.School",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="members",
    )
    email_confirmed = models.BooleanField(default=False)

    objects = CustomerUserManager()

    def __str__(self) -> str:
        """Return string representation as ``name (role)``."""
        return f"{self.display_name} ({self.role or 'no role'})"

    @property
    def display_name(self) -> str:
        return self.name or self.get_full_name() or self.email or self.username

    @property
    def has_profile(self) -> bool:
        return bool(self.role)

    @property
    def class_ids(self) -> list:
        """IDs of the classrooms this user teaches or has joined as a parent."""
        if self.role == self.TEACHER:
            return list(self.taught_classrooms.values_list("pk", flat=True))
        return list(self.joined_classrooms.values_list("pk", flat=True))

    @property
    def student_ids(self) -> list:
        return list(self.children.values_list("pk", flat=True))
