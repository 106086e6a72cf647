from django.contrib.auth.models import UserManager


class CustomerUserManager(UserManager):
    """Manager for ``CustomUser``.

    Emails are stored lowercased so sign-in and duplicate checks can compare
    them directly. Accounts created without a username use their email.
    """

    def _create_user(self, username: str | None, email: str | None, password: str | None, **extra_fields):
        email = (self.normalize_email(email) or "").strip().lower()
        return super()._create_user(username or email, email, password, **extra_fields)

    def get_by_email(self, email: str):
        """Case-insensitive lookup. Raises ``DoesNotExist`` for unknown addresses."""
        return self.get(email__iexact=(email or "").strip())

    def with_role(self, role: str):
        return self.get_queryset().filter(role=role)

    def teachers(self):
        return self.with_role("teacher")

    def parents(self):
        return self.with_role("parent")
