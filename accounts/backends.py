from django.contrib.auth import get_user_model
from django.db.models import Q

User = get_user_model()


class EmailOrUsernameModelBackend:
    """Authenticate with an email address (or, for staff accounts, a username).

    Both comparisons are case-insensitive; surrounding whitespace is ignored.
    """

    def authenticate(self, request, username: str | None = None, password: str | None = None, email: str | None = None, **kwargs):
        """Authenticate a user by email or username and password.

        Args:
            request: HttpRequest object (may be None outside a request).
            username: The email or username typed by the user.
            password: The raw password.
            email: Alternative keyword used by the sign-in service.
            **kwargs: Additional keyword arguments.

        Returns:
            CustomUser | None: Authenticated user or None.
        """
        identifier = (email or username or "").strip()
        if not identifier or not password:
            return None
        try:
            user = User.objects.get(Q(email__iexact=identifier) | Q(username__iexact=identifier))
        except (User.DoesNotExist, User.MultipleObjectsReturned):
            # Run the hasher anyway so timing does not reveal unknown accounts.
            User().set_password(password)
            return None

        if user.check_password(password) and self.user_can_authenticate(user):
            return user
        return None

    def user_can_authenticate(self, user) -> bool:
        """Return True if the user is active (mirrors Django defaults)."""
        is_active = getattr(user, "is_active", None)
        return bool(is_active or is_active is None)

    def get_user(self, user_id: int):
        """Get a user by their primary key (used when restoring the session)."""
        try:
            user = User.objects.get(pk=user_id)
        except User.DoesNotExist:
            return None
        return user if self.user_can_authenticate(user) else None
