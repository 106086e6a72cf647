"""Centralized role and admin-level permission helpers.

Vocabulary:
- *member* of a classroom: its teacher, or a parent who joined it.
- *scope* of an admin: everything for ``super_admin``; one district for
  ``district_admin``; one school for ``principal`` / ``school_admin``.

Unknown or missing admin levels grant no report scope here; only the
dashboard router has a configurable fallback for them.
"""

from functools import wraps

from django.http import JsonResponse
from django.shortcuts import render

SUPER_ADMIN = "super_admin"
DISTRICT_ADMIN = "district_admin"
PRINCIPAL = "principal"
SCHOOL_ADMIN = "school_admin"

ADMIN_LEVELS = (SUPER_ADMIN, DISTRICT_ADMIN, PRINCIPAL, SCHOOL_ADMIN)
SCHOOL_LEVELS = (PRINCIPAL, SCHOOL_ADMIN)


def admin_level(user):
    """Return the user's admin level, or None for non-admins."""
    if not getattr(user, "is_authenticated", False) or user.role != "admin":
        return None
    return user.admin_level or None


def is_super_admin(user):
    return admin_level(user) == SUPER_ADMIN


def is_classroom_teacher(user, classroom):
    return classroom is not None and classroom.teacher_id == getattr(user, "pk", None)


def is_classroom_member(user, classroom):
    """Return True if user teaches the classroom or has joined it as a parent."""
    if classroom is None or not getattr(user, "is_authenticated", False):
        return False
    if is_classroom_teacher(user, classroom):
        return True
    return classroom.parents.filter(pk=user.pk).exists()


def can_view_district(user, district):
    level = admin_level(user)
    if district is None or level is None:
        return False
    if level == SUPER_ADMIN:
        return True
    if level == DISTRICT_ADMIN:
        return user.district_id == district.pk or district.admins.filter(pk=user.pk).exists()
    return False


def can_view_school(user, school):
    level = admin_level(user)
    if school is None or level is None:
        return False
    if level in (SUPER_ADMIN, DISTRICT_ADMIN):
        return can_view_district(user, school.district)
    if level in SCHOOL_LEVELS:
        return (
            user.school_id == school.pk
            or school.principal_id == user.pk
            or school.admins.filter(pk=user.pk).exists()
        )
    return False


def admin_level_required(*levels, json=False):
    """View decorator: 401 for anonymous users, 403 unless the admin level is in *levels*."""

    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            user = request.user
            if not user.is_authenticated:
                if json:
                    return JsonResponse({"error": "Not authenticated"}, status=401)
                return render(request, "403.html", {"reason": "Please sign in."}, status=401)
            if admin_level(user) not in levels:
                if json:
                    return JsonResponse({"error": "Not authorized"}, status=403)
                return render(request, "403.html", {"reason": "Admin access required."}, status=403)
            return view(request, *args, **kwargs)

        return wrapper

    return decorator
