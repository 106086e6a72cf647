from django.shortcuts import get_object_or_404, render

from core.models import District, School
from core.permissions import (
    ADMIN_LEVELS,
    SUPER_ADMIN,
    admin_level_required,
    can_view_district,
    can_view_school,
)

from . import services


def _forbidden(request, reason):
    return render(request, "403.html", {"reason": reason}, status=403)


@admin_level_required(SUPER_ADMIN)
def overview(request):
    """Platform-wide totals and recent activity."""
    return render(request, "reports/overview.html", {"stats": services.get_super_admin_stats()})


@admin_level_required(*ADMIN_LEVELS)
def district_report(request, pk):
    district = get_object_or_404(District, pk=pk)
    if not can_view_district(request.user, district):
        return _forbidden(request, "You don't have access to this district.")
    stats = services.get_district_stats(district)
    return render(request, "reports/district.html", {
        "district": district,
        "stats": stats,
    })


@admin_level_required(*ADMIN_LEVELS)
def school_report(request, pk):
    school = get_object_or_404(School.objects.select_related("district"), pk=pk)
    if not can_view_school(request.user, school):
        return _forbidden(request, "You don't have access to this school.")
    stats = services.get_school_stats(school)
    return render(request, "reports/school.html", {
        "school": school,
        "stats": stats,
        "top_classrooms": services.top_classrooms(stats.classrooms, limit=5),
    })
