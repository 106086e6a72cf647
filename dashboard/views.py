from django.contrib.auth.views import redirect_to_login
from django.shortcuts import redirect, render

from accounts.services import AuthGateway
from classrooms.services import ClassroomDirectory
from classrooms.utils import get_selected_classroom
from core.permissions import can_view_district, can_view_school, is_super_admin
from messaging.services import MessagingService
from points import services as points_services
from reports import services as report_services
from stories import services as story_services

from .router import Screen, route

RECENT = 5


def _inbox(user):
    conversations = MessagingService.list_for_user(user)
    return {
        "conversations": [
            {
                "conversation": conversation,
                "other_name": conversation.other_participant_name(user),
                "unread": conversation.unread_for(user),
            }
            for conversation in conversations[:RECENT]
        ],
        "total_unread": sum(conversation.unread_for(user) for conversation in conversations),
    }


def teacher_context(request):
    user = request.user
    classroom = get_selected_classroom(request)
    context = {
        "classrooms": ClassroomDirectory.list_for_user(user),
        "classroom": classroom,
        **_inbox(user),
    }
    if classroom is not None:
        context.update({
            "students": ClassroomDirectory.students_for_class(classroom),
            "parent_count": classroom.parents.count(),
            "stories": story_services.stories_for_class(classroom, limit=RECENT),
            "leaders": points_services.class_summaries(classroom)[:RECENT],
        })
    return context


def parent_context(request):
    user = request.user
    classroom = get_selected_classroom(request)
    children = list(user.children.select_related("classroom").order_by("first_name"))
    context = {
        "classrooms": ClassroomDirectory.list_for_user(user, role="parent"),
        "classroom": classroom,
        "children": children,
        "summaries": [
            (child, points_services.student_summary(child, child.classroom)) for child in children
        ],
        **_inbox(user),
    }
    if classroom is not None:
        context["stories"] = story_services.stories_for_class(classroom, limit=RECENT)
    return context


def admin_context(request):
    # Admins without a recognised level can land here; they get no data.
    if not is_super_admin(request.user):
        return {"stats": None}
    return {"stats": report_services.get_super_admin_stats()}


def district_admin_context(request):
    user = request.user
    district = user.district or user.administered_districts.order_by("pk").first()
    if district is None or not can_view_district(user, district):
        return {"district": None, "stats": None}
    return {"district": district, "stats": report_services.get_district_stats(district)}


def principal_context(request):
    user = request.user
    school = (
        user.school
        or user.principal_of.order_by("pk").first()
        or user.administered_schools.order_by("pk").first()
    )
    if school is None or not can_view_school(user, school):
        return {"school": None, "stats": None, "top_classrooms": []}
    stats = report_services.get_school_stats(school)
    return {
        "school": school,
        "stats": stats,
        "top_classrooms": report_services.top_classrooms(stats.classrooms, limit=RECENT),
    }


SCREEN_CONTEXT = {
    Screen.EMAIL_CONFIRMATION: lambda request: {},
    Screen.TEACHER: teacher_context,
    Screen.PARENT: parent_context,
    Screen.ADMIN: admin_context,
    Screen.DISTRICT_ADMIN: district_admin_context,
    Screen.PRINCIPAL: principal_context,
}


def dashboard_view(request):
    """Render the dashboard screen picked by the router for this user."""
    user = request.user
    screen = route(
        is_loading=False,
        needs_email_confirmation=AuthGateway.needs_email_confirmation(user),
        is_authenticated=user.is_authenticated,
        role=getattr(user, "role", None),
        admin_level=getattr(user, "admin_level", None),
    )
    if screen is Screen.LOGIN:
        return redirect_to_login(request.get_full_path())
    if screen is Screen.ACCOUNT_SETUP:
        return redirect("accounts:setup")

    context = SCREEN_CONTEXT[screen](request)
    context["screen"] = screen
    return render(request, f"dashboard/{screen.value}.html", context)
