from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse

from classrooms.models import Classroom
from core.models import District, School
from messaging.services import MessagingService
from points import services as points_services
from reports import services
from reports.services import ClassroomStats
from stories import services as story_services
from students.models import Student

User = get_user_model()


class AveragePointsTests(TestCase):

    def test_empty_classroom_is_zero(self):
        self.assertEqual(services.average_points(0, 0), 0)
        self.assertEqual(services.average_points(50, 0), 0)

    def test_rounds_half_up(self):
        self.assertEqual(services.average_points(10, 4), 3)
        self.assertEqual(services.average_points(7, 3), 2)
        self.assertEqual(services.average_points(-5, 2), -2)

    def test_top_classrooms_keeps_order_on_ties(self):
        rows = [
            ClassroomStats(1, "A", "T", student_count=2, total_points=10),
            ClassroomStats(2, "B", "T", student_count=1, total_points=9),
            ClassroomStats(3, "C", "T", student_count=1, total_points=5),
            ClassroomStats(4, "D", "T"),
        ]
        ranked = services.top_classrooms(rows)
        self.assertEqual([row.classroom_id for row in ranked], [2, 1, 3, 4])
        self.assertEqual(len(services.top_classrooms(rows, limit=2)), 2)


class ReportTestMixin:
    """One district with two schools; activity in the first school only."""

    @classmethod
    def setUpTestData(cls):
        cls.district = District.objects.create(name="North", code="NORTH")
        cls.other_district = District.objects.create(name="South", code="SOUTH")
        cls.school = School.objects.create(district=cls.district, name="Lincoln", code="LIN")
        cls.quiet_school = School.objects.create(district=cls.district, name="Grant", code="GRA")

        cls.teacher = User.objects.create_user(
            username="teacher", email="teacher@example.com", password="testpass123",
            role="teacher", name="Ms. Frizzle", school=cls.school,
        )
        cls.idle_teacher = User.objects.create_user(
            username="idle", email="idle@example.com", password="testpass123",
            role="teacher", school=cls.school,
        )
        cls.parent = User.objects.create_user(
            username="parent", email="parent@example.com", password="testpass123", role="parent",
        )
        cls.room_a = Classroom.objects.create(name="Room A", teacher=cls.teacher, school=cls.school)
        cls.room_b = Classroom.objects.create(name="Room B", teacher=cls.teacher, school=cls.school)
        cls.room_a.parents.add(cls.parent)
        cls.room_b.parents.add(cls.parent)

        cls.arnold = Student.objects.create(classroom=cls.room_a, first_name="Arnold")
        cls.wanda = Student.objects.create(classroom=cls.room_a, first_name="Wanda")
        points_services.award_points(cls.arnold, cls.room_a, "helping", cls.teacher)
        points_services.award_points(cls.wanda, cls.room_a, "participation", cls.teacher)
        story_services.create_story(cls.room_a, cls.teacher, "Welcome back!")
        conversation = MessagingService.get_or_create_conversation(
            [cls.teacher, cls.parent], classroom=cls.room_a,
        )
        MessagingService.send_message(conversation, cls.parent, "", "Hello")

        cls.super_admin = User.objects.create_user(
            username="super", email="super@example.com", password="testpass123",
            role="admin", admin_level="super_admin",
        )
        cls.district_admin = User.objects.create_user(
            username="dadmin", email="dadmin@example.com", password="testpass123",
            role="admin", admin_level="district_admin", district=cls.district,
        )
        cls.principal = User.objects.create_user(
            username="principal", email="principal@example.com", password="testpass123",
            role="admin", admin_level="principal", school=cls.school,
        )


class StatsTests(ReportTestMixin, TestCase):

    def test_classroom_stats(self):
        stats = services.classroom_stats(self.room_a)

        self.assertEqual(stats.teacher_name, "Ms. Frizzle")
        self.assertEqual(stats.student_count, 2)
        self.assertEqual(stats.parent_count, 1)
        self.assertEqual(stats.total_points, 8)
        self.assertEqual(stats.avg_points_per_student, 4)
        self.assertEqual(stats.story_count, 1)
        self.assertEqual(stats.message_count, 1)

    def test_school_stats(self):
        stats = services.get_school_stats(self.school)

        self.assertEqual(stats.classroom_count, 2)
        self.assertEqual(stats.teacher_count, 2)
        self.assertEqual(stats.parent_count, 1)
        self.assertEqual(stats.student_count, 2)
        self.assertEqual(stats.total_points, 8)
        self.assertEqual([row.classroom_name for row in stats.classrooms], ["Room A", "Room B"])
        self.assertEqual(stats.classrooms[1].avg_points_per_student, 0)

    def test_district_stats_sum_schools(self):
        stats = services.get_district_stats(self.district)

        self.assertEqual(stats.school_count, 2)
        self.assertEqual(stats.classroom_count, 2)
        self.assertEqual(stats.total_points, 8)
        self.assertEqual(stats.message_count, 1)

    def test_super_admin_stats(self):
        stats = services.get_super_admin_stats()

        self.assertEqual(stats["total_schools"], 2)
        self.assertEqual(stats["total_classrooms"], 2)
        self.assertEqual(stats["total_teachers"], 2)
        self.assertEqual(stats["total_students"], 2)
        self.assertEqual(stats["total_parents"], 1)
        self.assertEqual(len(stats["recent_stories"]), 1)
        self.assertEqual(len(stats["recent_activity"]), 2)
        self.assertEqual([d.name for d in stats["districts"]], ["North", "South"])


class ReportViewTests(ReportTestMixin, TestCase):

    def test_anonymous_gets_401(self):
        response = self.client.get(reverse("reports:overview"))
        self.assertEqual(response.status_code, 401)

    def test_teacher_gets_403(self):
        self.client.force_login(self.teacher)
        response = self.client.get(reverse("reports:overview"))
        self.assertEqual(response.status_code, 403)
        self.assertTemplateUsed(response, "403.html")

    def test_super_admin_overview(self):
        self.client.force_login(self.super_admin)
        response = self.client.get(reverse("reports:overview"))
        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "reports/overview.html")

    def test_district_admin_sees_own_district(self):
        self.client.force_login(self.district_admin)
        response = self.client.get(reverse("reports:district_report", args=[self.district.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context["stats"].school_count, 2)

    def test_district_admin_blocked_from_other_district(self):
        self.client.force_login(self.district_admin)
        response = self.client.get(reverse("reports:district_report", args=[self.other_district.pk]))
        self.assertEqual(response.status_code, 403)

    def test_principal_sees_own_school(self):
        self.client.force_login(self.principal)
        response = self.client.get(reverse("reports:school_report", args=[self.school.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context["top_classrooms"][0].classroom_name, "Room A")

    def test_principal_blocked_from_other_school(self):
        self.client.force_login(self.principal)
        response = self.client.get(reverse("reports:school_report", args=[self.quiet_school.pk]))
        self.assertEqual(response.status_code, 403)

    def test_principal_cannot_open_district(self):
        self.client.force_login(self.principal)
        response = self.client.get(reverse("reports:district_report", args=[self.district.pk]))
        self.assertEqual(response.status_code, 403)
