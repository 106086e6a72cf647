from django.contrib.auth import get_user_model
from django.core import mail
from django.test import TestCase, override_settings
from django.urls import reverse

from classrooms.models import Classroom
from core.errors import AuthorizationError, ValidationError
from points import services
from points.behaviors import BEHAVIORS, get_behavior
from points.models import PointRecord, StudentPointsSummary
from students.models import Student

User = get_user_model()


class PointsTestMixin:

    @classmethod
    def setUpTestData(cls):
        cls.teacher = User.objects.create_user(
            username="teacher", email="teacher@example.com", password="testpass123",
            role="teacher", name="Ms. Frizzle",
        )
        cls.parent = User.objects.create_user(
            username="parent", email="parent@example.com", password="testpass123",
            role="parent", name="Pat Parent",
        )
        cls.classroom = Classroom.objects.create(name="Room 12", teacher=cls.teacher)
        cls.classroom.parents.add(cls.parent)
        cls.student = Student.objects.create(classroom=cls.classroom, first_name="Arnold")
        cls.student.parents.add(cls.parent)
        cls.classmate = Student.objects.create(classroom=cls.classroom, first_name="Wanda")

    def summary(self, student=None):
        return StudentPointsSummary.objects.get(student=student or self.student, classroom=self.classroom)


class BehaviorTests(TestCase):

    def test_defaults(self):
        self.assertEqual(get_behavior("helping").points, 5)
        self.assertEqual(get_behavior("missinghomework").points, -3)
        self.assertIsNone(get_behavior("flying"))

    def test_ids_are_unique(self):
        self.assertEqual(len(BEHAVIORS), 14)


class AwardPointsTests(PointsTestMixin, TestCase):

    def test_award_creates_record_and_summary(self):
        record = services.award_points(self.student, self.classroom, "helping", self.teacher, " nice ")

        self.assertEqual(record.points, 5)
        self.assertEqual(record.behavior_name, "Helping Others")
        self.assertEqual(record.awarded_by_name, "Ms. Frizzle")
        self.assertEqual(record.note, "nice")
        summary = self.summary()
        self.assertEqual(summary.total_points, 5)
        self.assertEqual(summary.positive_count, 1)
        self.assertEqual(summary.negative_count, 0)

    def test_deduction(self):
        services.award_points(self.student, self.classroom, "helping", self.teacher)
        services.award_points(self.student, self.classroom, "offtask", self.teacher)

        summary = self.summary()
        self.assertEqual(summary.total_points, 3)
        self.assertEqual(summary.positive_count, 1)
        self.assertEqual(summary.negative_count, 1)

    def test_total_may_go_negative(self):
        services.award_points(self.student, self.classroom, "unkind", self.teacher)
        self.assertEqual(self.summary().total_points, -3)

    def test_unknown_behavior(self):
        with self.assertRaisesMessage(ValidationError, "Unknown behavior: flying."):
            services.award_points(self.student, self.classroom, "flying", self.teacher)

    def test_only_teacher_awards(self):
        with self.assertRaises(AuthorizationError):
            services.award_points(self.student, self.classroom, "helping", self.parent)
        self.assertFalse(PointRecord.objects.exists())

    def test_student_must_be_on_roster(self):
        other_room = Classroom.objects.create(name="Room 13", teacher=self.teacher)
        with self.assertRaises(ValidationError):
            services.award_points(self.student, other_room, "helping", self.teacher)

    def test_award_to_many(self):
        records = services.award_points_to_students(
            [self.student, self.classmate], self.classroom, "teamwork", self.teacher,
        )

        self.assertEqual(len(records), 2)
        self.assertEqual(self.summary(self.classmate).total_points, 5)

    def test_summaries_highest_first(self):
        services.award_points(self.classmate, self.classroom, "helping", self.teacher)
        services.award_points(self.student, self.classroom, "participation", self.teacher)

        ranked = services.class_summaries(self.classroom)
        self.assertEqual([s.student for s in ranked], [self.classmate, self.student])

    def test_history_newest_first(self):
        first = services.award_points(self.student, self.classroom, "helping", self.teacher)
        second = services.award_points(self.student, self.classroom, "ontask", self.teacher)

        self.assertEqual(services.points_history(self.student), [second, first])


class PointsMilestoneTests(PointsTestMixin, TestCase):

    @override_settings(HALLPASS_POINT_MILESTONES={10: "Rising Star", 20: "Super Star"})
    def test_crossed_milestones(self):
        self.assertEqual(services.crossed_milestones(5, 10), [(10, "Rising Star")])
        self.assertEqual(services.crossed_milestones(9, 25), [(10, "Rising Star"), (20, "Super Star")])
        self.assertEqual(services.crossed_milestones(10, 15), [])

    @override_settings(HALLPASS_POINT_MILESTONES={10: "Rising Star"})
    def test_parents_emailed_once_when_crossing(self):
        for _ in range(3):
            services.award_points(self.student, self.classroom, "helping", self.teacher)

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["parent@example.com"])
        self.assertEqual(mail.outbox[0].subject, "Arnold reached 10 points!")

    @override_settings(HALLPASS_POINT_MILESTONES={})
    def test_no_milestones_configured(self):
        services.award_points(self.student, self.classroom, "helping", self.teacher)
        self.assertEqual(mail.outbox, [])


class DeleteAndResetTests(PointsTestMixin, TestCase):

    def test_delete_reverses_summary(self):
        services.award_points(self.student, self.classroom, "helping", self.teacher)
        deduction = services.award_points(self.student, self.classroom, "offtask", self.teacher)

        services.delete_point_record(deduction, actor=self.teacher)

        summary = self.summary()
        self.assertEqual(summary.total_points, 5)
        self.assertEqual(summary.negative_count, 0)
        self.assertEqual(PointRecord.objects.count(), 1)

    def test_parent_cannot_delete(self):
        record = services.award_points(self.student, self.classroom, "helping", self.teacher)
        with self.assertRaises(AuthorizationError):
            services.delete_point_record(record, actor=self.parent)

    def test_reset(self):
        services.award_points(self.student, self.classroom, "helping", self.teacher)
        services.award_points(self.student, self.classroom, "offtask", self.teacher)
        services.award_points(self.classmate, self.classroom, "helping", self.teacher)

        deleted = services.reset_student_points(self.student, self.classroom, actor=self.teacher)

        self.assertEqual(deleted, 2)
        summary = self.summary()
        self.assertEqual(
            (summary.total_points, summary.positive_count, summary.negative_count), (0, 0, 0),
        )
        self.assertEqual(self.summary(self.classmate).total_points, 5)


class PointsViewTests(PointsTestMixin, TestCase):

    def test_teacher_overview(self):
        services.award_points(self.student, self.classroom, "helping", self.teacher)
        self.client.force_login(self.teacher)

        response = self.client.get(reverse("points:overview"))

        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "points/overview.html")
        self.assertTrue(response.context["is_teacher"])
        self.assertIsNotNone(response.context["form"])

    def test_parent_overview_only_own_children(self):
        services.award_points(self.student, self.classroom, "helping", self.teacher)
        services.award_points(self.classmate, self.classroom, "helping", self.teacher)
        self.client.force_login(self.parent)

        response = self.client.get(reverse("points:overview"))

        self.assertEqual([s.student for s in response.context["summaries"]], [self.student])
        self.assertIsNone(response.context["form"])

    def test_award_view(self):
        self.client.force_login(self.teacher)

        response = self.client.post(reverse("points:award"), {
            "students": [self.student.pk, self.classmate.pk],
            "behavior": "kindness",
            "note": "",
        })

        self.assertRedirects(response, reverse("points:overview"))
        self.assertEqual(PointRecord.objects.filter(behavior_id="kindness").count(), 2)

    def test_parent_cannot_award(self):
        self.client.force_login(self.parent)
        response = self.client.post(reverse("points:award"), {
            "students": [self.student.pk],
            "behavior": "kindness",
        })
        self.assertEqual(response.status_code, 404)

    def test_student_history_for_linked_parent(self):
        self.client.force_login(self.parent)
        response = self.client.get(reverse("points:student_history", args=[self.student.pk]))
        self.assertEqual(response.status_code, 200)

    def test_student_history_hidden_from_other_parents(self):
        self.client.force_login(self.parent)
        response = self.client.get(reverse("points:student_history", args=[self.classmate.pk]))
        self.assertEqual(response.status_code, 404)

    def test_record_delete_view(self):
        record = services.award_points(self.student, self.classroom, "helping", self.teacher)
        self.client.force_login(self.teacher)

        response = self.client.post(reverse("points:record_delete", args=[record.pk]))

        self.assertRedirects(response, reverse("points:student_history", args=[self.student.pk]))
        self.assertFalse(PointRecord.objects.exists())

    def test_reset_view_teacher_only(self):
        services.award_points(self.student, self.classroom, "helping", self.teacher)
        self.client.force_login(self.parent)

        response = self.client.post(reverse("points:student_reset", args=[self.student.pk]))

        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.summary().total_points, 5)
