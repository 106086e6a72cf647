from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse

from classrooms.models import Classroom
from students.models import Student

User = get_user_model()


class StudentTestMixin:
    """Teacher with one classroom, a joined parent and one linked student."""

    @classmethod
    def setUpTestData(cls):
        cls.teacher = User.objects.create_user(
            username="teacher", email="teacher@example.com", password="testpass123", role="teacher",
        )
        cls.parent = User.objects.create_user(
            username="parent", email="parent@example.com", password="testpass123",
            role="parent", name="Pat Parent",
        )
        cls.other_parent = User.objects.create_user(
            username="other", email="other@example.com", password="testpass123", role="parent",
        )
        cls.outsider = User.objects.create_user(
            username="outsider", email="outsider@example.com", password="testpass123", role="teacher",
        )
        cls.classroom = Classroom.objects.create(name="Room 12", teacher=cls.teacher)
        cls.classroom.parents.add(cls.parent, cls.other_parent)
        cls.student = Student.objects.create(
            classroom=cls.classroom, first_name="Arnold", last_name="Perlstein",
        )
        cls.student.parents.add(cls.parent)
        cls.sibling = Student.objects.create(classroom=cls.classroom, first_name="Wanda", last_name="Li")


class StudentModelTests(StudentTestMixin, TestCase):

    def test_full_name_and_initials(self):
        self.assertEqual(self.student.get_full_name(), "Arnold Perlstein")
        self.assertEqual(self.student.initials, "AP")

    def test_first_name_only(self):
        student = Student.objects.create(classroom=self.classroom, first_name="Keesha")
        self.assertEqual(str(student), "Keesha")
        self.assertEqual(student.initials, "K")

    def test_snapshot(self):
        snapshot = self.student.snapshot()
        self.assertEqual(snapshot["class_id"], self.classroom.pk)
        self.assertEqual(snapshot["parent_ids"], [self.parent.pk])


class StudentListViewTests(StudentTestMixin, TestCase):

    def test_requires_login(self):
        response = self.client.get(reverse("students:student_list"))
        self.assertEqual(response.status_code, 302)

    def test_teacher_sees_whole_roster(self):
        self.client.force_login(self.teacher)
        response = self.client.get(reverse("students:student_list"))
        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "students/student_list.html")
        self.assertEqual(len(response.context["students"]), 2)
        self.assertTrue(response.context["can_edit"])

    def test_parent_sees_only_own_children(self):
        self.client.force_login(self.parent)
        response = self.client.get(reverse("students:student_list"))
        self.assertEqual(response.context["students"], [self.student])
        self.assertFalse(response.context["can_edit"])


class StudentCreateViewTests(StudentTestMixin, TestCase):

    def test_teacher_adds_student(self):
        self.client.force_login(self.teacher)
        response = self.client.post(
            reverse("students:student_create"), {"first_name": "Carlos", "last_name": "Ramon"},
        )
        self.assertRedirects(response, reverse("students:student_list"))
        self.assertTrue(Student.objects.filter(classroom=self.classroom, first_name="Carlos").exists())

    def test_parent_gets_404(self):
        self.client.force_login(self.parent)
        response = self.client.get(reverse("students:student_create"))
        self.assertEqual(response.status_code, 404)

    def test_teacher_without_classroom_gets_404(self):
        self.client.force_login(self.outsider)
        response = self.client.get(reverse("students:student_create"))
        self.assertEqual(response.status_code, 404)


class StudentDetailViewTests(StudentTestMixin, TestCase):

    def test_teacher_sees_link_form(self):
        self.client.force_login(self.teacher)
        response = self.client.get(reverse("students:student_detail", args=[self.student.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertIsNotNone(response.context["link_form"])

    def test_linked_parent_can_view(self):
        self.client.force_login(self.parent)
        response = self.client.get(reverse("students:student_detail", args=[self.student.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.context["link_form"])

    def test_unlinked_parent_gets_404(self):
        self.client.force_login(self.other_parent)
        response = self.client.get(reverse("students:student_detail", args=[self.student.pk]))
        self.assertEqual(response.status_code, 404)

    def test_outsider_gets_404(self):
        self.client.force_login(self.outsider)
        response = self.client.get(reverse("students:student_detail", args=[self.student.pk]))
        self.assertEqual(response.status_code, 404)


class StudentLinkParentViewTests(StudentTestMixin, TestCase):

    def test_teacher_links_parent(self):
        self.client.force_login(self.teacher)
        response = self.client.post(
            reverse("students:student_link_parent", args=[self.sibling.pk]),
            {"parent": self.other_parent.pk},
        )
        self.assertRedirects(response, reverse("students:student_detail", args=[self.sibling.pk]))
        self.assertEqual(self.sibling.parent_ids, [self.other_parent.pk])

    def test_non_member_parent_not_offered(self):
        stranger = User.objects.create_user(
            username="stranger", email="stranger@example.com", password="testpass123", role="parent",
        )
        self.client.force_login(self.teacher)
        self.client.post(
            reverse("students:student_link_parent", args=[self.sibling.pk]),
            {"parent": stranger.pk},
        )
        self.assertEqual(self.sibling.parent_ids, [])

    def test_parent_cannot_link(self):
        self.client.force_login(self.parent)
        response = self.client.post(
            reverse("students:student_link_parent", args=[self.student.pk]),
            {"parent": self.other_parent.pk},
        )
        self.assertEqual(response.status_code, 404)


class StudentDeleteViewTests(StudentTestMixin, TestCase):

    def test_confirm_page(self):
        self.client.force_login(self.teacher)
        response = self.client.get(reverse("students:student_delete", args=[self.student.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "students/student_confirm_delete.html")

    def test_teacher_deletes(self):
        self.client.force_login(self.teacher)
        response = self.client.post(reverse("students:student_delete", args=[self.student.pk]))
        self.assertRedirects(response, reverse("students:student_list"))
        self.assertFalse(Student.objects.filter(pk=self.student.pk).exists())

    def test_parent_cannot_delete(self):
        self.client.force_login(self.parent)
        response = self.client.post(reverse("students:student_delete", args=[self.student.pk]))
        self.assertEqual(response.status_code, 404)
        self.assertTrue(Student.objects.filter(pk=self.student.pk).exists())
