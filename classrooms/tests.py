from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import RequestFactory, TestCase
from django.urls import reverse

from classrooms.models import CLASS_CODE_ALPHABET, Classroom, generate_class_code, is_valid_class_code
from classrooms.services import ClassroomDirectory
from classrooms.utils import SESSION_KEY, get_selected_classroom, get_user_classrooms
from core import realtime
from core.errors import AuthorizationError, EmailDeliveryError, NotFoundError, ValidationError
from students.models import Student

User = get_user_model()


def make_user(username, role, **extra):
    return User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="testpass123",
        role=role,
        **extra,
    )


# ===========================================================================
# Class codes
# ===========================================================================


class ClassCodeTests(TestCase):

    def test_generated_codes_use_unambiguous_alphabet(self):
        for _ in range(50):
            code = generate_class_code()
            self.assertEqual(len(code), 6)
            self.assertTrue(set(code) <= set(CLASS_CODE_ALPHABET))
            self.assertTrue(is_valid_class_code(code))

    def test_look_alike_characters_are_invalid(self):
        self.assertFalse(is_valid_class_code("ABCDE0"))
        self.assertFalse(is_valid_class_code("ABCDEI"))
        self.assertTrue(is_valid_class_code(" abcdef "))

    def test_save_uppercases_code(self):
        teacher = make_user("teacher", "teacher")
        classroom = Classroom.objects.create(name="Room 1", teacher=teacher, class_code="k7p2xz")
        self.assertEqual(classroom.class_code, "K7P2XZ")


# ===========================================================================
# Classroom directory
# ===========================================================================


class CreateClassroomTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.teacher = make_user("teacher", "teacher")
        cls.parent = make_user("parent", "parent")

    def test_teacher_creates_classroom(self):
        classroom = ClassroomDirectory.create_classroom(self.teacher, "  Room 12 ", "3rd")

        self.assertEqual(classroom.name, "Room 12")
        self.assertEqual(classroom.grade_level, "3rd")
        self.assertEqual(classroom.teacher, self.teacher)
        self.assertTrue(is_valid_class_code(classroom.class_code))

    def test_parent_cannot_create(self):
        with self.assertRaises(AuthorizationError):
            ClassroomDirectory.create_classroom(self.parent, "Room 12")

    def test_name_required(self):
        with self.assertRaisesMessage(ValidationError, "Classroom name is required."):
            ClassroomDirectory.create_classroom(self.teacher, "   ")

    def test_retries_taken_code(self):
        Classroom.objects.create(name="Existing", teacher=self.teacher, class_code="ABCDEF")

        with mock.patch(
            "classrooms.services.generate_class_code", side_effect=["ABCDEF", "GHJKLM"],
        ):
            classroom = ClassroomDirectory.create_classroom(self.teacher, "Room 12")

        self.assertEqual(classroom.class_code, "GHJKLM")

    def test_gives_up_after_max_attempts(self):
        Classroom.objects.create(name="Existing", teacher=self.teacher, class_code="ABCDEF")

        with mock.patch("classrooms.services.generate_class_code", return_value="ABCDEF"):
            with self.assertRaises(ValidationError):
                ClassroomDirectory.create_classroom(self.teacher, "Room 12")

        self.assertEqual(Classroom.objects.count(), 1)


class JoinWithCodeTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.teacher = make_user("teacher", "teacher", name="Ms. Frizzle")
        cls.parent = make_user("parent", "parent", name="Pat Parent")
        cls.classroom = Classroom.objects.create(
            name="Room 12", teacher=cls.teacher, class_code="K7P2XZ",
        )

    def test_lowercase_code_joins(self):
        classroom = ClassroomDirectory.join_with_code("k7p2xz", self.parent)

        self.assertEqual(classroom, self.classroom)
        self.assertIn(self.parent.pk, self.classroom.parent_ids)
        self.assertIn(self.classroom.pk, self.parent.class_ids)

    def test_join_emails_the_teacher(self):
        ClassroomDirectory.join_with_code("K7P2XZ", self.parent)

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["teacher@example.com"])
        self.assertEqual(mail.outbox[0].subject, "Pat Parent joined Room 12")

    def test_joining_twice_is_a_no_op(self):
        ClassroomDirectory.join_with_code("K7P2XZ", self.parent)
        ClassroomDirectory.join_with_code(" k7p2xz ", self.parent)

        self.assertEqual(self.classroom.parents.count(), 1)
        self.assertEqual(len(mail.outbox), 1)

    def test_unknown_code(self):
        with self.assertRaisesMessage(NotFoundError, "Invalid class code"):
            ClassroomDirectory.join_with_code("ZZZZZZ", self.parent)

    def test_teacher_cannot_join_with_code(self):
        other_teacher = make_user("other", "teacher")
        with self.assertRaises(AuthorizationError):
            ClassroomDirectory.join_with_code("K7P2XZ", other_teacher)
        self.assertEqual(self.classroom.parents.count(), 0)

    def test_email_failure_does_not_block_join(self):
        with mock.patch(
            "core.emails.send_parent_joined_email", side_effect=EmailDeliveryError("down"),
        ):
            with self.assertLogs("classrooms.services", level="WARNING"):
                ClassroomDirectory.join_with_code("K7P2XZ", self.parent)

        self.assertIn(self.parent.pk, self.classroom.parent_ids)


class ClassroomListingTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.teacher = make_user("teacher", "teacher")
        cls.parent = make_user("parent", "parent")
        cls.first = Classroom.objects.create(name="First", teacher=cls.teacher)
        cls.second = Classroom.objects.create(name="Second", teacher=cls.teacher)
        cls.second.parents.add(cls.parent)

    def test_teacher_sees_taught_classrooms_in_creation_order(self):
        self.assertEqual(ClassroomDirectory.list_for_user(self.teacher), [self.first, self.second])

    def test_parent_sees_joined_classrooms(self):
        self.assertEqual(ClassroomDirectory.list_for_user(self.parent), [self.second])

    def test_admin_sees_none(self):
        admin = make_user("admin", "admin", admin_level="super_admin")
        self.assertEqual(ClassroomDirectory.list_for_user(admin), [])

    def test_members_teacher_first(self):
        self.assertEqual(ClassroomDirectory.members(self.second), [self.teacher, self.parent])


class RosterTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.teacher = make_user("teacher", "teacher")
        cls.parent = make_user("parent", "parent")
        cls.classroom = Classroom.objects.create(name="Room 1", teacher=cls.teacher)

    def test_add_student_with_parent(self):
        student = ClassroomDirectory.add_student(
            self.classroom, " Arnold ", "Perlstein", parents=[self.parent], actor=self.teacher,
        )

        self.assertEqual(student.first_name, "Arnold")
        self.assertEqual(student.parent_ids, [self.parent.pk])
        self.assertEqual(self.parent.student_ids, [student.pk])

    def test_only_teacher_adds_students(self):
        with self.assertRaises(AuthorizationError):
            ClassroomDirectory.add_student(self.classroom, "Arnold", actor=self.parent)

    def test_first_name_required(self):
        with self.assertRaisesMessage(ValidationError, "First name is required."):
            ClassroomDirectory.add_student(self.classroom, "  ")

    def test_link_parent_twice(self):
        student = ClassroomDirectory.add_student(self.classroom, "Arnold")

        ClassroomDirectory.link_parent_to_student(student, self.parent)
        ClassroomDirectory.link_parent_to_student(student, self.parent)

        self.assertEqual(student.parent_ids, [self.parent.pk])

    def test_link_teacher_rejected(self):
        student = ClassroomDirectory.add_student(self.classroom, "Arnold")
        with self.assertRaises(AuthorizationError):
            ClassroomDirectory.link_parent_to_student(student, self.teacher)

    def test_students_for_class_sorted_by_name(self):
        ClassroomDirectory.add_student(self.classroom, "Wanda", "Li")
        ClassroomDirectory.add_student(self.classroom, "Arnold", "Perlstein")
        ClassroomDirectory.add_student(self.classroom, "Carlos", "Ramon")

        names = [s.first_name for s in ClassroomDirectory.students_for_class(self.classroom)]
        self.assertEqual(names, ["Wanda", "Arnold", "Carlos"])

    def test_remove_student(self):
        student = ClassroomDirectory.add_student(self.classroom, "Arnold")
        ClassroomDirectory.remove_student(student, actor=self.teacher)
        self.assertFalse(Student.objects.filter(pk=student.pk).exists())


# ===========================================================================
# Live updates
# ===========================================================================


class ClassroomLiveUpdateTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.teacher = make_user("teacher", "teacher")
        cls.parent = make_user("parent", "parent")

    def setUp(self):
        realtime.reset()
        self.addCleanup(realtime.reset)
        self.classroom = Classroom.objects.create(name="Room 1", teacher=self.teacher)

    def test_join_pushes_classroom_snapshot(self):
        received = []
        ClassroomDirectory.subscribe_to_classroom(self.classroom.pk, received.append)

        with self.captureOnCommitCallbacks(execute=True):
            ClassroomDirectory.join_with_code(self.classroom.class_code, self.parent)

        self.assertEqual(received[-1]["id"], self.classroom.pk)
        self.assertEqual(received[-1]["parent_ids"], [self.parent.pk])

    def test_roster_changes_push_full_list(self):
        received = []
        ClassroomDirectory.subscribe_to_students(self.classroom.pk, received.append)

        with self.captureOnCommitCallbacks(execute=True):
            ClassroomDirectory.add_student(self.classroom, "Arnold")
        with self.captureOnCommitCallbacks(execute=True):
            ClassroomDirectory.add_student(self.classroom, "Wanda")

        self.assertEqual(
            sorted(student["first_name"] for student in received[-1]),
            ["Arnold", "Wanda"],
        )

    def test_deleted_classroom_pushes_none(self):
        received = []
        ClassroomDirectory.subscribe_to_classroom(self.classroom.pk, received.append)

        with self.captureOnCommitCallbacks(execute=True):
            self.classroom.delete()

        self.assertIsNone(received[-1])

    def test_unsubscribed_callback_not_called(self):
        received = []
        sub = ClassroomDirectory.subscribe_to_classroom(self.classroom.pk, received.append)
        sub.unsubscribe()

        with self.captureOnCommitCallbacks(execute=True):
            ClassroomDirectory.join_with_code(self.classroom.class_code, self.parent)

        self.assertEqual(received, [])


# ===========================================================================
# Selected classroom
# ===========================================================================


class GetSelectedClassroomTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.teacher = make_user("teacher", "teacher")
        cls.other_teacher = make_user("other", "teacher")
        cls.first = Classroom.objects.create(name="First", teacher=cls.teacher)
        cls.second = Classroom.objects.create(name="Second", teacher=cls.teacher)
        cls.foreign = Classroom.objects.create(name="Foreign", teacher=cls.other_teacher)

    def _make_request(self, user, params=None, session=None):
        request = RequestFactory().get("/", params or {})
        request.user = user
        request.session = session if session is not None else {}
        return request

    def test_defaults_to_first_classroom(self):
        request = self._make_request(self.teacher)
        self.assertEqual(get_selected_classroom(request), self.first)
        self.assertEqual(request.session[SESSION_KEY], self.first.pk)

    def test_get_param_selects_and_stores(self):
        request = self._make_request(self.teacher, {"classroom_id": self.second.pk})
        self.assertEqual(get_selected_classroom(request), self.second)
        self.assertEqual(request.session[SESSION_KEY], self.second.pk)

    def test_session_value_is_used(self):
        request = self._make_request(self.teacher, session={SESSION_KEY: self.second.pk})
        self.assertEqual(get_selected_classroom(request), self.second)

    def test_foreign_classroom_param_ignored(self):
        request = self._make_request(self.teacher, {"classroom_id": self.foreign.pk})
        self.assertEqual(get_selected_classroom(request), self.first)

    def test_garbage_param_ignored(self):
        request = self._make_request(self.teacher, {"classroom_id": "abc"})
        self.assertEqual(get_selected_classroom(request), self.first)

    def test_stale_session_value_replaced(self):
        request = self._make_request(self.teacher, session={SESSION_KEY: self.foreign.pk})
        self.assertEqual(get_selected_classroom(request), self.first)
        self.assertEqual(request.session[SESSION_KEY], self.first.pk)

    def test_none_without_classrooms(self):
        parent = make_user("parent", "parent")
        request = self._make_request(parent)
        self.assertIsNone(get_selected_classroom(request))
        self.assertNotIn(SESSION_KEY, request.session)

    def test_result_is_cached(self):
        request = self._make_request(self.teacher)
        get_selected_classroom(request)
        with self.assertNumQueries(0):
            get_selected_classroom(request)

    def test_user_classrooms_for_parent(self):
        parent = make_user("parent", "parent")
        self.foreign.parents.add(parent)
        self.assertEqual(list(get_user_classrooms(parent)), [self.foreign])

    def test_student_switcher_matches_directory(self):
        student = make_user("kid", "student")
        self.foreign.parents.add(student)

        self.assertEqual(list(get_user_classrooms(student)), [])
        self.assertEqual(ClassroomDirectory.list_for_user(student), [])
        self.assertIsNone(get_selected_classroom(self._make_request(student)))


# ===========================================================================
# Views
# ===========================================================================


class ClassroomViewTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.teacher = make_user("teacher", "teacher", name="Ms. Frizzle")
        cls.parent = make_user("parent", "parent")
        cls.classroom = Classroom.objects.create(
            name="Room 12", teacher=cls.teacher, class_code="K7P2XZ",
        )

    def test_list_requires_login(self):
        response = self.client.get(reverse("classrooms:classroom_list"))
        self.assertEqual(response.status_code, 302)
        self.assertIn(reverse("accounts:signin"), response.url)

    def test_list_renders(self):
        self.client.force_login(self.teacher)
        response = self.client.get(reverse("classrooms:classroom_list"))
        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "classrooms/classroom_list.html")
        self.assertContains(response, "K7P2XZ")

    def test_teacher_creates_classroom(self):
        self.client.force_login(self.teacher)
        response = self.client.post(
            reverse("classrooms:classroom_create"), {"name": "Room 14", "grade_level": "4th"},
        )
        self.assertRedirects(response, reverse("classrooms:classroom_list"))
        classroom = Classroom.objects.get(name="Room 14")
        self.assertEqual(self.client.session[SESSION_KEY], classroom.pk)

    def test_parent_cannot_open_create_page(self):
        self.client.force_login(self.parent)
        response = self.client.get(reverse("classrooms:classroom_create"))
        self.assertEqual(response.status_code, 404)

    def test_parent_joins_by_form(self):
        self.client.force_login(self.parent)
        response = self.client.post(reverse("classrooms:classroom_join"), {"class_code": "k7p2xz"})
        self.assertRedirects(response, reverse("dashboard:dashboard"), fetch_redirect_response=False)
        self.assertIn(self.parent.pk, self.classroom.parent_ids)

    def test_join_form_shows_invalid_code(self):
        self.client.force_login(self.parent)
        response = self.client.post(reverse("classrooms:classroom_join"), {"class_code": "ZZZZZZ"})
        self.assertEqual(response.status_code, 200)
        self.assertFormError(response.context["form"], "class_code", "Invalid class code")

    def test_select_stores_session(self):
        second = Classroom.objects.create(name="Room 13", teacher=self.teacher)
        self.client.force_login(self.teacher)
        response = self.client.post(reverse("classrooms:classroom_select", args=[second.pk]))
        self.assertRedirects(response, reverse("dashboard:dashboard"), fetch_redirect_response=False)
        self.assertEqual(self.client.session[SESSION_KEY], second.pk)

    def test_select_foreign_classroom_404(self):
        self.client.force_login(self.parent)
        response = self.client.post(reverse("classrooms:classroom_select", args=[self.classroom.pk]))
        self.assertEqual(response.status_code, 404)


class JoinByLinkTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.teacher = make_user("teacher", "teacher")
        cls.parent = make_user("parent", "parent")
        cls.classroom = Classroom.objects.create(
            name="Room 12", teacher=cls.teacher, class_code="K7P2XZ",
        )
        cls.url = reverse("join_by_link", args=["k7p2xz"])

    def test_invalid_code(self):
        response = self.client.get(reverse("join_by_link", args=["NOPE99"]))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.context["state"], "invalid")

    def test_anonymous_is_asked_to_sign_in(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context["state"], "anonymous")
        self.assertEqual(response.context["next"], self.url)

    def test_teacher_is_ineligible(self):
        other = make_user("other", "teacher")
        self.client.force_login(other)
        response = self.client.get(self.url)
        self.assertEqual(response.context["state"], "ineligible")

    def test_parent_confirms_then_joins(self):
        self.client.force_login(self.parent)

        response = self.client.get(self.url)
        self.assertEqual(response.context["state"], "confirm")
        self.assertNotIn(self.parent.pk, self.classroom.parent_ids)

        response = self.client.post(self.url)
        self.assertRedirects(response, reverse("dashboard:dashboard"), fetch_redirect_response=False)
        self.assertIn(self.parent.pk, self.classroom.parent_ids)

    def test_member_sees_joined_notice(self):
        self.classroom.parents.add(self.parent)
        self.client.force_login(self.parent)
        response = self.client.get(self.url)
        self.assertEqual(response.context["state"], "member")
