from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse

from classrooms.models import Classroom
from core.errors import AuthorizationError, ValidationError
from stories import services
from stories.models import Story, StoryComment

User = get_user_model()


class StoryTestMixin:

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
        cls.outsider = User.objects.create_user(
            username="outsider", email="outsider@example.com", password="testpass123", role="parent",
        )
        cls.classroom = Classroom.objects.create(name="Room 12", teacher=cls.teacher)
        cls.classroom.parents.add(cls.parent)

    def post_story(self, content="Field trip to the aquarium!", **kwargs):
        return services.create_story(self.classroom, self.teacher, content, **kwargs)


class CreateStoryTests(StoryTestMixin, TestCase):

    def test_teacher_posts_text_story(self):
        story = self.post_story("  Science fair today  ")

        self.assertEqual(story.content, "Science fair today")
        self.assertEqual(story.author_name, "Ms. Frizzle")
        self.assertEqual(story.media_type, Story.TEXT)

    def test_image_story_needs_links(self):
        with self.assertRaises(ValidationError):
            self.post_story("", media_type=Story.IMAGE)

        story = self.post_story("", media_type=Story.IMAGE, media_urls=["https://img.example.com/1.jpg", " "])
        self.assertEqual(story.media_urls, ["https://img.example.com/1.jpg"])

    def test_text_story_needs_content(self):
        with self.assertRaisesMessage(ValidationError, "Write something before posting."):
            self.post_story("   ")

    def test_parent_cannot_post(self):
        with self.assertRaises(AuthorizationError):
            services.create_story(self.classroom, self.parent, "Hello")

    def test_feed_newest_first(self):
        first = self.post_story("first")
        second = self.post_story("second")
        self.assertEqual(services.stories_for_class(self.classroom), [second, first])
        self.assertEqual(services.stories_for_class(self.classroom, limit=1), [second])


class LikeAndCommentTests(StoryTestMixin, TestCase):

    def test_toggle_like(self):
        story = self.post_story()

        self.assertTrue(services.toggle_like(story, self.parent))
        self.assertEqual(story.like_count, 1)
        self.assertTrue(story.is_liked_by(self.parent))

        self.assertFalse(services.toggle_like(story, self.parent))
        self.assertEqual(story.like_count, 0)

    def test_outsider_cannot_like(self):
        story = self.post_story()
        with self.assertRaises(AuthorizationError):
            services.toggle_like(story, self.outsider)

    def test_comment_updates_count(self):
        story = self.post_story()

        comment = services.add_comment(story, self.parent, " Looks fun! ")

        self.assertEqual(comment.content, "Looks fun!")
        self.assertEqual(story.comment_count, 1)
        self.assertEqual(services.get_comments(story), [comment])

    def test_empty_comment_rejected(self):
        story = self.post_story()
        with self.assertRaisesMessage(ValidationError, "Comment cannot be empty."):
            services.add_comment(story, self.parent, "  ")

    def test_teacher_can_delete_parent_comment(self):
        story = self.post_story()
        comment = services.add_comment(story, self.parent, "Hi")

        services.delete_comment(comment, self.teacher)

        story.refresh_from_db()
        self.assertEqual(story.comment_count, 0)
        self.assertFalse(StoryComment.objects.exists())

    def test_other_parent_cannot_delete_comment(self):
        other = User.objects.create_user(
            username="other", email="other@example.com", password="testpass123", role="parent",
        )
        self.classroom.parents.add(other)
        story = self.post_story()
        comment = services.add_comment(story, self.parent, "Hi")

        with self.assertRaises(AuthorizationError):
            services.delete_comment(comment, other)

    def test_only_author_or_teacher_deletes_story(self):
        story = self.post_story()
        with self.assertRaises(AuthorizationError):
            services.delete_story(story, self.parent)
        services.delete_story(story, self.teacher)
        self.assertFalse(Story.objects.exists())


class StoryViewTests(StoryTestMixin, TestCase):

    def test_feed_renders_for_parent(self):
        self.post_story()
        self.client.force_login(self.parent)

        response = self.client.get(reverse("stories:story_feed"))

        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "stories/feed.html")
        self.assertContains(response, "Field trip to the aquarium!")
        self.assertFalse(response.context["can_post"])

    def test_teacher_posts_from_feed(self):
        self.client.force_login(self.teacher)

        response = self.client.post(reverse("stories:story_feed"), {
            "content": "Pumpkin patch photos",
            "media_type": "image",
            "media_urls": "https://img.example.com/a.jpg\nhttps://img.example.com/b.jpg",
        })

        self.assertRedirects(response, reverse("stories:story_feed"))
        story = Story.objects.get()
        self.assertEqual(len(story.media_urls), 2)

    def test_parent_cannot_post_from_feed(self):
        self.client.force_login(self.parent)
        response = self.client.post(reverse("stories:story_feed"), {"content": "Hi", "media_type": "text"})
        self.assertEqual(response.status_code, 404)

    def test_detail_hidden_from_outsider(self):
        story = self.post_story()
        self.client.force_login(self.outsider)
        response = self.client.get(reverse("stories:story_detail", args=[story.pk]))
        self.assertEqual(response.status_code, 404)

    def test_comment_from_detail(self):
        story = self.post_story()
        self.client.force_login(self.parent)

        response = self.client.post(reverse("stories:story_detail", args=[story.pk]), {"content": "Yay"})

        self.assertRedirects(response, reverse("stories:story_detail", args=[story.pk]))
        story.refresh_from_db()
        self.assertEqual(story.comment_count, 1)

    def test_like_from_detail_returns_to_detail(self):
        story = self.post_story()
        self.client.force_login(self.parent)

        response = self.client.post(reverse("stories:story_like", args=[story.pk]), {"from": "detail"})

        self.assertRedirects(response, reverse("stories:story_detail", args=[story.pk]))
        self.assertTrue(story.is_liked_by(self.parent))

    def test_parent_cannot_delete_story(self):
        story = self.post_story()
        self.client.force_login(self.parent)
        response = self.client.post(reverse("stories:story_delete", args=[story.pk]))
        self.assertEqual(response.status_code, 404)
        self.assertTrue(Story.objects.filter(pk=story.pk).exists())
