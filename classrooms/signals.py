"""Push classroom and roster snapshots to live subscribers after writes."""

from django.db import transaction
from django.db.models.signals import m2m_changed, post_delete, post_save
from django.dispatch import receiver

from core import realtime
from students.models import Student

from .models import Classroom


def _publish_classroom(classroom_id):
    from .services import classroom_snapshot

    transaction.on_commit(lambda: realtime.publish_lazy(
        realtime.classroom_topic(classroom_id),
        lambda: classroom_snapshot(classroom_id),
    ))


def _publish_students(classroom_id):
    from .services import students_snapshot

    transaction.on_commit(lambda: realtime.publish_lazy(
        realtime.students_topic(classroom_id),
        lambda: students_snapshot(classroom_id),
    ))


@receiver(post_save, sender=Classroom)
@receiver(post_delete, sender=Classroom)
def classroom_changed(sender, instance, **kwargs):
    _publish_classroom(instance.pk)


@receiver(m2m_changed, sender=Classroom.parents.through)
def classroom_parents_changed(sender, instance, action, **kwargs):
    if action in ("post_add", "post_remove", "post_clear") and isinstance(instance, Classroom):
        _publish_classroom(instance.pk)


@receiver(post_save, sender=Student)
@receiver(post_delete, sender=Student)
def student_changed(sender, instance, **kwargs):
    _publish_students(instance.classroom_id)
    _publish_classroom(instance.classroom_id)


@receiver(m2m_changed, sender=Student.parents.through)
def student_parents_changed(sender, instance, action, **kwargs):
    if action in ("post_add", "post_remove", "post_clear") and isinstance(instance, Student):
        _publish_students(instance.classroom_id)
