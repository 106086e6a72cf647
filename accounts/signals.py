from django.contrib.auth.signals import user_logged_in, user_logged_out
from django.dispatch import receiver

from core import realtime


@receiver(user_logged_in)
def publish_signed_in(sender, user, request, **kwargs):
    realtime.publish_lazy(realtime.AUTH_TOPIC, lambda: {"event": "signed_in", "user_id": user.pk})


@receiver(user_logged_out)
def publish_signed_out(sender, user, request, **kwargs):
    user_id = getattr(user, "pk", None)
    realtime.publish_lazy(realtime.AUTH_TOPIC, lambda: {"event": "signed_out", "user_id": user_id})
