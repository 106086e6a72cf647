"""In-process live updates.

Publishers push the *full current snapshot* of a resource to a topic and every
subscriber's callback receives it. Snapshots are stamped with a per-topic
sequence number; a subscription never delivers a snapshot older than one it
already delivered.

    sub = realtime.subscribe(realtime.messages_topic(conversation.pk), render)
    ...
    sub.unsubscribe()
"""

import itertools
import logging
import threading
from collections import defaultdict

logger = logging.getLogger(__name__)

_lock = threading.RLock()
_subscribers = defaultdict(list)
_sequences = defaultdict(itertools.count)


def classroom_topic(classroom_id):
    return f"classroom:{classroom_id}"


def students_topic(classroom_id):
    return f"students:{classroom_id}"


def conversations_topic(user_id):
    return f"conversations:{user_id}"


def messages_topic(conversation_id):
    return f"messages:{conversation_id}"


AUTH_TOPIC = "auth"


class Subscription:
    """Handle returned by :func:`subscribe`; call :meth:`unsubscribe` on teardown."""

    def __init__(self, topic, callback):
        self.topic = topic
        self.callback = callback
        self.last_sequence = -1
        self.active = True
        # Held across the callback; deliveries to one subscription never overlap.
        self._delivery_lock = threading.RLock()

    def deliver(self, sequence, snapshot):
        with self._delivery_lock:
            if not self.active or sequence <= self.last_sequence:
                return False
            self.last_sequence = sequence
            self.callback(snapshot)
            return True

    def unsubscribe(self):
        with _lock:
            if not self.active:
                return
            self.active = False
            listeners = _subscribers.get(self.topic, [])
            if self in listeners:
                listeners.remove(self)
            if not listeners:
                _subscribers.pop(self.topic, None)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.unsubscribe()

    def __repr__(self):
        state = "active" if self.active else "closed"
        return f"<Subscription {self.topic} ({state})>"


def subscribe(topic, callback) -> Subscription:
    subscription = Subscription(topic, callback)
    with _lock:
        _subscribers[topic].append(subscription)
    return subscription


def has_subscribers(topic) -> bool:
    with _lock:
        return bool(_subscribers.get(topic))


def subscriber_count(topic) -> int:
    with _lock:
        return len(_subscribers.get(topic, []))


def publish(topic, snapshot) -> int:
    """Deliver *snapshot* to every subscriber of *topic*.

    Returns the number of callbacks that received it. A callback that raises
    is logged and does not stop delivery to the others.
    """
    with _lock:
        sequence = next(_sequences[topic])
        listeners = list(_subscribers.get(topic, []))

    delivered = 0
    for subscription in listeners:
        try:
            if subscription.deliver(sequence, snapshot):
                delivered += 1
        except Exception:
            logger.exception("Live update callback failed for %s", topic)
    return delivered


def publish_lazy(topic, build_snapshot) -> int:
    """Publish ``build_snapshot()`` only when somebody is listening."""
    if not has_subscribers(topic):
        return 0
    return publish(topic, build_snapshot())


def reset():
    """Drop every subscription. Used by tests."""
    with _lock:
        for listeners in _subscribers.values():
            for subscription in listeners:
                subscription.active = False
        _subscribers.clear()
        _sequences.clear()
