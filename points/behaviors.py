from dataclasses import dataclass


@dataclass(frozen=True)
class Behavior:
    """A reason for awarding or deducting points."""

    id: str
    name: str
    points: int
    icon: str = ""
    color: str = ""

    @property
    def is_positive(self) -> bool:
        return self.points > 0


DEFAULT_POSITIVE_BEHAVIORS = (
    Behavior("helping", "Helping Others", 5, "heart-handshake", "#22C55E"),
    Behavior("teamwork", "Teamwork", 5, "users", "#3B82F6"),
    Behavior("hardwork", "Hard Work", 5, "briefcase", "#8B5CF6"),
    Behavior("participation", "Participation", 3, "hand", "#F59E0B"),
    Behavior("kindness", "Kindness", 5, "heart", "#EC4899"),
    Behavior("ontask", "On Task", 3, "check-circle", "#10B981"),
    Behavior("listening", "Good Listening", 3, "ear", "#06B6D4"),
    Behavior("creativity", "Creativity", 5, "lightbulb", "#F97316"),
)

DEFAULT_NEGATIVE_BEHAVIORS = (
    Behavior("offtask", "Off Task", -2, "x-circle", "#EF4444"),
    Behavior("talkingout", "Talking Out", -2, "message-circle-x", "#F87171"),
    Behavior("notlistening", "Not Listening", -2, "ear-off", "#FB923C"),
    Behavior("unkind", "Unkind", -3, "frown", "#DC2626"),
    Behavior("unprepared", "Unprepared", -2, "alert-circle", "#F59E0B"),
    Behavior("missinghomework", "Missing Homework", -3, "file-x", "#B91C1C"),
)

BEHAVIORS = {behavior.id: behavior for behavior in DEFAULT_POSITIVE_BEHAVIORS + DEFAULT_NEGATIVE_BEHAVIORS}


def get_behavior(behavior_id):
    """Return the default behavior with this id, or None."""
    return BEHAVIORS.get(behavior_id)


def behavior_choices():
    return [
        ("Positive", [(b.id, f"{b.name} (+{b.points})") for b in DEFAULT_POSITIVE_BEHAVIORS]),
        ("Needs work", [(b.id, f"{b.name} ({b.points})") for b in DEFAULT_NEGATIVE_BEHAVIORS]),
    ]
