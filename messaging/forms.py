from django import forms
from django.contrib.auth import get_user_model

from students.models import Student

User = get_user_model()


class MessageForm(forms.Form):
    content = forms.CharField(
        label="",
        strip=False,
        widget=forms.Textarea(attrs={"rows": 3, "placeholder": "Type a message..."}),
    )


class StartConversationForm(forms.Form):
    """Start (or reopen) a conversation with a member of the selected classroom."""

    recipient = forms.ModelChoiceField(queryset=User.objects.none(), label="To")
    student = forms.ModelChoiceField(
        queryset=Student.objects.none(),
        required=False,
        label="About",
        empty_label="General",
    )
    content = forms.CharField(
        required=False,
        strip=False,
        widget=forms.Textarea(attrs={"rows": 3}),
    )

    def __init__(self, *args, user=None, classroom=None, **kwargs):
        super().__init__(*args, **kwargs)
        if classroom is None or user is None:
            return
        if classroom.teacher_id == user.pk:
            recipients = classroom.parents.all()
            students = classroom.students.all()
        else:
            recipients = User.objects.filter(pk=classroom.teacher_id)
            students = classroom.students.filter(parents=user)
        self.fields["recipient"].queryset = recipients.order_by("name", "email")
        self.fields["recipient"].label_from_instance = lambda member: member.display_name
        self.fields["student"].queryset = students.order_by("last_name", "first_name")


class BroadcastForm(forms.Form):
    content = forms.CharField(
        label="Message to all parents",
        strip=False,
        widget=forms.Textarea(attrs={"rows": 4}),
    )
