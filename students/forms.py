from django import forms
from django.contrib.auth import get_user_model

from .models import Student

User = get_user_model()


class StudentForm(forms.ModelForm):
    """Form for adding a student to the selected classroom's roster."""

    class Meta:
        model = Student
        fields = ["first_name", "last_name"]


class LinkParentForm(forms.Form):
    """Pick one of the classroom's parent members to link to a student."""

    parent = forms.ModelChoiceField(queryset=User.objects.none(), empty_label=None)

    def __init__(self, *args, classroom=None, **kwargs):
        super().__init__(*args, **kwargs)
        if classroom is not None:
            self.fields["parent"].queryset = classroom.parents.order_by("name", "email")
        self.fields["parent"].label_from_instance = lambda user: f"{user.display_name} ({user.email})"
