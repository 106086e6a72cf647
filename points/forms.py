from django import forms

from students.models import Student

from .behaviors import behavior_choices


class AwardPointsForm(forms.Form):
    students = forms.ModelMultipleChoiceField(
        queryset=Student.objects.none(),
        widget=forms.CheckboxSelectMultiple,
    )
    behavior = forms.ChoiceField(choices=behavior_choices)
    note = forms.CharField(required=False, max_length=500)

    def __init__(self, *args, classroom=None, **kwargs):
        super().__init__(*args, **kwargs)
        if classroom is not None:
            self.fields["students"].queryset = classroom.students.order_by("last_name", "first_name")
