from django import forms

from .models import CLASS_CODE_LENGTH, Classroom, normalize_class_code


class ClassroomForm(forms.ModelForm):
    """Form for creating a classroom; the class code is generated."""

    class Meta:
        model = Classroom
        fields = ["name", "grade_level"]


class JoinClassForm(forms.Form):
    class_code = forms.CharField(
        label="Class code",
        max_length=CLASS_CODE_LENGTH + 4,
        widget=forms.TextInput(attrs={
            "autocomplete": "off",
            "autocapitalize": "characters",
            "placeholder": "K7P2XZ",
        }),
    )

    def clean_class_code(self):
        return normalize_class_code(self.cleaned_data["class_code"])
