from django import forms

from .models import Story


class StoryForm(forms.Form):
    content = forms.CharField(required=False, widget=forms.Textarea(attrs={"rows": 4}))
    media_type = forms.ChoiceField(choices=Story.MEDIA_TYPE_CHOICES, initial=Story.TEXT)
    media_urls = forms.CharField(
        required=False,
        label="Media links",
        help_text="One URL per line.",
        widget=forms.Textarea(attrs={"rows": 2}),
    )

    def clean_media_urls(self):
        return [line.strip() for line in self.cleaned_data["media_urls"].splitlines() if line.strip()]


class CommentForm(forms.Form):
    content = forms.CharField(label="", max_length=1000, widget=forms.TextInput(attrs={
        "placeholder": "Add a comment...",
    }))
