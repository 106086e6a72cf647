from django import forms
from django.contrib.auth import get_user_model

User = get_user_model()

ROLE_CHOICES = [
    (User.TEACHER, "I'm a teacher"),
    (User.PARENT, "I'm a parent"),
]


class SignInForm(forms.Form):
    email = forms.CharField(
        label="Email",
        widget=forms.EmailInput(attrs={"autocomplete": "email", "autofocus": True}),
    )
    password = forms.CharField(
        widget=forms.PasswordInput(attrs={"autocomplete": "current-password"}),
    )


class SignUpForm(forms.Form):
    """Sign-up form; business rules live in ``AuthGateway.validate_sign_up``."""

    name = forms.CharField(max_length=150)
    email = forms.EmailField(widget=forms.EmailInput(attrs={"autocomplete": "email"}))
    role = forms.ChoiceField(choices=ROLE_CHOICES, widget=forms.RadioSelect)
    password1 = forms.CharField(
        label="Password",
        widget=forms.PasswordInput(attrs={"autocomplete": "new-password"}),
        help_text="At least 6 characters.",
    )
    password2 = forms.CharField(
        label="Confirm password",
        widget=forms.PasswordInput(attrs={"autocomplete": "new-password"}),
    )


class AccountSetupForm(forms.Form):
    name = forms.CharField(max_length=150)
    role = forms.ChoiceField(choices=ROLE_CHOICES, widget=forms.RadioSelect)
