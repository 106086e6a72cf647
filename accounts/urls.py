from django.urls import path

from . import views

app_name = "accounts"

urlpatterns = [
    path("signin/", views.signin, name="signin"),
    path("signup/", views.signup, name="signup"),
    path("signout/", views.signout_view, name="signout"),
    path("setup/", views.account_setup, name="setup"),
    path("confirm/<str:token>/", views.confirm, name="confirm"),
    path("confirm-resend/", views.resend_confirmation, name="resend_confirmation"),
]
