from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import CustomUser


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin):
    """
    Customizing the Django admin to display our user model correctly.
    This adds the Hall Pass profile fields to the admin interface.
    """

    fieldsets = UserAdmin.fieldsets + (
        ("Hall Pass", {"fields": ("name", "role", "admin_level", "district", "school", "email_confirmed")}),
    )
    list_display = ("email", "name", "role", "admin_level", "is_active")
    list_filter = ("role", "admin_level", "email_confirmed")
    search_fields = ("email", "name", "username")
