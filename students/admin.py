from django.contrib import admin

from .models import Student


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ("first_name", "last_name", "classroom", "created_at")
    list_filter = ("classroom",)
    search_fields = ("first_name", "last_name", "classroom__name", "parents__email")
    raw_id_fields = ("classroom",)
    filter_horizontal = ("parents",)
