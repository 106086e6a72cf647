from django.contrib import admin

from .models import Classroom


@admin.register(Classroom)
class ClassroomAdmin(admin.ModelAdmin):
    list_display = ("name", "class_code", "teacher", "school", "created_at")
    list_filter = ("school",)
    search_fields = ("name", "class_code", "teacher__email", "teacher__name")
    readonly_fields = ("class_code", "created_at", "updated_at")
    filter_horizontal = ("parents",)
