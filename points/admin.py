from django.contrib import admin

from .models import PointRecord, StudentPointsSummary


@admin.register(PointRecord)
class PointRecordAdmin(admin.ModelAdmin):
    list_display = ("student", "classroom", "behavior_name", "points", "awarded_by_name", "created_at")
    list_filter = ("classroom", "behavior_id")
    search_fields = ("student__first_name", "student__last_name", "behavior_name", "note")
    raw_id_fields = ("student", "classroom", "awarded_by")


@admin.register(StudentPointsSummary)
class StudentPointsSummaryAdmin(admin.ModelAdmin):
    list_display = ("student", "classroom", "total_points", "positive_count", "negative_count", "last_updated")
    list_filter = ("classroom",)
    raw_id_fields = ("student", "classroom")
