from django.contrib import admin

from .models import District, School


class SchoolInline(admin.TabularInline):
    model = School
    extra = 0
    fields = ["name", "code", "principal", "grade_levels_csv"]


@admin.register(District)
class DistrictAdmin(admin.ModelAdmin):
    list_display = ["name", "code", "city", "state"]
    search_fields = ["name", "code"]
    filter_horizontal = ["admins"]
    inlines = [SchoolInline]


@admin.register(School)
class SchoolAdmin(admin.ModelAdmin):
    list_display = ["name", "code", "district", "principal"]
    list_filter = ["district"]
    search_fields = ["name", "code"]
    filter_horizontal = ["admins"]
