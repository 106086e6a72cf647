from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("classrooms", "0001_initial"),
        ("students", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PointRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("behavior_id", models.CharField(blank=True, max_length=50)),
                ("behavior_name", models.CharField(max_length=100)),
                ("points", models.IntegerField()),
                ("note", models.TextField(blank=True)),
                ("awarded_by_name", models.CharField(blank=True, max_length=150)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("awarded_by", models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="awarded_points", to=settings.AUTH_USER_MODEL)),
                ("classroom", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="point_records", to="classrooms.classroom")),
                ("student", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="point_records", to="students.student")),
            ],
            options={
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="StudentPointsSummary",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("total_points", models.IntegerField(default=0)),
                ("positive_count", models.PositiveIntegerField(default=0)),
                ("negative_count", models.PositiveIntegerField(default=0)),
                ("last_updated", models.DateTimeField(auto_now=True)),
                ("classroom", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="points_summaries", to="classrooms.classroom")),
                ("student", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="points_summaries", to="students.student")),
            ],
            options={
                "verbose_name_plural": "student points summaries",
                "ordering": ["-total_points", "student__first_name"],
            },
        ),
        migrations.AddConstraint(
            model_name="studentpointssummary",
            constraint=models.UniqueConstraint(fields=("student", "classroom"), name="unique_points_summary_per_student_classroom"),
        ),
    ]
