from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    dependencies = [
        ("core", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.AddField(
            model_name="district",
            name="admins",
            field=models.ManyToManyField(blank=True, related_name="administered_districts", to=settings.AUTH_USER_MODEL),
        ),
        migrations.AddField(
            model_name="school",
            name="principal",
            field=models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="principal_of", to=settings.AUTH_USER_MODEL),
        ),
        migrations.AddField(
            model_name="school",
            name="admins",
            field=models.ManyToManyField(blank=True, related_name="administered_schools", to=settings.AUTH_USER_MODEL),
        ),
    ]
