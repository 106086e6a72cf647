from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from core.services import seed_demo_district


class Command(BaseCommand):
    help = "Creates the Springfield demo district and schools (idempotent)"

    def add_arguments(self, parser):
        parser.add_argument(
            "--admin-email",
            help="Add this super admin to the district and school admin lists.",
        )

    def handle(self, *args, **options):
        actor = None
        email = options.get("admin_email")
        if email:
            User = get_user_model()
            try:
                actor = User.objects.get_by_email(email)
            except User.DoesNotExist:
                raise CommandError(f"No user with email {email}")

        summary = seed_demo_district(actor=actor)
        district = summary["district"]
        if summary["created"]["district"]:
            self.stdout.write(self.style.SUCCESS(f"Created district: {district['name']}"))
        else:
            self.stdout.write(f"District already exists: {district['name']}")
        self.stdout.write(self.style.SUCCESS(
            f"Created {summary['created']['schools']} school(s); "
            f"{len(summary['schools'])} in district"
        ))
