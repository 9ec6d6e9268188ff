from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from rest_framework.exceptions import APIException

from identity.services.accounts import create_admin


class Command(BaseCommand):
    help = "Create the first admin account (requires ADMIN_BOOTSTRAP_SECRET)."

    def add_arguments(self, parser):
        parser.add_argument("--name", required=True)
        parser.add_argument("--email", required=True)
        parser.add_argument("--phone", required=True)
        parser.add_argument("--password", required=True)
        parser.add_argument("--secret", default=None, help="defaults to settings.ADMIN_BOOTSTRAP_SECRET")

    def handle(self, *args, **opts):
        try:
            account = create_admin(
                name=opts["name"],
                email=opts["email"],
                password=opts["password"],
                phone=opts["phone"],
                secret=opts["secret"] or settings.ADMIN_BOOTSTRAP_SECRET,
            )
        except APIException as exc:
            raise CommandError(str(exc.detail)) from exc
        self.stdout.write(self.style.SUCCESS(f"ok: {account.email} ({account.unique_id})"))
