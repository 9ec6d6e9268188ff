# identity/management/commands/ensure_test_users.py
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from identity.models import Account, PatientRecord
from identity.services.identifiers import ADMIN_PREFIX, generate_external_id

PASSWORD = "123456"

TEST_SET = [
    ("admin1@example.com", "Admin One", "+15550000001", Account.ROLE_ADMIN),
    ("doctor1@example.com", "Doctor One", "+15550000002", Account.ROLE_DOCTOR),
    ("nurse1@example.com", "Nurse One", "+15550000003", Account.ROLE_NURSE),
    ("patient1@example.com", "Patient One", "+15550000004", Account.ROLE_PATIENT),
]


class Command(BaseCommand):
    help = (
        "Development only: ensure verified, approved test accounts exist with password=123456 "
        "(idempotent). Skips the single-admin bootstrap rule of create_admin."
    )

    @transaction.atomic
    def handle(self, *args, **opts):
        admin = None
        for email, name, phone, role in TEST_SET:
            defaults = {"name": name, "phone": phone, "role": role}
            if role == Account.ROLE_ADMIN:
                defaults["unique_id"] = generate_external_id(ADMIN_PREFIX)
            account, created = Account.objects.get_or_create(
                email=email,
                defaults=defaults,
            )
            account.set_password(PASSWORD)
            account.role = role
            account.is_active = True
            account.is_verified = True
            account.verification_token = None
            account.login_attempts = 0
            account.lock_until = None
            account.is_approved = True
            if role == Account.ROLE_ADMIN:
                account.is_superuser = True
                admin = account
            elif role != Account.ROLE_PATIENT and account.approved_by_id is None:
                account.approved_by = admin
                account.approved_at = timezone.now()
            account.save()
            if role == Account.ROLE_PATIENT:
                PatientRecord.objects.get_or_create(account=account)
            self.stdout.write(self.style.SUCCESS(f"{'created' if created else 'ok'}: {email} ({role})"))
        self.stdout.write(self.style.SUCCESS("All test users ensured."))
