"""
Human-facing display identifiers.

These are not primary keys.  Each one is a record-type prefix, the last
six digits of the millisecond clock and a short random base-36 suffix,
e.g. ``USR482913K7Q``.  Uniqueness is still enforced by the database.
"""
from __future__ import annotations

import secrets
import string
import time

ACCOUNT_PREFIX = 'USR'
ADMIN_PREFIX = 'ADM'
PATIENT_PREFIX = 'PAT'

_ALPHABET = string.digits + string.ascii_uppercase


def generate_external_id(prefix: str, *, random_len: int = 3) -> str:
    clock = str(int(time.time() * 1000))[-6:]
    suffix = ''.join(secrets.choice(_ALPHABET) for _ in range(random_len))
    return f"{prefix}{clock}{suffix}"


def new_account_id() -> str:
    return generate_external_id(ACCOUNT_PREFIX)


def new_patient_id() -> str:
    return generate_external_id(PATIENT_PREFIX)
