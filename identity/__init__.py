"""Identity app for the hospital back office.

Accounts and their lifecycle (registration, email verification,
administrative approval, lockout), bearer session tokens and the
family-relationship graph between accounts.
"""
