"""
Best-effort account notifications.

Nothing here may fail the operation that triggered it.  A notification is
queued with ``transaction.on_commit`` so it only goes out once the write
it describes is durable, then delivered on a small worker pool: an email
through Django's mail framework (bounded by ``EMAIL_TIMEOUT``) and a
realtime event to the recipient's Channels group.  Outcomes are only
reported through the log.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction

logger = logging.getLogger(__name__)

EVENT_VERIFICATION = 'verification'
EVENT_APPROVAL = 'approval'
EVENT_FAMILY_REQUEST = 'family_request'
EVENT_FAMILY_RESPONSE = 'family_response'


@dataclass(frozen=True)
class Notification:
    event: str
    account_id: int
    email: str
    subject: str
    body: str
    payload: Dict[str, Any] = field(default_factory=dict)


def account_group(account_id: int) -> str:
    return f"account.{account_id}"


class Notifier:
    """Fire-and-forget delivery of :class:`Notification` objects."""

    def __init__(self, max_workers: Optional[int] = None):
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()

    def _pool(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers or settings.NOTIFICATION_WORKERS,
                    thread_name_prefix='notifier',
                )
            return self._executor

    def dispatch(self, notification: Notification) -> None:
        """Queue ``notification`` for delivery after the current transaction commits."""
        transaction.on_commit(lambda: self._submit(notification))

    def _submit(self, notification: Notification) -> None:
        if not settings.NOTIFICATIONS_ASYNC:
            self.deliver(notification)
            return
        try:
            self._pool().submit(self.deliver, notification)
        except RuntimeError:
            # Pool already shut down (interpreter exit).
            logger.warning("%s notification for account %s dropped", notification.event, notification.account_id)

    def deliver(self, notification: Notification) -> bool:
        try:
            sent = self._send_email(notification)
            self._push(notification)
        except Exception:
            logger.warning(
                "%s notification for account %s failed",
                notification.event, notification.account_id, exc_info=True,
            )
            return False
        return sent

    def _send_email(self, notification: Notification) -> bool:
        try:
            send_mail(
                notification.subject,
                notification.body,
                settings.DEFAULT_FROM_EMAIL,
                [notification.email],
                fail_silently=False,
            )
        except Exception as exc:
            logger.warning(
                "%s email to account %s not sent: %s",
                notification.event, notification.account_id, exc,
            )
            return False
        logger.info("%s email sent to account %s", notification.event, notification.account_id)
        return True

    def _push(self, notification: Notification) -> None:
        event = {
            'type': 'account.notification',
            'event': notification.event,
            'subject': notification.subject,
            'data': notification.payload,
        }
        try:
            channel_layer = get_channel_layer()
            if channel_layer is None:
                return
            async_to_sync(channel_layer.group_send)(account_group(notification.account_id), event)
        except Exception as exc:
            logger.warning(
                "%s push to account %s failed: %s",
                notification.event, notification.account_id, exc,
            )


notifier = Notifier()


# ---------------------------------------------------------------------
# Message builders
# ---------------------------------------------------------------------
def verification_notice(account, token: str) -> Notification:
    verify_url = f"{settings.FRONTEND_URL}/verify-email?token={token}"
    body = (
        f"Hello {account.name},\n\n"
        "Thank you for registering. Please verify your email address by opening the link below:\n\n"
        f"{verify_url}\n\n"
        "After verifying you will be signed in automatically.\n"
        "If you did not create this account, ignore this email."
    )
    return Notification(
        event=EVENT_VERIFICATION,
        account_id=account.id,
        email=account.email,
        subject='Verify your email address',
        body=body,
        payload={'uniqueId': account.unique_id},
    )


def approval_notice(account, approved: bool) -> Notification:
    if approved:
        subject = 'Account approved'
        message = 'Your account has been approved. You can now sign in.'
    else:
        subject = 'Account status update'
        message = 'Your account approval is pending. We will notify you once it is approved.'
    return Notification(
        event=EVENT_APPROVAL,
        account_id=account.id,
        email=account.email,
        subject=subject,
        body=f"Hello {account.name},\n\n{message}\n\n{settings.FRONTEND_URL}/login",
        payload={'approved': approved},
    )


def family_request_notice(requester, requested, edge) -> Notification:
    body = (
        f"Hello {requested.name},\n\n"
        f"{requester.name} ({requester.email}) sent you a family member request.\n"
        f"Relationship: {edge.relationship.capitalize()}\n\n"
        f"Review it at {settings.FRONTEND_URL}/family-requests"
    )
    return Notification(
        event=EVENT_FAMILY_REQUEST,
        account_id=requested.id,
        email=requested.email,
        subject='Family member request',
        body=body,
        payload={'requestId': edge.id, 'requesterId': requester.id, 'relationship': edge.relationship},
    )


def family_response_notice(requester, requested, edge) -> Notification:
    body = (
        f"Hello {requester.name},\n\n"
        f"{requested.name} has {edge.status} your family member request "
        f"({edge.relationship})."
    )
    return Notification(
        event=EVENT_FAMILY_RESPONSE,
        account_id=requester.id,
        email=requester.email,
        subject=f'Family member request {edge.status}',
        body=body,
        payload={'requestId': edge.id, 'status': edge.status},
    )
