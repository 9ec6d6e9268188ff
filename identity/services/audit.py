import logging
from typing import Optional, Any, Dict

from identity.models import AuditEvent

logger = logging.getLogger(__name__)


def log_action(*, account, action: str, object_type: Optional[str] = None,
               object_id: Optional[int] = None, detail: Optional[Dict[str, Any]] = None) -> AuditEvent:
    """Persist an audit row.  ``account`` may be an Account, a token principal or None."""
    return AuditEvent.objects.create(
        account_id=getattr(account, 'id', None),
        action=action,
        object_type=object_type, object_id=object_id,
        detail=detail or {},
    )


def try_log_action(**kwargs) -> None:
    """Record an audit event without letting a failure affect the request."""
    try:
        log_action(**kwargs)
    except Exception:
        logger.warning("audit event %s not recorded", kwargs.get('action'), exc_info=True)
