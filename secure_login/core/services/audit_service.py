"""
Audit service for Secure Login.

Writes security events to the append-only audit table. A failed write is
reported through the error logs and the security logger but never changes
the outcome of the operation that produced the event.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from ..interfaces import IAuditSink
from ..logging import security_logger
from ..models import AuditEntry
from ..utils.correlation import get_correlation_id

logger = logging.getLogger(__name__)


class DjangoAuditSink(IAuditSink):
    """
    Audit sink backed by the AuditEntry table.
    """

    def append(self, account_id: Optional[UUID], action: str, detail: str,
               timestamp: datetime) -> None:
        # Savepoint: a failed insert must not poison an enclosing transaction.
        with transaction.atomic():
            AuditEntry.objects.append(
                account_id=account_id,
                action=action,
                detail=detail,
                timestamp=timestamp,
                correlation_id=get_correlation_id(),
            )


class AuditService:
    """
    Records security events without ever blocking the caller.

    Login decisions and administrative changes call ``record``; the sink
    may be swapped for any IAuditSink implementation.
    """

    def __init__(self, sink: Optional[IAuditSink] = None):
        self.sink = sink or DjangoAuditSink()

    def record(self, account_id: Optional[UUID], action: str, detail: str = '',
               timestamp: Optional[datetime] = None) -> bool:
        """
        Append one audit entry.

        Args:
            account_id: Account the event concerns
            action: Action tag, e.g. ``login_success``
            detail: Human-readable description
            timestamp: Event time, defaults to now

        Returns:
            True if the entry was persisted, False if the write failed
        """
        try:
            self.sink.append(account_id, action, detail, timestamp or timezone.now())
        except Exception as e:
            logger.error(
                f"Failed to write audit entry {action}: {str(e)}",
                extra={
                    'account_id': str(account_id) if account_id else None,
                    'action': action,
                    'error': str(e),
                }
            )
            security_logger.log_audit_write_failure(
                str(account_id) if account_id else None, action, str(e)
            )
            return False

        logger.info(
            f"Audit entry recorded: {action}",
            extra={
                'account_id': str(account_id) if account_id else None,
                'action': action,
            }
        )
        return True

    def recent(self, account_id: Optional[UUID] = None, limit: int = 50) -> List[Dict[str, Any]]:
        """
        Read back audit entries, newest first.

        Reads go to the AuditEntry table whichever sink records events.
        """
        return [entry.to_dict() for entry in AuditEntry.objects.recent(account_id, limit)]
