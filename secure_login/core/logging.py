"""
Structured security logging with correlation ID support.

Login decisions, lockouts, authorization denials and administrative status
changes are emitted as structured events through structlog so they can be
shipped to a SIEM independently of the audit table.
"""

from typing import Optional

import structlog

from .utils.correlation import get_correlation_id


def add_correlation_id(logger, method_name, event_dict):
    """Add the current correlation ID to a structlog event dictionary."""
    event_dict['correlation_id'] = get_correlation_id()
    return event_dict


def configure_structlog():
    """
    Configure structlog for structured JSON logging through stdlib handlers.
    """
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_correlation_id,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


class SecurityLogger:
    """
    Specialized logger for security events.
    """

    def __init__(self):
        self.logger = structlog.get_logger('secure_login.security')

    def log_login_step(self, account_id: Optional[str], step: str, state: str,
                       reason: Optional[str] = None):
        """Log one transition of the login state machine."""
        self.logger.info(
            "login_step",
            account_id=account_id,
            step=step,
            state=state,
            reason=reason,
            event_type="login_step"
        )

    def log_password_failure(self, ip_address: Optional[str] = None):
        # No account id: the identity is not established yet.
        self.logger.info(
            "password_failure",
            ip_address=ip_address,
            event_type="auth_attempt"
        )

    def log_code_failure(self, account_id: str, failures: int, limit: int):
        self.logger.info(
            "code_failure",
            account_id=account_id,
            failures=failures,
            limit=limit,
            event_type="mfa_attempt"
        )

    def log_account_lockout(self, account_id: str, window_seconds: int):
        """Log a code lockout."""
        self.logger.warning(
            "account_lockout",
            account_id=account_id,
            window_seconds=window_seconds,
            event_type="account_lockout"
        )

    def log_access_denied(self, account_id: str, action: str, reason: str):
        self.logger.warning(
            "access_denied",
            account_id=account_id,
            action=action,
            reason=reason,
            event_type="access_denied"
        )

    def log_status_change(self, actor_id: str, target_id: str, previous: str,
                          current: str, changed: bool):
        """Log an administrative status change."""
        self.logger.warning(
            "status_change",
            actor_id=actor_id,
            target_id=target_id,
            previous=previous,
            current=current,
            changed=changed,
            event_type="status_change"
        )

    def log_transient_failure(self, operation: str, error: str):
        self.logger.error(
            "transient_failure",
            operation=operation,
            error=error,
            event_type="transient_failure"
        )

    def log_audit_write_failure(self, account_id: Optional[str], action: str, error: str):
        """Log an audit entry that could not be persisted."""
        self.logger.error(
            "audit_write_failed",
            account_id=account_id,
            action=action,
            error=error,
            event_type="audit_failure"
        )


security_logger = SecurityLogger()
