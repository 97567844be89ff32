"""Security utilities exposed by the application."""

from .admin import require_admin
from .audit import configure_audit_logger, record_audit_event
from .middleware import AuditMiddleware, RateLimitMiddleware, client_identifier
from .rate_limit import RateLimiter
from .sanitization import sanitize_text

__all__ = [
    "AuditMiddleware",
    "RateLimitMiddleware",
    "RateLimiter",
    "client_identifier",
    "configure_audit_logger",
    "record_audit_event",
    "require_admin",
    "sanitize_text",
]
