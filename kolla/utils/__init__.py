"""
Utility modules for the Kolla API.
"""

from .audit_log import (
    client_ip,
    log_auth_event,
    log_authorization_failure,
    log_rejected_callback,
    log_sensitive_operation
)

__all__ = [
    "client_ip",
    "log_auth_event",
    "log_authorization_failure",
    "log_rejected_callback",
    "log_sensitive_operation"
]
