"""
Audit logging for security-sensitive operations.

Records token rejections, authorization failures, rejected job callbacks
and destructive operations on clips and links on the "audit" logger, one
pipe-separated line per event.
"""

import logging
from typing import Optional
from fastapi import Request

audit_logger = logging.getLogger("audit")
audit_logger.setLevel(logging.INFO)

if not audit_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - AUDIT - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    audit_logger.addHandler(handler)


def client_ip(request: Optional[Request]) -> str:
    """Caller address, preferring the first X-Forwarded-For hop."""
    if request is None:
        return "unknown"
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _emit(level: int, kind: str, fields: dict, request: Optional[Request], extra_key: str, extra: Optional[str]):
    parts = [kind] + [f"{key}={value}" for key, value in fields.items()]
    parts.append(f"ip={client_ip(request)}")
    if extra:
        parts.append(f"{extra_key}={extra}")
    audit_logger.log(level, " | ".join(parts))


def log_auth_event(
    event_type: str,
    subject: Optional[str],
    success: bool,
    request: Optional[Request] = None,
    details: Optional[str] = None
):
    """
    Log a bearer token event such as token_rejected or user_provisioned.

    Failures are logged at WARNING, successes at INFO.
    """
    outcome = "SUCCESS" if success else "FAILURE"
    _emit(
        logging.INFO if success else logging.WARNING,
        f"AUTH_EVENT | {event_type.upper()} | {outcome}",
        {"subject": subject or "N/A"},
        request, "details", details
    )


def log_authorization_failure(
    user_id: int,
    role: Optional[str],
    resource_type: str,
    resource_id,
    action: str,
    request: Optional[Request] = None,
    reason: Optional[str] = None
):
    """Log a 403: who asked, with what team role, for which resource and action."""
    _emit(
        logging.WARNING,
        "AUTHZ_FAILURE",
        {"user_id": user_id, "role": role or "none", "resource": f"{resource_type}:{resource_id}", "action": action},
        request, "reason", reason
    )


def log_rejected_callback(channel: str, request: Optional[Request] = None, reason: Optional[str] = None):
    """Log a job callback or provider webhook that failed authentication."""
    _emit(logging.WARNING, "CALLBACK_REJECTED", {"channel": channel}, request, "reason", reason)


def log_sensitive_operation(
    operation: str,
    user_id: Optional[int],
    team_id: int,
    request: Optional[Request] = None,
    details: Optional[str] = None
):
    """
    Log a destructive or privileged operation.

    user_id is None for anonymous upload-link callers.
    """
    _emit(
        logging.INFO,
        f"SENSITIVE_OP | {operation.upper()}",
        {"user_id": user_id if user_id is not None else "anonymous", "team_id": team_id},
        request, "details", details
    )
