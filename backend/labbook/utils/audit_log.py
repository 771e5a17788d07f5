from __future__ import annotations

import json
import logging
from datetime import date, datetime, time, timezone
from typing import Any, Literal, Optional

from .request_id import get_request_id

AuditAction = Literal[
    "booking.created",
    "booking.cancelled",
    "booking.admin_created",
    "booking.admin_cancelled",
    "instructor.added",
    "instructor.removed",
    "date.blocked",
    "date.unblocked",
    "admin.login",
    "admin.login_denied",
]
AuditInitiator = Literal["public", "admin", "system"]

_audit_logger = logging.getLogger("audit")
_audit_logger.setLevel(logging.INFO)
if not _audit_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _audit_logger.addHandler(handler)
_audit_logger.propagate = False


def _to_json_value(value: Any) -> Any:
    if value is None:
        return None
    if hasattr(value, "value"):
        return str(value.value)
    if isinstance(value, (date, datetime, time)):
        return value.isoformat()
    return value


def emit_audit_log(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    email: Optional[str] = None,
    booking_date: Optional[date] = None,
    code: Optional[str] = None,
    count: Optional[int] = None,
    as_instructor: Optional[bool] = None,
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Emit structured JSON audit log. Raises RuntimeError if logging fails."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "initiator": initiator,
        "request_id": get_request_id(),
        "email": email,
        "date": _to_json_value(booking_date),
        "code": code,
        "count": count,
        "as_instructor": as_instructor,
    }
    if message is not None:
        payload["message"] = message
    if extra:
        payload.update({k: _to_json_value(v) for k, v in extra.items()})

    # Drop None values to keep the log compact.
    compact_payload = {k: v for k, v in payload.items() if v is not None}
    try:
        _audit_logger.info(json.dumps(compact_payload, ensure_ascii=True))
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc


def audit_after_commit(**kwargs: Any) -> None:
    """Audit an already committed change; a logging failure is logged, never raised."""
    try:
        emit_audit_log(**kwargs)
    except RuntimeError:
        logging.getLogger(__name__).exception("audit log failed for %s", kwargs.get("action"))
