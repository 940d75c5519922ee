from __future__ import annotations

import json
import logging
from datetime import date, datetime, time, timezone
from typing import Any, Literal, Optional

from .request_id import get_request_id

AuditAction = Literal[
    "reservation.created",
    "reservation.cancelled",
    "reservation.expired",
    "credits.adjusted",
    "config.updated",
    "fields.updated",
    "closure.created",
    "closure.deleted",
    "user.renamed",
    "user.status_changed",
]
AuditInitiator = Literal["user", "admin", "system"]

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
    if isinstance(value, time):
        return value.strftime("%H:%M")
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def emit_audit_log(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    actor: Optional[str],
    reservation_id: Optional[int] = None,
    field_id: Optional[str] = None,
    day: Optional[date] = None,
    slot_time: Optional[time] = None,
    username: Optional[str] = None,
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
        "actor": actor,
        "reservation_id": reservation_id,
        "field_id": field_id,
        "date": _to_json_value(day),
        "time": _to_json_value(slot_time),
        "username": username,
    }
    if message is not None:
        payload["message"] = message
    if extra:
        payload.update({key: _to_json_value(value) for key, value in extra.items()})

    # Drop None values to keep the log compact.
    compact_payload = {k: v for k, v in payload.items() if v is not None}
    try:
        _audit_logger.info(json.dumps(compact_payload, ensure_ascii=True))
    except Exception as exc:  # pragma: no cover
        raise RuntimeError("failed to emit audit log") from exc
