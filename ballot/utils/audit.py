from typing import Optional, Dict, Any
from flask import g, has_request_context, request

from ..extensions import db
from ..models.audit_log import AuditLog

def _actor():
    """
    Returns (actor_id, role) for the resolved identity, or (None, None)
    outside a request or before identity resolution (CLI, system jobs).
    """
    identity = getattr(g, "identity", None) if has_request_context() else None
    if identity is None:
        return None, None
    return identity.subject, identity.role.value

def audit_log(
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """Adds an audit row to the current session; the caller commits."""
    actor_id, role = _actor()

    ip = ua = None
    if has_request_context():
        ip = request.headers.get("X-Forwarded-For", request.remote_addr)
        ua = request.headers.get("User-Agent")

    log = AuditLog(
        actor_id=actor_id,
        actor_role=role,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id else None,
        ip_address=ip,
        user_agent=ua[:255] if ua else None,
        details=details or None,
    )
    db.session.add(log)


def query_audit_logs(filters: Dict[str, Any], limit: int, offset: int):
    """
    Newest first. `filters` maps AuditLog column names to exact values, plus
    optional `since` / `until` datetimes. Returns (total, rows).
    """
    filters = dict(filters)
    since = filters.pop("since", None)
    until = filters.pop("until", None)

    q = AuditLog.query.filter_by(**{k: v for k, v in filters.items() if v})
    if since is not None:
        q = q.filter(AuditLog.created_at >= since)
    if until is not None:
        q = q.filter(AuditLog.created_at <= until)

    total = q.count()
    rows = q.order_by(AuditLog.created_at.desc(), AuditLog.id).limit(limit).offset(offset).all()
    return total, rows
