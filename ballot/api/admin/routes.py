import uuid
from datetime import datetime, timezone
from flask import Blueprint, request, current_app
from flasgger import swag_from
from sqlalchemy.exc import SQLAlchemyError

from ...errors import StorageFailure, ValidationError
from ...extensions import db, change_feed
from ...services import ledger, results
from ...schemas.audit import AuditLogReadSchema
from ...schemas.results import StandingsSchema
from ...schemas.vote import VoteHistorySchema
from ...utils.audit import query_audit_logs
from ...utils.rbac import Role, roles_required

admin_bp = Blueprint("admin", __name__)

standings_schema = StandingsSchema()
vote_history_schema = VoteHistorySchema(many=True)
audit_log_schema = AuditLogReadSchema(many=True)


def _utc_naive(raw: str | None):
    """ISO date-time, with or without offset or 'Z', as naive UTC. None passes through."""
    if not raw:
        return None
    dt = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _paging(default_limit: int = 50):
    max_limit = current_app.config.get("VOTE_HISTORY_MAX_LIMIT", 200)
    limit = min(int(request.args.get("limit", default_limit)), max_limit)
    offset = int(request.args.get("offset", 0))
    if limit < 1 or offset < 0:
        raise ValueError("limit must be positive and offset non-negative")
    return limit, offset


def _optional_uuid(name: str):
    raw = request.args.get(name)
    return uuid.UUID(raw) if raw and raw != "all" else None


@admin_bp.get("/winners")
@roles_required(Role.ADMIN)
@swag_from({
    "tags": ["Admin"],
    "summary": "Current winners preview (available before announcement)",
    "responses": {200: {"description": "Standings"}, 403: {"description": "Forbidden"}},
})
def winners_preview():
    summary = results.summary()
    return standings_schema.dump({
        "results_announced": summary["results_announced"],
        "posts": results.standings(),
    }), 200


@admin_bp.get("/stats")
@roles_required(Role.ADMIN)
@swag_from({
    "tags": ["Admin"],
    "summary": "Election overview counters",
    "responses": {200: {"description": "Stats"}, 403: {"description": "Forbidden"}},
})
def stats():
    now = datetime.utcnow()
    return {"timestamp": now.isoformat() + "Z", **results.summary()}, 200


@admin_bp.get("/votes")
@roles_required(Role.ADMIN)
@swag_from({
    "tags": ["Admin"],
    "summary": "Vote history, newest first",
    "parameters": [
        {"in": "query", "name": "post_id", "type": "string", "required": False},
        {"in": "query", "name": "contestant_id", "type": "string", "required": False},
        {"in": "query", "name": "voter_id", "type": "string", "required": False},
        {"in": "query", "name": "limit", "type": "integer", "required": False, "default": 50},
        {"in": "query", "name": "offset", "type": "integer", "required": False, "default": 0},
    ],
    "responses": {200: {"description": "Votes"}, 400: {"description": "Bad request"}, 403: {"description": "Forbidden"}},
})
def vote_history():
    try:
        limit, offset = _paging()
        post_id = _optional_uuid("post_id")
        contestant_id = _optional_uuid("contestant_id")
    except ValueError as e:
        raise ValidationError(f"Invalid query parameter: {e}", details={"query": [str(e)]}) from None

    total, votes = ledger.list_votes(
        post_id=post_id,
        contestant_id=contestant_id,
        voter_id=request.args.get("voter_id"),
        limit=limit,
        offset=offset,
    )
    return {
        "total": total,
        "limit": limit,
        "offset": offset,
        "votes": vote_history_schema.dump(votes),
    }, 200


@admin_bp.get("/changes")
@roles_required(Role.ADMIN)
@swag_from({
    "tags": ["Admin"],
    "summary": "Poll live changes (tallies, votes, posts, election state) after a sequence number",
    "parameters": [
        {"in": "query", "name": "since", "type": "integer", "required": False, "default": 0},
        {"in": "query", "name": "tables", "type": "string", "required": False,
         "description": "Comma separated: posts,contestants,votes,election_status"},
    ],
    "responses": {200: {"description": "Events"}, 400: {"description": "Bad request"}},
})
def changes():
    try:
        since = int(request.args.get("since", 0))
        tables = [t.strip() for t in request.args.get("tables", "").split(",") if t.strip()]
        events = change_feed.events_since(since, tables)
    except ValueError as e:
        raise ValidationError(f"Invalid query parameter: {e}", details={"query": [str(e)]}) from None

    return {
        "last_seq": change_feed.last_seq,
        "events": [e.to_dict() for e in events],
    }, 200


@admin_bp.get("/audit-logs")
@roles_required(Role.ADMIN)
@swag_from({
    "tags": ["Admin"],
    "summary": "Query audit logs (tally overrides, resets, announcements, votes)",
    "parameters": [
        {"in": "query", "name": "action", "type": "string", "required": False, "description": "e.g. TALLY_SET"},
        {"in": "query", "name": "entity_type", "type": "string", "required": False},
        {"in": "query", "name": "entity_id", "type": "string", "required": False},
        {"in": "query", "name": "actor_id", "type": "string", "required": False},
        {"in": "query", "name": "from", "type": "string", "required": False, "description": "ISO date-time"},
        {"in": "query", "name": "to", "type": "string", "required": False, "description": "ISO date-time"},
        {"in": "query", "name": "limit", "type": "integer", "required": False, "default": 50},
        {"in": "query", "name": "offset", "type": "integer", "required": False, "default": 0},
    ],
    "responses": {200: {"description": "Logs"}, 400: {"description": "Bad request"}, 403: {"description": "Forbidden"}}
})
def audit_logs():
    try:
        limit, offset = _paging()
        filters = {
            "action": request.args.get("action"),
            "entity_type": request.args.get("entity_type"),
            "entity_id": request.args.get("entity_id"),
            "actor_id": request.args.get("actor_id"),
            "since": _utc_naive(request.args.get("from")),
            "until": _utc_naive(request.args.get("to")),
        }
    except ValueError as e:
        raise ValidationError(f"Invalid query parameter: {e}", details={"query": [str(e)]}) from None

    try:
        total, logs = query_audit_logs(filters, limit=limit, offset=offset)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error querying audit logs")
        raise StorageFailure("Failed to query audit logs")

    return {
        "total": total,
        "limit": limit,
        "offset": offset,
        "logs": audit_log_schema.dump(logs),
    }, 200
