from flask import Blueprint, current_app
from flasgger import swag_from

from ...errors import ResultsNotAnnounced
from ...extensions import db
from ...services import results
from ...schemas.results import StandingsSchema
from ...utils.audit import audit_log
from ...utils.rbac import Role, roles_required

results_bp = Blueprint("results", __name__)
standings_schema = StandingsSchema()


def _safe_audit_read(action: str, entity_type: str, entity_id: str | None = None, details: dict | None = None):
    """
    Best-effort audit for read-only endpoints.
    """
    try:
        audit_log(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details or {},
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Audit logging failed (read endpoint): %s", action)


@results_bp.get("/results")
@roles_required(Role.VOTER, Role.ADMIN)
@swag_from({
    "tags": ["Results"],
    "summary": "Announced results: winner and other contestants per post",
    "description": "Only available once an admin has announced the results.",
    "responses": {
        200: {"description": "Results"},
        403: {"description": "Results not announced yet"},
        503: {"description": "Storage failure"},
    },
})
def announced_results():
    try:
        posts = results.announced_standings()
    except ResultsNotAnnounced:
        _safe_audit_read(
            action="RESULTS_VIEW_DENIED",
            entity_type="ELECTION",
            details={"reason": "results_not_announced"},
        )
        raise

    return standings_schema.dump({"results_announced": True, "posts": posts}), 200
