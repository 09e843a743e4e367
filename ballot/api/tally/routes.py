from flask import Blueprint, request
from flasgger import swag_from

from ...services import tally
from ...schemas.contestant import ContestantReadSchema, VoteAdjustSchema, VoteSetSchema
from ...utils.rbac import Role, roles_required
from ...utils.validation import validate_or_abort

tally_bp = Blueprint("tally", __name__)

vote_adjust_schema = VoteAdjustSchema()
vote_set_schema = VoteSetSchema()
contestant_read_schema = ContestantReadSchema()


@tally_bp.post("/contestants/<uuid:contestant_id>/adjust")
@roles_required(Role.ADMIN)
@swag_from({
    "tags": ["Admin: Tallies"],
    "summary": "Add or subtract votes (clamped at zero). Does not touch the vote ledger.",
    "parameters": [{
        "in": "body",
        "name": "body",
        "required": True,
        "schema": {
            "type": "object",
            "properties": {
                "delta": {"type": "integer", "example": -1},
                "reason": {"type": "string", "example": "Paper ballots counted"},
            },
            "required": ["delta"],
        },
    }],
    "responses": {200: {}, 400: {}, 403: {}, 404: {}},
})
def adjust_votes(contestant_id):
    payload = validate_or_abort(vote_adjust_schema, request.get_json(silent=True))
    contestant = tally.adjust_votes(contestant_id, payload["delta"], payload.get("reason"))
    return {"contestant": contestant_read_schema.dump(contestant)}, 200


@tally_bp.put("/contestants/<uuid:contestant_id>/votes")
@roles_required(Role.ADMIN)
@swag_from({
    "tags": ["Admin: Tallies"],
    "summary": "Set a contestant's vote count (negative values become zero)",
    "responses": {200: {}, 400: {}, 403: {}, 404: {}},
})
def set_votes(contestant_id):
    payload = validate_or_abort(vote_set_schema, request.get_json(silent=True))
    contestant = tally.set_votes(contestant_id, payload["votes"], payload.get("reason"))
    return {"contestant": contestant_read_schema.dump(contestant)}, 200


@tally_bp.post("/reset")
@roles_required(Role.ADMIN)
@swag_from({
    "tags": ["Admin: Tallies"],
    "summary": "Delete every vote and zero every tally",
    "responses": {200: {}, 403: {}, 503: {}},
})
def reset_all():
    counts = tally.reset_all()
    return {"message": "All votes reset successfully", **counts}, 200


@tally_bp.get("/discrepancies")
@roles_required(Role.ADMIN)
@swag_from({
    "tags": ["Admin: Tallies"],
    "summary": "Contestants whose tally differs from their ledger count",
    "responses": {200: {}, 403: {}},
})
def discrepancies():
    rows = tally.ledger_discrepancies()
    return {"count": len(rows), "discrepancies": rows}, 200
