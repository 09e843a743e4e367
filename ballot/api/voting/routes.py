from flask import Blueprint, request
from flasgger import swag_from

from ...services import catalog, election, ledger
from ...schemas.post import BallotPostSchema
from ...schemas.vote import VoteSubmitSchema, VoteReceiptSchema
from ...utils.rbac import Role, current_identity, roles_required
from ...utils.validation import validate_or_abort

voting_bp = Blueprint("voting", __name__)
vote_submit_schema = VoteSubmitSchema()
vote_receipt_schema = VoteReceiptSchema()
ballot_post_schema = BallotPostSchema()


@voting_bp.get("/posts")
@roles_required(Role.VOTER, Role.ADMIN)
@swag_from({
    "tags": ["Voting"],
    "summary": "Posts with their contestants (voting booth)",
    "responses": {200: {"description": "OK"}, 401: {"description": "Unauthorized"}},
})
def list_ballot():
    return {"posts": catalog.ballot(ballot_post_schema.dump)}, 200


@voting_bp.post("/votes")
@roles_required(Role.VOTER, Role.ADMIN)
@swag_from({
    "tags": ["Voting"],
    "summary": "Cast a vote for a contestant (one per post)",
    "parameters": [{
        "in": "body",
        "name": "body",
        "required": True,
        "schema": {
            "type": "object",
            "properties": {"contestant_id": {"type": "string", "example": "uuid"}},
            "required": ["contestant_id"],
        },
    }],
    "responses": {
        201: {"description": "Vote recorded"},
        400: {"description": "Validation error"},
        403: {"description": "Voting closed (results announced)"},
        404: {"description": "Contestant not found"},
        409: {"description": "Already voted for this post"},
        503: {"description": "Storage failure, safe to retry"},
    },
})
def submit_vote():
    election.require_open()
    payload = validate_or_abort(vote_submit_schema, request.get_json(silent=True))
    identity = current_identity()

    vote = ledger.cast_vote(identity.subject, payload["contestant_id"])
    return {"message": "Vote recorded", "vote": vote_receipt_schema.dump(vote)}, 201


@voting_bp.get("/votes/mine")
@roles_required(Role.VOTER, Role.ADMIN)
@swag_from({
    "tags": ["Voting"],
    "summary": "Posts the caller has already voted for",
    "responses": {200: {"description": "OK"}, 401: {"description": "Unauthorized"}},
})
def my_votes():
    identity = current_identity()
    post_ids = sorted(str(p) for p in ledger.get_voted_posts(identity.subject))
    return {"voted_post_ids": post_ids, "count": len(post_ids)}, 200
