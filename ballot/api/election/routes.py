from flask import Blueprint
from flasgger import swag_from

from ...services import election
from ...schemas.results import ElectionStatusSchema
from ...utils.rbac import Role, roles_required

election_bp = Blueprint("election", __name__)
status_schema = ElectionStatusSchema()


@election_bp.get("/election/status")
@roles_required(Role.VOTER, Role.ADMIN)
@swag_from({
    "tags": ["Election"],
    "summary": "Whether voting is open (LIVE) or results are public (ANNOUNCED)",
    "responses": {200: {"description": "OK"}},
})
def status():
    return status_schema.dump(election.current_state()), 200


@election_bp.post("/admin/announce")
@roles_required(Role.ADMIN)
@swag_from({"tags": ["Election"], "summary": "Announce results and close voting", "responses": {200: {}, 403: {}}})
def announce():
    return status_schema.dump(election.announce()), 200


@election_bp.post("/admin/withdraw")
@roles_required(Role.ADMIN)
@swag_from({"tags": ["Election"], "summary": "Withdraw results and reopen voting", "responses": {200: {}, 403: {}}})
def withdraw():
    return status_schema.dump(election.withdraw()), 200


@election_bp.post("/admin/toggle")
@roles_required(Role.ADMIN)
@swag_from({"tags": ["Election"], "summary": "Flip between LIVE and ANNOUNCED", "responses": {200: {}, 403: {}}})
def toggle():
    return status_schema.dump(election.toggle()), 200
