ERROR_CODES = [
    "VALIDATION_ERROR",
    "DUPLICATE_VOTE",
    "ELECTION_CLOSED",
    "CONTESTANT_NOT_FOUND",
    "POST_NOT_FOUND",
    "RESULTS_NOT_ANNOUNCED",
    "STORAGE_FAILURE",
    "FORBIDDEN",
]


def swagger_template(app=None):
    title = "Ballot Election API"
    version = "1.0.0"

    if app:
        title = app.config.get("SWAGGER_TITLE", title)
        version = app.config.get("SWAGGER_VERSION", version)

    return {
        "swagger": "2.0",
        "info": {
            "title": title,
            "version": version,
            "description": "One vote per voter per post, live tallies for admins, results once announced.",
        },
        "securityDefinitions": {
            "BearerAuth": {
                "type": "apiKey",
                "name": "Authorization",
                "in": "header",
                "description": "JWT Authorization header: Bearer <token>. The `role` (or `user_role`) claim is VOTER or ADMIN."
            }
        },
        "security": [{"BearerAuth": []}],
        "tags": [
            {"name": "Voting", "description": "Ballot and vote casting"},
            {"name": "Results", "description": "Announced results"},
            {"name": "Election", "description": "LIVE / ANNOUNCED state"},
            {"name": "Admin: Posts"},
            {"name": "Admin: Contestants"},
            {"name": "Admin: Tallies", "description": "Overrides that bypass the vote ledger"},
            {"name": "Admin", "description": "Monitoring, history and audit"},
        ],
        "definitions": {
            "ErrorResponse": {
                "type": "object",
                "properties": {
                    "success": {"type": "boolean", "example": False},
                    "error": {
                        "type": "object",
                        "properties": {
                            "code": {"type": "string", "enum": ERROR_CODES, "example": "DUPLICATE_VOTE"},
                            "message": {"type": "string", "example": "You have already voted for this post"},
                            "details": {"type": "object"}
                        }
                    },
                    "request_id": {"type": "string"}
                }
            },
            "Contestant": {
                "type": "object",
                "properties": {
                    "id": {"type": "string", "format": "uuid"},
                    "post_id": {"type": "string", "format": "uuid"},
                    "name": {"type": "string"},
                    "image": {"type": "string"},
                    "bio": {"type": "string"},
                    "votes": {"type": "integer", "minimum": 0},
                }
            },
        }
    }
