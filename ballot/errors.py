from flask import jsonify, g, current_app
from werkzeug.exceptions import HTTPException


class ElectionError(Exception):
    """Base class for failures the election core reports to its callers."""

    code = "ELECTION_ERROR"
    status = 400
    message = "Election operation failed"

    def __init__(self, message: str | None = None, details=None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = details


class DuplicateVote(ElectionError):
    code = "DUPLICATE_VOTE"
    status = 409
    message = "You have already voted for this post"


class ElectionClosed(ElectionError):
    code = "ELECTION_CLOSED"
    status = 403
    message = "Voting is closed: results have been announced"


class ContestantNotFound(ElectionError):
    code = "CONTESTANT_NOT_FOUND"
    status = 404
    message = "Contestant not found"


class PostNotFound(ElectionError):
    code = "POST_NOT_FOUND"
    status = 404
    message = "Post not found"


class ValidationError(ElectionError):
    code = "VALIDATION_ERROR"
    status = 400
    message = "Validation error"


class ResultsNotAnnounced(ElectionError):
    code = "RESULTS_NOT_ANNOUNCED"
    status = 403
    message = "Results are not available yet"


class StorageFailure(ElectionError):
    """The store rejected or aborted the operation; nothing was applied, safe to retry."""

    code = "STORAGE_FAILURE"
    status = 503
    message = "Storage operation failed"


def _payload(code: str, message: str, details=None, status=400):
    return (
        jsonify({
            "success": False,
            "error": {
                "code": code,
                "message": message,
                "details": details or None,
            },
            "request_id": getattr(g, "request_id", None),
        }),
        status,
    )

def register_error_handlers(app):
    @app.errorhandler(ElectionError)
    def handle_election_error(e: ElectionError):
        if isinstance(e, StorageFailure):
            current_app.logger.warning(
                "Storage failure request_id=%s: %s", getattr(g, "request_id", None), e.message
            )
        return _payload(code=e.code, message=e.message, details=e.details, status=e.status)

    # Generic HTTP errors (404, 403, 401, etc.)
    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        desc = e.description

        # If we pass structured error info via abort(description=dict)
        if isinstance(desc, dict):
            code = desc.get("code") or e.name.replace(" ", "_").upper()
            message = desc.get("message") or e.name
            details = desc.get("errors") or desc.get("details")
            return _payload(code=code, message=message, details=details, status=e.code or 400)

        return _payload(
            code=e.name.replace(" ", "_").upper(),
            message=desc or e.name,
            details=None,
            status=e.code or 400
        )

    @app.errorhandler(404)
    def handle_404(_):
        return _payload("NOT_FOUND", "Resource not found", status=404)

    @app.errorhandler(500)
    def handle_500(_):
        # Don't leak internals
        return _payload("INTERNAL_SERVER_ERROR", "An unexpected error occurred", status=500)
