import re
import time
import uuid
from flask import current_app, g, request

# Ids supplied by a proxy are echoed back and written to logs
_VALID_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def _incoming_id(header: str):
    rid = request.headers.get(header)
    if rid and _VALID_ID.match(rid):
        return rid
    return None


def init_request_id(app):
    header = app.config.get("REQUEST_ID_HEADER", "X-Request-Id")

    @app.before_request
    def _assign_request_id():
        g.request_id = _incoming_id(header) or str(uuid.uuid4())
        g.request_started = time.monotonic()

    @app.after_request
    def _add_request_id_header(response):
        if hasattr(g, "request_id"):
            response.headers[header] = g.request_id
            elapsed_ms = (time.monotonic() - g.get("request_started", time.monotonic())) * 1000
            current_app.logger.debug(
                "%s %s -> %s in %.1fms request_id=%s",
                request.method, request.path, response.status_code, elapsed_ms, g.request_id,
            )
        return response
