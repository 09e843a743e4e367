import enum
from dataclasses import dataclass
from functools import wraps
from flask import abort, g
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request


class Role(str, enum.Enum):
    VOTER = "VOTER"
    ADMIN = "ADMIN"

    @classmethod
    def from_claims(cls, claims: dict) -> "Role":
        """
        Normalize the role claim once. Tokens from the auth service carry
        either `role` or the older `user_role`, in any case.
        """
        raw = claims.get("role") or claims.get("user_role")
        if not raw:
            raise ValueError("Token carries no role claim")
        try:
            return cls(str(raw).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown role: {raw}") from None


@dataclass(frozen=True)
class Identity:
    subject: str
    role: Role


def current_identity() -> Identity:
    """
    Resolve the caller from the JWT, caching it on `g` for the rest of the request.
    """
    identity = getattr(g, "identity", None)
    if identity is not None:
        return identity

    verify_jwt_in_request()
    try:
        role = Role.from_claims(get_jwt() or {})
    except ValueError as e:
        abort(403, description=str(e))

    g.identity = Identity(subject=str(get_jwt_identity()), role=role)
    return g.identity


def roles_required(*allowed_roles: Role):
    """
    Require a valid JWT and restrict endpoint access to specific roles.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            identity = current_identity()
            if identity.role not in allowed_roles:
                abort(403, description="Insufficient permissions")
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def init_identity(app):
    @app.before_request
    def _reset_identity():
        # g outlives the request when an app context is already pushed
        g.identity = None
