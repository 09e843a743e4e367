from .post import Post  # noqa: F401
from .contestant import Contestant  # noqa: F401
from .vote import Vote  # noqa: F401
from .election_status import ElectionStatus  # noqa: F401
from .audit_log import AuditLog  # noqa: F401

# Import ALL models so SQLAlchemy registers them

__all__ = [
    "Post",
    "Contestant",
    "Vote",
    "ElectionStatus",
    "AuditLog",
]
