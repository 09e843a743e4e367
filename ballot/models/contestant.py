import uuid
from datetime import datetime
from ..extensions import db

class Contestant(db.Model):
    __tablename__ = "contestants"

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    post_id = db.Column(db.Uuid, db.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)

    name = db.Column(db.String(200), nullable=False)
    image = db.Column(db.String(500), nullable=False, default="")  # opaque URI
    bio = db.Column(db.Text, nullable=False, default="")

    # Denormalized tally; the votes table is the ledger
    votes = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    ballots = db.relationship(
        "Vote",
        backref="contestant",
        lazy=True,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        db.CheckConstraint("votes >= 0", name="ck_contestants_votes_non_negative"),
    )

    def to_event(self) -> dict:
        return {
            "id": str(self.id),
            "post_id": str(self.post_id),
            "name": self.name,
            "votes": self.votes,
        }
