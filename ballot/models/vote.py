import uuid
from datetime import datetime
from ..extensions import db

class Vote(db.Model):
    __tablename__ = "votes"

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)

    # Identifier supplied by the identity layer (JWT subject)
    voter_id = db.Column(db.String(128), nullable=False, index=True)

    contestant_id = db.Column(db.Uuid, db.ForeignKey("contestants.id", ondelete="CASCADE"), nullable=False)
    # Copied from the contestant at write time
    post_id = db.Column(db.Uuid, db.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)

    cast_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    __table_args__ = (
        # One vote per voter per post
        db.UniqueConstraint("voter_id", "post_id", name="uq_votes_voter_post"),
        db.Index("ix_votes_post_id", "post_id"),
        db.Index("ix_votes_contestant_id", "contestant_id"),
    )

    def to_event(self) -> dict:
        return {
            "id": str(self.id),
            "voter_id": self.voter_id,
            "contestant_id": str(self.contestant_id),
            "post_id": str(self.post_id),
            "cast_at": self.cast_at.isoformat() + "Z" if self.cast_at else None,
        }
