import uuid
from datetime import datetime
from ..extensions import db

class Post(db.Model):
    __tablename__ = "posts"

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    name = db.Column(db.String(120), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    # relationship
    contestants = db.relationship(
        "Contestant",
        backref="post",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="Contestant.created_at",
    )
    votes = db.relationship(
        "Vote",
        backref="post",
        lazy=True,
        cascade="all, delete-orphan",
    )

    def to_event(self) -> dict:
        return {"id": str(self.id), "name": self.name, "description": self.description}
