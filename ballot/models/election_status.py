from datetime import datetime
from ..extensions import db

class ElectionStatus(db.Model):
    __tablename__ = "election_status"

    SINGLETON_ID = 1

    STATE_LIVE = "LIVE"
    STATE_ANNOUNCED = "ANNOUNCED"

    id = db.Column(db.Integer, primary_key=True, default=SINGLETON_ID)
    results_announced = db.Column(db.Boolean, nullable=False, default=False)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def state(self) -> str:
        return self.STATE_ANNOUNCED if self.results_announced else self.STATE_LIVE

    def announce(self) -> bool:
        """Returns True if the state changed."""
        if self.results_announced:
            return False
        self.results_announced = True
        return True

    def withdraw(self) -> bool:
        if not self.results_announced:
            return False
        self.results_announced = False
        return True

    def to_event(self) -> dict:
        return {"results_announced": self.results_announced, "state": self.state}
