from microjob.extensions import db
from microjob.utils.clock import utc_now
import uuid


def gen_violation_id():
    return f"VIO-{uuid.uuid4().hex[:10]}"


class ReservationViolation(db.Model):
    __tablename__ = "reservation_violations"

    id = db.Column(db.String(50), primary_key=True, default=gen_violation_id)
    user_id = db.Column(db.String(50), unique=True, nullable=False)

    violation_count = db.Column(db.Integer, nullable=False, default=0)
    expired_reservations = db.Column(db.Integer, nullable=False, default=0)
    total_reservations = db.Column(db.Integer, nullable=False, default=0)
    last_violation_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "violation_count": self.violation_count,
            "expired_reservations": self.expired_reservations,
            "total_reservations": self.total_reservations,
            "last_violation_at": self.last_violation_at.isoformat() + "Z" if self.last_violation_at else None,
        }
