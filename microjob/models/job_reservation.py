from microjob.extensions import db
from microjob.utils.clock import utc_now
import uuid

STATUS_ACTIVE = "active"
STATUS_EXPIRED = "expired"
STATUS_CANCELLED = "cancelled"


def gen_reservation_id():
    return f"RSV-{uuid.uuid4().hex[:10]}"


class JobReservation(db.Model):
    __tablename__ = "job_reservations"

    __table_args__ = (
        # one live hold per (job, user); stale rows are expired before insert
        db.Index(
            "uq_job_reservations_active",
            "job_id", "user_id",
            unique=True,
            postgresql_where=db.text("status = 'active'"),
            sqlite_where=db.text("status = 'active'"),
        ),
        db.Index("idx_job_reservations_status_expires", "status", "expires_at"),
    )

    id = db.Column(db.String(50), primary_key=True, default=gen_reservation_id)
    job_id = db.Column(db.String(50), db.ForeignKey("jobs.id"), nullable=False, index=True)
    user_id = db.Column(db.String(50), nullable=False, index=True)

    status = db.Column(db.String(20), nullable=False, default=STATUS_ACTIVE)
    expires_at = db.Column(db.DateTime, nullable=False)

    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now)

    job = db.relationship("Job", lazy=True)

    def is_live(self, now):
        return self.status == STATUS_ACTIVE and self.expires_at > now
