from microjob.extensions import db
from microjob.utils.clock import utc_now
from microjob.utils.money import cents_to_float
import uuid

APPROVAL_INSTANT = "instant"
APPROVAL_MANUAL = "manual"


def gen_job_id():
    return f"JOB-{str(uuid.uuid4())[:8]}"


class Job(db.Model):
    """Job posting. Owned by the catalogue service; this core only reads it."""

    __tablename__ = "jobs"

    id = db.Column(db.String(50), primary_key=True, default=gen_job_id)
    employer_id = db.Column(db.String(50), nullable=False, index=True)

    title = db.Column(db.String(255), nullable=False)
    budget_min_cents = db.Column(db.BigInteger)
    budget_max_cents = db.Column(db.BigInteger)

    status = db.Column(db.String(50), default="open")

    approval_type = db.Column(db.String(20), nullable=False, default=APPROVAL_MANUAL)
    # fractional days are allowed (the admin panel goes down to one minute);
    # NULL falls back to the admin default window
    manual_approval_days = db.Column(db.Float, nullable=True)

    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, onupdate=utc_now)

    @property
    def is_instant_approval(self):
        return self.approval_type == APPROVAL_INSTANT

    def summary(self):
        return {
            "id": self.id,
            "title": self.title,
            "budget_min": cents_to_float(self.budget_min_cents) if self.budget_min_cents is not None else None,
            "budget_max": cents_to_float(self.budget_max_cents) if self.budget_max_cents is not None else None,
        }
