from microjob.extensions import db
from microjob.utils.clock import utc_now
from microjob.utils.money import from_cents, cents_to_float
import uuid

STATUS_SUBMITTED = "submitted"
STATUS_APPROVED = "approved"
STATUS_AUTO_APPROVED = "auto_approved"
STATUS_REJECTED = "rejected"
STATUS_REJECTED_ACCEPTED = "rejected_accepted"
STATUS_REVISION_REQUESTED = "revision_requested"
STATUS_CANCELLED_BY_WORKER = "cancelled_by_worker"

SETTLED_STATUSES = (STATUS_APPROVED, STATUS_AUTO_APPROVED)


def gen_work_proof_id():
    return f"WP-{uuid.uuid4().hex[:10]}"


def _iso(value):
    return value.isoformat() + "Z" if value else None


class WorkProof(db.Model):
    __tablename__ = "work_proofs"

    __table_args__ = (
        db.Index("idx_work_proofs_status", "status"),
        db.Index("idx_work_proofs_job_id", "job_id"),
    )

    id = db.Column(db.String(50), primary_key=True, default=gen_work_proof_id)
    job_id = db.Column(db.String(50), db.ForeignKey("jobs.id"), nullable=False)
    application_id = db.Column(db.String(50), nullable=True)

    worker_id = db.Column(db.String(50), nullable=False, index=True)
    employer_id = db.Column(db.String(50), nullable=False, index=True)

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    submission_text = db.Column(db.Text)

    proof_files = db.Column(db.JSON, nullable=False, default=list)
    proof_links = db.Column(db.JSON, nullable=False, default=list)
    screenshots = db.Column(db.JSON, nullable=False, default=list)
    attachments = db.Column(db.JSON, nullable=False, default=list)

    status = db.Column(db.String(30), nullable=False, default=STATUS_SUBMITTED)

    # fixed at submission
    payment_amount_cents = db.Column(db.BigInteger, nullable=False)

    submission_number = db.Column(db.Integer, nullable=False, default=1)
    revision_count = db.Column(db.Integer, nullable=False, default=0)
    revision_deadline = db.Column(db.DateTime)
    rejection_deadline = db.Column(db.DateTime)

    review_feedback = db.Column(db.Text)
    worker_response = db.Column(db.String(30))
    worker_response_at = db.Column(db.DateTime)

    submitted_at = db.Column(db.DateTime, nullable=False)
    reviewed_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now)

    job = db.relationship("Job", backref="work_proofs", lazy=True)

    @property
    def payment_amount(self):
        return from_cents(self.payment_amount_cents)

    @property
    def is_settled(self):
        return self.status in SETTLED_STATUSES

    def to_dict(self):
        return {
            "id": self.id,
            "job_id": self.job_id,
            "application_id": self.application_id,
            "worker_id": self.worker_id,
            "employer_id": self.employer_id,
            "title": self.title,
            "description": self.description,
            "submission_text": self.submission_text,
            "proof_files": self.proof_files or [],
            "proof_links": self.proof_links or [],
            "screenshots": self.screenshots or [],
            "attachments": self.attachments or [],
            "status": self.status,
            "payment_amount": cents_to_float(self.payment_amount_cents),
            "submission_number": self.submission_number,
            "revision_count": self.revision_count,
            "revision_deadline": _iso(self.revision_deadline),
            "rejection_deadline": _iso(self.rejection_deadline),
            "review_feedback": self.review_feedback,
            "worker_response": self.worker_response,
            "worker_response_at": _iso(self.worker_response_at),
            "submitted_at": _iso(self.submitted_at),
            "reviewed_at": _iso(self.reviewed_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
