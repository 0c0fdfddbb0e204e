import logging
from datetime import timedelta

from sqlalchemy import func

from microjob.extensions import db
from microjob.models.job import Job, APPROVAL_MANUAL
from microjob.models.work_proof import (
    WorkProof,
    gen_work_proof_id,
    STATUS_SUBMITTED,
    STATUS_REJECTED,
    STATUS_REVISION_REQUESTED,
)
from microjob.services import wallet_service
from microjob.services.settings_service import ApprovalSettings
from microjob.services.work_proof_transitions import (
    transition,
    SUBMIT,
    INSTANT_APPROVE,
    APPROVE,
    APPROVAL_TIMEOUT,
    REJECT,
    REQUEST_REVISION,
    ACCEPT_REJECTION,
    REJECTION_TIMEOUT,
    CANCEL_BY_WORKER,
    REVISION_TIMEOUT,
    RESUBMIT,
    SETTLE_PAYMENT,
)
from microjob.utils.exceptions import (
    AlreadySettledError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    RevisionLimitExceededError,
    ServiceError,
    ValidationError,
)
from microjob.utils.money import to_cents, from_cents
from microjob.utils.transactions import atomic

logger = logging.getLogger(__name__)

proofs = WorkProof.__table__

ARTIFACT_FIELDS = ("proof_files", "proof_links", "screenshots", "attachments")

PAYMENT_REFERENCE_TYPE = "work_proof_payment"
FEE_REFERENCE_TYPE = "work_proof_fee"


# ------------------------------------------------------------
# internals
# ------------------------------------------------------------

def _load(proof_id, *, employer_id=None, worker_id=None):
    proof = db.session.get(WorkProof, proof_id)
    if proof is None:
        raise NotFoundError("Work proof not found")
    # someone else's proof looks exactly like a missing one
    if employer_id is not None and proof.employer_id != employer_id:
        raise NotFoundError("Work proof not found")
    if worker_id is not None and proof.worker_id != worker_id:
        raise NotFoundError("Work proof not found")
    return proof


def _artifacts(artifacts):
    artifacts = artifacts or {}
    return {name: list(artifacts.get(name) or []) for name in ARTIFACT_FIELDS}


def _settle(proof_id, employer_id, worker_id, amount_cents, title, settler=None, fee_settings=None):
    settler = settler or wallet_service.process_payment
    settler(
        employer_id,
        worker_id,
        from_cents(amount_cents),
        f"Payment for approved work: {title}",
        proof_id,
        PAYMENT_REFERENCE_TYPE,
    )

    fee_cents = fee_settings.fee_for(amount_cents) if fee_settings else 0
    if fee_cents:
        wallet_service.record_adjustment(
            worker_id,
            "fee",
            from_cents(fee_cents),
            "pending",
            f"Platform fee for work: {title}",
            reference_id=proof_id,
            reference_type=FEE_REFERENCE_TYPE,
        )


def _run_effects(step, proof_id, employer_id, worker_id, amount_cents, title, settler, fee_settings):
    for effect in step.effects:
        if effect == SETTLE_PAYMENT:
            _settle(proof_id, employer_id, worker_id, amount_cents, title, settler, fee_settings)


def _apply(proof, event, now, *, settler=None, fee_settings=None, **changes):
    """Move `proof` through `event` with a write conditioned on its current status.

    Must run inside atomic(). Effects run after the status write so a failing
    payment rolls the transition back with it.
    """
    step = transition(proof.status, event)

    # captured before the row is expired below
    proof_id = proof.id
    employer_id, worker_id = proof.employer_id, proof.worker_id
    amount_cents, title = proof.payment_amount_cents, proof.title

    stmt = (
        proofs.update()
        .where(proofs.c.id == proof_id, proofs.c.status == step.from_status)
        .values(status=step.to_status, updated_at=now, **changes)
    )
    result = db.session.execute(stmt)
    db.session.expire_all()

    if result.rowcount == 0:
        # lost the race: report what the winner left behind
        current = db.session.get(WorkProof, proof_id)
        transition(current.status, event)
        raise InvalidStateError(details={"status": current.status, "event": event})

    _run_effects(step, proof_id, employer_id, worker_id, amount_cents, title, settler, fee_settings)
    logger.info("Work proof %s: %s -> %s (%s)", proof_id, step.from_status, step.to_status, event)
    return db.session.get(WorkProof, proof_id)


# ------------------------------------------------------------
# reads
# ------------------------------------------------------------

def get_work_proof(proof_id, viewer_id=None):
    proof = _load(proof_id)
    if viewer_id is not None and viewer_id not in (proof.worker_id, proof.employer_id):
        raise NotFoundError("Work proof not found")
    return proof


def list_work_proofs_for_job(job_id, viewer_id=None):
    job = db.session.get(Job, job_id)
    if job is None:
        raise NotFoundError("Job not found")

    q = WorkProof.query.filter_by(job_id=job_id)
    if viewer_id is not None and viewer_id != job.employer_id:
        q = q.filter_by(worker_id=viewer_id)
    return q.order_by(WorkProof.submitted_at.desc()).all()


# ------------------------------------------------------------
# employer / worker actions
# ------------------------------------------------------------

def submit_work_proof(
    job_id,
    worker_id,
    title,
    payment_amount,
    *,
    now,
    application_id=None,
    description=None,
    submission_text=None,
    artifacts=None,
    fee_settings=None,
    settler=None,
):
    """Create a submission. Instant-approval jobs settle in the same transaction."""
    try:
        amount_cents = to_cents(payment_amount)
    except ValueError as exc:
        raise ValidationError(str(exc))
    if amount_cents <= 0:
        raise ValidationError("Payment amount must be greater than zero")

    with atomic():
        job = db.session.get(Job, job_id)
        if job is None:
            raise NotFoundError("Job not found")
        if job.employer_id == worker_id:
            raise ForbiddenError("You cannot submit work for your own job")

        event = INSTANT_APPROVE if job.is_instant_approval else SUBMIT
        step = transition(None, event)

        last_number = (
            db.session.query(func.max(WorkProof.submission_number))
            .filter_by(job_id=job_id, worker_id=worker_id)
            .scalar()
        ) or 0

        proof = WorkProof(
            id=gen_work_proof_id(),
            job_id=job_id,
            application_id=application_id,
            worker_id=worker_id,
            employer_id=job.employer_id,
            title=title,
            description=description,
            submission_text=submission_text or description,
            status=step.to_status,
            payment_amount_cents=amount_cents,
            submission_number=last_number + 1,
            revision_count=0,
            submitted_at=now,
            created_at=now,
            updated_at=now,
            **_artifacts(artifacts),
        )
        if event == INSTANT_APPROVE:
            proof.reviewed_at = now
            proof.review_feedback = "Automatically approved and paid (instant payment)"

        db.session.add(proof)
        db.session.flush()

        _run_effects(step, proof.id, proof.employer_id, worker_id, amount_cents, title, settler, fee_settings)

    logger.info("Work proof %s submitted for job %s (%s)", proof.id, job_id, step.to_status)
    return proof


def approve_work_proof(proof_id, review_notes=None, *, now, employer_id=None, fee_settings=None, settler=None):
    with atomic():
        proof = _load(proof_id, employer_id=employer_id)
        proof = _apply(
            proof,
            APPROVE,
            now,
            settler=settler,
            fee_settings=fee_settings,
            reviewed_at=now,
            review_feedback=review_notes or "Work approved by employer",
        )
    return proof


def reject_work_proof(proof_id, reason, timeout_hours, *, now, employer_id=None):
    with atomic():
        proof = _load(proof_id, employer_id=employer_id)
        proof = _apply(
            proof,
            REJECT,
            now,
            reviewed_at=now,
            review_feedback=reason,
            rejection_deadline=now + timedelta(hours=timeout_hours),
        )
    return proof


def request_revision(proof_id, notes, timeout_hours, *, now, max_revisions=None, employer_id=None):
    with atomic():
        proof = _load(proof_id, employer_id=employer_id)
        # state errors win over the limit check
        transition(proof.status, REQUEST_REVISION)
        if max_revisions is not None and (proof.revision_count or 0) >= max_revisions:
            raise RevisionLimitExceededError(details={
                "revision_count": proof.revision_count,
                "max": max_revisions,
            })
        proof = _apply(
            proof,
            REQUEST_REVISION,
            now,
            reviewed_at=now,
            review_feedback=notes,
            revision_deadline=now + timedelta(hours=timeout_hours),
            revision_count=func.coalesce(proofs.c.revision_count, 0) + 1,
        )
    return proof


def accept_rejection(proof_id, *, now, worker_id=None):
    with atomic():
        proof = _load(proof_id, worker_id=worker_id)
        proof = _apply(proof, ACCEPT_REJECTION, now, worker_response="accepted", worker_response_at=now)
    return proof


def cancel_by_worker(proof_id, *, now, worker_id=None):
    with atomic():
        proof = _load(proof_id, worker_id=worker_id)
        proof = _apply(proof, CANCEL_BY_WORKER, now, worker_response="cancelled", worker_response_at=now)
    return proof


def resubmit_work_proof(proof_id, *, now, worker_id=None, description=None, submission_text=None, artifacts=None):
    with atomic():
        proof = _load(proof_id, worker_id=worker_id)
        changes = {
            "submission_number": proofs.c.submission_number + 1,
            "submitted_at": now,
            "reviewed_at": None,
            "review_feedback": None,
            "revision_deadline": None,
        }
        if description is not None:
            changes["description"] = description
            changes["submission_text"] = submission_text or description
        elif submission_text is not None:
            changes["submission_text"] = submission_text
        if artifacts is not None:
            changes.update(_artifacts(artifacts))
        proof = _apply(proof, RESUBMIT, now, **changes)
    return proof


# ------------------------------------------------------------
# deadline sweep
# ------------------------------------------------------------

def approval_window_days(job_days, approval=None):
    """Days an employer has to review a manual-approval proof.

    The job's own window applies when it set one and per-job selection is
    allowed; otherwise the admin default does.
    """
    approval = approval or ApprovalSettings()
    if job_days is not None and approval.allow_manual_approval_time_selection:
        return job_days
    return approval.default_manual_approval_days


def _approval_due(proof, now, approval=None):
    job = proof.job
    if proof.status != STATUS_SUBMITTED or job is None or job.approval_type != APPROVAL_MANUAL:
        return False
    days = approval_window_days(job.manual_approval_days, approval)
    return proof.submitted_at + timedelta(days=days) < now


def _rejection_due(proof, now):
    return proof.status == STATUS_REJECTED and proof.rejection_deadline is not None and proof.rejection_deadline < now


def _revision_due(proof, now):
    return (
        proof.status == STATUS_REVISION_REQUESTED
        and proof.revision_deadline is not None
        and proof.revision_deadline < now
    )


def _sweep_one(proof_id, event, due, now, *, settler=None, fee_settings=None, **changes):
    try:
        with atomic():
            proof = db.session.get(WorkProof, proof_id)
            # re-check against the fresh row, the candidate list may be stale
            if proof is None or not due(proof, now):
                return 0
            _apply(proof, event, now, settler=settler, fee_settings=fee_settings, **changes)
        return 1
    except (AlreadySettledError, InvalidStateError):
        logger.info("Work proof %s moved on before %s, skipping", proof_id, event)
    except ServiceError as exc:
        logger.warning("Sweep could not apply %s to work proof %s: %s %s", event, proof_id, exc.code, exc.message)
    return 0


def _candidates(now, approval):
    with atomic():
        submitted = (
            db.session.query(WorkProof.id, WorkProof.submitted_at, Job.manual_approval_days)
            .join(Job, Job.id == WorkProof.job_id)
            .filter(WorkProof.status == STATUS_SUBMITTED, Job.approval_type == APPROVAL_MANUAL)
            .all()
        )
        approvals = [
            proof_id for proof_id, submitted_at, job_days in submitted
            if submitted_at + timedelta(days=approval_window_days(job_days, approval)) < now
        ]
        rejections = [
            row.id for row in
            db.session.query(WorkProof.id)
            .filter(WorkProof.status == STATUS_REJECTED, WorkProof.rejection_deadline < now)
            .all()
        ]
        revisions = [
            row.id for row in
            db.session.query(WorkProof.id)
            .filter(WorkProof.status == STATUS_REVISION_REQUESTED, WorkProof.revision_deadline < now)
            .all()
        ]
    return approvals, rejections, revisions


def sweep_deadlines(now, settler=None, fee_settings=None, approval_settings=None):
    """Drive every proof whose deadline has passed to its timeout state.

    Returns how many proofs were transitioned. Safe to run repeatedly.
    """
    approvals, rejections, revisions = _candidates(now, approval_settings)
    processed = 0

    for proof_id in approvals:
        processed += _sweep_one(
            proof_id,
            APPROVAL_TIMEOUT,
            lambda proof, at: _approval_due(proof, at, approval_settings),
            now,
            settler=settler,
            fee_settings=fee_settings,
            reviewed_at=now,
            review_feedback="Automatically approved due to deadline expiration",
        )

    for proof_id in rejections:
        processed += _sweep_one(
            proof_id, REJECTION_TIMEOUT, _rejection_due, now,
            worker_response="accepted", worker_response_at=now,
        )

    for proof_id in revisions:
        processed += _sweep_one(
            proof_id, REVISION_TIMEOUT, _revision_due, now,
            worker_response="cancelled", worker_response_at=now,
        )

    if processed:
        logger.info("Processed %d expired work proof deadlines", processed)
    return processed
