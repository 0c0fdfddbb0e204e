from flask import Blueprint, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity

from microjob.schemas.work_proof_schema import (
    WorkProofSubmitSchema,
    ReviewSchema,
    RejectSchema,
    ResubmitSchema,
)
from microjob.services import work_proof_service
from microjob.services.work_proof_service import ARTIFACT_FIELDS
from microjob.services.settings_service import get_settings
from microjob.utils.clock import now
from microjob.utils.response_formatter import success_response
from microjob.utils.validation import load_json

bp = Blueprint("work_proofs", __name__, url_prefix="/api/v1")

submit_schema = WorkProofSubmitSchema()
review_schema = ReviewSchema()
reject_schema = RejectSchema()
resubmit_schema = ResubmitSchema()


def _artifacts_from(data):
    present = {name: data[name] for name in ARTIFACT_FIELDS if data.get(name) is not None}
    return present or None


# ------------------------------------------------------------
# Worker submits proof of work
# ------------------------------------------------------------
@bp.route("/jobs/<job_id>/work-proofs", methods=["POST"])
@jwt_required()
def submit(job_id):
    uid = get_jwt_identity()
    data = load_json(submit_schema)

    proof = work_proof_service.submit_work_proof(
        job_id,
        uid,
        data["title"],
        data["payment_amount"],
        now=now(),
        application_id=data.get("application_id"),
        description=data.get("description"),
        submission_text=data.get("submission_text"),
        artifacts=_artifacts_from(data),
        fee_settings=get_settings().fee,
    )
    current_app.logger.info("Work proof %s submitted by %s (%s)", proof.id, uid, proof.status)

    return success_response({"work_proof": proof.to_dict()}, status=201)


# ------------------------------------------------------------
# Proofs on a job: employer sees all, workers see their own
# ------------------------------------------------------------
@bp.route("/jobs/<job_id>/work-proofs", methods=["GET"])
@jwt_required()
def list_for_job(job_id):
    uid = get_jwt_identity()
    proofs = work_proof_service.list_work_proofs_for_job(job_id, viewer_id=uid)
    return success_response({"work_proofs": [p.to_dict() for p in proofs]})


@bp.route("/work-proofs/<proof_id>", methods=["GET"])
@jwt_required()
def get_one(proof_id):
    uid = get_jwt_identity()
    proof = work_proof_service.get_work_proof(proof_id, viewer_id=uid)
    return success_response({"work_proof": proof.to_dict()})


# ------------------------------------------------------------
# Employer review
# ------------------------------------------------------------
@bp.route("/work-proofs/<proof_id>/approve", methods=["POST"])
@jwt_required()
def approve(proof_id):
    uid = get_jwt_identity()
    data = load_json(review_schema)

    proof = work_proof_service.approve_work_proof(
        proof_id,
        data.get("notes"),
        now=now(),
        employer_id=uid,
        fee_settings=get_settings().fee,
    )
    return success_response({"work_proof": proof.to_dict()}, message="Work proof approved and payment released")


@bp.route("/work-proofs/<proof_id>/reject", methods=["POST"])
@jwt_required()
def reject(proof_id):
    uid = get_jwt_identity()
    data = load_json(reject_schema)
    timeout = data.get("timeout_hours") or get_settings().revision.rejection_timeout_hours

    proof = work_proof_service.reject_work_proof(
        proof_id,
        data["notes"],
        timeout,
        now=now(),
        employer_id=uid,
    )
    return success_response({"work_proof": proof.to_dict()}, message="Work proof rejected")


@bp.route("/work-proofs/<proof_id>/request-revision", methods=["POST"])
@jwt_required()
def revision(proof_id):
    uid = get_jwt_identity()
    data = load_json(reject_schema)
    settings = get_settings().revision

    proof = work_proof_service.request_revision(
        proof_id,
        data["notes"],
        data.get("timeout_hours") or settings.revision_timeout_hours,
        now=now(),
        max_revisions=settings.max_revision_requests,
        employer_id=uid,
    )
    return success_response({"work_proof": proof.to_dict()}, message="Revision requested")


# ------------------------------------------------------------
# Worker responses
# ------------------------------------------------------------
@bp.route("/work-proofs/<proof_id>/accept-rejection", methods=["POST"])
@jwt_required()
def accept(proof_id):
    uid = get_jwt_identity()
    proof = work_proof_service.accept_rejection(proof_id, now=now(), worker_id=uid)
    return success_response({"work_proof": proof.to_dict()}, message="Rejection accepted")


@bp.route("/work-proofs/<proof_id>/cancel", methods=["POST"])
@jwt_required()
def cancel(proof_id):
    uid = get_jwt_identity()
    proof = work_proof_service.cancel_by_worker(proof_id, now=now(), worker_id=uid)
    return success_response({"work_proof": proof.to_dict()}, message="Submission cancelled")


@bp.route("/work-proofs/<proof_id>/resubmit", methods=["POST"])
@jwt_required()
def resubmit(proof_id):
    uid = get_jwt_identity()
    data = load_json(resubmit_schema)

    proof = work_proof_service.resubmit_work_proof(
        proof_id,
        now=now(),
        worker_id=uid,
        description=data.get("description"),
        submission_text=data.get("submission_text"),
        artifacts=_artifacts_from(data),
    )
    return success_response({"work_proof": proof.to_dict()}, message="Work resubmitted")
