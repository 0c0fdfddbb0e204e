from flask import Blueprint, request, current_app

from microjob.services import expiry_sweeper
from microjob.utils.auth_utils import check_cron_secret
from microjob.utils.response_formatter import success_response, error_response

bp = Blueprint("cron", __name__, url_prefix="/api/v1/cron")

JOBS = {
    "expire_reservations": expiry_sweeper.run_reservation_sweep,
    "process_work_proof_timeouts": expiry_sweeper.run_work_proof_sweep,
    "all": expiry_sweeper.run_all,
}


def _result(result):
    if result.get("success") is False:
        return error_response("SWEEP_FAILED", "Sweep failed", details=result, status=500)
    return success_response(result)


@bp.route("/expire-reservations", methods=["POST"])
def expire_reservations():
    err = check_cron_secret()
    if err:
        return err
    return _result(expiry_sweeper.run_reservation_sweep())


@bp.route("/process-work-proof-timeouts", methods=["POST"])
def process_work_proof_timeouts():
    err = check_cron_secret()
    if err:
        return err
    return _result(expiry_sweeper.run_work_proof_sweep())


@bp.route("/run", methods=["POST"])
def run_job():
    err = check_cron_secret()
    if err:
        return err

    body = request.get_json(silent=True) or {}
    job_type = body.get("job_type") if isinstance(body, dict) else None
    job = JOBS.get(job_type)
    if job is None:
        return error_response(
            "INVALID_JOB_TYPE",
            "Unknown job type",
            details={"allowed": sorted(JOBS)},
            status=400,
        )

    current_app.logger.info("Cron run requested: %s", job_type)
    result = job()
    if job_type == "all":
        return success_response(result)
    return _result(result)
