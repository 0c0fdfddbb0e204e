from flask import Blueprint, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity

from microjob.schemas.reservation_schema import ReservationCreateSchema
from microjob.services.reservation_service import (
    create_reservation,
    cancel_reservation,
    list_active_reservations,
    get_active_reservation,
    reservation_to_dict,
)
from microjob.services.settings_service import get_settings
from microjob.utils.clock import now
from microjob.utils.response_formatter import success_response
from microjob.utils.validation import load_json

bp = Blueprint("reservations", __name__, url_prefix="/api/v1")

create_schema = ReservationCreateSchema()


# ------------------------------------------------------------
# Worker reserves a job
# ------------------------------------------------------------
@bp.route("/jobs/<job_id>/reservations", methods=["POST"])
@jwt_required()
def reserve_job(job_id):
    uid = get_jwt_identity()
    data = load_json(create_schema)
    current = now()

    reservation = create_reservation(
        job_id,
        uid,
        data.get("duration_minutes"),
        settings=get_settings().reservation,
        now=current,
    )
    current_app.logger.info("User %s reserved job %s until %s", uid, job_id, reservation.expires_at)

    return success_response({"reservation": reservation_to_dict(reservation, current)}, status=201)


# ------------------------------------------------------------
# Caller's live hold on a job, if any
# ------------------------------------------------------------
@bp.route("/jobs/<job_id>/reservation", methods=["GET"])
@jwt_required()
def check_reservation(job_id):
    uid = get_jwt_identity()
    current = now()
    reservation = get_active_reservation(job_id, uid, now=current)

    return success_response({
        "reserved": reservation is not None,
        "reservation": reservation_to_dict(reservation, current) if reservation else None,
    })


# ------------------------------------------------------------
# Caller's active reservations
# ------------------------------------------------------------
@bp.route("/reservations", methods=["GET"])
@jwt_required()
def my_reservations():
    uid = get_jwt_identity()
    return success_response({"reservations": list_active_reservations(uid, now=now())})


# ------------------------------------------------------------
# Worker releases a hold early
# ------------------------------------------------------------
@bp.route("/reservations/<reservation_id>/cancel", methods=["POST"])
@jwt_required()
def cancel(reservation_id):
    uid = get_jwt_identity()
    current = now()
    reservation = cancel_reservation(reservation_id, uid, now=current)

    return success_response(
        {"reservation": reservation_to_dict(reservation, current)},
        message="Reservation cancelled",
    )
