from flask import Blueprint, request, current_app
from flask_jwt_extended import jwt_required

from microjob.schemas.wallet_schema import AdjustmentSchema, ReleaseSchema, transaction_schema
from microjob.services import settings_service
from microjob.services.reservation_service import list_violations
from microjob.services.wallet_service import record_adjustment, release_pending, get_wallet_balance
from microjob.utils.auth_utils import require_admin
from microjob.utils.exceptions import ValidationError
from microjob.utils.response_formatter import success_response
from microjob.utils.validation import load_json, int_arg

bp = Blueprint("admin", __name__, url_prefix="/api/v1/admin")

adjustment_schema = AdjustmentSchema()
release_schema = ReleaseSchema()


# ==========================================================
#  GET /admin/settings/<domain>
#  domain = reservation | approval | revision | fee
# ==========================================================
@bp.route("/settings/<domain>", methods=["GET"])
@jwt_required()
def get_settings(domain):
    admin_id, err = require_admin()
    if err:
        return err

    settings = settings_service.load_domain(domain)
    return success_response({"settings": settings_service.dump_domain(domain, settings)})


# ==========================================================
#  PUT /admin/settings/<domain>
#  Partial update; unspecified keys keep their value
# ==========================================================
@bp.route("/settings/<domain>", methods=["PUT"])
@jwt_required()
def update_settings(domain):
    admin_id, err = require_admin()
    if err:
        return err

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Settings payload must be an object")

    settings = settings_service.update_domain(domain, payload, updated_by=admin_id)
    settings_service.invalidate_settings()
    current_app.logger.info("Admin %s updated %s settings", admin_id, domain)

    return success_response(
        {"settings": settings_service.dump_domain(domain, settings)},
        message="Settings updated",
    )


# ==========================================================
#  POST /admin/wallets/<user_id>/adjustments
#  Manual credit or debit (deposits, corrections, refunds)
# ==========================================================
@bp.route("/wallets/<user_id>/adjustments", methods=["POST"])
@jwt_required()
def adjust_wallet(user_id):
    admin_id, err = require_admin()
    if err:
        return err

    data = load_json(adjustment_schema)
    tx = record_adjustment(
        user_id,
        data["type"],
        data["amount"],
        data["balance_type"],
        data.get("description") or f"Manual {data['type']} by admin",
        reference_id=data.get("reference_id"),
        reference_type=data.get("reference_type") or "admin_adjustment",
    )
    current_app.logger.info("Admin %s recorded %s of %s for %s", admin_id, tx.type, tx.amount, user_id)

    return success_response({
        "transaction": transaction_schema.dump(tx),
        "wallet": get_wallet_balance(user_id),
    }, status=201)


# ==========================================================
#  POST /admin/wallets/<user_id>/release
#  Move pending earnings to the available balance
# ==========================================================
@bp.route("/wallets/<user_id>/release", methods=["POST"])
@jwt_required()
def release_wallet(user_id):
    admin_id, err = require_admin()
    if err:
        return err

    data = load_json(release_schema)
    tx = release_pending(user_id, data["amount"])

    return success_response({
        "transaction": transaction_schema.dump(tx),
        "wallet": get_wallet_balance(user_id),
    })


# ==========================================================
#  GET /admin/reservation-violations
# ==========================================================
@bp.route("/reservation-violations", methods=["GET"])
@jwt_required()
def violations():
    admin_id, err = require_admin()
    if err:
        return err

    items, pagination = list_violations(page=int_arg("page", 1), limit=int_arg("limit", 20))
    return success_response({
        "violations": [v.to_dict() for v in items],
        "pagination": pagination,
    })
