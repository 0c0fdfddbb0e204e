from flask import Blueprint, request
from flask_jwt_extended import jwt_required, get_jwt_identity

from microjob.models.wallet_transaction import TRANSACTION_TYPES
from microjob.schemas.wallet_schema import transactions_schema
from microjob.services.wallet_service import get_wallet_balance, list_transactions
from microjob.utils.exceptions import ValidationError
from microjob.utils.response_formatter import success_response
from microjob.utils.validation import int_arg

bp = Blueprint("wallet", __name__, url_prefix="/api/v1/wallet")


@bp.route("", methods=["GET"])
@jwt_required()
def get_wallet():
    uid = get_jwt_identity()
    return success_response({"wallet": get_wallet_balance(uid)})


@bp.route("/transactions", methods=["GET"])
@jwt_required()
def get_transactions():
    uid = get_jwt_identity()
    page = int_arg("page", 1)
    limit = int_arg("limit", 20)
    tx_type = request.args.get("type") or None
    if tx_type and tx_type not in TRANSACTION_TYPES:
        raise ValidationError(f"Unknown transaction type: {tx_type}")

    items, pagination = list_transactions(uid, page=page, limit=limit, tx_type=tx_type)
    return success_response({
        "transactions": transactions_schema.dump(items),
        "pagination": pagination,
    })
