from marshmallow import fields, validate, EXCLUDE

from microjob.extensions import ma
from microjob.models.wallet_transaction import CREDIT_TYPES, DEBIT_TYPES, BALANCE_TYPES
from microjob.utils.money import cents_to_float


class AdjustmentSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    type = fields.String(required=True, validate=validate.OneOf(CREDIT_TYPES + DEBIT_TYPES))
    amount = fields.Decimal(required=True, places=2, validate=validate.Range(min=0, min_inclusive=False))
    balance_type = fields.String(load_default="deposit", validate=validate.OneOf(BALANCE_TYPES))
    description = fields.String(load_default="")
    reference_id = fields.String(load_default=None)
    reference_type = fields.String(load_default=None)


class ReleaseSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    amount = fields.Decimal(required=True, places=2, validate=validate.Range(min=0, min_inclusive=False))


class WalletTransactionSchema(ma.Schema):
    id = fields.String()
    type = fields.String()
    amount = fields.Method("get_amount")
    balance_type = fields.String()
    status = fields.String()
    reference_type = fields.String()
    reference_id = fields.String()
    description = fields.String()
    created_at = fields.Method("get_created_at")

    def get_amount(self, obj):
        return cents_to_float(obj.amount_cents)

    def get_created_at(self, obj):
        return obj.created_at.isoformat() + "Z" if obj.created_at else None


transaction_schema = WalletTransactionSchema()
transactions_schema = WalletTransactionSchema(many=True)
