from microjob.extensions import db
from microjob.utils.clock import utc_now
from microjob.utils.money import from_cents
import uuid

CREDIT_TYPES = ("deposit", "earning", "refund")
DEBIT_TYPES = ("withdrawal", "payment", "fee")
TRANSFER_PENDING_TO_AVAILABLE = "transfer_pending_to_available"
TRANSACTION_TYPES = CREDIT_TYPES + DEBIT_TYPES + (TRANSFER_PENDING_TO_AVAILABLE,)

BALANCE_TYPES = ("deposit", "pending")


def gen_tx_id():
    return f"tx_{uuid.uuid4().hex[:12]}"


class WalletTransaction(db.Model):
    """Append-only audit row. One per balance mutation, never updated."""

    __tablename__ = "wallet_transactions"

    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_wallet_transactions_amount_positive"),
        db.UniqueConstraint(
            "user_id", "type", "reference_type", "reference_id",
            name="uq_wallet_transactions_reference",
        ),
        db.Index("idx_wallet_transactions_user_created", "user_id", "created_at"),
    )

    id = db.Column(db.String(50), primary_key=True, default=gen_tx_id)
    wallet_id = db.Column(db.String(50), db.ForeignKey("wallets.id"), nullable=False)
    user_id = db.Column(db.String(50), nullable=False)

    type = db.Column(db.String(50), nullable=False)
    amount_cents = db.Column(db.BigInteger, nullable=False)
    balance_type = db.Column(db.String(20), nullable=False, default="deposit")

    status = db.Column(db.String(30), default="completed")

    reference_type = db.Column(db.String(50))
    reference_id = db.Column(db.String(50))

    description = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=utc_now)

    wallet = db.relationship("Wallet", backref="transactions")

    @property
    def amount(self):
        return from_cents(self.amount_cents)
