from microjob.extensions import db
from microjob.utils.clock import utc_now
from microjob.utils.money import from_cents
import uuid


def gen_wallet_id():
    return f"wal_{uuid.uuid4().hex[:12]}"


class Wallet(db.Model):
    __tablename__ = "wallets"

    __table_args__ = (
        db.CheckConstraint("balance_cents >= 0", name="ck_wallets_balance_non_negative"),
        db.CheckConstraint("pending_balance_cents >= 0", name="ck_wallets_pending_non_negative"),
    )

    id = db.Column(db.String(50), primary_key=True, default=gen_wallet_id)
    user_id = db.Column(db.String(50), unique=True, nullable=False, index=True)

    balance_cents = db.Column(db.BigInteger, nullable=False, default=0)
    pending_balance_cents = db.Column(db.BigInteger, nullable=False, default=0)
    total_earned_cents = db.Column(db.BigInteger, nullable=False, default=0)
    total_spent_cents = db.Column(db.BigInteger, nullable=False, default=0)
    currency = db.Column(db.String(10), default="USD")

    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    @property
    def balance(self):
        return from_cents(self.balance_cents)

    @property
    def pending_balance(self):
        return from_cents(self.pending_balance_cents)

    @property
    def total_earned(self):
        return from_cents(self.total_earned_cents)

    @property
    def total_spent(self):
        return from_cents(self.total_spent_cents)
