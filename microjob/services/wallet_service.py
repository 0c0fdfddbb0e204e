import logging

from microjob.extensions import db
from microjob.models.wallet import Wallet, gen_wallet_id
from microjob.models.wallet_transaction import (
    WalletTransaction,
    gen_tx_id,
    CREDIT_TYPES,
    DEBIT_TYPES,
    BALANCE_TYPES,
    TRANSFER_PENDING_TO_AVAILABLE,
)
from microjob.utils.clock import utc_now
from microjob.utils.exceptions import (
    InsufficientBalanceError,
    InsufficientPendingBalanceError,
    ValidationError,
)
from microjob.utils.money import to_cents, cents_to_float
from microjob.utils.pagination import paginate_query
from microjob.utils.transactions import atomic

logger = logging.getLogger(__name__)

wallets = Wallet.__table__


def _amount_to_cents(amount):
    try:
        cents = to_cents(amount)
    except ValueError as exc:
        raise ValidationError(str(exc))
    if cents <= 0:
        raise ValidationError("Amount must be greater than zero", {"amount": str(amount)})
    return cents


def _wallet_for(user_id, currency="USD"):
    wallet = Wallet.query.filter_by(user_id=user_id).first()
    if not wallet:
        wallet = Wallet(
            id=gen_wallet_id(),
            user_id=user_id,
            currency=currency,
            balance_cents=0,
            pending_balance_cents=0,
            total_earned_cents=0,
            total_spent_cents=0,
        )
        db.session.add(wallet)
        db.session.flush()
    return wallet


def _adjust(user_id, deltas, guard_column=None, guard_amount=0):
    """Apply column deltas to one wallet row in a single UPDATE.

    With a guard the row only changes while `guard_column >= guard_amount`,
    so a concurrent debit can never drive the column negative. Returns True
    when the row was updated.
    """
    values = {name: wallets.c[name] + delta for name, delta in deltas.items()}
    values["updated_at"] = utc_now()

    stmt = wallets.update().where(wallets.c.user_id == user_id)
    if guard_column:
        stmt = stmt.where(wallets.c[guard_column] >= guard_amount)

    result = db.session.execute(stmt.values(**values))
    # rows were changed behind the ORM's back
    db.session.expire_all()
    return result.rowcount == 1


def _record(wallet, tx_type, amount_cents, balance_type, description="", reference_id=None, reference_type=None):
    tx = WalletTransaction(
        id=gen_tx_id(),
        wallet_id=wallet.id,
        user_id=wallet.user_id,
        type=tx_type,
        amount_cents=amount_cents,
        balance_type=balance_type,
        description=description,
        reference_id=reference_id,
        reference_type=reference_type,
        status="completed",
        created_at=utc_now(),
    )
    db.session.add(tx)
    return tx


def get_or_create_wallet(user_id, currency="USD"):
    with atomic():
        wallet = _wallet_for(user_id, currency)
    return wallet


def process_payment(payer_id, payee_id, amount, description, reference_id, reference_type):
    """Move `amount` from the payer's balance into the payee's pending balance.

    Writes one `payment` row for the payer and one `earning` row for the
    payee, both pointing at the same reference. Nothing survives a failure.
    """
    amount_cents = _amount_to_cents(amount)

    with atomic():
        payer = _wallet_for(payer_id)
        payee = _wallet_for(payee_id)

        debited = _adjust(
            payer_id,
            {"balance_cents": -amount_cents, "total_spent_cents": amount_cents},
            guard_column="balance_cents",
            guard_amount=amount_cents,
        )
        if not debited:
            raise InsufficientBalanceError(details={
                "required": cents_to_float(amount_cents),
                "available": cents_to_float(payer.balance_cents),
            })

        _adjust(payee_id, {"pending_balance_cents": amount_cents, "total_earned_cents": amount_cents})

        payment_tx = _record(payer, "payment", amount_cents, "deposit", description, reference_id, reference_type)
        earning_tx = _record(payee, "earning", amount_cents, "pending", description, reference_id, reference_type)

    logger.info(
        "Payment %s -> %s of %s settled (ref %s:%s)",
        payer_id, payee_id, cents_to_float(amount_cents), reference_type, reference_id,
    )
    return payment_tx, earning_tx


def release_pending(user_id, amount, description="Pending earnings released"):
    amount_cents = _amount_to_cents(amount)

    with atomic():
        wallet = _wallet_for(user_id)
        moved = _adjust(
            user_id,
            {"pending_balance_cents": -amount_cents, "balance_cents": amount_cents},
            guard_column="pending_balance_cents",
            guard_amount=amount_cents,
        )
        if not moved:
            raise InsufficientPendingBalanceError(details={
                "required": cents_to_float(amount_cents),
                "available": cents_to_float(wallet.pending_balance_cents),
            })
        tx = _record(wallet, TRANSFER_PENDING_TO_AVAILABLE, amount_cents, "pending", description)

    return tx


def record_adjustment(user_id, tx_type, amount, balance_type, description="", reference_id=None, reference_type=None):
    """Generic single-sided credit or debit (deposit, withdrawal, fee, refund...)."""
    if tx_type not in CREDIT_TYPES + DEBIT_TYPES:
        raise ValidationError(f"Unsupported transaction type: {tx_type}")
    if balance_type not in BALANCE_TYPES:
        raise ValidationError(f"Unsupported balance type: {balance_type}")

    amount_cents = _amount_to_cents(amount)
    column = "pending_balance_cents" if balance_type == "pending" else "balance_cents"

    with atomic():
        wallet = _wallet_for(user_id)

        if tx_type in CREDIT_TYPES:
            deltas = {column: amount_cents}
            if balance_type == "deposit":
                deltas["total_earned_cents"] = amount_cents
            _adjust(user_id, deltas)
        else:
            deltas = {column: -amount_cents}
            if balance_type == "deposit":
                deltas["total_spent_cents"] = amount_cents
            if not _adjust(user_id, deltas, guard_column=column, guard_amount=amount_cents):
                error = InsufficientPendingBalanceError if balance_type == "pending" else InsufficientBalanceError
                raise error(details={
                    "required": cents_to_float(amount_cents),
                    "available": cents_to_float(getattr(wallet, column)),
                })

        tx = _record(wallet, tx_type, amount_cents, balance_type, description, reference_id, reference_type)

    return tx


def get_wallet_balance(user_id):
    wallet = Wallet.query.filter_by(user_id=user_id).first()
    if not wallet:
        return {
            "balance": 0.0,
            "pending_balance": 0.0,
            "total_earned": 0.0,
            "total_spent": 0.0,
            "currency": "USD",
        }

    return {
        "balance": cents_to_float(wallet.balance_cents),
        "pending_balance": cents_to_float(wallet.pending_balance_cents),
        "total_earned": cents_to_float(wallet.total_earned_cents),
        "total_spent": cents_to_float(wallet.total_spent_cents),
        "currency": wallet.currency,
    }


def list_transactions(user_id, page=1, limit=20, tx_type=None):
    q = WalletTransaction.query.filter_by(user_id=user_id)
    if tx_type:
        q = q.filter_by(type=tx_type)
    q = q.order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
    return paginate_query(q, page, limit)
