from decimal import Decimal

import pytest

from microjob.extensions import db
from microjob.models.wallet import Wallet
from microjob.models.wallet_transaction import WalletTransaction
from microjob.services import wallet_service
from microjob.utils.exceptions import (
    InsufficientBalanceError,
    InsufficientPendingBalanceError,
    StorageFailureError,
    ValidationError,
)


def _wallet(user_id):
    db.session.expire_all()
    return Wallet.query.filter_by(user_id=user_id).one()


def test_get_or_create_wallet_is_idempotent(app):
    first = wallet_service.get_or_create_wallet("usr-a")
    second = wallet_service.get_or_create_wallet("usr-a")

    assert first.id == second.id
    assert Wallet.query.filter_by(user_id="usr-a").count() == 1
    assert first.balance == Decimal("0.00")


def test_payment_moves_funds_into_pending(app, fund):
    fund("payer", "100.00")

    payment_tx, earning_tx = wallet_service.process_payment(
        "payer", "payee", Decimal("40.25"), "Payment for work", "WP-1", "work_proof_payment"
    )

    payer, payee = _wallet("payer"), _wallet("payee")
    assert payer.balance_cents == 5975
    assert payer.total_spent_cents == 4025
    assert payee.pending_balance_cents == 4025
    assert payee.balance_cents == 0
    assert payee.total_earned_cents == 4025

    assert payment_tx.type == "payment"
    assert earning_tx.type == "earning"
    assert earning_tx.balance_type == "pending"
    assert payment_tx.reference_id == earning_tx.reference_id == "WP-1"


def test_insufficient_balance_leaves_everything_untouched(app, fund):
    fund("payer", 100)
    before = WalletTransaction.query.count()

    with pytest.raises(InsufficientBalanceError) as exc:
        wallet_service.process_payment("payer", "payee", 150, "too much", "WP-2", "work_proof_payment")

    assert exc.value.details["required"] == 150.0
    assert exc.value.details["available"] == 100.0
    assert _wallet("payer").balance_cents == 10000
    assert Wallet.query.filter_by(user_id="payee").first() is None
    assert WalletTransaction.query.count() == before


def test_payment_conserves_money(app, fund):
    fund("a", "10.00")
    fund("b", "10.00")

    for _ in range(3):
        wallet_service.process_payment("a", "b", "0.10", "tip", None, None)
    wallet_service.process_payment("b", "a", "0.30", "tip back", None, None)

    a, b = _wallet("a"), _wallet("b")
    total = a.balance_cents + a.pending_balance_cents + b.balance_cents + b.pending_balance_cents
    assert total == 2000
    assert a.balance_cents == 970
    assert b.pending_balance_cents == 30


def test_same_reference_cannot_settle_twice(app, fund):
    fund("payer", 100)
    wallet_service.process_payment("payer", "payee", 10, "first", "WP-3", "work_proof_payment")

    with pytest.raises(StorageFailureError):
        wallet_service.process_payment("payer", "payee", 10, "second", "WP-3", "work_proof_payment")

    assert _wallet("payer").balance_cents == 9000
    assert _wallet("payee").pending_balance_cents == 1000


def test_release_pending(app, fund):
    fund("payer", 50)
    wallet_service.process_payment("payer", "payee", 50, "work", "WP-4", "work_proof_payment")

    tx = wallet_service.release_pending("payee", "20.00")

    payee = _wallet("payee")
    assert payee.pending_balance_cents == 3000
    assert payee.balance_cents == 2000
    assert tx.type == "transfer_pending_to_available"

    with pytest.raises(InsufficientPendingBalanceError):
        wallet_service.release_pending("payee", 31)
    assert _wallet("payee").pending_balance_cents == 3000


def test_debit_adjustment_is_guarded(app, fund):
    fund("usr-x", 5)

    wallet_service.record_adjustment("usr-x", "withdrawal", 2, "deposit", "cash out")
    assert _wallet("usr-x").balance_cents == 300

    with pytest.raises(InsufficientBalanceError):
        wallet_service.record_adjustment("usr-x", "withdrawal", 4, "deposit", "cash out")
    assert _wallet("usr-x").balance_cents == 300


def test_pending_credit_does_not_touch_available_balance(app):
    wallet_service.record_adjustment("usr-y", "refund", "7.50", "pending")

    wallet = _wallet("usr-y")
    assert wallet.pending_balance_cents == 750
    assert wallet.balance_cents == 0
    assert wallet.total_earned_cents == 0


@pytest.mark.parametrize("amount", [0, -5, "abc", None])
def test_invalid_amounts_are_rejected(app, amount):
    with pytest.raises(ValidationError):
        wallet_service.record_adjustment("usr-z", "deposit", amount, "deposit")


def test_unknown_transaction_type(app):
    with pytest.raises(ValidationError):
        wallet_service.record_adjustment("usr-z", "bonus", 5, "deposit")


def test_balance_of_missing_wallet_is_zero(app):
    assert wallet_service.get_wallet_balance("nobody") == {
        "balance": 0.0,
        "pending_balance": 0.0,
        "total_earned": 0.0,
        "total_spent": 0.0,
        "currency": "USD",
    }


def test_list_transactions_filters_and_paginates(app, fund):
    fund("payer", 100)
    for i in range(3):
        wallet_service.process_payment("payer", "payee", 1, "work", f"WP-{i}", "work_proof_payment")

    items, pagination = wallet_service.list_transactions("payer", page=1, limit=2, tx_type="payment")
    assert len(items) == 2
    assert pagination == {"total": 3, "page": 1, "limit": 2, "total_pages": 2}
    assert all(tx.type == "payment" for tx in items)

    items, pagination = wallet_service.list_transactions("payer")
    assert pagination["total"] == 4
