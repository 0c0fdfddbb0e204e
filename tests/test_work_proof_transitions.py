import pytest

from microjob.services import work_proof_transitions as t
from microjob.utils.exceptions import AlreadySettledError, InvalidStateError


@pytest.mark.parametrize(
    "status, event, expected, effects",
    [
        (None, t.SUBMIT, "submitted", []),
        (None, t.INSTANT_APPROVE, "auto_approved", [t.SETTLE_PAYMENT]),
        ("submitted", t.APPROVE, "approved", [t.SETTLE_PAYMENT]),
        ("submitted", t.APPROVAL_TIMEOUT, "auto_approved", [t.SETTLE_PAYMENT]),
        ("submitted", t.REJECT, "rejected", []),
        ("submitted", t.REQUEST_REVISION, "revision_requested", []),
        ("rejected", t.ACCEPT_REJECTION, "rejected_accepted", []),
        ("rejected", t.REJECTION_TIMEOUT, "rejected_accepted", []),
        ("revision_requested", t.CANCEL_BY_WORKER, "cancelled_by_worker", []),
        ("revision_requested", t.REVISION_TIMEOUT, "cancelled_by_worker", []),
        ("revision_requested", t.RESUBMIT, "submitted", []),
    ],
)
def test_allowed_transitions(status, event, expected, effects):
    step = t.transition(status, event)

    assert step.from_status == status
    assert step.to_status == expected
    assert step.effects == effects


@pytest.mark.parametrize("status", ["approved", "auto_approved"])
@pytest.mark.parametrize("event", [t.APPROVE, t.APPROVAL_TIMEOUT])
def test_settling_a_settled_proof(status, event):
    with pytest.raises(AlreadySettledError):
        t.transition(status, event)


@pytest.mark.parametrize(
    "status, event",
    [
        ("rejected_accepted", t.APPROVE),
        ("cancelled_by_worker", t.APPROVE),
        ("rejected", t.APPROVE),
        ("approved", t.REJECT),
        ("submitted", t.RESUBMIT),
        ("submitted", t.ACCEPT_REJECTION),
        ("revision_requested", t.APPROVE),
    ],
)
def test_invalid_transitions(status, event):
    with pytest.raises(InvalidStateError) as exc:
        t.transition(status, event)
    assert exc.value.details == {"status": status, "event": event}


def test_only_settling_events_carry_payment():
    assert t.SETTLING_EVENTS == {t.INSTANT_APPROVE, t.APPROVE, t.APPROVAL_TIMEOUT}


def test_terminal_statuses_have_no_exits():
    for status in t.TERMINAL_STATUSES:
        assert t.is_terminal(status)
        assert t.allowed_events(status) == []

    assert not t.is_terminal("submitted")
    assert t.allowed_events("rejected") == [t.ACCEPT_REJECTION, t.REJECTION_TIMEOUT]
