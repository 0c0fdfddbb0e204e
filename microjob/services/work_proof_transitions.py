"""Work proof lifecycle as a pure transition table.

`transition(status, event)` decides the next status and which side effects the
caller has to run once the status write lands. No I/O happens here.
"""
from collections import namedtuple

from microjob.models.work_proof import (
    STATUS_SUBMITTED,
    STATUS_APPROVED,
    STATUS_AUTO_APPROVED,
    STATUS_REJECTED,
    STATUS_REJECTED_ACCEPTED,
    STATUS_REVISION_REQUESTED,
    STATUS_CANCELLED_BY_WORKER,
    SETTLED_STATUSES,
)
from microjob.utils.exceptions import AlreadySettledError, InvalidStateError

# events
SUBMIT = "submit"
INSTANT_APPROVE = "instant_approve"
APPROVE = "approve"
APPROVAL_TIMEOUT = "approval_timeout"
REJECT = "reject"
REQUEST_REVISION = "request_revision"
ACCEPT_REJECTION = "accept_rejection"
REJECTION_TIMEOUT = "rejection_timeout"
CANCEL_BY_WORKER = "cancel_by_worker"
REVISION_TIMEOUT = "revision_timeout"
RESUBMIT = "resubmit"

# effects
SETTLE_PAYMENT = "settle_payment"

Transition = namedtuple("Transition", ["from_status", "event", "to_status", "effects"])

# None stands for "no row yet"
_TABLE = {
    (None, SUBMIT): (STATUS_SUBMITTED, ()),
    (None, INSTANT_APPROVE): (STATUS_AUTO_APPROVED, (SETTLE_PAYMENT,)),
    (STATUS_SUBMITTED, APPROVE): (STATUS_APPROVED, (SETTLE_PAYMENT,)),
    (STATUS_SUBMITTED, APPROVAL_TIMEOUT): (STATUS_AUTO_APPROVED, (SETTLE_PAYMENT,)),
    (STATUS_SUBMITTED, REJECT): (STATUS_REJECTED, ()),
    (STATUS_SUBMITTED, REQUEST_REVISION): (STATUS_REVISION_REQUESTED, ()),
    (STATUS_REJECTED, ACCEPT_REJECTION): (STATUS_REJECTED_ACCEPTED, ()),
    (STATUS_REJECTED, REJECTION_TIMEOUT): (STATUS_REJECTED_ACCEPTED, ()),
    (STATUS_REVISION_REQUESTED, CANCEL_BY_WORKER): (STATUS_CANCELLED_BY_WORKER, ()),
    (STATUS_REVISION_REQUESTED, REVISION_TIMEOUT): (STATUS_CANCELLED_BY_WORKER, ()),
    (STATUS_REVISION_REQUESTED, RESUBMIT): (STATUS_SUBMITTED, ()),
}

SETTLING_EVENTS = frozenset(
    event for (_, event), (_, effects) in _TABLE.items() if SETTLE_PAYMENT in effects
)

TERMINAL_STATUSES = frozenset({
    STATUS_APPROVED,
    STATUS_AUTO_APPROVED,
    STATUS_REJECTED_ACCEPTED,
    STATUS_CANCELLED_BY_WORKER,
})


def transition(status, event):
    try:
        to_status, effects = _TABLE[(status, event)]
    except KeyError:
        if status in SETTLED_STATUSES and event in SETTLING_EVENTS:
            raise AlreadySettledError(details={"status": status, "event": event})
        raise InvalidStateError(
            f"Cannot {event.replace('_', ' ')} a work proof in status '{status}'",
            {"status": status, "event": event},
        )
    return Transition(status, event, to_status, list(effects))


def allowed_events(status):
    return sorted(event for (from_status, event) in _TABLE if from_status == status)


def is_terminal(status):
    return status in TERMINAL_STATUSES
