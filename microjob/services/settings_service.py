"""Typed admin settings.

Each domain is stored as one JSON document in `admin_settings` and loaded into
a frozen dataclass. Operations receive a snapshot by value; nothing reads the
table mid-transaction.
"""
import logging
import threading
from dataclasses import dataclass, asdict, replace

from flask import current_app

from marshmallow import fields, validate, post_load, EXCLUDE
from marshmallow import ValidationError as SchemaValidationError

from microjob.extensions import db, ma
from microjob.models.admin_setting import AdminSetting
from microjob.utils.clock import utc_now
from microjob.utils.exceptions import NotFoundError, ValidationError
from microjob.utils.transactions import atomic

logger = logging.getLogger(__name__)

DEFAULT_RESERVATION_MINUTES = 30
DEFAULT_MAX_RESERVATIONS_PER_USER = 5
DEFAULT_MANUAL_APPROVAL_DAYS = 3
DEFAULT_MAX_REVISION_REQUESTS = 2
DEFAULT_REVISION_TIMEOUT_HOURS = 24
DEFAULT_REJECTION_TIMEOUT_HOURS = 24
DEFAULT_PLATFORM_FEE_PERCENTAGE = 5


@dataclass(frozen=True)
class ReservationSettings:
    is_enabled: bool = True
    default_reservation_minutes: int = DEFAULT_RESERVATION_MINUTES
    max_reservations_per_user: int = DEFAULT_MAX_RESERVATIONS_PER_USER
    # stored for the payment flow, not enforced by the reservation core
    require_payment: bool = True


@dataclass(frozen=True)
class ApprovalSettings:
    allow_manual_approval_time_selection: bool = True
    default_manual_approval_days: float = DEFAULT_MANUAL_APPROVAL_DAYS


@dataclass(frozen=True)
class RevisionSettings:
    max_revision_requests: int = DEFAULT_MAX_REVISION_REQUESTS
    revision_timeout_hours: int = DEFAULT_REVISION_TIMEOUT_HOURS
    rejection_timeout_hours: int = DEFAULT_REJECTION_TIMEOUT_HOURS


@dataclass(frozen=True)
class FeeSettings:
    enabled: bool = False
    percentage: float = DEFAULT_PLATFORM_FEE_PERCENTAGE
    fixed_fee_cents: int = 0
    minimum_fee_cents: int = 0
    maximum_fee_cents: int = 0  # 0 means no cap

    def fee_for(self, amount_cents):
        """Platform fee in cents for a settlement of `amount_cents`."""
        if not self.enabled or amount_cents <= 0:
            return 0
        # percentage is applied in hundredths to keep the maths integral
        fee = (amount_cents * int(round(self.percentage * 100)) + 5000) // 10000
        fee += self.fixed_fee_cents
        fee = max(fee, self.minimum_fee_cents)
        if self.maximum_fee_cents:
            fee = min(fee, self.maximum_fee_cents)
        return min(fee, amount_cents)


@dataclass(frozen=True)
class SettingsSnapshot:
    reservation: ReservationSettings
    approval: ApprovalSettings
    revision: RevisionSettings
    fee: FeeSettings


class ReservationSettingsSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    is_enabled = fields.Boolean(data_key="isEnabled", load_default=True)
    default_reservation_minutes = fields.Integer(
        data_key="defaultReservationMinutes",
        load_default=DEFAULT_RESERVATION_MINUTES,
        validate=validate.Range(min=1, max=7 * 24 * 60),
    )
    max_reservations_per_user = fields.Integer(
        data_key="maxReservationsPerUser",
        load_default=DEFAULT_MAX_RESERVATIONS_PER_USER,
        validate=validate.Range(min=1),
    )
    require_payment = fields.Boolean(data_key="requirePayment", load_default=True)

    @post_load
    def make_settings(self, data, **kwargs):
        return ReservationSettings(**data)


class ApprovalSettingsSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    allow_manual_approval_time_selection = fields.Boolean(
        data_key="allowManualApprovalTimeSelection", load_default=True
    )
    # one minute up to a week
    default_manual_approval_days = fields.Float(
        data_key="defaultManualApprovalDays",
        load_default=DEFAULT_MANUAL_APPROVAL_DAYS,
        validate=validate.Range(min=0.000694, max=7),
    )

    @post_load
    def make_settings(self, data, **kwargs):
        return ApprovalSettings(**data)


class RevisionSettingsSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    max_revision_requests = fields.Integer(
        data_key="maxRevisionRequests",
        load_default=DEFAULT_MAX_REVISION_REQUESTS,
        validate=validate.Range(min=0),
    )
    revision_timeout_hours = fields.Integer(
        data_key="revisionRequestTimeoutHours",
        load_default=DEFAULT_REVISION_TIMEOUT_HOURS,
        validate=validate.Range(min=1),
    )
    rejection_timeout_hours = fields.Integer(
        data_key="rejectionResponseTimeoutHours",
        load_default=DEFAULT_REJECTION_TIMEOUT_HOURS,
        validate=validate.Range(min=1),
    )

    @post_load
    def make_settings(self, data, **kwargs):
        return RevisionSettings(**data)


class FeeSettingsSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    enabled = fields.Boolean(load_default=False)
    percentage = fields.Float(load_default=DEFAULT_PLATFORM_FEE_PERCENTAGE, validate=validate.Range(min=0, max=100))
    fixed_fee_cents = fields.Integer(data_key="fixedFeeCents", load_default=0, validate=validate.Range(min=0))
    minimum_fee_cents = fields.Integer(data_key="minimumFeeCents", load_default=0, validate=validate.Range(min=0))
    maximum_fee_cents = fields.Integer(data_key="maximumFeeCents", load_default=0, validate=validate.Range(min=0))

    @post_load
    def make_settings(self, data, **kwargs):
        return FeeSettings(**data)


DOMAINS = {
    "reservation": ("reservation_settings", ReservationSettingsSchema, ReservationSettings),
    "approval": ("approval_settings", ApprovalSettingsSchema, ApprovalSettings),
    "revision": ("revision_settings", RevisionSettingsSchema, RevisionSettings),
    "fee": ("fee_settings", FeeSettingsSchema, FeeSettings),
}


def _domain(name):
    if name not in DOMAINS:
        raise NotFoundError(f"Unknown settings domain: {name}")
    return DOMAINS[name]


def load_domain(name):
    key, schema_cls, default_cls = _domain(name)
    with atomic():
        row = db.session.get(AdminSetting, key)
        stored = None if row is None else (row.setting_value or {})
    if stored is None:
        return default_cls()
    try:
        return schema_cls().load(stored)
    except SchemaValidationError as exc:
        # a bad stored document must not take the core down
        logger.warning("Invalid %s in admin_settings, using defaults: %s", key, exc.messages)
        return default_cls()


def load_snapshot():
    with atomic():
        return SettingsSnapshot(
            reservation=load_domain("reservation"),
            approval=load_domain("approval"),
            revision=load_domain("revision"),
            fee=load_domain("fee"),
        )


def dump_domain(name, settings):
    _, schema_cls, _ = _domain(name)
    return schema_cls().dump(asdict(settings))


def update_domain(name, payload, updated_by=None):
    """Validate and store a partial update, returning the merged settings."""
    key, schema_cls, _ = _domain(name)
    if not isinstance(payload, dict):
        raise ValidationError("Settings payload must be an object")

    current = dump_domain(name, load_domain(name))
    merged = {**current, **payload}
    try:
        settings = schema_cls().load(merged)
    except SchemaValidationError as exc:
        raise ValidationError("Invalid settings", exc.messages)

    with atomic():
        row = db.session.get(AdminSetting, key)
        if row is None:
            row = AdminSetting(setting_key=key)
            db.session.add(row)
        row.setting_value = dump_domain(name, settings)
        row.updated_at = utc_now()
        row.updated_by = updated_by

    logger.info("Settings %s updated by %s", key, updated_by)
    return settings


class SettingsProvider:
    """Read-through cache of the settings snapshot.

    Snapshots are reloaded after `ttl` seconds or after `invalidate()`.
    """

    def __init__(self, ttl=60, clock=None):
        self.ttl = ttl
        self.clock = clock
        self._snapshot = None
        self._loaded_at = None
        self._lock = threading.Lock()

    def _now(self):
        return self.clock.now() if self.clock else utc_now()

    def get(self):
        with self._lock:
            now = self._now()
            stale = (
                self._snapshot is None
                or (now - self._loaded_at).total_seconds() >= self.ttl
            )
            if stale:
                self._snapshot = load_snapshot()
                self._loaded_at = now
            return self._snapshot

    def invalidate(self):
        with self._lock:
            self._snapshot = None
            self._loaded_at = None

    def override(self, **domains):
        """Replace domains in the cached snapshot (handy for dry runs and tests)."""
        snapshot = self.get()
        with self._lock:
            self._snapshot = replace(snapshot, **domains)
            return self._snapshot


def get_settings():
    return current_app.extensions["settings_provider"].get()


def invalidate_settings():
    current_app.extensions["settings_provider"].invalidate()
