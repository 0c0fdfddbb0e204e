import logging
from datetime import timedelta

from sqlalchemy import func

from microjob.extensions import db
from microjob.models.job import Job
from microjob.models.job_reservation import (
    JobReservation,
    gen_reservation_id,
    STATUS_ACTIVE,
    STATUS_EXPIRED,
    STATUS_CANCELLED,
)
from microjob.models.reservation_violation import ReservationViolation, gen_violation_id
from microjob.utils.exceptions import (
    DuplicateReservationError,
    NotFoundError,
    ReservationLimitExceededError,
    ReservationsDisabledError,
)
from microjob.utils.pagination import paginate_query
from microjob.utils.transactions import atomic, advisory_lock

logger = logging.getLogger(__name__)

reservations = JobReservation.__table__


def _live(query, now):
    # mirror image of the sweep predicate (expires_at <= now)
    return query.filter(
        JobReservation.status == STATUS_ACTIVE,
        JobReservation.expires_at > now,
    )


def _expire_where(now, *criteria):
    """Move every active row past its deadline (and matching criteria) to expired."""
    stmt = (
        reservations.update()
        .where(
            reservations.c.status == STATUS_ACTIVE,
            reservations.c.expires_at <= now,
            *criteria,
        )
        .values(status=STATUS_EXPIRED, updated_at=now)
    )
    result = db.session.execute(stmt)
    db.session.expire_all()
    return result.rowcount


def create_reservation(job_id, user_id, duration_minutes=None, *, settings, now):
    if not settings.is_enabled:
        raise ReservationsDisabledError()

    if not duration_minutes or duration_minutes <= 0:
        duration_minutes = settings.default_reservation_minutes

    with atomic():
        if db.session.get(Job, job_id) is None:
            raise NotFoundError("Job not found")

        advisory_lock(f"reservation:{user_id}")

        # the caller's own stale holds would otherwise trip the unique index
        _expire_where(now, reservations.c.user_id == user_id)

        existing = _live(JobReservation.query, now).filter_by(job_id=job_id, user_id=user_id).first()
        if existing:
            raise DuplicateReservationError(details={"reservation_id": existing.id})

        active_count = _live(JobReservation.query, now).filter_by(user_id=user_id).count()
        if active_count >= settings.max_reservations_per_user:
            raise ReservationLimitExceededError(details={
                "active": active_count,
                "max": settings.max_reservations_per_user,
            })

        reservation = JobReservation(
            id=gen_reservation_id(),
            job_id=job_id,
            user_id=user_id,
            status=STATUS_ACTIVE,
            expires_at=now + timedelta(minutes=duration_minutes),
            created_at=now,
            updated_at=now,
        )
        db.session.add(reservation)

    logger.info("Reservation %s created for job %s by %s", reservation.id, job_id, user_id)
    return reservation


def cancel_reservation(reservation_id, user_id, *, now):
    with atomic():
        stmt = (
            reservations.update()
            .where(
                reservations.c.id == reservation_id,
                reservations.c.user_id == user_id,
                reservations.c.status == STATUS_ACTIVE,
                reservations.c.expires_at > now,
            )
            .values(status=STATUS_CANCELLED, updated_at=now)
        )
        result = db.session.execute(stmt)
        db.session.expire_all()
        if result.rowcount == 0:
            raise NotFoundError("Reservation not found, expired or already cancelled")

    return db.session.get(JobReservation, reservation_id)


def list_active_reservations(user_id, *, now):
    rows = (
        _live(db.session.query(JobReservation, Job), now)
        .outerjoin(Job, Job.id == JobReservation.job_id)
        .filter(JobReservation.user_id == user_id)
        .order_by(JobReservation.created_at.desc())
        .all()
    )
    return [
        {
            **reservation_to_dict(reservation, now),
            "job": job.summary() if job else None,
        }
        for reservation, job in rows
    ]


def get_active_reservation(job_id, user_id, *, now):
    return _live(JobReservation.query, now).filter_by(job_id=job_id, user_id=user_id).first()


def sweep_expired(now):
    """Expire every active reservation whose deadline has passed. Idempotent."""
    with atomic():
        count = _expire_where(now)
    if count:
        logger.info("Expired %d reservations", count)
    return count


def record_violations(now, *, threshold, window_hours=24):
    """Flag users who let `threshold` or more holds lapse inside the window.

    A user is counted at most once per window, so repeated sweeps are safe.
    Returns the number of users newly flagged.
    """
    since = now - timedelta(hours=window_hours)

    with atomic():
        offenders = (
            db.session.query(JobReservation.user_id, func.count(JobReservation.id))
            .filter(
                JobReservation.status == STATUS_EXPIRED,
                JobReservation.updated_at > since,
                JobReservation.updated_at <= now,
            )
            .group_by(JobReservation.user_id)
            .having(func.count(JobReservation.id) >= threshold)
            .all()
        )

        flagged = 0
        for user_id, _ in offenders:
            totals = dict(
                db.session.query(JobReservation.status, func.count(JobReservation.id))
                .filter(JobReservation.user_id == user_id)
                .group_by(JobReservation.status)
                .all()
            )

            violation = ReservationViolation.query.filter_by(user_id=user_id).first()
            if violation is None:
                violation = ReservationViolation(
                    id=gen_violation_id(),
                    user_id=user_id,
                    violation_count=0,
                    created_at=now,
                )
                db.session.add(violation)

            violation.expired_reservations = totals.get(STATUS_EXPIRED, 0)
            violation.total_reservations = sum(totals.values())

            if violation.last_violation_at is None or violation.last_violation_at <= since:
                violation.violation_count = (violation.violation_count or 0) + 1
                violation.last_violation_at = now
                flagged += 1

    if flagged:
        logger.info("Recorded reservation violations for %d users", flagged)
    return flagged


def list_violations(page=1, limit=20):
    q = ReservationViolation.query.order_by(
        ReservationViolation.violation_count.desc(),
        ReservationViolation.last_violation_at.desc(),
    )
    return paginate_query(q, page, limit)


def reservation_to_dict(reservation, now=None):
    data = {
        "id": reservation.id,
        "job_id": reservation.job_id,
        "user_id": reservation.user_id,
        "status": reservation.status,
        "expires_at": reservation.expires_at.isoformat() + "Z",
        "created_at": reservation.created_at.isoformat() + "Z" if reservation.created_at else None,
        "updated_at": reservation.updated_at.isoformat() + "Z" if reservation.updated_at else None,
    }
    if now is not None:
        remaining = (reservation.expires_at - now).total_seconds()
        data["seconds_remaining"] = max(int(remaining), 0) if reservation.status == STATUS_ACTIVE else 0
    return data
