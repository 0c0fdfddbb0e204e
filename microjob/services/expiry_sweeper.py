"""Expiry sweeper.

Pure orchestration over the two sweeps. Runs on an APScheduler interval and
from the cron endpoints / `run_sweeps.py`. Every transition goes through the
same service functions request handlers use.
"""
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from flask import current_app

from microjob.services import reservation_service, work_proof_service
from microjob.services.settings_service import get_settings
from microjob.utils.clock import now as clock_now
from microjob.utils.exceptions import ServiceError

logger = logging.getLogger(__name__)

RESERVATION_JOB_ID = "expire_reservations"
WORK_PROOF_JOB_ID = "process_work_proof_timeouts"


def run_reservation_sweep(now=None):
    now = now or clock_now()
    logger.info("[SWEEP] Processing expired reservations...")
    try:
        expired = reservation_service.sweep_expired(now)
    except ServiceError as exc:
        logger.error("[SWEEP] Error processing expired reservations: %s", exc.message)
        return {"success": False, "processed": 0, "error": exc.code}

    if not expired:
        logger.info("[SWEEP] No expired reservations found")

    # holds expired inside create_reservation count too, so always look
    violations = 0
    try:
        violations = reservation_service.record_violations(
            now,
            threshold=current_app.config["RESERVATION_VIOLATION_THRESHOLD"],
            window_hours=current_app.config["RESERVATION_VIOLATION_WINDOW_HOURS"],
        )
    except ServiceError as exc:
        logger.error("[SWEEP] Error creating violation records: %s", exc.message)

    return {"success": True, "processed": expired, "violations": violations}


def run_work_proof_sweep(now=None):
    now = now or clock_now()
    logger.info("[SWEEP] Processing work proof timeouts...")
    try:
        settings = get_settings()
        processed = work_proof_service.sweep_deadlines(
            now,
            fee_settings=settings.fee,
            approval_settings=settings.approval,
        )
    except ServiceError as exc:
        logger.error("[SWEEP] Error processing work proof timeouts: %s", exc.message)
        return {"success": False, "processed": 0, "error": exc.code}

    if not processed:
        logger.info("[SWEEP] No expired work proof deadlines found")
    return {"success": True, "processed": processed}


def run_all(now=None):
    now = now or clock_now()
    return {
        "reservations": run_reservation_sweep(now),
        "work_proofs": run_work_proof_sweep(now),
    }


class ExpiryScheduler:
    """Background ticks for both sweeps, one instance per process."""

    def __init__(self, app=None):
        self.app = None
        self.scheduler = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.app = app
        app.extensions["expiry_scheduler"] = self

    def _in_app_context(self, func):
        def job():
            with self.app.app_context():
                func()
        return job

    def start(self):
        if self.scheduler is not None and self.scheduler.running:
            return

        config = self.app.config
        self.scheduler = BackgroundScheduler(
            job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 60},
            timezone="UTC",
        )
        self.scheduler.add_job(
            self._in_app_context(run_reservation_sweep),
            trigger=IntervalTrigger(minutes=config["RESERVATION_SWEEP_MINUTES"]),
            id=RESERVATION_JOB_ID,
            name="Expire Reservations",
            replace_existing=True,
        )
        self.scheduler.add_job(
            self._in_app_context(run_work_proof_sweep),
            trigger=IntervalTrigger(minutes=config["WORK_PROOF_SWEEP_MINUTES"]),
            id=WORK_PROOF_JOB_ID,
            name="Process Work Proof Timeouts",
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info("[SWEEP] Scheduler started")

    def shutdown(self):
        if self.scheduler is not None and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("[SWEEP] Scheduler stopped")
        self.scheduler = None

    @property
    def running(self):
        return self.scheduler is not None and self.scheduler.running

    def job_ids(self):
        if self.scheduler is None:
            return []
        return [job.id for job in self.scheduler.get_jobs()]


scheduler = ExpiryScheduler()
