from datetime import datetime

import pytest
from flask_jwt_extended import create_access_token

from microjob.extensions import db
from microjob.main import create_app
from microjob.models.job import Job, APPROVAL_MANUAL
from microjob.services.wallet_service import record_adjustment
from microjob.utils.clock import FrozenClock

T0 = datetime(2026, 1, 5, 12, 0, 0)

EMPLOYER = "usr-employer-1"
WORKER = "usr-worker-1"
ADMIN = "usr-admin-1"


@pytest.fixture
def app():
    app = create_app("testing")
    clock = FrozenClock(T0)
    app.extensions["clock"] = clock
    app.extensions["settings_provider"].clock = clock

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def clock(app):
    return app.extensions["clock"]


@pytest.fixture
def make_job(app):
    counter = {"n": 0}

    def _make(employer_id=EMPLOYER, approval_type=APPROVAL_MANUAL, manual_approval_days=3, title=None):
        counter["n"] += 1
        job = Job(
            id=f"JOB-{counter['n']:04d}",
            employer_id=employer_id,
            title=title or f"Job {counter['n']}",
            budget_min_cents=1000,
            budget_max_cents=5000,
            approval_type=approval_type,
            manual_approval_days=manual_approval_days,
        )
        db.session.add(job)
        db.session.commit()
        return job.id

    return _make


@pytest.fixture
def fund(app):
    def _fund(user_id, amount):
        return record_adjustment(user_id, "deposit", amount, "deposit", "Test deposit")

    return _fund


@pytest.fixture
def auth_header(app):
    def _header(user_id, role="user"):
        token = create_access_token(identity=user_id, additional_claims={"role": role})
        return {"Authorization": f"Bearer {token}"}

    return _header
