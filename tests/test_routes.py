from datetime import timedelta

from microjob.extensions import db
from microjob.models.job import APPROVAL_INSTANT
from microjob.models.work_proof import WorkProof

from conftest import EMPLOYER, WORKER, ADMIN

CRON = {"Authorization": "Bearer cron-test-secret"}


def _submit(client, auth_header, job_id, **body):
    payload = {"title": "Finished", "payment_amount": 50, **body}
    return client.post(f"/api/v1/jobs/{job_id}/work-proofs", json=payload, headers=auth_header(WORKER))


def test_requires_token(client):
    resp = client.get("/api/v1/wallet")
    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "UNAUTHORIZED"


def test_unknown_route_uses_error_envelope(client):
    resp = client.get("/api/v1/nothing-here")
    assert resp.status_code == 404
    assert resp.get_json()["error"]["code"] == "NOT_FOUND"


def test_reserve_check_and_cancel(client, auth_header, make_job):
    job_id = make_job()
    headers = auth_header(WORKER)

    resp = client.post(f"/api/v1/jobs/{job_id}/reservations", json={"duration_minutes": 15}, headers=headers)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["success"] is True
    reservation = body["reservation"]
    assert reservation["seconds_remaining"] == 15 * 60

    resp = client.post(f"/api/v1/jobs/{job_id}/reservations", json={}, headers=headers)
    assert resp.status_code == 409
    assert resp.get_json()["error"]["code"] == "DUPLICATE_RESERVATION"

    resp = client.get(f"/api/v1/jobs/{job_id}/reservation", headers=headers)
    assert resp.get_json()["reserved"] is True

    resp = client.get("/api/v1/reservations", headers=headers)
    assert [r["id"] for r in resp.get_json()["reservations"]] == [reservation["id"]]

    resp = client.post(f"/api/v1/reservations/{reservation['id']}/cancel", headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()["reservation"]["status"] == "cancelled"

    resp = client.get(f"/api/v1/jobs/{job_id}/reservation", headers=headers)
    assert resp.get_json() == {"success": True, "reserved": False, "reservation": None}


def test_reservation_limit_from_admin_settings(client, auth_header, make_job):
    resp = client.put(
        "/api/v1/admin/settings/reservation",
        json={"maxReservationsPerUser": 2},
        headers=auth_header(ADMIN, role="admin"),
    )
    assert resp.status_code == 200
    assert resp.get_json()["settings"]["maxReservationsPerUser"] == 2

    headers = auth_header(WORKER)
    for _ in range(2):
        assert client.post(f"/api/v1/jobs/{make_job()}/reservations", headers=headers).status_code == 201

    resp = client.post(f"/api/v1/jobs/{make_job()}/reservations", headers=headers)
    assert resp.status_code == 409
    assert resp.get_json()["error"]["code"] == "RESERVATION_LIMIT_EXCEEDED"


def test_disabled_reservations(client, auth_header, make_job):
    client.put(
        "/api/v1/admin/settings/reservation",
        json={"isEnabled": False},
        headers=auth_header(ADMIN, role="admin"),
    )
    resp = client.post(f"/api/v1/jobs/{make_job()}/reservations", headers=auth_header(WORKER))
    assert resp.status_code == 403
    assert resp.get_json()["error"]["code"] == "RESERVATIONS_DISABLED"


def test_admin_routes_reject_regular_users(client, auth_header):
    resp = client.get("/api/v1/admin/settings/reservation", headers=auth_header(WORKER))
    assert resp.status_code == 403
    assert resp.get_json()["error"]["code"] == "FORBIDDEN"


def test_admin_settings_validation(client, auth_header):
    headers = auth_header(ADMIN, role="admin")

    resp = client.put("/api/v1/admin/settings/revision", json={"maxRevisionRequests": -1}, headers=headers)
    assert resp.status_code == 422
    assert resp.get_json()["error"]["code"] == "VALIDATION_ERROR"

    resp = client.get("/api/v1/admin/settings/payouts", headers=headers)
    assert resp.status_code == 404


def test_instant_job_pays_on_submit(client, auth_header, make_job, fund):
    fund(EMPLOYER, 100)
    job_id = make_job(approval_type=APPROVAL_INSTANT)

    resp = _submit(client, auth_header, job_id)
    assert resp.status_code == 201
    assert resp.get_json()["work_proof"]["status"] == "auto_approved"

    wallet = client.get("/api/v1/wallet", headers=auth_header(EMPLOYER)).get_json()["wallet"]
    assert wallet["balance"] == 50.0

    wallet = client.get("/api/v1/wallet", headers=auth_header(WORKER)).get_json()["wallet"]
    assert wallet["pending_balance"] == 50.0
    assert wallet["balance"] == 0.0


def test_submit_validation(client, auth_header, make_job):
    resp = _submit(client, auth_header, make_job(), payment_amount=-3)
    assert resp.status_code == 422
    assert "payment_amount" in resp.get_json()["error"]["details"]


def test_insufficient_balance_on_approve(client, auth_header, make_job):
    proof_id = _submit(client, auth_header, make_job()).get_json()["work_proof"]["id"]

    resp = client.post(f"/api/v1/work-proofs/{proof_id}/approve", json={}, headers=auth_header(EMPLOYER))
    assert resp.status_code == 400
    assert resp.get_json()["error"]["code"] == "INSUFFICIENT_BALANCE"


def test_review_flow(client, auth_header, make_job, fund, clock):
    fund(EMPLOYER, 100)
    proof_id = _submit(client, auth_header, make_job()).get_json()["work_proof"]["id"]
    employer = auth_header(EMPLOYER)
    worker = auth_header(WORKER)

    resp = client.post(f"/api/v1/work-proofs/{proof_id}/approve", headers=worker, json={})
    assert resp.status_code == 404

    resp = client.post(
        f"/api/v1/work-proofs/{proof_id}/request-revision",
        json={"notes": "Add a dark variant"},
        headers=employer,
    )
    assert resp.status_code == 200
    proof = resp.get_json()["work_proof"]
    assert proof["status"] == "revision_requested"
    assert proof["revision_count"] == 1

    clock.advance(hours=1)
    resp = client.post(
        f"/api/v1/work-proofs/{proof_id}/resubmit",
        json={"description": "Dark variant added"},
        headers=worker,
    )
    assert resp.get_json()["work_proof"]["submission_number"] == 2

    resp = client.post(f"/api/v1/work-proofs/{proof_id}/approve", json={"notes": "Thanks"}, headers=employer)
    assert resp.status_code == 200
    assert resp.get_json()["work_proof"]["status"] == "approved"

    resp = client.post(f"/api/v1/work-proofs/{proof_id}/approve", json={}, headers=employer)
    assert resp.status_code == 409
    assert resp.get_json()["error"]["code"] == "ALREADY_SETTLED"

    resp = client.get("/api/v1/wallet/transactions?type=earning", headers=worker)
    body = resp.get_json()
    assert body["pagination"]["total"] == 1
    assert body["transactions"][0]["amount"] == 50.0
    assert body["transactions"][0]["reference_id"] == proof_id


def test_reject_requires_notes(client, auth_header, make_job):
    proof_id = _submit(client, auth_header, make_job()).get_json()["work_proof"]["id"]

    resp = client.post(f"/api/v1/work-proofs/{proof_id}/reject", json={}, headers=auth_header(EMPLOYER))
    assert resp.status_code == 422


def test_reject_uses_configured_timeout(client, auth_header, make_job, clock):
    proof_id = _submit(client, auth_header, make_job()).get_json()["work_proof"]["id"]

    resp = client.post(
        f"/api/v1/work-proofs/{proof_id}/reject",
        json={"notes": "Not what was asked"},
        headers=auth_header(EMPLOYER),
    )
    deadline = resp.get_json()["work_proof"]["rejection_deadline"]
    assert deadline == (clock.now() + timedelta(hours=24)).isoformat() + "Z"

    resp = client.post(f"/api/v1/work-proofs/{proof_id}/accept-rejection", headers=auth_header(WORKER))
    assert resp.get_json()["work_proof"]["status"] == "rejected_accepted"


def test_work_proof_listing(client, auth_header, make_job):
    job_id = make_job()
    proof_id = _submit(client, auth_header, job_id).get_json()["work_proof"]["id"]

    resp = client.get(f"/api/v1/jobs/{job_id}/work-proofs", headers=auth_header(EMPLOYER))
    assert [p["id"] for p in resp.get_json()["work_proofs"]] == [proof_id]

    resp = client.get(f"/api/v1/jobs/{job_id}/work-proofs", headers=auth_header("usr-nobody"))
    assert resp.get_json()["work_proofs"] == []

    resp = client.get(f"/api/v1/work-proofs/{proof_id}", headers=auth_header("usr-nobody"))
    assert resp.status_code == 404


def test_wallet_transactions_rejects_unknown_type(client, auth_header):
    resp = client.get("/api/v1/wallet/transactions?type=bonus", headers=auth_header(WORKER))
    assert resp.status_code == 422


def test_admin_adjustment_and_release(client, auth_header, fund):
    admin = auth_header(ADMIN, role="admin")

    resp = client.post(
        f"/api/v1/admin/wallets/{WORKER}/adjustments",
        json={"type": "earning", "amount": "12.50", "balance_type": "pending"},
        headers=admin,
    )
    assert resp.status_code == 201
    assert resp.get_json()["wallet"]["pending_balance"] == 12.5

    resp = client.post(f"/api/v1/admin/wallets/{WORKER}/release", json={"amount": 10}, headers=admin)
    assert resp.status_code == 200
    assert resp.get_json()["wallet"]["balance"] == 10.0
    assert resp.get_json()["transaction"]["type"] == "transfer_pending_to_available"

    resp = client.post(f"/api/v1/admin/wallets/{WORKER}/release", json={"amount": 5}, headers=admin)
    assert resp.status_code == 400
    assert resp.get_json()["error"]["code"] == "INSUFFICIENT_PENDING_BALANCE"


def test_cron_requires_secret(client):
    resp = client.post("/api/v1/cron/expire-reservations")
    assert resp.status_code == 401

    resp = client.post("/api/v1/cron/expire-reservations", headers={"Authorization": "Bearer wrong"})
    assert resp.status_code == 401


def test_cron_endpoints(client, auth_header, make_job, clock):
    client.post(f"/api/v1/jobs/{make_job()}/reservations", json={"duration_minutes": 5}, headers=auth_header(WORKER))
    clock.advance(minutes=6)

    resp = client.post("/api/v1/cron/expire-reservations", headers=CRON)
    assert resp.status_code == 200
    assert resp.get_json()["processed"] == 1

    resp = client.post("/api/v1/cron/process-work-proof-timeouts", headers=CRON)
    assert resp.get_json() == {"success": True, "processed": 0}

    resp = client.post("/api/v1/cron/run", json={"job_type": "all"}, headers=CRON)
    assert resp.get_json()["reservations"]["processed"] == 0

    resp = client.post("/api/v1/cron/run", json={"job_type": "nope"}, headers=CRON)
    assert resp.status_code == 400
    assert resp.get_json()["error"]["code"] == "INVALID_JOB_TYPE"


def test_cron_auto_approves_through_http(client, auth_header, make_job, fund, clock):
    fund(EMPLOYER, 100)
    proof_id = _submit(client, auth_header, make_job(manual_approval_days=1)).get_json()["work_proof"]["id"]
    clock.advance(days=1, minutes=1)

    resp = client.post("/api/v1/cron/run", json={"job_type": "process_work_proof_timeouts"}, headers=CRON)
    assert resp.get_json()["processed"] == 1

    db.session.expire_all()
    assert db.session.get(WorkProof, proof_id).status == "auto_approved"
