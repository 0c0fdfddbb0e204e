import argparse
import os

# one-shot run: never start the background ticks
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from microjob.main import create_app
from microjob.services import expiry_sweeper
from microjob.utils.clock import FrozenClock, parse_utc

# -------------------------------------------------------------------
# CONFIG
# -------------------------------------------------------------------

JOBS = {
    "reservations": expiry_sweeper.run_reservation_sweep,
    "work-proofs": expiry_sweeper.run_work_proof_sweep,
    "all": expiry_sweeper.run_all,
}

# -------------------------------------------------------------------
# HELPERS
# -------------------------------------------------------------------

def parse_args():
    parser = argparse.ArgumentParser(description="Run the expiry sweeps once.")
    parser.add_argument("job", nargs="?", default="all", choices=sorted(JOBS))
    parser.add_argument(
        "--at",
        type=parse_utc,
        help="ISO timestamp to sweep as of, e.g. 2026-01-07T18:00:00Z (naive means UTC)",
    )
    return parser.parse_args()


def print_result(label, result):
    status = "OK" if result.get("success") else "FAILED"
    extra = ", ".join(f"{k}={v}" for k, v in result.items() if k != "success")
    print(f"{label:<14} {status:<7} {extra}")

# -------------------------------------------------------------------
# ENTRY POINT
# -------------------------------------------------------------------

if __name__ == "__main__":
    args = parse_args()
    app = create_app()
    if args.at:
        app.extensions["clock"] = FrozenClock(args.at)

    with app.app_context():
        now = app.extensions["clock"].now()
        print(f"Sweeping as of {now.isoformat()}Z")

        result = JOBS[args.job](now)
        if args.job == "all":
            for label, part in result.items():
                print_result(label, part)
        else:
            print_result(args.job, result)
