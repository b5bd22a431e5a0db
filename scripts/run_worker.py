# scripts/run_worker.py
from __future__ import annotations

import argparse

from app.workers.payout_worker import process_once, run_forever
from deps.engine import build_manager
from services.observability import configure_logging
from settings import settings, validate_env_settings


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the scheduled payout worker.")
    parser.add_argument("--once", action="store_true", help="run a single pass and exit")
    args = parser.parse_args()

    validate_env_settings()
    configure_logging(settings.LOG_LEVEL)
    manager = build_manager(settings)

    if args.once:
        stats = process_once(manager)
        print("worker_pass:", " ".join(f"{k}={v}" for k, v in stats.items()))
        return
    run_forever(manager, poll_seconds=settings.WORKER_POLL_SECONDS)


if __name__ == "__main__":
    main()
