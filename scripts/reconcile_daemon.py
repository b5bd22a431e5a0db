# scripts/reconcile_daemon.py
from __future__ import annotations

import logging
import os
import time

from deps.engine import build_manager
from services.observability import configure_logging
from services.reconcile import run_reconcile
from settings import settings, validate_env_settings


logger = logging.getLogger("tanda.reconcile_daemon")


def _interval_seconds() -> int:
    raw = os.getenv("RECONCILE_INTERVAL_SECONDS", "300")
    try:
        value = int(raw)
    except ValueError:
        return 300
    return max(1, value)


def main() -> None:
    validate_env_settings()
    configure_logging(settings.LOG_LEVEL)
    interval = _interval_seconds()
    repository = build_manager(settings).repository
    logger.info("Reconcile daemon starting; interval=%ss", interval)

    while True:
        try:
            result = run_reconcile(repository)
        except KeyboardInterrupt:
            logger.info("Reconcile daemon exiting")
            raise
        except Exception:
            logger.exception("Reconcile daemon failed")
            raise

        summary = result.get("summary") or {}
        logger.info(
            "Reconcile report %s | payout_unsettled=%s hold_needs_reconcile=%s hold_overdue=%s round_halted=%s captured_on_cancelled=%s",
            result.get("run_at"),
            summary.get("payout_unsettled"),
            summary.get("hold_needs_reconcile"),
            summary.get("hold_overdue"),
            summary.get("round_halted"),
            summary.get("captured_on_cancelled"),
        )
        time.sleep(interval)


if __name__ == "__main__":
    main()
