from __future__ import annotations

import argparse

from deps.engine import build_manager
from services.reconcile import run_reconcile
from settings import settings


def main() -> None:
    parser = argparse.ArgumentParser(description="Run escrow/payout reconciliation once.")
    parser.add_argument("--items", action="store_true", help="print every flagged item")
    args = parser.parse_args()

    result = run_reconcile(build_manager(settings).repository)
    summary = result["summary"]

    print("reconcile_run_at:", result["run_at"])
    print("counts:", " ".join(f"{k}={v}" for k, v in summary.items()))
    if args.items:
        for item in result["items"]:
            print(item)


if __name__ == "__main__":
    main()
