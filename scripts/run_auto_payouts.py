from __future__ import annotations

import argparse

from app.payouts.auto import run_auto_payouts
from app.storage import build_store


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the automatic payout sweep once.")
    parser.add_argument("--backend", choices=["postgres", "memory"], default=None)
    args = parser.parse_args()

    result = run_auto_payouts(build_store(args.backend))

    print("message:", result["message"])
    print("processed:", result["processed"])
    for r in result["results"]:
        print(f"  user={r['user_id']} amount={r['amount']} status={r['status']}")


if __name__ == "__main__":
    main()
