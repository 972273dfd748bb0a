# scripts/auto_payout_daemon.py
from __future__ import annotations

import logging
import time

from app.errors import TransientStoreError
from app.payouts.auto import run_auto_payouts
from app.storage import get_store
from settings import settings


logger = logging.getLogger("affiliatehub.auto_payouts")


def _interval_seconds() -> int:
    return max(1, int(settings.AUTO_PAYOUT_INTERVAL_SECONDS or 3600))


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    interval = _interval_seconds()
    store = get_store()
    logger.info("Auto payout daemon starting; interval=%ss backend=%s", interval, store.backend)

    while True:
        try:
            result = run_auto_payouts(store)
        except KeyboardInterrupt:
            logger.info("Auto payout daemon exiting")
            raise
        except TransientStoreError:
            # store blip: try again next tick
            logger.warning("Auto payout sweep skipped; store unavailable")
        else:
            logger.info(
                "Auto payout sweep | processed=%s results=%s",
                result.get("processed"),
                len(result.get("results") or []),
            )
        time.sleep(interval)


if __name__ == "__main__":
    main()
