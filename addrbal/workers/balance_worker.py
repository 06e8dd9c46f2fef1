# addrbal/workers/balance_worker.py
"""
Balance worker: looks up the current balance of every payment address that has
a destination and keeps the AddressBalance table in sync with what the balance
service reports.

One pass per invocation; scheduling repeated runs is left to cron/systemd.
"""

import argparse
import logging
import sys
import time

from pydantic import ValidationError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from addrbal.config import get_settings
from addrbal.connectors.balance_client import (
    BalanceDecodeError,
    BalanceServiceError,
    BalanceSourceClient,
    BalanceTransportError,
)
from addrbal.db import get_connection, make_engine
from addrbal.storage.balances import BalanceStore, SetupError
from addrbal.telemetry import TRACE, configure_logging

logger = logging.getLogger(__name__)


class ReconciliationLoop:
    def __init__(self, engine: Engine, client: BalanceSourceClient, loop_delay_ms: int = 1000,
                 log: logging.Logger = None, sleep=time.sleep):
        if loop_delay_ms < 0:
            raise ValueError("loop_delay_ms must be >= 0")
        self.engine = engine
        self.client = client
        self.loop_delay_ms = loop_delay_ms
        self.log = log or logger
        self.sleep = sleep

    def run(self) -> int:
        """Reconcile every candidate address once. Returns the number of lookups attempted."""
        try:
            with get_connection(self.engine) as conn:
                store = BalanceStore(conn)
                store.ensure_schema()
                candidates = store.load_candidates()
                self.log.info("Number of payment addresses %d", len(candidates))
                store.prepare()
                return self._reconcile_all(store, candidates)
        except SQLAlchemyError as exc:
            raise SetupError(f"payments store unavailable: {exc}") from exc

    def _reconcile_all(self, store: BalanceStore, candidates) -> int:
        get_count = 0
        total = len(candidates)
        for address, payment in candidates.items():
            get_count += 1
            self.log.log(TRACE, "GET %d/%d payment address %s (destination %s)",
                         get_count, total, address, payment.destination_address)
            self._reconcile_one(store, address, payment, get_count)
            if get_count < total and self.loop_delay_ms:
                self.sleep(self.loop_delay_ms / 1000.0)

        self.log.info("Total address count: %d", get_count)
        return get_count

    def _reconcile_one(self, store: BalanceStore, address: str, payment, get_count: int) -> None:
        try:
            snapshot = self.client.fetch(address)
        except BalanceServiceError as exc:
            self.log.warning("Skipping %s: status code %d, status %s", address, exc.status_code, exc.reason)
            return
        except (BalanceTransportError, BalanceDecodeError) as exc:
            self.log.error("Skipping %s: %s", address, exc)
            return

        if snapshot.address != address:
            self.log.warning("Balance service answered for %s when asked for %s", snapshot.address, address)

        if snapshot.balance > 0:
            self.log.info("GET Count %d Payment address %s Balance %d Total Received %d Payable %d",
                          get_count, snapshot.address, snapshot.balance, snapshot.total_received,
                          payment.payable_balance)

        try:
            action, rows = store.upsert(snapshot.address, snapshot.balance)
        except SQLAlchemyError as exc:
            self.log.error("Failed to store balance for %s: %s", snapshot.address, exc)
            return

        if rows < 1:
            self.log.warning("Failed to %s AddressBalance for address %s: no rows affected", action, snapshot.address)
        elif action == "update":
            self.log.info("Updated address %s balance %d", snapshot.address, snapshot.balance)
        else:
            self.log.info("Inserted new address %s balance %d", snapshot.address, snapshot.balance)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="addrbal",
        description="Refresh AddressBalance from the balance service for every payment address with a destination.",
        epilog="Settings are read from ADDRBAL_* environment variables (or .env); flags override them.",
    )
    parser.add_argument("--db", dest="payments_db", default=None,
                        help="sqlite file path or SQLAlchemy URL (ADDRBAL_PAYMENTS_DB)")
    parser.add_argument("--delay", dest="loop_delay", type=int, default=None,
                        help="milliseconds to wait between lookups (ADDRBAL_LOOP_DELAY)")
    parser.add_argument("--log-level", dest="log_level", default=None,
                        help="TRACE, INFO, WARNING or ERROR (ADDRBAL_LOG_LEVEL)")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        settings = get_settings(PAYMENTS_DB=args.payments_db, LOOP_DELAY=args.loop_delay,
                                LOG_LEVEL=args.log_level)
    except ValidationError as exc:
        configure_logging("INFO")
        logger.error("invalid configuration: %s", exc)
        return 1

    try:
        configure_logging(settings.LOG_LEVEL, json_format=settings.LOG_JSON)
    except ValueError as exc:
        configure_logging("INFO")
        logger.error("invalid configuration: %s", exc)
        return 1

    try:
        engine = make_engine(settings.database_url)
        client = BalanceSourceClient(settings.BALANCE_URL, timeout=settings.REQUEST_TIMEOUT)
    except (SQLAlchemyError, ValueError) as exc:
        logger.error("invalid configuration: %s", exc)
        return 1

    loop = ReconciliationLoop(engine, client, loop_delay_ms=settings.LOOP_DELAY)
    try:
        loop.run()
    except SetupError as exc:
        logger.error("aborting run: %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.warning("interrupted")
        return 130
    finally:
        engine.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
