# addrbal/storage/balances.py
import logging
from typing import Dict, Optional

from sqlalchemy import Integer, Text, bindparam, inspect, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from addrbal.models import AddressBalance, Payment

logger = logging.getLogger(__name__)

CANDIDATES_SQL = text(
    """
    SELECT paymentAddress, destinationAddress, targetBalance, payableBalance
      FROM PaymentAddress
     WHERE destinationAddress != ''
     ORDER BY destinationAddress, paymentAddress
    """
)

EXISTS_SQL = """
    SELECT paymentAddress, balance, balanceDate
      FROM AddressBalance
     WHERE paymentAddress = :payment_address
"""

INSERT_SQL = """
    INSERT INTO AddressBalance (paymentAddress, balance, balanceDate)
    VALUES (:payment_address, :balance, CURRENT_TIMESTAMP)
"""

UPDATE_SQL = """
    UPDATE AddressBalance
       SET balance = :balance, balanceDate = CURRENT_TIMESTAMP
     WHERE paymentAddress = :payment_address
"""


class SetupError(Exception):
    """The store could not be prepared for a run; nothing was processed."""


class BalanceStore:
    """
    AddressBalance access for one run, bound to a single connection.

    Each upsert commits on its own so an interrupted run keeps every
    balance written before the interruption.
    """

    def __init__(self, conn: Connection):
        self.conn = conn
        self._exists_stmt = None
        self._insert_stmt = None
        self._update_stmt = None

    def ensure_schema(self) -> bool:
        """Create AddressBalance if missing. Returns True when it was created."""
        try:
            if inspect(self.conn).has_table(AddressBalance.__tablename__):
                return False
            AddressBalance.__table__.create(bind=self.conn)
            self.conn.commit()
        except SQLAlchemyError as exc:
            self.conn.rollback()
            raise SetupError(f"failed to ensure AddressBalance table: {exc}") from exc
        logger.info("created table %s", AddressBalance.__tablename__)
        return True

    def load_candidates(self) -> Dict[str, Payment]:
        """Payment addresses with a destination, keyed by address, in query order."""
        try:
            rows = self.conn.execute(CANDIDATES_SQL).fetchall()
            self.conn.rollback()
        except SQLAlchemyError as exc:
            raise SetupError(f"failed to load payment addresses: {exc}") from exc

        candidates: Dict[str, Payment] = {}
        for row in rows:
            payment = Payment(
                payment_address=row.paymentAddress,
                destination_address=row.destinationAddress,
                target_balance=row.targetBalance or 0,
                payable_balance=row.payableBalance or 0,
            )
            candidates[payment.payment_address] = payment
        return candidates

    def prepare(self) -> None:
        """Build the existence/insert/update statements once for the whole run."""
        try:
            self._exists_stmt = text(EXISTS_SQL).bindparams(bindparam("payment_address", type_=Text))
            self._insert_stmt = text(INSERT_SQL).bindparams(
                bindparam("payment_address", type_=Text), bindparam("balance", type_=Integer)
            )
            self._update_stmt = text(UPDATE_SQL).bindparams(
                bindparam("payment_address", type_=Text), bindparam("balance", type_=Integer)
            )
            for stmt in (self._exists_stmt, self._insert_stmt, self._update_stmt):
                stmt.compile(dialect=self.conn.dialect)
        except SQLAlchemyError as exc:
            raise SetupError(f"failed to prepare balance statements: {exc}") from exc

    def _require_prepared(self):
        if self._exists_stmt is None:
            raise RuntimeError("BalanceStore.prepare() must be called before use")

    def get(self, payment_address: str) -> Optional[dict]:
        self._require_prepared()
        row = self.conn.execute(self._exists_stmt, {"payment_address": payment_address}).fetchone()
        return dict(row._mapping) if row else None

    def exists(self, payment_address: str) -> bool:
        return self.get(payment_address) is not None

    def insert(self, payment_address: str, balance: int) -> int:
        self._require_prepared()
        result = self.conn.execute(self._insert_stmt, {"payment_address": payment_address, "balance": balance})
        return result.rowcount

    def update(self, payment_address: str, balance: int) -> int:
        self._require_prepared()
        result = self.conn.execute(self._update_stmt, {"payment_address": payment_address, "balance": balance})
        return result.rowcount

    def upsert(self, payment_address: str, balance: int):
        """
        Update the row for `payment_address` or insert it, then commit.
        Returns (action, rows_affected) with action "update" or "insert".
        """
        try:
            if self.exists(payment_address):
                action, rows = "update", self.update(payment_address, balance)
            else:
                action, rows = "insert", self.insert(payment_address, balance)
            self.conn.commit()
        except SQLAlchemyError:
            self.conn.rollback()
            raise
        return action, rows
