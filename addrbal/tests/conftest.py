# addrbal/tests/conftest.py
import json
import logging
import os

import pytest
import requests
from sqlalchemy import text

from addrbal.connectors.balance_client import BalanceSourceClient
from addrbal.db import make_engine
from addrbal.models import PaymentAddress

TEST_URL = "http://balances.test/address/{address}?format=json&limit=10"


class FakeResponse:
    def __init__(self, status_code=200, payload=None, body=None, reason="OK"):
        self.status_code = status_code
        self.reason = reason
        self._payload = payload
        self._body = body
        self.closed = False

    def json(self):
        if self._body is not None:
            return json.loads(self._body)
        return self._payload

    def close(self):
        self.closed = True


class FakeSession:
    """Stands in for `requests`: answers from a dict keyed by address."""

    def __init__(self, answers=None):
        self.answers = dict(answers or {})
        self.requested = []
        self.timeouts = []

    def get(self, url, timeout=None):
        address = url.split("/address/", 1)[1].split("?", 1)[0]
        self.requested.append(address)
        self.timeouts.append(timeout)
        answer = self.answers.get(address)
        if answer is None:
            return FakeResponse(404, reason="Not Found")
        if isinstance(answer, Exception):
            raise answer
        return answer


def balance_payload(address, balance, received=None, sent=0):
    return {
        "address": address,
        "final_balance": balance,
        "total_received": balance if received is None else received,
        "total_sent": sent,
        "n_tx": 1,
        "txs": [],
    }


def ok(address, balance, **kw):
    return FakeResponse(200, balance_payload(address, balance, **kw))


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    # no stray ADDRBAL_* variables or .env file from the developer machine
    for name in list(os.environ):
        if name.startswith("ADDRBAL_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)

    # configure_logging() installs stream handlers on the root logger
    root = logging.getLogger()
    saved_level = root.level
    pkg_level = logging.getLogger("addrbal").level
    yield
    for h in list(root.handlers):
        if type(h) is logging.StreamHandler:
            root.removeHandler(h)
    root.setLevel(saved_level)
    logging.getLogger("addrbal").setLevel(pkg_level)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "payproc.db"


@pytest.fixture
def engine(db_path):
    eng = make_engine(f"sqlite:///{db_path}")
    PaymentAddress.__table__.create(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def add_payment_addresses(engine):
    def _add(*rows):
        with engine.begin() as conn:
            conn.execute(
                text(
                    "INSERT INTO PaymentAddress (paymentAddress, destinationAddress, targetBalance, payableBalance) "
                    "VALUES (:p, :d, :t, :pb)"
                ),
                [{"p": p, "d": d, "t": t, "pb": pb} for (p, d, t, pb) in rows],
            )
    return _add


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def client(fake_session):
    return BalanceSourceClient(TEST_URL, timeout=3.0, session=fake_session)


def read_balances(engine):
    with engine.connect() as conn:
        rows = conn.execute(
            text("SELECT paymentAddress, balance, balanceDate FROM AddressBalance ORDER BY paymentAddress")
        ).fetchall()
    return [tuple(r) for r in rows]


def connection_error():
    return requests.ConnectionError("connection refused")
