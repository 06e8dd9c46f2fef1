# addrbal/connectors/balance_client.py
"""
Client for the external address balance service (blockchain.info style JSON API).

One GET per address. No retries and no caching; the caller decides what a
failure means for the run.
"""

import logging
from urllib.parse import quote

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from addrbal.config import DEFAULT_BALANCE_URL

logger = logging.getLogger(__name__)


class BalanceLookupError(Exception):
    """Base class for failed balance lookups."""

    def __init__(self, address: str, message: str):
        self.address = address
        super().__init__(message)


class BalanceServiceError(BalanceLookupError):
    """The service answered with a non-200 status."""

    def __init__(self, address: str, status_code: int, reason: str = ""):
        self.status_code = status_code
        self.reason = reason or ""
        super().__init__(address, f"balance service returned {status_code} {self.reason}".rstrip())


class BalanceTransportError(BalanceLookupError):
    """The request never got a response (connection, DNS, timeout)."""


class BalanceDecodeError(BalanceLookupError):
    """The response body was not the expected JSON document."""


class ExternalBalanceSnapshot(BaseModel):
    # strict: "700", true and 700.0 are not balances
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True, strict=True)

    address: str = Field(min_length=1)
    balance: int = Field(alias="final_balance")
    total_received: int
    total_sent: int


class BalanceSourceClient:
    def __init__(self, url_template: str = DEFAULT_BALANCE_URL, timeout: float = 10.0, session=None):
        if "{address}" not in url_template:
            raise ValueError("balance url template must contain '{address}'")
        self.url_template = url_template
        self.timeout = timeout
        # anything with a requests-style get(); requests module by default
        self.http = session if session is not None else requests

    def url_for(self, address: str) -> str:
        return self.url_template.replace("{address}", quote(address, safe=""))

    def fetch(self, address: str) -> ExternalBalanceSnapshot:
        url = self.url_for(address)
        logger.debug("GET %s", url)
        try:
            resp = self.http.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise BalanceTransportError(address, f"request for {address} failed: {exc}") from exc

        try:
            if resp.status_code != 200:
                raise BalanceServiceError(address, resp.status_code, resp.reason)
            try:
                payload = resp.json()
            except ValueError as exc:
                raise BalanceDecodeError(address, f"invalid JSON for {address}: {exc}") from exc
            try:
                return ExternalBalanceSnapshot.model_validate(payload)
            except ValidationError as exc:
                raise BalanceDecodeError(
                    address, f"unexpected payload for {address}: {exc.error_count()} error(s)"
                ) from exc
        finally:
            resp.close()
