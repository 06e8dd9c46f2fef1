# addrbal/models.py
from dataclasses import dataclass

from sqlalchemy import Column, Integer, Text
from sqlalchemy.orm import declarative_base

# single Base used across the file
Base = declarative_base()


class PaymentAddress(Base):
    """Upstream table, filled by the payment request producer. Read-only here."""

    __tablename__ = "PaymentAddress"

    paymentAddress = Column(Text, primary_key=True)
    destinationAddress = Column(Text, nullable=False, default="")
    targetBalance = Column(Integer, nullable=False, default=0)
    payableBalance = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<PaymentAddress {self.paymentAddress} -> {self.destinationAddress} target={self.targetBalance}>"


class AddressBalance(Base):
    __tablename__ = "AddressBalance"

    paymentAddress = Column(Text, primary_key=True)
    balance = Column(Integer, nullable=False, default=0, server_default="0")
    balanceDate = Column(Text)

    def __repr__(self):
        return f"<AddressBalance {self.paymentAddress} balance={self.balance} at={self.balanceDate}>"


@dataclass(frozen=True)
class Payment:
    """A candidate row loaded from PaymentAddress for one run."""

    payment_address: str
    destination_address: str
    target_balance: int
    payable_balance: int
