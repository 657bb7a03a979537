"""
Asset custody contract.

The engine never moves tokens itself. It hands a list of transfers to a
TokenLedger and asks it for the pool's balance when capping fee payouts.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..exceptions import CustodyError, InsufficientBalanceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transfer:
    """A single asset movement requested by the pool."""
    sender: str
    recipient: str
    asset: str
    amount: int

    def reversed(self) -> "Transfer":
        return Transfer(self.recipient, self.sender, self.asset, self.amount)


class TokenLedger(ABC):
    """Transfer capability injected into the pool."""

    @abstractmethod
    def transfer(self, sender: str, recipient: str, asset: str, amount: int) -> None:
        """Move ``amount`` of ``asset``; raise CustodyError on failure."""

    @abstractmethod
    def balance(self, holder: str, asset: str) -> int:
        ...


class InMemoryTokenLedger(TokenLedger):
    """Balances keyed by (holder, asset)."""

    def __init__(self) -> None:
        self._balances: dict[tuple[str, str], int] = {}

    def mint(self, holder: str, asset: str, amount: int) -> None:
        if amount < 0:
            raise CustodyError(
                "Cannot mint a negative amount",
                details={"holder": holder, "asset": asset, "amount": amount},
            )
        key = (holder, asset)
        self._balances[key] = self._balances.get(key, 0) + amount

    def balance(self, holder: str, asset: str) -> int:
        return self._balances.get((holder, asset), 0)

    def transfer(self, sender: str, recipient: str, asset: str, amount: int) -> None:
        if amount < 0:
            raise CustodyError(
                "Transfer amount must be non-negative",
                details={"asset": asset, "amount": amount},
            )
        if amount == 0:
            return

        available = self.balance(sender, asset)
        if available < amount:
            raise InsufficientBalanceError(
                f"Insufficient {asset} balance: have {available}, need {amount}",
                details={"holder": sender, "asset": asset, "available": available, "amount": amount},
            )

        self._balances[(sender, asset)] = available - amount
        self._balances[(recipient, asset)] = self.balance(recipient, asset) + amount

        logger.debug(
            "Transferred %d %s",
            amount,
            asset,
            extra={"event": "custody.transfer", "sender": sender, "recipient": recipient},
        )
