# artledger/payments.py
"""
Payment substrate interface.

The engine pays out sale proceeds through a PaymentSubstrate. Transfers
are synchronous and report success or failure; the engine calls
reverse() on earlier transfers of a purchase when a later one fails.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Hook called after each successful transfer: (to_identity, amount)
TransferHook = Callable[[str, int], None]


class PaymentSubstrate(ABC):
    """
    Base class for outward payment transfer backends.

    Subclasses implement transfer() and reverse().
    """

    @abstractmethod
    def transfer(self, to_identity: str, amount: int) -> bool:
        """
        Send ``amount`` to ``to_identity``.

        Returns:
            True if the transfer was delivered, False if it was rejected
        """
        pass

    @abstractmethod
    def reverse(self, to_identity: str, amount: int) -> None:
        """Undo a previously delivered transfer."""
        pass


class BalanceLedger(PaymentSubstrate):
    """
    In-memory payment substrate tracking balances per identity.

    Useful for tests and local runs. Identities listed in ``rejecting``
    refuse incoming transfers. ``on_transfer`` runs synchronously after
    each delivered transfer, before transfer() returns.
    """

    def __init__(
        self,
        rejecting: Optional[Iterable[str]] = None,
        on_transfer: Optional[TransferHook] = None,
    ):
        self.rejecting = set(rejecting or [])
        self.on_transfer = on_transfer
        self._balances: Dict[str, int] = {}
        self.history: List[Tuple[str, int]] = []

    def transfer(self, to_identity: str, amount: int) -> bool:
        if to_identity in self.rejecting:
            logger.debug(f"Transfer of {amount} to {to_identity} rejected")
            return False
        self._balances[to_identity] = self._balances.get(to_identity, 0) + amount
        self.history.append((to_identity, amount))
        if self.on_transfer:
            self.on_transfer(to_identity, amount)
        return True

    def reverse(self, to_identity: str, amount: int) -> None:
        self._balances[to_identity] = self._balances.get(to_identity, 0) - amount
        self.history.append((to_identity, -amount))

    def balance_of(self, identity: str) -> int:
        return self._balances.get(identity, 0)

    def balances(self) -> Dict[str, int]:
        return dict(self._balances)
