# artledger/fees.py
"""
Platform fee administration and sale payment splitting.

The platform fee rate is expressed in tenths of a percent: the default
of 25 means 2.5%. The administrator may change it up to 100 (10%).

On every sale:
    platform_fee = payment * rate // 1000
    royalty      = 0 on a primary sale, else payment * royalty_pct // 100
    proceeds     = payment - platform_fee - royalty

Both cuts are taken from the full payment, and the remainder from both
floor divisions goes to the seller.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict

from .errors import InvalidArgument, Unauthorized

logger = logging.getLogger(__name__)

DEFAULT_FEE_RATE = 25
MAX_FEE_RATE = 100
FEE_DENOMINATOR = 1000
ROYALTY_DENOMINATOR = 100


@dataclass(frozen=True)
class PaymentSplit:
    """How one sale payment is divided."""
    payment: int
    royalty: int
    platform_fee: int
    seller_proceeds: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "payment": self.payment,
            "royalty": self.royalty,
            "platform_fee": self.platform_fee,
            "seller_proceeds": self.seller_proceeds,
        }


def validate_fee_rate(rate: int) -> int:
    if isinstance(rate, bool) or not isinstance(rate, int):
        raise InvalidArgument("Fee rate must be an integer")
    if rate > MAX_FEE_RATE:
        raise InvalidArgument("Fee cannot exceed 10%")
    if rate < 0:
        raise InvalidArgument("Fee cannot be negative")
    return rate


def split_payment(payment: int, fee_rate: int, royalty_pct: int, primary: bool) -> PaymentSplit:
    platform_fee = payment * fee_rate // FEE_DENOMINATOR
    royalty = 0 if primary else payment * royalty_pct // ROYALTY_DENOMINATOR
    return PaymentSplit(
        payment=payment,
        royalty=royalty,
        platform_fee=platform_fee,
        seller_proceeds=payment - platform_fee - royalty,
    )


class FeeSchedule:
    """
    Current platform fee rate and the administrator allowed to change it.

    Access control is a plain identity comparison against the caller.
    """

    def __init__(self, administrator: str, rate: int = DEFAULT_FEE_RATE):
        if not administrator:
            raise InvalidArgument("Administrator identity is required")
        self.administrator = administrator
        self.rate = validate_fee_rate(rate)

    def is_administrator(self, identity: str) -> bool:
        return identity == self.administrator

    def update(self, new_rate: int, caller: str) -> int:
        """
        Set a new fee rate.

        Returns:
            The previous rate
        """
        if not self.is_administrator(caller):
            raise Unauthorized("Caller is not the administrator")
        validate_fee_rate(new_rate)
        previous = self.rate
        self.rate = new_rate
        logger.info(f"Platform fee rate changed: {previous} -> {new_rate}")
        return previous

    def split(self, payment: int, royalty_pct: int, primary: bool) -> PaymentSplit:
        return split_payment(payment, self.rate, royalty_pct, primary)

    def snapshot(self) -> Dict[str, Any]:
        return {"rate": self.rate}

    def restore(self, state: Dict[str, Any]) -> None:
        self.rate = state["rate"]
