# artledger/errors.py
"""
Error kinds raised by the registry.

Every public operation either commits fully or raises one of these.
The ``kind`` attribute is the stable name surfaced to callers; the
message is the human-readable reason.
"""


class RegistryError(Exception):
    """Base class for all registry failures."""

    kind = "RegistryError"

    def __init__(self, reason: str = ""):
        super().__init__(reason or self.kind)
        self.reason = reason or self.kind

    def to_dict(self):
        return {"error": self.kind, "reason": self.reason}


class InvalidArgument(RegistryError, ValueError):
    """Malformed or out-of-range input."""

    kind = "InvalidArgument"


class NotFound(RegistryError):
    """Unknown asset id or gallery key."""

    kind = "NotFound"


class AlreadyExists(RegistryError):
    kind = "AlreadyExists"


class Unauthorized(RegistryError):
    """Caller lacks the required role (owner, administrator)."""

    kind = "Unauthorized"


class NotForSale(RegistryError):
    kind = "NotForSale"


class InsufficientPayment(RegistryError):
    kind = "InsufficientPayment"


class AlreadyRated(RegistryError):
    kind = "AlreadyRated"


class TransferFailed(RegistryError):
    """An outward payment transfer was rejected by the payment substrate."""

    kind = "TransferFailed"
