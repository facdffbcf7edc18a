# artledger/events/signatures.py
"""
Operator signatures for the event log.

Each event is signed with the registry operator's RSA key so that
downstream indexers replaying the log can check it was not altered.
Signatures are RSA-SHA256 (PKCS#1 v1.5) over the canonical JSON of the
event's signable fields.
"""

import base64
import hashlib
import json
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from .event import Event

SIGNATURE_TYPE = "RsaSignature2017"


def _canonicalize(data: Dict[str, Any]) -> str:
    """Sorted keys, no whitespace."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


def _hash_sha256(data: str) -> bytes:
    return hashlib.sha256(data.encode()).digest()


def _signed_bytes(event: Event, options: Dict[str, Any]) -> bytes:
    return _hash_sha256(_canonicalize(options)) + _hash_sha256(_canonicalize(event.signable()))


def generate_private_key_pem() -> bytes:
    """Generate a new 2048-bit RSA key in PKCS#8 PEM form."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048,
    )
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


class EventSigner:
    """
    Signs events with the operator's private key.

    Args:
        private_key_pem: PEM-encoded RSA private key
        key_id: Identifier recorded in each signature
    """

    def __init__(self, private_key_pem: bytes, key_id: str = "operator"):
        self._private_key = serialization.load_pem_private_key(
            private_key_pem,
            password=None,
        )
        self.key_id = key_id
        self.public_key_pem = self._private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    @classmethod
    def generate(cls, key_id: str = "operator") -> "EventSigner":
        return cls(generate_private_key_pem(), key_id)

    @classmethod
    def from_file(cls, path: Path | str, key_id: str = "operator") -> "EventSigner":
        with open(path, "rb") as f:
            return cls(f.read(), key_id)

    def sign(self, event: Event) -> Event:
        """Attach a signature to the event and return it."""
        options = {
            "type": SIGNATURE_TYPE,
            "creator": self.key_id,
            "created": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        }
        signature_bytes = self._private_key.sign(
            _signed_bytes(event, options),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
        event.signature = dict(
            options,
            signatureValue=base64.b64encode(signature_bytes).decode("utf-8"),
        )
        return event


def verify_event(event: Event, public_key_pem: bytes) -> bool:
    """
    Verify an event's signature.

    Returns:
        True if the signature is present and valid
    """
    if not event.signature:
        return False

    try:
        public_key = serialization.load_pem_public_key(public_key_pem)
        options = {
            "type": event.signature["type"],
            "creator": event.signature["creator"],
            "created": event.signature["created"],
        }
        signature_bytes = base64.b64decode(event.signature["signatureValue"])
        public_key.verify(
            signature_bytes,
            _signed_bytes(event, options),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
        return True

    except (InvalidSignature, KeyError, ValueError):
        return False


def verify_log(events: Iterable[Event], public_key_pem: bytes) -> List[int]:
    """
    Verify every event in a log.

    Returns:
        Sequence numbers of events that failed verification
    """
    return [e.sequence for e in events if not verify_event(e, public_key_pem)]
