"""Local Ed25519 signer backed by PyNaCl (libsodium).

Signs ledger transactions the way a wallet would: the message is
``blake2b-256(intent || tx_bytes)`` with the transaction-data intent
``[0, 0, 0]``, and the serialized signature is
``base64(flag || signature || public_key)`` with the Ed25519 flag ``0x00``.
"""

from __future__ import annotations

import base64
import hashlib

import nacl.exceptions
import nacl.signing

ED25519_FLAG = 0x00
TRANSACTION_INTENT = bytes([0, 0, 0])


def _blake2b_256(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=32).digest()


class Ed25519KeypairSigner:
    """Signs transaction bytes with an in-memory Ed25519 key.

    Parameters
    ----------
    signing_key:
        A PyNaCl signing key. Use ``generate()`` or ``from_seed_hex()``.
    """

    def __init__(self, signing_key: nacl.signing.SigningKey) -> None:
        self._key = signing_key

    @classmethod
    def generate(cls) -> Ed25519KeypairSigner:
        return cls(nacl.signing.SigningKey.generate())

    @classmethod
    def from_seed_hex(cls, seed_hex: str) -> Ed25519KeypairSigner:
        """Load from a 32-byte seed, hex-encoded (optionally ``0x``-prefixed)."""
        seed = bytes.fromhex(seed_hex.removeprefix("0x"))
        return cls(nacl.signing.SigningKey(seed))

    @property
    def public_key(self) -> bytes:
        return self._key.verify_key.encode()

    @property
    def address(self) -> str:
        """Ledger address derived from the flag-prefixed public key."""
        return "0x" + _blake2b_256(bytes([ED25519_FLAG]) + self.public_key).hex()

    def sign_bytes(self, tx_bytes: bytes) -> str:
        digest = _blake2b_256(TRANSACTION_INTENT + tx_bytes)
        signature = self._key.sign(digest).signature
        return base64.b64encode(bytes([ED25519_FLAG]) + signature + self.public_key).decode("ascii")

    async def sign_transaction(self, tx_bytes: bytes) -> str:
        return self.sign_bytes(tx_bytes)


def verify_serialized_signature(tx_bytes: bytes, serialized: str) -> bool:
    """Check a serialized Ed25519 signature against *tx_bytes*."""
    raw = base64.b64decode(serialized)
    if len(raw) != 1 + 64 + 32 or raw[0] != ED25519_FLAG:
        return False
    signature, public_key = raw[1:65], raw[65:]
    digest = _blake2b_256(TRANSACTION_INTENT + tx_bytes)
    try:
        nacl.signing.VerifyKey(public_key).verify(digest, signature)
    except nacl.exceptions.BadSignatureError:
        return False
    return True
