"""Patch identifier decoding.

A patch identifier locates one file inside a quilt: the 32-byte id of the
containing blob followed by a 5-byte patch suffix whose first byte is a
version tag. The ledger stores only the suffix, as ``0x``-prefixed hex.
"""

from __future__ import annotations

import binascii

from siteforge.core.hasher import urlsafe_b64decode_nopad

CONTENT_ID_SIZE = 32
PATCH_SUFFIX_SIZE = 5
PATCH_ID_SIZE = CONTENT_ID_SIZE + PATCH_SUFFIX_SIZE

SUPPORTED_PATCH_VERSIONS: frozenset[int] = frozenset({1})


class FormatError(ValueError):
    """Raised when a content locator cannot be decoded."""


class UnsupportedPatchVersionError(FormatError):
    """Raised when the patch suffix carries an unknown version tag."""

    def __init__(self, version: int) -> None:
        super().__init__(f"Quilt patch version {version} is not implemented")
        self.version = version


def decode_patch_id(locator: str) -> str:
    """Decode a URL-safe base64 patch identifier to its on-chain reference.

    Returns ``0x`` followed by the lowercase hex of the 5-byte suffix.
    """
    try:
        raw = urlsafe_b64decode_nopad(locator)
    except (binascii.Error, ValueError) as exc:
        raise FormatError(f"Patch identifier is not valid base64: {locator!r}") from exc

    if len(raw) != PATCH_ID_SIZE:
        raise FormatError(
            f"Expected {PATCH_ID_SIZE} bytes when decoding a patch identifier, "
            f"got {len(raw)}"
        )

    suffix = raw[CONTENT_ID_SIZE:]
    version = suffix[0]
    if version not in SUPPORTED_PATCH_VERSIONS:
        raise UnsupportedPatchVersionError(version)

    return f"0x{suffix.hex()}"
