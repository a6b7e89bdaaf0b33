"""Minimal BCS reader for the routing table dynamic field.

The routing table is stored as ``Field<vector<u8>, Routes>`` where
``Routes { route_list: VecMap<String, String> }``. BCS lays this out as the
32-byte field UID, the ULEB128-prefixed name bytes, then the map entries.
"""

from __future__ import annotations

from siteforge.models.manifest import Route

ADDRESS_LENGTH = 32
ROUTES_FIELD_NAME = b"routes"


class BcsDecodeError(ValueError):
    """Raised when bytes do not match the expected BCS layout."""


class BcsReader:
    """Sequential reader over a BCS byte string."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def read_bytes(self, n: int) -> bytes:
        if n < 0 or self._pos + n > len(self._data):
            raise BcsDecodeError(
                f"Unexpected end of input: need {n} bytes at offset {self._pos}, "
                f"have {self.remaining}"
            )
        chunk = self._data[self._pos : self._pos + n]
        self._pos += n
        return chunk

    def read_u8(self) -> int:
        return self.read_bytes(1)[0]

    def read_uleb128(self) -> int:
        value = 0
        shift = 0
        while True:
            byte = self.read_u8()
            value |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return value
            shift += 7
            if shift > 63:
                raise BcsDecodeError("ULEB128 value overflows u64")

    def read_address(self) -> bytes:
        return self.read_bytes(ADDRESS_LENGTH)

    def read_byte_vector(self) -> bytes:
        return self.read_bytes(self.read_uleb128())

    def read_string(self) -> str:
        raw = self.read_byte_vector()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise BcsDecodeError(f"Invalid UTF-8 string at offset {self._pos}") from exc


def decode_routes(reader: BcsReader) -> list[Route]:
    """Read a ``Routes`` struct (a ``VecMap<String, String>``)."""
    count = reader.read_uleb128()
    routes = []
    for _ in range(count):
        key = reader.read_string()
        value = reader.read_string()
        routes.append(Route(route_path=key, target_path=value))
    return routes


def decode_routes_field(raw: bytes) -> list[Route]:
    """Decode the BCS bytes of the routes dynamic-field object."""
    reader = BcsReader(raw)
    reader.read_address()  # field UID
    name = reader.read_byte_vector()
    if name != ROUTES_FIELD_NAME:
        raise BcsDecodeError(f"Unexpected dynamic field name: {name!r}")
    routes = decode_routes(reader)
    if reader.remaining:
        raise BcsDecodeError(f"{reader.remaining} trailing bytes after routes table")
    return routes
