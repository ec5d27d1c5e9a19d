"""
Byte encodings for cached browsing parameters.

Page sizes are stored as unsigned LEB128 varints so any positive size fits;
orders are stored as the UTF-8 text of their canonical enum value.
"""

from shared.errors import EncodingError
from ..domain.models import CollectionOrder

# 10 bytes hold any 64-bit value
MAX_VARINT_BYTES = 10


def encode_page_size(value: int) -> bytes:
    """Encode a positive page size as an unsigned varint."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise EncodingError(
            "Page size must be a positive integer",
            details={"value": repr(value)}
        )

    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def decode_page_size(data: bytes) -> int:
    """Decode a varint page size, rejecting anything malformed."""
    if not data:
        raise EncodingError("Cached page size is empty")
    if len(data) > MAX_VARINT_BYTES:
        raise EncodingError("Cached page size is too long", details={"length": len(data)})

    value = 0
    for index, byte in enumerate(data):
        value |= (byte & 0x7F) << (7 * index)
        if not byte & 0x80:
            if index != len(data) - 1:
                raise EncodingError("Cached page size has trailing bytes", details={"length": len(data)})
            break
    else:
        raise EncodingError("Cached page size is truncated", details={"length": len(data)})

    if value <= 0:
        raise EncodingError("Cached page size is not positive", details={"value": value})
    return value


def encode_order(order: CollectionOrder) -> bytes:
    """Encode an order as its canonical name."""
    return CollectionOrder(order).value.encode("utf-8")


def decode_order(data: bytes) -> CollectionOrder:
    """Decode a cached order, rejecting unknown names."""
    try:
        return CollectionOrder(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise EncodingError(
            "Cached order is not a known value",
            details={"value": data[:32].hex()}
        ) from exc
