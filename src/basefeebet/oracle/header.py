"""
basefeebet/oracle/header.py

Block header record codec.

The oracle delivers the raw RLP encoding of a block header. Only two
fields matter here: the block number (index 8) and the base fee per gas
(index 15, present since the London fork).

RLP prefixes:
    0x00-0x7f  single byte, itself
    0x80-0xb7  string, length = prefix - 0x80
    0xb8-0xbf  string, length-of-length = prefix - 0xb7
    0xc0-0xf7  list, payload length = prefix - 0xc0
    0xf8-0xff  list, length-of-length = prefix - 0xf7
"""

from typing import List, Sequence, Tuple, Union

from ..errors import InvalidRecord

# Field positions within the header list
HEADER_NUMBER_INDEX = 8
HEADER_BASE_FEE_INDEX = 15
HEADER_MIN_FIELDS = HEADER_BASE_FEE_INDEX + 1

RlpItem = Union[bytes, List["RlpItem"]]


# ============================================================================
# DECODING
# ============================================================================

def _read_length(data: bytes, start: int, size: int) -> int:
    if start + size > len(data):
        raise InvalidRecord("Truncated RLP length")
    if size > 0 and data[start] == 0:
        raise InvalidRecord("Non-canonical RLP length")
    return int.from_bytes(data[start:start + size], "big")


def _decode_item(data: bytes, pos: int) -> Tuple[RlpItem, int]:
    """Decode one item at pos, returning (item, next_pos)."""
    if pos >= len(data):
        raise InvalidRecord("Unexpected end of RLP data")

    prefix = data[pos]
    if prefix < 0x80:
        return data[pos:pos + 1], pos + 1

    if prefix < 0xb8:
        start, length = pos + 1, prefix - 0x80
        is_list = False
    elif prefix < 0xc0:
        size = prefix - 0xb7
        start, length = pos + 1 + size, _read_length(data, pos + 1, size)
        is_list = False
    elif prefix < 0xf8:
        start, length = pos + 1, prefix - 0xc0
        is_list = True
    else:
        size = prefix - 0xf7
        start, length = pos + 1 + size, _read_length(data, pos + 1, size)
        is_list = True

    end = start + length
    if end > len(data):
        raise InvalidRecord("RLP item exceeds record length")

    if not is_list:
        return data[start:end], end

    items: List[RlpItem] = []
    cursor = start
    while cursor < end:
        item, cursor = _decode_item(data, cursor)
        items.append(item)
    if cursor != end:
        raise InvalidRecord("RLP list payload length mismatch")
    return items, end


def decode_rlp(data: bytes) -> RlpItem:
    """
    Decode a complete RLP record.

    Raises:
        InvalidRecord: on malformed or trailing data
    """
    if not isinstance(data, (bytes, bytearray)):
        raise InvalidRecord(f"Expected bytes, got {type(data).__name__}")
    item, end = _decode_item(bytes(data), 0)
    if end != len(data):
        raise InvalidRecord(f"Trailing bytes after RLP item ({len(data) - end})")
    return item


def decode_uint(value: RlpItem) -> int:
    """Interpret an RLP string as a big-endian unsigned integer."""
    if not isinstance(value, bytes):
        raise InvalidRecord("Expected an RLP string, got a list")
    return int.from_bytes(value, "big")


def decode_header_fields(raw_record: bytes) -> List[RlpItem]:
    """Decode a header record into its list of fields."""
    fields = decode_rlp(raw_record)
    if not isinstance(fields, list):
        raise InvalidRecord("Header record is not an RLP list")
    if len(fields) < HEADER_MIN_FIELDS:
        raise InvalidRecord(
            f"Header has {len(fields)} fields, base fee needs {HEADER_MIN_FIELDS}"
        )
    return fields


def extract_base_fee(raw_record: bytes) -> Tuple[int, int]:
    """
    Extract (block_number, base_fee) from a raw header record.

    Raises:
        InvalidRecord: if the record is malformed or predates the base fee
    """
    fields = decode_header_fields(raw_record)
    return (
        decode_uint(fields[HEADER_NUMBER_INDEX]),
        decode_uint(fields[HEADER_BASE_FEE_INDEX]),
    )


# ============================================================================
# ENCODING
# ============================================================================

def _encode_length(length: int, offset: int) -> bytes:
    if length < 56:
        return bytes([offset + length])
    encoded = length.to_bytes((length.bit_length() + 7) // 8, "big")
    return bytes([offset + 55 + len(encoded)]) + encoded


def encode_uint(value: int) -> bytes:
    """Minimal big-endian encoding of an unsigned integer (0 -> b'')."""
    if value < 0:
        raise ValueError(f"Cannot encode negative integer {value}")
    if value == 0:
        return b""
    return value.to_bytes((value.bit_length() + 7) // 8, "big")


def encode_rlp(item: Union[bytes, int, Sequence]) -> bytes:
    """RLP-encode bytes, unsigned ints, or (nested) sequences of them."""
    if isinstance(item, int):
        item = encode_uint(item)
    if isinstance(item, (bytes, bytearray)):
        item = bytes(item)
        if len(item) == 1 and item[0] < 0x80:
            return item
        return _encode_length(len(item), 0x80) + item
    payload = b"".join(encode_rlp(element) for element in item)
    return _encode_length(len(payload), 0xc0) + payload


def encode_header(number: int, base_fee: int, **fields) -> bytes:
    """
    Build a minimal London-style header record.

    Hash and bloom fields are zero-filled unless given as keyword
    arguments named after the field (e.g. parent_hash=b"...").
    """
    zero32 = b"\x00" * 32
    header = [
        fields.get("parent_hash", zero32),
        fields.get("ommers_hash", zero32),
        fields.get("beneficiary", b"\x00" * 20),
        fields.get("state_root", zero32),
        fields.get("transactions_root", zero32),
        fields.get("receipts_root", zero32),
        fields.get("logs_bloom", b"\x00" * 256),
        fields.get("difficulty", 0),
        number,
        fields.get("gas_limit", 30_000_000),
        fields.get("gas_used", 0),
        fields.get("timestamp", 0),
        fields.get("extra_data", b""),
        fields.get("mix_hash", zero32),
        fields.get("nonce", b"\x00" * 8),
        base_fee,
    ]
    return encode_rlp(header)
