"""Lenient decoder for hex-encoded Clarity tuple values.

Contract print events reach us either already decoded (the chainhook was
registered with decode_clarity_values) or as a hex string. Hex payloads
are first tried as UTF-8 JSON, then walked as a compact tuple:

    0c | len:u16 | ( keylen:u16 | key | tag:u8 | value )*

    tag 0x00 / 0x01   integer, 16 bytes big-endian (low 64 bits kept)
    tag 0x06 / 0x07   string, len:u16 | bytes
    tag 0x09          principal, 21 bytes, rendered as 0x-hex

The walk stops at the first unknown tag or truncated field and returns
whatever was decoded so far. decode_clarity_value() never raises.
"""

from __future__ import annotations

import json
from typing import Any

import structlog

logger = structlog.get_logger()

TUPLE_TYPE = 0x0C
INT_TYPES = frozenset({0x00, 0x01})
STRING_TYPES = frozenset({0x06, 0x07})
PRINCIPAL_TYPE = 0x09

INT_WIDTH = 16
PRINCIPAL_WIDTH = 21

# Type tag (1 byte) + declared tuple length (2 bytes)
TUPLE_HEADER_SIZE = 3


class TupleReader:
    """Cursor over a byte buffer. Reads past the end return None instead of raising."""

    def __init__(self, buffer: bytes, offset: int = 0) -> None:
        self._buffer = buffer
        self.offset = offset

    @property
    def at_end(self) -> bool:
        # A single trailing byte can never hold another field
        return self.offset >= len(self._buffer) - 1

    def read(self, size: int) -> bytes | None:
        end = self.offset + size
        if end > len(self._buffer):
            return None
        chunk = self._buffer[self.offset:end]
        self.offset = end
        return chunk

    def read_u8(self) -> int | None:
        chunk = self.read(1)
        return chunk[0] if chunk is not None else None

    def read_u16(self) -> int | None:
        chunk = self.read(2)
        return int.from_bytes(chunk, "big") if chunk is not None else None


def parse_clarity_tuple(buffer: bytes) -> dict[str, Any]:
    """Walk a tuple buffer and return the fields decoded before the first bad one."""
    reader = TupleReader(buffer, offset=TUPLE_HEADER_SIZE)
    result: dict[str, Any] = {}

    while not reader.at_end:
        key_len = reader.read_u16()
        if key_len is None:
            break
        key_bytes = reader.read(key_len)
        if key_bytes is None:
            break
        key = key_bytes.decode("utf-8", errors="replace")

        value_type = reader.read_u8()
        if value_type is None:
            break

        if value_type in INT_TYPES:
            raw = reader.read(INT_WIDTH)
            if raw is None:
                break
            result[key] = str(int.from_bytes(raw[INT_WIDTH - 8:], "big"))
        elif value_type in STRING_TYPES:
            str_len = reader.read_u16()
            if str_len is None:
                break
            raw = reader.read(str_len)
            if raw is None:
                break
            result[key] = raw.decode("utf-8", errors="replace")
        elif value_type == PRINCIPAL_TYPE:
            raw = reader.read(PRINCIPAL_WIDTH)
            if raw is None:
                break
            result[key] = "0x" + raw.hex()
        else:
            logger.warning("clarity_unknown_value_type", key=key, value_type=f"0x{value_type:02x}")
            break

    return result


def decode_clarity_value(hex_value: str) -> Any:
    """Decode a hex-encoded Clarity value.

    Returns the parsed JSON if the bytes are already display-form JSON,
    the decoded tuple fields if they are a tuple, and ``{"raw": hex_value}``
    otherwise or on any failure.
    """
    try:
        hex_str = hex_value[2:] if hex_value.startswith("0x") else hex_value
        buffer = bytes.fromhex(hex_str)

        try:
            return json.loads(buffer.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            pass

        if buffer and buffer[0] == TUPLE_TYPE:
            return parse_clarity_tuple(buffer)

        logger.warning("clarity_value_undecodable", length=len(buffer))
        return {"raw": hex_value}
    except Exception:
        logger.warning("clarity_decode_failed", exc_info=True)
        return {"raw": hex_value}
