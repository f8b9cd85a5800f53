"""Tests for the hex Clarity value decoder."""

import json

from chainpulse.ingest.clarity import TupleReader, decode_clarity_value, parse_clarity_tuple
from helpers.payloads import (
    clarity_principal,
    clarity_string,
    clarity_tuple,
    clarity_tuple_bytes,
    clarity_uint,
)


class TestTupleReader:
    def test_reads_advance_offset(self):
        reader = TupleReader(b"\x00\x05abcde")
        assert reader.read_u16() == 5
        assert reader.read(5) == b"abcde"
        assert reader.offset == 7

    def test_overrun_returns_none_without_advancing(self):
        reader = TupleReader(b"\x01\x02\x03")
        assert reader.read(4) is None
        assert reader.offset == 0

    def test_single_trailing_byte_counts_as_end(self):
        reader = TupleReader(b"\x01\x02", offset=1)
        assert reader.at_end


class TestParseClarityTuple:
    def test_pulse_tuple(self):
        buffer = clarity_tuple_bytes({
            "event": clarity_string("pulse-sent"),
            "points": clarity_uint(10),
            "streak": clarity_uint(3),
        })
        assert parse_clarity_tuple(buffer) == {
            "event": "pulse-sent",
            "points": "10",
            "streak": "3",
        }

    def test_signed_int_tag(self):
        buffer = clarity_tuple_bytes({"n": bytes([0x00]) + (7).to_bytes(16, "big")})
        assert parse_clarity_tuple(buffer) == {"n": "7"}

    def test_integer_keeps_low_64_bits(self):
        buffer = clarity_tuple_bytes({"n": clarity_uint((1 << 64) + 5)})
        assert parse_clarity_tuple(buffer) == {"n": "5"}

    def test_principal_rendered_as_hex(self):
        raw = bytes([0x16]) + bytes(range(20))
        buffer = clarity_tuple_bytes({"user": clarity_principal(raw)})
        assert parse_clarity_tuple(buffer) == {"user": "0x" + raw.hex()}

    def test_unknown_tag_stops_walk(self):
        buffer = clarity_tuple_bytes({
            "points": clarity_uint(10),
            "flag": bytes([0x03]),  # bool true
            "fee": clarity_uint(1000),
        })
        assert parse_clarity_tuple(buffer) == {"points": "10"}

    def test_truncated_string_returns_partial(self):
        buffer = clarity_tuple_bytes({"points": clarity_uint(10)})
        # key "event", string tag, declared length 20, only 3 bytes present
        buffer += b"\x00\x05event\x06\x00\x14abc"
        assert parse_clarity_tuple(buffer) == {"points": "10"}

    def test_truncated_integer_returns_partial(self):
        buffer = clarity_tuple_bytes({"a": clarity_uint(1), "b": clarity_uint(2)})
        assert parse_clarity_tuple(buffer[:-4]) == {"a": "1"}

    def test_header_only(self):
        assert parse_clarity_tuple(bytes([0x0C, 0x00, 0x00])) == {}


class TestDecodeClarityValue:
    def test_tuple_hex(self):
        hex_value = clarity_tuple({"event": clarity_string("daily-checkin"), "day": clarity_uint(19700)})
        assert decode_clarity_value(hex_value) == {"event": "daily-checkin", "day": "19700"}

    def test_hex_without_prefix(self):
        hex_value = clarity_tuple({"points": clarity_uint(1)})[2:]
        assert decode_clarity_value(hex_value) == {"points": "1"}

    def test_json_bytes(self):
        body = {"event": "pulse-sent", "points": 10}
        hex_value = "0x" + json.dumps(body).encode().hex()
        assert decode_clarity_value(hex_value) == body

    def test_unsupported_value_returns_raw(self):
        assert decode_clarity_value("0x0301") == {"raw": "0x0301"}

    def test_invalid_hex_returns_raw(self):
        assert decode_clarity_value("0xnothex") == {"raw": "0xnothex"}

    def test_empty_returns_raw(self):
        assert decode_clarity_value("0x") == {"raw": "0x"}


def test_uint_and_ascii_fields():
    hex_value = clarity_tuple({"field1": clarity_uint(42), "field2": clarity_string("pulse")})
    assert decode_clarity_value(hex_value) == {"field1": "42", "field2": "pulse"}
