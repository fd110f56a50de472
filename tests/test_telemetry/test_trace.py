"""Tests for the W3C trace-context codec."""

import re
from dataclasses import FrozenInstanceError

import pytest

from trace_bridge.telemetry.trace import (
    NOT_SAMPLED,
    SAMPLED,
    TraceContext,
    format_traceparent,
    is_valid_traceparent,
    mint_id,
    parse_traceparent,
)

EXAMPLE = "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01"
HEX = re.compile(r"^[0-9a-f]+$")


class TestMintId:
    """Test random identifier generation."""

    @pytest.mark.parametrize("n_bytes", [8, 16])
    def test_mint_id_length_and_alphabet(self, n_bytes: int) -> None:
        """Test that identifiers are 2n lowercase hex characters."""
        value = mint_id(n_bytes)
        assert len(value) == 2 * n_bytes
        assert HEX.match(value)

    def test_mint_id_is_unique(self) -> None:
        """Test that concurrent spans do not collide."""
        ids = {mint_id(8) for _ in range(1000)}
        assert len(ids) == 1000


class TestFormatTraceparent:
    """Test canonical rendering."""

    def test_format_hex_strings(self) -> None:
        """Test formatting of already-hex fields."""
        header = format_traceparent("4bf92f3577b34da6a3ce929d0e0e4736", "00f067aa0ba902b7", "01")
        assert header == EXAMPLE

    def test_format_zero_pads_integers(self) -> None:
        """Test that small numeric ids keep their fixed width."""
        header = format_traceparent(1, 2, 1)
        assert header == f"00-{'0' * 31}1-{'0' * 15}2-01"

    def test_format_zero_pads_short_hex(self) -> None:
        """Test that hex strings with dropped leading zeros are padded back."""
        header = format_traceparent("abc", "f067aa0ba902b7", "1")
        assert header.split("-") == ["00", "abc".rjust(32, "0"), "00f067aa0ba902b7", "01"]

    def test_format_bytes(self) -> None:
        """Test formatting raw byte sequences."""
        trace_id = bytes(range(16))
        span_id = bytes(range(8))
        header = format_traceparent(trace_id, span_id, b"\x00")
        assert header == f"00-{trace_id.hex()}-{span_id.hex()}-00"

    def test_format_lowercases(self) -> None:
        """Test that output is always lowercase."""
        header = format_traceparent("4BF92F3577B34DA6A3CE929D0E0E4736", "00F067AA0BA902B7", "01")
        assert header == EXAMPLE

    @pytest.mark.parametrize("flags", [SAMPLED, NOT_SAMPLED])
    def test_round_trip(self, flags: str) -> None:
        """Test format(parse(format(t, s, f))) is the identity on the string."""
        ids: list[tuple[str | int, str | int]] = [(mint_id(16), mint_id(8)) for _ in range(50)]
        # Leading zeros must survive: integers and short hex render zero-padded.
        ids += [(1, 2), (0xABC, 0x1F), ("abc", "f067aa0ba902b7"), (1 << 120, 1 << 56)]

        for trace_id, span_id in ids:
            original = format_traceparent(trace_id, span_id, flags)
            assert format_traceparent(*parse_traceparent(original)) == original


class TestParseTraceparent:
    """Test header parsing and root-span defaults."""

    def test_parse_valid_header(self) -> None:
        """Test that a valid header yields trace-id, parent span-id and flag."""
        trace_id, parent_span_id, flag = parse_traceparent(EXAMPLE)
        assert trace_id == "4bf92f3577b34da6a3ce929d0e0e4736"
        assert parent_span_id == "00f067aa0ba902b7"
        assert flag == "01"

    def test_parse_keeps_unsampled_flag(self) -> None:
        """Test that flag 00 is returned unmodified."""
        _, _, flag = parse_traceparent(EXAMPLE[:-2] + "00")
        assert flag == "00"

    def test_parse_missing_header_starts_sampled_root(self) -> None:
        """Test that no header mints a fresh, sampled root."""
        trace_id, parent_span_id, flag = parse_traceparent(None)
        assert len(trace_id) == 32
        assert HEX.match(trace_id)
        assert parent_span_id is None
        assert flag == "01"

    @pytest.mark.parametrize(
        "header",
        [
            "",
            "garbage",
            "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7",
            "00-4BF92F3577B34DA6A3CE929D0E0E4736-00f067aa0ba902b7-01",
            "00-4bf92f3577b34da6a3ce929d0e0e473-00f067aa0ba902b7-01",
            "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b-01",
            "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-1",
            "00-00000000000000000000000000000000-00f067aa0ba902b7-01",
            "00-4bf92f3577b34da6a3ce929d0e0e4736-0000000000000000-01",
            "ff-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01",
            "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902bz-01",
        ],
    )
    def test_parse_malformed_header_starts_root(self, header: str) -> None:
        """Test that malformed headers are treated as absent, never rejected."""
        trace_id, parent_span_id, flag = parse_traceparent(header)
        assert trace_id not in header
        assert parent_span_id is None
        assert flag == "01"
        assert not is_valid_traceparent(header)

    def test_parse_malformed_mints_distinct_traces(self) -> None:
        """Test that each root gets its own trace-id."""
        assert parse_traceparent(None)[0] != parse_traceparent(None)[0]


class TestTraceContext:
    """Test the frozen TraceContext value."""

    def test_from_header_round_trip(self) -> None:
        """Test decoding and re-encoding a header."""
        ctx = TraceContext.from_header(EXAMPLE)
        assert ctx is not None
        assert ctx.trace_id == "4bf92f3577b34da6a3ce929d0e0e4736"
        assert ctx.span_id == "00f067aa0ba902b7"
        assert ctx.is_sampled()
        assert ctx.to_header() == EXAMPLE

    def test_from_header_malformed(self) -> None:
        """Test that malformed headers decode to None."""
        assert TraceContext.from_header("nope") is None
        assert TraceContext.from_header(None) is None

    def test_child_keeps_trace_and_mints_span(self) -> None:
        """Test that the next hop keeps the trace-id and gets a new span-id."""
        ctx = TraceContext.from_header(EXAMPLE)
        assert ctx is not None
        child = ctx.child()
        assert child.trace_id == ctx.trace_id
        assert child.span_id != ctx.span_id
        assert child.flags == ctx.flags

    def test_new_trace_is_sampled(self) -> None:
        """Test that a fresh trace is sampled and well-formed."""
        ctx = TraceContext.new_trace()
        assert ctx.is_sampled()
        assert is_valid_traceparent(ctx.to_header())

    @pytest.mark.parametrize("flags", ["00", "02", "03", "ff"])
    def test_only_01_is_sampled(self, flags: str) -> None:
        """Test that any flag value other than "01" is not sampled."""
        assert TraceContext("a" * 32, "b" * 16, flags="01").is_sampled()
        assert not TraceContext("a" * 32, "b" * 16, flags=flags).is_sampled()

    def test_trace_context_is_immutable(self) -> None:
        """Test that TraceContext is a frozen dataclass."""
        ctx = TraceContext.new_trace()
        with pytest.raises(FrozenInstanceError):
            ctx.trace_id = "new-id"  # type: ignore[misc]
