"""Private CoAP options carrying W3C trace headers.

CoAP has no header namespace, so ``traceparent`` and ``tracestate`` travel in
two private option numbers. Decoding is by number only: the gateway and the
terminal server must be built from the same table or the headers silently
disappear.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING

from aiocoap import Message
from aiocoap.numbers.optionnumbers import OptionNumber
from aiocoap.optiontypes import OpaqueOption

from trace_bridge.telemetry.trace import TRACEPARENT_HEADER, TRACESTATE_HEADER

if TYPE_CHECKING:
    from trace_bridge.config.settings import BridgeConfig


@dataclass(frozen=True)
class TraceOption:
    """One header-to-option binding with an identity text codec.

    Attributes:
        number: CoAP option number (elective, i.e. even).
        header: Header name carried by the option.
    """

    number: int
    header: str

    def encode(self, value: str) -> bytes:
        return value.encode("utf-8")

    def decode(self, raw: bytes) -> str:
        return raw.decode("utf-8")


DEFAULT_TRACE_OPTIONS = (
    TraceOption(2076, TRACEPARENT_HEADER),
    TraceOption(2104, TRACESTATE_HEADER),
)


class CoapOptionTable:
    """Immutable header ↔ option-number mapping.

    Built once at startup and handed to every CoAP component.

    Args:
        options: Bindings to register; numbers and headers must be unique.

    Raises:
        ValueError: If two bindings share a number or a header.
    """

    def __init__(  # noqa: D107
        self, options: Iterable[TraceOption] = DEFAULT_TRACE_OPTIONS
    ) -> None:
        by_header: dict[str, TraceOption] = {}
        numbers: set[int] = set()
        for option in options:
            header = option.header.lower()
            if header in by_header:
                raise ValueError(f"duplicate CoAP binding for header {header!r}")
            if option.number in numbers:
                raise ValueError(f"duplicate CoAP option number {option.number}")
            by_header[header] = TraceOption(option.number, header)
            numbers.add(option.number)
        self._by_header: Mapping[str, TraceOption] = MappingProxyType(by_header)

    @property
    def headers(self) -> tuple[str, ...]:
        return tuple(self._by_header)

    def number_for(self, header: str) -> int:
        """Option number registered for ``header``.

        Raises:
            KeyError: If the header is not registered.
        """
        return self._by_header[header.lower()].number

    def apply(self, message: Message, headers: Mapping[str, str | None]) -> Message:
        """Attach registered headers to a CoAP message as options.

        Headers that are not registered, or whose value is None or empty, are
        skipped.

        Args:
            message: Outbound CoAP message (modified in place).
            headers: Header values by name.

        Returns:
            The same message, for chaining.
        """
        for name, value in headers.items():
            option = self._by_header.get(name.lower())
            if option is None or not value:
                continue
            raw = option.encode(value)
            message.opt.add_option(OpaqueOption(OptionNumber(option.number), raw))
        return message

    def extract(self, message: Message) -> dict[str, str]:
        """Read registered options from an inbound CoAP message.

        Args:
            message: Inbound CoAP message.

        Returns:
            Header values by name; absent options are omitted.
        """
        headers: dict[str, str] = {}
        for header, option in self._by_header.items():
            values = message.opt.get_option(OptionNumber(option.number))
            if values:
                headers[header] = option.decode(values[0].value)
        return headers

    def __repr__(self) -> str:
        bindings = ", ".join(f"{o.number}={h}" for h, o in self._by_header.items())
        return f"CoapOptionTable({bindings})"


def build_option_table(settings: "BridgeConfig") -> CoapOptionTable:
    """Build the trace option table from configuration."""
    return CoapOptionTable(
        (
            TraceOption(settings.traceparent_option, TRACEPARENT_HEADER),
            TraceOption(settings.tracestate_option, TRACESTATE_HEADER),
        )
    )
