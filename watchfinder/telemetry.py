from __future__ import annotations

import ipaddress
import logging
from collections import Counter
from collections.abc import Mapping
from threading import Lock
from typing import Any, Literal, Protocol

import structlog

TELEMETRY_LOGGER_NAME = "watchfinder.telemetry"

_REDACTED_ATTRIBUTE_TOKENS: tuple[str, ...] = ("api_key", "authorization", "query", "token")
_ADDRESS_ATTRIBUTE_TOKENS: tuple[str, ...] = ("client_ip", "address")
_MAX_STRING_LENGTH = 120

TelemetryValue = bool | int | float | str | None


class TelemetrySink(Protocol):
    def emit(self, *, event_name: str, attributes: Mapping[str, TelemetryValue]) -> None:
        ...


class NoOpTelemetrySink:
    def emit(self, *, event_name: str, attributes: Mapping[str, TelemetryValue]) -> None:
        _ = (event_name, attributes)


class StructuredLogTelemetrySink:
    def __init__(self) -> None:
        self._logger = structlog.get_logger(TELEMETRY_LOGGER_NAME)

    def emit(self, *, event_name: str, attributes: Mapping[str, TelemetryValue]) -> None:
        self._logger.info("telemetry", telemetry_event=event_name, **dict(attributes))


class TelemetryClient:
    """
    Emits lookup and traffic events to a sink and keeps per-event counts.

    Client addresses are coarsened before they leave the process and free-text
    attributes such as search queries are never forwarded.
    """

    def __init__(self, *, enabled: bool, sink: TelemetrySink) -> None:
        self.enabled = enabled
        self.sink = sink
        self._lock = Lock()
        self._counts: Counter[str] = Counter()

    @classmethod
    def disabled(cls) -> TelemetryClient:
        return cls(enabled=False, sink=NoOpTelemetrySink())

    def emit(self, event_name: str, **attributes: Any) -> None:
        if not self.enabled:
            return
        with self._lock:
            self._counts[event_name] += 1
        self.sink.emit(event_name=event_name, attributes=_sanitize_attributes(attributes))

    def counts(self) -> dict[str, int]:
        with self._lock:
            return dict(sorted(self._counts.items()))


def build_telemetry_client(*, enabled: bool, sink: Literal["none", "log"]) -> TelemetryClient:
    if not enabled or sink == "none":
        return TelemetryClient.disabled()
    if sink == "log":
        return TelemetryClient(enabled=True, sink=StructuredLogTelemetrySink())

    logging.getLogger(TELEMETRY_LOGGER_NAME).warning(
        "unsupported telemetry sink requested; disabling telemetry sink=%s",
        sink,
    )
    return TelemetryClient.disabled()


def mask_client_address(value: str) -> str:
    try:
        address = ipaddress.ip_address(value.strip())
    except ValueError:
        return "[redacted]"
    if address.version == 4:
        octets = str(address).split(".")
        return f"{octets[0]}.{octets[1]}.x.x"
    hextets = address.exploded.split(":")
    return f"{hextets[0]}:{hextets[1]}::"


def _sanitize_attributes(attributes: Mapping[str, Any]) -> dict[str, TelemetryValue]:
    sanitized: dict[str, TelemetryValue] = {}
    for raw_key, raw_value in attributes.items():
        key = str(raw_key).strip().lower()
        if not key:
            continue
        if any(token in key for token in _REDACTED_ATTRIBUTE_TOKENS):
            sanitized[key] = "[redacted]"
        elif any(token in key for token in _ADDRESS_ATTRIBUTE_TOKENS) and isinstance(
            raw_value, str
        ):
            sanitized[key] = mask_client_address(raw_value)
        else:
            sanitized[key] = _sanitize_value(raw_value)
    return sanitized


def _sanitize_value(value: Any) -> TelemetryValue:
    if value is None or isinstance(value, bool | int | float):
        return value
    if isinstance(value, str):
        compact = " ".join(value.split())
        if len(compact) <= _MAX_STRING_LENGTH:
            return compact
        return f"{compact[:_MAX_STRING_LENGTH]}..."
    return type(value).__name__
