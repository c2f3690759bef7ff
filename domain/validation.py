from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass
from typing import Optional

MIN_TIMEOUT_MS = 100
MAX_TIMEOUT_MS = 30000

MIN_PAYLOAD_SIZE = 1
MAX_PAYLOAD_SIZE = 65500

MIN_INTERVAL_MS = 100
MAX_INTERVAL_MS = 60000

MAX_LABEL_LEN = 63
MAX_HOSTNAME_LEN = 253

_LABEL_RE = re.compile(r"^[A-Za-z0-9-]+$")
_INT_RE = re.compile(r"^\s*[+-]?\d+\s*$")


class InvalidParameterError(ValueError):
    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


@dataclass(frozen=True)
class ProbeParameters:
    host: str
    timeout_ms: int
    payload_size: int
    interval_ms: int


def _is_strict_ipv4(text: str) -> bool:
    parts = text.split(".")
    if len(parts) != 4:
        return False
    for p in parts:
        if not p.isdigit():
            return False
        # sem zero à esquerda, exceto o próprio "0"
        if len(p) > 1 and p[0] == "0":
            return False
        if int(p) > 255:
            return False
    return True


def validate_host(host: Optional[str]) -> bool:
    """
    Hostname ou IP "plausível". Não resolve nada.

    - 4 partes numéricas => tem que ser IPv4 válido (octetos 0-255, sem zero à esquerda)
    - IPv6 literal é aceito
    - nomes: labels alfanuméricas/hífen, sem label vazia, sem hífen no início
      (hífen no final passa, igual à ferramenta antiga; vai falhar no ping)
    """
    if host is None:
        return False
    host = host.strip()
    if not host:
        return False

    parts = host.split(".")
    if len(parts) == 4 and all(p.isdigit() for p in parts):
        return _is_strict_ipv4(host)

    if ":" in host:
        try:
            ipaddress.IPv6Address(host)
        except ValueError:
            return False
        return True

    if len(host) > MAX_HOSTNAME_LEN:
        return False

    for label in parts:
        if not label or len(label) > MAX_LABEL_LEN:
            return False
        if not _LABEL_RE.match(label):
            return False
        if label.startswith("-"):
            return False
    return True


def validate_timeout(timeout_ms: int) -> bool:
    return MIN_TIMEOUT_MS <= timeout_ms <= MAX_TIMEOUT_MS


def validate_payload_size(size: int) -> bool:
    return MIN_PAYLOAD_SIZE <= size <= MAX_PAYLOAD_SIZE


def validate_interval(interval_ms: int) -> bool:
    return MIN_INTERVAL_MS <= interval_ms <= MAX_INTERVAL_MS


def _try_int(text: Optional[str]) -> Optional[int]:
    if text is None or not _INT_RE.match(text):
        return None
    return int(text)


def try_parse_timeout(text: Optional[str]) -> Optional[int]:
    v = _try_int(text)
    return v if v is not None and validate_timeout(v) else None


def try_parse_payload_size(text: Optional[str]) -> Optional[int]:
    v = _try_int(text)
    return v if v is not None and validate_payload_size(v) else None


def try_parse_interval(text: Optional[str]) -> Optional[int]:
    v = _try_int(text)
    return v if v is not None and validate_interval(v) else None


def validate_parameters(
    host: str,
    timeout_ms: int,
    payload_size: int,
    interval_ms: int,
) -> ProbeParameters:
    if not validate_host(host):
        raise InvalidParameterError("host", "Please enter a valid hostname or IP address.")
    if not validate_timeout(timeout_ms):
        raise InvalidParameterError(
            "timeout_ms",
            f"Timeout must be between {MIN_TIMEOUT_MS} and {MAX_TIMEOUT_MS} milliseconds.",
        )
    if not validate_payload_size(payload_size):
        raise InvalidParameterError(
            "payload_size",
            f"Buffer size must be between {MIN_PAYLOAD_SIZE} and {MAX_PAYLOAD_SIZE} bytes.",
        )
    if not validate_interval(interval_ms):
        raise InvalidParameterError(
            "interval_ms",
            f"Interval must be between {MIN_INTERVAL_MS} and {MAX_INTERVAL_MS} milliseconds.",
        )
    return ProbeParameters(
        host=host.strip(),
        timeout_ms=int(timeout_ms),
        payload_size=int(payload_size),
        interval_ms=int(interval_ms),
    )


def parse_parameters(
    host: Optional[str],
    timeout_text: Optional[str],
    payload_text: Optional[str],
    interval_text: Optional[str],
) -> ProbeParameters:
    """Entrada em texto (campo de formulário / argumento). Host vem com trim."""
    host = (host or "").strip()
    if not validate_host(host):
        raise InvalidParameterError("host", "Please enter a valid hostname or IP address.")

    timeout_ms = try_parse_timeout(timeout_text)
    if timeout_ms is None:
        raise InvalidParameterError(
            "timeout_ms",
            f"Timeout must be between {MIN_TIMEOUT_MS} and {MAX_TIMEOUT_MS} milliseconds.",
        )
    payload_size = try_parse_payload_size(payload_text)
    if payload_size is None:
        raise InvalidParameterError(
            "payload_size",
            f"Buffer size must be between {MIN_PAYLOAD_SIZE} and {MAX_PAYLOAD_SIZE} bytes.",
        )
    interval_ms = try_parse_interval(interval_text)
    if interval_ms is None:
        raise InvalidParameterError(
            "interval_ms",
            f"Interval must be between {MIN_INTERVAL_MS} and {MAX_INTERVAL_MS} milliseconds.",
        )

    return ProbeParameters(host, timeout_ms, payload_size, interval_ms)
