from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

# valor de RTT para qualquer falha (inclusive exceção do prober)
FAILED_RTT_MS = -1


class OutcomeKind(str, Enum):
    """
    Status de um probe.
    Os valores são os nomes gravados no CSV e exibidos nas linhas,
    então não podem mudar (compatibilidade com arquivos já exportados).
    """

    SUCCESS = "Success"
    TIMED_OUT = "TimedOut"
    DESTINATION_HOST_UNREACHABLE = "DestinationHostUnreachable"
    DESTINATION_NETWORK_UNREACHABLE = "DestinationNetworkUnreachable"
    DESTINATION_PROTOCOL_UNREACHABLE = "DestinationProtocolUnreachable"
    DESTINATION_PORT_UNREACHABLE = "DestinationPortUnreachable"
    DESTINATION_UNREACHABLE = "DestinationUnreachable"
    TTL_EXPIRED = "TtlExpired"
    TTL_REASSEMBLY_TIME_EXCEEDED = "TtlReassemblyTimeExceeded"
    TIME_EXCEEDED = "TimeExceeded"
    BAD_DESTINATION = "BadDestination"
    BAD_ROUTE = "BadRoute"
    BAD_OPTION = "BadOption"
    BAD_HEADER = "BadHeader"
    PACKET_TOO_BIG = "PacketTooBig"
    PARAMETER_PROBLEM = "ParameterProblem"
    SOURCE_QUENCH = "SourceQuench"
    NO_RESOURCES = "NoResources"
    HARDWARE_ERROR = "HardwareError"
    ICMP_ERROR = "IcmpError"
    DESTINATION_SCOPE_MISMATCH = "DestinationScopeMismatch"
    UNRECOGNIZED_NEXT_HEADER = "UnrecognizedNextHeader"
    # exceção do prober e qualquer status desconhecido caem aqui
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, name: object) -> "OutcomeKind":
        if isinstance(name, OutcomeKind):
            return name
        try:
            return cls(str(name))
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_success(self) -> bool:
        return self is OutcomeKind.SUCCESS


@dataclass(frozen=True)
class ProbeOptions:
    dont_fragment: bool = True
    ttl: int = 128


@dataclass(frozen=True)
class ProbeOutcome:
    """Resposta crua do prober (antes de virar Observation)."""

    status: OutcomeKind
    address: Optional[str] = None
    round_trip_ms: Optional[int] = None  # só existe quando status == SUCCESS
    ttl: Optional[int] = None


@dataclass(frozen=True)
class Observation:
    sequence: int
    timestamp: datetime
    target: str
    resolved_address: Optional[str]
    round_trip_ms: int
    outcome: OutcomeKind
    ttl: int = 0
    payload_size: int = 0

    def __post_init__(self) -> None:
        if self.sequence < 1:
            raise ValueError(f"sequence deve ser >= 1 (recebido {self.sequence})")
        if (self.round_trip_ms >= 0) != self.outcome.is_success:
            raise ValueError(
                f"round_trip_ms={self.round_trip_ms} incompatível com outcome={self.outcome.value}"
            )

    @property
    def is_success(self) -> bool:
        return self.outcome.is_success

    @property
    def time_str(self) -> str:
        # HH:mm:ss.fff
        return self.timestamp.strftime("%H:%M:%S.%f")[:-3]

    def display_line(self) -> str:
        if self.is_success:
            return (
                f"[{self.time_str}] Reply from {self.resolved_address}: "
                f"bytes={self.payload_size} time={self.round_trip_ms}ms TTL={self.ttl}"
            )
        return f"[{self.time_str}] {self.target}: {self.outcome.value}"

    def __str__(self) -> str:
        return self.display_line()


@dataclass(frozen=True)
class Statistics:
    sent: int = 0
    received: int = 0
    loss_percent: float = 0.0

    # None = indisponível (nenhum sucesso no ledger)
    min_ms: Optional[int] = None
    avg_ms: Optional[float] = None
    max_ms: Optional[int] = None

    @property
    def lost(self) -> int:
        return self.sent - self.received

    @property
    def has_rtt(self) -> bool:
        return self.received > 0
