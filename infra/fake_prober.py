from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterable, List, Optional, Union

from domain.models import OutcomeKind, ProbeOptions, ProbeOutcome
from domain.ports import Prober

ScriptItem = Union[ProbeOutcome, BaseException]


@dataclass(frozen=True)
class ProbeCall:
    target: str
    timeout_ms: int
    payload: bytes
    options: ProbeOptions


class FakeProber(Prober):
    """
    script: sequência de ProbeOutcome (ou exceções, que são levantadas) devolvidos
    um por chamada. Sem itens restantes devolve `default` (TimedOut).
    cycle=True recoloca cada item no fim da fila depois de usado.
    """

    def __init__(
        self,
        script: Optional[Iterable[ScriptItem]] = None,
        *,
        default: Optional[ProbeOutcome] = None,
        cycle: bool = False,
        delay_s: float = 0.0,
    ):
        self.script: Deque[ScriptItem] = deque(script or ())
        self.default = default or ProbeOutcome(status=OutcomeKind.TIMED_OUT)
        self.cycle = cycle
        self.delay_s = delay_s
        self.calls: List[ProbeCall] = []

    def probe(
        self,
        target: str,
        timeout_ms: int,
        payload: bytes,
        options: ProbeOptions,
    ) -> ProbeOutcome:
        self.calls.append(ProbeCall(target, timeout_ms, payload, options))
        if self.delay_s > 0:
            time.sleep(self.delay_s)

        if not self.script:
            return self.default

        item = self.script.popleft()
        if self.cycle:
            self.script.append(item)
        if isinstance(item, BaseException):
            raise item
        return item


def demo_script(address: str = "127.0.0.1") -> List[ScriptItem]:
    # usado pelo modo --fake da CLI
    rtts = (12, 15, 11, 48, 95, 160, 14)
    out: List[ScriptItem] = [
        ProbeOutcome(status=OutcomeKind.SUCCESS, address=address, round_trip_ms=r, ttl=64)
        for r in rtts
    ]
    out.insert(4, ProbeOutcome(status=OutcomeKind.TIMED_OUT))
    return out
