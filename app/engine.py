from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

import structlog

from domain.models import (
    FAILED_RTT_MS,
    Observation,
    OutcomeKind,
    ProbeOptions,
    ProbeOutcome,
    Statistics,
)
from domain.ports import Clock, ProbeError, Prober, ResultSink
from domain.validation import ProbeParameters, validate_parameters

from .ledger import DEFAULT_RETENTION, ObservationLedger

log = structlog.get_logger(__name__)

PAYLOAD_MARKER = b"X"
DEFAULT_OPTIONS = ProbeOptions(dont_fragment=True, ttl=128)

STOPPED_LINE = "Ping stopped by user."
CLEARED_LINE = "Results cleared."


class EngineState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass(frozen=True)
class _Run:
    generation: int
    params: ProbeParameters
    cancel: threading.Event


class ProbeEngine:
    """
    Sessão de ping: loop periódico probe -> ledger -> estatísticas -> sink.

    - Uma thread por execução; nunca dois probes em voo ao mesmo tempo
    - Cancelamento cooperativo (Event por execução): checado antes de cada
      probe e durante a espera do intervalo. Probe em voo sempre termina.
    - _lock serializa start/stop/clear com as transições do próprio loop
    - Falha de probe (ProbeError) vira Observation com status Unknown;
      qualquer outra exceção encerra a sessão e é reportada uma vez
    """

    def __init__(
        self,
        prober: Prober,
        clock: Clock,
        sink: ResultSink,
        *,
        retention: int = DEFAULT_RETENTION,
        options: ProbeOptions = DEFAULT_OPTIONS,
    ):
        self.prober = prober
        self.clock = clock
        self.sink = sink
        self.options = options

        self.ledger = ObservationLedger(retention)

        self._lock = threading.Lock()
        self._state = EngineState.IDLE
        self._next_sequence = 1
        self._generation = 0
        self._run: Optional[_Run] = None
        self._thread: Optional[threading.Thread] = None
        self._idle = threading.Event()
        self._idle.set()
        self._last_error: Optional[BaseException] = None

    # -----------------------------
    # estado (somente leitura)
    # -----------------------------
    @property
    def state(self) -> EngineState:
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        return self.state is EngineState.RUNNING

    @property
    def next_sequence(self) -> int:
        with self._lock:
            return self._next_sequence

    @property
    def last_error(self) -> Optional[BaseException]:
        return self._last_error

    def snapshot(self) -> Tuple[Observation, ...]:
        return self.ledger.snapshot()

    def statistics(self) -> Statistics:
        return self.ledger.statistics()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Bloqueia até IDLE. True se chegou em IDLE dentro do timeout."""
        return self._idle.wait(timeout)

    # -----------------------------
    # controle
    # -----------------------------
    def start(self, target: str, timeout_ms: int, payload_size: int, interval_ms: int) -> bool:
        # parâmetro inválido: erro síncrono, nenhum estado alterado
        params = validate_parameters(target, timeout_ms, payload_size, interval_ms)

        with self._lock:
            if self._state is not EngineState.IDLE:
                log.info("start_rejected", state=self._state.value, target=target)
                return False

            self._generation += 1
            self._next_sequence = 1
            self.ledger.clear()
            self._last_error = None

            run = _Run(generation=self._generation, params=params, cancel=threading.Event())
            self._run = run
            self._state = EngineState.RUNNING
            self._idle.clear()

            self._thread = threading.Thread(
                target=self._loop,
                args=(run,),
                name=f"probe-session-{run.generation}",
                daemon=True,
            )
            self._thread.start()

        log.info(
            "session_started",
            target=params.host,
            timeout_ms=params.timeout_ms,
            payload_size=params.payload_size,
            interval_ms=params.interval_ms,
        )
        return True

    def stop(self) -> None:
        with self._lock:
            self._request_stop_locked()

    def clear(self) -> None:
        with self._lock:
            # sessão ativa: para o loop e descarta o que ainda estiver em voo
            self._request_stop_locked()
            self._generation += 1
            self._next_sequence = 1
            self.ledger.clear()
            stats = self.ledger.statistics()
        log.info("results_cleared")
        self.sink.on_cleared(stats)
        self.sink.on_log_line(CLEARED_LINE)

    def _request_stop_locked(self) -> None:
        if self._state is not EngineState.RUNNING or self._run is None:
            return
        self._state = EngineState.STOPPING
        self._run.cancel.set()

    # -----------------------------
    # loop
    # -----------------------------
    def _loop(self, run: _Run) -> None:
        error: Optional[BaseException] = None
        try:
            self._iterate(run)
        except Exception as exc:
            error = exc
            self._last_error = exc
            log.exception("session_failed", target=run.params.host, error=str(exc))

        try:
            if error is None:
                log.info("session_stopped", target=run.params.host)
                self.sink.on_log_line(STOPPED_LINE)
            else:
                self.sink.on_log_line(f"Error: {error}")
        finally:
            with self._lock:
                if self._run is run:
                    self._run = None
                    self._state = EngineState.IDLE
                    self._idle.set()

    def _iterate(self, run: _Run) -> None:
        p = run.params
        payload = PAYLOAD_MARKER * p.payload_size
        interval_s = p.interval_ms / 1000.0

        self.sink.on_log_line(f"Pinging {p.host} with {p.payload_size} bytes of data:")

        while not run.cancel.is_set():
            with self._lock:
                if run.generation != self._generation:
                    return
                seq = self._next_sequence
                self._next_sequence += 1

            ob, probe_error = self._probe_once(p, seq, payload)

            stats = self._record(run, ob)
            if stats is None:
                # clear() durante o probe: resultado pertence à execução descartada
                return

            self.sink.on_observation(ob, stats)
            if probe_error is not None:
                self.sink.on_log_line(f"Ping error: {probe_error}")

            if run.cancel.wait(interval_s):
                return

    def _record(self, run: _Run, ob: Observation) -> Optional[Statistics]:
        with self._lock:
            if run.generation != self._generation:
                return None
            return self.ledger.append(ob)

    def _now(self) -> datetime:
        ts = self.clock.now()
        return ts.replace(microsecond=(ts.microsecond // 1000) * 1000)

    def _probe_once(
        self,
        p: ProbeParameters,
        seq: int,
        payload: bytes,
    ) -> Tuple[Observation, Optional[ProbeError]]:
        issued_at = self._now()
        try:
            outcome = self.prober.probe(p.host, p.timeout_ms, payload, self.options)
        except ProbeError as exc:
            log.warning("probe_error", target=p.host, sequence=seq, error=str(exc))
            ob = Observation(
                sequence=seq,
                timestamp=issued_at,
                target=p.host,
                resolved_address=None,
                round_trip_ms=FAILED_RTT_MS,
                outcome=OutcomeKind.UNKNOWN,
                ttl=0,
                payload_size=p.payload_size,
            )
            return ob, exc

        return self._to_observation(p, seq, issued_at, outcome), None

    @staticmethod
    def _to_observation(
        p: ProbeParameters,
        seq: int,
        issued_at: datetime,
        outcome: ProbeOutcome,
    ) -> Observation:
        status = OutcomeKind.parse(outcome.status)
        if status.is_success:
            rtt = max(0, int(outcome.round_trip_ms or 0))
        else:
            rtt = FAILED_RTT_MS

        return Observation(
            sequence=seq,
            timestamp=issued_at,
            target=p.host,
            resolved_address=outcome.address,
            round_trip_ms=rtt,
            outcome=status,
            ttl=int(outcome.ttl or 0),
            payload_size=p.payload_size,
        )
