from __future__ import annotations

import queue
import threading
import time
from typing import Any, Dict, Optional

import httpx
import structlog

from domain.models import Observation, Statistics
from domain.ports import ResultSink

log = structlog.get_logger(__name__)

MAX_BACKOFF_SEC = 2.0


def statistics_payload(stats: Statistics) -> Dict[str, Any]:
    return {
        "sent": stats.sent,
        "received": stats.received,
        "loss_percent": round(stats.loss_percent, 1),
        "min_ms": stats.min_ms,
        "avg_ms": None if stats.avg_ms is None else round(stats.avg_ms, 1),
        "max_ms": stats.max_ms,
    }


def observation_payload(ob: Observation, stats: Statistics) -> Dict[str, Any]:
    return {
        "event": "observation",
        "sequence": ob.sequence,
        "timestamp": ob.timestamp.isoformat(timespec="milliseconds"),
        "host": ob.target,
        "ip_address": ob.resolved_address,
        "roundtrip_ms": ob.round_trip_ms,
        "status": ob.outcome.value,
        "ttl": ob.ttl,
        "buffer_size": ob.payload_size,
        "stats": statistics_payload(stats),
    }


class HttpObservationSink(ResultSink):
    """
    Publica a sessão como documentos JSON via POST, na ordem da sequência.

    Um único sender em background consome a fila; o loop de ping só
    enfileira. Fila cheia: descarta (drop_on_full) ou bloqueia.
    """

    def __init__(
        self,
        url: str,
        *,
        queue_max: int = 5000,
        timeout_sec: float = 2.0,
        max_retries: int = 3,
        drop_on_full: bool = True,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.url = url
        self.max_retries = max_retries
        self.drop_on_full = drop_on_full

        self._timeout = timeout_sec
        self._transport = transport
        self._client: Optional[httpx.Client] = None
        self._pending: queue.Queue[Dict[str, Any]] = queue.Queue(maxsize=queue_max)
        self._closing = threading.Event()
        self._sender: Optional[threading.Thread] = None

        self._counts_lock = threading.Lock()
        self.total_published = 0
        self.total_dropped = 0
        self.total_sent = 0
        self.total_failed = 0

    def start(self) -> None:
        if self._sender is not None:
            return
        self._closing.clear()
        self._client = httpx.Client(timeout=self._timeout, transport=self._transport)
        self._sender = threading.Thread(target=self._send_loop, name="http-sink", daemon=True)
        self._sender.start()

    def stop(self, timeout: float = 3.0) -> None:
        """Entrega o que já está na fila (até timeout) e fecha o client."""
        if self._sender is None:
            return
        self._closing.set()
        self._sender.join(timeout=timeout)
        self._sender = None
        if self._client is not None:
            self._client.close()
            self._client = None

    def flush(self) -> None:
        self._pending.join()

    # -----------------------------
    # ResultSink
    # -----------------------------
    def on_observation(self, observation: Observation, statistics: Statistics) -> None:
        self._publish(observation_payload(observation, statistics))

    def on_log_line(self, line: str) -> None:
        # mensagens de texto ficam só no console
        pass

    def on_cleared(self, statistics: Statistics) -> None:
        self._publish({"event": "cleared", "stats": statistics_payload(statistics)})

    # -----------------------------
    # envio
    # -----------------------------
    def _publish(self, doc: Dict[str, Any]) -> None:
        if self._sender is None:
            raise RuntimeError("HttpObservationSink usado antes de start()")

        with self._counts_lock:
            self.total_published += 1
        if not self.drop_on_full:
            self._pending.put(doc)
            return
        try:
            self._pending.put_nowait(doc)
        except queue.Full:
            with self._counts_lock:
                self.total_dropped += 1

    def _send_loop(self) -> None:
        # encerra só com a fila vazia
        while not (self._closing.is_set() and self._pending.empty()):
            try:
                doc = self._pending.get(timeout=0.1)
            except queue.Empty:
                continue
            try:
                delivered = self._deliver(doc)
                with self._counts_lock:
                    if delivered:
                        self.total_sent += 1
                    else:
                        self.total_failed += 1
            finally:
                self._pending.task_done()

    def _deliver(self, doc: Dict[str, Any]) -> bool:
        assert self._client is not None
        error = ""
        for attempt in range(self.max_retries + 1):
            if attempt:
                time.sleep(min(0.25 * 2 ** (attempt - 1), MAX_BACKOFF_SEC))
            try:
                self._client.post(self.url, json=doc).raise_for_status()
                return True
            except httpx.HTTPError as exc:
                error = str(exc)

        log.warning(
            "http_sink_delivery_failed",
            url=self.url,
            kind=doc.get("event"),
            sequence=doc.get("sequence"),
            attempts=self.max_retries + 1,
            error=error,
        )
        return False
