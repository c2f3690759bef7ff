import threading
from datetime import datetime, timedelta

import pytest

from domain.models import Observation, OutcomeKind, ProbeOutcome


class RecordingSink:
    """Guarda tudo que o engine entrega; permite esperar N observações."""

    def __init__(self):
        self.observations = []
        self.stats = []
        self.lines = []
        self.cleared = []
        self._cv = threading.Condition()

    def on_observation(self, observation, statistics):
        with self._cv:
            self.observations.append(observation)
            self.stats.append(statistics)
            self._cv.notify_all()

    def on_log_line(self, line):
        with self._cv:
            self.lines.append(line)
            self._cv.notify_all()

    def on_cleared(self, statistics):
        with self._cv:
            self.cleared.append(statistics)
            self._cv.notify_all()

    def wait_for(self, n, timeout=5.0):
        with self._cv:
            return self._cv.wait_for(lambda: len(self.observations) >= n, timeout=timeout)


class StepClock:
    """Relógio determinístico: avança 1s a cada leitura."""

    def __init__(self, start=datetime(2025, 1, 15, 14, 30, 45, 123456)):
        self._t = start
        self._lock = threading.Lock()

    def now(self):
        with self._lock:
            t = self._t
            self._t = t + timedelta(seconds=1)
            return t


def ok(rtt, addr="10.0.0.1", ttl=57):
    return ProbeOutcome(status=OutcomeKind.SUCCESS, address=addr, round_trip_ms=rtt, ttl=ttl)


def timeout():
    return ProbeOutcome(status=OutcomeKind.TIMED_OUT)


def make_obs(seq, rtt=10, outcome=OutcomeKind.SUCCESS, host="example.com", addr="93.184.216.34"):
    ts = datetime(2025, 1, 15, 14, 30, 45, 123000) + timedelta(seconds=seq)
    if outcome is not OutcomeKind.SUCCESS:
        rtt = -1
        addr = None
    return Observation(
        sequence=seq,
        timestamp=ts,
        target=host,
        resolved_address=addr,
        round_trip_ms=rtt,
        outcome=outcome,
        ttl=57 if outcome is OutcomeKind.SUCCESS else 0,
        payload_size=32,
    )


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def clock():
    return StepClock()
