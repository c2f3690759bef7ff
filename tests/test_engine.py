# tests/test_engine.py
import time

import pytest

from app.engine import CLEARED_LINE, STOPPED_LINE, EngineState, ProbeEngine
from domain.models import OutcomeKind, ProbeOptions
from domain.ports import ProbeError
from domain.validation import InvalidParameterError
from infra.fake_prober import FakeProber
from infra.sinks import ConsoleSink

from conftest import ok, timeout

HOST = "example.com"


def _engine(prober, clock, sink, **kw):
    return ProbeEngine(prober, clock, sink, **kw)


def _run_until(engine, sink, n, interval_ms=100):
    assert engine.start(HOST, 1000, 32, interval_ms) is True
    assert sink.wait_for(n), f"expected {n} observations, got {len(sink.observations)}"
    engine.stop()
    assert engine.wait(timeout=5)


def test_three_successful_iterations(clock, sink):
    """RTT 10, 20, 30 -> sent=3 received=3 loss=0 min=10 max=30 avg=20."""
    fake = FakeProber([ok(10), ok(20), ok(30)])
    engine = _engine(fake, clock, sink)
    _run_until(engine, sink, 3)

    s = sink.stats[2]
    assert (s.sent, s.received, s.loss_percent) == (3, 3, 0.0)
    assert (s.min_ms, s.max_ms, s.avg_ms) == (10, 30, 20.0)


def test_two_successes_then_timeout(clock, sink):
    fake = FakeProber([ok(10), ok(20), timeout()])
    engine = _engine(fake, clock, sink)
    _run_until(engine, sink, 3)

    s = sink.stats[2]
    assert (s.sent, s.received) == (3, 2)
    assert round(s.loss_percent, 1) == 33.3
    assert (s.min_ms, s.max_ms, s.avg_ms) == (10, 20, 15.0)

    third = sink.observations[2]
    assert third.outcome is OutcomeKind.TIMED_OUT
    assert third.round_trip_ms == -1


def test_probe_exception_becomes_failed_observation(clock, sink):
    fake = FakeProber([ProbeError("boom"), ok(10)])
    engine = _engine(fake, clock, sink)
    _run_until(engine, sink, 2)

    first, second = sink.observations[:2]
    assert first.sequence == 1
    assert first.outcome is OutcomeKind.UNKNOWN
    assert first.round_trip_ms == -1
    assert first.resolved_address is None
    # o loop segue para a iteração 2
    assert second.sequence == 2
    assert second.is_success
    assert "Ping error: boom" in sink.lines
    assert engine.last_error is None


def test_fatal_error_ends_session_once(clock, sink):
    fake = FakeProber([RuntimeError("kaput"), ok(10)])
    engine = _engine(fake, clock, sink)

    assert engine.start(HOST, 1000, 32, 100)
    assert engine.wait(timeout=5)

    assert engine.state is EngineState.IDLE
    assert isinstance(engine.last_error, RuntimeError)
    assert sink.observations == []
    assert sink.lines.count("Error: kaput") == 1
    assert STOPPED_LINE not in sink.lines
    # sem retry
    assert len(fake.calls) == 1


def test_start_line_and_passthrough_options(clock, sink):
    fake = FakeProber([ok(10)])
    engine = _engine(fake, clock, sink)
    _run_until(engine, sink, 1)

    assert sink.lines[0] == f"Pinging {HOST} with 32 bytes of data:"
    call = fake.calls[0]
    assert call.target == HOST
    assert call.timeout_ms == 1000
    assert call.payload == b"X" * 32
    assert call.options == ProbeOptions(dont_fragment=True, ttl=128)


def test_padded_host_is_trimmed_before_probing(clock, sink):
    fake = FakeProber([ok(10)])
    engine = _engine(fake, clock, sink)
    assert engine.start("  example.com  ", 1000, 32, 100) is True
    assert sink.wait_for(1)
    engine.stop()
    assert engine.wait(timeout=5)

    assert fake.calls[0].target == "example.com"
    assert sink.observations[0].target == "example.com"
    assert sink.lines[0] == "Pinging example.com with 32 bytes of data:"


def test_observation_fields_from_outcome(clock, sink):
    fake = FakeProber([ok(25, addr="142.250.185.46", ttl=57)])
    engine = _engine(fake, clock, sink)
    _run_until(engine, sink, 1)

    ob = sink.observations[0]
    assert ob.target == HOST
    assert ob.resolved_address == "142.250.185.46"
    assert ob.round_trip_ms == 25
    assert ob.ttl == 57
    assert ob.payload_size == 32
    # resolução de milissegundo
    assert ob.timestamp.microsecond % 1000 == 0


def test_sequence_strictly_increasing_and_ledger_consistent(clock, sink):
    fake = FakeProber([ok(5), timeout(), ok(7), timeout(), ok(9)])
    engine = _engine(fake, clock, sink)
    _run_until(engine, sink, 5)

    seqs = [o.sequence for o in sink.observations]
    assert seqs == list(range(1, len(seqs) + 1))

    snap = engine.snapshot()
    stats = engine.statistics()
    assert stats.sent == len(snap)
    assert stats.received == sum(1 for o in snap if o.is_success)
    for o in snap:
        assert (o.round_trip_ms == -1) == (o.outcome is not OutcomeKind.SUCCESS)


def test_stop_twice_emits_single_line(clock, sink):
    engine = _engine(FakeProber(), clock, sink)
    assert engine.start(HOST, 1000, 32, 100)
    assert sink.wait_for(1)

    engine.stop()
    engine.stop()
    assert engine.wait(timeout=5)
    engine.stop()

    assert sink.lines.count(STOPPED_LINE) == 1
    assert engine.state is EngineState.IDLE


def test_stop_when_idle_is_noop(clock, sink):
    engine = _engine(FakeProber(), clock, sink)
    engine.stop()
    assert sink.lines == []
    assert engine.state is EngineState.IDLE


def test_stop_interrupts_interval_wait(clock, sink):
    engine = _engine(FakeProber([ok(1)]), clock, sink)
    assert engine.start(HOST, 1000, 32, 60000)
    assert sink.wait_for(1)
    engine.stop()
    # intervalo de 60s: só termina rápido se a espera for cancelável
    assert engine.wait(timeout=2)
    assert len(engine.snapshot()) == 1


def test_start_is_rejected_while_running(clock, sink):
    engine = _engine(FakeProber(), clock, sink)
    assert engine.start(HOST, 1000, 32, 100)
    try:
        assert engine.is_running
        assert engine.start(HOST, 1000, 32, 100) is False
    finally:
        engine.stop()
        assert engine.wait(timeout=5)


@pytest.mark.parametrize(
    "args",
    [
        ("", 1000, 32, 100),
        (HOST, 99, 32, 100),
        (HOST, 1000, 65501, 100),
        (HOST, 1000, 32, 60001),
    ],
)
def test_invalid_parameters_do_not_touch_state(clock, sink, args):
    engine = _engine(FakeProber([ok(3)]), clock, sink)
    _run_until(engine, sink, 1)
    before = engine.snapshot()

    with pytest.raises(InvalidParameterError):
        engine.start(*args)

    assert engine.state is EngineState.IDLE
    assert engine.snapshot() == before


def test_restart_resets_sequence_and_ledger(clock, sink):
    engine = _engine(FakeProber(), clock, sink)
    _run_until(engine, sink, 3)
    assert engine.next_sequence > 1

    n = len(sink.observations)
    assert engine.start(HOST, 1000, 32, 100)
    assert sink.wait_for(n + 1)
    engine.stop()
    assert engine.wait(timeout=5)

    assert sink.observations[n].sequence == 1
    assert engine.snapshot()[0].sequence == 1


def test_clear_when_idle(clock, sink):
    engine = _engine(FakeProber(), clock, sink)
    _run_until(engine, sink, 2)

    engine.clear()
    assert engine.snapshot() == ()
    assert engine.statistics().sent == 0
    assert engine.next_sequence == 1
    assert sink.lines[-1] == CLEARED_LINE
    assert [s.sent for s in sink.cleared] == [0]


def test_clear_resets_console_view(clock):
    out = []
    console = ConsoleSink(clock, write=out.append)
    engine = _engine(FakeProber([ok(10), ok(20)]), clock, console)
    assert engine.start(HOST, 1000, 32, 100)
    deadline = time.monotonic() + 5
    while len(engine.snapshot()) < 2 and time.monotonic() < deadline:
        time.sleep(0.01)
    engine.stop()
    assert engine.wait(timeout=5)
    assert not console.last_stats_line.startswith("Packets: 0 sent")

    engine.clear()

    assert engine.statistics().sent == 0
    assert console.last_stats_line.startswith("Packets: 0 sent, 0 received, 0.0% loss")
    assert console.chart_lines() == []
    assert len(console.display_lines()) == 1
    assert console.display_lines()[0].endswith(CLEARED_LINE)


def test_clear_while_running_stops_and_discards(clock, sink):
    fake = FakeProber(delay_s=0.05)
    engine = _engine(fake, clock, sink)
    assert engine.start(HOST, 1000, 32, 100)
    assert sink.wait_for(1)

    engine.clear()
    assert engine.wait(timeout=5)

    assert engine.state is EngineState.IDLE
    assert engine.snapshot() == ()
    assert engine.next_sequence == 1
    assert STOPPED_LINE in sink.lines
    assert CLEARED_LINE in sink.lines


def test_retention_bound_applies_to_engine(clock, sink):
    engine = _engine(FakeProber([ok(i) for i in range(1, 10)]), clock, sink, retention=3)
    _run_until(engine, sink, 5)

    snap = engine.snapshot()
    top = max(o.sequence for o in sink.observations)
    assert len(snap) == 3
    assert snap[0].sequence == top - 2
    assert sink.stats[-1].sent == 3
