"""Tests for the sampling engine."""

import threading

import pytest
from conftest import FakeReader

from pysentinel.errors import EnumerationUnavailable
from pysentinel.ranker import Ranker
from pysentinel.sampler import Sampler, SamplerState, TickResult


def cpu_of(result: TickResult, pid: int) -> float:
    return next(row.cpu_percent for row in result.rows if row.pid == pid)


class TestTick:
    """Tests for Sampler.tick."""

    def test_documented_scenario(self, fake_reader: FakeReader):
        """pid 1 busy 100->140 while the system goes 1000->1400 is 10%."""
        fake_reader.system_busy_time = 600
        fake_reader.set_process(1, busy_time=100)
        sampler = Sampler(fake_reader)

        fake_reader.system_busy_time = 1000
        sampler.tick()

        fake_reader.set_process(1, busy_time=140)
        fake_reader.system_busy_time = 1400
        result = sampler.tick()

        assert cpu_of(result, 1) == pytest.approx(10.0)

    def test_cpu_uses_consecutive_ticks(self, fake_reader: FakeReader):
        """Each tick's CPU is computed from the previous tick's frozen values."""
        fake_reader.set_process(1, busy_time=10)
        sampler = Sampler(fake_reader)

        samples = [(10, 100), (30, 300), (35, 400), (95, 700)]
        results = []
        for busy, system in samples:
            fake_reader.set_process(1, busy_time=busy)
            fake_reader.system_busy_time = system
            results.append(sampler.tick())

        assert cpu_of(results[0], 1) == 0.0
        assert cpu_of(results[1], 1) == pytest.approx(100 * 20 / 200)
        assert cpu_of(results[2], 1) == pytest.approx(100 * 5 / 100)
        assert cpu_of(results[3], 1) == pytest.approx(100 * 60 / 300)

    def test_first_observation_is_zero(self, fake_reader: FakeReader):
        sampler = Sampler(fake_reader)
        fake_reader.set_process(1, busy_time=10)
        fake_reader.system_busy_time = 100
        sampler.tick()

        fake_reader.set_process(2, busy_time=99999)
        fake_reader.system_busy_time = 200
        result = sampler.tick()

        assert cpu_of(result, 2) == 0.0

    def test_pid_reuse_gives_zero(self, fake_reader: FakeReader):
        """A busy-time counter that decreased yields 0.0, never negative."""
        sampler = Sampler(fake_reader)
        fake_reader.set_process(1, busy_time=5000)
        fake_reader.system_busy_time = 100
        sampler.tick()

        fake_reader.set_process(1, busy_time=3)
        fake_reader.system_busy_time = 200
        result = sampler.tick()

        assert cpu_of(result, 1) == 0.0
        assert sampler.table.get(1).previous_busy_time == 3

    def test_exited_process_is_removed(self, fake_reader: FakeReader):
        sampler = Sampler(fake_reader)
        fake_reader.set_process(1, busy_time=10)
        fake_reader.set_process(7, busy_time=10)
        sampler.tick()

        fake_reader.remove_process(7)
        result = sampler.tick()

        assert sampler.table.contains(7) is False
        assert 7 not in [row.pid for row in result.rows]

        result = sampler.tick()
        assert 7 not in [row.pid for row in result.rows]

    def test_process_gone_mid_scan_is_dropped(self, fake_reader: FakeReader):
        """A pid enumerated but unreadable is deleted, not zeroed."""
        sampler = Sampler(fake_reader)
        fake_reader.set_process(1, busy_time=10)
        fake_reader.set_process(2, busy_time=10)
        sampler.tick()

        fake_reader.remove_process(2)
        fake_reader.vanished.add(2)
        result = sampler.tick()

        assert not sampler.table.contains(2)
        assert [row.pid for row in result.rows] == [1]

    def test_new_unreadable_pid_never_appears(self, fake_reader: FakeReader):
        fake_reader.vanished.add(42)
        sampler = Sampler(fake_reader)
        result = sampler.tick()

        assert result.rows == []
        assert len(sampler.table) == 0

    def test_enumeration_failure_is_fatal(self, fake_reader: FakeReader):
        sampler = Sampler(fake_reader)
        fake_reader.enumeration_fails = True

        with pytest.raises(EnumerationUnavailable):
            sampler.tick()
        assert sampler.state is SamplerState.IDLE

    def test_unreadable_system_counter_freezes_cpu(self, fake_reader: FakeReader):
        sampler = Sampler(fake_reader)
        fake_reader.set_process(1, busy_time=10)
        fake_reader.system_busy_time = 100
        sampler.tick()

        fake_reader.set_process(1, busy_time=50)
        fake_reader.system_busy_time = None
        result = sampler.tick()

        assert cpu_of(result, 1) == 0.0
        assert sampler.table.contains(1)

    def test_chain_resumes_after_unreadable_counter(self, fake_reader: FakeReader):
        """The last readable system value stays the "before" of the chain."""
        sampler = Sampler(fake_reader)
        fake_reader.set_process(1, busy_time=10)
        fake_reader.system_busy_time = 100
        sampler.tick()

        fake_reader.system_busy_time = None
        sampler.tick()

        fake_reader.set_process(1, busy_time=30)
        fake_reader.system_busy_time = 300
        result = sampler.tick()

        assert cpu_of(result, 1) == pytest.approx(100 * 20 / 200)

    def test_unreadable_at_construction(self, fake_reader: FakeReader):
        fake_reader.system_busy_time = None
        sampler = Sampler(fake_reader)
        fake_reader.set_process(1, busy_time=10)
        fake_reader.system_busy_time = 100
        sampler.tick()

        fake_reader.set_process(1, busy_time=20)
        fake_reader.system_busy_time = 200
        result = sampler.tick()

        assert cpu_of(result, 1) == pytest.approx(10.0)

    def test_system_delta_floor(self, fake_reader: FakeReader):
        """An unchanged system counter divides by 1."""
        fake_reader.system_busy_time = 100
        sampler = Sampler(fake_reader)
        fake_reader.set_process(1, busy_time=10)
        sampler.tick()

        fake_reader.set_process(1, busy_time=11)
        result = sampler.tick()

        assert cpu_of(result, 1) == pytest.approx(100.0)

    def test_memory_total_unreadable_falls_back_to_one(self, fake_reader: FakeReader):
        fake_reader.memory_total_kb = None
        fake_reader.set_process(1, busy_time=10, resident_kb=2)
        sampler = Sampler(fake_reader)
        result = sampler.tick()

        assert result.rows[0].memory_percent == pytest.approx(200.0)
        assert result.summary.memory_total_kb == 1

    def test_memory_total_zero_is_clamped(self, fake_reader: FakeReader):
        fake_reader.memory_total_kb = 0
        fake_reader.set_process(1, busy_time=10, resident_kb=4)
        result = Sampler(fake_reader).tick()

        assert result.rows[0].memory_percent == pytest.approx(400.0)

    def test_display_budget(self, fake_reader: FakeReader):
        for pid in range(1, 21):
            fake_reader.set_process(pid, busy_time=pid)
        sampler = Sampler(fake_reader, ranker=Ranker(display_budget=5))
        result = sampler.tick()

        assert len(result.rows) == 5
        assert len(sampler.table) == 20
        assert result.summary.total_task_count == 20

    def test_ranked_output(self, fake_reader: FakeReader):
        for pid in (1, 2, 3):
            fake_reader.set_process(pid, busy_time=100, resident_kb=pid * 10)
        sampler = Sampler(fake_reader)
        fake_reader.system_busy_time = 100
        sampler.tick()

        fake_reader.set_process(1, busy_time=150, resident_kb=10)
        fake_reader.set_process(2, busy_time=110, resident_kb=20)
        fake_reader.set_process(3, busy_time=110, resident_kb=30)
        fake_reader.system_busy_time = 200
        result = sampler.tick()

        assert [row.pid for row in result.rows] == [1, 3, 2]

    def test_summary(self, fake_reader: FakeReader):
        fake_reader.set_process(1, busy_time=10, run_state="R")
        fake_reader.set_process(2, busy_time=10, run_state="S")
        fake_reader.set_process(3, busy_time=10, run_state="R")
        sampler = Sampler(fake_reader)
        result = sampler.tick()

        summary = result.summary
        assert summary.tick == 1
        assert summary.total_task_count == 3
        assert summary.running_task_count == 2
        assert summary.load_averages == (0.5, 0.25, 0.1)
        assert summary.uptime_seconds == 3600.0
        assert summary.clock_ticks == 100
        assert sampler.tick_count == 1

    def test_identity_fields(self, fake_reader: FakeReader):
        fake_reader.set_process(5, busy_time=10, niceness=-3, name="sshd")
        fake_reader.owners[5] = "alice"
        fake_reader.commands[5] = "sshd: alice [priv]"
        row = Sampler(fake_reader).tick().rows[0]

        assert row.user == "alice"
        assert row.command == "sshd: alice [priv]"
        assert row.niceness == -3
        assert row.priority == 17

    def test_state_after_tick(self, fake_reader: FakeReader):
        sampler = Sampler(fake_reader)
        assert sampler.state is SamplerState.IDLE
        sampler.tick()
        assert sampler.state is SamplerState.FINALIZING


class TestRun:
    """Tests for the Sampler.run loop."""

    def test_runs_until_max_ticks(self, fake_reader: FakeReader):
        fake_reader.set_process(1, busy_time=10)
        sampler = Sampler(fake_reader, interval=0.01)
        rendered: list[TickResult] = []

        sampler.run(rendered.append, threading.Event(), max_ticks=3)

        assert len(rendered) == 3
        assert [r.summary.tick for r in rendered] == [1, 2, 3]
        assert sampler.state is SamplerState.IDLE

    def test_stop_before_start(self, fake_reader: FakeReader):
        sampler = Sampler(fake_reader, interval=0.01)
        stop = threading.Event()
        stop.set()
        rendered: list[TickResult] = []

        sampler.run(rendered.append, stop)

        assert rendered == []

    def test_stop_checked_at_tick_boundary(self, fake_reader: FakeReader):
        """Setting stop while rendering still finishes that tick cleanly."""
        sampler = Sampler(fake_reader, interval=0.01)
        stop = threading.Event()
        rendered: list[TickResult] = []

        def render(result: TickResult) -> None:
            assert sampler.state is SamplerState.RENDERED
            rendered.append(result)
            stop.set()

        sampler.run(render, stop)

        assert len(rendered) == 1

    def test_enumeration_failure_propagates(self, fake_reader: FakeReader):
        sampler = Sampler(fake_reader, interval=0.01)
        fake_reader.enumeration_fails = True

        with pytest.raises(EnumerationUnavailable):
            sampler.run(lambda result: None, threading.Event())
