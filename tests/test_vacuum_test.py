"""
Title: Vacuum Leak Test Verification
Author: Alex Cooke
Date Created: 2026-02-06
Last Modified: 2026-02-09
Version: 1.0

Purpose:
Verifies the vacuum leak test sequencing (STABILIZE -> TEST -> verdict), the
leak rate calculation and pass criterion, and mutual exclusion with the
sterilization cycle.

Targeted Requirements (Verification Only):
- STZ-VT001, STZ-VT002, STZ-VT003

Safety Notice:
This file is a test artefact intended solely for verification and assessment.

Dependencies:
- Python 3.10+
- pytest
- sterilizer_controller.py
- sims/steam_simulator.py

Related Documents:
- STZ Unit Test Plan

Safety and Certification Disclaimer:
All artefacts in this repository are produced for academic assessment purposes only.
They do not represent certified software and must not be used in real-world medical
or safety-critical systems.
"""

from dataclasses import replace

import pytest

from cycle_phases import ErrorCode, Phase, VacuumTestPhase, VacuumTestVerdict
from sims.steam_simulator import SimulationConfig, SimulationPort
from sterilizer_controller import SterilizerController, compute_leak_rate, leak_verdict
from sterilizer_port import ActuatorCommand, PhysicalReading


class FakeClock:
    def __init__(self, start: float = 0.0):
        self.t = float(start)

    def __call__(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


class FakePort:
    def __init__(self):
        self.reading = PhysicalReading(
            chamber_pressure_mpa=0.0,
            chamber_temperature_c=20.0,
            generator_pressure_mpa=0.0,
            generator_temperature_c=20.0,
            generator_water_level_pct=100.0,
            jacket_pressure_mpa=0.0,
            door_open=False,
            door_locked=True,
        )
        self.writes: list[ActuatorCommand] = []

    def set(self, **values) -> None:
        self.reading = replace(self.reading, **values)

    def read(self) -> PhysicalReading:
        return self.reading

    def write(self, command: ActuatorCommand) -> None:
        self.writes.append(command)


def run_test_against(sim: SimulationPort, clock: FakeClock, stab_s: float, test_s: float):
    controller = SterilizerController(port=sim, clock=clock)
    controller.start_vacuum_test(stab_s, test_s)
    for _ in range(int(stab_s + test_s) + 5):
        sim.step(1.0)
        clock.advance(1.0)
        controller.step(1.0)
    return controller


# -----------------------------
# STZ-VT002 leak rate
# -----------------------------

@pytest.mark.parametrize(
    "base, final, test_s, expected",
    [
        (-0.08, -0.075, 300.0, 0.001),
        (-0.08, -0.08, 300.0, 0.0),
        (-0.08, -0.085, 300.0, 0.0),
        (-0.08, -0.05, 60.0, 0.03),
    ],
)
def test_vt002_leak_rate(base, final, test_s, expected):
    assert compute_leak_rate(base, final, test_s) == pytest.approx(expected)


def test_vt002_zero_duration_has_no_leak_rate():
    assert compute_leak_rate(-0.08, 0.0, 0.0) == 0.0


@pytest.mark.parametrize(
    "rate, verdict",
    [
        (0.0, VacuumTestVerdict.PASS),
        (0.005, VacuumTestVerdict.PASS),
        (0.0051, VacuumTestVerdict.FAIL),
        (0.03, VacuumTestVerdict.FAIL),
    ],
)
def test_vt002_pass_criterion(rate, verdict):
    assert leak_verdict(rate) == verdict


# -----------------------------
# STZ-VT001 sequencing
# -----------------------------

def test_vt001_stabilize_draws_vacuum():
    port = FakePort()
    controller = SterilizerController(port=port, clock=FakeClock())

    controller.start_vacuum_test(10, 60)

    vt = controller.state.vacuum_test
    assert vt.active is True
    assert vt.phase == VacuumTestPhase.STABILIZE
    assert port.writes[-1].vacuum_pump_on is True
    assert port.writes[-1].heater_on is False


def test_vt001_test_phase_records_base_and_seals_chamber():
    port = FakePort()
    controller = SterilizerController(port=port, clock=FakeClock())
    controller.start_vacuum_test(10, 60)

    port.set(chamber_pressure_mpa=-0.078)
    for _ in range(10):
        controller.step(1.0)

    vt = controller.state.vacuum_test
    assert vt.phase == VacuumTestPhase.TEST
    assert vt.elapsed_s == 0.0
    assert vt.base_pressure_mpa == pytest.approx(-0.078)
    sealed = port.writes[-1]
    assert sealed.vacuum_pump_on is False
    assert sealed.steam_exhaust_valve_open is False
    assert sealed.steam_inlet_valve_open is False


def test_vt001_verdict_recorded_in_history():
    port = FakePort()
    clock = FakeClock(500.0)
    controller = SterilizerController(port=port, clock=clock)
    controller.start_vacuum_test(10, 60)

    port.set(chamber_pressure_mpa=-0.08)
    for _ in range(10):
        controller.step(1.0)
    port.set(chamber_pressure_mpa=-0.077)
    clock.advance(70.0)
    for _ in range(60):
        controller.step(1.0)

    st = controller.state
    assert st.vacuum_test.active is False
    assert st.vacuum_test.phase == VacuumTestPhase.IDLE
    assert st.vacuum_test.result == VacuumTestVerdict.PASS
    assert st.vacuum_test.leak_rate_mpa_per_min == pytest.approx(0.003)

    result = st.vacuum_test_history[0]
    assert result.id == "vt_1"
    assert result.passed is True
    assert result.started_at == 500.0
    assert result.ended_at == 570.0


def test_vt001_passes_on_tight_simulated_chamber():
    clock = FakeClock()
    sim = SimulationPort()

    controller = run_test_against(sim, clock, 10, 60)

    result = controller.state.vacuum_test_history[0]
    assert result.result == VacuumTestVerdict.PASS
    assert 0.0 < result.leak_rate_mpa_per_min < 0.005


def test_vt001_fails_on_leaky_simulated_chamber():
    clock = FakeClock()
    sim = SimulationPort(config=SimulationConfig(leak_rate_per_s=0.01))

    controller = run_test_against(sim, clock, 10, 60)

    result = controller.state.vacuum_test_history[0]
    assert result.result == VacuumTestVerdict.FAIL
    assert result.leak_rate_mpa_per_min > 0.005


def test_vt001_default_durations():
    controller = SterilizerController(port=FakePort(), clock=FakeClock())

    controller.start_vacuum_test()

    vt = controller.state.vacuum_test
    assert vt.stabilization_time_s == 300.0
    assert vt.test_time_s == 300.0


@pytest.mark.parametrize("stab, test", [(0, 60), (10, 0), (-5, 60)])
def test_vt001_non_positive_durations_rejected(stab, test):
    controller = SterilizerController(port=FakePort(), clock=FakeClock())

    with pytest.raises(ValueError):
        controller.start_vacuum_test(stab, test)

    assert controller.state.vacuum_test.active is False


def test_vt001_alarm_aborts_running_test():
    port = FakePort()
    controller = SterilizerController(port=port, clock=FakeClock())
    controller.start_vacuum_test(10, 60)

    port.set(generator_water_level_pct=1.0)
    controller.step(1.0)

    st = controller.state
    assert st.cycle.current_phase == Phase.ERROR
    assert [e.code for e in st.errors] == [ErrorCode.NO_WATER]
    assert st.vacuum_test.active is False
    assert st.vacuum_test_history == ()


# -----------------------------
# STZ-VT003 mutual exclusion
# -----------------------------

def test_vt003_cycle_cannot_start_during_vacuum_test():
    controller = SterilizerController(port=FakePort(), clock=FakeClock())
    controller.start_vacuum_test(10, 60)

    controller.start_cycle("prog_p1_134_5")

    assert controller.state.cycle.active is False
    assert controller.state.vacuum_test.active is True


def test_vt003_vacuum_test_cannot_start_during_cycle():
    controller = SterilizerController(port=FakePort(), clock=FakeClock())
    controller.start_cycle("prog_p1_134_5")

    controller.start_vacuum_test(10, 60)

    assert controller.state.vacuum_test.active is False
    assert controller.state.cycle.active is True


def test_vt003_second_vacuum_test_ignored_while_running():
    clock = FakeClock()
    controller = SterilizerController(port=FakePort(), clock=clock)
    controller.start_vacuum_test(10, 60)
    controller.step(1.0)
    before = controller.state.vacuum_test

    controller.start_vacuum_test(20, 20)

    assert controller.state.vacuum_test == before
