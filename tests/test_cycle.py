"""
Title: Sterilization Cycle Sequencing Unit and Integration Tests
Author: Alex Cooke
Date Created: 2026-02-04
Last Modified: 2026-02-10
Version: 1.2

Purpose:
Verifies the sterilization cycle state machine of the SterilizerController:
phase sequencing and pre-vacuum pulse counting, the door interlock on start,
program override resolution, operator stop, and a full nominal cycle run
against the physics simulation backend.

Targeted Requirements (Verification Only):
- STZ-FR001: Phase sequence PREHEAT -> PREVACUUM (xN) -> HEAT_UP ->
  STERILIZATION -> DRYING -> DEPRESSURIZE -> COOLING -> COMPLETE.
- STZ-FR002: Door interlock on cycle start.
- STZ-FR003: Program override resolution.
- STZ-FR004: Operator stop.
- STZ-HR001: One cycle summary per terminated cycle.

Scope and Limitations:
- Unit tests use a scripted port returning fixed readings.
- Integration tests drive SimulationPort and controller with dt = 1 s.

Safety Notice:
This file is a test artefact intended solely for verification and assessment.

Dependencies:
- Python 3.10+
- pytest
- sterilizer_controller.py
- sims/steam_simulator.py

Related Documents:
- STZ Unit Test Plan
- STZ Requirements Specification

Safety and Certification Disclaimer:
All artefacts in this repository are produced for academic assessment purposes only.
They do not represent certified software and must not be used in real-world medical
or safety-critical systems.
"""

from dataclasses import replace

import pytest

from cycle_phases import CycleResult, ErrorCode, Phase
from program_configuration import DEFAULT_PROGRAMS, ProgramNotFoundError
from sims.steam_simulator import SimulationPort
from sterilizer_controller import PHASE_DEFAULTS, SterilizerController
from sterilizer_port import ActuatorCommand, PhysicalReading


P1 = "prog_p1_134_5"


class FakeClock:
    # Deterministic clock manually advanced by tests
    def __init__(self, start: float = 1000.0):
        self.t: float = float(start)

    def __call__(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


class FakePort:
    # Scripted plant: returns whatever reading the test sets, records writes
    def __init__(self, **values):
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
        self.set(**values)
        self.writes: list[ActuatorCommand] = []

    def set(self, **values) -> None:
        self.reading = replace(self.reading, **values)

    def read(self) -> PhysicalReading:
        return self.reading

    def write(self, command: ActuatorCommand) -> None:
        self.writes.append(command)


class SpySterilizerController(SterilizerController):
    # Controller capturing log lines
    def __init__(self, port, clock):
        super().__init__(port=port, clock=clock)
        self.logs: list[str] = []

    def log(self, msg: str) -> None:
        self.logs.append(msg)


def run_until(controller, port, clock, predicate, max_steps: int = 5000, dt: float = 1.0) -> int:
    # Steps plant then controller until predicate(controller) holds.
    for n in range(1, max_steps + 1):
        if isinstance(port, SimulationPort):
            port.step(dt)
        clock.advance(dt)
        controller.step(dt)
        if predicate(controller):
            return n
    raise AssertionError(f"condition not reached in {max_steps} steps (phase={controller.phase.name})")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def port():
    return FakePort()


@pytest.fixture
def controller(port, clock):
    return SpySterilizerController(port=port, clock=clock)


@pytest.fixture
def rig(clock):
    sim = SimulationPort()
    sim.set_door_open(False)
    c = SpySterilizerController(port=sim, clock=clock)
    c.close_door()
    return c, sim


# -----------------------------
# STZ-FR002 door interlock
# -----------------------------

def test_fr002_start_with_door_closed_and_locked_enters_preheat(controller):
    controller.start_cycle(P1)

    cyc = controller.state.cycle
    assert cyc.active is True
    assert cyc.current_phase == Phase.PREHEAT
    assert cyc.phase_total_s == PHASE_DEFAULTS[Phase.PREHEAT]
    assert cyc.current_program.id == P1
    assert controller.state.errors == ()


@pytest.mark.parametrize(
    "door",
    [
        {"door_open": True, "door_locked": False},
        {"door_open": False, "door_locked": False},
        {"door_open": True, "door_locked": True},
    ],
)
def test_fr002_start_with_door_not_secured_raises_door_open(port, controller, door):
    port.set(**door)

    controller.start_cycle(P1)

    st = controller.state
    assert st.cycle.active is False
    assert st.cycle.current_phase == Phase.ERROR
    assert [e.code for e in st.errors] == [ErrorCode.DOOR_OPEN]
    # no cycle was started, so nothing to summarise
    assert st.cycle_history == ()


def test_fr002_interlock_uses_fresh_reading_not_last_step(port, controller):
    port.set(door_open=True, door_locked=False)
    controller.step(1.0)

    port.set(door_open=False, door_locked=True)
    controller.start_cycle(P1)

    assert controller.state.cycle.active is True


def test_unknown_program_raises_and_leaves_state_unchanged(controller):
    before = controller.state

    with pytest.raises(ProgramNotFoundError):
        controller.start_cycle("prog_does_not_exist")

    assert controller.state is before


def test_start_ignored_while_cycle_active(controller):
    controller.start_cycle(P1)
    controller.step(1.0)
    before = controller.state.cycle

    controller.start_cycle("prog_p3_121_20")

    assert controller.state.cycle == before
    assert any("already active" in m for m in controller.logs)


# -----------------------------
# STZ-FR001 phase sequencing
# -----------------------------

def test_fr001_preheat_commands_heater_with_valves_closed(port, controller):
    controller.start_cycle(P1)
    controller.step(1.0)

    cmd = port.writes[-1]
    assert cmd.heater_on is True
    assert cmd.steam_inlet_valve_open is False
    assert cmd.steam_exhaust_valve_open is False
    assert cmd.vacuum_pump_on is False


def test_fr001_preheat_exits_when_generator_hot(port, controller):
    controller.start_cycle(P1)
    port.set(generator_temperature_c=129.0)

    controller.step(1.0)

    assert controller.phase == Phase.PREVACUUM
    assert controller.pulse_count == 1


def test_fr001_preheat_exits_on_budget_when_generator_cold(controller):
    controller.start_cycle(P1)

    for _ in range(60):
        controller.step(1.0)
    assert controller.phase == Phase.PREHEAT

    controller.step(1.0)
    assert controller.phase == Phase.PREVACUUM


def test_fr001_prevacuum_pulses_match_program_count(port, controller):
    port.set(generator_temperature_c=140.0, chamber_pressure_mpa=-0.08)
    controller.start_cycle(P1)
    controller.step(1.0)
    assert controller.phase == Phase.PREVACUUM

    # each pulse lasts until elapsed exceeds the 20 s budget
    for _ in range(3 * 21):
        controller.step(1.0)

    assert controller.phase == Phase.HEAT_UP
    pulses = [m for m in controller.logs if "PREVACUUM (pulse" in m]
    assert pulses == [
        "Phase -> PREVACUUM (pulse 1)",
        "Phase -> PREVACUUM (pulse 2)",
        "Phase -> PREVACUUM (pulse 3)",
    ]


def test_fr001_phase_elapsed_resets_on_each_transition(port, controller):
    port.set(generator_temperature_c=140.0)
    controller.start_cycle(P1)
    for _ in range(5):
        controller.step(1.0)

    cyc = controller.state.cycle
    assert cyc.current_phase == Phase.PREVACUUM
    assert cyc.phase_elapsed_s == pytest.approx(4.0)
    assert cyc.total_elapsed_s == pytest.approx(5.0)


def test_fr001_sterilization_admits_steam_only_below_set_point(port, controller):
    controller.start_cycle(P1)
    controller.enter_phase(Phase.STERILIZATION, 300)

    port.set(chamber_temperature_c=133.5)
    controller.step(1.0)
    assert port.writes[-1].steam_inlet_valve_open is True

    port.set(chamber_temperature_c=134.2)
    controller.step(1.0)
    assert port.writes[-1].steam_inlet_valve_open is False


def test_fr001_drying_uses_default_when_program_has_none(port, controller):
    port.set(chamber_temperature_c=121.0)
    controller.start_cycle("prog_p5_121_liquids")
    controller.enter_phase(Phase.STERILIZATION, 1800)

    for _ in range(1800):
        controller.step(1.0)

    cyc = controller.state.cycle
    assert cyc.current_phase == Phase.DRYING
    assert cyc.phase_total_s == pytest.approx(30.0)


def test_fr001_cooling_completes_with_success_summary(port, clock, controller):
    controller.start_cycle(P1)
    controller.enter_phase(Phase.COOLING)
    port.set(chamber_temperature_c=55.0)
    clock.advance(12.0)

    controller.step(1.0)

    st = controller.state
    assert st.cycle.current_phase == Phase.COMPLETE
    assert st.cycle.active is False
    assert len(st.cycle_history) == 1

    summary = st.cycle_history[0]
    assert summary.result == CycleResult.SUCCESS
    assert summary.primary_error_code is None
    assert summary.program_id == P1
    assert summary.duration_s == pytest.approx(12.0)
    assert port.writes[-1].heater_on is False


# -----------------------------
# STZ-FR003 program overrides
# -----------------------------

def test_fr003_override_applied_at_start_template_untouched(controller):
    controller.set_program_override(P1, set_temp_c=121.0)
    controller.set_program_override(P1, sterilization_time_s=60)

    controller.start_cycle(P1)

    prog = controller.state.cycle.current_program
    assert prog.set_temp_c == 121.0
    assert prog.sterilization_time_s == 60
    assert prog.pre_vacuum_count == 3
    assert DEFAULT_PROGRAMS[0].set_temp_c == 134.0

    stored = controller.state.override_for(P1)
    assert stored.set_temp_c == 121.0
    assert stored.sterilization_time_s == 60


def test_fr003_override_for_unknown_program_rejected(controller):
    with pytest.raises(ProgramNotFoundError):
        controller.set_program_override("prog_missing", set_temp_c=121.0)


def test_fr003_override_with_unknown_field_rejected(controller):
    with pytest.raises(TypeError):
        controller.set_program_override(P1, pressure_mpa=0.2)


# -----------------------------
# STZ-FR004 operator stop
# -----------------------------

def test_fr004_stop_forces_depressurize_and_records_abort(port, controller):
    controller.start_cycle(P1)
    controller.enter_phase(Phase.STERILIZATION, 300)
    controller.step(1.0)

    controller.stop_cycle()

    st = controller.state
    assert st.cycle.active is False
    assert st.cycle.current_phase == Phase.DEPRESSURIZE
    assert st.cycle.phase_elapsed_s == 0.0
    assert st.cycle_history[0].result == CycleResult.ABORTED
    assert st.cycle_history[0].primary_error_code == ErrorCode.USER_STOP

    vent = port.writes[-1]
    assert vent.heater_on is False
    assert vent.steam_inlet_valve_open is False
    assert vent.steam_exhaust_valve_open is True


def test_fr004_stopped_cycle_stays_in_depressurize(port, controller):
    controller.start_cycle(P1)
    controller.stop_cycle()
    port.set(chamber_pressure_mpa=0.0)

    for _ in range(50):
        controller.step(1.0)

    assert controller.phase == Phase.DEPRESSURIZE
    assert len(controller.state.cycle_history) == 1


def test_fr004_stop_without_cycle_is_noop(controller):
    before = controller.state

    controller.stop_cycle()

    assert controller.state is before
    assert controller.phase == Phase.IDLE


def test_fr004_new_cycle_can_start_after_stop(controller):
    controller.start_cycle(P1)
    controller.stop_cycle()

    controller.start_cycle(P1)

    assert controller.state.cycle.active is True
    assert controller.phase == Phase.PREHEAT


# -----------------------------
# Full cycle against the simulation backend
# -----------------------------

def test_nominal_cycle_completes_against_simulation(rig, clock):
    controller, sim = rig
    visited: list[Phase] = []

    def on_change(state):
        if not visited or visited[-1] != state.cycle.current_phase:
            visited.append(state.cycle.current_phase)

    controller.subscribe(on_change)
    controller.start_cycle(P1)
    run_until(controller, sim, clock, lambda c: c.phase in (Phase.COMPLETE, Phase.ERROR))

    assert visited == [
        Phase.PREHEAT,
        Phase.PREVACUUM,
        Phase.HEAT_UP,
        Phase.STERILIZATION,
        Phase.DRYING,
        Phase.DEPRESSURIZE,
        Phase.COOLING,
        Phase.COMPLETE,
    ]
    assert controller.state.errors == ()
    assert controller.state.error_history == ()

    pulses = [m for m in controller.logs if "PREVACUUM (pulse" in m]
    assert len(pulses) == 3

    summary = controller.state.cycle_history[0]
    assert summary.success is True
    assert summary.max_temperature_c >= 132.0
    assert summary.max_pressure_mpa < 0.35


def test_nominal_cycle_with_shortened_program_holds_temperature(rig, clock):
    controller, sim = rig
    controller.set_program_override(P1, sterilization_time_s=120, drying_time_s=30)
    controller.start_cycle(P1)

    run_until(controller, sim, clock, lambda c: c.phase == Phase.STERILIZATION)
    temps = []
    for _ in range(100):
        sim.step(1.0)
        controller.step(1.0)
        temps.append(controller.state.sensors.chamber_temperature_c)

    assert controller.phase == Phase.STERILIZATION
    assert min(temps) >= 131.0
    assert max(temps) <= 142.0

    run_until(controller, sim, clock, lambda c: c.phase in (Phase.COMPLETE, Phase.ERROR))
    assert controller.state.cycle_history[0].result == CycleResult.SUCCESS


def test_stop_during_sterilization_against_simulation(rig, clock):
    controller, sim = rig
    controller.start_cycle(P1)
    run_until(controller, sim, clock, lambda c: c.phase == Phase.STERILIZATION)

    controller.stop_cycle()
    for _ in range(30):
        sim.step(1.0)
        controller.step(1.0)

    st = controller.state
    assert st.cycle.current_phase == Phase.DEPRESSURIZE
    assert st.cycle.active is False
    assert st.sensors.chamber_pressure_mpa < 0.02
    assert [c.primary_error_code for c in st.cycle_history] == [ErrorCode.USER_STOP]
