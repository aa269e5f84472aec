"""
Title: Steam Sterilizer Process Controller (STZ Controller)
Author: Alex Cooke
Date Created: 2026-02-03
Last Modified: 2026-02-11
Version: 1.7

Purpose:
Implements the deterministic, tick-driven process controller of the Steam
Sterilizer Digital Twin. Each control step pulls one reading through the
SterilizerPort, applies calibration offsets, validates the reading, advances
the sterilization cycle and vacuum leak test state machines, evaluates alarm
conditions and writes one actuator command back through the port. The
controller is the sole owner of the SterilizerState and publishes an immutable
snapshot after every step and every state-changing command.

Targeted Requirements:
- STZ-FR001: Cycle shall progress PREHEAT -> PREVACUUM (xN) -> HEAT_UP ->
  STERILIZATION -> DRYING -> DEPRESSURIZE -> COOLING -> COMPLETE.
- STZ-FR002: A cycle shall start only with the door closed and locked;
  otherwise DOOR_OPEN is raised immediately.
- STZ-FR003: Program overrides are resolved on top of the template at start.
- STZ-FR004: Operator stop aborts the cycle (USER_STOP) and forces DEPRESSURIZE.
- STZ-FR005: ERROR is absorbing until reset_errors(); history survives reset.
- STZ-SR001: Chamber overpressure (> 0.35 MPa) raises OVERPRESSURE.
- STZ-SR002: Generator water level below 5 % raises NO_WATER.
- STZ-SR003: Chamber temperature above set point + 8 degC raises OVERTEMP.
- STZ-SR004: Heat-up, drying and hold under-temperature watchdogs raise HEATING_TIMEOUT.
- STZ-SR005: Insufficient pre-vacuum raises VACUUM_FAIL.
- STZ-SR006: Door reported open during an active cycle raises DOOR_OPEN.
- STZ-SR007: Non-finite or out-of-range readings raise SENSOR_FAILURE.
- STZ-VT001: Vacuum leak test STABILIZE -> TEST -> verdict sequencing.
- STZ-VT002: Leak rate = max(0, p1 - p0) / T_min; PASS iff <= 0.005 MPa/min.
- STZ-VT003: Vacuum test and sterilization cycle are mutually exclusive.
- STZ-PF001: Power failure pauses the cycle; continue restores it verbatim,
  abort records POWER_ERROR.
- STZ-PF002: Calibration offsets are applied additively before validation.
- STZ-HR001: Cycle summaries are recorded exactly once per terminated cycle.

Scope and Limitations:
- Single chamber, single-threaded, cooperative; step(dt) never blocks.
- The controller holds no timers of its own; an external driver supplies dt.
- Alarms are recorded and surfaced through the snapshot; they never raise.
- Intended for simulation, design exploration, and requirements validation only.

Safety Notice:
This software is for academic and illustrative purposes only.
It is not a certified medical device controller and must not be used to
release sterilized goods.
"""

# Change Log (requirements coverage summary):
#
# 1.7 (2026-02-12)
#   - The success summary is written after alarm evaluation, so an alarm in
#     the completing tick closes the cycle as an error.
#   - reset_errors() with no active error leaves state untouched.
#
# 1.6 (2026-02-11)
#   - Cycle summaries are finalised exactly once per started cycle; an alarm
#     raised with no open cycle (e.g. DOOR_OPEN on a refused start) no longer
#     produces a summary for the previous program.
#   - Starting a cycle while a power-failure pause is pending now closes the
#     paused cycle with an aborted/POWER_ERROR summary before starting.
#
# 1.5 (2026-02-10)
#   - Added manual actuator override forwarding and the low-water warning.
#
# 1.4 (2026-02-08)
#   - Implemented STZ-PF001 power failure pause/continue/abort and
#     STZ-PF002 calibration offsets.
#
# 1.3 (2026-02-06)
#   - Implemented STZ-VT001..VT003 vacuum leak test.
#
# 1.2 (2026-02-05)
#   - Implemented alarm evaluation STZ-SR001..SR007 after phase transitions.
#
# 1.1 (2026-02-04)
#   - Added program overrides (STZ-FR003) and operator stop (STZ-FR004).
#
# 1.0 (2026-02-03)
#   - Initial cycle state machine (STZ-FR001, STZ-FR002).


import itertools
import logging
import math
import time
from dataclasses import replace
from typing import Callable, Iterable

from cycle_phases import CycleResult, ErrorCode, Phase, VacuumTestPhase, VacuumTestVerdict
from program_configuration import DEFAULT_PROGRAMS, ProgramConfig, ProgramNotFoundError, ProgramOverride
from sterilizer_port import ALL_PROCESS_ACTUATORS_OFF, ActuatorCommand, ManualOverride, SterilizerPort
from sterilizer_state import (
    CYCLE_HISTORY_CAPACITY,
    ERROR_HISTORY_CAPACITY,
    INITIAL_READING,
    VACUUM_TEST_HISTORY_CAPACITY,
    BoundedHistory,
    CalibrationOffsets,
    CycleRuntime,
    CycleSummary,
    ErrorEvent,
    PowerFailureState,
    SterilizerState,
    VacuumTestResult,
    VacuumTestState,
)

logger = logging.getLogger(__name__)


PHASE_DEFAULTS: dict[Phase, float] = {
    Phase.IDLE: 0.0,
    Phase.PREHEAT: 60.0,
    Phase.PREVACUUM: 20.0,
    Phase.HEAT_UP: 90.0,
    Phase.STERILIZATION: 300.0,
    Phase.DRYING: 60.0,
    Phase.DEPRESSURIZE: 20.0,
    Phase.COOLING: 40.0,
    Phase.COMPLETE: 0.0,
    Phase.ERROR: 0.0,
}

DEFAULT_DRYING_TIME_S = 30.0

# Transition guards
PREHEAT_MIN_GENERATOR_TEMP_C = 100.0
PREHEAT_SET_TEMP_MARGIN_C = 5.0
HEAT_UP_SET_TEMP_MARGIN_C = 2.0
DEPRESSURIZED_MPA = 0.02
COOLED_TEMP_C = 60.0

# Alarm thresholds
OVERPRESSURE_MPA = 0.35
NO_WATER_PCT = 5.0
LOW_WATER_WARNING_PCT = 20.0
OVERTEMP_MARGIN_C = 8.0
HEAT_UP_GRACE_S = 30.0
HEAT_UP_TIMEOUT_MARGIN_C = 5.0
PREVACUUM_GRACE_S = 5.0
PREVACUUM_MAX_PRESSURE_MPA = 0.05
DRYING_GRACE_S = 60.0
HOLD_UNDERTEMP_MARGIN_C = 3.0
HOLD_UNDERTEMP_LIMIT_S = 30.0

# Sensor plausibility window
SENSOR_TEMP_RANGE_C = (-10.0, 200.0)
SENSOR_PRESSURE_RANGE_MPA = (-0.2, 0.5)
SENSOR_WATER_RANGE_PCT = (0.0, 110.0)

# Vacuum leak test
LEAK_RATE_LIMIT_MPA_PER_MIN = 0.005
DEFAULT_STABILIZATION_TIME_S = 300.0
DEFAULT_TEST_TIME_S = 300.0

# Heater off, steam shut, pump off, exhaust open to vent the chamber.
VENT_COMMAND = ActuatorCommand(
    heater_on=False,
    steam_inlet_valve_open=False,
    steam_exhaust_valve_open=True,
    vacuum_pump_on=False,
)

VACUUM_DRAW_COMMAND = ActuatorCommand(
    heater_on=False,
    steam_inlet_valve_open=False,
    steam_exhaust_valve_open=True,
    vacuum_pump_on=True,
)


def compute_leak_rate(base_pressure_mpa: float, final_pressure_mpa: float, test_time_s: float) -> float:
    # Pressure rise per minute; a falling pressure counts as no leak.
    duration_min = test_time_s / 60.0
    if duration_min <= 0.0:
        return 0.0
    return max(0.0, final_pressure_mpa - base_pressure_mpa) / duration_min


def leak_verdict(leak_rate_mpa_per_min: float) -> VacuumTestVerdict:
    if leak_rate_mpa_per_min <= LEAK_RATE_LIMIT_MPA_PER_MIN:
        return VacuumTestVerdict.PASS
    return VacuumTestVerdict.FAIL


class SterilizerController:
    def __init__(
        self,
        port: SterilizerPort,
        programs: Iterable[ProgramConfig] = DEFAULT_PROGRAMS,
        clock: Callable[[], float] = time.time,
        fault_recorder=None,
    ):
        self._port = port
        self._programs: dict[str, ProgramConfig] = {p.id: p for p in programs}
        self._clock = clock
        self._fault_recorder = fault_recorder

        # Authoritative state
        self._sensors = INITIAL_READING
        self._cycle = CycleRuntime()
        self._errors: list[ErrorEvent] = []
        self._warnings: list[ErrorEvent] = []
        self._error_history: BoundedHistory[ErrorEvent] = BoundedHistory(ERROR_HISTORY_CAPACITY)
        self._cycle_history: BoundedHistory[CycleSummary] = BoundedHistory(CYCLE_HISTORY_CAPACITY)
        self._vacuum_test = VacuumTestState()
        self._vacuum_test_history: BoundedHistory[VacuumTestResult] = BoundedHistory(
            VACUUM_TEST_HISTORY_CAPACITY
        )
        self._overrides: dict[str, ProgramOverride] = {}
        self._offsets = CalibrationOffsets()
        self._power_failure = PowerFailureState()
        self._manual = ManualOverride()

        # Per-cycle accumulators
        self._cycle_open = False  # started and not yet summarised
        self._completed = False  # reached COMPLETE this tick, summary pending
        self._cycle_started_at = 0.0
        self._max_temp_c = 0.0
        self._max_pressure_mpa = 0.0
        self._pulse_count = 0
        self._hold_low_s = 0.0
        self._paused_cycle: CycleRuntime | None = None

        self._low_water_warned = False

        # Actuator bookkeeping
        self._pending = ActuatorCommand()
        self._last_commanded: dict[str, bool] = {}

        self._id_counters = {prefix: itertools.count(1) for prefix in ("e", "w", "c", "vt")}
        self._listeners: list[Callable[[SterilizerState], None]] = []
        self._snapshot = self._build_snapshot()

    # -------------------------
    # Properties / small helpers
    # -------------------------

    @property
    def state(self) -> SterilizerState:
        return self._snapshot

    @property
    def phase(self) -> Phase:
        return self._cycle.current_phase

    @property
    def pulse_count(self) -> int:
        return self._pulse_count

    @property
    def paused_cycle(self) -> CycleRuntime | None:
        return self._paused_cycle

    @property
    def programs(self) -> tuple[ProgramConfig, ...]:
        return tuple(self._programs.values())

    def log(self, msg: str) -> None:
        logger.info(msg)

    def subscribe(self, callback: Callable[[SterilizerState], None]) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def resolve_program(self, program_id: str) -> ProgramConfig:
        base = self._programs.get(program_id)
        if base is None:
            raise ProgramNotFoundError(f"Program not found: {program_id}")
        return base.with_override(self._overrides.get(program_id))

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._id_counters[prefix])}"

    # -------------------------
    # Core update loop
    # -------------------------

    def step(self, dt_s: float) -> SterilizerState:
        # Advances the controller by one control tick of dt_s seconds.
        if dt_s <= 0.0:
            return self._snapshot

        self._pending = ActuatorCommand()

        self._sync_sensors()
        self._validate_sensors()
        self._advance_timers(dt_s)
        self._advance_vacuum_test(dt_s)
        self._advance_cycle(dt_s)

        # Alarms run after transitions so an alarm overrides this tick's transition.
        self._evaluate_alarms()
        self._update_low_water_warning()
        self._finish_completed_cycle()

        self._write(self._pending)
        self._pending = ActuatorCommand()

        self._publish()
        return self._snapshot

    def _sync_sensors(self) -> None:
        raw = self._port.read()
        self._sensors = self._offsets.apply(raw)

    def _validate_sensors(self) -> None:
        r = self._sensors
        temps = (r.chamber_temperature_c, r.generator_temperature_c)
        pressures = (r.chamber_pressure_mpa, r.generator_pressure_mpa, r.jacket_pressure_mpa)
        water = r.generator_water_level_pct

        if not all(math.isfinite(float(v)) for v in (*temps, *pressures, water)):
            self._push_error(ErrorCode.SENSOR_FAILURE, "Non-finite sensor reading")
            return

        t_lo, t_hi = SENSOR_TEMP_RANGE_C
        p_lo, p_hi = SENSOR_PRESSURE_RANGE_MPA
        w_lo, w_hi = SENSOR_WATER_RANGE_PCT
        implausible = (
            any(not (t_lo <= t <= t_hi) for t in temps)
            or any(not (p_lo <= p <= p_hi) for p in pressures)
            or not (w_lo <= water <= w_hi)
        )
        if implausible:
            self._push_error(ErrorCode.SENSOR_FAILURE, "Sensor reading outside plausible range")

    def _advance_timers(self, dt_s: float) -> None:
        if not self._cycle.active:
            return

        self._cycle = replace(
            self._cycle,
            phase_elapsed_s=self._cycle.phase_elapsed_s + dt_s,
            total_elapsed_s=self._cycle.total_elapsed_s + dt_s,
        )
        self._max_temp_c = max(self._max_temp_c, self._sensors.chamber_temperature_c)
        self._max_pressure_mpa = max(self._max_pressure_mpa, self._sensors.chamber_pressure_mpa)

    # -------------------------
    # Cycle state machine (STZ-FR001)
    # -------------------------

    def _advance_cycle(self, dt_s: float) -> None:
        program = self._cycle.current_program
        if not self._cycle.active or program is None:
            return

        r = self._sensors
        phase = self._cycle.current_phase
        elapsed = self._cycle.phase_elapsed_s
        budget = self._cycle.phase_total_s

        if phase == Phase.PREHEAT:
            self._issue(ActuatorCommand(
                heater_on=True, steam_inlet_valve_open=False,
                steam_exhaust_valve_open=False, vacuum_pump_on=False,
            ))
            preheat_target = max(PREHEAT_MIN_GENERATOR_TEMP_C, program.set_temp_c - PREHEAT_SET_TEMP_MARGIN_C)
            if r.generator_temperature_c >= preheat_target or elapsed > budget:
                self._pulse_count = 0
                self.enter_phase(Phase.PREVACUUM)
            return

        if phase == Phase.PREVACUUM:
            # Generator stays fired while the chamber is evacuated.
            self._issue(ActuatorCommand(
                heater_on=True, steam_inlet_valve_open=False,
                steam_exhaust_valve_open=True, vacuum_pump_on=True,
            ))
            if elapsed > budget:
                if self._pulse_count >= program.pre_vacuum_count:
                    self.enter_phase(Phase.HEAT_UP)
                else:
                    self.enter_phase(Phase.PREVACUUM)
            return

        if phase == Phase.HEAT_UP:
            self._issue(ActuatorCommand(
                heater_on=True, steam_inlet_valve_open=True,
                steam_exhaust_valve_open=False, vacuum_pump_on=False,
            ))
            reached = r.chamber_temperature_c >= program.set_temp_c - HEAT_UP_SET_TEMP_MARGIN_C
            if reached or elapsed > budget:
                self._hold_low_s = 0.0
                self.enter_phase(Phase.STERILIZATION, program.sterilization_time_s)
            return

        if phase == Phase.STERILIZATION:
            # Bang-bang steam admission around the set point.
            self._issue(ActuatorCommand(
                heater_on=True,
                steam_inlet_valve_open=r.chamber_temperature_c < program.set_temp_c,
                steam_exhaust_valve_open=False,
                vacuum_pump_on=False,
            ))
            if r.chamber_temperature_c < program.set_temp_c - HOLD_UNDERTEMP_MARGIN_C:
                self._hold_low_s += dt_s
            if elapsed >= program.sterilization_time_s:
                self.enter_phase(Phase.DRYING, self._drying_time_s(program))
            return

        if phase == Phase.DRYING:
            self._issue(VACUUM_DRAW_COMMAND)
            if elapsed >= self._drying_time_s(program):
                self.enter_phase(Phase.DEPRESSURIZE)
            return

        if phase == Phase.DEPRESSURIZE:
            self._issue(ActuatorCommand(
                heater_on=False, steam_inlet_valve_open=False,
                steam_exhaust_valve_open=True, vacuum_pump_on=False,
            ))
            if r.chamber_pressure_mpa <= DEPRESSURIZED_MPA or elapsed > budget:
                self.enter_phase(Phase.COOLING)
            return

        if phase == Phase.COOLING:
            self._issue(ALL_PROCESS_ACTUATORS_OFF)
            if r.chamber_temperature_c <= COOLED_TEMP_C or elapsed > budget:
                self.enter_phase(Phase.COMPLETE)
                self._cycle = replace(self._cycle, active=False)
                self._completed = True
            return

    def _finish_completed_cycle(self) -> None:
        # An alarm raised in the completing tick has already closed the cycle as an error.
        if not self._completed:
            return
        self._completed = False
        if self._cycle.current_phase != Phase.COMPLETE:
            return

        self.log(f"Cycle complete: program={self._cycle.current_program.id}")
        self._record_cycle(CycleResult.SUCCESS)

    def enter_phase(self, phase: Phase, total_s: float | None = None) -> None:
        # Entering a phase resets its elapsed time and sets its budget.
        if total_s is None:
            total_s = PHASE_DEFAULTS[phase]
        if phase == Phase.PREVACUUM:
            self._pulse_count += 1

        self._cycle = replace(
            self._cycle,
            current_phase=phase,
            phase_elapsed_s=0.0,
            phase_total_s=float(total_s),
        )

        if phase == Phase.PREVACUUM:
            self.log(f"Phase -> PREVACUUM (pulse {self._pulse_count})")
        else:
            self.log(f"Phase -> {phase.name}")

    @staticmethod
    def _drying_time_s(program: ProgramConfig) -> float:
        return float(program.drying_time_s) or DEFAULT_DRYING_TIME_S

    # -------------------------
    # Vacuum leak test (STZ-VT001 / VT002)
    # -------------------------

    def _advance_vacuum_test(self, dt_s: float) -> None:
        vt = self._vacuum_test
        if not vt.active or self._cycle.active:
            return

        elapsed = vt.elapsed_s + dt_s
        pressure = self._sensors.chamber_pressure_mpa

        if vt.phase == VacuumTestPhase.STABILIZE:
            if elapsed >= vt.stabilization_time_s:
                self._vacuum_test = replace(
                    vt, phase=VacuumTestPhase.TEST, elapsed_s=0.0, base_pressure_mpa=pressure
                )
                # Seal the chamber; the pressure rise from here is the leak.
                self._issue(ALL_PROCESS_ACTUATORS_OFF)
                self.log(f"Vacuum test: TEST phase, base pressure {pressure:.4f} MPa")
            else:
                self._vacuum_test = replace(vt, elapsed_s=elapsed)
                self._issue(VACUUM_DRAW_COMMAND)
            return

        if vt.phase == VacuumTestPhase.TEST:
            if elapsed < vt.test_time_s:
                self._vacuum_test = replace(vt, elapsed_s=elapsed)
                self._issue(ALL_PROCESS_ACTUATORS_OFF)
                return

            base = vt.base_pressure_mpa if vt.base_pressure_mpa is not None else pressure
            leak_rate = compute_leak_rate(base, pressure, vt.test_time_s)
            verdict = leak_verdict(leak_rate)
            now = self._clock()

            self._vacuum_test_history.push(VacuumTestResult(
                id=self._next_id("vt"),
                started_at=vt.started_at if vt.started_at is not None else now,
                ended_at=now,
                result=verdict,
                leak_rate_mpa_per_min=leak_rate,
            ))
            self._vacuum_test = VacuumTestState(
                stabilization_time_s=vt.stabilization_time_s,
                test_time_s=vt.test_time_s,
                result=verdict,
                leak_rate_mpa_per_min=leak_rate,
            )
            self._issue(ALL_PROCESS_ACTUATORS_OFF)
            self.log(f"Vacuum test {verdict.value}: leak rate {leak_rate:.5f} MPa/min")

    # -------------------------
    # Alarm evaluation (STZ-SR001..SR007)
    # -------------------------

    def _evaluate_alarms(self) -> None:
        if self._cycle.current_phase == Phase.ERROR:
            return

        r = self._sensors
        if r.chamber_pressure_mpa > OVERPRESSURE_MPA:
            self._push_error(ErrorCode.OVERPRESSURE, "Chamber overpressure")
        if r.generator_water_level_pct < NO_WATER_PCT:
            self._push_error(ErrorCode.NO_WATER, "Insufficient water in steam generator")

        program = self._cycle.current_program
        if self._cycle.active and program is not None:
            phase = self._cycle.current_phase
            elapsed = self._cycle.phase_elapsed_s
            budget = self._cycle.phase_total_s

            if r.chamber_temperature_c > program.set_temp_c + OVERTEMP_MARGIN_C:
                self._push_error(ErrorCode.OVERTEMP, "Chamber overtemperature")

            if (
                phase == Phase.HEAT_UP
                and elapsed > budget + HEAT_UP_GRACE_S
                and r.chamber_temperature_c < program.set_temp_c - HEAT_UP_TIMEOUT_MARGIN_C
            ):
                self._push_error(ErrorCode.HEATING_TIMEOUT, "Sterilization temperature not reached")

            if (
                phase == Phase.PREVACUUM
                and elapsed > budget + PREVACUUM_GRACE_S
                and r.chamber_pressure_mpa > PREVACUUM_MAX_PRESSURE_MPA
            ):
                self._push_error(ErrorCode.VACUUM_FAIL, "Pre-vacuum not achieved")

            if phase == Phase.DRYING and elapsed > budget + DRYING_GRACE_S:
                self._push_error(ErrorCode.HEATING_TIMEOUT, "Drying exceeded allowed time")

            if phase == Phase.STERILIZATION and self._hold_low_s > HOLD_UNDERTEMP_LIMIT_S:
                self._push_error(ErrorCode.HEATING_TIMEOUT, "Hold temperature below set point")

        if self._cycle.active and r.door_open:
            self._push_error(ErrorCode.DOOR_OPEN, "Door open during cycle")

    def _update_low_water_warning(self) -> None:
        level = self._sensors.generator_water_level_pct
        if self._cycle.current_phase == Phase.ERROR or not math.isfinite(float(level)):
            return
        if level >= LOW_WATER_WARNING_PCT:
            self._low_water_warned = False
            return
        if level < NO_WATER_PCT or self._low_water_warned:
            return

        self._low_water_warned = True
        self._warnings.append(ErrorEvent(
            id=self._next_id("w"),
            code=ErrorCode.NO_WATER,
            message="Steam generator water level low",
            timestamp=self._clock(),
        ))
        self.log(f"WARNING: generator water level low ({level:.1f} %)")

    def _push_error(self, code: ErrorCode, message: str) -> None:
        # ERROR is absorbing: only the first alarm is recorded until reset.
        if self._cycle.current_phase == Phase.ERROR:
            return

        evt = ErrorEvent(id=self._next_id("e"), code=code, message=message, timestamp=self._clock())
        self._errors.append(evt)
        self._error_history.push(evt)
        self._record_fault(evt)
        self.log(f"ALARM {code.value}: {message}")

        self._cycle = replace(self._cycle, current_phase=Phase.ERROR, active=False)

        if self._vacuum_test.active:
            self.log("Vacuum test aborted by alarm")
            self._vacuum_test = VacuumTestState(
                stabilization_time_s=self._vacuum_test.stabilization_time_s,
                test_time_s=self._vacuum_test.test_time_s,
            )

        # An alarm ends a cycle paused by power failure as well.
        if self._power_failure.pending:
            self._power_failure = PowerFailureState()
            self._paused_cycle = None

        self._issue(VENT_COMMAND)
        self._record_cycle(CycleResult.ERROR, code)

    def _record_fault(self, evt: ErrorEvent) -> None:
        if self._fault_recorder is None:
            return
        self._fault_recorder.record(evt)

    def _record_cycle(self, result: CycleResult, primary_error_code: ErrorCode | None = None) -> None:
        program = self._cycle.current_program
        if not self._cycle_open or program is None:
            return

        ended_at = self._clock()
        self._cycle_history.push(CycleSummary(
            id=self._next_id("c"),
            started_at=self._cycle_started_at,
            ended_at=ended_at,
            duration_s=max(0.0, ended_at - self._cycle_started_at),
            program_id=program.id,
            program_name=program.name,
            result=result,
            primary_error_code=primary_error_code,
            max_temperature_c=self._max_temp_c,
            max_pressure_mpa=self._max_pressure_mpa,
            errors=tuple(self._errors),
        ))
        self._cycle_open = False

    # -------------------------
    # Actuation
    # -------------------------

    def _issue(self, command: ActuatorCommand) -> None:
        # Collect this tick's command; later fields overwrite earlier ones.
        self._pending = self._pending.merged_with(command)

    def _write(self, command: ActuatorCommand) -> None:
        for name, value in command.present_fields().items():
            if self._last_commanded.get(name) != value:
                self.log(f"Actuator {name}: {value}")
                self._last_commanded[name] = value
        self._port.write(command)

    # -------------------------
    # Commands
    # -------------------------

    def start_cycle(self, program_id: str) -> None:
        program = self.resolve_program(program_id)

        if self._cycle.current_phase == Phase.ERROR:
            self.log("Start rejected: reset errors first")
            return
        if self._cycle.active:
            self.log("Start rejected: cycle already active")
            return
        if self._vacuum_test.active:
            self.log("Start rejected: vacuum test active")
            return

        if self._power_failure.pending:
            self._abort_paused_cycle()

        # Interlock is checked against a fresh reading, not the last tick's mirror.
        self._sync_sensors()
        door = self._sensors
        if door.door_open or not door.door_locked:
            self._push_error(ErrorCode.DOOR_OPEN, "Door open or not locked")
            self._write(self._pending)
            self._pending = ActuatorCommand()
            self._publish()
            return

        now = self._clock()
        self._cycle_open = True
        self._cycle_started_at = now
        self._max_temp_c = self._sensors.chamber_temperature_c
        self._max_pressure_mpa = self._sensors.chamber_pressure_mpa
        self._pulse_count = 0
        self._hold_low_s = 0.0
        self._errors = []
        self._warnings = []
        self._power_failure = PowerFailureState()
        self._paused_cycle = None

        self._cycle = CycleRuntime(
            active=True,
            current_phase=Phase.PREHEAT,
            phase_elapsed_s=0.0,
            phase_total_s=PHASE_DEFAULTS[Phase.PREHEAT],
            total_elapsed_s=0.0,
            current_program=program,
        )
        self.log(f"Cycle started: program={program.id} set_temp={program.set_temp_c:.1f}C")
        self._publish()

    def stop_cycle(self) -> None:
        if self._cycle.current_phase == Phase.ERROR:
            self.log("Stop ignored: controller in ERROR")
            return
        if not self._cycle_open:
            self.log("Stop ignored: no cycle in progress")
            return

        self._power_failure = PowerFailureState()
        self._paused_cycle = None

        # Phase is set directly; DEPRESSURIZE is not advanced further once inactive.
        self._cycle = replace(
            self._cycle,
            active=False,
            current_phase=Phase.DEPRESSURIZE,
            phase_elapsed_s=0.0,
            phase_total_s=PHASE_DEFAULTS[Phase.DEPRESSURIZE],
        )
        self.log("Cycle stopped by operator")
        self._record_cycle(CycleResult.ABORTED, ErrorCode.USER_STOP)
        self._write(VENT_COMMAND)
        self._publish()

    def open_door(self) -> None:
        self._write(ActuatorCommand(door_lock_on=False))
        self._publish()

    def close_door(self) -> None:
        self._write(ActuatorCommand(door_lock_on=True))
        self._publish()

    def start_vacuum_test(
        self,
        stabilization_time_s: float = DEFAULT_STABILIZATION_TIME_S,
        test_time_s: float = DEFAULT_TEST_TIME_S,
    ) -> None:
        if stabilization_time_s <= 0 or test_time_s <= 0:
            raise ValueError("vacuum test durations must be positive")

        if self._cycle.active:
            self.log("Vacuum test rejected: cycle active")
            return
        if self._power_failure.pending:
            self.log("Vacuum test rejected: power failure pending")
            return
        if self._vacuum_test.active:
            self.log("Vacuum test rejected: test already running")
            return
        if self._cycle.current_phase == Phase.ERROR:
            self.log("Vacuum test rejected: reset errors first")
            return

        self._vacuum_test = VacuumTestState(
            active=True,
            phase=VacuumTestPhase.STABILIZE,
            elapsed_s=0.0,
            stabilization_time_s=float(stabilization_time_s),
            test_time_s=float(test_time_s),
            started_at=self._clock(),
            base_pressure_mpa=None,
        )
        self.log(f"Vacuum test started: stabilize {stabilization_time_s:.0f}s, test {test_time_s:.0f}s")
        self._write(VACUUM_DRAW_COMMAND)
        self._publish()

    def reset_errors(self) -> None:
        if not self._errors and self._cycle.current_phase != Phase.ERROR:
            return

        # errors are cleared; error_history is kept for audit
        self._errors = []
        self._warnings = []
        self._low_water_warned = False
        if self._cycle.current_phase == Phase.ERROR:
            self._cycle = CycleRuntime()
            self.log("Errors reset; controller IDLE")
        self._publish()

    def set_program_override(self, program_id: str, **values) -> None:
        if program_id not in self._programs:
            raise ProgramNotFoundError(f"Program not found: {program_id}")

        patch = ProgramOverride(**values)
        current = self._overrides.get(program_id, ProgramOverride())
        self._overrides[program_id] = current.merged_with(patch)
        self._publish()

    def set_calibration_offsets(self, **values) -> None:
        self._offsets = replace(self._offsets, **values)
        self._publish()

    def reset_calibration_offsets(self) -> None:
        self._offsets = CalibrationOffsets()
        self._publish()

    def set_manual_actuators(self, **values) -> None:
        self._manual = ManualOverride(**values)
        forward = getattr(self._port, "set_manual_actuators", None)
        if forward is not None:
            forward(self._manual)
        self._publish()

    # -------------------------
    # Power failure (STZ-PF001)
    # -------------------------

    def power_fail(self, message: str | None = None) -> None:
        if not self._cycle.active:
            return

        self._paused_cycle = self._cycle
        self._cycle = replace(self._cycle, active=False)
        self._power_failure = PowerFailureState(pending=True, message=message)
        self.log(f"Power failure: {message or 'no message'}")
        # Loss of power de-energises every process actuator.
        self._write(ALL_PROCESS_ACTUATORS_OFF)
        self._publish()

    def continue_after_power(self) -> None:
        if not self._power_failure.pending or self._paused_cycle is None:
            return

        self._cycle = replace(self._paused_cycle, active=True)
        self._paused_cycle = None
        self._power_failure = PowerFailureState()
        self.log(f"Cycle resumed after power failure in {self._cycle.current_phase.name}")
        self._publish()

    def abort_after_power(self) -> None:
        if not self._power_failure.pending:
            return

        self._abort_paused_cycle()
        self._cycle = CycleRuntime()
        self._publish()

    def _abort_paused_cycle(self) -> None:
        self._record_cycle(CycleResult.ABORTED, ErrorCode.POWER_ERROR)
        self._power_failure = PowerFailureState()
        self._paused_cycle = None
        self.log("Cycle aborted after power failure")

    # -------------------------
    # Snapshot publication
    # -------------------------

    def _build_snapshot(self) -> SterilizerState:
        return SterilizerState(
            sensors=self._sensors,
            cycle=self._cycle,
            errors=tuple(self._errors),
            warnings=tuple(self._warnings),
            error_history=self._error_history.items(),
            cycle_history=self._cycle_history.items(),
            vacuum_test=self._vacuum_test,
            vacuum_test_history=self._vacuum_test_history.items(),
            program_overrides=tuple(sorted(self._overrides.items())),
            calibration_offsets=self._offsets,
            power_failure=self._power_failure,
            manual_override=self._manual,
        )

    def _publish(self) -> None:
        self._snapshot = self._build_snapshot()
        for callback in list(self._listeners):
            callback(self._snapshot)
