"""
Title: Sterilizer Runtime Data Model and State Snapshot
Author: Alex Cooke
Date Created: 2026-02-03
Last Modified: 2026-02-09
Version: 1.2

Purpose:
Defines the value types owned by the SterilizerController: cycle runtime,
error events, cycle summaries, vacuum leak test state and results,
calibration offsets, power-failure state, and the immutable SterilizerState
snapshot published to collaborators after every step and command. Also
provides the bounded, most-recent-first history buffer used for all audit
lists.

Targeted Requirements:
- STZ-HR001: Error history, cycle history and vacuum test history are bounded;
  the oldest entries are evicted first.
- STZ-FR008: Collaborators receive a read-only snapshot; all mutation goes
  through controller commands.

Scope and Limitations:
- All types are frozen dataclasses; the controller replaces rather than mutates.
- Timestamps are seconds from the controller's injected clock.

Safety Notice:
This software is for academic and illustrative purposes only.
It is not a certified medical device controller and must not be used to
release sterilized goods.

Dependencies:
- Python 3.10+
- collections (standard library)
- dataclasses (standard library)
- cycle_phases.py
- program_configuration.py
- sterilizer_port.py

Related Documents:
- STZ Requirements Specification
- STZ Interface Control Document (State Snapshot)

Safety and Certification Disclaimer:
All artefacts in this repository are produced for academic assessment purposes only.
They do not represent certified software and must not be used in real-world medical
or safety-critical systems.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Generic, Iterator, TypeVar

from cycle_phases import CycleResult, ErrorCode, Phase, VacuumTestPhase, VacuumTestVerdict
from program_configuration import ProgramConfig, ProgramOverride
from sterilizer_port import ManualOverride, PhysicalReading

T = TypeVar("T")

ERROR_HISTORY_CAPACITY = 100
CYCLE_HISTORY_CAPACITY = 50
VACUUM_TEST_HISTORY_CAPACITY = 20


class BoundedHistory(Generic[T]):
    # Fixed-capacity ring buffer, most recent entry first.
    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._items: deque[T] = deque(maxlen=int(capacity))

    @property
    def capacity(self) -> int:
        return self._items.maxlen or 0

    def push(self, item: T) -> None:
        self._items.appendleft(item)

    def items(self) -> tuple[T, ...]:
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(tuple(self._items))


@dataclass(frozen=True)
class CycleRuntime:
    active: bool = False
    current_phase: Phase = Phase.IDLE
    phase_elapsed_s: float = 0.0
    phase_total_s: float = 0.0
    total_elapsed_s: float = 0.0
    current_program: ProgramConfig | None = None


@dataclass(frozen=True)
class ErrorEvent:
    id: str
    code: ErrorCode
    message: str
    timestamp: float


@dataclass(frozen=True)
class CycleSummary:
    id: str
    started_at: float
    ended_at: float
    duration_s: float
    program_id: str
    program_name: str
    result: CycleResult
    primary_error_code: ErrorCode | None
    max_temperature_c: float
    max_pressure_mpa: float
    errors: tuple[ErrorEvent, ...] = ()

    @property
    def success(self) -> bool:
        return self.result is CycleResult.SUCCESS


@dataclass(frozen=True)
class VacuumTestState:
    active: bool = False
    phase: VacuumTestPhase = VacuumTestPhase.IDLE
    elapsed_s: float = 0.0
    stabilization_time_s: float = 300.0
    test_time_s: float = 300.0
    started_at: float | None = None
    base_pressure_mpa: float | None = None
    # Last verdict, kept for display after the test returns to IDLE.
    result: VacuumTestVerdict | None = None
    leak_rate_mpa_per_min: float | None = None


@dataclass(frozen=True)
class VacuumTestResult:
    id: str
    started_at: float
    ended_at: float
    result: VacuumTestVerdict
    leak_rate_mpa_per_min: float

    @property
    def passed(self) -> bool:
        return self.result is VacuumTestVerdict.PASS


@dataclass(frozen=True)
class CalibrationOffsets:
    chamber_temp_offset_c: float = 0.0
    chamber_pressure_offset_mpa: float = 0.0
    generator_temp_offset_c: float = 0.0
    generator_pressure_offset_mpa: float = 0.0

    def apply(self, raw: PhysicalReading) -> PhysicalReading:
        # Additive correction of the four calibrated channels.
        return PhysicalReading(
            chamber_pressure_mpa=raw.chamber_pressure_mpa + self.chamber_pressure_offset_mpa,
            chamber_temperature_c=raw.chamber_temperature_c + self.chamber_temp_offset_c,
            generator_pressure_mpa=raw.generator_pressure_mpa + self.generator_pressure_offset_mpa,
            generator_temperature_c=raw.generator_temperature_c + self.generator_temp_offset_c,
            generator_water_level_pct=raw.generator_water_level_pct,
            jacket_pressure_mpa=raw.jacket_pressure_mpa,
            door_open=raw.door_open,
            door_locked=raw.door_locked,
        )


@dataclass(frozen=True)
class PowerFailureState:
    pending: bool = False
    message: str | None = None


INITIAL_READING = PhysicalReading(
    chamber_pressure_mpa=0.0,
    chamber_temperature_c=20.0,
    generator_pressure_mpa=0.0,
    generator_temperature_c=20.0,
    generator_water_level_pct=100.0,
    jacket_pressure_mpa=0.0,
    door_open=True,
    door_locked=False,
)


@dataclass(frozen=True)
class SterilizerState:
    # Immutable snapshot published after every step and command.
    sensors: PhysicalReading = INITIAL_READING
    cycle: CycleRuntime = field(default_factory=CycleRuntime)
    errors: tuple[ErrorEvent, ...] = ()
    warnings: tuple[ErrorEvent, ...] = ()
    error_history: tuple[ErrorEvent, ...] = ()
    cycle_history: tuple[CycleSummary, ...] = ()
    vacuum_test: VacuumTestState = field(default_factory=VacuumTestState)
    vacuum_test_history: tuple[VacuumTestResult, ...] = ()
    program_overrides: tuple[tuple[str, ProgramOverride], ...] = ()
    calibration_offsets: CalibrationOffsets = field(default_factory=CalibrationOffsets)
    power_failure: PowerFailureState = field(default_factory=PowerFailureState)
    manual_override: ManualOverride = field(default_factory=ManualOverride)

    def override_for(self, program_id: str) -> ProgramOverride | None:
        return dict(self.program_overrides).get(program_id)
