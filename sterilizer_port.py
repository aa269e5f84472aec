"""
Title: Sensor/Actuator Port Contract (SterilizerPort)
Author: Alex Cooke
Date Created: 2026-02-02
Last Modified: 2026-02-06
Version: 1.2

Purpose:
Defines the boundary between the SterilizerController and the physical (or
simulated) plant. The controller reads one PhysicalReading and writes one
ActuatorCommand per control step through an object satisfying the
SterilizerPort protocol. Two backends satisfy it: the physics simulation in
sims/steam_simulator.py and the field-bus stub in fieldbus_port.py.

Targeted Requirements:
- STZ-FR006: Readings are sampled atomically as one consistent snapshot per step.
- STZ-FR007: Actuator commands are set-if-present; an absent (None) field leaves
  the underlying actuator state unchanged until overwritten.

Scope and Limitations:
- Readings and commands are immutable values exchanged at step boundaries;
  no shared mutable state crosses the port.
- Pressures are gauge pressures in MPa, temperatures in degC, water level in
  percent of generator capacity.
- Hardware availability and acknowledgement are the backend's concern.

Safety Notice:
This software is for academic and illustrative purposes only.
It is not a certified medical device controller and must not be used to
release sterilized goods.

Dependencies:
- Python 3.10+
- dataclasses (standard library)
- typing (standard library)

Related Documents:
- STZ Requirements Specification
- STZ Interface Control Document (Sensor/Actuator Port)

Safety and Certification Disclaimer:
All artefacts in this repository are produced for academic assessment purposes only.
They do not represent certified software and must not be used in real-world medical
or safety-critical systems.
"""

from dataclasses import dataclass, fields
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class PhysicalReading:
    chamber_pressure_mpa: float
    chamber_temperature_c: float
    generator_pressure_mpa: float
    generator_temperature_c: float
    generator_water_level_pct: float
    jacket_pressure_mpa: float
    door_open: bool
    door_locked: bool


@dataclass(frozen=True)
class ActuatorCommand:
    # None = leave actuator as last commanded.
    heater_on: bool | None = None
    steam_inlet_valve_open: bool | None = None
    steam_exhaust_valve_open: bool | None = None
    vacuum_pump_on: bool | None = None
    water_pump_on: bool | None = None
    door_lock_on: bool | None = None

    def present_fields(self) -> dict[str, bool]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }

    def merged_with(self, newer: "ActuatorCommand") -> "ActuatorCommand":
        # Later commands within one step overwrite earlier ones field by field.
        merged = self.present_fields()
        merged.update(newer.present_fields())
        return ActuatorCommand(**merged)


ALL_PROCESS_ACTUATORS_OFF = ActuatorCommand(
    heater_on=False,
    steam_inlet_valve_open=False,
    steam_exhaust_valve_open=False,
    vacuum_pump_on=False,
)


@dataclass(frozen=True)
class ManualOverride:
    # True/False forces the actuator, None releases it back to the controller.
    heater_on: bool | None = None
    steam_inlet_valve_open: bool | None = None
    steam_exhaust_valve_open: bool | None = None
    vacuum_pump_on: bool | None = None


@runtime_checkable
class SterilizerPort(Protocol):
    def read(self) -> PhysicalReading:
        ...

    def write(self, command: ActuatorCommand) -> None:
        ...
