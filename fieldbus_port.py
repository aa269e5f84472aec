"""
Title: Field-Bus PLC Backend Stub (FieldbusPort)
Author: Alex Cooke
Date Created: 2026-02-06
Last Modified: 2026-02-09
Version: 1.1

Purpose:
Provides the second SterilizerPort backend, intended to talk to a real
sterilizer PLC over an industrial field bus. In this release the backend is a
stub: it holds the register and coil address map, mirrors every actuator
command into an in-memory coil image and logs it, and returns a fixed nominal
reading (door closed and locked, ambient temperatures, full generator).

Targeted Requirements:
- STZ-FR006 / STZ-FR007 (interface conformance only).

Scope and Limitations:
- No network I/O is performed; host, port and unit id are carried for the
  future client only.
- Register addresses are placeholders until confirmed against the PLC
  documentation.
- Manual actuator overrides are not supported by this backend.

Safety Notice:
This software is for academic and illustrative purposes only.
It is not a certified medical device controller and must not be used to
release sterilized goods.

Dependencies:
- Python 3.10+
- dataclasses (standard library)
- logging (standard library)
- sterilizer_port.py

Related Documents:
- STZ Interface Control Document (Sensor/Actuator Port)
- STZ PLC Register Map (draft)

Safety and Certification Disclaimer:
All artefacts in this repository are produced for academic assessment purposes only.
They do not represent certified software and must not be used in real-world medical
or safety-critical systems.
"""

import logging
from dataclasses import dataclass, field

from sterilizer_port import ActuatorCommand, PhysicalReading

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegisterMap:
    # Input registers
    chamber_pressure_reg: int = 0
    chamber_temperature_reg: int = 1
    generator_pressure_reg: int = 2
    generator_temperature_reg: int = 3
    jacket_pressure_reg: int = 4
    water_level_reg: int = 5
    door_open_reg: int = 6
    door_locked_reg: int = 7

    # Coils
    heater_coil: int = 100
    steam_inlet_coil: int = 101
    steam_exhaust_coil: int = 102
    vacuum_pump_coil: int = 103
    water_pump_coil: int = 104
    door_lock_coil: int = 105

    def coil_for(self, actuator: str) -> int:
        return {
            "heater_on": self.heater_coil,
            "steam_inlet_valve_open": self.steam_inlet_coil,
            "steam_exhaust_valve_open": self.steam_exhaust_coil,
            "vacuum_pump_on": self.vacuum_pump_coil,
            "water_pump_on": self.water_pump_coil,
            "door_lock_on": self.door_lock_coil,
        }[actuator]


@dataclass(frozen=True)
class FieldbusConfig:
    host: str = "127.0.0.1"
    port: int = 502
    unit_id: int = 1
    registers: RegisterMap = field(default_factory=RegisterMap)


NOMINAL_READING = PhysicalReading(
    chamber_pressure_mpa=0.0,
    chamber_temperature_c=20.0,
    generator_pressure_mpa=0.0,
    generator_temperature_c=20.0,
    generator_water_level_pct=100.0,
    jacket_pressure_mpa=0.0,
    door_open=False,
    door_locked=True,
)


class FieldbusPort:
    def __init__(self, config: FieldbusConfig | None = None):
        self.config = config or FieldbusConfig()
        self._coils: dict[int, bool] = {}

    @property
    def coils(self) -> dict[int, bool]:
        return dict(self._coils)

    def read(self) -> PhysicalReading:
        # TODO: replace with input register reads once the PLC map is confirmed.
        return NOMINAL_READING

    def write(self, command: ActuatorCommand) -> None:
        changes = command.present_fields()
        if not changes:
            return

        regs = self.config.registers
        for name, value in changes.items():
            self._coils[regs.coil_for(name)] = bool(value)

        logger.info(
            "Fieldbus write unit=%d %s",
            self.config.unit_id,
            ", ".join(f"{name}={value}" for name, value in changes.items()),
        )
