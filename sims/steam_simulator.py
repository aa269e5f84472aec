"""
Title: Steam Sterilizer Physical Simulation Backend (SimulationPort)
Author: Alex Cooke
Date Created: 2026-02-03
Last Modified: 2026-02-09
Version: 1.3

Purpose:
Provides a lightweight, deterministic physical model of a steam sterilizer
(steam generator, chamber, jacket, door) that satisfies the SterilizerPort
contract. The model owns the raw (uncalibrated) physical state and advances it
once per elapsed-seconds step using first-order relaxation toward targets
selected by the currently commanded actuators.

Targeted Requirements:
- None (supporting simulation, visualisation and logic testing only)

Scope and Limitations:
- First-order (exponential approach) dynamics only: plausible, monotonic and
  bounded, not a thermodynamic solver.
- Pressures are gauge pressures (0.0 MPa = atmosphere).
- Saturation curve is a two-segment linear approximation.
- Single chamber; no load mass, condensate or non-condensable gas modeling.

Safety Notice:
This software is for academic and illustrative purposes only.
It is not a certified medical device controller and must not be used to
release sterilized goods.

Dependencies:
- Python 3.10+
- dataclasses (standard library)
- logging (standard library)
- math (standard library)
- sterilizer_port.py

Related Documents:
- STZ Requirements Specification
- STZ Simulation and Test Architecture Documentation

Safety and Certification Disclaimer:
All artefacts in this repository are produced for academic assessment purposes only.
They do not represent certified software and must not be used in real-world medical
or safety-critical systems.
"""

import logging
import math
from dataclasses import dataclass, fields, replace

from sterilizer_port import ActuatorCommand, ManualOverride, PhysicalReading

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationConfig:
    ambient_temp_c: float = 22.0

    # Steam generator
    generator_heat_target_c: float = 150.0
    generator_heat_rate_per_s: float = 0.04    # heating is faster than cooling
    generator_cool_rate_per_s: float = 0.005
    generator_temp_min_c: float = 20.0
    generator_temp_max_c: float = 160.0

    # Saturation curve: 0 below 100 degC, linear to 0.35 MPa at 134 degC, flat above
    saturation_start_c: float = 100.0
    saturation_start_mpa: float = 0.10
    saturation_end_c: float = 134.0
    saturation_end_mpa: float = 0.35

    # Chamber
    inlet_pressure_fraction: float = 0.9       # line losses generator -> chamber
    inlet_temp_drop_c: float = 2.0
    inlet_rate_per_s: float = 0.05
    chamber_cool_rate_per_s: float = 0.002
    vacuum_target_mpa: float = -0.08
    vacuum_rate_per_s: float = 0.2
    exhaust_rate_per_s: float = 0.3
    leak_rate_per_s: float = 0.0005             # passive drift toward atmosphere
    chamber_pressure_min_mpa: float = -0.09
    chamber_pressure_max_mpa: float = 0.40

    # Jacket
    jacket_pressure_fraction: float = 0.8
    jacket_rate_per_s: float = 0.05
    jacket_decay_rate_per_s: float = 0.01

    # Water
    water_depletion_pct_per_s: float = 0.02
    water_refill_pct_per_s: float = 0.5
    water_level_max_pct: float = 100.0


@dataclass
class PhysicalState:
    chamber_pressure_mpa: float = 0.0
    chamber_temperature_c: float = 20.0
    generator_pressure_mpa: float = 0.0
    generator_temperature_c: float = 20.0
    generator_water_level_pct: float = 100.0
    jacket_pressure_mpa: float = 0.0
    door_open: bool = True
    door_locked: bool = False

    heater_on: bool = False
    steam_inlet_valve_open: bool = False
    steam_exhaust_valve_open: bool = False
    vacuum_pump_on: bool = False
    water_pump_on: bool = False


def _relax(value: float, target: float, rate_per_s: float, dt: float) -> float:
    # Exponential approach; never overshoots the target.
    alpha = 1.0 - math.exp(-rate_per_s * dt)
    return value + (target - value) * alpha


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(value, hi))


class SimulationPort:
    def __init__(
        self,
        config: SimulationConfig | None = None,
        initial: PhysicalState | None = None,
        clock=None,
    ):
        self.config = config or SimulationConfig()
        self.state = initial if initial is not None else PhysicalState()
        self.clock = clock

        self._manual = ManualOverride()
        self._last_time = self.clock() if self.clock else None

    # -------------------------
    # Port contract
    # -------------------------

    def read(self) -> PhysicalReading:
        s = self.state
        return PhysicalReading(
            chamber_pressure_mpa=s.chamber_pressure_mpa,
            chamber_temperature_c=s.chamber_temperature_c,
            generator_pressure_mpa=s.generator_pressure_mpa,
            generator_temperature_c=s.generator_temperature_c,
            generator_water_level_pct=s.generator_water_level_pct,
            jacket_pressure_mpa=s.jacket_pressure_mpa,
            door_open=s.door_open,
            door_locked=s.door_locked,
        )

    def write(self, command: ActuatorCommand) -> None:
        changes = command.present_fields()

        lock = changes.pop("door_lock_on", None)
        if lock is not None:
            self.state.door_locked = lock
            # Locking pulls the leaf shut; unlocking does not open it.
            self.state.door_open = (not lock) and self.state.door_open

        for name, value in changes.items():
            setattr(self.state, name, bool(value))

    def set_manual_actuators(self, override: ManualOverride) -> None:
        self._manual = override

    @property
    def manual_override(self) -> ManualOverride:
        return self._manual

    # -------------------------
    # Simulation control
    # -------------------------

    def step(self, dt: float) -> PhysicalReading:
        # Advance simulation by dt seconds and return the new reading.
        if dt <= 0.0:
            return self.read()

        cfg = self.config
        s = self.state

        heater = self._effective("heater_on")
        inlet = self._effective("steam_inlet_valve_open")
        exhaust = self._effective("steam_exhaust_valve_open")
        vacuum = self._effective("vacuum_pump_on")

        # 1. Generator temperature
        if heater and s.generator_water_level_pct > 0.0:
            s.generator_temperature_c = _relax(
                s.generator_temperature_c, cfg.generator_heat_target_c, cfg.generator_heat_rate_per_s, dt
            )
        else:
            s.generator_temperature_c = _relax(
                s.generator_temperature_c, cfg.ambient_temp_c, cfg.generator_cool_rate_per_s, dt
            )
        s.generator_temperature_c = _clamp(
            s.generator_temperature_c, cfg.generator_temp_min_c, cfg.generator_temp_max_c
        )

        # 2. Generator saturation pressure
        s.generator_pressure_mpa = self.saturation_pressure_mpa(s.generator_temperature_c)

        # 3. Steam admission / chamber heat exchange
        if inlet:
            s.chamber_pressure_mpa = _relax(
                s.chamber_pressure_mpa,
                s.generator_pressure_mpa * cfg.inlet_pressure_fraction,
                cfg.inlet_rate_per_s,
                dt,
            )
            s.chamber_temperature_c = _relax(
                s.chamber_temperature_c,
                s.generator_temperature_c - cfg.inlet_temp_drop_c,
                cfg.inlet_rate_per_s,
                dt,
            )
        else:
            s.chamber_temperature_c = _relax(
                s.chamber_temperature_c, cfg.ambient_temp_c, cfg.chamber_cool_rate_per_s, dt
            )

        # 4. Vacuum pump dominates the exhaust path; exhaust alone vents to atmosphere
        if vacuum:
            s.chamber_pressure_mpa = _relax(
                s.chamber_pressure_mpa, cfg.vacuum_target_mpa, cfg.vacuum_rate_per_s, dt
            )
        elif exhaust:
            s.chamber_pressure_mpa = _relax(s.chamber_pressure_mpa, 0.0, cfg.exhaust_rate_per_s, dt)
        elif not inlet:
            s.chamber_pressure_mpa = _relax(s.chamber_pressure_mpa, 0.0, cfg.leak_rate_per_s, dt)

        # Jacket follows the generator while it is fired
        if heater:
            s.jacket_pressure_mpa = _relax(
                s.jacket_pressure_mpa,
                s.generator_pressure_mpa * cfg.jacket_pressure_fraction,
                cfg.jacket_rate_per_s,
                dt,
            )
        else:
            s.jacket_pressure_mpa = _relax(s.jacket_pressure_mpa, 0.0, cfg.jacket_decay_rate_per_s, dt)

        # 5. Water balance
        if heater:
            s.generator_water_level_pct -= cfg.water_depletion_pct_per_s * dt
        if s.water_pump_on:
            s.generator_water_level_pct += cfg.water_refill_pct_per_s * dt

        # 6. Physical bounds
        s.generator_water_level_pct = _clamp(s.generator_water_level_pct, 0.0, cfg.water_level_max_pct)
        s.chamber_pressure_mpa = _clamp(
            s.chamber_pressure_mpa, cfg.chamber_pressure_min_mpa, cfg.chamber_pressure_max_mpa
        )
        s.chamber_temperature_c = max(s.chamber_temperature_c, cfg.generator_temp_min_c)
        s.jacket_pressure_mpa = max(s.jacket_pressure_mpa, 0.0)

        return self.read()

    def update(self) -> PhysicalReading:
        # Advance simulation using the injected clock.
        if not self.clock:
            raise RuntimeError(
                "SimulationPort.update() requires a clock; use step(dt) instead."
            )

        now = self.clock()
        dt = now - (self._last_time if self._last_time is not None else now)
        self._last_time = now
        return self.step(dt)

    def saturation_pressure_mpa(self, temp_c: float) -> float:
        cfg = self.config
        if temp_c <= cfg.saturation_start_c:
            return 0.0
        if temp_c >= cfg.saturation_end_c:
            return cfg.saturation_end_mpa

        ratio = (temp_c - cfg.saturation_start_c) / (cfg.saturation_end_c - cfg.saturation_start_c)
        return cfg.saturation_start_mpa + ratio * (cfg.saturation_end_mpa - cfg.saturation_start_mpa)

    # -------------------------
    # Operator / fault injection
    # -------------------------

    def set_door_open(self, open_: bool) -> bool:
        # Operator moves the door leaf; a locked leaf cannot be opened.
        if open_ and self.state.door_locked:
            logger.warning("Door leaf cannot open while locked")
            return False
        self.state.door_open = bool(open_)
        return True

    def force_state(self, **values) -> None:
        # Force physical variables to specific values (test and fault injection).
        known = {f.name for f in fields(PhysicalState)}
        unknown = set(values) - known
        if unknown:
            raise TypeError(f"Unknown physical state fields: {sorted(unknown)}")
        self.state = replace(self.state, **values)

    def _effective(self, name: str) -> bool:
        forced = getattr(self._manual, name)
        if forced is not None:
            return bool(forced)
        return bool(getattr(self.state, name))
