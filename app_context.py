"""
Title: Application Context Container for STZ
Author: Alex Cooke
Date Created: 2026-02-04
Last Modified: 2026-02-09
Version: 1.1

Purpose:
Defines a central application context object for the Steam Sterilizer
Digital Twin (STZ). The AppContext aggregates the controller, the simulation
backend, the control loop, the recorders and lifecycle control primitives into
a single, explicit container to simplify wiring and controlled shutdown across
the console and the process entry point.

Targeted Requirements:
- None (supporting analysis, integration, and tooling only)

Scope and Limitations:
- Intended for simulation and CLI-driven execution only.
- Acts purely as a dependency container; contains no control or safety logic.

Safety Notice:
This software is for academic and illustrative purposes only.
It is not a certified medical device controller and must not be used to
release sterilized goods.

Dependencies:
- Python 3.10+
- dataclasses (standard library)
- pathlib (standard library)
- threading (standard library)
- typing (standard library)
- sterilizer_controller.py
- sims/steam_simulator.py
- cli_support.py
- fault_recorder.py
- command_recorder.py

Related Documents:
- STZ Requirements Specification
- STZ System Architecture and Integration Notes

Safety and Certification Disclaimer:
All artefacts in this repository are produced for academic assessment purposes only.
They do not represent certified software and must not be used in real-world medical
or safety-critical systems.
"""

from dataclasses import dataclass
from pathlib import Path
from threading import Event
from typing import Callable

from cli_support import ControlLoop
from command_recorder import CommandRecorder
from fault_recorder import FaultRecorder
from sims.steam_simulator import SimulationPort
from sterilizer_controller import SterilizerController


@dataclass
class AppContext:
    controller: SterilizerController
    simulation: SimulationPort | None
    clock: Callable[[], float]
    shutdown_event: Event
    loop: ControlLoop

    fault_recorder: FaultRecorder | None = None
    command_recorder: CommandRecorder | None = None

    def shutdown(self) -> None:
        self.shutdown_event.set()
        self.loop.stop()


def build_context(
    clock: Callable[[], float],
    period_s: float = 1.0,
    time_scale: float = 1.0,
    fault_log: str | Path | None = None,
    command_log: str | Path | None = None,
    on_tick: Callable | None = None,
) -> AppContext:
    simulation = SimulationPort()

    fault_recorder = FaultRecorder(fault_log, clock=clock) if fault_log is not None else None
    command_recorder = CommandRecorder(Path(command_log), clock=clock) if command_log is not None else None

    controller = SterilizerController(port=simulation, clock=clock, fault_recorder=fault_recorder)
    loop = ControlLoop(controller, simulation=simulation, period_s=period_s, time_scale=time_scale, on_tick=on_tick)

    return AppContext(
        controller=controller,
        simulation=simulation,
        clock=clock,
        shutdown_event=Event(),
        loop=loop,
        fault_recorder=fault_recorder,
        command_recorder=command_recorder,
    )
