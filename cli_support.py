"""
Title: CLI Support Utilities and Control Loop Abstractions
Author: Alex Cooke
Date Created: 2026-02-04
Last Modified: 2026-02-09
Version: 1.2

Purpose:
Provides the control loop used by the STZ operator console and entry point.
A ControlLoop advances the physical simulation and then the
SterilizerController by the same dt (the loop period) on every tick, either
step-wise on demand or in a background thread.

Targeted Requirements:
- None (supporting analysis, simulation, and tooling only)

Scope and Limitations:
- Intended for CLI-driven simulation and test support only.
- ControlLoop timing is approximate and not real-time deterministic; dt is the
  nominal period, not the measured wall-clock interval.
- Threading model is simplified: controller commands issued from the console
  thread are serialised with ticks through a single lock.

Safety Notice:
This software is for academic and illustrative purposes only.
It is not a certified medical device controller and must not be used to
release sterilized goods.

Dependencies:
- Python 3.10+
- logging (standard library)
- threading (standard library)
- time (standard library)
- typing (standard library)
- sterilizer_controller.py

Related Documents:
- STZ Requirements Specification
- STZ CLI and Simulation Test Architecture Notes

Safety and Certification Disclaimer:
All artefacts in this repository are produced for academic assessment purposes only.
They do not represent certified software and must not be used in real-world medical
or safety-critical systems.
"""

import logging
import threading
import time
from typing import Callable, Optional

from sterilizer_controller import SterilizerController

logger = logging.getLogger(__name__)


class ControlLoop:
    def __init__(self,
                 controller: SterilizerController,
                 simulation=None,
                 period_s: float = 1.0,
                 time_scale: float = 1.0,
                 on_tick: Optional[Callable] = None,):
        self._controller = controller
        self._simulation = simulation
        self._period_s = float(period_s)
        self._time_scale = max(1.0, float(time_scale))
        self._on_tick = on_tick
        self._running = False
        self._stop_evt = threading.Event()
        self._thread: threading.Thread | None = None
        self.lock = threading.RLock()

    @property
    def period_s(self) -> float:
        return self._period_s

    @property
    def time_scale(self) -> float:
        return self._time_scale

    @property
    def running(self) -> bool:
        return self._running

    def set_period(self, period_s: float) -> None:
        self._period_s = max(0.01, float(period_s))

    def set_time_scale(self, scale: float) -> None:
        # Simulated seconds per wall-clock second.
        self._time_scale = max(1.0, float(scale))

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._stop_evt.clear()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if not self._running:
            return
        self._stop_evt.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
        self._running = False
        self._thread = None

    def step(self, n: int = 1) -> None:
        for _ in range(max(1, int(n))):
            self._tick()

    def _tick(self) -> None:
        # Plant first, then controller, both by the same dt.
        dt = self._period_s * self._time_scale
        with self.lock:
            if self._simulation is not None:
                self._simulation.step(dt)
            self._controller.step(dt)
        if self._on_tick:
            self._on_tick(self._controller)

    def _run(self) -> None:
        while not self._stop_evt.is_set():
            try:
                self._tick()
            except Exception:
                logger.exception("Unhandled exception in control loop")
            time.sleep(self._period_s)
