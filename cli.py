#!/usr/bin/env python3
"""
Title: STZ Operator Console
Author: Alex Cooke
Date Created: 2026-02-05
Last Modified: 2026-02-10
Version: 1.2

Purpose:
Interactive operator console for the Steam Sterilizer Digital Twin. Each
console line is parsed into a SterilizerController command (start, stop,
door, vacuum test, reset, overrides, calibration, power failure, manual
actuators) or a simulation/loop control action, and recorded to the command
audit log when one is configured.

Targeted Requirements:
- None (operator tooling; all behaviour is delegated to the controller)

Scope and Limitations:
- Line-oriented text interface only.
- Commands are serialised with control ticks through the loop lock.

Safety Notice:
This software is for academic and illustrative purposes only.
It is not a certified medical device controller and must not be used to
release sterilized goods.

Dependencies:
- Python 3.10+
- dataclasses (standard library)
- pathlib (standard library)
- time (standard library)
- app_context.py
- cycle_phases.py
- sterilizer_controller.py

Related Documents:
- STZ Operator Console Notes

Safety and Certification Disclaimer:
All artefacts in this repository are produced for academic assessment purposes only.
They do not represent certified software and must not be used in real-world medical
or safety-critical systems.
"""

import time
from dataclasses import asdict, replace
from pathlib import Path

from app_context import AppContext, build_context
from cycle_phases import Phase
from sterilizer_controller import SterilizerController


MANUAL_ACTUATORS = {
    "heater": "heater_on",
    "inlet": "steam_inlet_valve_open",
    "exhaust": "steam_exhaust_valve_open",
    "vacuum": "vacuum_pump_on",
}

MANUAL_VALUES = {"on": True, "off": False, "auto": None}


class PhaseAnnunciator:
    # Prints the phase only when it changes.
    def __init__(self):
        self._last: Phase | None = None

    def __call__(self, controller: SterilizerController) -> None:
        phase = controller.phase
        if phase != self._last:
            print(f"PHASE: {phase.name}")
            self._last = phase


def _parse_number(text: str) -> float | int:
    return int(text) if text.lstrip("-").isdigit() else float(text)


def _parse_assignments(tokens: list[str]) -> dict[str, float | int]:
    values: dict[str, float | int] = {}
    for tok in tokens:
        if "=" not in tok:
            raise ValueError(f"expected name=value, got '{tok}'")
        name, raw = tok.split("=", 1)
        values[name] = _parse_number(raw)
    return values


def _print_status(controller: SterilizerController) -> None:
    st = controller.state
    cyc = st.cycle
    r = st.sensors

    print("\n=== STATUS ===")
    print(f"Phase: {cyc.current_phase.name}  Active: {cyc.active}")
    if cyc.current_program is not None:
        print(f"Program: {cyc.current_program.id} ({cyc.current_program.name})")
    print(f"PhaseElapsed: {cyc.phase_elapsed_s:.1f} / {cyc.phase_total_s:.1f} s  "
          f"TotalElapsed: {cyc.total_elapsed_s:.1f} s")
    print(f"Chamber: {r.chamber_pressure_mpa:.3f} MPa  {r.chamber_temperature_c:.1f} C")
    print(f"Generator: {r.generator_pressure_mpa:.3f} MPa  {r.generator_temperature_c:.1f} C  "
          f"Water: {r.generator_water_level_pct:.1f} %")
    print(f"Jacket: {r.jacket_pressure_mpa:.3f} MPa")
    print(f"Door: open={r.door_open} locked={r.door_locked}")
    print(f"Errors: {[e.code.value for e in st.errors]}")
    if st.warnings:
        print(f"Warnings: {[w.message for w in st.warnings]}")
    if st.power_failure.pending:
        print(f"PowerFailurePending: {st.power_failure.message or True}")

    vt = st.vacuum_test
    if vt.active:
        print(f"VacuumTest: {vt.phase.name} {vt.elapsed_s:.0f}s")
    elif vt.result is not None:
        print(f"VacuumTest: {vt.result.value} ({vt.leak_rate_mpa_per_min:.5f} MPa/min)")
    print("==============\n")


def _print_history(controller: SterilizerController) -> None:
    st = controller.state
    if not st.cycle_history:
        print("No cycles recorded")
    for c in st.cycle_history:
        code = c.primary_error_code.value if c.primary_error_code else "-"
        print(f"{c.id} {c.program_id} {c.result.value} {code} "
              f"{c.duration_s:.0f}s maxT={c.max_temperature_c:.1f}C maxP={c.max_pressure_mpa:.3f}MPa")
    for v in st.vacuum_test_history:
        print(f"{v.id} vacuum test {v.result.value} {v.leak_rate_mpa_per_min:.5f} MPa/min")


def _print_programs(controller: SterilizerController) -> None:
    for p in controller.programs:
        resolved = controller.resolve_program(p.id)
        print(f"{p.id:22s} {resolved.set_temp_c:5.1f}C {resolved.sterilization_time_s:6.0f}s "
              f"pulses={resolved.pre_vacuum_count} dry={resolved.drying_time_s:.0f}s  {p.name}")


def _print_help() -> None:
    print(
        """
Commands
  help                         Print help
  q                            Quit

Loop control
  run [period_s]               Start background control loop
  halt                         Stop background loop
  step [n]                     Run n control ticks (default 1)
  period <seconds>             Set loop period (min 0.01)
  speed <factor>               Simulated seconds per wall-clock second (min 1)

Cycle
  programs                     List programs (with overrides applied)
  start <program_id>           Start a sterilization cycle
  stop                         Abort the running cycle
  reset                        Clear active errors (ERROR -> IDLE)
  override <id> name=value ..  Override set_temp_c / sterilization_time_s /
                               pre_vacuum_count / drying_time_s
  vac [stab_s test_s]          Start vacuum leak test (default 300 300)

Door
  door lock|unlock             Command the door lock
  door open|close              Move the door leaf (simulation)

Power / calibration / manual
  power fail [message]         Simulate power failure
  power continue|abort         Resolve a pending power failure
  cal name=value ..            Set calibration offsets
  cal reset                    Zero calibration offsets
  manual <actuator> on|off|auto  heater, inlet, exhaust, vacuum

Simulation
  water <pct>                  Force generator water level

State / diagnostics
  state                        Print phase name
  status                       Print full status block
  errors                       Print active errors and error history
  history                      Print cycle and vacuum test history
"""
    )


def handle_command(ctx: AppContext, line: str) -> bool:
    # Returns False when the console should exit.
    parts = line.split()
    if not parts:
        return True

    op = parts[0].lower()
    if op in ("q", "quit", "exit"):
        return False

    try:
        action = _dispatch(ctx, op, parts)
    except (ValueError, TypeError, KeyError) as exc:
        message = exc.args[0] if exc.args else exc
        print(f"Error: {message}")
        _record(ctx, line, op, False)
        return True

    if action is None:
        print("Unknown command. Type 'help'.")
        _record(ctx, line, op, False)
        return True

    _record(ctx, line, action, True)
    return True


def _record(ctx: AppContext, line: str, action: str, accepted: bool) -> None:
    if ctx.command_recorder is None:
        return
    ctx.command_recorder.record(
        command=line,
        action=action,
        accepted=accepted,
        state=ctx.controller.state,
    )


def _dispatch(ctx: AppContext, op: str, parts: list[str]) -> str | None:
    controller = ctx.controller
    loop = ctx.loop
    args = parts[1:]

    if op in ("help", "?"):
        _print_help()
        return "help"

    if op == "run":
        if args:
            loop.set_period(float(args[0]))
        loop.start()
        print(f"Loop running @ {loop.period_s:.3f}s x{loop.time_scale:g}")
        return "run"

    if op == "halt":
        loop.stop()
        print("Loop stopped")
        return "halt"

    if op == "period":
        if len(args) != 1:
            raise ValueError("Usage: period <seconds>")
        loop.set_period(float(args[0]))
        print(f"Loop period set to {loop.period_s:.3f}s")
        return "period"

    if op == "speed":
        if len(args) != 1:
            raise ValueError("Usage: speed <factor>")
        loop.set_time_scale(float(args[0]))
        print(f"Time scale set to x{loop.time_scale:g}")
        return "speed"

    if op == "step":
        n = int(args[0]) if args else 1
        loop.step(n)
        print(f"Stepped {n} ticks")
        return "step"

    if op == "state":
        print(controller.phase.name)
        return "state"

    if op == "status":
        _print_status(controller)
        return "status"

    if op == "programs":
        _print_programs(controller)
        return "programs"

    if op == "history":
        _print_history(controller)
        return "history"

    if op == "errors":
        st = controller.state
        print("Active:", [f"{e.code.value}: {e.message}" for e in st.errors])
        print("History:", [e.code.value for e in st.error_history])
        return "errors"

    # Everything below mutates controller or plant state.
    with loop.lock:
        return _dispatch_mutating(ctx, op, args)


def _dispatch_mutating(ctx: AppContext, op: str, args: list[str]) -> str | None:
    controller = ctx.controller

    if op == "start":
        if len(args) != 1:
            raise ValueError("Usage: start <program_id>")
        controller.start_cycle(args[0])
        print(f"Start requested: {args[0]} -> {controller.phase.name}")
        return "start_cycle"

    if op == "stop":
        controller.stop_cycle()
        print(f"Stop requested -> {controller.phase.name}")
        return "stop_cycle"

    if op == "reset":
        controller.reset_errors()
        print(f"Errors reset -> {controller.phase.name}")
        return "reset_errors"

    if op == "override":
        if len(args) < 2:
            raise ValueError("Usage: override <program_id> name=value ...")
        controller.set_program_override(args[0], **_parse_assignments(args[1:]))
        print(f"Override stored for {args[0]}")
        return "set_program_override"

    if op == "vac":
        if len(args) not in (0, 2):
            raise ValueError("Usage: vac [stab_s test_s]")
        if args:
            controller.start_vacuum_test(float(args[0]), float(args[1]))
        else:
            controller.start_vacuum_test()
        print(f"Vacuum test active: {controller.state.vacuum_test.active}")
        return "start_vacuum_test"

    if op == "door":
        if len(args) != 1:
            raise ValueError("Usage: door lock|unlock|open|close")
        sub = args[0].lower()
        if sub == "lock":
            controller.close_door()
            return "close_door"
        if sub == "unlock":
            controller.open_door()
            return "open_door"
        if sub in ("open", "close"):
            if ctx.simulation is None:
                raise ValueError("door leaf is only available with the simulation backend")
            moved = ctx.simulation.set_door_open(sub == "open")
            print(f"Door leaf {'moved' if moved else 'locked, not moved'}")
            return f"door_{sub}"
        raise ValueError("Usage: door lock|unlock|open|close")

    if op == "power":
        if not args:
            raise ValueError("Usage: power fail [message] | power continue | power abort")
        sub = args[0].lower()
        if sub == "fail":
            controller.power_fail(" ".join(args[1:]) or None)
            return "power_fail"
        if sub == "continue":
            controller.continue_after_power()
            return "continue_after_power"
        if sub == "abort":
            controller.abort_after_power()
            return "abort_after_power"
        raise ValueError("Usage: power fail [message] | power continue | power abort")

    if op == "cal":
        if args == ["reset"]:
            controller.reset_calibration_offsets()
            return "reset_calibration_offsets"
        if not args:
            raise ValueError("Usage: cal name=value ... | cal reset")
        controller.set_calibration_offsets(**_parse_assignments(args))
        return "set_calibration_offsets"

    if op == "manual":
        if len(args) != 2 or args[0] not in MANUAL_ACTUATORS or args[1] not in MANUAL_VALUES:
            raise ValueError("Usage: manual heater|inlet|exhaust|vacuum on|off|auto")
        current = controller.state.manual_override
        updated = replace(current, **{MANUAL_ACTUATORS[args[0]]: MANUAL_VALUES[args[1]]})
        controller.set_manual_actuators(**asdict(updated))
        return "set_manual_actuators"

    if op == "water":
        if len(args) != 1 or ctx.simulation is None:
            raise ValueError("Usage: water <pct> (simulation backend only)")
        ctx.simulation.force_state(generator_water_level_pct=float(args[0]))
        return "force_water_level"

    return None


def run_console(ctx: AppContext, prompt: str = "> ") -> None:
    while not ctx.shutdown_event.is_set():
        try:
            line = input(prompt).strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if not handle_command(ctx, line):
            break


def main() -> int:
    ctx = build_context(
        clock=time.time,
        period_s=1.0,
        fault_log=Path("fault_log.txt"),
        command_log=Path("command_log.csv"),
        on_tick=PhaseAnnunciator(),
    )

    _print_help()
    run_console(ctx)

    ctx.shutdown()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
