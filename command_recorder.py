# command_recorder.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable
import threading

from sterilizer_state import SterilizerState

HEADER = "timestamp,command,action,accepted,phase,program,door_secured"


@dataclass(frozen=True)
class CommandRecord:
    recorded_at_s: float
    command: str
    action: str
    accepted: bool
    phase: str
    program_id: str
    door_secured: bool

    @classmethod
    def from_state(
        cls,
        recorded_at_s: float,
        command: str,
        action: str,
        accepted: bool,
        state: SterilizerState,
    ) -> "CommandRecord":
        # Captures the plant context the operator acted on.
        program = state.cycle.current_program
        sensors = state.sensors
        return cls(
            recorded_at_s=float(recorded_at_s),
            command=command.strip().replace(",", " "),
            action=action,
            accepted=accepted,
            phase=state.cycle.current_phase.name,
            program_id=program.id if program is not None else "",
            door_secured=(not sensors.door_open) and sensors.door_locked,
        )

    def to_line(self) -> str:
        return (
            f"{self.recorded_at_s:.6f},{self.command},{self.action},{self.accepted},"
            f"{self.phase},{self.program_id},{self.door_secured}\n"
        )


@dataclass
class CommandRecorder:
    # Operator console audit trail: one CSV line per console command.
    filepath: Path
    clock: Callable[[], float]

    def __post_init__(self) -> None:
        self._lock = threading.Lock()
        self.filepath = Path(self.filepath)
        self.filepath.parent.mkdir(parents=True, exist_ok=True)

        if not self.filepath.exists():
            self.filepath.write_text(HEADER + "\n", encoding="utf-8")

    def record(self, *, command: str, action: str, accepted: bool, state: SterilizerState) -> CommandRecord:
        rec = CommandRecord.from_state(self.clock(), command, action, accepted, state)
        with self._lock:
            with self.filepath.open("a", encoding="utf-8") as f:
                f.write(rec.to_line())
        return rec

    def read_records(self) -> list[CommandRecord]:
        if not self.filepath.exists():
            return []

        records = []
        for line in self.filepath.read_text(encoding="utf-8").splitlines()[1:]:
            if not line.strip():
                continue
            ts, command, action, accepted, phase, program_id, door = line.split(",")
            records.append(CommandRecord(
                float(ts), command, action, accepted == "True", phase, program_id, door == "True"
            ))
        return records
