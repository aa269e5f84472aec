"""
Title: Alarm Event Recorder Utility
Author: Alex Cooke
Date Created: 2026-02-04
Last Modified: 2026-02-09
Version: 1.1

Purpose:
Provides a simple, append-only alarm recording mechanism for the Steam
Sterilizer Digital Twin (STZ). Every ErrorEvent raised by the
SterilizerController is persisted to non-volatile storage with its event id,
code and message so the in-memory error history can be cross-checked after
the process exits.

Targeted Requirements:
- STZ-HR001 (supporting): persistent audit of alarm events beyond the bounded
  in-memory error history.

Scope and Limitations:
- Alarm persistence is file-based and append-only (CSV lines)
- No de-duplication or rollover handling
- Assumes reliable filesystem access
- Intended for simulation, testing, and academic analysis only

Safety Notice:
This software is for academic and illustrative purposes only.
It is not a certified medical device controller and must not be used to
release sterilized goods.

Dependencies:
- Python 3.10+
- dataclasses (standard library)
- pathlib (standard library)
- typing (standard library)
- sterilizer_state.py

Related Documents:
- STZ Requirements Specification
- STZ Alarm Handling and Diagnostics Notes

Safety and Certification Disclaimer:
All artefacts in this repository are produced for academic assessment purposes only.
They do not represent certified software and must not be used in real-world medical
or safety-critical systems.
"""

# fault_recorder.py

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from sterilizer_state import ErrorEvent


@dataclass
class FaultRecord:
    recorded_at_s: float
    event_id: str
    code: str
    message: str

    def to_line(self) -> str:
        # Commas in the free-text message would break the column layout.
        message = self.message.replace(",", ";")
        return f"{self.recorded_at_s:.6f},{self.event_id},{self.code},{message}\n"


class FaultRecorder:
    def __init__(self, filepath: str | Path, clock: Callable[[], float]):
        self._path = Path(filepath)
        self._clock = clock

        # Ensures directory exists for persistence target.
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def record(self, event: ErrorEvent) -> FaultRecord:
        # Records an alarm event to non-volatile storage (append-only).
        rec = FaultRecord(
            recorded_at_s=float(self._clock()),
            event_id=event.id,
            code=str(event.code.value),
            message=event.message,
        )

        with self._path.open("a", encoding="utf-8") as f:
            f.write(rec.to_line())

        return rec

    def read_records(self) -> list[FaultRecord]:
        if not self._path.exists():
            return []

        records = []
        for line in self._path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            ts, event_id, code, message = line.split(",", 3)
            records.append(FaultRecord(float(ts), event_id, code, message))
        return records
