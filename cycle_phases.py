"""
Title: Sterilizer Cycle Phase and Error Code Definitions
Author: Alex Cooke
Date Created: 2026-02-02
Last Modified: 2026-02-06
Version: 1.1

Purpose:
Defines the authoritative set of sterilization cycle phases, alarm codes and
result classifications used by the Steam Sterilizer Digital Twin (STZ). The
phases represent the discrete states of the cycle state machine driven by the
SterilizerController; the error codes form the closed alarm taxonomy recorded
in error events and cycle summaries.

Targeted Requirements:
- STZ-FR001: Defines the PREHEAT..COMPLETE phase sequence of a sterilization cycle.
- STZ-FR005: Provides the absorbing ERROR phase entered on any alarm.
- STZ-SR001..SR007: Provides the closed set of alarm codes.
- STZ-VT001: Defines the vacuum leak test sub-phases.

Scope and Limitations:
- This module defines logical states and codes only; it does not encode
  timing budgets, actuator positions or alarm thresholds.
- No hierarchy or substates are modeled apart from the vacuum test sub-phases.

Safety Notice:
This software is for academic and illustrative purposes only.
It is not a certified medical device controller and must not be used to
release sterilized goods.

Dependencies:
- Python 3.10+
- enum (standard library)

Related Documents:
- STZ Requirements Specification
- STZ System Architecture Description

Safety and Certification Disclaimer:
All artefacts in this repository are produced for academic assessment purposes only.
They do not represent certified software and must not be used in real-world medical
or safety-critical systems.
"""

from enum import Enum, auto


class Phase(Enum):
    IDLE = auto()
    PREHEAT = auto()
    PREVACUUM = auto()
    HEAT_UP = auto()
    STERILIZATION = auto()
    DRYING = auto()
    DEPRESSURIZE = auto()
    COOLING = auto()
    COMPLETE = auto()
    ERROR = auto()


class ErrorCode(str, Enum):
    HEATING_TIMEOUT = "HEATING_TIMEOUT"
    OVERPRESSURE = "OVERPRESSURE"
    OVERTEMP = "OVERTEMP"
    NO_WATER = "NO_WATER"
    VACUUM_FAIL = "VACUUM_FAIL"
    SENSOR_FAILURE = "SENSOR_FAILURE"
    DOOR_OPEN = "DOOR_OPEN"
    POWER_ERROR = "POWER_ERROR"
    USER_STOP = "USER_STOP"


class CycleResult(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    ABORTED = "aborted"


class VacuumTestPhase(Enum):
    IDLE = auto()
    STABILIZE = auto()
    TEST = auto()


class VacuumTestVerdict(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
