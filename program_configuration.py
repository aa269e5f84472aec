"""
Title: Sterilization Program Configuration Model (ProgramConfig)
Author: Alex Cooke
Date Created: 2026-02-02
Last Modified: 2026-02-05
Version: 1.1

Purpose:
Defines the immutable data model of a sterilization program template and the
partial override that may be layered on top of it at runtime. The resolved
program (template + override) is what the SterilizerController runs when a
cycle starts.

Targeted Requirements:
- STZ-FR003: A stored override for a program id is applied on top of the base
  template whenever a cycle starts; the template itself is never mutated.

Scope and Limitations:
- Only the numeric process parameters are overridable; id and name are fixed.
- No validation of physical plausibility (e.g. 90 degC sterilization) is made.
- The default catalogue mirrors the factory program list of the product.

Safety Notice:
This software is for academic and illustrative purposes only.
It is not a certified medical device controller and must not be used to
release sterilized goods.

Dependencies:
- Python 3.10+
- dataclasses (standard library)

Related Documents:
- STZ Requirements Specification
- STZ Program Catalogue

Safety and Certification Disclaimer:
All artefacts in this repository are produced for academic assessment purposes only.
They do not represent certified software and must not be used in real-world medical
or safety-critical systems.
"""

from dataclasses import dataclass, fields, replace


class ProgramNotFoundError(KeyError):
    pass


@dataclass(frozen=True)
class ProgramOverride:
    # Partial patch; None means "keep the template value".
    set_temp_c: float | None = None
    sterilization_time_s: float | None = None
    pre_vacuum_count: int | None = None
    drying_time_s: float | None = None

    def merged_with(self, newer: "ProgramOverride") -> "ProgramOverride":
        # Field-by-field merge, newer values win.
        changes = {
            f.name: getattr(newer, f.name)
            for f in fields(newer)
            if getattr(newer, f.name) is not None
        }
        return replace(self, **changes)


@dataclass(frozen=True)
class ProgramConfig:
    # Immutable program template.
    id: str
    name: str
    set_temp_c: float
    sterilization_time_s: float
    pre_vacuum_count: int
    drying_time_s: float

    def with_override(self, override: ProgramOverride | None) -> "ProgramConfig":
        # Pure calculation, no side effects.
        if override is None:
            return self

        changes = {
            f.name: getattr(override, f.name)
            for f in fields(override)
            if getattr(override, f.name) is not None
        }
        return replace(self, **changes)


DEFAULT_PROGRAMS: tuple[ProgramConfig, ...] = (
    ProgramConfig("prog_p1_134_5", "P1 Instruments 134C / 5 min", 134.0, 5 * 60, 3, 10 * 60),
    ProgramConfig("prog_p2_134_7", "P2 Instruments 134C / 7 min", 134.0, 7 * 60, 3, 12 * 60),
    ProgramConfig("prog_p3_121_20", "P3 Textiles 121C / 20 min", 121.0, 20 * 60, 4, 15 * 60),
    ProgramConfig("prog_p4_134_10", "P4 Textiles 134C / 10 min", 134.0, 10 * 60, 4, 15 * 60),
    ProgramConfig("prog_p5_121_liquids", "P5 Liquids 121C / 30 min", 121.0, 30 * 60, 1, 0),
    ProgramConfig("prog_p6_121_delicate", "P6 Delicate 121C / 15 min", 121.0, 15 * 60, 2, 5 * 60),
    ProgramConfig("prog_p7_134_rubber", "P7 Rubber/silicone 134C / 10 min", 134.0, 10 * 60, 3, 8 * 60),
    ProgramConfig("prog_p8_134_prion", "P8 Prion 134C / 18 min", 134.0, 18 * 60, 3, 20 * 60),
    ProgramConfig("prog_bowie_dick", "Bowie-Dick test", 134.0, 3 * 60, 3, 0),
)
