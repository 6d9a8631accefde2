"""
Compensation module.

Turns a measured fan-out into row operations on a plate (geometry), applies
them while protecting the alignment marks (compensator), and wires both to
plate files by filename (plates).
"""

from plate_fanout.compensation.compensator import AlignmentMark, FanoutCompensator
from plate_fanout.compensation.geometry import (
    CompensationPlan,
    GeometryParameters,
    compute_direction,
    compute_shift_pixels,
    decimation_factor,
    pixel_fanout,
    plan_compensation,
)
from plate_fanout.compensation.plates import (
    PlateName,
    PlateProcessor,
    parse_plate_name,
)

__all__ = [
    "AlignmentMark",
    "CompensationPlan",
    "FanoutCompensator",
    "GeometryParameters",
    "PlateName",
    "PlateProcessor",
    "compute_direction",
    "compute_shift_pixels",
    "decimation_factor",
    "parse_plate_name",
    "pixel_fanout",
    "plan_compensation",
]
