"""
Conveyor module.

Moves plates one at a time from the RIP's intake directory through
processing to the CTP's delivery directory, and runs the polling loop.
"""

from plate_fanout.conveyor.runner import PlateConveyor
from plate_fanout.conveyor.slots import Conveyor, ConveyorState

__all__ = [
    "Conveyor",
    "ConveyorState",
    "PlateConveyor",
]
