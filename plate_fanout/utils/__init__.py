"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Atomic I/O and YAML loading (fs)
    - Geometry document validation (validators)
    - Unified logging (logging_config)
    - Bounded I/O retries (retry)

No module in utils/ may import from upper layers (raster, compensation,
conveyor, configs).

Convenience imports:
    from plate_fanout.utils import fs, validators
    from plate_fanout.utils.logging_config import setup_logging, push_context
"""

from . import fs
from . import logging_config
from . import retry
from . import validators

from .logging_config import pop_context, push_context, setup_logging

__all__ = [
    # Modules
    'fs',
    'logging_config',
    'retry',
    'validators',
    # Direct exports
    'setup_logging',
    'push_context',
    'pop_context',
]
