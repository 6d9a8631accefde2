"""YAML schema validation for the press geometry document.

The geometry document describes, per printing tower, how the paper roll is
divided into sections and how far the web fans out for each colour:

    schema: geometry.v1
    towers:
      "T1":
        roll_position: "ABCD"
        fanout_mm: {C: 0.5, M: 0.3, Y: 0.2}

Validated with pydantic for fail-fast error detection with actionable
messages (offending tower, key and expected range).

Units:
    - Fan-out: millimeters (mm)

Usage:
    from plate_fanout.utils import validators
    doc = validators.load_geometry_document("geometry.yaml")
    tower = doc.tower("T1")
"""

from pathlib import Path
from typing import Dict, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Colours that receive fan-out compensation; black is the reference layer.
COMPENSATED_COLOURS = ("C", "M", "Y")


# ============================================================================
# GEOMETRY SCHEMA V1
# ============================================================================

class TowerGeometry(BaseModel):
    """Roll layout and per-colour fan-out of one printing tower."""
    roll_position: str = Field(
        ..., min_length=1, max_length=4,
        description="Section codes along the roll, 1-4 characters"
    )
    fanout_mm: Dict[str, float] = Field(
        ..., description="Fan-out distance per colour (C, M, Y) in mm"
    )

    @field_validator('fanout_mm')
    @classmethod
    def validate_fanout(cls, v: Dict[str, float]) -> Dict[str, float]:
        for colour, distance in v.items():
            if colour not in COMPENSATED_COLOURS:
                raise ValueError(
                    f"Unknown colour '{colour}', expected one of {COMPENSATED_COLOURS}"
                )
            if distance < 0.0 or distance > 25.0:
                raise ValueError(
                    f"Fan-out for {colour}={distance:.3f} mm out of range [0, 25]"
                )
        return v


class GeometryDocumentV1(BaseModel):
    """Container for all towers of a press (YAML file format)."""
    model_config = ConfigDict(populate_by_name=True)

    schema_version: str = Field("geometry.v1", alias="schema", description="Schema version")
    towers: Dict[str, TowerGeometry] = Field(..., description="Geometry keyed by tower id")

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "geometry.v1":
            raise ValueError(f"Expected schema 'geometry.v1', got '{v}'")
        return v

    @field_validator('towers', mode='before')
    @classmethod
    def stringify_tower_ids(cls, v):
        # YAML turns unquoted ids like 12 into ints
        if isinstance(v, dict):
            return {str(k): val for k, val in v.items()}
        return v

    def tower(self, tower_id: str) -> TowerGeometry:
        """Return geometry for *tower_id* or raise ``KeyError``."""
        try:
            return self.towers[tower_id]
        except KeyError:
            raise KeyError(
                f"Tower '{tower_id}' not in geometry document. "
                f"Available: {sorted(self.towers)}"
            ) from None


# ============================================================================
# PUBLIC API
# ============================================================================

def load_geometry_document(path: Union[str, Path]) -> GeometryDocumentV1:
    """Load and validate the geometry document from YAML.

    Parameters
    ----------
    path : Union[str, Path]
        Path to geometry.yaml

    Returns
    -------
    GeometryDocumentV1
        Validated geometry document

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValueError
        If validation fails (with actionable error message)
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Geometry document not found: {path}")

    data = fs.load_yaml(path)
    try:
        return GeometryDocumentV1(**(data or {}))
    except Exception as e:
        raise ValueError(f"Geometry document validation failed at {path}: {e}") from e
