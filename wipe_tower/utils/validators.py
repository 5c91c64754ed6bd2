"""YAML schema validation for toolchange plans.

A plan describes, layer by layer, what the slicer asks of the wipe tower:
the first-layer brim, the toolchanges in print order and the idle-layer
fill.  The CLI renders a plan to G-code; tests use plans as fixtures.

Plan schema (toolchange_plan.v1):

    schema: toolchange_plan.v1
    seed: 7                       # optional, idle-fill jitter
    layers:
      - z_mm: 0.2
        first_layer: true
        color_changes: 2
        brim: {side_only: false, y_offset: 0.0}
        toolchanges:
          - {tool: 1, old_material: PLA, new_material: PVA, temperature: 215,
             shape: normal, space_available: 10.0, wipe_start_y: 0.0}
        idle_fill: {order: 1, total: 2, after_toolchange: true}

Units:
    - Geometry: millimeters (mm)
    - Temperature: degrees Celsius, 0 keeps the current target

Usage:
    from wipe_tower.utils import validators
    plan = validators.load_toolchange_plan("plan.yaml")
"""

from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from wipe_tower.materials.profiles import MaterialType, WipeShape, parse_material


class BrimPlan(BaseModel):
    """First-layer brim request."""
    side_only: bool = Field(False, description="Only stroke the side edges")
    y_offset: float = Field(0.0, description="Inset of side strokes from the tower ends (mm)")


class ToolchangePlan(BaseModel):
    """One toolchange event."""
    tool: int = Field(..., ge=0, description="Tool index selected after the change")
    old_material: str = Field(..., description="Material being unloaded")
    new_material: str = Field(..., description="Material being loaded")
    temperature: int = Field(0, ge=0, le=400, description="New hotend target, 0 = unchanged")
    shape: str = Field("normal", description="normal or reversed")
    space_available: float = Field(..., gt=0, description="Band height reserved for the change (mm)")
    wipe_start_y: float = Field(..., description="Band start relative to the tower origin (mm)")
    last_in_file: bool = Field(False, description="Unload only, no new filament")
    color_init: bool = Field(False, description="First load of this color")

    @field_validator('old_material', 'new_material')
    @classmethod
    def validate_material(cls, v: str) -> str:
        if parse_material(v) is MaterialType.INVALID:
            allowed = [m.value for m in MaterialType if m is not MaterialType.INVALID]
            raise ValueError(f"Unknown material '{v}', expected one of {allowed}")
        return v

    @field_validator('shape')
    @classmethod
    def validate_shape(cls, v: str) -> str:
        if v.lower() not in ("normal", "reversed"):
            raise ValueError(f"shape must be 'normal' or 'reversed', got '{v}'")
        return v.lower()

    @property
    def wipe_shape(self) -> WipeShape:
        return WipeShape.REVERSED if self.shape == "reversed" else WipeShape.NORMAL


class IdleFillPlan(BaseModel):
    """Empty-grid fill for bands without a toolchange on this layer."""
    order: int = Field(..., ge=0, description="First band to fill")
    total: int = Field(..., ge=0, description="Band whose seam closes the fill")
    after_toolchange: bool = Field(True, description="Nozzle is already on the tower")
    first_layer_offset: float = Field(0.0, description="Shift of the fill's bottom edge (mm)")

    @model_validator(mode='after')
    def validate_order(self) -> 'IdleFillPlan':
        if self.total < self.order:
            raise ValueError(f"total ({self.total}) must be >= order ({self.order})")
        return self


class LayerPlan(BaseModel):
    """Everything the tower prints on one layer."""
    z_mm: float = Field(..., ge=0.0, description="Layer print Z (mm)")
    first_layer: bool = Field(False)
    color_changes: int = Field(1, ge=0, description="Bands used on the tower")
    brim: Optional[BrimPlan] = None
    toolchanges: List[ToolchangePlan] = Field(default_factory=list)
    idle_fill: Optional[IdleFillPlan] = None


class ToolchangePlanV1(BaseModel):
    """Toolchange plan schema v1."""
    model_config = ConfigDict(populate_by_name=True)

    schema_version: str = Field("toolchange_plan.v1", alias="schema", description="Schema version")
    seed: Optional[int] = Field(None, description="Seed for the idle-fill X jitter")
    layers: List[LayerPlan] = Field(..., min_length=1)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "toolchange_plan.v1":
            raise ValueError(f"Expected schema 'toolchange_plan.v1', got '{v}'")
        return v


def load_toolchange_plan(path: Union[str, Path]) -> ToolchangePlanV1:
    """Load and validate a toolchange plan from YAML.

    Parameters
    ----------
    path : Union[str, Path]
        Path to the plan file

    Returns
    -------
    ToolchangePlanV1
        Validated plan

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
        raise FileNotFoundError(f"Toolchange plan not found: {path}")

    data = fs.load_yaml(path)
    try:
        return ToolchangePlanV1(**(data or {}))
    except Exception as e:
        raise ValueError(f"Toolchange plan validation failed at {path}: {e}") from e
