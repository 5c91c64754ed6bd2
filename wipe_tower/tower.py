"""WipeTower -- stateful front end for a slicing pipeline.

Holds the process-wide ``TowerConfig``, the current ``LayerState``, the
seeded random source of the idle-layer fill and the nozzle position left
by the last toolchange.  The slicer calls, in print order::

    tower = WipeTower(load_config(), seed=7)
    tower.set_layer(z=0.2, first_layer=True, color_changes=2)
    gcode = tower.first_layer(side_only=False)
    gcode, pos = tower.toolchange(1, MaterialType.PLA, MaterialType.PVA, ...)
    gcode = tower.perimeter(order=1, total=2, layer_index=0, after_toolchange=True)

Positions are not verified between calls: the position returned by one
call is assumed to be where the next one starts.
"""

from __future__ import annotations

import logging
from dataclasses import replace

import numpy as np

from wipe_tower.configs.loader import LayerState, TowerConfig, validate_layer
from wipe_tower.geometry.box import Box, Point
from wipe_tower.layout import scaffolding
from wipe_tower.materials.profiles import MaterialType, WipeShape
from wipe_tower.toolchange.orchestrator import (
    ToolchangeRequest,
    ToolchangeResult,
    toolchange,
)

logger = logging.getLogger(__name__)


class WipeTower:
    """Wipe tower generator for one print.

    Parameters
    ----------
    config : TowerConfig
        Process-wide tower settings.
    layer : LayerState, optional
        Initial layer state; defaults to Z 0, not first layer, one band.
    seed : int, optional
        Seed of the idle-fill jitter.  ``None`` gives non-reproducible
        jitter.
    """

    def __init__(
        self,
        config: TowerConfig,
        layer: LayerState | None = None,
        seed: int | None = None,
    ) -> None:
        self._cfg = config
        self._layer = layer if layer is not None else LayerState()
        self._rng = np.random.RandomState(seed)
        self._last_pos: Point | None = None

    @property
    def config(self) -> TowerConfig:
        return self._cfg

    @property
    def layer(self) -> LayerState:
        return self._layer

    @property
    def last_position(self) -> Point | None:
        """Where the last toolchange left the nozzle."""
        return self._last_pos

    def set_layer(
        self,
        z: float,
        first_layer: bool = False,
        color_changes: int | None = None,
    ) -> None:
        """Advance to a new print layer.

        ``color_changes`` keeps its previous value when omitted.
        """
        changes = self._layer.color_changes if color_changes is None else color_changes
        layer = replace(self._layer, z=z, first_layer=first_layer, color_changes=changes)
        validate_layer(layer)
        self._layer = layer
        logger.debug(
            "Layer z=%.3f first=%s bands=%d", z, first_layer, changes,
        )

    def box_for_color(self, index: int) -> Box:
        return scaffolding.box_for_color(self._cfg, index)

    def first_layer(self, side_only: bool = False, y_offset: float = 0.0) -> str:
        """First-layer brim around the tower."""
        return scaffolding.first_layer_brim(self._cfg, self._layer, side_only, y_offset)

    def toolchange(
        self,
        tool: int,
        current_material: MaterialType,
        new_material: MaterialType,
        temperature: int = 0,
        shape: WipeShape = WipeShape.NORMAL,
        count: int = 0,
        space_available: float | None = None,
        wipe_start_y: float = 0.0,
        last_in_file: bool = False,
        color_init: bool = False,
    ) -> ToolchangeResult:
        """Purge sequence for one toolchange.

        ``space_available`` defaults to one band (``wipe_area``).
        """
        request = ToolchangeRequest(
            tool=tool,
            current_material=current_material,
            new_material=new_material,
            temperature=temperature,
            shape=shape,
            count=count,
            space_available=(
                self._cfg.wipe_area if space_available is None else space_available
            ),
            wipe_start_y=wipe_start_y,
            last_in_file=last_in_file,
            color_init=color_init,
        )
        result = toolchange(self._cfg, self._layer, request)
        self._last_pos = result.position
        return result

    def perimeter(
        self,
        order: int,
        total: int,
        layer_index: int,
        after_toolchange: bool,
        first_layer_offset: float = 0.0,
    ) -> str:
        """Empty grid for the bands without a toolchange on this layer."""
        start = self._last_pos if after_toolchange else None
        return scaffolding.idle_layer_fill(
            self._cfg,
            self._layer,
            order,
            total,
            layer_index,
            after_toolchange,
            first_layer_offset,
            rng=self._rng,
            start=start,
        )
