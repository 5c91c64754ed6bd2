"""Shared fixtures for wipe tower tests."""

from __future__ import annotations

import pytest

from wipe_tower.configs.loader import LayerState, TowerConfig
from wipe_tower.geometry.box import Point


@pytest.fixture()
def cfg() -> TowerConfig:
    """Tower at the bed origin, 60 mm wide, 10 mm bands, 0.5 mm lines."""
    return TowerConfig(
        origin=Point(0.0, 0.0),
        width=60.0,
        wipe_area=10.0,
        perimeter_width=0.5,
        retract=4.0,
        z_hop=0.6,
        extrusion_flow=0.038,
    )


@pytest.fixture()
def layer() -> LayerState:
    return LayerState(z=0.2, first_layer=False, color_changes=2)


@pytest.fixture()
def first_layer() -> LayerState:
    return LayerState(z=0.2, first_layer=True, color_changes=2)
