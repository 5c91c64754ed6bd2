"""Tests for the toolchange orchestrator and its phases.

Runs complete toolchanges and checks the emitted G-code through the
dry-run interpreter: phase markers, end positions, mirroring of the
REVERSED shape, wipe termination and material-specific commands.
"""

from __future__ import annotations

import re
from dataclasses import replace

import pytest

from wipe_tower.configs.loader import LayerState, TowerConfig
from wipe_tower.geometry.box import Point
from wipe_tower.materials.profiles import MaterialType, WipeShape
from wipe_tower.toolchange.orchestrator import (
    ToolchangeError,
    ToolchangeRequest,
    cleaning_box,
    toolchange,
)
from wipe_tower.utils.gcode_vm import GCodeVM, summarize_gcode


def _request(**overrides) -> ToolchangeRequest:
    params = dict(
        tool=1,
        current_material=MaterialType.PLA,
        new_material=MaterialType.PVA,
        temperature=0,
        shape=WipeShape.NORMAL,
        count=1,
        space_available=10.0,
        wipe_start_y=0.0,
    )
    params.update(overrides)
    return ToolchangeRequest(**params)


def _section(gcode: str, start: str, end: str | None = None) -> list[str]:
    """Lines strictly between the ``start`` and ``end`` markers."""
    lines = gcode.splitlines()
    i = lines.index(start) + 1
    j = lines.index(end) if end is not None else len(lines)
    return lines[i:j]


def _xe_lines(lines: list[str]) -> list[str]:
    return [ln for ln in lines if ln.startswith("G1") and "X" in ln and " E" in ln]


def _sum_e(lines: list[str]) -> float:
    total = 0.0
    for ln in lines:
        m = re.search(r" E(-?\d+\.\d+)", ln)
        if ln.startswith("G1") and m:
            total += float(m.group(1))
    return total


def _xy_moves(gcode: str) -> list[tuple[float, float]]:
    vm = GCodeVM()
    vm.load_string(gcode)
    vm.run()
    return [(m.x, m.y) for m in vm.moves if m.y is not None]


# ---------------------------------------------------------------------------
# Sequence structure
# ---------------------------------------------------------------------------


class TestSequence:
    def test_preamble(self, cfg: TowerConfig, layer: LayerState) -> None:
        result = toolchange(cfg, layer, _request())
        lines = result.gcode.splitlines()
        assert lines[:17] == [
            ";--------------------",
            "; CP TOOLCHANGE START",
            "; toolchange #1",
            "; material : DEFAULT (PLA)",
            ";--------------------",
            "M220 S100",
            "G1 Z0.800 F7200",
            "G1 E-2.0000 F3600",
            "G1 X0.500 Y0.500 F7200",
            "G1 Z0.200",
            "G1 E2.0000 F3600",
            "G1 E4.0000 F1500",
            "M907 E750",
            "G4 S0",
            "; CP TOOLCHANGE UNLOAD",
            "G1 X1.250 Y1.100 F4000",
            "G1 X59.250 E1.6000",
        ]

    def test_all_phase_markers_in_order(self, cfg: TowerConfig, layer: LayerState) -> None:
        summary = summarize_gcode(toolchange(cfg, layer, _request()).gcode)
        assert summary["markers"] == [
            "CP TOOLCHANGE START",
            "CP TOOLCHANGE UNLOAD",
            "CP TOOLCHANGE CHANGE",
            "CP TOOLCHANGE LOAD",
            "CP TOOLCHANGE WIPE",
            "CP TOOLCHANGE DONE",
            "CP TOOLCHANGE END",
        ]
        assert summary["tools"] == [1]

    def test_trailer(self, cfg: TowerConfig, layer: LayerState) -> None:
        gcode = toolchange(cfg, layer, _request()).gcode
        assert gcode.endswith(
            "M907 E550\nG4 S0\nG92 E0.0\n"
            "; CP TOOLCHANGE END\n;------------------\n\n\n"
        )

    def test_header_names_count_and_outgoing_material(
        self, cfg: TowerConfig, layer: LayerState,
    ) -> None:
        gcode = toolchange(
            cfg, layer, _request(count=3, current_material=MaterialType.PVA)
        ).gcode
        assert "; toolchange #3\n" in gcode
        assert "; material : #8 (PVA)\n" in gcode

    def test_ends_at_band_top_left(self, cfg: TowerConfig, layer: LayerState) -> None:
        result = toolchange(cfg, layer, _request())
        box = cleaning_box(cfg, _request())
        assert result.position == box.lu
        assert result.gcode.rstrip().splitlines()[-6] == "G1 F6000"

    def test_band_offset(self, cfg: TowerConfig, layer: LayerState) -> None:
        result = toolchange(cfg, layer, _request(wipe_start_y=20.0))
        assert "G1 X0.500 Y20.500 F7200" in result.gcode.splitlines()
        assert result.position == Point(0.0, 29.75)


class TestLastInFile:
    def test_unload_only(self, cfg: TowerConfig, layer: LayerState) -> None:
        gcode = toolchange(cfg, layer, _request(last_in_file=True)).gcode
        assert "; CP TOOLCHANGE UNLOAD" in gcode
        for marker in ("CHANGE", "LOAD", "WIPE", "DONE"):
            assert f"; CP TOOLCHANGE {marker}\n" not in gcode
        assert "T1" not in gcode.splitlines()
        assert gcode.count("M907 E550") == 1
        assert gcode.endswith("; CP TOOLCHANGE END\n;------------------\n\n\n")

    def test_ends_where_cooling_ended(self, cfg: TowerConfig, layer: LayerState) -> None:
        last = toolchange(cfg, layer, _request(last_in_file=True))
        assert last.position.x == pytest.approx(59.75)
        assert last.position.y == pytest.approx(2.7)

        full = toolchange(cfg, layer, _request()).gcode
        prefix = full[: full.index("; CP TOOLCHANGE CHANGE")]
        x, y, _ = summarize_gcode(prefix)["final_pos"]
        assert x == pytest.approx(last.position.x, abs=1e-3)
        assert y == pytest.approx(last.position.y, abs=1e-3)


# ---------------------------------------------------------------------------
# Shape mirroring
# ---------------------------------------------------------------------------


class TestReversedShape:
    def test_entry_at_top_of_band(self, cfg: TowerConfig, layer: LayerState) -> None:
        gcode = toolchange(cfg, layer, _request(shape=WipeShape.REVERSED)).gcode
        assert "G1 X0.500 Y9.250 F7200" in gcode.splitlines()

    def test_trajectory_is_mirrored(self, cfg: TowerConfig, layer: LayerState) -> None:
        normal = _xy_moves(toolchange(cfg, layer, _request()).gcode)
        reversed_ = _xy_moves(
            toolchange(cfg, layer, _request(shape=WipeShape.REVERSED)).gcode
        )
        box = cleaning_box(cfg, _request())
        mirror = box.ld.y + box.lu.y

        assert len(normal) == len(reversed_)
        for (xn, yn), (xr, yr) in zip(normal, reversed_):
            assert xn == pytest.approx(xr, abs=1e-3)
            assert yn + yr == pytest.approx(mirror, abs=2e-3)

    def test_y_steps_flip_sign(self, cfg: TowerConfig, layer: LayerState) -> None:
        normal = _xy_moves(toolchange(cfg, layer, _request()).gcode)
        reversed_ = _xy_moves(
            toolchange(cfg, layer, _request(shape=WipeShape.REVERSED)).gcode
        )
        dn = [b[1] - a[1] for a, b in zip(normal, normal[1:])]
        dr = [b[1] - a[1] for a, b in zip(reversed_, reversed_[1:])]
        for a, b in zip(dn, dr):
            assert a == pytest.approx(-b, abs=2e-3)

    def test_same_total_extrusion(self, cfg: TowerConfig, layer: LayerState) -> None:
        normal = summarize_gcode(toolchange(cfg, layer, _request()).gcode)
        reversed_ = summarize_gcode(
            toolchange(cfg, layer, _request(shape=WipeShape.REVERSED)).gcode
        )
        assert normal["total_extrusion_mm"] == pytest.approx(
            reversed_["total_extrusion_mm"], abs=1e-3
        )

    def test_ends_at_band_bottom_left(self, cfg: TowerConfig, layer: LayerState) -> None:
        result = toolchange(cfg, layer, _request(shape=WipeShape.REVERSED))
        assert result.position == cleaning_box(cfg, _request()).ld


# ---------------------------------------------------------------------------
# Wipe phase
# ---------------------------------------------------------------------------


class TestWipe:
    @pytest.mark.parametrize("space", [1.0, 2.5, 10.0, 30.0])
    @pytest.mark.parametrize("shape", [WipeShape.NORMAL, WipeShape.REVERSED])
    def test_terminates_for_any_band(
        self, cfg: TowerConfig, layer: LayerState, space: float, shape: WipeShape,
    ) -> None:
        gcode = toolchange(cfg, layer, _request(space_available=space, shape=shape)).gcode
        assert gcode.count("; CP TOOLCHANGE WIPE\n") == 1
        assert "; CP TOOLCHANGE END\n" in gcode

    def test_overshoot_bounded_by_one_pass(self, cfg: TowerConfig, layer: LayerState) -> None:
        gcode = toolchange(cfg, layer, _request()).gcode
        wipe = "\n".join(_section(gcode, "; CP TOOLCHANGE WIPE", "; CP TOOLCHANGE DONE"))
        ys = [float(v) for v in re.findall(r"Y(-?\d+\.\d+)", wipe)]
        box = cleaning_box(cfg, _request())
        pitch = 2 * 0.7 * cfg.perimeter_width
        assert max(ys) > box.lu.y - cfg.perimeter_width
        assert max(ys) <= box.lu.y - cfg.perimeter_width + pitch + 1e-3

    def test_speed_ramps_to_ceiling(self, cfg: TowerConfig, layer: LayerState) -> None:
        gcode = toolchange(cfg, layer, _request(space_available=30.0)).gcode
        wipe = _section(gcode, "; CP TOOLCHANGE WIPE", "; CP TOOLCHANGE DONE")
        feeds = [float(ln[4:]) for ln in wipe if ln.startswith("G1 F")]
        assert feeds[0] == 4250
        assert max(feeds) == 4800
        assert feeds == sorted(feeds)

    def test_first_layer_slower(
        self, cfg: TowerConfig, first_layer: LayerState,
    ) -> None:
        gcode = toolchange(cfg, first_layer, _request()).gcode
        wipe = _section(gcode, "; CP TOOLCHANGE WIPE", "; CP TOOLCHANGE DONE")
        assert wipe[0] == "G1 F2125"

    def test_first_layer_more_flow(
        self, cfg: TowerConfig, layer: LayerState, first_layer: LayerState,
    ) -> None:
        def wipe_e(state: LayerState) -> float:
            gcode = toolchange(cfg, state, _request()).gcode
            return _sum_e(_section(gcode, "; CP TOOLCHANGE WIPE", "; CP TOOLCHANGE DONE"))

        assert wipe_e(first_layer) / wipe_e(layer) == pytest.approx(1.18, rel=1e-3)


# ---------------------------------------------------------------------------
# Load / material handling
# ---------------------------------------------------------------------------


class TestLoad:
    def test_color_init_primes_three_lines(self, cfg: TowerConfig, layer: LayerState) -> None:
        gcode = toolchange(cfg, layer, _request(color_init=True)).gcode
        load = _section(gcode, "; CP TOOLCHANGE LOAD", "; CP TOOLCHANGE WIPE")
        # 4 loading moves + 3 primed lines
        assert len(_xe_lines(load)) == 7

    def test_normal_load_primes_five_lines(self, cfg: TowerConfig, layer: LayerState) -> None:
        gcode = toolchange(cfg, layer, _request()).gcode
        load = _section(gcode, "; CP TOOLCHANGE LOAD", "; CP TOOLCHANGE WIPE")
        assert len(_xe_lines(load)) == 9

    def test_loading_moves(self, cfg: TowerConfig, layer: LayerState) -> None:
        gcode = toolchange(cfg, layer, _request()).gcode
        load = _section(gcode, "; CP TOOLCHANGE LOAD", "; CP TOOLCHANGE WIPE")
        assert load[:4] == [
            "G1 X59.500 E20.0000 F1400",
            "G1 X0.500 E40.0000 F3000",
            "G1 X59.500 E20.0000 F1600",
            "G1 X0.500 E10.0000 F1000",
        ]
        assert load[-1] == "M907 E550"


class TestMaterials:
    @pytest.mark.parametrize(
        "material, passes",
        [
            (MaterialType.PLA, 3 + 2 * 4),
            (MaterialType.ABS, 3 + 2 * 4),
            (MaterialType.FLEX, 3 + 2 * 4),
            (MaterialType.INVALID, 3 + 2 * 4),
            (MaterialType.PVA, 4 + 2 * 6),
            (MaterialType.SCAFF, 3 + 2 * 5),
        ],
    )
    def test_unload_ram_and_cooling_moves(
        self, cfg: TowerConfig, layer: LayerState, material: MaterialType, passes: int,
    ) -> None:
        gcode = toolchange(cfg, layer, _request(current_material=material)).gcode
        unload = _section(gcode, "; CP TOOLCHANGE UNLOAD", "; CP TOOLCHANGE CHANGE")
        assert len(_xe_lines(unload)) == passes

    @pytest.mark.parametrize(
        "material, override",
        [
            (MaterialType.PLA, 100),
            (MaterialType.PET, 100),
            (MaterialType.PVA, 80),
            (MaterialType.FLEX, 35),
            (MaterialType.SCAFF, 35),
        ],
    )
    def test_speed_override_after_change(
        self, cfg: TowerConfig, layer: LayerState, material: MaterialType, override: int,
    ) -> None:
        gcode = toolchange(cfg, layer, _request(tool=2, new_material=material)).gcode
        change = _section(gcode, "; CP TOOLCHANGE CHANGE", "; CP TOOLCHANGE LOAD")
        assert change == ["T2", f"M220 S{override}", "G4 S0"]

    def test_temperature_set_during_unload(self, cfg: TowerConfig, layer: LayerState) -> None:
        gcode = toolchange(cfg, layer, _request(temperature=215)).gcode
        unload = _section(gcode, "; CP TOOLCHANGE UNLOAD", "; CP TOOLCHANGE CHANGE")
        assert "M104 S215" in unload
        assert summarize_gcode(gcode)["temperatures"] == [(215, False)]

    def test_zero_temperature_keeps_target(self, cfg: TowerConfig, layer: LayerState) -> None:
        gcode = toolchange(cfg, layer, _request(temperature=0)).gcode
        assert "M104" not in gcode
        assert "M109" not in gcode


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    @pytest.mark.parametrize("space", [0.0, -5.0])
    @pytest.mark.parametrize("shape", [WipeShape.NORMAL, WipeShape.REVERSED])
    def test_empty_band_still_laid_out(
        self,
        cfg: TowerConfig,
        layer: LayerState,
        caplog: pytest.LogCaptureFixture,
        space: float,
        shape: WipeShape,
    ) -> None:
        with caplog.at_level("WARNING", logger="wipe_tower.toolchange.orchestrator"):
            gcode = toolchange(cfg, layer, _request(space_available=space, shape=shape)).gcode
        assert "narrower than one perimeter" in caplog.text
        assert gcode.endswith("; CP TOOLCHANGE END\n;------------------\n\n\n")
        wipe = _section(gcode, "; CP TOOLCHANGE WIPE", "; CP TOOLCHANGE DONE")
        # a single pass: one feed rate per half pass
        assert [ln for ln in wipe if ln.startswith("G1 F")] == ["G1 F4250", "G1 F4300"]

    def test_zero_perimeter_rejected(self, cfg: TowerConfig, layer: LayerState) -> None:
        with pytest.raises(ToolchangeError, match="perimeter_width"):
            toolchange(replace(cfg, perimeter_width=0.0), layer, _request())

    def test_narrow_band_warns(
        self, cfg: TowerConfig, layer: LayerState, caplog: pytest.LogCaptureFixture,
    ) -> None:
        with caplog.at_level("WARNING", logger="wipe_tower.toolchange.orchestrator"):
            toolchange(cfg, layer, _request(space_available=0.3))
        assert "narrower than one perimeter" in caplog.text

    def test_invalid_material_falls_back(
        self, cfg: TowerConfig, layer: LayerState, caplog: pytest.LogCaptureFixture,
    ) -> None:
        with caplog.at_level("WARNING", logger="wipe_tower.toolchange.orchestrator"):
            bad = toolchange(cfg, layer, _request(current_material=MaterialType.INVALID))
        good = toolchange(cfg, layer, _request())
        assert "INVALID material" in caplog.text
        assert bad.gcode == good.gcode

    def test_band_height_is_required(self) -> None:
        with pytest.raises(TypeError):
            ToolchangeRequest(1, MaterialType.PLA, MaterialType.PVA)  # type: ignore[call-arg]
