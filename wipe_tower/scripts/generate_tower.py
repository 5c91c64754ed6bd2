#!/usr/bin/env python3
"""
Generate Tower Script.

Render a toolchange plan to wipe tower G-code on stdout.

Usage:
    python -m wipe_tower.scripts.generate_tower --plan plan.yaml
    python -m wipe_tower.scripts.generate_tower --plan plan.yaml --config tower.yaml
    python -m wipe_tower.scripts.generate_tower --plan plan.yaml --seed 7 --summary
    python -m wipe_tower.scripts.generate_tower --plan plan.yaml --log-file run.log --log-json

Toolchanges are numbered in plan order across all layers.  With
``--summary`` a dry-run report (extrusion, moves, time) is written to
stderr as YAML after the G-code.
"""

from __future__ import annotations

import argparse
import logging
import sys

from wipe_tower.configs.loader import ConfigError, load_config
from wipe_tower.materials.profiles import parse_material
from wipe_tower.toolchange.orchestrator import ToolchangeError
from wipe_tower.tower import WipeTower
from wipe_tower.utils.fs import dump_yaml
from wipe_tower.utils.gcode_vm import summarize_gcode
from wipe_tower.utils.logging_config import install_excepthook, log_context, setup_logging
from wipe_tower.utils.validators import ToolchangePlanV1, load_toolchange_plan

logger = logging.getLogger(__name__)


def render_plan(tower: WipeTower, plan: ToolchangePlanV1) -> str:
    """G-code of every layer in ``plan``, in print order."""
    chunks: list[str] = []
    count = 0
    for index, layer in enumerate(plan.layers):
        tower.set_layer(layer.z_mm, layer.first_layer, layer.color_changes)
        with log_context(layer=index):
            if layer.brim is not None:
                chunks.append(tower.first_layer(layer.brim.side_only, layer.brim.y_offset))
            for tc in layer.toolchanges:
                count += 1
                result = tower.toolchange(
                    tool=tc.tool,
                    current_material=parse_material(tc.old_material),
                    new_material=parse_material(tc.new_material),
                    temperature=tc.temperature,
                    shape=tc.wipe_shape,
                    count=count,
                    space_available=tc.space_available,
                    wipe_start_y=tc.wipe_start_y,
                    last_in_file=tc.last_in_file,
                    color_init=tc.color_init,
                )
                chunks.append(result.gcode)
            if layer.idle_fill is not None:
                fill = layer.idle_fill
                chunks.append(tower.perimeter(
                    fill.order,
                    fill.total,
                    index,
                    fill.after_toolchange,
                    fill.first_layer_offset,
                ))
    logger.info("Rendered %d layers, %d toolchanges", len(plan.layers), count)
    return "".join(chunks)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Render a toolchange plan to wipe tower G-code",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--plan",
        "-p",
        type=str,
        required=True,
        help="Toolchange plan (YAML, schema toolchange_plan.v1)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Tower configuration file path (default: packaged tower.yaml)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed for the idle-fill jitter (overrides the plan's seed)",
    )
    parser.add_argument(
        "--summary",
        action="store_true",
        help="Write a dry-run summary to stderr",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        help="Also write logs to this file (rotated at 10 MB)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Write the log file as one JSON object per line",
    )
    args = parser.parse_args()

    setup_logging(
        log_level=args.log_level,
        log_file=args.log_file,
        json=args.log_json,
        context={"app": "generate_tower"},
    )
    install_excepthook()

    try:
        config = load_config(args.config)
        plan = load_toolchange_plan(args.plan)
    except (FileNotFoundError, ConfigError, ValueError) as e:
        logger.error("%s", e)
        sys.exit(2)

    seed = args.seed if args.seed is not None else plan.seed
    tower = WipeTower(config, seed=seed)

    try:
        gcode = render_plan(tower, plan)
    except ToolchangeError as e:
        logger.error("Cannot lay out toolchange: %s", e)
        sys.exit(1)

    sys.stdout.write(gcode)

    if args.summary:
        summary = summarize_gcode(gcode)
        report = {
            "moves": summary["move_count"],
            "total_extrusion_mm": round(summary["total_extrusion_mm"], 4),
            "time_estimate_s": round(summary["time_estimate_s"], 1),
            "tools": summary["tools"],
            "final_pos": [v if v is None else round(v, 3) for v in summary["final_pos"]],
        }
        sys.stderr.write(dump_yaml(report))


if __name__ == "__main__":
    main()
