"""Shared utilities for the wipe tower package.

Modules:
    - fs: YAML loading
    - gcode_vm: offline interpreter for emitted G-code
    - logging_config: logging setup and contextual fields
    - validators: pydantic schemas for toolchange plans

Usage:
    from wipe_tower.utils import fs, gcode_vm, logging_config, validators
"""

from . import fs
from . import gcode_vm
from . import logging_config
from . import validators

from .logging_config import log_context, pop_context, push_context, setup_logging

__all__ = [
    "fs",
    "gcode_vm",
    "logging_config",
    "validators",
    "log_context",
    "pop_context",
    "push_context",
    "setup_logging",
]
