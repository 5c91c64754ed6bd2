"""
Toolchange module.

Five-phase purge sequence (unload, change, load, wipe, done) for one
toolchange on the wipe tower.
"""

from wipe_tower.toolchange.orchestrator import (
    ToolchangeError,
    ToolchangeRequest,
    ToolchangeResult,
    cleaning_box,
    toolchange,
)

__all__ = [
    "ToolchangeError",
    "ToolchangeRequest",
    "ToolchangeResult",
    "cleaning_box",
    "toolchange",
]
