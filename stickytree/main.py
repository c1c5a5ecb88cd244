"""
stickytree — Application Wiring

Builds a ready-to-use TransitionCoordinator: configuration is loaded,
logging is set up, then the coordinator is wired to the given tree.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from stickytree.config import load_config
from stickytree.systems.statetree.engine import PathEngine
from stickytree.systems.sticky.service import TransitionCoordinator
from stickytree.telemetry.logging import setup_logging

if TYPE_CHECKING:
    from stickytree.systems.statetree.engine import TransitionEngine
    from stickytree.systems.statetree.tree import StateTree

logger = structlog.get_logger("stickytree")


def create_coordinator(
    tree: StateTree,
    engine: TransitionEngine | None = None,
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> TransitionCoordinator:
    """
    Load config (``STICKYTREE_CONFIG_PATH`` when no path is given), set up
    logging and return a coordinator driving ``engine`` over ``tree``.
    Without an engine the in-process PathEngine is used.
    """
    if config_path is None:
        config_path = os.environ.get("STICKYTREE_CONFIG_PATH", "config/stickytree.yaml")
    config = load_config(config_path, overrides)
    setup_logging(config.logging, instance_id=config.instance_id)

    coordinator = TransitionCoordinator(tree, engine or PathEngine(tree), config.sticky)
    logger.info(
        "stickytree_ready",
        instance_id=config.instance_id,
        debug=config.sticky.debug,
        sticky_states=coordinator.registry.stats["sticky_states"],
    )
    return coordinator
