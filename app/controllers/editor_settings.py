"""
Editor preferences persisted through QSettings.

Tolerances are in scene units. QSettings may hand values back as strings
depending on the platform backend, so every value is converted on load.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from PyQt6.QtCore import QSettings

logger = logging.getLogger(__name__)

ORGANIZATION_NAME = "SpiceNet"
APPLICATION_NAME = "SpiceNet Editor"


@dataclass
class EditorSettings:
    snap_tolerance: float = 0.001
    node_hit_tolerance: float = 5.0
    segment_hit_tolerance: float = 5.0
    grid_size: float = 10.0
    ngspice_path: str = ""
    solver_timeout: int = 60
    netlist_title: str = "* Schematic netlist"


# attribute -> (settings key, converter)
_KEYS = {
    "snap_tolerance": ("wires/snap_tolerance", float),
    "node_hit_tolerance": ("wires/node_hit_tolerance", float),
    "segment_hit_tolerance": ("wires/segment_hit_tolerance", float),
    "grid_size": ("grid/size", float),
    "ngspice_path": ("simulation/ngspice_path", str),
    "solver_timeout": ("simulation/timeout", int),
    "netlist_title": ("netlist/title", str),
}


def load_settings(settings: Optional[QSettings] = None) -> EditorSettings:
    """Read editor preferences, falling back to defaults for bad or missing values."""
    settings = settings or QSettings(ORGANIZATION_NAME, APPLICATION_NAME)
    loaded = EditorSettings()
    for attr, (key, convert) in _KEYS.items():
        raw = settings.value(key, None)
        if raw is None or raw == "":
            continue
        try:
            setattr(loaded, attr, convert(raw))
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid setting %s=%r", key, raw)
    return loaded


def save_settings(values: EditorSettings, settings: Optional[QSettings] = None) -> None:
    settings = settings or QSettings(ORGANIZATION_NAME, APPLICATION_NAME)
    for attr, (key, _) in _KEYS.items():
        settings.setValue(key, getattr(values, attr))


def reset_settings(settings: Optional[QSettings] = None) -> EditorSettings:
    """Remove stored preferences and return the defaults."""
    settings = settings or QSettings(ORGANIZATION_NAME, APPLICATION_NAME)
    for key, _ in _KEYS.values():
        settings.remove(key)
    return EditorSettings()


def apply_settings(values: EditorSettings, circuit_ctrl=None, simulation_ctrl=None) -> None:
    """Push preferences into live controllers."""
    if circuit_ctrl is not None:
        circuit_ctrl.node_hit_tolerance = values.node_hit_tolerance
        circuit_ctrl.segment_hit_tolerance = values.segment_hit_tolerance
        circuit_ctrl.grid_size = values.grid_size
        circuit_ctrl.model.graph.snap_tolerance = values.snap_tolerance
    if simulation_ctrl is not None:
        simulation_ctrl.configure_solver(values.ngspice_path, values.solver_timeout)
        simulation_ctrl.default_title = values.netlist_title
    logger.debug("Applied editor settings: %s", values)
