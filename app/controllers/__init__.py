"""
Controllers for the schematic editor.

This package contains controller classes that orchestrate operations
between models and views using an observer pattern.
"""

from .circuit_controller import CircuitController
from .editor_settings import EditorSettings, apply_settings, load_settings, save_settings
from .file_controller import FileController, validate_circuit_data
from .simulation_controller import SimulationController, SimulationResult

__all__ = [
    "CircuitController",
    "EditorSettings",
    "FileController",
    "SimulationController",
    "SimulationResult",
    "apply_settings",
    "load_settings",
    "save_settings",
    "validate_circuit_data",
]
