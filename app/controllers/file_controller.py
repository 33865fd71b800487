"""
FileController - Handles circuit file I/O and session persistence.

File dialog interaction is the responsibility of the view layer.
Recent files tracking uses QSettings for cross-session persistence.
"""

import json
import logging
import os
from pathlib import Path
from typing import List, Optional

from models.circuit import CircuitModel
from PyQt6.QtCore import QSettings

from .editor_settings import APPLICATION_NAME, ORGANIZATION_NAME

logger = logging.getLogger(__name__)

SESSION_FILE = "last_session.txt"
AUTOSAVE_FILE = ".autosave_recovery.json"
MAX_RECENT_FILES = 10


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_circuit_data(data) -> None:
    """
    Validate JSON structure before loading.

    Raises ValueError with a descriptive message if anything is wrong.
    """
    if not isinstance(data, dict):
        raise ValueError("File does not contain a valid circuit object.")

    wires = data.get("wires")
    if not isinstance(wires, dict):
        raise ValueError("Missing or invalid 'wires' object.")
    if not isinstance(wires.get("nodes", []), list) or not isinstance(wires.get("segments", []), list):
        raise ValueError("Wire 'nodes' and 'segments' must be lists.")
    if "components" not in data or not isinstance(data["components"], list):
        raise ValueError("Missing or invalid 'components' list.")
    if not isinstance(data.get("probes", []), list):
        raise ValueError("Invalid 'probes' list.")

    node_ids = set()
    for i, node in enumerate(wires.get("nodes", [])):
        if not isinstance(node, dict) or not all(key in node for key in ("id", "x", "y")):
            raise ValueError(f"Wire node #{i + 1} must have 'id', 'x' and 'y'.")
        if not _is_number(node["x"]) or not _is_number(node["y"]):
            raise ValueError(f"Wire node {node['id']} position values must be numeric.")
        if node["id"] in node_ids:
            raise ValueError(f"Wire node id {node['id']} is used more than once.")
        node_ids.add(node["id"])

    for i, segment in enumerate(wires.get("segments", [])):
        for key in ("node1", "node2"):
            if key not in segment:
                raise ValueError(f"Wire segment #{i + 1} is missing required field '{key}'.")
            if segment[key] not in node_ids:
                raise ValueError(f"Wire segment #{i + 1} references unknown node {segment[key]}.")
        if segment["node1"] == segment["node2"]:
            raise ValueError(f"Wire segment #{i + 1} joins node {segment['node1']} to itself.")

    comp_ids = set()
    for i, comp in enumerate(data["components"]):
        for key in ("id", "prefix", "number", "pins"):
            if key not in comp:
                raise ValueError(f"Component #{i + 1} is missing required field '{key}'.")
        if comp["id"] in comp_ids:
            raise ValueError(f"Component id '{comp['id']}' is used more than once.")
        comp_ids.add(comp["id"])
        pins = [str(p) for p in comp["pins"]]
        for pin_id, node_id in comp.get("attachments", {}).items():
            if str(pin_id) not in pins:
                raise ValueError(f"Component '{comp['id']}' attaches undeclared pin '{pin_id}'.")
            if node_id is not None and node_id not in node_ids:
                raise ValueError(f"Component '{comp['id']}' pin '{pin_id}' references unknown node {node_id}.")

    for i, probe in enumerate(data.get("probes", [])):
        for key in ("id", "x", "y"):
            if key not in probe:
                raise ValueError(f"Probe #{i + 1} is missing required field '{key}'.")
        if not _is_number(probe["x"]) or not _is_number(probe["y"]):
            raise ValueError(f"Probe '{probe['id']}' position values must be numeric.")


class FileController:
    """
    Manages circuit file I/O and session persistence.

    Handles saving/loading circuit data as JSON and tracking
    the current file path for quick-save and session restore.
    """

    def __init__(
        self,
        model: Optional[CircuitModel] = None,
        circuit_ctrl=None,
        session_file: str = SESSION_FILE,
        autosave_file: str = AUTOSAVE_FILE,
    ):
        self.model = model or CircuitModel()
        self.circuit_ctrl = circuit_ctrl  # For observer notifications
        self.current_file: Optional[Path] = None
        self._session_file = session_file
        self._autosave_file = Path(autosave_file)

    def new_circuit(self) -> None:
        """Clear the circuit and reset file state."""
        self.model.clear()
        self.current_file = None

    def save_circuit(self, filepath) -> None:
        """
        Save circuit to JSON file.

        Args:
            filepath: Path or string to save to.

        Raises:
            OSError: If the file cannot be written.
            TypeError: If model data is not JSON-serializable.
        """
        filepath = Path(filepath)
        data = self.model.to_dict()
        with open(filepath, "w") as f:
            json.dump(data, f, indent=2)
        self.current_file = filepath
        self._save_session()
        self.add_recent_file(filepath)

        if self.circuit_ctrl:
            self.circuit_ctrl._notify("model_saved", None)

    def load_circuit(self, filepath) -> None:
        """
        Load circuit from JSON file.

        Validates JSON structure before loading, then rebuilds the wire
        graph by replaying the stored nodes and segments. Updates the model
        in place (preserving the reference so views stay connected).

        Args:
            filepath: Path or string to load from.

        Raises:
            json.JSONDecodeError: If file is not valid JSON.
            ValueError: If file structure is invalid.
            OSError: If the file cannot be read.
        """
        filepath = Path(filepath)
        with open(filepath, "r") as f:
            data = json.load(f)

        validate_circuit_data(data)
        self._replace_model(CircuitModel.from_dict(data))

        self.current_file = filepath
        self._save_session()
        self.add_recent_file(filepath)
        logger.info("Loaded circuit from %s", filepath)

        if self.circuit_ctrl:
            self.circuit_ctrl._notify("model_loaded", None)

    def _replace_model(self, new_model: CircuitModel) -> None:
        self.model.clear()
        self.model.graph = new_model.graph
        self.model.components = new_model.components
        self.model.probes = new_model.probes
        self.model.component_counter = new_model.component_counter
        self.model.probe_counter = new_model.probe_counter
        self.model.title = new_model.title
        self.model.analysis_directives = new_model.analysis_directives

    def export_netlist(self, filepath, netlist: str) -> None:
        """Write netlist text next to the circuit (for running ngspice by hand)."""
        with open(Path(filepath), "w") as f:
            f.write(netlist)

    def has_file(self) -> bool:
        """Return whether a current file path is set (for quick-save)."""
        return self.current_file is not None

    def get_window_title(self, base: str = APPLICATION_NAME) -> str:
        """Get window title based on current file."""
        if self.current_file:
            return f"{base} - {self.current_file.name}"
        return base

    def _save_session(self) -> None:
        """Save current file path for session restore."""
        try:
            with open(self._session_file, "w") as f:
                f.write(os.path.abspath(str(self.current_file)) if self.current_file else "")
        except OSError as e:
            logger.debug("Session save skipped: %s", e)

    def load_last_session(self) -> Optional[Path]:
        """
        Load last session file path if it exists.

        Returns:
            Path to the last opened file, or None.
        """
        try:
            with open(self._session_file, "r") as f:
                path_str = f.read().strip()
        except OSError:
            return None
        if path_str:
            path = Path(path_str)
            if path.exists():
                return path
        return None

    def get_recent_files(self) -> List[str]:
        """
        Get list of recently opened files from QSettings.

        Returns:
            List of file paths (most recent first), with non-existent files removed.
        """
        settings = QSettings(ORGANIZATION_NAME, APPLICATION_NAME)
        recent = settings.value("file/recent_files", [])

        if not isinstance(recent, list):
            recent = []

        existing = [f for f in recent if os.path.exists(f)]
        if len(existing) != len(recent):
            settings.setValue("file/recent_files", existing)

        return existing

    def add_recent_file(self, filepath: Path) -> None:
        """Move a file to the front of the recent files list."""
        filepath_str = str(Path(filepath).absolute())
        recent = self.get_recent_files()

        if filepath_str in recent:
            recent.remove(filepath_str)
        recent.insert(0, filepath_str)
        recent = recent[:MAX_RECENT_FILES]

        settings = QSettings(ORGANIZATION_NAME, APPLICATION_NAME)
        settings.setValue("file/recent_files", recent)

    def clear_recent_files(self) -> None:
        settings = QSettings(ORGANIZATION_NAME, APPLICATION_NAME)
        settings.setValue("file/recent_files", [])

    # ------------------------------------------------------------------
    # Auto-save and crash recovery
    # ------------------------------------------------------------------

    def auto_save(self) -> None:
        """Save circuit to the auto-save recovery file.

        Unlike save_circuit(), this does NOT update current_file,
        recent files, or session state.
        """
        try:
            data = self.model.to_dict()
            data["_autosave_source"] = str(self.current_file) if self.current_file else ""
            with open(self._autosave_file, "w") as f:
                json.dump(data, f, indent=2)
        except (OSError, TypeError) as e:
            logger.warning("Auto-save failed: %s", e)

    def has_auto_save(self) -> bool:
        return self._autosave_file.exists()

    def load_auto_save(self) -> Optional[str]:
        """Load circuit from the auto-save recovery file.

        Returns:
            The original file path (str) the auto-save was based on,
            or empty string if it was an unsaved circuit. Returns None
            on failure.
        """
        try:
            with open(self._autosave_file, "r") as f:
                data = json.load(f)
            source_path = data.pop("_autosave_source", "")
            validate_circuit_data(data)
            new_model = CircuitModel.from_dict(data)
        except (OSError, json.JSONDecodeError, ValueError) as e:
            logger.error("Could not recover auto-save: %s", e, exc_info=True)
            return None

        self._replace_model(new_model)
        if source_path:
            self.current_file = Path(source_path)
        if self.circuit_ctrl:
            self.circuit_ctrl._notify("model_loaded", None)
        return source_path

    def clear_auto_save(self) -> None:
        """Delete the auto-save recovery file if it exists."""
        try:
            self._autosave_file.unlink(missing_ok=True)
        except OSError as e:
            logger.debug("Could not delete auto-save file: %s", e)
