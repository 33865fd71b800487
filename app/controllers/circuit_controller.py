"""
CircuitController - Orchestrates wire, component and probe editing.

This module contains no Qt dependencies. It manages the CircuitModel
and notifies views of changes through an observer pattern.
"""

import copy
import logging
from typing import Any, Callable, Optional

from models.circuit import CircuitModel
from models.component import ComponentData, make_component
from models.geometry import snap_to_grid
from models.probe import VOLTAGE_PROBE, ProbeData, normalize_probe_type
from models.wire_graph import DEFAULT_HIT_TOLERANCE, InvalidTopology, SplitResult, WireNode, WireSegment

logger = logging.getLogger(__name__)


class CircuitController:
    """
    Controller for wire, component and probe operations.

    Manages the CircuitModel and notifies registered observers when
    the model changes. Views register callbacks to stay in sync.

    Edits that fail with InvalidTopology are rolled back and logged; the
    model is left exactly as it was and only edit_rejected is sent.

    Observer events:
        component_added (ComponentData) - A new component was added
        component_removed (str) - A component was removed (by ID)
        component_value_changed (ComponentData) - A component's value changed
        pin_attached (tuple[str, str, int]) - (component_id, pin_id, node_id)
        pin_detached (tuple[str, str]) - (component_id, pin_id)
        wire_drawn (list[WireSegment]) - Segments created by one stroke
        segment_removed (int) - A segment was removed (by ID)
        segment_split (SplitResult) - A segment was split in two
        node_moved (WireNode) - A node was dragged (the surviving node)
        node_removed (int) - A node was removed (by ID)
        probe_added (ProbeData) - A probe was placed
        probe_moved (ProbeData) - A probe was moved and reconnected
        probe_removed (str) - A probe was removed (by ID)
        probes_reconnected (list[str]) - Probes whose attachment changed
        graph_cleaned (dict[int, int]) - Cleanup ran; merged node remap
        circuit_cleared (None) - The entire circuit was cleared
        model_loaded (None) - Circuit loaded from file
        edit_rejected (str) - An edit was refused; the reason
    """

    def __init__(
        self,
        model: Optional[CircuitModel] = None,
        node_hit_tolerance: float = DEFAULT_HIT_TOLERANCE,
        segment_hit_tolerance: float = DEFAULT_HIT_TOLERANCE,
        grid_size: float = 0.0,
    ):
        self.model = model or CircuitModel()
        self.node_hit_tolerance = node_hit_tolerance
        self.segment_hit_tolerance = segment_hit_tolerance
        self.grid_size = grid_size
        self._observers: list[Callable[[str, Any], None]] = []

    def add_observer(self, callback: Callable[[str, Any], None]) -> None:
        """Register a callback for model change events."""
        if callback not in self._observers:
            self._observers.append(callback)

    def remove_observer(self, callback: Callable[[str, Any], None]) -> None:
        """Unregister a previously registered callback."""
        if callback in self._observers:
            self._observers.remove(callback)

    def _notify(self, event: str, data: Any) -> None:
        """Notify all observers of a model change."""
        for observer in self._observers:
            try:
                observer(event, data)
            except (TypeError, AttributeError, RuntimeError) as e:
                logger.error("Error notifying observer: %s", e)

    def _guarded(self, action: str, edit: Callable[[], Any]) -> Any:
        """
        Run an edit; on InvalidTopology restore the model and return None.
        """
        backup = copy.deepcopy(self.model)
        try:
            return edit()
        except InvalidTopology as e:
            vars(self.model).update(vars(backup))
            logger.warning("%s rejected: %s", action, e)
            self._notify("edit_rejected", str(e))
            return None

    def _snap(self, x: float, y: float) -> tuple[float, float]:
        return snap_to_grid(x, y, self.grid_size)

    def _cleanup(self) -> None:
        remap = self.model.cleanup()
        self._notify("graph_cleaned", remap)

    def _node_for_point(self, x: float, y: float) -> WireNode:
        """
        Node under a point: an existing node, a new node splitting the wire
        under the point, or a new free node.
        """
        node = self.model.graph.get_node_at(x, y, self.node_hit_tolerance)
        if node is not None:
            return node
        hit = self.model.graph.get_segment_at(x, y, self.segment_hit_tolerance)
        if hit is not None:
            return self.model.graph.split_segment(hit.segment.id, x, y).node
        return self.model.graph.add_node(x, y)

    # --- Component operations ---

    def add_component(
        self,
        prefix: str,
        value: str = "",
        spice_type: Optional[str] = None,
        pin_order: Optional[list[str]] = None,
        is_ground_reference: bool = False,
    ) -> ComponentData:
        """
        Create and add a new component to the circuit.

        Generates a unique ID using the component counter (R1, R2, V1, etc.).
        """
        number = self.model.next_instance_number(prefix)
        component = make_component(
            component_id=f"{prefix}{number}",
            designator_prefix=prefix,
            instance_number=number,
            value=value,
            spice_type=spice_type,
            pin_order=pin_order,
            is_ground_reference=is_ground_reference,
        )
        self.model.add_component(component)
        self._notify("component_added", component)
        return component

    def add_ground(self) -> ComponentData:
        return self.add_component("GND", is_ground_reference=True)

    def remove_component(self, component_id: str) -> None:
        if self.model.remove_component(component_id) is None:
            return
        self._cleanup()
        self._notify("component_removed", component_id)

    def update_component_value(self, component_id: str, value: str) -> None:
        component = self.model.components.get(component_id)
        if component is None:
            return
        component.value = value
        self._notify("component_value_changed", component)

    def attach_pin(self, component_id: str, pin_id: str, x: float, y: float) -> Optional[int]:
        """
        Anchor a pin at a canvas position.

        Lands on an existing node, splits a wire passing under the point, or
        creates a free node.

        Returns:
            The node id, or None if the edit was rejected.
        """

        def edit():
            self.model.require_pin(component_id, pin_id)
            px, py = self._snap(x, y)
            node = self._node_for_point(px, py)
            self.model.attach_pin(component_id, pin_id, node.id)
            return node.id

        node_id = self._guarded("Attach pin", edit)
        if node_id is not None:
            self._notify("pin_attached", (component_id, pin_id, node_id))
        return node_id

    def detach_pin(self, component_id: str, pin_id: str) -> None:
        def edit():
            self.model.detach_pin(component_id, pin_id)
            self.model.cleanup()
            return True

        if self._guarded("Detach pin", edit):
            self._notify("pin_detached", (component_id, pin_id))

    # --- Wire operations ---

    def draw_wire(self, points: list[tuple[float, float]], orthogonal: bool = True) -> list[WireSegment]:
        """
        Commit one wire stroke through the given points.

        Each point snaps to a node under it, or splits a wire under it. With
        orthogonal routing a diagonal leg gets a bend, the longer axis first.
        The graph is cleaned up afterwards.

        Returns:
            Segments created by the stroke (empty if nothing was drawn).
        """

        def edit():
            created = []
            previous = None
            for x, y in points:
                px, py = self._snap(x, y)
                if previous is None:
                    previous = self._node_for_point(px, py)
                    continue
                if orthogonal:
                    bend = _bend_point(previous.x, previous.y, px, py)
                    if bend is not None:
                        bend_node = self.model.graph.add_node(*bend)
                        if bend_node.id != previous.id:
                            created.append(self.model.graph.add_segment(previous.id, bend_node.id))
                            previous = bend_node
                node = self._node_for_point(px, py)
                if node.id != previous.id:
                    created.append(self.model.graph.add_segment(previous.id, node.id))
                previous = node
            return created

        created = self._guarded("Draw wire", edit)
        if not created:
            if created is not None:
                self._cleanup()
            return []
        self._notify("wire_drawn", created)
        self._cleanup()
        return created

    def delete_segment(self, segment_id: int) -> None:
        if self._guarded("Delete segment", lambda: self.model.graph.remove_segment(segment_id)) is None:
            return
        self._notify("segment_removed", segment_id)
        self._cleanup()

    def delete_node(self, node_id: int) -> None:
        def edit():
            self.model.remove_node(node_id)
            return True

        if self._guarded("Delete node", edit):
            self._notify("node_removed", node_id)
            self._cleanup()

    def split_segment(self, segment_id: int, x: float, y: float) -> Optional[SplitResult]:
        result = self._guarded("Split segment", lambda: self.model.graph.split_segment(segment_id, x, y))
        if result is not None:
            self._notify("segment_split", result)
        return result

    def move_node(self, node_id: int, x: float, y: float) -> Optional[WireNode]:
        """
        Drag a node to a new position.

        Dropping it on another node merges the two. Wires that now cross
        get junctions, then the graph is cleaned up.
        """

        def edit():
            px, py = self._snap(x, y)
            node = self.model.move_node(node_id, px, py)
            self.model.graph.insert_junctions()
            return node

        node = self._guarded("Move node", edit)
        if node is None:
            return None
        self._cleanup()
        self._notify("node_moved", node)
        return node

    # --- Probe operations ---

    def add_probe(self, x: float, y: float, probe_type: str = VOLTAGE_PROBE, label: Optional[str] = None) -> ProbeData:
        """Place a probe and connect it to the wire under its tip."""
        number = self.model.probe_counter + 1
        probe = ProbeData(
            probe_id=f"P{number}",
            label=label or f"Probe {number}",
            x=x,
            y=y,
            probe_type=normalize_probe_type(probe_type),
        )
        probe.reconnect(self.model.graph, self.segment_hit_tolerance)
        self.model.add_probe(probe)
        self._notify("probe_added", probe)
        return probe

    def move_probe(self, probe_id: str, x: float, y: float) -> Optional[ProbeData]:
        probe = self.model.get_probe(probe_id)
        if probe is None:
            return None
        probe.x, probe.y = x, y
        probe.reconnect(self.model.graph, self.segment_hit_tolerance)
        self._notify("probe_moved", probe)
        return probe

    def remove_probe(self, probe_id: str) -> None:
        if self.model.remove_probe(probe_id) is not None:
            self._notify("probe_removed", probe_id)

    def reconnect_probes(self) -> list[str]:
        changed = self.model.reconnect_probes(self.segment_hit_tolerance)
        self._notify("probes_reconnected", changed)
        return changed

    # --- Circuit operations ---

    def set_analysis_directives(self, directives: list[str]) -> None:
        self.model.analysis_directives = [d.strip() for d in directives if d and d.strip()]

    def clear_circuit(self) -> None:
        """Clear the entire circuit."""
        self.model.clear()
        self._notify("circuit_cleared", None)

    def load_model(self, model: CircuitModel) -> None:
        """Replace the circuit contents with a loaded model."""
        vars(self.model).update(vars(model))
        self._notify("model_loaded", None)


def _bend_point(x1: float, y1: float, x2: float, y2: float) -> Optional[tuple[float, float]]:
    """Corner of an L-shaped route, longer leg first; None if already straight."""
    dx = abs(x2 - x1)
    dy = abs(y2 - y1)
    if dx < 0.001 or dy < 0.001:
        return None
    if dx >= dy:
        return x2, y1
    return x1, y2
