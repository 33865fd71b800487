"""
CircuitModel - Central data store for circuit state.

This module contains no Qt dependencies. It holds the wire graph, the
component registry and the probe registry, and keeps pin attachments and
probe node references valid when graph maintenance merges or removes nodes.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .component import ComponentData
from .probe import ProbeData
from .wire_graph import DEFAULT_HIT_TOLERANCE, InvalidTopology, WireGraph, WireNode

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


@dataclass
class CircuitModel:
    """
    Central data store holding all circuit state.

    components keeps insertion order, which is the order instance lines are
    written to the netlist. probes likewise keeps placement order.
    """

    graph: WireGraph = field(default_factory=WireGraph)
    components: dict[str, ComponentData] = field(default_factory=dict)
    probes: list[ProbeData] = field(default_factory=list)
    component_counter: dict[str, int] = field(default_factory=dict)
    probe_counter: int = 0

    # Analysis configuration
    title: str = ""
    analysis_directives: list[str] = field(default_factory=list)

    # --- Component operations ---

    def add_component(self, component: ComponentData) -> None:
        """Add a component, anchoring any pins it already carries."""
        if component.component_id in self.components:
            raise InvalidTopology(f"Component {component.component_id} already exists")
        for pin_id, node_id in component.pin_node_ids.items():
            if node_id is not None:
                self.graph.attach_pin(node_id, component.component_id, pin_id)
        self.components[component.component_id] = component
        number = self.component_counter.get(component.designator_prefix, 0)
        self.component_counter[component.designator_prefix] = max(number, component.instance_number)

    def remove_component(self, component_id: str) -> Optional[ComponentData]:
        """Remove a component and release its pin attachments."""
        component = self.components.pop(component_id, None)
        if component is None:
            return None
        for pin_id, node_id in component.pin_node_ids.items():
            if node_id is not None:
                self.graph.detach_pin(node_id, component_id, pin_id)
        return component

    def next_instance_number(self, prefix: str) -> int:
        """Next free instance number for a designator prefix ('R' -> 3)."""
        return self.component_counter.get(prefix, 0) + 1

    def component_list(self) -> list[ComponentData]:
        return list(self.components.values())

    def require_pin(self, component_id: str, pin_id: str) -> ComponentData:
        component = self.components.get(component_id)
        if component is None:
            raise InvalidTopology(f"Component {component_id} does not exist")
        if pin_id not in component.pin_order:
            raise InvalidTopology(f"{component.designator} has no pin {pin_id!r}")
        return component

    def attach_pin(self, component_id: str, pin_id: str, node_id: int) -> None:
        """
        Anchor a component pin at a node, replacing any earlier attachment.

        Raises:
            InvalidTopology: If the component, pin or node does not exist.
        """
        component = self.require_pin(component_id, pin_id)
        self.graph.attach_pin(node_id, component_id, pin_id)
        previous = component.pin_node_ids.get(pin_id)
        if previous is not None and previous != node_id:
            self.graph.detach_pin(previous, component_id, pin_id)
        component.pin_node_ids[pin_id] = node_id

    def detach_pin(self, component_id: str, pin_id: str) -> None:
        component = self.require_pin(component_id, pin_id)
        previous = component.pin_node_ids.get(pin_id)
        if previous is not None:
            self.graph.detach_pin(previous, component_id, pin_id)
        component.pin_node_ids[pin_id] = None

    def attach_pin_at(self, component_id: str, pin_id: str, x: float, y: float) -> WireNode:
        """Anchor a pin at a canvas position, reusing a node already there."""
        self.require_pin(component_id, pin_id)
        node = self.graph.add_node(x, y)
        self.attach_pin(component_id, pin_id, node.id)
        return node

    # --- Probe operations ---

    def add_probe(self, probe: ProbeData) -> ProbeData:
        if self.get_probe(probe.probe_id) is not None:
            raise InvalidTopology(f"Probe {probe.probe_id} already exists")
        self.probes.append(probe)
        self.probe_counter += 1
        return probe

    def remove_probe(self, probe_id: str) -> Optional[ProbeData]:
        probe = self.get_probe(probe_id)
        if probe is not None:
            self.probes.remove(probe)
        return probe

    def get_probe(self, probe_id: str) -> Optional[ProbeData]:
        for probe in self.probes:
            if probe.probe_id == probe_id:
                return probe
        return None

    def reconnect_probes(self, tolerance: float = DEFAULT_HIT_TOLERANCE) -> list[str]:
        """
        Re-attach every probe to the wire under its tip.

        Returns:
            Ids of probes whose attachment changed.
        """
        changed = []
        for probe in self.probes:
            before = (probe.node_id, probe.connected_segment_id)
            probe.reconnect(self.graph, tolerance)
            if (probe.node_id, probe.connected_segment_id) != before:
                changed.append(probe.probe_id)
        return changed

    def probe_node_ids(self) -> set[int]:
        """Nodes that probes reference; graph maintenance must keep them."""
        return {p.node_id for p in self.probes if p.node_id is not None}

    # --- Graph maintenance ---

    def apply_node_remap(self, remap: dict[int, int]) -> None:
        """Point pin attachments and probes at surviving nodes after merges."""
        if not remap:
            return
        for component in self.components.values():
            for pin_id, node_id in component.pin_node_ids.items():
                if node_id in remap:
                    component.pin_node_ids[pin_id] = remap[node_id]
        for probe in self.probes:
            if probe.node_id in remap:
                probe.node_id = remap[probe.node_id]

    def move_node(self, node_id: int, x: float, y: float) -> WireNode:
        """Move a node; dropping it onto another node merges them."""
        survivor = self.graph.move_node(node_id, x, y)
        if survivor.id != node_id:
            self.apply_node_remap({node_id: survivor.id})
        return survivor

    def merge_nodes(self, keep_id: int, drop_id: int) -> WireNode:
        survivor = self.graph.merge_nodes(keep_id, drop_id)
        if keep_id != drop_id:
            self.apply_node_remap({drop_id: keep_id})
        return survivor

    def remove_node(self, node_id: int) -> None:
        """Remove a node and its segments. Probes on it lose their node."""
        self.graph.remove_node(node_id)
        for probe in self.probes:
            if probe.node_id == node_id:
                probe.node_id = None

    def cleanup(self) -> dict[int, int]:
        """
        Normalise the graph: merge coincident nodes, drop zero-length and
        redundant collinear segments, then prune unreferenced nodes.

        Returns:
            Mapping of merged-away node id -> surviving node id.
        """
        remap = self.graph.merge_coincident_nodes()
        self.apply_node_remap(remap)
        self.graph.remove_zero_length_segments()
        keep = self.probe_node_ids()
        self.graph.merge_all_collinear_segments(keep)
        removed = self.graph.remove_dangling_nodes(keep)
        if remap or removed:
            logger.debug("Cleanup merged %d node(s), pruned %d", len(remap), len(removed))
        return remap

    # --- Circuit operations ---

    def clear(self) -> None:
        """Clear all circuit data."""
        self.graph.clear()
        self.components.clear()
        self.probes.clear()
        self.component_counter.clear()
        self.probe_counter = 0
        self.title = ""
        self.analysis_directives = []

    # --- Serialization ---

    def to_dict(self) -> dict:
        data = {
            "version": FORMAT_VERSION,
            "wires": self.graph.to_dict(),
            "components": [c.to_dict() for c in self.components.values()],
            "probes": [p.to_dict() for p in self.probes],
            "counters": self.component_counter.copy(),
            "probe_counter": self.probe_counter,
        }
        if self.title:
            data["title"] = self.title
        if self.analysis_directives:
            data["analysis_directives"] = list(self.analysis_directives)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "CircuitModel":
        """
        Deserialize circuit from dictionary.

        Wire geometry is replayed through add_node/add_segment, so node ids
        may change; pin attachments and probes are remapped to the new ids.
        Probes stored on a segment are re-snapped to the replayed wires.

        Raises:
            InvalidTopology: If a segment or attachment references a node
                that is not in the stored geometry.
        """
        model = cls()
        remap = model.graph.replay(data.get("wires", {}))

        for comp_data in data.get("components", []):
            component = ComponentData.from_dict(comp_data)
            for pin_id, stored in list(component.pin_node_ids.items()):
                if stored is None:
                    continue
                if stored not in remap:
                    raise InvalidTopology(
                        f"{component.designator} pin {pin_id} references unknown node {stored}"
                    )
                component.pin_node_ids[pin_id] = remap[stored]
            model.add_component(component)

        for probe_data in data.get("probes", []):
            probe = ProbeData.from_dict(probe_data)
            if probe.connected_segment_id is not None:
                probe.reconnect(model.graph)
            else:
                probe.node_id = remap.get(probe.node_id) if probe.node_id is not None else None
            model.probes.append(probe)

        model.component_counter.update(data.get("counters", {}))
        model.probe_counter = max(data.get("probe_counter", 0), len(model.probes))
        model.title = data.get("title", "")
        model.analysis_directives = list(data.get("analysis_directives", []))
        return model
