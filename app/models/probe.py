"""
ProbeData - Pure Python record for a measurement probe.

This module contains no Qt dependencies. Probes are owned by the probe
registry (the circuit model). A probe names the point it measures by wire
node id; when it was dropped onto the middle of a wire it also remembers the
segment, which current probes need to find the device carrying the current.
"""

from dataclasses import dataclass
from typing import Optional

from .wire_graph import DEFAULT_HIT_TOLERANCE, WireGraph

VOLTAGE_PROBE = "voltage"
CURRENT_PROBE = "current"
PROBE_TYPES = (VOLTAGE_PROBE, CURRENT_PROBE)


def normalize_probe_type(probe_type: Optional[str]) -> str:
    return CURRENT_PROBE if probe_type == CURRENT_PROBE else VOLTAGE_PROBE


@dataclass
class ProbeData:
    """A voltage or current probe placed on the canvas."""

    probe_id: str
    label: str
    x: float
    y: float
    probe_type: str = VOLTAGE_PROBE
    node_id: Optional[int] = None
    connected_segment_id: Optional[int] = None

    def __post_init__(self):
        self.probe_type = normalize_probe_type(self.probe_type)

    @property
    def is_current(self) -> bool:
        return self.probe_type == CURRENT_PROBE

    def reconnect(self, graph: WireGraph, tolerance: float = DEFAULT_HIT_TOLERANCE) -> Optional[int]:
        """
        Re-attach the probe to whatever wire lies under its tip.

        A node under the tip wins over a segment. On a segment the probe takes
        the segment's lower-id endpoint as its node (both endpoints are on the
        same net) and remembers the segment.

        Returns:
            The node id the probe now references, or None if it is off-wire.
        """
        node = graph.get_node_at(self.x, self.y, tolerance)
        if node is not None:
            self.node_id = node.id
            self.connected_segment_id = None
            return self.node_id

        hit = graph.get_segment_at(self.x, self.y, tolerance)
        if hit is not None:
            self.node_id = hit.segment.node_id1
            self.connected_segment_id = hit.segment.id
            return self.node_id

        self.node_id = None
        self.connected_segment_id = None
        return None

    def resolve_node_id(self, graph: WireGraph) -> Optional[int]:
        """
        Node id this probe measures, without touching the probe.

        Falls back to the lower-id endpoint of connected_segment_id when the
        stored node no longer exists.
        """
        if self.node_id is not None and graph.has_node(self.node_id):
            return self.node_id
        if self.connected_segment_id is not None:
            segment = graph.get_segment(self.connected_segment_id)
            if segment is not None:
                return segment.node_id1
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.probe_id,
            "label": self.label,
            "x": self.x,
            "y": self.y,
            "type": self.probe_type,
            "node_id": self.node_id,
            "segment_id": self.connected_segment_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProbeData":
        return cls(
            probe_id=data["id"],
            label=data.get("label") or "Probe",
            x=data["x"],
            y=data["y"],
            probe_type=data.get("type", VOLTAGE_PROBE),
            node_id=data.get("node_id"),
            connected_segment_id=data.get("segment_id"),
        )
