"""
WireGraph - Pure Python model of drawn wire geometry.

This module contains no Qt dependencies. Wires are stored as an undirected
graph: WireNode endpoints/junctions joined by WireSegment edges. The graph
owns node and segment identity; everything else (component pins, probes)
refers to nodes by id.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, NamedTuple, Optional

from .geometry import (
    SNAP_TOLERANCE,
    are_collinear,
    distance,
    nearest_within,
    point_to_segment_distance,
    points_coincide,
    project_point_to_segment,
    segment_intersection,
)

logger = logging.getLogger(__name__)

# Default pick radius for node/segment queries, in scene units
DEFAULT_HIT_TOLERANCE = 5.0


class InvalidTopology(ValueError):
    """Raised when a mutation references a missing node/segment or would create a degenerate segment."""


@dataclass
class WireNode:
    """An endpoint or junction of drawn wire."""

    id: int
    x: float
    y: float

    @property
    def position(self) -> tuple[float, float]:
        return (self.x, self.y)

    def to_dict(self) -> dict:
        return {"id": self.id, "x": self.x, "y": self.y}


@dataclass(frozen=True)
class WireSegment:
    """
    An undirected wire edge between two nodes.

    node_id1 is always the lower of the two node ids.
    """

    id: int
    node_id1: int
    node_id2: int

    def touches(self, node_id: int) -> bool:
        return node_id in (self.node_id1, self.node_id2)

    def other_end(self, node_id: int) -> int:
        """Return the endpoint opposite to node_id."""
        if node_id == self.node_id1:
            return self.node_id2
        if node_id == self.node_id2:
            return self.node_id1
        raise InvalidTopology(f"Node {node_id} is not an endpoint of segment {self.id}")

    def to_dict(self) -> dict:
        return {"id": self.id, "node1": self.node_id1, "node2": self.node_id2}


class SegmentHit(NamedTuple):
    segment: WireSegment
    distance: float


class SplitResult(NamedTuple):
    node: WireNode
    segment_a: WireSegment
    segment_b: WireSegment


class WireGraph:
    """
    Node-and-segment graph of wire geometry.

    Invariants kept by every mutation:
        - no two nodes sit within snap_tolerance of each other
        - every segment joins two distinct, existing nodes
        - nodes carrying a pin attachment are never deleted implicitly
    """

    def __init__(self, snap_tolerance: float = SNAP_TOLERANCE):
        self.snap_tolerance = snap_tolerance
        self._nodes: dict[int, WireNode] = {}
        self._segments: dict[int, WireSegment] = {}
        # node id -> ids of incident segments
        self._adjacency: dict[int, set[int]] = {}
        # node id -> {(component_id, pin_id)}
        self._pins: dict[int, set[tuple[str, str]]] = {}
        self._next_node_id = 1
        self._next_segment_id = 1

    # --- Read access ---

    @property
    def nodes(self) -> list[WireNode]:
        """All nodes ordered by id."""
        return [self._nodes[node_id] for node_id in sorted(self._nodes)]

    @property
    def segments(self) -> list[WireSegment]:
        """All segments ordered by id."""
        return [self._segments[seg_id] for seg_id in sorted(self._segments)]

    def has_node(self, node_id: int) -> bool:
        return node_id in self._nodes

    def get_node(self, node_id: int) -> Optional[WireNode]:
        return self._nodes.get(node_id)

    def get_segment(self, segment_id: int) -> Optional[WireSegment]:
        return self._segments.get(segment_id)

    def require_node(self, node_id: int) -> WireNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise InvalidTopology(f"Node {node_id} does not exist")
        return node

    def require_segment(self, segment_id: int) -> WireSegment:
        segment = self._segments.get(segment_id)
        if segment is None:
            raise InvalidTopology(f"Segment {segment_id} does not exist")
        return segment

    def get_segments_for_node(self, node_id: int) -> list[WireSegment]:
        """All segments incident to a node, ordered by segment id."""
        return [self._segments[seg_id] for seg_id in sorted(self._adjacency.get(node_id, ()))]

    def get_connected_nodes(self, node_id: int) -> list[int]:
        """Ids of the distinct neighbours of a node, ascending."""
        return sorted({seg.other_end(node_id) for seg in self.get_segments_for_node(node_id)})

    def connection_count(self, node_id: int) -> int:
        """Number of distinct neighbours; three or more makes a junction."""
        return len(self.get_connected_nodes(node_id))

    def has_segment(self, node_id1: int, node_id2: int) -> bool:
        for seg in self.get_segments_for_node(node_id1):
            if seg.touches(node_id2) and node_id1 != node_id2:
                return True
        return False

    def segment_endpoints(self, segment: WireSegment) -> tuple[WireNode, WireNode]:
        return self._nodes[segment.node_id1], self._nodes[segment.node_id2]

    # --- Spatial queries ---

    def get_node_at(self, x: float, y: float, tolerance: float = DEFAULT_HIT_TOLERANCE) -> Optional[WireNode]:
        """
        Find the nearest node within tolerance.

        Ties are broken by smallest distance, then lowest node id.
        """
        hit = nearest_within(
            ((node.id, distance(x, y, node.x, node.y)) for node in self._nodes.values()),
            tolerance,
        )
        return self._nodes[hit[0]] if hit else None

    def get_segment_at(self, x: float, y: float, tolerance: float = DEFAULT_HIT_TOLERANCE) -> Optional[SegmentHit]:
        """
        Find the nearest segment within tolerance.

        Same tie-break rule as get_node_at, applied to point-to-segment distance.
        """
        hit = nearest_within(
            ((seg.id, self._distance_to_segment(x, y, seg)) for seg in self._segments.values()),
            tolerance,
        )
        if hit is None:
            return None
        return SegmentHit(self._segments[hit[0]], hit[1])

    def is_point_on_segment(self, x: float, y: float, segment_id: int, tolerance: Optional[float] = None) -> bool:
        segment = self._segments.get(segment_id)
        if segment is None:
            return False
        tol = self.snap_tolerance if tolerance is None else tolerance
        return self._distance_to_segment(x, y, segment) <= tol

    def _distance_to_segment(self, x: float, y: float, segment: WireSegment) -> float:
        n1, n2 = self.segment_endpoints(segment)
        return point_to_segment_distance(x, y, n1.x, n1.y, n2.x, n2.y)

    # --- Node operations ---

    def add_node(self, x: float, y: float) -> WireNode:
        """Add a node, reusing an existing node within snap tolerance."""
        existing = self.get_node_at(x, y, self.snap_tolerance)
        if existing is not None:
            return existing

        node = WireNode(self._next_node_id, float(x), float(y))
        self._next_node_id += 1
        self._nodes[node.id] = node
        self._adjacency[node.id] = set()
        return node

    def remove_node(self, node_id: int) -> None:
        """
        Remove a node and, first, every segment incident to it.

        Raises:
            InvalidTopology: If the node is missing or still holds a pin attachment.
        """
        self.require_node(node_id)
        if self._pins.get(node_id):
            pins = ", ".join(f"{comp}.{pin}" for comp, pin in sorted(self._pins[node_id]))
            raise InvalidTopology(f"Node {node_id} still holds pin attachment(s): {pins}")

        for seg_id in list(self._adjacency.get(node_id, ())):
            self._drop_segment(seg_id)
        self._discard_node(node_id)

    def move_node(self, node_id: int, x: float, y: float) -> WireNode:
        """
        Move a node. Dropping it onto another node merges the two.

        Returns:
            The surviving node; when a merge happened this is the node that
            was already at the target position.
        """
        self.require_node(node_id)
        hit = nearest_within(
            ((other.id, distance(x, y, other.x, other.y)) for other in self._nodes.values() if other.id != node_id),
            self.snap_tolerance,
        )
        if hit is not None:
            return self.merge_nodes(hit[0], node_id)

        node = self._nodes[node_id]
        node.x = float(x)
        node.y = float(y)
        return node

    def merge_nodes(self, keep_id: int, drop_id: int) -> WireNode:
        """
        Fold drop_id into keep_id.

        Segments and pin attachments of the dropped node move to the kept
        node; a segment that would join the kept node to itself is discarded.
        """
        keep = self.require_node(keep_id)
        self.require_node(drop_id)
        if keep_id == drop_id:
            return keep

        for seg_id in list(self._adjacency[drop_id]):
            other = self._segments[seg_id].other_end(drop_id)
            self._drop_segment(seg_id)
            if other != keep_id:
                self.add_segment(keep_id, other)

        pins = self._pins.pop(drop_id, set())
        if pins:
            self._pins.setdefault(keep_id, set()).update(pins)

        self._discard_node(drop_id)
        logger.debug("Merged node %d into node %d", drop_id, keep_id)
        return keep

    # --- Segment operations ---

    def add_segment(self, node_id1: int, node_id2: int) -> WireSegment:
        """
        Join two existing nodes with a segment.

        Duplicate segments between the same pair are allowed.

        Raises:
            InvalidTopology: If either node is missing or both ids are equal.
        """
        if node_id1 == node_id2:
            raise InvalidTopology(f"Segment endpoints must differ (both are node {node_id1})")
        self.require_node(node_id1)
        self.require_node(node_id2)

        segment = WireSegment(self._next_segment_id, min(node_id1, node_id2), max(node_id1, node_id2))
        self._next_segment_id += 1
        self._segments[segment.id] = segment
        self._adjacency[segment.node_id1].add(segment.id)
        self._adjacency[segment.node_id2].add(segment.id)
        return segment

    def remove_segment(self, segment_id: int) -> WireSegment:
        """Remove a segment. Its endpoint nodes are left in place."""
        self.require_segment(segment_id)
        return self._drop_segment(segment_id)

    def split_segment(self, segment_id: int, x: float, y: float) -> SplitResult:
        """
        Replace a segment with two segments through a new node.

        The split point is projected onto the segment. If a node already sits
        at that point it is reused, joining the two wires there.

        Raises:
            InvalidTopology: If the segment is missing or the split point
                lands on one of its endpoints.
        """
        segment = self.require_segment(segment_id)
        n1, n2 = self.segment_endpoints(segment)
        px, py, _ = project_point_to_segment(x, y, n1.x, n1.y, n2.x, n2.y)

        if points_coincide(px, py, n1.x, n1.y, self.snap_tolerance) or points_coincide(
            px, py, n2.x, n2.y, self.snap_tolerance
        ):
            raise InvalidTopology(f"Split point ({px:g}, {py:g}) coincides with an endpoint of segment {segment_id}")

        self._drop_segment(segment_id)
        node = self.add_node(px, py)
        segment_a = self.add_segment(segment.node_id1, node.id)
        segment_b = self.add_segment(node.id, segment.node_id2)
        return SplitResult(node, segment_a, segment_b)

    # --- Pin attachments ---

    def attach_pin(self, node_id: int, component_id: str, pin_id: str) -> None:
        """Record that a component pin is anchored at a node."""
        self.require_node(node_id)
        self._pins.setdefault(node_id, set()).add((component_id, pin_id))

    def detach_pin(self, node_id: int, component_id: str, pin_id: str) -> None:
        pins = self._pins.get(node_id)
        if not pins:
            return
        pins.discard((component_id, pin_id))
        if not pins:
            del self._pins[node_id]

    def pins_at(self, node_id: int) -> list[tuple[str, str]]:
        return sorted(self._pins.get(node_id, ()))

    def is_pinned(self, node_id: int) -> bool:
        return bool(self._pins.get(node_id))

    # --- Cleanup operations ---

    def merge_coincident_nodes(self) -> dict[int, int]:
        """
        Merge every group of nodes sharing a location into its lowest id.

        Returns:
            Mapping of removed node id -> surviving node id.
        """
        merged: dict[int, int] = {}
        ids = sorted(self._nodes)
        for i, keep_id in enumerate(ids):
            if keep_id in merged:
                continue
            keep = self._nodes[keep_id]
            for drop_id in ids[i + 1:]:
                if drop_id in merged:
                    continue
                other = self._nodes[drop_id]
                if points_coincide(keep.x, keep.y, other.x, other.y, self.snap_tolerance):
                    self.merge_nodes(keep_id, drop_id)
                    merged[drop_id] = keep_id
        return merged

    def remove_zero_length_segments(self) -> list[int]:
        """Remove segments whose endpoints sit at the same location."""
        removed = []
        for segment in self.segments:
            n1, n2 = self.segment_endpoints(segment)
            if points_coincide(n1.x, n1.y, n2.x, n2.y, self.snap_tolerance):
                self._drop_segment(segment.id)
                removed.append(segment.id)
        return removed

    def merge_collinear_segments(self, node_id: int, keep: Iterable[int] = ()) -> bool:
        """
        Dissolve a node that only continues a straight wire.

        A node with exactly two neighbours lying on one straight line through
        it is removed and its two segments are joined into one. Pinned nodes
        and nodes listed in keep are never dissolved.

        Returns:
            True if the node was removed.
        """
        node = self._nodes.get(node_id)
        if node is None or self.is_pinned(node_id) or node_id in set(keep):
            return False

        incident = self.get_segments_for_node(node_id)
        if len(incident) != 2:
            return False
        a_id = incident[0].other_end(node_id)
        b_id = incident[1].other_end(node_id)
        if a_id == b_id:
            return False

        a, b = self._nodes[a_id], self._nodes[b_id]
        if not are_collinear(a.x, a.y, node.x, node.y, b.x, b.y, self.snap_tolerance):
            return False

        for segment in incident:
            self._drop_segment(segment.id)
        self._discard_node(node_id)
        if not self.has_segment(a_id, b_id):
            self.add_segment(a_id, b_id)
        return True

    def merge_all_collinear_segments(self, keep: Iterable[int] = ()) -> list[int]:
        """Repeat merge_collinear_segments until the graph stops changing."""
        keep = set(keep)
        removed = []
        changed = True
        while changed:
            changed = False
            for node_id in sorted(self._nodes):
                if self.merge_collinear_segments(node_id, keep):
                    removed.append(node_id)
                    changed = True
                    break
        return removed

    def remove_dangling_nodes(self, keep: Iterable[int] = ()) -> list[int]:
        """Delete nodes referenced by no segment, no pin and not listed in keep."""
        keep = set(keep)
        removed = []
        for node_id in sorted(self._nodes):
            if self._adjacency[node_id] or self.is_pinned(node_id) or node_id in keep:
                continue
            self._discard_node(node_id)
            removed.append(node_id)
        return removed

    def cleanup(self, keep: Iterable[int] = ()) -> dict[int, int]:
        """
        Run every normalisation pass.

        Returns:
            Mapping of merged-away node id -> surviving node id.
        """
        remap = self.merge_coincident_nodes()
        self.remove_zero_length_segments()
        self.merge_all_collinear_segments(keep)
        return remap

    def insert_junctions(self) -> list[int]:
        """
        Join wires that cross or end on another wire's interior.

        Each crossing gets a node (an existing one if something already sits
        there) and every segment passing through it is split there.

        Returns:
            Ids of the junction nodes, in the order they were found.
        """
        junctions = []
        while True:
            crossing = self._find_crossing()
            if crossing is None:
                return junctions
            seg_a, seg_b, (x, y) = crossing
            node = self.add_node(x, y)
            for segment in (seg_a, seg_b):
                if not segment.touches(node.id):
                    self._drop_segment(segment.id)
                    self.add_segment(segment.node_id1, node.id)
                    self.add_segment(node.id, segment.node_id2)
            junctions.append(node.id)

    def _find_crossing(self):
        segments = self.segments
        for i, seg_a in enumerate(segments):
            a1, a2 = self.segment_endpoints(seg_a)
            for seg_b in segments[i + 1:]:
                if seg_a.touches(seg_b.node_id1) or seg_a.touches(seg_b.node_id2):
                    continue
                b1, b2 = self.segment_endpoints(seg_b)
                point = segment_intersection(a1.position, a2.position, b1.position, b2.position)
                if point is None:
                    continue
                at_a = any(points_coincide(point[0], point[1], n.x, n.y, self.snap_tolerance) for n in (a1, a2))
                at_b = any(points_coincide(point[0], point[1], n.x, n.y, self.snap_tolerance) for n in (b1, b2))
                if at_a and at_b:
                    # Endpoints meeting; merge_coincident_nodes joins those
                    continue
                return seg_a, seg_b, point
        return None

    def clear(self) -> None:
        """Clear all nodes and segments and restart id allocation."""
        self._nodes.clear()
        self._segments.clear()
        self._adjacency.clear()
        self._pins.clear()
        self._next_node_id = 1
        self._next_segment_id = 1

    # --- Internal helpers ---

    def _drop_segment(self, segment_id: int) -> WireSegment:
        segment = self._segments.pop(segment_id)
        self._adjacency[segment.node_id1].discard(segment_id)
        self._adjacency[segment.node_id2].discard(segment_id)
        return segment

    def _discard_node(self, node_id: int) -> None:
        del self._nodes[node_id]
        self._adjacency.pop(node_id, None)
        self._pins.pop(node_id, None)

    # --- Serialization ---

    def to_dict(self) -> dict:
        """Serialize nodes and segments as plain records in id order."""
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "segments": [segment.to_dict() for segment in self.segments],
        }

    def replay(self, data: dict) -> dict[int, int]:
        """
        Rebuild geometry by replaying add_node/add_segment in stored order.

        Stored ids are not trusted; new ids are allocated and stored nodes
        that land on the same point collapse into one.

        Returns:
            Mapping of stored node id -> node id in this graph.

        Raises:
            InvalidTopology: If a segment references an unknown stored node.
        """
        remap: dict[int, int] = {}
        for node_data in data.get("nodes", []):
            node = self.add_node(node_data["x"], node_data["y"])
            remap[node_data["id"]] = node.id

        for seg_data in data.get("segments", []):
            try:
                n1 = remap[seg_data["node1"]]
                n2 = remap[seg_data["node2"]]
            except KeyError as e:
                raise InvalidTopology(f"Segment {seg_data.get('id')} references unknown node {e}") from None
            if n1 == n2:
                logger.debug("Dropping stored segment %s collapsed onto node %d", seg_data.get("id"), n1)
                continue
            self.add_segment(n1, n2)
        return remap

    @classmethod
    def from_dict(cls, data: dict, snap_tolerance: float = SNAP_TOLERANCE) -> "WireGraph":
        graph = cls(snap_tolerance=snap_tolerance)
        graph.replay(data)
        return graph

    def __repr__(self) -> str:
        return f"WireGraph(nodes={len(self._nodes)}, segments={len(self._segments)})"
