"""
simulation/connectivity.py

Resolves the wire graph plus pin and probe attachments into electrical nets.
Resolution never mutates its inputs.
"""

import logging
from collections import deque
from typing import Iterable, Optional

from models.component import ComponentData
from models.net import NetData, NetPartition
from models.probe import ProbeData
from models.wire_graph import WireGraph

logger = logging.getLogger(__name__)


class SynthesisError(ValueError):
    """Base class for errors that abort netlist synthesis."""

    code = "SynthesisError"


class AmbiguousGround(SynthesisError):
    """Raised when ground-reference components sit on different nets."""

    code = "AmbiguousGround"

    def __init__(self, groups: list[list[str]]):
        self.groups = groups
        self.components = sorted(comp_id for group in groups for comp_id in group)
        described = "; ".join(", ".join(group) for group in groups)
        super().__init__(
            f"Ground symbols are on {len(groups)} separate nets ({described}). "
            f"Connect them together or remove the extras."
        )


def resolve_nets(
    graph: WireGraph,
    components: Iterable[ComponentData],
    probes: Iterable[ProbeData] = (),
) -> NetPartition:
    """
    Partition every referenced node into nets.

    Nodes are the graph's nodes plus any node a pin or probe references;
    edges are the graph's segments. Connected components are found by
    breadth-first search. Nets are numbered in order of their smallest node
    id; the net holding a ground-reference pin is named '0' and the rest are
    numbered 1, 2, ... densely. If no component is a ground reference, no
    net is ground.

    Raises:
        AmbiguousGround: If ground-reference components resolve to more than
            one net.
    """
    components = list(components)

    node_ids: set[int] = {node.id for node in graph.nodes}
    pin_to_node: dict[tuple[str, str], int] = {}
    floating: list[tuple[str, str]] = []
    ground_pins: list[tuple[str, int]] = []

    for comp in components:
        for pin_id in comp.pin_order:
            node_id = comp.pin_node_ids.get(pin_id)
            if node_id is None:
                floating.append((comp.component_id, pin_id))
                continue
            pin_to_node[(comp.component_id, pin_id)] = node_id
            node_ids.add(node_id)
            if comp.is_ground_reference:
                ground_pins.append((comp.component_id, node_id))

    for probe in probes:
        node_id = probe.resolve_node_id(graph)
        if node_id is not None:
            node_ids.add(node_id)

    groups = _connected_groups(graph, node_ids)

    # Ground detection before numbering so ground never consumes an index
    group_of: dict[int, int] = {}
    for index, members in enumerate(groups):
        for node_id in members:
            group_of[node_id] = index

    ground_groups: dict[int, list[str]] = {}
    for comp_id, node_id in ground_pins:
        ground_groups.setdefault(group_of[node_id], [])
        if comp_id not in ground_groups[group_of[node_id]]:
            ground_groups[group_of[node_id]].append(comp_id)

    ground_components = {comp_id for comp_ids in ground_groups.values() for comp_id in comp_ids}
    if len(ground_groups) > 1 and len(ground_components) > 1:
        conflict = [ground_groups[index] for index in sorted(ground_groups)]
        logger.warning("Ambiguous ground: %s", conflict)
        raise AmbiguousGround(conflict)

    # A lone ground symbol ties every net its pins touch into the single ground net
    nets: list[NetData] = []
    if ground_groups:
        ground_members = frozenset(node_id for index in ground_groups for node_id in groups[index])
        nets.append(NetData(0, ground_members, is_ground=True))
    next_index = 1
    for index, members in enumerate(groups):
        if index in ground_groups:
            continue
        nets.append(NetData(next_index, frozenset(members)))
        next_index += 1

    nets.sort(key=lambda net: (not net.is_ground, net.net_index))
    node_to_net = {node_id: net for net in nets for node_id in net.member_node_ids}

    return NetPartition(
        nets=nets,
        node_to_net=node_to_net,
        pin_to_node=pin_to_node,
        floating_pins=floating,
    )


def _connected_groups(graph: WireGraph, node_ids: set[int]) -> list[list[int]]:
    """Connected components over node_ids, each sorted, ordered by smallest member."""
    visited: set[int] = set()
    groups: list[list[int]] = []

    for start in sorted(node_ids):
        if start in visited:
            continue
        visited.add(start)
        members = []
        queue = deque([start])
        while queue:
            node_id = queue.popleft()
            members.append(node_id)
            for segment in graph.get_segments_for_node(node_id):
                other = segment.other_end(node_id)
                if other not in visited:
                    visited.add(other)
                    queue.append(other)
        groups.append(sorted(members))

    return groups


def probe_net_name(probe: ProbeData, graph: WireGraph, partition: NetPartition) -> Optional[str]:
    """Net name a probe measures, or None if it has no resolvable node."""
    return partition.net_name_for_node(probe_node_id(probe, graph))


def probe_node_id(probe: ProbeData, graph: WireGraph) -> Optional[int]:
    """Node a probe is placed on: its node_id, else its segment's lower-id endpoint."""
    return probe.resolve_node_id(graph)
