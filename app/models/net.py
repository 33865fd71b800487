"""
NetData - Pure Python data model for electrical nets.

This module contains no Qt dependencies. A net is a set of wire graph nodes
that are electrically the same point. Nets are derived data: they are
recomputed from the wire graph on every resolution pass and never saved.
"""

from dataclasses import dataclass, field
from typing import Optional

GROUND_NET_NAME = "0"


@dataclass(frozen=True)
class NetData:
    """
    One electrical net.

    net_index is 0 for the ground net and 1, 2, ... for the others.
    """

    net_index: int
    member_node_ids: frozenset[int]
    is_ground: bool = False

    @property
    def name(self) -> str:
        """Name used in the netlist: '0' for ground, else the decimal index."""
        return GROUND_NET_NAME if self.is_ground else str(self.net_index)

    @property
    def min_node_id(self) -> int:
        return min(self.member_node_ids)

    def __contains__(self, node_id: int) -> bool:
        return node_id in self.member_node_ids

    def __repr__(self) -> str:
        return f"NetData({self.name}, nodes={sorted(self.member_node_ids)})"


@dataclass
class NetPartition:
    """
    Result of one connectivity pass.

    nets are ordered ground first, then by net_index. floating_pins lists
    (component_id, pin_id) pairs that have no attachment and so no net.
    """

    nets: list[NetData] = field(default_factory=list)
    node_to_net: dict[int, NetData] = field(default_factory=dict)
    pin_to_node: dict[tuple[str, str], int] = field(default_factory=dict)
    floating_pins: list[tuple[str, str]] = field(default_factory=list)

    @property
    def ground_net(self) -> Optional[NetData]:
        for net in self.nets:
            if net.is_ground:
                return net
        return None

    @property
    def net_names(self) -> list[str]:
        """Names of every net, ground included, in partition order."""
        return [net.name for net in self.nets]

    def net_for_node(self, node_id: Optional[int]) -> Optional[NetData]:
        if node_id is None:
            return None
        return self.node_to_net.get(node_id)

    def net_name_for_node(self, node_id: Optional[int]) -> Optional[str]:
        net = self.net_for_node(node_id)
        return net.name if net is not None else None

    def net_for_pin(self, component_id: str, pin_id: str) -> Optional[NetData]:
        return self.net_for_node(self.pin_to_node.get((component_id, pin_id)))

    def node_to_net_name(self) -> dict[int, str]:
        """Point-to-net lookup table: node id -> net name."""
        return {node_id: net.name for node_id, net in sorted(self.node_to_net.items())}

    def same_net(self, node_a: int, node_b: int) -> bool:
        net_a = self.net_for_node(node_a)
        return net_a is not None and net_a is self.net_for_node(node_b)
