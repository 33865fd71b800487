"""Tests for simulation/connectivity.py - net resolution."""

import pytest
from models.circuit import CircuitModel
from models.probe import ProbeData
from simulation.connectivity import AmbiguousGround, probe_net_name, probe_node_id, resolve_nets
from tests.conftest import add_part, add_wire


def _resolve(model):
    return resolve_nets(model.graph, model.component_list(), model.probes)


class TestResolveNets:
    def test_divider_nets(self, divider_model):
        partition = _resolve(divider_model)
        assert partition.net_names == ["0", "1", "2"]
        assert partition.net_for_pin("V1", "+").name == "1"
        assert partition.net_for_pin("R1", "2").name == "2"
        assert partition.net_for_pin("R2", "2").name == "0"
        assert partition.ground_net.member_node_ids == frozenset({5, 6})

    def test_nets_numbered_by_smallest_node(self, graph):
        add_wire(graph, (0, 0), (10, 0))
        add_wire(graph, (0, 50), (10, 50))
        partition = resolve_nets(graph, [])
        assert [sorted(n.member_node_ids) for n in partition.nets] == [[1, 2], [3, 4]]
        assert partition.net_names == ["1", "2"]

    def test_no_implicit_ground(self, graph):
        add_wire(graph, (0, 0), (10, 0))
        partition = resolve_nets(graph, [])
        assert partition.ground_net is None

    def test_ground_does_not_consume_index(self):
        model = CircuitModel()
        a, _, _ = add_wire(model.graph, (0, 0), (10, 0))
        c, _, _ = add_wire(model.graph, (0, 50), (10, 50))
        add_part(model, "GND", 1, is_ground_reference=True)
        model.attach_pin("GND1", "1", a.id)
        partition = _resolve(model)
        assert partition.net_name_for_node(a.id) == "0"
        assert partition.net_name_for_node(c.id) == "1"

    def test_isolated_pin_forms_singleton_net(self):
        model = CircuitModel()
        add_part(model, "R", 1, "1k")
        node = model.attach_pin_at("R1", "1", 40, 40)
        other = model.attach_pin_at("R1", "2", 80, 40)
        partition = _resolve(model)
        assert partition.net_for_node(node.id).member_node_ids == frozenset({node.id})
        assert not partition.same_net(node.id, other.id)

    def test_floating_pins_recorded(self):
        model = CircuitModel()
        add_part(model, "R", 1, "1k")
        model.attach_pin_at("R1", "1", 0, 0)
        partition = _resolve(model)
        assert partition.floating_pins == [("R1", "2")]
        assert partition.net_for_pin("R1", "2") is None

    def test_probe_node_is_netted(self):
        model = CircuitModel()
        node = model.graph.add_node(5, 5)
        probe = ProbeData("P1", "Probe 1", 5, 5)
        probe.reconnect(model.graph)
        model.add_probe(probe)
        partition = _resolve(model)
        assert partition.net_for_node(node.id) is not None

    def test_does_not_mutate_graph(self, divider_model):
        before = divider_model.graph.to_dict()
        _resolve(divider_model)
        assert divider_model.graph.to_dict() == before

    def test_node_to_net_name_lookup(self, divider_model):
        table = _resolve(divider_model).node_to_net_name()
        assert table == {1: "1", 2: "1", 3: "2", 4: "2", 5: "0", 6: "0"}


class TestProperties:
    def test_idempotent(self, probed_divider):
        first = _resolve(probed_divider)
        second = _resolve(probed_divider)
        assert first.nets == second.nets
        assert first.node_to_net_name() == second.node_to_net_name()

    def test_partition_covers_every_touched_node(self, probed_divider):
        partition = _resolve(probed_divider)
        touched = {n.id for n in probed_divider.graph.nodes}
        touched |= set(partition.pin_to_node.values())
        touched |= probed_divider.probe_node_ids()
        members = [node_id for net in partition.nets for node_id in net.member_node_ids]
        assert sorted(members) == sorted(touched)
        assert len(members) == len(set(members))

    def test_bridging_islands_merges_nets(self, graph):
        a, _, _ = add_wire(graph, (0, 0), (10, 0))
        c, _, _ = add_wire(graph, (0, 50), (10, 50))
        assert not resolve_nets(graph, []).same_net(a.id, c.id)
        graph.add_segment(a.id, c.id)
        partition = resolve_nets(graph, [])
        assert partition.same_net(a.id, c.id)
        assert len(partition.nets) == 1

    def test_split_preserves_connectivity(self, graph):
        a, b, segment = add_wire(graph, (0, 0), (100, 0))
        mid = graph.split_segment(segment.id, 50, 0).node
        partition = resolve_nets(graph, [])
        assert partition.same_net(a.id, b.id)
        assert partition.same_net(a.id, mid.id)


class TestGround:
    def test_single_ground_never_ambiguous(self, divider_model):
        assert _resolve(divider_model).ground_net is not None

    def test_two_grounds_on_one_net(self, divider_model):
        add_part(divider_model, "GND", 2, is_ground_reference=True)
        divider_model.attach_pin("GND2", "1", 5)
        assert _resolve(divider_model).ground_net.name == "0"

    def test_two_grounds_on_disjoint_islands(self):
        model = CircuitModel()
        a, _, _ = add_wire(model.graph, (0, 0), (10, 0))
        c, _, _ = add_wire(model.graph, (0, 50), (10, 50))
        add_part(model, "GND", 1, is_ground_reference=True)
        add_part(model, "GND", 2, is_ground_reference=True)
        model.attach_pin("GND1", "1", a.id)
        model.attach_pin("GND2", "1", c.id)
        with pytest.raises(AmbiguousGround) as exc_info:
            _resolve(model)
        assert exc_info.value.components == ["GND1", "GND2"]
        assert exc_info.value.groups == [["GND1"], ["GND2"]]
        assert exc_info.value.code == "AmbiguousGround"

    def test_two_pin_ground_ties_its_nets(self):
        model = CircuitModel()
        a, _, _ = add_wire(model.graph, (0, 0), (10, 0))
        c, _, _ = add_wire(model.graph, (0, 50), (10, 50))
        add_part(model, "G", 1, is_ground_reference=True, pin_order=["1", "2"])
        model.attach_pin("G1", "1", a.id)
        model.attach_pin("G1", "2", c.id)
        partition = _resolve(model)
        assert partition.net_names == ["0"]
        assert partition.same_net(a.id, c.id)


class TestProbeHelpers:
    def test_probe_on_node(self, probed_divider):
        probe = probed_divider.probes[0]
        assert probe_node_id(probe, probed_divider.graph) == 4
        partition = _resolve(probed_divider)
        assert probe_net_name(probe, probed_divider.graph, partition) == "2"

    def test_segment_fallback_uses_lower_endpoint(self, divider_model):
        probe = ProbeData("P1", "Probe 1", 50, 0, node_id=None, connected_segment_id=1)
        assert probe_node_id(probe, divider_model.graph) == 1

    def test_unresolvable_probe(self, divider_model):
        probe = ProbeData("P1", "Probe 1", 500, 500)
        partition = _resolve(divider_model)
        assert probe_net_name(probe, divider_model.graph, partition) is None
