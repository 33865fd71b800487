"""
Shared test fixtures for the schematic netlist test suite.

All fixtures build pure-Python model objects (no Qt dependencies).
"""

import sys
from pathlib import Path

# Ensure app/ is on sys.path so bare imports (models, simulation, controllers)
# work when running individual test files (e.g., python -m pytest app/tests/unit/test_foo.py).
_app_dir = str(Path(__file__).resolve().parent.parent)
if _app_dir not in sys.path:
    sys.path.insert(0, _app_dir)

import pytest
from models.circuit import CircuitModel
from models.component import make_component
from models.probe import ProbeData
from models.wire_graph import WireGraph


def add_part(model, prefix, number, value="", **kwargs):
    """Helper to add a component with the default pins for its prefix."""
    component = make_component(f"{prefix}{number}", prefix, number, value=value, **kwargs)
    model.add_component(component)
    return component


def add_wire(graph, start, end):
    """Helper to draw one straight segment; returns (node1, node2, segment)."""
    n1 = graph.add_node(*start)
    n2 = graph.add_node(*end)
    return n1, n2, graph.add_segment(n1.id, n2.id)


def build_divider():
    """
    V1 -- R1 -- R2 -- GND

    Wires:
        (0,0)-(100,0)      V1 + to R1 pin 1      -> net 1
        (200,0)-(200,50)   R1 pin 2 to R2 pin 1  -> net 2
        (200,100)-(0,100)  R2 pin 2 to V1 -, GND -> net 0
    """
    model = CircuitModel()
    graph = model.graph
    a, b, _ = add_wire(graph, (0, 0), (100, 0))
    c, d, _ = add_wire(graph, (200, 0), (200, 50))
    e, f, _ = add_wire(graph, (200, 100), (0, 100))

    add_part(model, "V", 1, "DC 5")
    add_part(model, "R", 1, "1k")
    add_part(model, "R", 2, "1k")
    add_part(model, "GND", 1, is_ground_reference=True)

    model.attach_pin("V1", "+", a.id)
    model.attach_pin("V1", "-", f.id)
    model.attach_pin("R1", "1", b.id)
    model.attach_pin("R1", "2", c.id)
    model.attach_pin("R2", "1", d.id)
    model.attach_pin("R2", "2", e.id)
    model.attach_pin("GND1", "1", f.id)
    return model


@pytest.fixture
def graph():
    return WireGraph()


@pytest.fixture
def divider_model():
    return build_divider()


@pytest.fixture
def probed_divider():
    """Voltage divider with a voltage probe on the R1/R2 junction wire."""
    model = build_divider()
    probe = ProbeData(probe_id="P1", label="Vout", x=200, y=50)
    probe.reconnect(model.graph)
    model.add_probe(probe)
    return model
