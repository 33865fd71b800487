"""
Pure Python data models for the schematic editor.

This package contains Qt-free data classes for wire geometry, placed
components, probes and the nets derived from them.
"""

from .circuit import CircuitModel
from .component import DEFAULT_PIN_ORDER, DEFAULT_VALUES, PREFIX_SPICE_TYPES, ComponentData, make_component
from .net import GROUND_NET_NAME, NetData, NetPartition
from .probe import CURRENT_PROBE, VOLTAGE_PROBE, ProbeData
from .wire_graph import InvalidTopology, SegmentHit, SplitResult, WireGraph, WireNode, WireSegment

__all__ = [
    "CircuitModel",
    "ComponentData",
    "CURRENT_PROBE",
    "DEFAULT_PIN_ORDER",
    "DEFAULT_VALUES",
    "GROUND_NET_NAME",
    "InvalidTopology",
    "NetData",
    "NetPartition",
    "PREFIX_SPICE_TYPES",
    "ProbeData",
    "SegmentHit",
    "SplitResult",
    "VOLTAGE_PROBE",
    "WireGraph",
    "WireNode",
    "WireSegment",
    "make_component",
]
