"""
ComponentData - Pure Python record for a placed component instance.

This module contains no Qt dependencies. Components are owned by the
component registry (the circuit model); the topology core only reads their
designator, declared pin order, pin attachments and ground flag.

SPICE types are lower-case identifiers:
'resistor', 'capacitor', 'inductor', 'voltage', 'current', 'diode', 'bjt',
'mosfet', 'jfet', 'subcircuit', 'ground'
"""

import re
from dataclasses import dataclass, field
from typing import Optional

# Designator prefix -> SPICE type, used when a record carries no explicit type
PREFIX_SPICE_TYPES = {
    "R": "resistor",
    "C": "capacitor",
    "L": "inductor",
    "V": "voltage",
    "I": "current",
    "D": "diode",
    "Q": "bjt",
    "M": "mosfet",
    "J": "jfet",
    "X": "subcircuit",
}

# Value emitted when a component has none
DEFAULT_VALUES = {
    "resistor": "1k",
    "capacitor": "1u",
    "inductor": "1m",
    "voltage": "DC 0",
    "current": "DC 0",
}

# SPICE types that reference a .model card by name
MODEL_TYPES = ("diode", "bjt", "mosfet", "jfet")

# Declared pin order per SPICE type, used by make_component
DEFAULT_PIN_ORDER = {
    "resistor": ["1", "2"],
    "capacitor": ["1", "2"],
    "inductor": ["1", "2"],
    "voltage": ["+", "-"],
    "current": ["+", "-"],
    "diode": ["A", "K"],
    "bjt": ["C", "B", "E"],
    "mosfet": ["D", "G", "S", "B"],
    "jfet": ["D", "G", "S"],
    "ground": ["1"],
}

_MODEL_NAME_RE = re.compile(r"\.model\s+(\S+)", re.IGNORECASE)


def extract_model_name(statement: str) -> str:
    """Return the model name of a '.model NAME TYPE(...)' card, or ''."""
    if not isinstance(statement, str):
        return ""
    match = _MODEL_NAME_RE.search(statement)
    return match.group(1) if match else ""


@dataclass
class ComponentData:
    """
    Pure Python data class representing a placed component.

    pin_node_ids maps each declared pin to the wire graph node it is
    attached to, or None while the pin is floating.
    """

    component_id: str
    designator_prefix: str
    instance_number: int
    pin_order: list[str] = field(default_factory=list)
    pin_node_ids: dict[str, Optional[int]] = field(default_factory=dict)
    is_ground_reference: bool = False
    value: str = ""
    spice_type: Optional[str] = None

    # Model payload
    model_statement: Optional[str] = None  # full '.model' card
    spice_override: Optional[str] = None  # replaces everything after the nets

    # Subcircuit payload (only used for subcircuit type)
    subcircuit_name: Optional[str] = None
    subcircuit_definition: Optional[str] = None
    subcircuit_args: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        for pin_id in self.pin_order:
            self.pin_node_ids.setdefault(pin_id, None)

    @property
    def designator(self) -> str:
        """Instance name as it appears in the netlist, e.g. 'R1'."""
        return f"{self.designator_prefix}{self.instance_number}"

    def get_spice_type(self) -> Optional[str]:
        """Explicit SPICE type, else one guessed from the designator prefix."""
        if self.is_ground_reference:
            return "ground"
        if self.spice_type:
            return self.spice_type
        prefix = self.designator_prefix[:1].upper()
        return PREFIX_SPICE_TYPES.get(prefix)

    def is_two_terminal(self) -> bool:
        return len(self.pin_order) == 2 and not self.is_ground_reference

    def get_pin_node(self, pin_id: str) -> Optional[int]:
        return self.pin_node_ids.get(pin_id)

    def attached_node_ids(self) -> list[int]:
        """Node ids of attached pins, in declared pin order."""
        return [self.pin_node_ids[p] for p in self.pin_order if self.pin_node_ids.get(p) is not None]

    def floating_pins(self) -> list[str]:
        """Declared pins with no attachment, in declared order."""
        return [p for p in self.pin_order if self.pin_node_ids.get(p) is None]

    def get_model_name(self) -> str:
        """Model name for semiconductor devices."""
        name = extract_model_name(self.model_statement or "")
        return name or self.value or f"{self.designator}_MODEL"

    def to_dict(self) -> dict:
        data = {
            "id": self.component_id,
            "prefix": self.designator_prefix,
            "number": self.instance_number,
            "pins": list(self.pin_order),
            "attachments": {pin: node for pin, node in self.pin_node_ids.items() if node is not None},
            "value": self.value,
        }
        if self.is_ground_reference:
            data["ground"] = True
        if self.spice_type:
            data["spice_type"] = self.spice_type
        if self.model_statement:
            data["model"] = self.model_statement
        if self.spice_override:
            data["spice_override"] = self.spice_override
        if self.subcircuit_name:
            data["subcircuit_name"] = self.subcircuit_name
        if self.subcircuit_definition:
            data["subcircuit_definition"] = self.subcircuit_definition
        if self.subcircuit_args:
            data["subcircuit_args"] = dict(self.subcircuit_args)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ComponentData":
        """
        Deserialize a component record.

        Attachments are restored verbatim; callers replaying a saved circuit
        remap the node ids afterwards.
        """
        component = cls(
            component_id=data["id"],
            designator_prefix=data["prefix"],
            instance_number=int(data["number"]),
            pin_order=[str(p) for p in data.get("pins", [])],
            is_ground_reference=bool(data.get("ground", False)),
            value=data.get("value", ""),
            spice_type=data.get("spice_type"),
            model_statement=data.get("model"),
            spice_override=data.get("spice_override"),
            subcircuit_name=data.get("subcircuit_name"),
            subcircuit_definition=data.get("subcircuit_definition"),
            subcircuit_args=dict(data.get("subcircuit_args", {})),
        )
        for pin_id, node_id in data.get("attachments", {}).items():
            component.pin_node_ids[str(pin_id)] = node_id
        return component

    def __repr__(self) -> str:
        return (
            f"ComponentData(id={self.component_id!r}, designator={self.designator!r}, "
            f"value={self.value!r}, pins={self.pin_node_ids})"
        )


def make_component(
    component_id: str,
    designator_prefix: str,
    instance_number: int,
    value: str = "",
    spice_type: Optional[str] = None,
    pin_order: Optional[list[str]] = None,
    is_ground_reference: bool = False,
) -> ComponentData:
    """Create a component with the default pin order for its SPICE type."""
    if is_ground_reference:
        resolved_type = "ground"
    else:
        resolved_type = spice_type or PREFIX_SPICE_TYPES.get(designator_prefix[:1].upper())
    pins = pin_order if pin_order is not None else DEFAULT_PIN_ORDER.get(resolved_type, ["1", "2"])
    return ComponentData(
        component_id=component_id,
        designator_prefix=designator_prefix,
        instance_number=instance_number,
        pin_order=list(pins),
        is_ground_reference=is_ground_reference,
        value=value,
        spice_type=spice_type,
    )
