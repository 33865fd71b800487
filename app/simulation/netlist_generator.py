"""
simulation/netlist_generator.py

Handles SPICE netlist generation from the wire graph, component records and
probe records.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from models.component import DEFAULT_VALUES, MODEL_TYPES, ComponentData, extract_model_name
from models.net import GROUND_NET_NAME, NetPartition
from models.probe import CURRENT_PROBE, VOLTAGE_PROBE, ProbeData
from models.wire_graph import WireGraph

from .connectivity import SynthesisError, resolve_nets

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "* Schematic netlist"
DEFAULT_WRDATA_FILE = "output.txt"

# Warning codes
DANGLING_PROBE_NET = "DanglingProbeNet"
CURRENT_PROBE_DOWNGRADED = "CurrentProbeDowngraded"
UNCONNECTED_GROUND = "UnconnectedGround"


class FloatingPin(SynthesisError):
    """Raised when a component pin has no attachment at synthesis time."""

    code = "FloatingPin"

    def __init__(self, pins: list[tuple[str, str]]):
        self.pins = pins
        described = ", ".join(f"{designator} pin {pin_id}" for designator, pin_id in pins)
        super().__init__(f"Unconnected pin(s): {described}. Connect every pin before simulating.")


@dataclass(frozen=True)
class NetlistWarning:
    """Non-fatal problem found while generating a netlist."""

    code: str
    subject: str
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class ProbeDirective:
    """Measurement emitted for one probe."""

    probe_id: str
    label: str
    probe_type: str  # type requested by the probe
    kind: str  # type actually measured (current probes may downgrade)
    signal: str
    net: Optional[str] = None
    device: Optional[str] = None

    @property
    def is_ground(self) -> bool:
        return self.kind == VOLTAGE_PROBE and self.net == GROUND_NET_NAME

    @property
    def line(self) -> str:
        return f".save {self.signal}"


@dataclass
class SynthesisResult:
    """Outcome of netlist synthesis; failures carry no partial netlist."""

    success: bool
    netlist: str = ""
    directives: list[ProbeDirective] = field(default_factory=list)
    warnings: list[NetlistWarning] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    error: str = ""
    error_code: str = ""
    partition: Optional[NetPartition] = None
    analysis_type: str = "op"

    @property
    def net_map(self) -> dict[int, str]:
        """Node id -> net name for every resolved node."""
        return self.partition.node_to_net_name() if self.partition else {}

    @property
    def signals(self) -> list[str]:
        """Probe signals that can be written out (ground excluded)."""
        return [d.signal for d in self.directives if not d.is_ground]


def _detect_analysis_type(text: str) -> Optional[str]:
    lowered = text.strip().lower()
    for kind in ("ac", "tran", "dc", "op", "noise"):
        if lowered.startswith(f".{kind}"):
            return kind
    return None


class NetlistGenerator:
    """
    Generates SPICE netlists from circuit topology.

    Output depends only on the inputs: the same graph, component order and
    probe order always produce byte-identical text.
    """

    def __init__(
        self,
        graph: WireGraph,
        components: Iterable[ComponentData],
        probes: Iterable[ProbeData] = (),
        analysis_directives: Optional[list] = None,
        title: str = DEFAULT_TITLE,
        include_control_block: bool = False,
        control_signals: Optional[list[str]] = None,
        wrdata_filepath: str = DEFAULT_WRDATA_FILE,
    ):
        self.graph = graph
        self.components = list(components)
        self.probes = list(probes)
        self.analysis_directives = analysis_directives or []
        self.title = title
        self.include_control_block = include_control_block
        self.control_signals = control_signals
        self.wrdata_filepath = wrdata_filepath

    def generate(self) -> SynthesisResult:
        """Generate the netlist, reporting synthesis errors as a failed result."""
        try:
            return self.build()
        except SynthesisError as e:
            logger.info("Netlist synthesis failed: %s", e)
            return SynthesisResult(
                success=False,
                errors=[str(e)],
                error=str(e),
                error_code=e.code,
            )

    def build(self) -> SynthesisResult:
        """
        Generate the netlist.

        Raises:
            AmbiguousGround: Ground symbols sit on different nets.
            FloatingPin: A non-ground component has an unattached pin.
            SynthesisError: A component cannot be expressed in SPICE.
        """
        partition = resolve_nets(self.graph, self.components, self.probes)
        warnings: list[NetlistWarning] = []

        self._check_floating_pins(partition, warnings)

        lines = [self.title]
        lines.extend(self._subcircuit_lines())
        for comp in self.components:
            if comp.is_ground_reference:
                continue
            lines.append(self._component_line(comp, partition))
        lines.extend(self._model_lines())

        analysis_type = "op"
        directive_texts = [d.get("text", "") if isinstance(d, dict) else str(d) for d in self.analysis_directives]
        directive_texts = [text.strip() for text in directive_texts if text and text.strip()] or [".op"]
        for text in directive_texts:
            lines.append(text)
            analysis_type = _detect_analysis_type(text) or analysis_type

        directives = self._probe_directives(partition, warnings)
        lines.extend(d.line for d in directives if not d.is_ground)

        if self.include_control_block:
            lines.extend(self._control_lines(partition, directives))

        lines.append(".end")

        return SynthesisResult(
            success=True,
            netlist="\n".join(lines) + "\n",
            directives=directives,
            warnings=warnings,
            partition=partition,
            analysis_type=analysis_type,
        )

    # --- Components ---

    def _check_floating_pins(self, partition: NetPartition, warnings: list[NetlistWarning]) -> None:
        by_id = {comp.component_id: comp for comp in self.components}
        floating = []
        for comp_id, pin_id in partition.floating_pins:
            comp = by_id[comp_id]
            if comp.is_ground_reference:
                warnings.append(
                    NetlistWarning(UNCONNECTED_GROUND, comp_id, f"{comp.designator} is not connected to any wire.")
                )
                continue
            floating.append((comp.designator, pin_id))
        if floating:
            raise FloatingPin(floating)

    def _component_line(self, comp: ComponentData, partition: NetPartition) -> str:
        nets = [partition.net_for_pin(comp.component_id, pin_id).name for pin_id in comp.pin_order]
        line = " ".join([comp.designator] + nets)

        if comp.spice_override:
            return f"{line} {comp.spice_override.strip()}"

        spice_type = comp.get_spice_type()
        if spice_type == "subcircuit":
            if not comp.subcircuit_name:
                raise SynthesisError(f"{comp.designator} has no subcircuit selected.")
            line += f" {comp.subcircuit_name}"
            args = [
                f"{name}={value}"
                for name, value in comp.subcircuit_args.items()
                if name and value is not None and str(value).strip()
            ]
            if args:
                line += " " + " ".join(args)
        elif spice_type in MODEL_TYPES:
            line += f" {comp.get_model_name()}"
        else:
            value = comp.value.strip() if comp.value else DEFAULT_VALUES.get(spice_type, "")
            if value:
                line += f" {value}"
        return line

    def _subcircuit_lines(self) -> list[str]:
        seen = set()
        lines = []
        for comp in self.components:
            name = (comp.subcircuit_name or "").strip()
            definition = (comp.subcircuit_definition or "").strip()
            if not name or not definition:
                continue
            key = (name.lower(), " ".join(definition.split()).lower())
            if key in seen:
                continue
            seen.add(key)
            lines.extend(line.rstrip() for line in definition.splitlines())
        return lines

    def _model_lines(self) -> list[str]:
        seen = set()
        lines = []
        for comp in self.components:
            statement = (comp.model_statement or "").strip()
            if not extract_model_name(statement):
                continue
            key = " ".join(statement.split()).lower()
            if key in seen:
                continue
            seen.add(key)
            lines.append(statement)
        return lines

    # --- Probes ---

    def _probe_directives(self, partition: NetPartition, warnings: list[NetlistWarning]) -> list[ProbeDirective]:
        directives = []
        for probe in self.probes:
            net = partition.net_name_for_node(probe.resolve_node_id(self.graph))
            if net is None:
                warnings.append(
                    NetlistWarning(
                        DANGLING_PROBE_NET,
                        probe.probe_id,
                        f"{probe.label} is not on a wire and was left out of the netlist.",
                    )
                )
                continue

            if probe.probe_type == CURRENT_PROBE:
                device = self._find_current_device(probe)
                if device is not None:
                    directives.append(
                        ProbeDirective(
                            probe_id=probe.probe_id,
                            label=probe.label,
                            probe_type=CURRENT_PROBE,
                            kind=CURRENT_PROBE,
                            signal=self._current_signal(device),
                            net=net,
                            device=device.designator,
                        )
                    )
                    continue
                warnings.append(
                    NetlistWarning(
                        CURRENT_PROBE_DOWNGRADED,
                        probe.probe_id,
                        f"{probe.label} is not next to a two-terminal device; measuring voltage on net {net} instead.",
                    )
                )

            directives.append(
                ProbeDirective(
                    probe_id=probe.probe_id,
                    label=probe.label,
                    probe_type=probe.probe_type,
                    kind=VOLTAGE_PROBE,
                    signal=f"v({net})",
                    net=net,
                )
            )
        return directives

    def _find_current_device(self, probe: ProbeData) -> Optional[ComponentData]:
        """
        Two-terminal device abutting the probe's wire.

        Endpoints of the connected segment are checked lower node id first;
        at each endpoint components are checked in list order.
        """
        segment = None
        if probe.connected_segment_id is not None:
            segment = self.graph.get_segment(probe.connected_segment_id)

        if segment is not None:
            candidate_nodes = [segment.node_id1, segment.node_id2]
        else:
            node_id = probe.resolve_node_id(self.graph)
            candidate_nodes = [node_id] if node_id is not None else []

        for node_id in candidate_nodes:
            for comp in self.components:
                if comp.is_two_terminal() and node_id in comp.attached_node_ids():
                    return comp
        return None

    @staticmethod
    def _current_signal(device: ComponentData) -> str:
        # ngspice exposes branch currents directly only for voltage sources
        if device.get_spice_type() == "voltage":
            return f"i({device.designator})"
        return f"@{device.designator.lower()}[i]"

    # --- Control block ---

    def _control_lines(self, partition: NetPartition, directives: list[ProbeDirective]) -> list[str]:
        if self.control_signals:
            signals = [s.strip() for s in self.control_signals if s and s.strip()]
        elif directives:
            signals = [d.signal for d in directives if not d.is_ground]
        else:
            signals = [f"v({name})" for name in partition.net_names if name != GROUND_NET_NAME]

        lines = [".control", "set filetype=ascii", "set wr_vecnames", "run"]
        if signals:
            lines.append(f"wrdata {self.wrdata_filepath} {' '.join(signals)}")
        lines.extend(["quit", ".endc"])
        return lines


def generate_netlist(
    graph: WireGraph,
    components: Iterable[ComponentData],
    probes: Iterable[ProbeData] = (),
    **options,
) -> SynthesisResult:
    """Convenience wrapper around NetlistGenerator(...).generate()."""
    return NetlistGenerator(graph, components, probes, **options).generate()
