"""
Command-line interface for batch netlist operations.

Resolve nets, validate circuits, export netlists and run ngspice without
the editor.

Usage::

    python -m cli netlist circuit.json
    python -m cli netlist circuit.json --control --output circuit.cir
    python -m cli nets circuit.json
    python -m cli validate circuit.json
    python -m cli simulate circuit.json --output results.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from controllers.circuit_controller import CircuitController
from controllers.file_controller import validate_circuit_data
from controllers.simulation_controller import SimulationController
from models.circuit import CircuitModel
from models.wire_graph import InvalidTopology
from simulation.connectivity import SynthesisError, resolve_nets

logger = logging.getLogger(__name__)


def try_load_circuit(filepath: str) -> tuple[CircuitModel | None, str]:
    """Load and validate a circuit JSON file without exiting.

    Returns:
        (model, "") on success, or (None, error_message) on failure.
    """
    path = Path(filepath)
    if not path.exists():
        return None, f"file not found: {filepath}"

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        return None, f"invalid JSON in {filepath}: {e}"

    try:
        validate_circuit_data(data)
        return CircuitModel.from_dict(data), ""
    except ValueError as e:
        # InvalidTopology is a ValueError too
        return None, f"invalid circuit file: {e}"


def load_circuit(filepath: str) -> CircuitModel:
    """Load and validate a circuit JSON file.

    Raises:
        SystemExit: On file read or validation errors.
    """
    model, error = try_load_circuit(filepath)
    if model is None:
        print(f"Error: {error}", file=sys.stderr)
        sys.exit(1)
    return model


def _controllers(model: CircuitModel, args: argparse.Namespace) -> SimulationController:
    circuit_ctrl = CircuitController(model)
    return SimulationController(
        model,
        circuit_ctrl,
        output_dir=getattr(args, "output_dir", None) or "simulation_output",
        ngspice_path=getattr(args, "ngspice", None),
        timeout=getattr(args, "timeout", None) or 60,
    )


def _write_or_print(text: str, output) -> None:
    if output:
        Path(output).write_text(text)
        print(f"Written to {output}", file=sys.stderr)
    else:
        print(text, end="" if text.endswith("\n") else "\n")


def cmd_netlist(args: argparse.Namespace) -> int:
    """Export the SPICE netlist for a circuit."""
    model = load_circuit(args.circuit)
    if args.title:
        model.title = args.title
    sim = SimulationController(model)

    synthesis = sim.synthesize(include_control_block=args.control)
    if not synthesis.success:
        print(f"Error generating netlist [{synthesis.error_code}]: {synthesis.error}", file=sys.stderr)
        return 1

    for warning in synthesis.warnings:
        print(f"Warning [{warning.code}]: {warning.message}", file=sys.stderr)

    _write_or_print(synthesis.netlist, args.output)
    return 0


def cmd_nets(args: argparse.Namespace) -> int:
    """Print the net partition as JSON."""
    model = load_circuit(args.circuit)
    try:
        partition = resolve_nets(model.graph, model.component_list(), model.probes)
    except SynthesisError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    report = {
        "nets": [
            {"name": net.name, "ground": net.is_ground, "nodes": sorted(net.member_node_ids)}
            for net in partition.nets
        ],
        "pins": {
            f"{comp_id}.{pin_id}": partition.net_for_pin(comp_id, pin_id).name
            for (comp_id, pin_id) in sorted(partition.pin_to_node)
        },
        "floating_pins": [f"{comp_id}.{pin_id}" for comp_id, pin_id in partition.floating_pins],
        "probes": {
            probe.probe_id: partition.net_name_for_node(probe.resolve_node_id(model.graph)) for probe in model.probes
        },
    }
    _write_or_print(json.dumps(report, indent=2), args.output)
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate a circuit without simulating."""
    model = load_circuit(args.circuit)
    sim = SimulationController(model)

    result = sim.validate_circuit(require_probes=not args.no_probes)

    if result.success:
        print(f"Circuit is valid: {args.circuit}")
        for warning in result.warnings:
            print(f"  Warning: {warning}")
        return 0
    print(f"Circuit has errors: {args.circuit}", file=sys.stderr)
    for err in result.errors:
        print(f"  - {err}", file=sys.stderr)
    return 1


def cmd_simulate(args: argparse.Namespace) -> int:
    """Run ngspice on a circuit and output the probed signals."""
    model = load_circuit(args.circuit)
    sim = _controllers(model, args)

    result = sim.run_simulation()
    if not result.success:
        print(f"Simulation failed: {result.error}", file=sys.stderr)
        return 1

    for warning in result.warnings:
        print(f"Warning: {warning}", file=sys.stderr)

    _write_or_print(json.dumps(_result_to_dict(result), indent=2), args.output)
    return 0


def _result_to_dict(result) -> dict:
    data = {"analysis_type": result.analysis_type, "op_values": result.op_values}
    table = result.data
    if table is not None:
        data["sweep"] = table.sweep.tolist()
        if any(values.dtype.kind == "c" for values in table.signals.values()):
            data["signals"] = {
                name: {"real": values.real.tolist(), "imag": values.imag.tolist()}
                for name, values in table.signals.items()
            }
        else:
            data["signals"] = {name: values.tolist() for name, values in table.signals.items()}
    return data


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="spicenet",
        description="Schematic netlist tools: resolve nets, validate, export netlists and simulate.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # netlist
    net_parser = subparsers.add_parser("netlist", help="Export the SPICE netlist")
    net_parser.add_argument("circuit", help="Path to circuit JSON file")
    net_parser.add_argument("--output", "-o", help="Write netlist to file instead of stdout")
    net_parser.add_argument("--control", action="store_true", help="Append a .control block that writes probe data")
    net_parser.add_argument("--title", help="Override the netlist title line")

    # nets
    nets_parser = subparsers.add_parser("nets", help="Print the resolved nets as JSON")
    nets_parser.add_argument("circuit", help="Path to circuit JSON file")
    nets_parser.add_argument("--output", "-o", help="Write report to file instead of stdout")

    # validate
    val_parser = subparsers.add_parser("validate", help="Check circuit for errors without simulating")
    val_parser.add_argument("circuit", help="Path to circuit JSON file")
    val_parser.add_argument("--no-probes", action="store_true", help="Do not require a probe on a wire")

    # simulate
    sim_parser = subparsers.add_parser("simulate", help="Run ngspice and output probed signals")
    sim_parser.add_argument("circuit", help="Path to circuit JSON file")
    sim_parser.add_argument("--output", "-o", help="Write results to file instead of stdout")
    sim_parser.add_argument("--output-dir", help="Directory for ngspice run files (default: simulation_output)")
    sim_parser.add_argument("--ngspice", help="Path to the ngspice executable")
    sim_parser.add_argument("--timeout", type=int, help="Solver timeout in seconds (default: 60)")

    return parser


def main(argv=None) -> int:
    """CLI entry point. Returns exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    handlers = {
        "netlist": cmd_netlist,
        "nets": cmd_nets,
        "validate": cmd_validate,
        "simulate": cmd_simulate,
    }

    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        return handler(args)
    except (InvalidTopology, SynthesisError) as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
