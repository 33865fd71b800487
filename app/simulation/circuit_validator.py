"""
simulation/circuit_validator.py

Pre-simulation circuit validation with no Qt dependencies.
"""

from .connectivity import SynthesisError, resolve_nets


def validate_circuit(graph, components, probes, require_probes=True):
    """
    Validate circuit before simulation.

    Args:
        graph: WireGraph
        components: list[ComponentData] in netlist order
        probes: list[ProbeData]
        require_probes: refuse to run without at least one probe on a wire

    Returns:
        (is_valid, errors, warnings) where:
            is_valid: bool, False if any errors found
            errors: list[str], problems that block simulation
            warnings: list[str], non-blocking issues
    """
    errors = []
    warnings = []
    components = list(components)
    probes = list(probes)

    # 1. Circuit must have components (beyond just ground symbols)
    non_ground = [c for c in components if not c.is_ground_reference]
    if not non_ground:
        errors.append("Circuit has no components. Add at least one component to simulate.")
        return False, errors, warnings

    # 2. Connectivity must resolve
    try:
        partition = resolve_nets(graph, components, probes)
    except SynthesisError as e:
        errors.append(str(e))
        return False, errors, warnings

    if partition.ground_net is None:
        warnings.append("Circuit has no ground. Every SPICE circuit requires a ground (node 0).")

    # 3. Unconnected pins
    for comp in non_ground:
        floating = comp.floating_pins()
        if not floating:
            continue
        if len(floating) == len(comp.pin_order):
            errors.append(f"{comp.designator} has no connections. Connect its pins to the circuit.")
        else:
            errors.append(f"{comp.designator} has unconnected pin(s): {', '.join(floating)}.")

    # 4. Probes
    placed = {p.probe_id for p in probes if partition.net_name_for_node(p.resolve_node_id(graph)) is not None}
    if require_probes and not placed:
        errors.append("Place at least one probe on a wire before running the simulation.")
    for probe in probes:
        if probe.probe_id not in placed:
            warnings.append(f"{probe.label} is not on a wire and will be ignored.")

    # 5. Sources
    if not any(c.get_spice_type() in ("voltage", "current") for c in non_ground):
        warnings.append(
            "Circuit has no voltage or current sources. The simulation may not produce meaningful results."
        )

    is_valid = len(errors) == 0
    return is_valid, errors, warnings
