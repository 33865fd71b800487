"""
SimulationController - Orchestrates the simulation pipeline.

This module contains no Qt dependencies of its own. It coordinates
connection refresh, circuit validation, netlist synthesis, ngspice
execution and result parsing. Asynchronous runs go through a
SolverChannel whose default transport is QProcess based.
"""

import logging
from functools import partial
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from models.circuit import CircuitModel
from models.net import NetPartition

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """Result of a simulation run."""

    success: bool
    analysis_type: str = ""
    data: Any = None  # ResultTable when ngspice wrote wrdata output
    op_values: dict = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: str = ""
    netlist: str = ""
    raw_output: str = ""
    output_file: str = ""
    request_id: Optional[int] = None
    diagnosis: Any = None


class SimulationController:
    """
    Controller for the simulation pipeline.

    Coordinates: refresh nets -> validate -> synthesize netlist -> run
    ngspice -> parse results
    """

    def __init__(
        self,
        model: Optional[CircuitModel] = None,
        circuit_ctrl=None,
        output_dir: str = "simulation_output",
        ngspice_path: Optional[str] = None,
        timeout: int = 60,
        spinit: Optional[str] = None,
        default_title: str = "",
    ):
        self.model = model or CircuitModel()
        self.circuit_ctrl = circuit_ctrl  # For observer notifications
        self.output_dir = output_dir
        self.ngspice_path = ngspice_path
        self.timeout = timeout
        self.spinit = spinit
        self.default_title = default_title
        self.partition: Optional[NetPartition] = None
        self._runner = None
        self._channel = None
        self._latest_submission = None

    @property
    def runner(self):
        """Lazy initialization of NgspiceRunner."""
        if self._runner is None:
            from simulation import NgspiceRunner

            self._runner = NgspiceRunner(self.output_dir, ngspice_path=self.ngspice_path, timeout=self.timeout)
        return self._runner

    @property
    def channel(self):
        """Lazy initialization of the asynchronous solver channel."""
        if self._channel is None:
            from simulation.solver_channel import QProcessTransport, SolverChannel

            self._channel = SolverChannel(QProcessTransport(self.runner))
            self._channel.on_response = partial(self._on_solver_response, self._channel)
        return self._channel

    @channel.setter
    def channel(self, channel) -> None:
        self._channel = channel
        channel.on_response = partial(self._on_solver_response, channel)

    def configure_solver(self, ngspice_path: Optional[str] = None, timeout: Optional[int] = None) -> None:
        """Change solver settings; the runner and channel are rebuilt on next use."""
        self.ngspice_path = ngspice_path or None
        if timeout:
            self.timeout = timeout
        self._runner = None
        self._channel = None

    def _notify(self, event: str, data: Any) -> None:
        if self.circuit_ctrl:
            self.circuit_ctrl._notify(event, data)

    # --- Connectivity and synthesis ---

    def refresh_connections(self) -> Optional[NetPartition]:
        """
        Recompute nets for the current drawing.

        Returns:
            The new partition, or None if ground is ambiguous.
        """
        from simulation import SynthesisError, resolve_nets

        try:
            self.partition = resolve_nets(self.model.graph, self.model.component_list(), self.model.probes)
        except SynthesisError as e:
            logger.info("Connection refresh failed: %s", e)
            self.partition = None
            self._notify("nets_failed", str(e))
            return None
        self._notify("nets_resolved", self.partition)
        return self.partition

    def _generator(self, include_control_block: bool = False):
        from simulation import NetlistGenerator
        from simulation.netlist_generator import DEFAULT_TITLE
        from simulation.ngspice_runner import WRDATA_FILENAME

        return NetlistGenerator(
            graph=self.model.graph,
            components=self.model.component_list(),
            probes=self.model.probes,
            analysis_directives=self.model.analysis_directives,
            title=self.model.title or self.default_title or DEFAULT_TITLE,
            include_control_block=include_control_block,
            wrdata_filepath=WRDATA_FILENAME,
        )

    def synthesize(self, include_control_block: bool = False):
        """Synthesize the netlist, returning a SynthesisResult (never raises)."""
        synthesis = self._generator(include_control_block).generate()
        if synthesis.success:
            self.partition = synthesis.partition
        self._notify("netlist_generated", synthesis)
        return synthesis

    def generate_netlist(self, include_control_block: bool = False) -> str:
        """
        Generate a SPICE netlist from the current circuit model.

        Raises:
            SynthesisError: If the circuit cannot be expressed as a netlist.
        """
        return self._generator(include_control_block).build().netlist

    def validate_circuit(self, require_probes: bool = True) -> SimulationResult:
        """
        Validate the circuit before simulation.

        Returns a SimulationResult with success=False and errors if invalid.
        """
        from simulation.circuit_validator import validate_circuit

        is_valid, errors, warnings = validate_circuit(
            self.model.graph,
            self.model.component_list(),
            self.model.probes,
            require_probes=require_probes,
        )
        return SimulationResult(
            success=is_valid,
            errors=errors,
            warnings=warnings,
            error="; ".join(errors) if errors else "",
        )

    def _prepare(self):
        """Validate and synthesize; returns (synthesis, warnings) or a failed SimulationResult."""
        validation = self.validate_circuit()
        if not validation.success:
            return validation

        synthesis = self.synthesize(include_control_block=True)
        if not synthesis.success:
            return SimulationResult(
                success=False,
                errors=synthesis.errors,
                error=f"Netlist generation failed: {synthesis.error}",
                warnings=validation.warnings,
            )
        warnings = validation.warnings + [str(w) for w in synthesis.warnings]
        return synthesis, warnings

    def _solver_config(self, synthesis) -> dict:
        from simulation.ngspice_runner import WRDATA_FILENAME

        return {
            "spinit": self.spinit,
            "signals": synthesis.signals,
            "analysis_type": synthesis.analysis_type,
            "wrdata_filename": WRDATA_FILENAME,
        }

    # --- Running ---

    def run_simulation(self) -> SimulationResult:
        """
        Run the full simulation pipeline synchronously.

        Steps: validate -> synthesize -> run ngspice -> parse
        """
        from simulation.solver_channel import RunnerTransport, SolverRequest

        self._notify("simulation_started", None)

        prepared = self._prepare()
        if isinstance(prepared, SimulationResult):
            self._notify("simulation_completed", prepared)
            return prepared
        synthesis, warnings = prepared

        responses = []
        request = SolverRequest(0, synthesis.netlist, self._solver_config(synthesis))
        RunnerTransport(self.runner).send(request, responses.append)

        result = self._result_from_response(responses[0], synthesis, warnings)
        self._notify("simulation_completed", result)
        return result

    def submit_simulation(self, on_result: Optional[Callable[[SimulationResult], None]] = None) -> Optional[int]:
        """
        Queue an asynchronous run.

        Only the newest submission's result is delivered; older requests
        still queued are replaced and late responses are dropped.

        Returns:
            The request id, or None if the circuit failed validation or
            synthesis (simulation_completed is sent with the failure).
        """
        self._notify("simulation_started", None)
        # Any earlier run still in flight is superseded, even if this one fails here.
        self._latest_submission = None
        prepared = self._prepare()
        if isinstance(prepared, SimulationResult):
            self._notify("simulation_completed", prepared)
            if on_result:
                on_result(prepared)
            return None
        synthesis, warnings = prepared

        # Stamped before submitting since a transport may answer synchronously.
        channel = self.channel
        self._latest_submission = (channel, channel.next_request_id, synthesis, warnings, on_result)
        return channel.submit(synthesis.netlist, self._solver_config(synthesis))

    def _on_solver_response(self, channel, response) -> None:
        stamp = self._latest_submission
        if stamp is None or stamp[0] is not channel or stamp[1] != response.request_id:
            logger.debug("Dropping stale solver response %s", response.request_id)
            return
        _, _, synthesis, warnings, on_result = stamp
        self._latest_submission = None
        result = self._result_from_response(response, synthesis, warnings)
        self._notify("simulation_completed", result)
        if on_result:
            on_result(result)

    def _result_from_response(self, response, synthesis, warnings: list[str]) -> SimulationResult:
        from simulation.diagnostics import format_user_message

        result = SimulationResult(
            success=response.success,
            analysis_type=synthesis.analysis_type,
            data=response.table,
            op_values=response.op_values,
            warnings=list(warnings),
            netlist=synthesis.netlist,
            raw_output=response.stdout,
            request_id=response.request_id or None,
            diagnosis=response.diagnosis,
        )
        if not response.success:
            result.error = format_user_message(response.diagnosis)
            result.errors = [result.error]
            logger.info("Simulation failed: %s", response.diagnosis.category.value)
        return result
