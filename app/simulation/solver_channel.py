"""
simulation/solver_channel.py

Asynchronous request/response channel to the out-of-process ngspice solver.

At most one request is in flight. A request submitted while another is
running becomes the pending request, replacing any earlier pending one, and
is dispatched when the running one finishes. Responses to requests that have
been superseded by a newer submission are dropped. Running requests are never
cancelled.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from PyQt6.QtCore import QProcess, QTimer

from .diagnostics import FailureDiagnosis, diagnose_failure
from .ngspice_runner import WRDATA_FILENAME, NgspiceRunner
from .result_parser import ResultParser, ResultTable

logger = logging.getLogger(__name__)


@dataclass
class SolverRequest:
    """
    Netlist plus configuration payload sent to the solver.

    Recognized config keys: 'spinit' (ngspice init script text),
    'signals' (column names for wrdata output), 'analysis_type',
    'wrdata_filename'.
    """

    request_id: int
    netlist: str
    config: dict = field(default_factory=dict)

    @property
    def analysis_type(self) -> str:
        return self.config.get("analysis_type", "op")


@dataclass
class SolverResponse:
    """Structured results payload, or a structured failure with console output."""

    request_id: int
    success: bool
    stdout: str = ""
    stderr: str = ""
    output_data: Optional[str] = None
    table: Optional[ResultTable] = None
    op_values: dict = field(default_factory=dict)
    diagnosis: Optional[FailureDiagnosis] = None


def build_response(
    request: SolverRequest,
    success: bool,
    output_data: Optional[str],
    stdout: str,
    stderr: str,
) -> SolverResponse:
    """Parse raw solver output into a SolverResponse."""
    response = SolverResponse(
        request_id=request.request_id,
        success=success,
        stdout=stdout or "",
        stderr=stderr or "",
        output_data=output_data,
    )
    if output_data:
        response.table = ResultParser.parse_wrdata(
            output_data,
            signals=request.config.get("signals"),
            complex_values=request.analysis_type == "ac",
        )
    if response.stdout:
        response.op_values = ResultParser.parse_op_results(response.stdout)
    if not success:
        response.diagnosis = diagnose_failure(response.stderr, response.stdout)
    return response


class RunnerTransport:
    """Blocking transport built on NgspiceRunner; used by the command line."""

    def __init__(self, runner: NgspiceRunner):
        self.runner = runner

    def send(self, request: SolverRequest, on_done: Callable[[SolverResponse], None]) -> None:
        wrdata_filename = request.config.get("wrdata_filename", WRDATA_FILENAME)
        success, output_file, stdout, stderr = self.runner.run_simulation(
            request.netlist, spinit=request.config.get("spinit"), wrdata_filename=wrdata_filename
        )
        output_data = self.runner.read_output(output_file) if output_file else None
        on_done(build_response(request, success, output_data, stdout, stderr))


class QProcessTransport:
    """
    Runs ngspice through QProcess so the Qt event loop stays responsive.

    The solver timeout is enforced here by killing the process.
    """

    def __init__(self, runner: NgspiceRunner, parent=None):
        self.runner = runner
        self.parent = parent
        self._process = None
        self._timer = None

    def send(self, request: SolverRequest, on_done: Callable[[SolverResponse], None]) -> None:
        if self.runner.find_ngspice() is None:
            on_done(build_response(request, False, None, "", "ngspice executable not found"))
            return

        try:
            run_dir, netlist_path = self.runner.prepare_run(request.netlist, request.config.get("spinit"))
        except OSError as e:
            logger.error("Failed to write netlist: %s", e)
            on_done(build_response(request, False, None, "", f"Failed to write netlist: {e}"))
            return

        wrdata_filename = request.config.get("wrdata_filename", WRDATA_FILENAME)
        command = self.runner.build_command(netlist_path)
        process = QProcess(self.parent)
        process.setWorkingDirectory(run_dir)
        self._process = process
        state = {"timed_out": False, "done": False}

        def finish(success, stderr_override=None):
            if state["done"]:
                return
            state["done"] = True
            if self._timer is not None:
                self._timer.stop()
            stdout = bytes(process.readAllStandardOutput()).decode(errors="replace")
            stderr = bytes(process.readAllStandardError()).decode(errors="replace")
            if stderr_override:
                stderr = f"{stderr}\n{stderr_override}".strip()
            output_file = self.runner.output_path(run_dir, wrdata_filename)
            output_data = self.runner.read_output(output_file) if output_file else None
            self._process = None
            on_done(build_response(request, success, output_data, stdout, stderr))

        def on_finished(exit_code, exit_status):
            if state["timed_out"]:
                finish(False, f"Simulation timed out (>{self.runner.timeout} seconds)")
            else:
                finish(exit_status == QProcess.ExitStatus.NormalExit and exit_code == 0)

        def on_error(error):
            if error == QProcess.ProcessError.FailedToStart:
                finish(False, f"Simulation error: failed to start {command[0]}")

        def on_timeout():
            logger.warning("ngspice timed out after %s seconds", self.runner.timeout)
            state["timed_out"] = True
            process.kill()

        process.finished.connect(on_finished)
        process.errorOccurred.connect(on_error)

        self._timer = QTimer(self.parent)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(on_timeout)

        logger.info("Starting ngspice for request %s", request.request_id)
        process.start(command[0], command[1:])
        self._timer.start(int(self.runner.timeout * 1000))


class SolverChannel:
    """
    Single-slot admission queue in front of a solver transport.

    A transport is any object with send(request, on_done); on_done may be
    called synchronously or later from the event loop.
    """

    def __init__(self, transport, on_response: Optional[Callable[[SolverResponse], None]] = None):
        self.transport = transport
        self.on_response = on_response
        self._next_id = 1
        self._in_flight: Optional[SolverRequest] = None
        self._pending: Optional[SolverRequest] = None
        self._latest_id = 0
        self.last_response: Optional[SolverResponse] = None

    @property
    def busy(self) -> bool:
        return self._in_flight is not None

    @property
    def in_flight_id(self) -> Optional[int]:
        return self._in_flight.request_id if self._in_flight else None

    @property
    def pending_id(self) -> Optional[int]:
        return self._pending.request_id if self._pending else None

    @property
    def next_request_id(self) -> int:
        """Id the next submit will be given."""
        return self._next_id

    def submit(self, netlist: str, config: Optional[dict] = None) -> int:
        """Queue a netlist for solving and return its request id."""
        request = SolverRequest(self._next_id, netlist, dict(config or {}))
        self._next_id += 1
        self._latest_id = request.request_id

        if self._in_flight is None:
            self._dispatch(request)
        else:
            if self._pending is not None:
                logger.debug("Request %s replaced by %s", self._pending.request_id, request.request_id)
            self._pending = request
        return request.request_id

    def _dispatch(self, request: SolverRequest) -> None:
        self._in_flight = request
        self.transport.send(request, self._on_done)

    def _on_done(self, response: SolverResponse) -> None:
        if self._in_flight is None or response.request_id != self._in_flight.request_id:
            logger.debug("Ignoring response for unknown request %s", response.request_id)
            return
        self._in_flight = None

        if response.request_id == self._latest_id:
            self.last_response = response
            if self.on_response:
                self.on_response(response)
        else:
            logger.debug("Ignoring response for superseded request %s", response.request_id)

        if self._pending is not None:
            request, self._pending = self._pending, None
            self._dispatch(request)
